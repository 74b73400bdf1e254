from __future__ import annotations

from conftest import product, service

from src.logic.cart import Cart, CartOutcome
from src.logic.catalog import CatalogSnapshot


def test_add_creates_line_then_increments(cart, pomade):
    assert cart.add_item(pomade) is CartOutcome.ADDED
    assert cart.add_item(pomade) is CartOutcome.UPDATED

    assert len(cart) == 1
    assert cart.quantity_of("p1") == 2


def test_add_out_of_stock_product_leaves_cart_untouched(cart, haircut):
    empty = product("p9", "Gel", stock=0)
    cart.add_item(haircut)

    assert cart.add_item(empty) is CartOutcome.OUT_OF_STOCK
    assert "p9" not in cart
    assert [line.item_id for line in cart.lines()] == ["s1"]


def test_add_beyond_stock_is_silent_no_op(cart):
    wax = product("p2", "Wax", stock=1)
    cart.add_item(wax)

    assert cart.add_item(wax) is CartOutcome.AT_STOCK_LIMIT
    assert cart.quantity_of("p2") == 1


def test_services_have_no_ceiling(cart, haircut):
    for _ in range(50):
        cart.add_item(haircut)
    assert cart.quantity_of("s1") == 50


def test_lines_keep_insertion_order(cart, haircut, pomade):
    cart.add_item(pomade)
    cart.add_item(haircut)
    cart.add_item(pomade)
    assert [line.item_id for line in cart.lines()] == ["p1", "s1"]


def test_adjust_quantity_refuses_increase_past_stock(cart):
    gel = product("p3", "Gel", stock=3)
    cart.add_item(gel)

    assert cart.adjust_quantity("p3", 2) is CartOutcome.UPDATED
    assert cart.adjust_quantity("p3", 1) is CartOutcome.AT_STOCK_LIMIT
    assert cart.quantity_of("p3") == 3


def test_adjust_quantity_below_zero_removes_line(cart, pomade):
    cart.add_item(pomade)
    cart.add_item(pomade)

    assert cart.adjust_quantity("p1", -5) is CartOutcome.REMOVED
    assert "p1" not in cart
    assert cart.quantity_of("p1") == 0


def test_adjust_quantity_to_exactly_zero_removes_line(cart, haircut):
    cart.add_item(haircut)
    assert cart.adjust_quantity("s1", -1) is CartOutcome.REMOVED
    assert cart.is_empty


def test_adjust_unknown_or_zero_delta(cart, haircut):
    assert cart.adjust_quantity("nope", 1) is CartOutcome.NOT_IN_CART
    cart.add_item(haircut)
    assert cart.adjust_quantity("s1", 0) is CartOutcome.UNCHANGED


def test_remove_item(cart, haircut, pomade):
    cart.add_item(haircut)
    cart.add_item(pomade)

    assert cart.remove_item("s1") is CartOutcome.REMOVED
    assert cart.remove_item("s1") is CartOutcome.NOT_IN_CART
    assert [line.item_id for line in cart.lines()] == ["p1"]


def test_total_is_recomputed_after_every_change(cart, haircut, pomade):
    cart.add_item(haircut)
    cart.add_item(pomade)
    cart.add_item(pomade)
    assert cart.total() == 150 + 2 * 200

    cart.adjust_quantity("p1", -1)
    assert cart.total() == 350

    cart.remove_item("s1")
    assert cart.total() == 200

    cart.clear()
    assert cart.total() == 0


def test_frozen_cart_refuses_every_mutation(cart, haircut, pomade):
    cart.add_item(haircut)
    cart.freeze()

    assert cart.add_item(pomade) is CartOutcome.FROZEN
    assert cart.adjust_quantity("s1", 1) is CartOutcome.FROZEN
    assert cart.remove_item("s1") is CartOutcome.FROZEN
    assert cart.clear() is CartOutcome.FROZEN
    assert cart.quantity_of("s1") == 1

    cart.unfreeze()
    assert cart.adjust_quantity("s1", 1) is CartOutcome.UPDATED


def test_listeners_fire_only_on_changes(cart, haircut):
    calls = []
    cart.subscribe(lambda c: calls.append(c.total()))

    cart.add_item(haircut)
    cart.adjust_quantity("s1", 0)
    cart.adjust_quantity("missing", 1)
    cart.adjust_quantity("s1", 1)

    assert calls == [150, 300]


def test_rebind_reports_lines_over_current_stock(cart):
    cart.add_item(product("p1", "Pomade", stock=15))
    cart.add_item(product("p1", "Pomade", stock=15))
    cart.add_item(product("p2", "Wax", stock=1))
    cart.add_item(service())

    fresh = CatalogSnapshot([product("p1", "Pomade", stock=1), product("p2", "Wax", stock=1), service()])
    assert cart.rebind(fresh) == ["p1"]
    assert cart.quantity_of("p1") == 2
    assert cart.lines()[0].entry.stock_level == 1
    assert cart.over_stock() == ["p1"]

    assert cart.adjust_quantity("p1", -1) is CartOutcome.UPDATED
    assert cart.over_stock() == []


def test_rebind_flags_entries_missing_from_catalog(cart, haircut):
    cart.add_item(haircut)
    assert cart.rebind(CatalogSnapshot()) == ["s1"]
    assert "s1" in cart


def test_snapshot_lines_capture_prices_at_call_time(cart, pomade):
    cart.add_item(pomade)
    cart.add_item(pomade)
    lines = cart.snapshot_lines()

    cart.rebind(CatalogSnapshot([product("p1", "Pomade", price=999)]))
    assert lines[0].unit_price == 200
    assert lines[0].quantity == 2
    assert lines[0].subtotal == 400
    assert cart.total() == 1998


def test_fresh_cart_is_empty():
    cart = Cart()
    assert cart.is_empty
    assert cart.lines() == []
    assert cart.total() == 0
