from __future__ import annotations

import pytest

from src.models import CatalogEntry, CheckoutContext, ItemKind, PaymentMethod


def test_product_requires_non_negative_stock():
    with pytest.raises(ValueError):
        CatalogEntry(id="p1", name="Pomade", kind=ItemKind.PRODUCT, unit_price=200)
    with pytest.raises(ValueError):
        CatalogEntry(id="p1", name="Pomade", kind=ItemKind.PRODUCT, unit_price=200, stock_level=-1)


def test_service_never_carries_stock():
    with pytest.raises(ValueError):
        CatalogEntry(id="s1", name="Corte", kind=ItemKind.SERVICE, unit_price=150, stock_level=3)


def test_negative_price_is_rejected():
    with pytest.raises(ValueError):
        CatalogEntry(id="s1", name="Corte", kind=ItemKind.SERVICE, unit_price=-1)


def test_fits():
    gel = CatalogEntry(id="p1", name="Gel", kind=ItemKind.PRODUCT, unit_price=10, stock_level=2)
    haircut = CatalogEntry(id="s1", name="Corte", kind=ItemKind.SERVICE, unit_price=150)
    assert gel.fits(2)
    assert not gel.fits(3)
    assert haircut.fits(10_000)


@pytest.mark.parametrize(
    ("context", "complete"),
    [
        (CheckoutContext(), False),
        (CheckoutContext(payment_method=PaymentMethod.CARD), True),
        (CheckoutContext(payment_method=PaymentMethod.TRANSFER), False),
        (CheckoutContext(payment_method=PaymentMethod.TRANSFER, reference=" \t"), False),
        (CheckoutContext(payment_method=PaymentMethod.TRANSFER, reference="A1"), True),
        (CheckoutContext(payment_method=PaymentMethod.CASH), False),
        (CheckoutContext(payment_method=PaymentMethod.CASH, cash_tendered=99.99), False),
        (CheckoutContext(payment_method=PaymentMethod.CASH, cash_tendered=100), True),
    ],
)
def test_payment_complete_for_total_of_100(context, complete):
    assert context.payment_complete(100) is complete


def test_change_due_is_derived():
    context = CheckoutContext(payment_method=PaymentMethod.CASH, cash_tendered=500)
    assert context.change_due(400) == 100
    assert context.change_due(600) == 0

    context.payment_method = PaymentMethod.CARD
    assert context.change_due(400) == 0


def test_reference_only_kept_for_transfers():
    context = CheckoutContext(payment_method=PaymentMethod.CASH, reference="123")
    assert context.normalized_reference is None
    context.payment_method = PaymentMethod.TRANSFER
    assert context.normalized_reference == "123"
