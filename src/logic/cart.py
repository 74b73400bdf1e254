from __future__ import annotations

from enum import Enum
from typing import Callable

import structlog

from src.logic.catalog import CatalogSnapshot
from src.models import CatalogEntry, OrderLine, TransactionLine, round_money

logger = structlog.get_logger(__name__)


class CartOutcome(str, Enum):
    ADDED = "added"
    UPDATED = "updated"
    REMOVED = "removed"
    CLEARED = "cleared"
    UNCHANGED = "unchanged"
    OUT_OF_STOCK = "out_of_stock"
    AT_STOCK_LIMIT = "at_stock_limit"
    NOT_IN_CART = "not_in_cart"
    FROZEN = "frozen"

    @property
    def changed(self) -> bool:
        return self in (CartOutcome.ADDED, CartOutcome.UPDATED, CartOutcome.REMOVED, CartOutcome.CLEARED)


class Cart:
    """Order lines keyed by catalog id, in the order they were first added.

    Every mutator returns a ``CartOutcome``; bounds violations are refusals,
    never exceptions. A product line never holds more units than its entry's
    stock level, and a line whose quantity reaches 0 is dropped.
    """

    def __init__(self) -> None:
        self._lines: dict[str, OrderLine] = {}
        self._frozen = False
        self._listeners: list[Callable[[Cart], None]] = []

    def subscribe(self, listener: Callable[[Cart], None]) -> None:
        self._listeners.append(listener)

    def _changed(self, outcome: CartOutcome) -> CartOutcome:
        if outcome.changed:
            for listener in list(self._listeners):
                listener(self)
        return outcome

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        self._frozen = True

    def unfreeze(self) -> None:
        self._frozen = False

    def add_item(self, entry: CatalogEntry) -> CartOutcome:
        if self._frozen:
            return CartOutcome.FROZEN
        if entry.is_product and (entry.stock_level or 0) <= 0:
            logger.debug("cart_out_of_stock", item_id=entry.id)
            return CartOutcome.OUT_OF_STOCK

        line = self._lines.get(entry.id)
        if line is None:
            self._lines[entry.id] = OrderLine(entry=entry, quantity=1)
            return self._changed(CartOutcome.ADDED)

        if not entry.fits(line.quantity + 1):
            logger.debug("cart_stock_limit", item_id=entry.id, quantity=line.quantity)
            return CartOutcome.AT_STOCK_LIMIT
        line.entry = entry
        line.quantity += 1
        return self._changed(CartOutcome.UPDATED)

    def adjust_quantity(self, item_id: str, delta: int) -> CartOutcome:
        if self._frozen:
            return CartOutcome.FROZEN
        line = self._lines.get(item_id)
        if line is None:
            return CartOutcome.NOT_IN_CART
        if delta == 0:
            return CartOutcome.UNCHANGED

        new_qty = max(0, line.quantity + delta)
        if delta > 0 and not line.entry.fits(new_qty):
            logger.debug("cart_stock_limit", item_id=item_id, quantity=line.quantity, delta=delta)
            return CartOutcome.AT_STOCK_LIMIT
        if new_qty == 0:
            del self._lines[item_id]
            return self._changed(CartOutcome.REMOVED)
        line.quantity = new_qty
        return self._changed(CartOutcome.UPDATED)

    def remove_item(self, item_id: str) -> CartOutcome:
        if self._frozen:
            return CartOutcome.FROZEN
        if self._lines.pop(item_id, None) is None:
            return CartOutcome.NOT_IN_CART
        return self._changed(CartOutcome.REMOVED)

    def clear(self) -> CartOutcome:
        if self._frozen:
            return CartOutcome.FROZEN
        if not self._lines:
            return CartOutcome.UNCHANGED
        self._lines.clear()
        return self._changed(CartOutcome.CLEARED)

    def rebind(self, snapshot: CatalogSnapshot) -> list[str]:
        """Point lines at the snapshot's current entries.

        Quantities are left as they are. Returns the ids of lines that no
        longer fit the available stock or vanished from the catalog.
        """
        conflicts: list[str] = []
        for item_id, line in self._lines.items():
            fresh = snapshot.get(item_id)
            if fresh is None:
                conflicts.append(item_id)
                continue
            line.entry = fresh
            if not fresh.fits(line.quantity):
                conflicts.append(item_id)
        return conflicts

    def lines(self) -> list[OrderLine]:
        return list(self._lines.values())

    def quantity_of(self, item_id: str) -> int:
        line = self._lines.get(item_id)
        return line.quantity if line else 0

    def over_stock(self) -> list[str]:
        return [item_id for item_id, line in self._lines.items() if not line.entry.fits(line.quantity)]

    def total(self) -> float:
        return round_money(sum(line.subtotal for line in self._lines.values()))

    def snapshot_lines(self) -> tuple[TransactionLine, ...]:
        return tuple(
            TransactionLine(
                item_id=line.entry.id,
                name=line.entry.name,
                kind=line.entry.kind,
                unit_price=line.entry.unit_price,
                quantity=line.quantity,
            )
            for line in self._lines.values()
        )

    @property
    def is_empty(self) -> bool:
        return not self._lines

    def __len__(self) -> int:
        return len(self._lines)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._lines
