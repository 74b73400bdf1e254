"""Domain models shared by the catalog, cart, checkout and ledger."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ItemKind(str, Enum):
    SERVICE = "SERVICE"
    PRODUCT = "PRODUCT"


class PaymentMethod(str, Enum):
    CASH = "CASH"
    CARD = "CARD"
    TRANSFER = "TRANSFER"


def round_money(value: float) -> float:
    return round(float(value), 2)


@dataclass(frozen=True)
class CatalogEntry:
    """A purchasable service or product.

    Services carry no stock ceiling (``stock_level is None``); products always
    carry a non-negative stock level.
    """

    id: str
    name: str
    kind: ItemKind
    unit_price: float
    stock_level: int | None = None
    unit_cost: float | None = None
    brand: str | None = None

    def __post_init__(self) -> None:
        if self.unit_price < 0:
            raise ValueError(f"unit_price must be >= 0: {self.id}")
        if self.kind is ItemKind.PRODUCT:
            if self.stock_level is None or self.stock_level < 0:
                raise ValueError(f"product stock_level must be >= 0: {self.id}")
        elif self.stock_level is not None:
            raise ValueError(f"services have no stock_level: {self.id}")

    @property
    def is_product(self) -> bool:
        return self.kind is ItemKind.PRODUCT

    def fits(self, quantity: int) -> bool:
        """True when ``quantity`` units are available for sale."""
        if not self.is_product:
            return True
        return quantity <= int(self.stock_level or 0)


@dataclass
class OrderLine:
    entry: CatalogEntry
    quantity: int

    @property
    def item_id(self) -> str:
        return self.entry.id

    @property
    def subtotal(self) -> float:
        return self.entry.unit_price * self.quantity


@dataclass
class CheckoutContext:
    """Fields collected while checking out a cart."""

    responsible_party: str | None = None
    payment_method: PaymentMethod | None = None
    reference: str = ""
    cash_tendered: float | None = None

    @property
    def normalized_reference(self) -> str | None:
        if self.payment_method is not PaymentMethod.TRANSFER:
            return None
        return self.reference.strip() or None

    def payment_complete(self, total: float) -> bool:
        if self.payment_method is None:
            return False
        if self.payment_method is PaymentMethod.TRANSFER:
            return self.normalized_reference is not None
        if self.payment_method is PaymentMethod.CASH:
            if self.cash_tendered is None:
                return False
            return round_money(self.cash_tendered) - round_money(total) > -1e-6
        return True

    def change_due(self, total: float) -> float:
        if self.payment_method is not PaymentMethod.CASH or self.cash_tendered is None:
            return 0.0
        return round_money(max(0.0, self.cash_tendered - total))


@dataclass(frozen=True)
class TransactionLine:
    """A line as priced at commit time."""

    item_id: str
    name: str
    kind: ItemKind
    unit_price: float
    quantity: int

    @property
    def subtotal(self) -> float:
        return round_money(self.unit_price * self.quantity)


@dataclass(frozen=True)
class Transaction:
    id: str
    created_at: str
    responsible_party: str
    lines: tuple[TransactionLine, ...]
    total: float
    payment_method: PaymentMethod
    reference: str | None = None
