"""Errors raised while committing a sale."""

from __future__ import annotations

from dataclasses import dataclass

from src.models import Transaction


class PosError(Exception):
    """Base class for point-of-sale errors."""


class CommitError(PosError):
    """A commit attempt did not complete cleanly."""


@dataclass(frozen=True)
class StockShortfall:
    item_id: str
    name: str
    requested: int
    available: int


class StockConflictError(CommitError):
    """Cart quantities exceed the stock available at commit time.

    Nothing was written.
    """

    def __init__(self, shortfalls: list[StockShortfall]):
        self.shortfalls = tuple(shortfalls)
        names = ", ".join(
            f"{s.name} (requested {s.requested}, available {s.available})" for s in self.shortfalls
        )
        super().__init__(f"insufficient stock: {names}")


class PersistenceError(CommitError):
    """The transaction could not be recorded. Nothing was written."""


@dataclass(frozen=True)
class FailedDeduction:
    item_id: str
    quantity: int
    reason: str


class StockReconciliationError(CommitError):
    """The sale was recorded but one or more stock deductions failed.

    The transaction stands; stock for the listed items must be corrected by
    hand.
    """

    def __init__(self, transaction: Transaction, failures: list[FailedDeduction]):
        self.transaction = transaction
        self.failures = tuple(failures)
        items = ", ".join(f"{f.item_id} x{f.quantity}" for f in self.failures)
        super().__init__(f"sale {transaction.id} recorded, stock not deducted for: {items}")
