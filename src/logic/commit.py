from __future__ import annotations

import structlog

from src.errors import (
    CommitError,
    FailedDeduction,
    PersistenceError,
    StockConflictError,
    StockReconciliationError,
    StockShortfall,
)
from src.logic.cart import Cart
from src.logic.catalog import CatalogSnapshot
from src.models import CheckoutContext, Transaction

logger = structlog.get_logger(__name__)


class TransactionCommitter:
    """Turns a checked-out cart into a ledger entry and deducts product stock.

    ``catalog`` provides ``fetch_entries()`` and ``decrement_stock(id, qty)``;
    ``ledger`` provides ``record_transaction(...)``. Both are awaited.

    Order of work: verify stock against a fresh catalog read, record the
    transaction, then deduct stock line by line. A deduction failure never
    undoes the recorded sale; it is raised as ``StockReconciliationError``
    after every line has been attempted. Clearing the cart is left to the
    caller.
    """

    def __init__(self, catalog, ledger):
        self.catalog = catalog
        self.ledger = ledger

    async def commit(
        self,
        cart: Cart,
        context: CheckoutContext,
        snapshot: CatalogSnapshot | None = None,
    ) -> Transaction:
        if cart.is_empty:
            raise CommitError("cart is empty")
        if context.responsible_party is None or context.payment_method is None:
            raise CommitError("checkout context is incomplete")

        await self._verify_stock(cart, snapshot)

        lines = cart.snapshot_lines()
        total = cart.total()
        try:
            transaction = await self.ledger.record_transaction(
                lines,
                total,
                context.responsible_party,
                context.payment_method,
                context.normalized_reference,
            )
        except CommitError:
            raise
        except Exception as exc:
            logger.error("transaction_insert_failed", error=str(exc))
            raise PersistenceError(f"could not record transaction: {exc}") from exc

        log = logger.bind(transaction_id=transaction.id)
        log.info(
            "transaction_recorded",
            total=transaction.total,
            payment_method=transaction.payment_method.value,
            lines=len(transaction.lines),
        )

        failures: list[FailedDeduction] = []
        for line in cart.lines():
            if not line.entry.is_product:
                continue
            try:
                deducted = await self.catalog.decrement_stock(line.item_id, line.quantity)
            except Exception as exc:
                failures.append(FailedDeduction(line.item_id, line.quantity, str(exc)))
                continue
            if not deducted:
                failures.append(
                    FailedDeduction(line.item_id, line.quantity, "insufficient stock or unknown product")
                )

        if failures:
            log.error(
                "stock_reconciliation_failed",
                items=[f.item_id for f in failures],
            )
            raise StockReconciliationError(transaction, failures)
        return transaction

    async def _verify_stock(self, cart: Cart, snapshot: CatalogSnapshot | None) -> None:
        try:
            entries = await self.catalog.fetch_entries()
        except Exception as exc:
            logger.error("stock_check_failed", error=str(exc))
            raise PersistenceError(f"could not read current stock: {exc}") from exc

        fresh = {entry.id: entry for entry in entries}
        if snapshot is not None:
            snapshot.replace(entries)

        shortfalls: list[StockShortfall] = []
        for line in cart.lines():
            if not line.entry.is_product:
                continue
            current = fresh.get(line.item_id)
            if current is None:
                shortfalls.append(StockShortfall(line.item_id, line.entry.name, line.quantity, 0))
            elif not current.fits(line.quantity):
                shortfalls.append(
                    StockShortfall(line.item_id, line.entry.name, line.quantity, int(current.stock_level or 0))
                )

        if shortfalls:
            logger.warning("stock_conflict", items=[s.item_id for s in shortfalls])
            raise StockConflictError(shortfalls)
