from __future__ import annotations

import asyncio
import sqlite3
from typing import Iterable

import structlog

from src.db_manager import PosDB
from src.errors import PersistenceError
from src.models import PaymentMethod, Transaction, TransactionLine

logger = structlog.get_logger(__name__)


class LedgerService:
    """Async persistence collaborator for completed sales."""

    def __init__(self, db: PosDB):
        self.db = db

    async def record_transaction(
        self,
        lines: Iterable[TransactionLine],
        total: float,
        responsible_party: str,
        payment_method: PaymentMethod,
        reference: str | None = None,
    ) -> Transaction:
        try:
            return await asyncio.to_thread(
                self.db.record_transaction,
                tuple(lines),
                total,
                responsible_party,
                payment_method,
                reference,
            )
        except (sqlite3.Error, ValueError) as exc:
            logger.error("transaction_insert_failed", error=str(exc))
            raise PersistenceError(f"could not record transaction: {exc}") from exc
