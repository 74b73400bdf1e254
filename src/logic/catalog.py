from __future__ import annotations

import asyncio
import sqlite3
from typing import Iterable

import structlog

from config import SEED_CATALOG
from src.db_manager import PosDB
from src.models import CatalogEntry, ItemKind

logger = structlog.get_logger(__name__)


def entry_from_row(row: sqlite3.Row) -> CatalogEntry:
    kind = ItemKind(row["kind"])
    stock = row["stock_level"]
    return CatalogEntry(
        id=str(row["id"]),
        name=str(row["name"]),
        kind=kind,
        unit_price=float(row["unit_price"]),
        stock_level=int(stock) if stock is not None else None,
        unit_cost=float(row["unit_cost"]) if row["unit_cost"] is not None else None,
        brand=row["brand"],
    )


class CatalogService:
    """Async catalog collaborator backed by the sqlite store."""

    def __init__(self, db: PosDB, seed: Iterable[dict] | None = SEED_CATALOG):
        self.db = db
        self.seed = seed

    async def fetch_entries(self) -> list[CatalogEntry]:
        rows = await asyncio.to_thread(self.db.list_entries)
        if not rows and self.seed:
            await asyncio.to_thread(self.db.seed_if_empty, self.seed)
            rows = await asyncio.to_thread(self.db.list_entries)
        return [entry_from_row(row) for row in rows]

    async def decrement_stock(self, item_id: str, quantity: int) -> bool:
        return await asyncio.to_thread(self.db.decrement_stock, item_id, quantity)


class CatalogSnapshot:
    """Read-mostly view of the catalog for one POS session."""

    def __init__(self, entries: Iterable[CatalogEntry] = ()):
        self._entries: dict[str, CatalogEntry] = {}
        self.replace(entries)

    @classmethod
    async def load(cls, catalog) -> CatalogSnapshot:
        entries = await catalog.fetch_entries()
        logger.info("catalog_loaded", entries=len(entries))
        return cls(entries)

    async def reload(self, catalog) -> None:
        self.replace(await catalog.fetch_entries())
        logger.debug("catalog_reloaded", entries=len(self._entries))

    def replace(self, entries: Iterable[CatalogEntry]) -> None:
        self._entries = {entry.id: entry for entry in entries}

    def get(self, item_id: str) -> CatalogEntry | None:
        return self._entries.get(item_id)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._entries

    def list_entries(self, kind: ItemKind | None = None) -> list[CatalogEntry]:
        return [entry for entry in self._entries.values() if kind is None or entry.kind is kind]

    def search(self, text: str = "", kind: ItemKind | None = None) -> list[CatalogEntry]:
        """Entries of ``kind`` whose name contains ``text`` (case-insensitive)."""
        needle = text.strip().lower()
        return [entry for entry in self.list_entries(kind) if needle in entry.name.lower()]
