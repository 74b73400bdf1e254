from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Mapping
from uuid import uuid4

import structlog

from config import DB_DIR, DB_PATH
from src.models import ItemKind, PaymentMethod, Transaction, TransactionLine, round_money

DB_SELECTION_FILE = DB_DIR / ".selected_db_path"

logger = structlog.get_logger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS catalog_entries (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    kind TEXT NOT NULL CHECK (kind IN ('SERVICE', 'PRODUCT')),
    unit_price REAL NOT NULL CHECK (unit_price >= 0),
    unit_cost REAL,
    brand TEXT,
    stock_level INTEGER CHECK (stock_level IS NULL OR stock_level >= 0),
    created_at DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS transactions (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    responsible_party TEXT NOT NULL,
    total REAL NOT NULL,
    payment_method TEXT NOT NULL,
    reference TEXT
);

CREATE TABLE IF NOT EXISTS transaction_items (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    transaction_id TEXT NOT NULL,
    line_index INTEGER NOT NULL,
    catalog_item_id TEXT NOT NULL,
    item_name TEXT NOT NULL,
    item_kind TEXT NOT NULL,
    unit_price REAL NOT NULL,
    quantity INTEGER NOT NULL,
    subtotal REAL NOT NULL,
    FOREIGN KEY (transaction_id) REFERENCES transactions (id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_transactions_created_at ON transactions(created_at);
CREATE INDEX IF NOT EXISTS idx_transaction_items_tx ON transaction_items(transaction_id, line_index);
"""


def load_selected_db_path(default_path: Path = DB_PATH) -> Path:
    if DB_SELECTION_FILE.exists():
        raw = DB_SELECTION_FILE.read_text(encoding="utf-8").strip()
        if raw:
            return Path(raw)
    return default_path


def save_selected_db_path(path: Path) -> None:
    DB_DIR.mkdir(parents=True, exist_ok=True)
    DB_SELECTION_FILE.write_text(str(path), encoding="utf-8")


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class PosDB:
    """sqlite store for the catalog and the sales ledger."""

    def __init__(self, db_path: Path = DB_PATH):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def _transaction(self):
        conn = self._connect()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self) -> None:
        with self._transaction() as conn:
            conn.executescript(SCHEMA_SQL)

    def seed_if_empty(self, seed: Iterable[Mapping[str, Any]]) -> bool:
        """Insert ``seed`` rows when the catalog has no entries at all."""
        with self._transaction() as conn:
            count = int(conn.execute("SELECT COUNT(1) AS c FROM catalog_entries").fetchone()["c"])
            if count > 0:
                return False
            rows = [
                (
                    str(item["id"]),
                    str(item["name"]),
                    str(item["kind"]),
                    float(item["unit_price"]),
                    item.get("unit_cost"),
                    item.get("brand"),
                    item.get("stock_level"),
                )
                for item in seed
            ]
            conn.executemany(
                """
                INSERT INTO catalog_entries (id, name, kind, unit_price, unit_cost, brand, stock_level)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                rows,
            )
        logger.info("catalog_seeded", entries=len(rows), db=str(self.db_path))
        return True

    def list_entries(self, kind: ItemKind | None = None) -> list[sqlite3.Row]:
        sql = "SELECT * FROM catalog_entries"
        params: tuple[Any, ...] = ()
        if kind is not None:
            sql += " WHERE kind = ?"
            params = (kind.value,)
        sql += " ORDER BY kind DESC, rowid ASC"
        with self._connect() as conn:
            return conn.execute(sql, params).fetchall()

    def get_entry(self, item_id: str) -> sqlite3.Row | None:
        with self._connect() as conn:
            return conn.execute(
                "SELECT * FROM catalog_entries WHERE id = ?",
                (item_id,),
            ).fetchone()

    def get_stock(self, item_id: str) -> int | None:
        row = self.get_entry(item_id)
        if row is None or row["stock_level"] is None:
            return None
        return int(row["stock_level"])

    def decrement_stock(self, item_id: str, quantity: int) -> bool:
        """Atomically take ``quantity`` units off a product's stock.

        Returns False, leaving stock untouched, when the product is unknown
        or holds fewer than ``quantity`` units.
        """
        if quantity <= 0:
            raise ValueError("quantity must be > 0")
        with self._transaction() as conn:
            cur = conn.execute(
                """
                UPDATE catalog_entries
                SET stock_level = stock_level - ?
                WHERE id = ? AND kind = 'PRODUCT' AND stock_level >= ?
                """,
                (quantity, item_id, quantity),
            )
            return cur.rowcount == 1

    def record_transaction(
        self,
        lines: Iterable[TransactionLine],
        total: float,
        responsible_party: str,
        payment_method: PaymentMethod,
        reference: str | None = None,
    ) -> Transaction:
        copied_lines = tuple(lines)
        if not copied_lines:
            raise ValueError("cannot record an empty transaction")

        transaction_id = uuid4().hex
        created_at = _utc_now_iso()
        total = round_money(total)

        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO transactions (id, created_at, responsible_party, total, payment_method, reference)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (transaction_id, created_at, responsible_party, total, payment_method.value, reference),
            )
            conn.executemany(
                """
                INSERT INTO transaction_items
                (transaction_id, line_index, catalog_item_id, item_name, item_kind, unit_price, quantity, subtotal)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        transaction_id,
                        idx,
                        line.item_id,
                        line.name,
                        line.kind.value,
                        line.unit_price,
                        line.quantity,
                        line.subtotal,
                    )
                    for idx, line in enumerate(copied_lines)
                ],
            )

        return Transaction(
            id=transaction_id,
            created_at=created_at,
            responsible_party=responsible_party,
            lines=copied_lines,
            total=total,
            payment_method=payment_method,
            reference=reference,
        )
