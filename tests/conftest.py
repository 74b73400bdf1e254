"""Shared fixtures and in-memory collaborators for the POS tests."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from src.db_manager import PosDB
from src.errors import PersistenceError
from src.logic.cart import Cart
from src.logic.catalog import CatalogSnapshot
from src.logic.checkout import CheckoutMachine
from src.logic.commit import TransactionCommitter
from src.models import CatalogEntry, ItemKind, Transaction

PARTIES = ("Barbero Demo", "Personal 1", "Personal 2")


def service(item_id: str = "s1", name: str = "Corte de Cabello", price: float = 150) -> CatalogEntry:
    return CatalogEntry(id=item_id, name=name, kind=ItemKind.SERVICE, unit_price=price)


def product(
    item_id: str = "p1",
    name: str = "Pomade",
    price: float = 200,
    stock: int = 15,
    cost: float | None = 100,
) -> CatalogEntry:
    return CatalogEntry(
        id=item_id,
        name=name,
        kind=ItemKind.PRODUCT,
        unit_price=price,
        stock_level=stock,
        unit_cost=cost,
        brand="Professional",
    )


def seed_db(db: PosDB, *entries: CatalogEntry) -> None:
    """Load ``entries`` into an empty store through the seeding path."""
    db.seed_if_empty(
        {
            "id": entry.id,
            "name": entry.name,
            "kind": entry.kind.value,
            "unit_price": entry.unit_price,
            "unit_cost": entry.unit_cost,
            "brand": entry.brand,
            "stock_level": entry.stock_level,
        }
        for entry in entries
    )


class FakeCatalog:
    """Catalog collaborator holding entries in memory."""

    def __init__(self, entries=()):
        self.entries = {entry.id: entry for entry in entries}
        self.decrements: list[tuple[str, int]] = []
        self.refuse_ids: set[str] = set()
        self.raise_ids: set[str] = set()
        self.fetch_error: Exception | None = None
        self.fetch_count = 0

    def set_stock(self, item_id: str, stock: int) -> None:
        entry = self.entries[item_id]
        self.entries[item_id] = CatalogEntry(
            id=entry.id,
            name=entry.name,
            kind=entry.kind,
            unit_price=entry.unit_price,
            stock_level=stock,
            unit_cost=entry.unit_cost,
            brand=entry.brand,
        )

    def stock_of(self, item_id: str) -> int | None:
        return self.entries[item_id].stock_level

    async def fetch_entries(self) -> list[CatalogEntry]:
        self.fetch_count += 1
        if self.fetch_error is not None:
            raise self.fetch_error
        return list(self.entries.values())

    async def decrement_stock(self, item_id: str, quantity: int) -> bool:
        self.decrements.append((item_id, quantity))
        if item_id in self.raise_ids:
            raise ConnectionError("catalog unreachable")
        if item_id in self.refuse_ids:
            return False
        entry = self.entries.get(item_id)
        if entry is None or entry.stock_level is None or entry.stock_level < quantity:
            return False
        self.set_stock(item_id, entry.stock_level - quantity)
        return True


class FakeLedger:
    """Persistence collaborator that keeps transactions in a list."""

    def __init__(self):
        self.transactions: list[Transaction] = []
        self.error: Exception | None = None

    async def record_transaction(self, lines, total, responsible_party, payment_method, reference=None):
        if self.error is not None:
            raise self.error
        transaction = Transaction(
            id=f"tx-{len(self.transactions) + 1}",
            created_at=datetime.now(timezone.utc).isoformat(),
            responsible_party=responsible_party,
            lines=tuple(lines),
            total=total,
            payment_method=payment_method,
            reference=reference,
        )
        self.transactions.append(transaction)
        return transaction


@pytest.fixture
def pomade() -> CatalogEntry:
    return product()


@pytest.fixture
def haircut() -> CatalogEntry:
    return service()


@pytest.fixture
def catalog(pomade, haircut) -> FakeCatalog:
    return FakeCatalog([haircut, pomade, product("p2", "Wax", price=180, stock=1, cost=90)])


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def snapshot(catalog) -> CatalogSnapshot:
    return CatalogSnapshot(catalog.entries.values())


@pytest.fixture
def cart() -> Cart:
    return Cart()


@pytest.fixture
def committer(catalog, ledger) -> TransactionCommitter:
    return TransactionCommitter(catalog, ledger)


@pytest.fixture
def machine(cart, committer, snapshot) -> CheckoutMachine:
    return CheckoutMachine(cart, committer, PARTIES, snapshot)


@pytest.fixture
def failing_ledger(ledger) -> FakeLedger:
    ledger.error = PersistenceError("database is locked")
    return ledger


@pytest.fixture
def db(tmp_path) -> PosDB:
    return PosDB(tmp_path / "pos.db")
