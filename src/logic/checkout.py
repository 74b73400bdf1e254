from __future__ import annotations

from enum import Enum
from typing import Sequence

import structlog

from src.errors import CommitError, StockReconciliationError
from src.logic.cart import Cart
from src.logic.catalog import CatalogSnapshot
from src.logic.commit import TransactionCommitter
from src.models import CheckoutContext, PaymentMethod, Transaction

logger = structlog.get_logger(__name__)


class CheckoutState(str, Enum):
    IDLE = "idle"
    COLLECTING_PARTY = "collecting_party"
    COLLECTING_PAYMENT = "collecting_payment"
    READY_TO_COMMIT = "ready_to_commit"
    COMMITTING = "committing"
    SUCCESS = "success"
    FAILED = "failed"


_EDITABLE = (
    CheckoutState.COLLECTING_PARTY,
    CheckoutState.COLLECTING_PAYMENT,
    CheckoutState.READY_TO_COMMIT,
    CheckoutState.FAILED,
)


class CheckoutMachine:
    """Checkout wizard for a single cart.

    Field setters return False when the request is refused and never raise.
    The state below ``COMMITTING`` is derived from the collected fields and
    recomputed after every field or cart change. The cart is frozen while the
    checkout is ready to commit and while a commit is in flight.
    """

    def __init__(
        self,
        cart: Cart,
        committer: TransactionCommitter,
        parties: Sequence[str],
        snapshot: CatalogSnapshot | None = None,
    ):
        self.cart = cart
        self.committer = committer
        self.parties = tuple(parties)
        self.snapshot = snapshot
        self.state = CheckoutState.IDLE
        self.context: CheckoutContext | None = None
        self.transaction: Transaction | None = None
        self.error: Exception | None = None
        self.reconciliation_error: StockReconciliationError | None = None
        self.cart.subscribe(self._on_cart_changed)

    def _set_state(self, state: CheckoutState) -> None:
        if state is self.state:
            return
        logger.info("checkout_state", previous=self.state.value, state=state.value)
        self.state = state

    def _gated_state(self) -> CheckoutState:
        if self.context is None:
            raise RuntimeError("no checkout in progress")
        if self.context.responsible_party is None:
            return CheckoutState.COLLECTING_PARTY
        if self.cart.is_empty or self.cart.over_stock():
            return CheckoutState.COLLECTING_PAYMENT
        if not self.context.payment_complete(self.cart.total()):
            return CheckoutState.COLLECTING_PAYMENT
        return CheckoutState.READY_TO_COMMIT

    def _reevaluate(self) -> None:
        state = self._gated_state()
        if state is CheckoutState.READY_TO_COMMIT:
            self.cart.freeze()
        else:
            self.cart.unfreeze()
        self._set_state(state)

    def _on_cart_changed(self, _cart: Cart) -> None:
        if self.context is not None and self.state in _EDITABLE:
            self._reevaluate()

    @property
    def can_commit(self) -> bool:
        """True when ``commit()`` would go ahead, including a retry after a failure."""
        if self.state is CheckoutState.READY_TO_COMMIT:
            return True
        if self.state is CheckoutState.FAILED and self.context is not None:
            return self._gated_state() is CheckoutState.READY_TO_COMMIT
        return False

    @property
    def change_due(self) -> float:
        if self.context is None:
            return 0.0
        return self.context.change_due(self.cart.total())

    def begin(self) -> bool:
        if self.state is not CheckoutState.IDLE:
            return False
        if self.cart.is_empty:
            logger.debug("checkout_refused_empty_cart")
            return False
        self.context = CheckoutContext()
        self.transaction = None
        self.error = None
        self.reconciliation_error = None
        self._reevaluate()
        return True

    def select_party(self, party: str | None) -> bool:
        if self.state not in _EDITABLE or self.context is None:
            return False
        if party is not None and party not in self.parties:
            return False
        self.context.responsible_party = party
        self._reevaluate()
        return True

    def select_payment_method(self, method: PaymentMethod | None) -> bool:
        if self.state not in _EDITABLE or self.context is None:
            return False
        self.context.payment_method = method
        self._reevaluate()
        return True

    def set_reference(self, reference: str) -> bool:
        if self.state not in _EDITABLE or self.context is None:
            return False
        self.context.reference = reference
        self._reevaluate()
        return True

    def set_cash_tendered(self, amount: float | None) -> bool:
        if self.state not in _EDITABLE or self.context is None:
            return False
        if amount is not None and amount < 0:
            return False
        self.context.cash_tendered = amount
        self._reevaluate()
        return True

    async def commit(self) -> CheckoutState:
        if self.state is CheckoutState.COMMITTING:
            logger.warning("commit_refused_in_flight")
            return self.state
        if self.state is CheckoutState.FAILED and self.context is not None:
            self._reevaluate()
        if self.state is not CheckoutState.READY_TO_COMMIT:
            return self.state

        if self.context is None:
            raise RuntimeError("no checkout in progress")
        self.cart.freeze()
        self._set_state(CheckoutState.COMMITTING)
        self.error = None
        try:
            transaction = await self.committer.commit(self.cart, self.context, self.snapshot)
        except StockReconciliationError as exc:
            self.reconciliation_error = exc
            transaction = exc.transaction
        except CommitError as exc:
            self._fail(exc)
            return self.state
        except Exception as exc:
            self._fail(exc)
            raise

        self.transaction = transaction
        self.context = None
        self.cart.unfreeze()
        self.cart.clear()
        self._set_state(CheckoutState.SUCCESS)
        await self._reload_snapshot()
        return self.state

    def _fail(self, exc: Exception) -> None:
        logger.warning("commit_failed", error=str(exc), error_type=type(exc).__name__)
        self.error = exc
        self.cart.unfreeze()
        if self.snapshot is not None:
            self.cart.rebind(self.snapshot)
        self._set_state(CheckoutState.FAILED)

    async def _reload_snapshot(self) -> None:
        if self.snapshot is None:
            return
        try:
            await self.snapshot.reload(self.committer.catalog)
        except Exception as exc:
            logger.warning("catalog_reload_failed", error=str(exc))

    def cancel(self) -> bool:
        if self.state in (CheckoutState.COMMITTING, CheckoutState.SUCCESS):
            return False
        self.context = None
        self.error = None
        self.cart.unfreeze()
        self._set_state(CheckoutState.IDLE)
        return True

    def start_new_sale(self) -> bool:
        if self.state is not CheckoutState.SUCCESS:
            return False
        self.transaction = None
        self.reconciliation_error = None
        self._set_state(CheckoutState.IDLE)
        return True
