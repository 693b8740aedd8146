"""Concurrency-safe reservation and settlement ledger."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from ..errors import DuplicateReservationError, InsufficientBudgetError, UnknownReservationError
from ..policies import PaymentPolicy
from ..utils.logging_config import StructuredLogger
from .window import Clock, SpendLedger

logger = StructuredLogger(__name__)


class ExecutionState(StrEnum):
    INITIATED = "INITIATED"
    ESTIMATED = "ESTIMATED"
    BUDGET_CHECKED = "BUDGET_CHECKED"
    RESERVED = "RESERVED"
    RUNNING = "RUNNING"
    COMMITTED = "COMMITTED"
    RELEASED = "RELEASED"


TERMINAL_STATES = {
    ExecutionState.COMMITTED,
    ExecutionState.RELEASED,
}


@dataclass(frozen=True)
class BudgetState:
    total: int
    spent: int
    reserved: int
    available: int
    cap: int
    window_start: int
    window_end: int


class BudgetManager:
    """Reservation ledger for one agent session.

    Money moves through three buckets: ``available`` → ``reserved`` (on
    reserve) → ``spent`` (on commit) or back to ``available`` (on release).
    """

    def __init__(
        self,
        policy: PaymentPolicy,
        ledger: SpendLedger | None = None,
        clock: Clock | None = None,
    ):
        self.policy = policy
        self.ledger = ledger or SpendLedger(policy.budget_cap, policy.budget_window, clock=clock)

    def can_afford(self, estimated_cost: int) -> bool:
        return estimated_cost <= self.get_state().available

    def reserve(self, correlation_id: str, amount: int) -> None:
        """Hold ``amount`` for ``correlation_id``.

        The balance check and the insert happen under one lock, so this is
        the atomic check-then-reserve step.
        """
        if amount < 0:
            raise ValueError("reservation amount must be >= 0")
        ledger = self.ledger
        with ledger.lock:
            ledger.roll_window()
            if correlation_id in ledger.reservations:
                raise DuplicateReservationError(correlation_id)
            available = ledger.available
            if amount > available:
                logger.warning(
                    "Budget exceeded",
                    correlation_id=correlation_id,
                    requested=amount,
                    available=available,
                )
                raise InsufficientBudgetError(amount, available)
            ledger.reservations[correlation_id] = amount
            ledger.orphaned.discard(correlation_id)

    try_reserve = reserve

    def commit(self, correlation_id: str, actual_cost: int) -> None:
        """Settle a reservation at ``actual_cost``, which may differ from the hold."""
        if actual_cost < 0:
            raise ValueError("actual cost must be >= 0")
        ledger = self.ledger
        with ledger.lock:
            ledger.roll_window()
            if correlation_id in ledger.reservations:
                held = ledger.reservations.pop(correlation_id)
            elif correlation_id in ledger.orphaned:
                # Hold was dropped by a window reset; the payment still happened.
                ledger.orphaned.discard(correlation_id)
                held = 0
                logger.warning(
                    "Committing reservation dropped by window reset",
                    correlation_id=correlation_id,
                    actual_cost=actual_cost,
                )
            else:
                raise UnknownReservationError(correlation_id)

            ledger.spent += actual_cost
            if ledger.spent + ledger.reserved > ledger.cap:
                # Ledger integrity over enforcement: the spend already happened.
                logger.critical(
                    "Overspend detected",
                    correlation_id=correlation_id,
                    reserved=held,
                    actual_cost=actual_cost,
                    spent=ledger.spent,
                    cap=ledger.cap,
                )

    def release(self, correlation_id: str) -> None:
        """Drop a reservation. Unknown ids are ignored so this is always safe to call."""
        ledger = self.ledger
        with ledger.lock:
            ledger.roll_window()
            ledger.reservations.pop(correlation_id, None)
            ledger.orphaned.discard(correlation_id)

    def get_state(self) -> BudgetState:
        ledger = self.ledger
        with ledger.lock:
            ledger.roll_window()
            return BudgetState(
                total=ledger.cap,
                spent=ledger.spent,
                reserved=ledger.reserved,
                available=ledger.available,
                cap=ledger.cap,
                window_start=ledger.window_start,
                window_end=ledger.window_end,
            )
