"""Exception taxonomy for spend control.

Every error raised by the ledger, the policy engine or the executor derives
from ``SpendControlError``. Adapter errors are never wrapped.
"""

from __future__ import annotations

from enum import StrEnum


class PolicyRejection(StrEnum):
    VENDOR_NOT_ALLOWED = "vendor_not_allowed"
    BUDGET_CAP_EXCEEDED = "budget_cap_exceeded"
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"


class SpendControlError(Exception):
    """Base class for spend-control failures."""


class InsufficientBudgetError(SpendControlError):
    """Requested amount exceeds what the budget window has available."""

    def __init__(self, requested: int, available: int):
        self.requested = requested
        self.available = available
        super().__init__(f"Insufficient budget: need {requested}, have {available}")


class UnknownReservationError(SpendControlError):
    def __init__(self, correlation_id: str):
        self.correlation_id = correlation_id
        super().__init__(f"No reservation found for {correlation_id}")


class DuplicateReservationError(SpendControlError):
    def __init__(self, correlation_id: str):
        self.correlation_id = correlation_id
        super().__init__(f"Reservation already active for {correlation_id}")


class PolicyViolationError(SpendControlError):
    """A spend was rejected by the payment policy."""

    def __init__(self, reason: PolicyRejection, vendor: str, amount: int, detail: str | None = None):
        self.reason = reason
        self.vendor = vendor
        self.amount = amount
        self.detail = detail
        super().__init__(detail or f"Policy rejected spend of {amount} to {vendor}: {reason.value}")


class SettlementTimeoutError(SpendControlError, TimeoutError):
    def __init__(self, correlation_id: str, timeout_ms: int):
        self.correlation_id = correlation_id
        self.timeout_ms = timeout_ms
        super().__init__(f"Settlement for {correlation_id} exceeded {timeout_ms}ms")


class InvalidPriceError(SpendControlError, ValueError):
    def __init__(self, price: object, detail: str | None = None):
        self.price = price
        super().__init__(detail or f"Invalid price: {price!r}")


class PaymentVerificationError(SpendControlError):
    """The payment client could not verify a receipt it returned."""

    def __init__(self, signature: str, vendor: str):
        self.signature = signature
        self.vendor = vendor
        super().__init__(f"Receipt {signature} for {vendor} failed verification")
