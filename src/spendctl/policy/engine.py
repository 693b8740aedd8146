"""Vendor allow-list, per-vendor rate limits and the policy's budget view."""

from __future__ import annotations

from dataclasses import dataclass, field

from ..errors import PolicyRejection, PolicyViolationError
from ..ledger.window import Clock, SpendLedger
from ..payments.types import PaymentReceipt
from ..policies import PaymentPolicy
from ..utils.logging_config import StructuredLogger

logger = StructuredLogger(__name__)


@dataclass(frozen=True)
class PolicyDecision:
    allow: bool
    reason: PolicyRejection | None = None
    detail: str | None = None

    def __bool__(self) -> bool:
        return self.allow


@dataclass(frozen=True)
class BudgetStatus:
    total_spent: int
    remaining: int
    cap: int
    window_start: int
    window_end: int
    vendor_spending: dict[str, int] = field(default_factory=dict)


_ALLOW = PolicyDecision(allow=True)


class PolicyEngine:
    """Evaluates spends against a PaymentPolicy.

    Spend totals come from settled receipts recorded via ``record_spend``.
    Rate limits count requests per vendor (lower-cased): a request is counted
    when ``can_spend``/``admit`` lets it through or when its receipt is
    recorded, whichever count is higher. Both reset with the window.
    """

    def __init__(
        self,
        policy: PaymentPolicy,
        ledger: SpendLedger | None = None,
        clock: Clock | None = None,
    ):
        self._policy = policy
        self.ledger = ledger or SpendLedger(policy.budget_cap, policy.budget_window, clock=clock)
        self._allowed = frozenset(policy.allowed_vendors)

    def evaluate(self, amount: int, vendor: str) -> PolicyDecision:
        """Check allow-list, cap and rate limit, in that order."""
        if vendor not in self._allowed:
            detail = f"Vendor {vendor} not in allowed list"
            logger.warning("Policy rejected spend", reason=PolicyRejection.VENDOR_NOT_ALLOWED.value, vendor=vendor)
            return PolicyDecision(False, PolicyRejection.VENDOR_NOT_ALLOWED, detail)

        ledger = self.ledger
        with ledger.lock:
            ledger.roll_window()
            total_spent = self._total_spent()
            if total_spent + amount > self._policy.budget_cap:
                detail = f"Budget exceeded: {total_spent + amount} > {self._policy.budget_cap}"
                logger.warning(
                    "Policy rejected spend",
                    reason=PolicyRejection.BUDGET_CAP_EXCEEDED.value,
                    vendor=vendor,
                    requested=amount,
                    total_spent=total_spent,
                    cap=self._policy.budget_cap,
                )
                return PolicyDecision(False, PolicyRejection.BUDGET_CAP_EXCEEDED, detail)

            limit = self._policy.rate_limit_for(vendor)
            count = self._request_count(vendor)
            if limit is not None and count >= limit:
                detail = f"Rate limit exceeded for {vendor}: {count} >= {limit}"
                logger.warning(
                    "Policy rejected spend",
                    reason=PolicyRejection.RATE_LIMIT_EXCEEDED.value,
                    vendor=vendor,
                    count=count,
                    limit=limit,
                )
                return PolicyDecision(False, PolicyRejection.RATE_LIMIT_EXCEEDED, detail)

        return _ALLOW

    def admit(self, amount: int, vendor: str) -> PolicyDecision:
        """Evaluate and, when allowed, take one rate-limit slot for ``vendor``."""
        with self.ledger.lock:
            decision = self.evaluate(amount, vendor)
            if decision.allow:
                key = vendor.lower()
                admissions = self.ledger.vendor_admissions
                admissions[key] = admissions.get(key, 0) + 1
            return decision

    def can_spend(self, amount: int, vendor: str) -> bool:
        return self.admit(amount, vendor).allow

    def enforce(self, amount: int, vendor: str) -> None:
        decision = self.admit(amount, vendor)
        if not decision.allow:
            raise PolicyViolationError(decision.reason, vendor, amount, decision.detail)

    def record_spend(self, receipt: PaymentReceipt) -> None:
        """Add a settled receipt to the current window and count the request."""
        ledger = self.ledger
        with ledger.lock:
            # A receipt recorded after expiry belongs to the new window.
            ledger.roll_window()
            ledger.receipts.append(receipt)
            key = receipt.vendor.lower()
            ledger.vendor_request_counts[key] = ledger.vendor_request_counts.get(key, 0) + 1

    def get_budget_status(self) -> BudgetStatus:
        ledger = self.ledger
        with ledger.lock:
            ledger.roll_window()
            total_spent = self._total_spent()
            vendor_spending: dict[str, int] = {}
            for receipt in ledger.receipts:
                key = receipt.vendor.lower()
                vendor_spending[key] = vendor_spending.get(key, 0) + receipt.amount
            return BudgetStatus(
                total_spent=total_spent,
                remaining=max(0, self._policy.budget_cap - total_spent),
                cap=self._policy.budget_cap,
                window_start=ledger.window_start,
                window_end=ledger.window_end,
                vendor_spending=vendor_spending,
            )

    def get_policy(self) -> PaymentPolicy:
        return self._policy

    def _total_spent(self) -> int:
        return sum(r.amount for r in self.ledger.receipts)

    def _request_count(self, vendor: str) -> int:
        # Admitted requests usually settle into receipts; take whichever
        # count is higher so a request is never counted twice.
        key = vendor.lower()
        return max(
            self.ledger.vendor_admissions.get(key, 0),
            self.ledger.vendor_request_counts.get(key, 0),
        )
