"""spendctl - budgeted, policy-checked spending for autonomous agents."""

from .adapters import AdapterContext, AdapterResult, DataFetchAdapter, PaidServiceAdapter, TextTransformAdapter
from .errors import (
    DuplicateReservationError,
    InsufficientBudgetError,
    InvalidPriceError,
    PaymentVerificationError,
    PolicyRejection,
    PolicyViolationError,
    SettlementTimeoutError,
    SpendControlError,
    UnknownReservationError,
)
from .executor import AgentAction, AgentExecutor
from .ledger import BudgetManager, BudgetState, SpendLedger
from .payments import PaymentReceipt, PaymentRequest, SimulatedPaymentClient, parse_price
from .planner import CostOptimizerPlanner, GreedyPlanner
from .policies import PaymentPolicy
from .policy import PolicyEngine
from .runner import AgentRunner, RunReport
from .sdk import Session, create_session

__version__ = "0.3.0"

__all__ = [
    "create_session",
    "Session",
    "PaymentPolicy",
    "BudgetManager",
    "BudgetState",
    "SpendLedger",
    "PolicyEngine",
    "AgentExecutor",
    "AgentAction",
    "AgentRunner",
    "RunReport",
    "GreedyPlanner",
    "CostOptimizerPlanner",
    "AdapterContext",
    "AdapterResult",
    "PaidServiceAdapter",
    "TextTransformAdapter",
    "DataFetchAdapter",
    "PaymentReceipt",
    "PaymentRequest",
    "SimulatedPaymentClient",
    "parse_price",
    "SpendControlError",
    "InsufficientBudgetError",
    "UnknownReservationError",
    "DuplicateReservationError",
    "PolicyViolationError",
    "PolicyRejection",
    "SettlementTimeoutError",
    "InvalidPriceError",
    "PaymentVerificationError",
    "__version__",
]
