"""Ledger APIs for reservation-based spend accounting."""

from .budget import BudgetManager, BudgetState, ExecutionState, TERMINAL_STATES
from .window import SpendLedger, wall_clock_ms

__all__ = [
    "BudgetManager",
    "BudgetState",
    "ExecutionState",
    "TERMINAL_STATES",
    "SpendLedger",
    "wall_clock_ms",
]
