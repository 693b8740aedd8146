"""Policy engine package."""

from .engine import BudgetStatus, PolicyDecision, PolicyEngine

__all__ = ["BudgetStatus", "PolicyDecision", "PolicyEngine"]
