"""Action selection among affordable candidates."""

from __future__ import annotations

from typing import Protocol

from .executor import AgentAction


class Planner(Protocol):
    def select_action(self, candidates: list[AgentAction], budget: int) -> AgentAction | None:
        ...


def _cost(action: AgentAction) -> int:
    return action.estimated_cost or 0


def affordable(candidates: list[AgentAction], budget: int) -> list[AgentAction]:
    return [a for a in candidates if _cost(a) <= budget]


class GreedyPlanner:
    """Highest priority first; cheaper wins a tie."""

    def select_action(self, candidates: list[AgentAction], budget: int) -> AgentAction | None:
        options = affordable(candidates, budget)
        if not options:
            return None
        return min(options, key=lambda a: (-(a.priority or 0), _cost(a)))


class CostOptimizerPlanner:
    """Cheapest affordable action first."""

    def select_action(self, candidates: list[AgentAction], budget: int) -> AgentAction | None:
        options = affordable(candidates, budget)
        if not options:
            return None
        return min(options, key=_cost)
