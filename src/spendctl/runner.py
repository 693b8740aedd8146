"""Caller loop: drive queued actions through the executor until done or halted."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Mapping
import uuid

from .adapters.base import AdapterResult, ServiceAdapter
from .errors import PolicyViolationError
from .executor import AgentAction, AgentExecutor
from .planner import GreedyPlanner, Planner
from .telemetry.events import AgentHaltedEvent, HaltReason, new_event
from .utils.logging_config import StructuredLogger

logger = StructuredLogger(__name__)


@dataclass
class ActionOutcome:
    action: AgentAction
    success: bool
    result: AdapterResult | None = None
    error: str | None = None


@dataclass
class RunReport:
    outcomes: list[ActionOutcome] = field(default_factory=list)
    halted: HaltReason | None = None
    halt_details: str | None = None

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.success)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if not o.success)

    @property
    def total_cost(self) -> int:
        return sum(o.result.cost for o in self.outcomes if o.success and o.result is not None)


class AgentRunner:
    """Picks the next action with a planner and executes it.

    Failures are never retried. The run halts with an ``agent.halted`` event
    when ``max_consecutive_failures`` failures happen in a row, when no
    remaining action is affordable, or when ``halt()`` is called.
    """

    def __init__(
        self,
        executor: AgentExecutor,
        adapters: Mapping[str, ServiceAdapter],
        *,
        planner: Planner | None = None,
        max_consecutive_failures: int | None = None,
        halt_on_policy_violation: bool = False,
    ):
        self.executor = executor
        self.adapters = dict(adapters)
        self.planner = planner or GreedyPlanner()
        policy = executor.budget_manager.policy
        self.max_consecutive_failures = (
            max_consecutive_failures
            if max_consecutive_failures is not None
            else policy.halt_conditions.max_consecutive_failures
        )
        self.halt_on_policy_violation = halt_on_policy_violation
        self.consecutive_failures = 0
        self._manual_halt: str | None = None

    def halt(self, details: str = "Halted by operator") -> None:
        """Stop before the next action is picked."""
        self._manual_halt = details

    async def run(self, actions: list[AgentAction]) -> RunReport:
        unknown = sorted({a.type for a in actions if a.type not in self.adapters})
        if unknown:
            raise ValueError(f"No adapter registered for action type(s): {', '.join(unknown)}")

        pending = [self._with_estimate(a) for a in actions]
        report = RunReport()

        while pending:
            if self._manual_halt is not None:
                await self._halt(report, "manual", self._manual_halt)
                break

            available = self.executor.budget_manager.get_state().available
            action = self.planner.select_action(pending, available)
            if action is None:
                await self._halt(
                    report,
                    "budget_exhausted",
                    f"No affordable action among {len(pending)} remaining (available {available} lamports)",
                )
                break
            pending.remove(action)

            try:
                result = await self.executor.execute(action, self.adapters[action.type])
            except PolicyViolationError as exc:
                report.outcomes.append(ActionOutcome(action, False, error=str(exc)))
                if self.halt_on_policy_violation:
                    await self._halt(report, "policy_violation", str(exc))
                    break
                if await self._count_failure(report):
                    break
                continue
            except Exception as exc:
                logger.warning(
                    "Task failed",
                    task_id=action.task_id,
                    action_type=action.type,
                    error=str(exc) or type(exc).__name__,
                )
                report.outcomes.append(ActionOutcome(action, False, error=str(exc) or type(exc).__name__))
                if await self._count_failure(report):
                    break
                continue

            self.consecutive_failures = 0
            report.outcomes.append(ActionOutcome(action, True, result=result))

        return report

    def _with_estimate(self, action: AgentAction) -> AgentAction:
        if action.estimated_cost is not None:
            return action
        adapter = self.adapters[action.type]
        return replace(action, estimated_cost=adapter.estimate_cost(action.input))

    async def _count_failure(self, report: RunReport) -> bool:
        self.consecutive_failures += 1
        if self.consecutive_failures >= self.max_consecutive_failures:
            await self._halt(
                report,
                "consecutive_failures",
                f"{self.consecutive_failures} consecutive failures",
            )
            return True
        return False

    async def _halt(self, report: RunReport, reason: HaltReason, details: str) -> None:
        report.halted = reason
        report.halt_details = details
        logger.error("Agent halted", agent_id=self.executor.agent_id, reason=reason, details=details)
        await self.executor.emitter.emit(
            new_event(
                AgentHaltedEvent,
                {"reason": reason, "details": details},
                correlation_id=f"halt-{uuid.uuid4()}",
                agent_id=self.executor.agent_id,
                provenance=self.executor.provenance,
            )
        )

