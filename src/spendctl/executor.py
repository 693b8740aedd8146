"""Action executor: estimate, reserve, run the adapter, then settle."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
import time
from typing import Any
import uuid

from .adapters.base import AdapterContext, AdapterResult, ServiceAdapter
from .errors import InsufficientBudgetError, SettlementTimeoutError
from .ledger.budget import TERMINAL_STATES, BudgetManager, ExecutionState
from .policy.engine import PolicyEngine
from .telemetry.events import (
    ActionCompletedEvent,
    ActionStartedEvent,
    BaseEvent,
    BudgetDeltaEvent,
    PaymentFailedEvent,
    new_event,
)
from .telemetry.sinks import TelemetryEventEmitter
from .utils.logging_config import StructuredLogger

logger = StructuredLogger(__name__)


@dataclass
class AgentAction:
    type: str
    input: Any = None
    estimated_cost: int | None = None
    priority: int = 0
    task_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class AgentExecutor:
    """Runs one action at a time per call; calls may overlap freely.

    Check-and-reserve happens under the ledger lock, so two concurrent
    executions can never jointly hold more than the cap. A failed check
    leaves no reservation, emits nothing and never touches the adapter.
    Every ``action.started`` is followed by exactly one ``action.completed``.
    """

    def __init__(
        self,
        budget_manager: BudgetManager,
        agent_id: str,
        emitter: TelemetryEventEmitter,
        *,
        policy_engine: PolicyEngine | None = None,
        provenance: dict[str, str] | None = None,
        settlement_timeout_ms: int | None = None,
    ):
        self.budget_manager = budget_manager
        self.agent_id = agent_id
        self.emitter = emitter
        self.policy_engine = policy_engine
        self.provenance = dict(provenance if provenance is not None else budget_manager.policy.provenance_tags())
        self.settlement_timeout_ms = (
            settlement_timeout_ms
            if settlement_timeout_ms is not None
            else budget_manager.policy.halt_conditions.settlement_timeout_ms
        )
        # In-flight executions only; settled ones are dropped.
        self.states: dict[str, ExecutionState] = {}

    async def execute(self, action: AgentAction, adapter: ServiceAdapter) -> AdapterResult:
        correlation_id = str(uuid.uuid4())
        start = time.monotonic()
        self._transition(correlation_id, ExecutionState.INITIATED)

        try:
            estimated = (
                action.estimated_cost if action.estimated_cost is not None else adapter.estimate_cost(action.input)
            )
            self._transition(correlation_id, ExecutionState.ESTIMATED)
            self._check_and_reserve(correlation_id, estimated, adapter.vendor)
        except BaseException:
            self.states.pop(correlation_id, None)
            raise
        self._transition(correlation_id, ExecutionState.RESERVED)

        # From here on the hold is released on any failure, cancellation included.
        deadline = None
        try:
            await self._emit(
                ActionStartedEvent,
                correlation_id,
                action,
                {"action_type": action.type, "input": action.input, "estimated_cost": estimated},
            )
            context = AdapterContext(
                correlation_id=correlation_id,
                agent_id=self.agent_id,
                emit=self.emitter.emit,
                task_id=action.task_id,
                budget_remaining=self.budget_manager.get_state().available,
                provenance=self.provenance,
            )

            self._transition(correlation_id, ExecutionState.RUNNING)
            deadline = asyncio.timeout(self.settlement_timeout_ms / 1000)
            async with deadline:
                result = await adapter.execute(action.input, context)
        except TimeoutError as exc:
            if deadline is None or not deadline.expired():
                await self._fail(correlation_id, action, adapter, start, exc)
                raise
            await self._fail_timeout(correlation_id, action, adapter, estimated, start)
            raise SettlementTimeoutError(correlation_id, self.settlement_timeout_ms) from None
        except (Exception, asyncio.CancelledError) as exc:
            await self._fail(correlation_id, action, adapter, start, exc)
            raise

        await self._settle(correlation_id, action, result, start)
        return result

    def _check_and_reserve(self, correlation_id: str, amount: int, vendor: str) -> None:
        budget = self.budget_manager
        with budget.ledger.lock:
            state = budget.get_state()
            if amount > state.available:
                logger.warning(
                    "Cannot afford action",
                    correlation_id=correlation_id,
                    estimated_cost=amount,
                    available=state.available,
                )
                raise InsufficientBudgetError(amount, state.available)
            self._transition(correlation_id, ExecutionState.BUDGET_CHECKED)

            if self.policy_engine is not None:
                self.policy_engine.enforce(amount, vendor)

            budget.try_reserve(correlation_id, amount)

    async def _settle(self, correlation_id: str, action: AgentAction, result: AdapterResult, start: float) -> None:
        budget = self.budget_manager
        with budget.ledger.lock:
            before = budget.get_state()
            budget.commit(correlation_id, result.cost)
            after = budget.get_state()
            if self.policy_engine is not None and result.receipt is not None:
                self.policy_engine.record_spend(result.receipt)
        self._transition(correlation_id, ExecutionState.COMMITTED)

        await self._emit(
            ActionCompletedEvent,
            correlation_id,
            action,
            {
                "action_type": action.type,
                "output": result.data,
                "actual_cost": result.cost,
                "duration": _elapsed_ms(start),
                "success": True,
            },
        )
        previous_balance = max(0, before.cap - before.spent)
        new_balance = max(0, after.cap - after.spent)
        await self._emit(
            BudgetDeltaEvent,
            correlation_id,
            action,
            {
                "previous_balance": previous_balance,
                "new_balance": new_balance,
                "delta": new_balance - previous_balance,
                "spent": after.spent,
                "remaining": new_balance,
            },
        )
        logger.info(
            "Action completed",
            correlation_id=correlation_id,
            action_type=action.type,
            actual_cost=result.cost,
            spent=after.spent,
        )

    async def _fail(
        self,
        correlation_id: str,
        action: AgentAction,
        adapter: ServiceAdapter,
        start: float,
        exc: BaseException,
    ) -> None:
        self.budget_manager.release(correlation_id)
        self._transition(correlation_id, ExecutionState.RELEASED)
        logger.error(
            "Action failed",
            correlation_id=correlation_id,
            action_type=action.type,
            vendor=adapter.vendor,
            error=str(exc) or type(exc).__name__,
        )
        await self._emit_failed_completion(correlation_id, action, start)

    async def _fail_timeout(
        self,
        correlation_id: str,
        action: AgentAction,
        adapter: ServiceAdapter,
        amount: int,
        start: float,
    ) -> None:
        self.budget_manager.release(correlation_id)
        self._transition(correlation_id, ExecutionState.RELEASED)
        logger.error(
            "Settlement timed out",
            correlation_id=correlation_id,
            action_type=action.type,
            vendor=adapter.vendor,
            timeout_ms=self.settlement_timeout_ms,
        )
        await self._emit(
            PaymentFailedEvent,
            correlation_id,
            action,
            {
                "vendor": adapter.vendor,
                "amount": amount,
                "endpoint": adapter.endpoint,
                "error": f"Settlement timed out after {self.settlement_timeout_ms}ms",
            },
        )
        await self._emit_failed_completion(correlation_id, action, start)

    async def _emit_failed_completion(self, correlation_id: str, action: AgentAction, start: float) -> None:
        await self._emit(
            ActionCompletedEvent,
            correlation_id,
            action,
            {
                "action_type": action.type,
                "output": None,
                "actual_cost": 0,
                "duration": _elapsed_ms(start),
                "success": False,
            },
        )

    async def _emit(self, event_cls: type[BaseEvent], correlation_id: str, action: AgentAction, payload: dict) -> None:
        await self.emitter.emit(
            new_event(
                event_cls,
                payload,
                correlation_id=correlation_id,
                agent_id=self.agent_id,
                task_id=action.task_id,
                provenance=self.provenance,
            )
        )

    def _transition(self, correlation_id: str, state: ExecutionState) -> None:
        if state in TERMINAL_STATES:
            self.states.pop(correlation_id, None)
        else:
            self.states[correlation_id] = state
        logger.debug("Execution state", correlation_id=correlation_id, state=state.value)


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)
