"""Session wiring for embedding callers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from .executor import AgentExecutor
from .ledger.budget import BudgetManager
from .ledger.window import Clock, SpendLedger
from .policies import PaymentPolicy, load_policy, policy_from_dict
from .policy.engine import PolicyEngine
from .telemetry.sinks import ConsoleSink, FanOutEmitter, JSONLSink, TelemetrySink, WebhookSink
from .utils.config_loader import SpendctlConfig, TelemetryConfig, config_loader
from .utils.logging_config import StructuredLogger

logger = StructuredLogger(__name__)


@dataclass
class Session:
    policy: PaymentPolicy
    ledger: SpendLedger
    budget_manager: BudgetManager
    policy_engine: PolicyEngine
    emitter: FanOutEmitter
    executor: AgentExecutor

    @property
    def agent_id(self) -> str:
        return self.executor.agent_id

    async def close(self) -> None:
        await self.emitter.close()


def _resolve_policy(policy: PaymentPolicy | Mapping[str, Any] | str) -> PaymentPolicy:
    if isinstance(policy, PaymentPolicy):
        return policy
    if isinstance(policy, str):
        return load_policy(policy)
    return policy_from_dict(dict(policy))


def sinks_from_config(telemetry: TelemetryConfig) -> list[TelemetrySink]:
    sinks: list[TelemetrySink] = []
    if telemetry.console:
        sinks.append(ConsoleSink())
    if telemetry.jsonl_path:
        sinks.append(JSONLSink(telemetry.jsonl_path, buffer_size=telemetry.jsonl_buffer_size))
    if telemetry.webhook_url:
        sinks.append(WebhookSink(telemetry.webhook_url))
    return sinks


def create_session(
    policy: PaymentPolicy | Mapping[str, Any] | str,
    *,
    agent_id: str | None = None,
    sinks: list[TelemetrySink] | None = None,
    config: SpendctlConfig | None = None,
    clock: Clock | None = None,
    settlement_timeout_ms: int | None = None,
) -> Session:
    """Build the spending-control triad around one shared ledger.

    ``policy`` may be a PaymentPolicy, a raw mapping in the configuration
    format, or the id of a stored policy. When ``sinks`` is omitted they are
    built from the ``telemetry`` section of the runtime config.
    """
    resolved = _resolve_policy(policy)
    if sinks is None:
        sinks = sinks_from_config((config or config_loader.get_config()).telemetry)

    ledger = SpendLedger(resolved.budget_cap, resolved.budget_window, clock=clock)
    budget_manager = BudgetManager(resolved, ledger=ledger)
    policy_engine = PolicyEngine(resolved, ledger=ledger)
    emitter = FanOutEmitter(sinks)
    executor = AgentExecutor(
        budget_manager,
        agent_id or resolved.provenance.agent_id,
        emitter,
        policy_engine=policy_engine,
        settlement_timeout_ms=settlement_timeout_ms,
    )
    logger.info(
        "Session created",
        agent_id=executor.agent_id,
        budget_cap=resolved.budget_cap,
        budget_window=resolved.budget_window,
        vendors=len(resolved.allowed_vendors),
        sinks=[type(s).__name__ for s in sinks],
    )
    return Session(
        policy=resolved,
        ledger=ledger,
        budget_manager=budget_manager,
        policy_engine=policy_engine,
        emitter=emitter,
        executor=executor,
    )
