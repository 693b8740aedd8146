"""Telemetry event schema.

The event set is closed: every event is one of the eight models below,
discriminated on ``type``. Events serialize with camelCase keys so JSONL logs
stay readable by existing dashboards.
"""

from __future__ import annotations

from datetime import datetime, UTC
import json
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel

from ..payments.types import PaymentReceipt


class _EventModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


# --- Payloads ---

class PaymentInitiatedPayload(_EventModel):
    vendor: str
    amount: int
    endpoint: str
    idempotency_key: str


class PaymentSettledPayload(_EventModel):
    receipt: PaymentReceipt
    verified: bool


class PaymentFailedPayload(_EventModel):
    vendor: str
    amount: int
    endpoint: str
    error: str
    retry_count: int = 0


class ActionStartedPayload(_EventModel):
    action_type: str
    input: Any = None
    estimated_cost: int | None = None


class ActionCompletedPayload(_EventModel):
    action_type: str
    output: Any = None
    actual_cost: int
    duration: int
    success: bool


class SLAOutcomePayload(_EventModel):
    vendor: str
    endpoint: str
    expected_latency: int | None = None
    actual_latency: int
    success: bool


class BudgetDeltaPayload(_EventModel):
    previous_balance: int
    new_balance: int
    delta: int
    spent: int
    remaining: int


HaltReason = Literal["budget_exhausted", "policy_violation", "consecutive_failures", "manual"]


class AgentHaltedPayload(_EventModel):
    reason: HaltReason
    details: str


# --- Events ---

class BaseEvent(_EventModel):
    timestamp: str
    correlation_id: str
    agent_id: str
    task_id: str | None = None
    provenance: dict[str, str] = Field(default_factory=dict)


class PaymentInitiatedEvent(BaseEvent):
    type: Literal["payment.initiated"] = "payment.initiated"
    payload: PaymentInitiatedPayload


class PaymentSettledEvent(BaseEvent):
    type: Literal["payment.settled"] = "payment.settled"
    payload: PaymentSettledPayload


class PaymentFailedEvent(BaseEvent):
    type: Literal["payment.failed"] = "payment.failed"
    payload: PaymentFailedPayload


class ActionStartedEvent(BaseEvent):
    type: Literal["action.started"] = "action.started"
    payload: ActionStartedPayload


class ActionCompletedEvent(BaseEvent):
    type: Literal["action.completed"] = "action.completed"
    payload: ActionCompletedPayload


class SLAOutcomeEvent(BaseEvent):
    type: Literal["sla.outcome"] = "sla.outcome"
    payload: SLAOutcomePayload


class BudgetDeltaEvent(BaseEvent):
    type: Literal["budget.delta"] = "budget.delta"
    payload: BudgetDeltaPayload


class AgentHaltedEvent(BaseEvent):
    type: Literal["agent.halted"] = "agent.halted"
    payload: AgentHaltedPayload


TelemetryEvent = Annotated[
    Union[
        PaymentInitiatedEvent,
        PaymentSettledEvent,
        PaymentFailedEvent,
        ActionStartedEvent,
        ActionCompletedEvent,
        SLAOutcomeEvent,
        BudgetDeltaEvent,
        AgentHaltedEvent,
    ],
    Field(discriminator="type"),
]

EVENT_TYPES = (
    "payment.initiated",
    "payment.settled",
    "payment.failed",
    "action.started",
    "action.completed",
    "sla.outcome",
    "budget.delta",
    "agent.halted",
)

_event_adapter: TypeAdapter = TypeAdapter(TelemetryEvent)


def utc_timestamp() -> str:
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def new_event(
    event_cls: type[BaseEvent],
    payload: BaseModel | dict[str, Any],
    *,
    correlation_id: str,
    agent_id: str,
    task_id: str | None = None,
    provenance: dict[str, str] | None = None,
):
    """Build a timestamped event of ``event_cls`` around ``payload``."""
    return event_cls(
        timestamp=utc_timestamp(),
        correlation_id=correlation_id,
        agent_id=agent_id,
        task_id=task_id,
        provenance=dict(provenance or {}),
        payload=payload,
    )


def parse_event(data: dict[str, Any] | str) -> BaseEvent:
    """Validate a decoded (or raw JSON) event into its concrete model."""
    if isinstance(data, str):
        return _event_adapter.validate_json(data)
    return _event_adapter.validate_python(data)


def event_to_dict(event: BaseEvent) -> dict[str, Any]:
    return event.model_dump(by_alias=True, exclude_none=True)


def event_to_json(event: BaseEvent) -> str:
    return json.dumps(event_to_dict(event), ensure_ascii=True, default=str)
