"""Telemetry events, sinks and offline summaries."""

from .events import (
    EVENT_TYPES,
    ActionCompletedEvent,
    ActionCompletedPayload,
    ActionStartedEvent,
    ActionStartedPayload,
    AgentHaltedEvent,
    AgentHaltedPayload,
    BaseEvent,
    BudgetDeltaEvent,
    BudgetDeltaPayload,
    PaymentFailedEvent,
    PaymentFailedPayload,
    PaymentInitiatedEvent,
    PaymentInitiatedPayload,
    PaymentSettledEvent,
    PaymentSettledPayload,
    SLAOutcomeEvent,
    SLAOutcomePayload,
    TelemetryEvent,
    event_to_dict,
    event_to_json,
    new_event,
    parse_event,
)
from .sinks import (
    ConsoleSink,
    FanOutEmitter,
    JSONLSink,
    MemorySink,
    TelemetryEventEmitter,
    TelemetrySink,
    WebhookSink,
)
from .summary import TelemetrySummary, load_events, summarize_events

__all__ = [
    "EVENT_TYPES",
    "TelemetryEvent",
    "BaseEvent",
    "PaymentInitiatedEvent",
    "PaymentInitiatedPayload",
    "PaymentSettledEvent",
    "PaymentSettledPayload",
    "PaymentFailedEvent",
    "PaymentFailedPayload",
    "ActionStartedEvent",
    "ActionStartedPayload",
    "ActionCompletedEvent",
    "ActionCompletedPayload",
    "SLAOutcomeEvent",
    "SLAOutcomePayload",
    "BudgetDeltaEvent",
    "BudgetDeltaPayload",
    "AgentHaltedEvent",
    "AgentHaltedPayload",
    "new_event",
    "parse_event",
    "event_to_dict",
    "event_to_json",
    "TelemetryEventEmitter",
    "TelemetrySink",
    "ConsoleSink",
    "JSONLSink",
    "WebhookSink",
    "MemorySink",
    "FanOutEmitter",
    "TelemetrySummary",
    "load_events",
    "summarize_events",
]
