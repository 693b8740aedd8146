"""Offline summary of a JSONL telemetry log."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import ValidationError

from ..payments.pricing import lamports_to_usd
from ..utils.logging_config import StructuredLogger
from .events import (
    ActionCompletedEvent,
    ActionStartedEvent,
    AgentHaltedEvent,
    BaseEvent,
    BudgetDeltaEvent,
    PaymentSettledEvent,
    parse_event,
)

logger = StructuredLogger(__name__)

DEFAULT_LIMIT = 400
RECENT_ACTIONS = 6


@dataclass(frozen=True)
class VendorSpend:
    vendor: str
    amount_lamports: int
    amount_usd: float


@dataclass(frozen=True)
class BudgetSnapshot:
    initial_lamports: int
    spent_lamports: int
    remaining_lamports: int


@dataclass(frozen=True)
class TaskStats:
    planned: int
    started: int
    succeeded: int
    failed: int


@dataclass(frozen=True)
class HaltInfo:
    timestamp: str
    reason: str
    details: str


@dataclass(frozen=True)
class TelemetrySummary:
    total_events: int
    event_counts: dict[str, int]
    vendor_spend: list[VendorSpend]
    budget: BudgetSnapshot | None
    task_stats: TaskStats
    halt: HaltInfo | None
    recent_actions: list[ActionCompletedEvent] = field(default_factory=list)


def load_events(path: str | Path, limit: int = DEFAULT_LIMIT) -> list[BaseEvent]:
    """Read the last ``limit`` events of a JSONL log (all when ``limit <= 0``).

    A missing file yields no events; malformed lines are skipped.
    """
    path = Path(path)
    if not path.exists():
        return []

    lines = [line.strip() for line in path.read_text(encoding="utf-8").splitlines()]
    lines = [line for line in lines if line]
    if limit > 0:
        lines = lines[-limit:]

    events: list[BaseEvent] = []
    skipped = 0
    for line in lines:
        try:
            events.append(parse_event(line))
        except ValidationError:
            skipped += 1
    if skipped:
        logger.warning("Skipped malformed telemetry lines", path=str(path), skipped=skipped)
    return events


def summarize_events(events: list[BaseEvent], sol_price_usd: float | None = None) -> TelemetrySummary:
    counts = Counter(e.type for e in events)

    spend: dict[str, int] = {}
    for event in events:
        if isinstance(event, PaymentSettledEvent):
            receipt = event.payload.receipt
            spend[receipt.vendor] = spend.get(receipt.vendor, 0) + receipt.amount
    vendor_spend = sorted(
        (VendorSpend(v, amount, lamports_to_usd(amount, sol_price_usd)) for v, amount in spend.items()),
        key=lambda vs: vs.amount_lamports,
        reverse=True,
    )

    budget = None
    deltas = [e for e in events if isinstance(e, BudgetDeltaEvent)]
    if deltas:
        latest = deltas[-1].payload
        budget = BudgetSnapshot(
            initial_lamports=latest.spent + latest.remaining,
            spent_lamports=latest.spent,
            remaining_lamports=latest.remaining,
        )

    started = [e for e in events if isinstance(e, ActionStartedEvent)]
    completed = [e for e in events if isinstance(e, ActionCompletedEvent)]
    succeeded = sum(1 for e in completed if e.payload.success)
    unique_tasks = {e.task_id for e in started if e.task_id}
    task_stats = TaskStats(
        planned=len(unique_tasks) or len(started),
        started=len(started),
        succeeded=succeeded,
        failed=len(completed) - succeeded,
    )

    halt = None
    for event in reversed(events):
        if isinstance(event, AgentHaltedEvent):
            halt = HaltInfo(event.timestamp, event.payload.reason, event.payload.details)
            break

    recent = sorted(completed, key=lambda e: e.timestamp, reverse=True)[:RECENT_ACTIONS]

    return TelemetrySummary(
        total_events=len(events),
        event_counts=dict(counts.most_common()),
        vendor_spend=vendor_spend,
        budget=budget,
        task_stats=task_stats,
        halt=halt,
        recent_actions=recent,
    )
