"""Telemetry sinks and the fan-out emitter."""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import json
from pathlib import Path
from typing import Protocol, runtime_checkable

import httpx
from rich.console import Console

from ..utils.logging_config import StructuredLogger
from .events import BaseEvent, event_to_dict, event_to_json

logger = StructuredLogger(__name__)


@runtime_checkable
class TelemetryEventEmitter(Protocol):
    async def emit(self, event: BaseEvent) -> None:
        ...


@runtime_checkable
class TelemetrySink(Protocol):
    async def emit(self, event: BaseEvent) -> None:
        ...

    async def flush(self) -> None:
        ...

    async def close(self) -> None:
        ...


class MemorySink:
    """Keeps every event in order. Handy for tests and embedding callers."""

    def __init__(self):
        self.events: list[BaseEvent] = []

    async def emit(self, event: BaseEvent) -> None:
        self.events.append(event)

    async def flush(self) -> None:
        return None

    async def close(self) -> None:
        return None

    def of_type(self, event_type: str) -> list[BaseEvent]:
        return [e for e in self.events if e.type == event_type]

    @property
    def types(self) -> list[str]:
        return [e.type for e in self.events]


_STYLES = (
    ("payment.", "green"),
    ("action.", "cyan"),
    ("budget.", "yellow"),
    ("agent.halted", "red"),
    ("sla.", "magenta"),
)


def _style_for(event_type: str) -> str:
    for prefix, style in _STYLES:
        if event_type.startswith(prefix):
            return style
    return "white"


class ConsoleSink:
    def __init__(self, console: Console | None = None, colorize: bool = True):
        self.console = console or Console(stderr=True)
        self.colorize = colorize

    async def emit(self, event: BaseEvent) -> None:
        payload = json.dumps(event_to_dict(event)["payload"], ensure_ascii=True, default=str)
        style = _style_for(event.type) if self.colorize else None
        self.console.print(f"[{event.timestamp}] {event.type}", payload, style=style, markup=False, highlight=False)

    async def flush(self) -> None:
        return None

    async def close(self) -> None:
        return None


class JSONLSink:
    """Append-only JSONL file, written in batches of ``buffer_size``."""

    def __init__(self, file_path: str | Path, buffer_size: int = 10):
        if buffer_size < 1:
            raise ValueError("buffer_size must be >= 1")
        self.file_path = Path(file_path)
        self.buffer_size = buffer_size
        self._buffer: list[BaseEvent] = []
        self._lock = asyncio.Lock()

    async def emit(self, event: BaseEvent) -> None:
        async with self._lock:
            self._buffer.append(event)
            if len(self._buffer) >= self.buffer_size:
                self._write_buffer()

    async def flush(self) -> None:
        async with self._lock:
            self._write_buffer()

    async def close(self) -> None:
        await self.flush()

    def _write_buffer(self) -> None:
        if not self._buffer:
            return
        self.file_path.parent.mkdir(parents=True, exist_ok=True)
        lines = "".join(event_to_json(event) + "\n" for event in self._buffer)
        with self.file_path.open("a", encoding="utf-8") as f:
            f.write(lines)
        self._buffer = []


def _signature(secret: str, body: str) -> str:
    return hmac.new(secret.encode("utf-8"), body.encode("utf-8"), hashlib.sha256).hexdigest()


class WebhookSink:
    """Best-effort batch delivery of events to an HTTP endpoint.

    Events are buffered and POSTed as ``{"events": [...]}``. Failed deliveries
    are logged and dropped; telemetry never blocks the spend path.
    """

    def __init__(
        self,
        url: str,
        *,
        secret: str | None = None,
        batch_size: int = 10,
        timeout: float = 3.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.url = url
        self.secret = secret
        self.batch_size = max(1, batch_size)
        self._client = client
        self._owns_client = client is None
        self._timeout = timeout
        self._buffer: list[BaseEvent] = []
        self.delivered = 0
        self.failed = 0

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def emit(self, event: BaseEvent) -> None:
        self._buffer.append(event)
        if len(self._buffer) >= self.batch_size:
            await self.flush()

    async def flush(self) -> None:
        if not self._buffer:
            return
        batch, self._buffer = self._buffer, []
        body = json.dumps({"events": [event_to_dict(e) for e in batch]}, ensure_ascii=True, default=str)
        headers = {"Content-Type": "application/json"}
        if self.secret:
            headers["X-Spendctl-Signature"] = _signature(self.secret, body)

        try:
            response = await self._get_client().post(self.url, content=body, headers=headers)
        except httpx.HTTPError as exc:
            self.failed += len(batch)
            logger.warning("Webhook delivery failed", url=self.url, events=len(batch), error=str(exc))
            return

        if response.status_code >= 400:
            self.failed += len(batch)
            logger.warning(
                "Webhook delivery failed",
                url=self.url,
                events=len(batch),
                http_status=response.status_code,
            )
            return
        self.delivered += len(batch)

    async def close(self) -> None:
        await self.flush()
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None


class FanOutEmitter:
    """Hands each event to every sink concurrently."""

    def __init__(self, sinks: list[TelemetrySink] | None = None):
        self.sinks: list[TelemetrySink] = list(sinks or [])

    def add_sink(self, sink: TelemetrySink) -> None:
        self.sinks.append(sink)

    async def emit(self, event: BaseEvent) -> None:
        await self._fan_out("emit", event)

    async def flush(self) -> None:
        await self._fan_out("flush")

    async def close(self) -> None:
        await self._fan_out("close")

    async def _fan_out(self, method: str, *args) -> None:
        if not self.sinks:
            return
        results = await asyncio.gather(
            *(getattr(sink, method)(*args) for sink in self.sinks),
            return_exceptions=True,
        )
        for sink, result in zip(self.sinks, results):
            if isinstance(result, Exception):
                logger.error(
                    "Telemetry sink failed",
                    sink=type(sink).__name__,
                    operation=method,
                    error=str(result),
                )
