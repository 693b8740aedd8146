"""Service adapter contract and the pay-then-call base class."""

from __future__ import annotations

from dataclasses import dataclass, field
import time
from typing import Any, Awaitable, Callable, Protocol, runtime_checkable

from pydantic import BaseModel

from ..errors import PaymentVerificationError
from ..payments.pricing import parse_price
from ..payments.types import PaymentClient, PaymentReceipt, PaymentRequest
from ..telemetry.events import (
    BaseEvent,
    PaymentFailedEvent,
    PaymentInitiatedEvent,
    PaymentSettledEvent,
    SLAOutcomeEvent,
    new_event,
)
from ..utils.logging_config import StructuredLogger

logger = StructuredLogger(__name__)

EmitFn = Callable[[BaseEvent], Awaitable[None]]


@dataclass
class AdapterContext:
    correlation_id: str
    agent_id: str
    emit: EmitFn
    task_id: str | None = None
    # Advisory only; the executor's reservation is what bounds spend.
    budget_remaining: int = 0
    provenance: dict[str, str] = field(default_factory=dict)

    async def emit_event(self, event_cls: type[BaseEvent], payload: BaseModel | dict[str, Any]) -> None:
        await self.emit(
            new_event(
                event_cls,
                payload,
                correlation_id=self.correlation_id,
                agent_id=self.agent_id,
                task_id=self.task_id,
                provenance=self.provenance,
            )
        )


@dataclass
class AdapterResult:
    data: Any
    receipt: PaymentReceipt | None
    cost: int
    duration: int
    vendor: str


@runtime_checkable
class ServiceAdapter(Protocol):
    name: str

    @property
    def vendor(self) -> str:
        ...

    @property
    def endpoint(self) -> str:
        ...

    def estimate_cost(self, input: Any) -> int:
        ...

    async def execute(self, input: Any, context: AdapterContext) -> AdapterResult:
        ...


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


class PaidServiceAdapter:
    """Pays the vendor through a PaymentClient, then calls the service.

    Subclasses implement ``call_service``. Each execution emits
    ``payment.initiated``, then ``payment.settled`` or ``payment.failed``,
    and ``sla.outcome`` once the service call returns or raises.
    """

    name = "paid-service"
    default_price = "$0.01"

    def __init__(
        self,
        client: PaymentClient,
        vendor: str,
        endpoint: str,
        price: str | None = None,
        *,
        sol_price_usd: float | None = None,
        expected_latency_ms: int | None = None,
    ):
        self.client = client
        self._vendor = vendor
        self._endpoint = endpoint
        self.price = price or self.default_price
        self.sol_price_usd = sol_price_usd
        self.expected_latency_ms = expected_latency_ms

    @property
    def vendor(self) -> str:
        return self._vendor

    @property
    def endpoint(self) -> str:
        return self._endpoint

    def estimate_cost(self, input: Any) -> int:
        return parse_price(self.price, self.sol_price_usd)

    def describe(self, input: Any) -> str:
        return f"{self.name} call"

    async def call_service(self, input: Any, receipt: PaymentReceipt, context: AdapterContext) -> Any:
        raise NotImplementedError

    async def execute(self, input: Any, context: AdapterContext) -> AdapterResult:
        start = time.monotonic()
        amount = self.estimate_cost(input)

        await context.emit_event(
            PaymentInitiatedEvent,
            {
                "vendor": self.vendor,
                "amount": amount,
                "endpoint": self.endpoint,
                "idempotency_key": context.correlation_id,
            },
        )

        try:
            receipt = await self.client.pay(
                PaymentRequest(
                    price=self.price,
                    vendor=self.vendor,
                    endpoint=self.endpoint,
                    description=self.describe(input),
                    correlation_id=context.correlation_id,
                    idempotency_key=context.correlation_id,
                )
            )
            if not await self.client.verify(receipt):
                raise PaymentVerificationError(receipt.signature, self.vendor)
        except Exception as exc:
            logger.error(
                "Payment failed",
                correlation_id=context.correlation_id,
                adapter=self.name,
                vendor=self.vendor,
                error=str(exc),
            )
            await context.emit_event(
                PaymentFailedEvent,
                {
                    "vendor": self.vendor,
                    "amount": amount,
                    "endpoint": self.endpoint,
                    "error": str(exc) or type(exc).__name__,
                },
            )
            raise

        await context.emit_event(PaymentSettledEvent, {"receipt": receipt, "verified": True})

        call_start = time.monotonic()
        try:
            data = await self.call_service(input, receipt, context)
        except Exception:
            await self._emit_sla(context, _elapsed_ms(call_start), success=False)
            raise
        await self._emit_sla(context, _elapsed_ms(call_start), success=True)

        return AdapterResult(
            data=data,
            receipt=receipt,
            cost=receipt.amount,
            duration=_elapsed_ms(start),
            vendor=self.vendor,
        )

    async def _emit_sla(self, context: AdapterContext, latency_ms: int, *, success: bool) -> None:
        await context.emit_event(
            SLAOutcomeEvent,
            {
                "vendor": self.vendor,
                "endpoint": self.endpoint,
                "expected_latency": self.expected_latency_ms,
                "actual_latency": latency_ms,
                "success": success,
            },
        )
