"""Payment request/receipt models and the client protocol."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class PaymentRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    price: str
    vendor: str
    endpoint: str
    description: str | None = None
    correlation_id: str | None = None
    idempotency_key: str | None = None


class PaymentReceipt(BaseModel):
    """Proof of a settled payment, amounts in lamports."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    signature: str
    amount: int = Field(..., ge=0)
    timestamp: int
    vendor: str
    endpoint: str
    correlation_id: str
    idempotency_key: str
    network: str


@runtime_checkable
class PaymentClient(Protocol):
    network: str

    async def pay(self, request: PaymentRequest) -> PaymentReceipt:
        ...

    async def verify(self, receipt: PaymentReceipt) -> bool:
        ...
