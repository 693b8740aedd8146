"""Text transformation micro-service adapter."""

from __future__ import annotations

from typing import Any

from ..payments.types import PaymentReceipt
from .base import AdapterContext, PaidServiceAdapter

OPERATIONS = {
    "uppercase": str.upper,
    "lowercase": str.lower,
    "reverse": lambda text: text[::-1],
}


class TextTransformAdapter(PaidServiceAdapter):
    """Transforms ``{"text", "operation"}`` input locally once paid.

    Unknown operations return the text unchanged.
    """

    name = "text-transform"
    default_price = "$0.01"

    def describe(self, input: dict[str, Any]) -> str:
        return f"Text transform: {input.get('operation', '')}"

    async def call_service(self, input: dict[str, Any], receipt: PaymentReceipt, context: AdapterContext) -> dict:
        text = str(input.get("text", ""))
        transform = OPERATIONS.get(str(input.get("operation", "")).lower())
        return {"result": transform(text) if transform else text}
