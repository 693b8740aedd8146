"""HTTP data fetch adapter."""

from __future__ import annotations

from typing import Any

import httpx

from ..payments.types import PaymentClient, PaymentReceipt
from .base import AdapterContext, PaidServiceAdapter

PAYMENT_SIGNATURE_HEADER = "X-Payment-Signature"
CORRELATION_HEADER = "X-Correlation-Id"


class DataFetchAdapter(PaidServiceAdapter):
    """GETs ``endpoint`` with ``{"query": ...}`` after paying for the request.

    The receipt signature travels in ``X-Payment-Signature`` so the vendor
    can check payment before serving. Non-2xx responses raise
    ``httpx.HTTPStatusError``.
    """

    name = "data-fetch"
    default_price = "$0.05"

    def __init__(
        self,
        client: PaymentClient,
        vendor: str,
        endpoint: str,
        price: str | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
        **kwargs,
    ):
        super().__init__(client, vendor, endpoint, price, **kwargs)
        self.http_client = http_client
        self.timeout = timeout

    def describe(self, input: dict[str, Any]) -> str:
        return f"Data fetch: {input.get('query', '')}"

    async def call_service(self, input: dict[str, Any], receipt: PaymentReceipt, context: AdapterContext) -> Any:
        headers = {
            PAYMENT_SIGNATURE_HEADER: receipt.signature,
            CORRELATION_HEADER: context.correlation_id,
        }
        params = {"query": str(input.get("query", ""))}

        if self.http_client is not None:
            response = await self.http_client.get(self.endpoint, params=params, headers=headers)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as http:
                response = await http.get(self.endpoint, params=params, headers=headers)

        response.raise_for_status()
        return response.json()
