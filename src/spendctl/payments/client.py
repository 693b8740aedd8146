"""Simulated payment client.

Settlement itself lives outside this package; this client produces
receipts with the same shape a facilitator would, without touching a chain.
"""

from __future__ import annotations

import uuid

from ..ledger.window import Clock, wall_clock_ms
from ..utils.deterministic import stable_hash_hex
from ..utils.logging_config import StructuredLogger
from .pricing import is_valid_address, is_valid_signature, parse_price
from .types import PaymentReceipt, PaymentRequest

logger = StructuredLogger(__name__)

MAX_RECEIPT_LAMPORTS = 10**12


class SimulatedPaymentClient:
    def __init__(self, network: str = "solana-devnet", sol_price_usd: float | None = None, clock: Clock | None = None):
        self.network = network
        self.sol_price_usd = sol_price_usd
        self.clock = clock or wall_clock_ms
        self.receipts: dict[str, PaymentReceipt] = {}

    async def pay(self, request: PaymentRequest) -> PaymentReceipt:
        idempotency_key = request.idempotency_key or str(uuid.uuid4())
        correlation_id = request.correlation_id or str(uuid.uuid4())

        # Same idempotency key returns the original receipt instead of paying twice.
        existing = self.receipts.get(idempotency_key)
        if existing is not None:
            return existing

        amount = parse_price(request.price, self.sol_price_usd)
        now = self.clock()
        receipt = PaymentReceipt(
            signature="sim_" + stable_hash_hex(idempotency_key, request.vendor, str(amount), str(now))[:64],
            amount=amount,
            timestamp=now,
            vendor=request.vendor,
            endpoint=request.endpoint,
            correlation_id=correlation_id,
            idempotency_key=idempotency_key,
            network=self.network,
        )
        self.receipts[idempotency_key] = receipt
        logger.debug("Simulated payment", correlation_id=correlation_id, vendor=request.vendor, amount=amount)
        return receipt

    async def verify(self, receipt: PaymentReceipt) -> bool:
        if not is_valid_signature(receipt.signature):
            return False
        if not is_valid_address(receipt.vendor):
            return False
        if receipt.amount <= 0 or receipt.amount > MAX_RECEIPT_LAMPORTS:
            return False
        return True
