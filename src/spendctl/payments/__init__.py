"""Payment client interface, price grammar and a simulated client."""

from .client import SimulatedPaymentClient
from .pricing import (
    LAMPORTS_PER_SOL,
    is_valid_address,
    is_valid_signature,
    lamports_to_usd,
    parse_price,
    usd_to_lamports,
)
from .types import PaymentClient, PaymentReceipt, PaymentRequest

__all__ = [
    "PaymentClient",
    "PaymentReceipt",
    "PaymentRequest",
    "SimulatedPaymentClient",
    "LAMPORTS_PER_SOL",
    "parse_price",
    "usd_to_lamports",
    "lamports_to_usd",
    "is_valid_signature",
    "is_valid_address",
]
