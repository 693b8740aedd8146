"""Price parsing and receipt shape checks.

Accepted price strings:
    "250000", "250000 lamports", "1 lamport"   -> integer lamports
    "$0.01", "0.01"                            -> USD, converted at the SOL price
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_FLOOR
import re

from ..errors import InvalidPriceError
from ..utils.config_loader import config_loader

LAMPORTS_PER_SOL = 1_000_000_000

_LAMPORTS_RE = re.compile(r"^(\d+)\s*lamports?$", re.IGNORECASE)
_INTEGER_RE = re.compile(r"^\d+$")
_BASE58_RE = re.compile(r"^[1-9A-HJ-NP-Za-km-z]+$")


def _sol_price(sol_price_usd: float | None) -> Decimal:
    price = sol_price_usd if sol_price_usd is not None else config_loader.get_sol_usd_price()
    try:
        value = Decimal(str(price))
    except InvalidOperation:
        raise InvalidPriceError(price, f"Invalid SOL price: {price}")
    if not value.is_finite() or value <= 0:
        raise InvalidPriceError(price, f"Invalid SOL price: {price}")
    return value


def usd_to_lamports(price: str | float, sol_price_usd: float | None = None) -> int:
    """Convert a USD amount (``"$0.01"`` or ``0.01``) to whole lamports, rounding down."""
    raw = str(price).strip()
    if raw.startswith("$"):
        raw = raw[1:].strip()
    try:
        usd = Decimal(raw)
    except InvalidOperation:
        raise InvalidPriceError(price, f"Invalid USD price: {price}")
    if not usd.is_finite() or usd <= 0:
        raise InvalidPriceError(price, f"Invalid USD price: {price}")

    lamports = (usd / _sol_price(sol_price_usd) * LAMPORTS_PER_SOL).to_integral_value(rounding=ROUND_FLOOR)
    return int(lamports)


def lamports_to_usd(lamports: int, sol_price_usd: float | None = None) -> float:
    return float(Decimal(lamports) / LAMPORTS_PER_SOL * _sol_price(sol_price_usd))


def parse_price(price: str | int, sol_price_usd: float | None = None) -> int:
    """Resolve any accepted price form to a positive lamport amount."""
    if isinstance(price, bool):
        raise InvalidPriceError(price)
    if isinstance(price, int):
        if price <= 0:
            raise InvalidPriceError(price, f"Price must be positive: {price}")
        return price

    raw = str(price or "").strip()
    if not raw:
        raise InvalidPriceError(price)

    match = _LAMPORTS_RE.match(raw)
    if match or _INTEGER_RE.match(raw):
        lamports = int(match.group(1) if match else raw)
        if lamports <= 0:
            raise InvalidPriceError(price, f"Price must be positive: {price}")
        return lamports

    lamports = usd_to_lamports(raw, sol_price_usd)
    if lamports <= 0:
        raise InvalidPriceError(price, f"Price rounds to zero lamports: {price}")
    return lamports


def is_valid_signature(signature: str) -> bool:
    """Simulated ``sim_`` signatures, or an 88-char base58 transaction signature."""
    if signature.startswith("sim_"):
        return len(signature) > 4
    return len(signature) == 88 and bool(_BASE58_RE.match(signature))


def is_valid_address(address: str) -> bool:
    """Solana-style addresses are 32-44 base58 characters; allow some slack."""
    return bool(address) and 32 <= len(address) <= 50
