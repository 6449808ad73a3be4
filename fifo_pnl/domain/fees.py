# fifo_pnl/domain/fees.py
"""Kraken account tiers: fee rates and private API pacing."""

from dataclasses import dataclass
from decimal import Decimal

from fifo_pnl.domain.errors import UnknownTier


@dataclass(frozen=True)
class FeeRates:
    """Maker/taker fee rates as fractions of the traded quote amount."""
    maker_rate: Decimal
    taker_rate: Decimal
    request_delay: int  # seconds between paginated private API calls


FEE_SCHEDULE = {
    "starter": FeeRates(maker_rate=Decimal("0.0025"), taker_rate=Decimal("0.0040"), request_delay=7),
    "intermediate": FeeRates(maker_rate=Decimal("0.0020"), taker_rate=Decimal("0.0035"), request_delay=4),
    "pro": FeeRates(maker_rate=Decimal("0.0014"), taker_rate=Decimal("0.0024"), request_delay=2),
}

TIERS = tuple(FEE_SCHEDULE)


def fee_schedule(tier: str) -> FeeRates:
    """Look up the fee rates of an account tier."""
    if not isinstance(tier, str):
        raise UnknownTier(str(tier))
    try:
        return FEE_SCHEDULE[tier.strip().lower()]
    except KeyError:
        raise UnknownTier(tier) from None


def resolve(tier: str, side: str = "taker") -> Decimal:
    """
    Fee rate for a tier and liquidity side.

    Args:
        tier: starter, intermediate or pro
        side: maker or taker (taker applies when a fill reports no fee)

    Returns:
        Fee rate as a fraction (e.g. Decimal("0.0040"))
    """
    rates = fee_schedule(tier)
    if side == "maker":
        return rates.maker_rate
    if side == "taker":
        return rates.taker_rate
    raise UnknownTier(f"{tier}/{side}")
