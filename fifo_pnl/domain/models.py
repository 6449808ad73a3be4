# fifo_pnl/domain/models.py
"""Domain value objects."""

from typing import Optional, Tuple
from dataclasses import dataclass, field, asdict
from datetime import datetime
from decimal import Decimal

BUY = "buy"
SELL = "sell"

ZERO = Decimal("0")


@dataclass(frozen=True)
class Trade:
    """A single executed fill, normalized from the exchange's raw record."""
    trade_id: str
    pair: str
    timestamp: datetime
    side: str  # buy or sell
    price: Decimal
    volume: Decimal
    fee: Decimal  # quote currency
    order_id: str = ""
    order_reference: Optional[int] = None
    sequence: Optional[int] = None
    order_type: Optional[str] = None
    fee_estimated: bool = False

    @property
    def cost(self) -> Decimal:
        return self.price * self.volume

    @property
    def sort_key(self) -> Tuple[datetime, int, str]:
        seq = self.sequence if self.sequence is not None else -1
        return self.timestamp, seq, self.trade_id


@dataclass
class Lot:
    """Remaining, unconsumed portion of a historical buy (for FIFO matching)."""
    trade_id: str
    acquired_at: datetime
    remaining_volume: Decimal
    unit_cost: Decimal  # (price * volume + fee) / volume at acquisition
    remaining_cost: Decimal  # exact cost of remaining_volume


@dataclass(frozen=True)
class LotMatch:
    """How much of one lot a sell consumed."""
    lot_trade_id: str
    acquired_at: datetime
    volume: Decimal
    unit_cost: Decimal
    cost_basis: Decimal


@dataclass(frozen=True)
class RealizedEvent:
    """One sell trade matched against the oldest open lots."""
    trade_id: str
    pair: str
    sell_timestamp: datetime
    matched_volume: Decimal
    proceeds: Decimal  # price * volume, net of the sell fee
    cost_basis: Decimal
    matches: Tuple[LotMatch, ...] = field(default_factory=tuple)

    @property
    def gain(self) -> Decimal:
        return self.proceeds - self.cost_basis


@dataclass(frozen=True)
class OpenPosition:
    """Lots left after the full history was processed."""
    pair: str
    lots: Tuple[Lot, ...] = field(default_factory=tuple)

    @property
    def total_volume(self) -> Decimal:
        return sum((lot.remaining_volume for lot in self.lots), ZERO)

    @property
    def total_cost(self) -> Decimal:
        return sum((lot.remaining_cost for lot in self.lots), ZERO)

    @property
    def weighted_average_cost(self) -> Decimal:
        volume = self.total_volume
        if volume == 0:
            return ZERO
        return self.total_cost / volume

    def unrealized_pnl(self, current_price: Decimal) -> Decimal:
        """Gain of the open lots if they were sold at ``current_price``."""
        if not self.lots:
            return ZERO
        return current_price * self.total_volume - self.total_cost


@dataclass(frozen=True)
class PnLSummary:
    """Tax-relevant figures for one pair and one reporting window."""
    pair: str
    realized_pnl: Decimal
    unrealized_pnl: Decimal
    balance: Decimal
    total_buy_volume_base: Decimal
    total_sell_volume_base: Decimal
    total_buy_volume_quote: Decimal
    total_sell_volume_quote: Decimal
    total_cost_of_sold_assets: Decimal
    total_value_of_sold_assets: Decimal
    total_fees: Decimal = ZERO
    trade_count: int = 0
    current_price: Decimal = ZERO
    average_cost: Decimal = ZERO
    window_start: Optional[datetime] = None
    window_end: Optional[datetime] = None

    def as_dict(self) -> dict:
        return asdict(self)
