# fifo_pnl/domain/ledger.py
"""
FIFO lot ledger.
Matches sells against the oldest open buy lots and records realized gains.
"""

from typing import Deque, Iterable, List, Optional, Tuple
from datetime import datetime
from decimal import Decimal
from collections import deque
import logging

from fifo_pnl.domain.errors import InsufficientInventory, OutOfOrderTrade
from fifo_pnl.domain.models import (
    BUY,
    SELL,
    ZERO,
    Lot,
    LotMatch,
    OpenPosition,
    RealizedEvent,
    Trade,
)

logger = logging.getLogger(__name__)


class FifoLedger:
    """
    Lot queue and realized events for a single pair.

    Feed it the complete trade history in chronological order; the
    remaining lots afterwards are the open position.
    """

    def __init__(self, pair: str):
        self.pair = pair
        self._lots: Deque[Lot] = deque()
        self._events: List[RealizedEvent] = []
        self._last_timestamp: Optional[datetime] = None

    @property
    def lots(self) -> Tuple[Lot, ...]:
        return tuple(self._lots)

    @property
    def events(self) -> Tuple[RealizedEvent, ...]:
        return tuple(self._events)

    @property
    def available_volume(self) -> Decimal:
        return sum((lot.remaining_volume for lot in self._lots), ZERO)

    @property
    def open_position(self) -> OpenPosition:
        snapshot = tuple(
            Lot(
                trade_id=lot.trade_id,
                acquired_at=lot.acquired_at,
                remaining_volume=lot.remaining_volume,
                unit_cost=lot.unit_cost,
                remaining_cost=lot.remaining_cost,
            )
            for lot in self._lots
        )
        return OpenPosition(pair=self.pair, lots=snapshot)

    def process_all(self, trades: Iterable[Trade]) -> "FifoLedger":
        for trade in trades:
            self.process(trade)
        logger.debug(
            "%s: %d realized events, %d open lots", self.pair, len(self._events), len(self._lots)
        )
        return self

    def process(self, trade: Trade) -> Optional[RealizedEvent]:
        """
        Apply one trade to the lot queue.

        Returns:
            The realized event for a sell, None for a buy.
        """
        if trade.pair != self.pair:
            raise ValueError(f"Ledger for {self.pair} cannot process a {trade.pair} trade")

        if self._last_timestamp is not None and trade.timestamp < self._last_timestamp:
            raise OutOfOrderTrade(
                pair=self.pair,
                trade_id=trade.trade_id,
                timestamp=trade.timestamp,
                previous_timestamp=self._last_timestamp,
            )
        self._last_timestamp = trade.timestamp

        if trade.side == BUY:
            self._open_lot(trade)
            return None
        if trade.side == SELL:
            event = self._close_lots(trade)
            self._events.append(event)
            return event
        raise ValueError(f"Unsupported side {trade.side!r} for trade {trade.trade_id}")

    def _open_lot(self, trade: Trade) -> None:
        total_cost = trade.price * trade.volume + trade.fee
        self._lots.append(
            Lot(
                trade_id=trade.trade_id,
                acquired_at=trade.timestamp,
                remaining_volume=trade.volume,
                unit_cost=total_cost / trade.volume,
                remaining_cost=total_cost,
            )
        )

    def _close_lots(self, trade: Trade) -> RealizedEvent:
        available = self.available_volume
        if trade.volume > available:
            raise InsufficientInventory(
                pair=self.pair,
                trade_id=trade.trade_id,
                timestamp=trade.timestamp,
                requested=trade.volume,
                available=available,
            )

        remaining_to_close = trade.volume
        matches: List[LotMatch] = []
        cost_basis = ZERO

        while remaining_to_close > 0:
            lot = self._lots[0]
            matched = min(lot.remaining_volume, remaining_to_close)
            # a fully consumed lot gives up its exact remaining cost
            if matched == lot.remaining_volume:
                matched_cost = lot.remaining_cost
            else:
                matched_cost = lot.unit_cost * matched

            matches.append(
                LotMatch(
                    lot_trade_id=lot.trade_id,
                    acquired_at=lot.acquired_at,
                    volume=matched,
                    unit_cost=lot.unit_cost,
                    cost_basis=matched_cost,
                )
            )
            cost_basis += matched_cost

            remaining_to_close -= matched
            lot.remaining_volume -= matched
            lot.remaining_cost -= matched_cost

            if lot.remaining_volume == 0:
                self._lots.popleft()

        return RealizedEvent(
            trade_id=trade.trade_id,
            pair=self.pair,
            sell_timestamp=trade.timestamp,
            matched_volume=trade.volume,
            proceeds=trade.price * trade.volume - trade.fee,
            cost_basis=cost_basis,
            matches=tuple(matches),
        )
