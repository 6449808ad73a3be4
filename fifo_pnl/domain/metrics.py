# fifo_pnl/domain/metrics.py
"""PnL aggregation and tabular reporting."""

from typing import Dict, Iterable, List, Optional, Sequence
from decimal import Decimal
import pandas as pd

from fifo_pnl.domain.models import (
    BUY,
    SELL,
    ZERO,
    OpenPosition,
    PnLSummary,
    RealizedEvent,
    Trade,
)
from fifo_pnl.domain.window import ReportingWindow


TRADE_COLUMNS = [
    "trade_id", "order_id", "timestamp", "pair", "side", "price", "volume",
    "cost", "fee", "fee_estimated", "proceeds", "cost_basis", "realized_pnl",
]

EVENT_COLUMNS = [
    "trade_id", "sell_timestamp", "lot_trade_id", "acquired_at",
    "volume", "unit_cost", "cost_basis",
]


class PnLAggregator:
    """Turn ledger output into realized/unrealized PnL and volume statistics."""

    @staticmethod
    def summarize(
        trades: Sequence[Trade],
        events: Sequence[RealizedEvent],
        position: OpenPosition,
        current_price: Decimal,
        window: Optional[ReportingWindow] = None,
        pair: Optional[str] = None,
    ) -> PnLSummary:
        """
        Aggregate one ledger run.

        Realized figures and trade volumes are restricted to ``window``;
        the open position is a snapshot after the full history and is
        valued at ``current_price`` regardless of the window.
        """
        window = window or ReportingWindow.unbounded()

        windowed_events = [e for e in events if window.contains(e.sell_timestamp)]
        windowed_trades = [t for t in trades if window.contains(t.timestamp)]

        buys = [t for t in windowed_trades if t.side == BUY]
        sells = [t for t in windowed_trades if t.side == SELL]

        return PnLSummary(
            pair=pair or position.pair,
            realized_pnl=_sum(e.gain for e in windowed_events),
            unrealized_pnl=position.unrealized_pnl(current_price),
            balance=position.total_volume,
            total_buy_volume_base=_sum(t.volume for t in buys),
            total_sell_volume_base=_sum(t.volume for t in sells),
            total_buy_volume_quote=_sum(t.cost for t in buys),
            total_sell_volume_quote=_sum(t.cost for t in sells),
            total_cost_of_sold_assets=_sum(e.cost_basis for e in windowed_events),
            total_value_of_sold_assets=_sum(e.proceeds for e in windowed_events),
            total_fees=_sum(t.fee for t in windowed_trades),
            trade_count=len(windowed_trades),
            current_price=current_price,
            average_cost=position.weighted_average_cost,
            window_start=window.start,
            window_end=window.end,
        )

    @staticmethod
    def trades_frame(
        trades: Sequence[Trade],
        events: Sequence[RealizedEvent] = (),
    ) -> pd.DataFrame:
        """
        One row per trade; sells carry their realized figures.

        Values stay Decimal (object columns) so CSV output is exact.
        """
        if not trades:
            return pd.DataFrame(columns=TRADE_COLUMNS)

        by_trade: Dict[str, RealizedEvent] = {e.trade_id: e for e in events}

        rows: List[dict] = []
        for t in trades:
            event = by_trade.get(t.trade_id)
            rows.append(
                {
                    "trade_id": t.trade_id,
                    "order_id": t.order_id,
                    "timestamp": t.timestamp.isoformat(),
                    "pair": t.pair,
                    "side": t.side,
                    "price": t.price,
                    "volume": t.volume,
                    "cost": t.cost,
                    "fee": t.fee,
                    "fee_estimated": t.fee_estimated,
                    "proceeds": event.proceeds if event else None,
                    "cost_basis": event.cost_basis if event else None,
                    "realized_pnl": event.gain if event else None,
                }
            )

        return pd.DataFrame(rows, columns=TRADE_COLUMNS)

    @staticmethod
    def events_frame(events: Sequence[RealizedEvent]) -> pd.DataFrame:
        """Per-lot breakdown of every sell (audit trail)."""
        rows = [
            {
                "trade_id": e.trade_id,
                "sell_timestamp": e.sell_timestamp.isoformat(),
                "lot_trade_id": m.lot_trade_id,
                "acquired_at": m.acquired_at.isoformat(),
                "volume": m.volume,
                "unit_cost": m.unit_cost,
                "cost_basis": m.cost_basis,
            }
            for e in events
            for m in e.matches
        ]
        return pd.DataFrame(rows, columns=EVENT_COLUMNS)


def _sum(values: Iterable[Decimal]) -> Decimal:
    return sum(values, ZERO)
