"""Test PnL aggregation and report frames."""

from decimal import Decimal

from conftest import PAIR, make_trade, utc
from fifo_pnl.domain.ledger import FifoLedger
from fifo_pnl.domain.metrics import EVENT_COLUMNS, TRADE_COLUMNS, PnLAggregator
from fifo_pnl.domain.window import ReportingWindow


def _window_scenario():
    return [
        make_trade("B1", "buy", "1.0", "100", when=utc(2023, 6, 1)),
        make_trade("B2", "buy", "1.0", "200", when=utc(2024, 2, 1)),
        make_trade("S1", "sell", "1.0", "300", when=utc(2024, 3, 1)),
    ]


def test_year_window_uses_full_history_cost_basis():
    trades = _window_scenario()
    ledger = FifoLedger(PAIR).process_all(trades)

    summary = PnLAggregator.summarize(
        trades,
        ledger.events,
        ledger.open_position,
        current_price=Decimal("250"),
        window=ReportingWindow.for_year(2024),
    )

    assert summary.realized_pnl == Decimal("200")
    assert summary.balance == Decimal("1.0")
    assert summary.unrealized_pnl == Decimal("50")
    assert summary.average_cost == Decimal("200")
    assert summary.total_buy_volume_base == Decimal("1.0")
    assert summary.total_buy_volume_quote == Decimal("200")
    assert summary.total_sell_volume_base == Decimal("1.0")
    assert summary.total_sell_volume_quote == Decimal("300")
    assert summary.total_cost_of_sold_assets == Decimal("100")
    assert summary.total_value_of_sold_assets == Decimal("300")
    assert summary.trade_count == 2
    assert summary.window_start == utc(2024, 1, 1)


def test_window_excluding_sells_reports_no_realized_pnl():
    trades = _window_scenario()
    ledger = FifoLedger(PAIR).process_all(trades)

    summary = PnLAggregator.summarize(
        trades, ledger.events, ledger.open_position, Decimal("250"), ReportingWindow.for_year(2023)
    )

    assert summary.realized_pnl == Decimal("0")
    assert summary.total_buy_volume_base == Decimal("1.0")
    assert summary.total_sell_volume_base == Decimal("0")
    # open position is a snapshot after the full history
    assert summary.balance == Decimal("1.0")
    assert summary.unrealized_pnl == Decimal("50")


def test_unbounded_window_and_fees():
    trades = [
        make_trade("B1", "buy", "2", "100", fee="2", when=utc(2024, 1, 1)),
        make_trade("S1", "sell", "2", "110", fee="3", when=utc(2024, 1, 2)),
    ]
    ledger = FifoLedger(PAIR).process_all(trades)

    summary = PnLAggregator.summarize(trades, ledger.events, ledger.open_position, Decimal("500"))

    assert summary.realized_pnl == Decimal("15")  # 217 - 202
    assert summary.total_fees == Decimal("5")
    assert summary.balance == Decimal("0")
    assert summary.unrealized_pnl == Decimal("0")
    assert summary.window_start is None and summary.window_end is None
    assert summary.as_dict()["realized_pnl"] == Decimal("15")


def test_trades_frame_carries_realized_figures():
    trades = _window_scenario()
    ledger = FifoLedger(PAIR).process_all(trades)

    df = PnLAggregator.trades_frame(trades, ledger.events)

    assert list(df.columns) == TRADE_COLUMNS
    assert len(df) == 3
    sell = df[df["trade_id"] == "S1"].iloc[0]
    assert sell["realized_pnl"] == Decimal("200")
    assert df[df["trade_id"] == "B1"].iloc[0]["realized_pnl"] is None


def test_events_frame_lists_lot_matches():
    trades = [
        make_trade("B1", "buy", "3", "10", when=utc(2024, 1, 1)),
        make_trade("B2", "buy", "5", "12", when=utc(2024, 1, 2)),
        make_trade("S1", "sell", "6", "15", when=utc(2024, 1, 3)),
    ]
    ledger = FifoLedger(PAIR).process_all(trades)

    df = PnLAggregator.events_frame(ledger.events)

    assert list(df.columns) == EVENT_COLUMNS
    assert df["lot_trade_id"].tolist() == ["B1", "B2"]
    assert sum(df["cost_basis"]) == Decimal("66")


def test_empty_frames():
    assert PnLAggregator.trades_frame([]).empty
    assert PnLAggregator.events_frame([]).empty
