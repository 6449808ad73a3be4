"""Test FIFO lot matching."""

from decimal import Decimal

import pytest

from conftest import PAIR, make_trade, utc
from fifo_pnl.domain.errors import InsufficientInventory, OutOfOrderTrade
from fifo_pnl.domain.ledger import FifoLedger


def test_partial_lot_cost_basis():
    # Buy 3 @ 10, Buy 5 @ 12, Sell 6 @ 15
    # FIFO cost basis = 3*10 + 3*12 = 66, proceeds = 90
    ledger = FifoLedger(PAIR).process_all([
        make_trade("B1", "buy", "3", "10", when=utc(2024, 1, 1)),
        make_trade("B2", "buy", "5", "12", when=utc(2024, 1, 2)),
        make_trade("S1", "sell", "6", "15", when=utc(2024, 1, 3)),
    ])

    (event,) = ledger.events
    assert event.cost_basis == Decimal("66")
    assert event.proceeds == Decimal("90")
    assert event.gain == Decimal("24")
    assert event.matched_volume == Decimal("6")
    assert [(m.lot_trade_id, m.volume) for m in event.matches] == [
        ("B1", Decimal("3")),
        ("B2", Decimal("3")),
    ]

    (lot,) = ledger.lots
    assert lot.trade_id == "B2"
    assert lot.remaining_volume == Decimal("2")
    assert lot.unit_cost == Decimal("12")


def test_fifo_consumes_oldest_lot_first():
    ledger = FifoLedger(PAIR)
    for i, price in enumerate(["10", "20", "30"], start=1):
        ledger.process(make_trade(f"B{i}", "buy", "1", price, when=utc(2024, 1, i)))

    first = ledger.process(make_trade("S1", "sell", "0.5", "40", when=utc(2024, 2, 1)))
    second = ledger.process(make_trade("S2", "sell", "1", "40", when=utc(2024, 2, 2)))

    assert [m.lot_trade_id for m in first.matches] == ["B1"]
    assert [m.lot_trade_id for m in second.matches] == ["B1", "B2"]
    assert [lot.trade_id for lot in ledger.lots] == ["B2", "B3"]


def test_exact_consumption_removes_lot():
    ledger = FifoLedger(PAIR).process_all([
        make_trade("B1", "buy", "2", "10", when=utc(2024, 1, 1)),
        make_trade("B2", "buy", "1", "11", when=utc(2024, 1, 2)),
        make_trade("S1", "sell", "2", "12", when=utc(2024, 1, 3)),
    ])

    assert [lot.trade_id for lot in ledger.lots] == ["B2"]
    assert all(lot.remaining_volume > 0 for lot in ledger.lots)


def test_fees_attributed_to_cost_and_proceeds():
    # unit cost = (2 * 100 + 4) / 2 = 102; sell 1 @ 150 with fee 3
    ledger = FifoLedger(PAIR).process_all([
        make_trade("B1", "buy", "2", "100", fee="4", when=utc(2024, 1, 1)),
        make_trade("S1", "sell", "1", "150", fee="3", when=utc(2024, 1, 2)),
    ])

    (event,) = ledger.events
    assert event.cost_basis == Decimal("102")
    assert event.proceeds == Decimal("147")
    assert event.gain == Decimal("45")
    assert ledger.open_position.weighted_average_cost == Decimal("102")


def test_whole_lot_sale_keeps_exact_cost():
    # unit cost = 31 / 3 does not terminate; the whole lot still costs 31
    ledger = FifoLedger(PAIR).process_all([
        make_trade("B1", "buy", "3", "10", fee="1", when=utc(2024, 1, 1)),
        make_trade("S1", "sell", "3", "20", when=utc(2024, 1, 2)),
    ])

    (event,) = ledger.events
    assert event.cost_basis == Decimal("31")
    assert event.gain == Decimal("29")
    assert ledger.lots == ()


def test_partial_sales_add_up_to_lot_cost():
    ledger = FifoLedger(PAIR).process_all([
        make_trade("B1", "buy", "3", "10", fee="1", when=utc(2024, 1, 1)),
        make_trade("S1", "sell", "1", "20", when=utc(2024, 1, 2)),
    ])
    position = ledger.open_position
    assert position.total_volume == Decimal("2")
    assert position.total_cost + ledger.events[0].cost_basis == Decimal("31")

    ledger.process(make_trade("S2", "sell", "2", "20", when=utc(2024, 1, 3)))

    assert sum(e.cost_basis for e in ledger.events) == Decimal("31")
    assert sum(e.gain for e in ledger.events) == Decimal("29")


def test_volume_is_conserved():
    trades = [
        make_trade("B1", "buy", "0.75", "100", when=utc(2024, 1, 1)),
        make_trade("S1", "sell", "0.3", "110", when=utc(2024, 1, 2)),
        make_trade("B2", "buy", "1.125", "105", when=utc(2024, 1, 3)),
        make_trade("S2", "sell", "0.9", "120", when=utc(2024, 1, 4)),
        make_trade("B3", "buy", "0.01", "99", when=utc(2024, 1, 5)),
        make_trade("S3", "sell", "0.5", "101", when=utc(2024, 1, 6)),
    ]
    ledger = FifoLedger(PAIR).process_all(trades)

    bought = sum(t.volume for t in trades if t.side == "buy")
    sold = sum(e.matched_volume for e in ledger.events)
    assert bought == sold + ledger.open_position.total_volume
    assert ledger.open_position.total_volume == Decimal("0.185")


def test_insufficient_inventory_names_the_sell():
    ledger = FifoLedger(PAIR)
    ledger.process(make_trade("B1", "buy", "1.0", "100", when=utc(2024, 1, 1)))
    sell_time = utc(2024, 5, 6, 7, 8, 9)

    with pytest.raises(InsufficientInventory) as exc_info:
        ledger.process(make_trade("S1", "sell", "2.0", "110", when=sell_time))

    err = exc_info.value
    assert err.trade_id == "S1"
    assert err.timestamp == sell_time
    assert err.requested == Decimal("2.0")
    assert err.available == Decimal("1.0")
    assert sell_time.isoformat() in str(err)
    # ledger state untouched
    assert ledger.lots[0].remaining_volume == Decimal("1.0")
    assert ledger.events == ()


def test_out_of_order_trade_rejected():
    ledger = FifoLedger(PAIR)
    ledger.process(make_trade("B1", "buy", "1", "100", when=utc(2024, 1, 2)))

    with pytest.raises(OutOfOrderTrade) as exc_info:
        ledger.process(make_trade("B0", "buy", "1", "90", when=utc(2024, 1, 1)))

    assert exc_info.value.trade_id == "B0"
    assert exc_info.value.previous_timestamp == utc(2024, 1, 2)


def test_equal_timestamps_are_accepted():
    when = utc(2024, 1, 1)
    ledger = FifoLedger(PAIR).process_all([
        make_trade("B1", "buy", "1", "100", when=when),
        make_trade("S1", "sell", "1", "100", when=when),
    ])
    assert len(ledger.events) == 1


def test_other_pair_rejected():
    with pytest.raises(ValueError):
        FifoLedger(PAIR).process(make_trade("B1", "buy", "1", "1", pair="XETHZEUR"))


def test_open_position_is_a_snapshot():
    ledger = FifoLedger(PAIR)
    ledger.process(make_trade("B1", "buy", "2", "100", when=utc(2024, 1, 1)))
    position = ledger.open_position

    ledger.process(make_trade("S1", "sell", "1", "120", when=utc(2024, 1, 2)))

    assert position.total_volume == Decimal("2")
    assert ledger.open_position.total_volume == Decimal("1")
    assert ledger.open_position.unrealized_pnl(Decimal("130")) == Decimal("30")
