"""Test configuration and fixtures."""

from decimal import Decimal
from datetime import datetime

import pytest
import pytz
from sqlmodel import Session, create_engine, SQLModel
from sqlmodel.pool import StaticPool

from fifo_pnl.db import models  # noqa: F401  (registers the cache tables)
from fifo_pnl.domain.models import Trade

PAIR = "XXBTZEUR"


def utc(*args) -> datetime:
    return pytz.UTC.localize(datetime(*args))


def epoch(*args) -> float:
    return utc(*args).timestamp()


def make_trade(trade_id, side, volume, price, fee="0", when=None, pair=PAIR):
    return Trade(
        trade_id=trade_id,
        pair=pair,
        timestamp=when or utc(2024, 1, 1),
        side=side,
        price=Decimal(price),
        volume=Decimal(volume),
        fee=Decimal(fee),
    )


def raw_trade(txid, side, vol, price, fee="0", time=None, ordertxid="O1", pair=PAIR, **extra):
    record = {
        "txid": txid,
        "ordertxid": ordertxid,
        "pair": pair,
        "time": time if time is not None else epoch(2024, 1, 1),
        "type": side,
        "ordertype": "limit",
        "price": price,
        "fee": fee,
        "vol": vol,
    }
    record.update(extra)
    return record


class StubClient:
    """Stands in for KrakenClient; records the calls it receives."""

    def __init__(self, trades=(), orders=(), price="0"):
        self.trades = list(trades)
        self.orders = list(orders)
        self.price = Decimal(price)
        self.calls = []

    def fetch_trades(self, pair, order_reference=None, start=None):
        self.calls.append(("trades", pair, order_reference, start))
        return [
            dict(t) for t in self.trades
            if t.get("pair") == pair and (start is None or float(t["time"]) > start)
        ]

    def fetch_closed_orders(self, pair, order_reference=None, start=None):
        self.calls.append(("orders", pair, order_reference, start))
        return [
            dict(o) for o in self.orders
            if order_reference is None or o.get("userref") == order_reference
        ]

    def fetch_current_price(self, pair):
        self.calls.append(("price", pair))
        return self.price


@pytest.fixture(name="session")
def session_fixture():
    """Create in-memory SQLite fill cache."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        yield session


@pytest.fixture(name="history")
def history_fixture():
    """Raw Kraken fills spanning two years plus two closed orders."""
    trades = [
        raw_trade("T1", "buy", "1.0", "100", fee="0", time=epoch(2023, 6, 1), ordertxid="O1"),
        raw_trade("T2", "buy", "1.0", "200", fee="0", time=epoch(2024, 2, 1), ordertxid="O2"),
        raw_trade("T3", "sell", "1.0", "300", fee="0", time=epoch(2024, 3, 1), ordertxid="O3"),
        raw_trade("X1", "buy", "5.0", "10", fee="0", time=epoch(2024, 3, 2), pair="XETHZEUR"),
    ]
    orders = [
        {"txid": "O1", "userref": 7, "status": "closed", "descr": {"pair": "XBTEUR"}, "closetm": epoch(2023, 6, 1)},
        {"txid": "O2", "userref": 8, "status": "closed", "descr": {"pair": "XBTEUR"}, "closetm": epoch(2024, 2, 1)},
        {"txid": "O3", "userref": 7, "status": "closed", "descr": {"pair": "XBTEUR"}, "closetm": epoch(2024, 3, 1)},
    ]
    return trades, orders


@pytest.fixture(name="client")
def client_fixture(history):
    trades, orders = history
    return StubClient(trades=trades, orders=orders, price="250")
