# fifo_pnl/db/models.py
"""
SQLModel tables caching raw Kraken records between runs.
Values are stored as the exchange's strings so decimals stay exact.
"""

from datetime import datetime, timezone
from typing import Optional
from sqlmodel import SQLModel, Field
import uuid


class CachedTrade(SQLModel, table=True):
    """Raw TradesHistory record."""
    __tablename__ = "cached_trade"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    txid: str = Field(unique=True, index=True)  # Kraken fill id
    ordertxid: str = Field(default="", index=True)
    pair: str = Field(index=True)
    time: str = Field()  # epoch seconds as sent by Kraken
    time_sort: float = Field(index=True)
    type: str = Field()  # buy or sell
    price: str = Field()
    vol: str = Field()
    fee: Optional[str] = Field(default=None)
    cost: Optional[str] = Field(default=None)
    ordertype: Optional[str] = Field(default=None)
    trade_id: Optional[int] = Field(default=None)  # exchange sequence
    fetched_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_raw(self) -> dict:
        raw = {
            "txid": self.txid,
            "ordertxid": self.ordertxid,
            "pair": self.pair,
            "time": self.time,
            "type": self.type,
            "price": self.price,
            "vol": self.vol,
            "fee": self.fee,
            "cost": self.cost,
            "ordertype": self.ordertype,
        }
        if self.trade_id is not None:
            raw["trade_id"] = self.trade_id
        return raw


class CachedOrder(SQLModel, table=True):
    """Raw ClosedOrders record (only what scoping by userref needs)."""
    __tablename__ = "cached_order"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    txid: str = Field(unique=True, index=True)  # Kraken order id
    userref: Optional[int] = Field(default=None, index=True)
    status: Optional[str] = Field(default=None)
    pair: Optional[str] = Field(default=None)  # descr.pair (altname)
    closetm: Optional[str] = Field(default=None)
    fetched_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_raw(self) -> dict:
        return {
            "txid": self.txid,
            "userref": self.userref,
            "status": self.status,
            "closetm": self.closetm,
            "descr": {"pair": self.pair},
        }
