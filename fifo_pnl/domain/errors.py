# fifo_pnl/domain/errors.py
"""Errors raised while normalizing fills and matching lots."""

from datetime import datetime
from decimal import Decimal
from typing import Optional


class FifoPnLError(Exception):
    """Base class for every error the calculator reports."""


class ConfigurationError(FifoPnLError):
    """Missing credentials or invalid settings."""


class MalformedRecord(FifoPnLError):
    """A raw exchange record lacks a required field or holds an invalid value."""

    def __init__(self, message: str, record_id: Optional[str] = None, field: Optional[str] = None):
        self.record_id = record_id
        self.field = field
        super().__init__(message)


class UnknownTier(FifoPnLError):
    """Tier (or liquidity side) is not part of the fee schedule."""

    def __init__(self, tier: str):
        self.tier = tier
        super().__init__(f"Unknown tier: {tier!r}")


class InsufficientInventory(FifoPnLError):
    """A sell needs more volume than the open lots hold."""

    def __init__(
        self,
        pair: str,
        trade_id: str,
        timestamp: datetime,
        requested: Decimal,
        available: Decimal,
    ):
        self.pair = pair
        self.trade_id = trade_id
        self.timestamp = timestamp
        self.requested = requested
        self.available = available
        super().__init__(
            f"{pair}: sell {trade_id} at {timestamp.isoformat()} needs {requested} "
            f"but only {available} is held (missing history or external transfers?)"
        )


class OutOfOrderTrade(FifoPnLError):
    """Trade stream is not sorted by timestamp."""

    def __init__(
        self,
        pair: str,
        trade_id: str,
        timestamp: datetime,
        previous_timestamp: datetime,
    ):
        self.pair = pair
        self.trade_id = trade_id
        self.timestamp = timestamp
        self.previous_timestamp = previous_timestamp
        super().__init__(
            f"{pair}: trade {trade_id} at {timestamp.isoformat()} precedes "
            f"the previous trade at {previous_timestamp.isoformat()}"
        )
