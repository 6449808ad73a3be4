# fifo_pnl/io/kraken_parser.py
"""
Kraken trade/order normalizer.
Turns raw TradesHistory and ClosedOrders records into sorted, deduplicated trades.
"""

from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Mapping, Optional
import logging
import pytz

from fifo_pnl.domain.errors import MalformedRecord
from fifo_pnl.domain.fees import resolve
from fifo_pnl.domain.models import BUY, SELL, Trade

logger = logging.getLogger(__name__)


class KrakenFillNormalizer:
    """Normalize raw Kraken records into Trade values."""

    REQUIRED_TRADE_FIELDS = ("price", "vol", "time", "type")

    @staticmethod
    def parse_timestamp(value: Any) -> datetime:
        """
        Parse a Kraken epoch timestamp to an aware UTC datetime.

        Args:
            value: seconds since epoch, e.g. 1688667796.8802 or "1688667796.8802"

        Returns:
            datetime in UTC
        """
        try:
            seconds = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValueError(f"Could not parse timestamp: {value!r}") from None
        if not seconds.is_finite():
            raise ValueError(f"Could not parse timestamp: {value!r}")
        return datetime.fromtimestamp(float(seconds), tz=pytz.UTC)

    @staticmethod
    def parse_decimal(record_id: str, name: str, value: Any) -> Decimal:
        try:
            number = Decimal(str(value).strip())
        except InvalidOperation:
            raise MalformedRecord(
                f"Record {record_id}: field {name!r} is not a number: {value!r}",
                record_id=record_id,
                field=name,
            ) from None
        if not number.is_finite():
            raise MalformedRecord(
                f"Record {record_id}: field {name!r} is not finite: {value!r}",
                record_id=record_id,
                field=name,
            )
        return number

    @staticmethod
    def order_references(raw_orders: Iterable[Mapping[str, Any]]) -> Dict[str, Optional[int]]:
        """Map order txid -> userref for closed orders."""
        refs: Dict[str, Optional[int]] = {}
        for order in raw_orders:
            txid = (order.get("txid") or "").strip()
            if not txid:
                raise MalformedRecord("Closed order without txid", field="txid")
            userref = order.get("userref")
            try:
                refs[txid] = int(userref) if userref not in (None, "") else None
            except (TypeError, ValueError):
                raise MalformedRecord(
                    f"Order {txid}: userref is not an integer: {userref!r}",
                    record_id=txid,
                    field="userref",
                ) from None
        return refs

    @staticmethod
    def parse_trade(
        raw: Mapping[str, Any],
        taker_rate: Optional[Decimal] = None,
        order_reference: Optional[int] = None,
    ) -> Trade:
        """Convert one raw TradesHistory record; ``taker_rate`` prices a missing fee."""
        trade_id = (raw.get("txid") or "").strip()
        if not trade_id:
            raise MalformedRecord("Trade record without txid", field="txid")

        for name in KrakenFillNormalizer.REQUIRED_TRADE_FIELDS:
            if raw.get(name) in (None, ""):
                raise MalformedRecord(
                    f"Trade {trade_id}: missing required field {name!r}",
                    record_id=trade_id,
                    field=name,
                )

        side = str(raw["type"]).strip().lower()
        if side not in (BUY, SELL):
            raise MalformedRecord(
                f"Trade {trade_id}: unsupported side {raw['type']!r}",
                record_id=trade_id,
                field="type",
            )

        price = KrakenFillNormalizer.parse_decimal(trade_id, "price", raw["price"])
        volume = KrakenFillNormalizer.parse_decimal(trade_id, "vol", raw["vol"])
        if price <= 0 or volume <= 0:
            raise MalformedRecord(
                f"Trade {trade_id}: price and volume must be positive ({price}, {volume})",
                record_id=trade_id,
                field="price" if price <= 0 else "vol",
            )

        try:
            timestamp = KrakenFillNormalizer.parse_timestamp(raw["time"])
        except (ValueError, OverflowError, OSError) as e:
            raise MalformedRecord(
                f"Trade {trade_id}: {e}", record_id=trade_id, field="time"
            ) from e

        fee_estimated = False
        if raw.get("fee") in (None, ""):
            if taker_rate is None:
                raise MalformedRecord(
                    f"Trade {trade_id}: no fee reported and no fee tier given",
                    record_id=trade_id,
                    field="fee",
                )
            fee = price * volume * taker_rate
            fee_estimated = True
        else:
            fee = KrakenFillNormalizer.parse_decimal(trade_id, "fee", raw["fee"])
            if fee < 0:
                raise MalformedRecord(
                    f"Trade {trade_id}: negative fee {fee}", record_id=trade_id, field="fee"
                )

        sequence = raw.get("trade_id")
        try:
            sequence = int(sequence) if sequence not in (None, "") else None
        except (TypeError, ValueError):
            sequence = None

        return Trade(
            trade_id=trade_id,
            pair=str(raw.get("pair", "")).strip(),
            timestamp=timestamp,
            side=side,
            price=price,
            volume=volume,
            fee=fee,
            order_id=(raw.get("ordertxid") or "").strip(),
            order_reference=order_reference,
            sequence=sequence,
            order_type=(raw.get("ordertype") or "").strip() or None,
            fee_estimated=fee_estimated,
        )

    @staticmethod
    def normalize(
        raw_trades: Iterable[Mapping[str, Any]],
        raw_orders: Iterable[Mapping[str, Any]] = (),
        pair: Optional[str] = None,
        order_reference: Optional[int] = None,
        tier: Optional[str] = None,
    ) -> List[Trade]:
        """
        Build the chronologically sorted trade stream for one pair.

        Args:
            raw_trades: TradesHistory records (each carrying its ``txid``)
            raw_orders: ClosedOrders records; they provide the userref of each fill
            pair: Kraken pair name (e.g. "XXBTZEUR"); other pairs are skipped
            order_reference: keep only fills of orders with this userref
            tier: fee tier whose taker rate prices fills that report no fee

        Returns:
            List of Trade sorted by (timestamp, sequence, trade_id)
        """
        taker_rate = resolve(tier, "taker") if tier is not None else None
        refs = KrakenFillNormalizer.order_references(raw_orders)

        seen: Dict[str, Mapping[str, Any]] = {}
        trades: List[Trade] = []
        skipped_pair = 0
        skipped_ref = 0

        for raw in raw_trades:
            if pair is not None and str(raw.get("pair", "")).strip() != pair:
                skipped_pair += 1
                continue

            trade_id = (raw.get("txid") or "").strip()
            if trade_id in seen:
                if dict(seen[trade_id]) != dict(raw):
                    logger.warning("Conflicting duplicate fill %s; keeping the first one", trade_id)
                continue

            ordertxid = (raw.get("ordertxid") or "").strip()
            userref = refs.get(ordertxid)
            if order_reference is not None and (ordertxid not in refs or userref != order_reference):
                skipped_ref += 1
                continue

            trade = KrakenFillNormalizer.parse_trade(raw, taker_rate=taker_rate, order_reference=userref)
            seen[trade_id] = raw
            trades.append(trade)

        if skipped_pair:
            logger.debug("Skipped %d fills of other pairs", skipped_pair)
        if skipped_ref:
            logger.debug("Skipped %d fills outside userref %s", skipped_ref, order_reference)

        estimated = sum(1 for t in trades if t.fee_estimated)
        if estimated:
            logger.warning("%d fills had no fee; estimated with the taker rate", estimated)

        trades.sort(key=lambda t: t.sort_key)
        return trades
