# fifo_pnl/io/importer.py
"""Idempotent caching of raw Kraken fills and closed orders."""

from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple
import logging
from sqlmodel import Session, select, func

from fifo_pnl.db.models import CachedOrder, CachedTrade
from fifo_pnl.domain.errors import MalformedRecord

logger = logging.getLogger(__name__)


def _time_sort(txid: str, value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise MalformedRecord(
            f"Trade {txid}: cannot parse time {value!r}", record_id=txid, field="time"
        ) from None


def _opt_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


class FillImporter:
    """Stores and reloads raw records, skipping ones already cached."""

    @staticmethod
    def _existing(session: Session, model, txids: Iterable[str]) -> set:
        txids = list(txids)
        if not txids:
            return set()
        rows = session.exec(select(model.txid).where(model.txid.in_(txids))).all()
        # rows may come back as ["abc"] or [("abc",)] depending on the stack
        return {r[0] if isinstance(r, tuple) else r for r in rows}

    @staticmethod
    def import_trades(
        session: Session,
        raw_trades: List[Mapping[str, Any]],
    ) -> Tuple[int, int, List[str]]:
        """
        Cache raw TradesHistory records.

        Idempotent rules:
        - A record without a txid is a MalformedRecord.
        - Skip if the txid is already cached.
        - Skip duplicates within the same batch.

        Returns:
            (total_records, newly_inserted, warnings)
        """
        for raw in raw_trades:
            if not (raw.get("txid") or "").strip():
                raise MalformedRecord(
                    f"Trade at {raw.get('time')!r} on {raw.get('pair')!r} has no txid", field="txid"
                )

        warnings: List[str] = []
        newly_inserted = 0

        existing_ids = FillImporter._existing(
            session, CachedTrade, ((r.get("txid") or "").strip() for r in raw_trades)
        )
        seen_in_batch = set()

        for raw in raw_trades:
            txid = (raw.get("txid") or "").strip()
            if txid in seen_in_batch:
                warnings.append(f"Skipped duplicate in batch: {txid}")
                continue
            seen_in_batch.add(txid)
            if txid in existing_ids:
                continue

            trade_id = str(raw.get("trade_id") or "").strip()
            session.add(
                CachedTrade(
                    txid=txid,
                    ordertxid=(raw.get("ordertxid") or "").strip(),
                    pair=str(raw.get("pair", "")),
                    time=str(raw.get("time", "")),
                    time_sort=_time_sort(txid, raw.get("time")),
                    type=str(raw.get("type", "")),
                    price=str(raw.get("price", "")),
                    vol=str(raw.get("vol", "")),
                    fee=_opt_str(raw.get("fee")),
                    cost=_opt_str(raw.get("cost")),
                    ordertype=_opt_str(raw.get("ordertype")),
                    trade_id=int(trade_id) if trade_id.isdigit() else None,
                )
            )
            newly_inserted += 1
            existing_ids.add(txid)

        if newly_inserted:
            session.commit()
            logger.info("Cached %d new fills", newly_inserted)

        return len(raw_trades), newly_inserted, warnings

    @staticmethod
    def import_orders(
        session: Session,
        raw_orders: List[Mapping[str, Any]],
    ) -> Tuple[int, int, List[str]]:
        """Cache raw ClosedOrders records; same rules as import_trades."""
        for raw in raw_orders:
            if not (raw.get("txid") or "").strip():
                raise MalformedRecord("Closed order has no txid", field="txid")

        warnings: List[str] = []
        newly_inserted = 0

        existing_ids = FillImporter._existing(
            session, CachedOrder, ((r.get("txid") or "").strip() for r in raw_orders)
        )
        seen_in_batch = set()

        for raw in raw_orders:
            txid = (raw.get("txid") or "").strip()
            if txid in seen_in_batch:
                warnings.append(f"Skipped duplicate in batch: {txid}")
                continue
            seen_in_batch.add(txid)
            if txid in existing_ids:
                continue

            userref = raw.get("userref")
            try:
                userref = int(userref) if userref not in (None, "") else None
            except (TypeError, ValueError):
                raise MalformedRecord(
                    f"Order {txid}: userref is not an integer: {userref!r}",
                    record_id=txid,
                    field="userref",
                ) from None

            descr: Dict[str, Any] = raw.get("descr") or {}
            session.add(
                CachedOrder(
                    txid=txid,
                    userref=userref,
                    status=_opt_str(raw.get("status")),
                    pair=_opt_str(descr.get("pair")),
                    closetm=_opt_str(raw.get("closetm")),
                )
            )
            newly_inserted += 1
            existing_ids.add(txid)

        if newly_inserted:
            session.commit()
            logger.info("Cached %d new closed orders", newly_inserted)

        return len(raw_orders), newly_inserted, warnings

    @staticmethod
    def load_trades(session: Session, pair: str) -> List[Dict[str, Any]]:
        stmt = (
            select(CachedTrade)
            .where(CachedTrade.pair == pair)
            .order_by(CachedTrade.time_sort, CachedTrade.txid)
        )
        return [row.to_raw() for row in session.exec(stmt).all()]

    @staticmethod
    def load_orders(session: Session, order_reference: Optional[int] = None) -> List[Dict[str, Any]]:
        stmt = select(CachedOrder)
        if order_reference is not None:
            stmt = stmt.where(CachedOrder.userref == order_reference)
        return [row.to_raw() for row in session.exec(stmt).all()]

    @staticmethod
    def latest_trade_time(session: Session, pair: str) -> Optional[float]:
        """Newest cached fill time of ``pair`` (start point of an incremental fetch)."""
        return session.exec(
            select(func.max(CachedTrade.time_sort)).where(CachedTrade.pair == pair)
        ).first()

    @staticmethod
    def latest_order_time(session: Session, order_reference: Optional[int] = None) -> Optional[float]:
        stmt = select(CachedOrder.closetm)
        if order_reference is not None:
            stmt = stmt.where(CachedOrder.userref == order_reference)
        rows = session.exec(stmt).all()
        times = [float(r) for r in rows if r]
        return max(times) if times else None
