# fifo_pnl/service.py
"""
PnL computation for one pair.
Fetches the full history, runs the FIFO ledger and aggregates the report.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple
import logging

from sqlmodel import Session

from fifo_pnl.domain.fees import fee_schedule
from fifo_pnl.domain.ledger import FifoLedger
from fifo_pnl.domain.metrics import PnLAggregator
from fifo_pnl.domain.models import OpenPosition, PnLSummary, RealizedEvent, Trade
from fifo_pnl.domain.window import ReportingWindow
from fifo_pnl.io.importer import FillImporter
from fifo_pnl.io.kraken_parser import KrakenFillNormalizer

logger = logging.getLogger(__name__)

# Overlap for incremental fetches; duplicates are dropped by txid.
CACHE_OVERLAP_SECONDS = 1


@dataclass(frozen=True)
class PnLReport:
    summary: PnLSummary
    trades: Tuple[Trade, ...]
    events: Tuple[RealizedEvent, ...]
    position: OpenPosition


class PnLService:
    """
    Wires the exchange client to the FIFO engine.

    ``client`` must provide fetch_trades, fetch_closed_orders and
    fetch_current_price (see KrakenClient). With a ``cache_session`` the
    raw records are cached and only newer ones are fetched.
    """

    def __init__(self, client, cache_session: Optional[Session] = None):
        self.client = client
        self.cache_session = cache_session

    def compute(
        self,
        pair: str,
        order_reference: Optional[int] = None,
        tier: str = "starter",
        window: Optional[ReportingWindow] = None,
        current_price: Optional[Decimal] = None,
    ) -> PnLSummary:
        return self.run(
            pair,
            order_reference=order_reference,
            tier=tier,
            window=window,
            current_price=current_price,
        ).summary

    def run(
        self,
        pair: str,
        order_reference: Optional[int] = None,
        tier: str = "starter",
        window: Optional[ReportingWindow] = None,
        current_price: Optional[Decimal] = None,
    ) -> PnLReport:
        """
        Compute realized/unrealized PnL for ``pair``.

        The reporting window only filters what is reported; the ledger
        always sees the complete history so cost bases stay correct.
        """
        # unknown tiers fail before any request is made
        fee_schedule(tier)
        window = window or ReportingWindow.unbounded()

        raw_trades, raw_orders = self._fetch(pair, order_reference)

        trades = KrakenFillNormalizer.normalize(
            raw_trades,
            raw_orders,
            pair=pair,
            order_reference=order_reference,
            tier=tier,
        )
        logger.info("Processing %d trades for %s", len(trades), pair)

        ledger = FifoLedger(pair).process_all(trades)
        position = ledger.open_position

        if current_price is None:
            current_price = self.client.fetch_current_price(pair)

        summary = PnLAggregator.summarize(
            trades,
            ledger.events,
            position,
            current_price=current_price,
            window=window,
            pair=pair,
        )
        return PnLReport(
            summary=summary,
            trades=tuple(trades),
            events=ledger.events,
            position=position,
        )

    def _fetch(
        self, pair: str, order_reference: Optional[int]
    ) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
        if self.cache_session is None:
            raw_trades = self.client.fetch_trades(pair, order_reference)
            raw_orders = (
                self.client.fetch_closed_orders(pair, order_reference)
                if order_reference is not None
                else []
            )
            return raw_trades, raw_orders

        session = self.cache_session

        latest = FillImporter.latest_trade_time(session, pair)
        start = latest - CACHE_OVERLAP_SECONDS if latest is not None else None
        _, _, warnings = FillImporter.import_trades(
            session, self.client.fetch_trades(pair, order_reference, start=start)
        )
        for warning in warnings:
            logger.warning(warning)
        raw_trades = FillImporter.load_trades(session, pair)

        raw_orders: List[Dict[str, Any]] = []
        if order_reference is not None:
            latest = FillImporter.latest_order_time(session, order_reference)
            start = latest - CACHE_OVERLAP_SECONDS if latest is not None else None
            _, _, warnings = FillImporter.import_orders(
                session, self.client.fetch_closed_orders(pair, order_reference, start=start)
            )
            for warning in warnings:
                logger.warning(warning)
            raw_orders = FillImporter.load_orders(session, order_reference)

        return raw_trades, raw_orders
