# fifo_pnl/cli.py
"""Command-line entry point: compute FIFO PnL for Kraken trades."""

import argparse
import logging
import sys
from decimal import Decimal, InvalidOperation
from typing import List, Optional
import pytz

from fifo_pnl.config import Settings
from fifo_pnl.db.session import create_cache_engine, get_session, init_db
from fifo_pnl.domain.errors import FifoPnLError
from fifo_pnl.domain.fees import TIERS, fee_schedule
from fifo_pnl.domain.metrics import PnLAggregator
from fifo_pnl.domain.models import PnLSummary
from fifo_pnl.domain.window import ReportingWindow
from fifo_pnl.io.kraken_client import KrakenClient
from fifo_pnl.logging_config import setup_logging
from fifo_pnl.service import PnLReport, PnLService

logger = logging.getLogger(__name__)

RULER = "*" * 80


def _date(value: str):
    try:
        return ReportingWindow.parse_date(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM-DD, got {value!r}") from None


def _decimal(value: str) -> Decimal:
    try:
        number = Decimal(value)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"not a number: {value!r}") from None
    if not number.is_finite() or number < 0:
        raise argparse.ArgumentTypeError(f"price must be a non-negative number: {value!r}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fifo-pnl",
        description="Compute FIFO PnL for Kraken trades",
    )
    parser.add_argument("--symbol", required=True, help="Trading pair symbol (e.g., XXBTZEUR)")
    parser.add_argument("--tier", required=True, choices=TIERS, help="Account tier")
    parser.add_argument("--start", type=_date, help="First reported day (e.g., 2023-01-01)")
    parser.add_argument("--end", type=_date, help="Last reported day (e.g., 2023-12-31)")
    parser.add_argument("--year", type=int, help="Report a calendar year (instead of --start/--end)")
    parser.add_argument("--timezone", default="UTC", help="Timezone of the reporting window (default: UTC)")
    parser.add_argument("--userref", type=int, help="A user reference id to filter trades")
    parser.add_argument("--price", type=_decimal, help="Value the open position at this price")
    parser.add_argument("--csv", metavar="PATH", help="Write the processed trades to a CSV file")
    parser.add_argument("--cache", action="store_true", help="Cache fetched fills in DATABASE_URL")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def build_window(args: argparse.Namespace) -> ReportingWindow:
    if args.year is not None:
        return ReportingWindow.for_year(args.year, timezone=args.timezone)
    return ReportingWindow.from_dates(args.start, args.end, timezone=args.timezone)


def format_summary(summary: PnLSummary) -> List[str]:
    return [
        f"Realized PnL: {summary.realized_pnl}",
        f"Unrealized PnL: {summary.unrealized_pnl}",
        f"Balance: {summary.balance}",
        f"Current price: {summary.current_price}",
        f"Average cost of open position: {summary.average_cost}",
        f"Total buy volume (base): {summary.total_buy_volume_base}",
        f"Total sell volume (base): {summary.total_sell_volume_base}",
        f"Total buy volume (quote): {summary.total_buy_volume_quote}",
        f"Total sell volume (quote): {summary.total_sell_volume_quote}",
        f"Total cost of sold assets: {summary.total_cost_of_sold_assets}",
        f"Total value of sold assets: {summary.total_value_of_sold_assets}",
        f"Total fees: {summary.total_fees}",
        f"Trades in window: {summary.trade_count}",
    ]


def print_report(report: PnLReport, out=None) -> None:
    out = out or sys.stdout
    print(RULER, file=out)
    for trade in report.trades:
        print(
            f"{trade.timestamp.isoformat()} {trade.trade_id} {trade.side:<4} "
            f"vol={trade.volume} price={trade.price} fee={trade.fee}",
            file=out,
        )
    print(RULER, file=out)
    for line in format_summary(report.summary):
        print(line, file=out)
    print(RULER, file=out)


def main(argv: Optional[List[str]] = None, client=None, settings: Optional[Settings] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.year is not None and (args.start or args.end):
        parser.error("--year cannot be combined with --start/--end")

    setup_logging(logging.DEBUG if args.verbose else logging.INFO)

    try:
        window = build_window(args)
    except (ValueError, pytz.UnknownTimeZoneError) as e:
        parser.error(str(e))

    session = None
    try:
        settings = settings or Settings.from_env()
        rates = fee_schedule(args.tier)

        if client is None:
            settings.require_credentials()
            client = KrakenClient(
                api_key=settings.api_key,
                secret_key=settings.secret_key,
                base_url=settings.api_url,
                request_delay=rates.request_delay,
                timeout=settings.request_timeout,
            )

        if args.cache:
            engine = create_cache_engine(settings.database_url)
            init_db(engine)
            session = get_session(engine)

        report = PnLService(client, cache_session=session).run(
            args.symbol,
            order_reference=args.userref,
            tier=args.tier,
            window=window,
            current_price=args.price,
        )
    except FifoPnLError as e:
        logger.error("%s", e)
        return 1
    finally:
        if session is not None:
            session.close()

    print_report(report)

    if args.csv:
        PnLAggregator.trades_frame(report.trades, report.events).to_csv(args.csv, index=False)
        logger.info("Wrote %d trades to %s", len(report.trades), args.csv)

    return 0


if __name__ == "__main__":
    sys.exit(main())
