# fifo_pnl/domain/window.py
"""Reporting window: which realized events and trades are reported."""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional
import pytz


def in_window(
    timestamp: datetime,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> bool:
    """True if ``start <= timestamp < end``; a missing bound is open."""
    if start is not None and timestamp < start:
        return False
    if end is not None and timestamp >= end:
        return False
    return True


def _local_midnight(day: date, tz) -> datetime:
    return tz.localize(datetime(day.year, day.month, day.day)).astimezone(pytz.UTC)


@dataclass(frozen=True)
class ReportingWindow:
    """Half-open [start, end) interval in UTC. Never influences lot matching."""
    start: Optional[datetime] = None
    end: Optional[datetime] = None

    def __post_init__(self):
        if self.start is not None and self.end is not None and self.start >= self.end:
            raise ValueError(
                f"Window start {self.start.isoformat()} must be before end {self.end.isoformat()}"
            )

    def contains(self, timestamp: datetime) -> bool:
        return in_window(timestamp, self.start, self.end)

    @property
    def is_unbounded(self) -> bool:
        return self.start is None and self.end is None

    @classmethod
    def unbounded(cls) -> "ReportingWindow":
        return cls()

    @classmethod
    def for_year(cls, year: int, timezone: str = "UTC") -> "ReportingWindow":
        """Jan 1 00:00 of ``year`` up to Jan 1 00:00 of the next year."""
        tz = pytz.timezone(timezone)
        return cls(
            start=_local_midnight(date(year, 1, 1), tz),
            end=_local_midnight(date(year + 1, 1, 1), tz),
        )

    @classmethod
    def from_dates(
        cls,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        timezone: str = "UTC",
    ) -> "ReportingWindow":
        """
        Build a window from calendar dates in the report timezone.

        Args:
            start_date: first reported day (inclusive)
            end_date: last reported day (inclusive)
            timezone: report timezone name (e.g. "Europe/Berlin")
        """
        tz = pytz.timezone(timezone)
        start = _local_midnight(start_date, tz) if start_date else None
        end = _local_midnight(end_date + timedelta(days=1), tz) if end_date else None
        return cls(start=start, end=end)

    @staticmethod
    def parse_date(value: str) -> date:
        """Parse a YYYY-MM-DD string."""
        return datetime.strptime(value, "%Y-%m-%d").date()
