# backend/invest_snapshots/utils/months.py
"""
Calendar month arithmetic for the snapshot engine.

Snapshots are keyed by (month, year) pairs, and every recompute walks
forwards and backwards across year boundaries. MonthKey keeps that
arithmetic in one place so no caller ever does `month + 1` by hand.

Timestamps are Unix seconds. Converting one to a month needs a calendar
time zone: pass a tzinfo, or None for the server's local time.

Usage:
    from invest_snapshots.utils.months import MonthKey

    key = MonthKey.from_timestamp(1706745600, tz)
    key.shift(-2)          # two months earlier, wrapping the year
    key.start_timestamp()  # first second of the month
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, tzinfo
from typing import Iterator


@dataclass(frozen=True, order=True)
class MonthKey:
    """
    A calendar month. Field order (year, month) makes comparisons chronological.
    """

    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValueError(f"Month must be between 1 and 12, got {self.month}")

    @classmethod
    def of(cls, month: int, year: int) -> MonthKey:
        """Build from the (month, year) argument order used by the ledger API."""
        return cls(year=year, month=month)

    @classmethod
    def from_timestamp(cls, timestamp: int | float, tz: tzinfo | None = None) -> MonthKey:
        """Month containing a Unix timestamp, in `tz` (local time when None)."""
        moment = datetime.fromtimestamp(timestamp, tz)
        return cls(year=moment.year, month=moment.month)

    @classmethod
    def from_date(cls, d: date) -> MonthKey:
        return cls(year=d.year, month=d.month)

    @classmethod
    def current(cls, tz: tzinfo | None = None) -> MonthKey:
        """The month we are in right now."""
        now = datetime.now(tz)
        return cls(year=now.year, month=now.month)

    def shift(self, months: int) -> MonthKey:
        """
        Move forwards (positive) or backwards (negative) by whole months.

        Examples:
            >>> MonthKey(2024, 11).shift(2)
            MonthKey(year=2025, month=1)
            >>> MonthKey(2024, 2).shift(-2)
            MonthKey(year=2023, month=12)
        """
        index = self.year * 12 + (self.month - 1) + months
        return MonthKey(year=index // 12, month=index % 12 + 1)

    def start_timestamp(self, tz: tzinfo | None = None) -> int:
        """Unix timestamp of the first second of this month in `tz`."""
        return int(datetime(self.year, self.month, 1, tzinfo=tz).timestamp())

    def end_timestamp(self, tz: tzinfo | None = None) -> int:
        """Unix timestamp of the last second of this month in `tz`."""
        return self.shift(1).start_timestamp(tz) - 1

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


def iter_months(first: MonthKey, last: MonthKey) -> Iterator[MonthKey]:
    """Yield every month from `first` to `last`, both inclusive."""
    current = first
    while current <= last:
        yield current
        current = current.shift(1)
