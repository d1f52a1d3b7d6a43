# backend/tests/utils/test_months.py
"""
Tests for MonthKey calendar arithmetic.
"""

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from invest_snapshots.utils.months import MonthKey, iter_months

UTC = timezone.utc


class TestMonthKey:

    @pytest.mark.parametrize(
        ("start", "months", "expected"),
        [
            (MonthKey(2024, 11), 2, MonthKey(2025, 1)),
            (MonthKey(2024, 12), 1, MonthKey(2025, 1)),
            (MonthKey(2024, 1), -1, MonthKey(2023, 12)),
            (MonthKey(2024, 2), -2, MonthKey(2023, 12)),
            (MonthKey(2024, 1), -2, MonthKey(2023, 11)),
            (MonthKey(2024, 6), 0, MonthKey(2024, 6)),
            (MonthKey(2024, 3), 24, MonthKey(2026, 3)),
        ],
    )
    def test_shift(self, start, months, expected):
        assert start.shift(months) == expected

    @pytest.mark.parametrize("month", [0, 13])
    def test_rejects_invalid_month(self, month):
        with pytest.raises(ValueError):
            MonthKey(2024, month)

    def test_ordering_is_chronological(self):
        assert MonthKey(2023, 12) < MonthKey(2024, 1)
        assert MonthKey(2024, 2) > MonthKey(2024, 1)
        assert max(MonthKey(2023, 12), MonthKey(2024, 1)) == MonthKey(2024, 1)

    def test_of_uses_month_year_order(self):
        assert MonthKey.of(3, 2024) == MonthKey(year=2024, month=3)

    def test_from_timestamp_in_utc(self):
        moment = datetime(2024, 1, 31, 23, 30, tzinfo=UTC)

        assert MonthKey.from_timestamp(moment.timestamp(), UTC) == MonthKey(2024, 1)

    def test_from_timestamp_respects_zone(self):
        # 23:30 UTC on Jan 31 is already February in Berlin
        moment = datetime(2024, 1, 31, 23, 30, tzinfo=UTC)

        assert MonthKey.from_timestamp(moment.timestamp(), ZoneInfo("Europe/Berlin")) == MonthKey(2024, 2)

    def test_from_date(self):
        assert MonthKey.from_date(date(2024, 7, 4)) == MonthKey(2024, 7)

    def test_month_bounds(self):
        key = MonthKey(2024, 2)

        start = datetime.fromtimestamp(key.start_timestamp(UTC), UTC)
        end = datetime.fromtimestamp(key.end_timestamp(UTC), UTC)

        assert start == datetime(2024, 2, 1, tzinfo=UTC)
        assert end == datetime(2024, 3, 1, tzinfo=UTC) - timedelta(seconds=1)

    def test_december_end_rolls_year(self):
        end = datetime.fromtimestamp(MonthKey(2024, 12).end_timestamp(UTC), UTC)

        assert end == datetime(2024, 12, 31, 23, 59, 59, tzinfo=UTC)

    def test_str(self):
        assert str(MonthKey(2024, 3)) == "2024-03"


class TestIterMonths:

    def test_inclusive_across_year(self):
        months = list(iter_months(MonthKey(2024, 11), MonthKey(2025, 2)))

        assert months == [MonthKey(2024, 11), MonthKey(2024, 12), MonthKey(2025, 1), MonthKey(2025, 2)]

    def test_empty_when_reversed(self):
        assert list(iter_months(MonthKey(2024, 5), MonthKey(2024, 4))) == []
