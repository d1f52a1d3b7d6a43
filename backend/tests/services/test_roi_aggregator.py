# backend/tests/services/test_roi_aggregator.py
"""
Tests for ROIAggregator.

Pure calculations are tested on hand-built Snapshot records; balance and
yearly metrics are tested against a seeded in-memory database.

Manual calculations are documented next to each assertion.
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.orm import Session

from invest_snapshots.models import AssetStatus, AssetType, TransactionType
from invest_snapshots.services.exceptions import ValidationError
from invest_snapshots.services.roi import ROIAggregator
from invest_snapshots.services.snapshots import Snapshot, SnapshotWithAsset
from tests.conftest import create_asset, create_snapshot, create_transaction, create_user, ts

BUY = TransactionType.BUY
SELL = TransactionType.SELL


def snap(
        asset_id: int,
        month: int = 1,
        year: int = 2024,
        current_value: int = 0,
        invested: int = 0,
        withdrawn: int = 0,
        name: str | None = None,
        asset_type: AssetType = AssetType.ETF,
        status: AssetStatus = AssetStatus.ACTIVE,
) -> SnapshotWithAsset:
    """Factory: in-memory snapshot with asset metadata."""
    return SnapshotWithAsset(
        asset_id=asset_id,
        month=month,
        year=year,
        units=Decimal("1"),
        invested_amount=invested,
        withdrawn_amount=withdrawn,
        current_value=current_value,
        asset_name=name or f"Asset {asset_id}",
        asset_type=asset_type,
        asset_status=status,
    )


# =============================================================================
# PER-ASSET ROI
# =============================================================================

class TestAssetRoi:

    def test_roi_formula(self):
        # 900 - 1000 + 200 = 100
        snapshot = Snapshot(1, 3, 2024, Decimal("6"), 1000, 200, 900)

        assert ROIAggregator.asset_roi(snapshot) == 100

    def test_missing_snapshot_has_no_roi(self):
        assert ROIAggregator.asset_roi(None) is None
        assert ROIAggregator.asset_roi_percentage(None) is None

    def test_roi_percentage(self):
        # 100 / 1000 * 100 = 10.00
        snapshot = Snapshot(1, 3, 2024, Decimal("6"), 1000, 200, 900)

        assert ROIAggregator.asset_roi_percentage(snapshot) == Decimal("10.00")

    def test_negative_roi_percentage_rounds(self):
        # (200 - 300) / 300 * 100 = -33.333.. -> -33.33
        snapshot = Snapshot(1, 3, 2024, Decimal("1"), 300, 0, 200)

        assert ROIAggregator.asset_roi_percentage(snapshot) == Decimal("-33.33")

    def test_percentage_undefined_without_investment(self):
        snapshot = Snapshot(1, 3, 2024, Decimal("0"), 0, 0, 50)

        assert ROIAggregator.asset_roi(snapshot) == 50
        assert ROIAggregator.asset_roi_percentage(snapshot) is None


# =============================================================================
# DISTRIBUTION
# =============================================================================

class TestDistribution:

    def test_shares_of_active_assets(self, roi: ROIAggregator):
        snapshots = [
            snap(1, current_value=300),
            snap(2, current_value=100),
            snap(3, current_value=600, status=AssetStatus.INACTIVE),
        ]

        entries = roi.portfolio_distribution(snapshots)

        assert [(e.asset_id, e.percentage) for e in entries] == [
            (1, Decimal("75.00")),
            (2, Decimal("25.00")),
        ]

    def test_uses_latest_snapshot_per_asset(self, roi: ROIAggregator):
        snapshots = [
            snap(1, month=1, current_value=999),
            snap(1, month=2, current_value=100),
            snap(2, month=2, current_value=100),
        ]

        entries = roi.portfolio_distribution(snapshots)

        assert [e.percentage for e in entries] == [Decimal("50.00"), Decimal("50.00")]

    def test_zero_total_gives_zero_shares(self, roi: ROIAggregator):
        entries = roi.portfolio_distribution([snap(1), snap(2)])

        assert all(e.percentage == Decimal("0") for e in entries)

    def test_empty_portfolio(self, roi: ROIAggregator):
        assert roi.portfolio_distribution([]) == []

    def test_by_type(self, roi: ROIAggregator):
        snapshots = [
            snap(1, current_value=200, asset_type=AssetType.ETF),
            snap(2, current_value=200, asset_type=AssetType.ETF),
            snap(3, current_value=100, asset_type=AssetType.CRYPTO),
        ]

        entries = roi.distribution_by_type(snapshots)

        assert [(e.asset_type, e.current_value, e.percentage, e.asset_count) for e in entries] == [
            (AssetType.ETF, 400, Decimal("80.00"), 2),
            (AssetType.CRYPTO, 100, Decimal("20.00"), 1),
        ]


# =============================================================================
# RANKING & SERIES
# =============================================================================

class TestTopPerforming:

    def test_ranks_by_roi_value(self, roi: ROIAggregator):
        snapshots = [
            snap(1, current_value=1100, invested=1000),   # +100
            snap(2, current_value=500, invested=200),     # +300
            snap(3, current_value=50, invested=100),      # -50
        ]

        top = roi.top_performing(snapshots, 2)

        assert [(p.asset_id, p.roi_value) for p in top] == [(2, 300), (1, 100)]
        assert top[0].roi_percentage == Decimal("150.00")

    def test_ties_broken_by_asset_id(self, roi: ROIAggregator):
        snapshots = [
            snap(9, current_value=150, invested=100),
            snap(4, current_value=250, invested=200),
        ]

        assert [p.asset_id for p in roi.top_performing(snapshots, 5)] == [4, 9]

    def test_non_positive_n(self, roi: ROIAggregator):
        assert roi.top_performing([snap(1)], 0) == []


class TestMonthlySeries:

    def test_sums_per_month_chronologically(self, roi: ROIAggregator):
        snapshots = [
            snap(1, month=2, year=2024, current_value=10, invested=5),
            snap(2, month=12, year=2023, current_value=7),
            snap(2, month=2, year=2024, current_value=20, invested=15),
            snap(1, month=1, year=2024, current_value=3),
        ]

        points = roi.monthly_aggregate_series(snapshots)

        assert [(p.label, p.current_value, p.asset_count) for p in points] == [
            ("12/2023", 7, 1),
            ("1/2024", 3, 1),
            ("2/2024", 30, 2),
        ]
        assert points[-1].invested_amount == 20


# =============================================================================
# DATABASE-BACKED METRICS
# =============================================================================

class TestCombinedBalances:

    @pytest.fixture
    def ledger_history(self, db: Session):
        alice = create_user(db, "alice")
        bob = create_user(db, "bob")
        etf = create_asset(db, alice)
        other = create_asset(db, bob, ticker="IWDA")

        create_transaction(db, etf, ts(2024, 1, 10), BUY, "10", 1000)
        create_transaction(db, etf, ts(2024, 3, 5), SELL, "4", 500)
        create_transaction(db, other, ts(2024, 2, 1), BUY, "1", 99999)
        return alice

    def test_net_balance_scaled(self, db: Session, roi: ROIAggregator, ledger_history):
        # (1000 - 500) / 100 = 5.00
        balance = roi.combined_invested_balance(db, ledger_history.id, ts(2024, 1, 1), ts(2024, 12, 31))

        assert balance == Decimal("5.00")

    def test_window_is_inclusive(self, db: Session, roi: ROIAggregator, ledger_history):
        balance = roi.combined_invested_balance(db, ledger_history.id, ts(2024, 1, 10), ts(2024, 3, 5))

        assert balance == Decimal("5.00")

    def test_invested_and_withdrawn(self, db: Session, roi: ROIAggregator, ledger_history):
        totals = roi.combined_invested_and_withdrawn(db, ledger_history.id, ts(2024, 1, 1), ts(2024, 12, 31))

        assert totals.invested == Decimal("10.00")
        assert totals.withdrawn == Decimal("5.00")

    def test_empty_window(self, db: Session, roi: ROIAggregator, ledger_history):
        assert roi.combined_invested_balance(db, ledger_history.id, ts(2020, 1, 1), ts(2020, 2, 1)) == Decimal("0.00")

    def test_reversed_window_rejected(self, db: Session, roi: ROIAggregator, ledger_history):
        with pytest.raises(ValidationError):
            roi.combined_invested_balance(db, ledger_history.id, ts(2024, 2, 1), ts(2024, 1, 1))


class TestYearlyPerformance:

    @pytest.fixture
    def two_years(self, db: Session):
        user = create_user(db)
        etf = create_asset(db, user)

        create_transaction(db, etf, ts(2023, 5, 10), BUY, "10", 1000)
        create_snapshot(db, etf, 12, 2023, units="10", invested_amount=1000, current_value=1000)

        create_transaction(db, etf, ts(2024, 6, 10), BUY, "2", 200)
        create_snapshot(db, etf, 12, 2024, units="12", invested_amount=1200, current_value=1500)
        return user

    def test_combined_roi_by_year(self, db: Session, roi: ROIAggregator, two_years):
        years = roi.combined_roi_by_year(db, two_years.id, to_year=2024, today=date(2025, 1, 10))

        assert [y.year for y in years] == [2023, 2024]

        # 2023: 1000 - 0 - (1000 - 0) = 0 over (0 + 1000)
        assert (years[0].start_value, years[0].end_value, years[0].invested) == (0, 1000, 1000)
        assert years[0].roi_value == 0
        assert years[0].roi_percentage == Decimal("0.00")

        # 2024: 1500 - 1000 - (200 - 0) = 300 over (1000 + 200) = 25%
        assert (years[1].start_value, years[1].end_value, years[1].invested) == (1000, 1500, 200)
        assert years[1].roi_value == 300
        assert years[1].roi_percentage == Decimal("25.00")

    def test_current_year_ends_at_current_month(self, db: Session, roi: ROIAggregator, two_years):
        years = roi.combined_roi_by_year(db, two_years.id, today=date(2024, 7, 1))

        # Dec 2024 is after July: the latest value at or before July is Dec 2023's
        assert years[-1].year == 2024
        assert years[-1].end_value == 1000
        assert years[-1].roi_value == 1000 - 1000 - 200

    def test_no_snapshots_no_years(self, db: Session, roi: ROIAggregator, sample_user):
        assert roi.combined_roi_by_year(db, sample_user.id, today=date(2024, 1, 1)) == []

    def test_portfolio_summary(self, db: Session, roi: ROIAggregator, two_years):
        summary = roi.portfolio_summary(db, two_years.id, today=date(2024, 12, 20))

        # 1500 - 1200 + 0 = 300 over 1200 = 25%
        assert summary.total_current_value == 1500
        assert summary.total_invested_amount == 1200
        assert summary.global_roi_value == 300
        assert summary.global_roi_percentage == Decimal("25.00")
        assert summary.current_year_roi_value == 300
        assert summary.asset_count == 1
        assert summary.active_asset_count == 1

    def test_summary_for_empty_portfolio(self, db: Session, roi: ROIAggregator, sample_user):
        summary = roi.portfolio_summary(db, sample_user.id, today=date(2024, 12, 20))

        assert summary.total_current_value == 0
        assert summary.global_roi_percentage is None
        assert summary.current_year_roi_percentage is None
