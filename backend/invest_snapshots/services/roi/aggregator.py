# backend/invest_snapshots/services/roi/aggregator.py
"""
ROI Aggregator - read-only return metrics over snapshots and transactions.

Formulas:
    asset ROI          = current_value - invested_amount + withdrawn_amount
    asset ROI %        = asset ROI / invested_amount * 100
    year ROI           = end_value - start_value - (invested - withdrawn)
    year ROI %         = year ROI / (start_value + invested) * 100
    distribution %     = current_value / total current_value * 100

Snapshot inputs come from SnapshotLedger. Combined balances are summed
straight from invest_transactions with an inclusive [from_ts, to_ts]
window and scaled from minor units by AMOUNT_SCALE.

Usage:
    from invest_snapshots.services.roi import ROIAggregator

    roi = ROIAggregator()
    latest = SnapshotLedger().list_latest_for_user(db, user_id=1)
    best = roi.top_performing(latest, n=5)
    years = roi.combined_roi_by_year(db, user_id=1)
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable, Sequence
from datetime import date, tzinfo
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from invest_snapshots.config import settings
from invest_snapshots.models import Asset, AssetSnapshot, InvestTransaction, TransactionType
from invest_snapshots.services.constants import HUNDRED, MONEY_QUANTUM, PERCENT_QUANTUM
from invest_snapshots.services.exceptions import ValidationError
from invest_snapshots.services.roi.types import (
    AssetPerformance,
    DistributionEntry,
    InvestedWithdrawn,
    MonthlyValuePoint,
    PortfolioSummary,
    TypeDistributionEntry,
    YearPerformance,
)
from invest_snapshots.services.snapshots.ledger import SnapshotLedger
from invest_snapshots.services.snapshots.types import Snapshot, SnapshotWithAsset
from invest_snapshots.utils.months import MonthKey

logger = logging.getLogger(__name__)


def _percent(numerator: int, denominator: int) -> Decimal | None:
    """numerator / denominator in percent, None for a non-positive denominator."""
    if denominator <= 0:
        return None
    return (Decimal(numerator) / Decimal(denominator) * HUNDRED).quantize(
        PERCENT_QUANTUM, rounding=ROUND_HALF_UP
    )


def _share(part: int, total: int) -> Decimal:
    """Share in percent, 0 when the total is 0."""
    share = _percent(part, total)
    return share if share is not None else Decimal("0").quantize(PERCENT_QUANTUM)


def _latest_per_asset(snapshots: Iterable[SnapshotWithAsset]) -> list[SnapshotWithAsset]:
    """Keep the most recent snapshot of each asset, ordered by asset id."""
    latest: dict[int, SnapshotWithAsset] = {}
    for snapshot in snapshots:
        current = latest.get(snapshot.asset_id)
        if current is None or snapshot.key > current.key:
            latest[snapshot.asset_id] = snapshot
    return [latest[asset_id] for asset_id in sorted(latest)]


class ROIAggregator:
    """
    Combines snapshots and raw transactions into ROI metrics.

    Pure functions of their inputs; the methods taking a Session only read.
    """

    def __init__(
            self,
            ledger: SnapshotLedger | None = None,
            amount_scale: int | None = None,
            tz: tzinfo | None = None,
    ) -> None:
        self._tz = tz if tz is not None else settings.tzinfo
        self._ledger = ledger or SnapshotLedger(tz=self._tz)
        self._scale = Decimal(amount_scale if amount_scale is not None else settings.amount_scale)

    # =========================================================================
    # TRANSACTION BALANCES
    # =========================================================================

    def combined_invested_balance(self, db: Session, user_id: int, from_ts: int, to_ts: int) -> Decimal:
        """
        Net money put into the user's assets in [from_ts, to_ts], major units.

        Buys count positive, sells negative.
        """
        invested, withdrawn = self._sum_amounts(db, user_id, from_ts, to_ts)
        return self._scaled(invested - withdrawn)

    def combined_invested_and_withdrawn(
            self,
            db: Session,
            user_id: int,
            from_ts: int,
            to_ts: int,
    ) -> InvestedWithdrawn:
        """Buy-only and sell-only totals in [from_ts, to_ts], major units."""
        invested, withdrawn = self._sum_amounts(db, user_id, from_ts, to_ts)
        return InvestedWithdrawn(invested=self._scaled(invested), withdrawn=self._scaled(withdrawn))

    def _sum_amounts(self, db: Session, user_id: int, from_ts: int, to_ts: int) -> tuple[int, int]:
        if from_ts > to_ts:
            raise ValidationError(
                f"Window start {from_ts} is after its end {to_ts}",
                field="from_ts",
            )

        amount = InvestTransaction.total_amount
        kind = InvestTransaction.transaction_type
        row = db.execute(
            select(
                func.coalesce(func.sum(case((kind == TransactionType.BUY, amount), else_=0)), 0),
                func.coalesce(func.sum(case((kind == TransactionType.SELL, amount), else_=0)), 0),
            )
            .select_from(InvestTransaction)
            .join(Asset, Asset.id == InvestTransaction.asset_id)
            .where(
                Asset.user_id == user_id,
                InvestTransaction.date_timestamp >= from_ts,
                InvestTransaction.date_timestamp <= to_ts,
            )
        ).one()
        return int(row[0]), int(row[1])

    def _scaled(self, minor_units: int) -> Decimal:
        return (Decimal(minor_units) / self._scale).quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)

    # =========================================================================
    # PER-ASSET ROI
    # =========================================================================

    @staticmethod
    def asset_roi(snapshot: Snapshot | None) -> int | None:
        """current_value - invested_amount + withdrawn_amount; None without a snapshot."""
        if snapshot is None:
            return None
        return snapshot.current_value - snapshot.invested_amount + snapshot.withdrawn_amount

    @classmethod
    def asset_roi_percentage(cls, snapshot: Snapshot | None) -> Decimal | None:
        """ROI over invested amount in percent; None when nothing was invested."""
        roi = cls.asset_roi(snapshot)
        if roi is None:
            return None
        return _percent(roi, snapshot.invested_amount)

    # =========================================================================
    # DISTRIBUTION
    # =========================================================================

    def portfolio_distribution(self, snapshots: Sequence[SnapshotWithAsset]) -> list[DistributionEntry]:
        """
        Each active asset's share of the total current value.

        Uses the latest snapshot per asset. Sorted by value descending,
        then asset id.
        """
        active = [s for s in _latest_per_asset(snapshots) if s.is_active]
        total = sum(s.current_value for s in active)

        entries = [
            DistributionEntry(
                asset_id=s.asset_id,
                asset_name=s.asset_name,
                asset_type=s.asset_type,
                current_value=s.current_value,
                percentage=_share(s.current_value, total),
            )
            for s in active
        ]
        entries.sort(key=lambda e: (-e.current_value, e.asset_id))
        return entries

    def distribution_by_type(self, snapshots: Sequence[SnapshotWithAsset]) -> list[TypeDistributionEntry]:
        """Current value share per asset type, active assets only."""
        active = [s for s in _latest_per_asset(snapshots) if s.is_active]
        total = sum(s.current_value for s in active)

        values: dict = defaultdict(int)
        counts: dict = defaultdict(int)
        for s in active:
            values[s.asset_type] += s.current_value
            counts[s.asset_type] += 1

        entries = [
            TypeDistributionEntry(
                asset_type=asset_type,
                current_value=value,
                percentage=_share(value, total),
                asset_count=counts[asset_type],
            )
            for asset_type, value in values.items()
        ]
        entries.sort(key=lambda e: (-e.current_value, e.asset_type.value if e.asset_type else ""))
        return entries

    # =========================================================================
    # RANKING & SERIES
    # =========================================================================

    def top_performing(self, snapshots: Sequence[SnapshotWithAsset], n: int) -> list[AssetPerformance]:
        """
        The n assets with the highest ROI value.

        Uses the latest snapshot per asset; ties are broken by asset id.
        """
        if n <= 0:
            return []

        ranked = [
            AssetPerformance(
                asset_id=s.asset_id,
                asset_name=s.asset_name,
                asset_type=s.asset_type,
                current_value=s.current_value,
                invested_amount=s.invested_amount,
                withdrawn_amount=s.withdrawn_amount,
                roi_value=self.asset_roi(s),
                roi_percentage=self.asset_roi_percentage(s),
            )
            for s in _latest_per_asset(snapshots)
        ]
        ranked.sort(key=lambda p: (-p.roi_value, p.asset_id))
        return ranked[:n]

    def monthly_aggregate_series(self, snapshots: Iterable[Snapshot]) -> list[MonthlyValuePoint]:
        """Snapshot values summed per (month, year), chronological."""
        buckets: dict[MonthKey, list[Snapshot]] = defaultdict(list)
        for snapshot in snapshots:
            buckets[snapshot.key].append(snapshot)

        return [
            MonthlyValuePoint(
                month=key.month,
                year=key.year,
                label=f"{key.month}/{key.year}",
                current_value=sum(s.current_value for s in buckets[key]),
                invested_amount=sum(s.invested_amount for s in buckets[key]),
                withdrawn_amount=sum(s.withdrawn_amount for s in buckets[key]),
                asset_count=len(buckets[key]),
            )
            for key in sorted(buckets)
        ]

    # =========================================================================
    # YEARLY & DASHBOARD
    # =========================================================================

    def combined_roi_by_year(
            self,
            db: Session,
            user_id: int,
            to_year: int | None = None,
            today: date | None = None,
    ) -> list[YearPerformance]:
        """
        Combined performance per calendar year, from the user's first
        snapshot year to `to_year` (default: the current year).

        Returns an empty list when the user has no snapshots.
        """
        current = self._current_month(today)
        last_year = to_year if to_year is not None else current.year

        first_year = db.scalar(
            select(func.min(AssetSnapshot.year))
            .join(Asset, Asset.id == AssetSnapshot.asset_id)
            .where(Asset.user_id == user_id)
        )
        if first_year is None:
            return []

        return [
            self._year_performance(db, user_id, year, current)
            for year in range(int(first_year), last_year + 1)
        ]

    def portfolio_summary(self, db: Session, user_id: int, today: date | None = None) -> PortfolioSummary:
        """Dashboard totals from each asset's latest snapshot up to this month."""
        current = self._current_month(today)
        latest = self._ledger.list_latest_for_user(db, user_id, current.month, current.year)

        total_value = sum(s.current_value for s in latest)
        total_invested = sum(s.invested_amount for s in latest)
        total_withdrawn = sum(s.withdrawn_amount for s in latest)
        global_roi = total_value - total_invested + total_withdrawn

        this_year = self._year_performance(db, user_id, current.year, current)

        summary = PortfolioSummary(
            total_current_value=total_value,
            total_invested_amount=total_invested,
            total_withdrawn_amount=total_withdrawn,
            global_roi_value=global_roi,
            global_roi_percentage=_percent(global_roi, total_invested),
            current_year_roi_value=this_year.roi_value,
            current_year_roi_percentage=this_year.roi_percentage,
            asset_count=len(latest),
            active_asset_count=sum(1 for s in latest if s.is_active),
        )
        logger.debug(f"Portfolio summary for user {user_id}: {len(latest)} assets, value={total_value}")
        return summary

    def _year_performance(self, db: Session, user_id: int, year: int, current: MonthKey) -> YearPerformance:
        start_value = 0
        if year > 1:
            start_value = sum(
                s.current_value
                for s in self._ledger.list_latest_for_user(db, user_id, 12, year - 1)
            )

        end_month = current.month if year == current.year else 12
        end_value = sum(
            s.current_value
            for s in self._ledger.list_latest_for_user(db, user_id, end_month, year)
        )

        invested, withdrawn = self._sum_amounts(
            db,
            user_id,
            MonthKey(year=year, month=1).start_timestamp(self._tz),
            MonthKey(year=year, month=12).end_timestamp(self._tz),
        )

        roi = end_value - start_value - (invested - withdrawn)
        return YearPerformance(
            year=year,
            start_value=start_value,
            end_value=end_value,
            invested=invested,
            withdrawn=withdrawn,
            roi_value=roi,
            roi_percentage=_percent(roi, start_value + invested),
        )

    def _current_month(self, today: date | None) -> MonthKey:
        return MonthKey.from_date(today) if today is not None else MonthKey.current(self._tz)
