# backend/invest_snapshots/services/snapshots/valuation.py
"""
Valuation Service - single-month writes outside a full recompute.

- mark_current_value(): the user enters a position's market value for a
  month. invested_amount is never entered by hand; it is carried from the
  latest snapshot so the invested series stays continuous.
- append_single_transaction(): incremental fast path for a new transaction
  in the current or previous month, when no later snapshot exists.
- is_fast_path_eligible(): the policy deciding between the fast path and
  a full recompute.

Usage:
    from invest_snapshots.services.snapshots import ValuationService

    service = ValuationService()
    snapshot = service.mark_current_value(
        db, asset_id=1, month=3, year=2024,
        units=Decimal("6"), withdrawn_amount=500, current_value=900,
    )
"""

from __future__ import annotations

import logging
from datetime import date, tzinfo
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from invest_snapshots.config import settings
from invest_snapshots.database import atomic
from invest_snapshots.schemas.snapshots import MarkValueInput, SingleTransactionInput, validate_input
from invest_snapshots.services.constants import FAST_PATH_MAX_MONTHS_BACK
from invest_snapshots.services.exceptions import BackdatedTransactionError, SnapshotStoreError
from invest_snapshots.services.snapshots.ledger import SnapshotLedger
from invest_snapshots.services.snapshots.locks import AssetLockRegistry, asset_locks
from invest_snapshots.services.snapshots.types import RunningTotals, Snapshot
from invest_snapshots.utils.months import MonthKey

if TYPE_CHECKING:
    from invest_snapshots.services.protocols import AssetRegistryProtocol

logger = logging.getLogger(__name__)

# A manual mark overwrites these; invested_amount keeps its stored value.
MARKED_FIELDS: tuple[str, ...] = ("units", "withdrawn_amount", "current_value")

# The fast path owns the running totals, like a recompute does.
FAST_PATH_FIELDS: tuple[str, ...] = ("units", "invested_amount", "withdrawn_amount")


class ValuationService:
    """
    Point updates of individual monthly snapshots.

    Attributes:
        _ledger: Snapshot store
        _assets: Asset registry used to reject unknown asset ids
        _locks: Per-asset lock registry shared with RecomputeEngine
    """

    def __init__(
            self,
            ledger: SnapshotLedger | None = None,
            assets: AssetRegistryProtocol | None = None,
            locks: AssetLockRegistry | None = None,
            tz: tzinfo | None = None,
    ) -> None:
        if assets is None:
            # Lazy import to avoid circular dependencies
            from invest_snapshots.services.transactions import SqlAssetRegistry
            assets = SqlAssetRegistry()

        self._tz = tz if tz is not None else settings.tzinfo
        self._ledger = ledger or SnapshotLedger(tz=self._tz)
        self._assets: AssetRegistryProtocol = assets
        self._locks = locks or asset_locks

    # =========================================================================
    # MANUAL MARKS
    # =========================================================================

    def mark_current_value(
            self,
            db: Session,
            asset_id: int,
            month: int,
            year: int,
            units: Decimal,
            withdrawn_amount: int,
            current_value: int,
    ) -> Snapshot:
        """
        Record the market value of an asset for one month.

        Insert: invested_amount is copied from the latest snapshot at or
        before (month, year), 0 if there is none.
        Update: units, withdrawn_amount and current_value are overwritten;
        invested_amount keeps its stored value.

        Raises:
            ValidationError: malformed month/year/amounts
            AssetNotFoundError: unknown asset
        """
        data = validate_input(
            MarkValueInput,
            asset_id=asset_id,
            month=month,
            year=year,
            units=units,
            withdrawn_amount=withdrawn_amount,
            current_value=current_value,
        )
        self._assets.asset_metadata(db, data.asset_id)

        with atomic(db):
            latest = self._ledger.get_latest_at_or_before(db, data.asset_id, data.month, data.year)
            invested = latest.invested_amount if latest is not None else 0

            self._ledger.upsert(
                db,
                data.asset_id,
                data.month,
                data.year,
                values={
                    "units": data.units,
                    "invested_amount": invested,
                    "withdrawn_amount": data.withdrawn_amount,
                    "current_value": data.current_value,
                },
                update_fields=MARKED_FIELDS,
            )

        logger.info(
            f"Marked asset {data.asset_id} at {data.year:04d}-{data.month:02d}: "
            f"value={data.current_value}, units={data.units}"
        )
        return self._reload(db, data.asset_id, data.month, data.year)

    # =========================================================================
    # FAST PATH
    # =========================================================================

    def is_fast_path_eligible(
            self,
            db: Session,
            asset_id: int,
            timestamp: int,
            today: date | None = None,
    ) -> bool:
        """
        Whether a new transaction can be applied to its month alone.

        True when the transaction's month is the current month or at most
        FAST_PATH_MAX_MONTHS_BACK before it, and the asset has no snapshot
        after that month. Anything else needs a full recompute.
        """
        return self._ineligibility_reason(db, asset_id, timestamp, today) is None

    def append_single_transaction(
            self,
            db: Session,
            asset_id: int,
            timestamp: int,
            units_delta: Decimal,
            amount_delta: int,
            is_sell: bool,
            today: date | None = None,
    ) -> Snapshot:
        """
        Apply one buy or sell to its month's snapshot in place.

        If the month has a snapshot, the delta is added to it. Otherwise the
        month is seeded from the latest earlier snapshot (carrying its
        current_value) plus the delta.

        Raises:
            ValidationError: malformed units/amount
            BackdatedTransactionError: the transaction needs a full recompute
        """
        data = validate_input(
            SingleTransactionInput,
            asset_id=asset_id,
            timestamp=timestamp,
            units=units_delta,
            amount=amount_delta,
            is_sell=is_sell,
        )
        month = MonthKey.from_timestamp(data.timestamp, self._tz)

        with self._locks.hold(data.asset_id):
            with atomic(db):
                reason = self._ineligibility_reason(db, data.asset_id, data.timestamp, today)
                if reason is not None:
                    raise BackdatedTransactionError(data.asset_id, month.month, month.year, reason)

                existing = self._ledger.get_exact(db, data.asset_id, month.month, month.year)
                if existing is not None:
                    base = RunningTotals.from_snapshot(existing)
                else:
                    previous = month.shift(-1)
                    base = RunningTotals.from_snapshot(
                        self._ledger.get_latest_at_or_before(
                            db, data.asset_id, previous.month, previous.year
                        )
                    )

                totals = base.with_delta(data.units, data.amount, data.is_sell)
                self._ledger.upsert(
                    db,
                    data.asset_id,
                    month.month,
                    month.year,
                    values=totals.as_values(),
                    update_fields=FAST_PATH_FIELDS,
                )

        if totals.units < 0:
            logger.warning(
                f"Asset {data.asset_id}: units negative ({totals.units}) in {month}; "
                "sells exceed recorded buys"
            )
        logger.info(
            f"Applied {'sell' if data.is_sell else 'buy'} to asset {data.asset_id} "
            f"in {month} incrementally"
        )
        return self._reload(db, data.asset_id, month.month, month.year)

    def _ineligibility_reason(
            self,
            db: Session,
            asset_id: int,
            timestamp: int,
            today: date | None,
    ) -> str | None:
        month = MonthKey.from_timestamp(timestamp, self._tz)
        current = MonthKey.from_date(today) if today is not None else MonthKey.current(self._tz)

        if month > current:
            return f"{month} is in the future"
        if month < current.shift(-FAST_PATH_MAX_MONTHS_BACK):
            return f"{month} is older than the previous calendar month"
        if self._ledger.has_snapshots_after(db, asset_id, month.month, month.year):
            return f"snapshots after {month} already exist"
        return None

    def _reload(self, db: Session, asset_id: int, month: int, year: int) -> Snapshot:
        snapshot = self._ledger.get_exact(db, asset_id, month, year)
        if snapshot is None:
            raise SnapshotStoreError(
                f"Snapshot for asset {asset_id} at {year:04d}-{month:02d} missing after write"
            )
        return snapshot
