# backend/invest_snapshots/services/snapshots/recompute.py
"""
Recompute Engine - rebuilds an asset's monthly snapshot series from its
transaction history after the history changed.

Algorithm (one pass over the window [from_ts, to_ts]):

    from  = month of from_ts
    pivot = from - 2 months            (Jan -> Nov, Feb -> Dec of the previous year)

    1. baseline = latest snapshot at or before pivot (zero totals if none)
    2. write baseline to from-1, from, from+1
    3. replay transactions in [start(pivot+1), start(to+1)) oldest first;
       months skipped since the last write get the totals from before the
       transaction, then its month and the next `buffer_months` months get
       the running total after it
    4. carry the final totals forward through `to`, and through
       carry_through + `buffer_months` when a transaction was deleted or
       moved away, so no month keeps totals from removed history

The pivot month is already folded into the baseline, so it is never
replayed. Writes replace units / invested / withdrawn; current_value is
only set on rows the pass creates (carried from the baseline).

Concurrency:
- AssetLockRegistry: one pass per asset per process
- SELECT ... FOR UPDATE on the asset row: one pass per asset per database
- atomic(db): the whole pass commits or none of it does

Usage:
    from invest_snapshots.services.snapshots import RecomputeEngine

    engine = RecomputeEngine()
    result = engine.recompute(db, asset_id=1, from_ts=1704067200, to_ts=1709251200)
"""

from __future__ import annotations

import logging
from datetime import tzinfo
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.orm import Session

from invest_snapshots.config import settings
from invest_snapshots.database import atomic
from invest_snapshots.models import Asset
from invest_snapshots.schemas.snapshots import RecomputeWindow, validate_input
from invest_snapshots.services.constants import LEADING_BASELINE_OFFSETS, PIVOT_MONTHS_BACK
from invest_snapshots.services.exceptions import AssetNotFoundError, RecomputeError, ServiceError
from invest_snapshots.services.snapshots.ledger import SnapshotLedger
from invest_snapshots.services.snapshots.locks import AssetLockRegistry, asset_locks
from invest_snapshots.services.snapshots.types import RecomputeResult, RunningTotals
from invest_snapshots.utils.months import MonthKey, iter_months

if TYPE_CHECKING:
    from invest_snapshots.services.protocols import TransactionSourceProtocol

logger = logging.getLogger(__name__)

# Fields a recompute pass owns. current_value belongs to manual marks.
RECOMPUTED_FIELDS: tuple[str, ...] = ("units", "invested_amount", "withdrawn_amount")


class RecomputeEngine:
    """
    Rebuilds contiguous runs of monthly snapshots for one asset.

    Attributes:
        buffer_months: Months after a transaction's month that also receive
                       its running total
    """

    def __init__(
            self,
            ledger: SnapshotLedger | None = None,
            transactions: TransactionSourceProtocol | None = None,
            locks: AssetLockRegistry | None = None,
            buffer_months: int | None = None,
            tz: tzinfo | None = None,
    ) -> None:
        """
        Args:
            ledger: Snapshot store. Defaults to a SnapshotLedger in `tz`.
            transactions: Transaction source. Defaults to SqlTransactionSource.
            locks: Per-asset lock registry. Defaults to the process-wide one.
            buffer_months: Forward months per transaction (SNAPSHOT_BUFFER_MONTHS).
            tz: Calendar zone (CALENDAR_TIMEZONE, local time when unset).
        """
        if transactions is None:
            # Lazy import to avoid circular dependencies
            from invest_snapshots.services.transactions import SqlTransactionSource
            transactions = SqlTransactionSource()

        self._tz = tz if tz is not None else settings.tzinfo
        self._ledger = ledger or SnapshotLedger(tz=self._tz)
        self._transactions: TransactionSourceProtocol = transactions
        self._locks = locks or asset_locks
        self.buffer_months = buffer_months if buffer_months is not None else settings.snapshot_buffer_months

        if self.buffer_months < 0:
            raise ValueError(f"buffer_months must be >= 0, got {self.buffer_months}")

    def recompute(
            self,
            db: Session,
            asset_id: int,
            from_ts: int,
            to_ts: int,
            carry_through_ts: int | None = None,
    ) -> RecomputeResult:
        """
        Rebuild the asset's snapshots for the window [from_ts, to_ts].

        Args:
            db: Session. Committed on success, rolled back on failure.
            asset_id: Asset whose history changed
            from_ts: Earliest affected timestamp (Unix seconds)
            to_ts: Latest affected timestamp (Unix seconds)
            carry_through_ts: Old timestamp of a deleted or moved transaction.
                Its month and the `buffer_months` after it are rewritten
                with the final totals.

        Returns:
            RecomputeResult with the final running totals

        Raises:
            ValidationError: from_ts after to_ts, negative timestamps
            AssetNotFoundError: asset does not exist
            RecomputeError: the pass failed and was rolled back
        """
        window = validate_input(
            RecomputeWindow,
            asset_id=asset_id,
            from_ts=from_ts,
            to_ts=to_ts,
            carry_through_ts=carry_through_ts,
        )

        with self._locks.hold(asset_id):
            try:
                with atomic(db):
                    self._lock_asset_row(db, asset_id)
                    result = self._replay(db, window)
            except ServiceError:
                raise
            except Exception as e:
                logger.error(f"Snapshot recompute for asset {asset_id} rolled back: {e}")
                raise RecomputeError(asset_id, str(e)) from e

        span = (
            f"{result.months_written[0]}..{result.months_written[-1]}"
            if result.months_written else "none"
        )
        logger.info(
            f"Recomputed snapshots for asset {asset_id}: "
            f"{result.transactions_applied} transactions, "
            f"{len(result.months_written)} months ({span})"
        )
        return result

    # =========================================================================
    # PASS
    # =========================================================================

    def _replay(self, db: Session, window: RecomputeWindow) -> RecomputeResult:
        asset_id = window.asset_id
        first = MonthKey.from_timestamp(window.from_ts, self._tz)
        last = MonthKey.from_timestamp(window.to_ts, self._tz)
        pivot = first.shift(-PIVOT_MONTHS_BACK)

        baseline = self._ledger.get_latest_at_or_before(db, asset_id, pivot.month, pivot.year)
        running = RunningTotals.from_snapshot(baseline)
        result = RecomputeResult(asset_id=asset_id, totals=running)
        written: set[MonthKey] = set()

        logger.debug(
            f"Asset {asset_id}: window {first}..{last}, pivot {pivot}, "
            f"baseline {baseline.key if baseline else 'none'}"
        )

        for offset in LEADING_BASELINE_OFFSETS:
            self._write(db, asset_id, first.shift(offset), running, written)
        covered = first.shift(max(LEADING_BASELINE_OFFSETS))

        transactions = self._transactions.list_transactions(
            db,
            asset_id,
            pivot.shift(1).start_timestamp(self._tz),
            last.shift(1).start_timestamp(self._tz),
        )

        for transaction in transactions:
            month = MonthKey.from_timestamp(transaction.timestamp, self._tz)

            # Months between the last covered one and this transaction hold
            # the totals from before it.
            covered = self._fill(db, asset_id, covered, month.shift(-1), running, written)

            running = running.apply(transaction)

            if running.units < 0:
                warning = (
                    f"Asset {asset_id}: units negative ({running.units}) after "
                    f"transaction {transaction.id} in {month}; sells exceed recorded buys"
                )
                logger.warning(warning)
                result.warnings.append(warning)

            for offset in range(self.buffer_months + 1):
                self._write(db, asset_id, month.shift(offset), running, written)
            covered = max(covered, month.shift(self.buffer_months))

        covered = self._fill(db, asset_id, covered, last, running, written)

        if window.carry_through_ts is not None:
            stale = MonthKey.from_timestamp(window.carry_through_ts, self._tz)
            self._fill(db, asset_id, covered, stale.shift(self.buffer_months), running, written)

        result.totals = running
        result.transactions_applied = len(transactions)
        result.months_written = sorted(written)
        return result

    def _fill(
            self,
            db: Session,
            asset_id: int,
            covered: MonthKey,
            through: MonthKey,
            totals: RunningTotals,
            written: set[MonthKey],
    ) -> MonthKey:
        """Write `totals` to every month after `covered` up to `through`."""
        for key in iter_months(covered.shift(1), through):
            self._write(db, asset_id, key, totals, written)
        return max(covered, through)

    def _write(
            self,
            db: Session,
            asset_id: int,
            key: MonthKey,
            totals: RunningTotals,
            written: set[MonthKey],
    ) -> None:
        self._ledger.upsert(
            db,
            asset_id,
            key.month,
            key.year,
            values=totals.as_values(),
            update_fields=RECOMPUTED_FIELDS,
        )
        written.add(key)

    @staticmethod
    def _lock_asset_row(db: Session, asset_id: int) -> None:
        """SELECT ... FOR UPDATE on the asset row. SQLite omits the clause."""
        found = db.scalar(
            select(Asset.id).where(Asset.id == asset_id).with_for_update()
        )
        if found is None:
            raise AssetNotFoundError(asset_id)
