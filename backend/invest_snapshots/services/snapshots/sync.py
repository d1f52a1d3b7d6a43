# backend/invest_snapshots/services/snapshots/sync.py
"""
Snapshot Sync Service - keeps snapshots in step with transaction edits.

Called by whatever layer creates, edits or deletes transactions, AFTER the
transaction row has been written. Each hook works out which assets and
which window changed and runs the recompute engine (or the incremental
fast path for a fresh transaction in the current or previous month).

Window end:
    A recompute window always ends at max(changed timestamp, latest
    remaining transaction of the asset). Buffer months written for an
    early transaction would otherwise overwrite later transactions'
    months with stale totals. Deletes and edits also pass the old
    timestamp, so the buffer months the removed transaction wrote are
    rewritten with the current totals.

Usage:
    from invest_snapshots.services.snapshots import SnapshotSyncService

    sync = SnapshotSyncService()
    db.add(transaction)
    db.commit()
    sync.on_transaction_added(
        db, transaction.asset_id, transaction.date_timestamp,
        transaction.units, transaction.total_amount,
        is_sell=transaction.transaction_type == TransactionType.SELL,
    )
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from invest_snapshots.services.exceptions import BackdatedTransactionError
from invest_snapshots.services.snapshots.recompute import RecomputeEngine
from invest_snapshots.services.snapshots.types import RecomputeResult, SyncResult
from invest_snapshots.services.snapshots.valuation import ValuationService

if TYPE_CHECKING:
    from invest_snapshots.services.protocols import TransactionSourceProtocol

logger = logging.getLogger(__name__)


class SnapshotSyncService:
    """Transaction mutation hooks."""

    def __init__(
            self,
            engine: RecomputeEngine | None = None,
            valuation: ValuationService | None = None,
            transactions: TransactionSourceProtocol | None = None,
    ) -> None:
        if transactions is None:
            # Lazy import to avoid circular dependencies
            from invest_snapshots.services.transactions import SqlTransactionSource
            transactions = SqlTransactionSource()

        self._transactions: TransactionSourceProtocol = transactions
        self._engine = engine or RecomputeEngine(transactions=transactions)
        self._valuation = valuation or ValuationService()

    def on_transaction_added(
            self,
            db: Session,
            asset_id: int,
            timestamp: int,
            units: Decimal,
            amount: int,
            is_sell: bool,
            today: date | None = None,
    ) -> SyncResult:
        """Fast path when eligible, full recompute otherwise."""
        try:
            snapshot = self._valuation.append_single_transaction(
                db, asset_id, timestamp, units, amount, is_sell, today=today,
            )
        except BackdatedTransactionError as e:
            logger.debug(f"Fast path declined for asset {asset_id}: {e}")
            return SyncResult(mode="recompute", recomputes=[self._recompute_from(db, asset_id, timestamp)])

        return SyncResult(mode="fast_path", snapshot=snapshot)

    def on_transaction_edited(
            self,
            db: Session,
            old_asset_id: int,
            old_timestamp: int,
            new_asset_id: int,
            new_timestamp: int,
    ) -> SyncResult:
        """
        Recompute after an edit.

        Moving a transaction to another asset recomputes both assets, each
        from its own timestamp. Otherwise one pass starts at the earlier of
        the two timestamps. Either way the months the transaction used to
        cover are rewritten.
        """
        if old_asset_id != new_asset_id:
            return SyncResult(
                mode="recompute",
                recomputes=[
                    self._recompute_from(db, old_asset_id, old_timestamp, removed_ts=old_timestamp),
                    self._recompute_from(db, new_asset_id, new_timestamp),
                ],
            )

        result = self._recompute_from(
            db,
            new_asset_id,
            min(old_timestamp, new_timestamp),
            max(old_timestamp, new_timestamp),
            removed_ts=old_timestamp,
        )
        return SyncResult(mode="recompute", recomputes=[result])

    def on_transaction_deleted(self, db: Session, asset_id: int, timestamp: int) -> SyncResult:
        return SyncResult(
            mode="recompute",
            recomputes=[self._recompute_from(db, asset_id, timestamp, removed_ts=timestamp)],
        )

    def _recompute_from(
            self,
            db: Session,
            asset_id: int,
            from_ts: int,
            changed_to_ts: int | None = None,
            removed_ts: int | None = None,
    ) -> RecomputeResult:
        latest = self._transactions.latest_timestamp(db, asset_id)
        to_ts = max(
            ts for ts in (from_ts, changed_to_ts, latest) if ts is not None
        )
        return self._engine.recompute(db, asset_id, from_ts, to_ts, carry_through_ts=removed_ts)
