# backend/invest_snapshots/services/snapshots/__init__.py
"""
Snapshot engine: monthly per-asset snapshots derived from the transaction log.

Components:
- SnapshotLedger: storage gateway (upsert, point and "latest" lookups)
- RecomputeEngine: rebuilds a window of months by replaying transactions
- ValuationService: manual value marks and the single-transaction fast path
- SnapshotSyncService: transaction add / edit / delete hooks
- AssetLockRegistry: per-asset mutual exclusion for writers

Usage:
    from invest_snapshots.services.snapshots import RecomputeEngine, SnapshotLedger

    result = RecomputeEngine().recompute(db, asset_id=1, from_ts=..., to_ts=...)
    latest = SnapshotLedger().get_latest_at_or_before(db, asset_id=1)
"""

from invest_snapshots.services.snapshots.types import (
    Snapshot,
    SnapshotWithAsset,
    RunningTotals,
    RecomputeResult,
    SyncResult,
    TransactionRecord,
    AssetMetadata,
)
from invest_snapshots.services.snapshots.ledger import SnapshotLedger, SNAPSHOT_VALUE_FIELDS
from invest_snapshots.services.snapshots.locks import AssetLockRegistry, asset_locks
from invest_snapshots.services.snapshots.recompute import RecomputeEngine
from invest_snapshots.services.snapshots.valuation import ValuationService
from invest_snapshots.services.snapshots.sync import SnapshotSyncService

__all__ = [
    # Types
    "Snapshot",
    "SnapshotWithAsset",
    "RunningTotals",
    "RecomputeResult",
    "SyncResult",
    "TransactionRecord",
    "AssetMetadata",
    # Services
    "SnapshotLedger",
    "SNAPSHOT_VALUE_FIELDS",
    "AssetLockRegistry",
    "asset_locks",
    "RecomputeEngine",
    "ValuationService",
    "SnapshotSyncService",
]
