# backend/invest_snapshots/services/__init__.py
"""
Service layer for the snapshot engine.

Services:
- Have NO knowledge of HTTP or CLI (no status codes, no printing)
- Raise domain-specific exceptions
- Receive database sessions as parameters
- Are easily testable via dependency injection

Usage:
    from invest_snapshots.services import RecomputeEngine, SnapshotLedger
    from invest_snapshots.services import ValuationService, SnapshotSyncService
    from invest_snapshots.services import ROIAggregator
    from invest_snapshots.services import (
        AssetNotFoundError,
        BackdatedTransactionError,
        RecomputeError,
    )

Architecture:
    services/
    ├── __init__.py                  # This file - main exports
    ├── exceptions.py                # Domain exceptions
    ├── constants.py                 # Recompute window and rounding constants
    ├── protocols.py                 # Consumed interfaces (Protocol classes)
    ├── transactions.py              # SQL transaction source and asset registry
    ├── snapshots/                   # Snapshot engine
    │   ├── types.py                 # Snapshot records and results
    │   ├── ledger.py                # Storage gateway (dialect-aware upsert)
    │   ├── locks.py                 # Per-asset lock registry
    │   ├── recompute.py             # Window replay
    │   ├── valuation.py             # Manual marks and fast path
    │   └── sync.py                  # Transaction add / edit / delete hooks
    └── roi/                         # ROI metrics
        ├── types.py                 # Result types
        └── aggregator.py            # ROI formulas and dashboard totals
"""

# Snapshot engine
from invest_snapshots.services.snapshots import (
    Snapshot,
    SnapshotWithAsset,
    RunningTotals,
    RecomputeResult,
    SyncResult,
    TransactionRecord,
    AssetMetadata,
    SnapshotLedger,
    AssetLockRegistry,
    asset_locks,
    RecomputeEngine,
    ValuationService,
    SnapshotSyncService,
)

# Collaborator adapters
from invest_snapshots.services.transactions import SqlTransactionSource, SqlAssetRegistry

# ROI
from invest_snapshots.services.roi import ROIAggregator

# Exceptions
from invest_snapshots.services.exceptions import (
    ServiceError,
    ValidationError,
    BackdatedTransactionError,
    NotFoundError,
    AssetNotFoundError,
    SnapshotStoreError,
    UnsupportedDialectError,
    RecomputeError,
)

__all__ = [
    # Snapshot engine
    "Snapshot",
    "SnapshotWithAsset",
    "RunningTotals",
    "RecomputeResult",
    "SyncResult",
    "TransactionRecord",
    "AssetMetadata",
    "SnapshotLedger",
    "AssetLockRegistry",
    "asset_locks",
    "RecomputeEngine",
    "ValuationService",
    "SnapshotSyncService",
    # Adapters
    "SqlTransactionSource",
    "SqlAssetRegistry",
    # ROI
    "ROIAggregator",
    # Exceptions
    "ServiceError",
    "ValidationError",
    "BackdatedTransactionError",
    "NotFoundError",
    "AssetNotFoundError",
    "SnapshotStoreError",
    "UnsupportedDialectError",
    "RecomputeError",
]
