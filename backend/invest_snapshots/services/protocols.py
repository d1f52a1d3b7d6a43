# backend/invest_snapshots/services/protocols.py
"""
Protocol interfaces for service dependency injection.

Using typing.Protocol enables structural subtyping:
- The SQL adapters in services/transactions.py satisfy them without inheritance
- Test fakes work without explicit inheritance
- Clear documentation of what the snapshot engine consumes
"""

from __future__ import annotations

from typing import Protocol, TYPE_CHECKING

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from invest_snapshots.services.snapshots.types import AssetMetadata, TransactionRecord


class TransactionSourceProtocol(Protocol):
    """Interface required by RecomputeEngine and SnapshotSyncService."""

    def list_transactions(
        self,
        db: Session,
        asset_id: int,
        from_ts: int,
        to_ts: int,
    ) -> list[TransactionRecord]:
        """Transactions with from_ts <= timestamp < to_ts, ordered by (timestamp, id)."""
        ...

    def latest_timestamp(self, db: Session, asset_id: int) -> int | None:
        ...


class AssetRegistryProtocol(Protocol):
    """Interface required by RecomputeEngine and the ROI aggregator."""

    def asset_metadata(self, db: Session, asset_id: int) -> AssetMetadata:
        """Raises AssetNotFoundError for unknown ids."""
        ...
