# backend/invest_snapshots/services/transactions.py
"""
SQL adapters for the collaborators the snapshot engine consumes.

- SqlTransactionSource: reads invest_transactions for one asset
- SqlAssetRegistry: reads invest_assets metadata

Both are read-only. Transaction and asset CRUD belong to outer layers;
these adapters only turn rows into the typed records the engine uses.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from invest_snapshots.models import Asset, InvestTransaction
from invest_snapshots.services.exceptions import AssetNotFoundError, ValidationError
from invest_snapshots.services.snapshots.types import AssetMetadata, TransactionRecord

logger = logging.getLogger(__name__)


class SqlTransactionSource:
    """Transaction source backed by the invest_transactions table."""

    def list_transactions(
            self,
            db: Session,
            asset_id: int,
            from_ts: int,
            to_ts: int,
    ) -> list[TransactionRecord]:
        """
        Transactions of one asset with from_ts <= date_timestamp < to_ts.

        Ordered by (date_timestamp, id) so same-second transactions replay
        in insertion order.
        """
        if from_ts > to_ts:
            raise ValidationError(
                f"Transaction window start {from_ts} is after its end {to_ts}",
                field="from_ts",
            )

        rows = db.scalars(
            select(InvestTransaction)
            .where(
                InvestTransaction.asset_id == asset_id,
                InvestTransaction.date_timestamp >= from_ts,
                InvestTransaction.date_timestamp < to_ts,
            )
            .order_by(InvestTransaction.date_timestamp, InvestTransaction.id)
        ).all()

        return [
            TransactionRecord(
                id=row.id,
                asset_id=row.asset_id,
                timestamp=int(row.date_timestamp),
                transaction_type=row.transaction_type,
                units=Decimal(row.units),
                total_amount=int(row.total_amount),
                note=row.note,
            )
            for row in rows
        ]

    def latest_timestamp(self, db: Session, asset_id: int) -> int | None:
        """Timestamp of the asset's most recent transaction, or None."""
        value = db.scalar(
            select(func.max(InvestTransaction.date_timestamp))
            .where(InvestTransaction.asset_id == asset_id)
        )
        return int(value) if value is not None else None


class SqlAssetRegistry:
    """Asset registry backed by the invest_assets table."""

    def asset_metadata(self, db: Session, asset_id: int) -> AssetMetadata:
        asset = db.get(Asset, asset_id)
        if asset is None:
            raise AssetNotFoundError(asset_id)

        return AssetMetadata(
            asset_id=asset.id,
            user_id=asset.user_id,
            name=asset.name,
            ticker=asset.ticker,
            asset_type=asset.asset_type,
            broker=asset.broker,
            status=asset.status,
        )

    def asset_ids_for_user(self, db: Session, user_id: int) -> list[int]:
        """Ids of every asset the user owns, ascending."""
        return list(
            db.scalars(
                select(Asset.id).where(Asset.user_id == user_id).order_by(Asset.id)
            ).all()
        )
