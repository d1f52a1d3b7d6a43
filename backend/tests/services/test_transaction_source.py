# backend/tests/services/test_transaction_source.py
"""
Tests for the SQL transaction source and asset registry adapters.
"""

from decimal import Decimal

import pytest
from sqlalchemy.orm import Session

from invest_snapshots.models import AssetStatus, AssetType, TransactionType
from invest_snapshots.services.exceptions import AssetNotFoundError, ValidationError
from invest_snapshots.services.transactions import SqlAssetRegistry, SqlTransactionSource
from tests.conftest import create_asset, create_transaction, create_user, ts


class TestSqlTransactionSource:

    def test_half_open_window_in_replay_order(self, db: Session, sample_asset):
        source = SqlTransactionSource()
        second = create_transaction(db, sample_asset, ts(2024, 2, 1), TransactionType.BUY, "1", 100)
        first = create_transaction(db, sample_asset, ts(2024, 2, 1), TransactionType.SELL, "0.5", 60, note="trim")
        create_transaction(db, sample_asset, ts(2024, 3, 1), TransactionType.BUY, "2", 200)

        records = source.list_transactions(db, sample_asset.id, ts(2024, 2, 1), ts(2024, 3, 1))

        # same second: insertion order; the upper bound is exclusive
        assert [r.id for r in records] == [second.id, first.id]
        assert records[1].units == Decimal("0.5")
        assert records[1].transaction_type == TransactionType.SELL
        assert records[1].note == "trim"

    def test_other_assets_excluded(self, db: Session, sample_user, sample_asset):
        other = create_asset(db, sample_user, name="Bitcoin", ticker="BTC", asset_type=AssetType.CRYPTO)
        create_transaction(db, other, ts(2024, 2, 1), TransactionType.BUY, "1", 100)

        assert SqlTransactionSource().list_transactions(db, sample_asset.id, 0, ts(2030, 1, 1)) == []

    def test_reversed_window_rejected(self, db: Session, sample_asset):
        with pytest.raises(ValidationError):
            SqlTransactionSource().list_transactions(db, sample_asset.id, 10, 5)

    def test_latest_timestamp(self, db: Session, sample_asset):
        source = SqlTransactionSource()
        assert source.latest_timestamp(db, sample_asset.id) is None

        create_transaction(db, sample_asset, ts(2024, 5, 1), TransactionType.BUY, "1", 100)
        create_transaction(db, sample_asset, ts(2023, 1, 1), TransactionType.BUY, "1", 100)

        assert source.latest_timestamp(db, sample_asset.id) == ts(2024, 5, 1)


class TestSqlAssetRegistry:

    def test_asset_metadata(self, db: Session, sample_user):
        asset = create_asset(db, sample_user, status=AssetStatus.INACTIVE)

        meta = SqlAssetRegistry().asset_metadata(db, asset.id)

        assert meta.asset_id == asset.id
        assert meta.user_id == sample_user.id
        assert meta.ticker == "VWCE"
        assert meta.status == AssetStatus.INACTIVE

    def test_missing_asset(self, db: Session):
        with pytest.raises(AssetNotFoundError) as exc_info:
            SqlAssetRegistry().asset_metadata(db, 404)

        assert exc_info.value.asset_id == 404

    def test_asset_ids_for_user(self, db: Session, sample_user):
        first = create_asset(db, sample_user)
        second = create_asset(db, sample_user, ticker="IWDA")
        create_asset(db, create_user(db, "bob"))

        assert SqlAssetRegistry().asset_ids_for_user(db, sample_user.id) == [first.id, second.id]
