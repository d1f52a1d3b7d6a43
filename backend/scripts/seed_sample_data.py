#!/usr/bin/env python3
# backend/scripts/seed_sample_data.py
import logging
import sys
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path

# Setup path to import invest_snapshots modules
backend_dir = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(backend_dir))

from invest_snapshots.database import SessionLocal
from invest_snapshots.models import Asset, AssetType, InvestTransaction, TransactionType, User
from invest_snapshots.services import SnapshotSyncService, ValuationService

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def _ts(year: int, month: int, day: int) -> int:
    return int(datetime(year, month, day, 12, 0, tzinfo=timezone.utc).timestamp())


def seed():
    db = SessionLocal()
    try:
        logger.info("🌱 Starting Database Seeding...")

        # 1. Create Demo User
        user = db.query(User).filter(User.username == "demo").first()
        if not user:
            user = User(username="demo", created_at=datetime.now(timezone.utc))
            db.add(user)
            db.commit()
            db.refresh(user)
            logger.info(f"✅ Created User: {user.username}")
        else:
            logger.info(f"ℹ️ User exists: {user.username}")

        # 2. Create Assets
        assets_data = [
            {"ticker": "VWCE", "name": "Vanguard FTSE All-World", "type": AssetType.ETF, "broker": "IBKR"},
            {"ticker": "BTC", "name": "Bitcoin", "type": AssetType.CRYPTO, "broker": "Kraken"},
        ]

        created_assets = {}

        for data in assets_data:
            asset = db.query(Asset).filter(
                Asset.user_id == user.id,
                Asset.ticker == data["ticker"],
            ).first()

            if not asset:
                asset = Asset(
                    user_id=user.id,
                    ticker=data["ticker"],
                    name=data["name"],
                    asset_type=data["type"],
                    broker=data["broker"],
                )
                db.add(asset)
                db.commit()
                db.refresh(asset)
                logger.info(f"✅ Created Asset: {asset.ticker}")
            created_assets[data["ticker"]] = asset

        # 3. Create Transactions and rebuild snapshots through the sync hooks
        sync = SnapshotSyncService()
        vwce = created_assets["VWCE"]
        btc = created_assets["BTC"]

        if not db.query(InvestTransaction).filter(InvestTransaction.asset_id == vwce.id).first():
            transactions = [
                InvestTransaction(
                    asset_id=vwce.id,
                    date_timestamp=_ts(2024, 1, 15),
                    transaction_type=TransactionType.BUY,
                    units=Decimal("10"),
                    total_amount=105000,  # cents
                ),
                InvestTransaction(
                    asset_id=vwce.id,
                    date_timestamp=_ts(2024, 3, 20),
                    transaction_type=TransactionType.SELL,
                    units=Decimal("4"),
                    total_amount=46000,
                ),
                InvestTransaction(
                    asset_id=btc.id,
                    date_timestamp=_ts(2024, 2, 2),
                    transaction_type=TransactionType.BUY,
                    units=Decimal("0.05"),
                    total_amount=200000,
                ),
            ]
            db.add_all(transactions)
            db.commit()
            logger.info("✅ Created Sample Transactions")

            for transaction in transactions:
                sync.on_transaction_added(
                    db,
                    transaction.asset_id,
                    transaction.date_timestamp,
                    transaction.units,
                    transaction.total_amount,
                    is_sell=transaction.transaction_type == TransactionType.SELL,
                )
            logger.info("✅ Rebuilt Snapshots")

        # 4. Mark current values for the latest transaction months
        valuation = ValuationService()
        valuation.mark_current_value(
            db, vwce.id, month=3, year=2024,
            units=Decimal("6"), withdrawn_amount=46000, current_value=70200,
        )
        valuation.mark_current_value(
            db, btc.id, month=2, year=2024,
            units=Decimal("0.05"), withdrawn_amount=0, current_value=260000,
        )
        logger.info("✅ Marked Current Values")

        logger.info("🚀 Seeding Complete!")

    except Exception as e:
        logger.error(f"❌ Seeding Failed: {e}")
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    seed()
