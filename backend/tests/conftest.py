# backend/tests/conftest.py
"""
Pytest configuration and fixtures.

This module provides shared fixtures for all tests:
- Database session fixtures (in-memory SQLite)
- Snapshot engine fixtures pinned to UTC with a private lock registry
- Sample data factories (users, assets, transactions, snapshots)
"""

import os

# Settings are read at import time; pin them before invest_snapshots loads.
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("CALENDAR_TIMEZONE", "UTC")

from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from invest_snapshots.models import (
    Base,
    Asset,
    AssetSnapshot,
    AssetStatus,
    AssetType,
    InvestTransaction,
    TransactionType,
    User,
)
from invest_snapshots.services.roi import ROIAggregator
from invest_snapshots.services.snapshots import (
    AssetLockRegistry,
    RecomputeEngine,
    SnapshotLedger,
    SnapshotSyncService,
    ValuationService,
)

UTC = timezone.utc


# =============================================================================
# DATABASE FIXTURES
# =============================================================================

@pytest.fixture(scope="function")
def db_engine():
    """Create an in-memory SQLite database engine for testing."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)


@pytest.fixture(scope="function")
def db(db_engine) -> Iterator[Session]:
    """Create a database session for testing."""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


# =============================================================================
# ENGINE FIXTURES
# =============================================================================

@pytest.fixture
def locks() -> AssetLockRegistry:
    """Fresh lock registry so tests never share lock state."""
    return AssetLockRegistry()


@pytest.fixture
def ledger() -> SnapshotLedger:
    return SnapshotLedger(tz=UTC)


@pytest.fixture
def recompute_engine(ledger: SnapshotLedger, locks: AssetLockRegistry) -> RecomputeEngine:
    """Engine with the default six buffer months."""
    return RecomputeEngine(ledger=ledger, locks=locks, buffer_months=6, tz=UTC)


@pytest.fixture
def valuation(ledger: SnapshotLedger, locks: AssetLockRegistry) -> ValuationService:
    return ValuationService(ledger=ledger, locks=locks, tz=UTC)


@pytest.fixture
def sync(recompute_engine: RecomputeEngine, valuation: ValuationService) -> SnapshotSyncService:
    return SnapshotSyncService(engine=recompute_engine, valuation=valuation)


@pytest.fixture
def roi(ledger: SnapshotLedger) -> ROIAggregator:
    return ROIAggregator(ledger=ledger, amount_scale=100, tz=UTC)


# =============================================================================
# SAMPLE DATA FACTORIES
# =============================================================================

def ts(year: int, month: int, day: int = 15, hour: int = 12) -> int:
    """Unix timestamp for a UTC date (noon by default)."""
    return int(datetime(year, month, day, hour, tzinfo=UTC).timestamp())


def create_user(db: Session, username: str = "alice") -> User:
    """Factory function for creating User entities in the database."""
    user = User(username=username)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def create_asset(
        db: Session,
        user: User,
        name: str = "Vanguard FTSE All-World",
        ticker: str | None = "VWCE",
        asset_type: AssetType = AssetType.ETF,
        broker: str | None = "IBKR",
        status: AssetStatus = AssetStatus.ACTIVE,
) -> Asset:
    """Factory function for creating Asset entities in the database."""
    asset = Asset(
        user_id=user.id,
        name=name,
        ticker=ticker,
        asset_type=asset_type,
        broker=broker,
        status=status,
    )
    db.add(asset)
    db.commit()
    db.refresh(asset)
    return asset


def create_transaction(
        db: Session,
        asset: Asset,
        timestamp: int,
        transaction_type: TransactionType,
        units: Decimal | str,
        total_amount: int,
        note: str | None = None,
) -> InvestTransaction:
    """Factory function for creating InvestTransaction entities in the database."""
    transaction = InvestTransaction(
        asset_id=asset.id,
        date_timestamp=timestamp,
        transaction_type=transaction_type,
        units=Decimal(units),
        total_amount=total_amount,
        note=note,
    )
    db.add(transaction)
    db.commit()
    db.refresh(transaction)
    return transaction


def create_snapshot(
        db: Session,
        asset: Asset,
        month: int,
        year: int,
        units: Decimal | str = "0",
        invested_amount: int = 0,
        withdrawn_amount: int = 0,
        current_value: int = 0,
) -> AssetSnapshot:
    """Factory function for creating AssetSnapshot rows directly, bypassing the ledger."""
    snapshot = AssetSnapshot(
        asset_id=asset.id,
        month=month,
        year=year,
        units=Decimal(units),
        invested_amount=invested_amount,
        withdrawn_amount=withdrawn_amount,
        current_value=current_value,
    )
    db.add(snapshot)
    db.commit()
    db.refresh(snapshot)
    return snapshot


def values_of(snapshot) -> tuple:
    """(units, invested, withdrawn, current_value) of a Snapshot record."""
    return (
        snapshot.units,
        snapshot.invested_amount,
        snapshot.withdrawn_amount,
        snapshot.current_value,
    )


# =============================================================================
# FIXTURE EXPORTS (for convenience imports in tests)
# =============================================================================

@pytest.fixture
def sample_user(db: Session) -> User:
    """Provide a sample User for tests."""
    return create_user(db)


@pytest.fixture
def sample_asset(db: Session, sample_user: User) -> Asset:
    """Provide a sample active ETF asset for tests."""
    return create_asset(db, sample_user)
