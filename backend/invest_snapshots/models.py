# backend/invest_snapshots/models.py
import enum
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Numeric,
    SmallInteger,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


class TransactionType(str, enum.Enum):
    BUY = "B"
    SELL = "S"


class AssetType(str, enum.Enum):
    PPR = "ppr"
    ETF = "etf"
    CRYPTO = "crypto"
    FIXED_INCOME = "fixed"
    INDEX_FUNDS = "index"
    INVESTMENT_FUNDS = "if"
    P2P_LOANS = "p2p"
    STOCKS = "stock"


class AssetStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class User(Base):
    """Owner of assets. Authentication lives outside this package."""
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    username: Mapped[str] = mapped_column(String, unique=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    assets: Mapped[list["Asset"]] = relationship(back_populates="owner")


class Asset(Base):
    """
    An investment asset owned by one user.

    Maintained by the asset registry; the snapshot engine only reads it.
    """
    __tablename__ = "invest_assets"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    name: Mapped[str] = mapped_column(String)
    ticker: Mapped[str | None] = mapped_column(String, index=True)
    asset_type: Mapped[AssetType] = mapped_column(Enum(AssetType))
    broker: Mapped[str | None] = mapped_column(String)
    status: Mapped[AssetStatus] = mapped_column(Enum(AssetStatus), default=AssetStatus.ACTIVE)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    owner: Mapped["User"] = relationship(back_populates="assets")
    transactions: Mapped[list["InvestTransaction"]] = relationship(
        back_populates="asset",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    snapshots: Mapped[list["AssetSnapshot"]] = relationship(
        back_populates="asset",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class InvestTransaction(Base):
    """
    A buy or sell of an asset.

    units and total_amount are unsigned magnitudes; the type carries the sign.
    total_amount is stored in minor currency units (cents).
    """
    __tablename__ = "invest_transactions"
    __table_args__ = (
        # "All transactions for asset A between two timestamps, in order"
        # is the only query the recompute pass issues against this table.
        Index("ix_invest_transaction_asset_date", "asset_id", "date_timestamp"),
        CheckConstraint("units >= 0", name="ck_invest_transaction_units_unsigned"),
        CheckConstraint("total_amount >= 0", name="ck_invest_transaction_amount_unsigned"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    asset_id: Mapped[int] = mapped_column(ForeignKey("invest_assets.id", ondelete="CASCADE"), index=True)
    date_timestamp: Mapped[int] = mapped_column(BigInteger, index=True)  # Unix seconds
    transaction_type: Mapped[TransactionType] = mapped_column(Enum(TransactionType))

    # Numeric(18, 8) supports fractional units (crypto, fund shares)
    units: Mapped[Decimal] = mapped_column(Numeric(18, 8))
    total_amount: Mapped[int] = mapped_column(BigInteger)
    note: Mapped[str | None] = mapped_column(String, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    asset: Mapped["Asset"] = relationship(back_populates="transactions")


class AssetSnapshot(Base):
    """
    Month-end state of one asset.

    One row per (asset_id, month, year). units / invested_amount /
    withdrawn_amount are running totals rebuilt from the transaction log;
    current_value is an external mark and is never derived from units.
    """
    __tablename__ = "invest_asset_snapshots"
    __table_args__ = (
        UniqueConstraint("asset_id", "month", "year", name="uq_snapshot_asset_month_year"),
        # Latest-at-or-before lookups scan (asset_id, year DESC, month DESC)
        Index("ix_snapshot_asset_year_month", "asset_id", "year", "month"),
        CheckConstraint("month BETWEEN 1 AND 12", name="ck_snapshot_month_range"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    asset_id: Mapped[int] = mapped_column(ForeignKey("invest_assets.id", ondelete="CASCADE"))
    month: Mapped[int] = mapped_column(SmallInteger)
    year: Mapped[int] = mapped_column(SmallInteger)

    units: Mapped[Decimal] = mapped_column(Numeric(18, 8), default=Decimal("0"))
    invested_amount: Mapped[int] = mapped_column(BigInteger, default=0)
    withdrawn_amount: Mapped[int] = mapped_column(BigInteger, default=0)
    current_value: Mapped[int] = mapped_column(BigInteger, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    asset: Mapped["Asset"] = relationship(back_populates="snapshots")
