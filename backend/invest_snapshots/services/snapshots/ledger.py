# backend/invest_snapshots/services/snapshots/ledger.py
"""
Snapshot Ledger - durable store of one snapshot per (asset, month, year).

Responsibilities:
- Single-statement upsert on the (asset_id, month, year) unique key
- Point lookup and "latest at or before" lookup
- Per-user listings joined with asset metadata

Every read returns typed Snapshot records. ORM rows never leave this
module, and reads use populate_existing so an upsert issued earlier in
the same session is always visible.

Upsert dialects:
- postgresql: INSERT ... ON CONFLICT (asset_id, month, year) DO UPDATE
- sqlite:     same syntax (SQLite >= 3.24)
- mysql / mariadb: INSERT ... ON DUPLICATE KEY UPDATE

Usage:
    from invest_snapshots.services.snapshots import SnapshotLedger

    ledger = SnapshotLedger()
    ledger.upsert(db, asset_id=1, month=3, year=2024, values={
        "units": Decimal("6"),
        "invested_amount": 1000,
        "withdrawn_amount": 500,
        "current_value": 0,
    })
    latest = ledger.get_latest_at_or_before(db, asset_id=1, month=6, year=2024)
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone, tzinfo
from decimal import Decimal
from typing import Any

from sqlalchemy import and_, exists, func, or_, select
from sqlalchemy.dialects.mysql import insert as mysql_insert
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from invest_snapshots.config import settings
from invest_snapshots.models import Asset, AssetSnapshot
from invest_snapshots.services.exceptions import UnsupportedDialectError, ValidationError
from invest_snapshots.services.snapshots.types import Snapshot, SnapshotWithAsset
from invest_snapshots.utils.months import MonthKey

logger = logging.getLogger(__name__)

# Columns a caller may write. Keys, ids and timestamps are managed here.
SNAPSHOT_VALUE_FIELDS: tuple[str, ...] = (
    "units",
    "invested_amount",
    "withdrawn_amount",
    "current_value",
)

_CONFLICT_KEY = ["asset_id", "month", "year"]

_ZERO_VALUES: dict[str, Any] = {
    "units": Decimal("0"),
    "invested_amount": 0,
    "withdrawn_amount": 0,
    "current_value": 0,
}


def _month_index(year_col, month_col):
    """Linear month index (year * 12 + month) usable in SQL comparisons."""
    return year_col * 12 + month_col


class SnapshotLedger:
    """
    Storage gateway for AssetSnapshot rows.

    Stateless apart from the calendar zone used to resolve the default
    cutoff ("now"). Safe to share between threads; each call uses the
    session it is given.
    """

    def __init__(self, tz: tzinfo | None = None) -> None:
        """
        Args:
            tz: Calendar zone for default cutoffs. Defaults to CALENDAR_TIMEZONE.
        """
        self._tz = tz if tz is not None else settings.tzinfo

    # =========================================================================
    # WRITES
    # =========================================================================

    def upsert(
            self,
            db: Session,
            asset_id: int,
            month: int,
            year: int,
            values: Mapping[str, Any],
            update_fields: Iterable[str] | None = None,
    ) -> None:
        """
        Insert a snapshot or update the existing one, in one statement.

        On insert every field of `values` is written (missing fields are
        zero). On conflict only `update_fields` are overwritten (all of
        `values` when None); other columns keep their stored value.
        updated_at is refreshed in both cases.

        Does not commit. The caller owns the unit of work.

        Raises:
            ValidationError: month/year out of range or unknown value fields
            UnsupportedDialectError: database has no upsert statement we support
        """
        self._validate_key(month, year)

        unknown = set(values) - set(SNAPSHOT_VALUE_FIELDS)
        if unknown:
            raise ValidationError(
                f"Unknown snapshot fields: {', '.join(sorted(unknown))}",
                field=sorted(unknown)[0],
            )

        fields = list(values) if update_fields is None else list(update_fields)
        missing = [f for f in fields if f not in values]
        if missing:
            raise ValidationError(
                f"Update fields without a value: {', '.join(missing)}",
                field=missing[0],
            )

        now = datetime.now(timezone.utc)
        row = {
            **_ZERO_VALUES,
            **values,
            "asset_id": asset_id,
            "month": month,
            "year": year,
            "created_at": now,
            "updated_at": now,
        }
        update_set = {f: values[f] for f in fields}
        update_set["updated_at"] = now

        db.execute(self._build_upsert(db, row, update_set))

        logger.debug(
            f"Upserted snapshot asset={asset_id} {year:04d}-{month:02d} "
            f"(on conflict: {', '.join(fields) or 'updated_at only'})"
        )

    def _build_upsert(self, db: Session, row: dict[str, Any], update_set: dict[str, Any]):
        dialect = db.get_bind().dialect.name

        if dialect == "postgresql":
            stmt = pg_insert(AssetSnapshot).values(**row)
            return stmt.on_conflict_do_update(index_elements=_CONFLICT_KEY, set_=update_set)

        if dialect == "sqlite":
            stmt = sqlite_insert(AssetSnapshot).values(**row)
            return stmt.on_conflict_do_update(index_elements=_CONFLICT_KEY, set_=update_set)

        if dialect in ("mysql", "mariadb"):
            stmt = mysql_insert(AssetSnapshot).values(**row)
            return stmt.on_duplicate_key_update(**update_set)

        raise UnsupportedDialectError(dialect)

    @staticmethod
    def _validate_key(month: int, year: int) -> None:
        if not isinstance(month, int) or not 1 <= month <= 12:
            raise ValidationError(f"Month must be between 1 and 12, got {month!r}", field="month")
        if not isinstance(year, int) or not 1 <= year <= 9999:
            raise ValidationError(f"Year must be between 1 and 9999, got {year!r}", field="year")

    # =========================================================================
    # POINT READS
    # =========================================================================

    def get_exact(self, db: Session, asset_id: int, month: int, year: int) -> Snapshot | None:
        """Snapshot for exactly (month, year), or None."""
        self._validate_key(month, year)
        row = db.scalar(
            select(AssetSnapshot)
            .where(
                AssetSnapshot.asset_id == asset_id,
                AssetSnapshot.month == month,
                AssetSnapshot.year == year,
            )
            .execution_options(populate_existing=True)
        )
        return Snapshot.from_row(row) if row is not None else None

    def get_latest_at_or_before(
            self,
            db: Session,
            asset_id: int,
            month: int | None = None,
            year: int | None = None,
    ) -> Snapshot | None:
        """
        Snapshot with the greatest (year, month) not after the cutoff.

        The cutoff defaults to the current calendar month; a missing month
        or year alone is filled from it. Returns None when the asset has no
        snapshot at or before it.
        """
        cutoff = self._cutoff(month, year)
        row = db.scalar(
            select(AssetSnapshot)
            .where(
                AssetSnapshot.asset_id == asset_id,
                self._at_or_before(cutoff),
            )
            .order_by(AssetSnapshot.year.desc(), AssetSnapshot.month.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        return Snapshot.from_row(row) if row is not None else None

    def has_snapshots_after(self, db: Session, asset_id: int, month: int, year: int) -> bool:
        """True if any snapshot of the asset is strictly later than (month, year)."""
        self._validate_key(month, year)
        later = or_(
            AssetSnapshot.year > year,
            and_(AssetSnapshot.year == year, AssetSnapshot.month > month),
        )
        return bool(
            db.scalar(
                select(
                    exists().where(AssetSnapshot.asset_id == asset_id, later)
                )
            )
        )

    # =========================================================================
    # LISTINGS
    # =========================================================================

    def list_for_asset(self, db: Session, asset_id: int) -> list[Snapshot]:
        """All snapshots of one asset, oldest first."""
        rows = db.scalars(
            select(AssetSnapshot)
            .where(AssetSnapshot.asset_id == asset_id)
            .order_by(AssetSnapshot.year, AssetSnapshot.month)
            .execution_options(populate_existing=True)
        ).all()
        return [Snapshot.from_row(row) for row in rows]

    def list_for_user_up_to(
            self,
            db: Session,
            user_id: int,
            month: int | None = None,
            year: int | None = None,
    ) -> list[SnapshotWithAsset]:
        """
        Every snapshot of the user's assets up to the cutoff.

        Sorted by (year, month, asset_id). The cutoff defaults to the
        current calendar month.
        """
        cutoff = self._cutoff(month, year)
        rows = db.execute(
            select(AssetSnapshot, Asset)
            .join(Asset, Asset.id == AssetSnapshot.asset_id)
            .where(Asset.user_id == user_id, self._at_or_before(cutoff))
            .order_by(AssetSnapshot.year, AssetSnapshot.month, AssetSnapshot.asset_id)
            .execution_options(populate_existing=True)
        ).all()
        return [self._with_asset(snapshot, asset) for snapshot, asset in rows]

    def list_latest_for_user(
            self,
            db: Session,
            user_id: int,
            month: int | None = None,
            year: int | None = None,
    ) -> list[SnapshotWithAsset]:
        """
        The latest snapshot of each of the user's assets at or before the cutoff.

        Assets without any snapshot up to the cutoff are absent.
        Sorted by asset_id.
        """
        cutoff = self._cutoff(month, year)
        index = _month_index(AssetSnapshot.year, AssetSnapshot.month)

        latest = (
            select(
                AssetSnapshot.asset_id.label("asset_id"),
                func.max(index).label("month_index"),
            )
            .join(Asset, Asset.id == AssetSnapshot.asset_id)
            .where(Asset.user_id == user_id, self._at_or_before(cutoff))
            .group_by(AssetSnapshot.asset_id)
            .subquery()
        )

        rows = db.execute(
            select(AssetSnapshot, Asset)
            .join(Asset, Asset.id == AssetSnapshot.asset_id)
            .join(
                latest,
                and_(
                    latest.c.asset_id == AssetSnapshot.asset_id,
                    latest.c.month_index == index,
                ),
            )
            .order_by(AssetSnapshot.asset_id)
            .execution_options(populate_existing=True)
        ).all()
        return [self._with_asset(snapshot, asset) for snapshot, asset in rows]

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _cutoff(self, month: int | None, year: int | None) -> MonthKey:
        """Cutoff month; a missing month or year is taken from today."""
        current = MonthKey.current(self._tz)
        month = current.month if month is None else month
        year = current.year if year is None else year
        self._validate_key(month, year)
        return MonthKey.of(month, year)

    @staticmethod
    def _at_or_before(cutoff: MonthKey):
        return or_(
            AssetSnapshot.year < cutoff.year,
            and_(AssetSnapshot.year == cutoff.year, AssetSnapshot.month <= cutoff.month),
        )

    @staticmethod
    def _with_asset(row: AssetSnapshot, asset: Asset) -> SnapshotWithAsset:
        return SnapshotWithAsset(
            asset_id=row.asset_id,
            month=row.month,
            year=row.year,
            units=Decimal(row.units),
            invested_amount=int(row.invested_amount),
            withdrawn_amount=int(row.withdrawn_amount),
            current_value=int(row.current_value),
            created_at=row.created_at,
            updated_at=row.updated_at,
            asset_name=asset.name,
            asset_ticker=asset.ticker,
            asset_type=asset.asset_type,
            asset_broker=asset.broker,
            asset_status=asset.status,
        )
