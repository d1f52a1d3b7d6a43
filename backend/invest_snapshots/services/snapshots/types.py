# backend/invest_snapshots/services/snapshots/types.py
"""
Data types shared by the snapshot ledger, recompute engine, valuation
service and ROI aggregator.

These dataclasses are the only shape in which snapshot data leaves the
ledger. ORM rows stay inside the ledger module, so no caller depends on
column names or on session state.

Design Principles:
- Immutable value objects (frozen=True)
- Decimal for units, int (minor currency units) for money
- Warnings accumulate for data quality tracking

Type Hierarchy:
    Snapshot            - One asset's state at one month end
    SnapshotWithAsset   - Snapshot joined with asset metadata
    RunningTotals       - Mutable-by-replacement totals carried through a replay
    RecomputeResult     - Outcome of one recompute pass
    SyncResult          - Outcome of one transaction mutation hook
    TransactionRecord   - One ledger transaction as read by the engine
    AssetMetadata       - Asset registry view
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from invest_snapshots.models import AssetStatus, AssetType, TransactionType
from invest_snapshots.utils.months import MonthKey

if TYPE_CHECKING:
    from invest_snapshots.models import AssetSnapshot


# =============================================================================
# SNAPSHOTS
# =============================================================================

@dataclass(frozen=True)
class Snapshot:
    """
    State of one asset at the end of one calendar month.

    Attributes:
        asset_id: Asset the snapshot belongs to
        month: Calendar month (1-12)
        year: Calendar year
        units: Units held (negative only if sells exceed recorded buys)
        invested_amount: Cumulative buy amounts, minor units
        withdrawn_amount: Cumulative sell amounts, minor units
        current_value: Last marked market value, minor units
        created_at: Row creation time
        updated_at: Last write time
    """

    asset_id: int
    month: int
    year: int
    units: Decimal
    invested_amount: int
    withdrawn_amount: int
    current_value: int
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def key(self) -> MonthKey:
        return MonthKey(year=self.year, month=self.month)

    @classmethod
    def from_row(cls, row: AssetSnapshot) -> Snapshot:
        return cls(
            asset_id=row.asset_id,
            month=row.month,
            year=row.year,
            units=Decimal(row.units),
            invested_amount=int(row.invested_amount),
            withdrawn_amount=int(row.withdrawn_amount),
            current_value=int(row.current_value),
            created_at=row.created_at,
            updated_at=row.updated_at,
        )


@dataclass(frozen=True)
class SnapshotWithAsset(Snapshot):
    """
    Snapshot plus the asset metadata needed for charts and distributions.
    """

    asset_name: str = ""
    asset_ticker: str | None = None
    asset_type: AssetType | None = None
    asset_broker: str | None = None
    asset_status: AssetStatus = AssetStatus.ACTIVE

    @property
    def is_active(self) -> bool:
        return self.asset_status == AssetStatus.ACTIVE


# =============================================================================
# RECOMPUTE
# =============================================================================

@dataclass(frozen=True)
class RunningTotals:
    """
    Cumulative totals carried through a replay.

    current_value rides along only so that months created by the pass
    inherit the baseline mark; transactions never change it.
    """

    units: Decimal = Decimal("0")
    invested_amount: int = 0
    withdrawn_amount: int = 0
    current_value: int = 0

    @classmethod
    def from_snapshot(cls, snapshot: Snapshot | None) -> RunningTotals:
        """Baseline from a snapshot; zero totals when there is none."""
        if snapshot is None:
            return cls()
        return cls(
            units=snapshot.units,
            invested_amount=snapshot.invested_amount,
            withdrawn_amount=snapshot.withdrawn_amount,
            current_value=snapshot.current_value,
        )

    def with_delta(self, units: Decimal, amount: int, is_sell: bool) -> RunningTotals:
        """
        Totals after one buy or sell.

        Buy:  units += units, invested += amount
        Sell: units -= units, withdrawn += amount
        """
        if is_sell:
            return replace(
                self,
                units=self.units - units,
                withdrawn_amount=self.withdrawn_amount + amount,
            )
        return replace(
            self,
            units=self.units + units,
            invested_amount=self.invested_amount + amount,
        )

    def apply(self, transaction: TransactionRecord) -> RunningTotals:
        return self.with_delta(
            transaction.units,
            transaction.total_amount,
            is_sell=transaction.transaction_type == TransactionType.SELL,
        )

    def as_values(self) -> dict[str, Decimal | int]:
        """Column values for SnapshotLedger.upsert."""
        return {
            "units": self.units,
            "invested_amount": self.invested_amount,
            "withdrawn_amount": self.withdrawn_amount,
            "current_value": self.current_value,
        }


@dataclass
class RecomputeResult:
    """
    Outcome of one recompute pass.

    Attributes:
        asset_id: Asset that was recomputed
        totals: Running totals after the last replayed transaction
        months_written: Distinct months written, chronological
        transactions_applied: Number of transactions replayed
        warnings: Data quality warnings (e.g., negative units)
    """

    asset_id: int
    totals: RunningTotals
    months_written: list[MonthKey] = field(default_factory=list)
    transactions_applied: int = 0
    warnings: list[str] = field(default_factory=list)


# =============================================================================
# COLLABORATOR RECORDS
# =============================================================================

@dataclass
class SyncResult:
    """
    What a transaction mutation hook did.

    Attributes:
        mode: "fast_path" (one month updated in place) or "recompute"
        snapshot: Month written by the fast path
        recomputes: One result per recomputed asset
    """

    mode: str
    snapshot: Snapshot | None = None
    recomputes: list[RecomputeResult] = field(default_factory=list)

    @property
    def warnings(self) -> list[str]:
        return [w for result in self.recomputes for w in result.warnings]


@dataclass(frozen=True)
class TransactionRecord:
    """
    A ledger transaction as consumed by the engine.

    units and total_amount are unsigned; transaction_type carries direction.
    """

    id: int
    asset_id: int
    timestamp: int
    transaction_type: TransactionType
    units: Decimal
    total_amount: int
    note: str | None = None


@dataclass(frozen=True)
class AssetMetadata:
    """Asset registry view of one asset."""

    asset_id: int
    user_id: int
    name: str
    ticker: str | None
    asset_type: AssetType
    broker: str | None
    status: AssetStatus
