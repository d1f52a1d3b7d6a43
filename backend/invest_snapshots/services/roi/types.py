# backend/invest_snapshots/services/roi/types.py
"""
Data types for the ROI Aggregator.

Snapshot-derived values stay in integer minor units (cents). Only the
combined transaction balances are scaled to major units, as Decimal.
Percentages are Decimal quantized to two places.

Architecture:
    - InvestedWithdrawn: Buy-only and sell-only sums over a window
    - DistributionEntry: One asset's share of portfolio value
    - TypeDistributionEntry: One asset type's share of portfolio value
    - AssetPerformance: ROI of one asset (top performers)
    - MonthlyValuePoint: Portfolio value for one month (charts)
    - YearPerformance: Combined performance for one calendar year
    - PortfolioSummary: Dashboard totals
"""

from dataclasses import dataclass
from decimal import Decimal

from invest_snapshots.models import AssetType


@dataclass(frozen=True)
class InvestedWithdrawn:
    """
    Attributes:
        invested: Sum of buy amounts, major units
        withdrawn: Sum of sell amounts, major units
    """
    invested: Decimal
    withdrawn: Decimal


# =============================================================================
# DISTRIBUTION
# =============================================================================

@dataclass(frozen=True)
class DistributionEntry:
    """
    One active asset's share of total current value.

    Attributes:
        percentage: Share of the total in percent, 0 when the total is 0
    """
    asset_id: int
    asset_name: str
    asset_type: AssetType | None
    current_value: int
    percentage: Decimal


@dataclass(frozen=True)
class TypeDistributionEntry:
    asset_type: AssetType | None
    current_value: int
    percentage: Decimal
    asset_count: int


# =============================================================================
# PERFORMANCE
# =============================================================================

@dataclass(frozen=True)
class AssetPerformance:
    """
    ROI of one asset from its latest snapshot.

    Attributes:
        roi_value: current_value - invested_amount + withdrawn_amount
        roi_percentage: roi_value over invested_amount, None if nothing invested
    """
    asset_id: int
    asset_name: str
    asset_type: AssetType | None
    current_value: int
    invested_amount: int
    withdrawn_amount: int
    roi_value: int
    roi_percentage: Decimal | None


@dataclass(frozen=True)
class MonthlyValuePoint:
    """
    Portfolio totals for one month, summed over the assets that have a
    snapshot in that month.

    Attributes:
        label: "M/YYYY" chart key
    """
    month: int
    year: int
    label: str
    current_value: int
    invested_amount: int
    withdrawn_amount: int
    asset_count: int


@dataclass(frozen=True)
class YearPerformance:
    """
    Combined performance of all the user's assets over one calendar year.

    Attributes:
        start_value: Value at the end of the previous year
        end_value: Value at the end of the year (current month for this year)
        invested: Buys during the year, minor units
        withdrawn: Sells during the year, minor units
        roi_value: end - start - (invested - withdrawn)
        roi_percentage: roi_value over (start + invested), None if that is 0
    """
    year: int
    start_value: int
    end_value: int
    invested: int
    withdrawn: int
    roi_value: int
    roi_percentage: Decimal | None


@dataclass(frozen=True)
class PortfolioSummary:
    """
    Dashboard totals from the latest snapshot of every asset.

    Attributes:
        global_roi_value: total_current_value - total_invested + total_withdrawn
        global_roi_percentage: global ROI over total invested
        current_year_roi_value: ROI of the current calendar year
        current_year_roi_percentage: Current-year ROI in percent
    """
    total_current_value: int
    total_invested_amount: int
    total_withdrawn_amount: int
    global_roi_value: int
    global_roi_percentage: Decimal | None
    current_year_roi_value: int
    current_year_roi_percentage: Decimal | None
    asset_count: int
    active_asset_count: int
