# backend/invest_snapshots/services/roi/__init__.py
"""
ROI aggregation over snapshots and transactions.

Usage:
    from invest_snapshots.services.roi import ROIAggregator
"""

from invest_snapshots.services.roi.aggregator import ROIAggregator
from invest_snapshots.services.roi.types import (
    AssetPerformance,
    DistributionEntry,
    InvestedWithdrawn,
    MonthlyValuePoint,
    PortfolioSummary,
    TypeDistributionEntry,
    YearPerformance,
)

__all__ = [
    "ROIAggregator",
    "AssetPerformance",
    "DistributionEntry",
    "InvestedWithdrawn",
    "MonthlyValuePoint",
    "PortfolioSummary",
    "TypeDistributionEntry",
    "YearPerformance",
]
