# backend/invest_snapshots/schemas/__init__.py
"""
Pydantic schemas for snapshot engine input validation and serialization.

- snapshots: mark-value / single-transaction / recompute-window inputs,
  recompute summaries for output

Usage:
    from invest_snapshots.schemas import MarkValueInput, validate_input
"""

from invest_snapshots.schemas.snapshots import (
    MonthRef,
    MarkValueInput,
    SingleTransactionInput,
    RecomputeWindow,
    RecomputeSummary,
    validate_input,
)

__all__ = [
    "MonthRef",
    "MarkValueInput",
    "SingleTransactionInput",
    "RecomputeWindow",
    "RecomputeSummary",
    "validate_input",
]
