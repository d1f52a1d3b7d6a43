# backend/invest_snapshots/services/constants.py
"""
Centralized constants for the snapshot services.

Usage:
    from invest_snapshots.services.constants import PIVOT_MONTHS_BACK
"""

from decimal import Decimal


# =============================================================================
# RECOMPUTE WINDOW
# =============================================================================

# The baseline of a recompute pass is read this many months before the first
# affected month. Transactions are replayed from the month after the pivot.
PIVOT_MONTHS_BACK: int = 2

# Months at the start of a pass that receive the baseline before replay:
# the month preceding `from`, `from` itself and the month after it.
LEADING_BASELINE_OFFSETS: tuple[int, ...] = (-1, 0, 1)


# =============================================================================
# FAST PATH
# =============================================================================

# A new transaction may be applied incrementally only when it falls in the
# current calendar month or at most this many months before it.
FAST_PATH_MAX_MONTHS_BACK: int = 1


# =============================================================================
# AMOUNTS & PERCENTAGES
# =============================================================================

# Quantization for scaled (major unit) amounts and percentages
MONEY_QUANTUM: Decimal = Decimal("0.01")
PERCENT_QUANTUM: Decimal = Decimal("0.01")

HUNDRED: Decimal = Decimal("100")
