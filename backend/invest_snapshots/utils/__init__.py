# backend/invest_snapshots/utils/__init__.py
"""
Cross-cutting utilities:
- logging: Logging configuration with correlation ID support
- context: Correlation ID storage (contextvars)
- months: Calendar month arithmetic (MonthKey)
"""

from invest_snapshots.utils.context import (
    get_correlation_id,
    set_correlation_id,
    clear_correlation_id,
    correlation_scope,
)
from invest_snapshots.utils.logging import setup_logging
from invest_snapshots.utils.months import MonthKey, iter_months

__all__ = [
    # Logging
    "setup_logging",
    # Context
    "get_correlation_id",
    "set_correlation_id",
    "clear_correlation_id",
    "correlation_scope",
    # Months
    "MonthKey",
    "iter_months",
]
