# backend/invest_snapshots/schemas/snapshots.py
"""
Pydantic schemas for snapshot engine input and output.

Input models reject malformed numbers before any snapshot is touched:
- Month must be 1..12, year 1..9999
- Units are Decimal (never float), unsigned for transactions
- Amounts are integer minor currency units (cents), unsigned

validate_input() runs a model and re-raises Pydantic's error as the
service-layer ValidationError, naming the first offending field, so
callers only ever deal with one exception hierarchy.

IMPORTANT: All unit quantities use Decimal for precision.
Never use float for money or units!
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic import ValidationError as PydanticValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)


# =============================================================================
# INPUT SCHEMAS
# =============================================================================

class MonthRef(BaseModel):
    """A calendar month as (month, year)."""

    model_config = ConfigDict(strict=False, frozen=True)

    month: int = Field(..., ge=1, le=12, description="Calendar month (1-12)")
    year: int = Field(..., ge=1, le=9999, description="Calendar year")


class MarkValueInput(MonthRef):
    """
    Manual valuation of one asset for one month.

    units and withdrawn_amount are written alongside the mark because the
    user enters them together when updating a position.
    """

    asset_id: int = Field(..., gt=0)
    units: Decimal = Field(
        ...,
        max_digits=18,
        decimal_places=8,
        description="Units held at month end (may be negative after oversells)",
        examples=["10", "0.5"],
    )
    withdrawn_amount: int = Field(..., ge=0, description="Cumulative withdrawn, minor units")
    current_value: int = Field(..., ge=0, description="Marked market value, minor units")


class SingleTransactionInput(BaseModel):
    """One buy or sell applied incrementally to its month's snapshot."""

    asset_id: int = Field(..., gt=0)
    timestamp: int = Field(..., ge=0, description="Unix seconds")
    units: Decimal = Field(
        ...,
        ge=0,
        max_digits=18,
        decimal_places=8,
        description="Units bought or sold (unsigned)",
    )
    amount: int = Field(..., ge=0, description="Total amount, minor units (unsigned)")
    is_sell: bool = False


class RecomputeWindow(BaseModel):
    """
    Timestamp window affected by ledger changes.

    carry_through_ts marks a transaction that was deleted or moved away:
    the months it used to cover are rewritten with the final totals.
    """

    asset_id: int = Field(..., gt=0)
    from_ts: int = Field(..., ge=0, description="Earliest affected transaction, Unix seconds")
    to_ts: int = Field(..., ge=0, description="Latest affected transaction, Unix seconds")
    carry_through_ts: int | None = Field(
        default=None,
        ge=0,
        description="Old timestamp of a removed or moved transaction, Unix seconds",
    )

    @field_validator("to_ts")
    @classmethod
    def check_order(cls, value: int, info: ValidationInfo) -> int:
        from_ts = info.data.get("from_ts")
        if from_ts is not None and from_ts > value:
            raise ValueError(f"window end {value} is before its start {from_ts}")
        return value


# =============================================================================
# OUTPUT SCHEMAS
# =============================================================================

class RecomputeSummary(BaseModel):
    """Serialized RecomputeResult, as printed by the recompute script."""

    model_config = ConfigDict(from_attributes=True)

    asset_id: int
    units: Decimal
    invested_amount: int
    withdrawn_amount: int
    transactions_applied: int
    months_written: list[str]
    warnings: list[str] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: Any) -> RecomputeSummary:
        return cls(
            asset_id=result.asset_id,
            units=result.totals.units,
            invested_amount=result.totals.invested_amount,
            withdrawn_amount=result.totals.withdrawn_amount,
            transactions_applied=result.transactions_applied,
            months_written=[str(key) for key in result.months_written],
            warnings=list(result.warnings),
        )


# =============================================================================
# VALIDATION BRIDGE
# =============================================================================

def validate_input(model: type[ModelT], **data: Any) -> ModelT:
    """
    Build `model` from keyword data or raise the service ValidationError.

    Raises:
        ValidationError: with .field set to the first failing field
    """
    # Lazy import to avoid circular dependencies (services import these schemas)
    from invest_snapshots.services.exceptions import ValidationError

    try:
        return model(**data)
    except PydanticValidationError as e:
        first = e.errors()[0]
        loc = first.get("loc") or ()
        field = str(loc[0]) if loc else None
        raise ValidationError(f"Invalid {field or 'input'}: {first.get('msg')}", field=field) from e
