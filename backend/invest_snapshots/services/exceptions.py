# backend/invest_snapshots/services/exceptions.py
"""
Service layer exceptions.

These exceptions represent domain errors and contain NO transport
knowledge. An outer layer (web router, CLI) maps them to responses.

Exception Hierarchy:
    ServiceError (base)
    ├── ValidationError
    │   └── BackdatedTransactionError
    ├── NotFoundError
    │   └── AssetNotFoundError
    └── SnapshotStoreError
        ├── UnsupportedDialectError
        └── RecomputeError

Missing snapshots are NOT errors: ledger lookups return None and callers
treat that as a zero baseline.
"""


class ServiceError(Exception):
    """
    Base exception for all service layer errors.

    Attributes:
        message: Human-readable error description
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


# =============================================================================
# VALIDATION ERRORS
# =============================================================================


class ValidationError(ServiceError):
    """
    Raised when input is rejected before any snapshot is written.

    Attributes:
        field: The field that failed validation (optional)
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class BackdatedTransactionError(ValidationError):
    """
    Raised when the incremental single-transaction path is asked to apply
    a transaction that only a full recompute can place correctly.

    Attributes:
        asset_id: Asset the transaction belongs to
        month: Calendar month of the transaction
        year: Calendar year of the transaction
    """

    def __init__(self, asset_id: int, month: int, year: int, reason: str) -> None:
        self.asset_id = asset_id
        self.month = month
        self.year = year
        super().__init__(
            f"Transaction for asset {asset_id} in {year:04d}-{month:02d} "
            f"needs a full recompute: {reason}",
            field="timestamp",
        )


# =============================================================================
# NOT FOUND ERRORS
# =============================================================================


class NotFoundError(ServiceError):
    """
    Base exception for resource not found errors.

    Attributes:
        resource_type: Type of resource (e.g., "Asset")
        resource_id: Identifier of the resource
    """

    def __init__(
            self,
            message: str,
            resource_type: str | None = None,
            resource_id: int | str | None = None,
    ) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(message)


class AssetNotFoundError(NotFoundError):
    """Raised when an asset id does not exist in the asset registry."""

    def __init__(self, asset_id: int) -> None:
        self.asset_id = asset_id
        super().__init__(
            f"Asset {asset_id} not found",
            resource_type="Asset",
            resource_id=asset_id,
        )


# =============================================================================
# SNAPSHOT STORE ERRORS
# =============================================================================


class SnapshotStoreError(ServiceError):
    """Base exception for snapshot persistence failures."""
    pass


class UnsupportedDialectError(SnapshotStoreError):
    """
    Raised when the database has no single-statement upsert we know how to emit.

    Attributes:
        dialect: SQLAlchemy dialect name (e.g., "oracle")
    """

    def __init__(self, dialect: str) -> None:
        self.dialect = dialect
        super().__init__(
            f"Snapshot upserts are not supported on dialect '{dialect}'. "
            "Use PostgreSQL, SQLite or MySQL/MariaDB."
        )


class RecomputeError(SnapshotStoreError):
    """
    Raised when a recompute pass fails and is rolled back.

    No snapshot written by the failed pass is visible afterwards.
    The original exception is chained as __cause__.

    Attributes:
        asset_id: Asset whose pass failed
        reason: Short description of the underlying failure
    """

    def __init__(self, asset_id: int, reason: str) -> None:
        self.asset_id = asset_id
        self.reason = reason
        super().__init__(f"Snapshot recompute for asset {asset_id} failed and was rolled back: {reason}")


__all__ = [
    "ServiceError",
    "ValidationError",
    "BackdatedTransactionError",
    "NotFoundError",
    "AssetNotFoundError",
    "SnapshotStoreError",
    "UnsupportedDialectError",
    "RecomputeError",
]
