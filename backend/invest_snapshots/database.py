# backend/invest_snapshots/database.py
"""
Database connection and session management.

This module configures SQLAlchemy with:
- Connection pooling for server databases
- Environment-aware settings (test vs production)
- Explicit unit-of-work scopes (session_scope / atomic)
- Health check capabilities

Every service receives its Session from the caller. Services that must
commit or roll back several statements together wrap them in atomic(db),
so a failure never leaves a half-written snapshot series behind.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool, QueuePool

from .config import settings

logger = logging.getLogger(__name__)


def _create_engine():
    """
    Create SQLAlchemy engine with environment-appropriate configuration.

    - SQLite: StaticPool so an in-memory database is shared by all sessions
    - Server databases: QueuePool with configurable connection pooling
    """
    if settings.is_sqlite:
        logger.info("Configuring SQLite database")
        return create_engine(
            settings.database_url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
            echo=settings.debug,
        )

    logger.info(
        f"Configuring database pool: "
        f"size={settings.db_pool_size}, "
        f"max_overflow={settings.db_pool_max_overflow}, "
        f"recycle={settings.db_pool_recycle}s, "
        f"pre_ping={settings.db_pool_pre_ping}"
    )

    return create_engine(
        settings.database_url,
        poolclass=QueuePool,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_pool_max_overflow,
        pool_recycle=settings.db_pool_recycle,
        pool_pre_ping=settings.db_pool_pre_ping,
        pool_timeout=30,
        echo=settings.debug,
    )


engine = _create_engine()
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@contextmanager
def session_scope() -> Iterator[Session]:
    """
    Provide a transactional scope around a series of operations.

    On normal exit the session is committed and closed. On exception the
    session is rolled back, closed, and the exception is re-raised.

    Usage:
        with session_scope() as db:
            engine.recompute(db, asset_id=1, from_ts=..., to_ts=...)
    """
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        logger.warning("Session scope rolled back", exc_info=True)
        raise
    finally:
        db.close()


@contextmanager
def atomic(db: Session) -> Iterator[Session]:
    """
    Unit of work on a caller-owned session.

    Commits everything written inside the block, or rolls all of it back if
    the block raises. The session stays open for the caller.

    Usage:
        with atomic(db):
            ledger.upsert(db, ...)
            ledger.upsert(db, ...)
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise


def check_database_health() -> dict:
    """
    Check database connectivity and pool status.

    Returns:
        dict: Health status with connection info
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
            conn.commit()

        return {
            "status": "healthy",
            "database": engine.dialect.name,
            "pool": engine.pool.status(),
        }
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return {
            "status": "unhealthy",
            "error": str(e),
        }
