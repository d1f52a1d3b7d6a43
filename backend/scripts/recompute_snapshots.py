#!/usr/bin/env python3
# backend/scripts/recompute_snapshots.py
"""
Rebuild monthly snapshots from the transaction log.

Recomputes one asset, or every asset of a user, over the window between
--from and --to (YYYY-MM). Without a window the whole history of each
asset is replayed, from its first to its last transaction.

Usage:
    python backend/scripts/recompute_snapshots.py --asset-id 12
    python backend/scripts/recompute_snapshots.py --user-id 3 --from 2024-01 --to 2024-06
    python backend/scripts/recompute_snapshots.py --user-id 3 --json
"""
import argparse
import logging
import sys
from pathlib import Path

# Setup path to import invest_snapshots modules
backend_dir = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(backend_dir))

from sqlalchemy import func, select

from invest_snapshots.config import settings
from invest_snapshots.database import session_scope
from invest_snapshots.models import InvestTransaction
from invest_snapshots.schemas import RecomputeSummary
from invest_snapshots.services import (
    RecomputeEngine,
    ServiceError,
    SqlAssetRegistry,
)
from invest_snapshots.utils import MonthKey, correlation_scope, setup_logging

logger = logging.getLogger(__name__)


def parse_month(value: str) -> MonthKey:
    """argparse type for YYYY-MM."""
    try:
        year_text, month_text = value.split("-")
        return MonthKey(year=int(year_text), month=int(month_text))
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM, got '{value}'") from e


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Rebuild monthly asset snapshots")
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--asset-id", type=int, help="Recompute a single asset")
    target.add_argument("--user-id", type=int, help="Recompute every asset of a user")
    parser.add_argument("--from", dest="from_month", type=parse_month, help="First month (YYYY-MM)")
    parser.add_argument("--to", dest="to_month", type=parse_month, help="Last month (YYYY-MM)")
    parser.add_argument("--json", action="store_true", help="Print one JSON summary per asset")
    return parser


def history_window(db, asset_id: int) -> tuple[int, int] | None:
    """First and last transaction timestamps of an asset, or None."""
    first, last = db.execute(
        select(
            func.min(InvestTransaction.date_timestamp),
            func.max(InvestTransaction.date_timestamp),
        ).where(InvestTransaction.asset_id == asset_id)
    ).one()
    if first is None:
        return None
    return int(first), int(last)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(level=settings.log_level, log_format=settings.log_format)

    tz = settings.tzinfo
    engine = RecomputeEngine()
    registry = SqlAssetRegistry()
    failures = 0

    with correlation_scope() as correlation_id:
        logger.info(f"Snapshot recompute run {correlation_id} started")

        with session_scope() as db:
            if args.asset_id is not None:
                asset_ids = [args.asset_id]
            else:
                asset_ids = registry.asset_ids_for_user(db, args.user_id)

            for asset_id in asset_ids:
                window = history_window(db, asset_id)
                if args.from_month is not None:
                    from_ts = args.from_month.start_timestamp(tz)
                elif window is not None:
                    from_ts = window[0]
                else:
                    logger.info(f"Asset {asset_id} has no transactions, skipping")
                    continue

                if args.to_month is not None:
                    to_ts = args.to_month.end_timestamp(tz)
                else:
                    to_ts = max(from_ts, window[1]) if window is not None else from_ts

                try:
                    result = engine.recompute(db, asset_id, from_ts, to_ts)
                except ServiceError as e:
                    failures += 1
                    logger.error(f"Asset {asset_id}: {e}")
                    continue

                if args.json:
                    print(RecomputeSummary.from_result(result).model_dump_json())

        logger.info(f"Snapshot recompute run {correlation_id} finished, {failures} failures")

    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
