# backend/invest_snapshots/services/snapshots/locks.py
"""
Per-asset mutual exclusion for snapshot writers.

A recompute pass reads a baseline, replays transactions and writes a run
of months. Two passes over the same asset interleaving those steps would
leave a series that matches neither history, so writers for one asset
take that asset's lock first. Different assets never contend.

The registry only covers threads of one process. Across processes the
recompute engine also takes a SELECT ... FOR UPDATE row lock on the asset.
"""

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass
class _LockEntry:
    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0


class AssetLockRegistry:
    """
    threading.Lock per asset id, alive only while someone holds or waits on it.

    Entries are reference counted under the registry's own lock: the first
    holder creates the entry, the last one out removes it. Two threads
    asking for the same asset always share one Lock object.
    """

    def __init__(self) -> None:
        self._entries: dict[int, _LockEntry] = {}
        self._registry_lock = threading.Lock()

    @contextmanager
    def hold(self, asset_id: int) -> Iterator[None]:
        """
        Hold the asset's lock for the duration of the block.

        Usage:
            with locks.hold(asset_id):
                ...  # read baseline, replay, write
        """
        with self._registry_lock:
            entry = self._entries.get(asset_id)
            if entry is None:
                entry = _LockEntry()
                self._entries[asset_id] = entry
            entry.users += 1

        try:
            if not entry.lock.acquire(blocking=False):
                logger.debug(f"Waiting for snapshot lock on asset {asset_id}")
                entry.lock.acquire()
            try:
                yield
            finally:
                entry.lock.release()
        finally:
            with self._registry_lock:
                entry.users -= 1
                if entry.users == 0:
                    del self._entries[asset_id]

    def is_locked(self, asset_id: int) -> bool:
        with self._registry_lock:
            entry = self._entries.get(asset_id)
        return entry is not None and entry.lock.locked()

    def __len__(self) -> int:
        """Number of assets currently held or waited on."""
        with self._registry_lock:
            return len(self._entries)


# Process-wide registry shared by every engine and service instance
# that is not given its own.
asset_locks = AssetLockRegistry()
