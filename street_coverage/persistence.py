"""Batching and fire-and-forget delivery of exploration snapshots.

The scheduler decides *when* a snapshot is due; the writer hands snapshots to
the storage collaborator without blocking fix processing. Every snapshot is a
full overwrite keyed by ``(user_id, city)``, so a save that is still in flight
when a newer one is queued is simply redundant.
"""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
import logging
import threading
from typing import Optional

from .config import SAVE_BATCH_SIZE, SNAPSHOT_WRITER_MAX_WORKERS
from .models import ExplorationSnapshot
from .stores import ExplorationStore

_LOGGER = logging.getLogger(__name__)


class PersistenceScheduler:
    """Track the last persisted validated count and decide when to save."""

    def __init__(self, batch_size: int = SAVE_BATCH_SIZE) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self.batch_size = batch_size
        self.last_saved_count = 0

    def seed(self, count: int) -> None:
        """Record ``count`` as already durable (restored state)."""

        self.last_saved_count = max(self.last_saved_count, count)

    def on_validated(self, validated_count: int) -> bool:
        """Return True when a batch save is due after a validation event."""

        if validated_count - self.last_saved_count >= self.batch_size:
            self.last_saved_count = validated_count
            return True
        return False

    def on_teardown(self, validated_count: int) -> bool:
        """Return True when unsaved validations remain at session end."""

        if validated_count > self.last_saved_count:
            self.last_saved_count = validated_count
            return True
        return False

    def reset(self) -> None:
        self.last_saved_count = 0


class SnapshotWriter:
    """Submit snapshot saves to a background executor and log failures.

    With ``max_workers`` set to 0 the save runs inline on the calling thread,
    still without propagating storage errors. Any positive value runs saves on
    a single background thread so they complete in submission order and an
    older snapshot can never overwrite a newer one.
    """

    def __init__(
        self,
        store: ExplorationStore,
        *,
        max_workers: int = SNAPSHOT_WRITER_MAX_WORKERS,
    ) -> None:
        self._store = store
        self._log = logging.getLogger(self.__class__.__name__)
        if max_workers > 1:
            self._log.debug(
                "Snapshot saves are serialised; using 1 worker instead of %d",
                max_workers,
            )
        self._executor: Optional[ThreadPoolExecutor] = (
            ThreadPoolExecutor(max_workers=1, thread_name_prefix="snapshot-writer")
            if max_workers > 0
            else None
        )
        self._lock = threading.Lock()
        self._submitted = 0
        self._failures = 0
        self._closed = False

    @property
    def submitted(self) -> int:
        with self._lock:
            return self._submitted

    @property
    def failures(self) -> int:
        with self._lock:
            return self._failures

    def submit(self, snapshot: ExplorationSnapshot) -> Optional[Future]:
        """Queue ``snapshot`` for saving and return immediately."""

        with self._lock:
            if self._closed:
                self._log.warning(
                    "Snapshot writer closed; dropping save for city=%s", snapshot.city
                )
                return None
            self._submitted += 1
        if self._executor is None:
            self._save(snapshot)
            return None
        return self._executor.submit(self._save, snapshot)

    def close(self, wait: bool = True) -> None:
        with self._lock:
            self._closed = True
        if self._executor is not None:
            self._executor.shutdown(wait=wait)

    def _save(self, snapshot: ExplorationSnapshot) -> None:
        try:
            self._store.save(snapshot)
        except Exception as exc:
            with self._lock:
                self._failures += 1
            self._log.warning(
                "Snapshot save failed user=%s city=%s: %s",
                snapshot.user_id,
                snapshot.city,
                exc,
                exc_info=True,
            )
            return
        self._log.info(
            "Saved snapshot city=%s validated=%d badges=%d",
            snapshot.city,
            len(snapshot.validated_way_ids),
            len(snapshot.unlocked_badge_ids),
        )


__all__ = ["PersistenceScheduler", "SnapshotWriter"]
