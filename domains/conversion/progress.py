"""
Per-batch progress tracking.

Every mutation happens under one lock so that job completions racing on the
worker pool observe a single consistent count. Progress callbacks run under
the same lock and therefore see snapshots in mutation order.
"""

import threading
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional
from uuid import uuid4

from loguru import logger

from app.models.schemas import BatchProgress


ProgressCallback = Callable[[BatchProgress], None]

HISTORY_LIMIT = 50


class ProgressTracker:
    """Owns the BatchProgress of every in-flight batch."""

    def __init__(
        self,
        on_progress: Optional[ProgressCallback] = None,
        on_batch_complete: Optional[ProgressCallback] = None,
    ):
        self.on_progress = on_progress
        self.on_batch_complete = on_batch_complete
        self._lock = threading.RLock()
        self._batches: Dict[str, BatchProgress] = {}
        self._history: "OrderedDict[str, BatchProgress]" = OrderedDict()

    def start_batch(self, total_files: int, forced: bool = False) -> BatchProgress:
        """Register a new batch and return its initial snapshot."""
        with self._lock:
            batch = BatchProgress(
                batch_id=uuid4().hex,
                total_files=total_files,
                forced=forced,
                started_at=datetime.now(timezone.utc),
            )
            self._batches[batch.batch_id] = batch
            snapshot = batch.model_copy()
            self._notify(self.on_progress, snapshot)

        return snapshot

    def set_current(self, batch_id: str, file_name: str) -> None:
        with self._lock:
            batch = self._batches.get(batch_id)
            if batch is None:
                return
            batch.current_file_name = file_name
            snapshot = batch.model_copy()
            self._notify(self.on_progress, snapshot)

    def complete_file(self, batch_id: str, file_name: str, converted: bool) -> BatchProgress:
        """
        Record one finished file (converted, skipped or failed).

        Args:
            batch_id: Batch the file belongs to
            file_name: Name shown as the current file
            converted: True when a real conversion succeeded

        Returns:
            Snapshot after the update
        """
        finished = False

        with self._lock:
            batch = self._batches[batch_id]
            batch.completed_files += 1
            batch.current_file_name = file_name
            if converted:
                batch.conversions += 1

            if batch.completed_files >= batch.total_files and batch.is_converting:
                batch.is_converting = False
                batch.finished_at = datetime.now(timezone.utc)
                del self._batches[batch_id]
                self._history[batch_id] = batch
                while len(self._history) > HISTORY_LIMIT:
                    self._history.popitem(last=False)
                finished = True

            snapshot = batch.model_copy()
            self._notify(self.on_progress, snapshot)

        if finished:
            logger.info(
                f"Batch {batch_id} finished: {snapshot.conversions}/{snapshot.total_files} converted"
            )
            if snapshot.conversions > 0:
                self._notify(self.on_batch_complete, snapshot)

        return snapshot

    def get(self, batch_id: str) -> Optional[BatchProgress]:
        with self._lock:
            batch = self._batches.get(batch_id) or self._history.get(batch_id)
            return batch.model_copy() if batch else None

    def active(self) -> List[BatchProgress]:
        with self._lock:
            return [batch.model_copy() for batch in self._batches.values()]

    @property
    def last_completed(self) -> Optional[BatchProgress]:
        with self._lock:
            if not self._history:
                return None
            return next(reversed(self._history.values())).model_copy()

    def _notify(self, callback: Optional[ProgressCallback], snapshot: BatchProgress) -> None:
        if callback is None:
            return
        try:
            callback(snapshot)
        except Exception as e:
            logger.warning(f"Progress callback failed: {e}")
