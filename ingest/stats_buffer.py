"""
Stats Buffer

Accumulates stats rows in memory and hands them to the store in batches.

Writers only hold the lock long enough to append and, when the flush
policy fires, swap the pending batch out for an empty one. The store write
happens after the lock is released so a slow store never blocks other
writers, which keep filling the next batch.
"""

import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional

from ingest.container_stats import Row
from storage.errors import StatsStorageError, StoreWriteError

logger = logging.getLogger(__name__)

ReadyToFlush = Callable[[], bool]


def time_elapsed_policy(buffer: "StatsBuffer", buffer_duration_seconds: float) -> ReadyToFlush:
    """Ready once the buffer duration has passed since the last flush"""
    def ready() -> bool:
        return buffer.seconds_since_last_flush() >= buffer_duration_seconds
    return ready


def max_rows_policy(buffer: "StatsBuffer", max_rows: int) -> ReadyToFlush:
    """Ready once at least max_rows rows are pending"""
    def ready() -> bool:
        return buffer.pending_rows >= max_rows
    return ready


class StatsBuffer:
    """
    Thread-safe batching of rows for a single destination table

    Delivery is at most once per batch: a batch that fails to write is not
    re-added, and the error is raised to the writer that triggered the flush.
    """

    def __init__(
        self,
        write_batch: Callable[[List[Row]], None],
        buffer_duration_seconds: float = 60.0,
        ready_to_flush: Optional[ReadyToFlush] = None
    ):
        """
        Initialize buffer

        Args:
            write_batch: Callable that writes a list of rows to the store
            buffer_duration_seconds: Minimum time between flushes for the default policy
            ready_to_flush: Flush policy; defaults to time_elapsed_policy
        """
        self.write_batch = write_batch
        self.buffer_duration_seconds = buffer_duration_seconds

        self._rows: List[Row] = []
        self._last_flush = time.monotonic()
        self._lock = threading.Lock()

        self.ready_to_flush = ready_to_flush or time_elapsed_policy(self, buffer_duration_seconds)

        # Metrics
        self.total_rows_buffered = 0
        self.total_rows_written = 0
        self.total_flushes = 0
        self.total_errors = 0

    @property
    def pending_rows(self) -> int:
        return len(self._rows)

    def seconds_since_last_flush(self) -> float:
        return time.monotonic() - self._last_flush

    def override_ready_to_flush(self, ready_to_flush: ReadyToFlush):
        """Replace the flush policy; it is evaluated under the buffer lock"""
        self.ready_to_flush = ready_to_flush

    def _swap_out(self) -> List[Row]:
        # Caller holds self._lock
        batch = self._rows
        self._rows = []
        self._last_flush = time.monotonic()
        return batch

    def add(self, rows: List[Row]):
        """
        Append rows and write the pending batch if the policy says so

        Raises:
            StoreWriteError: the triggered batch write failed; its rows are dropped
        """
        if not rows:
            return

        batch_to_flush: List[Row] = []
        with self._lock:
            self._rows.extend(rows)
            self.total_rows_buffered += len(rows)
            if self.ready_to_flush():
                batch_to_flush = self._swap_out()

        # Write outside the lock
        if batch_to_flush:
            self._write(batch_to_flush)

    def flush(self):
        """Write whatever is pending, regardless of the policy"""
        with self._lock:
            batch_to_flush = self._swap_out() if self._rows else []

        if batch_to_flush:
            self._write(batch_to_flush)

    def _write(self, batch: List[Row]):
        try:
            self.write_batch(batch)
        except StatsStorageError:
            with self._lock:
                self.total_errors += 1
            raise
        except Exception as e:
            with self._lock:
                self.total_errors += 1
            raise StoreWriteError(f"failed to write stats to influxdb - {e}") from e

        with self._lock:
            self.total_rows_written += len(batch)
            self.total_flushes += 1
        logger.debug(f"Flushed {len(batch)} stats rows")

    def get_stats(self) -> Dict[str, Any]:
        """Get buffer statistics"""
        return {
            'total_rows_buffered': self.total_rows_buffered,
            'total_rows_written': self.total_rows_written,
            'total_flushes': self.total_flushes,
            'total_errors': self.total_errors,
            'pending_rows': self.pending_rows,
            'seconds_since_last_flush': self.seconds_since_last_flush(),
        }
