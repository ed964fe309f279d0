"""
Tests for the stats buffer flush state machine
"""

import threading

import pytest

from ingest.container_stats import Row
from ingest.stats_buffer import StatsBuffer, max_rows_policy, time_elapsed_policy
from storage.errors import StorageClosedError, StoreWriteError


def make_row(n):
    return Row(["time", "machine", "container_name"], [n, "node-1", "c"])


class RecordingWriter:
    def __init__(self, fail=False):
        self.batches = []
        self.fail = fail

    def __call__(self, rows):
        if self.fail:
            raise ConnectionError("influxdb unreachable")
        self.batches.append(list(rows))


def test_rows_accumulate_until_ready():
    writer = RecordingWriter()
    buffer = StatsBuffer(writer)
    ready = [False]
    buffer.override_ready_to_flush(lambda: ready[0])

    buffer.add([make_row(1)])
    buffer.add([make_row(2), make_row(3)])
    assert writer.batches == []
    assert buffer.pending_rows == 3

    ready[0] = True
    buffer.add([make_row(4)])

    assert len(writer.batches) == 1
    assert [row.values[0] for row in writer.batches[0]] == [1, 2, 3, 4]
    assert buffer.pending_rows == 0


def test_flush_once_per_satisfied_predicate():
    writer = RecordingWriter()
    buffer = StatsBuffer(writer, ready_to_flush=lambda: True)

    buffer.add([make_row(1)])
    buffer.add([make_row(2)])

    assert [[row.values[0] for row in batch] for batch in writer.batches] == [[1], [2]]


def test_empty_add_is_noop():
    writer = RecordingWriter()
    buffer = StatsBuffer(writer, ready_to_flush=lambda: True)

    buffer.add([])

    assert writer.batches == []
    assert buffer.get_stats()['total_rows_buffered'] == 0


def test_default_policy_waits_for_buffer_duration():
    writer = RecordingWriter()
    buffer = StatsBuffer(writer, buffer_duration_seconds=3600)

    buffer.add([make_row(1)])
    assert writer.batches == []

    buffer_zero = StatsBuffer(writer, buffer_duration_seconds=0)
    buffer_zero.add([make_row(2)])
    assert len(writer.batches) == 1


def test_time_elapsed_policy_uses_last_flush(monkeypatch):
    writer = RecordingWriter()
    clock = [1000.0]
    monkeypatch.setattr("ingest.stats_buffer.time.monotonic", lambda: clock[0])

    buffer = StatsBuffer(writer)
    buffer.override_ready_to_flush(time_elapsed_policy(buffer, 10))

    buffer.add([make_row(1)])
    clock[0] = 1009.9
    buffer.add([make_row(2)])
    assert writer.batches == []

    clock[0] = 1010.0
    buffer.add([make_row(3)])
    assert len(writer.batches) == 1

    # Timer restarts at the flush
    clock[0] = 1015.0
    buffer.add([make_row(4)])
    assert len(writer.batches) == 1


def test_max_rows_policy():
    writer = RecordingWriter()
    buffer = StatsBuffer(writer)
    buffer.override_ready_to_flush(max_rows_policy(buffer, 3))

    for n in range(7):
        buffer.add([make_row(n)])

    assert [len(batch) for batch in writer.batches] == [3, 3]
    assert buffer.pending_rows == 1


def test_write_failure_raises_and_drops_batch():
    writer = RecordingWriter(fail=True)
    buffer = StatsBuffer(writer, ready_to_flush=lambda: True)

    with pytest.raises(StoreWriteError) as exc_info:
        buffer.add([make_row(1)])

    assert isinstance(exc_info.value.__cause__, ConnectionError)
    assert buffer.pending_rows == 0
    assert buffer.get_stats()['total_errors'] == 1

    # Failed rows are not retried with the next batch
    writer.fail = False
    buffer.add([make_row(2)])
    assert [[row.values[0] for row in batch] for batch in writer.batches] == [[2]]


def test_explicit_flush():
    writer = RecordingWriter()
    buffer = StatsBuffer(writer, buffer_duration_seconds=3600)

    buffer.flush()
    assert writer.batches == []

    buffer.add([make_row(1), make_row(2)])
    buffer.flush()

    assert len(writer.batches) == 1
    assert buffer.get_stats()['total_rows_written'] == 2


def test_store_write_does_not_block_other_writers():
    release = threading.Event()
    entered = threading.Event()
    written = []

    def slow_writer(rows):
        entered.set()
        release.wait(timeout=5)
        written.append(list(rows))

    buffer = StatsBuffer(slow_writer)
    flush_next = [True]

    def ready():
        if flush_next[0]:
            flush_next[0] = False
            return True
        return False

    buffer.override_ready_to_flush(ready)

    flusher = threading.Thread(target=buffer.add, args=([make_row(1)],))
    flusher.start()
    assert entered.wait(timeout=5)

    # The first batch is still being written; appends must not wait on it
    buffer.add([make_row(2)])
    assert buffer.pending_rows == 1

    release.set()
    flusher.join(timeout=5)
    assert [[row.values[0] for row in batch] for batch in written] == [[1]]


def test_concurrent_adds_write_every_row_once():
    lock = threading.Lock()
    written = []

    def writer(rows):
        with lock:
            written.extend(row.values[0] for row in rows)

    buffer = StatsBuffer(writer)
    buffer.override_ready_to_flush(max_rows_policy(buffer, 25))

    def produce(offset):
        for n in range(200):
            buffer.add([make_row(offset + n)])

    threads = [threading.Thread(target=produce, args=(i * 1000,)) for i in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    buffer.flush()

    expected = sorted(i * 1000 + n for i in range(8) for n in range(200))
    assert sorted(written) == expected


def test_storage_errors_propagate_unwrapped():
    def closed_writer(rows):
        raise StorageClosedError("influxdb storage is closed")

    buffer = StatsBuffer(closed_writer, ready_to_flush=lambda: True)

    with pytest.raises(StorageClosedError):
        buffer.add([make_row(1)])

    assert buffer.get_stats()['total_errors'] == 1
