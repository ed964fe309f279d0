"""
Container Stats Converter

Maps typed container samples to flat column/value rows and back.

The row format is flat and cannot carry repeating groups, so a sample is
written as one core row (CPU, memory, optional network) plus one extra row
per filesystem device.
"""

import math
from datetime import datetime, timedelta, timezone
from typing import Any, List, Optional, Sequence

from ingest.container_stats import (
    ContainerReference,
    ContainerStats,
    CpuStats,
    FsStats,
    MemoryStats,
    NetworkStats,
    Row,
)
from ingest.stats_schema import (
    COL_CONTAINER_NAME,
    COL_CPU_CUMULATIVE_USAGE,
    COL_FS_DEVICE,
    COL_FS_LIMIT,
    COL_FS_USAGE,
    COL_MACHINE_NAME,
    COL_MEMORY_USAGE,
    COL_MEMORY_WORKING_SET,
    COL_RX_BYTES,
    COL_RX_ERRORS,
    COL_TIMESTAMP,
    COL_TX_BYTES,
    COL_TX_ERRORS,
)
from storage.errors import ColumnValueError, InvalidValueError, MachineMismatchError

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
UINT64_MAX = 2 ** 64 - 1

_ONE_MICROSECOND = timedelta(microseconds=1)

_KNOWN_COLUMNS = frozenset((
    COL_TIMESTAMP, COL_MACHINE_NAME, COL_CONTAINER_NAME,
    COL_CPU_CUMULATIVE_USAGE, COL_MEMORY_USAGE, COL_MEMORY_WORKING_SET,
    COL_RX_BYTES, COL_RX_ERRORS, COL_TX_BYTES, COL_TX_ERRORS,
    COL_FS_DEVICE, COL_FS_LIMIT, COL_FS_USAGE,
))


def to_epoch_micros(ts: Optional[datetime]) -> int:
    """Microseconds since the Unix epoch; naive datetimes are taken as UTC"""
    if ts is None:
        return 0
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return (ts - EPOCH) // _ONE_MICROSECOND


def from_epoch_micros(micros) -> datetime:
    """Inverse of to_epoch_micros: whole seconds plus the sub-second remainder"""
    seconds, remainder = divmod(int(micros), 1_000_000)
    return EPOCH + timedelta(seconds=seconds, microseconds=remainder)


def _default_columns(ref: ContainerReference, stats: ContainerStats, machine_name: str):
    columns = [COL_TIMESTAMP, COL_MACHINE_NAME, COL_CONTAINER_NAME]
    values = [to_epoch_micros(stats.timestamp), machine_name, ref.stored_name]
    return columns, values


def container_stats_to_row(
    ref: ContainerReference,
    stats: ContainerStats,
    machine_name: str
) -> Row:
    """Build the core metrics row: defaults, CPU, memory and optional network"""
    columns, values = _default_columns(ref, stats, machine_name)

    columns.append(COL_CPU_CUMULATIVE_USAGE)
    values.append(stats.cpu.usage.total)

    columns.append(COL_MEMORY_USAGE)
    values.append(stats.memory.usage)

    columns.append(COL_MEMORY_WORKING_SET)
    values.append(stats.memory.working_set)

    # Network columns are omitted entirely, never zero-filled, when absent
    if stats.network is not None:
        columns.extend((COL_RX_BYTES, COL_RX_ERRORS, COL_TX_BYTES, COL_TX_ERRORS))
        values.extend((
            stats.network.rx_bytes,
            stats.network.rx_errors,
            stats.network.tx_bytes,
            stats.network.tx_errors,
        ))

    return Row(columns, values)


def filesystem_stats_to_rows(
    ref: ContainerReference,
    stats: ContainerStats,
    machine_name: str
) -> List[Row]:
    """One row per filesystem device, in the sample's device order"""
    rows = []
    for fs_stat in stats.filesystem:
        columns, values = _default_columns(ref, stats, machine_name)
        columns.extend((COL_FS_DEVICE, COL_FS_LIMIT, COL_FS_USAGE))
        values.extend((fs_stat.device, fs_stat.limit, fs_stat.usage))
        rows.append(Row(columns, values))
    return rows


def stats_to_rows(
    ref: ContainerReference,
    stats: ContainerStats,
    machine_name: str
) -> List[Row]:
    """All rows for one sample: the core row first, then filesystem rows"""
    rows = [container_stats_to_row(ref, stats, machine_name)]
    rows.extend(filesystem_stats_to_rows(ref, stats, machine_name))
    return rows


def convert_to_uint64(value: Any) -> int:
    """
    Coerce a stored value to a non-negative integer

    None decodes as 0. Integers and floats are accepted when non-negative
    (floats are truncated). Anything else, including bools and strings, is
    an unknown type.

    Raises:
        InvalidValueError: negative, non-finite or out-of-range values and
            unknown types
    """
    if value is None:
        return 0
    if isinstance(value, bool):
        raise InvalidValueError(f"unknown type {type(value).__name__}")
    if isinstance(value, int):
        if value < 0:
            raise InvalidValueError(f"negative value: {value}")
        if value > UINT64_MAX:
            raise InvalidValueError(f"value out of range: {value}")
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            raise InvalidValueError(f"non-finite value: {value}")
        if value < 0:
            raise InvalidValueError(f"negative value: {value}")
        if value > UINT64_MAX:
            raise InvalidValueError(f"value out of range: {value}")
        return int(value)
    raise InvalidValueError(f"unknown type {type(value).__name__}")


def _column_uint64(column: str, value: Any) -> int:
    try:
        return convert_to_uint64(value)
    except InvalidValueError as e:
        raise ColumnValueError(column, value, e) from e


def _first_filesystem(stats: ContainerStats) -> FsStats:
    if not stats.filesystem:
        stats.filesystem.append(FsStats())
    return stats.filesystem[0]


def rows_to_container_stats(
    machine_name: str,
    columns: Sequence[str],
    values: Sequence[Any]
) -> Optional[ContainerStats]:
    """
    Rebuild a sample from one stored row

    The first numeric timestamp wins. Filesystem columns always land in the
    first filesystem slot, so at most one device is recovered per row. A
    null filesystem column is treated as absent. Unrecognized columns are
    ignored; a row carrying none of the known columns yields None.

    Raises:
        MachineMismatchError: the row was recorded by another machine
        ColumnValueError: a column value could not be decoded
    """
    stats = ContainerStats(
        cpu=CpuStats(),
        memory=MemoryStats(),
        network=NetworkStats(),
        filesystem=[],
    )
    recognized = False

    for column, value in zip(columns, values):
        if column not in _KNOWN_COLUMNS:
            continue
        recognized = True

        if column == COL_TIMESTAMP:
            if stats.timestamp is None and isinstance(value, (int, float)) and not isinstance(value, bool):
                try:
                    stats.timestamp = from_epoch_micros(value)
                except (ValueError, OverflowError) as e:
                    raise ColumnValueError(column, value, e) from e
        elif column == COL_MACHINE_NAME:
            if not isinstance(value, str):
                raise ColumnValueError(column, value, "machine name is not a string")
            if value != machine_name:
                raise MachineMismatchError(
                    f"different machine: row from {value!r}, expected {machine_name!r}"
                )
        elif column == COL_CPU_CUMULATIVE_USAGE:
            stats.cpu.usage.total = _column_uint64(column, value)
        elif column == COL_MEMORY_USAGE:
            stats.memory.usage = _column_uint64(column, value)
        elif column == COL_MEMORY_WORKING_SET:
            stats.memory.working_set = _column_uint64(column, value)
        elif column == COL_RX_BYTES:
            stats.network.rx_bytes = _column_uint64(column, value)
        elif column == COL_RX_ERRORS:
            stats.network.rx_errors = _column_uint64(column, value)
        elif column == COL_TX_BYTES:
            stats.network.tx_bytes = _column_uint64(column, value)
        elif column == COL_TX_ERRORS:
            stats.network.tx_errors = _column_uint64(column, value)
        elif column == COL_FS_DEVICE:
            if value is None:
                continue
            if not isinstance(value, str):
                raise ColumnValueError(column, value, "filesystem device is not a string")
            _first_filesystem(stats).device = value
        elif column == COL_FS_LIMIT:
            if value is None:
                continue
            _first_filesystem(stats).limit = _column_uint64(column, value)
        elif column == COL_FS_USAGE:
            if value is None:
                continue
            _first_filesystem(stats).usage = _column_uint64(column, value)

    if not recognized:
        return None
    return stats
