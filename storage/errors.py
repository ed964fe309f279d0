"""Errors raised by the container stats storage driver"""


class StatsStorageError(Exception):
    """Base class for storage driver errors"""


class InvalidValueError(StatsStorageError, ValueError):
    """A stored value could not be coerced to a non-negative integer"""


class ColumnValueError(InvalidValueError):
    """A column carried a value that could not be decoded"""

    def __init__(self, column: str, value, reason):
        self.column = column
        self.value = value
        super().__init__(f"column {column} has invalid value {value!r}: {reason}")


class MachineMismatchError(StatsStorageError):
    """A row belongs to a different machine than the one reading it"""


class StoreWriteError(StatsStorageError):
    """Batch write to the time-series store failed"""


class StoreQueryError(StatsStorageError):
    """Query against the time-series store failed"""


class StorageClosedError(StatsStorageError):
    """The store handle was released by close()"""
