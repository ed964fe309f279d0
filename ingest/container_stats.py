"""
Container statistics data model

Typed samples produced by the container monitor and the flat rows they are
stored as.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Optional, Tuple


@dataclass(frozen=True)
class ContainerReference:
    """Identifies a monitored container"""
    name: str
    aliases: Tuple[str, ...] = ()

    def __post_init__(self):
        # Accept any sequence but keep the reference immutable
        object.__setattr__(self, 'aliases', tuple(self.aliases))

    @property
    def stored_name(self) -> str:
        """Identity written to the container column: first alias, else the name"""
        if self.aliases:
            return self.aliases[0]
        return self.name


@dataclass
class CpuUsage:
    total: int = 0  # Cumulative CPU time consumed


@dataclass
class CpuStats:
    usage: CpuUsage = field(default_factory=CpuUsage)


@dataclass
class MemoryStats:
    usage: int = 0
    working_set: int = 0


@dataclass
class NetworkStats:
    """Cumulative interface counters"""
    rx_bytes: int = 0
    rx_errors: int = 0
    tx_bytes: int = 0
    tx_errors: int = 0


@dataclass
class FsStats:
    device: str = ""
    limit: int = 0
    usage: int = 0


@dataclass
class ContainerStats:
    """
    One sample in time for one container

    `network` is None when the monitor has no network data for the container.
    A sample without `cpu` or `memory` is not recordable.
    """
    timestamp: Optional[datetime] = None
    cpu: Optional[CpuStats] = None
    memory: Optional[MemoryStats] = None
    network: Optional[NetworkStats] = None
    filesystem: List[FsStats] = field(default_factory=list)

    def is_valid(self) -> bool:
        return self.cpu is not None and self.memory is not None


@dataclass
class Row:
    """Flat column/value record; columns and values are paired by position"""
    columns: List[str]
    values: List[Any]

    def __post_init__(self):
        if len(self.columns) != len(self.values):
            raise ValueError(
                f"Row has {len(self.columns)} columns but {len(self.values)} values"
            )

    def as_dict(self) -> dict:
        return dict(zip(self.columns, self.values))
