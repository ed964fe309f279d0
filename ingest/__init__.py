"""
Container Stats Ingestion Module

Converts container samples to rows and buffers them for batched writes.
"""

from .container_stats import ContainerReference, ContainerStats, Row
from .stats_buffer import StatsBuffer
from .stats_converter import rows_to_container_stats, stats_to_rows

__all__ = [
    'ContainerReference',
    'ContainerStats',
    'Row',
    'StatsBuffer',
    'rows_to_container_stats',
    'stats_to_rows',
]
