"""
InfluxDB Container Stats Storage

Storage driver that buffers container samples and writes them to InfluxDB,
and reads recent samples back in time-ascending order.
"""

import logging
from typing import Any, Dict, List, Optional

from influxdb import InfluxDBClient

from config import StatsSinkConfig
from ingest.container_stats import ContainerReference, ContainerStats
from ingest.stats_buffer import ReadyToFlush, StatsBuffer
from ingest.stats_converter import rows_to_container_stats, stats_to_rows
from ingest.stats_schema import COL_CONTAINER_NAME, COL_MACHINE_NAME
from storage.errors import StorageClosedError
from storage.influxdb_gateway import PRECISION_MICROSECONDS, InfluxDBGateway

logger = logging.getLogger(__name__)


def _quote_identifier(name: str) -> str:
    escaped = name.replace('\\', '\\\\').replace('"', '\\"')
    return f'"{escaped}"'


class InfluxDBStorage:
    """
    Container stats storage backed by one InfluxDB measurement

    add_stats() may be called from many threads at once; only the thread
    whose append satisfies the flush policy performs the write.
    """

    def __init__(
        self,
        client: InfluxDBClient,
        machine_name: str,
        table_name: str,
        buffer_duration_seconds: float = 60.0
    ):
        """
        Args:
            client: Connected InfluxDB client
            machine_name: Unique identifier of the host this instance runs on
            table_name: Destination measurement
            buffer_duration_seconds: Time between writes for the default flush policy
        """
        self.machine_name = machine_name
        self.table_name = table_name
        self.gateway = InfluxDBGateway(client, table_name)
        self.buffer = StatsBuffer(
            self._write_rows,
            buffer_duration_seconds=buffer_duration_seconds,
        )
        logger.info(
            f"InfluxDB stats storage initialized (machine={machine_name}, "
            f"table={table_name}, buffer={buffer_duration_seconds}s)"
        )

    def _write_rows(self, rows):
        self.gateway.write_batch(rows, time_precision=PRECISION_MICROSECONDS)

    def override_ready_to_flush(self, ready_to_flush: ReadyToFlush):
        """Replace the default time-based flush policy"""
        self.buffer.override_ready_to_flush(ready_to_flush)

    def add_stats(self, ref: ContainerReference, stats: Optional[ContainerStats]):
        """
        Buffer one sample, writing the pending batch if it is due

        Samples without CPU or memory data are dropped.

        Raises:
            StoreWriteError: this call triggered a flush and the write failed
            StorageClosedError: close() was already called
        """
        if stats is None or not stats.is_valid():
            logger.debug(f"Dropping incomplete stats sample for {ref.name}")
            return

        if self.gateway.client is None:
            raise StorageClosedError("influxdb storage is closed")

        self.buffer.add(stats_to_rows(ref, stats, self.machine_name))

    def flush(self):
        """Write pending rows now"""
        self.buffer.flush()

    def build_recent_stats_query(self, num_stats: int) -> str:
        query = (
            f"SELECT * FROM {_quote_identifier(self.table_name)} "
            f"WHERE {_quote_identifier(COL_CONTAINER_NAME)} = $container_name "
            f"AND {_quote_identifier(COL_MACHINE_NAME)} = $machine_name "
            f"ORDER BY time DESC"
        )
        if num_stats > 0:
            query = f"{query} LIMIT {int(num_stats)}"
        return query

    def recent_stats(self, container_name: str, num_stats: int) -> List[ContainerStats]:
        """
        Most recent samples for a container, oldest first

        num_stats == 0 returns nothing without touching the store; a negative
        count means no limit.

        Raises:
            StoreQueryError: the query failed
            MachineMismatchError, ColumnValueError: a row could not be decoded
        """
        if num_stats == 0:
            return []

        series = self.gateway.query(
            self.build_recent_stats_query(num_stats),
            bind_params={
                'container_name': container_name,
                'machine_name': self.machine_name,
            },
        )

        # The store returns newest first; callers expect oldest first
        stats_list = []
        for s in reversed(series):
            for values in reversed(s.points):
                stats = rows_to_container_stats(self.machine_name, s.columns, values)
                if stats is None:
                    continue
                stats_list.append(stats)
        return stats_list

    def get_stats(self) -> Dict[str, Any]:
        """Get storage statistics"""
        return {
            'machine_name': self.machine_name,
            'table_name': self.table_name,
            'closed': self.gateway.client is None,
            **self.buffer.get_stats(),
        }

    def close(self):
        """Release the InfluxDB client; pending rows are not flushed"""
        self.gateway.close()


def new_storage(config: StatsSinkConfig) -> InfluxDBStorage:
    """Create an InfluxDB client and storage driver from configuration"""
    influx = config.influxdb
    client = InfluxDBClient(
        host=influx.host,
        port=influx.port,
        username=influx.username,
        password=influx.password,
        database=influx.database,
        ssl=influx.ssl,
        verify_ssl=influx.verify_ssl,
        timeout=influx.timeout_seconds,
    )
    return InfluxDBStorage(
        client,
        machine_name=config.machine_name,
        table_name=influx.table,
        buffer_duration_seconds=config.buffer.buffer_duration_seconds,
    )
