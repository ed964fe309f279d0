"""
InfluxDB Gateway

Synchronous boundary to an InfluxDB 1.x server for batched row writes and
queries. Holds nothing but the client handle.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from influxdb import InfluxDBClient

from ingest.container_stats import Row
from ingest.stats_schema import COL_TIMESTAMP, TAG_COLUMNS
from storage.errors import StorageClosedError, StoreQueryError, StoreWriteError

logger = logging.getLogger(__name__)

# InfluxDB time precision for microseconds
PRECISION_MICROSECONDS = 'u'


@dataclass
class Series:
    """One series of a query result"""
    name: str
    columns: List[str]
    points: List[List[Any]] = field(default_factory=list)


class InfluxDBGateway:
    """Writes rows as points into one measurement and runs queries"""

    def __init__(self, client: InfluxDBClient, table_name: str):
        self.client = client
        self.table_name = table_name

    def _require_client(self) -> InfluxDBClient:
        if self.client is None:
            raise StorageClosedError("influxdb storage is closed")
        return self.client

    def row_to_point(self, row: Row) -> Dict[str, Any]:
        """
        Convert a row to an InfluxDB point

        The timestamp column becomes the point time, identity columns become
        tags and everything else becomes a field. Null values are dropped.
        """
        point = {
            'measurement': self.table_name,
            'tags': {},
            'fields': {},
        }
        for column, value in zip(row.columns, row.values):
            if value is None:
                continue
            if column == COL_TIMESTAMP:
                point['time'] = value
            elif column in TAG_COLUMNS:
                point['tags'][column] = value
            else:
                point['fields'][column] = value
        return point

    def write_batch(self, rows: List[Row], time_precision: str = PRECISION_MICROSECONDS):
        """
        Write all rows in a single request

        Raises:
            StoreWriteError: the client rejected the batch or the transport failed
            StorageClosedError: close() was already called
        """
        client = self._require_client()
        points = [self.row_to_point(row) for row in rows]
        try:
            client.write_points(points, time_precision=time_precision)
        except Exception as e:
            raise StoreWriteError(f"influxdb write of {len(points)} points failed: {e}") from e

    def query(
        self,
        query: str,
        bind_params: Optional[Dict[str, Any]] = None,
        epoch: str = PRECISION_MICROSECONDS
    ) -> List[Series]:
        """
        Run a query and return its series in the order the server sent them

        Raises:
            StoreQueryError: the query failed
            StorageClosedError: close() was already called
        """
        client = self._require_client()
        try:
            result = client.query(query, bind_params=bind_params, epoch=epoch)
        except Exception as e:
            raise StoreQueryError(f"influxdb query failed: {e}") from e

        raw = result.raw if result is not None else {}
        series = []
        for raw_series in raw.get('series', []) or []:
            series.append(Series(
                name=raw_series.get('name', self.table_name),
                columns=list(raw_series.get('columns', [])),
                points=[list(values) for values in raw_series.get('values', [])],
            ))
        return series

    def close(self):
        """Release the client handle; later calls are no-ops"""
        client = self.client
        self.client = None
        if client is not None:
            client.close()
            logger.info("InfluxDB client closed")
