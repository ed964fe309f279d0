import os
import socket
from typing import Optional

from pydantic import BaseModel, Field


class InfluxDBConfig(BaseModel):
    # InfluxDB 1.x
    host: str = "localhost"
    port: int = 8086
    username: str = ""
    password: str = ""
    database: str = "cadvisor"
    table: str = "stats"
    ssl: bool = False
    verify_ssl: bool = False
    timeout_seconds: Optional[float] = None


class BufferConfig(BaseModel):
    """Write buffering for container stats"""
    buffer_duration_seconds: float = 60.0  # Min seconds between writes


class LoggingConfig(BaseModel):
    level: str = "INFO"
    format: str = "structured"  # structured, text
    include_trace: bool = False


class StatsSinkConfig(BaseModel):
    machine_name: str = Field(default_factory=socket.gethostname)
    influxdb: InfluxDBConfig = InfluxDBConfig()
    buffer: BufferConfig = BufferConfig()
    logging: LoggingConfig = LoggingConfig()

    @classmethod
    def from_env(cls):
        """Load config from environment variables"""
        return cls(
            machine_name=os.getenv("STATS_MACHINE_NAME") or socket.gethostname(),
            influxdb=InfluxDBConfig(
                host=os.getenv("INFLUX_HOST", "localhost"),
                port=int(os.getenv("INFLUX_PORT", "8086")),
                username=os.getenv("INFLUX_USER", ""),
                password=os.getenv("INFLUX_PASSWORD", ""),
                database=os.getenv("INFLUX_DATABASE", "cadvisor"),
                table=os.getenv("INFLUX_TABLE", "stats"),
                ssl=os.getenv("INFLUX_SSL", "false").lower() == "true",
            ),
            buffer=BufferConfig(
                buffer_duration_seconds=float(os.getenv("STATS_BUFFER_DURATION", "60"))
            ),
            logging=LoggingConfig(
                level=os.getenv("LOG_LEVEL", "INFO"),
            ),
        )
