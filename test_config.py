"""
Tests for configuration loading and logging setup
"""

import json
import logging

from config import StatsSinkConfig
from config_loader import StatsSinkConfigLoader
from utils.logging_config import StructuredFormatter, setup_logging_from_config

ENV_VARS = [
    "STATS_MACHINE_NAME", "INFLUX_HOST", "INFLUX_PORT", "INFLUX_USER", "INFLUX_PASSWORD",
    "INFLUX_DATABASE", "INFLUX_TABLE", "INFLUX_SSL", "INFLUX_VERIFY_SSL", "INFLUX_TIMEOUT",
    "STATS_BUFFER_DURATION", "LOG_LEVEL", "LOG_FORMAT", "LOG_INCLUDE_TRACE", "STATSINK_CONFIG_FILE",
]


def clear_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_from_env(monkeypatch):
    clear_env(monkeypatch)
    monkeypatch.setenv("STATS_MACHINE_NAME", "node-7")
    monkeypatch.setenv("INFLUX_HOST", "influx.internal")
    monkeypatch.setenv("INFLUX_PORT", "9086")
    monkeypatch.setenv("INFLUX_SSL", "true")
    monkeypatch.setenv("STATS_BUFFER_DURATION", "2.5")

    config = StatsSinkConfig.from_env()

    assert config.machine_name == "node-7"
    assert config.influxdb.host == "influx.internal"
    assert config.influxdb.port == 9086
    assert config.influxdb.ssl is True
    assert config.influxdb.table == "stats"
    assert config.buffer.buffer_duration_seconds == 2.5


def test_loader_defaults(monkeypatch, tmp_path):
    clear_env(monkeypatch)

    config = StatsSinkConfigLoader(str(tmp_path / "missing.conf")).to_config()

    assert config.machine_name
    assert config.influxdb.port == 8086
    assert config.buffer.buffer_duration_seconds == 60.0
    assert config.logging.format == "structured"


def test_loader_file_then_env(monkeypatch, tmp_path):
    clear_env(monkeypatch)
    conf = tmp_path / "statsink.conf"
    conf.write_text(
        'machine_name = "node-3"\n'
        '\n'
        '[influxdb]\n'
        'host = "tsdb"\n'
        'database = "containers"\n'
        '\n'
        '[buffer]\n'
        'buffer_duration_seconds = 15.0\n'
    )
    monkeypatch.setenv("INFLUX_HOST", "override")
    monkeypatch.setenv("INFLUX_PORT", "not-a-number")

    loader = StatsSinkConfigLoader(str(conf))
    config = loader.to_config()

    assert config.machine_name == "node-3"
    assert config.influxdb.host == "override"
    assert config.influxdb.database == "containers"
    # Unconvertible override is skipped; default survives
    assert config.influxdb.port == 8086
    assert config.buffer.buffer_duration_seconds == 15.0
    assert loader.get("influxdb", "table") == "stats"
    assert loader.get("influxdb", "missing", default="x") == "x"


def test_config_file_from_env(monkeypatch, tmp_path):
    clear_env(monkeypatch)
    conf = tmp_path / "custom.conf"
    conf.write_text('[influxdb]\ntable = "cadvisor_stats"\n')
    monkeypatch.setenv("STATSINK_CONFIG_FILE", str(conf))

    assert StatsSinkConfigLoader().to_config().influxdb.table == "cadvisor_stats"


def test_structured_formatter():
    formatter = StructuredFormatter(service_name="statsink")
    record = logging.LogRecord(
        "storage.influxdb_storage", logging.INFO, __file__, 10,
        "Flushed %d stats rows", (3,), None,
    )
    record.table = "stats"

    entry = json.loads(formatter.format(record))

    assert entry["message"] == "Flushed 3 stats rows"
    assert entry["level"] == "INFO"
    assert entry["service"] == "statsink"
    assert entry["extra"] == {"table": "stats"}


def test_setup_logging_from_config(monkeypatch):
    clear_env(monkeypatch)
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        setup_logging_from_config(StatsSinkConfig().logging.model_copy(update={"level": "DEBUG"}))
        assert root.level == logging.DEBUG
        assert isinstance(root.handlers[0].formatter, StructuredFormatter)
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
