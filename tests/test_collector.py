import logging
from typing import Dict
from unittest.mock import Mock, patch

import pytest

from appmetrics.collector import Collector, SystemStatsCollector
from appmetrics.log import setup_logging


class QueueCollector(Collector):
    tags = {"queue": "jobs"}

    def collect(self) -> Dict[str, float]:
        return {"queue.depth": 4}


class BrokenCollector(Collector):
    def collect(self) -> Dict[str, float]:
        raise OSError("sensor unavailable")


def test_collect_and_send_submits_gauges() -> None:
    client = Mock()
    assert QueueCollector().collect_and_send(client) == {"queue.depth": 4}
    client.gauge.assert_called_once_with("queue.depth", 4, {"tags": {"queue": "jobs"}})


def test_failed_collection_is_logged(caplog) -> None:
    client = Mock()
    with caplog.at_level(logging.ERROR, logger="appmetrics.collector"):
        assert BrokenCollector().collect_and_send(client) is None
    client.gauge.assert_not_called()
    assert "Error collecting metrics from BrokenCollector" in caplog.text


@patch("appmetrics.collector.psutil")
def test_system_stats_collector(mock_psutil) -> None:
    mock_psutil.cpu_percent.return_value = 3.0
    mock_psutil.virtual_memory.return_value = Mock(percent=50.0)
    mock_psutil.disk_usage.return_value = Mock(percent=80.0)

    stats = SystemStatsCollector(disk_path="/data").collect()

    assert stats == {"system.cpu": 3.0, "system.memory": 50.0, "system.disk": 80.0}
    mock_psutil.disk_usage.assert_called_once_with("/data")


def test_collector_tags_are_read_only() -> None:
    with pytest.raises(TypeError):
        Collector.tags["leak"] = "x"
    with pytest.raises(TypeError):
        SystemStatsCollector.tags["unit"] = "ratio"
    assert dict(SystemStatsCollector.tags) == {"unit": "percent"}


def test_untagged_collector_sends_empty_tags() -> None:
    class UptimeCollector(Collector):
        def collect(self) -> Dict[str, float]:
            return {"uptime": 1}

    client = Mock()
    UptimeCollector().collect_and_send(client)
    client.gauge.assert_called_once_with("uptime", 1, {"tags": {}})


def test_setup_logging_rejects_unknown_level() -> None:
    with pytest.raises(ValueError):
        setup_logging("LOUD")


def test_setup_logging_accepts_level_names() -> None:
    setup_logging("debug")
