"""
Collectors sampling values on a schedule and submitting them as gauges.
"""
import logging
from abc import ABC, abstractmethod
from types import MappingProxyType
from typing import TYPE_CHECKING, Dict, Mapping, Optional

import psutil

if TYPE_CHECKING:
    from .client import MetricsClient

logger = logging.getLogger(__name__)


class Collector(ABC):
    """
    Abstract base class for all metric collectors.

    Subclasses implement collect(), returning metric names mapped to values.
    Every value is submitted as a gauge.
    """

    tags: Mapping[str, str] = MappingProxyType({})

    @abstractmethod
    def collect(self) -> Dict[str, float]:
        """
        Collect metrics.

        Returns:
            dict: Metric names to sampled values
        """
        pass

    @property
    def name(self) -> str:
        return self.__class__.__name__

    def safe_collect(self) -> Optional[Dict[str, float]]:
        """
        Collect metrics, logging instead of raising on failure.

        Returns:
            dict: The collected metrics, or None if collection failed
        """
        try:
            return self.collect()
        except Exception as e:
            logger.error("Error collecting metrics from %s: %s", self.name, str(e))
            return None

    def collect_and_send(self, client: 'MetricsClient') -> Optional[Dict[str, float]]:
        """
        Collect metrics and submit them as gauges through ``client``.

        Args:
            client (MetricsClient): The client receiving the gauges

        Returns:
            dict: The collected metrics, or None if collection failed
        """
        metrics = self.safe_collect()
        if metrics is None:
            return None

        for metric_name, value in metrics.items():
            client.gauge(metric_name, value, {'tags': dict(self.tags)})
        logger.debug("%s submitted %d gauges", self.name, len(metrics))
        return metrics


class SystemStatsCollector(Collector):
    """CPU, memory and disk usage of the host, in percent."""

    tags = MappingProxyType({'unit': 'percent'})

    def __init__(self, disk_path: str = '/'):
        self.disk_path = disk_path

    def collect(self) -> Dict[str, float]:
        return {
            'system.cpu': psutil.cpu_percent(interval=None),
            'system.memory': psutil.virtual_memory().percent,
            'system.disk': psutil.disk_usage(self.disk_path).percent,
        }
