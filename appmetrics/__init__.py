"""
Metrics client encoding timers, counters and gauges as lines and shipping
them over UDP or an authenticated HTTP API.
"""
from .client import (
    MetricsClient,
    aggregated_timer,
    configure,
    flush,
    gauge,
    get_client,
    increment,
    timer,
)
from .collector import Collector, SystemStatsCollector
from .config import ClientConfig, MetricType
from .errors import ConfigurationError, EncodingError, MetricsError, TransportError
from .log import setup_logging
from .transport import BatchApiSender, DatagramSender, Transport

__all__ = [
    'MetricsClient',
    'ClientConfig',
    'MetricType',
    'Collector',
    'SystemStatsCollector',
    'Transport',
    'DatagramSender',
    'BatchApiSender',
    'MetricsError',
    'ConfigurationError',
    'EncodingError',
    'TransportError',
    'configure',
    'get_client',
    'timer',
    'aggregated_timer',
    'increment',
    'gauge',
    'flush',
    'setup_logging',
]
