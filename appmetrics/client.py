"""
Metrics client turning typed metric calls into buffered lines.

Each call runs the same pipeline: resolve options against the configured
defaults, encode one line, append it to the buffer. Delivery happens on a
background thread; only configuration and encoding problems are raised to
the caller.
"""
import atexit
import logging
import numbers
from typing import Any, Mapping, Optional

from .buffer import MetricsBuffer
from .collector import SystemStatsCollector
from .config import API, ClientConfig, MetricType, check_token
from .encoder import MetricEvent, check_value, current_timestamp, encode
from .errors import EncodingError
from .flusher import Dispatcher, Flusher
from .periodic import PeriodicTask
from .resolver import CallOptions, resolve
from .transport import Transport, create_transport

logger = logging.getLogger(__name__)

Options = Optional[Mapping[str, Any]]


class MetricsClient:
    """Client for emitting timers, counters and gauges."""

    def __init__(
        self,
        options: Options = None,
        logger: Optional[logging.Logger] = None,
        transport: Optional[Transport] = None
    ):
        """
        Initialize the metrics client.

        Args:
            options (Mapping, optional): Client options, see ClientConfig.from_options
            logger (logging.Logger, optional): Receives delivery failure reports.
                Defaults to this module's logger.
            transport (Transport, optional): Sender to use instead of the one
                selected by the ``transport`` option

        Raises:
            ConfigurationError: If the options are invalid
        """
        self.config = ClientConfig.from_options(options)
        self.logger = logger or logging.getLogger(__name__)
        self.transport = transport or create_transport(self.config)
        self.closed = False

        self.buffer = MetricsBuffer()
        self.dispatcher = Dispatcher(self.transport, self.logger)
        self.flusher = Flusher(
            self.buffer,
            self.dispatcher,
            self.config.flush_size,
            self.config.flush_interval
        )
        self.flusher.start()

        self._stats_task: Optional[PeriodicTask] = None
        if self.config.system_stats:
            collector = SystemStatsCollector()
            self._stats_task = PeriodicTask(
                'metrics-system-stats',
                self.config.system_stats_interval,
                lambda: collector.collect_and_send(self)
            )
            self._stats_task.start()

        # Pending api batches are worth finishing on interpreter exit
        if self.config.transport == API:
            atexit.register(self.close)

        self.logger.debug(
            "Metrics client ready (transport=%s, flush_size=%d)",
            self.config.transport, self.config.flush_size
        )

    def _submit(
        self,
        metric_type: MetricType,
        name: str,
        value: numbers.Real,
        options: Options,
        pre_aggregated: bool = False,
        agg_function: Optional[str] = None,
        freq: Optional[int] = None
    ) -> str:
        call_options = CallOptions.parse(options)
        resolved = resolve(metric_type, self.config.defaults_for(metric_type), call_options)

        event = MetricEvent(
            type=metric_type,
            name=name,
            value=value,
            tags=resolved.tags,
            timestamp=current_timestamp(),
            aggregations=None if pre_aggregated else resolved.agg,
            agg_freq=freq or resolved.agg_freq,
            agg_function=agg_function
        )
        line = encode(event)
        self.flusher.add(line)
        return line

    def _submit_aggregated(
        self,
        metric_type: MetricType,
        name: str,
        value: numbers.Real,
        agg_function: str,
        freq: int,
        options: Options
    ) -> str:
        if not isinstance(agg_function, str):
            raise EncodingError(f"Aggregation function must be a string, got {agg_function!r}")
        check_token(agg_function, 'aggregation function', EncodingError)
        if isinstance(freq, bool) or not isinstance(freq, int) or freq <= 0:
            raise EncodingError(f"Aggregation frequency must be a positive integer, got {freq!r}")
        return self._submit(metric_type, name, value, options, True, agg_function, freq)

    def timer(self, name: str, value: numbers.Real, options: Options = None, pre_aggregated: bool = False) -> str:
        """
        Submit a timer.

        Args:
            name (str): Metric name
            value (int or float): Measured duration
            options (Mapping, optional): ``tags``, ``agg`` and ``aggFreq`` for this call
            pre_aggregated (bool): Submit without an aggregation descriptor

        Returns:
            str: The encoded line

        Raises:
            EncodingError: If the name, value or options are malformed
        """
        return self._submit(MetricType.TIMER, name, value, options, pre_aggregated)

    def aggregated_timer(
        self,
        name: str,
        value: numbers.Real,
        agg_function: str,
        freq: int,
        options: Options = None
    ) -> str:
        """
        Submit a timer value already aggregated by the caller.

        Args:
            name (str): Metric name
            value (int or float): Aggregated value
            agg_function (str): Aggregation that produced the value, e.g. ``avg``
            freq (int): Aggregation window in seconds
            options (Mapping, optional): ``tags`` for this call

        Returns:
            str: The encoded line
        """
        return self._submit_aggregated(MetricType.TIMER, name, value, agg_function, freq, options)

    def counter(self, name: str, value: numbers.Real, options: Options = None, pre_aggregated: bool = False) -> str:
        """Submit a counter. Same arguments as timer()."""
        return self._submit(MetricType.COUNTER, name, value, options, pre_aggregated)

    def increment(self, name: str, value: numbers.Real = 1, options: Options = None) -> str:
        return self.counter(name, value, options)

    def decrement(self, name: str, value: numbers.Real = 1, options: Options = None) -> str:
        check_value(value)
        return self.counter(name, -value, options)

    def aggregated_counter(
        self,
        name: str,
        value: numbers.Real,
        agg_function: str,
        freq: int,
        options: Options = None
    ) -> str:
        return self._submit_aggregated(MetricType.COUNTER, name, value, agg_function, freq, options)

    def gauge(self, name: str, value: numbers.Real, options: Options = None, pre_aggregated: bool = False) -> str:
        """Submit a gauge. Same arguments as timer()."""
        return self._submit(MetricType.GAUGE, name, value, options, pre_aggregated)

    def aggregated_gauge(
        self,
        name: str,
        value: numbers.Real,
        agg_function: str,
        freq: int,
        options: Options = None
    ) -> str:
        return self._submit_aggregated(MetricType.GAUGE, name, value, agg_function, freq, options)

    def flush(self, wait: bool = False) -> int:
        """
        Flush buffered lines now.

        Args:
            wait (bool): Block until every queued batch has been handled

        Returns:
            int: Number of lines flushed
        """
        count = self.flusher.flush()
        if wait:
            self.dispatcher.wait()
        return count

    def get_buffered_count(self) -> int:
        """
        Get the number of lines waiting for a flush.

        Returns:
            int: Number of buffered lines
        """
        return len(self.buffer)

    def close(self, timeout: Optional[float] = 10) -> None:
        """
        Flush what is left, drain pending deliveries and release the transport.

        Safe to call more than once. Metric calls made afterwards are
        delivered synchronously.

        Args:
            timeout (float, optional): Seconds to wait for pending deliveries
        """
        if self.closed:
            return
        self.closed = True
        if self.config.transport == API:
            atexit.unregister(self.close)

        if self._stats_task is not None:
            self._stats_task.stop()
        self.flusher.stop()
        self.flusher.flush()
        self.dispatcher.close(timeout)
        self.transport.close()
        self.logger.debug(
            "Metrics client closed (%d batches delivered, %d dropped)",
            self.dispatcher.delivered_batches, self.dispatcher.dropped_batches
        )

    def __enter__(self) -> 'MetricsClient':
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()


# Singleton instance for easy import - initialized as None and set up on first use
default_client: Optional[MetricsClient] = None


def configure(options: Options = None, logger: Optional[logging.Logger] = None) -> MetricsClient:
    """
    Replace the default client with one built from ``options``.

    Args:
        options (Mapping, optional): Client options
        logger (logging.Logger, optional): Delivery failure side channel

    Returns:
        MetricsClient: The new default client
    """
    global default_client

    client = MetricsClient(options, logger)
    if default_client is not None:
        default_client.close()
    default_client = client
    return default_client


def get_client() -> MetricsClient:
    """
    Get the default client, creating it from the environment on first use.

    Returns:
        MetricsClient: The default client
    """
    global default_client

    if default_client is None:
        logger.debug("Creating default metrics client from environment")
        default_client = MetricsClient()
    return default_client


def timer(name: str, value: numbers.Real, options: Options = None, pre_aggregated: bool = False) -> str:
    """Submit a timer through the default client."""
    return get_client().timer(name, value, options, pre_aggregated)


def aggregated_timer(name: str, value: numbers.Real, agg_function: str, freq: int, options: Options = None) -> str:
    """Submit a pre-aggregated timer through the default client."""
    return get_client().aggregated_timer(name, value, agg_function, freq, options)


def increment(name: str, value: numbers.Real = 1, options: Options = None) -> str:
    """Increment a counter through the default client."""
    return get_client().increment(name, value, options)


def gauge(name: str, value: numbers.Real, options: Options = None) -> str:
    """Submit a gauge through the default client."""
    return get_client().gauge(name, value, options)


def flush(wait: bool = False) -> int:
    """Flush the default client."""
    return get_client().flush(wait)
