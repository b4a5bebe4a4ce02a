"""
Flush policy and asynchronous hand-off of batches to the transport.
"""
import logging
import queue
import threading
from typing import List, Optional

from .buffer import MetricsBuffer
from .errors import TransportError
from .periodic import PeriodicTask
from .transport import Transport

logger = logging.getLogger(__name__)

_STOP = object()


class Dispatcher:
    """
    Delivers batches on a background thread so metric calls never wait on I/O.

    Delivery failures are reported to ``logger`` and counted; they are never
    raised to the code that produced the metrics.
    """

    def __init__(self, transport: Transport, logger: Optional[logging.Logger] = None):
        """
        Initialize the dispatcher and start its worker thread.

        Args:
            transport (Transport): Where batches are delivered
            logger (logging.Logger, optional): Side channel for delivery failures
        """
        self.transport = transport
        self.logger = logger or logging.getLogger(__name__)
        self.delivered_batches = 0
        self.dropped_batches = 0
        self.closed = False

        self._queue = queue.Queue()
        self._lock = threading.Lock()
        # Serializes transport use between the worker and inline deliveries
        self._deliver_lock = threading.Lock()
        self.thread = threading.Thread(target=self._run, name='metrics-dispatch', daemon=True)
        self.thread.start()

    def submit(self, batch: List[str]) -> None:
        """Queue a batch for delivery, or deliver it inline once closed."""
        with self._lock:
            if not self.closed:
                self._queue.put(batch)
                return
        self.logger.debug("Dispatcher closed, delivering %d lines inline", len(batch))
        self._deliver(batch)

    def _deliver(self, batch: List[str]) -> None:
        with self._deliver_lock:
            try:
                self.transport.deliver(batch)
                self.delivered_batches += 1
            except TransportError as e:
                self.dropped_batches += 1
                self.logger.error("Dropping batch of %d metric lines: %s", len(batch), e.message)
            except Exception as e:
                self.dropped_batches += 1
                self.logger.exception("Unexpected error delivering %d metric lines: %s", len(batch), str(e))

    def _run(self) -> None:
        while True:
            batch = self._queue.get()
            try:
                if batch is _STOP:
                    return
                self._deliver(batch)
            finally:
                self._queue.task_done()

    def wait(self) -> None:
        """Block until every queued batch has been handled."""
        self._queue.join()

    def close(self, timeout: Optional[float] = None) -> None:
        """
        Stop accepting batches and drain the ones already queued.

        Args:
            timeout (float, optional): Seconds to wait for the drain
        """
        with self._lock:
            if self.closed:
                return
            self.closed = True
            self._queue.put(_STOP)

        self.thread.join(timeout=timeout)
        if self.thread.is_alive():
            self.logger.warning("Metrics dispatcher did not drain within %ss", timeout)


class Flusher:
    """
    Owns the flush policy.

    A flush happens as soon as the buffer holds ``flush_size`` lines and,
    when ``flush_interval`` is set, on every tick of that interval.
    """

    def __init__(
        self,
        buffer: MetricsBuffer,
        dispatcher: Dispatcher,
        flush_size: int,
        flush_interval: Optional[float] = None
    ):
        self.buffer = buffer
        self.dispatcher = dispatcher
        self.flush_size = flush_size
        self.flush_interval = flush_interval
        self._ticker: Optional[PeriodicTask] = None

    def add(self, line: str) -> None:
        """Append a line, flushing synchronously if the size threshold is reached."""
        if self.buffer.add(line) >= self.flush_size:
            self.flush()

    def flush(self) -> int:
        """
        Detach the pending lines and hand them to the dispatcher.

        Returns:
            int: Number of lines flushed; 0 when the buffer was empty
        """
        batch = self.buffer.drain()
        if not batch:
            return 0
        logger.debug("Flushing %d metric lines", len(batch))
        self.dispatcher.submit(batch)
        return len(batch)

    def start(self) -> None:
        if self.flush_interval and self._ticker is None:
            self._ticker = PeriodicTask('metrics-flush', self.flush_interval, self.flush)
            self._ticker.start()

    def stop(self) -> None:
        if self._ticker is not None:
            self._ticker.stop()
            self._ticker = None
