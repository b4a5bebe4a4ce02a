"""
Background task running a callable at a fixed interval.
"""
import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class PeriodicTask:
    """Calls ``func`` every ``interval`` seconds on a daemon thread."""

    def __init__(self, name: str, interval: float, func: Callable[[], None]):
        self.name = name
        self.interval = interval
        self.func = func
        self.running = False
        self.thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

    def start(self) -> None:
        if self.running:
            logger.warning("%s already running", self.name)
            return

        self.running = True
        self._stop_event.clear()

        def run_loop():
            logger.debug("Starting %s loop every %ss", self.name, self.interval)
            while not self._stop_event.wait(self.interval):
                try:
                    self.func()
                except Exception as e:
                    logger.error("Error in %s: %s", self.name, str(e))

        self.thread = threading.Thread(target=run_loop, name=self.name, daemon=True)
        self.thread.start()

    def stop(self, timeout: float = 5) -> None:
        if not self.running:
            return

        self.running = False
        self._stop_event.set()

        if self.thread:
            self.thread.join(timeout=timeout)
            if self.thread.is_alive():
                logger.warning("%s thread did not stop cleanly", self.name)
            self.thread = None
