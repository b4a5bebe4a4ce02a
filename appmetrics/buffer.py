"""
Buffer for encoded lines waiting to be flushed.
"""
import logging
import threading
from collections import deque
from typing import List

logger = logging.getLogger(__name__)


class MetricsBuffer:
    """
    Ordered queue of encoded lines.

    The buffer itself is unbounded; the flusher drains it once it reaches the
    flush size. Lines come out in the order they went in.
    """

    def __init__(self):
        self.buffer = deque()
        self._lock = threading.Lock()

    def add(self, line: str) -> int:
        """
        Add a line to the tail of the buffer.

        Args:
            line (str): The encoded line

        Returns:
            int: Number of pending lines after the add
        """
        with self._lock:
            self.buffer.append(line)
            return len(self.buffer)

    def drain(self) -> List[str]:
        """
        Detach every pending line as one batch and leave the buffer empty.

        Returns:
            list: Pending lines in FIFO order, possibly empty
        """
        with self._lock:
            batch = list(self.buffer)
            self.buffer.clear()
        if batch:
            logger.debug("Drained %d buffered lines", len(batch))
        return batch

    def __len__(self) -> int:
        return len(self.buffer)
