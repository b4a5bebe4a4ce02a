"""
Transports delivering flushed batches to the collector.
"""
import gzip
import logging
import socket
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple

import requests
from retrying import retry

from .config import API, DATAGRAM, ApiConfig, ClientConfig
from .errors import ConfigurationError, TransportError

logger = logging.getLogger(__name__)


def join_batch(batch: List[str]) -> bytes:
    """Newline-join a batch into a UTF-8 payload."""
    return '\n'.join(batch).encode('utf-8')


class Transport(ABC):
    """Delivers one batch of encoded lines."""

    @abstractmethod
    def deliver(self, batch: List[str]) -> None:
        """
        Deliver a batch.

        Args:
            batch (list): Encoded lines in call order

        Raises:
            TransportError: If the batch could not be delivered
        """
        pass

    def close(self) -> None:
        """Release any resources held by the transport."""
        pass


class DatagramSender(Transport):
    """Fire-and-forget: one datagram per batch, no acknowledgement."""

    def __init__(self, host: str, port: int):
        self.address = (host, port)
        self._socket: Optional[socket.socket] = None

    def deliver(self, batch: List[str]) -> None:
        try:
            if self._socket is None:
                self._socket = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
            self._socket.sendto(join_batch(batch), self.address)
        except OSError as e:
            raise TransportError(
                f"Failed to send datagram to {self.address[0]}:{self.address[1]}: {str(e)}"
            ) from e

    def close(self) -> None:
        if self._socket is not None:
            self._socket.close()
            self._socket = None


def is_transient(exception: Exception) -> bool:
    """Connection errors, timeouts and 5xx responses are worth retrying."""
    if isinstance(exception, (requests.ConnectionError, requests.Timeout)):
        return True
    if isinstance(exception, requests.HTTPError) and exception.response is not None:
        return exception.response.status_code >= 500
    return False


class BatchApiSender(Transport):
    """
    Authenticated HTTP delivery with optional gzip compression.

    Transient failures are retried with exponential backoff; anything else,
    or running out of attempts, raises TransportError.
    """

    def __init__(self, api: ApiConfig, compression: bool = False):
        """
        Initialize the sender.

        Args:
            api (ApiConfig): Endpoint, credential and retry settings
            compression (bool): Gzip the payload before sending
        """
        self.api = api
        self.compression = compression

    def _retry_if_transient(self, exception: Exception) -> bool:
        transient = is_transient(exception)
        if transient:
            logger.warning("Transient error sending metrics, retrying: %s", str(exception))
        return transient

    def build_request(self, batch: List[str]) -> Tuple[bytes, Dict[str, str]]:
        """
        Build the request body and headers for a batch.

        Returns:
            tuple: (body, headers)
        """
        body = join_batch(batch)
        headers = {
            'Content-Type': 'text/plain; charset=utf-8',
            'X-API-Key': self.api.token
        }
        if self.compression:
            body = gzip.compress(body)
            headers['Content-Encoding'] = 'gzip'
        return body, headers

    def deliver(self, batch: List[str]) -> None:
        body, headers = self.build_request(batch)

        @retry(
            retry_on_exception=self._retry_if_transient,
            stop_max_attempt_number=self.api.max_retries + 1,
            wait_exponential_multiplier=self.api.retry_delay,
            wait_exponential_max=self.api.retry_max_delay
        )
        def _send_request():
            response = requests.post(
                self.api.url,
                data=body,
                headers=headers,
                timeout=self.api.timeout
            )
            if not 200 <= response.status_code < 300:
                raise requests.HTTPError(
                    f"Collector responded with status {response.status_code}",
                    response=response
                )
            return response

        try:
            response = _send_request()
        except requests.exceptions.RequestException as e:
            status_code = e.response.status_code if e.response is not None else None
            raise TransportError(
                f"Failed to send {len(batch)} lines to {self.api.url}: {str(e)}",
                retryable=is_transient(e),
                status_code=status_code
            ) from e

        logger.debug("Sent %d lines to %s (status %d)", len(batch), self.api.url, response.status_code)


def create_transport(config: ClientConfig) -> Transport:
    """
    Build the transport selected by the configuration.

    Args:
        config (ClientConfig): The client configuration

    Returns:
        Transport: A datagram or api sender
    """
    if config.transport == DATAGRAM:
        return DatagramSender(config.host, config.port)
    if config.transport == API:
        return BatchApiSender(config.api, compression=config.compression)
    raise ConfigurationError(f"Unsupported transport: {config.transport}")
