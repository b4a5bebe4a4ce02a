"""
Exceptions raised by the metrics client.
"""


class MetricsError(Exception):
    """Base exception for all metrics client errors."""


class ConfigurationError(MetricsError, ValueError):
    """
    Raised when the client configuration is invalid.

    Always raised synchronously while the client is being constructed.
    """


class EncodingError(MetricsError, ValueError):
    """
    Raised when a metric call cannot be turned into a line.

    The offending event is never buffered.
    """


class TransportError(MetricsError):
    """
    Raised by a transport when a batch could not be delivered.

    Args:
        message (str): The error message.
        retryable (bool): Whether the failure was transient.
        status_code (int, optional): HTTP status returned by the collector, if any.
    """

    def __init__(self, message: str, retryable: bool = False, status_code: int = None):
        self.message = message
        self.retryable = retryable
        self.status_code = status_code
        super().__init__(self.message)
