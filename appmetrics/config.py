"""
Configuration settings for the metrics client.

Module level constants are read from the environment and act as fall-backs
for any option not given to the client explicitly.
"""
import math
import os
import re
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple, Type

from .errors import ConfigurationError

# Transport configuration
TRANSPORT = os.getenv('METRICS_TRANSPORT', 'datagram')

# Datagram endpoint
HOST = os.getenv('METRICS_HOST', '127.0.0.1')
PORT = int(os.getenv('METRICS_PORT', '8125'))

# API endpoint
API_HOST = os.getenv('METRICS_API_HOST', '')
API_PORT = int(os.getenv('METRICS_API_PORT', '443'))
API_TOKEN = os.getenv('METRICS_API_TOKEN', '')
API_PROTOCOL = os.getenv('METRICS_API_PROTOCOL', 'https')
API_PATH = os.getenv('METRICS_API_PATH', '/metrics')

# HTTP client configuration
REQUEST_TIMEOUT = 30  # seconds
MAX_RETRIES = 3  # retries after the first attempt
RETRY_DELAY = 500  # milliseconds, doubled on every attempt
RETRY_MAX_DELAY = 10000  # milliseconds

# Buffer configuration
FLUSH_SIZE = int(os.getenv('METRICS_FLUSH_SIZE', '100'))
FLUSH_INTERVAL = float(os.environ['METRICS_FLUSH_INTERVAL']) if os.getenv('METRICS_FLUSH_INTERVAL') else None

# System stats
SYSTEM_STATS_INTERVAL = 10  # seconds

# Logging configuration
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

DATAGRAM = 'datagram'
API = 'api'
TRANSPORT_ALIASES = {'datagram': DATAGRAM, 'udp': DATAGRAM, 'api': API}

# Characters that would break the line grammar
_FORBIDDEN = re.compile(r'[\s,=]')


class MetricType(Enum):
    TIMER = 'timer'
    COUNTER = 'counter'
    GAUGE = 'gauge'


@dataclass(frozen=True)
class TypeDefaults:
    """
    Defaults for one metric type.

    A field left as None is not configured; a configured field replaces the
    corresponding built-in default as a whole.
    """
    tags: Optional[Tuple[Tuple[str, str], ...]] = None
    agg: Optional[Tuple[str, ...]] = None
    agg_freq: Optional[int] = None


@dataclass(frozen=True)
class ApiConfig:
    host: str
    port: int
    token: str
    protocol: str = API_PROTOCOL
    path: str = API_PATH
    timeout: float = REQUEST_TIMEOUT
    max_retries: int = MAX_RETRIES
    retry_delay: int = RETRY_DELAY
    retry_max_delay: int = RETRY_MAX_DELAY

    @property
    def url(self) -> str:
        return f"{self.protocol}://{self.host}:{self.port}/{self.path.lstrip('/')}"


def check_token(value: str, what: str, error_cls: Type[Exception]) -> str:
    """Reject strings that cannot appear inside a line."""
    if not value:
        raise error_cls(f"{what} must not be empty")
    if _FORBIDDEN.search(value):
        raise error_cls(f"{what} {value!r} must not contain whitespace, ',' or '='")
    return value


def normalize_tags(tags: Any, error_cls: Type[Exception]) -> Tuple[Tuple[str, str], ...]:
    """
    Validate a tag mapping and freeze it into ordered pairs.

    Args:
        tags (Mapping): Tag names to values, in output order
        error_cls (type): Exception raised on invalid input

    Returns:
        tuple: ((key, value), ...) in insertion order
    """
    if not isinstance(tags, Mapping):
        raise error_cls(f"tags must be a mapping, got {type(tags).__name__}")
    pairs = []
    for key, value in tags.items():
        if not isinstance(key, str):
            raise error_cls(f"tag names must be strings, got {key!r}")
        if isinstance(value, float) and not math.isfinite(value):
            raise error_cls(f"tag {key!r} has a non-finite value")
        if not isinstance(value, (str, int, float)):
            raise error_cls(f"tag {key!r} must have a string value, got {type(value).__name__}")
        pairs.append((check_token(key, 'tag name', error_cls),
                      check_token(str(value), f"tag {key!r} value", error_cls)))
    return tuple(pairs)


def normalize_agg(agg: Any, error_cls: Type[Exception]) -> Tuple[str, ...]:
    """Validate an aggregation list and freeze it into a tuple."""
    if isinstance(agg, (str, bytes)) or not isinstance(agg, Sequence):
        raise error_cls(f"agg must be a list of aggregation names, got {agg!r}")
    for name in agg:
        if not isinstance(name, str):
            raise error_cls(f"aggregation names must be strings, got {name!r}")
        check_token(name, 'aggregation name', error_cls)
    return tuple(agg)


def normalize_agg_freq(agg_freq: Any, error_cls: Type[Exception]) -> int:
    if isinstance(agg_freq, bool) or not isinstance(agg_freq, int) or agg_freq <= 0:
        raise error_cls(f"aggFreq must be a positive integer, got {agg_freq!r}")
    return agg_freq


def _positive_int(value: Any, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigurationError(f"{name} must be a positive integer, got {value!r}")
    return value


def _positive_number(value: Any, name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not value > 0:
        raise ConfigurationError(f"{name} must be a positive number, got {value!r}")
    return value


def _port(value: Any, name: str) -> int:
    port = _positive_int(value, name)
    if port > 65535:
        raise ConfigurationError(f"{name} must be at most 65535, got {port}")
    return port


def _deep_merge(target: Dict[str, Any], source: Mapping[str, Any]) -> None:
    for key, value in source.items():
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            _deep_merge(target[key], value)
        else:
            target[key] = dict(value) if isinstance(value, dict) else value


def expand_dotted_keys(options: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Expand dotted option names into nested mappings.

    ``{'api.host': 'h', 'default.timer.tags': {...}}`` becomes
    ``{'api': {'host': 'h'}, 'default': {'timer': {'tags': {...}}}}``.
    Tag mappings are left untouched since tag names may contain dots.

    Args:
        options (Mapping): Flat, nested or mixed options

    Returns:
        dict: Fully nested options
    """
    expanded: Dict[str, Any] = {}
    for key, value in options.items():
        parts = key.split('.') if isinstance(key, str) else [key]
        if isinstance(value, Mapping) and parts[-1] != 'tags':
            value = expand_dotted_keys(value)
        nested: Dict[str, Any] = value
        for part in reversed(parts[1:]):
            nested = {part: nested}
        _deep_merge(expanded, {parts[0]: nested})
    return expanded


def _parse_type_defaults(type_name: str, raw: Any) -> TypeDefaults:
    if raw is None:
        return TypeDefaults()
    if not isinstance(raw, Mapping):
        raise ConfigurationError(f"default.{type_name} must be a mapping")
    unknown = set(raw) - {'tags', 'agg', 'aggFreq'}
    if unknown:
        raise ConfigurationError(f"Unknown option(s) for default.{type_name}: {sorted(unknown)}")

    tags = raw.get('tags')
    agg = raw.get('agg')
    agg_freq = raw.get('aggFreq')
    if agg is not None:
        agg = normalize_agg(agg, ConfigurationError)
        # Replaces the built-in list, so an empty one would leave nothing to render
        if not agg:
            raise ConfigurationError(f"default.{type_name}.agg must name at least one aggregation")
    return TypeDefaults(
        tags=normalize_tags(tags, ConfigurationError) if tags is not None else None,
        agg=agg,
        agg_freq=normalize_agg_freq(agg_freq, ConfigurationError) if agg_freq is not None else None,
    )


def _parse_defaults(raw: Any) -> Mapping[MetricType, TypeDefaults]:
    if raw is None:
        return MappingProxyType({})
    if not isinstance(raw, Mapping):
        raise ConfigurationError("default must be a mapping of metric type to defaults")

    defaults = {}
    for type_name, type_raw in raw.items():
        try:
            metric_type = MetricType(type_name)
        except ValueError:
            known = [t.value for t in MetricType]
            raise ConfigurationError(f"Unknown metric type in defaults: {type_name!r}. Known types: {known}") from None
        defaults[metric_type] = _parse_type_defaults(type_name, type_raw)
    return MappingProxyType(defaults)


def _parse_api(raw: Any) -> ApiConfig:
    raw = raw or {}
    if not isinstance(raw, Mapping):
        raise ConfigurationError("api must be a mapping")

    host = raw.get('host', API_HOST)
    token = raw.get('token', API_TOKEN)
    if not host:
        raise ConfigurationError("api.host is required for the api transport")
    if not token:
        raise ConfigurationError("api.token is required for the api transport")

    protocol = raw.get('protocol', API_PROTOCOL)
    if protocol not in ('http', 'https'):
        raise ConfigurationError(f"api.protocol must be 'http' or 'https', got {protocol!r}")

    max_retries = raw.get('maxRetries', MAX_RETRIES)
    if isinstance(max_retries, bool) or not isinstance(max_retries, int) or max_retries < 0:
        raise ConfigurationError(f"api.maxRetries must be a non-negative integer, got {max_retries!r}")

    retry_delay = raw.get('retryDelay', RETRY_DELAY)
    if isinstance(retry_delay, bool) or not isinstance(retry_delay, int) or retry_delay < 0:
        raise ConfigurationError(f"api.retryDelay must be a non-negative integer, got {retry_delay!r}")

    return ApiConfig(
        host=host,
        port=_port(raw.get('port', API_PORT), 'api.port'),
        token=token,
        protocol=protocol,
        path=raw.get('path', API_PATH),
        timeout=_positive_number(raw.get('timeout', REQUEST_TIMEOUT), 'api.timeout'),
        max_retries=max_retries,
        retry_delay=retry_delay,
        retry_max_delay=max(retry_delay, RETRY_MAX_DELAY),
    )


@dataclass(frozen=True)
class ClientConfig:
    """Process-wide client configuration. Built once, never mutated."""
    transport: str = DATAGRAM
    host: str = HOST
    port: int = PORT
    api: Optional[ApiConfig] = None
    compression: bool = False
    flush_size: int = FLUSH_SIZE
    flush_interval: Optional[float] = FLUSH_INTERVAL
    defaults: Mapping[MetricType, TypeDefaults] = field(default_factory=lambda: MappingProxyType({}))
    system_stats: bool = False
    system_stats_interval: float = SYSTEM_STATS_INTERVAL

    def defaults_for(self, metric_type: MetricType) -> TypeDefaults:
        return self.defaults.get(metric_type, TypeDefaults())

    @classmethod
    def from_options(cls, options: Optional[Mapping[str, Any]] = None) -> 'ClientConfig':
        """
        Build a configuration from client options.

        Args:
            options (Mapping, optional): Nested or dotted options, e.g.
                ``{'transport': 'api', 'api': {'host': ..., 'token': ...}, 'flushSize': 10}``

        Returns:
            ClientConfig: The validated configuration

        Raises:
            ConfigurationError: If any option is invalid
        """
        if options is not None and not isinstance(options, Mapping):
            raise ConfigurationError(f"options must be a mapping, got {type(options).__name__}")
        options = expand_dotted_keys(options or {})

        transport_name = str(options.get('transport', TRANSPORT)).lower()
        transport = TRANSPORT_ALIASES.get(transport_name)
        if transport is None:
            raise ConfigurationError(
                f"Unknown transport: {transport_name!r}. Expected one of {sorted(TRANSPORT_ALIASES)}"
            )

        flush_interval = options.get('flushInterval', FLUSH_INTERVAL)
        if flush_interval is not None:
            flush_interval = _positive_number(flush_interval, 'flushInterval')

        return cls(
            transport=transport,
            host=options.get('host', HOST),
            port=_port(options.get('port', PORT), 'port'),
            api=_parse_api(options.get('api')) if transport == API else None,
            compression=bool(options.get('compression', False)),
            flush_size=_positive_int(options.get('flushSize', FLUSH_SIZE), 'flushSize'),
            flush_interval=flush_interval,
            defaults=_parse_defaults(options.get('default')),
            system_stats=bool(options.get('systemStats', False)),
            system_stats_interval=_positive_number(
                options.get('systemStatsInterval', SYSTEM_STATS_INTERVAL), 'systemStatsInterval'
            ),
        )
