"""
Resolves the effective tags and aggregation settings for a metric call.

Three layers are combined in a fixed order:

1. built-in defaults per metric type,
2. client-level defaults, where each configured field replaces the built-in
   field as a whole,
3. call options, where ``tags`` and ``agg`` are merged on top of the result
   of 1-2 and ``aggFreq`` replaces it.
"""
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Tuple

from .config import (
    MetricType,
    TypeDefaults,
    normalize_agg,
    normalize_agg_freq,
    normalize_tags,
)
from .errors import EncodingError

BASE_DEFAULTS: Mapping[MetricType, TypeDefaults] = {
    MetricType.TIMER: TypeDefaults(tags=(('unit', 'ms'),), agg=('avg', 'p90', 'count'), agg_freq=10),
    MetricType.COUNTER: TypeDefaults(tags=(), agg=('sum',), agg_freq=10),
    MetricType.GAUGE: TypeDefaults(tags=(), agg=('last',), agg_freq=10),
}

CALL_OPTIONS = frozenset({'tags', 'agg', 'aggFreq'})


@dataclass(frozen=True)
class CallOptions:
    tags: Tuple[Tuple[str, str], ...] = ()
    agg: Tuple[str, ...] = ()
    agg_freq: Optional[int] = None

    @classmethod
    def parse(cls, options: Optional[Mapping[str, Any]]) -> 'CallOptions':
        """
        Validate per-call options.

        Raises:
            EncodingError: If options are malformed or contain unknown keys
        """
        if options is None:
            return cls()
        if not isinstance(options, Mapping):
            raise EncodingError(f"options must be a mapping, got {type(options).__name__}")
        unknown = set(options) - CALL_OPTIONS
        if unknown:
            raise EncodingError(f"Unknown metric option(s): {sorted(unknown)}")

        tags = options.get('tags')
        agg = options.get('agg')
        agg_freq = options.get('aggFreq')
        return cls(
            tags=normalize_tags(tags, EncodingError) if tags is not None else (),
            agg=normalize_agg(agg, EncodingError) if agg is not None else (),
            agg_freq=normalize_agg_freq(agg_freq, EncodingError) if agg_freq is not None else None,
        )


@dataclass(frozen=True)
class Resolved:
    tags: Tuple[Tuple[str, str], ...]
    agg: Tuple[str, ...]
    agg_freq: int


def merge_tags(call_tags: Tuple[Tuple[str, str], ...],
               default_tags: Tuple[Tuple[str, str], ...]) -> Tuple[Tuple[str, str], ...]:
    """Call tags first, then default tags whose key the call did not set."""
    seen = {key for key, _ in call_tags}
    return call_tags + tuple((key, value) for key, value in default_tags if key not in seen)


def merge_agg(default_agg: Tuple[str, ...], call_agg: Tuple[str, ...]) -> Tuple[str, ...]:
    """Order-preserving union: the default list followed by new call entries."""
    merged = []
    for name in default_agg + call_agg:
        if name not in merged:
            merged.append(name)
    return tuple(merged)


def resolve(metric_type: MetricType,
            client_defaults: Optional[TypeDefaults] = None,
            call_options: Optional[CallOptions] = None) -> Resolved:
    """
    Combine built-in defaults, client defaults and call options.

    Pure function: none of the inputs are modified.

    Args:
        metric_type (MetricType): The metric type being submitted
        client_defaults (TypeDefaults, optional): Client-level defaults for this type
        call_options (CallOptions, optional): Options passed with the call

    Returns:
        Resolved: Effective tags, aggregation list and aggregation frequency
    """
    base = BASE_DEFAULTS[metric_type]
    client_defaults = client_defaults or TypeDefaults()
    call_options = call_options or CallOptions()

    tags = client_defaults.tags if client_defaults.tags is not None else base.tags
    agg = client_defaults.agg if client_defaults.agg is not None else base.agg
    agg_freq = client_defaults.agg_freq if client_defaults.agg_freq is not None else base.agg_freq

    return Resolved(
        tags=merge_tags(call_options.tags, tags),
        agg=merge_agg(agg, call_options.agg),
        agg_freq=call_options.agg_freq if call_options.agg_freq is not None else agg_freq,
    )
