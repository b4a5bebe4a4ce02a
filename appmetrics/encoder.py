"""
Line encoding for metric events.

A regular line::

    application.<type>.<name>[,<tag>=<value>,...] <value> <timestamp> <agg1,agg2,...>,<aggFreq>

A pre-aggregated line drops the aggregation descriptor::

    application.<type>.<name>[,<tag>=<value>,...] <value> <timestamp>
"""
import math
import numbers
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple

import pytz

from .config import MetricType, check_token
from .errors import EncodingError

PREFIX = 'application'


def current_timestamp() -> int:
    """Seconds since the epoch."""
    return int(datetime.now(pytz.UTC).timestamp())


def check_value(value) -> None:
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise EncodingError(f"Metric value must be numeric, got {value!r}")
    if not math.isfinite(value):
        raise EncodingError(f"Metric value must be finite, got {value!r}")


def format_value(value: numbers.Real) -> str:
    """Render integers as-is and every other real (Fraction included) in float notation."""
    if isinstance(value, numbers.Integral):
        return str(int(value))
    return str(float(value))


@dataclass(frozen=True)
class MetricEvent:
    """One metric submission, built and encoded within a single call."""
    type: MetricType
    name: str
    value: numbers.Real
    tags: Tuple[Tuple[str, str], ...]
    timestamp: int
    aggregations: Optional[Tuple[str, ...]] = None
    agg_freq: Optional[int] = None
    # Only set for pre-aggregated submissions
    agg_function: Optional[str] = None

    @property
    def pre_aggregated(self) -> bool:
        return self.aggregations is None

    def validate(self) -> None:
        """
        Check that the event can be rendered.

        Raises:
            EncodingError: If the name or value is malformed
        """
        if not isinstance(self.name, str):
            raise EncodingError(f"Metric name must be a string, got {self.name!r}")
        check_token(self.name, 'metric name', EncodingError)
        check_value(self.value)
        if not self.pre_aggregated:
            if not self.aggregations:
                raise EncodingError(f"Metric {self.name!r} has an empty aggregation list")
            if not self.agg_freq:
                raise EncodingError(f"Metric {self.name!r} has no aggregation frequency")


def encode(event: MetricEvent) -> str:
    """
    Render an event as a single line.

    Args:
        event (MetricEvent): The event to encode

    Returns:
        str: The encoded line, without a trailing newline

    Raises:
        EncodingError: If the event is malformed
    """
    event.validate()

    path = f"{PREFIX}.{event.type.value}.{event.name}"
    if event.tags:
        path += ',' + ','.join(f"{key}={value}" for key, value in event.tags)

    fields = [path, format_value(event.value), str(event.timestamp)]
    if not event.pre_aggregated:
        fields.append(','.join(event.aggregations) + f",{event.agg_freq}")
    return ' '.join(fields)
