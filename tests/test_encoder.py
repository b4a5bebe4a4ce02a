import re
import time
from fractions import Fraction

import pytest

from appmetrics.config import MetricType
from appmetrics.encoder import MetricEvent, current_timestamp, encode
from appmetrics.errors import EncodingError


def _event(**overrides) -> MetricEvent:
    fields = dict(
        type=MetricType.TIMER,
        name="my_metric",
        value=1,
        tags=(("unit", "ms"),),
        timestamp=1700000000,
        aggregations=("avg", "p90", "count"),
        agg_freq=10,
    )
    fields.update(overrides)
    return MetricEvent(**fields)


def test_regular_line() -> None:
    assert encode(_event()) == "application.timer.my_metric,unit=ms 1 1700000000 avg,p90,count,10"


def test_tags_keep_their_order() -> None:
    line = encode(_event(tags=(("cluster", "test"), ("env", "qa"))))
    assert line.startswith("application.timer.my_metric,cluster=test,env=qa ")


def test_no_tags_means_no_tag_segment() -> None:
    line = encode(_event(type=MetricType.COUNTER, tags=(), aggregations=("sum",)))
    assert line == "application.counter.my_metric 1 1700000000 sum,10"


def test_float_values_are_rendered_as_given() -> None:
    assert encode(_event(value=2.5)).split(" ")[1] == "2.5"
    assert encode(_event(value=-3)).split(" ")[1] == "-3"


def test_fractions_are_rendered_as_decimals() -> None:
    assert encode(_event(value=Fraction(1, 2))).split(" ")[1] == "0.5"
    assert encode(_event(value=Fraction(4, 2))).split(" ")[1] == "2.0"


def test_pre_aggregated_line_has_no_descriptor() -> None:
    line = encode(_event(aggregations=None, agg_freq=60, agg_function="avg"))
    assert line == "application.timer.my_metric,unit=ms 1 1700000000"


def test_current_timestamp_is_epoch_seconds() -> None:
    ts = current_timestamp()
    assert isinstance(ts, int)
    assert abs(ts - time.time()) < 5
    assert re.fullmatch(r"\d+", str(ts))


@pytest.mark.parametrize("name", ["", "has space", "a,b", "a=b", None, 42])
def test_bad_names_are_rejected(name) -> None:
    with pytest.raises(EncodingError):
        encode(_event(name=name))


@pytest.mark.parametrize("value", ["1", None, True, float("nan"), float("inf")])
def test_bad_values_are_rejected(value) -> None:
    with pytest.raises(EncodingError):
        encode(_event(value=value))


def test_empty_aggregation_list_is_rejected() -> None:
    with pytest.raises(EncodingError):
        encode(_event(aggregations=()))
