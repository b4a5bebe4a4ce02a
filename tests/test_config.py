import pytest

from appmetrics import config
from appmetrics.config import ClientConfig, MetricType, TypeDefaults, expand_dotted_keys
from appmetrics.errors import ConfigurationError


def test_defaults_come_from_module_settings() -> None:
    cfg = ClientConfig.from_options()
    assert cfg.transport == config.DATAGRAM
    assert cfg.host == config.HOST
    assert cfg.port == config.PORT
    assert cfg.flush_size == config.FLUSH_SIZE
    assert cfg.api is None
    assert cfg.defaults_for(MetricType.TIMER) == TypeDefaults()


def test_udp_is_an_alias_for_datagram() -> None:
    assert ClientConfig.from_options({"transport": "udp"}).transport == config.DATAGRAM
    assert ClientConfig.from_options({"transport": "UDP"}).transport == config.DATAGRAM


def test_api_options() -> None:
    cfg = ClientConfig.from_options(
        {
            "transport": "api",
            "api": {"host": "collector.test", "port": 8443, "token": "my-token"},
            "compression": True,
            "flushSize": 2,
        }
    )
    assert cfg.transport == config.API
    assert cfg.compression is True
    assert cfg.flush_size == 2
    assert cfg.api.token == "my-token"
    assert cfg.api.url == "https://collector.test:8443/metrics"


def test_dotted_options_match_nested_ones() -> None:
    dotted = ClientConfig.from_options(
        {
            "transport": "api",
            "api.host": "collector.test",
            "api.token": "t",
            "api.protocol": "http",
            "api.path": "v1/lines",
            "default.timer.tags": {"env": "qa"},
            "default.timer.aggFreq": 60,
        }
    )
    assert dotted.api.url == "http://collector.test:443/v1/lines"
    assert dotted.defaults_for(MetricType.TIMER) == TypeDefaults(tags=(("env", "qa"),), agg_freq=60)


def test_expand_dotted_keys_merges_and_leaves_tag_names_alone() -> None:
    expanded = expand_dotted_keys(
        {
            "default": {"timer": {"agg": ["sum"]}},
            "default.timer.tags": {"host.name": "box"},
        }
    )
    assert expanded == {"default": {"timer": {"agg": ["sum"], "tags": {"host.name": "box"}}}}


def test_client_defaults_are_frozen() -> None:
    tags = {"env": "qa"}
    cfg = ClientConfig.from_options({"default": {"timer": {"tags": tags, "agg": ["sum"]}}})
    tags["env"] = "prod"
    timer_defaults = cfg.defaults_for(MetricType.TIMER)
    assert timer_defaults.tags == (("env", "qa"),)
    assert timer_defaults.agg == ("sum",)
    with pytest.raises(TypeError):
        cfg.defaults[MetricType.GAUGE] = TypeDefaults()


def test_empty_type_defaults() -> None:
    cfg = ClientConfig.from_options({"default": {"timer": {}}})
    assert cfg.defaults_for(MetricType.TIMER) == TypeDefaults()


@pytest.mark.parametrize(
    "options",
    [
        {"transport": "tcp"},
        {"flushSize": 0},
        {"flushSize": -1},
        {"flushSize": "10"},
        {"flushInterval": 0},
        {"port": 70000},
        {"transport": "api"},
        {"transport": "api", "api": {"host": "h"}},
        {"transport": "api", "api": {"host": "h", "token": "t", "protocol": "ftp"}},
        {"transport": "api", "api": {"host": "h", "token": "t", "retryDelay": -1}},
        {"default": {"histogram": {"agg": ["sum"]}}},
        {"default": {"timer": {"aggFreq": 0}}},
        {"default": {"timer": {"agg": "sum"}}},
        {"default": {"timer": {"agg": []}}},
        {"default.counter.agg": ()},
        {"transport": "api", "api": {"host": "h", "token": "t", "maxRetries": -1}},
        {"default": {"timer": {"tags": "env=qa"}}},
        {"default": {"timer": {"unit": "ms"}}},
        "transport=udp",
    ],
)
def test_invalid_options_raise_configuration_error(options) -> None:
    with pytest.raises(ConfigurationError):
        ClientConfig.from_options(options)


def test_configuration_error_is_a_value_error() -> None:
    with pytest.raises(ValueError):
        ClientConfig.from_options({"flushSize": 0})
