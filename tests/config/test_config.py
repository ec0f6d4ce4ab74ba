from pathlib import Path

import pytest

from config.config import (
    CONFIG_PATH_ENV,
    DEFAULT_CACHE_ADDRESSES,
    CacheEndpoint,
    LoaderConfig,
    _deep_merge,
    _expand_env_vars,
    load_config,
    load_yaml,
)
from core.errors.exceptions import ConfigurationError
from memc_load.schemas import DeviceType


@pytest.fixture(autouse=True)
def no_config_env(monkeypatch):
    monkeypatch.delenv(CONFIG_PATH_ENV, raising=False)
    for name in ("MEMC_LOAD_PATTERN", "MEMC_IDFA", "MEMC_GAID", "MEMC_ADID", "MEMC_DVID"):
        monkeypatch.delenv(name, raising=False)


# =========================================================================
# load_yaml / env expansion / merge
# =========================================================================


class TestLoadYaml:
    def test_returns_empty_dict_for_nonexistent_file(self):
        assert load_yaml(Path("/nonexistent/path/config.yaml")) == {}

    def test_loads_yaml_file(self, tmp_path):
        config_file = tmp_path / "test.yaml"
        config_file.write_text("key: value\nnested:\n  a: 1\n")
        assert load_yaml(config_file) == {"key": "value", "nested": {"a": 1}}

    def test_returns_empty_dict_for_empty_file(self, tmp_path):
        config_file = tmp_path / "empty.yaml"
        config_file.write_text("")
        assert load_yaml(config_file) == {}


class TestExpandEnvVars:
    def test_expands_set_variable(self, monkeypatch):
        monkeypatch.setenv("MEMC_IDFA", "10.0.0.1:11211")
        assert _expand_env_vars({"idfa": "${MEMC_IDFA}"}) == {"idfa": "10.0.0.1:11211"}

    def test_uses_default_when_unset(self):
        assert _expand_env_vars(["${MEMC_GAID:-127.0.0.1:33014}"]) == ["127.0.0.1:33014"]

    def test_leaves_unset_without_default(self):
        assert _expand_env_vars("${MEMC_ADID}") == "${MEMC_ADID}"

    def test_non_strings_untouched(self):
        assert _expand_env_vars({"workers": 30}) == {"workers": 30}


class TestDeepMerge:
    def test_nested_merge(self):
        base = {"cache": {"timeout_seconds": 10, "pool_size": 4}, "workers": 30}
        overlay = {"cache": {"timeout_seconds": 2}}
        assert _deep_merge(base, overlay) == {
            "cache": {"timeout_seconds": 2, "pool_size": 4},
            "workers": 30,
        }

    def test_does_not_mutate_base(self):
        base = {"a": {"b": 1}}
        _deep_merge(base, {"a": {"b": 2}})
        assert base == {"a": {"b": 1}}


# =========================================================================
# CacheEndpoint
# =========================================================================


class TestCacheEndpoint:
    def test_parse_host_port(self):
        endpoint = CacheEndpoint.parse("127.0.0.1:33013")
        assert endpoint == CacheEndpoint("127.0.0.1", 33013)
        assert str(endpoint) == "127.0.0.1:33013"

    def test_parse_hostname(self):
        assert CacheEndpoint.parse("memc-idfa:11211").host == "memc-idfa"

    def test_parse_ipv6(self):
        endpoint = CacheEndpoint.parse("[::1]:11211")
        assert endpoint.host == "::1"
        assert str(endpoint) == "[::1]:11211"

    @pytest.mark.parametrize("address", ["localhost", ":11211", "host:", "host:port", "host:0", "host:70000", ""])
    def test_rejects_malformed(self, address):
        with pytest.raises(ConfigurationError):
            CacheEndpoint.parse(address)


# =========================================================================
# LoaderConfig
# =========================================================================


class TestLoaderConfig:
    def test_defaults(self):
        config = LoaderConfig()
        assert config.pattern == "/data/appsinstalled/*.tsv.gz"
        assert config.workers == 30
        assert config.queue_size == 10000
        assert config.timeout_seconds == 10.0
        assert config.retry_attempts == 3
        assert config.dry_run is False
        assert config.cache_addresses == DEFAULT_CACHE_ADDRESSES

    def test_from_dict_nested_sections(self):
        config = LoaderConfig.from_dict(
            {
                "pattern": "/tmp/*.gz",
                "dry_run": "true",
                "workers": "8",
                "cache": {"timeout_seconds": 2, "addresses": {"idfa": "10.0.0.1:1"}},
                "retry": {"max_attempts": 5},
            }
        )
        assert config.pattern == "/tmp/*.gz"
        assert config.dry_run is True
        assert config.workers == 8
        assert config.timeout_seconds == 2.0
        assert config.cache_addresses["idfa"] == "10.0.0.1:1"
        assert config.cache_addresses["gaid"] == "127.0.0.1:33014"
        assert config.retry_attempts == 5

    def test_endpoints_keyed_by_device_type(self):
        endpoints = LoaderConfig().endpoints()
        assert set(endpoints) == set(DeviceType)
        assert endpoints[DeviceType.DVID] == CacheEndpoint("127.0.0.1", 33016)

    def test_retry_config(self):
        retry = LoaderConfig(retry_attempts=4, retry_base_delay=0.5).retry_config()
        assert retry.max_attempts == 4
        assert retry.base_delay == 0.5

    def test_validate_accepts_defaults(self):
        LoaderConfig().validate()

    @pytest.mark.parametrize(
        "field_name, value",
        [
            ("workers", 0),
            ("queue_size", 0),
            ("retry_attempts", 0),
            ("pool_size", 0),
            ("timeout_seconds", 0),
            ("stats_interval_seconds", -1),
            ("pattern", ""),
            ("processed_marker", ""),
        ],
    )
    def test_validate_rejects_invalid_values(self, field_name, value):
        config = LoaderConfig()
        setattr(config, field_name, value)
        with pytest.raises(ConfigurationError):
            config.validate()

    def test_validate_rejects_unknown_partition(self):
        config = LoaderConfig()
        config.cache_addresses["imei"] = "127.0.0.1:1"
        with pytest.raises(ConfigurationError, match="Unknown device types"):
            config.validate()

    def test_validate_rejects_missing_partition(self):
        config = LoaderConfig()
        del config.cache_addresses["adid"]
        with pytest.raises(ConfigurationError, match="No cache address"):
            config.validate()

    def test_validate_rejects_bad_address(self):
        config = LoaderConfig()
        config.cache_addresses["idfa"] = "not-an-address"
        with pytest.raises(ConfigurationError):
            config.validate()


# =========================================================================
# load_config
# =========================================================================


class TestLoadConfig:
    def test_bundled_defaults(self):
        config = load_config()
        assert config.pattern == "/data/appsinstalled/*.tsv.gz"
        assert config.cache_addresses == DEFAULT_CACHE_ADDRESSES

    def test_env_expansion_in_bundled_file(self, monkeypatch):
        monkeypatch.setenv("MEMC_IDFA", "10.1.1.1:11211")
        assert load_config().cache_addresses["idfa"] == "10.1.1.1:11211"

    def test_explicit_file(self, tmp_path):
        config_file = tmp_path / "loader.yaml"
        config_file.write_text("memc_load:\n  workers: 4\n  cache:\n    pool_size: 2\n")
        config = load_config(config_file)
        assert config.workers == 4
        assert config.pool_size == 2

    def test_env_var_names_file(self, tmp_path, monkeypatch):
        config_file = tmp_path / "loader.yaml"
        config_file.write_text("memc_load:\n  queue_size: 50\n")
        monkeypatch.setenv(CONFIG_PATH_ENV, str(config_file))
        assert load_config().queue_size == 50

    def test_missing_explicit_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_config(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path):
        config_file = tmp_path / "bad.yaml"
        config_file.write_text("memc_load: [unclosed\n")
        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_config(config_file)

    def test_overrides_win(self, tmp_path):
        config_file = tmp_path / "loader.yaml"
        config_file.write_text("memc_load:\n  workers: 4\n  cache:\n    timeout_seconds: 3\n")
        config = load_config(
            config_file,
            overrides={"workers": 12, "cache": {"addresses": {"dvid": "10.0.0.9:1"}}},
        )
        assert config.workers == 12
        assert config.timeout_seconds == 3.0
        assert config.cache_addresses["dvid"] == "10.0.0.9:1"

    def test_invalid_value_type(self, tmp_path):
        config_file = tmp_path / "loader.yaml"
        config_file.write_text("memc_load:\n  workers: many\n")
        with pytest.raises(ConfigurationError):
            load_config(config_file)

    def test_validation_runs(self):
        with pytest.raises(ConfigurationError):
            load_config(overrides={"workers": 0})
