"""
Unit tests for config module.
"""
import json

import pytest

from topic_coverage.infrastructure.config import (
    EnvironmentConfigProvider, JSONConfigProvider, LayeredConfigProvider, coerce_value,
    get_default_configuration, get_path, load_configuration, set_path
)


class TestCoerceValue:
    """Test coerce_value function."""

    @pytest.mark.parametrize("raw,expected", [
        ("true", True), ("False", False), ("42", 42), ("0.75", 0.75), ("redis", "redis"),
    ])
    def test_coerce(self, raw, expected):
        assert coerce_value(raw) == expected


class TestPaths:
    """Test dotted path helpers."""

    def test_set_and_get(self):
        config = {}
        set_path(config, "analysis.similarity_threshold", 0.8)
        assert config == {"analysis": {"similarity_threshold": 0.8}}
        assert get_path(config, "analysis.similarity_threshold") == 0.8
        assert get_path(config, "analysis.missing", "default") == "default"
        assert get_path(config, "analysis.similarity_threshold.deeper") is None


class TestEnvironmentConfigProvider:
    """Test EnvironmentConfigProvider class."""

    def test_get_coerces(self, monkeypatch):
        monkeypatch.setenv("TC_TEST_FLAG", "true")
        monkeypatch.setenv("TC_TEST_COUNT", "7")
        provider = EnvironmentConfigProvider()
        assert provider.get("TC_TEST_FLAG") is True
        assert provider.get("TC_TEST_COUNT") == 7
        assert provider.get("TC_TEST_MISSING", "fallback") == "fallback"

    def test_set(self, monkeypatch):
        monkeypatch.setenv("TC_TEST_SET", "0")
        provider = EnvironmentConfigProvider()
        provider.set("TC_TEST_SET", 3)
        assert provider.get("TC_TEST_SET") == 3
        assert provider.get("TC_TEST_SET") == 3


class TestJSONConfigProvider:
    """Test JSONConfigProvider class."""

    def test_dotted_access(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"analysis": {"similarity_threshold": 0.8}}))
        provider = JSONConfigProvider(str(path))

        assert provider.get("analysis.similarity_threshold") == 0.8
        assert provider.get("analysis.other", 1) == 1
        assert provider.keys() == ["analysis.similarity_threshold"]

    def test_set_persists(self, tmp_path):
        path = tmp_path / "config.json"
        provider = JSONConfigProvider(str(path))
        provider.set("cache.backend", "redis")

        assert json.loads(path.read_text()) == {"cache": {"backend": "redis"}}
        assert JSONConfigProvider(str(path)).get("cache.backend") == "redis"

    def test_missing_and_invalid_files(self, tmp_path):
        assert JSONConfigProvider(str(tmp_path / "absent.json")).keys() == []

        broken = tmp_path / "broken.json"
        broken.write_text("{not json")
        assert JSONConfigProvider(str(broken)).get("anything") is None


class TestLayeredConfigProvider:
    """Test LayeredConfigProvider class."""

    def test_first_provider_wins(self, tmp_path):
        first = tmp_path / "first.json"
        second = tmp_path / "second.json"
        first.write_text(json.dumps({"a": 1}))
        second.write_text(json.dumps({"a": 2, "b": 3}))
        layered = LayeredConfigProvider([JSONConfigProvider(str(first)), JSONConfigProvider(str(second))])

        assert layered.get("a") == 1
        assert layered.get("b") == 3
        assert layered.get("c", "none") == "none"


class TestLoadConfiguration:
    """Test load_configuration function."""

    def test_defaults(self):
        config = load_configuration(environ={})
        assert config == get_default_configuration()
        assert config['analysis']['similarity_threshold'] == 0.7
        assert config['cache']['backend'] == 'memory'

    def test_provider_overrides_known_keys(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({
            "analysis": {"similarity_threshold": 0.85},
            "unknown": {"key": 1},
        }))
        config = load_configuration(JSONConfigProvider(str(path)), environ={})

        assert config['analysis']['similarity_threshold'] == 0.85
        assert config['analysis']['gap_threshold'] == 10
        assert 'unknown' not in config

    def test_environment_overrides(self):
        config = load_configuration(environ={
            'SIMILARITY_THRESHOLD': '0.6',
            'CACHE_BACKEND': 'redis',
            'REDIS_URL': 'redis://cache:6379/0',
        })
        assert config['analysis']['similarity_threshold'] == 0.6
        assert config['cache']['backend'] == 'redis'
        assert config['cache']['redis_url'] == 'redis://cache:6379/0'

    def test_defaults_not_mutated(self):
        load_configuration(environ={'EMBEDDING_MODEL': 'other-model'})
        assert get_default_configuration()['embedding']['model'] == 'text-embedding-3-small'
