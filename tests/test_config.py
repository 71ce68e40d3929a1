# tests/test_config.py
"""Tests for FederationConfig loading."""

import tempfile
from pathlib import Path

import pytest

from fedcore.config import FederationConfig


class TestFederationConfig:
    """Test config construction and YAML loading."""

    def test_defaults(self):
        config = FederationConfig(base_url="https://forum.example")
        assert config.cache_ttl == 300
        assert config.key_size == 2048
        assert config.cache_public_keys is False

    def test_trailing_slash_stripped(self):
        assert FederationConfig(base_url="https://forum.example/").base_url == "https://forum.example"

    @pytest.mark.parametrize("base_url", ["", "forum.example", "ftp://forum.example"])
    def test_invalid_base_url(self, base_url):
        with pytest.raises(ValueError):
            FederationConfig(base_url=base_url)

    def test_invalid_ttl(self):
        with pytest.raises(ValueError):
            FederationConfig(base_url="https://forum.example", cache_ttl=0)

    def test_from_yaml(self):
        config = FederationConfig.from_yaml(
            "base_url: https://forum.example\n"
            "cache_ttl: 60\n"
            "request_timeout: 5\n"
            "unrelated: ignored\n"
        )
        assert config.base_url == "https://forum.example"
        assert config.cache_ttl == 60
        assert config.request_timeout == 5

    def test_from_yaml_requires_mapping(self):
        with pytest.raises(ValueError):
            FederationConfig.from_yaml("- just\n- a list\n")

    def test_from_yaml_missing_base_url(self):
        with pytest.raises(TypeError):
            FederationConfig.from_yaml("cache_ttl: 60\n")

    def test_from_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "fed.yaml"
            path.write_text("base_url: https://forum.example\ncache_public_keys: true\n")

            config = FederationConfig.from_file(path)

        assert config.cache_public_keys is True

    def test_round_trip_dict(self):
        config = FederationConfig(base_url="https://forum.example", key_size=4096)
        assert FederationConfig.from_dict(config.to_dict()) == config
