#!/usr/bin/env python3
"""Tests for YAML configuration loading and validation."""

import pytest
import yaml

from chat_relay.config import DEFAULT_CONFIG_PATH, Configuration
from chat_relay.llm.models import UpstreamConfig, UpstreamShape


def write_config(tmp_path, config) -> str:
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(config))
    return str(path)


def mutate(config_file, section: str, **changes) -> dict:
    config = yaml.safe_load(config_file.read_text())
    config[section].update(changes)
    return config


class TestConfiguration:
    def test_bundled_config_is_complete(self, monkeypatch):
        monkeypatch.setenv("CHAT_RELAY_ACCESS_SECRET", "s")
        config = Configuration()
        assert config.config_path == DEFAULT_CONFIG_PATH

        upstream = UpstreamConfig.from_dict(config.get_upstream_config())
        assert upstream.shape is UpstreamShape.AUTO
        assert config.get_server_config()["port"] == 3001
        assert config.get_repository_config()["clear_on_startup"] is False
        assert config.get_access_config()["header"] == "X-Access-Password"
        assert config.access_secret == "s"

    def test_explicit_path(self, configuration, config_file):
        assert configuration.config_path == str(config_file)
        assert configuration.get_logging_config()["level"] == "DEBUG"

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(ValueError, match="YAML dict"):
            Configuration(str(path))

    def test_missing_upstream_key(self, tmp_path, config_file):
        config = yaml.safe_load(config_file.read_text())
        del config["upstream"]["model"]
        configuration = Configuration(write_config(tmp_path, config))
        with pytest.raises(ValueError, match="upstream.model"):
            configuration.get_upstream_config()

    @pytest.mark.parametrize("changes", [
        {"shape": "anthropic"},
        {"connect_timeout": 0},
        {"read_timeout": -1},
        {"max_duration": 0},
        {"extra_body": ["not", "a", "mapping"]},
    ])
    def test_invalid_upstream_values(self, tmp_path, config_file, changes):
        configuration = Configuration(
            write_config(tmp_path, mutate(config_file, "upstream", **changes))
        )
        with pytest.raises(ValueError):
            configuration.get_upstream_config()

    @pytest.mark.parametrize("port", [0, 70000, "http"])
    def test_invalid_port(self, tmp_path, config_file, port):
        configuration = Configuration(
            write_config(tmp_path, mutate(config_file, "server", port=port))
        )
        with pytest.raises(ValueError):
            configuration.get_server_config()

    def test_getters_do_not_mutate(self, configuration):
        upstream = configuration.get_upstream_config()
        upstream["model"] = "changed"
        upstream["extra_body"]["x"] = 1
        assert configuration.get_upstream_config()["model"] == "llama3"
        assert configuration.get_upstream_config()["extra_body"] == {}

    def test_missing_access_secret(self, configuration, monkeypatch):
        monkeypatch.delenv("CHAT_RELAY_ACCESS_SECRET")
        with pytest.raises(ValueError, match="CHAT_RELAY_ACCESS_SECRET"):
            _ = configuration.access_secret
