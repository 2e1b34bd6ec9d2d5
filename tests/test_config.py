"""Tests for configuration loading."""

import pytest
import yaml

from singaseong_chat.config import ClientConfig, load_config
from singaseong_chat.errors import ConfigurationError


class TestClientConfig:
    def test_defaults(self):
        cfg = ClientConfig()
        assert cfg.base_url == "https://api.singaseong.uk"
        assert cfg.default_model == "tinyllama"
        assert cfg.history_window == 6
        assert cfg.keyword_limit == 6
        assert cfg.require_credentials is True

    def test_env_credentials(self, monkeypatch):
        monkeypatch.setenv("CF_ACCESS_CLIENT_ID", "id")
        monkeypatch.setenv("CF_ACCESS_CLIENT_SECRET", "secret")
        cfg = ClientConfig().with_env_credentials()
        assert cfg.has_credentials
        assert cfg.client_id == "id"

    def test_explicit_credentials_win(self, monkeypatch):
        monkeypatch.setenv("CF_ACCESS_CLIENT_ID", "env")
        cfg = ClientConfig(client_id="file", client_secret="s").with_env_credentials()
        assert cfg.client_id == "file"

    def test_blank_env_ignored(self, monkeypatch):
        monkeypatch.setenv("CF_ACCESS_CLIENT_ID", "  ")
        monkeypatch.delenv("CF_ACCESS_CLIENT_SECRET", raising=False)
        cfg = ClientConfig().with_env_credentials()
        assert cfg.client_id is None
        assert not cfg.has_credentials


class TestLoadConfig:
    def test_explicit_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "does_not_exist.yaml")

    def test_defaults_when_nothing_found(self, tmp_path, monkeypatch):
        monkeypatch.setattr(
            "singaseong_chat.config._SEARCH_PATHS", [tmp_path / "absent.yaml"],
        )
        cfg, path = load_config()
        assert path is None
        assert cfg == ClientConfig()

    def test_load_yaml(self, tmp_path):
        p = tmp_path / "singaseong_chat.yaml"
        p.write_text(yaml.dump({
            "base_url": "http://localhost:11434",
            "default_model": "llama3.2",
            "history_window": 4,
            "require_credentials": False,
        }))
        cfg, path = load_config(p)
        assert path == p.resolve()
        assert cfg.base_url == "http://localhost:11434"
        assert cfg.default_model == "llama3.2"
        assert cfg.history_window == 4
        assert cfg.max_tokens == 512

    def test_empty_file(self, tmp_path):
        p = tmp_path / "empty.yaml"
        p.write_text("")
        cfg, _ = load_config(p)
        assert cfg == ClientConfig()

    def test_invalid_yaml(self, tmp_path):
        p = tmp_path / "bad.yaml"
        p.write_text("base_url: [unclosed")
        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_config(p)

    def test_non_mapping(self, tmp_path):
        p = tmp_path / "list.yaml"
        p.write_text("- a\n- b\n")
        with pytest.raises(ConfigurationError, match="mapping"):
            load_config(p)

    def test_out_of_range_duration(self, tmp_path):
        p = tmp_path / "slow.yaml"
        p.write_text("max_duration: 900\n")
        with pytest.raises(ConfigurationError, match="Invalid config"):
            load_config(p)
