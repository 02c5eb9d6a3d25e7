"""Tests for spacegate config loading, saving, env overlay and dot-notation access."""

from __future__ import annotations

import pytest
from pydantic import ValidationError as PydanticValidationError

from spacegate.config import (
    DEFAULT_MODEL,
    Config,
    ServeConfig,
    get_config_value,
    load_config,
    save_config,
    set_config_value,
)


def test_load_default_config(tmp_path):
    """Non-existent config path returns Config() defaults."""
    config = load_config(tmp_path / "nonexistent.yaml")
    assert config == Config()
    assert config.upstream.default_model == DEFAULT_MODEL
    assert config.keys.prefix == "grag"


def test_expand_env_vars(tmp_path, monkeypatch):
    """${VAR} in config values is expanded from environment."""
    monkeypatch.setenv("TEST_PUBLIC_URL", "https://rag.example.com")
    config_file = tmp_path / "config.yaml"
    config_file.write_text("serve:\n  public_url: ${TEST_PUBLIC_URL}\n")
    config = load_config(config_file)
    assert config.serve.public_url == "https://rag.example.com"


def test_env_overlay_casts_to_field_type(tmp_path, monkeypatch):
    monkeypatch.setenv("SPACEGATE_SERVE_PORT", "8088")
    monkeypatch.setenv("SPACEGATE_DEFAULT_MODEL", "gemini-2.5-pro")
    config = load_config(tmp_path / "nonexistent.yaml")
    assert config.serve.port == 8088
    assert config.upstream.default_model == "gemini-2.5-pro"


def test_env_overlay_wins_over_yaml(tmp_path, monkeypatch):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("logging:\n  level: DEBUG\n")
    monkeypatch.setenv("SPACEGATE_LOG_LEVEL", "ERROR")
    assert load_config(config_file).logging.level == "ERROR"


def test_save_and_load_config(tmp_path):
    config = Config()
    config.upstream.default_model = "gemini-2.5-pro"
    config.serve.port = 9999

    config_file = tmp_path / "config.yaml"
    save_config(config, config_file)
    loaded = load_config(config_file)

    assert loaded.upstream.default_model == "gemini-2.5-pro"
    assert loaded.serve.port == 9999


def test_get_set_config_value(tmp_path, monkeypatch):
    config_file = tmp_path / "config.yaml"
    monkeypatch.setattr("spacegate.config.get_config_path", lambda: config_file)

    updated = set_config_value("keys.prefix", "space")
    assert get_config_value(updated, "keys.prefix") == "space"
    assert get_config_value(updated, "serve.port") == 3000  # default unchanged
    assert get_config_value(updated, "serve.nope") is None


def test_endpoint_base_defaults_to_localhost_port():
    assert ServeConfig(port=4000).endpoint_base() == "http://localhost:4000"
    assert ServeConfig(public_url="https://gw.example.com/").endpoint_base() == "https://gw.example.com"


def test_storage_path_expands_home(monkeypatch, tmp_path):
    monkeypatch.setenv("HOME", str(tmp_path))
    path = Config().storage.path_for("api-keys.json")
    assert path == tmp_path / ".spacegate" / "data" / "api-keys.json"


@pytest.mark.parametrize("prefix", ["", "sk.live", "acmecorpspacekeys"])
def test_invalid_key_prefix_fails_at_load(tmp_path, monkeypatch, prefix):
    monkeypatch.setenv("SPACEGATE_KEY_PREFIX", prefix)
    with pytest.raises(PydanticValidationError):
        load_config(tmp_path / "nonexistent.yaml")


def test_env_overlay_rejects_non_numeric_port(tmp_path, monkeypatch):
    monkeypatch.setenv("SPACEGATE_SERVE_PORT", "eighty")
    with pytest.raises(PydanticValidationError):
        load_config(tmp_path / "nonexistent.yaml")


def test_set_config_value_rejects_invalid_prefix_without_writing(tmp_path, monkeypatch):
    config_file = tmp_path / "config.yaml"
    monkeypatch.setattr("spacegate.config.get_config_path", lambda: config_file)
    set_config_value("keys.prefix", "space")

    with pytest.raises(PydanticValidationError):
        set_config_value("keys.prefix", "sk.live")
    assert load_config(config_file).keys.prefix == "space"
