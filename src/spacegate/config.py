"""Configuration system for spacegate. YAML-based with env var expansion and env var overlay."""

from __future__ import annotations

import copy
import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field


DEFAULT_MODEL = "gemini-2.5-flash"
DEFAULT_SYSTEM_INSTRUCTION = (
    "DO NOT ASK THE USER TO READ THE MANUAL. Provide a direct answer based on "
    "the provided context. Pinpoint the relevant sections."
)


# --- Config Models ---


class ServeConfig(BaseModel):
    port: int = 3000
    host: str = "127.0.0.1"
    public_url: str = ""  # base URL advertised in generate-key responses; empty = http://localhost:{port}
    cors_origin_regex: str = r"https?://(localhost|127\.0\.0\.1)(:\d+)?"

    def endpoint_base(self) -> str:
        """Return the externally visible base URL without trailing slash."""
        if self.public_url:
            return self.public_url.rstrip("/")
        return f"http://localhost:{self.port}"


class StorageConfig(BaseModel):
    data_dir: str = "~/.spacegate/data"
    api_keys_file: str = "api-keys.json"
    space_configs_file: str = "space-configs.json"
    users_file: str = "users.json"

    def path_for(self, filename: str) -> Path:
        return _expand_path(self.data_dir) / filename


class UpstreamConfig(BaseModel):
    """Defaults applied to spaces that have no stored model / system instruction."""
    default_model: str = DEFAULT_MODEL
    default_system_instruction: str = DEFAULT_SYSTEM_INSTRUCTION
    client_cache_size: int = 64  # per-credential clients kept alive (LRU)


# Issued tokens look like <prefix>-<random>
KEY_PREFIX_PATTERN = r"^[A-Za-z0-9_]{1,16}$"


class KeysConfig(BaseModel):
    prefix: str = Field(default="grag", pattern=KEY_PREFIX_PATTERN)


class LoggingConfig(BaseModel):
    """Logging configuration."""
    format: str = "text"   # "text" or "json"
    level: str = "INFO"


class Config(BaseModel):
    serve: ServeConfig = Field(default_factory=ServeConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    upstream: UpstreamConfig = Field(default_factory=UpstreamConfig)
    keys: KeysConfig = Field(default_factory=KeysConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# --- Helpers ---

_ENV_PATTERN = re.compile(r"\$\{(\w+)\}")


def get_config_dir() -> Path:
    """Get or create spacegate config directory."""
    config_dir = Path.home() / ".spacegate"
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


def get_config_path() -> Path:
    return get_config_dir() / "config.yaml"


def _expand_env_vars(data: Any) -> Any:
    """Recursively expand ${VAR} in strings."""
    if isinstance(data, str):
        return _ENV_PATTERN.sub(lambda m: os.environ.get(m.group(1), m.group(0)), data)
    if isinstance(data, dict):
        return {k: _expand_env_vars(v) for k, v in data.items()}
    if isinstance(data, list):
        return [_expand_env_vars(v) for v in data]
    return data


def _expand_path(path: str) -> Path:
    """Expand ~ and env vars in path string."""
    return Path(os.path.expanduser(os.path.expandvars(path)))


# Mapping of SPACEGATE_* env var suffixes to (section, field) tuples.
_ENV_VAR_MAP: dict[str, tuple[str, str]] = {
    "SERVE_PORT": ("serve", "port"),
    "SERVE_HOST": ("serve", "host"),
    "SERVE_PUBLIC_URL": ("serve", "public_url"),
    "DATA_DIR": ("storage", "data_dir"),
    "DEFAULT_MODEL": ("upstream", "default_model"),
    "DEFAULT_SYSTEM_INSTRUCTION": ("upstream", "default_system_instruction"),
    "CLIENT_CACHE_SIZE": ("upstream", "client_cache_size"),
    "KEY_PREFIX": ("keys", "prefix"),
    "LOG_FORMAT": ("logging", "format"),
    "LOG_LEVEL": ("logging", "level"),
}


def _apply_env_overlay(data: dict[str, Any]) -> dict[str, Any]:
    """Set SPACEGATE_* environment values over the YAML data.

    Values stay strings; pydantic coerces numeric fields when Config is built.
    """
    for env_suffix, (section, field) in _ENV_VAR_MAP.items():
        raw_val = os.environ.get(f"SPACEGATE_{env_suffix}")
        if raw_val is None:
            continue
        if not isinstance(data.get(section), dict):
            data[section] = {}
        data[section][field] = raw_val
    return data


def load_config(path: Path | None = None) -> Config:
    """Load config from YAML, expanding env vars, then applying SPACEGATE_* env overlay."""
    config_path = path or get_config_path()
    if config_path.exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}
        data = _expand_env_vars(raw)
    else:
        data = {}
    data = _apply_env_overlay(data)
    return Config(**data)


def save_config(config: Config, path: Path | None = None) -> None:
    """Save config to YAML."""
    config_path = path or get_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w") as f:
        yaml.dump(config.model_dump(), f, default_flow_style=False, sort_keys=False)


def get_config_value(config: Config, key_path: str) -> Any:
    """Get nested config value via dot notation (e.g. 'upstream.default_model')."""
    obj: Any = config
    for part in key_path.split("."):
        if isinstance(obj, BaseModel):
            obj = getattr(obj, part, None)
        elif isinstance(obj, dict):
            obj = obj.get(part)
        else:
            return None
    return obj


def set_config_value(key_path: str, value: str) -> Config:
    """Set a dot-notation key in config.yaml and return the reloaded config.

    The edited document is validated first; an invalid value (for example a
    key prefix issued tokens could not carry) leaves the file untouched.
    """
    config_path = get_config_path()
    if config_path.exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}
    else:
        raw = {}

    parts = key_path.split(".")
    obj = raw
    for part in parts[:-1]:
        if part not in obj or not isinstance(obj[part], dict):
            obj[part] = {}
        obj = obj[part]
    obj[parts[-1]] = value
    Config(**_apply_env_overlay(_expand_env_vars(copy.deepcopy(raw))))

    with open(config_path, "w") as f:
        yaml.dump(raw, f, default_flow_style=False, sort_keys=False)

    return load_config(config_path)
