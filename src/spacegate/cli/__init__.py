"""spacegate CLI - per-space API keys and an OpenAI-compatible gateway."""

from __future__ import annotations

from pathlib import Path

import typer

from spacegate.config import (
    Config,
    get_config_value,
    load_config,
    save_config,
    set_config_value,
)
from spacegate.logging_setup import setup_logging
from spacegate.utils import load_env_file

# .env is loaded before config so ${VAR} references in config.yaml resolve
load_env_file([
    Path.home() / ".spacegate" / ".env",
    Path(__file__).resolve().parents[3] / ".env",  # project root
])

app = typer.Typer(name="spacegate", help="Per-space API keys and an OpenAI-compatible chat gateway")
keys_app = typer.Typer(help="Issue, list and reconcile per-space API keys")
space_app = typer.Typer(help="Show and edit per-space model / system instruction")
config_app = typer.Typer(help="Manage configuration")

app.add_typer(keys_app, name="keys")
app.add_typer(space_app, name="space")
app.add_typer(config_app, name="config")

_config: Config | None = None


def _get_config() -> Config:
    global _config
    if _config is None:
        _config = load_config()
        setup_logging(_config)
    return _config


def _set_config_value(key: str, value: str) -> Config:
    global _config
    _config = set_config_value(key, value)
    return _config


# Register commands from sub-modules
from spacegate.cli import config_cmd as _config_cmd_mod  # noqa: E402
from spacegate.cli import keys_cmd as _keys_cmd_mod  # noqa: E402
from spacegate.cli import space_cmd as _space_cmd_mod  # noqa: E402
from spacegate.cli import system as _system_mod  # noqa: E402

_system_mod.register(app, _get_config)
_keys_cmd_mod.register(keys_app, _get_config)
_space_cmd_mod.register(space_app, _get_config)
_config_cmd_mod.register(config_app, _get_config, save_config, get_config_value, _set_config_value)

if __name__ == "__main__":
    app()
