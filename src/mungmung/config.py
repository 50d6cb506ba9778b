"""Configuration loading and validation.

Configuration is built once per process: defaults, then an optional YAML
file, then environment variables. Components receive the resulting
``MungConfig`` instead of reading the environment themselves.
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError

from .exceptions import ConfigError

DEFAULT_CONFIG_PATH = "~/.config/mung/config.yaml"

_TRUTHY = frozenset({"1", "true", "yes", "on"})


class StorageConfig(BaseModel):
    state_dir: str = "~/.local/share/mung"  # MUNG_DIR; records live in <state_dir>/alerts


class ActionsConfig(BaseModel):
    shell_override: str = ""  # MUNG_ON_CLICK_SHELL
    login_shell: str = ""  # SHELL
    working_directory: str = ""  # MUNG_ON_CLICK_CWD
    fallback_shell: str = "/bin/sh"


class DebugConfig(BaseModel):
    actions: bool = False  # MUNG_DEBUG_ACTIONS: action/trigger launch failures
    lifecycle: bool = False  # MUNG_DEBUG_LIFECYCLE: add/done/clear lifecycle


class NotificationsConfig(BaseModel):
    desktop_enabled: bool = True
    app_name: str = "MungMung"
    # Command run when a notification is clicked; "{id}" is replaced with the
    # alert id. Empty = "<python> -m mungmung --state-dir <dir> done <id> --run".
    click_command: str = ""


class SignalConfig(BaseModel):
    enabled: bool = True
    command: str = "sketchybar"
    event: str = "mung_alert_change"


class MungConfig(BaseModel):
    storage: StorageConfig = Field(default_factory=StorageConfig)
    actions: ActionsConfig = Field(default_factory=ActionsConfig)
    debug: DebugConfig = Field(default_factory=DebugConfig)
    notifications: NotificationsConfig = Field(default_factory=NotificationsConfig)
    signal: SignalConfig = Field(default_factory=SignalConfig)

    @property
    def state_dir(self) -> Path:
        return Path(self.storage.state_dir).expanduser()


def is_truthy(value: str | None) -> bool:
    """``1``/``true``/``yes``/``on`` (case-insensitive, trimmed)."""
    return (value or "").strip().lower() in _TRUTHY


def _interpolate_env_vars(text: str, environ: Mapping[str, str]) -> str:
    """Replace ${VAR_NAME} with environment variable values."""

    def replacer(match: re.Match) -> str:
        return environ.get(match.group(1), "")

    return re.sub(r"\$\{(\w+)\}", replacer, text)


def _env_overrides(environ: Mapping[str, str]) -> dict[str, dict[str, Any]]:
    """Map the MUNG_* (and SHELL) environment onto config sections.

    Blank variables are treated as unset.
    """

    def get(name: str) -> str:
        return (environ.get(name) or "").strip()

    overrides: dict[str, dict[str, Any]] = {}

    def put(section: str, key: str, value: Any) -> None:
        overrides.setdefault(section, {})[key] = value

    if get("MUNG_DIR"):
        put("storage", "state_dir", get("MUNG_DIR"))
    if get("MUNG_ON_CLICK_SHELL"):
        put("actions", "shell_override", get("MUNG_ON_CLICK_SHELL"))
    if get("SHELL"):
        put("actions", "login_shell", get("SHELL"))
    if get("MUNG_ON_CLICK_CWD"):
        put("actions", "working_directory", get("MUNG_ON_CLICK_CWD"))
    if get("MUNG_DEBUG_ACTIONS"):
        put("debug", "actions", is_truthy(get("MUNG_DEBUG_ACTIONS")))
    if get("MUNG_DEBUG_LIFECYCLE"):
        put("debug", "lifecycle", is_truthy(get("MUNG_DEBUG_LIFECYCLE")))
    return overrides


def _read_config_file(path: Path, environ: Mapping[str, str]) -> dict[str, Any]:
    try:
        raw_text = path.read_text()
        data = yaml.safe_load(_interpolate_env_vars(raw_text, environ))
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"cannot read config file {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"config file {path} must contain a mapping")
    return data


def load_config(
    path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> MungConfig:
    """Load config from defaults, YAML file, and environment variables.

    Priority: environment > config file (with ${ENV} interpolation) > defaults.
    The file is ``path``, else ``$MUNG_CONFIG``, else
    ``~/.config/mung/config.yaml``; only an explicitly named file must exist.
    """
    env = os.environ if environ is None else environ
    named = path or (env.get("MUNG_CONFIG") or "").strip() or None
    config_path = Path(named or DEFAULT_CONFIG_PATH).expanduser()

    data: dict[str, Any] = {}
    if config_path.exists():
        data = _read_config_file(config_path, env)
    elif named:
        raise ConfigError(f"config file not found: {config_path}")

    for section, values in _env_overrides(env).items():
        current = data.get(section)
        merged = dict(current) if isinstance(current, dict) else {}
        merged.update(values)
        data[section] = merged

    try:
        return MungConfig(**data)
    except ValidationError as e:
        raise ConfigError(f"invalid configuration: {e}") from e

