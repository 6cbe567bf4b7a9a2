"""Load optional client configuration from `.taskboard/config.yaml`.

Example::

    api_url: https://tasks.example.com/api
    timeout: 10
    autosave:
      enabled: true
      debounce_seconds: 2
    messages:
      update: "Could not save the task"

``TASKBOARD_API_URL`` and ``TASKBOARD_TOKEN`` override the file.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

from .constants import (
    CONFIG_DIR_NAME,
    CONFIG_FILE,
    DEFAULT_API_URL,
    DEFAULT_AUTOSAVE_ENABLED,
    DEFAULT_DEBOUNCE_SECONDS,
    DEFAULT_MESSAGES,
    DEFAULT_TIMEOUT_SECONDS,
    ENV_API_URL,
    ENV_TOKEN,
)


@dataclass
class ClientConfig:
    api_url: str = DEFAULT_API_URL
    token: Optional[str] = None
    timeout: float = DEFAULT_TIMEOUT_SECONDS
    autosave_enabled: bool = DEFAULT_AUTOSAVE_ENABLED
    debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS
    messages: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_MESSAGES))

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], env: Optional[Mapping[str, str]] = None) -> "ClientConfig":
        """Build a config from a parsed file, ignoring malformed values."""
        env = os.environ if env is None else env
        cfg = cls()
        api_url = data.get("api_url")
        if isinstance(api_url, str) and api_url.strip():
            cfg.api_url = api_url.strip()
        token = data.get("token")
        if isinstance(token, str) and token:
            cfg.token = token
        cfg.timeout = _positive_float(data.get("timeout"), cfg.timeout)

        autosave = _get_nested(data, "autosave")
        if isinstance(autosave, dict):
            enabled = autosave.get("enabled")
            if isinstance(enabled, bool):
                cfg.autosave_enabled = enabled
            cfg.debounce_seconds = _positive_float(autosave.get("debounce_seconds"), cfg.debounce_seconds)

        messages = _get_nested(data, "messages")
        if isinstance(messages, dict):
            for key, value in messages.items():
                if isinstance(value, str) and value.strip():
                    cfg.messages[str(key)] = value

        if env.get(ENV_API_URL):
            cfg.api_url = env[ENV_API_URL]
        if env.get(ENV_TOKEN):
            cfg.token = env[ENV_TOKEN]
        return cfg


def _positive_float(raw: Any, default: float) -> float:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        return default
    return float(raw) if raw > 0 else default


def _get_nested(config: Mapping[str, Any], *keys: str) -> Any:
    cur: Any = config
    for key in keys:
        if not isinstance(cur, dict):
            return None
        cur = cur.get(key)
    return cur


def _load_data_with_error(path: Path) -> tuple[dict[str, Any], str | None]:
    """Load JSON/YAML and return ``(data, error_message)``."""
    if not path.exists():
        return {}, None
    try:
        with open(path, "r", encoding="utf-8") as handle:
            if path.suffix in {".yaml", ".yml"}:
                data = yaml.safe_load(handle)
            else:
                data = json.load(handle)
    except OSError as exc:
        return {}, f"{path.name}: {exc.__class__.__name__}: {exc}"
    except json.JSONDecodeError as exc:
        return {}, f"{path.name}: JSONDecodeError: {exc}"
    except yaml.YAMLError as exc:
        return {}, f"{path.name}: YAMLError: {exc}"
    if data is None:
        return {}, None
    if not isinstance(data, dict):
        return {}, f"{path.name}: expected object, got {type(data).__name__}"
    return data, None


def config_path(project_dir: Path) -> Path:
    return project_dir.resolve() / CONFIG_DIR_NAME / CONFIG_FILE


def load_client_config(
    project_dir: Optional[Path] = None,
    *,
    path: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
) -> tuple[ClientConfig, str | None]:
    """Load the optional config file.

    Args:
        project_dir: Directory holding ``.taskboard/config.yaml`` (default: cwd).
        path: Explicit config file, overriding ``project_dir``.
        env: Environment used for overrides (default: ``os.environ``).

    Returns:
        A tuple of ``(config, error_message)``. A missing file yields defaults
        and no error; an unreadable file yields defaults and the error.
    """
    path = path or config_path(project_dir or Path.cwd())
    data, err = _load_data_with_error(path)
    return ClientConfig.from_mapping(data, env=env), err
