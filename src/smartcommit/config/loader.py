"""
Configuration loader for smartcommit.

The tool keeps a JSON configuration file named ``config.json`` in the
``~/.smartcommit/`` directory (the directory can be moved with the
``SMARTCOMMIT_HOME`` environment variable). The same directory holds the
commit history and generation records.

If the configuration file is missing, malformed, or has fields of the
wrong type, a :class:`ConfigError` is raised.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


CONFIG_FILE_NAME = "config.json"
HOME_ENV_VAR = "SMARTCOMMIT_HOME"
API_KEY_ENV_VAR = "OPENROUTER_API_KEY"

PROVIDERS = ("openrouter", "ollama")

DEFAULTS: Dict[str, Any] = {
    "provider": "openrouter",
    "model": "x-ai/grok-4-fast:free",
    "request_timeout": 60,
    "max_tokens": 2000,
    "max_retries": 3,
}


class ConfigError(Exception):
    """Raised when the configuration file is missing or invalid."""

    pass


def get_config_directory() -> Path:
    """Return the directory holding configuration and history data."""
    override = os.environ.get(HOME_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".smartcommit"


def get_config_path() -> Path:
    return get_config_directory() / CONFIG_FILE_NAME


def config_exists() -> bool:
    return get_config_path().exists()


def _validate(data: Dict[str, Any]) -> None:
    if data["provider"] not in PROVIDERS:
        raise ConfigError(
            f"'provider' must be one of: {', '.join(PROVIDERS)}"
        )
    if not isinstance(data["model"], str) or not data["model"]:
        raise ConfigError("'model' must be a non-empty string")
    if data["provider"] == "openrouter":
        if not isinstance(data.get("api_key"), str) or not data.get("api_key"):
            raise ConfigError(
                "Missing required configuration key: api_key "
                f"(or set the {API_KEY_ENV_VAR} environment variable)"
            )
    if "base_url" in data and not isinstance(data["base_url"], str):
        raise ConfigError("'base_url' must be a string")
    if "port" in data and not isinstance(data["port"], int):
        raise ConfigError("'port' must be an integer")
    # bool is an int subclass
    if isinstance(data["request_timeout"], bool) or not isinstance(data["request_timeout"], (int, float)):
        raise ConfigError("'request_timeout' must be a number")
    if isinstance(data["max_tokens"], bool) or not isinstance(data["max_tokens"], int):
        raise ConfigError("'max_tokens' must be an integer")
    max_retries = data["max_retries"]
    if isinstance(max_retries, bool) or not isinstance(max_retries, int) or max_retries < 1:
        raise ConfigError("'max_retries' must be a positive integer")


def load_config() -> Dict[str, Any]:
    """Load the configuration, apply defaults and validate it.

    Returns
    -------
    Dict[str, Any]
        The configuration with keys ``provider``, ``model``, ``api_key``
        (openrouter), ``base_url``, ``port`` (ollama), ``request_timeout``,
        ``max_tokens`` and ``max_retries``.

    Raises
    ------
    ConfigError
        If the file is missing, malformed, or invalid.
    """
    config_path = get_config_path()

    if not config_path.exists():
        logger.error("Configuration file '%s' does not exist", config_path)
        raise ConfigError(
            f"Missing configuration file: {config_path}. "
            f"Run smartc once to set up your API key, or create the file manually."
        )

    try:
        content = config_path.read_text(encoding="utf-8")
        raw = json.loads(content)
    except (OSError, json.JSONDecodeError) as exc:
        logger.error("Failed to read or parse configuration file: %s", exc)
        raise ConfigError(f"Invalid JSON in {config_path.name}: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigError(f"{config_path.name} must contain a JSON object")

    data: Dict[str, Any] = dict(DEFAULTS)
    data.update(raw)
    if not data.get("api_key") and os.environ.get(API_KEY_ENV_VAR):
        data["api_key"] = os.environ[API_KEY_ENV_VAR]

    _validate(data)

    logger.debug("Loaded configuration from: %s", config_path)
    return data


def save_config(data: Dict[str, Any]) -> Path:
    """Write ``data`` as the configuration file and return its path.

    Raises
    ------
    ConfigError
        If the file cannot be written.
    """
    config_path = get_config_path()
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        config_path.write_text(json.dumps(data, indent=2), encoding="utf-8")
    except OSError as exc:
        logger.error("Failed to save configuration: %s", exc)
        raise ConfigError(f"Could not write {config_path}: {exc}") from exc
    logger.debug("Saved configuration to: %s", config_path)
    return config_path


def update_config(updates: Dict[str, Any]) -> Dict[str, Any]:
    """Merge ``updates`` into the stored configuration.

    The stored file is read as-is (no defaults applied), so a partial or
    missing file is fine. ``updatedAt`` is stamped on every update.
    """
    config_path = get_config_path()
    current: Dict[str, Any] = {}
    if config_path.exists():
        try:
            loaded = json.loads(config_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable configuration file: %s", exc)
        else:
            if isinstance(loaded, dict):
                current = loaded
    current.update(updates)
    current["updatedAt"] = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    save_config(current)
    return current


def clean_config() -> bool:
    """Remove the configuration file. Returns whether a file was removed."""
    config_path = get_config_path()
    if not config_path.exists():
        return False
    try:
        config_path.unlink()
    except OSError as exc:
        raise ConfigError(f"Could not remove {config_path}: {exc}") from exc
    logger.info("Configuration removed: %s", config_path)
    return True
