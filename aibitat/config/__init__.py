"""Configuration management for AIbitat.

Settings are layered: the packaged ``defaults.yaml``, then the user config file
(``~/.aibitat/config.yaml``, ``$AIBITAT_CONFIG`` or an explicit path), then
``AIBITAT_*`` environment variables read by pydantic-settings.
"""

import os
import re
from pathlib import Path
from typing import Any, Optional

import yaml

from .scenario import ScenarioConfig, load_scenario
from .settings import Settings

_settings: Optional[Settings] = None

CONFIG_DIR = Path.home() / ".aibitat"
CONFIG_FILE = CONFIG_DIR / "config.yaml"
DEFAULTS_FILE = Path(__file__).parent / "defaults.yaml"
CONFIG_ENV_VAR = "AIBITAT_CONFIG"

# Top-level YAML sections that map one to one onto Settings fields
SECTIONS = ("provider", "selector", "engine", "retry", "history", "terminal", "browsing")
API_KEY_FIELDS = {
    "openai": "openai_api_key",
    "anthropic": "anthropic_api_key",
    "serper": "serper_api_key",
}

# ${NAME} or ${NAME:-fallback}
_ENV_REF = re.compile(r"\$\{(?P<name>[A-Za-z_][A-Za-z0-9_]*)(?::-(?P<default>[^}]*))?\}")


def _expand_env_vars(value: Any) -> Any:
    """Recursively expand ``${VAR}`` and ``${VAR:-default}`` references.

    A string that expands to nothing becomes None so the field keeps its default.
    """
    if isinstance(value, dict):
        return {key: _expand_env_vars(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_expand_env_vars(item) for item in value]
    if not isinstance(value, str):
        return value

    expanded = _ENV_REF.sub(
        lambda match: os.environ.get(match.group("name")) or (match.group("default") or ""),
        value,
    )
    return expanded or None


def _deep_merge(base: dict, override: dict) -> dict:
    """Merge ``override`` into a copy of ``base``, descending into nested dicts."""
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = _deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def _read_yaml(path: Path) -> dict:
    """Read a YAML mapping; a missing or empty file reads as ``{}``."""
    if not path.is_file():
        return {}
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at the top level")
    return data


def _settings_kwargs(config: dict) -> dict:
    """Map the YAML layout onto keyword arguments for Settings.

    Unknown sections are ignored and keys left empty by env expansion are
    dropped so the model defaults apply.
    """
    kwargs: dict[str, Any] = {}

    api_keys = config.get("api_keys") or {}
    for provider, field_name in API_KEY_FIELDS.items():
        if api_keys.get(provider):
            kwargs[field_name] = api_keys[provider]

    for section in SECTIONS:
        values = config.get(section)
        if isinstance(values, dict):
            kwargs[section] = {k: v for k, v in values.items() if v is not None}

    return kwargs


def user_config_path(config_path: Optional[Path] = None) -> Path:
    """Resolve which user config file to read.

    Args:
        config_path: Explicit path, e.g. from ``--config``

    Returns:
        The explicit path, else ``$AIBITAT_CONFIG``, else ``~/.aibitat/config.yaml``
    """
    if config_path is not None:
        return config_path
    from_env = os.environ.get(CONFIG_ENV_VAR)
    if from_env:
        return Path(from_env).expanduser()
    return CONFIG_FILE


def create_default_config() -> Path:
    """Write the packaged defaults to the user config file unless it exists.

    Returns:
        Path of the user config file
    """
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    if not CONFIG_FILE.exists():
        CONFIG_FILE.write_text(DEFAULTS_FILE.read_text(encoding="utf-8"), encoding="utf-8")
    return CONFIG_FILE


def load_settings(config_path: Optional[Path] = None, force_reload: bool = False) -> Settings:
    """Load settings with priority: env vars > user config > defaults.

    Args:
        config_path: Optional path to a custom config file
        force_reload: Force reload even if settings are cached

    Returns:
        Settings instance
    """
    global _settings

    if _settings is not None and not force_reload:
        return _settings

    merged = _deep_merge(_read_yaml(DEFAULTS_FILE), _read_yaml(user_config_path(config_path)))
    _settings = Settings(**_settings_kwargs(_expand_env_vars(merged)))
    return _settings


def get_settings() -> Settings:
    """Get the current settings instance, loading if necessary."""
    if _settings is None:
        return load_settings()
    return _settings


def reset_settings() -> None:
    """Forget the cached settings."""
    global _settings
    _settings = None


__all__ = [
    "Settings",
    "ScenarioConfig",
    "get_settings",
    "load_settings",
    "load_scenario",
    "reset_settings",
    "user_config_path",
    "create_default_config",
    "CONFIG_DIR",
    "CONFIG_FILE",
    "CONFIG_ENV_VAR",
]
