"""YAML configuration file loading with Pydantic validation."""

import os
from pathlib import Path

import yaml
from pydantic import ValidationError

from .models import PluginsSettings

CONFIG_ENV_VAR = "SPIN_PLUGINS_CONFIG"

# Environment variable -> settings field
ENV_OVERRIDES = {
    "SPIN_PLUGINS_DIR": "plugins_dir",
    "SPIN_PLUGINS_REPO_URL": "repo_url",
    "SPIN_VERSION": "spin_version",
}


class ConfigError(Exception):
    """Raised when configuration loading or validation fails."""


def default_config_path() -> Path:
    return Path.home() / ".config" / "spin-plugins" / "config.yaml"


def load_yaml(path: Path) -> dict:
    """Load a YAML file and return its contents as a dict.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed YAML contents.

    Raises:
        ConfigError: If the file cannot be read or parsed.
    """
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
            if data is None:
                return {}
            if not isinstance(data, dict):
                raise ConfigError(f"Configuration in {path} must be a mapping")
            return data
    except FileNotFoundError:
        raise ConfigError(f"Configuration file not found: {path}") from None
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e


def load_settings(path: Path | None = None) -> PluginsSettings:
    """Load plugin manager settings.

    Values come from the YAML file at ``path`` (or ``$SPIN_PLUGINS_CONFIG``,
    or ``~/.config/spin-plugins/config.yaml``), then environment variables
    override individual fields. A missing default config file is not an
    error; an explicitly requested one is.

    Raises:
        ConfigError: If the file is invalid or validation fails.
    """
    data: dict = {}
    if path is None and os.environ.get(CONFIG_ENV_VAR):
        path = Path(os.environ[CONFIG_ENV_VAR])
    if path is not None:
        data = load_yaml(path)
    elif default_config_path().exists():
        data = load_yaml(default_config_path())

    for env_var, field in ENV_OVERRIDES.items():
        env_val = os.environ.get(env_var, "")
        if env_val:
            data[field] = env_val

    try:
        settings = PluginsSettings(**data)
    except ValidationError as e:
        raise ConfigError(f"Configuration validation failed: {e}") from e
    return settings.model_copy(update={"plugins_dir": settings.plugins_dir.expanduser()})
