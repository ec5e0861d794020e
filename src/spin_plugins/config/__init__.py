"""Configuration for the plugin manager."""

from .loader import ConfigError, load_settings
from .models import PluginsSettings

__all__ = ["ConfigError", "PluginsSettings", "load_settings"]
