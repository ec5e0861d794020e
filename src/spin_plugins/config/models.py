"""Pydantic models for plugin manager configuration."""

from pathlib import Path

from pydantic import BaseModel, Field

from spin_plugins.utils.versioning import get_spin_version

DEFAULT_REPO_URL = "https://github.com/fermyon/spin-plugins"


def default_plugins_dir() -> Path:
    return Path.home() / ".local" / "share" / "spin" / "plugins"


class PluginsSettings(BaseModel):
    """Settings for locating plugins and the plugins registry.

    Attributes:
        plugins_dir: Root of the local plugin store. Installed binaries live
            in ``<plugins_dir>/<name>/``, installed manifests in
            ``<plugins_dir>/manifests/`` and the registry mirror in
            ``<plugins_dir>/.spin-plugins/``.
        repo_url: Git URL of the plugins registry repository.
        spin_version: Host Spin version used for compatibility checks.
        timeout: Timeout in seconds for manifest and package downloads.
    """

    plugins_dir: Path = Field(default_factory=default_plugins_dir)
    repo_url: str = DEFAULT_REPO_URL
    spin_version: str = Field(default_factory=get_spin_version)
    timeout: float = Field(default=60.0, ge=1.0)
