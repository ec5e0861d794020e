"""Shared fixtures for spin-plugins tests."""

import hashlib
import json
from pathlib import Path

import pytest

from spin_plugins.plugins.manifest import PluginManifest

SPIN_VERSION = "2.2.0"
DUMMY_SHA = "a" * 64


def manifest_data(
    name: str = "demo",
    version: str = "1.2.0",
    spin_compatibility: str = ">=2.0",
    packages: list | None = None,
    **extra,
) -> dict:
    """Raw manifest document as found in manifest JSON files."""
    if packages is None:
        packages = [
            {"os": "linux", "arch": "amd64", "url": f"https://example.com/{name}.tar.gz", "sha256": DUMMY_SHA},
        ]
    data = {
        "name": name,
        "version": version,
        "license": "Apache-2.0",
        "spinCompatibility": spin_compatibility,
        "packages": packages,
    }
    data.update(extra)
    return data


def make_manifest(**kwargs) -> PluginManifest:
    return PluginManifest.model_validate(manifest_data(**kwargs))


def write_registry_manifest(plugins_dir: Path, data: dict, filename: str | None = None) -> Path:
    """Place a manifest in the registry mirror the way the registry repo lays them out."""
    directory = plugins_dir / ".spin-plugins" / "manifests" / data["name"]
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / (filename or f"{data['name']}@{data['version']}.json")
    path.write_text(json.dumps(data))
    return path


def write_installed_manifest(plugins_dir: Path, data: dict) -> Path:
    directory = plugins_dir / "manifests"
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{data['name']}.json"
    path.write_text(json.dumps(data))
    return path


def sha256_of(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


@pytest.fixture(autouse=True)
def linux_amd64(monkeypatch):
    """Pretend every test runs on linux/amd64."""
    monkeypatch.setattr("spin_plugins.plugins.compatibility.current_os", lambda: "linux")
    monkeypatch.setattr("spin_plugins.plugins.compatibility.current_arch", lambda: "amd64")
    monkeypatch.setattr("spin_plugins.plugins.installer.binary_name", lambda name: name)


@pytest.fixture
def plugins_dir(tmp_path, monkeypatch):
    """Empty plugin store used by PluginManager.try_default()."""
    directory = tmp_path / "plugins"
    monkeypatch.setenv("SPIN_PLUGINS_DIR", str(directory))
    monkeypatch.setenv("SPIN_VERSION", SPIN_VERSION)
    monkeypatch.setenv("SPIN_PLUGINS_CONFIG", "")
    monkeypatch.setattr(
        "spin_plugins.config.loader.default_config_path",
        lambda: tmp_path / "no-config.yaml",
    )
    return directory
