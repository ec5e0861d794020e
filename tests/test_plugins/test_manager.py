"""Tests for the plugin manager."""

import json
import threading
from unittest.mock import patch

import pytest

from conftest import DUMMY_SHA, make_manifest, manifest_data, write_installed_manifest, write_registry_manifest
from spin_plugins.config import PluginsSettings
from spin_plugins.plugins.errors import (
    DowngradeNotAllowedError,
    IncompatibleError,
    LockDeniedError,
    ManifestParseError,
    NotFoundError,
    TransportError,
)
from spin_plugins.plugins.lookup import LocalManifest, PluginLookup, RegistryManifest, RemoteManifest
from spin_plugins.plugins.manager import PluginManager, get_package
from spin_plugins.plugins.planner import Install, NoAction
from spin_plugins.plugins.update_lock import UpdateLock

SPIN_VERSION = "2.2.0"
MAC_ONLY = [{"os": "macos", "arch": "aarch64", "url": "https://example.com/demo.tar.gz", "sha256": DUMMY_SHA}]


@pytest.fixture
def manager(tmp_path):
    settings = PluginsSettings(plugins_dir=tmp_path, spin_version=SPIN_VERSION)
    return PluginManager(settings, update_lock=UpdateLock(threading.Lock()))


class TestGetManifest:
    def test_local(self, manager, tmp_path):
        path = tmp_path / "demo.json"
        path.write_text(json.dumps(manifest_data()))
        assert manager.get_manifest(LocalManifest(path), False, SPIN_VERSION) == make_manifest()

    def test_local_missing(self, manager, tmp_path):
        with pytest.raises(NotFoundError, match="No plugin manifest found"):
            manager.get_manifest(LocalManifest(tmp_path / "missing.json"), False, SPIN_VERSION)

    def test_local_unreadable(self, manager, tmp_path):
        directory = tmp_path / "demo.json"
        directory.mkdir()
        with pytest.raises(TransportError, match="Failed to read plugin manifest") as exc_info:
            manager.get_manifest(LocalManifest(directory), False, SPIN_VERSION)
        assert str(directory) in str(exc_info.value)

    def test_local_malformed(self, manager, tmp_path):
        path = tmp_path / "demo.json"
        path.write_text("name: demo")
        with pytest.raises(ManifestParseError):
            manager.get_manifest(LocalManifest(path), False, SPIN_VERSION)

    def test_remote(self, manager):
        body = json.dumps(manifest_data()).encode()
        with patch("spin_plugins.plugins.manager.fetch_bytes", return_value=body) as mock_fetch:
            manifest = manager.get_manifest(RemoteManifest("https://example.com/demo.json"), False, SPIN_VERSION)
        assert manifest == make_manifest()
        assert mock_fetch.call_args[0][0] == "https://example.com/demo.json"

    def test_remote_not_found(self, manager):
        with patch("spin_plugins.plugins.manager.fetch_bytes", side_effect=NotFoundError("HTTP 404")):
            with pytest.raises(NotFoundError):
                manager.get_manifest(RemoteManifest("https://example.com/demo.json"), False, SPIN_VERSION)

    def test_remote_malformed(self, manager):
        with patch("spin_plugins.plugins.manager.fetch_bytes", return_value=b"<html>"):
            with pytest.raises(ManifestParseError):
                manager.get_manifest(RemoteManifest("https://example.com/demo.json"), False, SPIN_VERSION)

    def test_registry(self, manager, tmp_path):
        write_registry_manifest(tmp_path, manifest_data(version="1.2.0"))
        manifest = manager.get_manifest(RegistryManifest(PluginLookup("demo")), False, SPIN_VERSION)
        assert manifest.version == "1.2.0"


class TestCheckManifest:
    def test_registry_scenario_fresh_install(self, manager, tmp_path):
        write_registry_manifest(tmp_path, manifest_data(version="1.2.0"))
        manifest = manager.get_manifest(RegistryManifest(PluginLookup("demo")), False, SPIN_VERSION)
        assert manager.check_manifest(manifest, SPIN_VERSION, False, False) == Install()

    def test_same_version_installed_is_no_action(self, manager, tmp_path):
        write_installed_manifest(tmp_path, manifest_data(version="1.2.0"))
        action = manager.check_manifest(make_manifest(version="1.2.0"), SPIN_VERSION, False, False)
        assert action == NoAction(name="demo", version="1.2.0")

    def test_install_twice_is_install_then_no_action(self, manager):
        manifest = make_manifest()
        assert manager.check_manifest(manifest, SPIN_VERSION, False, False) == Install()
        manager.store().write_manifest(manifest)
        assert manager.check_manifest(manifest, SPIN_VERSION, False, False) == NoAction("demo", "1.2.0")

    def test_downgrade_blocked(self, manager, tmp_path):
        write_installed_manifest(tmp_path, manifest_data(version="1.1.0"))
        with pytest.raises(DowngradeNotAllowedError):
            manager.check_manifest(make_manifest(version="1.0.0"), SPIN_VERSION, False, False)

    def test_downgrade_allowed(self, manager, tmp_path):
        write_installed_manifest(tmp_path, manifest_data(version="1.1.0"))
        assert manager.check_manifest(make_manifest(version="1.0.0"), SPIN_VERSION, False, True) == Install()

    def test_incompatible_spin_version_blocked(self, manager):
        with pytest.raises(IncompatibleError, match=">=3.0"):
            manager.check_manifest(make_manifest(spin_compatibility=">=3.0"), SPIN_VERSION, False, False)

    def test_incompatible_platform_blocked(self, manager):
        with pytest.raises(IncompatibleError, match="does not support"):
            manager.check_manifest(make_manifest(packages=MAC_ONLY), SPIN_VERSION, False, False)

    def test_override_skips_compatibility(self, manager):
        manifest = make_manifest(spin_compatibility=">=3.0")
        assert manager.check_manifest(manifest, SPIN_VERSION, True, False) == Install()

    def test_compatibility_checked_before_installed_state(self, manager, tmp_path):
        write_installed_manifest(tmp_path, manifest_data(version="1.2.0"))
        with pytest.raises(IncompatibleError):
            manager.check_manifest(
                make_manifest(version="1.2.0", spin_compatibility=">=3.0"), SPIN_VERSION, False, False
            )


class TestGetPackage:
    def test_matching_package(self):
        assert get_package(make_manifest()).os == "linux"

    def test_no_matching_package(self):
        with pytest.raises(IncompatibleError, match="No package found for plugin 'demo'"):
            get_package(make_manifest(packages=MAC_ONLY))


class TestUpdate:
    def test_fetches_registry(self, manager, tmp_path):
        with patch("spin_plugins.plugins.manager.fetch_plugins_repo") as mock_fetch:
            manager.update()
        mock_fetch.assert_called_once_with(manager.settings.repo_url, tmp_path, update=True)

    def test_denied_while_another_update_runs(self, manager):
        with manager.update_lock().lock_updates():
            with patch("spin_plugins.plugins.manager.fetch_plugins_repo") as mock_fetch:
                with pytest.raises(LockDeniedError, match="already in progress"):
                    manager.update()
                mock_fetch.assert_not_called()

    def test_lock_released_after_failure(self, manager):
        with patch("spin_plugins.plugins.manager.fetch_plugins_repo", side_effect=TransportError("offline")):
            with pytest.raises(TransportError):
                manager.update()
        assert manager.update_lock().lock_updates().denied() is False


class TestUninstall:
    def test_uninstall(self, manager, tmp_path):
        write_installed_manifest(tmp_path, manifest_data())
        assert manager.uninstall("demo") is True
        assert manager.uninstall("demo") is False
