"""Plugin manager - resolve, check, install and update plugins."""

import logging

from spin_plugins.config import PluginsSettings, load_settings

from .compatibility import PluginCompatibility, current_arch, current_os, find_package
from .errors import IncompatibleError, LockDeniedError, NotFoundError, TransportError
from .fetch import fetch_bytes
from .installer import install_plugin, uninstall_plugin
from .lookup import (
    LocalManifest,
    ManifestLocation,
    RegistryManifest,
    RemoteManifest,
    fetch_plugins_repo,
)
from .manifest import PluginManifest, PluginPackage
from .planner import InstallAction, decide_install_action
from .store import PluginStore
from .update_lock import UpdateLock

logger = logging.getLogger(__name__)


def get_package(manifest: PluginManifest) -> PluginPackage:
    """Select the manifest's package for the running platform.

    Raises:
        IncompatibleError: If no package targets this OS and architecture.
    """
    package = find_package(manifest)
    if package is None:
        raise IncompatibleError(
            f"No package found for plugin '{manifest.name}' for os {current_os()} "
            f"and arch {current_arch()}"
        )
    return package


class PluginManager:
    """Entry point for plugin operations against a local plugin store."""

    def __init__(
        self,
        settings: PluginsSettings,
        store: PluginStore | None = None,
        update_lock: UpdateLock | None = None,
    ) -> None:
        self.settings = settings
        self._store = store or PluginStore(settings.plugins_dir)
        self._update_lock = update_lock or UpdateLock()

    @classmethod
    def try_default(cls) -> "PluginManager":
        """Create a manager from the user's configuration.

        Raises:
            ConfigError: If the configuration is invalid.
        """
        return cls(load_settings())

    def store(self) -> PluginStore:
        return self._store

    def update_lock(self) -> UpdateLock:
        return self._update_lock

    def get_manifest(
        self,
        location: ManifestLocation,
        override_compatibility_check: bool,
        spin_version: str,
    ) -> PluginManifest:
        """Read the manifest at ``location``.

        Raises:
            NotFoundError: If no manifest exists at the location.
            ManifestParseError: If the manifest is malformed.
            TransportError: If the manifest file cannot be read or a remote
                manifest cannot be fetched.
            IncompatibleError: If no registry entry is compatible.
        """
        if isinstance(location, LocalManifest):
            try:
                return PluginManifest.from_path(location.path)
            except FileNotFoundError:
                raise NotFoundError(f"No plugin manifest found at {location.path}") from None
            except OSError as e:
                raise TransportError(f"Failed to read plugin manifest {location.path}: {e}") from e
        if isinstance(location, RemoteManifest):
            data = fetch_bytes(location.url, timeout=self.settings.timeout)
            return PluginManifest.from_json(data, source=location.url)
        if isinstance(location, RegistryManifest):
            return location.lookup.resolve_manifest(
                self._store, override_compatibility_check, spin_version
            )
        raise TypeError(f"Unsupported manifest location: {location!r}")

    def check_manifest(
        self,
        manifest: PluginManifest,
        spin_version: str,
        override_compatibility_check: bool,
        allow_downgrade: bool,
    ) -> InstallAction:
        """Decide whether ``manifest`` should be installed.

        Runs before any mutation of the store.

        Raises:
            IncompatibleError: If the plugin is not compatible and the check
                is not overridden.
            DowngradeNotAllowedError: If a newer version is installed and
                ``allow_downgrade`` is False.
            ManifestParseError: If the installed manifest is corrupt.
        """
        if not override_compatibility_check:
            compatibility = PluginCompatibility.for_current(manifest, spin_version)
            if not compatibility.is_compatible:
                raise IncompatibleError(compatibility.reason(manifest, spin_version))

        installed = self._store.read_plugin_manifest(manifest.name)
        return decide_install_action(
            manifest.name,
            manifest.version,
            installed.version if installed else None,
            allow_downgrade,
        )

    def install(
        self,
        manifest: PluginManifest,
        package: PluginPackage,
        source: ManifestLocation,
    ) -> str:
        """Install ``package`` of ``manifest``, replacing any previous version."""
        return install_plugin(
            self._store, manifest, package, source, timeout=self.settings.timeout
        )

    def uninstall(self, name: str) -> bool:
        return uninstall_plugin(self._store, name)

    def update(self) -> None:
        """Refresh the registry mirror.

        Raises:
            LockDeniedError: If another update is in progress in this process.
            TransportError: If the registry cannot be fetched.
        """
        with self._update_lock.lock_updates() as guard:
            if guard.denied():
                raise LockDeniedError("Another plugin update operation is already in progress")
            fetch_plugins_repo(
                self.settings.repo_url, self._store.get_plugins_directory(), update=True
            )
