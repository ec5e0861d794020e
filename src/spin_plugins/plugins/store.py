"""Local plugin store: installed plugins and the mirrored registry."""

import logging
import shutil
import tempfile
from pathlib import Path

from .errors import ManifestParseError, WriteError
from .manifest import PluginManifest

logger = logging.getLogger(__name__)

REGISTRY_DIR_NAME = ".spin-plugins"


class PluginStore:
    """Filesystem layout of installed plugins and the registry mirror.

    Layout under ``plugins_dir``::

        <name>/                       installed plugin binaries
        manifests/<name>.json         installed plugin manifests
        .spin-plugins/manifests/...   mirrored registry manifests
    """

    def __init__(self, plugins_dir: Path) -> None:
        self.plugins_dir = Path(plugins_dir)

    def get_plugins_directory(self) -> Path:
        return self.plugins_dir

    def installed_manifests_directory(self) -> Path:
        return self.plugins_dir / "manifests"

    def installed_manifest_path(self, name: str) -> Path:
        return self.installed_manifests_directory() / f"{name.lower()}.json"

    def installed_binaries_directory(self, name: str) -> Path:
        return self.plugins_dir / name.lower()

    def registry_directory(self) -> Path:
        return self.plugins_dir / REGISTRY_DIR_NAME

    def catalogue_manifests_directory(self) -> Path:
        return self.registry_directory() / "manifests"

    def read_plugin_manifest(self, name: str) -> PluginManifest | None:
        """Read the installed manifest for ``name``, or None if not installed.

        Raises:
            ManifestParseError: If the installed manifest is corrupt.
        """
        path = self.installed_manifest_path(name)
        if not path.exists():
            return None
        return PluginManifest.from_path(path)

    def is_installed(self, manifest: PluginManifest) -> bool:
        """True if exactly this manifest is the installed one for its name."""
        try:
            return self.read_plugin_manifest(manifest.name) == manifest
        except ManifestParseError:
            return False

    def installed_manifests(self) -> list[PluginManifest]:
        """Parse all installed manifests."""
        directory = self.installed_manifests_directory()
        if not directory.exists():
            return []
        return [PluginManifest.from_path(p) for p in sorted(directory.glob("*.json"))]

    def catalogue_manifests(self) -> list[PluginManifest]:
        """Parse all manifests in the registry mirror.

        Entries that fail to parse are skipped so one broken manifest does
        not hide the rest of the catalogue.
        """
        directory = self.catalogue_manifests_directory()
        if not directory.exists():
            return []

        manifests = []
        for path in sorted(directory.rglob("*.json")):
            try:
                manifests.append(PluginManifest.from_path(path))
            except (ManifestParseError, OSError) as e:
                logger.warning(f"Skipping registry manifest {path}: {e}")
        return manifests

    def catalogue_manifests_for(self, name: str) -> list[PluginManifest]:
        """Registry manifests whose plugin name is ``name``."""
        name = name.lower()
        return [m for m in self.catalogue_manifests() if m.name == name]

    def write_manifest(self, manifest: PluginManifest) -> Path:
        """Atomically write the installed manifest for a plugin.

        Raises:
            WriteError: If the manifest cannot be written.
        """
        directory = self.installed_manifests_directory()
        target = self.installed_manifest_path(manifest.name)

        # Atomic write: write to temp file, then rename
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
            try:
                with open(fd, "w") as f:
                    f.write(manifest.to_json())
                Path(tmp_path).replace(target)
            except Exception:
                Path(tmp_path).unlink(missing_ok=True)
                raise
        except OSError as e:
            logger.error(f"Failed to write manifest for plugin '{manifest.name}': {e}")
            raise WriteError(f"Failed to write manifest for plugin '{manifest.name}': {e}") from e
        return target

    def remove(self, name: str) -> bool:
        """Remove an installed plugin's manifest and binaries.

        Returns:
            True if anything was removed.
        """
        removed = False
        manifest_path = self.installed_manifest_path(name)
        binaries = self.installed_binaries_directory(name)
        try:
            if manifest_path.exists():
                manifest_path.unlink()
                removed = True
            if binaries.exists():
                shutil.rmtree(binaries)
                removed = True
        except OSError as e:
            raise WriteError(f"Failed to remove plugin '{name}': {e}") from e
        return removed
