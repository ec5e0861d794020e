"""Locate plugin manifests in local files, at URLs or in the plugins registry."""

import logging
import shutil
import subprocess
from dataclasses import dataclass
from functools import cmp_to_key
from pathlib import Path

from spin_plugins.utils.versioning import compare_versions

from .compatibility import PluginCompatibility
from .errors import IncompatibleError, NotFoundError, TransportError
from .manifest import PluginManifest
from .store import REGISTRY_DIR_NAME, PluginStore

logger = logging.getLogger(__name__)

GIT_TIMEOUT_S = 300


class ManifestLocation:
    """Where to read a plugin manifest from.

    Exactly one of LocalManifest, RemoteManifest or RegistryManifest.
    """

    @staticmethod
    def from_options(
        name: str | None = None,
        local_path: Path | None = None,
        remote_url: str | None = None,
        version: str | None = None,
    ) -> "ManifestLocation":
        """Build a location from mutually exclusive command options.

        Raises:
            ValueError: Unless exactly one of name, local path or URL is given,
                or if a version is given without a name.
        """
        given = [v for v in (name, local_path, remote_url) if v]
        if len(given) != 1:
            raise ValueError(
                "For plugin lookup, must provide exactly one of: plugin name, "
                "url to manifest, local path to manifest"
            )
        if version and not name:
            raise ValueError("A plugin version can only be requested together with a plugin name")

        if local_path:
            return LocalManifest(Path(local_path))
        if remote_url:
            return RemoteManifest(remote_url)
        return RegistryManifest(PluginLookup(name, version))


@dataclass(frozen=True)
class LocalManifest(ManifestLocation):
    path: Path


@dataclass(frozen=True)
class RemoteManifest(ManifestLocation):
    url: str


@dataclass(frozen=True)
class PluginLookup:
    """A plugin name with an optional pinned version."""

    name: str
    version: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "name", self.name.strip().lower())

    def resolve_manifest(
        self,
        store: PluginStore,
        override_compatibility_check: bool,
        spin_version: str,
    ) -> PluginManifest:
        """Pick a manifest for this plugin from the registry mirror.

        Without a pinned version the highest version wins; unless the check is
        overridden only compatible entries are considered. At equal versions a
        compatible entry is preferred.

        Raises:
            NotFoundError: If the name, or the pinned version, is not in the registry.
            IncompatibleError: If no candidate is compatible and the check is
                not overridden.
        """
        candidates = store.catalogue_manifests_for(self.name)
        if not candidates:
            raise NotFoundError(
                f"No plugin '{self.name}' found in the plugins registry. "
                "Try running `spin plugins update` to refresh it."
            )

        if self.version:
            candidates = [m for m in candidates if compare_versions(m.version, self.version) == 0]
            if not candidates:
                raise NotFoundError(
                    f"Plugin '{self.name}' has no version {self.version} in the plugins registry"
                )

        verdicts = [(m, PluginCompatibility.for_current(m, spin_version)) for m in candidates]
        eligible = [
            (m, verdict)
            for m, verdict in verdicts
            if override_compatibility_check or verdict.is_compatible
        ]

        def _order(a, b) -> int:
            order = compare_versions(a[0].version, b[0].version)
            if order:
                return order
            return int(a[1].is_compatible) - int(b[1].is_compatible)

        if not eligible:
            newest, verdict = max(verdicts, key=cmp_to_key(_order))
            raise IncompatibleError(verdict.reason(newest, spin_version))

        manifest, _ = max(eligible, key=cmp_to_key(_order))
        logger.debug(f"Resolved plugin '{self.name}' to version {manifest.version}")
        return manifest


@dataclass(frozen=True)
class RegistryManifest(ManifestLocation):
    lookup: PluginLookup


def fetch_plugins_repo(url: str, plugins_dir: Path, update: bool = True) -> None:
    """Clone or refresh the plugins registry mirror.

    Args:
        url: Git URL of the registry repository.
        plugins_dir: Plugin store root; the mirror lives in ``.spin-plugins``.
        update: Pull new commits if the mirror already exists.

    Raises:
        TransportError: If git is unavailable or the clone/pull fails.
    """
    repo_dir = plugins_dir / REGISTRY_DIR_NAME
    if (repo_dir / ".git").exists():
        if not update:
            return
        args = ["git", "-C", str(repo_dir), "pull", "--ff-only"]
    else:
        if repo_dir.exists():
            logger.warning(f"Replacing registry mirror at {repo_dir}, it is not a git checkout")
            shutil.rmtree(repo_dir)
        plugins_dir.mkdir(parents=True, exist_ok=True)
        args = ["git", "clone", "--depth", "1", url, str(repo_dir)]

    logger.info(f"Updating plugins registry from {url}")
    try:
        result = subprocess.run(
            args,
            capture_output=True,
            text=True,
            timeout=GIT_TIMEOUT_S,
        )
    except FileNotFoundError:
        raise TransportError("git is required to update the plugins registry") from None
    except subprocess.TimeoutExpired as e:
        raise TransportError(f"Timed out updating the plugins registry from {url}") from e

    if result.returncode != 0:
        logger.error(f"git failed: {result.stderr}")
        raise TransportError(
            f"Failed to update the plugins registry from {url}: {result.stderr.strip()}"
        )
