"""Plugin installer - download, verify and atomically place plugin packages."""

import hashlib
import io
import logging
import platform
import shutil
import tarfile
import tempfile
import uuid
from pathlib import Path
from urllib.parse import urljoin, urlparse

from .errors import ChecksumMismatchError, TransportError, WriteError
from .fetch import fetch_bytes
from .lookup import LocalManifest, ManifestLocation, RemoteManifest
from .manifest import PluginManifest, PluginPackage
from .store import PluginStore

logger = logging.getLogger(__name__)


def package_url(package: PluginPackage, source: ManifestLocation) -> str:
    """Absolute URL of a package artifact.

    Relative package URLs are resolved against the manifest they came from:
    the manifest's directory for local files, the manifest URL for remote ones.

    Raises:
        TransportError: If a relative URL cannot be resolved.
    """
    if urlparse(package.url).scheme:
        return package.url
    if isinstance(source, LocalManifest):
        return (source.path.parent / package.url).resolve().as_uri()
    if isinstance(source, RemoteManifest):
        return urljoin(source.url, package.url)
    raise TransportError(f"Cannot resolve relative package URL '{package.url}'")


def verify_checksum(data: bytes, expected: str, name: str) -> None:
    """Check an artifact against its SHA-256 digest.

    Raises:
        ChecksumMismatchError: If the digest differs.
    """
    actual = hashlib.sha256(data).hexdigest()
    if actual != expected.lower():
        raise ChecksumMismatchError(
            f"Checksum mismatch for plugin '{name}': expected {expected}, got {actual}"
        )


def binary_name(name: str) -> str:
    if platform.system().lower() == "windows":
        return f"{name}.exe"
    return name


def _checked_members(tar: tarfile.TarFile, staging_dir: Path) -> list[tarfile.TarInfo]:
    """Archive members, rejecting any that would land outside ``staging_dir``.

    Used on interpreters whose tarfile has no extraction filters.

    Raises:
        tarfile.TarError: On absolute paths, path traversal, escaping links
            or special files.
    """
    root = staging_dir.resolve()
    members = tar.getmembers()
    for member in members:
        if not (member.isfile() or member.isdir() or member.issym() or member.islnk()):
            raise tarfile.TarError(f"Unsupported archive member type: {member.name}")
        destination = (root / member.name).resolve()
        if not destination.is_relative_to(root):
            raise tarfile.TarError(f"Archive member escapes the plugin directory: {member.name}")
        if member.issym() or member.islnk():
            base = destination.parent if member.issym() else root
            if not (base / member.linkname).resolve().is_relative_to(root):
                raise tarfile.TarError(f"Archive link escapes the plugin directory: {member.name}")
    return members


def stage_package(data: bytes, staging_dir: Path, name: str) -> None:
    """Unpack an artifact into ``staging_dir``.

    Tar archives (optionally compressed) are extracted; anything else is
    written as the plugin executable.
    """
    buffer = io.BytesIO(data)
    if tarfile.is_tarfile(buffer):
        buffer.seek(0)
        with tarfile.open(fileobj=buffer, mode="r:*") as tar:
            if hasattr(tarfile, "data_filter"):
                tar.extractall(staging_dir, filter="data")
            else:
                tar.extractall(staging_dir, members=_checked_members(tar, staging_dir))
        return

    executable = staging_dir / binary_name(name)
    executable.write_bytes(data)
    executable.chmod(0o755)


def _restore_previous(target: Path, backup: Path | None, swapped: bool) -> None:
    if swapped and target.exists():
        shutil.rmtree(target)
    if backup is not None and backup.exists():
        backup.rename(target)


def install_plugin(
    store: PluginStore,
    manifest: PluginManifest,
    package: PluginPackage,
    source: ManifestLocation,
    timeout: float = 60.0,
) -> str:
    """Install a plugin package into the store.

    The previous installation of the same plugin, if any, stays in place
    until both the new binaries and the new manifest are written.

    Args:
        store: Plugin store to install into.
        manifest: Manifest of the plugin being installed.
        package: Package selected for the running platform.
        source: Where the manifest was read from.
        timeout: Download timeout in seconds.

    Returns:
        The installed plugin name.

    Raises:
        ChecksumMismatchError: If the artifact fails verification.
        NotFoundError, TransportError: If the artifact cannot be fetched.
        WriteError: If the plugin files cannot be written.
    """
    name = manifest.name
    url = package_url(package, source)
    logger.info(f"Installing plugin {name} {manifest.version} from {url}")

    data = fetch_bytes(url, timeout=timeout)
    verify_checksum(data, package.sha256, name)

    plugins_dir = store.get_plugins_directory()
    target = store.installed_binaries_directory(name)
    backup: Path | None = None
    swapped = False

    try:
        plugins_dir.mkdir(parents=True, exist_ok=True)
        staging = Path(tempfile.mkdtemp(dir=plugins_dir, prefix=f".{name}-staging-"))
    except OSError as e:
        raise WriteError(f"Failed to prepare install of plugin '{name}': {e}") from e

    try:
        try:
            stage_package(data, staging, name)
        except (tarfile.TarError, OSError) as e:
            raise WriteError(f"Failed to unpack plugin '{name}': {e}") from e

        try:
            if target.exists():
                backup = plugins_dir / f".{name}-previous-{uuid.uuid4().hex[:8]}"
                target.rename(backup)
            staging.rename(target)
            swapped = True
        except OSError as e:
            _restore_previous(target, backup, swapped)
            raise WriteError(f"Failed to place binaries of plugin '{name}': {e}") from e

        try:
            store.write_manifest(manifest)
        except WriteError:
            _restore_previous(target, backup, swapped)
            raise
    finally:
        if staging.exists():
            shutil.rmtree(staging, ignore_errors=True)

    if backup is not None:
        shutil.rmtree(backup, ignore_errors=True)
    logger.info(f"Successfully installed {name} {manifest.version}")
    return name


def uninstall_plugin(store: PluginStore, name: str) -> bool:
    """Remove an installed plugin.

    Returns:
        True if the plugin was installed and has been removed.
    """
    removed = store.remove(name)
    if removed:
        logger.info(f"Uninstalled {name}")
    else:
        logger.debug(f"Plugin {name} is not installed")
    return removed
