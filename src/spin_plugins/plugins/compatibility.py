"""Compatibility of plugin manifests with the running Spin version and platform."""

import logging
import platform
from dataclasses import dataclass
from enum import Enum

from spin_plugins.utils.versioning import version_satisfies

from .manifest import PluginManifest, PluginPackage

logger = logging.getLogger(__name__)

_OS_NAMES = {
    "linux": "linux",
    "darwin": "macos",
    "windows": "windows",
}

_ARCH_NAMES = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "aarch64",
    "arm64": "aarch64",
}


def current_os() -> str:
    """Detect the running OS using manifest naming ('linux', 'macos', 'windows')."""
    system = platform.system().lower()
    return _OS_NAMES.get(system, system)


def current_arch() -> str:
    """Detect the running CPU architecture using manifest naming ('amd64', 'aarch64')."""
    machine = platform.machine().lower()
    return _ARCH_NAMES.get(machine, machine)


def find_package(
    manifest: PluginManifest,
    os_name: str | None = None,
    arch: str | None = None,
) -> PluginPackage | None:
    """Return the first package matching the platform, or None."""
    os_name = os_name or current_os()
    arch = arch or current_arch()
    for package in manifest.packages:
        if package.os == os_name and package.arch == arch:
            return package
    return None


def has_compatible_package(
    manifest: PluginManifest,
    os_name: str | None = None,
    arch: str | None = None,
) -> bool:
    return find_package(manifest, os_name, arch) is not None


def is_compatible_spin_version(manifest: PluginManifest, spin_version: str) -> bool:
    return version_satisfies(spin_version, manifest.spin_compatibility)


class CompatibilityStatus(str, Enum):
    COMPATIBLE = "compatible"
    INCOMPATIBLE_SPIN = "incompatible_spin"
    INCOMPATIBLE = "incompatible"


@dataclass(frozen=True)
class PluginCompatibility:
    """Three-way compatibility verdict for a manifest.

    ``required`` carries the manifest's Spin version range when the verdict
    is INCOMPATIBLE_SPIN.
    """

    status: CompatibilityStatus
    required: str | None = None

    @classmethod
    def for_current(
        cls,
        manifest: PluginManifest,
        spin_version: str,
        os_name: str | None = None,
        arch: str | None = None,
    ) -> "PluginCompatibility":
        """Classify a manifest against the running platform and Spin version.

        A missing platform package makes a manifest incompatible regardless
        of the Spin version.
        """
        if not has_compatible_package(manifest, os_name, arch):
            return cls(CompatibilityStatus.INCOMPATIBLE)
        if not is_compatible_spin_version(manifest, spin_version):
            return cls(CompatibilityStatus.INCOMPATIBLE_SPIN, manifest.spin_compatibility)
        return cls(CompatibilityStatus.COMPATIBLE)

    @property
    def is_compatible(self) -> bool:
        return self.status is CompatibilityStatus.COMPATIBLE

    def label(self) -> str:
        """Suffix shown after a plugin in list output."""
        if self.status is CompatibilityStatus.INCOMPATIBLE_SPIN:
            return f" [requires Spin {self.required}]"
        if self.status is CompatibilityStatus.INCOMPATIBLE:
            return " [incompatible]"
        return ""

    def reason(self, manifest: PluginManifest, spin_version: str) -> str:
        """Human-readable explanation of why installation is blocked."""
        if self.status is CompatibilityStatus.INCOMPATIBLE:
            return (
                f"Plugin '{manifest.name}' does not support this OS ({current_os()}) "
                f"or architecture ({current_arch()})"
            )
        return (
            f"Plugin '{manifest.name}' is not compatible with this version of Spin "
            f"(supported: {manifest.spin_compatibility}, actual: {spin_version}). "
            "Try running `spin plugins update && spin plugins upgrade --all` to install "
            "the latest version or override with `--override-compatibility-check`."
        )
