"""Plugin management: resolve, check, install and list Spin plugins."""

from .compatibility import CompatibilityStatus, PluginCompatibility
from .errors import (
    ChecksumMismatchError,
    DowngradeNotAllowedError,
    IncompatibleError,
    LockDeniedError,
    ManifestParseError,
    NotFoundError,
    PluginError,
    TransportError,
    WriteError,
)
from .lookup import LocalManifest, ManifestLocation, PluginLookup, RegistryManifest, RemoteManifest
from .manager import PluginManager, get_package
from .manifest import PluginManifest, PluginPackage
from .planner import Install, InstallAction, NoAction

__all__ = [
    "ChecksumMismatchError",
    "CompatibilityStatus",
    "DowngradeNotAllowedError",
    "IncompatibleError",
    "Install",
    "InstallAction",
    "LocalManifest",
    "LockDeniedError",
    "ManifestLocation",
    "ManifestParseError",
    "NoAction",
    "NotFoundError",
    "PluginCompatibility",
    "PluginError",
    "PluginLookup",
    "PluginManager",
    "PluginManifest",
    "PluginPackage",
    "RegistryManifest",
    "RemoteManifest",
    "TransportError",
    "WriteError",
    "get_package",
]
