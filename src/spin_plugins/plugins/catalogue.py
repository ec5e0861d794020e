"""Merge the registry catalogue with installed plugins for display."""

from dataclasses import dataclass
from functools import cmp_to_key

from spin_plugins.utils.versioning import compare_versions

from .compatibility import PluginCompatibility
from .manifest import PluginManifest
from .store import PluginStore


@dataclass
class PluginDescriptor:
    """One line of plugin list output."""

    name: str
    version: str
    compatibility: PluginCompatibility
    installed: bool
    manifest: PluginManifest

    @classmethod
    def from_manifest(
        cls, manifest: PluginManifest, installed: bool, spin_version: str
    ) -> "PluginDescriptor":
        return cls(
            name=manifest.name,
            version=manifest.version,
            compatibility=PluginCompatibility.for_current(manifest, spin_version),
            installed=installed,
            manifest=manifest,
        )

    def display_line(self) -> str:
        installed = " [installed]" if self.installed else ""
        return f"{self.name} {self.version}{installed}{self.compatibility.label()}"


def installed_descriptors(store: PluginStore, spin_version: str) -> list[PluginDescriptor]:
    return [
        PluginDescriptor.from_manifest(m, installed=True, spin_version=spin_version)
        for m in store.installed_manifests()
    ]


def catalogue_descriptors(store: PluginStore, spin_version: str) -> list[PluginDescriptor]:
    return [
        PluginDescriptor.from_manifest(m, installed=store.is_installed(m), spin_version=spin_version)
        for m in store.catalogue_manifests()
    ]


def merge_plugin_lists(
    catalogue: list[PluginDescriptor],
    installed: list[PluginDescriptor],
) -> list[PluginDescriptor]:
    """Append installed plugins that are not already in the catalogue.

    Sameness is judged on the whole manifest: an installed local build can
    share name and version with a registry entry yet be a different binary.
    """
    result = list(catalogue)
    for descriptor in installed:
        if not any(existing.manifest == descriptor.manifest for existing in result):
            result.append(descriptor)
    return result


def _compare_descriptors(a: PluginDescriptor, b: PluginDescriptor) -> int:
    if a.name != b.name:
        return -1 if a.name < b.name else 1
    return compare_versions(a.version, b.version)


def sort_descriptors(descriptors: list[PluginDescriptor]) -> list[PluginDescriptor]:
    """Sort by name, then version (semantic, lexical if either fails to parse)."""
    return sorted(descriptors, key=cmp_to_key(_compare_descriptors))


def filter_descriptors(
    descriptors: list[PluginDescriptor], text: str | None
) -> list[PluginDescriptor]:
    """Keep descriptors whose name contains ``text``."""
    if not text:
        return list(descriptors)
    return [d for d in descriptors if text in d.name]
