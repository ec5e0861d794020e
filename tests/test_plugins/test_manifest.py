"""Tests for the plugin manifest model."""

import json

import pytest

from conftest import DUMMY_SHA, make_manifest, manifest_data
from spin_plugins.plugins.errors import ManifestParseError
from spin_plugins.plugins.manifest import PluginManifest, PluginPackage


class TestPluginManifest:
    def test_parses_registry_document(self):
        manifest = PluginManifest.from_json(json.dumps(manifest_data(description="A demo")))
        assert manifest.name == "demo"
        assert manifest.version == "1.2.0"
        assert manifest.spin_compatibility == ">=2.0"
        assert manifest.description == "A demo"
        assert manifest.homepage is None
        assert len(manifest.packages) == 1
        assert manifest.packages[0].target == "linux-amd64"

    def test_accepts_snake_case_compatibility_key(self):
        data = manifest_data()
        data["spin_compatibility"] = data.pop("spinCompatibility")
        manifest = PluginManifest.model_validate(data)
        assert manifest.spin_compatibility == ">=2.0"

    def test_name_is_lowercased(self):
        assert make_manifest(name="  Cloud ").name == "cloud"

    def test_empty_name_rejected(self):
        with pytest.raises(ManifestParseError, match="name"):
            PluginManifest.from_json(json.dumps(manifest_data(name="  ")))

    def test_invalid_version_rejected(self):
        with pytest.raises(ManifestParseError, match="semantic version"):
            PluginManifest.from_json(json.dumps(manifest_data(version="latest")))

    def test_missing_field_rejected(self):
        data = manifest_data()
        del data["license"]
        with pytest.raises(ManifestParseError, match="license"):
            PluginManifest.from_json(json.dumps(data))

    def test_malformed_json_rejected(self):
        with pytest.raises(ManifestParseError, match="Invalid plugin manifest JSON"):
            PluginManifest.from_json("{not json", source="demo.json")

    def test_non_object_rejected(self):
        with pytest.raises(ManifestParseError, match="JSON object"):
            PluginManifest.from_json("[]")

    def test_manifest_without_packages_parses(self):
        assert make_manifest(packages=[]).packages == ()

    def test_structural_equality(self):
        assert make_manifest() == make_manifest()
        other_sha = [{"os": "linux", "arch": "amd64", "url": "https://example.com/demo.tar.gz", "sha256": "b" * 64}]
        assert make_manifest() != make_manifest(packages=other_sha)

    def test_is_immutable(self):
        manifest = make_manifest()
        with pytest.raises(Exception):
            manifest.version = "9.9.9"

    def test_to_json_round_trips_with_registry_keys(self, tmp_path):
        manifest = make_manifest(homepage="https://example.com")
        path = tmp_path / "demo.json"
        path.write_text(manifest.to_json())
        assert "spinCompatibility" in json.loads(path.read_text())
        assert PluginManifest.from_path(path) == manifest


class TestPluginPackage:
    def test_checksum_normalized_to_lowercase(self):
        package = PluginPackage(os="Linux", arch="AMD64", url="https://x", sha256="A" * 64)
        assert package.sha256 == "a" * 64
        assert package.target == "linux-amd64"

    @pytest.mark.parametrize("sha", ["", "abc", "g" * 64, DUMMY_SHA + "0"])
    def test_invalid_checksum_rejected(self, sha):
        with pytest.raises(ValueError, match="64 hexadecimal"):
            PluginPackage(os="linux", arch="amd64", url="https://x", sha256=sha)
