"""Plugin manifest model."""

import json
import re
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from spin_plugins.utils.versioning import parse_version

from .errors import ManifestParseError

_SHA256_RE = re.compile(r"^[0-9a-fA-F]{64}$")


class PluginPackage(BaseModel):
    """A platform-specific downloadable artifact of a plugin."""

    model_config = ConfigDict(frozen=True)

    os: str = Field(description="Operating system: 'linux', 'macos' or 'windows'")
    arch: str = Field(description="CPU architecture: 'amd64' or 'aarch64'")
    url: str
    sha256: str = Field(description="Hex-encoded SHA-256 digest of the artifact")

    @field_validator("os", "arch")
    @classmethod
    def _normalize_platform(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("sha256")
    @classmethod
    def _validate_checksum(cls, v: str) -> str:
        v = v.strip()
        if not _SHA256_RE.match(v):
            raise ValueError("sha256 must be 64 hexadecimal characters")
        return v.lower()

    @property
    def target(self) -> str:
        return f"{self.os}-{self.arch}"


class PluginManifest(BaseModel):
    """Metadata describing a Spin plugin and its downloadable packages.

    Manifests compare equal only when every field matches, so a local build
    that shares a name and version with a registry entry is still a
    different manifest.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    version: str
    license: str
    spin_compatibility: str = Field(
        alias="spinCompatibility",
        description="Range of Spin versions the plugin works with, e.g. '>=2.0'",
    )
    packages: tuple[PluginPackage, ...]
    description: str | None = None
    homepage: str | None = None

    @field_validator("name")
    @classmethod
    def _normalize_name(cls, v: str) -> str:
        v = v.strip().lower()
        if not v:
            raise ValueError("name must not be empty")
        return v

    @field_validator("version")
    @classmethod
    def _validate_version(cls, v: str) -> str:
        v = v.strip()
        if parse_version(v) is None:
            raise ValueError(f"'{v}' is not a valid semantic version")
        return v

    @classmethod
    def from_json(cls, text: str | bytes, source: str = "") -> "PluginManifest":
        """Parse a manifest document.

        Raises:
            ManifestParseError: If the document is not valid JSON or does
                not describe a valid manifest.
        """
        where = f" from {source}" if source else ""
        try:
            data = json.loads(text)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ManifestParseError(f"Invalid plugin manifest JSON{where}: {e}") from e
        if not isinstance(data, dict):
            raise ManifestParseError(f"Plugin manifest{where} must be a JSON object")
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ManifestParseError(f"Invalid plugin manifest{where}: {e}") from e

    @classmethod
    def from_path(cls, path: Path) -> "PluginManifest":
        """Read and parse a manifest file.

        Raises:
            FileNotFoundError: If the file does not exist.
            ManifestParseError: If the file content is malformed.
        """
        return cls.from_json(path.read_bytes(), source=str(path))

    def to_json(self) -> str:
        return json.dumps(self.model_dump(by_alias=True, exclude_none=True), indent=2)
