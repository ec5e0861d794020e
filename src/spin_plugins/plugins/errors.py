"""Errors raised while resolving, checking and installing plugins."""


class PluginError(Exception):
    """Base class for plugin management failures."""


class NotFoundError(PluginError):
    """Manifest or plugin is absent at the requested location or registry."""


class ManifestParseError(PluginError):
    """Manifest document is malformed or violates the manifest schema."""


class IncompatibleError(PluginError):
    """Plugin fails the host version or platform compatibility gate."""


class DowngradeNotAllowedError(PluginError):
    """Candidate version is older than the installed one and downgrade was not requested."""

    def __init__(self, name: str, installed_version: str, version: str) -> None:
        self.name = name
        self.installed_version = installed_version
        self.version = version
        super().__init__(
            f"Newer version {installed_version} of plugin '{name}' is already installed. "
            f"To downgrade to version {version}, run `spin plugins upgrade` with the "
            "`--downgrade` flag."
        )


class ChecksumMismatchError(PluginError):
    """Downloaded artifact does not match the checksum declared by the manifest."""


class TransportError(PluginError):
    """Network or filesystem failure while reading a manifest or artifact."""


class WriteError(PluginError):
    """Installed plugin files could not be written."""


class LockDeniedError(PluginError):
    """Another registry update is already in progress."""
