"""Decide whether a candidate plugin version should be installed."""

from dataclasses import dataclass

from spin_plugins.utils.versioning import compare_versions

from .errors import DowngradeNotAllowedError


@dataclass(frozen=True)
class Install:
    """The candidate should be installed."""


@dataclass(frozen=True)
class NoAction:
    """The candidate version is already installed."""

    name: str
    version: str


InstallAction = Install | NoAction


def decide_install_action(
    name: str,
    candidate_version: str,
    installed_version: str | None,
    allow_downgrade: bool = False,
) -> InstallAction:
    """Compare a candidate version with the installed one.

    Args:
        name: Plugin name, used in the result and error messages.
        candidate_version: Version about to be installed.
        installed_version: Currently installed version, or None.
        allow_downgrade: Permit installing an older version.

    Returns:
        Install for a new plugin, an upgrade or a permitted downgrade;
        NoAction when the same version is already installed.

    Raises:
        DowngradeNotAllowedError: If the candidate is older and
            ``allow_downgrade`` is False.
    """
    if installed_version is None:
        return Install()

    order = compare_versions(candidate_version, installed_version)
    if order > 0:
        return Install()
    if order == 0:
        return NoAction(name=name, version=installed_version)
    if allow_downgrade:
        return Install()
    raise DowngradeNotAllowedError(name, installed_version, candidate_version)
