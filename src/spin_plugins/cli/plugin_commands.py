"""Plugin management CLI commands."""

import logging
from contextlib import contextmanager
from pathlib import Path
from urllib.parse import urlparse

import click
from rich.console import Console
from rich.markup import escape

from spin_plugins.config import ConfigError
from spin_plugins.plugins.catalogue import (
    PluginDescriptor,
    catalogue_descriptors,
    filter_descriptors,
    installed_descriptors,
    merge_plugin_lists,
    sort_descriptors,
)
from spin_plugins.plugins.errors import NotFoundError, PluginError
from spin_plugins.plugins.lookup import ManifestLocation, PluginLookup, RegistryManifest
from spin_plugins.plugins.manager import PluginManager, get_package
from spin_plugins.plugins.manifest import PluginManifest, PluginPackage
from spin_plugins.plugins.planner import NoAction
from spin_plugins.utils.versioning import parse_version

logger = logging.getLogger(__name__)

console = Console()
err_console = Console(stderr=True)


def _echo(text: str, err: bool = False) -> None:
    """Print plain text; plugin names and ranges may contain brackets."""
    target = err_console if err else console
    target.print(text, markup=False, highlight=False, soft_wrap=True)


@contextmanager
def _reported_errors():
    try:
        yield
    except (PluginError, ConfigError) as e:
        err_console.print(f"[red]Error:[/red] {escape(str(e))}", soft_wrap=True)
        raise SystemExit(1) from e


def _validate_version(ctx, param, value):
    if value is not None and parse_version(value) is None:
        raise click.BadParameter(f"'{value}' is not a valid semantic version")
    return value


@click.group()
def plugins():
    """Install, upgrade and list Spin plugins."""


@plugins.command()
@click.argument("name", required=False)
@click.option(
    "-f", "--file", "local_manifest",
    type=click.Path(path_type=Path), default=None,
    help="Path to local plugin manifest",
)
@click.option("-u", "--url", "remote_manifest", default=None, help="URL of remote plugin manifest")
@click.option(
    "-v", "--version", default=None, callback=_validate_version,
    help="Specific version of the plugin to install from the plugins registry",
)
@click.option("-y", "--yes", "yes_to_all", is_flag=True, help="Skip the install confirmation prompt")
@click.option(
    "--override-compatibility-check", is_flag=True,
    help="Install even if the plugin is not compatible with this version of Spin",
)
def install(name, local_manifest, remote_manifest, version, yes_to_all, override_compatibility_check):
    """Install a plugin from the registry or a manifest.

    The plugin binary and its manifest are copied to the local plugins directory.
    """
    try:
        location = ManifestLocation.from_options(name, local_manifest, remote_manifest, version)
    except ValueError as e:
        raise click.UsageError(str(e)) from e

    with _reported_errors():
        manager = PluginManager.try_default()
        manifest = manager.get_manifest(
            location, override_compatibility_check, manager.settings.spin_version
        )
        # Downgrades are only allowed via the `upgrade` command
        try_install(
            manifest,
            manager,
            yes_to_all=yes_to_all,
            override_compatibility_check=override_compatibility_check,
            downgrade=False,
            source=location,
        )


@plugins.command()
@click.argument("name")
def uninstall(name):
    """Remove a plugin from your installation."""
    with _reported_errors():
        manager = PluginManager.try_default()
        if manager.uninstall(name):
            _echo(f"Plugin {name} was successfully uninstalled")
        else:
            _echo(f"Plugin {name} isn't present, so no changes were made")


@plugins.command()
@click.argument("name", required=False)
@click.option("-a", "--all", "upgrade_all", is_flag=True, help="Upgrade all installed plugins")
@click.option(
    "-f", "--file", "local_manifest",
    type=click.Path(path_type=Path), default=None,
    help="Path to local plugin manifest",
)
@click.option("-u", "--url", "remote_manifest", default=None, help="URL of remote plugin manifest")
@click.option(
    "-v", "--version", default=None, callback=_validate_version,
    help="Specific version of the plugin to install from the plugins registry",
)
@click.option("-y", "--yes", "yes_to_all", is_flag=True, help="Skip the install confirmation prompt")
@click.option(
    "--override-compatibility-check", is_flag=True,
    help="Install even if the plugin is not compatible with this version of Spin",
)
@click.option("-d", "--downgrade", is_flag=True, help="Allow downgrading a plugin's version")
def upgrade(
    name,
    upgrade_all,
    local_manifest,
    remote_manifest,
    version,
    yes_to_all,
    override_compatibility_check,
    downgrade,
):
    """Upgrade one or all plugins.

    Without a plugin name, manifest or --all, lists the installed plugins with
    newer registry versions and asks which ones to upgrade.
    """
    if upgrade_all and (name or local_manifest or remote_manifest or version):
        raise click.UsageError("--all cannot be combined with a plugin name, manifest or version")
    if local_manifest and remote_manifest:
        raise click.UsageError("--file and --url cannot be used together")
    if version and (local_manifest or remote_manifest or not name):
        raise click.UsageError("--version requires a plugin name and no manifest")

    with _reported_errors():
        manager = PluginManager.try_default()
        if not manager.store().installed_manifests_directory().exists():
            _echo("No currently installed plugins to upgrade.")
            return

        if upgrade_all:
            _upgrade_all(manager, yes_to_all, override_compatibility_check, downgrade)
        elif not (name or local_manifest or remote_manifest):
            _upgrade_multiselect(manager)
        else:
            if local_manifest or remote_manifest:
                location = ManifestLocation.from_options(
                    local_path=local_manifest, remote_url=remote_manifest
                )
            else:
                location = RegistryManifest(PluginLookup(name, version))
            manifest = manager.get_manifest(
                location, override_compatibility_check, manager.settings.spin_version
            )
            try_install(
                manifest,
                manager,
                yes_to_all=yes_to_all,
                override_compatibility_check=override_compatibility_check,
                downgrade=downgrade,
                source=location,
            )


def _upgrade_all(
    manager: PluginManager,
    yes_to_all: bool,
    override_compatibility_check: bool,
    downgrade: bool,
) -> None:
    """Install the latest version of every installed plugin.

    A failing plugin is reported and skipped; the command fails at the end
    if any plugin could not be upgraded.
    """
    spin_version = manager.settings.spin_version
    names = sorted(p.stem for p in manager.store().installed_manifests_directory().glob("*.json"))
    failed = []

    for name in names:
        location = RegistryManifest(PluginLookup(name))
        try:
            manifest = manager.get_manifest(location, override_compatibility_check, spin_version)
            try_install(
                manifest,
                manager,
                yes_to_all=yes_to_all,
                override_compatibility_check=override_compatibility_check,
                downgrade=downgrade,
                source=location,
            )
        except NotFoundError as e:
            logger.info(f"Could not upgrade plugin '{name}': {e}")
        except PluginError as e:
            logger.warning(f"Failed to upgrade plugin '{name}': {e}")
            err_console.print(
                f"[red]Failed to upgrade plugin '{escape(name)}':[/red] {escape(str(e))}",
                soft_wrap=True,
            )
            failed.append(name)

    if failed:
        raise SystemExit(1)


def _parse_selection(raw: str, count: int) -> list[int]:
    indexes = []
    for part in raw.replace(" ", ",").split(","):
        if not part:
            continue
        if not part.isdigit() or not 1 <= int(part) <= count:
            raise click.BadParameter(f"'{part}' is not a number between 1 and {count}")
        indexes.append(int(part) - 1)
    return indexes


def _upgrade_multiselect(manager: PluginManager) -> None:
    """Let the user pick which installed registry plugins to upgrade."""
    spin_version = manager.settings.spin_version
    catalogue = list_catalogue_plugins(manager)
    installed = installed_descriptors(manager.store(), spin_version)

    installed_in_catalogue = [
        plugin
        for plugin in installed
        if any(
            plugin.manifest == entry.manifest and entry.compatibility.is_compatible
            for entry in catalogue
        )
    ]

    eligible: list[tuple[PluginDescriptor, PluginManifest]] = []
    for plugin in installed_in_catalogue:
        location = RegistryManifest(PluginLookup(plugin.name))
        try:
            manifest = manager.get_manifest(location, False, spin_version)
        except PluginError as e:
            logger.debug(f"Skipping upgrade check for '{plugin.name}': {e}")
            continue
        if manifest.version != plugin.version:
            eligible.append((plugin, manifest))

    if not eligible:
        _echo("No plugins found to upgrade", err=True)
        return

    _echo("Select plugins to upgrade:", err=True)
    for index, (plugin, manifest) in enumerate(eligible, start=1):
        _echo(
            f"  {index}. {plugin.name} from version {plugin.version} to {manifest.version}",
            err=True,
        )

    try:
        raw = click.prompt(
            "Plugins to upgrade (comma-separated numbers, empty for none)",
            default="",
            show_default=False,
        )
    except click.Abort:
        return

    selected = [eligible[i] for i in sorted(set(_parse_selection(raw, len(eligible))))]
    if not selected:
        _echo("No plugins selected", err=True)
        return

    for plugin, manifest in selected:
        try_install(
            manifest,
            manager,
            yes_to_all=True,
            override_compatibility_check=False,
            downgrade=False,
            source=RegistryManifest(PluginLookup(plugin.name)),
        )


def list_catalogue_plugins(manager: PluginManager) -> list[PluginDescriptor]:
    """Registry plugins, refreshing the registry mirror first when possible."""
    try:
        manager.update()
    except PluginError as e:
        logger.debug(f"Registry update failed: {e}")
        err_console.print(
            "[yellow]Warning:[/yellow] Couldn't update plugins registry cache - using most recent"
        )
    return catalogue_descriptors(manager.store(), manager.settings.spin_version)


def _list(installed_only: bool, filter_text: str | None) -> None:
    manager = PluginManager.try_default()
    spin_version = manager.settings.spin_version
    installed = installed_descriptors(manager.store(), spin_version)
    if installed_only:
        descriptors = installed
    else:
        descriptors = merge_plugin_lists(list_catalogue_plugins(manager), installed)

    descriptors = filter_descriptors(sort_descriptors(descriptors), filter_text)
    if not descriptors:
        _echo("No plugins found")
        return
    for descriptor in descriptors:
        _echo(descriptor.display_line())


@plugins.command("list")
@click.option("--installed", "installed_only", is_flag=True, help="List only installed plugins")
@click.option("--filter", "filter_text", default=None, help="Only plugins whose name contains this text")
def list_plugins(installed_only, filter_text):
    """List available or installed plugins."""
    with _reported_errors():
        _list(installed_only, filter_text)


@plugins.command()
@click.argument("filter_text", metavar="TEXT", required=False)
def search(filter_text):
    """Search for plugins by name."""
    with _reported_errors():
        _list(False, filter_text)


@plugins.command()
def update():
    """Fetch the latest plugins from the plugins registry."""
    with _reported_errors():
        PluginManager.try_default().update()
        _echo("Plugin information updated successfully")


def _prompt_confirm_install(manifest: PluginManifest, package: PluginPackage) -> bool:
    prompt = (
        f"Are you sure you want to install plugin '{manifest.name}' with license "
        f"{manifest.license} from {package.url}?"
    )
    try:
        confirmed = click.confirm(prompt, default=False)
    except click.Abort:
        confirmed = False
    if not confirmed:
        _echo(f"Plugin '{manifest.name}' will not be installed")
    return confirmed


def try_install(
    manifest: PluginManifest,
    manager: PluginManager,
    yes_to_all: bool,
    override_compatibility_check: bool,
    downgrade: bool,
    source: ManifestLocation,
) -> bool:
    """Check, confirm and install a plugin.

    Returns:
        True if the plugin was installed.
    """
    action = manager.check_manifest(
        manifest,
        manager.settings.spin_version,
        override_compatibility_check,
        downgrade,
    )
    if isinstance(action, NoAction):
        _echo(f"Plugin '{action.name}' is already installed with version {action.version}.", err=True)
        return False

    package = get_package(manifest)
    if not (yes_to_all or _prompt_confirm_install(manifest, package)):
        return False

    installed = manager.install(manifest, package, source)
    _echo(f"Plugin '{installed}' was installed successfully!")

    if manifest.description:
        _echo("\nDescription:")
        _echo(f"\t{manifest.description}")

    if manifest.homepage and urlparse(manifest.homepage).scheme == "https":
        _echo("\nHomepage:")
        _echo(f"\t{manifest.homepage}")

    return True
