"""spin-plugins CLI - Main entry point."""

import logging

import click

from spin_plugins import __version__

from .plugin_commands import install, list_plugins, search, uninstall, update, upgrade

_LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"
_HANDLER_NAME = "spin-plugins-console"


def _setup_logging(verbose: bool) -> None:
    """Configure a console log handler on the package logger."""
    package_logger = logging.getLogger("spin_plugins")
    package_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)

    if any(h.get_name() == _HANDLER_NAME for h in package_logger.handlers):
        return
    console = logging.StreamHandler()
    console.set_name(_HANDLER_NAME)
    console.setFormatter(logging.Formatter(_LOG_FORMAT))
    package_logger.addHandler(console)


@click.group()
@click.version_option(version=__version__, prog_name="spin-plugins")
@click.option("--verbose", is_flag=True, help="Show debug logging")
def cli(verbose):
    """spin-plugins - manage plugins for the Spin CLI.

    Plugins are discovered in the spin-plugins registry, checked against the
    running Spin version and platform, and installed into the local plugins
    directory.
    """
    _setup_logging(verbose)


cli.add_command(install)
cli.add_command(uninstall)
cli.add_command(upgrade)
cli.add_command(list_plugins)
cli.add_command(search)
cli.add_command(update)


if __name__ == "__main__":
    cli()
