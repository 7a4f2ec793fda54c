"""Converge CLI.

Runs a single reconciliation operation against one spec file.

Usage:
    converge get pool0.yaml          # Show current remote state
    converge reconcile pool0.yaml    # Create or update until converged
    converge delete pool0.yaml       # Delete, succeeding if already absent

Configuration is read from the environment (see Config.from_env).
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import click

from .clients import SecretlessViolationError, build_clients
from .config import Config, ConfigurationError
from .main import EXIT_FAILURE, EXIT_SECURITY, run_operation, setup_logging
from .service import ReconcileService
from .spec_loader import SpecLoadError, load_spec

SPEC_FILE = click.Path(exists=True, dir_okay=False, path_type=Path)


def _run(operation: str, spec_file: Path) -> int:
    try:
        config = Config.from_env()
    except ConfigurationError as e:
        click.echo(str(e), err=True)
        return EXIT_FAILURE

    try:
        spec = load_spec(
            spec_file,
            default_location=config.location,
            default_admin_username=config.default_admin_username,
        )
    except SpecLoadError as e:
        click.echo(str(e), err=True)
        return EXIT_FAILURE

    try:
        clients = build_clients(config)
    except SecretlessViolationError as e:
        click.echo(str(e), err=True)
        return EXIT_SECURITY

    service = ReconcileService(clients, config)
    return asyncio.run(run_operation(operation, spec, service, output=click.echo))


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="INFO",
    show_default=True,
    help="Log level for JSON logs on stdout.",
)
@click.version_option(package_name="azure-converge")
def cli(log_level: str) -> None:
    """Converge Azure resources onto declared specs."""
    setup_logging(log_level)


@cli.command()
@click.argument("spec_file", type=SPEC_FILE)
def get(spec_file: Path) -> None:
    """Show the current state of the resource described by SPEC_FILE."""
    sys.exit(_run("get", spec_file))


@cli.command()
@click.argument("spec_file", type=SPEC_FILE)
def reconcile(spec_file: Path) -> None:
    """Create or update the resource described by SPEC_FILE."""
    sys.exit(_run("reconcile", spec_file))


@cli.command()
@click.argument("spec_file", type=SPEC_FILE)
def delete(spec_file: Path) -> None:
    """Delete the resource described by SPEC_FILE."""
    sys.exit(_run("delete", spec_file))


def main() -> None:
    """Entry point for the converge CLI."""
    cli()


if __name__ == "__main__":
    main()
