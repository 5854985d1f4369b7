"""Command-line interface for actual-installments."""

import asyncio
import dataclasses
import sys

import click

from actual_installments import app
from actual_installments.core import configuration, settings
from actual_installments.integration.base import RemoteCallError
from actual_installments.logger import get_logger, setup_logging

logger = get_logger(__name__)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.version_option(package_name="actual-installments")
def main(verbose: bool) -> None:
    """Link installment transactions in Actual Budget to monthly schedules."""
    setup_logging("DEBUG" if verbose else None)


@main.command()
@click.option("--budget-id", help="Budget sync ID (overrides ACTUAL_BUDGET_ID)")
@click.option(
    "--ignore-existing/--reuse-existing",
    default=None,
    help="Create a new schedule even if one with the same name exists",
)
@click.option(
    "--recompute-dates/--no-recompute-dates",
    default=None,
    help="Name schedules after the first and last month of the series",
)
@click.option(
    "--detect/--no-detect",
    default=None,
    help="Enable or disable installment detection",
)
def run(
    budget_id: str | None,
    ignore_existing: bool | None,
    recompute_dates: bool | None,
    detect: bool | None,
) -> None:
    """Create or reuse schedules and link every unscheduled installment transaction.

    Examples:
        actual-installments run
        actual-installments run --budget-id 1cfdbb80-... --no-recompute-dates
    """
    run_settings = settings.load_run_settings()
    overrides: dict[str, object] = {}
    if budget_id:
        overrides["budget_id"] = budget_id
    if ignore_existing is not None:
        overrides["ignore_existing"] = ignore_existing
    if recompute_dates is not None:
        overrides["recompute_dates"] = recompute_dates
    if detect is not None:
        overrides["detect_installments"] = detect
    run_settings = dataclasses.replace(run_settings, **overrides)

    settings.log_environment()
    try:
        report = asyncio.run(app.run(run_settings))
    except app.ConfigurationError as exc:
        click.echo(f"Configuration error: {exc}", err=True)
        sys.exit(1)
    except RemoteCallError as exc:
        click.echo(f"✗ Run aborted: {exc}", err=True)
        sys.exit(1)

    click.echo(f"✓ {report.summary()}")
    for transaction_id, reason in report.skipped:
        click.echo(f"  skipped {transaction_id}: {reason}")


@main.group()
def config() -> None:
    """Inspect or edit config.yaml."""


@config.command(name="init")
@click.option("--force", is_flag=True, help="Overwrite an existing file")
def config_init(force: bool) -> None:
    """Write a commented config.yaml template."""
    path, written = configuration.write_config_template(overwrite=force)
    if written:
        click.echo(f"Wrote {path}")
    else:
        click.echo(f"{path} already exists (use --force to overwrite)", err=True)
        sys.exit(1)


@config.command(name="set")
@click.argument("assignments", nargs=-1, required=True)
def config_set(assignments: tuple[str, ...]) -> None:
    """Set values in config.yaml, e.g. ``ACTUAL_BUDGET_ID=abc``."""
    values: dict[str, str] = {}
    for assignment in assignments:
        if "=" not in assignment:
            raise click.BadParameter(f"Expected KEY=VALUE, got '{assignment}'")
        key, value = assignment.split("=", 1)
        values[key.strip().upper()] = value

    errors, updates = configuration.apply_config_updates(values)
    if errors:
        for key, error in errors.items():
            click.echo(f"✗ {key}: {error}", err=True)
        sys.exit(1)
    for key in updates:
        click.echo(f"✓ {key} updated")


@config.command(name="show")
def config_show() -> None:
    """List every setting with its source; secrets are masked."""
    click.echo(f"Config file: {configuration.get_config_path()}")
    for key, value, source in configuration.describe_config():
        click.echo(f"  {key:<30} {value:<30} ({source})")


if __name__ == "__main__":
    main()
