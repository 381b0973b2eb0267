"""
Command-line entry point.

    ambient-sync sync
    ambient-sync backfill --both --from 2025-12-29 --to 2026-01-01 --yes
    ambient-sync status
"""

import asyncio
from typing import List

import click

from .core.config import CLUSTER_NAMES, PRODUCTION, STAGING, settings
from .core.exceptions import BackfillValidationError, ConfirmationUnavailableError, SyncAbortedError
from .core.logging_config import new_run_id, setup_logging
from .dependencies import (
    build_backfill_orchestrator,
    build_cluster_clients,
    build_inspector,
    build_synchronizer,
    close_clusters,
)
from .domain.results import BackfillReport, ClusterStatus, SyncReport, format_epoch
from .services import TerminalConfirmation, auto_confirm, validate_backfill_args


def _echo_results(report) -> None:
    for result in report.results:
        line = f"  {result.cluster:<11} {result.status.value}"
        if result.status == ClusterStatus.SUCCESS and result.imperial is not None:
            line += f"  count: {result.count}"
            errors = len(result.imperial.errored_documents)
            if result.metric is not None:
                errors += len(result.metric.errored_documents)
            if errors:
                line += f"  rejected: {errors}"
        if result.reason:
            line += f"  ({result.reason})"
        click.echo(line)


def _selected_clusters(prod: bool, staging: bool, both: bool) -> List[str]:
    if both or not (prod or staging):
        return list(CLUSTER_NAMES)
    return [PRODUCTION] if prod else [STAGING]


@click.group()
@click.option("--log-level", default=None, help="Override LOG_LEVEL (DEBUG, INFO, WARNING, ERROR).")
def cli(log_level) -> None:
    """Ambient Weather to Elasticsearch synchronization."""
    setup_logging(
        log_level=log_level or settings.LOG_LEVEL,
        environment=settings.ENVIRONMENT,
        log_file=settings.LOG_FILE,
    )
    new_run_id()


@cli.command()
def sync() -> None:
    """Fetch new readings and index them into production and staging."""

    async def _run() -> SyncReport:
        synchronizer = build_synchronizer()
        try:
            return await synchronizer.run_live()
        finally:
            await close_clusters(synchronizer.clusters)

    try:
        report = asyncio.run(_run())
    except SyncAbortedError as e:
        raise click.ClickException(e.message)

    click.echo(f"Sync {report.outcome.replace('_', ' ')}: {report.fetched} readings fetched")
    _echo_results(report)


@cli.command()
@click.option("--prod", is_flag=True, help="Backfill production only.")
@click.option("--staging", is_flag=True, help="Backfill staging only.")
@click.option("--both", is_flag=True, help="Backfill production, then staging.")
@click.option("--from", "from_date", default=None, help="Window start, YYYY-MM-DD (UTC).")
@click.option("--to", "to_date", default=None, help="Window end, YYYY-MM-DD (UTC).")
@click.option("--yes", "-y", "assume_yes", is_flag=True, help="Skip confirmation prompts.")
def backfill(prod, staging, both, from_date, to_date, assume_yes) -> None:
    """Locate and fill a missing range of readings."""
    try:
        request = validate_backfill_args(prod, staging, both, from_date, to_date)
    except BackfillValidationError as e:
        raise click.ClickException(e.message)

    confirm = auto_confirm if assume_yes else TerminalConfirmation()
    if not assume_yes and not confirm.is_tty():
        raise click.ClickException(ConfirmationUnavailableError().message)

    async def _run() -> BackfillReport:
        orchestrator = build_backfill_orchestrator(request.clusters, confirm=confirm)
        try:
            return await orchestrator.run(request.from_epoch, request.to_epoch)
        finally:
            await close_clusters(orchestrator.clusters)

    report = asyncio.run(_run())
    click.echo(f"Backfill {format_epoch(report.from_epoch)} -> {format_epoch(report.to_epoch)} ({report.mode})")
    _echo_results(report)


@cli.command()
@click.option("--prod", is_flag=True, help="Production only.")
@click.option("--staging", is_flag=True, help="Staging only.")
@click.option("--both", is_flag=True, help="Both clusters (default).")
def status(prod, staging, both) -> None:
    """Show reachability, write indices, latest readings and counts."""

    async def _run():
        clusters = build_cluster_clients(_selected_clusters(prod, staging, both))
        try:
            return await build_inspector().inspect_all(clusters)
        finally:
            await close_clusters(clusters)

    for report in asyncio.run(_run()):
        for line in report.lines():
            click.echo(line)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
