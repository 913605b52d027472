#!/usr/bin/env python3
"""
GeoNames supply pipeline - command line entry point.

Usage:
    geonames-sync insert
    geonames-sync update --keep-files --without-translations
    geonames-sync status
"""

import sys
from datetime import datetime
from typing import Optional

import click
from loguru import logger
from rich.console import Console
from rich.table import Table
from sqlalchemy import func, inspect, select
from sqlalchemy.orm import Session

from geonames_sync.config import Settings, get_settings
from geonames_sync.database import Translation, create_db_engine, create_tables, make_session_factory
from geonames_sync.downloader import Downloader, DownloadService
from geonames_sync.exceptions import GeonamesError, UpdateError
from geonames_sync.kinds import EntityKind
from geonames_sync.services import SupplyService, UpdateWorkflow
from geonames_sync.suppliers import SupplyResult
from geonames_sync.translations import AlternateNamesUpdater
from geonames_sync.utils.logging import setup_logging


console = Console()


def open_session(settings: Settings) -> Session:
    """Create the tables of the enabled kinds and return a session."""
    engine = create_db_engine(settings.database.url, echo=settings.pipeline.log_level == "DEBUG")

    models = [kind.model for kind in settings.geonames.enabled_kinds()]
    if settings.geonames.translations and models:
        models.append(Translation)
    create_tables(engine, models)

    return make_session_factory(engine)()


def print_results(title: str, results: list[SupplyResult]) -> None:
    table = Table(title=title)
    table.add_column("Kind")
    table.add_column("Processed")
    table.add_column("Skipped")
    table.add_column("Inserted")
    table.add_column("Updated")
    table.add_column("Deleted")
    table.add_column("Duration")

    for result in results:
        duration = f"{result.duration_seconds:.1f}s" if result.duration_seconds is not None else "-"
        table.add_row(
            result.kind.plural,
            str(result.processed),
            str(result.skipped),
            str(result.inserted),
            str(result.updated),
            str(result.deleted),
            duration,
        )

    console.print(table)


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx, debug):
    """GeoNames supply pipeline"""
    settings = get_settings()
    setup_logging(
        level="DEBUG" if debug else settings.pipeline.log_level,
        log_file=settings.pipeline.log_file,
    )
    ctx.obj = settings


@cli.command()
@click.option("--keep-files", is_flag=True, help="Keep downloaded files after the run")
@click.option("--force-download", is_flag=True, help="Download files even if a local copy exists")
@click.pass_obj
def insert(settings: Settings, keep_files: bool, force_download: bool):
    """Download the GeoNames dump and supply every enabled entity kind."""
    console.print("\n[bold blue]GeoNames - Full Supply[/bold blue]")

    session = open_session(settings)
    download_service = DownloadService(settings, Downloader(settings))

    try:
        paths = download_service.download_main_source(force=force_download)
        country_info = download_service.download_country_info()

        results = SupplyService(session, settings).supply(paths, country_info)
        print_results("Supply Summary", results)

        if not keep_files:
            download_service.clean()
    except GeonamesError as e:
        console.print(f"[red]Supply failed: {e}[/red]")
        logger.exception("Supply failed")
        sys.exit(1)
    finally:
        session.close()

    console.print("[green]Supply had been completed.[/green]")


@cli.command()
@click.option("--keep-files", is_flag=True, help="Keep downloaded files after the run")
@click.option("--without-translations", is_flag=True, help="Skip the translations update")
@click.option("--date", "day", type=click.DateTime(formats=["%Y-%m-%d"]), default=None,
              help="Feed date (default: yesterday)")
@click.pass_obj
def update(settings: Settings, keep_files: bool, without_translations: bool, day: Optional[datetime]):
    """Make a daily update of the GeoNames database."""
    console.print("\n[bold blue]GeoNames - Daily Update[/bold blue]")

    session = open_session(settings)
    download_service = DownloadService(settings, Downloader(settings))

    workflow = UpdateWorkflow(
        settings,
        download_service=download_service,
        supply_service=SupplyService(session, settings),
        translation_updater=AlternateNamesUpdater(session, settings, download_service),
        keep_files=keep_files,
        without_translations=without_translations,
    )

    try:
        report = workflow.run(day.date() if day else None)
    except UpdateError as e:
        console.print(f"[red]Daily update failed at stage {e.stage.value}: {e.cause}[/red]")
        sys.exit(1)
    finally:
        session.close()

    print_results("Modifications", report.modifications)
    print_results("Deletes", report.deletes)
    console.print("[green]Daily update had been completed.[/green]")


@cli.command()
@click.pass_obj
def status(settings: Settings):
    """Show row counts of the stored entity kinds."""
    engine = create_db_engine(settings.database.url)
    inspector = inspect(engine)

    table = Table(title="GeoNames Store")
    table.add_column("Kind")
    table.add_column("Enabled")
    table.add_column("Rows")

    with make_session_factory(engine)() as session:
        for kind in EntityKind:
            enabled = settings.geonames.is_enabled(kind)
            if inspector.has_table(kind.model.__tablename__):
                rows = str(session.scalar(select(func.count()).select_from(kind.model)))
            else:
                rows = "[dim]no table[/dim]"
            table.add_row(kind.plural, "[green]yes[/green]" if enabled else "[dim]no[/dim]", rows)

    console.print(table)
    engine.dispose()


if __name__ == "__main__":
    cli()
