"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of XTOT, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Command line interface for XTOT.
"""

import json
import logging
from pathlib import Path

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from xtot import __version__
from xtot.core.config import JiraConfig, LoggingConfig, TestomatioConfig, TestRailConfig, XrayConfig
from xtot.core.errors import ConfigurationError, FatalWriteFailure, SourceApiError
from xtot.core.logging import ErrorTracker
from xtot.document_converter import DocumentConverter
from xtot.jira_client import JiraClient
from xtot.migration import MigrationSummary, TestRailToTestomatioMigration, XrayToTestomatioMigration
from xtot.testomatio_client import TestomatioClient
from xtot.testrail_client import TestRailClient
from xtot.xray_client import XrayClient, XraySourceReader

console = Console()

app = typer.Typer(help="XTOT - Xray/TestRail to Testomat.io")
migrate_app = typer.Typer(help="Migrate test cases to Testomat.io")
app.add_typer(migrate_app, name="migrate")

logger = logging.getLogger("xtot")


def configure_app(debug: bool = False) -> None:
    """
    Load the .env file and configure logging.

    Args:
    ----
        debug: Whether to enable debug mode

    """
    load_dotenv()
    LoggingConfig.from_env().configure_logging(debug=debug)


@app.callback(invoke_without_command=True)
def callback(
    ctx: typer.Context,
    debug: bool = typer.Option(False, "--debug", help="Enable debug mode with verbose logging"),
    version: bool = typer.Option(False, "--version", help="Show the application version and exit"),
):
    """
    XTOT - A tool for migrating test cases from Xray and TestRail to Testomat.io.

    Credentials are read from the environment or a .env file.
    """
    if version:
        console.print(f"XTOT version: {__version__}")
        raise typer.Exit()

    configure_app(debug=debug)
    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


def _progress() -> Progress:
    return Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        TimeElapsedColumn(),
        console=console,
    )


def print_summary(summary: MigrationSummary, error_tracker: ErrorTracker, title: str) -> None:
    """Print the counts of a finished run and the diagnostics per category."""
    table = Table(title=title)
    table.add_column("Item")
    table.add_column("Count")
    for item, count in summary.as_dict().items():
        table.add_row(item.replace("_", " ").title(), str(count))
    console.print(table)

    if error_tracker.has_errors():
        errors = Table(title="Diagnostics")
        errors.add_column("Category")
        errors.add_column("Count")
        for category, count in error_tracker.get_error_summary()["error_types"].items():
            errors.add_row(category, str(count))
        console.print(errors)


@migrate_app.command("xray")
def migrate_xray(
    folder_id: str | None = typer.Option(
        None, "--folder-id", help="Only migrate this Xray folder and its sub-folders"
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Read everything but write nothing"),
    workers: int = typer.Option(1, "--workers", min=1, help="Parallel suite creations"),
):
    """
    Migrate an Xray test repository to Testomat.io.
    """
    try:
        jira_config = JiraConfig.from_env()
        xray_config = XrayConfig.from_env(folder_id=folder_id)
        testomatio_config = TestomatioConfig.from_env(dry_run=dry_run or None)

        error_tracker = ErrorTracker()
        jira = JiraClient(jira_config, DocumentConverter(error_tracker), error_tracker)
        reader = XraySourceReader(XrayClient(xray_config, jira), jira)
        writer = TestomatioClient(testomatio_config)

        console.print(f"Migrating Xray project {jira_config.project_key} to {testomatio_config.project}")
        with _progress() as progress:
            migration = XrayToTestomatioMigration(
                reader,
                writer,
                jira,
                folder_id=xray_config.folder_id,
                error_tracker=error_tracker,
                max_workers=workers,
                progress=progress,
            )
            summary = migration.run()

        print_summary(summary, error_tracker, "Xray Migration Summary")
        console.print("\n✅ Migration completed", style="green")

    except (ConfigurationError, FatalWriteFailure, SourceApiError) as e:
        console.print(f"Error: {e}", style="red")
        logger.exception("Xray migration failed")
        raise typer.Exit(code=1)


@migrate_app.command("testrail")
def migrate_testrail(
    suite_id: int | None = typer.Option(None, "--suite-id", help="Only migrate this TestRail suite"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Read everything but write nothing"),
    workers: int = typer.Option(1, "--workers", min=1, help="Parallel suite creations"),
):
    """
    Migrate TestRail suites and cases to Testomat.io.
    """
    try:
        testrail_config = TestRailConfig.from_env()
        testomatio_config = TestomatioConfig.from_env(dry_run=dry_run or None)

        error_tracker = ErrorTracker()
        client = TestRailClient(testrail_config)
        writer = TestomatioClient(testomatio_config)

        console.print(
            f"Migrating TestRail project {testrail_config.project_id} to {testomatio_config.project}"
        )
        with _progress() as progress:
            migration = TestRailToTestomatioMigration(
                client,
                writer,
                suite_id=suite_id,
                error_tracker=error_tracker,
                max_workers=workers,
                progress=progress,
            )
            summary = migration.run()

        print_summary(summary, error_tracker, "TestRail Migration Summary")
        console.print("\n✅ Migration completed", style="green")

    except (ConfigurationError, FatalWriteFailure, SourceApiError) as e:
        console.print(f"Error: {e}", style="red")
        logger.exception("TestRail migration failed")
        raise typer.Exit(code=1)


@app.command("convert")
def convert_document(
    document_path: Path = typer.Argument(..., help="Path to a JSON structured document"),
):
    """
    Convert a structured (ADF) document to markdown and print it.
    """
    try:
        document = json.loads(document_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        console.print(f"Error: {e}", style="red")
        raise typer.Exit(code=1)

    converter = DocumentConverter()
    markdown = converter.convert(document)
    if markdown is None:
        console.print("Error: the document could not be converted", style="red")
        raise typer.Exit(code=1)

    typer.echo(markdown)
    for mark in sorted(converter.warnings):
        console.print(f"Unsupported mark: {mark}", style="yellow")
    for kind in sorted(converter.unknown_kinds):
        console.print(f"Unknown node skipped: {kind}", style="yellow")


if __name__ == "__main__":
    app()
