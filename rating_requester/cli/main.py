"""
CLI interface for the rating requester.

Inspects and drives the rating ledger from a terminal.
"""

import asyncio
import logging
import sys
from dataclasses import dataclass
from typing import Optional

import typer
import yaml
from rich.console import Console
from rich.table import Table

from rating_requester.config.loader import (
    ConfigurationError,
    RatingConfig,
    build_rating_config,
    describe_config,
    load_rating_config,
)
from rating_requester.core.prompt import PromptOutcome, RatingRequester, UsageKind
from rating_requester.core.timing import should_prompt
from rating_requester.platform.console import ConsoleDialogPresenter, ConsoleLinkOpener
from rating_requester.storage.db import DEFAULT_DB_PATH
from rating_requester.storage.ledger import (
    RatingsLedger,
    SQLiteKeyValueStore,
    StorageError,
    initialize_schema,
)
from rating_requester.storage.models import LedgerSnapshot

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1


@dataclass
class CLIState:
    db_path: str
    config_path: Optional[str]
    ios_store_id: Optional[str]
    android_store_id: Optional[str]
    platform: str


def _load_config(state: CLIState) -> RatingConfig:
    if state.config_path:
        return load_rating_config(state.config_path, state.ios_store_id, state.android_store_id)
    return build_rating_config(state.ios_store_id, state.android_store_id)


def _build_requester(state: CLIState) -> RatingRequester:
    config = _load_config(state)
    return RatingRequester(
        config.store_ids.ios,
        config.store_ids.android,
        config,
        ledger=RatingsLedger(SQLiteKeyValueStore(state.db_path)),
        presenter=ConsoleDialogPresenter(console),
        link_opener=ConsoleLinkOpener(console),
        platform=state.platform,
    )


def _format_timestamp(value) -> str:
    return value.isoformat(sep=" ", timespec="seconds") if value else "[dim]never[/]"


def _display_snapshot(snapshot: LedgerSnapshot) -> None:
    table = Table(title="Rating Ledger")
    table.add_column("Key")
    table.add_column("Value", justify="right")
    table.add_row("ratedAt", _format_timestamp(snapshot.rated_at))
    table.add_row("declinedAt", _format_timestamp(snapshot.declined_at))
    table.add_row("lastSeenAt", _format_timestamp(snapshot.last_seen_at))
    table.add_row("usesCount", str(snapshot.uses_count))
    table.add_row("eventCount", str(snapshot.event_count))
    console.print(table)


def _display_outcome(outcome: Optional[PromptOutcome]) -> None:
    if outcome is None:
        console.print("[dim]Not eligible yet, no prompt shown[/]")
    else:
        console.print(f"[bold]Prompt outcome:[/bold] {outcome.value}")


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    db_path: str = typer.Option(DEFAULT_DB_PATH, "--db", help="Path to the ledger database"),
    config_path: Optional[str] = typer.Option(
        None, "--config", "-c", help="YAML rating configuration"
    ),
    ios_store_id: Optional[str] = typer.Option(None, "--ios-id", help="App Store id"),
    android_store_id: Optional[str] = typer.Option(None, "--android-id", help="Google Play id"),
    platform: str = typer.Option("ios", "--platform", "-p", help="ios or android"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Rating requester CLI."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    ctx.obj = CLIState(db_path, config_path, ios_store_id, android_store_id, platform)
    if ctx.invoked_subcommand is None:
        console.print("Rating Requester - Use --help to see available commands")


@app.command()
def init(ctx: typer.Context):
    """Initialize the ledger database."""
    try:
        initialize_schema(ctx.obj.db_path)
        console.print(f"[green]✓[/] Ledger initialized at {ctx.obj.db_path}")
        sys.exit(EXIT_CODE_PASS)
    except StorageError as e:
        console.print(f"[red]Error initializing ledger:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def status(ctx: typer.Context):
    """Show the ledger and whether a prompt would be shown now."""
    try:
        ledger = RatingsLedger(SQLiteKeyValueStore(ctx.obj.db_path))
        snapshot = asyncio.run(ledger.read_all())
        _display_snapshot(snapshot)

        if ctx.obj.config_path or (ctx.obj.ios_store_id and ctx.obj.android_store_id):
            config = _load_config(ctx.obj)
            for key, value in describe_config(config).items():
                console.print(f"{key}: {value}")
            eligible = should_prompt(config, snapshot)
            verdict = "[green]eligible[/]" if eligible else "[yellow]not eligible[/]"
            console.print(f"\n[bold]Prompt:[/bold] {verdict}")
        sys.exit(EXIT_CODE_PASS)
    except (ConfigurationError, StorageError, FileNotFoundError, yaml.YAMLError) as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


def _run_usage(ctx: typer.Context, kind: UsageKind) -> None:
    try:
        requester = _build_requester(ctx.obj)
        outcome = asyncio.run(requester.record_usage_event(kind))
        _display_outcome(outcome)
        sys.exit(EXIT_CODE_PASS)
    except (ConfigurationError, StorageError, FileNotFoundError, yaml.YAMLError) as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def use(ctx: typer.Context):
    """Record an app use and prompt if eligible."""
    _run_usage(ctx, UsageKind.USE)


@app.command()
def event(ctx: typer.Context):
    """Record a positive interaction and prompt if eligible."""
    _run_usage(ctx, UsageKind.POSITIVE_INTERACTION)


@app.command()
def prompt(ctx: typer.Context):
    """Run a prompt cycle now, ignoring the timing policy."""
    try:
        requester = _build_requester(ctx.obj)
        outcome = asyncio.run(requester.show_rating_dialog())
        _display_outcome(outcome)
        sys.exit(EXIT_CODE_PASS)
    except (ConfigurationError, StorageError, FileNotFoundError, yaml.YAMLError) as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def reset(ctx: typer.Context):
    """Reset the usage counters. Timestamps are kept."""
    try:
        ledger = RatingsLedger(SQLiteKeyValueStore(ctx.obj.db_path))
        asyncio.run(ledger.reset_counters())
        console.print("[green]✓[/] Counters reset")
        sys.exit(EXIT_CODE_PASS)
    except StorageError as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


if __name__ == "__main__":
    app()
