"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.errors import MarkupError
from rich.logging import RichHandler
from rich.text import Text

from workshop_cli import __version__
from workshop_cli.core.pass_controller import PassController
from workshop_cli.exceptions import ToolNotFoundError
from workshop_cli.models.config import EngineConfig
from workshop_cli.models.summary import RunSummary
from workshop_cli.storage.config_manager import ConfigManager
from workshop_cli.storage.item_source import load_identifiers
from workshop_cli.storage.report import write_report
from workshop_cli.storage.retry_state import FailedIdsFile
from workshop_cli.utils.structured_logger import StructuredLogger

from .formatters import (
    print_config,
    print_failed_ids,
    print_summary_panel,
    print_validation_table,
)
from .progress_manager import ProgressManager

console = Console()

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            show_level=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("workshop_cli")

app = typer.Typer(
    name="workshop-cli",
    help=(
        "Downloads Steam Workshop items with several isolated SteamCMD instances"
        " and retries failures. Use 'workshop-cli <command> --help' for more info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)

DEFAULT_CONFIG_FILE = Path("workshop-cli.ini")
MAIN_LOG_NAME = "main.log"
EXIT_INTERRUPTED = 130


class PlainFormatter(logging.Formatter):
    """Strips Rich markup so the session log file stays readable."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        try:
            return Text.from_markup(message).plain
        except MarkupError:
            return message


def _config_file(ctx: typer.Context) -> Path:
    return ctx.ensure_object(dict).get("config_file", DEFAULT_CONFIG_FILE)


def _attach_session_log(log_dir: Path) -> logging.Handler:
    """Mirrors the application log into ``<log_dir>/main.log`` for this run."""
    log_dir.mkdir(parents=True, exist_ok=True)
    path = log_dir / MAIN_LOG_NAME
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(
        PlainFormatter("%(asctime)s [%(levelname)s] %(message)s", "%Y-%m-%d %H:%M:%S")
    )
    log.addHandler(handler)
    return handler


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-vv for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
    config_file: Path = typer.Option(  # noqa: B008
        DEFAULT_CONFIG_FILE,
        "--config",
        "-c",
        help="Path to the INI configuration file.",
    ),
    show_config: bool = typer.Option(
        False, "--show-config", help="Display the current configuration."
    ),
):
    """Steam Workshop Downloader CLI"""
    if version:
        console.print(f"[bold]workshop-cli[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    log_level = "INFO"
    if verbose >= 2:
        log_level = "DEBUG"
    log.setLevel(log_level)

    ctx.ensure_object(dict)["config_file"] = config_file

    if show_config:
        if not config_file.is_file():
            console.print(
                "[red]✗ Config file not found.[/] Run [cyan]workshop-cli init[/cyan]"
                " first."
            )
            raise typer.Exit(code=1)
        config_data = ConfigManager(config_file).get_config_as_dict()
        print_config(config_file, config_data)
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def init(
    ctx: typer.Context,
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing file without asking."
    ),
):
    """Write a configuration file with the default settings."""
    config_file = _config_file(ctx)
    if (
        config_file.exists()
        and not force
        and not typer.confirm("Configuration file already exists. Overwrite it?")
    ):
        raise typer.Abort()

    ConfigManager(config_file).save_new_config()
    console.print(f"\n[bold green]✓ Configuration saved to '{config_file}'[/bold green]")
    console.print(
        "Point [cyan]tool_command[/cyan] at SteamCMD, then try: "
        "[cyan]workshop-cli download[/cyan]"
    )


@app.command()
def validate(ctx: typer.Context):
    """Validate the current configuration."""
    config = ConfigManager(_config_file(ctx)).load_config()
    print_validation_table(config)
    try:
        PassController(config).preflight()
    except ToolNotFoundError as e:
        console.print(f"[yellow]⚠ {e}[/yellow]")
        raise typer.Exit(code=1) from e
    console.print("[green]✓[/] SteamCMD executable found.")


@app.command()
def failed(ctx: typer.Context):
    """Show the item IDs that failed in the last run."""
    config = ConfigManager(_config_file(ctx)).load_config()
    path = config.path("failed_ids_file")
    print_failed_ids(path, FailedIdsFile(path).load())


async def _run_engine(
    config: EngineConfig, all_ids: list[str], only_ids: list[str] | None
) -> RunSummary:
    with StructuredLogger(
        "workshop_cli", log_dir=config.path("log_dir"), enable_json=config.json_events
    ) as events:
        events.set_session_context(app_id=config.app_id, version=__version__)
        async with ProgressManager(
            console=console, enabled=console.is_terminal
        ) as progress:
            controller = PassController(config, progress=progress, events=events)
            items = controller.plan(all_ids, config.skip_existing, only_ids)
            progress.initialize_session(len(all_ids))
            return await controller.run(items, all_ids)


def _save_results(config: EngineConfig, summary: RunSummary) -> Path:
    failed_path = config.path("failed_ids_file")
    try:
        saved = FailedIdsFile(failed_path).save(summary.failed_ids)
    except OSError as e:
        log.error(f"[red]Could not write {failed_path}: {e}[/red]")
    else:
        if saved:
            log.info(f"Saved {saved} failed IDs to [dim]{failed_path}[/dim]")
        else:
            log.info(f"No failures; cleared [dim]{failed_path}[/dim]")

    report_path = config.path("report_file")
    if write_report(report_path, summary):
        log.info(f"Report written to [dim]{report_path}[/dim]")
    return report_path


@app.command(name="download")
def download_command(
    ctx: typer.Context,
    ids_file: Path | None = typer.Argument(  # noqa: B008
        None, help="JSON or text file with workshop item IDs (default from config)."
    ),
    instances: int | None = typer.Option(
        None,
        "-n",
        "--instances",
        help="Number of parallel SteamCMD instances (1-16).",
    ),
    skip_existing: bool | None = typer.Option(
        None,
        "--skip-existing/--no-skip-existing",
        help="Skip items whose files are already in the destination.",
    ),
    only_failed: bool | None = typer.Option(
        None,
        "--only-failed/--all",
        help="Only download the items that failed in the previous run.",
    ),
    retries: int | None = typer.Option(
        None, "--retries", help="Maximum number of retry passes (0-10)."
    ),
    timeout_per_item: float | None = typer.Option(
        None,
        "--timeout-per-item",
        help="Seconds of instance runtime budgeted per item.",
    ),
    json_events: bool | None = typer.Option(
        None,
        "--json-events/--no-json-events",
        help="Write structured JSONL events to the log directory.",
    ),
):
    """Download workshop items."""
    cli_options = {
        key: value
        for key, value in {
            "ids_file": str(ids_file) if ids_file else None,
            "max_instances": instances,
            "skip_existing": skip_existing,
            "only_failed": only_failed,
            "max_retry_passes": retries,
            "base_timeout_per_item": timeout_per_item,
            "json_events": json_events,
        }.items()
        if value is not None
    }

    config = ConfigManager(_config_file(ctx)).load_config(cli_options)
    handler = _attach_session_log(config.path("log_dir"))
    try:
        exit_code = _download(config)
    finally:
        log.removeHandler(handler)
        handler.close()

    if exit_code:
        raise typer.Exit(code=exit_code)


def _download(config: EngineConfig) -> int:
    """Runs one download session and returns the process exit code."""
    all_ids = load_identifiers(config.path("ids_file"))
    log.info(f"Loaded {len(all_ids)} unique IDs from [dim]{config.ids_file}[/dim]")
    if not all_ids:
        console.print("[yellow]⚠️  No workshop IDs found. Nothing to do.[/yellow]")
        return 0

    only_ids = None
    if config.only_failed:
        only_ids = FailedIdsFile(config.path("failed_ids_file")).load()
        if not only_ids:
            console.print(
                "[yellow]⚠️  No previously failed IDs recorded. Nothing to do.[/yellow]"
            )
            return 0

    console.print("[bold cyan]Starting download session...[/bold cyan]")
    try:
        summary = asyncio.run(_run_engine(config, all_ids, only_ids))
    except KeyboardInterrupt:
        console.print("\n[yellow]⚠️  Download interrupted, instances stopped.[/yellow]")
        return EXIT_INTERRUPTED

    report_path = _save_results(config, summary)
    print_summary_panel(summary, report_path)

    return summary.exit_code
