"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Any

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from workshop_cli.models.config import EngineConfig
from workshop_cli.models.outcome import FAILURE_OUTCOMES
from workshop_cli.models.summary import RunSummary
from workshop_cli.utils.formatting import OUTCOME_STYLE, format_duration

MAX_LISTED_FAILURES = 20


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "ConfigurationError": [
            "• Check the values in your configuration file.",
            "• Run `workshop-cli init --force` to write a fresh default file.",
            "• Run `workshop-cli validate` to see the effective settings.",
        ],
        "ItemSourceError": [
            "• Make sure the IDs file exists and is readable.",
            "• Pass the file explicitly: `workshop-cli download <IDS_FILE>`.",
        ],
        "ToolNotFoundError": [
            "• Install SteamCMD and make sure it is on your PATH.",
            "• Or set `tool_command` to its full path in the configuration file.",
        ],
        "ScriptWriteError": [
            "• Check that the scripts directory is writable.",
            "• Check the free disk space.",
        ],
        "ToolLaunchError": [
            "• Check that `tool_command` points to an executable file.",
            "• Check that the log directory is writable.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -vv for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    suggestion_text = Text("\n".join(suggestions))

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(suggestion_text)

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def print_config(config_path: Path, config_data: dict[str, Any]):
    """Displays the raw values of the configuration file."""
    console = Console()
    content = ""
    for key, value in sorted(config_data.items()):
        content += f"{key} = {value}\n"

    console.print(
        Panel(
            content.strip() or "[dim](empty)[/dim]",
            title=f"Configuration ([dim]{config_path}[/dim])",
            border_style="cyan",
        )
    )


def print_validation_table(config: EngineConfig):
    """Displays a summary of the current settings."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()

    table.add_row("SteamCMD:", f"[green]{config.tool_command}[/green]")
    table.add_row("App ID:", config.app_id)
    table.add_row("IDs File:", f"[dim]{config.ids_file}[/dim]")
    table.add_row("Destination:", f"[dim]{config.shared_root}[/dim]")
    table.add_row(
        "Instances:",
        f"{config.max_instances} (retries: {config.retry_instances})",
    )
    table.add_row("Timeout per Item:", f"{config.base_timeout_per_item:g}s")
    table.add_row("Retry Passes:", str(config.max_retry_passes))
    table.add_row(
        "Rate-Limit Backoff:",
        f"{config.rate_limit_backoff:g}s (max {config.max_backoff:g}s)",
    )
    table.add_row(
        "Skip Existing:", "✓ Enabled" if config.skip_existing else "✗ Disabled"
    )

    console.print(
        Panel(
            table,
            title="[bold green]✓ Validated Settings[/bold green]",
            border_style="green",
        )
    )


def print_failed_ids(path: Path, ids: list[str]):
    console = Console()
    if not ids:
        console.print(f"[green]✓ No failed items recorded in '{path}'.[/green]")
        return
    console.print(f"[bold]{len(ids)} failed items[/bold] [dim]({path})[/dim]")
    for item_id in ids:
        console.print(item_id)


def print_summary_panel(summary: RunSummary, report_path: Path | None = None):
    """Displays the final summary of the download run."""
    console = Console()

    stats_table = Table(show_header=False, box=None, padding=(0, 2))
    stats_table.add_column(style="bold cyan", justify="right", width=22)
    stats_table.add_column(style="white", justify="left")

    stats_table.add_row("Total IDs:", str(summary.total_ids))
    stats_table.add_row(
        "✓ Downloaded:", f"[bold green]{summary.succeeded}[/bold green]"
    )
    if summary.skipped:
        stats_table.add_row("○ Skipped:", f"[yellow]{summary.skipped}[/yellow]")

    for outcome in FAILURE_OUTCOMES:
        count = summary.counts.get(outcome, 0)
        if count:
            style = OUTCOME_STYLE[outcome]
            stats_table.add_row(
                f"✗ {outcome.value}:", f"[{style}]{count}[/{style}]"
            )
    if summary.discrepancies:
        stats_table.add_row(
            "⚠ Discrepancies:", f"[yellow]{len(summary.discrepancies)}[/yellow]"
        )

    stats_table.add_row("", "")  # Spacer
    stats_table.add_row("Passes:", str(summary.passes_run))
    stats_table.add_row(
        "Time Elapsed:", f"[blue]{format_duration(summary.duration_s)}[/blue]"
    )
    if report_path:
        stats_table.add_row("Report:", f"[dim]{report_path}[/dim]")

    if summary.failures:
        title = "[bold]Finished with failures[/bold]"
        border_color = "red"
    else:
        title = "[bold]Download Complete![/bold]"
        border_color = "green"

    console.print()
    console.print(
        Panel(
            stats_table,
            title=title,
            border_style=border_color,
            box=box.DOUBLE,
            expand=False,
            padding=(1, 2),
        )
    )

    if summary.failures:
        failed = Table(box=box.SIMPLE, title="Failed Items", title_style="bold red")
        failed.add_column("Item", style="cyan")
        failed.add_column("Outcome")
        for item_id, outcome in summary.failures[:MAX_LISTED_FAILURES]:
            style = OUTCOME_STYLE[outcome]
            failed.add_row(item_id, f"[{style}]{outcome.value}[/{style}]")
        console.print(failed)
        hidden = len(summary.failures) - MAX_LISTED_FAILURES
        if hidden > 0:
            console.print(f"[dim]... and {hidden} more (see the report).[/dim]")

    console.print()
