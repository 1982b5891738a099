"""
Manages a Rich Live display for a download run.
Shows the current pass, overall completion, per-category counters and the
state of every worker slot, sampled from the result store.
"""

import asyncio
import logging
from datetime import datetime

from rich.console import Console
from rich.layout import Layout
from rich.live import Live
from rich.panel import Panel
from rich.progress import BarColumn, Progress, TaskID, TextColumn, TimeElapsedColumn
from rich.table import Table
from rich.text import Text

from workshop_cli.models.outcome import Outcome
from workshop_cli.utils.formatting import OUTCOME_SHORT, OUTCOME_STYLE, format_duration

log = logging.getLogger(__name__)

SLOT_STATE_STYLE = {
    "starting": "dim",
    "running": "cyan",
    "completed": "green",
    "hard_timeout": "red",
    "reconciled": "green",
    "abandoned": "red",
}


class ProgressManager:
    """
    Renders the live run view. When disabled (non-interactive output), every
    update is a no-op and the regular log lines are the only output.
    """

    def __init__(self, console: Console, enabled: bool = True):
        self.console = console
        self.enabled = enabled

        self.overall_progress = Progress(
            TextColumn("[bold blue]{task.description}"),
            BarColumn(bar_width=40),
            "[progress.percentage]{task.percentage:>3.0f}%",
            TextColumn("{task.completed}/{task.total}"),
            TimeElapsedColumn(),
            console=console,
        )

        self._live: Live | None = None
        self._layout: Layout | None = None
        self._overall_task_id: TaskID | None = None
        self._start_time: datetime | None = None

        self._pass = {"number": 0, "total": 0, "items": 0, "slots": 0}
        self._counts: dict[Outcome, int] = {}
        self._slot_states: dict[int, str] = {}

    def _create_layout(self) -> Layout:
        layout = Layout()
        layout.split_column(
            Layout(name="header", size=3),
            Layout(name="stats", size=8),
            Layout(name="slots", ratio=1),
        )
        return layout

    def _generate_header(self) -> Panel:
        elapsed = 0.0
        if self._start_time:
            elapsed = (datetime.now() - self._start_time).total_seconds()
        header_text = Text()
        header_text.append("Workshop Downloader ", style="bold cyan")
        header_text.append("│ ", style="dim")
        header_text.append(f"Session: {format_duration(elapsed)}", style="yellow")
        if self._pass["number"]:
            header_text.append(" │ ", style="dim")
            header_text.append(
                f"Pass {self._pass['number']}/{self._pass['total']}", style="magenta"
            )
        return Panel(header_text, border_style="cyan")

    def _generate_stats_panel(self) -> Panel:
        stats_table = Table.grid(padding=(0, 2))
        for _ in range(4):
            stats_table.add_column()

        cells = []
        for outcome in Outcome:
            if outcome is Outcome.UNKNOWN:
                continue
            style = OUTCOME_STYLE[outcome]
            cells.append(f"[bold]{OUTCOME_SHORT[outcome]}[/bold]")
            cells.append(f"[{style}]{self._counts.get(outcome, 0)}[/{style}]")
            if len(cells) == 4:
                stats_table.add_row(*cells)
                cells = []
        if cells:
            stats_table.add_row(*cells, *([""] * (4 - len(cells))))

        combined = Table.grid()
        combined.add_row(stats_table)
        combined.add_row("")
        if self._overall_task_id is not None:
            combined.add_row(self.overall_progress)
        return Panel(combined, title="[bold]Run Statistics[/bold]", border_style="blue")

    def _generate_slots_panel(self) -> Panel:
        if not self._slot_states:
            return Panel(
                Text("Waiting for instances to start...", style="dim italic"),
                title="[bold]Instances[/bold]",
                border_style="green",
            )
        table = Table.grid(padding=(0, 2))
        table.add_column(style="bold cyan")
        table.add_column()
        for slot, state in sorted(self._slot_states.items()):
            style = SLOT_STATE_STYLE.get(state, "white")
            table.add_row(f"T{slot}", f"[{style}]{state}[/{style}]")
        return Panel(
            table,
            title=f"[bold]Instances ({len(self._slot_states)})[/bold]",
            border_style="green",
        )

    def _update_display(self):
        if not self.enabled or not self._layout:
            return
        self._layout["header"].update(self._generate_header())
        self._layout["stats"].update(self._generate_stats_panel())
        self._layout["slots"].update(self._generate_slots_panel())

    def initialize_session(self, total_items: int):
        self._start_time = datetime.now()
        if self.enabled:
            self._overall_task_id = self.overall_progress.add_task(
                "Overall Progress", total=total_items, start=True
            )
        self._update_display()

    def start_pass(self, pass_number: int, total_passes: int, items: int, slots: int):
        self._pass = {
            "number": pass_number,
            "total": total_passes,
            "items": items,
            "slots": slots,
        }
        self._slot_states = dict.fromkeys(range(slots), "starting")
        self._update_display()

    def update(
        self,
        counts: dict[Outcome, int],
        processed: int,
        total: int,
        slot_states: dict[int, str],
    ):
        self._counts = counts
        self._slot_states = slot_states
        if self.enabled and self._overall_task_id is not None:
            self.overall_progress.update(
                self._overall_task_id, completed=processed, total=total
            )
        self._update_display()

    async def __aenter__(self):
        if not self.enabled:
            return self
        self._layout = self._create_layout()
        self._update_display()
        self._live = Live(
            self._layout,
            console=self.console,
            refresh_per_second=4,
            vertical_overflow="visible",
        )
        self._live.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._live and self.enabled:
            await asyncio.sleep(0.2)
            self._live.stop()
