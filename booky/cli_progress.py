"""Console rendering and progress helpers for the booky CLI."""
from __future__ import annotations

import itertools
import time
from typing import Any, Dict, Iterable, List, Optional, Tuple

from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from .models import QueueItem, QueueStatus, SourceFile
from .protocols import INotificationSink

console = Console()

_STATUS_STYLE = {
    QueueStatus.QUEUED: "dim",
    QueueStatus.UPLOADING: "cyan",
    QueueStatus.COMPLETED: "green",
    QueueStatus.ERROR: "red",
}


def _human_size(value: int) -> str:
    size = float(max(value, 0))
    units = ["B", "KB", "MB", "GB", "TB"]
    unit_idx = 0
    while size >= 1024.0 and unit_idx < len(units) - 1:
        size /= 1024.0
        unit_idx += 1
    if unit_idx == 0:
        return f"{int(size)} {units[unit_idx]}"
    return f"{size:.2f} {units[unit_idx]}"


def _parse_percent(description: str) -> Optional[int]:
    text = (description or "").strip()
    if not text.endswith("%"):
        return None
    try:
        return int(float(text[:-1]))
    except ValueError:
        return None


def render_configuration_summary(config: Dict[str, Any]) -> None:
    """Render startup configuration summary."""
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column(style="white")

    for key, value in config.items():
        rendered = "-" if value is None else str(value)
        table.add_row(key, rendered)

    panel = Panel(
        table,
        title="[bold green]booky-up[/bold green]",
        subtitle="[dim]ProperBooky uploader[/dim]",
        border_style="blue",
    )
    console.print(panel)


def render_rejections(rejected: Iterable[Tuple[SourceFile, str]]) -> None:
    for file, reason in rejected:
        console.print(f"[red]Rejected:[/red] {file.name} - {reason}")


def render_queue(items: List[QueueItem]) -> None:
    """Render final per-item status table."""
    table = Table(title="Upload queue", expand=False)
    table.add_column("File", style="bold")
    table.add_column("Size", justify="right")
    table.add_column("Status")
    table.add_column("Progress", justify="right")
    table.add_column("Detail", overflow="fold")

    for item in items:
        style = _STATUS_STYLE[item.status]
        detail = item.error or (item.result.file_url if item.result else "")
        table.add_row(
            item.name,
            _human_size(item.source.size),
            f"[{style}]{item.status.value}[/{style}]",
            f"{item.progress}%",
            detail,
        )
    console.print(table)


class ConsoleNotificationSink(INotificationSink):
    """
    Notification sink drawing rich progress bars.

    A message whose description is a percentage ("42%") becomes a bar; any
    other message is printed as a timeline line.
    """

    def __init__(self):
        self._ids = itertools.count(1)
        self._tasks: Dict[str, TaskID] = {}
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold cyan]{task.description}", justify="left"),
            BarColumn(bar_width=42),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            TimeElapsedColumn(),
            expand=False,
            console=console,
        )
        self._live: Optional[Live] = None

    def _start_live(self) -> None:
        if self._live is not None:
            return
        self._live = Live(
            self._progress,
            console=console,
            refresh_per_second=8,
            vertical_overflow="visible",
        )
        self._live.start()

    def stop(self) -> None:
        if self._live is None:
            return
        self._live.stop()
        self._live = None

    def _timeline(self, title: str, description: str, variant: str) -> None:
        stamp = time.strftime("%H:%M:%S")
        color = "red" if variant == "destructive" else "green"
        suffix = f" - {description}" if description else ""
        console.print(f"[dim]{stamp}[/dim] [{color}]{title}[/{color}]{suffix}")

    def show(self, title, description="", variant="default", duration=None) -> str:
        handle = f"toast-{next(self._ids)}"
        percent = _parse_percent(description)
        if percent is None:
            self._timeline(title, description, variant)
            return handle
        self._start_live()
        self._tasks[handle] = self._progress.add_task(title[:60], total=100, completed=percent)
        return handle

    def update(self, handle, title, description="", variant="default", duration=None) -> None:
        task_id = self._tasks.get(handle)
        percent = _parse_percent(description)
        if task_id is None:
            self._timeline(title, description, variant)
            return
        if percent is not None and percent < 100:
            self._progress.update(task_id, description=title[:60], completed=percent)
            return
        self._progress.update(task_id, completed=100)
        self.dismiss(handle)
        self._timeline(title, "", variant)

    def dismiss(self, handle) -> None:
        task_id = self._tasks.pop(handle, None)
        if task_id is not None:
            self._progress.remove_task(task_id)
        if not self._tasks:
            self.stop()
