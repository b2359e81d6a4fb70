"""Console rendering and progress helpers for the driveup CLI."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional
import time

from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)
from rich.table import Table

from .models import FolderUploadResult, UploadResult, UploadStatus
from .progress import TransferProgress


console = Console()


def _human_size(value: float) -> str:
    size = float(max(value, 0))
    units = ["B", "KB", "MB", "GB", "TB"]
    unit_idx = 0
    while size >= 1024.0 and unit_idx < len(units) - 1:
        size /= 1024.0
        unit_idx += 1
    if unit_idx == 0:
        return f"{int(size)} {units[unit_idx]}"
    return f"{size:.2f} {units[unit_idx]}"


def render_configuration_summary(config: Dict[str, Any], target: Optional[Console] = None) -> None:
    """Render startup configuration summary."""
    target = target or console
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column(style="white")

    for key, value in config.items():
        rendered = "-" if value is None else str(value)
        table.add_row(key, rendered)

    target.print(
        Panel(
            table,
            title="[bold green]driveup[/bold green]",
            subtitle="[dim]resumable drive uploads[/dim]",
            border_style="blue",
        )
    )


class RichTransferProgress(TransferProgress):
    """Live terminal display: one overall bar plus one bar per in-flight file."""

    def __init__(self, target: Optional[Console] = None):
        super().__init__()
        self._console = target or console
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold cyan]{task.fields[label]}", justify="left"),
            BarColumn(bar_width=42),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            DownloadColumn(),
            TransferSpeedColumn(),
            TimeRemainingColumn(),
            expand=False,
            console=self._console,
            refresh_per_second=8,
        )
        self._overall_task: Optional[TaskID] = None
        self._file_tasks: Dict[str, TaskID] = {}

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, *args):
        self.stop()

    def start(self) -> None:
        if self._overall_task is not None:
            return
        snapshot = self.snapshot()
        self._progress.start()
        self._overall_task = self._progress.add_task(
            "overall",
            label="Transferred",
            total=max(snapshot.total_size, 1),
            completed=snapshot.transferred_bytes,
        )

    def stop(self) -> None:
        self._progress.stop()

    def add_transfer(self, total_files: int, total_size: int) -> None:
        super().add_transfer(total_files, total_size)
        if self._overall_task is not None:
            self._progress.update(self._overall_task, total=max(self.snapshot().total_size, 1))

    def _on_start(self, name: str, size: int) -> None:
        self._file_tasks[name] = self._progress.add_task(
            "upload",
            label=Path(name).name[:60],
            total=max(size, 1),
        )

    def _on_advance(self, name: str, nbytes: int) -> None:
        task_id = self._file_tasks.get(name)
        if task_id is not None:
            self._progress.advance(task_id, nbytes)
        if self._overall_task is not None:
            self._progress.advance(self._overall_task, nbytes)

    def _on_existing(self, size: int) -> None:
        if self._overall_task is not None:
            self._progress.advance(self._overall_task, size)

    def _on_finish(self, name: str, success: bool) -> None:
        task_id = self._file_tasks.pop(name, None)
        if task_id is not None:
            self._progress.remove_task(task_id)
        if self._overall_task is not None:
            self._progress.update(self._overall_task, completed=self.snapshot().transferred_bytes)

        stamp = time.strftime("%H:%M:%S")
        status = "[green]DONE[/green]" if success else "[red]FAIL[/red]"
        self._console.print(f"[dim]{stamp}[/dim] {status} file: {Path(name).name}")

    def render_summary(self) -> None:
        snapshot = self.snapshot()
        total_transfers = snapshot.total_files
        percent = int(snapshot.done_files / total_transfers * 100) if total_transfers else 0
        self._console.print(
            f"Transferred: {_human_size(snapshot.transferred_bytes)}/{_human_size(snapshot.total_size)}, "
            f"{_human_size(snapshot.rate)}/s"
        )
        self._console.print(
            f"Transferred: {snapshot.done_files}/{total_transfers}, {percent}% "
            f"(existing={snapshot.existing_files} failed={snapshot.failed_files})"
        )


def render_file_result(result: UploadResult, target: Optional[Console] = None) -> None:
    target = target or console
    if result.success:
        label = "Exists" if result.status == UploadStatus.EXISTS else "Uploaded"
        target.print(f"[green]{label}:[/green] {result.filename} ({_human_size(result.size)})")
        return
    suffix = f" - {result.error}" if result.error else ""
    color = "yellow" if result.committed else "red"
    target.print(f"[{color}]{result.status.value.capitalize()}:[/{color}] {result.filename}{suffix}")


def render_folder_result(result: FolderUploadResult, target: Optional[Console] = None) -> None:
    target = target or console
    for file_result in result.results:
        if not file_result.success:
            render_file_result(file_result, target)
    for error in result.errors:
        target.print(f"[red]Error:[/red] {error}")
    target.print(
        f"[bold]Finished[/bold] uploaded={result.uploaded_files} skipped={result.skipped_files} "
        f"partial={result.partial_files} failed={result.failed_files} total={result.total_files}"
    )
