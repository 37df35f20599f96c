"""Terminal progress display for a sync run, rendered with rich."""

from __future__ import annotations

from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeRemainingColumn,
)

from hubspot_connector.model import ProgressUpdate


class ConsoleProgress:
    """Progress sink: status strings are printed, ``ProgressUpdate``s drive one bar.

    The bar is created on the first update and spans every record of the run.
    Use it as a context manager so the live display is stopped on exit.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()
        self.progress: Progress | None = None
        self._task: TaskID | None = None

    def __call__(self, update: str | ProgressUpdate) -> None:
        match update:
            case ProgressUpdate():
                self._advance(update)
            case _:
                self.console.print(update)

    def _advance(self, update: ProgressUpdate) -> None:
        if self.progress is None:
            self.progress = Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
                TimeRemainingColumn(),
                console=self.console,
            )
            self.progress.start()
            self._task = self.progress.add_task(update.message, total=update.total_items)
        self.progress.update(
            self._task,
            description=update.message,
            completed=update.current_item,
            total=update.total_items,
        )

    def close(self) -> None:
        if self.progress is not None:
            self.progress.stop()

    def __enter__(self) -> "ConsoleProgress":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def quiet_progress(update: str | ProgressUpdate) -> None:
    """Progress sink that discards every update."""


__all__ = ["ConsoleProgress", "quiet_progress"]
