from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)


@dataclass
class Ui:
    console: Console
    progress: Progress
    _tasks: dict[str, TaskID] = field(default_factory=dict)

    def log(self, message: str) -> None:
        self.console.print(message)

    def on_progress(self, phase: str, completed: int, total: int) -> None:
        """Progress callback for the scheduler; one bar per phase."""
        task = self._tasks.get(phase)
        if task is None:
            task = self.progress.add_task(phase, total=total)
            self._tasks[phase] = task
        self.progress.update(task, completed=completed, total=total)


@contextmanager
def progress_ui() -> Iterator[Ui]:
    console = Console(stderr=True)
    progress = Progress(
        SpinnerColumn(),
        TextColumn("[bold]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        console=console,
        transient=False,
    )
    with progress:
        yield Ui(console=console, progress=progress)
