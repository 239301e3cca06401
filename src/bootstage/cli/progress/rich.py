"""Rich-based load progress display."""

from __future__ import annotations

from types import TracebackType
from typing import Any

from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.progress import TaskID as RichTaskID

from bootstage.progress import LoadProgress

_RESOLUTION = 1000


class RichLoadProgress(LoadProgress):
    """Live terminal progress bar powered by Rich.

    Use as a context manager so the live display is properly started/stopped::

        with RichLoadProgress("start") as progress:
            progress.set_progress(0.5)
    """

    def __init__(self, description: str = "Loading", *, console: Console | None = None, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._description = description
        self._console = console or Console(stderr=True)
        self._progress = Progress(
            SpinnerColumn(finished_text="[green]✓[/green]"),
            TextColumn("{task.description:>14}"),
            BarColumn(bar_width=30),
            TextColumn("{task.fields[label]:>4}"),
            TimeElapsedColumn(),
            console=self._console,
            transient=False,
        )
        self._task_id: RichTaskID | None = None
        self._started = False

    @property
    def description(self) -> str:
        return self._description

    @property
    def completed(self) -> int:
        """Bar position in thousandths."""
        if self._task_id is None:
            return 0
        return int(self._progress.tasks[self._task_id].completed)

    def __enter__(self) -> RichLoadProgress:
        self._start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        if self._task_id is not None and not self.closed:
            # Settle the bar on the target an interrupted tween was heading for.
            self._progress.update(
                self._task_id,
                completed=round(self.target * _RESOLUTION),
                label=f"{int(self.target * 100 + 0.5)}%",
            )
        super().close()
        if self._started:
            self._progress.stop()
            self._started = False

    def _start(self) -> None:
        if self._started or self.closed:
            return
        self._progress.start()
        self._started = True
        if self._task_id is None:
            self._task_id = self._progress.add_task(
                f"[cyan]{self._description}[/]",
                total=_RESOLUTION,
                completed=round(self.value * _RESOLUTION),
                label=self.label,
            )

    def _render(self, value: float) -> None:
        if self._task_id is None:
            return
        self._progress.update(self._task_id, completed=round(value * _RESOLUTION), label=self.label)

    def _visibility_changed(self, visible: bool) -> None:
        # The finished bar stays on screen after hiding.
        if visible:
            self._start()
