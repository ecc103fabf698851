from __future__ import annotations

import logging
from typing import Optional, Protocol

import click
from rich.console import Console
from rich.progress import BarColumn, Progress as ProgressBar, TaskID, TextColumn, TimeElapsedColumn

from .models import Completed, EngineEvent, Failed, Progress, Started

logger = logging.getLogger(__name__)


class Reporter(Protocol):
    """Where the pipeline sends engine events and final scores."""

    def on_event(self, stage: str, event: EngineEvent) -> None: ...

    def on_score(self, name: str, value: float) -> None: ...


class ConsoleReporter:
    """Logs lifecycle events, draws a progress bar when verbose, echoes scores."""

    def __init__(self, *, verbose: bool = False, console: Optional[Console] = None) -> None:
        self.verbose = verbose
        self.console = console or Console(stderr=True)
        self._bar: Optional[ProgressBar] = None
        self._task: Optional[TaskID] = None

    def on_event(self, stage: str, event: EngineEvent) -> None:
        if isinstance(event, Started):
            if self.verbose:
                self.console.print(f"{stage}: {event.invocation}", style="blue", markup=False, highlight=False)
        elif isinstance(event, Progress):
            if self.verbose:
                self._advance(stage, event.percent)
        elif isinstance(event, Failed):
            self._close()
            logger.error("%s failed: %s", stage, event.message)
        elif isinstance(event, Completed):
            self._close()
            logger.info("%s finished.", stage)

    def on_score(self, name: str, value: float) -> None:
        click.echo(f"{name.upper()}: {value}")

    def _advance(self, stage: str, percent: float) -> None:
        if self._bar is None or self._task is None:
            self._close()
            self._bar = ProgressBar(
                TextColumn("[bold]{task.description}"),
                BarColumn(),
                TextColumn("{task.percentage:>5.1f}%"),
                TimeElapsedColumn(),
                console=self.console,
                transient=True,
            )
            self._bar.start()
            self._task = self._bar.add_task(stage, total=100.0)
        self._bar.update(self._task, completed=percent)

    def _close(self) -> None:
        if self._bar is not None:
            self._bar.stop()
        self._bar = None
        self._task = None
