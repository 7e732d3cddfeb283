"""Live session state and the Rich progress display that renders it."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from sfs.schemas.commentary import StepCommentary
from sfs.schemas.events import (
    CommentaryEvent,
    DoneEvent,
    ErrorData,
    ErrorEvent,
    ReportEvent,
    ScreenshotData,
    ScreenshotEvent,
    SessionEvent,
    StepStartEvent,
)
from sfs.schemas.report import AuditReport
from sfs.schemas.steps import STEP_ORDER, StepName, get_definition

console = Console()

SessionStatus = Literal["idle", "crawling", "analyzing", "complete", "error"]

# Once this stage has settled, only synthesis is left
_FINAL_STEP: StepName = STEP_ORDER[-1]


class SessionView(BaseModel):
    """What a consumer of the event stream knows about the session so far."""

    status: SessionStatus = "idle"
    current_step: StepName | None = None
    current_step_label: str = ""
    current_step_description: str = ""
    screenshots: list[ScreenshotData] = []
    commentaries: dict[str, StepCommentary] = {}
    report: AuditReport | None = None
    error: str | None = None
    errors: list[ErrorData] = []
    total_time_ms: int | None = None


def apply_event(view: SessionView, event: SessionEvent) -> SessionView:
    """Return the view after ``event``; the input view is left untouched.

    Stage errors are recorded but keep the session going. An error with no
    stage is session-level and moves the view to ``error``. ``done`` only
    means ``complete`` when a report arrived; otherwise the evidence and
    commentary gathered so far stay available with ``report`` unset.
    """
    if isinstance(event, StepStartEvent):
        return view.model_copy(update={
            "status": "crawling",
            "current_step": event.data.step,
            "current_step_label": event.data.label,
            "current_step_description": event.data.description,
        })

    if isinstance(event, ScreenshotEvent):
        return view.model_copy(update={"screenshots": [*view.screenshots, event.data]})

    if isinstance(event, CommentaryEvent):
        update: dict[str, object] = {
            "commentaries": {**view.commentaries, event.data.step: event.data},
        }
        if event.data.step == _FINAL_STEP and view.status == "crawling":
            update["status"] = "analyzing"
        return view.model_copy(update=update)

    if isinstance(event, ReportEvent):
        return view.model_copy(update={"status": "complete", "report": event.data})

    if isinstance(event, ErrorEvent):
        update = {"error": event.data.message, "errors": [*view.errors, event.data]}
        if event.data.step is None:
            update["status"] = "error"
        elif event.data.step == _FINAL_STEP and view.status == "crawling":
            update["status"] = "analyzing"
        return view.model_copy(update=update)

    if isinstance(event, DoneEvent):
        return view.model_copy(update={
            "status": "complete" if view.report is not None else view.status,
            "total_time_ms": event.data.total_time_ms,
        })

    return view


class SessionProgress:
    """Rich progress display fed directly by session events.

    Instances are callable, so one can be handed to the coordinator as its
    event sink.
    """

    def __init__(self, *, target: Console | None = None) -> None:
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            TimeElapsedColumn(),
            console=target or console,
        )
        self._task_ids: dict[str, int] = {}
        self.view = SessionView()

    def __enter__(self) -> "SessionProgress":
        self._progress.__enter__()
        return self

    def __exit__(self, *args: object) -> None:
        self._progress.__exit__(*args)

    def __call__(self, event: SessionEvent) -> None:
        self.view = apply_event(self.view, event)

        if isinstance(event, StepStartEvent):
            self.start_step(event.data.step)
        elif isinstance(event, ScreenshotEvent):
            count = event.data.index + 1
            self.update_step(event.data.step, f"{count} screenshot{'s' if count > 1 else ''}")
        elif isinstance(event, CommentaryEvent):
            self.finish_step(event.data.step, len(event.data.issues))
        elif isinstance(event, ErrorEvent):
            if event.data.step is not None:
                self.fail_step(event.data.step, event.data.message)
            else:
                self._progress.console.print(f"[red]Error:[/] {event.data.message}")
        elif isinstance(event, ReportEvent):
            self.print_phase(f"Audit report ready — score {event.data.overall_score}/100")
        elif isinstance(event, DoneEvent):
            self._close_unfinished()
            self._progress.console.print(
                f"[dim]Session finished in {event.data.total_time_ms / 1000:.1f}s[/]"
            )

    def start_step(self, step: StepName) -> None:
        label = get_definition(step).label
        tid = self._progress.add_task(f"[cyan]{label}[/]", total=None)
        self._task_ids[step] = tid

    def update_step(self, step: StepName, status: str) -> None:
        if step in self._task_ids:
            label = get_definition(step).label
            self._progress.update(self._task_ids[step], description=f"[cyan]{label}[/] — {status}")

    def finish_step(self, step: StepName, issue_count: int) -> None:
        if step in self._task_ids:
            label = get_definition(step).label
            self._progress.update(
                self._task_ids[step],
                description=f"[green]✓ {label}[/] — {issue_count} issue(s)",
                total=1,
                completed=1,
            )

    def fail_step(self, step: StepName, error: str) -> None:
        if step in self._task_ids:
            label = get_definition(step).label
            self._progress.update(
                self._task_ids[step],
                description=f"[red]✗ {label}: {error}[/]",
                total=1,
                completed=1,
            )

    def _close_unfinished(self) -> None:
        finished = {task.id for task in self._progress.tasks if task.finished}
        for step, tid in self._task_ids.items():
            if tid not in finished:
                self.update_step(step, "no commentary")
                self._progress.update(tid, total=1, completed=1)

    def print_phase(self, label: str) -> None:
        self._progress.console.print(Panel(f"[bold]{label}[/bold]", style="blue"))
