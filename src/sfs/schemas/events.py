"""Session event stream — tagged union consumed live by one subscriber."""

from __future__ import annotations

from typing import Annotated, Callable, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter

from sfs.schemas.commentary import StepCommentary
from sfs.schemas.report import AuditReport
from sfs.schemas.steps import StepName


class StepStartData(BaseModel):
    step: StepName
    label: str
    description: str


class ScreenshotData(BaseModel):
    step: StepName
    screenshot: str  # base64
    url: str
    index: int


class ErrorData(BaseModel):
    message: str
    step: StepName | None = None  # None for session-level errors


class DoneData(BaseModel):
    total_time_ms: int


class StepStartEvent(BaseModel):
    type: Literal["step_start"] = "step_start"
    data: StepStartData


class ScreenshotEvent(BaseModel):
    type: Literal["screenshot"] = "screenshot"
    data: ScreenshotData


class CommentaryEvent(BaseModel):
    type: Literal["commentary"] = "commentary"
    data: StepCommentary


class ReportEvent(BaseModel):
    type: Literal["report"] = "report"
    data: AuditReport


class ErrorEvent(BaseModel):
    type: Literal["error"] = "error"
    data: ErrorData


class DoneEvent(BaseModel):
    type: Literal["done"] = "done"
    data: DoneData


SessionEvent = Annotated[
    Union[
        StepStartEvent,
        ScreenshotEvent,
        CommentaryEvent,
        ReportEvent,
        ErrorEvent,
        DoneEvent,
    ],
    Field(discriminator="type"),
]

EventSink = Callable[[SessionEvent], None]
"""Append-only consumer of session events (queue, SSE writer, progress view…)."""

session_event_adapter: TypeAdapter[SessionEvent] = TypeAdapter(SessionEvent)
