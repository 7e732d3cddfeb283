"""Session coordinator — wires the browsing session to both synthesizers.

Flow:
    orchestrator stages (sequential) ─┬─> commentary task per completed stage
                                      └─> gather barrier → audit report → done
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from typing import AsyncIterator, Sequence

from sfs.agents.audit_report.agent import AuditReportAgent
from sfs.agents.step_commentary.agent import StepCommentaryAgent
from sfs.crawler.orchestrator import SessionOrchestrator
from sfs.crawler.steps import CrawlCallbacks
from sfs.schemas.commentary import StepCommentary
from sfs.schemas.config import SessionConfig
from sfs.schemas.events import (
    CommentaryEvent,
    DoneData,
    DoneEvent,
    ErrorData,
    ErrorEvent,
    EventSink,
    ReportEvent,
    ScreenshotData,
    ScreenshotEvent,
    SessionEvent,
    StepStartData,
    StepStartEvent,
)
from sfs.schemas.report import AuditReport
from sfs.schemas.steps import STEP_ORDER, CrawlResult, StepDefinition, StepName, StepRecord
from sfs.shared.llm_client import ReasoningService

logger = logging.getLogger(__name__)

AUDIT_FAILED_MESSAGE = "Failed to generate audit report. Step analyses are still available."
SESSION_FAILED_MESSAGE = "Browsing session failed unexpectedly"


class SessionCoordinator:
    """Runs one audit session and reports it as a stream of ``SessionEvent``s.

    Commentary for a stage starts as soon as that stage completes and runs
    alongside the later stages. The audit report waits for every commentary
    task. ``done`` is always the last event, including after a fatal browser
    failure.
    """

    def __init__(
        self,
        client: ReasoningService,
        *,
        config: SessionConfig | None = None,
        orchestrator: SessionOrchestrator | None = None,
        commentary_agent: StepCommentaryAgent | None = None,
        report_agent: AuditReportAgent | None = None,
    ) -> None:
        self.config = config or SessionConfig()
        self.orchestrator = orchestrator or SessionOrchestrator(self.config.browser)
        self.commentary_agent = commentary_agent or StepCommentaryAgent(client, self.config.synthesis)
        self.report_agent = report_agent or AuditReportAgent(client, self.config.synthesis)

    async def run(self, store_url: str, sink: EventSink) -> AuditReport | None:
        """Run the session, pushing every event into ``sink``.

        Returns the report, or None when the session or the report failed
        (the reason has already been sent as an ``error`` event).
        """
        started = time.monotonic()
        completed: list[StepRecord] = []
        commentaries: dict[StepName, StepCommentary] = {}
        tasks: list[asyncio.Task[None]] = []

        def on_step_start(definition: StepDefinition) -> None:
            sink(StepStartEvent(data=StepStartData(
                step=definition.name,
                label=definition.label,
                description=definition.description,
            )))

        def on_screenshot(step: StepName, screenshot: str, url: str, index: int) -> None:
            sink(ScreenshotEvent(data=ScreenshotData(
                step=step, screenshot=screenshot, url=url, index=index,
            )))

        def on_step_complete(record: StepRecord) -> None:
            prior = list(completed)
            completed.append(record)
            tasks.append(asyncio.create_task(
                self._comment(record, store_url, prior, sink, commentaries),
                name=f"commentary:{record.name}",
            ))

        def on_error(step: StepName, message: str) -> None:
            sink(ErrorEvent(data=ErrorData(message=message, step=step)))

        callbacks = CrawlCallbacks(
            on_step_start=on_step_start,
            on_screenshot=on_screenshot,
            on_step_complete=on_step_complete,
            on_error=on_error,
        )

        report: AuditReport | None = None
        try:
            try:
                result = await self.orchestrator.run(store_url, callbacks)
            except Exception as exc:
                logger.exception("Browsing session for %s failed", store_url)
                sink(ErrorEvent(data=ErrorData(message=str(exc) or SESSION_FAILED_MESSAGE)))
                total_ms = int((time.monotonic() - started) * 1000)
            else:
                await asyncio.gather(*tasks)
                ordered = [commentaries[name] for name in STEP_ORDER if name in commentaries]
                report = await self._report(store_url, result, ordered, sink)
                total_ms = result.total_time_ms
        finally:
            await _cancel_pending(tasks)

        sink(DoneEvent(data=DoneData(total_time_ms=total_ms)))
        return report

    async def stream(self, store_url: str) -> AsyncIterator[SessionEvent]:
        """Async iterator over the session's events.

        Closing the iterator early cancels the running session.
        """
        queue: asyncio.Queue[SessionEvent | None] = asyncio.Queue()

        async def drive() -> None:
            try:
                await self.run(store_url, queue.put_nowait)
            finally:
                queue.put_nowait(None)

        runner = asyncio.create_task(drive(), name=f"session:{store_url}")
        try:
            while (event := await queue.get()) is not None:
                yield event
            await runner
        finally:
            if not runner.done():
                runner.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await runner

    async def _comment(
        self,
        record: StepRecord,
        store_url: str,
        prior: Sequence[StepRecord],
        sink: EventSink,
        results: dict[StepName, StepCommentary],
    ) -> None:
        try:
            commentary = await self.commentary_agent.synthesize(record, store_url, prior)
        except Exception:
            logger.exception("Commentary for %s failed", record.name)
            return
        results[record.name] = commentary
        sink(CommentaryEvent(data=commentary))

    async def _report(
        self,
        store_url: str,
        result: CrawlResult,
        commentaries: list[StepCommentary],
        sink: EventSink,
    ) -> AuditReport | None:
        try:
            report = await self.report_agent.synthesize(store_url, result.steps, commentaries)
        except Exception:
            logger.exception("Audit report for %s failed", store_url)
            sink(ErrorEvent(data=ErrorData(message=AUDIT_FAILED_MESSAGE)))
            return None
        sink(ReportEvent(data=report))
        return report


async def _cancel_pending(tasks: Sequence[asyncio.Task[None]]) -> None:
    pending = [t for t in tasks if not t.done()]
    for task in pending:
        task.cancel()
    if pending:
        await asyncio.gather(*pending, return_exceptions=True)
