"""Session orchestrator — drives the five stages over one browser page."""

from __future__ import annotations

import contextlib
import logging
import time
from typing import AsyncContextManager, Callable, Mapping

import httpx
from playwright.async_api import Error as PlaywrightError

from sfs.crawler.steps import DEFAULT_EXECUTORS, CrawlCallbacks, StepContext, StepExecutor
from sfs.schemas.config import BrowserSettings
from sfs.schemas.steps import STEP_DEFINITIONS, CrawlResult, StepDefinition, StepRecord
from sfs.shared.browser import BrowserManager

logger = logging.getLogger(__name__)

BrowserFactory = Callable[[BrowserSettings], BrowserManager]


def _describe(exc: BaseException, definition: StepDefinition) -> str:
    message = str(exc).strip().splitlines()[0] if str(exc).strip() else ""
    return message or f"{definition.label} failed ({type(exc).__name__})"


class SessionOrchestrator:
    """Runs homepage → collections → product → add_to_cart → cart in order.

    Always returns exactly five records in stage order. A stage that blows up
    gets a degraded record and the session moves on; only failures to get a
    browser page at all escape ``run``.
    """

    def __init__(
        self,
        settings: BrowserSettings | None = None,
        *,
        browser_factory: BrowserFactory = BrowserManager,
        executors: Mapping[str, StepExecutor] | None = None,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings = settings or BrowserSettings()
        self._browser_factory = browser_factory
        self._http = http
        self._executors = dict(DEFAULT_EXECUTORS)
        if executors:
            self._executors.update(executors)

    async def run(self, store_url: str, callbacks: CrawlCallbacks | None = None) -> CrawlResult:
        callbacks = callbacks or CrawlCallbacks()
        started = time.monotonic()

        async with self._browser_factory(self.settings) as browser:
            page = await browser.new_page()
            async with self._catalog_client() as http:
                ctx = StepContext(
                    page=page,
                    store_url=store_url,
                    settings=self.settings,
                    callbacks=callbacks,
                    http=http,
                )
                for definition in STEP_DEFINITIONS:
                    if definition.name == "homepage":
                        record = await self._run_homepage(definition, ctx)
                    else:
                        record = await self._run_guarded(definition, ctx)
                    ctx.records.append(record)

        total_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            "Session for %s finished in %.1fs (%d/%d stages without errors)",
            store_url, total_ms / 1000,
            sum(1 for r in ctx.records if r.ok), len(ctx.records),
        )
        return CrawlResult(steps=ctx.records, total_time_ms=total_ms)

    def _catalog_client(self) -> AsyncContextManager[httpx.AsyncClient]:
        """Client for the catalog API fallback; an injected one is left open."""
        if self._http is not None:
            return contextlib.nullcontext(self._http)
        return httpx.AsyncClient(
            follow_redirects=True,
            timeout=self.settings.catalog_api_timeout_ms / 1000,
            headers={"User-Agent": self.settings.user_agent},
        )

    async def _run_homepage(self, definition: StepDefinition, ctx: StepContext) -> StepRecord:
        """Homepage runs unguarded except for navigation errors.

        Its target is caller-provided, so confidence stays ``high`` even when
        the page can't be loaded; later stages then fail on their own.
        """
        ctx.callbacks.on_step_start(definition)
        try:
            record = await self._executors[definition.name](ctx)
        except PlaywrightError as exc:
            message = _describe(exc, definition)
            logger.error("Homepage %s could not be loaded: %s", ctx.store_url, message)
            ctx.callbacks.on_error(definition.name, message)
            return StepRecord.failed(
                definition,
                message,
                url=ctx.store_url,
                navigation_confidence="high",
                navigation_method=f"direct URL {ctx.store_url}",
            )
        ctx.callbacks.on_step_complete(record)
        return record

    async def _run_guarded(self, definition: StepDefinition, ctx: StepContext) -> StepRecord:
        ctx.callbacks.on_step_start(definition)
        try:
            record = await self._executors[definition.name](ctx)
        except Exception as exc:
            message = _describe(exc, definition)
            logger.warning("Stage %s failed: %s", definition.name, message, exc_info=True)
            ctx.callbacks.on_error(definition.name, message)
            return StepRecord.failed(definition, message)
        ctx.callbacks.on_step_complete(record)
        return record
