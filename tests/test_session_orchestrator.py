"""Tests for the SessionOrchestrator — failure isolation and stage order."""

from __future__ import annotations

import httpx
import pytest
from playwright.async_api import Error as PlaywrightError

from sfs.crawler.orchestrator import SessionOrchestrator
from sfs.crawler.steps import CrawlCallbacks, StepContext
from sfs.schemas.steps import NAVIGATION_FAILED, STEP_ORDER, StepRecord, get_definition


class FakeBrowser:
    """Async context manager standing in for BrowserManager."""

    def __init__(self, page, *, fail_on_enter: Exception | None = None) -> None:
        self.page = page
        self.fail_on_enter = fail_on_enter
        self.closed = False

    async def __aenter__(self) -> "FakeBrowser":
        if self.fail_on_enter:
            raise self.fail_on_enter
        return self

    async def __aexit__(self, *args: object) -> None:
        self.closed = True

    async def new_page(self):
        return self.page


def _ok_executor(name: str):
    async def run(ctx: StepContext) -> StepRecord:
        shot = await ctx.capture(name)
        return StepRecord.from_definition(
            get_definition(name),
            url=f"{ctx.store_url}/{name}",
            screenshots=[shot],
            navigation_confidence="high",
            navigation_method="test",
        )
    return run


def _failing_executor(exc: Exception):
    async def run(ctx: StepContext) -> StepRecord:
        raise exc
    return run


class Events:
    def __init__(self) -> None:
        self.log: list[tuple[str, str]] = []

    def callbacks(self) -> CrawlCallbacks:
        return CrawlCallbacks(
            on_step_start=lambda d: self.log.append(("start", d.name)),
            on_screenshot=lambda step, shot, url, index: self.log.append(("shot", step)),
            on_step_complete=lambda r: self.log.append(("complete", r.name)),
            on_error=lambda step, message: self.log.append(("error", step)),
        )


def _orchestrator(fake_page, settings, **overrides) -> tuple[SessionOrchestrator, FakeBrowser]:
    browser = FakeBrowser(fake_page)
    executors = {name: _ok_executor(name) for name in STEP_ORDER}
    executors.update(overrides)
    orch = SessionOrchestrator(settings, browser_factory=lambda s: browser, executors=executors)
    return orch, browser


class TestSessionOrchestrator:
    @pytest.mark.asyncio
    async def test_five_records_in_order(self, fake_page, settings, store_url) -> None:
        orch, browser = _orchestrator(fake_page, settings)
        events = Events()

        result = await orch.run(store_url, events.callbacks())

        assert [r.name for r in result.steps] == list(STEP_ORDER)
        assert all(r.ok for r in result.steps)
        assert result.total_time_ms >= 0
        assert browser.closed
        # start precedes screenshots precedes completion, stage by stage
        expected = []
        for name in STEP_ORDER:
            expected += [("start", name), ("shot", name), ("complete", name)]
        assert events.log == expected

    @pytest.mark.asyncio
    async def test_failed_stage_is_isolated(self, fake_page, settings, store_url) -> None:
        orch, _ = _orchestrator(
            fake_page, settings, product=_failing_executor(PlaywrightError("Timeout 15000ms exceeded")),
        )
        events = Events()

        result = await orch.run(store_url, events.callbacks())

        assert [r.name for r in result.steps] == list(STEP_ORDER)
        product = result.steps[2]
        assert product.error == "Timeout 15000ms exceeded"
        assert product.navigation_confidence == "low"
        assert product.navigation_method == NAVIGATION_FAILED
        assert result.steps[3].ok and result.steps[4].ok
        assert ("error", "product") in events.log
        assert ("complete", "product") not in events.log
        assert ("start", "add_to_cart") in events.log

    @pytest.mark.asyncio
    async def test_any_exception_is_isolated_after_homepage(self, fake_page, settings, store_url) -> None:
        orch, _ = _orchestrator(fake_page, settings, cart=_failing_executor(KeyError("x")))

        result = await orch.run(store_url)

        assert result.steps[4].error
        assert result.steps[4].navigation_confidence == "low"

    @pytest.mark.asyncio
    async def test_unreachable_homepage_keeps_going(self, fake_page, settings, store_url) -> None:
        orch, _ = _orchestrator(
            fake_page, settings, homepage=_failing_executor(PlaywrightError("net::ERR_NAME_NOT_RESOLVED")),
        )
        events = Events()

        result = await orch.run(store_url, events.callbacks())

        home = result.steps[0]
        assert home.error == "net::ERR_NAME_NOT_RESOLVED"
        assert home.navigation_confidence == "high"
        assert home.url == store_url
        assert len(result.steps) == 5
        assert ("error", "homepage") in events.log

    @pytest.mark.asyncio
    async def test_homepage_programming_error_propagates(self, fake_page, settings, store_url) -> None:
        orch, browser = _orchestrator(fake_page, settings, homepage=_failing_executor(TypeError("bug")))

        with pytest.raises(TypeError):
            await orch.run(store_url)
        assert browser.closed

    @pytest.mark.asyncio
    async def test_browser_launch_failure_propagates(self, fake_page, settings, store_url) -> None:
        browser = FakeBrowser(fake_page, fail_on_enter=PlaywrightError("Executable doesn't exist"))
        orch = SessionOrchestrator(settings, browser_factory=lambda s: browser)

        with pytest.raises(PlaywrightError):
            await orch.run(store_url)

    @pytest.mark.asyncio
    async def test_prior_records_visible_to_later_stages(self, fake_page, settings, store_url) -> None:
        seen: list[list[str]] = []

        async def cart(ctx: StepContext) -> StepRecord:
            seen.append([r.name for r in ctx.records])
            return await _ok_executor("cart")(ctx)

        orch, _ = _orchestrator(fake_page, settings, cart=cart)
        await orch.run(store_url)

        assert seen == [["homepage", "collections", "product", "add_to_cart"]]

    @pytest.mark.asyncio
    async def test_real_executors_on_fake_page(self, fake_page, settings, store_url) -> None:
        transport = httpx.MockTransport(lambda r: httpx.Response(404))
        async with httpx.AsyncClient(transport=transport) as http:
            orch = SessionOrchestrator(settings, browser_factory=lambda s: FakeBrowser(fake_page), http=http)
            result = await orch.run(store_url)

        assert [r.name for r in result.steps] == list(STEP_ORDER)
        assert result.steps[0].navigation_confidence == "high"
        # no add-to-cart control on the fake page
        assert result.steps[3].error is not None
        assert result.steps[3].navigation_confidence != "high"
