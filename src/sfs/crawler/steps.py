"""The five stage executors.

Each executor drives the shared page to its target, clears overlays,
captures evidence and returns a ``StepRecord``. Executors raise on
navigation failure; isolating those failures is the orchestrator's job.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable

import httpx
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from sfs.crawler.discovery import (
    detect_empty_state,
    find_add_to_cart_control,
    find_collections_link,
    find_product_link,
    select_variant,
    verify_cart_update,
)
from sfs.crawler.overlays import dismiss_overlays
from sfs.schemas.config import BrowserSettings
from sfs.schemas.steps import (
    Confidence,
    NavigationResult,
    StepDefinition,
    StepName,
    StepRecord,
    get_definition,
)
from sfs.shared.browser import capture_html, capture_screenshot, scroll_by, scroll_to_top
from sfs.shared.urls import store_path

logger = logging.getLogger(__name__)

CART_PATH = "/cart"

ADD_TO_CART_UNVERIFIED = "add-to-cart attempted but could not be verified"
ADD_TO_CART_NOT_FOUND = "add-to-cart could not be verified: no add-to-cart control found"

_CONFIDENCE_RANK: dict[Confidence, int] = {"low": 0, "medium": 1, "high": 2}


def cap_confidence(value: Confidence, ceiling: Confidence) -> Confidence:
    """The lower of two confidence levels."""
    return value if _CONFIDENCE_RANK[value] <= _CONFIDENCE_RANK[ceiling] else ceiling


def _noop(*args: object) -> None:
    return None


@dataclass
class CrawlCallbacks:
    """Lifecycle hooks the orchestrator calls while a session runs."""

    on_step_start: Callable[[StepDefinition], None] = _noop
    on_screenshot: Callable[[StepName, str, str, int], None] = _noop
    on_step_complete: Callable[[StepRecord], None] = _noop
    on_error: Callable[[StepName, str], None] = _noop


@dataclass
class StepContext:
    """Everything an executor needs; one per session."""

    page: Page
    store_url: str
    settings: BrowserSettings
    callbacks: CrawlCallbacks = field(default_factory=CrawlCallbacks)
    records: list[StepRecord] = field(default_factory=list)
    http: httpx.AsyncClient | None = None
    _shot_counts: dict[str, int] = field(default_factory=dict, init=False, repr=False)

    async def capture(self, step: StepName) -> str:
        """Screenshot the viewport and emit it with the next per-stage index."""
        shot = await capture_screenshot(self.page, quality=self.settings.screenshot_quality)
        index = self._shot_counts.get(step, 0)
        self._shot_counts[step] = index + 1
        self.callbacks.on_screenshot(step, shot, self.page.url, index)
        return shot

    async def goto(self, url: str) -> None:
        await self.page.goto(
            url,
            wait_until=self.settings.wait_until,
            timeout=self.settings.navigation_timeout_ms,
        )

    async def scroll(self) -> None:
        await scroll_by(self.page, self.settings.scroll_step_px, settle_ms=self.settings.settle_ms)

    def record_for(self, step: StepName) -> StepRecord | None:
        for record in self.records:
            if record.name == step:
                return record
        return None


StepExecutor = Callable[[StepContext], Awaitable[StepRecord]]


async def _visit(
    ctx: StepContext,
    step: StepName,
    nav: NavigationResult,
    *,
    captures: int,
) -> StepRecord:
    """Navigate, dismiss, capture ``captures`` scroll positions, downgrade on empty state."""
    await ctx.goto(nav.url)
    await dismiss_overlays(ctx.page, ctx.settings)

    screenshots = [await ctx.capture(step)]
    for _ in range(captures - 1):
        await ctx.scroll()
        screenshots.append(await ctx.capture(step))

    html = await capture_html(ctx.page)
    if detect_empty_state(html) and nav.confidence != "low":
        logger.info("%s looks like an empty/error page; downgrading confidence", ctx.page.url)
        nav = nav.downgraded()

    return StepRecord.from_definition(
        get_definition(step),
        url=ctx.page.url,
        screenshots=screenshots,
        html=html,
        navigation_confidence=nav.confidence,
        navigation_method=nav.method,
    )


async def crawl_homepage(ctx: StepContext) -> StepRecord:
    await ctx.goto(ctx.store_url)
    await dismiss_overlays(ctx.page, ctx.settings)

    screenshots = [await ctx.capture("homepage")]
    await ctx.scroll()
    screenshots.append(await ctx.capture("homepage"))

    return StepRecord.from_definition(
        get_definition("homepage"),
        url=ctx.page.url,
        screenshots=screenshots,
        html=await capture_html(ctx.page),
        navigation_confidence="high",
        navigation_method=f"direct URL {ctx.store_url}",
    )


async def crawl_collections(ctx: StepContext) -> StepRecord:
    nav = await find_collections_link(ctx.page, ctx.store_url, ctx.settings)
    logger.info("Collections: %s (%s)", nav.url, nav.confidence)
    return await _visit(ctx, "collections", nav, captures=2)


async def crawl_product(ctx: StepContext) -> StepRecord:
    nav = await find_product_link(ctx.page, ctx.store_url, ctx.settings, http=ctx.http)
    logger.info("Product: %s (%s)", nav.url, nav.confidence)
    # Third capture reaches reviews / details further down the page
    return await _visit(ctx, "product", nav, captures=3)


async def crawl_add_to_cart(ctx: StepContext) -> StepRecord:
    """Pick a variant, click add-to-cart and check that the cart reacted.

    An unverified add is a soft failure: the record comes back normally with
    an informational ``error`` and reduced confidence.
    """
    page = ctx.page
    await scroll_to_top(page)
    # Cleared before the click so the cart drawer it opens stays in the capture
    await dismiss_overlays(page, ctx.settings)

    await select_variant(page, ctx.settings)
    screenshots = [await ctx.capture("add_to_cart")]

    control = await find_add_to_cart_control(page, ctx.settings)
    verified = False
    if control is not None:
        try:
            await control.locator.click()
        except PlaywrightError as exc:
            logger.info("Add-to-cart click on %s failed: %s", control.selector, exc)
        else:
            await page.wait_for_timeout(ctx.settings.post_click_wait_ms)
            verified = await verify_cart_update(page, ctx.settings)

    screenshots.append(await ctx.capture("add_to_cart"))
    html = await capture_html(page)

    product = ctx.record_for("product")
    ceiling: Confidence = product.navigation_confidence if product and product.ok else "low"

    error: str | None
    if control is None:
        confidence: Confidence = "low"
        method = "no add-to-cart control found on current page"
        error = ADD_TO_CART_NOT_FOUND
    elif verified:
        confidence = cap_confidence("high", ceiling)
        method = f"clicked add-to-cart control {control.selector}"
        error = None
    else:
        confidence = cap_confidence("medium", ceiling)
        method = f"clicked add-to-cart control {control.selector}"
        error = ADD_TO_CART_UNVERIFIED

    if error:
        logger.info("Add to cart on %s: %s", page.url, error)

    return StepRecord.from_definition(
        get_definition("add_to_cart"),
        url=page.url,
        screenshots=screenshots,
        html=html,
        error=error,
        navigation_confidence=confidence,
        navigation_method=method,
    )


async def crawl_cart(ctx: StepContext) -> StepRecord:
    nav = NavigationResult(
        url=store_path(ctx.store_url, CART_PATH),
        method=f"direct URL {CART_PATH}",
        confidence="high",
    )
    await ctx.goto(nav.url)
    await dismiss_overlays(ctx.page, ctx.settings)

    screenshots = [await ctx.capture("cart")]
    await ctx.scroll()
    screenshots.append(await ctx.capture("cart"))

    return StepRecord.from_definition(
        get_definition("cart"),
        url=ctx.page.url,
        screenshots=screenshots,
        html=await capture_html(ctx.page),
        navigation_confidence=nav.confidence,
        navigation_method=nav.method,
    )


DEFAULT_EXECUTORS: dict[StepName, StepExecutor] = {
    "homepage": crawl_homepage,
    "collections": crawl_collections,
    "product": crawl_product,
    "add_to_cart": crawl_add_to_cart,
    "cart": crawl_cart,
}
