"""Playwright browser manager and page evidence capture."""

from __future__ import annotations

import base64
import logging
import re
from types import TracebackType

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright

from sfs.schemas.config import BrowserSettings
from sfs.schemas.steps import MAX_HTML_CHARS

logger = logging.getLogger(__name__)

_BODY_RE = re.compile(r"<body[^>]*>(.*?)</body>", re.IGNORECASE | re.DOTALL)
_SCRIPT_RE = re.compile(r"<script.*?</script>", re.IGNORECASE | re.DOTALL)
_STYLE_RE = re.compile(r"<style.*?</style>", re.IGNORECASE | re.DOTALL)
_WHITESPACE_RE = re.compile(r"\s+")


class BrowserManager:
    """Owns one headless Chromium, one context and the session's single page.

    Usage::

        async with BrowserManager(settings) as bm:
            page = await bm.new_page()

    Launch and page-creation failures propagate — without a browser there
    is no session to salvage.
    """

    def __init__(self, settings: BrowserSettings | None = None) -> None:
        self.settings = settings or BrowserSettings()
        self._pw: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None

    async def __aenter__(self) -> "BrowserManager":
        self._pw = await async_playwright().start()
        try:
            self._browser = await self._pw.chromium.launch(
                headless=self.settings.headless,
                args=self.settings.launch_args,
            )
            self._context = await self._browser.new_context(
                viewport={
                    "width": self.settings.viewport_width,
                    "height": self.settings.viewport_height,
                },
                user_agent=self.settings.user_agent,
            )
        except BaseException:
            await self._close()
            raise
        logger.info("Browser launched (headless=%s)", self.settings.headless)
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self._close()
        logger.info("Browser closed")

    async def _close(self) -> None:
        if self._context:
            await self._context.close()
            self._context = None
        if self._browser:
            await self._browser.close()
            self._browser = None
        if self._pw:
            await self._pw.stop()
            self._pw = None

    async def new_page(self) -> Page:
        assert self._context is not None, "BrowserManager not entered"
        page = await self._context.new_page()
        page.set_default_timeout(self.settings.navigation_timeout_ms)
        page.set_default_navigation_timeout(self.settings.navigation_timeout_ms)
        return page


# ----------------------------------------------------------------------
# Evidence capture
# ----------------------------------------------------------------------


async def capture_screenshot(page: Page, *, quality: int = 70) -> str:
    """Viewport screenshot as a base64 JPEG string."""
    raw = await page.screenshot(full_page=False, type="jpeg", quality=quality)
    return base64.b64encode(raw).decode()


def clean_html(html: str, *, limit: int = MAX_HTML_CHARS) -> str:
    """Body markup without scripts, styles or runs of whitespace, capped at ``limit``."""
    match = _BODY_RE.search(html)
    body = match.group(1) if match else html
    body = _SCRIPT_RE.sub("", body)
    body = _STYLE_RE.sub("", body)
    return _WHITESPACE_RE.sub(" ", body).strip()[:limit]


async def capture_html(page: Page) -> str:
    return clean_html(await page.content())


async def scroll_by(page: Page, pixels: int, *, settle_ms: int = 500) -> None:
    await page.evaluate("(dy) => window.scrollBy(0, dy)", pixels)
    await page.wait_for_timeout(settle_ms)


async def scroll_to_top(page: Page, *, settle_ms: int = 300) -> None:
    await page.evaluate("() => window.scrollTo(0, 0)")
    await page.wait_for_timeout(settle_ms)
