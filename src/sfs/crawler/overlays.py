"""Best-effort dismissal of cookie banners, geo modals and popups before capture."""

from __future__ import annotations

import logging

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from sfs.schemas.config import BrowserSettings

logger = logging.getLogger(__name__)

DISMISS_SELECTORS: tuple[str, ...] = (
    # Cookie / consent banners
    '[class*="cookie"] button',
    '[id*="cookie"] button',
    '[class*="consent"] button',
    'button:has-text("Accept")',
    'button:has-text("Got it")',
    'button:has-text("I agree")',
    # Geo / locale redirect modals
    '[class*="shipping"] button',
    '[class*="geo"] button',
    '[class*="localization"] button[type="submit"]',
    'button:has-text("United States")',
    # Newsletter / promo popups
    '[class*="newsletter"] [class*="close"]',
    '[class*="popup"] button[class*="close"]',
    '[class*="modal"] button[class*="close"]',
    # Age gates
    '[class*="age"] button:has-text("Yes")',
    'button:has-text("I am over")',
    # Generic close controls
    '[aria-label="Close"]',
    '[aria-label="close"]',
    'button[class*="dismiss"]',
)

OVERLAY_MARKER = "data-sfs-overlay"

CLOSE_CONTROLS_IN_OVERLAY = (
    f'[{OVERLAY_MARKER}] [aria-label*="close" i], '
    f'[{OVERLAY_MARKER}] button[class*="close"], '
    f'[{OVERLAY_MARKER}] [class*="close"][role="button"], '
    f'[{OVERLAY_MARKER}] button:has-text("×"), '
    f'[{OVERLAY_MARKER}] button:has-text("No thanks")'
)

# Tags every fixed/sticky, high z-index element that covers a large share of
# the viewport (and isn't the site navigation) with OVERLAY_MARKER.
_MARK_OVERLAYS_JS = """([marker, minZ, minArea]) => {
    const vw = window.innerWidth, vh = window.innerHeight;
    let count = 0;
    for (const el of document.querySelectorAll('body *')) {
        const style = getComputedStyle(el);
        if (style.position !== 'fixed' && style.position !== 'sticky') continue;
        if (style.display === 'none' || style.visibility === 'hidden') continue;
        const z = parseInt(style.zIndex, 10);
        if (isNaN(z) || z < minZ) continue;
        if (el.closest('nav, header') || el.matches('nav, header')) continue;
        const r = el.getBoundingClientRect();
        const w = Math.max(0, Math.min(r.right, vw) - Math.max(r.left, 0));
        const h = Math.max(0, Math.min(r.bottom, vh) - Math.max(r.top, 0));
        if ((w * h) / (vw * vh) < minArea) continue;
        el.setAttribute(marker, String(count++));
    }
    return count;
}"""

_HIDE_OVERLAYS_JS = """(marker) => {
    for (const el of document.querySelectorAll('[' + marker + ']')) {
        el.style.setProperty('display', 'none', 'important');
        el.removeAttribute(marker);
    }
    document.body.style.overflow = '';
    document.documentElement.style.overflow = '';
}"""

OVERLAY_MIN_Z_INDEX = 1000
OVERLAY_MIN_AREA = 0.3


async def dismiss_overlays(page: Page, settings: BrowserSettings | None = None) -> None:
    """Close whatever is obstructing the page. Never raises."""
    settings = settings or BrowserSettings()
    try:
        await _click_known_dismissers(page, settings)
        await _clear_blocking_layers(page, settings)
    except Exception as exc:
        logger.debug("Overlay dismissal gave up: %s", exc)


async def _click_known_dismissers(page: Page, settings: BrowserSettings) -> None:
    for selector in DISMISS_SELECTORS:
        try:
            btn = page.locator(selector).first
            if not await btn.count():
                continue
            await btn.wait_for(state="visible", timeout=settings.overlay_probe_timeout_ms)
            await btn.click(timeout=settings.overlay_probe_timeout_ms)
            logger.debug("Dismissed overlay via %s", selector)
            await page.wait_for_timeout(settings.settle_ms)
        except PlaywrightError:
            continue


async def _clear_blocking_layers(page: Page, settings: BrowserSettings) -> None:
    """Second pass for overlays the selector list didn't know about.

    A close control inside the overlay is clicked when there is one, so the
    site's own "dismissed" cookie gets set and the popup stays away for the
    rest of the session. Whatever is still marked afterwards is hidden.
    """
    try:
        marked = await page.evaluate(
            _MARK_OVERLAYS_JS, [OVERLAY_MARKER, OVERLAY_MIN_Z_INDEX, OVERLAY_MIN_AREA],
        )
    except PlaywrightError as exc:
        logger.debug("Overlay scan failed: %s", exc)
        return
    if not marked:
        return

    logger.debug("Found %d blocking overlay(s)", marked)
    try:
        close = page.locator(CLOSE_CONTROLS_IN_OVERLAY).first
        await close.wait_for(state="visible", timeout=settings.probe_timeout_ms)
        await close.click(timeout=settings.probe_timeout_ms)
        await page.wait_for_timeout(settings.settle_ms)
    except PlaywrightError:
        pass

    try:
        await page.evaluate(_HIDE_OVERLAYS_JS, OVERLAY_MARKER)
    except PlaywrightError as exc:
        logger.debug("Could not hide overlays: %s", exc)
