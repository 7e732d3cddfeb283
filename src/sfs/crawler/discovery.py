"""Element and link discovery across storefront markup we don't control.

Every lookup is an ordered chain of ``Candidate`` selectors tried with a short
visibility wait and early exit. The confidence tag of the winning candidate
rides along on the result so synthesis can tell "this is the real page" from
"we guessed".
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any

import httpx
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Locator, Page

from sfs.schemas.config import BrowserSettings
from sfs.schemas.steps import Confidence, NavigationResult
from sfs.shared.urls import resolve_href, store_path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Candidate:
    """One lookup strategy in a fallback chain."""

    selector: str
    confidence: Confidence = "high"


@dataclass(frozen=True)
class Match:
    """The first visible element a chain produced."""

    locator: Locator
    selector: str
    confidence: Confidence


COLLECTION_LINKS: tuple[Candidate, ...] = (
    Candidate('nav a[href*="collection"]'),
    Candidate('header a[href*="collection"]'),
    Candidate('nav a[href*="/shop"]'),
    Candidate('header a[href*="/shop"]'),
    Candidate('a[href*="/collections/all"]'),
)
COLLECTIONS_FALLBACK_PATH = "/collections/all"

PRODUCT_LINKS: tuple[Candidate, ...] = (
    Candidate('a[href*="/products/"]'),
)
CATALOG_API_PATH = "/products.json?limit=1"

VARIANT_CONTROLS: tuple[Candidate, ...] = (
    Candidate('[class*="size"] button'),
    Candidate('.product-form__input input[type="radio"]'),
    Candidate('[name*="option"] + label'),
    Candidate('[data-option-index] button'),
)
VARIANT_SELECT = 'select[name*="option"]'

ADD_TO_CART_CONTROLS: tuple[Candidate, ...] = (
    Candidate('button[name="add"]'),
    Candidate('button[type="submit"][class*="add"]'),
    Candidate('button:has-text("Add to cart")'),
    Candidate('button:has-text("Add to bag")'),
    Candidate('input[type="submit"][value*="Add"]'),
    Candidate('[data-action="add-to-cart"]'),
    Candidate(".product-form__submit"),
    Candidate("#AddToCart"),
    Candidate("#add-to-cart"),
)

CART_COUNT_BADGES: tuple[Candidate, ...] = (
    Candidate('[class*="cart-count"]'),
    Candidate('[class*="cart-icon-bubble"]'),
    Candidate("[data-cart-count]"),
)
CART_CONFIRMATIONS: tuple[Candidate, ...] = (
    Candidate('[class*="cart-drawer"]'),
    Candidate('[class*="cart-notification"]'),
    Candidate('[class*="side-cart"]'),
    Candidate('[class*="success"]'),
    Candidate('[class*="added"]'),
)

EMPTY_STATE_PATTERNS: tuple[str, ...] = (
    "nothing to see here",
    "no products found",
    "page not found",
    "404",
    "no results",
    "empty collection",
    "uh-oh",
    "doesn’t exist",
    "doesn't exist",
    "not available",
)
EMPTY_STATE_PREFIX_CHARS = 5_000

_EMPTY_STATE_RE = re.compile(
    r"\b(?:" + "|".join(re.escape(p) for p in EMPTY_STATE_PATTERNS) + r")\b",
    re.IGNORECASE,
)
_TAG_RE = re.compile(r"<[^>]+>")
_COUNT_RE = re.compile(r"\d+")


async def is_visible_within(locator: Locator, timeout_ms: int) -> bool:
    """Wait up to ``timeout_ms`` for the locator to become visible."""
    try:
        await locator.wait_for(state="visible", timeout=timeout_ms)
    except PlaywrightError:
        return False
    return True


async def first_visible(
    page: Page,
    candidates: tuple[Candidate, ...],
    *,
    timeout_ms: int,
) -> Match | None:
    """First candidate whose element shows up within the bounded wait, else None."""
    for candidate in candidates:
        locator = page.locator(candidate.selector).locator("visible=true").first
        if await is_visible_within(locator, timeout_ms):
            logger.debug("Matched %s", candidate.selector)
            return Match(locator=locator, selector=candidate.selector, confidence=candidate.confidence)
    return None


async def _href_of(match: Match) -> str | None:
    try:
        href = await match.locator.get_attribute("href")
    except PlaywrightError:
        return None
    return href.strip() if href and href.strip() else None


def _base_url(page: Page, store_url: str) -> str:
    """URL relative links on the current page resolve against."""
    url = page.url or ""
    return url if url.startswith(("http://", "https://")) else store_url


def badge_count(text: str) -> int:
    """Number shown in a cart badge ("(2)", "2 items", "Cart 2"); 0 if none."""
    match = _COUNT_RE.search(text)
    return int(match.group()) if match else 0


def detect_empty_state(html: str, *, prefix_chars: int = EMPTY_STATE_PREFIX_CHARS) -> bool:
    """True when the top of the page reads like an empty or error page.

    Only the visible text of the first ``prefix_chars`` characters is checked,
    as whole words, so asset URLs like ``hero.jpg?v=1714043404`` and footer
    copy ("not available in your region", "404 Main St") don't trigger it.
    """
    text = _TAG_RE.sub(" ", html[:prefix_chars])
    return _EMPTY_STATE_RE.search(text) is not None


# ----------------------------------------------------------------------
# Navigation targets
# ----------------------------------------------------------------------


async def find_collections_link(
    page: Page,
    store_url: str,
    settings: BrowserSettings,
) -> NavigationResult:
    """Catalog link from the nav, or ``/collections/all`` at medium confidence."""
    for candidate in COLLECTION_LINKS:
        match = await first_visible(page, (candidate,), timeout_ms=settings.probe_timeout_ms)
        if match is None:
            continue
        href = await _href_of(match)
        if href:
            return NavigationResult(
                url=resolve_href(_base_url(page, store_url), href),
                method=f"followed nav link to {href}",
                confidence=match.confidence,
            )

    return NavigationResult(
        url=store_path(store_url, COLLECTIONS_FALLBACK_PATH),
        method=f"fallback to {COLLECTIONS_FALLBACK_PATH}",
        confidence="medium",
    )


async def fetch_first_product_handle(
    store_url: str,
    settings: BrowserSettings,
    *,
    http: httpx.AsyncClient | None = None,
) -> str | None:
    """Handle of the first product from the storefront's catalog listing API."""
    url = store_path(store_url, CATALOG_API_PATH)
    owns_client = http is None
    if http is None:
        http = httpx.AsyncClient(
            follow_redirects=True,
            timeout=settings.catalog_api_timeout_ms / 1000,
            headers={"User-Agent": settings.user_agent},
        )
    try:
        resp = await http.get(url)
        resp.raise_for_status()
        data: Any = resp.json()
    except (httpx.HTTPError, ValueError) as exc:
        logger.info("Catalog API lookup failed for %s: %s", url, exc)
        return None
    finally:
        if owns_client:
            await http.aclose()

    products = data.get("products") if isinstance(data, dict) else None
    if not isinstance(products, list) or not products or not isinstance(products[0], dict):
        return None
    handle = products[0].get("handle")
    return str(handle) if handle else None


async def find_product_link(
    page: Page,
    store_url: str,
    settings: BrowserSettings,
    *,
    http: httpx.AsyncClient | None = None,
) -> NavigationResult:
    """Product page to visit. Never raises — the last resort is a low-confidence guess."""
    match = await first_visible(page, PRODUCT_LINKS, timeout_ms=settings.product_probe_timeout_ms)
    if match is not None:
        href = await _href_of(match)
        if href:
            return NavigationResult(
                url=resolve_href(_base_url(page, store_url), href),
                method=f"followed product link to {href}",
                confidence=match.confidence,
            )

    handle = await fetch_first_product_handle(store_url, settings, http=http)
    if handle:
        return NavigationResult(
            url=store_path(store_url, f"/products/{handle}"),
            method=f"fallback to /products.json API ({handle})",
            confidence="medium",
        )

    current = page.url or store_url
    logger.warning("No product link or catalog API result; staying on %s", current)
    return NavigationResult(
        url=current,
        method="no product link found; stayed on current page",
        confidence="low",
    )


# ----------------------------------------------------------------------
# Product page actions
# ----------------------------------------------------------------------


async def select_variant(page: Page, settings: BrowserSettings) -> bool:
    """Pick a size/option so add-to-cart isn't blocked. True if something was chosen.

    Clickable swatches and radios are tried first; a dropdown is the fallback,
    where the second option is taken because the first is usually a
    "Select…" placeholder.
    """
    match = await first_visible(page, VARIANT_CONTROLS, timeout_ms=settings.probe_timeout_ms)
    if match is not None:
        try:
            await match.locator.click(timeout=settings.probe_timeout_ms)
            await page.wait_for_timeout(settings.settle_ms)
            return True
        except PlaywrightError as exc:
            logger.debug("Variant click on %s failed: %s", match.selector, exc)

    select = page.locator(VARIANT_SELECT).first
    if not await is_visible_within(select, settings.probe_timeout_ms):
        return False
    try:
        options = await select.locator("option").all()
        if len(options) < 2:
            return False
        value = await options[1].get_attribute("value")
        if not value:
            return False
        await select.select_option(value)
        await page.wait_for_timeout(settings.settle_ms)
    except PlaywrightError as exc:
        logger.debug("Variant dropdown selection failed: %s", exc)
        return False
    return True


async def find_add_to_cart_control(page: Page, settings: BrowserSettings) -> Match | None:
    return await first_visible(
        page, ADD_TO_CART_CONTROLS, timeout_ms=settings.add_to_cart_probe_timeout_ms,
    )


async def verify_cart_update(page: Page, settings: BrowserSettings) -> bool:
    """Non-zero cart badge, or a cart drawer / confirmation on screen."""
    for candidate in CART_COUNT_BADGES:
        match = await first_visible(page, (candidate,), timeout_ms=settings.probe_timeout_ms)
        if match is None:
            continue
        try:
            text = await match.locator.text_content() or ""
        except PlaywrightError:
            continue
        if badge_count(text) > 0:
            return True

    match = await first_visible(page, CART_CONFIRMATIONS, timeout_ms=settings.probe_timeout_ms)
    return match is not None
