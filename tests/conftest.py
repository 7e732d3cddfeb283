"""Shared test fixtures."""

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

import pytest
from playwright.async_api import Error as PlaywrightError

from sfs.schemas.config import BrowserSettings
from sfs.schemas.steps import STEP_DEFINITIONS, StepRecord

STORE_URL = "https://demo-store.example"


@dataclass
class FakeElement:
    """One element the fake page knows about, keyed by selector."""

    visible: bool = True
    attrs: dict[str, str] = field(default_factory=dict)
    text: str = ""
    options: list[str] = field(default_factory=list)
    on_click: Callable[["FakePage"], None] | None = None
    click_error: str | None = None


class FakeLocator:
    """Just enough of ``playwright.async_api.Locator`` for the crawler."""

    def __init__(self, page: "FakePage", selector: str, *, visible_only: bool = False) -> None:
        self._page = page
        self.selector = selector
        self.visible_only = visible_only

    @property
    def _element(self) -> FakeElement | None:
        hidden = self._page.hidden_copies.get(self.selector)
        if hidden is not None and not self.visible_only:
            return hidden
        return self._page.elements.get(self.selector)

    @property
    def first(self) -> "FakeLocator":
        return self

    async def count(self) -> int:
        return 1 if self._element is not None else 0

    async def wait_for(self, *, state: str = "visible", timeout: float | None = None) -> None:
        self._page.probes.append(self.selector)
        element = self._element
        if element is None or not element.visible:
            raise PlaywrightError(f"Timeout {timeout}ms exceeded waiting for {self.selector}")

    async def click(self, *, timeout: float | None = None) -> None:
        element = self._element
        if element is None:
            raise PlaywrightError(f"No element for {self.selector}")
        if element.click_error:
            raise PlaywrightError(element.click_error)
        self._page.clicks.append(self.selector)
        if element.on_click:
            element.on_click(self._page)

    async def get_attribute(self, name: str) -> str | None:
        element = self._element
        return element.attrs.get(name) if element else None

    async def text_content(self) -> str | None:
        element = self._element
        return element.text if element else None

    def locator(self, selector: str) -> "FakeLocator | FakeOptionList":
        if selector == "visible=true":
            return FakeLocator(self._page, self.selector, visible_only=True)
        return FakeOptionList(self._page, self._element.options if self._element else [])

    async def select_option(self, value: str) -> list[str]:
        self._page.selected.append(value)
        return [value]


class FakeOptionList:
    def __init__(self, page: "FakePage", values: list[str]) -> None:
        self._page = page
        self._values = values

    async def all(self) -> list["FakeOption"]:
        return [FakeOption(v) for v in self._values]


class FakeOption:
    def __init__(self, value: str) -> None:
        self._value = value

    async def get_attribute(self, name: str) -> str | None:
        return self._value if name == "value" else None


class FakePage:
    """In-memory stand-in for a Playwright page.

    ``elements`` maps selectors to what the page shows; ``html`` maps URLs
    to the markup returned by ``content()``. Everything the crawler does is
    recorded so tests can assert on it.
    """

    def __init__(self, url: str = "about:blank") -> None:
        self.url = url
        self.elements: dict[str, FakeElement] = {}
        # hidden element matching the same selector earlier in the DOM
        self.hidden_copies: dict[str, FakeElement] = {}
        self.html: dict[str, str] = {}
        self.goto_errors: dict[str, str] = {}
        self.overlay_count = 0

        self.visits: list[str] = []
        self.probes: list[str] = []
        self.clicks: list[str] = []
        self.selected: list[str] = []
        self.evaluated: list[tuple[str, Any]] = []
        self.waits: list[float] = []
        self._shots = 0

    def add(self, selector: str, **kwargs: Any) -> FakeElement:
        element = FakeElement(**kwargs)
        self.elements[selector] = element
        return element

    def add_hidden_copy(self, selector: str, **kwargs: Any) -> FakeElement:
        element = FakeElement(visible=False, **kwargs)
        self.hidden_copies[selector] = element
        return element

    def locator(self, selector: str) -> FakeLocator:
        return FakeLocator(self, selector)

    async def goto(self, url: str, **kwargs: Any) -> None:
        self.visits.append(url)
        if url in self.goto_errors:
            raise PlaywrightError(self.goto_errors[url])
        self.url = url

    async def content(self) -> str:
        return self.html.get(self.url, f"<html><body><h1>{self.url}</h1></body></html>")

    async def screenshot(self, **kwargs: Any) -> bytes:
        self._shots += 1
        return f"shot-{self._shots}".encode()

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        self.evaluated.append((script, arg))
        if "body *" in script:
            return self.overlay_count
        return None

    async def wait_for_timeout(self, ms: float) -> None:
        self.waits.append(ms)


def b64(text: str) -> str:
    return base64.b64encode(text.encode()).decode()


@pytest.fixture
def fake_page() -> FakePage:
    return FakePage()


@pytest.fixture
def settings() -> BrowserSettings:
    return BrowserSettings()


@pytest.fixture
def store_url() -> str:
    return STORE_URL


@pytest.fixture
def make_record() -> Callable[..., StepRecord]:
    """Factory for StepRecords with sensible evidence for any stage."""

    def _make(name: str, **fields: Any) -> StepRecord:
        definition = next(d for d in STEP_DEFINITIONS if d.name == name)
        fields.setdefault("url", f"{STORE_URL}/{name}")
        fields.setdefault("screenshots", [b64(f"{name}-top"), b64(f"{name}-bottom")])
        fields.setdefault("html", f"<main>{name} page</main>")
        fields.setdefault("navigation_confidence", "high")
        fields.setdefault("navigation_method", f"direct URL {STORE_URL}")
        return StepRecord.from_definition(definition, **fields)

    return _make


@pytest.fixture
def tmp_config(tmp_path: Path) -> Path:
    """Write a small valid config YAML and return its path."""
    cfg = tmp_path / "session-config.yml"
    cfg.write_text(
        """\
browser:
  headless: false
  navigation_timeout_ms: 20000
synthesis:
  model: gpt-4o-mini
"""
    )
    return cfg
