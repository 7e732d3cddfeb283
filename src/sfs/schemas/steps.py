"""Stage definitions and the per-stage evidence record."""

from __future__ import annotations

import time
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

StepName = Literal["homepage", "collections", "product", "add_to_cart", "cart"]
Confidence = Literal["high", "medium", "low"]

NAVIGATION_FAILED = "navigation failed"
MAX_HTML_CHARS = 50_000


class StepDefinition(BaseModel):
    """One of the five fixed shopping-journey stages."""

    model_config = ConfigDict(frozen=True)

    name: StepName
    label: str
    description: str


STEP_DEFINITIONS: tuple[StepDefinition, ...] = (
    StepDefinition(
        name="homepage",
        label="Landing on Homepage",
        description="Arriving at the store for the first time — evaluating first impressions",
    ),
    StepDefinition(
        name="collections",
        label="Browsing Collections",
        description="Looking for products — evaluating navigation and discovery",
    ),
    StepDefinition(
        name="product",
        label="Viewing a Product",
        description="Examining a product page — evaluating purchase decision factors",
    ),
    StepDefinition(
        name="add_to_cart",
        label="Adding to Cart",
        description="Attempting to add a product — evaluating the conversion action",
    ),
    StepDefinition(
        name="cart",
        label="Reviewing Cart",
        description="Checking the cart — evaluating checkout readiness and friction",
    ),
)

STEP_ORDER: tuple[StepName, ...] = tuple(d.name for d in STEP_DEFINITIONS)


def get_definition(name: StepName) -> StepDefinition:
    for definition in STEP_DEFINITIONS:
        if definition.name == name:
            return definition
    raise KeyError(name)


class StepRecord(StepDefinition):
    """Evidence captured for a single stage of the session."""

    url: str = ""
    screenshots: list[str] = []  # base64 image strings, in capture order
    html: str = Field(default="", max_length=MAX_HTML_CHARS)
    timestamp: float = Field(default_factory=time.time)
    error: str | None = None
    navigation_confidence: Confidence = "low"
    navigation_method: str = ""

    @classmethod
    def from_definition(cls, definition: StepDefinition, **fields: object) -> StepRecord:
        return cls(**definition.model_dump(), **fields)

    @classmethod
    def failed(cls, definition: StepDefinition, error: str, **fields: object) -> StepRecord:
        """Record for a stage whose navigation or action blew up."""
        fields.setdefault("navigation_confidence", "low")
        fields.setdefault("navigation_method", NAVIGATION_FAILED)
        return cls.from_definition(definition, error=error, **fields)

    @property
    def ok(self) -> bool:
        return self.error is None


class NavigationResult(BaseModel):
    """Where a discovery heuristic decided to go, and how sure it is."""

    url: str
    method: str
    confidence: Confidence

    def downgraded(self) -> NavigationResult:
        return self.model_copy(update={"confidence": "low"})


class CrawlResult(BaseModel):
    """Output of one full browsing session."""

    steps: list[StepRecord]
    total_time_ms: int
