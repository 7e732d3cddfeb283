"""Pydantic models for the holistic audit report."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from sfs.schemas.commentary import Severity, normalize_severity

AuditCategory = Literal[
    "first_impression",
    "product_page",
    "trust_social_proof",
    "mobile_readiness",
    "purchase_path",
]

CATEGORY_LABELS: dict[str, str] = {
    "first_impression": "First Impression & Navigation",
    "product_page": "Product Page Effectiveness",
    "trust_social_proof": "Trust & Social Proof",
    "mobile_readiness": "Mobile Readiness",
    "purchase_path": "Purchase Path & Checkout",
}

MAX_QUICK_WINS = 3


def clamp_score(value: object) -> int:
    try:
        score = round(float(value))  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0
    return max(0, min(100, score))


class AuditIssue(BaseModel):
    """A single finding in the audit report."""

    id: str = ""
    category: str = ""
    severity: Severity = "medium"
    title: str = ""
    description: str = ""
    fix: str = ""
    page: str = ""  # stage name the finding was observed on
    effort: str = ""  # e.g. "~30 min"
    effort_type: str = ""  # "Theme edit", "Code change", "App install"

    @field_validator("severity", mode="before")
    @classmethod
    def coerce_severity(cls, v: object) -> str:
        return normalize_severity(v)

    @field_validator("id", "page", mode="before")
    @classmethod
    def coerce_to_str(cls, v: object) -> str:
        return "" if v is None else str(v)


class CategoryScore(BaseModel):
    """Score and findings for one of the five fixed categories."""

    category: AuditCategory
    label: str = ""
    score: int = 0
    issues: list[AuditIssue] = []

    @field_validator("score", mode="before")
    @classmethod
    def coerce_score(cls, v: object) -> int:
        return clamp_score(v)


class AuditReport(BaseModel):
    """The terminal deliverable of a session."""

    model_config = ConfigDict(frozen=True)

    store_url: str
    store_name: str
    overall_score: int
    shopper_narrative: str = ""
    quick_wins: list[AuditIssue] = []
    categories: list[CategoryScore] = []
    generated_at: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    @field_validator("overall_score", mode="before")
    @classmethod
    def coerce_score(cls, v: object) -> int:
        return clamp_score(v)
