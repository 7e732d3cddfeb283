"""Pydantic models for per-stage commentary."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, field_validator

from sfs.schemas.steps import StepName

Severity = Literal["high", "medium", "low"]

DEGRADED_NARRATIVE_CHARS = 200


def normalize_severity(value: object) -> str:
    """Lower-case known severities; anything unrecognised becomes ``medium``."""
    text = str(value or "").strip().lower()
    if text in ("high", "medium", "low"):
        return text
    if text in ("critical", "serious", "major"):
        return "high"
    if text in ("minor", "trivial"):
        return "low"
    return "medium"


class StepIssue(BaseModel):
    """A conversion problem spotted on one page."""

    description: str
    severity: Severity = "medium"
    category: str = ""  # one of the five audit categories, ideally
    fix: str = ""

    @field_validator("severity", mode="before")
    @classmethod
    def coerce_severity(cls, v: object) -> str:
        return normalize_severity(v)


class StepCommentary(BaseModel):
    """Structured evaluation of a single stage."""

    model_config = ConfigDict(frozen=True)

    step: StepName
    observations: list[str] = []
    issues: list[StepIssue] = []
    positives: list[str] = []
    narrative: str = ""

    @classmethod
    def degraded(cls, step: StepName, raw: str) -> StepCommentary:
        """Fallback used when the model output cannot be parsed."""
        return cls(step=step, narrative=raw[:DEGRADED_NARRATIVE_CHARS])
