"""Audit report agent — one holistic, scored audit per session."""

from __future__ import annotations

import json
import logging
from typing import Any, Sequence

from pydantic import ValidationError

from sfs.agents.audit_report.prompts import SYSTEM_PROMPT
from sfs.agents.base import BaseAgent, extract_json
from sfs.agents.step_commentary.agent import representative_screenshot
from sfs.schemas.commentary import StepCommentary
from sfs.schemas.report import (
    CATEGORY_LABELS,
    MAX_QUICK_WINS,
    AuditReport,
    CategoryScore,
)
from sfs.schemas.steps import StepRecord
from sfs.shared.llm_client import ImageAttachment

logger = logging.getLogger(__name__)


class AuditSynthesisError(Exception):
    """The audit report could not be produced."""


class ReportTruncatedError(AuditSynthesisError):
    """The model ran out of output tokens before finishing the report."""


class ReportParseError(AuditSynthesisError):
    """The model answered, but not with a usable report."""


def _format_stage(step: StepRecord, commentary: StepCommentary | None) -> str:
    lines = [
        f"=== {step.label} ({step.url or 'not reached'}) ===",
        f"Navigation: {step.navigation_method or 'unknown'} "
        f"(confidence: {step.navigation_confidence})",
    ]
    if step.error:
        lines.append(f"Stage error: {step.error}")
    if commentary is None:
        lines.append("No analysis available for this stage.")
        return "\n".join(lines)

    lines.append(f"Observations: {'; '.join(commentary.observations)}")
    issues = "; ".join(f"[{i.severity}] {i.description}" for i in commentary.issues)
    lines.append(f"Issues: {issues}")
    lines.append(f"Positives: {'; '.join(commentary.positives)}")
    lines.append(f"Narrative: {commentary.narrative}")
    return "\n".join(lines)


class AuditReportAgent(BaseAgent):
    """Turns the five stage records and their commentaries into an ``AuditReport``.

    Unlike step commentary there is no degraded fallback here: a truncated
    answer raises ``ReportTruncatedError`` and anything unparsable raises
    ``ReportParseError``.
    """

    @property
    def name(self) -> str:
        return "Audit Report"

    def get_system_prompt(self) -> str:
        return SYSTEM_PROMPT

    def parse_output(self, raw_text: str, *, store_url: str) -> AuditReport:
        data = extract_json(raw_text)

        categories_raw = data.get("categories") or []
        by_name: dict[str, dict[str, Any]] = {}
        for entry in categories_raw if isinstance(categories_raw, list) else []:
            if isinstance(entry, dict) and entry.get("category") in CATEGORY_LABELS:
                by_name.setdefault(entry["category"], entry)

        categories = []
        for key, label in CATEGORY_LABELS.items():
            entry = by_name.get(key)
            if entry is None:
                logger.warning("Audit report has no %s category", key)
                continue
            categories.append(CategoryScore(
                category=key,
                label=label,
                score=entry.get("score", 0),
                issues=entry.get("issues") or [],
            ))

        quick_wins = data.get("quick_wins") or []
        if not isinstance(quick_wins, list):
            raise ValueError(f"quick_wins is a {type(quick_wins).__name__}, not a list")

        return AuditReport(
            store_url=store_url,
            store_name=data.get("store_name") or store_url,
            overall_score=data.get("overall_score", 0),
            shopper_narrative=data.get("shopper_narrative") or "",
            quick_wins=quick_wins[:MAX_QUICK_WINS],
            categories=categories,
        )

    async def synthesize(
        self,
        store_url: str,
        steps: Sequence[StepRecord],
        commentaries: Sequence[StepCommentary],
    ) -> AuditReport:
        by_step = {c.step: c for c in commentaries}

        images = []
        for step in steps:
            screenshot = representative_screenshot(step)
            if screenshot:
                images.append(ImageAttachment(data=screenshot, caption=f"{step.label}:"))

        summaries = "\n\n".join(_format_stage(s, by_step.get(s.name)) for s in steps)
        prompt = (
            f"Full audit for: {store_url}\n\n"
            f"Browsing session:\n\n{summaries}\n\n"
            "Synthesize the per-stage analyses above into a comprehensive audit. "
            f"Top {MAX_QUICK_WINS} quick_wins = highest impact, lowest effort. JSON only."
        )

        completion = await self._complete(
            prompt, images=images, max_tokens=self.settings.report_max_tokens,
        )
        if completion.truncated:
            logger.error(
                "Audit report was truncated at max_tokens=%d (%d chars received)",
                self.settings.report_max_tokens, len(completion.text),
            )
            raise ReportTruncatedError(
                "Audit report response was truncated — output exceeded token limit"
            )

        try:
            report = self.parse_output(completion.text, store_url=store_url)
        except (ValueError, json.JSONDecodeError, ValidationError) as exc:
            logger.error(
                "Failed to parse audit report: %s. Response preview: %r",
                exc, completion.text[:500],
            )
            raise ReportParseError("Failed to parse audit report from model response") from exc

        logger.info(
            "Audit report for %s: score %d, %d categories, %d quick wins",
            store_url, report.overall_score, len(report.categories), len(report.quick_wins),
        )
        return report
