"""Step commentary agent — one vision evaluation per completed stage."""

from __future__ import annotations

import json
import logging
from typing import Sequence

from pydantic import ValidationError

from sfs.agents.base import BaseAgent, extract_json
from sfs.agents.step_commentary.prompts import (
    ERROR_NOTE,
    LOW_CONFIDENCE_NOTE,
    SCREENSHOT_CONTEXT,
    STEP_CONTEXT,
    SYSTEM_PROMPT,
)
from sfs.schemas.commentary import StepCommentary
from sfs.schemas.steps import StepName, StepRecord
from sfs.shared.llm_client import ImageAttachment

logger = logging.getLogger(__name__)

# Stages where the state after the action is what matters
_LAST_SHOT_STEPS: frozenset[StepName] = frozenset({"add_to_cart", "cart"})


def representative_screenshot(step: StepRecord) -> str | None:
    """First capture for exploratory stages, last capture for action stages."""
    if not step.screenshots:
        return None
    if step.name in _LAST_SHOT_STEPS:
        return step.screenshots[-1]
    return step.screenshots[0]


def summarize_prior_steps(prior_steps: Sequence[StepRecord]) -> str:
    lines = []
    for prior in prior_steps:
        outcome = f"Issue: {prior.error}" if prior.error else "OK"
        lines.append(f"- {prior.label} ({prior.url}) — {outcome}")
    return "\n".join(lines)


class StepCommentaryAgent(BaseAgent):
    """Evaluates one stage from its representative screenshot and HTML.

    ``synthesize`` never raises on a bad answer: unparsable output becomes a
    degraded commentary holding the start of the raw text. Errors from the
    reasoning service itself still propagate.
    """

    @property
    def name(self) -> str:
        return "Step Commentary"

    def get_system_prompt(self) -> str:
        return SYSTEM_PROMPT

    def parse_output(self, raw_text: str, *, step: StepName) -> StepCommentary:
        data = extract_json(raw_text)
        data["step"] = step
        return StepCommentary(**data)

    async def synthesize(
        self,
        step: StepRecord,
        store_url: str,
        prior_steps: Sequence[StepRecord] = (),
    ) -> StepCommentary:
        screenshot = representative_screenshot(step)
        images = [ImageAttachment(data=screenshot)] if screenshot else []

        completion = await self._complete(
            self.build_prompt(step, store_url, prior_steps),
            images=images,
            max_tokens=self.settings.commentary_max_tokens,
        )
        if completion.truncated:
            logger.warning("Commentary for %s was truncated", step.name)

        try:
            return self.parse_output(completion.text, step=step.name)
        except (ValueError, json.JSONDecodeError, ValidationError) as exc:
            logger.warning(
                "Commentary for %s could not be parsed, keeping raw text: %s",
                step.name, exc,
            )
            return StepCommentary.degraded(step.name, completion.text)

    def build_prompt(
        self,
        step: StepRecord,
        store_url: str,
        prior_steps: Sequence[StepRecord] = (),
    ) -> str:
        method = step.navigation_method or "unknown"
        sections = [
            f"Store: {store_url}",
            f"Current page: {step.label} ({step.url})",
            f"Navigation: {method} (confidence: {step.navigation_confidence})",
            f"Context: {STEP_CONTEXT[step.name]}",
            f"Screenshot info: {SCREENSHOT_CONTEXT[step.name]}",
        ]
        if prior_steps:
            sections.append(f"\nPrevious pages visited:\n{summarize_prior_steps(prior_steps)}\n")

        excerpt = step.html[: self.settings.html_excerpt_chars]
        sections.append(f"Page HTML (trimmed):\n{excerpt or 'HTML not available'}")

        if step.error:
            sections.append("\n" + ERROR_NOTE.format(error=step.error))
        if step.navigation_confidence != "high":
            sections.append("\n" + LOW_CONFIDENCE_NOTE.format(method=method))

        sections.append("\nAnalyze this page based on the screenshot above and the HTML. JSON only.")
        return "\n".join(sections)
