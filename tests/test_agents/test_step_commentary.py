"""Tests for the step commentary agent."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

import pytest

from sfs.agents.step_commentary.agent import (
    StepCommentaryAgent,
    representative_screenshot,
    summarize_prior_steps,
)
from sfs.agents.step_commentary.prompts import SYSTEM_PROMPT
from sfs.schemas.config import SynthesisSettings
from sfs.shared.llm_client import Completion

SAMPLE_OUTPUT = {
    "observations": ["Hero banner shows linen shirts", "Cart icon in the header"],
    "issues": [
        {
            "description": "No shipping information above the fold",
            "severity": "High",
            "category": "purchase_path",
            "fix": "Add a free-shipping threshold to the announcement bar.",
        }
    ],
    "positives": ["Clear product photography"],
    "narrative": "I can see what they sell right away.",
}


def _agent(text: str, finish_reason: str = "stop", **settings) -> tuple[StepCommentaryAgent, AsyncMock]:
    client = AsyncMock()
    client.complete = AsyncMock(return_value=Completion(text=text, finish_reason=finish_reason))
    return StepCommentaryAgent(client, SynthesisSettings(**settings)), client


class TestRepresentativeScreenshot:
    @pytest.mark.parametrize("step, expected", [
        ("homepage", "first"), ("collections", "first"), ("product", "first"),
        ("add_to_cart", "last"), ("cart", "last"),
    ])
    def test_selection(self, make_record, step, expected) -> None:
        record = make_record(step, screenshots=["first", "middle", "last"])
        assert representative_screenshot(record) == expected

    def test_no_screenshots(self, make_record) -> None:
        assert representative_screenshot(make_record("cart", screenshots=[])) is None


class TestSynthesize:
    @pytest.mark.asyncio
    async def test_parses_commentary(self, make_record, store_url) -> None:
        agent, _ = _agent(json.dumps(SAMPLE_OUTPUT))

        commentary = await agent.synthesize(make_record("homepage"), store_url)

        assert commentary.step == "homepage"
        assert commentary.observations == SAMPLE_OUTPUT["observations"]
        assert commentary.issues[0].severity == "high"
        assert commentary.narrative == "I can see what they sell right away."

    @pytest.mark.asyncio
    async def test_fenced_output(self, make_record, store_url) -> None:
        agent, _ = _agent(f"```json\n{json.dumps(SAMPLE_OUTPUT)}\n```")

        commentary = await agent.synthesize(make_record("product"), store_url)

        assert commentary.positives == ["Clear product photography"]

    @pytest.mark.asyncio
    async def test_step_comes_from_record_not_model(self, make_record, store_url) -> None:
        agent, _ = _agent(json.dumps({**SAMPLE_OUTPUT, "step": "homepage"}))

        commentary = await agent.synthesize(make_record("cart"), store_url)

        assert commentary.step == "cart"

    @pytest.mark.asyncio
    async def test_unparsable_output_degrades(self, make_record, store_url) -> None:
        raw = "I looked at the page and it seems fine, though shipping is unclear. " * 10
        agent, _ = _agent(raw)

        commentary = await agent.synthesize(make_record("collections"), store_url)

        assert commentary.step == "collections"
        assert commentary.narrative == raw[:200]
        assert commentary.issues == []
        assert commentary.observations == []

    @pytest.mark.asyncio
    async def test_schema_mismatch_degrades(self, make_record, store_url) -> None:
        agent, _ = _agent(json.dumps({"observations": "just one string", "issues": [{"severity": "low"}]}))

        commentary = await agent.synthesize(make_record("cart"), store_url)

        assert commentary.issues == []
        assert commentary.narrative.startswith('{"observations"')

    @pytest.mark.asyncio
    async def test_service_errors_propagate(self, make_record, store_url) -> None:
        client = AsyncMock()
        client.complete = AsyncMock(side_effect=RuntimeError("503 from upstream"))
        agent = StepCommentaryAgent(client)

        with pytest.raises(RuntimeError):
            await agent.synthesize(make_record("homepage"), store_url)

    @pytest.mark.asyncio
    async def test_request_shape(self, make_record, store_url) -> None:
        agent, client = _agent(json.dumps(SAMPLE_OUTPUT), image_detail="auto")
        record = make_record("add_to_cart", screenshots=["before", "after"])

        await agent.synthesize(record, store_url)

        kwargs = client.complete.call_args.kwargs
        assert kwargs["system"] == SYSTEM_PROMPT
        assert kwargs["max_tokens"] == 1_000
        assert kwargs["image_detail"] == "auto"
        assert [img.data for img in kwargs["images"]] == ["after"]

    @pytest.mark.asyncio
    async def test_no_screenshot_sends_no_image(self, make_record, store_url) -> None:
        agent, client = _agent(json.dumps(SAMPLE_OUTPUT))

        await agent.synthesize(make_record("cart", screenshots=[]), store_url)

        assert client.complete.call_args.kwargs["images"] == []


class TestBuildPrompt:
    def test_includes_stage_framing(self, make_record, store_url) -> None:
        agent, _ = _agent("{}")
        prompt = agent.build_prompt(make_record("homepage"), store_url)

        assert f"Store: {store_url}" in prompt
        assert "Current page: Landing on Homepage" in prompt
        assert "confidence: high" in prompt
        assert "under 5 seconds" in prompt
        assert "above the fold" in prompt
        assert "Previous pages visited" not in prompt
        assert "IMPORTANT" not in prompt

    def test_html_excerpt_is_trimmed(self, make_record, store_url) -> None:
        agent, _ = _agent("{}", html_excerpt_chars=20)
        prompt = agent.build_prompt(make_record("product", html="<p>" + "z" * 500 + "</p>"), store_url)

        assert "z" * 17 in prompt
        assert "z" * 18 not in prompt

    def test_missing_html(self, make_record, store_url) -> None:
        agent, _ = _agent("{}")
        assert "HTML not available" in agent.build_prompt(make_record("cart", html=""), store_url)

    def test_low_confidence_and_error_notes(self, make_record, store_url) -> None:
        agent, _ = _agent("{}")
        record = make_record(
            "add_to_cart",
            navigation_confidence="low",
            navigation_method="no add-to-cart control found on current page",
            error="add-to-cart could not be verified: no add-to-cart control found",
        )
        prompt = agent.build_prompt(record, store_url)

        assert "Note: add-to-cart could not be verified" in prompt
        assert "IMPORTANT: This page was reached via no add-to-cart control found" in prompt

    def test_prior_steps_summary(self, make_record, store_url) -> None:
        agent, _ = _agent("{}")
        prior = [make_record("homepage"), make_record("collections", error="Timeout")]
        prompt = agent.build_prompt(make_record("product"), store_url, prior)

        assert "Previous pages visited" in prompt
        assert summarize_prior_steps(prior) in prompt
        assert "Browsing Collections" in prompt and "Issue: Timeout" in prompt
        assert "Landing on Homepage" in prompt and "— OK" in prompt
