"""Tests for the BaseAgent contract and JSON extraction."""

from __future__ import annotations

import json

import pytest
from pydantic import BaseModel

from sfs.agents.base import BaseAgent, extract_json
from sfs.schemas.config import SynthesisSettings
from sfs.shared.llm_client import Completion, ImageAttachment


class SampleOutput(BaseModel):
    result: str
    count: int = 0


class SampleAgent(BaseAgent):
    """Concrete test implementation of BaseAgent."""

    @property
    def name(self) -> str:
        return "Sample Agent"

    def get_system_prompt(self) -> str:
        return "You are a test agent."

    def parse_output(self, raw_text: str) -> SampleOutput:
        return SampleOutput(**extract_json(raw_text))


class RecordingClient:
    def __init__(self, text: str) -> None:
        self.text = text
        self.calls: list[dict] = []

    async def complete(self, **kwargs) -> Completion:
        self.calls.append(kwargs)
        return Completion(text=self.text, finish_reason="stop")


class TestBaseAgent:
    def test_cannot_instantiate_abstract(self) -> None:
        with pytest.raises(TypeError):
            BaseAgent(RecordingClient("{}"))  # type: ignore[abstract]

    def test_default_settings(self) -> None:
        agent = SampleAgent(RecordingClient("{}"))
        assert agent.settings == SynthesisSettings()

    @pytest.mark.asyncio
    async def test_complete_passes_system_prompt_and_detail(self) -> None:
        client = RecordingClient('{"result": "ok"}')
        agent = SampleAgent(client, SynthesisSettings(image_detail="high"))

        completion = await agent._complete("prompt", images=[ImageAttachment(data="AA")], max_tokens=50)

        assert agent.parse_output(completion.text).result == "ok"
        call = client.calls[0]
        assert call["system"] == "You are a test agent."
        assert call["prompt"] == "prompt"
        assert call["max_tokens"] == 50
        assert call["image_detail"] == "high"
        assert len(call["images"]) == 1


class TestExtractJson:
    def test_clean_json(self) -> None:
        assert extract_json('{"result": "a"}') == {"result": "a"}

    def test_trailing_text(self) -> None:
        assert extract_json('{"result": "a"}\nHope this helps!') == {"result": "a"}

    def test_fenced_block(self) -> None:
        text = 'Here you go:\n```json\n{"result": "b", "count": 2}\n```'
        assert extract_json(text) == {"result": "b", "count": 2}

    def test_unlabelled_fence(self) -> None:
        assert extract_json('```\n{"result": "c"}\n```') == {"result": "c"}

    def test_embedded_object(self) -> None:
        assert extract_json('My analysis: {"result": "d"} done.') == {"result": "d"}

    def test_no_json(self) -> None:
        with pytest.raises(ValueError, match="Could not extract JSON"):
            extract_json("The page looks great overall.")

    def test_broken_fence_raises_decode_error(self) -> None:
        with pytest.raises(json.JSONDecodeError):
            extract_json('```json\n{"result": \n```')

    def test_fenced_array_is_rejected(self) -> None:
        with pytest.raises(ValueError):
            extract_json("```json\n[1, 2]\n```")
