"""Base synthesizer ABC — the pattern both reasoning agents follow."""

from __future__ import annotations

import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Sequence

from pydantic import BaseModel

from sfs.schemas.config import SynthesisSettings
from sfs.shared.llm_client import Completion, ImageAttachment, ReasoningService

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?```", re.DOTALL)


class BaseAgent(ABC):
    """Abstract base class for the synthesizers.

    Subclasses implement:
    - ``name`` — human-readable agent name (used in logs)
    - ``get_system_prompt()`` — returns the system prompt string
    - ``parse_output(raw_text)`` — parses the model's text into a Pydantic model

    Neither agent uses tools: one request with screenshots attached, one
    JSON answer back.
    """

    def __init__(
        self,
        client: ReasoningService,
        settings: SynthesisSettings | None = None,
    ) -> None:
        self.client = client
        self.settings = settings or SynthesisSettings()

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable name for logs."""

    @abstractmethod
    def get_system_prompt(self) -> str:
        """Return the system prompt for this agent."""

    @abstractmethod
    def parse_output(self, raw_text: str, **context: Any) -> BaseModel:
        """Parse the model's final text response into a Pydantic model."""

    async def _complete(
        self,
        prompt: str,
        *,
        images: Sequence[ImageAttachment] = (),
        max_tokens: int,
    ) -> Completion:
        completion = await self.client.complete(
            system=self.get_system_prompt(),
            prompt=prompt,
            images=images,
            max_tokens=max_tokens,
            image_detail=self.settings.image_detail,
        )
        logger.debug(
            "Agent %s raw output (finish_reason=%s):\n%s",
            self.name, completion.finish_reason, completion.text[:500],
        )
        return completion


def extract_json(text: str) -> dict[str, Any]:
    """Extract a JSON object from text that may contain markdown fences."""
    text = text.strip()

    # 1. Clean JSON response, possibly with trailing chatter
    if text.startswith("{"):
        try:
            obj, _ = json.JSONDecoder().raw_decode(text)
        except json.JSONDecodeError:
            pass
        else:
            if isinstance(obj, dict):
                return obj

    # 2. ```json ... ``` or ``` ... ``` fenced block
    match = _FENCE_RE.search(text)
    if match:
        obj = json.loads(match.group(1).strip())
        if not isinstance(obj, dict):
            raise ValueError(f"Fenced JSON is a {type(obj).__name__}, not an object")
        return obj

    # 3. First { onwards
    try:
        start = text.index("{")
        obj, _ = json.JSONDecoder().raw_decode(text, idx=start)
    except (ValueError, json.JSONDecodeError):
        pass
    else:
        if isinstance(obj, dict):
            return obj

    raise ValueError(
        f"Could not extract JSON from model response (length={len(text)}). "
        f"First 300 chars: {text[:300]!r}"
    )
