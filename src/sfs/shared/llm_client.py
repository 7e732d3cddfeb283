"""Async OpenAI API wrapper — the reasoning service behind both synthesizers.

A request is a system prompt, a text prompt and optional screenshot
attachments; the response is free-form text (expected to hold one JSON
object) plus the finish reason, so callers can tell a truncated answer
apart from a malformed one.
"""

from __future__ import annotations

import asyncio
import json
import logging
import random
import re
from dataclasses import dataclass
from typing import Any, Protocol, Sequence

from openai import AsyncOpenAI, APIConnectionError, APITimeoutError, RateLimitError

logger = logging.getLogger(__name__)

# Default model; SynthesisSettings.model overrides it per session
MODEL = "gpt-4o"
MAX_TOKENS = 4_096

MAX_ATTEMPTS = 6
BACKOFF_BASE_S = 2.0
BACKOFF_CAP_S = 60.0

IMAGE_MEDIA_TYPE = "image/jpeg"

_TRY_AGAIN_RE = re.compile(r"try again in (\d+(?:\.\d+)?)\s*(ms|s)\b", re.IGNORECASE)


def retry_after_seconds(exc: RateLimitError) -> float | None:
    """Server-suggested wait from the ``Retry-After`` header or the error text."""
    response = getattr(exc, "response", None)
    header = response.headers.get("retry-after") if response is not None else None
    if header:
        try:
            return float(header)
        except ValueError:
            logger.debug("Ignoring non-numeric Retry-After header %r", header)

    match = _TRY_AGAIN_RE.search(str(exc))
    if match is None:
        return None
    amount = float(match.group(1))
    return amount / 1000 if match.group(2).lower() == "ms" else amount


def backoff_delay(attempt: int, *, floor: float | None = None) -> float:
    """Exponential delay for a 0-based ``attempt``, jittered by ±25%."""
    delay = min(BACKOFF_CAP_S, BACKOFF_BASE_S * 2 ** attempt)
    if floor:
        delay = max(delay, floor)
    return max(1.0, delay * random.uniform(0.75, 1.25))


def _request_too_large(exc: RateLimitError) -> bool:
    text = str(exc).lower()
    return "request too large" in text or "context_length_exceeded" in text


@dataclass(frozen=True)
class Completion:
    """Raw model answer."""

    text: str
    finish_reason: str | None = None

    @property
    def truncated(self) -> bool:
        """True when the model stopped because it ran out of output tokens."""
        return self.finish_reason in ("length", "max_tokens")


@dataclass(frozen=True)
class ImageAttachment:
    """A base64 screenshot plus the caption placed just before it."""

    data: str
    caption: str = ""


class ReasoningService(Protocol):
    """What the synthesizers need from a model client."""

    async def complete(
        self,
        *,
        system: str,
        prompt: str,
        images: Sequence[ImageAttachment] = (),
        max_tokens: int = MAX_TOKENS,
        json_mode: bool = True,
        image_detail: str = "low",
    ) -> Completion: ...


def build_content_parts(
    prompt: str,
    images: Sequence[ImageAttachment],
    *,
    image_detail: str = "low",
) -> list[dict[str, Any]]:
    """Multipart user content: captioned images first, then the text prompt."""
    parts: list[dict[str, Any]] = []
    for image in images:
        if image.caption:
            parts.append({"type": "text", "text": image.caption})
        parts.append({
            "type": "image_url",
            "image_url": {
                "url": f"data:{IMAGE_MEDIA_TYPE};base64,{image.data}",
                "detail": image_detail,
            },
        })
    parts.append({"type": "text", "text": prompt})
    return parts


class ReasoningClient:
    """Thin async wrapper around the OpenAI SDK.

    One method, ``complete``: a single chat completion with optional image
    attachments. Rate limits and dropped connections are retried up to
    ``MAX_ATTEMPTS`` times; a request that is itself too large is not.
    """

    def __init__(self, api_key: str | None = None, *, model: str = MODEL) -> None:
        self._client = AsyncOpenAI(api_key=api_key)
        self.model = model

    async def _create(self, **kwargs: Any) -> Any:
        attempt = 0
        while True:
            try:
                return await self._client.chat.completions.create(**kwargs)
            except RateLimitError as exc:
                if _request_too_large(exc):
                    logger.error("Request exceeds the model's token limit: %s", exc)
                    raise
                if attempt + 1 >= MAX_ATTEMPTS:
                    raise
                delay = backoff_delay(attempt, floor=retry_after_seconds(exc))
                reason = f"rate limited ({exc})"
            except (APIConnectionError, APITimeoutError) as exc:
                if attempt + 1 >= MAX_ATTEMPTS:
                    raise
                delay = backoff_delay(attempt)
                reason = f"connection problem ({exc})"

            attempt += 1
            logger.warning(
                "OpenAI %s; retry %d/%d in %.1fs",
                reason, attempt, MAX_ATTEMPTS - 1, delay,
            )
            await asyncio.sleep(delay)

    async def complete(
        self,
        *,
        system: str,
        prompt: str,
        images: Sequence[ImageAttachment] = (),
        max_tokens: int = MAX_TOKENS,
        json_mode: bool = True,
        image_detail: str = "low",
    ) -> Completion:
        """Send one request, with screenshots attached when given.

        ``json_mode`` asks the API for a JSON object; the caller still has
        to cope with truncation.
        """
        content: str | list[dict[str, Any]] = prompt
        if images:
            content = build_content_parts(prompt, images, image_detail=image_detail)

        request: dict[str, Any] = dict(
            model=self.model,
            max_tokens=max_tokens,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": content},
            ],
        )
        if json_mode:
            request["response_format"] = {"type": "json_object"}

        response = await self._create(**request)
        if usage := getattr(response, "usage", None):
            logger.debug(
                "%s used %s prompt / %s completion tokens",
                self.model, getattr(usage, "prompt_tokens", "?"),
                getattr(usage, "completion_tokens", "?"),
            )

        choice = response.choices[0]
        finish_reason = getattr(choice, "finish_reason", None)
        if finish_reason == "length":
            logger.warning("Completion hit max_tokens=%d and was truncated", max_tokens)
        return Completion(text=choice.message.content or "", finish_reason=finish_reason)


# Canned answers for --dry-run: no API calls, same shapes as real responses
_CANNED_COMMENTARY = {
    "observations": [
        "Header shows the logo, a short text menu and a cart icon",
        "Hero banner states what the store sells",
    ],
    "issues": [
        {
            "description": "Shipping costs are not mentioned anywhere on the page",
            "severity": "medium",
            "category": "purchase_path",
            "fix": "Add a free-shipping threshold to the announcement bar.",
        }
    ],
    "positives": ["Clean, uncluttered layout"],
    "narrative": "I can tell what this store sells, but I'm not sure what shipping will cost me.",
}

_CANNED_REPORT = {
    "store_name": "Dry Run Store",
    "overall_score": 68,
    "shopper_narrative": (
        "I landed on a tidy homepage and quickly found the catalog. The product "
        "page had good photos but no reviews. Adding to cart worked, yet shipping "
        "costs only showed up at the very end."
    ),
    "quick_wins": [
        {"id": "qw1", "category": "trust_social_proof", "severity": "high",
         "title": "Add product reviews", "description": "No reviews on product pages.",
         "fix": "Install a reviews app.", "page": "product",
         "effort": "~30 min", "effort_type": "App install"},
    ],
    "categories": [
        {"category": "first_impression", "score": 78, "issues": []},
        {"category": "product_page", "score": 66, "issues": []},
        {"category": "trust_social_proof", "score": 52, "issues": []},
        {"category": "mobile_readiness", "score": 70, "issues": []},
        {"category": "purchase_path", "score": 64, "issues": []},
    ],
}


class DryRunClient:
    """Stands in for ReasoningClient; answers from canned JSON."""

    model = "dry-run"

    async def complete(
        self,
        *,
        system: str,
        prompt: str,
        images: Sequence[ImageAttachment] = (),
        max_tokens: int = MAX_TOKENS,
        json_mode: bool = True,
        image_detail: str = "low",
    ) -> Completion:
        # The audit prompt is the only one that asks for a store audit
        is_report = "comprehensive store audit" in system
        payload = _CANNED_REPORT if is_report else _CANNED_COMMENTARY
        logger.info(
            "[dry-run] %s completion (%d image(s))",
            "report" if is_report else "commentary", len(images),
        )
        return Completion(text=json.dumps(payload), finish_reason="stop")
