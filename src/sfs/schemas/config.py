"""Configuration schema — validates session-config.yml."""

from typing import Literal

from pydantic import BaseModel, Field, model_validator

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class BrowserSettings(BaseModel):
    """Playwright launch, navigation and probe tuning."""

    headless: bool = True
    viewport_width: int = Field(default=1440, gt=0)
    viewport_height: int = Field(default=900, gt=0)
    user_agent: str = DEFAULT_USER_AGENT
    launch_args: list[str] = ["--no-sandbox", "--disable-setuid-sandbox"]

    # Timeouts (milliseconds)
    navigation_timeout_ms: int = 15_000
    probe_timeout_ms: int = 1_000
    overlay_probe_timeout_ms: int = 500
    add_to_cart_probe_timeout_ms: int = 1_500
    product_probe_timeout_ms: int = 2_000
    catalog_api_timeout_ms: int = 5_000

    wait_until: Literal["load", "domcontentloaded", "networkidle", "commit"] = "load"
    scroll_step_px: int = 600
    settle_ms: int = 500
    post_click_wait_ms: int = 2_000
    screenshot_quality: int = Field(default=70, ge=1, le=100)

    @model_validator(mode="after")
    def check_probe_shorter_than_navigation(self) -> "BrowserSettings":
        if self.probe_timeout_ms >= self.navigation_timeout_ms:
            raise ValueError(
                "probe_timeout_ms must be shorter than navigation_timeout_ms"
            )
        return self


class SynthesisSettings(BaseModel):
    """Reasoning-service tuning for commentary and report synthesis."""

    model: str = "gpt-4o"
    commentary_max_tokens: int = 1_000
    report_max_tokens: int = 8_000
    html_excerpt_chars: int = 8_000
    image_detail: Literal["low", "high", "auto"] = "low"


class SessionConfig(BaseModel):
    """Top-level configuration loaded from session-config.yml.

    Every field has a default, so an empty file (or no file at all) gives a
    working configuration.
    """

    browser: BrowserSettings = BrowserSettings()
    synthesis: SynthesisSettings = SynthesisSettings()
