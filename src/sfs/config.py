"""YAML config loader — reads session-config.yml into SessionConfig."""

from pathlib import Path

import yaml

from sfs.schemas.config import SessionConfig


def load_config(path: str | Path | None = None) -> SessionConfig:
    """Load and validate a session config file.

    With no path the defaults are returned. Raises ``FileNotFoundError`` if
    the path doesn't exist and ``pydantic.ValidationError`` if the YAML
    content is invalid.
    """
    if path is None:
        return SessionConfig()

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    raw = yaml.safe_load(path.read_text())
    if raw is None:
        # Empty file (or only comments)
        return SessionConfig()
    if not isinstance(raw, dict):
        raise ValueError(f"Config file must be a YAML mapping, got {type(raw).__name__}")

    # A section with every key commented out loads as None.
    for key in ("browser", "synthesis"):
        if key in raw and raw[key] is None:
            del raw[key]

    browser = raw.get("browser")
    if isinstance(browser, dict) and browser.get("launch_args") is None:
        browser.pop("launch_args", None)

    return SessionConfig(**raw)
