"""Store URL normalisation and href resolution."""

from __future__ import annotations

from urllib.parse import urljoin, urlparse


def normalize_store_url(raw: str) -> str:
    """Trim whitespace, default the scheme to https and drop trailing slashes.

    Raises ``ValueError`` when the result has no host.
    """
    url = raw.strip()
    if not url.startswith(("http://", "https://")):
        url = f"https://{url}"
    url = url.rstrip("/")

    if not urlparse(url).netloc:
        raise ValueError(f"Invalid store URL: {raw!r}")
    return url


def resolve_href(base_url: str, href: str) -> str:
    """Absolute URL for a (possibly relative) link found on ``base_url``."""
    return urljoin(base_url, href)


def store_path(store_url: str, path: str) -> str:
    """``store_url`` joined with an absolute store path such as ``/cart``."""
    return f"{store_url.rstrip('/')}/{path.lstrip('/')}"
