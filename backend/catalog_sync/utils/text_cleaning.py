"""
Text cleaning — markup stripping for descriptions and URL syntax checks.
Version: 1.0.0
"""
import re
from typing import Any
from urllib.parse import urlparse

from bs4 import BeautifulSoup

from catalog_sync.core.constants.sync import DESCRIPTION_MAX_LENGTH, DESCRIPTION_ELLIPSIS

_WHITESPACE_RE = re.compile(r"\s+")


def clean_description(description: str | None, max_length: int = DESCRIPTION_MAX_LENGTH) -> str:
    """Strip markup, collapse whitespace and cap the length."""
    if not description:
        return ""

    soup = BeautifulSoup(description, "html.parser")
    for tag in soup(["script", "style"]):
        tag.decompose()
    text = soup.get_text(separator=" ")

    text = _WHITESPACE_RE.sub(" ", text).strip()

    if len(text) > max_length:
        text = text[:max_length] + DESCRIPTION_ELLIPSIS
    return text


def is_valid_url(url: Any) -> bool:
    """Absolute http(s) URL with a host."""
    if not isinstance(url, str) or not url.strip():
        return False
    if any(ch.isspace() for ch in url.strip()):
        return False
    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)
