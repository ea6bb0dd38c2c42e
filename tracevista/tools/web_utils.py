from __future__ import annotations

import re
from urllib.parse import urlparse

from bs4 import BeautifulSoup

STRIP_TAGS = ("script", "style", "noscript", "svg", "iframe")


def is_valid_url(url: str) -> bool:
    """Basic URL validation."""
    try:
        result = urlparse(url)
        return all([result.scheme in ("http", "https", "mailto"), result.netloc or result.path])
    except ValueError:
        return False


def clean_content(text: str, max_length: int = 8000) -> str:
    """Collapse whitespace and trim to max length."""
    text = re.sub(r"\s+", " ", text or "").strip()
    if len(text) > max_length:
        text = text[:max_length] + "..."
    return text


def extract_domain(url: str) -> str:
    """Bare host for display and source attribution."""
    host = urlparse(url).netloc.lower()
    return host[4:] if host.startswith("www.") else host


def html_to_text(raw_html: str, *, max_length: int = 20000) -> tuple[str, str]:
    """Return (title, visible text) for an HTML page."""
    soup = BeautifulSoup(raw_html or "", "html.parser")
    title = soup.title.string.strip() if soup.title and soup.title.string else ""
    for tag in soup(STRIP_TAGS):
        tag.decompose()
    text = soup.get_text(separator=" ")
    return clean_content(title, 300), clean_content(text, max_length)
