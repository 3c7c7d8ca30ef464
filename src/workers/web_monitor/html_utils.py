"""Small text / URL helpers shared by the extractors and the diff engine."""

from __future__ import annotations

import hashlib
import re
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup

_WS_RE = re.compile(r"\s+")
_BETWEEN_TAGS_RE = re.compile(r">\s+<")

NON_CONTENT_TAGS = ("script", "noscript", "style", "template")


def normalize_whitespace(value: str | None) -> str:
    """Collapse whitespace runs and trim."""
    if not value:
        return ""
    return _WS_RE.sub(" ", value).strip()


def normalize_text(value: str | None) -> str:
    return normalize_whitespace(value).lower()


def strip_non_content(soup: BeautifulSoup, extra: tuple[str, ...] = ()) -> BeautifulSoup:
    """Remove script/style-like nodes in place and return the same tree."""
    for tag in soup.find_all([*NON_CONTENT_TAGS, *extra]):
        tag.decompose()
    return soup


def compute_html_hash(html: str | None) -> str:
    """SHA-256 of the whitespace-normalized document."""
    normalized = _BETWEEN_TAGS_RE.sub("><", normalize_whitespace(html))
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


def resolve_href(base_url: str, href_raw: str | None) -> str | None:
    """Absolute URL for a link, or None for fragments / mailto / tel / javascript."""
    href = (href_raw or "").strip()
    if not href or href.startswith("#"):
        return None
    if href.startswith(("mailto:", "tel:", "javascript:")):
        return None
    try:
        resolved = urljoin(base_url, href)
        parsed = urlparse(resolved)
    except ValueError:
        return None
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return None
    return resolved


def same_origin(a: str, b: str) -> bool:
    try:
        pa, pb = urlparse(a), urlparse(b)
    except ValueError:
        return False
    return (pa.scheme, pa.netloc.lower()) == (pb.scheme, pb.netloc.lower())


def dedupe_casefold(values: list[str], limit: int | None = None) -> list[str]:
    """Order-preserving, case-insensitive dedup."""
    seen: set[str] = set()
    out: list[str] = []
    for value in values:
        key = value.lower()
        if key in seen:
            continue
        seen.add(key)
        out.append(value)
        if limit is not None and len(out) >= limit:
            break
    return out
