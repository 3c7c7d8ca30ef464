"""Abstract base class for HTML extractors (Strategy Pattern)."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Generic, TypeVar

from bs4 import BeautifulSoup

T = TypeVar("T")


class BaseExtractor(ABC, Generic[T]):
    """
    Contract for all page extractors.

    HTML and the page URL are injected via __init__. Subclasses parse
    the document and return typed results — never raw dicts.

    Principles:
    - Return empty lists / None on extraction failure (never raise).
    - Parsing is lenient (``html.parser``), so malformed markup still yields a tree.
    - Extraction is synchronous and CPU-only.
    """

    def __init__(self, html: str | None, page_url: str) -> None:
        self.html = html or ""
        self.page_url = page_url
        self.soup = BeautifulSoup(self.html, "html.parser")

    @abstractmethod
    def extract(self) -> T:
        """Main entry point. Runs all sub-extractors and returns one typed result."""
        ...
