"""Extractors package for competitor page captures."""

from workers.web_monitor.extractors.base import BaseExtractor
from workers.web_monitor.extractors.structural import StructuralSignalExtractor, extract_structural_signal

__all__ = [
    "BaseExtractor",
    "StructuralSignalExtractor",
    "extract_structural_signal",
]
