"""Typed failures surfaced by the persistence side of the pipeline."""

from __future__ import annotations


class PersistenceError(Exception):
    """A core-critical write (change, insight, movement, pricing) failed.

    Carries the entity name so callers can log which stage broke without
    inspecting the wrapped driver error.
    """

    def __init__(self, entity: str, message: str) -> None:
        super().__init__(f"Failed to persist {entity}: {message}")
        self.entity = entity
