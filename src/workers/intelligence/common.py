"""
Shared helpers for the deterministic intelligence models.

Everything here is pure: no clock, no randomness, no I/O. Template choice
uses a SHA-256 derived index so the same competitor always reads the same
sentence.
"""

from __future__ import annotations

import hashlib
import json
import math
from dataclasses import asdict, dataclass, is_dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any


@dataclass(frozen=True, slots=True)
class Evidence:
    source: str
    key: str
    value: Any


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def clamp_score(value: float) -> int:
    """Round half-up and clamp to 0..100; non-finite input scores 0."""
    if not math.isfinite(value):
        return 0
    return max(0, min(100, round_half_up(value)))


def stable_index(seed: str, modulo: int) -> int:
    if modulo <= 0:
        return 0
    digest = hashlib.sha256(seed.encode("utf-8")).hexdigest()[:8]
    return int(digest, 16) % modulo


def to_jsonable(value: Any) -> Any:
    """Dataclasses, enums and tuples → plain JSON types."""
    if is_dataclass(value) and not isinstance(value, type):
        return to_jsonable(asdict(value))
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {str(k.value if isinstance(k, Enum) else k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    return value


def canonical_json(value: Any) -> str:
    """Byte-stable serialization used for determinism checks and caching."""
    return json.dumps(to_jsonable(value), sort_keys=True, separators=(",", ":"), ensure_ascii=False)
