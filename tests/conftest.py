"""
Shared fixtures for the change-intelligence test suite.

Provides:
- Fake async sessions (no database) with savepoint support
- HTML page builders for before/after capture pairs
- Sample identifiers and reference dates
"""

import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest


BASE_URL = "https://acme.com"
AS_OF = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


# ============================================================
# HTML BUILDERS
# ============================================================

def build_page(
    h1: str = "Analytics for modern teams",
    nav: Optional[List[tuple]] = None,
    ctas: Optional[List[tuple]] = None,
    body: str = "",
    title: str = "Acme",
) -> str:
    """Minimal marketing page: header nav, main with h1, CTAs and free body markup."""
    nav = nav if nav is not None else [("Home", "/"), ("Pricing", "/pricing")]
    ctas = ctas if ctas is not None else []
    nav_html = "".join(f'<a href="{href}">{text}</a>' for text, href in nav)
    cta_html = "".join(f'<a class="btn" href="{href}">{text}</a>' for text, href in ctas)
    return (
        f"<html><head><title>{title}</title></head><body>"
        f"<header><nav>{nav_html}</nav></header>"
        f"<main><h1>{h1}</h1>{cta_html}{body}</main>"
        f"</body></html>"
    )


def build_pricing_page(plans: List[tuple]) -> str:
    """Pricing page with one ``.plan`` card per (name, price_text, cta) tuple."""
    cards = "".join(
        f'<div class="plan"><h3>{name}</h3><p>{price}</p><ul><li>Dashboards</li></ul>'
        f'<a href="/signup">{cta}</a></div>'
        for name, price, cta in plans
    )
    return (
        "<html><head><title>Pricing</title></head><body>"
        f'<main><h1>Simple pricing</h1><section class="pricing">{cards}</section></main>'
        "</body></html>"
    )


# ============================================================
# FAKE DATABASE SESSION
# ============================================================

def make_result(scalar=None, rows=None, first=None) -> MagicMock:
    """Result double covering the accessors used by the pipeline."""
    result = MagicMock()
    result.scalar_one_or_none.return_value = scalar
    result.scalars.return_value.all.return_value = list(rows or [])
    result.all.return_value = list(rows or [])
    result.first.return_value = first
    return result


def make_session(results=None) -> MagicMock:
    """
    AsyncSession double.

    ``results`` is either one result returned for every ``execute`` call or a
    list consumed call by call.
    """
    session = MagicMock()
    if isinstance(results, list):
        session.execute = AsyncMock(side_effect=results)
    else:
        session.execute = AsyncMock(return_value=results if results is not None else make_result())
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.refresh = AsyncMock()
    session.get = AsyncMock(return_value=None)
    session.add = MagicMock()
    session.add_all = MagicMock()

    @asynccontextmanager
    async def _savepoint():
        yield session

    session.begin_nested = MagicMock(side_effect=lambda: _savepoint())
    return session


@pytest.fixture
def competitor_id() -> uuid.UUID:
    return uuid.UUID("0b6f4d0e-6a0e-4c4c-9a57-2f1d1c0c0a01")


@pytest.fixture
def job_id() -> uuid.UUID:
    return uuid.UUID("7f3c2d1e-1b2a-4e5f-8a9b-0c1d2e3f4a5b")


@pytest.fixture
def fake_session() -> MagicMock:
    return make_session()


@pytest.fixture
def as_of() -> datetime:
    return AS_OF
