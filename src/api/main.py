"""
FastAPI application entry point.

Thin read surface over the pipeline's results plus a crawl trigger that
hands work to the ARQ worker.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from arq import create_pool
from arq.connections import RedisSettings
from fastapi import FastAPI
from redis.exceptions import RedisError

from api.routes.competitors import router as competitors_router
from core.config import settings
from core.database import engine

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: ARQ pool on startup, connection cleanup on shutdown."""
    try:
        app.state.arq = await create_pool(RedisSettings.from_dsn(settings.redis_url))
    except (RedisError, OSError) as exc:
        logger.warning("ARQ pool unavailable, crawl triggers disabled: %s", exc)
        app.state.arq = None
    yield
    if app.state.arq is not None:
        await app.state.arq.close()
    await engine.dispose()


app = FastAPI(
    title="Competitive Change Intelligence",
    description="Competitor website change detection and strategic signal derivation",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Routes ────────────────────────────────────────────────────────────
app.include_router(competitors_router)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok", "service": "competitive-change-intelligence"}
