"""
High-impact notification dispatch.

The payload contract is ``{"competitorId", "changeSummary": [...],
"severity": "high"}``. Competitor metadata (workspace, display name) is
resolved through a ``WorkspaceCache`` that lives for one job; nothing is
cached at module level.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.models import Competitor
from core.notifications.slack import build_movement_blocks, send_slack_alert

logger = logging.getLogger(__name__)


def build_high_impact_payload(competitor_id: uuid.UUID | str, change_summaries: list[str]) -> dict:
    return {
        "competitorId": str(competitor_id),
        "changeSummary": list(change_summaries),
        "severity": "high",
    }


@dataclass(frozen=True, slots=True)
class CompetitorRef:
    competitor_id: uuid.UUID
    name: str
    workspace_id: str | None


class WorkspaceCache:
    """Read-through competitor → workspace lookup scoped to one job."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self._entries: dict[uuid.UUID, CompetitorRef | None] = {}

    async def get(self, competitor_id: uuid.UUID) -> CompetitorRef | None:
        if competitor_id in self._entries:
            return self._entries[competitor_id]
        result = await self.session.execute(
            select(Competitor.id, Competitor.name, Competitor.workspace_id).where(
                Competitor.id == competitor_id
            )
        )
        row = result.first()
        ref = CompetitorRef(row.id, row.name, row.workspace_id) if row is not None else None
        self._entries[competitor_id] = ref
        return ref


class HighImpactNotifier:
    """Sends one Slack alert per HIGH movement. Never raises."""

    def __init__(self, cache: WorkspaceCache) -> None:
        self.cache = cache
        self.sent: list[dict] = []

    async def __call__(self, competitor_id: uuid.UUID, change_summaries: list[str]) -> bool:
        payload = build_high_impact_payload(competitor_id, change_summaries)
        try:
            ref = await self.cache.get(competitor_id)
        except SQLAlchemyError as exc:
            logger.warning("Workspace lookup failed for %s: %s", competitor_id, exc)
            ref = None

        name = ref.name if ref is not None else str(competitor_id)
        delivered = await send_slack_alert(
            f"High-impact movement for {name}",
            blocks=build_movement_blocks(
                name,
                payload["changeSummary"],
                workspace_id=ref.workspace_id if ref is not None else None,
            ),
        )
        if delivered:
            self.sent.append(payload)
        return delivered
