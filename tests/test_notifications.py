"""
Tests for high-impact notification payloads, the per-job workspace cache
and Slack delivery.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import httpx
from sqlalchemy.exc import SQLAlchemyError

from core.notifications import slack
from core.notifications.dispatch import HighImpactNotifier, WorkspaceCache, build_high_impact_payload
from core.notifications.slack import build_movement_blocks, send_slack_alert

from conftest import make_result, make_session

WEBHOOK_URL = "https://hooks.slack.test/services/T000/B000/XXX"


def _mock_slack_transport(monkeypatch, status_code: int, captured: list):
    real_client = httpx.AsyncClient

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(status_code, text="ok")

    def client_factory(**kwargs):
        return real_client(transport=httpx.MockTransport(handler), **kwargs)

    monkeypatch.setattr(slack.settings, "slack_webhook_url", WEBHOOK_URL)
    monkeypatch.setattr(slack.httpx, "AsyncClient", client_factory)


# ============================================================
# PAYLOAD AND BLOCKS
# ============================================================

class TestPayload:
    def test_contract(self, competitor_id):
        payload = build_high_impact_payload(competitor_id, ["Primary CTA text changed"])

        assert payload == {
            "competitorId": str(competitor_id),
            "changeSummary": ["Primary CTA text changed"],
            "severity": "high",
        }


class TestMovementBlocks:
    def test_header_and_lines(self):
        blocks = build_movement_blocks("Acme", ["Pricing changed", "Nav changed"])

        assert blocks[0]["text"]["text"] == "🧭 Acme — Crawl Completed"
        assert "• Pricing changed\n• Nav changed" in blocks[1]["text"]["text"]
        assert len(blocks) == 2

    def test_long_summary_is_truncated(self):
        summaries = [f"Change {i}" for i in range(13)]

        blocks = build_movement_blocks("Acme", summaries, workspace_id="ws-1")
        text = blocks[1]["text"]["text"]

        assert "• Change 9" in text
        assert "Change 10" not in text
        assert text.endswith("• … and 3 more")
        assert blocks[2]["elements"][0]["text"] == "Workspace `ws-1`"
        assert len(summaries) == 13


# ============================================================
# WORKSPACE CACHE
# ============================================================

class TestWorkspaceCache:
    async def test_lookup_is_cached(self, competitor_id):
        row = SimpleNamespace(id=competitor_id, name="Acme", workspace_id="ws-1")
        session = make_session(make_result(first=row))
        cache = WorkspaceCache(session)

        first = await cache.get(competitor_id)
        second = await cache.get(competitor_id)

        assert first is second
        assert first.name == "Acme"
        assert first.workspace_id == "ws-1"
        session.execute.assert_awaited_once()

    async def test_unknown_competitor(self, competitor_id):
        cache = WorkspaceCache(make_session(make_result(first=None)))

        assert await cache.get(competitor_id) is None


# ============================================================
# NOTIFIER
# ============================================================

class TestHighImpactNotifier:
    async def test_sends_alert_with_competitor_name(self, competitor_id):
        row = SimpleNamespace(id=competitor_id, name="Acme", workspace_id="ws-1")
        notifier = HighImpactNotifier(WorkspaceCache(make_session(make_result(first=row))))

        with patch("core.notifications.dispatch.send_slack_alert", AsyncMock(return_value=True)) as send:
            delivered = await notifier(competitor_id, ["Primary CTA text changed"])

        assert delivered is True
        assert send.await_args.args[0] == "High-impact movement for Acme"
        assert send.await_args.kwargs["blocks"][2]["elements"][0]["text"] == "Workspace `ws-1`"
        assert notifier.sent == [build_high_impact_payload(competitor_id, ["Primary CTA text changed"])]

    async def test_lookup_failure_still_attempts_delivery(self, competitor_id):
        session = make_session()
        session.execute = AsyncMock(side_effect=SQLAlchemyError("db down"))
        notifier = HighImpactNotifier(WorkspaceCache(session))

        with patch("core.notifications.dispatch.send_slack_alert", AsyncMock(return_value=False)) as send:
            delivered = await notifier(competitor_id, ["Pricing changed"])

        assert delivered is False
        assert send.await_args.args[0] == f"High-impact movement for {competitor_id}"
        assert notifier.sent == []


# ============================================================
# SLACK DELIVERY
# ============================================================

class TestSendSlackAlert:
    async def test_skipped_without_webhook(self, monkeypatch):
        monkeypatch.setattr(slack.settings, "slack_webhook_url", "")

        assert await send_slack_alert("hello") is False

    async def test_posts_text_and_blocks(self, monkeypatch):
        captured: list = []
        _mock_slack_transport(monkeypatch, 200, captured)

        delivered = await send_slack_alert("hello", blocks=[{"type": "divider"}])

        assert delivered is True
        assert str(captured[0].url) == WEBHOOK_URL
        assert b'"blocks"' in captured[0].content

    async def test_http_error_reports_failure(self, monkeypatch):
        captured: list = []
        _mock_slack_transport(monkeypatch, 500, captured)

        assert await send_slack_alert("hello") is False
        assert len(captured) == 1
