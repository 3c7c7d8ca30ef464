"""
Slack webhook notification sender.

Sends high-impact strategic movement alerts to a Slack channel via an
incoming webhook. Delivery is best-effort: failures are logged and reported
as ``False``, never raised.
"""

from __future__ import annotations

import logging

import httpx

from core.config import settings

logger = logging.getLogger(__name__)

MAX_SUMMARY_LINES = 10


async def send_slack_alert(
    text: str,
    *,
    blocks: list[dict] | None = None,
) -> bool:
    """
    Send a message to the configured Slack webhook.

    Args:
        text: Fallback text for notifications.
        blocks: Optional Slack Block Kit blocks for rich formatting.

    Returns:
        True if sent successfully, False otherwise.
    """
    if not settings.slack_webhook_url:
        logger.warning("SLACK_WEBHOOK_URL not configured. Alert skipped.")
        return False

    payload: dict = {"text": text}
    if blocks:
        payload["blocks"] = blocks

    try:
        async with httpx.AsyncClient(timeout=10.0) as client:
            response = await client.post(
                settings.slack_webhook_url,
                json=payload,
            )
            response.raise_for_status()
            logger.info("Slack alert sent successfully.")
            return True
    except httpx.HTTPError as exc:
        logger.error("Failed to send Slack alert: %s", exc)
        return False


def build_movement_blocks(
    competitor_name: str,
    change_summaries: list[str],
    *,
    workspace_id: str | None = None,
) -> list[dict]:
    """Block Kit layout for one high-impact crawl result."""
    lines = change_summaries[:MAX_SUMMARY_LINES]
    if len(change_summaries) > MAX_SUMMARY_LINES:
        lines.append(f"… and {len(change_summaries) - MAX_SUMMARY_LINES} more")

    blocks: list[dict] = [
        {
            "type": "header",
            "text": {"type": "plain_text", "text": f"🧭 {competitor_name} — Crawl Completed"},
        },
        {
            "type": "section",
            "text": {
                "type": "mrkdwn",
                "text": "*High-impact movement detected*\n" + "\n".join(f"• {line}" for line in lines),
            },
        },
    ]
    if workspace_id:
        blocks.append(
            {
                "type": "context",
                "elements": [{"type": "mrkdwn", "text": f"Workspace `{workspace_id}`"}],
            }
        )
    return blocks
