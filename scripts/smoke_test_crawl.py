"""Smoke test: create a competitor (if missing) and run one full crawl job against a live site."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from sqlalchemy import select

from core.database import async_session_factory
from core.models import Competitor, CompetitorStatus
from workers.web_monitor.orchestrator import run_competitor_crawl


async def main(name: str, url: str) -> None:
    print("🚀 Starting Smoke Test: crawl pipeline")

    async with async_session_factory() as session:
        result = await session.execute(select(Competitor).where(Competitor.url == url))
        competitor = result.scalar_one_or_none()
        if competitor is None:
            print(f"  ➕ Creating competitor {name}...")
            competitor = Competitor(name=name, url=url, status=CompetitorStatus.ACTIVE)
            session.add(competitor)
            await session.commit()
        print(f"  ✅ {competitor.name} set up (ID: {competitor.id})")
        competitor_id = str(competitor.id)

    print("\n🔍 Running crawl...")
    summary = await run_competitor_crawl({}, competitor_id)
    print(f"\n🏁 Finished: {summary}")
    print("\nNext: inspect the snapshot, change, insight and strategic_movement tables.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--name", default="Example")
    parser.add_argument("--url", default="https://example.com")
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    asyncio.run(main(args.name, args.url))
