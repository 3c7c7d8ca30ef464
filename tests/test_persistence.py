"""
Tests for the write path: snapshot comparison, change rows and pricing
snapshots.
"""

import logging
import uuid
from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import SQLAlchemyError

from core.exceptions import PersistenceError
from core.models import (
    ChangeCategory,
    ChangeType,
    PageType,
    PricingChangeType,
    PricingSnapshot,
    Snapshot,
)
from workers.diff_engine.compare import compare_snapshots
from workers.diff_engine.models import ChangeReference, DetectedChange, PmSignalChangeType, PmSignalDiff
from workers.diff_engine.persistence import persist_changes
from workers.pricing.intelligence import extract_pricing_snapshot
from workers.pricing.persistence import persist_pricing_intelligence

from conftest import AS_OF, BASE_URL, build_page, build_pricing_page, make_result, make_session

PRICING_URL = f"{BASE_URL}/pricing"
BEFORE_PLANS = [("Starter", "$10 per month", "Start now"), ("Pro", "$49 per month", "Start now")]
AFTER_PLANS = [*BEFORE_PLANS, ("Enterprise", "Custom pricing", "Contact sales")]


def _snapshot(competitor_id, page_id, version, html, **signal) -> Snapshot:
    return Snapshot(
        id=uuid.uuid4(),
        page_id=page_id,
        competitor_id=competitor_id,
        url=f"{BASE_URL}/",
        page_type=PageType.HOMEPAGE,
        version_number=version,
        html=html,
        **signal,
    )


def _detected(summary: str, change_type=ChangeType.TEXT_CHANGE, after_text=None) -> DetectedChange:
    return DetectedChange(
        change_type=change_type,
        page_url=f"{BASE_URL}/",
        page_type=PageType.HOMEPAGE,
        summary=summary,
        category=ChangeCategory.POSITIONING_MESSAGING,
        after=ChangeReference(text=after_text) if after_text else None,
    )


def _pricing_row(competitor_id, html: str) -> PricingSnapshot:
    data = extract_pricing_snapshot(html, PRICING_URL)
    return PricingSnapshot(
        id=uuid.uuid4(),
        competitor_id=competitor_id,
        captured_at=AS_OF - timedelta(days=7),
        total_plans=data.total_plans,
        entry_price=data.entry_price,
        billing_model=data.billing_model,
        free_trial=data.free_trial,
        enterprise_present=data.enterprise_present,
        pricing_structure=data.pricing_structure,
        pricing_summary_hash=data.pricing_summary_hash,
        capture_status=data.capture_status,
    )


# ============================================================
# SNAPSHOT COMPARISON
# ============================================================

class TestCompareSnapshots:
    async def test_first_capture_has_no_changes(self, competitor_id):
        session = make_session()
        after = _snapshot(competitor_id, uuid.uuid4(), 1, build_page())

        result = await compare_snapshots(session, None, after)

        assert result.before_snapshot_id is None
        assert result.after_snapshot_id == after.id
        assert result.diffs == []
        assert result.pm_diffs == []
        session.execute.assert_not_awaited()
        session.add_all.assert_not_called()

    async def test_detection_failure_yields_empty_result(self, competitor_id):
        page_id = uuid.uuid4()
        before = _snapshot(competitor_id, page_id, 1, build_page())
        after = _snapshot(competitor_id, page_id, 2, build_page(h1="New headline"))
        session = make_session()

        with patch("workers.diff_engine.compare.detect_changes", side_effect=ValueError("bad markup")), \
                patch("workers.diff_engine.compare.persist_changes", AsyncMock()) as save:
            result = await compare_snapshots(session, before, after)

        assert result.before_snapshot_id == before.id
        assert result.diffs == []
        assert result.pm_diffs == []
        assert result.persisted_change_ids == []
        save.assert_not_awaited()

    async def test_change_write_failure_still_runs_insights(self, competitor_id, caplog):
        page_id = uuid.uuid4()
        before = _snapshot(competitor_id, page_id, 1, build_page(), primary_cta_text="Start now")
        after = _snapshot(competitor_id, page_id, 2, build_page(), primary_cta_text="Book demo")
        diff = PmSignalDiff(PageType.HOMEPAGE, PmSignalChangeType.CTA_TEXT_CHANGE, "Start now", "Book demo")

        with patch("workers.diff_engine.compare.detect_changes", return_value=[_detected("CTA changed")]), \
                patch("workers.diff_engine.compare.detect_pm_signal_changes", return_value=[diff]), \
                patch(
                    "workers.diff_engine.compare.persist_changes",
                    AsyncMock(side_effect=PersistenceError("changes", "insert failed")),
                ), \
                patch("workers.diff_engine.compare.persist_insights", AsyncMock(return_value=1)) as save_insights, \
                caplog.at_level(logging.ERROR, logger="workers.diff_engine.compare"):
            result = await compare_snapshots(make_session(), before, after)

        assert len(result.diffs) == 1
        assert result.persisted_change_ids == []
        assert "Failed to save changes" in caplog.text
        save_insights.assert_awaited_once()
        insights = save_insights.await_args.args[1]
        assert len(insights) == 1
        assert insights[0].competitor_id == competitor_id
        assert insights[0].related_change_ids == ()

    async def test_persist_disabled_skips_writes(self, competitor_id):
        page_id = uuid.uuid4()
        before = _snapshot(competitor_id, page_id, 1, build_page())
        after = _snapshot(competitor_id, page_id, 2, build_page())
        session = make_session()

        with patch("workers.diff_engine.compare.detect_changes", return_value=[_detected("Copy changed")]), \
                patch("workers.diff_engine.compare.persist_changes", AsyncMock()) as save:
            result = await compare_snapshots(session, before, after, persist=False)

        assert len(result.diffs) == 1
        save.assert_not_awaited()


# ============================================================
# CHANGE ROWS
# ============================================================

class TestPersistChanges:
    async def _persist(self, session, competitor_id, changes):
        return await persist_changes(
            session,
            competitor_id=competitor_id,
            page_id=uuid.uuid4(),
            before_snapshot_id=uuid.uuid4(),
            after_snapshot_id=uuid.uuid4(),
            page_url=f"{BASE_URL}/",
            page_type=PageType.HOMEPAGE,
            changes=changes,
        )

    async def test_positions_follow_detection_order(self, competitor_id):
        session = make_session()
        changes = [
            _detected("Headline changed"),
            _detected("CTA changed", ChangeType.CTA_TEXT_CHANGE, after_text="Book demo"),
            _detected("Navigation changed", ChangeType.NAV_CHANGE),
        ]

        ids = await self._persist(session, competitor_id, changes)

        rows = session.add_all.call_args.args[0]
        assert [row.position for row in rows] == [0, 1, 2]
        assert [row.summary for row in rows] == ["Headline changed", "CTA changed", "Navigation changed"]
        assert rows[1].details["after"] == {"text": "Book demo"}
        assert rows[1].details["before"] is None
        assert len(ids) == 3
        session.flush.assert_awaited_once()

    async def test_no_changes_writes_nothing(self, competitor_id):
        session = make_session()

        assert await self._persist(session, competitor_id, []) == []
        session.add_all.assert_not_called()

    async def test_write_failure_raises_persistence_error(self, competitor_id):
        session = make_session()
        session.flush = AsyncMock(side_effect=SQLAlchemyError("insert failed"))

        with pytest.raises(PersistenceError) as exc_info:
            await self._persist(session, competitor_id, [_detected("Headline changed")])

        assert exc_info.value.entity == "changes"


# ============================================================
# PRICING SNAPSHOTS
# ============================================================

class TestPersistPricingIntelligence:
    async def _persist(self, session, competitor_id, html):
        return await persist_pricing_intelligence(
            session,
            competitor_id=competitor_id,
            snapshot_id=uuid.uuid4(),
            html=html,
            page_url=PRICING_URL,
            captured_at=AS_OF,
        )

    async def test_previous_is_latest_capture_read_before_insert(self, competitor_id):
        session = make_session(make_result(scalar=None))
        added_before_read = []

        async def execute(stmt, *args, **kwargs):
            added_before_read.append(session.add.called)
            return make_result(scalar=None)

        session.execute = AsyncMock(side_effect=execute)

        changes = await self._persist(session, competitor_id, build_pricing_page(BEFORE_PLANS))

        assert changes == []
        assert added_before_read == [False]
        query = str(session.execute.await_args_list[0].args[0])
        assert "ORDER BY pricing_snapshot.captured_at DESC" in query
        assert "LIMIT" in query
        row = session.add.call_args.args[0]
        assert row.total_plans == 2
        assert [plan.position for plan in row.plans] == [0, 1]

    async def test_changes_against_previous_are_upserted(self, competitor_id):
        previous = _pricing_row(competitor_id, build_pricing_page(BEFORE_PLANS))
        session = make_session([make_result(scalar=previous), make_result()])

        changes = await self._persist(session, competitor_id, build_pricing_page(AFTER_PLANS))

        change_types = {change.change_type for change in changes}
        assert PricingChangeType.PLAN_ADDED in change_types
        assert PricingChangeType.ENTERPRISE_TIER_ADDITION in change_types
        assert session.execute.await_count == 2
        insert_sql = str(session.execute.await_args_list[1].args[0].compile(dialect=postgresql.dialect()))
        assert "ON CONFLICT ON CONSTRAINT uq_pricing_change_natural_key DO NOTHING" in insert_sql

    async def test_equal_hash_inserts_no_changes(self, competitor_id):
        html = build_pricing_page(BEFORE_PLANS)
        previous = _pricing_row(competitor_id, html)
        session = make_session(make_result(scalar=previous))

        changes = await self._persist(session, competitor_id, html)

        assert changes == []
        session.execute.assert_awaited_once()
        session.add.assert_called_once()

    async def test_write_failure_raises_persistence_error(self, competitor_id):
        session = make_session(make_result(scalar=None))
        session.flush = AsyncMock(side_effect=SQLAlchemyError("insert failed"))

        with pytest.raises(PersistenceError) as exc_info:
            await self._persist(session, competitor_id, build_pricing_page(BEFORE_PLANS))

        assert exc_info.value.entity == "pricing snapshot"
