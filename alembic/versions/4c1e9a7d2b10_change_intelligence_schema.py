"""change_intelligence_schema

Revision ID: 4c1e9a7d2b10
Revises:
Create Date: 2026-10-19 06:10:00.000000

Creates the change-intelligence schema:
- competitor, page (configuration)
- crawl_job, snapshot (raw / operational)
- change, strategic_movement, insight (results)
- pricing_snapshot, pricing_plan, pricing_change (pricing intelligence)
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "4c1e9a7d2b10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


# Enum labels are the Python member names, matching sqlalchemy.Enum defaults.
PAGE_TYPE = postgresql.ENUM(
    "HOMEPAGE", "PRICING", "SERVICES", "PRODUCT_OR_SERVICES", "USE_CASES_OR_INDUSTRIES",
    "CASE_STUDIES_OR_CUSTOMERS", "CTA_ELEMENTS", "NAVIGATION",
    name="pagetype", create_type=False,
)
COMPETITOR_STATUS = postgresql.ENUM("ACTIVE", "PAUSED", "ERROR", name="competitorstatus", create_type=False)
JOB_STATUS = postgresql.ENUM(
    "QUEUED", "RUNNING", "SUCCESS", "FAILED_PARTIAL", "TIMED_OUT", "FAILED",
    name="jobstatus", create_type=False,
)
CHANGE_TYPE = postgresql.ENUM(
    "TEXT_CHANGE", "CTA_TEXT_CHANGE", "NAV_CHANGE", "ELEMENT_ADDED", "ELEMENT_REMOVED",
    name="changetype", create_type=False,
)
CHANGE_CATEGORY = postgresql.ENUM(
    "POSITIONING_MESSAGING", "PRICING_OFFERS", "PRODUCT_SERVICES", "TRUST_CREDIBILITY",
    "NAVIGATION_STRUCTURE", "OTHER",
    name="changecategory", create_type=False,
)
MOVEMENT_CATEGORY = postgresql.ENUM(
    "PRICING_MOVEMENT", "CONTENT_EXPANSION", "COMPLIANCE_UPDATE", "CONVERSION_OPTIMIZATION",
    "POSITIONING_ADJUSTMENT",
    name="movementcategory", create_type=False,
)
IMPACT_LEVEL = postgresql.ENUM("HIGH", "MEDIUM", "LOW", name="impactlevel", create_type=False)
INSIGHT_STATE = postgresql.ENUM("OBSERVATIONAL", "CHANGE_BASED", name="insightstate", create_type=False)
INSIGHT_CONFIDENCE = postgresql.ENUM("HIGH", "MEDIUM", name="insightconfidence", create_type=False)
BILLING_MODEL = postgresql.ENUM(
    "SUBSCRIPTION", "USAGE", "HYBRID", "UNKNOWN", name="billingmodel", create_type=False
)
CAPTURE_STATUS = postgresql.ENUM("STRUCTURED", "VISUAL_ONLY", name="capturestatus", create_type=False)
PRICING_CHANGE_TYPE = postgresql.ENUM(
    "PLAN_ADDED", "PLAN_REMOVED", "ENTRY_PRICE_CHANGE", "FEATURE_SHIFT", "CTA_CHANGE",
    "ENTERPRISE_TIER_ADDITION", "FREE_TRIAL_CHANGE",
    name="pricingchangetype", create_type=False,
)
PRICING_IMPACT_LEVEL = postgresql.ENUM("LOW", "MODERATE", "HIGH", name="pricingimpactlevel", create_type=False)

ENUMS = (
    PAGE_TYPE, COMPETITOR_STATUS, JOB_STATUS, CHANGE_TYPE, CHANGE_CATEGORY, MOVEMENT_CATEGORY,
    IMPACT_LEVEL, INSIGHT_STATE, INSIGHT_CONFIDENCE, BILLING_MODEL, CAPTURE_STATUS,
    PRICING_CHANGE_TYPE, PRICING_IMPACT_LEVEL,
)


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True)


def upgrade() -> None:
    bind = op.get_bind()
    for enum in ENUMS:
        enum.create(bind, checkfirst=True)

    # -- Configuration --
    op.create_table(
        "competitor",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("workspace_id", sa.String(length=64), nullable=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("url", sa.String(length=2048), nullable=False),
        sa.Column("logo_url", sa.String(length=2048), nullable=True),
        sa.Column("status", COMPETITOR_STATUS, nullable=True),
        sa.Column("last_crawled_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_competitor_workspace_id", "competitor", ["workspace_id"])

    op.create_table(
        "page",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("competitor_id", sa.Uuid(), nullable=False),
        sa.Column("url", sa.String(length=2048), nullable=False),
        sa.Column("page_type", PAGE_TYPE, nullable=False),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
        sa.ForeignKeyConstraint(["competitor_id"], ["competitor.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("competitor_id", "url", name="uq_page_competitor_url"),
    )

    # -- Raw / operational --
    op.create_table(
        "crawl_job",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("competitor_id", sa.Uuid(), nullable=False),
        sa.Column("status", JOB_STATUS, nullable=True),
        sa.Column("pages_crawled", sa.Integer(), nullable=True),
        sa.Column("errors", postgresql.JSONB(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(["competitor_id"], ["competitor.id"]),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "snapshot",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("page_id", sa.Uuid(), nullable=False),
        sa.Column("competitor_id", sa.Uuid(), nullable=False),
        sa.Column("crawl_job_id", sa.Uuid(), nullable=True),
        sa.Column("url", sa.String(length=2048), nullable=False),
        sa.Column("page_type", PAGE_TYPE, nullable=False),
        sa.Column("version_number", sa.Integer(), nullable=False),
        sa.Column("captured_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
        sa.Column("http_status", sa.Integer(), nullable=True),
        sa.Column("html", sa.Text(), nullable=True),
        sa.Column("html_hash", sa.String(length=64), nullable=True),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("h1_text", sa.Text(), nullable=True),
        sa.Column("h2_headings", postgresql.JSONB(), nullable=True),
        sa.Column("h3_headings", postgresql.JSONB(), nullable=True),
        sa.Column("nav_labels", postgresql.JSONB(), nullable=True),
        sa.Column("nav_items", postgresql.JSONB(), nullable=True),
        sa.Column("list_items", postgresql.JSONB(), nullable=True),
        sa.Column("primary_cta_text", sa.Text(), nullable=True),
        sa.Column("secondary_cta_text", sa.Text(), nullable=True),
        sa.Column("structured_content", postgresql.JSONB(), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(["page_id"], ["page.id"]),
        sa.ForeignKeyConstraint(["competitor_id"], ["competitor.id"]),
        sa.ForeignKeyConstraint(["crawl_job_id"], ["crawl_job.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("page_id", "version_number", name="uq_snapshot_page_version"),
    )
    op.create_index("ix_snapshot_competitor_id", "snapshot", ["competitor_id"])
    op.create_index("ix_snapshot_crawl_job_id", "snapshot", ["crawl_job_id"])

    # -- Results --
    op.create_table(
        "change",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("competitor_id", sa.Uuid(), nullable=False),
        sa.Column("page_id", sa.Uuid(), nullable=False),
        sa.Column("before_snapshot_id", sa.Uuid(), nullable=False),
        sa.Column("after_snapshot_id", sa.Uuid(), nullable=False),
        sa.Column("page_url", sa.String(length=2048), nullable=False),
        sa.Column("page_type", PAGE_TYPE, nullable=False),
        sa.Column("change_type", CHANGE_TYPE, nullable=False),
        sa.Column("category", CHANGE_CATEGORY, nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("summary", sa.Text(), nullable=False),
        sa.Column("details", postgresql.JSONB(), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(["competitor_id"], ["competitor.id"]),
        sa.ForeignKeyConstraint(["page_id"], ["page.id"]),
        sa.ForeignKeyConstraint(["before_snapshot_id"], ["snapshot.id"]),
        sa.ForeignKeyConstraint(["after_snapshot_id"], ["snapshot.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_change_competitor_id", "change", ["competitor_id"])
    op.create_index("ix_change_after_snapshot_id", "change", ["after_snapshot_id"])

    op.create_table(
        "strategic_movement",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("competitor_id", sa.Uuid(), nullable=False),
        sa.Column("crawl_job_id", sa.Uuid(), nullable=False),
        sa.Column("page_url", sa.String(length=2048), nullable=False),
        sa.Column("page_type", PAGE_TYPE, nullable=True),
        sa.Column("change_cluster_count", sa.Integer(), nullable=False),
        sa.Column("movement_category", MOVEMENT_CATEGORY, nullable=False),
        sa.Column("impact_level", IMPACT_LEVEL, nullable=False),
        sa.Column("summary", sa.Text(), nullable=False),
        sa.Column("interpretation", sa.Text(), nullable=False),
        sa.Column("suggested_action", sa.Text(), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(["competitor_id"], ["competitor.id"]),
        sa.ForeignKeyConstraint(["crawl_job_id"], ["crawl_job.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("crawl_job_id", "page_url", name="uq_strategic_movement_job_page"),
    )
    op.create_index("ix_strategic_movement_competitor_id", "strategic_movement", ["competitor_id"])
    op.create_index("ix_strategic_movement_crawl_job_id", "strategic_movement", ["crawl_job_id"])

    op.create_table(
        "insight",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("competitor_id", sa.Uuid(), nullable=False),
        sa.Column("page_type", PAGE_TYPE, nullable=False),
        sa.Column("insight_type", sa.String(length=50), nullable=False),
        sa.Column("insight_text", sa.Text(), nullable=False),
        sa.Column("confidence", INSIGHT_CONFIDENCE, nullable=True),
        sa.Column("state", INSIGHT_STATE, nullable=True),
        sa.Column("related_change_ids", postgresql.JSONB(), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(["competitor_id"], ["competitor.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_insight_dedup", "insight", ["competitor_id", "page_type", "insight_type", "created_at"]
    )

    # -- Pricing intelligence --
    op.create_table(
        "pricing_snapshot",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("competitor_id", sa.Uuid(), nullable=False),
        sa.Column("snapshot_id", sa.Uuid(), nullable=True),
        sa.Column("captured_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("total_plans", sa.Integer(), nullable=True),
        sa.Column("entry_price", sa.Float(), nullable=True),
        sa.Column("billing_model", BILLING_MODEL, nullable=True),
        sa.Column("free_trial", sa.Boolean(), nullable=True),
        sa.Column("enterprise_present", sa.Boolean(), nullable=True),
        sa.Column("pricing_structure", postgresql.JSONB(), nullable=True),
        sa.Column("pricing_summary_hash", sa.String(length=64), nullable=False),
        sa.Column("capture_status", CAPTURE_STATUS, nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(["competitor_id"], ["competitor.id"]),
        sa.ForeignKeyConstraint(["snapshot_id"], ["snapshot.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_pricing_snapshot_competitor_id", "pricing_snapshot", ["competitor_id"])

    op.create_table(
        "pricing_plan",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("pricing_snapshot_id", sa.Uuid(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("plan_name", sa.String(length=255), nullable=False),
        sa.Column("price_value", sa.Float(), nullable=True),
        sa.Column("billing_interval", sa.String(length=32), nullable=True),
        sa.Column("feature_count", sa.Integer(), nullable=True),
        sa.Column("cta_text", sa.String(length=255), nullable=True),
        sa.Column("highlight_flag", sa.Boolean(), nullable=True),
        sa.ForeignKeyConstraint(["pricing_snapshot_id"], ["pricing_snapshot.id"]),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "pricing_change",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("pricing_snapshot_id", sa.Uuid(), nullable=False),
        sa.Column("change_type", PRICING_CHANGE_TYPE, nullable=False),
        sa.Column("impact_level", PRICING_IMPACT_LEVEL, nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(["pricing_snapshot_id"], ["pricing_snapshot.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "pricing_snapshot_id", "change_type", "description", name="uq_pricing_change_natural_key"
        ),
    )


def downgrade() -> None:
    op.drop_table("pricing_change")
    op.drop_table("pricing_plan")
    op.drop_index("ix_pricing_snapshot_competitor_id", table_name="pricing_snapshot")
    op.drop_table("pricing_snapshot")
    op.drop_index("ix_insight_dedup", table_name="insight")
    op.drop_table("insight")
    op.drop_index("ix_strategic_movement_crawl_job_id", table_name="strategic_movement")
    op.drop_index("ix_strategic_movement_competitor_id", table_name="strategic_movement")
    op.drop_table("strategic_movement")
    op.drop_index("ix_change_after_snapshot_id", table_name="change")
    op.drop_index("ix_change_competitor_id", table_name="change")
    op.drop_table("change")
    op.drop_index("ix_snapshot_crawl_job_id", table_name="snapshot")
    op.drop_index("ix_snapshot_competitor_id", table_name="snapshot")
    op.drop_table("snapshot")
    op.drop_table("crawl_job")
    op.drop_table("page")
    op.drop_index("ix_competitor_workspace_id", table_name="competitor")
    op.drop_table("competitor")

    bind = op.get_bind()
    for enum in reversed(ENUMS):
        enum.drop(bind, checkfirst=True)
