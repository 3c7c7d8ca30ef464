"""
SQLAlchemy 2.0 ORM Models — Competitive Change Intelligence
============================================================

Conventions:
  - snake_case table names
  - UUID primary keys generated client-side (uuid4)
  - Explicit FKs on competitor / page / crawl job / snapshot
  - created_at on every table, updated_at on mutable configuration rows

Tables are grouped by functional area:
  1. Configuration (competitors, tracked pages)
  2. Raw / Operational (crawl jobs, snapshots)
  3. Results (changes, strategic movements, insights)
  4. Pricing intelligence
"""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base


# ══════════════════════════════════════════════════════════════════════
# ENUMS
# ══════════════════════════════════════════════════════════════════════

class PageType(str, PyEnum):
    HOMEPAGE = "homepage"
    PRICING = "pricing"
    SERVICES = "services"
    PRODUCT_OR_SERVICES = "product_or_services"
    USE_CASES_OR_INDUSTRIES = "use_cases_or_industries"
    CASE_STUDIES_OR_CUSTOMERS = "case_studies_or_customers"
    CTA_ELEMENTS = "cta_elements"
    NAVIGATION = "navigation"


class CompetitorStatus(str, PyEnum):
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    ERROR = "ERROR"


class JobStatus(str, PyEnum):
    QUEUED = "QUEUED"
    RUNNING = "RUNNING"
    SUCCESS = "SUCCESS"
    FAILED_PARTIAL = "FAILED_PARTIAL"
    TIMED_OUT = "TIMED_OUT"
    FAILED = "FAILED"


class ChangeType(str, PyEnum):
    TEXT_CHANGE = "text_change"
    CTA_TEXT_CHANGE = "cta_text_change"
    NAV_CHANGE = "nav_change"
    ELEMENT_ADDED = "element_added"
    ELEMENT_REMOVED = "element_removed"


class ChangeCategory(str, PyEnum):
    POSITIONING_MESSAGING = "Positioning & Messaging"
    PRICING_OFFERS = "Pricing & Offers"
    PRODUCT_SERVICES = "Product / Services"
    TRUST_CREDIBILITY = "Trust & Credibility"
    NAVIGATION_STRUCTURE = "Navigation / Structure"
    OTHER = "Other"


class MovementCategory(str, PyEnum):
    PRICING_MOVEMENT = "Pricing Movement"
    CONTENT_EXPANSION = "Content Expansion"
    COMPLIANCE_UPDATE = "Compliance Update"
    CONVERSION_OPTIMIZATION = "Conversion Optimization"
    POSITIONING_ADJUSTMENT = "Positioning Adjustment"


class ImpactLevel(str, PyEnum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class InsightState(str, PyEnum):
    OBSERVATIONAL = "observational"
    CHANGE_BASED = "change_based"


class InsightConfidence(str, PyEnum):
    HIGH = "High"
    MEDIUM = "Medium"


class BillingModel(str, PyEnum):
    SUBSCRIPTION = "subscription"
    USAGE = "usage"
    HYBRID = "hybrid"
    UNKNOWN = "unknown"


class CaptureStatus(str, PyEnum):
    STRUCTURED = "structured"
    VISUAL_ONLY = "visual-only"


class PricingChangeType(str, PyEnum):
    PLAN_ADDED = "plan_added"
    PLAN_REMOVED = "plan_removed"
    ENTRY_PRICE_CHANGE = "entry_price_change"
    FEATURE_SHIFT = "feature_shift"
    CTA_CHANGE = "cta_change"
    ENTERPRISE_TIER_ADDITION = "enterprise_tier_addition"
    FREE_TRIAL_CHANGE = "free_trial_change"


class PricingImpactLevel(str, PyEnum):
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"


# ══════════════════════════════════════════════════════════════════════
# 1. CONFIGURATION
# ══════════════════════════════════════════════════════════════════════

class Competitor(Base):
    """
    A tracked competitor website. ``workspace_id`` scopes notifications;
    ``logo_url`` is filled best-effort from the homepage on each crawl.
    """
    __tablename__ = "competitor"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    workspace_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    url: Mapped[str] = mapped_column(String(2048), nullable=False)
    logo_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    status: Mapped[CompetitorStatus] = mapped_column(
        Enum(CompetitorStatus), default=CompetitorStatus.ACTIVE
    )
    last_crawled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    pages: Mapped[list["Page"]] = relationship("Page", back_populates="competitor")
    crawl_jobs: Mapped[list["CrawlJob"]] = relationship("CrawlJob", back_populates="competitor")


class Page(Base):
    """
    A competitor URL assigned to one page type. The type is only reassigned
    when classification is re-run on fresh crawl data.
    """
    __tablename__ = "page"
    __table_args__ = (UniqueConstraint("competitor_id", "url", name="uq_page_competitor_url"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    competitor_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("competitor.id"), nullable=False)
    url: Mapped[str] = mapped_column(String(2048), nullable=False)
    page_type: Mapped[PageType] = mapped_column(Enum(PageType), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    competitor: Mapped["Competitor"] = relationship("Competitor", back_populates="pages")
    snapshots: Mapped[list["Snapshot"]] = relationship("Snapshot", back_populates="page")


# ══════════════════════════════════════════════════════════════════════
# 2. RAW / OPERATIONAL
# ══════════════════════════════════════════════════════════════════════

class CrawlJob(Base):
    """
    One crawl of one competitor. Movements are aggregated per job and
    ordered across jobs by ``created_at``.
    """
    __tablename__ = "crawl_job"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    competitor_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("competitor.id"), nullable=False)
    status: Mapped[JobStatus] = mapped_column(Enum(JobStatus), default=JobStatus.QUEUED)
    pages_crawled: Mapped[int] = mapped_column(Integer, default=0)
    errors: Mapped[list | None] = mapped_column(JSONB, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    finished_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    competitor: Mapped["Competitor"] = relationship("Competitor", back_populates="crawl_jobs")
    snapshots: Mapped[list["Snapshot"]] = relationship("Snapshot", back_populates="crawl_job")


class Snapshot(Base):
    """
    Structural signal record of one page capture. Immutable once stored;
    ``version_number`` increases monotonically per page.
    """
    __tablename__ = "snapshot"
    __table_args__ = (UniqueConstraint("page_id", "version_number", name="uq_snapshot_page_version"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    page_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("page.id"), nullable=False)
    competitor_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("competitor.id"), nullable=False, index=True)
    crawl_job_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("crawl_job.id"), nullable=True, index=True)
    url: Mapped[str] = mapped_column(String(2048), nullable=False)
    page_type: Mapped[PageType] = mapped_column(Enum(PageType), nullable=False)
    version_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    captured_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    http_status: Mapped[int | None] = mapped_column(Integer, nullable=True)
    html: Mapped[str | None] = mapped_column(Text, nullable=True)
    html_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # Structural signal
    title: Mapped[str | None] = mapped_column(Text, nullable=True)
    h1_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    h2_headings: Mapped[list | None] = mapped_column(JSONB, nullable=True)
    h3_headings: Mapped[list | None] = mapped_column(JSONB, nullable=True)
    nav_labels: Mapped[list | None] = mapped_column(JSONB, nullable=True)
    nav_items: Mapped[list | None] = mapped_column(JSONB, nullable=True)
    list_items: Mapped[list | None] = mapped_column(JSONB, nullable=True)
    primary_cta_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    secondary_cta_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    structured_content: Mapped[dict | None] = mapped_column(JSONB, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    page: Mapped["Page"] = relationship("Page", back_populates="snapshots")
    crawl_job: Mapped["CrawlJob | None"] = relationship("CrawlJob", back_populates="snapshots")


# ══════════════════════════════════════════════════════════════════════
# 3. RESULTS
# ══════════════════════════════════════════════════════════════════════

class Change(Base):
    """
    An atomic classified difference between two snapshots of the same page.
    Never mutated after insert; exactly one category per row.
    """
    __tablename__ = "change"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    competitor_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("competitor.id"), nullable=False, index=True)
    page_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("page.id"), nullable=False)
    before_snapshot_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("snapshot.id"), nullable=False)
    after_snapshot_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("snapshot.id"), nullable=False, index=True)
    page_url: Mapped[str] = mapped_column(String(2048), nullable=False)
    page_type: Mapped[PageType] = mapped_column(Enum(PageType), nullable=False)
    change_type: Mapped[ChangeType] = mapped_column(Enum(ChangeType), nullable=False)
    category: Mapped[ChangeCategory] = mapped_column(Enum(ChangeCategory), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    summary: Mapped[str] = mapped_column(Text, nullable=False)
    details: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class StrategicMovement(Base):
    """
    Aggregated cluster of changes on one page within one crawl job.
    Append-only: a later job produces a new row, never an update.
    """
    __tablename__ = "strategic_movement"
    __table_args__ = (UniqueConstraint("crawl_job_id", "page_url", name="uq_strategic_movement_job_page"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    competitor_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("competitor.id"), nullable=False, index=True)
    crawl_job_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("crawl_job.id"), nullable=False, index=True)
    page_url: Mapped[str] = mapped_column(String(2048), nullable=False)
    page_type: Mapped[PageType | None] = mapped_column(Enum(PageType), nullable=True)
    change_cluster_count: Mapped[int] = mapped_column(Integer, nullable=False)
    movement_category: Mapped[MovementCategory] = mapped_column(Enum(MovementCategory), nullable=False)
    impact_level: Mapped[ImpactLevel] = mapped_column(Enum(ImpactLevel), nullable=False)
    summary: Mapped[str] = mapped_column(Text, nullable=False)
    interpretation: Mapped[str] = mapped_column(Text, nullable=False)
    suggested_action: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class Insight(Base):
    """
    Qualitative statement about a competitor. ``insight_type`` holds a
    change-based type, ``observational`` or ``webpage_signal``.
    """
    __tablename__ = "insight"
    __table_args__ = (
        Index("ix_insight_dedup", "competitor_id", "page_type", "insight_type", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    competitor_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("competitor.id"), nullable=False)
    page_type: Mapped[PageType] = mapped_column(Enum(PageType), nullable=False)
    insight_type: Mapped[str] = mapped_column(String(50), nullable=False)
    insight_text: Mapped[str] = mapped_column(Text, nullable=False)
    confidence: Mapped[InsightConfidence] = mapped_column(
        Enum(InsightConfidence), default=InsightConfidence.HIGH
    )
    state: Mapped[InsightState] = mapped_column(Enum(InsightState), default=InsightState.CHANGE_BASED)
    related_change_ids: Mapped[list | None] = mapped_column(JSONB, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


# ══════════════════════════════════════════════════════════════════════
# 4. PRICING INTELLIGENCE
# ══════════════════════════════════════════════════════════════════════

class PricingSnapshot(Base):
    """
    Structured extraction of one pricing-page capture. Plans are owned by
    the snapshot; ``pricing_summary_hash`` enables the no-op diff path.
    """
    __tablename__ = "pricing_snapshot"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    competitor_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("competitor.id"), nullable=False, index=True)
    snapshot_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("snapshot.id"), nullable=True)
    captured_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    total_plans: Mapped[int] = mapped_column(Integer, default=0)
    entry_price: Mapped[float | None] = mapped_column(Float, nullable=True)
    billing_model: Mapped[BillingModel] = mapped_column(Enum(BillingModel), default=BillingModel.UNKNOWN)
    free_trial: Mapped[bool] = mapped_column(Boolean, default=False)
    enterprise_present: Mapped[bool] = mapped_column(Boolean, default=False)
    pricing_structure: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    pricing_summary_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    capture_status: Mapped[CaptureStatus] = mapped_column(
        Enum(CaptureStatus), default=CaptureStatus.VISUAL_ONLY
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    plans: Mapped[list["PricingPlan"]] = relationship(
        "PricingPlan",
        back_populates="pricing_snapshot",
        cascade="all, delete-orphan",
        order_by="PricingPlan.position",
    )
    changes: Mapped[list["PricingChange"]] = relationship(
        "PricingChange", back_populates="pricing_snapshot", cascade="all, delete-orphan"
    )


class PricingPlan(Base):
    __tablename__ = "pricing_plan"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    pricing_snapshot_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("pricing_snapshot.id"), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    plan_name: Mapped[str] = mapped_column(String(255), nullable=False)
    price_value: Mapped[float | None] = mapped_column(Float, nullable=True)
    billing_interval: Mapped[str | None] = mapped_column(String(32), nullable=True)
    feature_count: Mapped[int] = mapped_column(Integer, default=0)
    cta_text: Mapped[str | None] = mapped_column(String(255), nullable=True)
    highlight_flag: Mapped[bool] = mapped_column(Boolean, default=False)

    # Relationships
    pricing_snapshot: Mapped["PricingSnapshot"] = relationship("PricingSnapshot", back_populates="plans")


class PricingChange(Base):
    __tablename__ = "pricing_change"
    __table_args__ = (
        UniqueConstraint(
            "pricing_snapshot_id", "change_type", "description", name="uq_pricing_change_natural_key"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    pricing_snapshot_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("pricing_snapshot.id"), nullable=False)
    change_type: Mapped[PricingChangeType] = mapped_column(Enum(PricingChangeType), nullable=False)
    impact_level: Mapped[PricingImpactLevel] = mapped_column(Enum(PricingImpactLevel), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    pricing_snapshot: Mapped["PricingSnapshot"] = relationship("PricingSnapshot", back_populates="changes")
