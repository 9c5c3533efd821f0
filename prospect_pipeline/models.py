# prospect_pipeline/models.py
from __future__ import annotations

import enum
import json
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import (
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    """Naive UTC timestamp; every DateTime column in this schema is naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _loads(blob: str | None, default: Any) -> Any:
    if not blob:
        return default
    return json.loads(blob)


class Base(DeclarativeBase):
    pass


# -----------------------------
# Core enums
# -----------------------------
class StagingStatus(str, enum.Enum):
    pending = "pending"
    processing = "processing"
    processed = "processed"
    quarantined = "quarantined"
    error = "error"


class ReviewStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    fixed = "fixed"


class JobRunStatus(str, enum.Enum):
    running = "running"
    success = "success"
    failed = "failed"


# -----------------------------
# Models
# -----------------------------
class StagingRecord(Base):
    """
    Raw observation awaiting the pipeline.
    Written by intake, mutated only by the pipeline worker.
    """
    __tablename__ = "prospects_staging"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    raw_json: Mapped[str] = mapped_column(Text, default="{}")
    source: Mapped[str] = mapped_column(String(120), index=True)

    status: Mapped[StagingStatus] = mapped_column(
        Enum(StagingStatus), default=StagingStatus.pending, index=True
    )
    processing_log_json: Mapped[str] = mapped_column(Text, default="[]")

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    @property
    def raw_data(self) -> dict[str, Any]:
        return _loads(self.raw_json, {})

    @property
    def processing_log(self) -> list[str]:
        return _loads(self.processing_log_json, [])


class Prospect(Base):
    __tablename__ = "prospects"
    __table_args__ = (
        UniqueConstraint("email", name="uq_prospect_email"),
        UniqueConstraint("linkedin_url", name="uq_prospect_linkedin_url"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    # stored lowercased / canonicalized by the normalizer
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    linkedin_url: Mapped[str | None] = mapped_column(String(255), nullable=True)

    first_name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    job_title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    company_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    company_domain: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(40), nullable=True)
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    timezone: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # comma-joined provenance tags
    source: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # merged enrichment payload (latest view; history lives in enrichment_data)
    enrichment_json: Mapped[str | None] = mapped_column(Text, nullable=True)

    last_enriched_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    @property
    def enrichment_data(self) -> dict[str, Any] | None:
        return _loads(self.enrichment_json, None)


class QuarantineRecord(Base):
    __tablename__ = "prospects_quarantine"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    staged_json: Mapped[str] = mapped_column(Text, default="{}")
    errors_json: Mapped[str] = mapped_column(Text, default="[]")
    source: Mapped[str] = mapped_column(String(120), index=True)

    # {"validation": {...}, "staging_id": ..., "quarantined_at": ...}
    meta_json: Mapped[str | None] = mapped_column(Text, nullable=True)

    review_status: Mapped[ReviewStatus] = mapped_column(
        Enum(ReviewStatus), default=ReviewStatus.pending, index=True
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    @property
    def staged_data(self) -> dict[str, Any]:
        return _loads(self.staged_json, {})

    @property
    def errors(self) -> list[str]:
        return _loads(self.errors_json, [])

    @property
    def meta(self) -> dict[str, Any]:
        return _loads(self.meta_json, {})


class EnrichmentData(Base):
    """
    Append-only. Current value per (prospect, source) = latest non-expired row.
    """
    __tablename__ = "enrichment_data"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    prospect_id: Mapped[int] = mapped_column(ForeignKey("prospects.id"), index=True)
    source: Mapped[str] = mapped_column(String(120), index=True)
    data_json: Mapped[str] = mapped_column(Text, default="{}")

    fetched_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    @property
    def data(self) -> Any:
        return _loads(self.data_json, None)


class JobRun(Base):
    """
    Tracks job executions (pipeline, quarantine re-entry, enrichment).
    """
    __tablename__ = "job_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    job_name: Mapped[str] = mapped_column(String(80), index=True)

    status: Mapped[JobRunStatus] = mapped_column(Enum(JobRunStatus), default=JobRunStatus.running, index=True)

    started_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)
    finished_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # store error message
    error: Mapped[str | None] = mapped_column(Text, nullable=True)

    meta_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    summary_json: Mapped[str | None] = mapped_column(Text, nullable=True)
