# prospect_pipeline/schemas.py
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class BatchResult(BaseModel):
    processed: int
    successful: int
    quarantined: int
    failed: int
    details: list[dict[str, Any]] = Field(default_factory=list)


class PipelineRunOut(BaseModel):
    # False when another run was already active and this request was a no-op
    started: bool
    result: BatchResult | None = None


class ReprocessedOut(BaseModel):
    quarantine_id: int
    new_staging_id: int
    status: str


class StagingStats(BaseModel):
    total: int = 0
    pending: int = 0
    processing: int = 0
    processed: int = 0
    quarantined: int = 0
    error: int = 0


class QuarantineStats(BaseModel):
    total: int = 0
    pending: int = 0
    approved: int = 0
    rejected: int = 0
    fixed: int = 0


class PipelineStatsOut(BaseModel):
    staging: StagingStats
    quarantine: QuarantineStats


class EnrichmentBatchIn(BaseModel):
    prospect_ids: list[int] = Field(min_length=1)


class EnrichmentResult(BaseModel):
    total: int
    successful: int
    failed: int
    details: list[dict[str, Any]] = Field(default_factory=list)


class EnrichmentRunOut(BaseModel):
    started: bool
    result: EnrichmentResult | None = None


class EnrichmentHealthOut(BaseModel):
    healthy: bool
    statistics: dict[str, Any] | None = None
    error: str | None = None
