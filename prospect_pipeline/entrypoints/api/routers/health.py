# prospect_pipeline/entrypoints/api/routers/health.py
from __future__ import annotations

from fastapi import APIRouter, Depends

from ..deps import get_services
from ....bootstrap import Services
from ....schemas import EnrichmentHealthOut, PipelineStatsOut

router = APIRouter(tags=["health"])


@router.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/pipeline/stats", response_model=PipelineStatsOut)
async def pipeline_stats(services: Services = Depends(get_services)) -> PipelineStatsOut:
    return PipelineStatsOut(**await services.pipeline.get_pipeline_stats())


@router.get("/enrichment/health", response_model=EnrichmentHealthOut)
async def enrichment_health(services: Services = Depends(get_services)) -> EnrichmentHealthOut:
    return EnrichmentHealthOut(**await services.enrichment.check_enrichment_health())


@router.get("/enrichment/stats")
async def enrichment_stats(services: Services = Depends(get_services)) -> dict:
    return await services.enrichment.get_enrichment_stats()
