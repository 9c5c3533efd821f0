# prospect_pipeline/entrypoints/api/routers/jobs.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from ..deps import get_services
from ....bootstrap import Services
from ....schemas import (
    BatchResult,
    EnrichmentBatchIn,
    EnrichmentResult,
    EnrichmentRunOut,
    PipelineRunOut,
    ReprocessedOut,
)
from ....service_layer.jobruns import close_run, start_job

router = APIRouter(tags=["jobs"])


@router.post("/jobs/pipeline", response_model=PipelineRunOut)
async def run_pipeline(
    batch_size: int = Query(50, ge=1, le=500),
    services: Services = Depends(get_services),
) -> PipelineRunOut:
    res = await services.pipeline.process_staging_table(batch_size)
    if res is None:
        return PipelineRunOut(started=False)
    return PipelineRunOut(started=True, result=BatchResult(**res))


@router.post("/jobs/quarantine/reprocess", response_model=list[ReprocessedOut])
async def reprocess_quarantine(
    limit: int = Query(10, ge=1, le=500),
    services: Services = Depends(get_services),
) -> list[ReprocessedOut]:
    return [ReprocessedOut(**r) for r in await services.pipeline.process_quarantined_records(limit)]


@router.post("/jobs/enrichment", response_model=EnrichmentRunOut)
async def run_enrichment(services: Services = Depends(get_services)) -> EnrichmentRunOut:
    res = await services.enrichment.run_scheduled_enrichment()
    if res is None:
        return EnrichmentRunOut(started=False)
    return EnrichmentRunOut(started=True, result=EnrichmentResult(**res))


@router.post("/jobs/enrichment/batch", response_model=EnrichmentResult)
async def enrich_batch(
    body: EnrichmentBatchIn,
    services: Services = Depends(get_services),
) -> EnrichmentResult:
    async with services.uow_factory() as uow:
        run_id = (await start_job(uow.session, "enrichment_batch_api", meta={"count": len(body.prospect_ids)})).id

    try:
        res = await services.enrichment.enrich_prospects_batch(body.prospect_ids)
    except Exception as e:
        await close_run(services.uow_factory, run_id, error=e)
        raise

    await close_run(services.uow_factory, run_id, res)
    return EnrichmentResult(**res)
