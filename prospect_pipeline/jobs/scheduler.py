# prospect_pipeline/jobs/scheduler.py
from __future__ import annotations

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from ..bootstrap import Services
from ..config import settings

log = logging.getLogger(__name__)


def build_scheduler(services: Services) -> AsyncIOScheduler:
    sched = AsyncIOScheduler()

    async def _run_pipeline() -> None:
        res = await services.pipeline.process_staging_table()
        if res and res["processed"]:
            log.info(
                "pipeline tick: %d processed (%d ok, %d quarantined, %d failed)",
                res["processed"], res["successful"], res["quarantined"], res["failed"],
            )

    async def _run_quarantine_reentry() -> None:
        reprocessed = await services.pipeline.process_quarantined_records()
        if reprocessed:
            log.info("quarantine tick: %d record(s) back in staging", len(reprocessed))

    async def _run_enrichment() -> None:
        await services.enrichment.run_scheduled_enrichment()

    # overlapping ticks are dropped, not queued
    sched.add_job(
        _run_pipeline, "interval",
        minutes=settings.SCHED_PIPELINE_INTERVAL_MINUTES, id="pipeline", max_instances=1, coalesce=True,
    )
    sched.add_job(
        _run_quarantine_reentry, "interval",
        minutes=settings.SCHED_QUARANTINE_INTERVAL_MINUTES, id="quarantine_reentry", max_instances=1, coalesce=True,
    )
    sched.add_job(
        _run_enrichment, "interval",
        minutes=settings.SCHED_ENRICHMENT_INTERVAL_MINUTES, id="enrichment", max_instances=1, coalesce=True,
    )
    return sched
