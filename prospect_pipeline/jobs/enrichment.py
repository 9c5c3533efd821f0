# prospect_pipeline/jobs/enrichment.py
from __future__ import annotations

import asyncio
import logging
import time
from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Protocol

from ..config import settings
from ..domain.enrichment import stale_cutoff
from ..errors import ReentrancyRejection
from ..models import utcnow
from ..service_layer.jobruns import close_run, start_job
from ..service_layer.run_guard import RunGuard
from ..service_layer.unit_of_work import UnitOfWorkFactory

log = logging.getLogger(__name__)

HEALTH_WINDOW = timedelta(hours=24)


class Enricher(Protocol):
    async def enrich_prospect(self, prospect_id: int) -> dict[str, Any]: ...


class EnrichmentScheduler:
    """
    Walks stale prospects through the enricher, one at a time, with a fixed
    pause between provider calls.
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        enricher: Enricher,
        *,
        guard: RunGuard | None = None,
        batch_limit: int | None = None,
        stale_after: timedelta | None = None,
        delay_s: float | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.uow_factory = uow_factory
        self.enricher = enricher
        self.guard = guard or RunGuard("enrichment")
        self.batch_limit = batch_limit or settings.ENRICHMENT_BATCH_LIMIT
        self.stale_after = stale_after or timedelta(days=settings.ENRICHMENT_STALE_AFTER_DAYS)
        self.delay_s = settings.ENRICHMENT_RATE_LIMIT_DELAY_S if delay_s is None else delay_s
        self.sleep = sleep
        self.clock = clock

    async def run_scheduled_enrichment(self) -> dict[str, Any] | None:
        """Enrich every stale prospect (bounded). Returns None if a run is already active."""
        try:
            with self.guard.claim():
                return await self._run_scheduled()
        except ReentrancyRejection:
            log.warning("enrichment run requested while another is active; ignoring")
            return None

    async def _run_scheduled(self) -> dict[str, Any]:
        async with self.uow_factory() as uow:
            due = await uow.prospects.list_needing_enrichment(
                stale_cutoff(self.clock(), self.stale_after), self.batch_limit
            )
            ids = [p.id for p in due]
            run_id = (await start_job(uow.session, "enrichment_scheduled", meta={"candidates": len(ids)})).id

        if not ids:
            log.info("no prospects need enrichment")
            result: dict[str, Any] = {"total": 0, "successful": 0, "failed": 0, "details": []}
            await close_run(self.uow_factory, run_id, result)
            return result

        log.info("enriching %d prospect(s)", len(ids))
        try:
            result = await self._enrich_ids(ids)
        except Exception as e:
            await close_run(self.uow_factory, run_id, error=e)
            raise
        await close_run(self.uow_factory, run_id, result)
        return result

    async def enrich_prospects_batch(self, prospect_ids: list[int]) -> dict[str, Any]:
        if not prospect_ids:
            raise ValueError("prospect_ids must be a non-empty list")
        return await self._enrich_ids(list(prospect_ids))

    async def _enrich_ids(self, prospect_ids: list[int]) -> dict[str, Any]:
        started = time.perf_counter()
        results: dict[str, Any] = {"total": len(prospect_ids), "successful": 0, "failed": 0, "details": []}

        for i, prospect_id in enumerate(prospect_ids):
            if i > 0 and self.delay_s > 0:
                await self.sleep(self.delay_s)

            detail = await self._enrich_one(prospect_id)
            results["successful" if detail["success"] else "failed"] += 1
            results["details"].append(detail)

        log.info(
            "enrichment finished: %d ok, %d failed in %.1fs",
            results["successful"], results["failed"], time.perf_counter() - started,
        )
        return results

    async def _enrich_one(self, prospect_id: int) -> dict[str, Any]:
        started = time.perf_counter()
        try:
            payload = await self.enricher.enrich_prospect(prospect_id)
        except Exception as e:
            log.error("failed to enrich prospect %s: %s", prospect_id, e)
            return {
                "prospect_id": prospect_id,
                "success": False,
                "error": str(e),
                "duration_s": round(time.perf_counter() - started, 3),
            }
        return {
            "prospect_id": prospect_id,
            "success": True,
            "sources_enriched": sorted(payload or {}),
            "duration_s": round(time.perf_counter() - started, 3),
        }

    async def check_enrichment_health(self) -> dict[str, Any]:
        """Healthy iff something was enriched within the last 24 hours."""
        try:
            async with self.uow_factory() as uow:
                recent = await uow.enrichment.query_recent(self.clock() - HEALTH_WINDOW)
                by_source = dict(Counter(r.source for r in recent))
        except Exception as e:
            log.error("enrichment health check failed: %s", e)
            return {"healthy": False, "error": str(e)}

        return {
            "healthy": len(recent) > 0,
            "statistics": {"last_24_hours": len(recent), "by_source": by_source},
        }

    async def get_enrichment_stats(self) -> dict[str, Any]:
        async with self.uow_factory() as uow:
            total = await uow.prospects.count()
            enriched = await uow.prospects.count_enriched()
            needing = await uow.prospects.count_needing_enrichment(stale_cutoff(self.clock(), self.stale_after))
            by_source = await uow.enrichment.counts_by_source()

        return {
            "prospects": {
                "total": total,
                "enriched": enriched,
                "needs_enrichment": needing,
                "enrichment_rate": round(enriched / total, 3) if total else 0.0,
            },
            "enrichment_data": {
                "total_records": sum(by_source.values()),
                "by_source": by_source,
            },
        }
