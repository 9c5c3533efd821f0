# prospect_pipeline/jobs/pipeline.py
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

from ..config import settings
from ..domain.enrichment import expires_at_for
from ..domain.normalize import normalize_record
from ..domain.types import DedupAction, ValidationResult
from ..domain.validation import validate_record
from ..errors import ReentrancyRejection
from ..models import StagingRecord, StagingStatus, utcnow
from ..service_layer.deduplication import IdentityGroup, IdentityResolver, fold_batch
from ..service_layer.jobruns import close_run, start_job
from ..service_layer.quarantine import QuarantineManager
from ..service_layer.run_guard import RunGuard
from ..service_layer.unit_of_work import UnitOfWorkFactory

log = logging.getLogger(__name__)


@dataclass(eq=False)
class _Item:
    """One claimed staging row on its way through the batch."""

    staging: StagingRecord
    log: list[str] = field(default_factory=list)
    record: dict[str, Any] | None = None
    validation: ValidationResult | None = None


def _detail(item: _Item, status: str, **extra: Any) -> dict[str, Any]:
    return {"staging_id": item.staging.id, "status": status, "log": list(item.log), **extra}


class PipelineWorker:
    """
    Staging -> normalize -> validate -> quarantine | resolve/merge -> load.

    One run at a time per worker (RunGuard). Every claimed row ends the run
    as processed, quarantined or error, with its step log attached.
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        *,
        guard: RunGuard | None = None,
        quarantine: QuarantineManager | None = None,
        batch_size: int | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.uow_factory = uow_factory
        self.guard = guard or RunGuard("pipeline")
        self.quarantine = quarantine or QuarantineManager(uow_factory, clock=clock)
        self.batch_size = batch_size or settings.PIPELINE_BATCH_SIZE
        self.clock = clock

    # -----------------------------
    # Staging table
    # -----------------------------
    async def process_staging_table(self, batch_size: int | None = None) -> dict[str, Any] | None:
        """
        Claim and process one batch of pending staging rows.

        Returns the batch summary, or None when another run is active.
        Only a failed claim propagates; per-record failures are recorded.
        """
        try:
            with self.guard.claim():
                return await self._process_batch(batch_size or self.batch_size)
        except ReentrancyRejection:
            log.warning("pipeline run requested while another is active; ignoring")
            return None

    async def _process_batch(self, batch_size: int) -> dict[str, Any]:
        started = time.perf_counter()

        async with self.uow_factory() as uow:
            claimed = await uow.staging.claim_pending(batch_size)
            run_id = (await start_job(uow.session, "pipeline", meta={"batch_size": batch_size})).id

        results: dict[str, Any] = {"processed": 0, "successful": 0, "quarantined": 0, "failed": 0, "details": []}
        if not claimed:
            log.debug("no pending staging records")
            await close_run(self.uow_factory, run_id, results)
            return results

        log.info("processing batch of %d (staging ids %s..%s)", len(claimed), claimed[0].id, claimed[-1].id)

        items = [_Item(staging=s) for s in claimed]
        details: dict[int, dict[str, Any]] = {}
        valid: list[_Item] = []

        for item in items:
            outcome = await self._prepare(item)
            if outcome is None:
                valid.append(item)
            else:
                details[item.staging.id] = outcome

        groups = fold_batch((item, item.record) for item in valid)
        for group in groups:
            for item, detail in (await self._load_group(group)).items():
                details[item.staging.id] = detail

        for item in items:
            detail = details[item.staging.id]
            results["details"].append(detail)
            results["processed"] += 1
            if detail["status"] == "success":
                results["successful"] += 1
            elif detail["status"] == "quarantined":
                results["quarantined"] += 1
            else:
                results["failed"] += 1

        duration = time.perf_counter() - started
        log.info(
            "batch done: %d processed, %d ok, %d quarantined, %d failed in %.2fs",
            results["processed"], results["successful"], results["quarantined"], results["failed"], duration,
        )
        await close_run(self.uow_factory, run_id, {**results, "duration_s": round(duration, 3)})
        return results

    async def _prepare(self, item: _Item) -> dict[str, Any] | None:
        """
        Normalize and validate one row. Invalid rows are quarantined here.
        Returns a finished detail, or None if the row should go on to loading.
        """
        staging = item.staging
        item.log.append(f"started processing staging record {staging.id}")
        try:
            record = normalize_record(staging.raw_data)
            item.log.append("normalized")

            validation = validate_record(record, now=self.clock())
            item.log.append(f"validated: completeness {validation.completeness_score * 100:.0f}%")
            for warning in validation.warnings:
                item.log.append(f"warning: {warning}")

            if not validation.is_valid:
                log.warning("staging record %s failed validation: %s", staging.id, validation.errors)
                async with self.uow_factory() as uow:
                    await self.quarantine.quarantine(uow, staging, validation, item.log)
                return _detail(item, "quarantined", errors=list(validation.errors))

            if not record.get("source"):
                record["source"] = staging.source
            item.record = record
            item.validation = validation
            return None
        except Exception as e:
            return (await self._fail([item], e))[item]

    async def _load_group(self, group: IdentityGroup) -> dict[_Item, dict[str, Any]]:
        """Resolve, merge and write one identity. Members share the outcome."""
        members: list[_Item] = group.members
        if len(members) > 1:
            for item in members:
                item.log.append(f"folded with {len(members) - 1} other record(s) of this batch ({group.key})")

        try:
            async with self.uow_factory() as uow:
                resolver = IdentityResolver(uow.prospects, clock=self.clock)
                result = await resolver.resolve(group.record)
                prospect = await resolver.apply(result)

                for item in members:
                    item.log.append(f"deduplicated: action={result.action.value}")
                    if result.action == DedupAction.insert:
                        item.log.append(f"created prospect {prospect.id}")
                    else:
                        item.log.append(f"updated prospect {prospect.id} ({', '.join(result.fields_updated) or 'no changes'})")
                    for conflict in result.conflicts:
                        item.log.append(f"conflict: {conflict}")

                    payload = (item.record or {}).get("enrichment_data")
                    if payload is not None:
                        now = self.clock()
                        await uow.enrichment.insert(
                            prospect.id, item.staging.source, payload,
                            expires_at_for(item.staging.source, now), fetched_at=now,
                        )
                        item.log.append("enrichment data stored")

                for item in members:
                    await uow.staging.update_status(item.staging.id, StagingStatus.processed, item.log)
                prospect_id = prospect.id
        except Exception as e:
            return await self._fail(members, e)

        return {
            item: _detail(
                item,
                "success",
                action=result.action.value,
                prospect_id=prospect_id,
                deduplication=result.metadata,
            )
            for item in members
        }

    async def _fail(self, members: list[_Item], error: Exception) -> dict[_Item, dict[str, Any]]:
        """Mark members as error in a fresh transaction."""
        ids = [item.staging.id for item in members]
        log.error("failed to process staging record(s) %s: %s", ids, error)

        out: dict[_Item, dict[str, Any]] = {}
        for item in members:
            item.log.append(f"error: {error}")
            out[item] = _detail(item, "error", error=str(error))

        try:
            async with self.uow_factory() as uow:
                for item in members:
                    await uow.staging.update_status(item.staging.id, StagingStatus.error, item.log)
        except Exception:
            log.exception("could not mark staging record(s) %s as error", ids)
        return out

    # -----------------------------
    # Quarantine re-entry + stats
    # -----------------------------
    async def process_quarantined_records(self, limit: int | None = None) -> list[dict[str, Any]]:
        limit = limit or settings.QUARANTINE_REPROCESS_LIMIT
        async with self.uow_factory() as uow:
            run_id = (await start_job(uow.session, "quarantine_reprocess", meta={"limit": limit})).id
        try:
            reprocessed = await self.quarantine.reprocess_approved(limit)
        except Exception as e:
            await close_run(self.uow_factory, run_id, error=e)
            raise
        await close_run(self.uow_factory, run_id, {"reprocessed": len(reprocessed)})
        return reprocessed

    async def get_pipeline_stats(self) -> dict[str, Any]:
        async with self.uow_factory() as uow:
            staging = await uow.staging.counts_by_status()
        return {
            "staging": {"total": sum(staging.values()), **staging},
            "quarantine": await self.quarantine.counts(),
        }
