# prospect_pipeline/service_layer/quarantine.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable

from ..domain.types import ValidationResult
from ..errors import QuarantineRecordNotFound
from ..models import QuarantineRecord, ReviewStatus, StagingRecord, StagingStatus, utcnow
from .unit_of_work import SqlAlchemyUnitOfWork, UnitOfWorkFactory

log = logging.getLogger(__name__)

REPROCESSED_SUFFIX = "_reprocessed"

# statuses a human reviewer may set; "fixed" is reserved for re-entry
REVIEWER_STATUSES = (ReviewStatus.approved, ReviewStatus.rejected)


def quarantine_to_dict(q: QuarantineRecord) -> dict[str, Any]:
    return {
        "id": q.id,
        "source": q.source,
        "review_status": q.review_status.value,
        "staged_data": q.staged_data,
        "errors": q.errors,
        "meta": q.meta,
        "created_at": q.created_at.isoformat() if q.created_at else None,
    }


class QuarantineManager:
    """
    Holds records that failed validation until a reviewer approves or
    rejects them. Approved records are the only way back into staging.
    """

    def __init__(self, uow_factory: UnitOfWorkFactory, *, clock: Callable[[], datetime] = utcnow) -> None:
        self.uow_factory = uow_factory
        self.clock = clock

    async def quarantine(
        self,
        uow: SqlAlchemyUnitOfWork,
        staging: StagingRecord,
        validation: ValidationResult,
        record_log: list[str],
    ) -> QuarantineRecord:
        """Write the quarantine row and close out the staging row, inside the caller's transaction."""
        q = await uow.quarantine.insert(
            staging.raw_data,
            list(validation.errors),
            staging.source,
            meta={
                "validation": validation.to_dict(),
                "staging_id": staging.id,
                "quarantined_at": self.clock().isoformat(),
            },
        )
        record_log.append(f"quarantined ({q.id}): {', '.join(validation.errors)}")
        await uow.staging.update_status(staging.id, StagingStatus.quarantined, record_log)
        log.info("staging record %s quarantined with %d error(s)", staging.id, len(validation.errors))
        return q

    async def review(self, quarantine_id: int, status: ReviewStatus | str) -> dict[str, Any]:
        status = ReviewStatus(status)
        if status not in REVIEWER_STATUSES:
            raise ValueError(f"review status must be one of {[s.value for s in REVIEWER_STATUSES]}")

        async with self.uow_factory() as uow:
            q = await uow.quarantine.get(quarantine_id)
            if q is None:
                raise QuarantineRecordNotFound(quarantine_id)
            await uow.quarantine.update_review_status(quarantine_id, status)
            await uow.session.refresh(q)
            return quarantine_to_dict(q)

    async def list_pending(self, limit: int = 50) -> list[dict[str, Any]]:
        async with self.uow_factory() as uow:
            return [quarantine_to_dict(q) for q in await uow.quarantine.list_pending(limit)]

    async def reprocess_approved(self, limit: int = 10) -> list[dict[str, Any]]:
        """
        Resubmit approved records to staging as `<source>_reprocessed` and mark
        them fixed. Each record is its own transaction; one failure is logged
        and skipped.
        """
        async with self.uow_factory() as uow:
            approved = [(q.id, q.staged_data, q.source) for q in await uow.quarantine.list_approved(limit)]

        results: list[dict[str, Any]] = []
        for quarantine_id, staged_data, source in approved:
            try:
                async with self.uow_factory() as uow:
                    staging = await uow.staging.insert(staged_data, f"{source}{REPROCESSED_SUFFIX}")
                    await uow.quarantine.update_review_status(quarantine_id, ReviewStatus.fixed)
                    new_staging_id = staging.id
            except Exception:
                log.exception("failed to reprocess quarantine record %s", quarantine_id)
                continue

            results.append(
                {"quarantine_id": quarantine_id, "new_staging_id": new_staging_id, "status": "reprocessed"}
            )

        if results:
            log.info("resubmitted %d approved quarantine record(s) to staging", len(results))
        return results

    async def counts(self) -> dict[str, int]:
        async with self.uow_factory() as uow:
            counts = await uow.quarantine.counts_by_review_status()
        return {"total": sum(counts.values()), **counts}
