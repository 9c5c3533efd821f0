# prospect_pipeline/adapters/repos/staging.py
from __future__ import annotations

import json
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ...errors import StoreError
from ...models import StagingRecord, StagingStatus, utcnow

# target status -> statuses it may be reached from
_ALLOWED_FROM: dict[StagingStatus, tuple[StagingStatus, ...]] = {
    StagingStatus.processing: (StagingStatus.pending,),
    StagingStatus.processed: (StagingStatus.processing,),
    StagingStatus.quarantined: (StagingStatus.processing,),
    StagingStatus.error: (StagingStatus.processing,),
}


class StagingRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def insert(self, raw_data: dict[str, Any], source: str) -> StagingRecord:
        now = utcnow()
        rec = StagingRecord(
            raw_json=json.dumps(raw_data, default=str),
            source=source,
            status=StagingStatus.pending,
            processing_log_json="[]",
            created_at=now,
            updated_at=now,
        )
        self.session.add(rec)
        await self.session.flush()
        return rec

    async def get(self, staging_id: int) -> StagingRecord | None:
        return await self.session.get(StagingRecord, staging_id)

    async def claim_pending(self, limit: int) -> list[StagingRecord]:
        """
        Claim up to `limit` pending rows, oldest first, and mark them processing.

        The claim is one conditional UPDATE ... RETURNING, so two claimants can
        never walk away with the same row.
        """
        oldest = (
            select(StagingRecord.id)
            .where(StagingRecord.status == StagingStatus.pending)
            .order_by(StagingRecord.created_at.asc(), StagingRecord.id.asc())
            .limit(limit)
        )
        stmt = (
            update(StagingRecord)
            .where(StagingRecord.id.in_(oldest))
            .where(StagingRecord.status == StagingStatus.pending)
            .values(status=StagingStatus.processing, updated_at=utcnow())
            .returning(StagingRecord.id)
            .execution_options(synchronize_session=False)
        )
        ids = list((await self.session.execute(stmt)).scalars().all())
        if not ids:
            return []

        q = (
            select(StagingRecord)
            .where(StagingRecord.id.in_(ids))
            .order_by(StagingRecord.created_at.asc(), StagingRecord.id.asc())
            .execution_options(populate_existing=True)
        )
        return list((await self.session.execute(q)).scalars().all())

    async def update_status(self, staging_id: int, status: StagingStatus, log: list[str]) -> None:
        allowed_from = _ALLOWED_FROM.get(status)
        if not allowed_from:
            raise StoreError(f"staging status {status.value!r} cannot be set by the pipeline")

        stmt = (
            update(StagingRecord)
            .where(StagingRecord.id == staging_id)
            .where(StagingRecord.status.in_(allowed_from))
            .values(status=status, processing_log_json=json.dumps(log), updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        res = await self.session.execute(stmt)
        if res.rowcount != 1:
            raise StoreError(
                f"staging record {staging_id} cannot move to {status.value!r} "
                f"(expected current status in {[s.value for s in allowed_from]})"
            )

    async def counts_by_status(self) -> dict[str, int]:
        q = select(StagingRecord.status, func.count()).group_by(StagingRecord.status)
        rows = (await self.session.execute(q)).all()
        counts = {s.value: 0 for s in StagingStatus}
        for status, n in rows:
            counts[StagingStatus(status).value] = int(n)
        return counts
