# prospect_pipeline/adapters/repos/quarantine.py
from __future__ import annotations

import json
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ...errors import StoreError
from ...models import QuarantineRecord, ReviewStatus, utcnow

# target review status -> statuses it may be reached from
_REVIEW_FROM: dict[ReviewStatus, tuple[ReviewStatus, ...]] = {
    ReviewStatus.approved: (ReviewStatus.pending,),
    ReviewStatus.rejected: (ReviewStatus.pending,),
    ReviewStatus.fixed: (ReviewStatus.approved,),
}


class QuarantineRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def insert(
        self,
        raw_data: dict[str, Any],
        errors: list[str],
        source: str,
        meta: dict[str, Any] | None = None,
    ) -> QuarantineRecord:
        now = utcnow()
        rec = QuarantineRecord(
            staged_json=json.dumps(raw_data, default=str),
            errors_json=json.dumps(errors),
            source=source,
            meta_json=json.dumps(meta or {}, default=str),
            review_status=ReviewStatus.pending,
            created_at=now,
            updated_at=now,
        )
        self.session.add(rec)
        await self.session.flush()
        return rec

    async def get(self, quarantine_id: int) -> QuarantineRecord | None:
        return await self.session.get(QuarantineRecord, quarantine_id)

    async def _list(self, status: ReviewStatus, limit: int) -> list[QuarantineRecord]:
        q = (
            select(QuarantineRecord)
            .where(QuarantineRecord.review_status == status)
            .order_by(QuarantineRecord.id.asc())
            .limit(limit)
        )
        return list((await self.session.execute(q)).scalars().all())

    async def list_approved(self, limit: int) -> list[QuarantineRecord]:
        return await self._list(ReviewStatus.approved, limit)

    async def list_pending(self, limit: int) -> list[QuarantineRecord]:
        return await self._list(ReviewStatus.pending, limit)

    async def update_review_status(self, quarantine_id: int, status: ReviewStatus) -> None:
        allowed_from = _REVIEW_FROM.get(status)
        if not allowed_from:
            raise StoreError(f"review status {status.value!r} cannot be set")

        stmt = (
            update(QuarantineRecord)
            .where(QuarantineRecord.id == quarantine_id)
            .where(QuarantineRecord.review_status.in_(allowed_from))
            .values(review_status=status, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        res = await self.session.execute(stmt)
        if res.rowcount != 1:
            raise StoreError(
                f"quarantine record {quarantine_id} cannot move to {status.value!r} "
                f"(expected current status in {[s.value for s in allowed_from]})"
            )

    async def counts_by_review_status(self) -> dict[str, int]:
        q = select(QuarantineRecord.review_status, func.count()).group_by(QuarantineRecord.review_status)
        rows = (await self.session.execute(q)).all()
        counts = {s.value: 0 for s in ReviewStatus}
        for status, n in rows:
            counts[ReviewStatus(status).value] = int(n)
        return counts
