# prospect_pipeline/adapters/repos/enrichment.py
from __future__ import annotations

import json
from datetime import datetime
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ...models import EnrichmentData, utcnow


class EnrichmentRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def insert(
        self,
        prospect_id: int,
        source: str,
        data: Any,
        expires_at: datetime | None,
        fetched_at: datetime | None = None,
    ) -> EnrichmentData:
        row = EnrichmentData(
            prospect_id=prospect_id,
            source=source,
            data_json=json.dumps(data, default=str),
            fetched_at=fetched_at or utcnow(),
            expires_at=expires_at,
        )
        self.session.add(row)
        await self.session.flush()
        return row

    async def query_recent(self, since: datetime) -> list[EnrichmentData]:
        q = (
            select(EnrichmentData)
            .where(EnrichmentData.fetched_at >= since)
            .order_by(EnrichmentData.fetched_at.desc())
        )
        return list((await self.session.execute(q)).scalars().all())

    async def current_for_prospect(self, prospect_id: int, now: datetime | None = None) -> list[EnrichmentData]:
        """Latest non-expired row per source, newest first."""
        now = now or utcnow()
        q = (
            select(EnrichmentData)
            .where(EnrichmentData.prospect_id == prospect_id)
            .where(or_(EnrichmentData.expires_at.is_(None), EnrichmentData.expires_at > now))
            .order_by(EnrichmentData.fetched_at.desc(), EnrichmentData.id.desc())
        )
        rows = (await self.session.execute(q)).scalars().all()

        current: dict[str, EnrichmentData] = {}
        for row in rows:
            current.setdefault(row.source, row)
        return list(current.values())

    async def counts_by_source(self) -> dict[str, int]:
        q = select(EnrichmentData.source, func.count()).group_by(EnrichmentData.source)
        return {src: int(n) for src, n in (await self.session.execute(q)).all()}
