# prospect_pipeline/adapters/repos/prospects.py
from __future__ import annotations

import json
from datetime import datetime
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ...domain.matching import best_name_company_match, full_name, length_window
from ...domain.normalize import normalize_linkedin_url
from ...models import Prospect, utcnow

# columns a canonical record may write
PROSPECT_FIELDS: tuple[str, ...] = (
    "email",
    "first_name",
    "last_name",
    "job_title",
    "company_name",
    "company_domain",
    "linkedin_url",
    "phone",
    "location",
    "timezone",
    "source",
    "last_enriched_at",
)


def prospect_to_record(p: Prospect) -> dict[str, Any]:
    rec: dict[str, Any] = {f: getattr(p, f) for f in PROSPECT_FIELDS}
    rec["id"] = p.id
    rec["enrichment_data"] = p.enrichment_data
    rec["created_at"] = p.created_at
    rec["updated_at"] = p.updated_at
    return rec


def _apply(p: Prospect, record: dict[str, Any]) -> None:
    for f in PROSPECT_FIELDS:
        if f not in record:
            continue
        if f == "last_enriched_at" and not isinstance(record[f], datetime):
            continue
        setattr(p, f, record[f])
    if record.get("enrichment_data") is not None:
        p.enrichment_json = json.dumps(record["enrichment_data"], default=str)


class ProspectRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, prospect_id: int) -> Prospect | None:
        return await self.session.get(Prospect, prospect_id)

    async def find_by_email(self, email: str) -> Prospect | None:
        q = select(Prospect).where(func.lower(Prospect.email) == email.strip().lower()).order_by(Prospect.id)
        return (await self.session.execute(q)).scalars().first()

    async def find_by_linkedin_url(self, linkedin_url: str) -> Prospect | None:
        q = select(Prospect).where(Prospect.linkedin_url == normalize_linkedin_url(linkedin_url)).order_by(Prospect.id)
        return (await self.session.execute(q)).scalars().first()

    async def find_by_name_and_company(self, first_name: str, last_name: str, company_name: str) -> Prospect | None:
        """
        Fuzzy lookup. SQL keeps only rows whose full name and company lengths
        could still clear the similarity threshold; the edit-distance check decides.
        """
        want_name = full_name(first_name, last_name)
        name_lo, name_hi = length_window(len(want_name))
        company_lo, company_hi = length_window(len(company_name.strip()))

        name_len = func.length(func.trim(Prospect.first_name)) + func.length(func.trim(Prospect.last_name)) + 1
        company_len = func.length(func.trim(Prospect.company_name))
        q = (
            select(Prospect)
            .where(Prospect.first_name.is_not(None))
            .where(Prospect.last_name.is_not(None))
            .where(Prospect.company_name.is_not(None))
            .where(name_len.between(name_lo, name_hi))
            .where(company_len.between(company_lo, company_hi))
            .order_by(Prospect.id)
        )
        candidates = (await self.session.execute(q)).scalars().all()
        return best_name_company_match(first_name, last_name, company_name, candidates)

    async def insert(self, record: dict[str, Any]) -> Prospect:
        # created_at/updated_at belong to the store, never to the incoming record
        now = utcnow()
        p = Prospect(created_at=now, updated_at=now)
        _apply(p, record)
        self.session.add(p)
        await self.session.flush()
        return p

    async def update(self, prospect: Prospect, record: dict[str, Any]) -> Prospect:
        _apply(prospect, record)
        stamp = record.get("updated_at")
        prospect.updated_at = stamp if isinstance(stamp, datetime) else utcnow()
        await self.session.flush()
        return prospect

    async def bulk_query(self, ids: list[int]) -> list[Prospect]:
        if not ids:
            return []
        q = select(Prospect).where(Prospect.id.in_(ids)).order_by(Prospect.id)
        return list((await self.session.execute(q)).scalars().all())

    async def list_needing_enrichment(self, cutoff: datetime, limit: int) -> list[Prospect]:
        """Never enriched or enriched before `cutoff`; oldest (and never) first."""
        q = (
            select(Prospect)
            .where(or_(Prospect.last_enriched_at.is_(None), Prospect.last_enriched_at < cutoff))
            .order_by(Prospect.last_enriched_at.asc().nulls_first(), Prospect.id.asc())
            .limit(limit)
        )
        return list((await self.session.execute(q)).scalars().all())

    async def count(self) -> int:
        return int((await self.session.execute(select(func.count()).select_from(Prospect))).scalar_one())

    async def count_enriched(self) -> int:
        q = select(func.count()).select_from(Prospect).where(Prospect.last_enriched_at.is_not(None))
        return int((await self.session.execute(q)).scalar_one())

    async def count_needing_enrichment(self, cutoff: datetime) -> int:
        q = (
            select(func.count())
            .select_from(Prospect)
            .where(or_(Prospect.last_enriched_at.is_(None), Prospect.last_enriched_at < cutoff))
        )
        return int((await self.session.execute(q)).scalar_one())
