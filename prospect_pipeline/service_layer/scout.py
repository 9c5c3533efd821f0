# prospect_pipeline/service_layer/scout.py
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Sequence

from ..adapters.clients.enrichment_provider import EnrichmentProvider
from ..config import settings
from ..domain.enrichment import expires_at_for, is_enrichment_fresh
from ..domain.merge import merge_enrichment
from ..domain.normalize import infer_timezone, normalize_location, normalize_phone
from ..errors import FatalProviderError, ProspectNotFound, TransientProviderError
from ..models import Prospect, utcnow
from .unit_of_work import UnitOfWorkFactory

log = logging.getLogger(__name__)


def person_hints(p: Prospect) -> dict[str, Any]:
    name = " ".join(x for x in (p.first_name, p.last_name) if x)
    return {
        "name": name or None,
        "email": p.email,
        "company": p.company_name,
        "linkedin_url": p.linkedin_url,
    }


def primary_fields_from_person(person: dict[str, Any]) -> dict[str, Any]:
    """Contact fields a person record can fill on the prospect."""
    identity = person.get("identity") or {}
    out: dict[str, Any] = {}
    if identity.get("phone"):
        out["phone"] = normalize_phone(identity["phone"])
    if identity.get("location"):
        out["location"] = normalize_location(str(identity["location"]))
    if identity.get("timezone"):
        out["timezone"] = identity["timezone"]
    elif out.get("location"):
        out["timezone"] = infer_timezone(out["location"])
    return out


class ProspectEnricher:
    """
    enrich_prospect(id) -> payload keyed by source.

    Fresh prospects are returned from the store untouched. Otherwise the
    person search is required (its failure fails the call); the company
    lookup is best-effort.
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        provider: EnrichmentProvider,
        *,
        required_sources: Sequence[str] | None = None,
        person_source: str | None = None,
        company_source: str | None = None,
        freshness_window: timedelta | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.uow_factory = uow_factory
        self.provider = provider
        self.required_sources = list(required_sources or settings.ENRICHMENT_REQUIRED_SOURCES)
        self.person_source = person_source or settings.ENRICHMENT_PERSON_SOURCE
        self.company_source = company_source or settings.ENRICHMENT_COMPANY_SOURCE
        self.freshness_window = freshness_window or timedelta(hours=settings.ENRICHMENT_FRESH_HOURS)
        self.clock = clock

    async def enrich_prospect(self, prospect_id: int) -> dict[str, Any]:
        now = self.clock()

        async with self.uow_factory() as uow:
            prospect = await uow.prospects.get(prospect_id)
            if prospect is None:
                raise ProspectNotFound(prospect_id)

            current = await uow.enrichment.current_for_prospect(prospect_id, now)
            if is_enrichment_fresh(current, self.required_sources, now=now, max_age=self.freshness_window):
                log.info("prospect %s enrichment is fresh, skipping", prospect_id)
                return {row.source: row.data for row in current}

            hints = person_hints(prospect)
            domain = prospect.company_domain

        payload: dict[str, Any] = {}

        person = await self.provider.search_person(hints)
        if person:
            payload[self.person_source] = person

        if domain:
            try:
                company = await self.provider.scrape_company(domain)
            except (TransientProviderError, FatalProviderError) as e:
                log.warning("company lookup for %s failed: %s", domain, e)
            else:
                if company:
                    payload[self.company_source] = company

        async with self.uow_factory() as uow:
            prospect = await uow.prospects.get(prospect_id)
            if prospect is None:
                raise ProspectNotFound(prospect_id)

            for source, data in payload.items():
                await uow.enrichment.insert(prospect_id, source, data, expires_at_for(source, now), fetched_at=now)

            fills: dict[str, Any] = {}
            if person:
                for f, value in primary_fields_from_person(person).items():
                    if not getattr(prospect, f):
                        fills[f] = value

            merged = merge_enrichment(prospect.enrichment_data, payload) if payload else None
            await uow.prospects.update(
                prospect,
                {**fills, "enrichment_data": merged, "last_enriched_at": now, "updated_at": now},
            )

        log.info("prospect %s enriched from %s", prospect_id, sorted(payload) or "no sources")
        return payload
