# prospect_pipeline/bootstrap.py
from __future__ import annotations

from dataclasses import dataclass

from .adapters.clients.enrichment_provider import EnrichmentProvider, EnrichmentProviderClient
from .db import AsyncSessionLocal
from .jobs.enrichment import EnrichmentScheduler
from .jobs.pipeline import PipelineWorker
from .service_layer.quarantine import QuarantineManager
from .service_layer.scout import ProspectEnricher
from .service_layer.unit_of_work import SessionFactory, UnitOfWorkFactory, uow_factory


@dataclass
class Services:
    uow_factory: UnitOfWorkFactory
    pipeline: PipelineWorker
    quarantine: QuarantineManager
    enrichment: EnrichmentScheduler


def build_services(
    session_factory: SessionFactory = AsyncSessionLocal,
    provider: EnrichmentProvider | None = None,
) -> Services:
    """One worker of each kind, each owning its own run guard."""
    uows = uow_factory(session_factory)
    quarantine = QuarantineManager(uows)
    enricher = ProspectEnricher(uows, provider or EnrichmentProviderClient.from_settings())
    return Services(
        uow_factory=uows,
        pipeline=PipelineWorker(uows, quarantine=quarantine),
        quarantine=quarantine,
        enrichment=EnrichmentScheduler(uows, enricher),
    )
