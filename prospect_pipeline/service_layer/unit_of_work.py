# prospect_pipeline/service_layer/unit_of_work.py
from __future__ import annotations

from typing import Callable, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..adapters.repos.enrichment import EnrichmentRepository
from ..adapters.repos.prospects import ProspectRepository
from ..adapters.repos.quarantine import QuarantineRepository
from ..adapters.repos.staging import StagingRepository
from ..db import AsyncSessionLocal
from ..errors import StoreError

SessionFactory = Callable[[], AsyncSession]


class UnitOfWork(Protocol):
    session: AsyncSession
    staging: StagingRepository
    prospects: ProspectRepository
    quarantine: QuarantineRepository
    enrichment: EnrichmentRepository

    async def __aenter__(self) -> "UnitOfWork": ...
    async def __aexit__(self, exc_type, exc, tb) -> None: ...
    async def commit(self) -> None: ...
    async def rollback(self) -> None: ...


class SqlAlchemyUnitOfWork:
    """
    One session, one transaction. Commits on clean exit, rolls back on error.
    """

    def __init__(self, session_factory: SessionFactory = AsyncSessionLocal) -> None:
        self.session_factory = session_factory
        self.session: AsyncSession | None = None

    async def __aenter__(self) -> "SqlAlchemyUnitOfWork":
        self.session = self.session_factory()
        self.staging = StagingRepository(self.session)
        self.prospects = ProspectRepository(self.session)
        self.quarantine = QuarantineRepository(self.session)
        self.enrichment = EnrichmentRepository(self.session)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            if exc:
                await self.rollback()
            else:
                await self.commit()
        finally:
            if self.session:
                await self.session.close()

    async def commit(self) -> None:
        assert self.session is not None
        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise StoreError(f"commit failed: {e}") from e

    async def rollback(self) -> None:
        assert self.session is not None
        await self.session.rollback()


UnitOfWorkFactory = Callable[[], SqlAlchemyUnitOfWork]


def uow_factory(session_factory: SessionFactory = AsyncSessionLocal) -> UnitOfWorkFactory:
    return lambda: SqlAlchemyUnitOfWork(session_factory)
