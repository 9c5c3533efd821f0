# prospect_pipeline/entrypoints/fastapi_app.py
from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncEngine

from ..bootstrap import Services, build_services
from ..db import engine as default_engine
from ..models import Base
from .api.routers import health, jobs, quarantine


def create_app(services: Services | None = None, engine: AsyncEngine | None = None) -> FastAPI:
    db_engine = engine or default_engine

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Single place where DB tables are created in dev.
        async with db_engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        yield

    app = FastAPI(title="Prospect Pipeline", lifespan=lifespan)
    app.state.services = services or build_services()

    app.include_router(health.router)
    app.include_router(jobs.router)
    app.include_router(quarantine.router)

    return app
