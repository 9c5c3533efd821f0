from __future__ import annotations

import asyncio
import logging

from prospect_pipeline.bootstrap import build_services
from prospect_pipeline.config import settings
from prospect_pipeline.db import engine
from prospect_pipeline.jobs.scheduler import build_scheduler
from prospect_pipeline.models import Base


def _quiet_logging() -> None:
    # Root defaults
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s:%(name)s:%(message)s",
    )

    # Quiet the usual offenders
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


async def main() -> None:
    _quiet_logging()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    services = build_services()
    scheduler = build_scheduler(services)
    scheduler.start()
    logging.getLogger(__name__).info("Scheduler started")

    try:
        while True:
            await asyncio.sleep(3600)
    except (KeyboardInterrupt, asyncio.CancelledError):
        scheduler.shutdown()
        logging.getLogger(__name__).info("Scheduler stopped")


if __name__ == "__main__":
    asyncio.run(main())
