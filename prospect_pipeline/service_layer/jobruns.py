# prospect_pipeline/service_layer/jobruns.py
from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from ..models import JobRun, JobRunStatus, utcnow
from .unit_of_work import UnitOfWorkFactory

log = logging.getLogger(__name__)


def run_summary(result: Mapping[str, Any]) -> dict[str, Any]:
    """
    Counters of a pipeline/enrichment result, as stored on the run.
    Per-record `details` (and any other nested value) stay out of job_runs.
    """
    return {k: v for k, v in result.items() if isinstance(v, (bool, int, float, str))}


async def start_job(session: AsyncSession, job_name: str, meta: dict[str, Any] | None = None) -> JobRun:
    jr = JobRun(
        job_name=job_name,
        started_at=utcnow(),
        status=JobRunStatus.running,
        meta_json=json.dumps(meta) if meta else None,
    )
    session.add(jr)
    await session.flush()
    return jr


async def finish_job_success(session: AsyncSession, jr: JobRun, result: Mapping[str, Any]) -> None:
    jr.status = JobRunStatus.success
    jr.finished_at = utcnow()
    jr.summary_json = json.dumps(run_summary(result))
    jr.error = None
    await session.flush()


async def finish_job_fail(session: AsyncSession, jr: JobRun, err: Exception) -> None:
    jr.status = JobRunStatus.failed
    jr.finished_at = utcnow()
    jr.error = f"{type(err).__name__}: {err}"
    await session.flush()


async def close_run(
    uow_factory: UnitOfWorkFactory,
    run_id: int,
    result: Mapping[str, Any] | None = None,
    error: Exception | None = None,
) -> None:
    """Close a run opened by start_job, in its own transaction."""
    async with uow_factory() as uow:
        jr = await uow.session.get(JobRun, run_id)
        if jr is None:
            log.warning("job run %s disappeared before it was closed", run_id)
            return
        if error is not None:
            await finish_job_fail(uow.session, jr, error)
        else:
            await finish_job_success(uow.session, jr, result or {})
