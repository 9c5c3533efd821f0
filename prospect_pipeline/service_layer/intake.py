# prospect_pipeline/service_layer/intake.py
from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from .unit_of_work import UnitOfWorkFactory

log = logging.getLogger(__name__)


async def stage_raw_records(
    uow_factory: UnitOfWorkFactory,
    records: Iterable[Mapping[str, Any]],
    source: str,
) -> list[int]:
    """
    Drop raw observations into staging as `pending`. All-or-nothing.
    Returns the new staging ids in input order.
    """
    if not source or not source.strip():
        raise ValueError("source is required")

    rows = list(records)
    for i, raw in enumerate(rows):
        if not isinstance(raw, Mapping):
            raise TypeError(f"record {i} must be a mapping, got {type(raw).__name__}")

    async with uow_factory() as uow:
        ids = [(await uow.staging.insert(dict(raw), source.strip())).id for raw in rows]

    log.info("staged %d record(s) from %s", len(ids), source)
    return ids
