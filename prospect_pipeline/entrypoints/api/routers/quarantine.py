# prospect_pipeline/entrypoints/api/routers/quarantine.py
from __future__ import annotations

from typing import Any, Literal

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from ..deps import get_services
from ....bootstrap import Services
from ....errors import QuarantineRecordNotFound, StoreError

router = APIRouter(tags=["quarantine"])


class ReviewIn(BaseModel):
    status: Literal["approved", "rejected"]


@router.get("/quarantine")
async def list_quarantine(
    limit: int = Query(50, ge=1, le=500),
    services: Services = Depends(get_services),
) -> list[dict[str, Any]]:
    return await services.quarantine.list_pending(limit)


@router.post("/quarantine/{quarantine_id}/review")
async def review_quarantine(
    quarantine_id: int,
    body: ReviewIn,
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    try:
        return await services.quarantine.review(quarantine_id, body.status)
    except QuarantineRecordNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except StoreError as e:
        # already reviewed
        raise HTTPException(status_code=409, detail=str(e))
