# prospect_pipeline/domain/enrichment.py
from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timedelta
from typing import Protocol

# How long a fetched payload stays "current", per source.
SOURCE_TTL_DAYS: dict[str, int] = {
    "brightdata": 1,
    "linkedin": 7,
    "twitter": 3,
    "company": 30,
    "social": 3,
}
DEFAULT_TTL_DAYS = 7

FRESHNESS_WINDOW = timedelta(hours=24)
STALE_AFTER = timedelta(days=7)


class FetchedRecord(Protocol):
    source: str
    fetched_at: datetime


def expires_at_for(source: str, fetched_at: datetime) -> datetime:
    return fetched_at + timedelta(days=SOURCE_TTL_DAYS.get(source, DEFAULT_TTL_DAYS))


def is_enrichment_fresh(
    records: Iterable[FetchedRecord],
    required_sources: Iterable[str],
    *,
    now: datetime,
    max_age: timedelta = FRESHNESS_WINDOW,
) -> bool:
    """
    Fresh only if every required source has a record fetched within `max_age`.
    No records at all is never fresh.
    """
    latest: dict[str, datetime] = {}
    for r in records:
        if r.source not in latest or r.fetched_at > latest[r.source]:
            latest[r.source] = r.fetched_at

    if not latest:
        return False

    for source in required_sources:
        fetched_at = latest.get(source)
        if fetched_at is None or now - fetched_at > max_age:
            return False
    return True


def stale_cutoff(now: datetime, stale_after: timedelta = STALE_AFTER) -> datetime:
    return now - stale_after
