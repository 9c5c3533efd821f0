# prospect_pipeline/domain/merge.py
from __future__ import annotations

import copy
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from .validation import bare_domain

# Job titles, numbers and whereabouts change; newest sighting wins.
ALWAYS_OVERWRITE_FIELDS: tuple[str, ...] = (
    "job_title",
    "phone",
    "location",
    "timezone",
    "last_enriched_at",
    "updated_at",
)

# Identity fields: never clobber a populated value.
FILL_IF_EMPTY_FIELDS: tuple[str, ...] = (
    "first_name",
    "last_name",
    "email",
    "company_name",
    "company_domain",
    "linkedin_url",
)


def merge_enrichment(existing: Any, incoming: Any) -> Any:
    """
    Recursive structural merge of untyped enrichment payloads.

    Matching object keys merge recursively, incoming scalars and lists replace,
    and a None incoming value never overwrites anything.
    """
    if incoming is None:
        return copy.deepcopy(existing)
    if existing is None:
        return copy.deepcopy(incoming)

    if isinstance(existing, Mapping) and isinstance(incoming, Mapping):
        merged = copy.deepcopy(dict(existing))
        for key, value in incoming.items():
            if value is None:
                continue
            if isinstance(value, Mapping):
                merged[key] = merge_enrichment(merged.get(key), value)
            else:
                merged[key] = copy.deepcopy(value)
        return merged

    return copy.deepcopy(incoming)


def append_source(existing: str | None, incoming: str | None) -> str | None:
    if not incoming:
        return existing
    tags = [t.strip() for t in (existing or "").split(",") if t.strip()]
    for tag in (t.strip() for t in incoming.split(",")):
        if tag and tag not in tags:
            tags.append(tag)
    return ",".join(tags) if tags else None


def merge_prospect(
    existing: Mapping[str, Any],
    incoming: Mapping[str, Any],
    *,
    now: datetime | None = None,
) -> tuple[dict[str, Any], list[str]]:
    """
    Fold `incoming` into `existing` using the prospect merge rules.

    Returns (merged, fields_updated). `existing` is never mutated.
    """
    merged: dict[str, Any] = dict(existing)

    for f in ALWAYS_OVERWRITE_FIELDS:
        value = incoming.get(f)
        if value is not None:
            merged[f] = value

    for f in FILL_IF_EMPTY_FIELDS:
        value = incoming.get(f)
        if merged.get(f) or not value:
            continue
        if f == "company_domain" and isinstance(value, str):
            value = bare_domain(value)
        merged[f] = value

    merged["source"] = append_source(existing.get("source"), incoming.get("source"))

    if incoming.get("enrichment_data") is not None:
        merged["enrichment_data"] = merge_enrichment(existing.get("enrichment_data"), incoming["enrichment_data"])

    if now is not None:
        merged["updated_at"] = now

    fields_updated = sorted(
        k for k in merged
        if k != "updated_at" and merged.get(k) != existing.get(k)
    )
    return merged, fields_updated
