# prospect_pipeline/service_layer/deduplication.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Iterable, Mapping

from ..adapters.repos.prospects import ProspectRepository, prospect_to_record
from ..domain.matching import identity_key
from ..domain.merge import merge_prospect
from ..domain.types import DedupAction, DeduplicationResult, MatchType
from ..models import Prospect, utcnow

log = logging.getLogger(__name__)

# unique columns a merge could push into another prospect's row
_UNIQUE_FIELDS: tuple[tuple[str, MatchType], ...] = (
    ("email", MatchType.email),
    ("linkedin_url", MatchType.linkedin_url),
)


class IdentityResolver:
    """
    Decides whether a canonical record is a new prospect or an existing one,
    and produces the merged record to write.

    Lookup order: email, LinkedIn URL, then fuzzy name + company.
    """

    def __init__(self, prospects: ProspectRepository, *, clock: Callable[[], datetime] = utcnow) -> None:
        self.prospects = prospects
        self.clock = clock

    async def find_existing(self, record: Mapping[str, Any]) -> tuple[Prospect | None, MatchType | None]:
        email = record.get("email")
        if isinstance(email, str) and email:
            hit = await self.prospects.find_by_email(email)
            if hit is not None:
                return hit, MatchType.email

        linkedin_url = record.get("linkedin_url")
        if isinstance(linkedin_url, str) and linkedin_url:
            hit = await self.prospects.find_by_linkedin_url(linkedin_url)
            if hit is not None:
                return hit, MatchType.linkedin_url

        first, last, company = record.get("first_name"), record.get("last_name"), record.get("company_name")
        if first and last and company:
            hit = await self.prospects.find_by_name_and_company(first, last, company)
            if hit is not None:
                return hit, MatchType.name_and_company

        return None, None

    async def resolve(self, record: Mapping[str, Any]) -> DeduplicationResult:
        existing, match_type = await self.find_existing(record)
        if existing is None:
            return DeduplicationResult(action=DedupAction.insert, prospect=dict(record))

        current = prospect_to_record(existing)
        merged, fields_updated = merge_prospect(current, record, now=self.clock())

        conflicts: list[str] = []
        for f, _ in _UNIQUE_FIELDS:
            if f not in fields_updated:
                continue
            owner = await self._owner_of(f, merged[f])
            if owner is not None and owner.id != existing.id:
                log.warning(
                    "skipping %s fill for prospect %s: value already belongs to prospect %s",
                    f, existing.id, owner.id,
                )
                merged[f] = current.get(f)
                fields_updated.remove(f)
                conflicts.append(f"{f}: already used by prospect {owner.id}")

        return DeduplicationResult(
            action=DedupAction.update,
            prospect=merged,
            duplicate_found=True,
            existing_id=existing.id,
            match_type=match_type,
            fields_updated=fields_updated,
            conflicts=conflicts,
        )

    async def _owner_of(self, f: str, value: Any) -> Prospect | None:
        if not value:
            return None
        if f == "email":
            return await self.prospects.find_by_email(value)
        return await self.prospects.find_by_linkedin_url(value)

    async def apply(self, result: DeduplicationResult) -> Prospect:
        """Write the resolution: insert a new row or update the matched one."""
        if result.action == DedupAction.insert:
            return await self.prospects.insert(result.prospect)

        assert result.existing_id is not None
        existing = await self.prospects.get(result.existing_id)
        assert existing is not None
        return await self.prospects.update(existing, result.prospect)


@dataclass
class IdentityGroup:
    """Same-identity records of one batch, folded into a single record."""

    key: str
    record: dict[str, Any]
    members: list[Any] = field(default_factory=list)


def fold_batch(items: Iterable[tuple[Any, Mapping[str, Any]]]) -> list[IdentityGroup]:
    """
    Fold (member, record) pairs sharing an identity key, in arrival order.

    Later records are merged into earlier ones with the prospect merge rules,
    so the group resolves and loads once.
    """
    groups: dict[str, IdentityGroup] = {}
    for member, record in items:
        key = identity_key(record)
        group = groups.get(key)
        if group is None:
            groups[key] = IdentityGroup(key=key, record=dict(record), members=[member])
            continue
        group.record, _ = merge_prospect(group.record, record)
        group.members.append(member)
    return list(groups.values())
