# prospect_pipeline/domain/types.py
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any


class DedupAction(str, Enum):
    insert = "insert"
    update = "update"


class MatchType(str, Enum):
    email = "email"
    linkedin_url = "linkedin_url"
    name_and_company = "name_and_company"


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    errors: list[str]
    warnings: list[str]
    completeness_score: float
    # audit stamp only; two results for the same record compare equal
    metadata: dict[str, Any] = field(default_factory=dict, compare=False)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class DeduplicationResult:
    action: DedupAction
    prospect: dict[str, Any]
    duplicate_found: bool = False
    existing_id: int | None = None
    match_type: MatchType | None = None
    fields_updated: list[str] = field(default_factory=list)
    conflicts: list[str] = field(default_factory=list)

    @property
    def metadata(self) -> dict[str, Any]:
        return {
            "duplicate_found": self.duplicate_found,
            "existing_id": self.existing_id,
            "match_type": self.match_type.value if self.match_type else None,
            "fields_updated": list(self.fields_updated),
            "conflicts": list(self.conflicts),
        }
