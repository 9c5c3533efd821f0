# prospect_pipeline/domain/matching.py
from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol

FUZZY_THRESHOLD = 0.8


def edit_distance(a: str, b: str) -> int:
    """Plain Levenshtein distance, O(len(a) * len(b)) with two rolling rows."""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    prev = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        cur = [i] + [0] * len(b)
        for j, cb in enumerate(b, start=1):
            if ca == cb:
                cur[j] = prev[j - 1]
            else:
                cur[j] = 1 + min(prev[j - 1], prev[j], cur[j - 1])
        prev = cur
    return prev[-1]


def similarity(a: str, b: str) -> float:
    """(maxLen - distance) / maxLen; two empty strings are identical."""
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return (longest - edit_distance(a, b)) / longest


def length_window(length: int, threshold: float = FUZZY_THRESHOLD) -> tuple[int, int]:
    """
    Lengths a string may have and still reach `threshold` similarity against
    one of `length` characters. Edit distance is at least the length gap, so
    anything outside [ceil(t*L), floor(L/t)] can never match.
    """
    if length <= 0:
        return 0, 0
    lo = math.ceil(threshold * length - 1e-9)
    hi = math.floor(length / threshold + 1e-9)
    return lo, hi


def _low(value: Any) -> str:
    return str(value or "").strip().lower()


def full_name(first: Any, last: Any) -> str:
    return f"{_low(first)} {_low(last)}".strip()


class NamedCompanyRow(Protocol):
    id: int
    first_name: str | None
    last_name: str | None
    company_name: str | None


@dataclass(frozen=True)
class FuzzyCandidate:
    row: Any
    name_similarity: float
    company_similarity: float
    exact: bool

    @property
    def score(self) -> float:
        return self.name_similarity + self.company_similarity


def best_name_company_match(
    first_name: str,
    last_name: str,
    company_name: str,
    candidates: Iterable[NamedCompanyRow],
    threshold: float = FUZZY_THRESHOLD,
) -> Any | None:
    """
    Pick the stored row that is the same person at the same company.

    Both the full name and the company must clear `threshold`. An exact
    (case-insensitive) match on all three fields wins outright; otherwise the
    highest combined similarity wins, ties going to the lowest id.
    """
    want_first, want_last, want_company = _low(first_name), _low(last_name), _low(company_name)
    want_name = full_name(first_name, last_name)

    hits: list[FuzzyCandidate] = []
    for row in candidates:
        if not (row.first_name and row.last_name and row.company_name):
            continue
        name_sim = similarity(want_name, full_name(row.first_name, row.last_name))
        company_sim = similarity(want_company, _low(row.company_name))
        if name_sim < threshold or company_sim < threshold:
            continue
        exact = (
            _low(row.first_name) == want_first
            and _low(row.last_name) == want_last
            and _low(row.company_name) == want_company
        )
        hits.append(FuzzyCandidate(row=row, name_similarity=name_sim, company_similarity=company_sim, exact=exact))

    if not hits:
        return None

    hits.sort(key=lambda c: (not c.exact, -c.score, c.row.id))
    return hits[0].row


def identity_key(record: Mapping[str, Any]) -> str:
    """
    Key used to fold same-identity records inside one batch:
    email, else linkedin_url, else first|last|company.
    """
    email = _low(record.get("email"))
    if email:
        return f"email:{email}"
    linkedin = str(record.get("linkedin_url") or "").strip()
    if linkedin:
        return f"linkedin:{linkedin}"
    return "name:{}|{}|{}".format(
        _low(record.get("first_name")),
        _low(record.get("last_name")),
        _low(record.get("company_name")),
    )
