# prospect_pipeline/adapters/clients/enrichment_provider.py
from __future__ import annotations

import asyncio
from typing import Any, Protocol

import httpx

from ...config import settings
from ...errors import FatalProviderError
from .http_resilience import RetryPolicy, Sleep, resilient_request

PERSON_SEARCH_SOURCES = ["linkedin", "twitter", "github", "news", "company_websites"]


class EnrichmentProvider(Protocol):
    async def search_person(self, hints: dict[str, Any]) -> dict[str, Any] | None: ...
    async def scrape_company(self, domain: str) -> dict[str, Any] | None: ...


def _first(values: Any) -> Any:
    if isinstance(values, list) and values:
        return values[0]
    return None


def person_from_payload(raw: dict[str, Any]) -> dict[str, Any]:
    """Provider person payload -> structured person record."""
    position = raw.get("current_position") or {}
    company = raw.get("company_info") or {}
    return {
        "identity": {
            "full_name": raw.get("full_name"),
            "first_name": raw.get("first_name"),
            "last_name": raw.get("last_name"),
            "email": raw.get("primary_email"),
            "alternative_emails": raw.get("alternative_emails") or [],
            "phone": _first(raw.get("phone_numbers")),
            "location": raw.get("location"),
            "timezone": raw.get("timezone"),
        },
        "professional": {
            "current_title": position.get("title"),
            "current_company": position.get("company"),
            "department": position.get("department"),
            "seniority": raw.get("seniority_level"),
            "skills": raw.get("skills") or [],
        },
        "social": {
            "linkedin_url": raw.get("linkedin_url"),
            "twitter_handle": raw.get("twitter_handle"),
            "github_username": raw.get("github_username"),
        },
        "company_context": {
            "company_size": company.get("size"),
            "industry": company.get("industry"),
            "technologies": company.get("tech_stack") or [],
        },
        "confidence_score": raw.get("confidence_score", 0.8),
    }


def company_from_payload(raw: dict[str, Any]) -> dict[str, Any]:
    return {
        "basics": {
            "name": raw.get("name"),
            "domain": raw.get("domain"),
            "description": raw.get("description"),
            "industry": raw.get("industry"),
            "founded": raw.get("founded_year"),
            "headquarters": raw.get("headquarters"),
        },
        "metrics": {
            "employee_count": raw.get("employee_count"),
            "estimated_revenue": raw.get("estimated_revenue"),
            "funding_total": raw.get("total_funding"),
        },
        "technology": {
            "tech_stack": raw.get("technologies") or [],
        },
    }


class EnrichmentProviderClient:
    """
    External person/company data provider over HTTPS (bearer token).

    The httpx client is injectable; tests hand in one built on MockTransport.
    """

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str | None,
        client: httpx.AsyncClient | None = None,
        policy: RetryPolicy | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.client = client or httpx.AsyncClient()
        self.policy = policy or RetryPolicy.from_settings()
        self.sleep = sleep

    @classmethod
    def from_settings(cls) -> "EnrichmentProviderClient":
        return cls(base_url=settings.ENRICHMENT_BASE_URL, api_key=settings.ENRICHMENT_API_KEY)

    async def aclose(self) -> None:
        await self.client.aclose()

    async def _post(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        if not self.api_key:
            raise FatalProviderError("enrichment provider api key is not configured")

        resp = await resilient_request(
            self.client,
            "POST",
            f"{self.base_url}{path}",
            policy=self.policy,
            sleep=self.sleep,
            headers={"Authorization": f"Bearer {self.api_key}", "accept": "application/json"},
            json=body,
        )
        payload = resp.json()
        if not isinstance(payload, dict):
            raise FatalProviderError(f"unexpected payload from {path}: {type(payload).__name__}")
        return payload.get("data", payload)

    async def search_person(self, hints: dict[str, Any]) -> dict[str, Any] | None:
        query = {k: v for k, v in hints.items() if v}
        if not query:
            return None
        raw = await self._post(
            "/search/person",
            {
                "query": query,
                "sources": PERSON_SEARCH_SOURCES,
                "depth": "comprehensive",
                "include_company_info": True,
            },
        )
        return person_from_payload(raw) if raw else None

    async def scrape_company(self, domain: str) -> dict[str, Any] | None:
        raw = await self._post(
            "/company/info",
            {"domain": domain, "include_technologies": True, "include_funding": True},
        )
        return company_from_payload(raw) if raw else None
