import json

import httpx
import pytest

from prospect_pipeline.adapters.clients.enrichment_provider import EnrichmentProviderClient
from prospect_pipeline.adapters.clients.http_resilience import RetryPolicy, resilient_request
from prospect_pipeline.errors import FatalProviderError, TransientProviderError

POLICY = RetryPolicy(max_attempts=3, backoff_base_s=1.0, timeout_s=5.0)


def _client(responses):
    """Serve the given responses (or exceptions) in order, counting requests."""
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        item = responses[min(len(seen), len(responses)) - 1]
        if isinstance(item, Exception):
            raise item
        return item

    return httpx.AsyncClient(transport=httpx.MockTransport(handler)), seen


def test_backoff_doubles_and_is_capped():
    assert [POLICY.backoff(i) for i in range(4)] == [1.0, 2.0, 4.0, 8.0]
    assert RetryPolicy(max_backoff_s=30.0).backoff(10) == 30.0


@pytest.mark.asyncio
async def test_rate_limit_is_retried(sleeps):
    client, seen = _client([httpx.Response(429), httpx.Response(200, json={"ok": True})])

    resp = await resilient_request(client, "GET", "https://provider.test/x", policy=POLICY, sleep=sleeps)

    assert resp.json() == {"ok": True}
    assert len(seen) == 2
    assert sleeps.delays == [1.0]


@pytest.mark.asyncio
async def test_server_errors_give_up_after_max_attempts(sleeps):
    client, seen = _client([httpx.Response(503)])

    with pytest.raises(TransientProviderError) as exc_info:
        await resilient_request(client, "GET", "https://provider.test/x", policy=POLICY, sleep=sleeps)

    assert exc_info.value.status_code == 503
    assert len(seen) == 3
    assert sleeps.delays == [1.0, 2.0]


@pytest.mark.asyncio
async def test_client_errors_are_not_retried(sleeps):
    client, seen = _client([httpx.Response(401)])

    with pytest.raises(FatalProviderError) as exc_info:
        await resilient_request(client, "GET", "https://provider.test/x", policy=POLICY, sleep=sleeps)

    assert exc_info.value.status_code == 401
    assert len(seen) == 1
    assert sleeps.delays == []


@pytest.mark.asyncio
async def test_timeouts_are_retried(sleeps):
    request = httpx.Request("GET", "https://provider.test/x")
    client, seen = _client([httpx.ConnectTimeout("timed out", request=request), httpx.Response(204)])

    resp = await resilient_request(client, "GET", "https://provider.test/x", policy=POLICY, sleep=sleeps)

    assert resp.status_code == 204
    assert len(seen) == 2
    assert sleeps.delays == [1.0]


@pytest.mark.asyncio
async def test_provider_client_parses_person_payload(sleeps):
    body = {
        "data": {
            "full_name": "Jane Roe",
            "primary_email": "jane@acme.io",
            "phone_numbers": ["5551234567", "5550000000"],
            "location": "nyc",
            "current_position": {"title": "VP Sales", "company": "Acme"},
            "company_info": {"size": "51-200", "tech_stack": ["python"]},
        }
    }
    client, seen = _client([httpx.Response(200, json=body)])
    provider = EnrichmentProviderClient(base_url="https://provider.test/v1/", api_key="k3y", client=client, policy=POLICY, sleep=sleeps)

    person = await provider.search_person({"name": "Jane Roe", "email": "jane@acme.io", "company": None})

    assert person["identity"]["phone"] == "5551234567"
    assert person["identity"]["location"] == "nyc"
    assert person["professional"]["current_title"] == "VP Sales"
    assert person["company_context"]["technologies"] == ["python"]
    assert person["confidence_score"] == 0.8

    request = seen[0]
    assert str(request.url) == "https://provider.test/v1/search/person"
    assert request.headers["Authorization"] == "Bearer k3y"
    assert json.loads(request.content)["query"] == {"name": "Jane Roe", "email": "jane@acme.io"}


@pytest.mark.asyncio
async def test_provider_client_company_lookup(sleeps):
    client, seen = _client([httpx.Response(200, json={"name": "Acme", "employee_count": 120, "technologies": ["go"]})])
    provider = EnrichmentProviderClient(base_url="https://provider.test/v1", api_key="k3y", client=client, policy=POLICY, sleep=sleeps)

    company = await provider.scrape_company("acme.io")

    assert company["basics"]["name"] == "Acme"
    assert company["metrics"]["employee_count"] == 120
    assert company["technology"]["tech_stack"] == ["go"]
    assert json.loads(seen[0].content)["domain"] == "acme.io"


@pytest.mark.asyncio
async def test_provider_client_needs_credentials(sleeps):
    client, seen = _client([httpx.Response(200, json={})])
    provider = EnrichmentProviderClient(base_url="https://provider.test/v1", api_key=None, client=client, policy=POLICY, sleep=sleeps)

    with pytest.raises(FatalProviderError):
        await provider.search_person({"email": "jane@acme.io"})
    assert seen == []

    # nothing to search on
    provider.api_key = "k3y"
    assert await provider.search_person({"email": None, "name": ""}) is None
    assert seen == []
