import httpx
import pytest
from sqlalchemy import select

from prospect_pipeline.bootstrap import build_services
from prospect_pipeline.entrypoints.fastapi_app import create_app
from prospect_pipeline.models import JobRun, JobRunStatus
from prospect_pipeline.service_layer.intake import stage_raw_records

JOHN = {"email": "john@example.com", "firstName": "John", "lastName": "Doe", "companyName": "Example Corp"}


@pytest.fixture
def services(async_session_maker, fake_provider):
    return build_services(async_session_maker, provider=fake_provider)


@pytest.fixture
async def client(services, engine):
    app = create_app(services, engine=engine)
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as c:
        yield c


@pytest.mark.asyncio
async def test_health(client):
    r = await client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_pipeline_run_and_stats(client, services):
    await stage_raw_records(services.uow_factory, [JOHN, {"firstName": "NoEmail"}], "csv")

    r = await client.post("/jobs/pipeline", params={"batch_size": 10})
    assert r.status_code == 200
    body = r.json()
    assert body["started"] is True
    assert body["result"]["processed"] == 2
    assert body["result"]["successful"] == 1
    assert body["result"]["quarantined"] == 1

    r = await client.get("/pipeline/stats")
    assert r.status_code == 200
    stats = r.json()
    assert stats["staging"]["total"] == 2
    assert stats["staging"]["processed"] == 1
    assert stats["staging"]["quarantined"] == 1
    assert stats["quarantine"]["pending"] == 1


@pytest.mark.asyncio
async def test_pipeline_run_while_busy(client, services):
    with services.pipeline.guard.claim():
        r = await client.post("/jobs/pipeline")
    assert r.status_code == 200
    assert r.json() == {"started": False, "result": None}


@pytest.mark.asyncio
async def test_quarantine_review_and_reprocess(client, services):
    await stage_raw_records(services.uow_factory, [{"firstName": "NoEmail"}], "csv")
    await client.post("/jobs/pipeline")

    r = await client.get("/quarantine")
    assert r.status_code == 200
    [record] = r.json()
    assert record["staged_data"] == {"firstName": "NoEmail"}
    assert "email: Required" in record["errors"]

    assert (await client.post(f"/quarantine/{record['id']}/review", json={"status": "fixed"})).status_code == 422
    assert (await client.post("/quarantine/999/review", json={"status": "approved"})).status_code == 404

    r = await client.post(f"/quarantine/{record['id']}/review", json={"status": "approved"})
    assert r.status_code == 200
    assert r.json()["review_status"] == "approved"

    # a second verdict is refused
    r = await client.post(f"/quarantine/{record['id']}/review", json={"status": "rejected"})
    assert r.status_code == 409

    r = await client.post("/jobs/quarantine/reprocess")
    assert r.status_code == 200
    [out] = r.json()
    assert out["quarantine_id"] == record["id"]
    assert out["status"] == "reprocessed"


@pytest.mark.asyncio
async def test_enrichment_batch_health_and_stats(client, services, async_session_maker):
    assert (await client.get("/enrichment/health")).json()["healthy"] is False

    async with services.uow_factory() as uow:
        pid = (await uow.prospects.insert({"email": "a@x.com", "first_name": "A", "last_name": "X"})).id

    assert (await client.post("/jobs/enrichment/batch", json={"prospect_ids": []})).status_code == 422

    r = await client.post("/jobs/enrichment/batch", json={"prospect_ids": [pid]})
    assert r.status_code == 200
    body = r.json()
    assert body["total"] == 1 and body["successful"] == 1
    assert body["details"][0]["sources_enriched"] == ["brightdata"]

    async with async_session_maker() as session:
        jr = (await session.execute(select(JobRun).where(JobRun.job_name == "enrichment_batch_api"))).scalars().one()
    assert jr.status == JobRunStatus.success

    health = (await client.get("/enrichment/health")).json()
    assert health["healthy"] is True
    assert health["statistics"]["by_source"] == {"brightdata": 1}

    stats = (await client.get("/enrichment/stats")).json()
    assert stats["prospects"]["enriched"] == 1
    assert stats["prospects"]["enrichment_rate"] == 1.0


@pytest.mark.asyncio
async def test_scheduled_enrichment_endpoint(client, services):
    r = await client.post("/jobs/enrichment")
    assert r.status_code == 200
    assert r.json()["started"] is True
    assert r.json()["result"]["total"] == 0
