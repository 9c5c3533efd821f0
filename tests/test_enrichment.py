from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest
from sqlalchemy import select

from prospect_pipeline.domain.enrichment import expires_at_for, is_enrichment_fresh
from prospect_pipeline.errors import ProspectNotFound, StoreError, TransientProviderError
from prospect_pipeline.jobs.enrichment import EnrichmentScheduler
from prospect_pipeline.models import EnrichmentData, JobRun, JobRunStatus
from prospect_pipeline.service_layer.scout import ProspectEnricher

NOW = datetime(2026, 1, 15, 12, 0, 0)


def _enricher(uows, provider):
    return ProspectEnricher(
        uows,
        provider,
        required_sources=["provider-x"],
        person_source="provider-x",
        company_source="company",
        clock=lambda: NOW,
    )


def _scheduler(uows, enricher, sleeps):
    return EnrichmentScheduler(uows, enricher, delay_s=2.0, sleep=sleeps, clock=lambda: NOW)


async def _seed(uows, **fields):
    async with uows() as uow:
        return (await uow.prospects.insert(fields)).id


async def _seed_enrichment(uows, prospect_id, source, fetched_at, data=None):
    async with uows() as uow:
        await uow.enrichment.insert(prospect_id, source, data or {"seen": True}, expires_at_for(source, fetched_at), fetched_at=fetched_at)


def test_freshness_requires_every_source_within_window():
    rec = lambda source, hours: SimpleNamespace(source=source, fetched_at=NOW - timedelta(hours=hours))

    assert is_enrichment_fresh([rec("brightdata", 2)], ["brightdata"], now=NOW) is True
    assert is_enrichment_fresh([rec("brightdata", 30)], ["brightdata"], now=NOW) is False
    assert is_enrichment_fresh([], ["brightdata"], now=NOW) is False
    assert is_enrichment_fresh([], [], now=NOW) is False
    assert is_enrichment_fresh([rec("brightdata", 2)], ["brightdata", "company"], now=NOW) is False
    # newest record per source counts
    assert is_enrichment_fresh([rec("brightdata", 30), rec("brightdata", 1)], ["brightdata"], now=NOW) is True


def test_expiry_depends_on_source():
    assert expires_at_for("company", NOW) == NOW + timedelta(days=30)
    assert expires_at_for("brightdata", NOW) == NOW + timedelta(days=1)
    assert expires_at_for("anything-else", NOW) == NOW + timedelta(days=7)


@pytest.mark.asyncio
async def test_fresh_prospect_is_served_from_store(uows, fake_provider):
    pid = await _seed(uows, email="a@x.com", first_name="A", last_name="X")
    await _seed_enrichment(uows, pid, "provider-x", NOW - timedelta(hours=2), {"cached": 1})

    payload = await _enricher(uows, fake_provider).enrich_prospect(pid)

    assert payload == {"provider-x": {"cached": 1}}
    assert fake_provider.calls == []


@pytest.mark.asyncio
async def test_stale_prospect_calls_the_provider(uows, fake_provider, async_session_maker):
    pid = await _seed(uows, email="a@x.com", first_name="A", last_name="X", company_name="Example", company_domain="example.com")
    await _seed_enrichment(uows, pid, "provider-x", NOW - timedelta(hours=30))

    payload = await _enricher(uows, fake_provider).enrich_prospect(pid)

    assert set(payload) == {"provider-x", "company"}
    assert [name for name, _ in fake_provider.calls] == ["search_person", "scrape_company"]
    hints = fake_provider.calls[0][1]
    assert hints["email"] == "a@x.com"
    assert hints["name"] == "A X"

    async with uows() as uow:
        p = await uow.prospects.get(pid)
        assert p.phone == "+1 (555) 000-1111"
        assert p.location == "New York, NY, USA"
        assert p.timezone == "America/New_York"
        assert p.last_enriched_at == NOW
        assert p.enrichment_data["company"] == {"basics": {"name": "Example"}}

    async with async_session_maker() as session:
        rows = (await session.execute(select(EnrichmentData).where(EnrichmentData.fetched_at == NOW))).scalars().all()
    assert {r.source: r.expires_at for r in rows} == {
        "provider-x": NOW + timedelta(days=7),
        "company": NOW + timedelta(days=30),
    }


@pytest.mark.asyncio
async def test_company_lookup_failure_is_not_fatal(uows, fake_provider):
    fake_provider.company_error = TransientProviderError("company api down", status_code=503)
    pid = await _seed(uows, email="a@x.com", first_name="A", last_name="X", company_domain="example.com", phone="+1 (555) 999-0000")

    payload = await _enricher(uows, fake_provider).enrich_prospect(pid)

    assert list(payload) == ["provider-x"]
    async with uows() as uow:
        p = await uow.prospects.get(pid)
        # already populated, left alone
        assert p.phone == "+1 (555) 999-0000"
        assert p.last_enriched_at == NOW


@pytest.mark.asyncio
async def test_unknown_prospect(uows, fake_provider):
    with pytest.raises(ProspectNotFound):
        await _enricher(uows, fake_provider).enrich_prospect(404)


@pytest.mark.asyncio
async def test_scheduled_run_enriches_stale_prospects_with_a_pause_between_calls(uows, fake_provider, sleeps, async_session_maker):
    never = await _seed(uows, email="never@x.com", first_name="N", last_name="X")
    stale = await _seed(uows, email="stale@x.com", first_name="S", last_name="X", last_enriched_at=NOW - timedelta(days=10))
    await _seed(uows, email="recent@x.com", first_name="R", last_name="X", last_enriched_at=NOW - timedelta(days=1))

    scheduler = _scheduler(uows, _enricher(uows, fake_provider), sleeps)
    res = await scheduler.run_scheduled_enrichment()

    assert res["total"] == 2 and res["successful"] == 2 and res["failed"] == 0
    assert [d["prospect_id"] for d in res["details"]] == [never, stale]
    assert res["details"][0]["sources_enriched"] == ["provider-x"]
    assert sleeps.delays == [2.0]

    async with uows() as uow:
        for pid in (never, stale):
            assert (await uow.prospects.get(pid)).last_enriched_at == NOW

    async with async_session_maker() as session:
        jr = (await session.execute(select(JobRun))).scalars().one()
    assert jr.job_name == "enrichment_scheduled"
    assert jr.status == JobRunStatus.success

    # everything is current now
    res = await scheduler.run_scheduled_enrichment()
    assert res == {"total": 0, "successful": 0, "failed": 0, "details": []}


@pytest.mark.asyncio
async def test_one_failing_prospect_does_not_stop_the_run(uows, fake_provider, sleeps):
    fake_provider.fail_emails = {"bad@x.com"}
    bad = await _seed(uows, email="bad@x.com", first_name="B", last_name="X")
    good = await _seed(uows, email="good@x.com", first_name="G", last_name="X")

    res = await _scheduler(uows, _enricher(uows, fake_provider), sleeps).run_scheduled_enrichment()

    assert (res["successful"], res["failed"]) == (1, 1)
    by_id = {d["prospect_id"]: d for d in res["details"]}
    assert by_id[bad]["success"] is False
    assert "credentials" in by_id[bad]["error"]
    assert by_id[good]["success"] is True

    async with uows() as uow:
        assert (await uow.prospects.get(bad)).last_enriched_at is None


@pytest.mark.asyncio
async def test_batch_enrichment(uows, fake_provider, sleeps):
    pid = await _seed(uows, email="a@x.com", first_name="A", last_name="X")
    scheduler = _scheduler(uows, _enricher(uows, fake_provider), sleeps)

    with pytest.raises(ValueError):
        await scheduler.enrich_prospects_batch([])

    res = await scheduler.enrich_prospects_batch([pid, 999])
    assert res["total"] == 2
    assert res["details"][0]["success"] is True
    assert res["details"][1] == {**res["details"][1], "prospect_id": 999, "success": False, "error": "Prospect not found: 999"}
    assert sleeps.delays == [2.0]


@pytest.mark.asyncio
async def test_second_run_while_active_is_a_noop(uows, fake_provider, sleeps):
    await _seed(uows, email="a@x.com", first_name="A", last_name="X")
    scheduler = _scheduler(uows, _enricher(uows, fake_provider), sleeps)

    with scheduler.guard.claim():
        assert await scheduler.run_scheduled_enrichment() is None
    assert fake_provider.calls == []


@pytest.mark.asyncio
async def test_health_and_stats(uows, fake_provider, sleeps):
    scheduler = _scheduler(uows, _enricher(uows, fake_provider), sleeps)
    assert await scheduler.check_enrichment_health() == {
        "healthy": False,
        "statistics": {"last_24_hours": 0, "by_source": {}},
    }

    a = await _seed(uows, email="a@x.com", first_name="A", last_name="X")
    await _seed(uows, email="b@x.com", first_name="B", last_name="X")
    await _seed(uows, email="c@x.com", first_name="C", last_name="X")
    await scheduler.enrich_prospects_batch([a])
    await _seed_enrichment(uows, a, "linkedin", NOW - timedelta(days=3))

    health = await scheduler.check_enrichment_health()
    assert health["healthy"] is True
    assert health["statistics"] == {"last_24_hours": 1, "by_source": {"provider-x": 1}}

    stats = await scheduler.get_enrichment_stats()
    assert stats["prospects"] == {"total": 3, "enriched": 1, "needs_enrichment": 2, "enrichment_rate": 0.333}
    assert stats["enrichment_data"] == {"total_records": 2, "by_source": {"provider-x": 1, "linkedin": 1}}


class _BrokenUnitOfWork:
    async def __aenter__(self):
        raise StoreError("database unavailable")

    async def __aexit__(self, *exc):
        return False


@pytest.mark.asyncio
async def test_health_check_reports_store_failure(fake_provider, sleeps):
    scheduler = EnrichmentScheduler(_BrokenUnitOfWork, _enricher(_BrokenUnitOfWork, fake_provider), sleep=sleeps)
    assert await scheduler.check_enrichment_health() == {"healthy": False, "error": "database unavailable"}
