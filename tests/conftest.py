# tests/conftest.py
import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from prospect_pipeline.errors import FatalProviderError
from prospect_pipeline.models import Base
from prospect_pipeline.service_layer.unit_of_work import uow_factory


@pytest.fixture
async def engine():
    """
    Fresh in-memory DB per test. StaticPool makes all connections share the same
    in-memory database for the lifetime of this engine fixture.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def async_session_maker(engine):
    return async_sessionmaker(engine, expire_on_commit=False, autoflush=True)


@pytest.fixture
def uows(async_session_maker):
    return uow_factory(async_session_maker)


class FakeProvider:
    """In-memory enrichment provider; records every call."""

    def __init__(self, person=None, company=None, fail_emails=(), company_error=None):
        self.person = person if person is not None else {
            "identity": {"phone": "5550001111", "location": "nyc", "timezone": None},
            "professional": {"current_title": "VP Sales"},
        }
        self.company = company if company is not None else {"basics": {"name": "Example"}}
        self.fail_emails = set(fail_emails)
        self.company_error = company_error
        self.calls = []

    async def search_person(self, hints):
        self.calls.append(("search_person", hints))
        if hints.get("email") in self.fail_emails:
            raise FatalProviderError("provider rejected credentials", status_code=401)
        return self.person

    async def scrape_company(self, domain):
        self.calls.append(("scrape_company", domain))
        if self.company_error is not None:
            raise self.company_error
        return self.company


@pytest.fixture
def fake_provider():
    return FakeProvider()


class SleepRecorder:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


@pytest.fixture
def sleeps():
    return SleepRecorder()
