"""Pytest fixtures for testing"""

import asyncio
from types import SimpleNamespace
from typing import Dict, Generator, List, Optional, Union

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session

from networth_gateway.api import dependencies
from networth_gateway.api.main import create_app
from networth_gateway.domain.exceptions import BlsAPIError, CensusAPIError, FredAPIError, ReasoningServiceError
from networth_gateway.domain.fallback_tables import FallbackTables, load_fallback_tables
from networth_gateway.domain.models import Observation, SubjectProfile, ZipIncomeProfile
from networth_gateway.infrastructure.clients.bls import BlsClient
from networth_gateway.infrastructure.clients.census import CensusClient
from networth_gateway.infrastructure.clients.fred import FredClient
from networth_gateway.infrastructure.clients.reasoning import ReasoningClient
from networth_gateway.infrastructure.database.models import Base
from networth_gateway.infrastructure.database.repositories import EstimateRepository
from networth_gateway.infrastructure.database.session import get_db
from networth_gateway.providers.baseline import NationalBaselineProvider
from networth_gateway.providers.geography import GeographicAffluenceProvider, NationalIncomeCache
from networth_gateway.services.pipeline import NetWorthPipeline
from networth_gateway.services.refinement import RefinementEngine


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


# Deterministic stand-ins for the external sources


class FakeFredClient:
    """Serves configured series values; unknown series behave like a missing observation"""

    def __init__(self, values: Optional[Dict[str, Union[float, Exception]]] = None, configured: bool = True, delay: float = 0.0):
        self.values = values or {}
        self.configured = configured
        self.delay = delay
        self.calls: List[str] = []

    async def get_latest_observation(self, series_id: str) -> Observation:
        self.calls.append(series_id)
        if self.delay:
            await asyncio.sleep(self.delay)
        value = self.values.get(series_id)
        if value is None:
            raise FredAPIError(f"No observation available for {series_id}")
        if isinstance(value, Exception):
            raise value
        return Observation(series_id=series_id, value=value, date="2023-01-01")


class FakeCensusClient:
    def __init__(self, profiles: Optional[Dict[str, Union[ZipIncomeProfile, Exception]]] = None, configured: bool = True, delay: float = 0.0):
        self.profiles = profiles or {}
        self.configured = configured
        self.delay = delay
        self.calls: List[str] = []

    async def get_zip_income(self, zcta: str) -> ZipIncomeProfile:
        self.calls.append(zcta)
        if self.delay:
            await asyncio.sleep(self.delay)
        profile = self.profiles.get(zcta)
        if profile is None:
            raise CensusAPIError(f"Median income suppressed for ZCTA {zcta}")
        if isinstance(profile, Exception):
            raise profile
        return profile


class FakeBlsClient:
    def __init__(self, rates: Optional[Dict[str, Union[float, Exception]]] = None, configured: bool = True, delay: float = 0.0):
        self.rates = rates or {}
        self.configured = configured
        self.delay = delay
        self.calls: List[str] = []

    async def get_state_unemployment_rate(self, state: str) -> Observation:
        self.calls.append(state)
        if self.delay:
            await asyncio.sleep(self.delay)
        rate = self.rates.get(state)
        if rate is None:
            raise BlsAPIError(f"No unemployment observation available for {state}")
        if isinstance(rate, Exception):
            raise rate
        return Observation(series_id=f"LAUS-{state}", value=rate, date="2024-06")


class FakeReasoningClient:
    """Returns a canned reply (or raises) and records the prompts it was sent"""

    def __init__(self, reply: Union[str, Exception] = "", configured: bool = True, delay: float = 0.0):
        self.reply = reply
        self.configured = configured
        self.delay = delay
        self.prompts: List[str] = []

    async def complete(self, system: str, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        if isinstance(self.reply, Exception):
            raise self.reply
        return self.reply


@pytest.fixture
def fakes() -> SimpleNamespace:
    """Fake client classes, constructed per test with the data it needs"""
    return SimpleNamespace(
        Fred=FakeFredClient,
        Census=FakeCensusClient,
        Bls=FakeBlsClient,
        Reasoning=FakeReasoningClient,
        ReasoningServiceError=ReasoningServiceError,
    )


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def tables() -> FallbackTables:
    return load_fallback_tables()


@pytest.fixture
def income_cache() -> NationalIncomeCache:
    return NationalIncomeCache(refresh_hours=24)


@pytest.fixture
def store(db: Session) -> EstimateRepository:
    return EstimateRepository(db, ttl_hours=24)


@pytest.fixture
def build_pipeline(tables: FallbackTables, income_cache: NationalIncomeCache, store: EstimateRepository):
    """Assemble a pipeline from (fake) clients; anything omitted is unconfigured"""

    def _build(fred=None, census=None, bls=None, reasoning=None, reasoning_timeout: float = 5.0) -> NetWorthPipeline:
        fred = fred or FredClient(api_key="")
        census = census or CensusClient(api_key="")
        bls = bls or BlsClient(api_key="")
        reasoning = reasoning or ReasoningClient(api_key="")
        return NetWorthPipeline(
            baseline_provider=NationalBaselineProvider(fred, tables),
            geo_provider=GeographicAffluenceProvider(fred, census, bls, tables, income_cache),
            refinement_engine=RefinementEngine(reasoning, timeout_seconds=reasoning_timeout),
            store=store,
        )

    return _build


@pytest.fixture
def client(db: Session) -> TestClient:
    """Create FastAPI test client with test database and no external sources configured"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[dependencies.get_fred_client] = lambda: FredClient(api_key="")
    app.dependency_overrides[dependencies.get_census_client] = lambda: CensusClient(api_key="")
    app.dependency_overrides[dependencies.get_bls_client] = lambda: BlsClient(api_key="")
    app.dependency_overrides[dependencies.get_reasoning_client] = lambda: ReasoningClient(api_key="")
    app.dependency_overrides[dependencies.get_national_income_cache] = lambda: NationalIncomeCache()
    return TestClient(app)


@pytest.fixture
def ca_homeowner() -> SubjectProfile:
    """Age 40, San Francisco ZIP, street address on file"""
    return SubjectProfile(age=40, state="CA", zip_code="94105", has_street_address=True)


@pytest.fixture
def wy_retiree() -> SubjectProfile:
    """Age 70 in a state with no tier entry, no ZIP, no address"""
    return SubjectProfile(age=70, state="WY")
