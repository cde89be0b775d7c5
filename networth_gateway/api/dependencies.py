"""Dependency injection for FastAPI endpoints"""

from functools import lru_cache

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from networth_gateway.config import settings
from networth_gateway.domain.fallback_tables import FallbackTables, load_fallback_tables
from networth_gateway.infrastructure.clients.bls import BlsClient
from networth_gateway.infrastructure.clients.census import CensusClient
from networth_gateway.infrastructure.clients.fred import FredClient
from networth_gateway.infrastructure.clients.reasoning import ReasoningClient
from networth_gateway.infrastructure.database.repositories import EstimateRepository
from networth_gateway.infrastructure.database.session import get_db
from networth_gateway.providers.baseline import NationalBaselineProvider
from networth_gateway.providers.geography import GeographicAffluenceProvider, NationalIncomeCache
from networth_gateway.services.pipeline import NetWorthPipeline
from networth_gateway.services.refinement import RefinementEngine


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


@lru_cache
def get_fallback_tables() -> FallbackTables:
    """Static tables, loaded and validated once per process"""
    return load_fallback_tables(settings.fallback_tables_path)


@lru_cache
def get_national_income_cache() -> NationalIncomeCache:
    """National median income cache shared across requests"""
    return NationalIncomeCache(refresh_hours=settings.national_income_refresh_hours)


def get_fred_client() -> FredClient:
    return FredClient()


def get_census_client() -> CensusClient:
    return CensusClient()


def get_bls_client() -> BlsClient:
    return BlsClient()


def get_reasoning_client() -> ReasoningClient:
    return ReasoningClient()


def get_baseline_provider(
    fred_client: FredClient = Depends(get_fred_client),
    tables: FallbackTables = Depends(get_fallback_tables),
) -> NationalBaselineProvider:
    return NationalBaselineProvider(fred_client, tables)


def get_geo_provider(
    fred_client: FredClient = Depends(get_fred_client),
    census_client: CensusClient = Depends(get_census_client),
    bls_client: BlsClient = Depends(get_bls_client),
    tables: FallbackTables = Depends(get_fallback_tables),
    income_cache: NationalIncomeCache = Depends(get_national_income_cache),
) -> GeographicAffluenceProvider:
    return GeographicAffluenceProvider(fred_client, census_client, bls_client, tables, income_cache)


def get_refinement_engine(
    reasoning_client: ReasoningClient = Depends(get_reasoning_client),
) -> RefinementEngine:
    return RefinementEngine(reasoning_client, timeout_seconds=settings.reasoning_timeout_seconds)


def get_estimate_store(db: Session = Depends(get_db)) -> EstimateRepository:
    return EstimateRepository(db, ttl_hours=settings.estimate_ttl_hours)


def get_pipeline(
    baseline_provider: NationalBaselineProvider = Depends(get_baseline_provider),
    geo_provider: GeographicAffluenceProvider = Depends(get_geo_provider),
    refinement_engine: RefinementEngine = Depends(get_refinement_engine),
    store: EstimateRepository = Depends(get_estimate_store),
) -> NetWorthPipeline:
    """Provide a pipeline wired from explicitly constructed collaborators"""
    return NetWorthPipeline(baseline_provider, geo_provider, refinement_engine, store)
