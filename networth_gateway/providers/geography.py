"""Geographic affluence provider - state/ZIP wealth multiplier from income and labor data"""

import asyncio
import logging
import math
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from networth_gateway.domain.exceptions import DataSourceError, FredAPIError
from networth_gateway.domain.fallback_tables import FallbackTables
from networth_gateway.domain.models import GeoAffluenceFactor, Observation, SourceResult, ZipIncomeProfile
from networth_gateway.infrastructure.clients.bls import BlsClient
from networth_gateway.infrastructure.clients.census import CensusClient
from networth_gateway.infrastructure.clients.fred import (
    CPI_SERIES,
    NATIONAL_MEDIAN_INCOME_SERIES,
    FredClient,
    state_median_income_series,
)
from networth_gateway.infrastructure.observability.metrics import source_fallback_counter, source_latency_histogram
from networth_gateway.utils.time_utils import expires_after, utc_now

logger = logging.getLogger(__name__)

T = TypeVar("T")

MIN_MULTIPLIER = 0.5
MAX_MULTIPLIER = 2.0
UNEMPLOYMENT_NEUTRAL_RATE = 4.0
UNEMPLOYMENT_FLOOR = 0.8


class NationalIncomeCache:
    """
    National median household income, refreshed from FRED at most once per period.

    Shared across requests. A failed or non-positive refresh serves the static
    reference-year figure and leaves the cache empty so the next request retries.
    """

    def __init__(self, refresh_hours: int = 24):
        self.refresh_hours = refresh_hours
        self._value: Optional[float] = None
        self._expires_at: Optional[datetime] = None
        self._lock = asyncio.Lock()

    async def get(self, fred_client: FredClient, tables: FallbackTables) -> SourceResult[float]:
        static = SourceResult.fallback(tables.national_median_income, source="static")
        if not fred_client.configured:
            return static

        async with self._lock:
            now = utc_now()
            if self._value is not None and self._expires_at is not None and now < self._expires_at:
                return SourceResult.live(self._value, source="fred")

            try:
                with source_latency_histogram.labels(source="fred_income").time():
                    observation = await fred_client.get_latest_observation(NATIONAL_MEDIAN_INCOME_SERIES)
                if observation.value <= 0:
                    raise FredAPIError(f"Non-positive national median income: {observation.value}")
            except DataSourceError as e:
                source_fallback_counter.labels(source="fred_income").inc()
                logger.warning("National median income unavailable, using reference year", extra={"reason": str(e)})
                return SourceResult.fallback(tables.national_median_income, source="static", detail=str(e))

            self._value = observation.value
            self._expires_at = expires_after(now, self.refresh_hours)
            return SourceResult.live(observation.value, source="fred")


def affluence_index(zip_income: ZipIncomeProfile, national_income: float) -> float:
    """
    0-1 score of how affluent a ZIP is relative to the nation.

    Half from the median income ratio, the rest from the share of households
    above $150k and $200k.
    """
    ratio = zip_income.median_household_income / national_income
    if zip_income.total_households > 0:
        high_rate = zip_income.households_150k_plus / zip_income.total_households
        very_high_rate = zip_income.households_200k_plus / zip_income.total_households
    else:
        high_rate = very_high_rate = 0.0
    wealth_indicator = high_rate * 0.4 + very_high_rate * 0.6
    return round(min(1.0, ratio * 0.5 + wealth_indicator * 0.3), 3)


def unemployment_adjustment(rate: float) -> float:
    """No penalty at or below 4%, linear penalty above it, floored at a 20% reduction"""
    return min(1.0, max(UNEMPLOYMENT_FLOOR, 1 - (rate - UNEMPLOYMENT_NEUTRAL_RATE) / 20))


def clamp_multiplier(value: float) -> float:
    return max(MIN_MULTIPLIER, min(MAX_MULTIPLIER, value))


def income_ratio_adjustment(local_income: float, national_income: float) -> Optional[float]:
    """sqrt(local / national), or None unless both incomes are positive"""
    if not (local_income > 0 and national_income > 0):
        return None
    return math.sqrt(local_income / national_income)


def combine_geo_signals(
    state: str,
    zip_code: Optional[str],
    tables: FallbackTables,
    national_income: SourceResult[float],
    state_income: SourceResult[Observation],
    zip_income: Optional[SourceResult[ZipIncomeProfile]],
    unemployment: SourceResult[Observation],
    cpi: Optional[SourceResult[Observation]] = None,
) -> GeoAffluenceFactor:
    """
    Combine geographic signals into a clamped multiplier.

    1. Static prior: state tier, else ZIP leading-digit region, else default.
    2. A live income ratio replaces the prior: ZIP income first, then state
       income, as sqrt(local / national). Non-positive incomes never count
       as a ratio.
    3. A live unemployment rate multiplies onto whatever step 2 produced.
    4. Clamp to [0.5, 2.0].

    CPI, when live, is recorded in factors only.
    """
    tier_name, tier_multiplier = tables.state_tier(state)
    regional = tables.zip_regional_multiplier(zip_code) if zip_code else None

    if tier_name is not None:
        prior, prior_source = tier_multiplier, "state_tier"
    elif regional is not None:
        prior, prior_source = regional, "zip_region"
    else:
        prior, prior_source = tier_multiplier, "default"

    national = national_income.value
    factors: Dict[str, Any] = {
        "base_multiplier": prior,
        "prior_source": prior_source,
        "state_tier": tier_name,
        "national_median_income": national,
    }
    sources: Dict[str, str] = {
        "national_median_income": national_income.provenance.value,
        "state_median_income": state_income.provenance.value,
        "unemployment_rate": unemployment.provenance.value,
    }

    zip_adjustment: Optional[float] = None
    state_adjustment: Optional[float] = None

    if zip_income is not None:
        sources["zip_income"] = zip_income.provenance.value
        factors["zip_regional_multiplier"] = regional
        if zip_income.is_live:
            factors["zip_median_income"] = zip_income.value.median_household_income
            zip_adjustment = income_ratio_adjustment(zip_income.value.median_household_income, national)
            if zip_adjustment is not None:
                factors["affluence_index"] = affluence_index(zip_income.value, national)

    if state_income.is_live:
        factors["state_median_income"] = state_income.value.value
        state_adjustment = income_ratio_adjustment(state_income.value.value, national)

    adjusted = prior
    income_signal = "none"
    if zip_adjustment is not None:
        adjusted, income_signal = zip_adjustment, "zip"
    elif state_adjustment is not None:
        adjusted, income_signal = state_adjustment, "state"
    if income_signal != "none":
        factors["income_adjustment"] = round(adjusted, 4)
    factors["income_signal"] = income_signal

    if unemployment.is_live:
        adjustment = unemployment_adjustment(unemployment.value.value)
        factors["unemployment_rate"] = unemployment.value.value
        factors["unemployment_adjustment"] = round(adjustment, 4)
        adjusted *= adjustment

    if cpi is not None and cpi.is_live:
        factors["cpi"] = cpi.value.value
        factors["cpi_date"] = cpi.value.date

    return GeoAffluenceFactor(
        multiplier=round(clamp_multiplier(adjusted), 4),
        factors=factors,
        sources=sources,
        has_live_income=income_signal != "none",
        has_live_unemployment=unemployment.is_live,
    )


class GeographicAffluenceProvider:
    """Queries state income, ZIP income, unemployment and CPI concurrently, then combines them"""

    def __init__(
        self,
        fred_client: FredClient,
        census_client: CensusClient,
        bls_client: BlsClient,
        tables: FallbackTables,
        income_cache: NationalIncomeCache,
    ):
        self.fred_client = fred_client
        self.census_client = census_client
        self.bls_client = bls_client
        self.tables = tables
        self.income_cache = income_cache

    async def get_multiplier(self, state: str, zip_code: Optional[str] = None) -> GeoAffluenceFactor:
        """Geographic multiplier for a state and optional normalized ZIP; never raises for source failures"""
        state = state.upper()

        zip_lookup: Awaitable[Optional[SourceResult[ZipIncomeProfile]]]
        if zip_code:
            zip_lookup = self._lookup(
                "census_acs",
                self.census_client.configured,
                lambda: self.census_client.get_zip_income(zip_code),
            )
        else:
            zip_lookup = _none()

        national_income, state_income, zip_income, unemployment, cpi = await asyncio.gather(
            self.income_cache.get(self.fred_client, self.tables),
            self._lookup(
                "fred_income",
                self.fred_client.configured,
                lambda: self.fred_client.get_latest_observation(state_median_income_series(state)),
                accept=lambda obs: obs.value > 0,
            ),
            zip_lookup,
            self._lookup(
                "bls_laus",
                self.bls_client.configured,
                lambda: self.bls_client.get_state_unemployment_rate(state),
                accept=lambda obs: obs.value >= 0,
            ),
            self._lookup(
                "fred_cpi",
                self.fred_client.configured,
                lambda: self.fred_client.get_latest_observation(CPI_SERIES),
            ),
        )

        return combine_geo_signals(
            state=state,
            zip_code=zip_code,
            tables=self.tables,
            national_income=national_income,
            state_income=state_income,
            zip_income=zip_income,
            unemployment=unemployment,
            cpi=cpi,
        )

    async def _lookup(
        self,
        source: str,
        configured: bool,
        call: Callable[[], Awaitable[T]],
        accept: Optional[Callable[[T], bool]] = None,
    ) -> SourceResult[T]:
        """Run one source call; errors and values failing accept degrade to fallback"""
        if not configured:
            return SourceResult.fallback(None, source="static", detail=f"{source} not configured")

        try:
            with source_latency_histogram.labels(source=source).time():
                value = await call()
            if accept is not None and not accept(value):
                raise DataSourceError(f"Implausible value from {source}: {value!r}")
        except DataSourceError as e:
            source_fallback_counter.labels(source=source).inc()
            logger.warning("Geographic signal degraded to fallback", extra={"source": source, "reason": str(e)})
            return SourceResult.fallback(None, source="static", detail=str(e))

        return SourceResult.live(value, source=source)


async def _none() -> None:
    return None
