"""National baseline provider - net worth percentiles per age band"""

import asyncio
import logging
from typing import Dict

from networth_gateway.domain.exceptions import DataSourceError
from networth_gateway.domain.fallback_tables import SERIES_KEYS, FallbackTables
from networth_gateway.domain.models import AgeBand, NationalBaseline, Observation, Provenance, SourceResult
from networth_gateway.infrastructure.clients.fred import FredClient
from networth_gateway.infrastructure.observability.metrics import source_fallback_counter, source_latency_histogram

logger = logging.getLogger(__name__)

SOURCE_NAME = "fred_baseline"


class NationalBaselineProvider:
    """
    Supplies p25/median/p75/p90 net worth per age band.

    Primary path: one FRED series per percentile, fetched concurrently.
    Any failure for a band degrades that band alone to the static SCF table.
    """

    def __init__(self, fred_client: FredClient, tables: FallbackTables):
        self.fred_client = fred_client
        self.tables = tables

    async def get_baselines(self) -> Dict[AgeBand, NationalBaseline]:
        """Baselines for every band, all bands queried in parallel"""
        bands = list(AgeBand)
        results = await asyncio.gather(*(self.get_baseline(band) for band in bands))
        return dict(zip(bands, results))

    async def get_baseline(self, band: AgeBand) -> NationalBaseline:
        """Baseline for one band; never raises for source failures"""
        series = self.tables.baseline_series.get(band, {})
        if not self.fred_client.configured or any(key not in series for key in SERIES_KEYS):
            return self.tables.baseline_for(band)

        lookups = await asyncio.gather(*(self._fetch(series[key]) for key in SERIES_KEYS))
        observations = dict(zip(SERIES_KEYS, lookups))

        failed = [key for key, result in observations.items() if not result.is_live]
        if failed:
            return self._fallback(band, f"missing percentiles: {', '.join(failed)}")

        values = {key: result.value.value for key, result in observations.items()}
        if not values["p25"] <= values["median"] <= values["p75"] <= values["p90"]:
            return self._fallback(band, "percentiles out of order")

        return NationalBaseline(
            age_band=band,
            p25=values["p25"],
            median=values["median"],
            p75=values["p75"],
            p90=values["p90"],
            year=int(observations["median"].value.date[:4]),
            source=Provenance.PRIMARY,
        )

    async def _fetch(self, series_id: str) -> SourceResult[Observation]:
        try:
            with source_latency_histogram.labels(source=SOURCE_NAME).time():
                observation = await self.fred_client.get_latest_observation(series_id)
        except DataSourceError as e:
            return SourceResult.fallback(None, source=SOURCE_NAME, detail=str(e))
        return SourceResult.live(observation, source=SOURCE_NAME)

    def _fallback(self, band: AgeBand, reason: str) -> NationalBaseline:
        source_fallback_counter.labels(source=SOURCE_NAME).inc()
        logger.warning(
            "National baseline degraded to static table",
            extra={"age_band": band.value, "reason": reason, "table_version": self.tables.version},
        )
        return self.tables.baseline_for(band)
