"""Static fallback tables - the correctness floor when every external source is down"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from networth_gateway.domain.exceptions import FallbackTableError
from networth_gateway.domain.models import AgeBand, NationalBaseline, Provenance

logger = logging.getLogger(__name__)

DEFAULT_TABLES_PATH = Path(__file__).resolve().parents[1] / "data" / "fallback_tables.json"

BASELINE_KEYS = ("p25", "median", "p75", "p80", "p90")
SERIES_KEYS = ("p25", "median", "p75", "p90")
ZIP_DIGITS = tuple(str(d) for d in range(10))


@dataclass(frozen=True)
class FallbackTables:
    """Versioned static data injected into providers and engines"""

    version: str
    baseline_source: str
    baseline_year: int
    baselines: Dict[AgeBand, Dict[str, float]]
    baseline_series: Dict[AgeBand, Dict[str, str]]
    national_median_income: float
    national_median_income_year: int
    default_tier_multiplier: float
    state_tiers: Dict[str, Tuple[str, float]]  # state -> (tier name, multiplier)
    zip_regional_multipliers: Dict[str, float]

    def baseline_for(self, band: AgeBand) -> NationalBaseline:
        """Static percentiles for a band, tagged as fallback"""
        row = self.baselines[band]
        return NationalBaseline(
            age_band=band,
            p25=row["p25"],
            median=row["median"],
            p75=row["p75"],
            p90=row["p90"],
            year=self.baseline_year,
            source=Provenance.FALLBACK,
        )

    def state_tier(self, state: str) -> Tuple[Optional[str], float]:
        """Return (tier name, multiplier); unknown states get the default multiplier"""
        tier = self.state_tiers.get(state.upper())
        if tier is None:
            return None, self.default_tier_multiplier
        return tier

    def zip_regional_multiplier(self, zip_code: str) -> Optional[float]:
        """Coarse regional multiplier keyed off the ZIP's leading digit"""
        if not zip_code:
            return None
        return self.zip_regional_multipliers.get(zip_code[0])


def load_fallback_tables(path: Path | str | None = None) -> FallbackTables:
    """
    Load and validate the static fallback tables.

    Raises:
        FallbackTableError: File missing or unreadable, or any band, percentile
            or ZIP digit absent, or a non-positive national income. This is a
            deployment defect, not a runtime condition, so it is never degraded
            silently.
    """
    table_path = Path(path) if path else DEFAULT_TABLES_PATH
    try:
        raw = json.loads(table_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise FallbackTableError(f"Cannot read fallback tables at {table_path}: {e}") from e

    try:
        tables = _parse_tables(raw)
    except (KeyError, TypeError, ValueError) as e:
        raise FallbackTableError(f"Malformed fallback tables at {table_path}: {e!r}") from e

    logger.info("Loaded fallback tables", extra={"version": tables.version, "path": str(table_path)})
    return tables


def _parse_tables(raw: Dict[str, Any]) -> FallbackTables:
    baseline_section = raw["national_baseline"]
    bands_raw = baseline_section["bands"]
    series_raw = raw.get("baseline_series", {})

    baselines: Dict[AgeBand, Dict[str, float]] = {}
    baseline_series: Dict[AgeBand, Dict[str, str]] = {}
    for band in AgeBand:
        if band.value not in bands_raw:
            raise FallbackTableError(f"Fallback table missing age band {band.value}")
        row = bands_raw[band.value]
        missing = [key for key in BASELINE_KEYS if key not in row]
        if missing:
            raise FallbackTableError(f"Age band {band.value} missing percentiles: {', '.join(missing)}")
        baselines[band] = {key: float(row[key]) for key in BASELINE_KEYS}

        series = series_raw.get(band.value, {})
        baseline_series[band] = {key: str(series[key]) for key in SERIES_KEYS if series.get(key)}

    zip_raw = raw["zip_regional_multipliers"]
    missing_digits = [d for d in ZIP_DIGITS if d not in zip_raw]
    if missing_digits:
        raise FallbackTableError(f"ZIP regional table missing digits: {', '.join(missing_digits)}")

    tiers_section = raw["state_tiers"]
    state_tiers: Dict[str, Tuple[str, float]] = {}
    for tier_name, tier in tiers_section["tiers"].items():
        for state in tier["states"]:
            state_tiers[state.upper()] = (tier_name, float(tier["multiplier"]))

    income = raw["national_median_income"]
    national_income = float(income["value"])
    if national_income <= 0:
        raise FallbackTableError(f"National median income must be positive, got {national_income}")

    return FallbackTables(
        version=str(raw["version"]),
        baseline_source=str(baseline_section["source"]),
        baseline_year=int(baseline_section["year"]),
        baselines=baselines,
        baseline_series=baseline_series,
        national_median_income=national_income,
        national_median_income_year=int(income["year"]),
        default_tier_multiplier=float(tiers_section.get("default_multiplier", 1.0)),
        state_tiers=state_tiers,
        zip_regional_multipliers={d: float(zip_raw[d]) for d in ZIP_DIGITS},
    )
