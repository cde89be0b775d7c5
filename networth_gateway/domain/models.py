"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Generic, Optional, TypeVar

T = TypeVar("T")

LAYER1 = "layer1"
LAYER1_LAYER2 = "layer1+layer2"


class AgeBand(str, Enum):
    """Demographic buckets used to index national wealth percentiles"""

    AGE_18_34 = "18-34"
    AGE_35_44 = "35-44"
    AGE_45_54 = "45-54"
    AGE_55_64 = "55-64"
    AGE_65_74 = "65-74"
    AGE_75_PLUS = "75+"


class Provenance(str, Enum):
    """Where a signal came from: live external data or the static tables"""

    PRIMARY = "primary"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class SourceResult(Generic[T]):
    """Outcome of a single external lookup, with provenance"""

    value: Optional[T]
    provenance: Provenance
    source: str  # "fred", "census_acs", "bls_laus", "static", ...
    detail: Optional[str] = None  # Why the fallback was taken

    @classmethod
    def live(cls, value: T, source: str) -> "SourceResult[T]":
        return cls(value=value, provenance=Provenance.PRIMARY, source=source)

    @classmethod
    def fallback(cls, value: Optional[T], source: str = "static", detail: Optional[str] = None) -> "SourceResult[T]":
        return cls(value=value, provenance=Provenance.FALLBACK, source=source, detail=detail)

    @property
    def is_live(self) -> bool:
        return self.provenance == Provenance.PRIMARY and self.value is not None


@dataclass(frozen=True)
class SubjectProfile:
    """Demographic input for an estimate. Owned by the caller, never mutated."""

    age: Optional[int]
    state: Optional[str]
    zip_code: Optional[str] = None
    has_street_address: bool = False
    city: Optional[str] = None


@dataclass(frozen=True)
class Observation:
    """Latest value of an external time series"""

    series_id: str
    value: float
    date: str  # ISO date or "YYYY-MM" period


@dataclass(frozen=True)
class NationalBaseline:
    """Net worth percentiles (USD) for one age band"""

    age_band: AgeBand
    p25: float
    median: float
    p75: float
    p90: float
    year: int
    source: Provenance


@dataclass(frozen=True)
class ZipIncomeProfile:
    """ACS income figures for a ZIP code tabulation area"""

    zcta: str
    median_household_income: float
    total_households: int
    households_150k_plus: int
    households_200k_plus: int


@dataclass
class GeoAffluenceFactor:
    """Geographic wealth multiplier with the signals that produced it"""

    multiplier: float
    factors: Dict[str, Any] = field(default_factory=dict)
    sources: Dict[str, str] = field(default_factory=dict)  # signal -> provenance
    has_live_income: bool = False
    has_live_unemployment: bool = False


@dataclass
class Estimate:
    """Layer-1 net worth range"""

    low: int
    mid: int
    high: int
    confidence: float
    signals: Dict[str, Any]
    layer: str = LAYER1


@dataclass
class RefinedEstimate:
    """Layer-2 output: final range, label and rationale"""

    final_low: int
    final_high: int
    band_label: str
    reasoning: str
    confidence: float
    disclaimer: str
    layer: str = LAYER1


@dataclass
class CacheEntry:
    """Latest stored estimate for a subject"""

    subject_id: str
    estimate: Estimate
    refined: RefinedEstimate
    computed_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class EstimateRequest:
    """Inbound estimate request"""

    subject_id: str
    profile: SubjectProfile
    force_refresh: bool = False


@dataclass
class NetWorthReport:
    """Outbound estimate returned to the API layer"""

    subject_id: str
    low: int
    mid: int
    high: int
    confidence: float
    band_label: str
    reasoning: str
    disclaimer: str
    cached: bool
    computed_at: datetime
    layer: str
    signals: Dict[str, Any]
