"""Layer-1 estimation engine - deterministic net worth range from demographic signals"""

from typing import Tuple

from networth_gateway.domain.age_bands import map_age_to_band
from networth_gateway.domain.confidence import base_confidence, confidence_rules, fold_confidence
from networth_gateway.domain.models import Estimate, GeoAffluenceFactor, NationalBaseline, SubjectProfile, LAYER1

ADDRESS_MULTIPLIER = 1.3  # Street address as a home-ownership proxy
UPPER_TAIL_WIDENING = 1.1  # Extra room on the high bound for tail uncertainty


def address_multiplier(profile: SubjectProfile) -> float:
    """Homeowners typically carry more net worth; a street address stands in for ownership"""
    return ADDRESS_MULTIPLIER if profile.has_street_address else 1.0


def calculate_range(
    baseline: NationalBaseline,
    geo_multiplier: float,
    addr_multiplier: float,
) -> Tuple[int, int, int]:
    """
    Scale baseline percentiles into a (low, mid, high) range.

    - low:  p25 scaled
    - mid:  average of scaled median and scaled p75
    - high: p90 scaled, widened by 10%

    The result always satisfies low <= mid <= high: bounds are reordered and
    mid is clamped into them rather than raising.
    """
    scale = geo_multiplier * addr_multiplier

    low = round(baseline.p25 * scale)
    high = round(baseline.p90 * scale * UPPER_TAIL_WIDENING)
    mid = round((baseline.median * scale + baseline.p75 * scale) / 2)

    if low > high:
        low, high = high, low
    mid = min(max(mid, low), high)

    return low, mid, high


def estimate(profile: SubjectProfile, baseline: NationalBaseline, geo: GeoAffluenceFactor) -> Estimate:
    """
    Main entry point: combine baseline, geography and address proxy into a Layer-1 estimate.

    Every input and derived multiplier is recorded in signals for
    explainability and for the Layer-2 prompt.
    """
    addr_multiplier = address_multiplier(profile)
    low, mid, high = calculate_range(baseline, geo.multiplier, addr_multiplier)

    base = base_confidence(baseline)
    confidence = fold_confidence(base, confidence_rules(profile, geo))

    age_band = map_age_to_band(profile.age) if profile.age is not None else baseline.age_band

    signals = {
        "age": profile.age,
        "age_band": age_band.value,
        "state": profile.state,
        "zip": profile.zip_code,
        "city": profile.city,
        "has_address": profile.has_street_address,
        "baseline": {
            "p25": baseline.p25,
            "median": baseline.median,
            "p75": baseline.p75,
            "p90": baseline.p90,
            "year": baseline.year,
            "source": baseline.source.value,
        },
        "geo_multiplier": geo.multiplier,
        "geo_factors": dict(geo.factors),
        "geo_sources": dict(geo.sources),
        "address_multiplier": addr_multiplier,
        "base_confidence": base,
    }

    return Estimate(
        low=low,
        mid=mid,
        high=high,
        confidence=confidence,
        signals=signals,
        layer=LAYER1,
    )
