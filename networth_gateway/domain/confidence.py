"""Confidence scoring - folds corroborating signals into a capped score"""

from typing import Iterable, List, Tuple

from networth_gateway.domain.models import GeoAffluenceFactor, NationalBaseline, Provenance, SubjectProfile

CONFIDENCE_CAP = 0.8
BASE_CONFIDENCE_PRIMARY = 0.4
BASE_CONFIDENCE_FALLBACK = 0.3

ConfidenceRule = Tuple[bool, float]


def base_confidence(baseline: NationalBaseline) -> float:
    """Starting point: lower when percentiles come from the static table"""
    if baseline.source == Provenance.PRIMARY:
        return BASE_CONFIDENCE_PRIMARY
    return BASE_CONFIDENCE_FALLBACK


def confidence_rules(profile: SubjectProfile, geo: GeoAffluenceFactor) -> List[ConfidenceRule]:
    """
    Corroborating signals as (condition_met, weight) pairs.

    Weights:
    - age + state known: 0.2
    - ZIP known: 0.1
    - street address known: 0.2
    - city known: 0.1
    - live geographic income signal: 0.1
    - live unemployment signal: 0.05
    """
    return [
        (profile.age is not None and bool(profile.state), 0.2),
        (bool(profile.zip_code), 0.1),
        (profile.has_street_address, 0.2),
        (bool(profile.city), 0.1),
        (geo.has_live_income, 0.1),
        (geo.has_live_unemployment, 0.05),
    ]


def fold_confidence(base: float, rules: Iterable[ConfidenceRule], cap: float = CONFIDENCE_CAP) -> float:
    """
    Sum the weights of the rules whose condition holds onto the base score.

    The result is floored at 0 and capped (default 0.8): a demographic proxy
    never claims more certainty than that, however many signals stack.
    """
    score = base + sum(weight for met, weight in rules if met)
    return round(max(0.0, min(score, cap)), 2)
