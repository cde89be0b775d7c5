"""Estimation pipeline - baseline and geography in parallel, then Layer-1, Layer-2 and the store"""

import asyncio
import logging
from dataclasses import replace

from networth_gateway.domain.age_bands import map_age_to_band
from networth_gateway.domain.estimation import estimate
from networth_gateway.domain.exceptions import MissingRequiredInputError
from networth_gateway.domain.models import CacheEntry, EstimateRequest, NetWorthReport, SubjectProfile
from networth_gateway.domain.refinement import refined_mid
from networth_gateway.infrastructure.database.repositories import EstimateRepository
from networth_gateway.providers.baseline import NationalBaselineProvider
from networth_gateway.providers.geography import GeographicAffluenceProvider
from networth_gateway.services.refinement import RefinementEngine
from networth_gateway.utils.profile_utils import normalize_city, normalize_state, normalize_zip

logger = logging.getLogger(__name__)


def normalize_profile(profile: SubjectProfile) -> SubjectProfile:
    """Copy of the profile with cleaned state, ZIP and city; the caller's object is untouched"""
    return replace(
        profile,
        state=normalize_state(profile.state),
        zip_code=normalize_zip(profile.zip_code),
        city=normalize_city(profile.city),
    )


def validate_request(request: EstimateRequest) -> None:
    """
    Reject requests the estimator cannot answer without guessing.

    Raises:
        MissingRequiredInputError: subject_id, age or state absent
    """
    missing = []
    if not request.subject_id:
        missing.append("subject_id")
    if request.profile.age is None:
        missing.append("age")
    if not normalize_state(request.profile.state):
        missing.append("state")
    if missing:
        raise MissingRequiredInputError(missing)


def to_report(entry: CacheEntry, cached: bool) -> NetWorthReport:
    refined = entry.refined
    return NetWorthReport(
        subject_id=entry.subject_id,
        low=refined.final_low,
        mid=refined_mid(entry.estimate.mid, refined.final_low, refined.final_high),
        high=refined.final_high,
        confidence=refined.confidence,
        band_label=refined.band_label,
        reasoning=refined.reasoning,
        disclaimer=refined.disclaimer,
        cached=cached,
        computed_at=entry.computed_at,
        layer=refined.layer,
        signals=entry.estimate.signals,
    )


class NetWorthPipeline:
    """Orchestrates one estimate request; every collaborator is injected"""

    def __init__(
        self,
        baseline_provider: NationalBaselineProvider,
        geo_provider: GeographicAffluenceProvider,
        refinement_engine: RefinementEngine,
        store: EstimateRepository,
    ):
        self.baseline_provider = baseline_provider
        self.geo_provider = geo_provider
        self.refinement_engine = refinement_engine
        self.store = store

    async def run(self, request: EstimateRequest) -> NetWorthReport:
        """
        Serve an estimate for a subject.

        Flow:
        1. Validate required inputs
        2. Return the stored estimate if fresh (unless force_refresh)
        3. Fetch national baseline and geographic factor concurrently
        4. Layer-1 estimate, then Layer-2 refinement
        5. Upsert into the store
        """
        validate_request(request)

        if not request.force_refresh:
            entry = self.store.get(request.subject_id)
            if entry is not None:
                logger.info("Serving stored estimate", extra={"subject_id": request.subject_id})
                return to_report(entry, cached=True)

        profile = normalize_profile(request.profile)
        band = map_age_to_band(profile.age)

        baseline, geo = await asyncio.gather(
            self.baseline_provider.get_baseline(band),
            self.geo_provider.get_multiplier(profile.state, profile.zip_code),
        )

        layer1 = estimate(profile, baseline, geo)
        refined = await self.refinement_engine.refine(layer1, profile)

        entry = self.store.put(request.subject_id, layer1, refined)
        return to_report(entry, cached=False)
