"""Layer-2 refinement engine - optional AI pass with a deterministic fallback"""

import asyncio
import logging
from typing import Optional

from networth_gateway.domain.exceptions import MalformedRefinementError, ReasoningServiceError
from networth_gateway.domain.models import LAYER1, LAYER1_LAYER2, Estimate, RefinedEstimate, SubjectProfile
from networth_gateway.domain.refinement import (
    DISCLAIMER,
    SYSTEM_PROMPT,
    build_fallback_reasoning,
    build_prompt,
    format_band_label,
    parse_refinement_response,
)
from networth_gateway.infrastructure.clients.reasoning import ReasoningClient
from networth_gateway.infrastructure.observability.metrics import refinement_outcome_counter, source_fallback_counter

logger = logging.getLogger(__name__)


class RefinementEngine:
    """
    Refines a Layer-1 estimate through the reasoning service when one is configured.

    Failure is never fatal: an unconfigured, unreachable, slow or malformed
    service yields the Layer-1 range with a rationale built from its signals.
    """

    def __init__(self, reasoning_client: Optional[ReasoningClient] = None, timeout_seconds: float = 15.0):
        self.reasoning_client = reasoning_client
        self.timeout_seconds = timeout_seconds

    async def refine(self, layer1: Estimate, profile: SubjectProfile) -> RefinedEstimate:
        if self.reasoning_client is None or not self.reasoning_client.configured:
            refinement_outcome_counter.labels(outcome="unconfigured").inc()
            return self.fallback(layer1, profile)

        try:
            text = await asyncio.wait_for(
                self.reasoning_client.complete(SYSTEM_PROMPT, build_prompt(layer1, profile)),
                timeout=self.timeout_seconds,
            )
            final_low, final_high, reasoning, confidence = parse_refinement_response(text, layer1.confidence)

        except (ReasoningServiceError, asyncio.TimeoutError) as e:
            refinement_outcome_counter.labels(outcome="unavailable").inc()
            source_fallback_counter.labels(source="reasoning").inc()
            logger.warning("Reasoning service unavailable, using deterministic rationale", extra={"reason": repr(e)})
            return self.fallback(layer1, profile)

        except MalformedRefinementError as e:
            refinement_outcome_counter.labels(outcome="malformed").inc()
            source_fallback_counter.labels(source="reasoning").inc()
            logger.warning("Discarded malformed refinement response", extra={"reason": str(e)})
            return self.fallback(layer1, profile)

        refinement_outcome_counter.labels(outcome="refined").inc()
        return RefinedEstimate(
            final_low=final_low,
            final_high=final_high,
            band_label=format_band_label(final_low, final_high),
            reasoning=reasoning,
            confidence=confidence,
            disclaimer=DISCLAIMER,
            layer=LAYER1_LAYER2,
        )

    def fallback(self, layer1: Estimate, profile: SubjectProfile) -> RefinedEstimate:
        """Layer-1 range unchanged, rationale synthesized from the signal trace"""
        return RefinedEstimate(
            final_low=layer1.low,
            final_high=layer1.high,
            band_label=format_band_label(layer1.low, layer1.high),
            reasoning=build_fallback_reasoning(layer1, profile),
            confidence=layer1.confidence,
            disclaimer=DISCLAIMER,
            layer=LAYER1,
        )
