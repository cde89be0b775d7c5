"""Layer-2 refinement helpers - prompt, response validation and deterministic fallback"""

import json
import math
from typing import Any, Dict, Tuple

from networth_gateway.domain.exceptions import MalformedRefinementError
from networth_gateway.domain.models import Estimate, SubjectProfile

DISCLAIMER = (
    "This is an estimate based on demographic and regional data, not your actual financial accounts. "
    "Individual circumstances vary significantly. Not financial advice."
)

MIN_REFINED_CONFIDENCE = 0.1
MAX_REFINED_CONFIDENCE = 0.8

SYSTEM_PROMPT = (
    "You refine demographic net worth estimates. You never see account data. "
    "Return ONLY a JSON object with keys final_low, final_high, reasoning and confidence. "
    "final_low and final_high are whole US dollars describing a range; never return a single point value. "
    "reasoning is at most three sentences. confidence is a number between 0.1 and 0.8."
)

_DECODER = json.JSONDecoder()


def format_money(amount: float) -> str:
    """$39k style below a million, $1.2M style above"""
    if amount >= 1_000_000:
        return f"${round(amount / 100_000) / 10:g}M"
    return f"${round(amount / 1000)}k"


def format_band_label(low: float, high: float) -> str:
    return f"{format_money(low)} - {format_money(high)}"


def build_prompt(layer1: Estimate, profile: SubjectProfile) -> str:
    """User prompt carrying the Layer-1 range, confidence and full signal trace"""
    payload = {
        "layer1": {
            "low": layer1.low,
            "mid": layer1.mid,
            "high": layer1.high,
            "confidence": layer1.confidence,
        },
        "signals": layer1.signals,
        "profile": {
            "age": profile.age,
            "state": profile.state,
            "zip": profile.zip_code,
            "city": profile.city,
            "has_street_address": profile.has_street_address,
        },
    }
    return (
        "Refine this Layer-1 net worth estimate. Tighten the range only where the signals justify it.\n"
        f"{json.dumps(payload, default=str, sort_keys=True)}"
    )


def _first_json_object(text: str) -> Dict[str, Any]:
    """Decode the first brace that opens a complete JSON object; trailing text is ignored"""
    start = text.find("{")
    if start < 0:
        raise MalformedRefinementError("Response contains no JSON object")

    first_error = None
    while start >= 0:
        try:
            data, _ = _DECODER.raw_decode(text, start)
            return data
        except ValueError as e:
            first_error = first_error or e
        start = text.find("{", start + 1)

    raise MalformedRefinementError(f"Response JSON is invalid: {first_error}")


def _as_number(value: Any, name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedRefinementError(f"{name} is not numeric: {value!r}")
    if not math.isfinite(value):
        raise MalformedRefinementError(f"{name} is not finite: {value!r}")
    return float(value)


def parse_refinement_response(text: str, fallback_confidence: float) -> Tuple[int, int, str, float]:
    """
    Validate a reasoning-service reply before trusting it.

    Returns (final_low, final_high, reasoning, confidence). Bounds are rounded
    and reordered; confidence defaults to fallback_confidence when absent and
    is always clamped into [0.1, 0.8].

    Raises:
        MalformedRefinementError: No JSON object, missing bounds, non-numeric
            bounds or an empty rationale
    """
    data = _first_json_object(text or "")

    if "final_low" not in data or "final_high" not in data:
        raise MalformedRefinementError("Response is missing final_low/final_high")

    low = round(_as_number(data["final_low"], "final_low"))
    high = round(_as_number(data["final_high"], "final_high"))
    if low > high:
        low, high = high, low

    reasoning = data.get("reasoning")
    if not isinstance(reasoning, str) or not reasoning.strip():
        raise MalformedRefinementError("Response is missing reasoning")

    raw_confidence = data.get("confidence")
    confidence = fallback_confidence if raw_confidence is None else _as_number(raw_confidence, "confidence")
    confidence = min(max(confidence, MIN_REFINED_CONFIDENCE), MAX_REFINED_CONFIDENCE)

    return low, high, reasoning.strip(), round(confidence, 2)


def build_fallback_reasoning(layer1: Estimate, profile: SubjectProfile) -> str:
    """Deterministic rationale synthesized from the Layer-1 signal trace"""
    signals = layer1.signals
    baseline: Dict[str, Any] = signals.get("baseline", {})
    geo_multiplier: float = signals.get("geo_multiplier", 1.0)

    parts = [
        f"Based on your age ({profile.age}) and location ({profile.state}), you fall into the "
        f"{signals.get('age_band')} age group, where median net worth is around {format_money(baseline.get('median', 0))}."
    ]

    if geo_multiplier > 1.0:
        parts.append(
            f"Your area's income levels are above the national baseline, which moved the estimate up "
            f"(geographic multiplier {geo_multiplier:.2f})."
        )
    elif geo_multiplier < 1.0:
        parts.append(
            f"Your area's income levels are below the national baseline, which moved the estimate down "
            f"(geographic multiplier {geo_multiplier:.2f})."
        )
    else:
        parts.append("Your location did not move the estimate away from the national baseline.")

    if signals.get("has_address"):
        parts.append(
            "Having a street address suggests homeownership, and homeowners in your age group typically "
            "hold more net worth through real estate equity."
        )

    fallback_inputs = _fallback_inputs(signals)
    if fallback_inputs:
        parts.append(f"Static reference data was used for: {', '.join(fallback_inputs)}.")

    parts.append(
        "This estimate combines Federal Reserve Survey of Consumer Finances data with regional economic indicators."
    )
    return " ".join(parts)


def _fallback_inputs(signals: Dict[str, Any]) -> list:
    inputs = []
    if signals.get("baseline", {}).get("source") == "fallback":
        inputs.append("national wealth percentiles")
    for signal, provenance in sorted(signals.get("geo_sources", {}).items()):
        if provenance == "fallback":
            inputs.append(signal.replace("_", " "))
    return inputs


def refined_mid(layer1_mid: int, final_low: int, final_high: int) -> int:
    """Layer-1 mid clamped into the final range"""
    return min(max(layer1_mid, final_low), final_high)
