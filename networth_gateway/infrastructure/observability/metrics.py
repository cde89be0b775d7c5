"""Prometheus metrics for estimate volume, confidence and external source health"""

from prometheus_client import Counter, Histogram

# Estimate metrics
estimate_counter = Counter(
    "networth_estimate_total",
    "Total net worth estimates served",
    ["layer", "cached"],  # layer1 | layer1+layer2, true | false
)

confidence_histogram = Histogram(
    "networth_confidence",
    "Confidence of served estimates",
    buckets=[0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8],
)

# External source metrics
source_fallback_counter = Counter(
    "external_source_fallback_total",
    "External lookups degraded to static fallback data",
    ["source"],  # fred_baseline | fred_income | census_acs | bls_laus | reasoning
)

source_latency_histogram = Histogram(
    "external_source_latency_seconds",
    "External data source response time",
    ["source"],
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

# Layer-2 metrics
refinement_outcome_counter = Counter(
    "refinement_outcome_total",
    "Layer-2 refinement outcomes",
    ["outcome"],  # refined | unconfigured | unavailable | malformed
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_estimate(layer: str, cached: bool, confidence: float) -> None:
    """Record a served estimate for volume and confidence distribution"""
    estimate_counter.labels(layer=layer, cached=str(cached).lower()).inc()
    confidence_histogram.observe(confidence)
