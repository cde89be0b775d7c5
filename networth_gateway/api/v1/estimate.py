"""POST /v1/networth/estimate and GET /v1/networth/{subject_id}"""

import time
import logging
from fastapi import APIRouter, Depends, HTTPException, Request

from networth_gateway.api.v1.schemas import EstimateRequestBody, EstimateResponse, MissingInputResponse
from networth_gateway.api.dependencies import get_estimate_store, get_pipeline, get_request_id
from networth_gateway.domain.exceptions import FallbackTableError, MissingRequiredInputError
from networth_gateway.domain.models import EstimateRequest, NetWorthReport, SubjectProfile
from networth_gateway.infrastructure.database.repositories import EstimateRepository
from networth_gateway.infrastructure.observability.logging import log_estimate
from networth_gateway.infrastructure.observability.metrics import record_estimate
from networth_gateway.services.pipeline import NetWorthPipeline, to_report

router = APIRouter()


def to_response(report: NetWorthReport) -> EstimateResponse:
    return EstimateResponse(
        subject_id=report.subject_id,
        low=report.low,
        mid=report.mid,
        high=report.high,
        confidence=report.confidence,
        band_label=report.band_label,
        reasoning=report.reasoning,
        disclaimer=report.disclaimer,
        cached=report.cached,
        computed_at=report.computed_at,
        layer=report.layer,
        signals=report.signals,
    )


@router.post(
    "/networth/estimate",
    response_model=EstimateResponse,
    responses={422: {"description": "Missing required input"}},
)
async def create_estimate(
    request_body: EstimateRequestBody,
    request: Request,
    pipeline: NetWorthPipeline = Depends(get_pipeline),
):
    """
    Estimate a subject's net worth range from demographic signals.

    Flow:
    1. Serve the stored estimate if computed within 24h (unless force_refresh)
    2. Fetch national baseline and geographic multiplier concurrently
    3. Layer-1 statistical range, then optional Layer-2 refinement
    4. Persist and return
    """
    start_time = time.time()
    request_id = get_request_id(request)

    profile = SubjectProfile(
        age=request_body.age,
        state=request_body.state,
        zip_code=request_body.zip,
        has_street_address=request_body.has_street_address,
        city=request_body.city,
    )

    try:
        report = await pipeline.run(
            EstimateRequest(
                subject_id=request_body.subject_id,
                profile=profile,
                force_refresh=request_body.force_refresh,
            )
        )

    except MissingRequiredInputError as e:
        logging.warning(f"Missing input: {e}", extra={"request_id": request_id})
        raise HTTPException(
            status_code=422,
            detail=MissingInputResponse(missing_fields=e.missing_fields).model_dump(),
        )

    except FallbackTableError as e:
        logging.error(f"Fallback tables invalid: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Estimator misconfigured")

    except Exception as e:
        logging.exception(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    # Record metrics and logs
    duration_ms = (time.time() - start_time) * 1000
    record_estimate(report.layer, report.cached, report.confidence)
    log_estimate(request_id, report.subject_id, report.layer, report.cached, report.confidence, duration_ms)

    return to_response(report)


@router.get("/networth/{subject_id}", response_model=EstimateResponse)
def get_latest_estimate(subject_id: str, store: EstimateRepository = Depends(get_estimate_store)):
    """
    Retrieve the subject's stored estimate.

    Returns 404 when none was computed in the last 24h.
    """
    entry = store.get(subject_id)
    if entry is None:
        raise HTTPException(status_code=404, detail="No current estimate")

    return to_response(to_report(entry, cached=True))
