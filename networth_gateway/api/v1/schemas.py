"""Pydantic schemas for API request/response validation"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class EstimateRequestBody(BaseModel):
    """Request body for POST /v1/networth/estimate"""

    subject_id: str = Field(..., min_length=1, description="Subject identifier")
    # age and state are required by the estimator; absence is reported as missing input, not a schema error
    age: Optional[int] = Field(None, ge=0, le=130, description="Age in years")
    state: Optional[str] = Field(None, max_length=2, description="Two-letter state code")
    zip: Optional[str] = Field(None, max_length=10, description="ZIP or ZIP+4")
    has_street_address: bool = Field(False, description="Street address on file (home-ownership proxy)")
    city: Optional[str] = Field(None, max_length=100)
    force_refresh: bool = Field(False, description="Bypass the 24h stored estimate")


class EstimateResponse(BaseModel):
    """Response for POST /v1/networth/estimate and GET /v1/networth/{subject_id}"""

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


class MissingInputResponse(BaseModel):
    """Body of a 422 for missing required profile fields"""

    error: str = "Missing required input"
    missing_fields: List[str]
