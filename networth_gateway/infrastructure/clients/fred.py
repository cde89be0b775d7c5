"""FRED (Federal Reserve Economic Data) HTTP client for time-series observations"""

import math

import httpx

from networth_gateway.config import settings
from networth_gateway.domain.exceptions import FredAPIError
from networth_gateway.domain.models import Observation

NATIONAL_MEDIAN_INCOME_SERIES = "MEHOINUSA646N"
CPI_SERIES = "CPIAUCSL"  # CPI-U, all items, U.S. city average


def state_median_income_series(state: str) -> str:
    """Annual median household income series for a state, e.g. MEHOINUSCAA646N"""
    return f"MEHOINUS{state.upper()}A646N"


class FredClient:
    """Client for the St. Louis Fed series/observations API"""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key if api_key is not None else settings.fred_api_key
        self.base_url = base_url or settings.fred_api_base
        self.timeout = timeout or settings.http_timeout_seconds
        self.transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def get_latest_observation(self, series_id: str) -> Observation:
        """
        Fetch the most recent non-missing observation of a series.

        Raises:
            FredAPIError: On missing key, timeout, HTTP errors, malformed payload,
                or when the series has no usable observation
        """
        if not self.configured:
            raise FredAPIError("FRED API key not configured")

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = await client.get(
                    f"{self.base_url}/series/observations",
                    params={
                        "series_id": series_id,
                        "api_key": self.api_key,
                        "file_type": "json",
                        "sort_order": "desc",
                        "limit": 10,
                    },
                )
                response.raise_for_status()
                data = response.json()

                # FRED marks missing values with "."
                for obs in data["observations"]:
                    if obs["value"] in (".", ""):
                        continue
                    value = float(obs["value"])
                    if math.isfinite(value):
                        return Observation(series_id=series_id, value=value, date=obs["date"])

            except httpx.TimeoutException as e:
                raise FredAPIError(f"FRED timeout after {self.timeout}s for {series_id}") from e
            except httpx.HTTPStatusError as e:
                raise FredAPIError(f"FRED error {e.response.status_code} for {series_id}") from e
            except httpx.RequestError as e:
                raise FredAPIError(f"FRED unreachable for {series_id}: {e}") from e
            except (KeyError, ValueError, TypeError) as e:
                raise FredAPIError(f"Invalid observation data from FRED for {series_id}: {e}") from e

        raise FredAPIError(f"No observation available for {series_id}")
