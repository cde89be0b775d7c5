"""BLS public data API client for state unemployment rates (LAUS)"""

import math
from typing import Dict

import httpx

from networth_gateway.config import settings
from networth_gateway.domain.exceptions import BlsAPIError
from networth_gateway.domain.models import Observation
from networth_gateway.utils.time_utils import utc_now

STATE_FIPS: Dict[str, str] = {
    "AL": "01", "AK": "02", "AZ": "04", "AR": "05", "CA": "06", "CO": "08", "CT": "09",
    "DE": "10", "DC": "11", "FL": "12", "GA": "13", "HI": "15", "ID": "16", "IL": "17",
    "IN": "18", "IA": "19", "KS": "20", "KY": "21", "LA": "22", "ME": "23", "MD": "24",
    "MA": "25", "MI": "26", "MN": "27", "MS": "28", "MO": "29", "MT": "30", "NE": "31",
    "NV": "32", "NH": "33", "NJ": "34", "NM": "35", "NY": "36", "NC": "37", "ND": "38",
    "OH": "39", "OK": "40", "OR": "41", "PA": "42", "RI": "44", "SC": "45", "SD": "46",
    "TN": "47", "TX": "48", "UT": "49", "VT": "50", "VA": "51", "WA": "53", "WV": "54",
    "WI": "55", "WY": "56", "PR": "72",
}


def unemployment_series(state: str) -> str:
    """Seasonally adjusted state unemployment rate, e.g. LASST060000000000003 for CA"""
    fips = STATE_FIPS.get(state.upper())
    if fips is None:
        raise BlsAPIError(f"Unknown state code for LAUS lookup: {state}")
    return f"LASST{fips}0000000000003"


class BlsClient:
    """Client for the BLS v2 timeseries API"""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key if api_key is not None else settings.bls_api_key
        self.base_url = base_url or settings.bls_api_base
        self.timeout = timeout or settings.http_timeout_seconds
        self.transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def get_state_unemployment_rate(self, state: str) -> Observation:
        """
        Fetch the latest monthly unemployment rate (percent) for a state.

        Raises:
            BlsAPIError: On missing key, unknown state, timeout, HTTP errors,
                a failed request status, or no usable data point
        """
        if not self.configured:
            raise BlsAPIError("BLS API key not configured")

        series_id = unemployment_series(state)
        this_year = utc_now().year

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = await client.post(
                    f"{self.base_url}/timeseries/data/",
                    json={
                        "seriesid": [series_id],
                        "startyear": str(this_year - 1),
                        "endyear": str(this_year),
                        "registrationkey": self.api_key,
                    },
                )
                response.raise_for_status()
                data = response.json()

                if data.get("status") != "REQUEST_SUCCEEDED":
                    raise BlsAPIError(f"BLS request failed: {', '.join(data.get('message', [])) or 'unknown'}")

                # Newest first; M13 is the annual average
                for point in data["Results"]["series"][0]["data"]:
                    period = point["period"]
                    if period.startswith("M") and period != "M13" and point["value"] not in ("-", ""):
                        rate = float(point["value"])
                        if not math.isfinite(rate):
                            continue
                        return Observation(
                            series_id=series_id,
                            value=rate,
                            date=f"{point['year']}-{period[1:]}",
                        )

            except httpx.TimeoutException as e:
                raise BlsAPIError(f"BLS timeout after {self.timeout}s for {series_id}") from e
            except httpx.HTTPStatusError as e:
                raise BlsAPIError(f"BLS error {e.response.status_code} for {series_id}") from e
            except httpx.RequestError as e:
                raise BlsAPIError(f"BLS unreachable for {series_id}: {e}") from e
            except (KeyError, IndexError, ValueError, TypeError) as e:
                raise BlsAPIError(f"Invalid unemployment data from BLS for {series_id}: {e}") from e

        raise BlsAPIError(f"No unemployment observation available for {series_id}")
