"""Census ACS HTTP client for ZIP-level (ZCTA) income data"""

import math
from typing import List

import httpx

from networth_gateway.config import settings
from networth_gateway.domain.exceptions import CensusAPIError
from networth_gateway.domain.models import ZipIncomeProfile

MEDIAN_INCOME_VAR = "B19013_001E"
TOTAL_HOUSEHOLDS_VAR = "B19001_001E"
# B19001 brackets: 016 = $150,000-$199,999, 017 = $200,000 or more
HOUSEHOLDS_150K_VARS = ["B19001_016E", "B19001_017E"]
HOUSEHOLDS_200K_VARS = ["B19001_017E"]

REQUEST_VARS = [MEDIAN_INCOME_VAR, TOTAL_HOUSEHOLDS_VAR] + HOUSEHOLDS_150K_VARS

# ACS annotation sentinels (suppressed, not available, top- or bottom-coded, too few samples)
MISSING_SENTINELS = {
    "-222222222",
    "-333333333",
    "-555555555",
    "-666666666",
    "-888888888",
    "-999999999",
    "null",
    ".",
    "",
}


class CensusClient:
    """Client for the Census ACS 5-year detailed tables API"""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key if api_key is not None else settings.census_api_key
        self.base_url = base_url or settings.census_api_base
        self.timeout = timeout or settings.http_timeout_seconds
        self.transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def get_zip_income(self, zcta: str) -> ZipIncomeProfile:
        """
        Fetch median household income and high-income household counts for a ZCTA.

        Raises:
            CensusAPIError: On missing key, timeout, HTTP errors, malformed
                payload, or a suppressed median income estimate
        """
        if not self.configured:
            raise CensusAPIError("Census API key not configured")

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = await client.get(
                    self.base_url,
                    params={
                        "get": ",".join(["NAME"] + REQUEST_VARS),
                        "for": f"zip code tabulation area:{zcta}",
                        "key": self.api_key,
                    },
                )
                response.raise_for_status()
                rows: List[List[str]] = response.json()

                # First row is the header, second the ZCTA's values
                header, values = rows[0], rows[1]
                record = dict(zip(header, values))

                median = record[MEDIAN_INCOME_VAR]
                if median is None or str(median) in MISSING_SENTINELS:
                    raise CensusAPIError(f"Median income suppressed for ZCTA {zcta}")

                median_income = float(median)
                if not math.isfinite(median_income) or median_income <= 0:
                    raise CensusAPIError(f"Unusable median income {median!r} for ZCTA {zcta}")

                return ZipIncomeProfile(
                    zcta=zcta,
                    median_household_income=median_income,
                    total_households=_count(record, [TOTAL_HOUSEHOLDS_VAR]),
                    households_150k_plus=_count(record, HOUSEHOLDS_150K_VARS),
                    households_200k_plus=_count(record, HOUSEHOLDS_200K_VARS),
                )

            except httpx.TimeoutException as e:
                raise CensusAPIError(f"Census timeout after {self.timeout}s for ZCTA {zcta}") from e
            except httpx.HTTPStatusError as e:
                raise CensusAPIError(f"Census error {e.response.status_code} for ZCTA {zcta}") from e
            except httpx.RequestError as e:
                raise CensusAPIError(f"Census unreachable for ZCTA {zcta}: {e}") from e
            except (KeyError, IndexError, ValueError, TypeError) as e:
                raise CensusAPIError(f"Invalid income data from Census for ZCTA {zcta}: {e}") from e


def _count(record: dict, variables: List[str]) -> int:
    total = 0
    for var in variables:
        value = record.get(var)
        if value is None or str(value) in MISSING_SENTINELS:
            continue
        count = int(float(value))
        if count > 0:
            total += count
    return total
