"""Unit tests for the external source clients, served by httpx.MockTransport"""

import json
from types import SimpleNamespace

import anthropic
import httpx
import pytest
from networth_gateway.domain.exceptions import BlsAPIError, CensusAPIError, FredAPIError, ReasoningServiceError
from networth_gateway.infrastructure.clients.bls import BlsClient, unemployment_series
from networth_gateway.infrastructure.clients.census import CensusClient
from networth_gateway.infrastructure.clients.fred import FredClient, state_median_income_series
from networth_gateway.infrastructure.clients.reasoning import ReasoningClient

FRED_BASE = "https://fred.test/fred"
CENSUS_BASE = "https://census.test/data/2022/acs/acs5"
BLS_BASE = "https://bls.test/publicAPI/v2"

CENSUS_HEADER = ["NAME", "B19013_001E", "B19001_001E", "B19001_016E", "B19001_017E", "zip code tabulation area"]


def _transport(handler) -> httpx.MockTransport:
    return httpx.MockTransport(handler)


def _timeout(request: httpx.Request):
    raise httpx.ReadTimeout("timed out", request=request)


def _server_error(request: httpx.Request) -> httpx.Response:
    return httpx.Response(500, json={"error": "internal"})


class TestFredClient:
    def _client(self, handler) -> FredClient:
        return FredClient(api_key="fred-key", base_url=FRED_BASE, timeout=1.0, transport=_transport(handler))

    async def test_latest_observation_skips_missing_values(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = request.url
            return httpx.Response(
                200,
                json={
                    "observations": [
                        {"date": "2024-01-01", "value": "."},
                        {"date": "2023-01-01", "value": "80610"},
                    ]
                },
            )

        obs = await self._client(handler).get_latest_observation("MEHOINUSA646N")

        assert obs.value == 80610.0
        assert obs.date == "2023-01-01"
        assert seen["url"].path == "/fred/series/observations"
        assert seen["url"].params["series_id"] == "MEHOINUSA646N"
        assert seen["url"].params["api_key"] == "fred-key"
        assert seen["url"].params["sort_order"] == "desc"

    async def test_non_finite_values_skipped(self):
        def handler(request):
            return httpx.Response(
                200,
                json={
                    "observations": [
                        {"date": "2024-01-01", "value": "NaN"},
                        {"date": "2023-01-01", "value": "inf"},
                        {"date": "2022-01-01", "value": "74580"},
                    ]
                },
            )

        obs = await self._client(handler).get_latest_observation("MEHOINUSA646N")

        assert obs.value == 74580.0
        assert obs.date == "2022-01-01"

    async def test_no_usable_observation(self):
        def handler(request):
            return httpx.Response(200, json={"observations": [{"date": "2024-01-01", "value": "."}]})

        with pytest.raises(FredAPIError, match="No observation"):
            await self._client(handler).get_latest_observation("X")

    @pytest.mark.parametrize(
        "handler",
        [
            _timeout,
            _server_error,
            lambda request: httpx.Response(200, json={"unexpected": []}),
            lambda request: httpx.Response(200, text="<html>maintenance</html>"),
        ],
    )
    async def test_failures_raise_fred_error(self, handler):
        with pytest.raises(FredAPIError):
            await self._client(handler).get_latest_observation("X")

    async def test_unreachable(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(FredAPIError, match="unreachable"):
            await self._client(handler).get_latest_observation("X")

    async def test_unconfigured_never_calls_out(self):
        def handler(request):
            raise AssertionError("no request expected")

        client = FredClient(api_key="", base_url=FRED_BASE, transport=_transport(handler))

        assert not client.configured
        with pytest.raises(FredAPIError, match="not configured"):
            await client.get_latest_observation("X")

    def test_state_series(self):
        assert state_median_income_series("ca") == "MEHOINUSCAA646N"


class TestCensusClient:
    def _client(self, handler) -> CensusClient:
        return CensusClient(api_key="census-key", base_url=CENSUS_BASE, timeout=1.0, transport=_transport(handler))

    async def test_zip_income(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["params"] = request.url.params
            return httpx.Response(
                200,
                json=[CENSUS_HEADER, ["ZCTA5 94105", "218000", "6000", "700", "2500", "94105"]],
            )

        profile = await self._client(handler).get_zip_income("94105")

        assert profile.median_household_income == 218000
        assert profile.total_households == 6000
        assert profile.households_150k_plus == 3200
        assert profile.households_200k_plus == 2500
        assert seen["params"]["for"] == "zip code tabulation area:94105"
        assert seen["params"]["get"].startswith("NAME,B19013_001E")
        assert seen["params"]["key"] == "census-key"

    async def test_suppressed_median_income(self):
        def handler(request):
            return httpx.Response(200, json=[CENSUS_HEADER, ["ZCTA5 00001", "-666666666", "12", "0", "0", "00001"]])

        with pytest.raises(CensusAPIError, match="suppressed"):
            await self._client(handler).get_zip_income("00001")

    @pytest.mark.parametrize("median", ["-222222222", "-333333333", "-555555555", "-666666666"])
    async def test_annotation_sentinels_are_not_incomes(self, median):
        def handler(request):
            return httpx.Response(200, json=[CENSUS_HEADER, ["ZCTA5 00001", median, "12", "0", "0", "00001"]])

        with pytest.raises(CensusAPIError, match="suppressed"):
            await self._client(handler).get_zip_income("00001")

    @pytest.mark.parametrize("median", ["0", "-5000", "NaN"])
    async def test_non_positive_median_income_rejected(self, median):
        def handler(request):
            return httpx.Response(200, json=[CENSUS_HEADER, ["ZCTA5 00002", median, "40", "0", "0", "00002"]])

        with pytest.raises(CensusAPIError, match="Unusable median income"):
            await self._client(handler).get_zip_income("00002")

    async def test_suppressed_bracket_counts_as_zero(self):
        def handler(request):
            return httpx.Response(200, json=[CENSUS_HEADER, ["ZCTA5 59901", "61000", "9000", "-888888888", "300", "59901"]])

        profile = await self._client(handler).get_zip_income("59901")

        assert profile.households_150k_plus == 300

    @pytest.mark.parametrize(
        "handler",
        [
            _timeout,
            _server_error,
            lambda request: httpx.Response(200, json=[CENSUS_HEADER]),
            lambda request: httpx.Response(204),
        ],
    )
    async def test_failures_raise_census_error(self, handler):
        with pytest.raises(CensusAPIError):
            await self._client(handler).get_zip_income("94105")


class TestBlsClient:
    def _client(self, handler) -> BlsClient:
        return BlsClient(api_key="bls-key", base_url=BLS_BASE, timeout=1.0, transport=_transport(handler))

    async def test_latest_monthly_rate(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={
                    "status": "REQUEST_SUCCEEDED",
                    "Results": {
                        "series": [
                            {
                                "seriesID": "LASST060000000000003",
                                "data": [
                                    {"year": "2024", "period": "M13", "value": "5.2"},
                                    {"year": "2024", "period": "M06", "value": "5.3"},
                                    {"year": "2024", "period": "M05", "value": "5.2"},
                                ],
                            }
                        ]
                    },
                },
            )

        obs = await self._client(handler).get_state_unemployment_rate("ca")

        assert obs.value == 5.3
        assert obs.date == "2024-06"
        assert seen["path"] == "/publicAPI/v2/timeseries/data/"
        assert seen["body"]["seriesid"] == ["LASST060000000000003"]
        assert seen["body"]["registrationkey"] == "bls-key"

    async def test_non_finite_rate_skipped(self):
        def handler(request):
            return httpx.Response(
                200,
                json={
                    "status": "REQUEST_SUCCEEDED",
                    "Results": {
                        "series": [
                            {
                                "data": [
                                    {"year": "2024", "period": "M06", "value": "NaN"},
                                    {"year": "2024", "period": "M05", "value": "3.1"},
                                ]
                            }
                        ]
                    },
                },
            )

        obs = await self._client(handler).get_state_unemployment_rate("WY")

        assert obs.value == 3.1
        assert obs.date == "2024-05"

    async def test_request_not_processed(self):
        def handler(request):
            return httpx.Response(200, json={"status": "REQUEST_NOT_PROCESSED", "message": ["daily threshold reached"]})

        with pytest.raises(BlsAPIError, match="daily threshold"):
            await self._client(handler).get_state_unemployment_rate("CA")

    @pytest.mark.parametrize(
        "handler",
        [
            _timeout,
            _server_error,
            lambda request: httpx.Response(
                200, json={"status": "REQUEST_SUCCEEDED", "Results": {"series": [{"data": []}]}}
            ),
        ],
    )
    async def test_failures_raise_bls_error(self, handler):
        with pytest.raises(BlsAPIError):
            await self._client(handler).get_state_unemployment_rate("CA")

    def test_series_ids(self):
        assert unemployment_series("WY") == "LASST560000000000003"
        with pytest.raises(BlsAPIError):
            unemployment_series("ZZ")


def _fake_anthropic(create) -> SimpleNamespace:
    return SimpleNamespace(messages=SimpleNamespace(create=create))


class TestReasoningClient:
    async def test_joins_text_blocks(self):
        calls = []

        async def create(**kwargs):
            calls.append(kwargs)
            return SimpleNamespace(
                content=[
                    SimpleNamespace(type="text", text='{"final_low": 1, '),
                    SimpleNamespace(type="text", text='"final_high": 2}'),
                ]
            )

        client = ReasoningClient(api_key="", model="test-model", max_tokens=300, client=_fake_anthropic(create))

        text = await client.complete("system prompt", "user prompt")

        assert client.configured
        assert text == '{"final_low": 1, "final_high": 2}'
        assert calls[0]["model"] == "test-model"
        assert calls[0]["system"] == "system prompt"
        assert calls[0]["messages"] == [{"role": "user", "content": "user prompt"}]

    async def test_api_error_wrapped(self):
        async def create(**kwargs):
            raise anthropic.APIConnectionError(request=httpx.Request("POST", "https://api.anthropic.com/v1/messages"))

        client = ReasoningClient(client=_fake_anthropic(create))

        with pytest.raises(ReasoningServiceError):
            await client.complete("system", "prompt")

    async def test_unconfigured(self):
        client = ReasoningClient(api_key="")

        assert not client.configured
        with pytest.raises(ReasoningServiceError, match="not configured"):
            await client.complete("system", "prompt")
