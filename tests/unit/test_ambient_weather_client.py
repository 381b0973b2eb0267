"""
Unit Tests for the Ambient Weather API Client
==============================================

Tests use httpx.MockTransport so no network is touched.

Coverage:
- ✅ Client initialization
- ✅ Request parameters (keys, endDate, limit)
- ✅ Error handling (401, 429, malformed body)
- ✅ Retry on transport errors, then SourceUnavailableError
- ✅ Device resolution
"""

import httpx
import pytest

from ambient_sync.core.exceptions import AmbientWeatherAPIError, SourceUnavailableError
from ambient_sync.infrastructure.external_apis import AmbientWeatherAPIClient

from tests.fakes import T0, FIVE_MINUTES

MAC = "AA:BB:CC:DD:EE:FF"


def make_client(handler, **kwargs) -> AmbientWeatherAPIClient:
    return AmbientWeatherAPIClient(
        api_key="api-key",
        application_key="app-key",
        transport=httpx.MockTransport(handler),
        retry_wait_seconds=0,
        **kwargs
    )


@pytest.mark.unit
class TestClientInitialization:

    def test_requires_keys(self):
        with pytest.raises(ValueError) as exc_info:
            AmbientWeatherAPIClient(api_key="", application_key="app-key")

        assert "AMBIENT_WEATHER_API_KEY" in str(exc_info.value)

    def test_base_url_trailing_slash_removed(self):
        client = AmbientWeatherAPIClient("a", "b", base_url="https://example.test/v1/")
        assert client.base_url == "https://example.test/v1"


@pytest.mark.unit
@pytest.mark.asyncio
class TestAmbientWeatherAPIClient:

    async def test_get_device_data_sends_parameters(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json=[{"dateutc": T0 + FIVE_MINUTES}, {"dateutc": T0}])

        async with make_client(handler) as client:
            records = await client.get_device_data(MAC, end_date_ms=T0 + FIVE_MINUTES, limit=500)

        assert [r["dateutc"] for r in records] == [T0 + FIVE_MINUTES, T0]
        assert seen["path"] == f"/v1/devices/{MAC}"
        assert seen["params"] == {
            "apiKey": "api-key",
            "applicationKey": "app-key",
            "endDate": str(T0 + FIVE_MINUTES),
            "limit": "288",
        }

    async def test_unauthorized_raises_api_error(self):
        async with make_client(lambda request: httpx.Response(401, json={"error": "unauthorized"})) as client:
            with pytest.raises(AmbientWeatherAPIError) as exc_info:
                await client.get_device_data(MAC)

        assert exc_info.value.status_code == 401

    async def test_rate_limit_is_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(429, text="Too Many Requests")

        async with make_client(handler) as client:
            with pytest.raises(AmbientWeatherAPIError) as exc_info:
                await client.get_device_data(MAC)

        assert exc_info.value.status_code == 429
        assert len(calls) == 1

    async def test_malformed_body_raises_api_error(self):
        async with make_client(lambda request: httpx.Response(200, json={"unexpected": True})) as client:
            with pytest.raises(AmbientWeatherAPIError):
                await client.get_device_data(MAC)

    async def test_invalid_json_raises_api_error(self):
        async with make_client(lambda request: httpx.Response(200, text="<html>")) as client:
            with pytest.raises(AmbientWeatherAPIError):
                await client.get_device_data(MAC)

    async def test_transport_errors_retried_then_unavailable(self):
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        async with make_client(handler, max_retries=3) as client:
            with pytest.raises(SourceUnavailableError):
                await client.get_device_data(MAC)

        assert len(calls) == 3

    async def test_timeout_recovers_on_retry(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                raise httpx.ReadTimeout("timed out", request=request)
            return httpx.Response(200, json=[{"dateutc": T0}])

        async with make_client(handler) as client:
            records = await client.get_device_data(MAC)

        assert records == [{"dateutc": T0}]
        assert len(calls) == 2

    async def test_resolve_mac_address_uses_first_device(self):
        def handler(request):
            assert request.url.path == "/v1/devices"
            return httpx.Response(200, json=[{"macAddress": MAC}, {"macAddress": "other"}])

        async with make_client(handler) as client:
            assert await client.resolve_mac_address() == MAC
            assert await client.resolve_mac_address("configured") == "configured"

    async def test_resolve_mac_address_without_devices(self):
        async with make_client(lambda request: httpx.Response(200, json=[])) as client:
            with pytest.raises(AmbientWeatherAPIError) as exc_info:
                await client.resolve_mac_address()

        assert exc_info.value.status_code == 404

    async def test_request_outside_context_manager(self):
        client = make_client(lambda request: httpx.Response(200, json=[]))

        with pytest.raises(RuntimeError):
            await client.get_devices()
