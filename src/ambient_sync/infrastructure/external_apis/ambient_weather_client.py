"""
Ambient Weather API Client (Infrastructure Layer)
=================================================

Client for the Ambient Weather REST API (v1) with:
- Automatic retries on transport errors using tenacity
- Rate limiting compliance (1 request/second per API key)
- Device listing and backwards-paged device history

API Documentation: https://ambientweather.docs.apiary.io/

The device history endpoint enumerates backwards in time from `endDate`:
results come back newest first, at most 288 records per call.

Usage:
    from ambient_sync.infrastructure.external_apis import AmbientWeatherAPIClient

    async with AmbientWeatherAPIClient(api_key, application_key) as client:
        records = await client.get_device_data(mac, end_date_ms=now_ms)
"""

import logging
from typing import Any, Dict, List, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ...core.exceptions import AmbientWeatherAPIError, SourceUnavailableError

logger = logging.getLogger(__name__)


class AmbientWeatherAPIClient:
    """
    Asynchronous client for the Ambient Weather REST API.

    Features:
    - Account device listing (first device is the default station)
    - Device history ending at a given instant
    - Automatic retries with exponential backoff on timeouts and
      connection failures; HTTP rejections are never retried
    """

    DEFAULT_BASE_URL = "https://rt.ambientweather.net/v1"
    DEVICES_ENDPOINT = "/devices"
    MAX_LIMIT = 288

    def __init__(
        self,
        api_key: str,
        application_key: str,
        base_url: Optional[str] = None,
        timeout: int = 30,
        max_retries: int = 3,
        retry_wait_seconds: float = 2.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize Ambient Weather API client.

        Args:
            api_key: Account API key
            application_key: Application key
            base_url: REST base URL
            timeout: Request timeout in seconds
            max_retries: Maximum attempts on transport errors
            retry_wait_seconds: Base of the exponential backoff
            transport: Custom httpx transport (tests)
        """
        if not api_key or not application_key:
            raise ValueError("AMBIENT_WEATHER_API_KEY and AMBIENT_WEATHER_APPLICATION_KEY are required")

        self.api_key = api_key
        self.application_key = application_key
        self.base_url = (base_url or self.DEFAULT_BASE_URL).rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_wait_seconds = retry_wait_seconds
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        """Async context manager entry."""
        self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        logger.info("✅ Ambient Weather API client initialized")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("🔒 Ambient Weather API client closed")

    def _get_params(self, **extra: Any) -> Dict[str, Any]:
        """Get API request parameters."""
        params: Dict[str, Any] = {
            "apiKey": self.api_key,
            "applicationKey": self.application_key,
        }
        params.update({k: v for k, v in extra.items() if v is not None})
        return params

    async def _get(self, url: str, params: Dict[str, Any]) -> httpx.Response:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=self.retry_wait_seconds, max=10),
            retry=retry_if_exception_type(httpx.TransportError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                return await self._client.get(url, params=params)

    async def _make_request(self, endpoint: str, params: Dict[str, Any]) -> Any:
        """
        Make HTTP request to the Ambient Weather API with automatic retries.

        Args:
            endpoint: API endpoint path
            params: Query parameters

        Returns:
            Decoded JSON response

        Raises:
            AmbientWeatherAPIError: If the API rejects the request
            SourceUnavailableError: If the API cannot be reached after retries
        """
        if not self._client:
            raise RuntimeError("Client not initialized")

        url = f"{self.base_url}{endpoint}"

        try:
            logger.debug(f"🌐 Ambient Weather API request: GET {url}")
            response = await self._get(url, params)
            response.raise_for_status()

            logger.info(f"✅ Ambient Weather API success: {endpoint}")
            return response.json()

        except httpx.HTTPStatusError as e:
            if e.response.status_code == 401:
                logger.error("❌ Ambient Weather API: Invalid API or application key")
                raise AmbientWeatherAPIError(401, "Invalid API or application key")
            elif e.response.status_code == 429:
                logger.error("❌ Ambient Weather API: Rate limit exceeded")
                raise AmbientWeatherAPIError(429, "Rate limit exceeded (1 request/second)")
            else:
                logger.error(f"❌ Ambient Weather HTTP error: {e.response.status_code}")
                raise AmbientWeatherAPIError(e.response.status_code, e.response.text)

        except httpx.TimeoutException as e:
            logger.error(f"❌ Ambient Weather request timed out: {e}")
            raise SourceUnavailableError(f"timeout: {e}")

        except httpx.RequestError as e:
            logger.error(f"❌ Ambient Weather request error: {e}")
            raise SourceUnavailableError(str(e) or e.__class__.__name__)

        except ValueError as e:
            logger.error(f"❌ Ambient Weather returned invalid JSON: {e}")
            raise AmbientWeatherAPIError(200, "Malformed JSON response")

    async def get_devices(self) -> List[Dict[str, Any]]:
        """
        List the devices of the account.

        Returns:
            List of device dictionaries ({"macAddress", "info", "lastData"})
        """
        data = await self._make_request(self.DEVICES_ENDPOINT, self._get_params())
        if not isinstance(data, list):
            raise AmbientWeatherAPIError(200, "Unexpected devices response")
        logger.info(f"📊 Found {len(data)} Ambient Weather device(s)")
        return data

    async def resolve_mac_address(self, mac_address: Optional[str] = None) -> str:
        """Use the configured station, or the first device of the account."""
        if mac_address:
            return mac_address
        devices = await self.get_devices()
        if not devices or "macAddress" not in devices[0]:
            raise AmbientWeatherAPIError(404, "No device registered on this account")
        return devices[0]["macAddress"]

    async def get_device_data(
        self,
        mac_address: str,
        end_date_ms: Optional[int] = None,
        limit: int = MAX_LIMIT
    ) -> List[Dict[str, Any]]:
        """
        Get device records ending at `end_date_ms`, newest first.

        Args:
            mac_address: Station MAC address
            end_date_ms: Most recent instant to include (epoch ms); now when None
            limit: Number of records (1-288)

        Returns:
            Raw record dictionaries as returned by the API
        """
        limit = max(1, min(limit, self.MAX_LIMIT))
        params = self._get_params(endDate=end_date_ms, limit=limit)

        logger.info(f"📊 Fetching {limit} Ambient Weather records ending at {end_date_ms}")

        data = await self._make_request(f"{self.DEVICES_ENDPOINT}/{mac_address}", params)
        if not isinstance(data, list):
            raise AmbientWeatherAPIError(200, "Unexpected device data response")

        logger.info(f"✅ Retrieved {len(data)} Ambient Weather records")
        return data
