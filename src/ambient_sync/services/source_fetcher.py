"""
Source Fetching Service
=======================

Obtains readings newer than a reference instant, local archive first.

Outcomes:
- Batch: readings in (reference, now], ascending, possibly empty
- TooEarly: less than the minimum interval since the last archived fetch
- Unavailable: the upstream API timed out or could not be reached

An upstream rejection (bad credentials, malformed payload) raises
SourceFetchError: nothing validated exists to commit.
"""

import asyncio
import math
import time
from typing import Callable, List, Optional

from loguru import logger
from pydantic import ValidationError

from ..core.config import Settings, settings
from ..core.exceptions import (
    AmbientWeatherAPIError,
    ArchiveError,
    SourceFetchError,
    SourceUnavailableError,
)
from ..core.logging_config import PerformanceLogger
from ..domain.readings import ImperialReading, sort_and_dedupe
from ..domain.results import Batch, FetchOutcome, TooEarly, Unavailable, format_epoch
from ..infrastructure.archive import LocalArchive
from ..infrastructure.external_apis import AmbientWeatherAPIClient


def current_epoch_ms() -> int:
    return int(time.time() * 1000)


class SourceFetcher:
    """Local-first reader of station data with an upstream fallback."""

    def __init__(
        self,
        archive: LocalArchive,
        api_client_factory: Callable[[], AmbientWeatherAPIClient],
        config: Optional[Settings] = None,
        clock: Callable[[], int] = current_epoch_ms,
        sleep: Callable[[float], object] = asyncio.sleep
    ):
        """
        Args:
            archive: Local window archive
            api_client_factory: Builds a (not yet entered) upstream client
            config: Settings; the global settings when None
            clock: Current epoch milliseconds
            sleep: Pause between upstream pages
        """
        self.archive = archive
        self.api_client_factory = api_client_factory
        self.config = config or settings
        self.clock = clock
        self.sleep = sleep

    def default_origin(self, now: int) -> int:
        """Origin used when no cluster boundary is known: the last archived fetch."""
        latest = self.archive.latest_fetch_epoch()
        if latest is not None and latest < now:
            return latest
        return now - self.config.default_lookback_ms

    async def fetch(
        self,
        reference_ms: Optional[int],
        bypass_cooldown: bool = False,
        until_ms: Optional[int] = None,
        persist: bool = True,
        exclusive_end: bool = False
    ) -> FetchOutcome:
        """
        Fetch readings in (reference_ms, until_ms].

        Args:
            reference_ms: Exclusive lower bound; archive-driven default when None
            bypass_cooldown: Skip the minimum-interval check (historical ranges)
            until_ms: Upper bound; now when None
            persist: Archive what was fetched upstream
            exclusive_end: Exclude readings at exactly until_ms

        Returns:
            Batch, TooEarly or Unavailable

        Raises:
            SourceFetchError: If the upstream source rejected the request
        """
        now = until_ms if until_ms is not None else self.clock()

        if not bypass_cooldown:
            last_fetch = self.archive.latest_fetch_epoch()
            if last_fetch is not None and now - last_fetch < self.config.min_fetch_interval_ms:
                next_allowed = last_fetch + self.config.min_fetch_interval_ms
                logger.info(f"⏳ Too early for new data, next fetch allowed at {format_epoch(next_allowed)}")
                return TooEarly(last_fetch_epoch=last_fetch, next_allowed_epoch=next_allowed)

        origin = reference_ms if reference_ms is not None else self.default_origin(now)
        if origin >= now:
            logger.info("Nothing to fetch: origin is not before the end of the window")
            return Batch(from_epoch=origin, to_epoch=now, readings=[], source="local")

        logger.info(f"🔄 Fetching readings in ({format_epoch(origin)}, {format_epoch(now)}]")

        # Local prefix
        local: List[ImperialReading] = []
        remainder_start = origin
        covered = self.archive.contiguous_coverage(origin)
        if covered is not None:
            local_end = min(covered, now)
            local, files = self.archive.load_range(
                origin, local_end, inclusive_end=not (exclusive_end and local_end == now)
            )
            remainder_start = local_end
            logger.info(f"📂 Archive covers up to {format_epoch(local_end)} ({len(local)} readings, {files} files)")

        if remainder_start >= now:
            return Batch(from_epoch=origin, to_epoch=now, readings=local, source="local")

        # Upstream remainder
        try:
            with PerformanceLogger("upstream fetch"):
                upstream = await self._fetch_upstream(remainder_start, now)
        except SourceUnavailableError as e:
            logger.warning(f"⚠️ Weather source unavailable: {e.reason}")
            return Unavailable(reason=e.reason)
        except AmbientWeatherAPIError as e:
            logger.error(f"❌ Weather source rejected the request: {e.message}")
            raise SourceFetchError(
                f"Failed to fetch station data: {e.message}",
                details=e.details,
                error_code="SOURCE_FETCH_FAILED"
            ) from e

        upstream = [
            r for r in upstream
            if remainder_start < r.dateutc and (r.dateutc < now if exclusive_end else r.dateutc <= now)
        ]

        if persist:
            try:
                self.archive.write_raw(remainder_start, now, upstream)
            except ArchiveError as e:
                logger.warning(f"⚠️ Could not archive fetched window, continuing without it: {e.message}")

        readings = sort_and_dedupe(local + upstream)
        source = "local+api" if local else "api"
        logger.info(f"✅ Fetched {len(readings)} readings ({source})")
        return Batch(from_epoch=origin, to_epoch=now, readings=readings, source=source)

    async def _fetch_upstream(self, start: int, end: int) -> List[ImperialReading]:
        """Page backwards from `end` until `start` is reached or the station runs dry."""
        try:
            client = self.api_client_factory()
        except ValueError as e:
            raise SourceFetchError(
                f"Ambient Weather client not configured: {e}",
                error_code="SOURCE_NOT_CONFIGURED"
            ) from e

        limit = self.config.AMBIENT_WEATHER_PAGE_LIMIT
        expected = math.ceil((end - start) / self.config.reading_interval_ms) + 1
        max_pages = math.ceil(expected / limit) + 1

        collected: List[ImperialReading] = []
        async with client:
            mac = self.config.AMBIENT_WEATHER_MAC_ADDRESS
            if not mac:
                mac = await client.resolve_mac_address()
                await self.sleep(self.config.AMBIENT_WEATHER_REQUEST_SPACING_SECONDS)

            page_end = end
            for page in range(max_pages):
                if page:
                    await self.sleep(self.config.AMBIENT_WEATHER_REQUEST_SPACING_SECONDS)

                records = await client.get_device_data(
                    mac, end_date_ms=page_end, limit=min(limit, expected)
                )
                try:
                    readings = [ImperialReading.from_document(record) for record in records]
                except ValidationError as e:
                    raise AmbientWeatherAPIError(200, f"Malformed record: {e.errors()[0]['msg']}") from e

                collected.extend(readings)
                if len(readings) < min(limit, expected):
                    break
                oldest = min(r.dateutc for r in readings)
                if oldest <= start or oldest >= page_end:
                    break
                page_end = oldest - 1

        return sort_and_dedupe(collected)
