"""
Refresh pipeline.
Fetches every source, normalizes, probes stream health and publishes the
result to the cache. One instance handles one run.
"""
import asyncio
import logging
import time
from typing import Optional

import httpx

from tvmux.config import Settings, get_settings
from tvmux.models.channel import Channel
from tvmux.models.run import RunResult, RunStatus, SourceOutcome, SourceStatus
from tvmux.services.alerter import Alerter
from tvmux.services.cache import get_cache
from tvmux.services.directory_source import DirectorySource
from tvmux.services.exceptions import CacheWriteError
from tvmux.services.health_prober import HealthProber
from tvmux.services.http_client import build_client
from tvmux.services.normalizer import normalize_all, slugify
from tvmux.services.playlist_source import PlaylistSource
from tvmux.services.publisher import CachePublisher

logger = logging.getLogger(__name__)


class RefreshPipeline:
    """Runs one end-to-end refresh."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        cache=None,
        alerter: Optional[Alerter] = None,
        fetch_client: Optional[httpx.AsyncClient] = None,
        probe_client: Optional[httpx.AsyncClient] = None,
    ):
        self.settings = settings or get_settings()
        self.cache = cache
        self.alerter = alerter or Alerter(self.settings)
        self._fetch_client = fetch_client
        self._probe_client = probe_client

    def build_sources(self, client: httpx.AsyncClient) -> list:
        """Directory source first, then each configured custom playlist."""
        sources = [DirectorySource(self.settings, client)]
        seen = {slugify(self.settings.directory_source_name)}

        for custom in self.settings.get_custom_sources():
            slug = slugify(custom.name)
            if slug in seen:
                logger.warning(f"Skipping custom source {custom.name!r}: name collides with another source")
                continue
            seen.add(slug)
            sources.append(PlaylistSource(custom, self.settings, client))

        return sources

    async def run(self) -> RunResult:
        """Execute the pipeline once."""
        start_time = time.time()
        logger.info("Starting background data refresh job...")

        if self.cache is None:
            self.cache = await get_cache()

        owns_client = self._fetch_client is None
        client = self._fetch_client or build_client(self.settings.fetch_timeout_seconds)
        try:
            sources = self.build_sources(client)
            channels, outcomes = await self._collect(sources)
        finally:
            if owns_client:
                await client.aclose()

        playlist_sources = {
            s.name for s, o in zip(sources, outcomes)
            if isinstance(s, PlaylistSource) and o.status == SourceStatus.OK
        }

        logger.info(f"Total channels aggregated before health check: {len(channels)}")

        prober = HealthProber(self.settings, self._probe_client)
        healthy = await prober.probe_and_filter(channels)

        if not healthy:
            message = "Master list is empty after health check. Aborting cache update."
            logger.error(message)
            await self.alerter.notify("Cache Worker", RuntimeError(message))
            return self._result(RunStatus.FAILED, start_time, outcomes, message=message)

        publisher = CachePublisher(self.cache, self.settings.cache_ttl_seconds)
        try:
            catalog_index = await publisher.publish(healthy, playlist_sources)
        except CacheWriteError as e:
            logger.error(f"Failed to write to cache: {e}")
            await self.alerter.notify("Cache Writer", e)
            return self._result(RunStatus.FAILED, start_time, outcomes, message="Could not write to cache.")

        # Housekeeping only; the new snapshot is already live
        try:
            removed = await self.cache.clear_expired()
            if removed:
                logger.info(f"Removed {removed} expired cache entries")
        except Exception as e:
            logger.warning(f"Expired cache cleanup failed: {e}")

        result = self._result(
            RunStatus.SUCCESS, start_time, outcomes,
            channels=len(healthy), catalogs=len(catalog_index),
        )
        logger.info(f"Successfully updated cache in {result.elapsed_ms}ms.")
        return result

    async def _collect(self, sources: list) -> tuple[list[Channel], list[SourceOutcome]]:
        """Fetch all sources concurrently; one failure never cancels another."""
        results = await asyncio.gather(
            *[source.fetch() for source in sources],
            return_exceptions=True,
        )

        channels: list[Channel] = []
        seen_ids: set[str] = set()
        outcomes = []
        failures = []

        for source, result in zip(sources, results):
            if isinstance(result, BaseException):
                logger.error(f"Source {source.name!r} failed: {result}")
                failures.append((source.name, result))
                outcomes.append(SourceOutcome(
                    name=source.name, status=SourceStatus.FAILED, error=str(result)
                ))
                continue

            contributed = 0
            for channel in normalize_all(result, source.name):
                if channel.id in seen_ids:
                    logger.warning(f"Duplicate channel id {channel.id} from {source.name}, keeping first")
                    continue
                seen_ids.add(channel.id)
                channels.append(channel)
                contributed += 1

            outcomes.append(SourceOutcome(
                name=source.name, status=SourceStatus.OK, channels=contributed
            ))

        if failures:
            await asyncio.gather(*[self.alerter.notify(name, error) for name, error in failures])

        return channels, outcomes

    @staticmethod
    def _result(
        status: RunStatus,
        start_time: float,
        outcomes: list[SourceOutcome],
        channels: int = 0,
        catalogs: int = 0,
        message: Optional[str] = None,
    ) -> RunResult:
        return RunResult(
            status=status,
            channels=channels,
            catalogs=catalogs,
            elapsed_ms=int((time.time() - start_time) * 1000),
            sources=outcomes,
            message=message,
        )
