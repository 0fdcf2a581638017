"""
Stream Health Prober

Probes every stream of every channel with a HEAD request, in sequential
batches that are internally concurrent, then drops channels that have no
verified stream.
"""

import asyncio
import logging
import time
from typing import Optional

import httpx

from tvmux.config import Settings, get_settings
from tvmux.models.channel import Channel, Stream, StreamHealth

logger = logging.getLogger(__name__)


class HealthProber:
    """Bounded-concurrency reachability prober."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        settings = settings or get_settings()
        self.batch_size = max(1, settings.probe_batch_size)
        self.timeout = settings.probe_timeout_seconds
        self.user_agent = settings.probe_user_agent
        self._client = client
        self._stats = {"probed": 0, "verified": 0, "failed": 0}

    def get_stats(self) -> dict:
        """Get probe counters for the last run."""
        return dict(self._stats)

    async def probe_and_filter(self, channels: list[Channel]) -> list[Channel]:
        """
        Probe all streams and keep channels with at least one verified stream.

        Args:
            channels: Normalized channels; stream health is updated in place

        Returns:
            The subset of channels worth publishing
        """
        work = [
            (channel_index, stream_index, stream)
            for channel_index, channel in enumerate(channels)
            for stream_index, stream in enumerate(channel.streams)
        ]
        logger.info(f"Probing {len(work)} streams across {len(channels)} channels "
                    f"in batches of {self.batch_size}")
        start_time = time.time()

        if self._client is not None:
            verdicts = await self._probe_all(self._client, work)
        else:
            # One pooled connection per in-flight probe of a batch
            async with httpx.AsyncClient(
                timeout=self._probe_timeout(),
                limits=httpx.Limits(
                    max_connections=self.batch_size,
                    max_keepalive_connections=self.batch_size,
                ),
                follow_redirects=False,
            ) as client:
                verdicts = await self._probe_all(client, work)

        # Merge verdicts back onto the channels' streams
        for channel_index, stream_index, health in verdicts:
            channels[channel_index].streams[stream_index].health = health

        healthy = [c for c in channels if c.is_playable]

        elapsed = time.time() - start_time
        logger.info(f"Stream health probing complete in {elapsed:.1f}s: "
                    f"{self._stats['verified']}/{self._stats['probed']} streams verified, "
                    f"{len(healthy)}/{len(channels)} channels kept")
        return healthy

    async def _probe_all(
        self,
        client: httpx.AsyncClient,
        work: list[tuple[int, int, Stream]],
    ) -> list[tuple[int, int, StreamHealth]]:
        self._stats = {"probed": 0, "verified": 0, "failed": 0}
        verdicts = []

        for offset in range(0, len(work), self.batch_size):
            batch = work[offset:offset + self.batch_size]
            results = await asyncio.gather(*[
                self._probe_stream(client, stream) for _, _, stream in batch
            ])

            for (channel_index, stream_index, _), health in zip(batch, results):
                verdicts.append((channel_index, stream_index, health))
                self._stats["probed"] += 1
                if health == StreamHealth.VERIFIED:
                    self._stats["verified"] += 1
                else:
                    self._stats["failed"] += 1

            working = sum(1 for r in results if r == StreamHealth.VERIFIED)
            logger.info(f"Batch {offset // self.batch_size + 1} complete: "
                        f"{working}/{len(batch)} verified")

        return verdicts

    def _probe_timeout(self) -> httpx.Timeout:
        # Waiting for a free pooled connection is not the stream's fault
        return httpx.Timeout(self.timeout, pool=None)

    async def _probe_stream(self, client: httpx.AsyncClient, stream: Stream) -> StreamHealth:
        """Issue one HEAD request; never raises."""
        headers = {"User-Agent": stream.user_agent or self.user_agent}
        if stream.referrer:
            headers["Referer"] = stream.referrer

        try:
            response = await client.head(
                stream.url,
                headers=headers,
                timeout=self._probe_timeout(),
                follow_redirects=False,
            )
        except httpx.TimeoutException:
            logger.debug(f"Probe timed out: {stream.url}")
            return StreamHealth.FAILED
        except httpx.ConnectError:
            logger.debug(f"Probe connection refused: {stream.url}")
            return StreamHealth.FAILED
        except Exception as e:
            logger.debug(f"Probe failed for {stream.url}: {str(e)[:100]}")
            return StreamHealth.FAILED

        if 200 <= response.status_code < 400:
            return StreamHealth.VERIFIED

        logger.debug(f"Probe got HTTP {response.status_code}: {stream.url}")
        return StreamHealth.FAILED
