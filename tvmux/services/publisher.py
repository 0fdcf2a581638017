"""
Catalog partitioning and cache publishing.

Writes one key per channel (batched), one key per non-empty catalog, the
master channel list and the sorted catalog index. Writes across keys are not
transactional.
"""
import asyncio
import logging
from collections import defaultdict
from typing import Optional

from tvmux.models.channel import Channel
from tvmux.services.exceptions import CacheWriteError

logger = logging.getLogger(__name__)

MASTER_CHANNEL_LIST_KEY = "master_channel_list"
AVAILABLE_CATALOGS_KEY = "available_catalogs"


def channel_key(channel_id: str) -> str:
    return f"channel_{channel_id}"


def catalog_key(catalog_name: str) -> str:
    return f"catalog_{catalog_name}"


def catalog_name_for(channel: Channel, playlist_sources: set[str]) -> Optional[str]:
    """Custom playlist channels browse by source, directory channels by country."""
    if channel.source_name in playlist_sources:
        return channel.source_name
    return channel.country


def partition(channels: list[Channel], playlist_sources: set[str]) -> dict[str, list[Channel]]:
    """Group channels into catalogs; only non-empty catalogs are returned."""
    catalogs = defaultdict(list)
    for channel in channels:
        name = catalog_name_for(channel, playlist_sources)
        if name:
            catalogs[name].append(channel)
    return dict(catalogs)


class CachePublisher:
    """Writes a run's channel snapshot to the cache."""

    def __init__(self, cache, ttl_seconds: Optional[int] = None):
        self.cache = cache
        self.ttl_seconds = ttl_seconds

    async def publish(self, channels: list[Channel], playlist_sources: set[str]) -> list[str]:
        """
        Publish channels and return the sorted catalog index.

        Raises:
            CacheWriteError: if any single write fails.
        """
        catalogs = partition(channels, playlist_sources)
        catalog_index = sorted(catalogs)

        serialized = {c.id: c.model_dump(mode="json") for c in channels}
        individual = {channel_key(cid): data for cid, data in serialized.items()}
        logger.info(f"Prepared {len(individual)} healthy channels for batch caching.")

        writes = {"channel_*": self.cache.multi_set(individual, self.ttl_seconds)}
        for name, members in catalogs.items():
            writes[catalog_key(name)] = self.cache.set(
                catalog_key(name), [serialized[c.id] for c in members], self.ttl_seconds
            )
        writes[MASTER_CHANNEL_LIST_KEY] = self.cache.set(
            MASTER_CHANNEL_LIST_KEY, list(serialized.values()), self.ttl_seconds
        )
        writes[AVAILABLE_CATALOGS_KEY] = self.cache.set(
            AVAILABLE_CATALOGS_KEY, catalog_index, self.ttl_seconds
        )

        logger.info(f"Storing {len(catalogs)} catalogs, master list and catalog index.")
        results = await asyncio.gather(*writes.values(), return_exceptions=True)

        failed = [key for key, result in zip(writes, results) if isinstance(result, BaseException)]
        if failed:
            first_error = next(r for r in results if isinstance(r, BaseException))
            for key, result in zip(writes, results):
                if isinstance(result, BaseException):
                    logger.error(f"Cache write failed for {key}: {result}")
            raise CacheWriteError(
                f"{len(failed)} of {len(writes)} cache writes failed: {first_error}",
                failed_keys=failed,
            ) from first_error

        return catalog_index
