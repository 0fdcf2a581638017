"""
Directory source.
Fetches the iptv-org API endpoints and joins them into enriched raw channels.
"""
import asyncio
import logging
from collections import defaultdict
from typing import Optional

import httpx

from tvmux.config import Settings, get_settings
from tvmux.services.exceptions import ParseError, ValidationError
from tvmux.services.http_client import build_client, fetch_json

logger = logging.getLogger(__name__)


class DirectorySource:
    """Source fetcher for the iptv-org JSON API."""

    ENDPOINTS = {
        "channels": "/channels.json",
        "streams": "/streams.json",
        "countries": "/countries.json",
        "categories": "/categories.json",
        "blocklist": "/blocklist.json",
    }

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.settings = settings or get_settings()
        self.name = self.settings.directory_source_name
        self.base_url = self.settings.iptv_api_base.rstrip("/")
        self._client = client

    async def fetch(self) -> list[dict]:
        """
        Fetch all endpoints concurrently and join them.

        Returns:
            Raw channel records with resolved country and category names and
            their joined streams.
        """
        logger.info(f"Starting {self.name} data processing...")

        if self._client is not None:
            payloads = await self._fetch_all(self._client)
        else:
            async with build_client(self.settings.fetch_timeout_seconds) as client:
                payloads = await self._fetch_all(client)

        channels = payloads["channels"]
        streams = payloads["streams"]

        if not isinstance(channels, list) or not channels:
            raise ValidationError(f"No channels received from {self.name} API")
        if not isinstance(streams, list) or not streams:
            raise ValidationError(f"No streams received from {self.name} API")

        logger.info(f"Fetched {len(channels)} channels, {len(streams)} streams from {self.name}")

        countries = {c.get("code"): c.get("name") for c in self._lookup(payloads, "countries")}
        categories = {c.get("id"): c.get("name") for c in self._lookup(payloads, "categories")}
        blocklist = {item.get("channel") for item in self._lookup(payloads, "blocklist")}

        streams_by_channel = self._group_streams(streams)

        processed = []
        for channel in channels:
            if not isinstance(channel, dict):
                continue
            channel_id = channel.get("id")
            if channel_id in blocklist:
                continue

            channel_streams = streams_by_channel.get(channel_id)
            if not channel_streams:
                continue

            country_code = channel.get("country")
            processed.append({
                **channel,
                "country": countries.get(country_code) or country_code or "Unknown",
                "categories": [
                    categories.get(cat_id) or cat_id
                    for cat_id in (channel.get("categories") or [])
                ],
                "streams": channel_streams,
            })

        logger.info(f"Finished processing {self.name}. Found {len(processed)} valid channels.")

        if not processed:
            raise ValidationError(f"No valid channels after processing {self.name} data")

        return processed

    async def _fetch_all(self, client: httpx.AsyncClient) -> dict:
        keys = list(self.ENDPOINTS)
        results = await asyncio.gather(*[
            fetch_json(client, f"{self.base_url}{self.ENDPOINTS[key]}", self.settings.fetch_max_bytes)
            for key in keys
        ])
        return dict(zip(keys, results))

    @staticmethod
    def _lookup(payloads: dict, key: str) -> list[dict]:
        data = payloads[key]
        if not isinstance(data, list):
            raise ParseError(f"Expected a list from {key}.json, got {type(data).__name__}")
        return [item for item in data if isinstance(item, dict)]

    @staticmethod
    def _group_streams(streams: list) -> dict[str, list[dict]]:
        """Build a channel id -> streams multimap."""
        streams_by_channel = defaultdict(list)
        for stream in streams:
            if not isinstance(stream, dict) or not stream.get("channel"):
                continue
            streams_by_channel[stream["channel"]].append({
                "url": stream.get("url"),
                "user_agent": stream.get("user_agent"),
                "referrer": stream.get("referrer"),
                "quality": stream.get("quality"),
            })
        return streams_by_channel
