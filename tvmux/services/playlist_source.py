"""
Custom playlist source.
Fetches one externally supplied M3U playlist and parses it into raw entries.
"""
import logging
from typing import Optional

import httpx

from tvmux.config import CustomSource, Settings, get_settings
from tvmux.services.exceptions import ParseError
from tvmux.services.http_client import build_client, fetch_text
from tvmux.services.m3u_parser import M3UParser

logger = logging.getLogger(__name__)


class PlaylistSource:
    """Source fetcher for a single custom M3U playlist."""

    def __init__(
        self,
        source: CustomSource,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.settings = settings or get_settings()
        self.name = source.name
        self.url = str(source.url)
        self._client = client
        self._parser = M3UParser()

    async def fetch(self) -> list[dict]:
        """Fetch and parse the playlist."""
        logger.info(f"Processing custom M3U source: {self.name}")

        if self._client is not None:
            content = await fetch_text(self._client, self.url, self.settings.fetch_max_bytes)
        else:
            async with build_client(self.settings.fetch_timeout_seconds) as client:
                content = await fetch_text(client, self.url, self.settings.fetch_max_bytes)

        entries = self._parser.parse(content)
        if not entries:
            raise ParseError(f"No playlist entries found in {self.name}")

        logger.info(f"Finished parsing {self.name}. Found {len(entries)} entries.")
        return entries
