"""
M3U Parser Service.
Parses remote M3U playlist documents into raw channel entries.
"""
import re
import logging
from typing import Optional

from tvmux.services.exceptions import ParseError

logger = logging.getLogger(__name__)

# key="value" attributes on an EXTINF line
ATTRIBUTE_PATTERN = re.compile(r'([\w-]+)="([^"]*)"')

VLC_OPTIONS = {
    "http-user-agent": "user-agent",
    "http-referrer": "referrer",
    "http-referer": "referrer",
}


class M3UParser:
    """Parse M3U playlist text."""

    def parse(self, content: str) -> list[dict]:
        """
        Parse playlist text into raw entries.

        Each entry has name, tvg_id, tvg_name, logo, group, url, quality and
        an http dict of header hints (user-agent, referrer).

        Raises:
            ParseError: if the content is empty or not an M3U playlist.
        """
        if not content or not content.strip():
            raise ParseError("Invalid or empty playlist content")

        lines = content.splitlines()
        first = next(line.strip() for line in lines if line.strip())
        if not first.startswith("#EXTM3U"):
            raise ParseError("Playlist is missing the #EXTM3U header")

        entries = []
        current_info = None
        http_hints: dict = {}

        for line in lines:
            line = line.strip()
            if not line or line.startswith("#EXTM3U"):
                continue

            if line.startswith("#EXTINF:"):
                current_info = self._parse_extinf(line)
                http_hints = {}

            elif line.startswith("#EXTVLCOPT:"):
                key, _, value = line[len("#EXTVLCOPT:"):].partition("=")
                hint = VLC_OPTIONS.get(key.strip().lower())
                if hint and value.strip():
                    http_hints[hint] = value.strip()

            elif not line.startswith("#") and current_info is not None:
                # This is the URL line
                entries.append({
                    **current_info,
                    "url": line,
                    "http": http_hints,
                    "quality": self._extract_quality(current_info["name"] or ""),
                })
                current_info = None
                http_hints = {}

        logger.debug(f"Parsed {len(entries)} playlist entries")
        return entries

    def _parse_extinf(self, line: str) -> dict:
        """Split an EXTINF line into attributes and title."""
        body = line[len("#EXTINF:"):]

        # The title follows the first comma outside quoted attribute values
        in_quotes = False
        split_at = -1
        for i, char in enumerate(body):
            if char == '"':
                in_quotes = not in_quotes
            elif char == "," and not in_quotes:
                split_at = i
                break

        if split_at >= 0:
            header, title = body[:split_at], body[split_at + 1:].strip()
        else:
            header, title = body, ""

        attrs = {key.lower(): value.strip() for key, value in ATTRIBUTE_PATTERN.findall(header)}

        return {
            "name": title or None,
            "tvg_id": attrs.get("tvg-id") or None,
            "tvg_name": attrs.get("tvg-name") or None,
            "logo": attrs.get("tvg-logo") or None,
            "group": attrs.get("group-title") or None,
        }

    def _extract_quality(self, name: str) -> Optional[str]:
        """Extract quality from stream name."""
        name_lower = name.lower()

        if '4k' in name_lower or '2160' in name_lower:
            return '4K'
        elif '1080' in name_lower:
            return '1080p'
        elif '720' in name_lower:
            return '720p'
        elif '480' in name_lower:
            return '480p'
        elif '360' in name_lower:
            return '360p'

        return None
