"""
Channel normalization.
Converts raw records from any source into the canonical Channel shape.
"""
import re
import logging
from typing import Any

import pydantic

from tvmux.models.channel import Channel, Stream
from tvmux.services.exceptions import ValidationError

logger = logging.getLogger(__name__)

DEFAULT_NAME = "Unnamed Channel"
DEFAULT_CATEGORY = "General"
DEFAULT_LOGO = "https://raw.githubusercontent.com/Stremio/stremio-dls/master/dist/logo-big.png"

WHITESPACE_PATTERN = re.compile(r"\s+")


def slugify(source_name: str) -> str:
    """Lower-case a source name and replace whitespace runs with dashes."""
    return WHITESPACE_PATTERN.sub("-", source_name.strip().lower())


def make_channel_id(source_name: str, native_id: Any, index: int) -> str:
    """
    Build a run-wide unique channel id.

    The source slug prefix keeps identical native ids from different sources
    apart; the positional index stands in when a source has no native ids.
    """
    suffix = native_id if native_id not in (None, "") else index
    return f"{slugify(source_name)}_{suffix}"


def _extract_categories(raw: dict) -> list[str]:
    categories = [c for c in (raw.get("categories") or []) if c]
    if categories:
        return categories

    group = raw.get("group")
    if group:
        groups = [g.strip() for g in group.split(";") if g.strip()]
        if groups:
            return groups

    return [DEFAULT_CATEGORY]


def _extract_streams(raw: dict) -> list[Stream]:
    if isinstance(raw.get("streams"), list):
        candidates = raw["streams"]
    else:
        # Playlist entries carry their own URL and header hints
        http = raw.get("http") or {}
        candidates = [{
            "url": raw.get("url"),
            "user_agent": http.get("user-agent"),
            "referrer": http.get("referrer"),
            "quality": raw.get("quality"),
        }]

    streams = []
    for candidate in candidates:
        if not isinstance(candidate, dict) or not isinstance(candidate.get("url"), str):
            continue
        url = candidate["url"].strip()
        if not url:
            continue
        streams.append(Stream(
            url=url,
            user_agent=candidate.get("user_agent") or None,
            referrer=candidate.get("referrer") or None,
            quality=candidate.get("quality") or None,
        ))
    return streams


def normalize(raw: dict, source_name: str, index: int) -> Channel:
    """
    Normalize a single raw record.

    Args:
        raw: Raw record from a source fetcher
        source_name: Name of the source that produced it
        index: Position of the record within its source

    Raises:
        ValidationError: if the record is malformed or has no stream with a URL.
    """
    channel_id = make_channel_id(source_name, raw.get("id"), index)

    try:
        streams = _extract_streams(raw)
        if not streams:
            raise ValidationError(f"Channel {channel_id} has no stream with a URL")
        return Channel(
            id=channel_id,
            name=raw.get("name") or raw.get("tvg_name") or DEFAULT_NAME,
            logo=raw.get("logo") or DEFAULT_LOGO,
            source_name=source_name,
            country=raw.get("country") or None,
            categories=_extract_categories(raw),
            streams=streams,
        )
    except pydantic.ValidationError as e:
        raise ValidationError(f"Channel {channel_id} is malformed: {e.error_count()} field errors") from e


def normalize_all(raw_entries: list[dict], source_name: str) -> list[Channel]:
    """Normalize every record of one source, skipping unusable ones."""
    channels = []
    skipped = 0
    for index, raw in enumerate(raw_entries):
        try:
            channels.append(normalize(raw, source_name, index))
        except ValidationError as e:
            skipped += 1
            logger.debug(f"Skipping entry from {source_name}: {e}")

    if skipped:
        logger.info(f"Skipped {skipped} entries without streams from {source_name}")
    return channels
