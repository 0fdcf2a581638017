"""
Hardened HTTP fetch helpers for upstream sources.

Every fetch enforces a timeout and a maximum response size, never follows
redirects, and only accepts 2xx responses.
"""
import json
import logging
from typing import Any

import httpx

from tvmux.services.exceptions import FetchError, ParseError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60.0
DEFAULT_MAX_BYTES = 50 * 1024 * 1024
CHUNK_SIZE = 64 * 1024


def build_client(timeout: float = DEFAULT_TIMEOUT) -> httpx.AsyncClient:
    """Create an AsyncClient with the fetch-phase hardening applied."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout),
        follow_redirects=False,
    )


async def fetch_bytes(
    client: httpx.AsyncClient,
    url: str,
    max_bytes: int = DEFAULT_MAX_BYTES,
) -> bytes:
    """
    Fetch a URL and return the raw body.

    Raises:
        FetchError: on transport errors, timeouts, non-2xx responses
            (redirects included) or bodies larger than max_bytes.
    """
    try:
        async with client.stream("GET", url, follow_redirects=False) as response:
            if not 200 <= response.status_code < 300:
                raise FetchError(f"GET {url} returned HTTP {response.status_code}")

            declared = response.headers.get("content-length")
            if declared and declared.isdigit() and int(declared) > max_bytes:
                raise FetchError(
                    f"GET {url} declared {declared} bytes, limit is {max_bytes}"
                )

            body = bytearray()
            async for chunk in response.aiter_bytes(chunk_size=CHUNK_SIZE):
                body.extend(chunk)
                if len(body) > max_bytes:
                    raise FetchError(f"GET {url} exceeded {max_bytes} bytes")
    except httpx.TimeoutException as e:
        raise FetchError(f"GET {url} timed out") from e
    except httpx.HTTPError as e:
        raise FetchError(f"GET {url} failed: {e}") from e

    logger.debug(f"Fetched {len(body)} bytes from {url}")
    return bytes(body)


async def fetch_json(
    client: httpx.AsyncClient,
    url: str,
    max_bytes: int = DEFAULT_MAX_BYTES,
) -> Any:
    """Fetch and decode a JSON document."""
    body = await fetch_bytes(client, url, max_bytes)
    try:
        return json.loads(body)
    except ValueError as e:
        raise ParseError(f"Invalid JSON from {url}: {e}") from e


async def fetch_text(
    client: httpx.AsyncClient,
    url: str,
    max_bytes: int = DEFAULT_MAX_BYTES,
) -> str:
    """
    Fetch a textual document.

    Raises:
        ParseError: if the body is not valid UTF-8 text.
    """
    body = await fetch_bytes(client, url, max_bytes)
    if b"\x00" in body:
        raise ParseError(f"Non-textual content from {url}")
    try:
        return body.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise ParseError(f"Non-textual content from {url}") from e
