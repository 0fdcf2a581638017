"""
Pytest configuration and fixtures for TVMux tests.
"""
import os
import tempfile

# Settings are cached on first use, so the environment is prepared before any
# tvmux import.
os.environ.setdefault("TVMUX_DATABASE_PATH", os.path.join(tempfile.mkdtemp(), "tvmux_test.db"))
os.environ.setdefault("TVMUX_REFRESH_RATE_LIMIT_PER_MINUTE", "1000")
os.environ.pop("TVMUX_ALERT_WEBHOOK_URL", None)
os.environ.pop("TVMUX_CUSTOM_M3U_SOURCES", None)

import httpx
import pytest
import pytest_asyncio

from tvmux.config import Settings
from tvmux.models.channel import Channel, Stream
from tvmux.services.cache import CacheService


API_BASE = "https://directory.test/api"


def make_client(handler) -> httpx.AsyncClient:
    """AsyncClient whose requests are answered by handler(request)."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=False)


def make_channel(channel_id: str, *urls: str, source_name: str = "iptv-org", country: str = "US") -> Channel:
    return Channel(
        id=channel_id,
        name=f"Channel {channel_id}",
        logo="https://example.com/logo.png",
        source_name=source_name,
        country=country,
        categories=["General"],
        streams=[Stream(url=url) for url in urls],
    )


class RecordingAlerter:
    """Alerter double that remembers what it was asked to send."""

    def __init__(self):
        self.alerts = []

    async def notify(self, source_name, error):
        self.alerts.append((source_name, error))
        return True

    @property
    def sources(self):
        return [name for name, _ in self.alerts]


@pytest.fixture
def settings(tmp_path):
    """Settings isolated from the environment."""
    return Settings(
        _env_file=None,
        iptv_api_base=API_BASE,
        database_path=str(tmp_path / "cache.db"),
        probe_batch_size=2,
        probe_timeout_seconds=1.0,
        alert_webhook_url=None,
    )


@pytest_asyncio.fixture
async def cache(tmp_path):
    """Initialized cache backed by a temporary SQLite file."""
    service = CacheService(str(tmp_path / "cache.db"))
    await service.initialize()
    return service


@pytest.fixture
def alerter():
    return RecordingAlerter()


@pytest.fixture
def sample_m3u_content():
    """Sample M3U content for testing."""
    return """#EXTM3U
#EXTINF:-1 tvg-id="ABC.us@East" tvg-logo="https://example.com/abc.png" group-title="News;Local",ABC East
http://example.com/abc-east.m3u8
#EXTINF:-1 tvg-id="CNN.us" group-title="News",CNN (1080p)
#EXTVLCOPT:http-user-agent=TestAgent/1.0
#EXTVLCOPT:http-referrer=https://cnn.example.com/
http://example.com/cnn.m3u8
#EXTINF:-1,Channel Without ID
http://example.com/no-id.m3u8
"""


@pytest.fixture
def directory_payloads():
    """Minimal iptv-org API responses keyed by endpoint path."""
    return {
        "/api/channels.json": [
            {"id": "1", "name": "One", "country": "US", "categories": ["news"], "logo": "https://example.com/1.png"},
            {"id": "2", "name": "Two", "country": "US", "categories": []},
            {"id": "3", "name": "Blocked", "country": "UK", "categories": []},
            {"id": "4", "name": "No Streams", "country": "UK", "categories": []},
        ],
        "/api/streams.json": [
            {"channel": "1", "url": "http://streams.test/1.m3u8", "quality": "720p"},
            {"channel": "2", "url": "http://streams.test/2.m3u8", "user_agent": "Agent/2"},
            {"channel": "3", "url": "http://streams.test/3.m3u8"},
            {"channel": None, "url": "http://streams.test/orphan.m3u8"},
        ],
        "/api/countries.json": [{"code": "US", "name": "US"}, {"code": "UK", "name": "United Kingdom"}],
        "/api/categories.json": [{"id": "news", "name": "News"}],
        "/api/blocklist.json": [{"channel": "3", "reason": "dmca"}],
    }


def json_handler(payloads: dict, status_overrides: dict | None = None):
    """Build a MockTransport handler serving JSON payloads by path."""
    status_overrides = status_overrides or {}

    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path in status_overrides:
            return httpx.Response(status_overrides[path])
        if path in payloads:
            return httpx.Response(200, json=payloads[path])
        return httpx.Response(404)

    return handler
