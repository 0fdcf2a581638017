"""
Tests for the cache store and the catalog publisher.
"""
import pytest

from conftest import make_channel
from tvmux.models.channel import StreamHealth
from tvmux.services.cache import CacheService
from tvmux.services.exceptions import CacheWriteError
from tvmux.services.publisher import (
    AVAILABLE_CATALOGS_KEY,
    MASTER_CHANNEL_LIST_KEY,
    CachePublisher,
    partition,
)


def verified(channel):
    for stream in channel.streams:
        stream.health = StreamHealth.VERIFIED
    return channel


class FailingCache(CacheService):
    """Cache whose writes to selected keys fail."""

    def __init__(self, db_path, fail_keys=(), fail_multi=False):
        super().__init__(db_path)
        self.fail_keys = set(fail_keys)
        self.fail_multi = fail_multi

    async def set(self, key, value, ttl_seconds=None):
        if key in self.fail_keys:
            raise OSError(f"write refused for {key}")
        await super().set(key, value, ttl_seconds)

    async def multi_set(self, items, ttl_seconds=None):
        if self.fail_multi:
            raise OSError("batch write refused")
        await super().multi_set(items, ttl_seconds)


class TestCacheService:

    @pytest.mark.asyncio
    async def test_set_and_get(self, cache):
        await cache.set("k", {"a": [1, 2]})
        assert await cache.get("k") == {"a": [1, 2]}
        assert await cache.get("missing") is None

    @pytest.mark.asyncio
    async def test_set_replaces_existing_value(self, cache):
        await cache.set("k", 1)
        await cache.set("k", 2)
        assert await cache.get("k") == 2

    @pytest.mark.asyncio
    async def test_multi_set(self, cache):
        await cache.multi_set({"a": 1, "b": "two"})
        assert await cache.get("a") == 1
        assert await cache.get("b") == "two"
        assert await cache.keys() == ["a", "b"]

    @pytest.mark.asyncio
    async def test_multi_set_empty_is_noop(self, cache):
        await cache.multi_set({})
        assert await cache.keys() == []

    @pytest.mark.asyncio
    async def test_expired_values_are_hidden_and_cleared(self, cache):
        await cache.set("old", "x", ttl_seconds=-10)
        await cache.set("fresh", "y")

        assert await cache.get("old") is None
        assert await cache.clear_expired() == 1
        assert await cache.keys() == ["fresh"]


class TestPartition:

    def test_playlist_channels_by_source_directory_by_country(self):
        channels = [
            make_channel("iptv-org_1", "http://a", country="US"),
            make_channel("iptv-org_2", "http://b", country="Canada"),
            make_channel("mylist_0", "http://c", source_name="MyList", country=None),
            make_channel("iptv-org_3", "http://d", country=None),
        ]

        catalogs = partition(channels, {"MyList"})

        assert {name: [c.id for c in members] for name, members in catalogs.items()} == {
            "US": ["iptv-org_1"],
            "Canada": ["iptv-org_2"],
            "MyList": ["mylist_0"],
        }

    def test_no_empty_catalogs(self):
        assert partition([], {"MyList"}) == {}


class TestCachePublisher:

    @pytest.mark.asyncio
    async def test_publish_writes_all_keys(self, cache):
        channels = [
            verified(make_channel("iptv-org_1", "http://a", country="US")),
            verified(make_channel("mylist_0", "http://c", source_name="MyList", country=None)),
        ]

        index = await CachePublisher(cache).publish(channels, {"MyList"})

        assert index == ["MyList", "US"]
        assert await cache.get(AVAILABLE_CATALOGS_KEY) == ["MyList", "US"]

        master = await cache.get(MASTER_CHANNEL_LIST_KEY)
        assert [c["id"] for c in master] == ["iptv-org_1", "mylist_0"]

        channel = await cache.get("channel_iptv-org_1")
        assert channel["name"] == "Channel iptv-org_1"
        assert channel["streams"][0]["health"] == "verified"

        assert [c["id"] for c in await cache.get("catalog_US")] == ["iptv-org_1"]
        assert [c["id"] for c in await cache.get("catalog_MyList")] == ["mylist_0"]

    @pytest.mark.asyncio
    async def test_catalog_index_matches_non_empty_catalogs(self, cache):
        channels = [
            verified(make_channel(f"iptv-org_{i}", f"http://{i}", country=country))
            for i, country in enumerate(["US", "US", "France", "Brazil"])
        ]

        await CachePublisher(cache).publish(channels, set())

        index = await cache.get(AVAILABLE_CATALOGS_KEY)
        assert index == ["Brazil", "France", "US"]
        for name in index:
            assert await cache.get(f"catalog_{name}")
        catalog_keys = [k for k in await cache.keys() if k.startswith("catalog_")]
        assert sorted(catalog_keys) == [f"catalog_{name}" for name in index]

    @pytest.mark.asyncio
    async def test_single_failed_set_fails_publish(self, tmp_path):
        cache = FailingCache(str(tmp_path / "fail.db"), fail_keys={"catalog_US"})
        await cache.initialize()

        with pytest.raises(CacheWriteError) as exc_info:
            await CachePublisher(cache).publish([verified(make_channel("iptv-org_1", "http://a"))], set())

        assert exc_info.value.failed_keys == ["catalog_US"]

    @pytest.mark.asyncio
    async def test_failed_batch_write_fails_publish(self, tmp_path):
        cache = FailingCache(str(tmp_path / "fail.db"), fail_multi=True)
        await cache.initialize()

        with pytest.raises(CacheWriteError, match="batch write refused"):
            await CachePublisher(cache).publish([verified(make_channel("iptv-org_1", "http://a"))], set())
