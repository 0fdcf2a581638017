"""
Tests for webhook alerting.
"""
import json

import httpx
import pytest

from conftest import make_client
from tvmux.services.alerter import Alerter


def raised(error):
    try:
        raise error
    except Exception as e:
        return e


class TestAlerter:

    @pytest.mark.asyncio
    async def test_posts_embed_payload(self, settings):
        settings.alert_webhook_url = "https://hooks.test/alert"
        received = []

        def handler(request):
            received.append(json.loads(request.content))
            return httpx.Response(204)

        async with make_client(handler) as client:
            sent = await Alerter(settings, client).notify("MyList", raised(ValueError("bad playlist")))

        assert sent is True
        embed = received[0]["embeds"][0]
        fields = {f["name"]: f["value"] for f in embed["fields"]}
        assert fields["Source"] == "MyList"
        assert "bad playlist" in fields["Error Message"]
        assert "ValueError" in fields["Error Stack"]

    @pytest.mark.asyncio
    async def test_unconfigured_webhook_is_skipped(self, settings):
        def handler(request):
            raise AssertionError("no request expected")

        async with make_client(handler) as client:
            assert await Alerter(settings, client).notify("MyList", RuntimeError("x")) is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("failure", ["status", "connect"])
    async def test_webhook_failure_never_raises(self, settings, failure):
        settings.alert_webhook_url = "https://hooks.test/alert"

        def handler(request):
            if failure == "connect":
                raise httpx.ConnectError("down", request=request)
            return httpx.Response(500)

        async with make_client(handler) as client:
            assert await Alerter(settings, client).notify("MyList", RuntimeError("x")) is False
