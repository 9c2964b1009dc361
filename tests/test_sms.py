"""Tests for outbound SMS preparation and the provider transport."""

from __future__ import annotations

import base64
from datetime import datetime, timezone

import httpx
import pytest
from pydantic import SecretStr

from smsgw.config import SMSSettings
from smsgw.providers import OutboundMessage, ProviderManager, VerimorProvider, build_send_request
from smsgw.services.exceptions import SendFailed
from smsgw.services.sms import SMSService


def _clock():
    return datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class RecordingProvider:
    name = "Verimor"

    def __init__(self) -> None:
        self.batches: list[list[OutboundMessage]] = []

    async def send(self, messages):
        self.batches.append(list(messages))


class DummyPostClient:
    def __init__(self, response: httpx.Response | Exception) -> None:
        self.response = response
        self.calls: list[dict] = []

    async def post(self, url, **kwargs):
        self.calls.append({"url": url, **kwargs})
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


def test_prepare_encodes_segments_with_ids():
    service = SMSService(ProviderManager("Verimor"), SMSSettings(segment_length=10), clock=_clock)

    messages = service.prepare("a" * 25, "+905551112233")

    stamp = int(_clock().timestamp())
    assert [m.id for m in messages] == [f"{stamp}_0", f"{stamp}_1", f"{stamp}_2"]
    assert all(m.dest == "+905551112233" for m in messages)
    assert messages[2].msg == "GW3|" + base64.b64encode(b"aaaaa").decode()


def test_prepare_plain_skips_header():
    service = SMSService(ProviderManager("Verimor"), SMSSettings(segment_length=10), clock=_clock)

    messages = service.prepare("Istanbul: +21C", "1", encode=False)

    assert [m.msg for m in messages] == ["Istanbul: +21C"]


def test_prepare_empty_content_yields_nothing():
    service = SMSService(ProviderManager("Verimor"), SMSSettings(), clock=_clock)

    assert service.prepare("", "1") == []


@pytest.mark.asyncio
async def test_manager_routes_to_default_provider():
    provider = RecordingProvider()
    manager = ProviderManager("Verimor")
    manager.register(provider)
    message = OutboundMessage(msg="hi", dest="1", id="1_0")

    await manager.send([message])
    await manager.send([])

    assert provider.batches == [[message]]


@pytest.mark.asyncio
async def test_manager_unknown_provider_fails():
    manager = ProviderManager("Missing")

    with pytest.raises(SendFailed):
        await manager.send([OutboundMessage(msg="hi", dest="1", id="1_0")])


def test_build_send_request_shape():
    settings = SMSSettings(
        username="user",
        password=SecretStr("secret"),
        source_addr="850",
    )
    message = OutboundMessage(msg="GW1|aGk=", dest="+905551112233", id="1_0")

    body = build_send_request(settings, [message])

    assert body == {
        "username": "user",
        "password": "secret",
        "source_addr": "850",
        "valid_for": "48:00",
        "datacoding": "0",
        "messages": [{"msg": "GW1|aGk=", "dest": "+905551112233", "id": "1_0"}],
    }


@pytest.mark.asyncio
async def test_verimor_posts_json():
    client = DummyPostClient(httpx.Response(200, text="12345"))
    provider = VerimorProvider(client, SMSSettings(username="user"))

    await provider.send([OutboundMessage(msg="hi", dest="1", id="1_0")])

    assert client.calls[0]["json"]["username"] == "user"
    assert client.calls[0]["url"] == str(SMSSettings().api_url)


@pytest.mark.asyncio
async def test_verimor_non_ok_status_fails():
    client = DummyPostClient(httpx.Response(400, text="INVALID_SOURCE_ADDRESS"))
    provider = VerimorProvider(client, SMSSettings())

    with pytest.raises(SendFailed) as excinfo:
        await provider.send([OutboundMessage(msg="hi", dest="1", id="1_0")])
    assert "INVALID_SOURCE_ADDRESS" in str(excinfo.value)


@pytest.mark.asyncio
async def test_verimor_network_error_fails():
    error = httpx.ConnectError("refused", request=httpx.Request("POST", "https://x"))
    provider = VerimorProvider(DummyPostClient(error), SMSSettings())

    with pytest.raises(SendFailed):
        await provider.send([OutboundMessage(msg="hi", dest="1", id="1_0")])
