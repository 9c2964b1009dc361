"""Tests for inbound SMS processing end to end with fake content sources."""

from __future__ import annotations

from contextlib import asynccontextmanager
from types import SimpleNamespace

import pytest
from sqlalchemy.exc import OperationalError

from smsgw.domain.models import InboundSMS
from smsgw.providers import ProviderManager
from smsgw.services.exceptions import (
    FetchFailed,
    QuotaStoreUnavailable,
    SendFailed,
    SubscriptionError,
)
from smsgw.services.gateway import GatewayService
from smsgw.services.sms import SMSService
from smsgw.services.subscriptions import SubscriptionService
from smsgw.utils.segments import reassemble


class FakeFetchers:
    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple]] = []
        self.fail = False
        self.markdown = SimpleNamespace(fetch=self._make("markdown", "# Page\n" + "body " * 150))
        self.tweets = SimpleNamespace(fetch=self._make("tweets", "- tweet"))
        self.search = SimpleNamespace(search=self._make("search", "- result"))
        self.wikipedia = SimpleNamespace(summary=self._make("wikipedia", "Ankara is a city."))
        self.weather = SimpleNamespace(forecast=self._make("weather", "Istanbul:\n+21C"))

    def _make(self, name: str, text: str):
        async def _fetch(*args):
            self.calls.append((name, args))
            if self.fail:
                raise FetchFailed(f"{name} down")
            return text

        return _fetch


class RecordingProvider:
    name = "Verimor"

    def __init__(self, fail: bool = False) -> None:
        self.batches = []
        self.fail = fail

    async def send(self, messages):
        if self.fail:
            raise SendFailed("provider down")
        self.batches.append(list(messages))



class LockedDatabase:
    @asynccontextmanager
    async def session(self):
        raise OperationalError("SELECT 1", {}, Exception("database is locked"))
        yield


@pytest.fixture
def fetchers() -> FakeFetchers:
    return FakeFetchers()


@pytest.fixture
def provider() -> RecordingProvider:
    return RecordingProvider()


@pytest.fixture
def gateway(database, tracker, settings, fetchers, provider, clock) -> GatewayService:
    manager = ProviderManager("Verimor")
    manager.register(provider)
    return GatewayService(
        tracker=tracker,
        subscriptions=SubscriptionService(database, tracker, settings.subscriptions),
        fetchers=fetchers,
        sms=SMSService(manager, settings.sms, clock=clock),
        settings=settings,
    )


def _text(messages) -> str:
    return reassemble(m.msg for m in messages)


@pytest.mark.asyncio
async def test_url_request_is_encoded_and_segmented(gateway, fetchers):
    messages = await gateway.handle_inbound("+905551112233", "https://example.com")

    assert len(messages) == 2
    assert messages[0].msg.startswith("GW1|")
    assert _text(messages).startswith("# Page")
    assert fetchers.calls == [("markdown", ("https://example.com",))]


@pytest.mark.asyncio
async def test_wiki_passes_language(gateway, fetchers):
    await gateway.handle_inbound("1", "wiki tr Ankara")

    assert fetchers.calls == [("wikipedia", ("Ankara", "tr"))]


@pytest.mark.asyncio
async def test_twitter_uses_sms_tweet_count(gateway, fetchers, settings):
    await gateway.handle_inbound("1", "twitter user ooguz")

    assert fetchers.calls == [("tweets", ("ooguz", settings.content.sms_tweet_count))]


@pytest.mark.asyncio
async def test_weather_reply_is_plain(gateway):
    messages = await gateway.handle_inbound("1", "weather Istanbul")

    assert [m.msg for m in messages] == ["Istanbul:\n+21C"]


@pytest.mark.asyncio
async def test_sixth_request_gets_limit_notice(gateway, fetchers):
    for _ in range(5):
        assert await gateway.handle_inbound("1", "websearch python")

    notice = await gateway.handle_inbound("1", "websearch python")

    assert len(fetchers.calls) == 5
    text = _text(notice)
    assert text.startswith("!:")
    assert "5 messages per hour" in text


@pytest.mark.asyncio
async def test_unknown_command_consumes_quota_and_replies_nothing(gateway, tracker):
    assert await gateway.handle_inbound("1", "hello there") == []

    record = await tracker.get_record("1")
    assert record.count_in_window == 1


@pytest.mark.asyncio
async def test_fetch_failure_replies_nothing(gateway, fetchers):
    fetchers.fail = True

    assert await gateway.handle_inbound("1", "websearch python") == []


@pytest.mark.asyncio
async def test_missing_identity_is_ignored(gateway, fetchers):
    assert await gateway.handle_inbound("  ", "weather Istanbul") == []
    assert fetchers.calls == []


@pytest.mark.asyncio
async def test_store_failure_fails_closed(gateway, fetchers, monkeypatch):
    async def broken(identity):
        raise QuotaStoreUnavailable("down")

    monkeypatch.setattr(gateway.tracker, "check_and_record", broken)

    assert await gateway.handle_inbound("1", "weather Istanbul") == []
    assert fetchers.calls == []


@pytest.mark.asyncio
async def test_subscribe_links_identity_without_consuming_quota(gateway, tracker):
    await gateway.subscriptions.save_subscription("sub_1", "a@b.c")

    reply = await gateway.handle_inbound("+905551112233", "subscribe a@b.c")

    assert "20 messages per hour" in _text(reply)
    record = await tracker.get_record("+905551112233")
    assert record.hourly_limit == 20
    assert record.count_in_window == 0


@pytest.mark.asyncio
async def test_subscribe_unknown_email_replies_with_notice(gateway):
    reply = await gateway.handle_inbound("1", "subscribe nobody@example.com")

    assert "nobody@example.com" in _text(reply)


@pytest.mark.asyncio
async def test_process_batch_delivers_per_sender(gateway, provider):
    payloads = [
        InboundSMS(source_addr="1", content="weather Istanbul"),
        InboundSMS(source_addr="2", content="hello"),
        InboundSMS(source_addr="3", content="wiki en Ankara"),
    ]

    messages = await gateway.process_batch(payloads)

    assert len(messages) == 2
    assert [batch[0].dest for batch in provider.batches] == ["1", "3"]


@pytest.mark.asyncio
async def test_process_batch_without_delivery(gateway, provider):
    messages = await gateway.process_batch(
        [InboundSMS(source_addr="1", content="weather Istanbul")], deliver=False
    )

    assert len(messages) == 1
    assert provider.batches == []


@pytest.mark.asyncio
async def test_send_failure_does_not_abort_batch(gateway, provider):
    provider.fail = True

    messages = await gateway.process_batch(
        [
            InboundSMS(source_addr="1", content="weather Istanbul"),
            InboundSMS(source_addr="2", content="weather Ankara"),
        ]
    )

    assert len(messages) == 2


@pytest.mark.asyncio
async def test_subscribe_store_failure_replies_nothing(gateway):
    gateway.subscriptions.database = LockedDatabase()

    assert await gateway.handle_inbound("1", "subscribe a@b.c") == []


@pytest.mark.asyncio
async def test_subscription_store_failure_does_not_abort_batch(gateway, provider):
    gateway.subscriptions.database = LockedDatabase()

    messages = await gateway.process_batch(
        [
            InboundSMS(source_addr="1", content="subscribe a@b.c"),
            InboundSMS(source_addr="2", content="weather Istanbul"),
        ]
    )

    assert [m.dest for m in messages] == ["2"]
    assert [batch[0].dest for batch in provider.batches] == ["2"]


@pytest.mark.asyncio
async def test_failing_item_is_skipped_in_batch(gateway, provider, monkeypatch):
    async def rejected(identity, email):
        raise SubscriptionError("unexpected")

    monkeypatch.setattr(gateway.subscriptions, "link_identity", rejected)

    messages = await gateway.process_batch(
        [
            InboundSMS(source_addr="1", content="subscribe a@b.c"),
            InboundSMS(source_addr="2", content="weather Istanbul"),
        ]
    )

    assert [m.dest for m in messages] == ["2"]
