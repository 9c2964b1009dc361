"""Inbound SMS processing: quota gate, content fetch, segmentation."""

from __future__ import annotations

from collections.abc import Iterable

from smsgw.config import GatewaySettings
from smsgw.domain.models import InboundSMS
from smsgw.i18n import I18nService
from smsgw.logging import logger
from smsgw.providers import OutboundMessage
from smsgw.services.commands import Command, parse_command
from smsgw.services.content import ContentFetchers
from smsgw.services.exceptions import (
    FetchFailed,
    QuotaStoreUnavailable,
    SendFailed,
    ServiceError,
    SubscriptionNotFound,
    SubscriptionStoreUnavailable,
)
from smsgw.services.quota import QuotaTracker
from smsgw.services.sms import SMSService
from smsgw.services.subscriptions import ACTIVE_STATUS, SubscriptionService

# Commands whose replies go out without the GW header
PLAIN_COMMANDS = frozenset({"weather"})


async def fetch_command_content(
    fetchers: ContentFetchers, command: Command, *, tweet_count: int
) -> str:
    """Resolve a content command to text; raises ``FetchFailed``."""

    if command.kind == "url":
        return await fetchers.markdown.fetch(command.argument)
    if command.kind == "twitter":
        return await fetchers.tweets.fetch(command.argument, tweet_count)
    if command.kind == "search":
        return await fetchers.search.search(command.argument)
    if command.kind == "wiki":
        return await fetchers.wikipedia.summary(command.argument, command.extra.get("lang", "en"))
    if command.kind == "weather":
        return await fetchers.weather.forecast(command.argument)
    raise FetchFailed(f"Command {command.kind!r} has no content source.")


class GatewayService:
    def __init__(
        self,
        *,
        tracker: QuotaTracker,
        subscriptions: SubscriptionService,
        fetchers: ContentFetchers,
        sms: SMSService,
        settings: GatewaySettings,
        i18n: I18nService | None = None,
    ) -> None:
        self.tracker = tracker
        self.subscriptions = subscriptions
        self.fetchers = fetchers
        self.sms = sms
        self.settings = settings
        self.i18n = i18n or I18nService(default_locale=settings.default_language)

    async def handle_inbound(self, identity: str, content: str) -> list[OutboundMessage]:
        """Return the outbound messages answering one inbound SMS."""

        identity = (identity or "").strip()
        if not identity:
            logger.warning("inbound_missing_source")
            return []

        command = parse_command(content)
        if command is not None and command.kind == "subscribe":
            return await self._subscribe(identity, command.argument)

        # Quota is consumed before the fetch, so failed fetches still count.
        try:
            decision = await self.tracker.check_and_record(identity)
        except QuotaStoreUnavailable:
            logger.warning("inbound_declined_store_unavailable", identity=identity)
            return []

        if not decision.allowed:
            notice = self.i18n.gettext(
                "limit.exceeded",
                limit=decision.limit,
                support_url=self.settings.subscriptions.support_url,
            )
            return self.sms.prepare(notice, identity)

        if command is None:
            logger.info("inbound_unknown_command", identity=identity)
            return []

        try:
            text = await fetch_command_content(
                self.fetchers,
                command,
                tweet_count=self.settings.content.sms_tweet_count,
            )
        except FetchFailed as exc:
            logger.warning(
                "inbound_fetch_failed",
                identity=identity,
                command=command.kind,
                error=str(exc),
            )
            return []

        return self.sms.prepare(text, identity, encode=command.kind not in PLAIN_COMMANDS)

    async def process_batch(
        self, payloads: Iterable[InboundSMS], *, deliver: bool = True
    ) -> list[OutboundMessage]:
        """Answer every inbound item; one failing item never aborts the batch."""

        collected: list[OutboundMessage] = []
        for sms in payloads:
            try:
                messages = await self.handle_inbound(sms.source_addr, sms.content)
            except ServiceError as exc:
                logger.error(
                    "inbound_item_failed",
                    source=sms.source_addr,
                    error_type=type(exc).__name__,
                    error=str(exc),
                )
                continue
            collected.extend(messages)
            if not deliver or not messages:
                continue
            try:
                await self.sms.send(messages)
            except SendFailed as exc:
                logger.error(
                    "sms_send_failed",
                    dest=sms.source_addr,
                    messages=len(messages),
                    error=str(exc),
                )
        return collected

    async def _subscribe(self, identity: str, email: str) -> list[OutboundMessage]:
        try:
            await self.subscriptions.link_identity(identity, email)
        except SubscriptionNotFound:
            notice = self.i18n.gettext(
                "subscribe.not_found",
                email=email,
                support_url=self.settings.subscriptions.support_url,
            )
            return self.sms.prepare(notice, identity)
        except (QuotaStoreUnavailable, SubscriptionStoreUnavailable):
            logger.warning("subscribe_declined_store_unavailable", identity=identity)
            return []

        notice = self.i18n.gettext(
            "subscribe.success",
            limit=self.subscriptions.tier_for(ACTIVE_STATUS),
        )
        return self.sms.prepare(notice, identity)


__all__ = ["GatewayService", "PLAIN_COMMANDS", "fetch_command_content"]
