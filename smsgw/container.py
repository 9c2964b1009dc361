"""Explicit wiring of gateway services."""

from __future__ import annotations

from dataclasses import dataclass

import httpx

from smsgw.config import GatewaySettings
from smsgw.i18n import I18nService
from smsgw.providers import ProviderManager, VerimorProvider
from smsgw.services.content import ContentFetchers
from smsgw.services.gateway import GatewayService
from smsgw.services.quota import QuotaTracker, SessionSource
from smsgw.services.sms import SMSService
from smsgw.services.subscriptions import SubscriptionService
from smsgw.services.webhooks import WebhookService, WebhookVerifier


@dataclass(slots=True)
class Container:
    settings: GatewaySettings
    database: SessionSource
    tracker: QuotaTracker
    subscriptions: SubscriptionService
    fetchers: ContentFetchers
    sms: SMSService
    gateway: GatewayService
    i18n: I18nService
    webhooks: WebhookService


def build_container(
    settings: GatewaySettings,
    database: SessionSource,
    http_client: httpx.AsyncClient,
    *,
    tracker: QuotaTracker | None = None,
    providers: ProviderManager | None = None,
    webhook_verifier: WebhookVerifier | None = None,
) -> Container:
    tracker = tracker or QuotaTracker(database, settings.quota)
    if providers is None:
        providers = ProviderManager(settings.sms.provider)
        providers.register(VerimorProvider(http_client, settings.sms))

    i18n = I18nService(default_locale=settings.default_language)
    subscriptions = SubscriptionService(database, tracker, settings.subscriptions)
    fetchers = ContentFetchers.build(http_client, settings.content)
    sms = SMSService(providers, settings.sms)
    gateway = GatewayService(
        tracker=tracker,
        subscriptions=subscriptions,
        fetchers=fetchers,
        sms=sms,
        settings=settings,
        i18n=i18n,
    )
    return Container(
        settings=settings,
        database=database,
        tracker=tracker,
        subscriptions=subscriptions,
        fetchers=fetchers,
        sms=sms,
        gateway=gateway,
        i18n=i18n,
        webhooks=WebhookService(subscriptions, webhook_verifier),
    )


__all__ = ["Container", "build_container"]
