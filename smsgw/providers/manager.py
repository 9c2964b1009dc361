"""Registry of SMS providers selected by configuration."""

from __future__ import annotations

from collections.abc import Sequence

from smsgw.logging import logger
from smsgw.providers.base import OutboundMessage, SMSProvider
from smsgw.services.exceptions import SendFailed


class ProviderManager:
    def __init__(self, default_provider: str) -> None:
        self.default_provider = default_provider
        self._providers: dict[str, SMSProvider] = {}

    def register(self, provider: SMSProvider) -> None:
        self._providers[provider.name] = provider

    def get(self, name: str) -> SMSProvider:
        try:
            return self._providers[name]
        except KeyError:
            raise SendFailed(f"Provider {name} not found.") from None

    async def send(self, messages: Sequence[OutboundMessage]) -> None:
        if not messages:
            return
        provider = self.get(self.default_provider)
        logger.info("sms_dispatch", provider=provider.name, messages=len(messages))
        await provider.send(messages)


__all__ = ["ProviderManager"]
