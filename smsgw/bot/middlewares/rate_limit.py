"""Enforce hourly quotas on content requests."""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict

from aiogram import BaseMiddleware
from aiogram.types import Message, TelegramObject

from smsgw.bot.utils.messages import split_for_telegram
from smsgw.bot.utils.telegram import send_chunks
from smsgw.container import Container
from smsgw.logging import logger
from smsgw.services.exceptions import QuotaStoreUnavailable

# Minimum number of arguments before a command counts as a content request
CONTENT_COMMANDS = {"url": 1, "twitter": 1, "search": 1, "wiki": 2, "weather": 1}


class QuotaMiddleware(BaseMiddleware):
    def __init__(self, container: Container) -> None:
        self.container = container

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any],
    ) -> Any:
        if not isinstance(event, Message) or event.chat is None:
            return await handler(event, data)
        if not self.is_content_request(event.text):
            return await handler(event, data)

        identity = str(event.chat.id)
        try:
            decision = await self.container.tracker.check_and_record(identity)
        except QuotaStoreUnavailable:
            logger.warning("telegram_declined_store_unavailable", identity=identity)
            return None

        if not decision.allowed:
            notice = self.container.i18n.gettext(
                "limit.exceeded",
                locale=self._locale(event),
                limit=decision.limit,
                support_url=self.container.settings.subscriptions.support_url,
            )
            chunks = split_for_telegram(notice, self.container.settings.telegram.chunk_length)
            await send_chunks(event, chunks)
            return None

        data["quota"] = decision
        return await handler(event, data)

    @staticmethod
    def is_content_request(text: str | None) -> bool:
        """Bare URLs and content commands with their arguments consume quota."""

        text = (text or "").strip()
        if text.startswith(("http://", "https://")):
            return True
        if not text.startswith("/"):
            return False
        head, _, args = text.partition(" ")
        name = head[1:].split("@", 1)[0].lower()
        required = CONTENT_COMMANDS.get(name)
        if required is None:
            return False
        return len(args.split(maxsplit=required - 1)) >= required

    def _locale(self, event: Message) -> str:
        user = getattr(event, "from_user", None)
        return getattr(user, "language_code", None) or self.container.settings.default_language


__all__ = ["CONTENT_COMMANDS", "QuotaMiddleware"]
