"""Telegram command handlers."""

from __future__ import annotations

from collections.abc import Awaitable, Callable

from aiogram import F, Router
from aiogram.filters import Command, CommandObject, CommandStart
from aiogram.types import Message

from smsgw.bot.utils.messages import paginate, split_for_telegram
from smsgw.bot.utils.telegram import send_chunks
from smsgw.container import Container
from smsgw.logging import logger
from smsgw.services.exceptions import (
    FetchFailed,
    QuotaStoreUnavailable,
    SubscriptionNotFound,
    SubscriptionStoreUnavailable,
)
from smsgw.services.subscriptions import ACTIVE_STATUS

router = Router()


def _locale(message: Message, container: Container) -> str:
    user = getattr(message, "from_user", None)
    return getattr(user, "language_code", None) or container.settings.default_language


async def _reply(
    message: Message, container: Container, text: str, *, page_header: str | None = None
) -> None:
    settings = container.settings.telegram
    chunks = split_for_telegram(text, settings.chunk_length)
    if not chunks:
        chunks = [container.i18n.gettext("message.empty", locale=_locale(message, container))]
    if page_header:
        chunks = paginate(chunks, page_header)
    await send_chunks(message, chunks, delay=settings.send_delay_seconds)


async def _reply_text(message: Message, container: Container, key: str, **kwargs) -> None:
    await _reply(
        message,
        container,
        container.i18n.gettext(key, locale=_locale(message, container), **kwargs),
    )


async def _reply_with_content(
    message: Message,
    container: Container,
    fetch: Callable[[], Awaitable[str]],
    *,
    kind: str,
    page_header: str | None = None,
) -> None:
    try:
        text = await fetch()
    except FetchFailed as exc:
        logger.warning("telegram_fetch_failed", chat_id=message.chat.id, command=kind, error=str(exc))
        await _reply_text(message, container, "fetch.failed", error=str(exc))
        return
    await _reply(message, container, text, page_header=page_header)


@router.message(CommandStart())
async def handle_start(message: Message, container: Container) -> None:
    await _reply_text(
        message,
        container,
        "start.greeting",
        support_url=container.settings.subscriptions.support_url,
    )


@router.message(Command("help"))
async def handle_help(message: Message, container: Container) -> None:
    await _reply_text(message, container, "help.commands")


@router.message(Command("url"))
async def handle_url(message: Message, command: CommandObject, container: Container) -> None:
    url = (command.args or "").strip()
    if not url:
        await _reply_text(message, container, "url.usage")
        return
    await _reply_with_content(
        message, container, lambda: container.fetchers.markdown.fetch(url), kind="url"
    )


@router.message(Command("twitter"))
async def handle_twitter(message: Message, command: CommandObject, container: Container) -> None:
    username = (command.args or "").strip()
    if not username:
        await _reply_text(message, container, "twitter.usage")
        return
    count = container.settings.content.telegram_tweet_count
    await _reply_with_content(
        message,
        container,
        lambda: container.fetchers.tweets.fetch(username, count),
        kind="twitter",
    )


@router.message(Command("search"))
async def handle_search(message: Message, command: CommandObject, container: Container) -> None:
    query = (command.args or "").strip()
    if not query:
        await _reply_text(message, container, "search.usage")
        return
    await _reply_with_content(
        message, container, lambda: container.fetchers.search.search(query), kind="search"
    )


@router.message(Command("wiki"))
async def handle_wiki(message: Message, command: CommandObject, container: Container) -> None:
    args = (command.args or "").split(maxsplit=1)
    if len(args) != 2:
        await _reply_text(message, container, "wiki.usage")
        return
    lang, query = args[0], args[1].strip()

    async def _fetch() -> str:
        summary = await container.fetchers.wikipedia.summary(query, lang)
        return f"Wikipedia Article: {query}\n\n{summary}"

    await _reply_with_content(
        message,
        container,
        _fetch,
        kind="wiki",
        page_header=container.i18n.gettext("wiki.page", locale=_locale(message, container)),
    )


@router.message(Command("weather"))
async def handle_weather(message: Message, command: CommandObject, container: Container) -> None:
    location = (command.args or "").strip()
    if not location:
        await _reply_text(message, container, "weather.usage")
        return
    await _reply_with_content(
        message, container, lambda: container.fetchers.weather.forecast(location), kind="weather"
    )


@router.message(Command("subscribe"))
async def handle_subscribe(message: Message, command: CommandObject, container: Container) -> None:
    email = (command.args or "").strip()
    if not email:
        await _reply_text(message, container, "subscribe.usage")
        return

    identity = str(message.chat.id)
    try:
        await container.subscriptions.link_identity(identity, email)
    except SubscriptionNotFound:
        await _reply_text(
            message,
            container,
            "subscribe.not_found",
            email=email,
            support_url=container.settings.subscriptions.support_url,
        )
        return
    except (QuotaStoreUnavailable, SubscriptionStoreUnavailable):
        logger.warning("telegram_subscribe_store_unavailable", identity=identity)
        return

    await _reply_text(
        message,
        container,
        "subscribe.success",
        limit=container.subscriptions.tier_for(ACTIVE_STATUS),
    )


@router.message(F.text.startswith("/"))
async def handle_unknown_command(message: Message, container: Container) -> None:
    await _reply_text(message, container, "command.unknown")


@router.message(F.text.regexp(r"^\s*https?://"))
async def handle_bare_url(message: Message, container: Container) -> None:
    url = message.text.strip()
    await _reply_with_content(
        message, container, lambda: container.fetchers.markdown.fetch(url), kind="url"
    )


@router.message(F.text)
async def handle_text(message: Message, container: Container) -> None:
    await _reply_text(message, container, "message.use_commands")


__all__ = ["router"]
