"""Telegram sending helpers."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence

from aiogram.exceptions import TelegramAPIError
from aiogram.types import Message

from smsgw.logging import logger


async def send_chunks(message: Message, chunks: Sequence[str], *, delay: float = 0.0) -> int:
    """Send ``chunks`` in order as replies to ``message``; returns how many were delivered.

    Delivery errors are logged and not retried.
    """

    delivered = 0
    for index, chunk in enumerate(chunks):
        if index and delay:
            await asyncio.sleep(delay)
        try:
            await message.answer(chunk, parse_mode=None)
        except TelegramAPIError as exc:
            logger.error(
                "telegram_send_failed",
                chat_id=message.chat.id,
                part=index + 1,
                parts=len(chunks),
                error=str(exc),
            )
            continue
        delivered += 1
    return delivered


__all__ = ["send_chunks"]
