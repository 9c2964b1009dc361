"""Prepare and deliver outbound SMS batches."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from smsgw.config import SMSSettings
from smsgw.logging import logger
from smsgw.providers import OutboundMessage, ProviderManager, build_send_request
from smsgw.services.quota import Clock
from smsgw.utils.datetime import utc_now
from smsgw.utils.segments import split_and_encode


class SMSService:
    def __init__(
        self,
        manager: ProviderManager,
        settings: SMSSettings | None = None,
        *,
        clock: Clock = utc_now,
    ) -> None:
        self.manager = manager
        self.settings = settings or SMSSettings()
        self._clock = clock

    def prepare(self, content: str, dest: str, *, encode: bool = True) -> list[OutboundMessage]:
        """Segment ``content`` for ``dest``; plain content goes out as one message."""

        if encode:
            parts = split_and_encode(content, self.settings.segment_length)
        else:
            parts = [content] if content else []
        stamp = int(self._clock().timestamp())
        return [
            OutboundMessage(msg=part, dest=dest, id=f"{stamp}_{index}")
            for index, part in enumerate(parts)
        ]

    async def send(self, messages: Sequence[OutboundMessage]) -> None:
        await self.manager.send(messages)

    def build_request(self, messages: Sequence[OutboundMessage]) -> dict[str, Any]:
        request = build_send_request(self.settings, messages)
        logger.debug("sms_request_built", messages=len(messages))
        return request


__all__ = ["SMSService"]
