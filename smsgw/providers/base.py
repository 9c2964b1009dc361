"""Transport-level types shared by SMS providers."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from pydantic import BaseModel


class OutboundMessage(BaseModel):
    msg: str
    dest: str
    id: str


class SMSProvider(Protocol):
    name: str

    async def send(self, messages: Sequence[OutboundMessage]) -> None: ...


__all__ = ["OutboundMessage", "SMSProvider"]
