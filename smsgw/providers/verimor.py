"""Verimor HTTP SMS API."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import httpx

from smsgw.config import SMSSettings
from smsgw.logging import logger
from smsgw.providers.base import OutboundMessage
from smsgw.services.exceptions import SendFailed


def build_send_request(settings: SMSSettings, messages: Sequence[OutboundMessage]) -> dict[str, Any]:
    """Render the provider request body for ``messages``."""

    password = settings.password.get_secret_value() if settings.password else ""
    return {
        "username": settings.username or "",
        "password": password,
        "source_addr": settings.source_addr or "",
        "valid_for": settings.valid_for,
        "datacoding": settings.datacoding,
        "messages": [message.model_dump() for message in messages],
    }


class VerimorProvider:
    name = "Verimor"

    def __init__(self, http_client: httpx.AsyncClient, settings: SMSSettings | None = None) -> None:
        self._client = http_client
        self._settings = settings or SMSSettings()

    async def send(self, messages: Sequence[OutboundMessage]) -> None:
        payload = build_send_request(self._settings, messages)
        try:
            response = await self._client.post(
                str(self._settings.api_url),
                json=payload,
                timeout=self._settings.request_timeout_seconds,
            )
        except httpx.RequestError as exc:
            raise SendFailed(f"Error sending SMS: {exc}") from exc

        logger.info(
            "verimor_response",
            status_code=response.status_code,
            body=response.text[:500],
            messages=len(messages),
        )
        if response.status_code != httpx.codes.OK:
            raise SendFailed(f"SMS API error ({response.status_code}): {response.text[:500]}")


__all__ = ["VerimorProvider", "build_send_request"]
