"""Pydantic models shared across the HTTP and service layers."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


class InboundSMS(BaseModel):
    """One item of the provider's inbound SMS push."""

    model_config = ConfigDict(extra="ignore")

    message_id: int | None = None
    type: str | None = None
    created_at: str | None = None
    network: str | None = None
    source_addr: str = ""
    destination_addr: str | None = None
    keyword: str | None = None
    content: str = ""
    received_at: str | None = None


class SubscribeRequest(BaseModel):
    email: str = Field(min_length=1)


class BuyMeACoffeeData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    psp_id: str = ""
    supporter_email: str = ""
    status: str | None = None
    paused: bool = False
    canceled: bool = False
    current_period_end: int | None = None

    @field_validator("paused", "canceled", mode="before")
    @classmethod
    def _parse_flag(cls, value):
        # Buy Me a Coffee sends these flags as "true"/"false" strings
        if isinstance(value, str):
            return value.strip().lower() == "true"
        return bool(value)


class BuyMeACoffeeEvent(BaseModel):
    """Recurring donation callback from Buy Me a Coffee."""

    model_config = ConfigDict(extra="ignore")

    type: str
    live_mode: bool = False
    event_id: int | None = None
    data: BuyMeACoffeeData = Field(default_factory=BuyMeACoffeeData)


class PayPalIPN(BaseModel):
    """Subset of a PayPal IPN form used for subscription bookkeeping."""

    model_config = ConfigDict(extra="ignore")

    txn_type: str = ""
    subscr_id: str = ""
    payer_email: str = ""
    subscr_end: str | None = None
    payment_status: str | None = None


__all__ = [
    "BuyMeACoffeeData",
    "BuyMeACoffeeEvent",
    "InboundSMS",
    "PayPalIPN",
    "SubscribeRequest",
]
