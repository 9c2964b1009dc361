"""Payment provider callbacks mapped onto subscription status changes."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timedelta, timezone
from typing import Protocol

from smsgw.domain.models import BuyMeACoffeeEvent, PayPalIPN
from smsgw.logging import logger
from smsgw.services.subscriptions import ACTIVE_STATUS, SubscriptionService

PAYPAL_DATE_FORMAT = "%H:%M:%S %b %d, %Y"
# IPN dates carry a Pacific time abbreviation
PAYPAL_ZONES = {
    "PST": timezone(timedelta(hours=-8)),
    "PDT": timezone(timedelta(hours=-7)),
}

# txn_type -> status for IPNs that only change an existing subscription
PAYPAL_STATUS_UPDATES = {
    "subscr_payment": ACTIVE_STATUS,
    "subscr_cancel": "cancelled",
    "subscr_eot": "expired",
}


class WebhookVerifier(Protocol):
    async def verify(self, source: str, body: bytes, headers: Mapping[str, str]) -> None:
        """Raise ``WebhookRejected`` when the callback cannot be trusted."""


class AcceptAllVerifier:
    """Accepts every callback; signature checks are plugged in per deployment."""

    async def verify(self, source: str, body: bytes, headers: Mapping[str, str]) -> None:
        logger.debug("webhook_unverified", source=source, size=len(body))


def parse_paypal_date(value: str | None) -> datetime | None:
    """Parse ``15:30:45 Jan 18, 2009 PST``; returns ``None`` when unreadable."""

    if not value:
        return None
    stamp, _, zone = value.strip().rpartition(" ")
    try:
        parsed = datetime.strptime(stamp, PAYPAL_DATE_FORMAT)
    except ValueError:
        return None
    return parsed.replace(tzinfo=PAYPAL_ZONES.get(zone.upper(), timezone.utc))


class WebhookService:
    def __init__(
        self,
        subscriptions: SubscriptionService,
        verifier: WebhookVerifier | None = None,
    ) -> None:
        self.subscriptions = subscriptions
        self.verifier = verifier or AcceptAllVerifier()

    async def handle_buymeacoffee(self, event: BuyMeACoffeeEvent) -> str | None:
        """Apply a recurring donation event; returns the status written, if any."""

        data = event.data
        if event.type == "recurring_donation.started":
            expires_at = (
                datetime.fromtimestamp(data.current_period_end, tz=timezone.utc)
                if data.current_period_end
                else self.subscriptions.default_expiry()
            )
            await self.subscriptions.save_subscription(
                data.psp_id, data.supporter_email, ACTIVE_STATUS, expires_at
            )
            status: str | None = ACTIVE_STATUS
        elif event.type == "recurring_donation.updated":
            status = "inactive" if data.paused or data.canceled else None
            if status is not None:
                await self.subscriptions.update_status(data.psp_id, status)
        elif event.type == "recurring_donation.cancelled":
            status = "cancelled"
            await self.subscriptions.update_status(data.psp_id, status)
        else:
            status = None

        logger.info(
            "webhook_processed",
            source="buymeacoffee",
            event_type=event.type,
            subscription_id=data.psp_id,
            status=status,
        )
        return status

    async def handle_paypal(self, ipn: PayPalIPN) -> str | None:
        """Apply a PayPal subscription IPN; returns the status written, if any."""

        status: str | None = None
        if ipn.txn_type == "subscr_signup":
            expires_at = parse_paypal_date(ipn.subscr_end) or self.subscriptions.default_expiry()
            status = ACTIVE_STATUS
            await self.subscriptions.save_subscription(
                ipn.subscr_id, ipn.payer_email, status, expires_at
            )
        elif ipn.txn_type in PAYPAL_STATUS_UPDATES:
            status = PAYPAL_STATUS_UPDATES[ipn.txn_type]
            await self.subscriptions.update_status(ipn.subscr_id, status)

        logger.info(
            "webhook_processed",
            source="paypal",
            event_type=ipn.txn_type,
            subscription_id=ipn.subscr_id,
            status=status,
        )
        return status


__all__ = [
    "AcceptAllVerifier",
    "WebhookService",
    "WebhookVerifier",
    "parse_paypal_date",
]
