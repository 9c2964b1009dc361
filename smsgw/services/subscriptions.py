"""Subscription bookkeeping and the tier events it drives."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta

from sqlalchemy import and_, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from smsgw.config import SubscriptionSettings
from smsgw.db.models.core import SUBSCRIPTION_STATUSES, Subscription, SubscriptionLink
from smsgw.logging import logger
from smsgw.services.exceptions import (
    QuotaStoreUnavailable,
    SubscriptionError,
    SubscriptionNotFound,
    SubscriptionRetierFailed,
    SubscriptionStoreUnavailable,
)
from smsgw.services.quota import QuotaTracker, SessionSource
from smsgw.utils.datetime import utc_now

ACTIVE_STATUS = "active"


class SubscriptionService:
    def __init__(
        self,
        database: SessionSource,
        tracker: QuotaTracker,
        settings: SubscriptionSettings | None = None,
    ) -> None:
        self.database = database
        self.tracker = tracker
        self.settings = settings or SubscriptionSettings()

    def tier_for(self, status: str) -> int:
        if status == ACTIVE_STATUS:
            return self.tracker.subscribed_limit
        return self.tracker.default_limit

    def default_expiry(self, now: datetime | None = None) -> datetime:
        return (now or utc_now()) + timedelta(days=self.settings.subscription_duration_days)

    async def save_subscription(
        self,
        subscription_id: str,
        email: str,
        status: str = ACTIVE_STATUS,
        expires_at: datetime | None = None,
    ) -> Subscription:
        self._validate_status(status)
        email = email.strip().lower()
        async with self._store("save_subscription") as session:
            subscription = Subscription(
                subscription_id=subscription_id,
                email=email,
                status=status,
                expires_at=expires_at,
            )
            session.add(subscription)
            await session.flush()
            await session.commit()

        logger.info(
            "subscription_saved",
            subscription_id=subscription_id,
            email=email,
            status=status,
            expires_at=expires_at,
        )
        return subscription

    async def update_status(self, subscription_id: str, status: str) -> list[str]:
        """Store ``status`` and re-tier every identity linked to the subscription."""

        self._validate_status(status)
        async with self._store("update_status") as session:
            stmt = select(Subscription).where(Subscription.subscription_id == subscription_id)
            subscriptions = list((await session.execute(stmt)).scalars())
            if not subscriptions:
                raise SubscriptionNotFound(f"Unknown subscription {subscription_id!r}.")

            now = utc_now()
            for subscription in subscriptions:
                subscription.status = status
                subscription.updated_at = now

            links_stmt = (
                select(SubscriptionLink.identity)
                .where(SubscriptionLink.subscription_id.in_([sub.id for sub in subscriptions]))
                .order_by(SubscriptionLink.id)
            )
            identities = list((await session.execute(links_stmt)).scalars())
            await session.flush()
            await session.commit()

        limit = self.tier_for(status)
        await self._retier(subscription_id, identities, limit)

        logger.info(
            "subscription_status_updated",
            subscription_id=subscription_id,
            status=status,
            identities=len(identities),
            limit=limit,
        )
        return identities

    async def link_identity(self, identity: str, email: str) -> Subscription:
        """Attach ``identity`` to the newest active subscription of ``email``."""

        email = email.strip().lower()
        if not email:
            raise SubscriptionError("Email must not be empty.")

        async with self._store("link_identity") as session:
            subscription = await self._active_subscription(session, email)
            if subscription is None:
                logger.info("subscription_link_not_found", identity=identity, email=email)
                raise SubscriptionNotFound(f"No active subscription for {email}.")

            stmt = select(SubscriptionLink).where(SubscriptionLink.identity == identity)
            link = (await session.execute(stmt)).scalar_one_or_none()
            if link is None:
                session.add(SubscriptionLink(identity=identity, subscription_id=subscription.id))
            else:
                link.subscription_id = subscription.id
                link.updated_at = utc_now()
            await session.flush()
            await session.commit()

        await self.tracker.set_tier(identity, self.tier_for(ACTIVE_STATUS))
        logger.info(
            "subscription_linked",
            identity=identity,
            subscription_id=subscription.subscription_id,
        )
        return subscription

    async def get_active_subscription(self, email: str) -> Subscription | None:
        async with self._store("get_active_subscription") as session:
            return await self._active_subscription(session, email.strip().lower())

    # Internal helpers -------------------------------------------------

    async def _retier(self, subscription_id: str, identities: list[str], limit: int) -> None:
        for position, identity in enumerate(identities):
            try:
                await self.tracker.set_tier(identity, limit)
            except QuotaStoreUnavailable as exc:
                pending = identities[position:]
                logger.error(
                    "subscription_retier_failed",
                    subscription_id=subscription_id,
                    limit=limit,
                    pending=pending,
                    error=str(exc),
                )
                raise SubscriptionRetierFailed(
                    f"Status of {subscription_id!r} stored; "
                    f"{len(pending)} identities keep their old tier.",
                    pending,
                ) from exc

    @asynccontextmanager
    async def _store(self, operation: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self.database.session() as session:
                yield session
        except SQLAlchemyError as exc:
            logger.error("subscription_store_unavailable", operation=operation, error=str(exc))
            raise SubscriptionStoreUnavailable(
                f"Subscription store failed during {operation}: {exc}"
            ) from exc

    @staticmethod
    async def _active_subscription(session: AsyncSession, email: str) -> Subscription | None:
        now = utc_now()
        stmt = (
            select(Subscription)
            .where(
                and_(
                    Subscription.email == email,
                    Subscription.status == ACTIVE_STATUS,
                    or_(Subscription.expires_at.is_(None), Subscription.expires_at > now),
                )
            )
            .order_by(Subscription.expires_at.desc(), Subscription.id.desc())
        )
        result = await session.execute(stmt)
        return result.scalars().first()

    @staticmethod
    def _validate_status(status: str) -> None:
        if status not in SUBSCRIPTION_STATUSES:
            raise SubscriptionError(f"Unsupported subscription status {status!r}.")


__all__ = ["ACTIVE_STATUS", "SubscriptionService"]
