"""SQLAlchemy models for quota counters and subscriptions."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from smsgw.db.base import Base, TimestampMixin
from smsgw.utils.datetime import utc_now

SUBSCRIPTION_STATUSES = ("active", "inactive", "cancelled", "expired")


class QuotaRecord(TimestampMixin, Base):
    """Hourly counter for one sender identity, kept for the identity's lifetime."""

    __tablename__ = "quota_records"
    __table_args__ = (UniqueConstraint("identity", name="uq_quota_records_identity"),)

    identity: Mapped[str] = mapped_column(String(64), nullable=False)
    window_start: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    count_in_window: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    hourly_limit: Mapped[int] = mapped_column(Integer, nullable=False)


class QuotaEvent(Base):
    """Admitted send attempt; purged once older than the retention horizon."""

    __tablename__ = "quota_events"

    identity: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    sent_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False, index=True
    )


class Subscription(TimestampMixin, Base):
    __tablename__ = "subscriptions"

    subscription_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(191), nullable=False, index=True)
    status: Mapped[str] = mapped_column(
        Enum(*SUBSCRIPTION_STATUSES, name="subscription_status"),
        default="active",
        nullable=False,
    )
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    links: Mapped[list["SubscriptionLink"]] = relationship(back_populates="subscription")


class SubscriptionLink(TimestampMixin, Base):
    __tablename__ = "subscription_links"
    __table_args__ = (UniqueConstraint("identity", name="uq_subscription_links_identity"),)

    identity: Mapped[str] = mapped_column(String(64), nullable=False)
    subscription_id: Mapped[int | None] = mapped_column(
        ForeignKey("subscriptions.id", ondelete="SET NULL")
    )

    subscription: Mapped[Subscription | None] = relationship(back_populates="links")


__all__ = [
    "QuotaEvent",
    "QuotaRecord",
    "SUBSCRIPTION_STATUSES",
    "Subscription",
    "SubscriptionLink",
]
