"""Hour-based quota tracking per sender identity.

Each identity owns one ``QuotaRecord``.  Its window is discrete: once an hour
has passed since ``window_start`` the counter snaps back to zero and a new
window starts at the current time.  It is not a rolling trailing-hour count.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Protocol
from weakref import WeakValueDictionary

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from smsgw.config import QuotaSettings
from smsgw.db.models.core import QuotaEvent, QuotaRecord
from smsgw.logging import logger
from smsgw.services.exceptions import QuotaStoreUnavailable
from smsgw.utils.datetime import ensure_utc, utc_now

Clock = Callable[[], datetime]


class SessionSource(Protocol):
    def session(self) -> AbstractAsyncContextManager[AsyncSession]: ...


@dataclass(frozen=True, slots=True)
class QuotaDecision:
    identity: str
    allowed: bool
    count: int
    limit: int
    window_start: datetime
    window: timedelta

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.count)

    @property
    def retry_at(self) -> datetime:
        return self.window_start + self.window


class QuotaTracker:
    """Admit or deny outbound replies per identity and apply tier changes."""

    def __init__(
        self,
        database: SessionSource,
        settings: QuotaSettings | None = None,
        *,
        clock: Clock = utc_now,
    ) -> None:
        self.database = database
        self.settings = settings or QuotaSettings()
        self.window = timedelta(seconds=self.settings.window_seconds)
        self.retention = timedelta(hours=self.settings.retention_hours)
        self._clock = clock
        self._locks: WeakValueDictionary[str, asyncio.Lock] = WeakValueDictionary()

    @property
    def default_limit(self) -> int:
        return self.settings.default_hourly_limit

    @property
    def subscribed_limit(self) -> int:
        return self.settings.subscribed_hourly_limit

    async def check_and_record(self, identity: str) -> QuotaDecision:
        """Consume one unit of quota for ``identity`` if its tier allows it."""

        lock = self._lock_for(identity)
        async with lock:
            async with self._store("check_and_record", identity) as session:
                decision = await self._check_and_record(session, identity)
                await session.commit()

        if decision.allowed:
            logger.info(
                "quota_admitted",
                identity=identity,
                count=decision.count,
                limit=decision.limit,
            )
        else:
            logger.info(
                "quota_denied",
                identity=identity,
                limit=decision.limit,
                retry_at=decision.retry_at.isoformat(),
            )
        return decision

    async def set_tier(self, identity: str, limit: int) -> QuotaRecord:
        """Upsert the hourly limit for ``identity`` without touching its counter."""

        if limit <= 0:
            raise ValueError("Hourly limit must be positive.")

        lock = self._lock_for(identity)
        async with lock:
            async with self._store("set_tier", identity) as session:
                record = await self._load(session, identity)
                if record is None:
                    record = self._new_record(identity, self._clock(), limit)
                    session.add(record)
                else:
                    record.hourly_limit = limit
                    record.updated_at = self._clock()
                await session.flush()
                await session.commit()

        logger.info("quota_tier_set", identity=identity, limit=limit)
        return record

    async def get_record(self, identity: str) -> QuotaRecord | None:
        async with self._store("get_record", identity) as session:
            return await self._load(session, identity, for_update=False)

    async def purge_expired_events(self) -> int:
        """Drop admission evidence older than the retention horizon."""

        cutoff = self._clock() - self.retention
        async with self._store("purge_expired_events", None) as session:
            result = await session.execute(delete(QuotaEvent).where(QuotaEvent.sent_at < cutoff))
            await session.commit()
        deleted = result.rowcount or 0
        logger.info("quota_events_purged", deleted=deleted, cutoff=cutoff.isoformat())
        return deleted

    # Internal helpers -------------------------------------------------

    async def _check_and_record(self, session: AsyncSession, identity: str) -> QuotaDecision:
        now = self._clock()
        record = await self._load(session, identity)
        if record is None:
            record = self._new_record(identity, now, self.default_limit)
            session.add(record)

        window_start = ensure_utc(record.window_start)
        if now - window_start >= self.window:
            record.window_start = window_start = now
            record.count_in_window = 0

        allowed = record.count_in_window < record.hourly_limit
        if allowed:
            record.count_in_window += 1
            record.updated_at = now
            session.add(QuotaEvent(identity=identity, sent_at=now))
        await session.flush()

        return QuotaDecision(
            identity=identity,
            allowed=allowed,
            count=record.count_in_window,
            limit=record.hourly_limit,
            window_start=window_start,
            window=self.window,
        )

    @staticmethod
    async def _load(
        session: AsyncSession, identity: str, *, for_update: bool = True
    ) -> QuotaRecord | None:
        stmt = select(QuotaRecord).where(QuotaRecord.identity == identity)
        if for_update:
            stmt = stmt.with_for_update()
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    def _new_record(identity: str, now: datetime, limit: int) -> QuotaRecord:
        return QuotaRecord(
            identity=identity,
            window_start=now,
            count_in_window=0,
            hourly_limit=limit,
            created_at=now,
            updated_at=now,
        )

    def _lock_for(self, identity: str) -> asyncio.Lock:
        lock = self._locks.get(identity)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[identity] = lock
        return lock

    @asynccontextmanager
    async def _store(self, operation: str, identity: str | None) -> AsyncIterator[AsyncSession]:
        """Open a session and map driver failures to ``QuotaStoreUnavailable``."""

        try:
            async with self.database.session() as session:
                yield session
        except SQLAlchemyError as exc:
            logger.error(
                "quota_store_unavailable",
                operation=operation,
                identity=identity,
                error=str(exc),
            )
            raise QuotaStoreUnavailable(f"Quota store failed during {operation}: {exc}") from exc


async def run_purge_loop(tracker: QuotaTracker, interval_seconds: float) -> None:
    """Purge expired quota events forever; store failures are logged and retried next tick."""

    while True:
        try:
            await tracker.purge_expired_events()
        except QuotaStoreUnavailable:
            pass  # logged in _store
        await asyncio.sleep(interval_seconds)


__all__ = ["QuotaDecision", "QuotaTracker", "run_purge_loop"]
