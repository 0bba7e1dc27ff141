"""Usage counters — the only state shared across concurrent generation requests.

Both stores offer an atomic "increment only if below limit" operation so two
concurrent requests from the same user cannot both pass a read of
``used < limit`` and overshoot the daily cap.

Supported SQL backends are PostgreSQL (asyncpg, production) and SQLite
(aiosqlite, single-node development and the test suite). Both support
``INSERT ... ON CONFLICT DO UPDATE ... RETURNING``; any other dialect is a
ConfigurationError.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from datetime import date, datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.exceptions import ConfigurationError
from app.models.daily_usage import DailyUsage

logger = logging.getLogger(__name__)

# Dialect name → conditional-upsert capable insert construct
DIALECT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


class UsageStore(ABC):
    """Per-user, per-feature, per-day counters."""

    @abstractmethod
    async def get_count(self, user_id: str, feature: str, day: date) -> int:
        """Accepted generations so far (0 when no row exists)."""
        ...

    @abstractmethod
    async def consume(self, user_id: str, feature: str, day: date, limit: int) -> int | None:
        """Atomically increment if the count is below ``limit``.

        Returns the new count, or None when the limit was already reached.
        """
        ...

    @abstractmethod
    async def increment(self, user_id: str, feature: str, day: date) -> int:
        """Unconditional atomic increment (unlimited plans). Returns the new count."""
        ...

    @abstractmethod
    async def release(self, user_id: str, feature: str, day: date) -> None:
        """Give back one consumed slot (never below zero)."""
        ...


class SqlUsageStore(UsageStore):
    """``daily_usage`` table; every mutation is a single upsert/update statement."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @staticmethod
    def insert_for(dialect_name: str):
        try:
            return DIALECT_INSERTS[dialect_name]
        except KeyError:
            raise ConfigurationError(f"Unsupported usage store backend: {dialect_name}") from None

    async def get_count(self, user_id: str, feature: str, day: date) -> int:
        async with self._session_factory() as db:
            result = await db.execute(
                select(DailyUsage.count).where(
                    DailyUsage.user_id == user_id,
                    DailyUsage.day == day,
                    DailyUsage.feature == feature,
                )
            )
            return result.scalar_one_or_none() or 0

    async def consume(self, user_id: str, feature: str, day: date, limit: int) -> int | None:
        if limit <= 0:
            return None
        return await self._upsert(user_id, feature, day, limit)

    async def increment(self, user_id: str, feature: str, day: date) -> int:
        count = await self._upsert(user_id, feature, day, None)
        return count or 0

    async def _upsert(self, user_id: str, feature: str, day: date, limit: int | None) -> int | None:
        now = datetime.now(timezone.utc)
        async with self._session_factory() as db:
            insert = self.insert_for(db.bind.dialect.name)
            stmt = (
                insert(DailyUsage)
                .values(user_id=user_id, day=day, feature=feature, count=1, updated_at=now)
                .on_conflict_do_update(
                    index_elements=["user_id", "day", "feature"],
                    set_={"count": DailyUsage.count + 1, "updated_at": now},
                    where=(DailyUsage.count < limit) if limit is not None else None,
                )
                .returning(DailyUsage.count)
            )
            result = await db.execute(stmt)
            count = result.scalar_one_or_none()
            await db.commit()
            return count

    async def release(self, user_id: str, feature: str, day: date) -> None:
        async with self._session_factory() as db:
            await db.execute(
                update(DailyUsage)
                .where(
                    DailyUsage.user_id == user_id,
                    DailyUsage.day == day,
                    DailyUsage.feature == feature,
                    DailyUsage.count > 0,
                )
                .values(count=DailyUsage.count - 1, updated_at=datetime.now(timezone.utc))
            )
            await db.commit()


class InMemoryUsageStore(UsageStore):
    """Process-local counters guarded by a per-key asyncio.Lock (development and tests).

    Counters for days before the newest day seen are dropped as soon as that
    newer day is first touched.
    """

    def __init__(self):
        self._counts: dict[tuple[str, str, date], int] = defaultdict(int)
        self._locks: dict[tuple[str, str, date], asyncio.Lock] = defaultdict(asyncio.Lock)
        self._latest_day: date | None = None

    def _prune(self, day: date) -> None:
        if self._latest_day is not None and day <= self._latest_day:
            return
        self._latest_day = day
        for key in [k for k in self._counts if k[2] < day]:
            del self._counts[key]
        for key in [k for k, lock in self._locks.items() if k[2] < day and not lock.locked()]:
            del self._locks[key]

    async def get_count(self, user_id: str, feature: str, day: date) -> int:
        self._prune(day)
        return self._counts.get((user_id, feature, day), 0)

    async def consume(self, user_id: str, feature: str, day: date, limit: int) -> int | None:
        self._prune(day)
        key = (user_id, feature, day)
        async with self._locks[key]:
            if self._counts[key] >= limit:
                return None
            self._counts[key] += 1
            return self._counts[key]

    async def increment(self, user_id: str, feature: str, day: date) -> int:
        self._prune(day)
        key = (user_id, feature, day)
        async with self._locks[key]:
            self._counts[key] += 1
            return self._counts[key]

    async def release(self, user_id: str, feature: str, day: date) -> None:
        self._prune(day)
        key = (user_id, feature, day)
        if key not in self._counts:
            # Nothing held, or the day was already pruned
            return
        async with self._locks[key]:
            if self._counts[key] > 0:
                self._counts[key] -= 1
