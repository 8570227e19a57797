import asyncio
import logging
from datetime import datetime, timedelta
from typing import Dict, Optional, Tuple

from sqlalchemy import select, update, case, or_, literal
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from prompt_enhancer.models.database_models import RateLimitWindowRecord
from prompt_enhancer.models.enhancement import RateLimitWindow
from prompt_enhancer.services.database import DatabaseService, as_utc

logger = logging.getLogger(__name__)


class SqlRateLimitStore:
    """
    Rate limit windows kept in the enhancement_rate_limits table.

    Every mutation of a window is a single guarded statement, so concurrent
    requests for the same user can never push the count past the limit.
    """

    def __init__(self, database: DatabaseService):
        self.database = database

    def _insert_window(self, user_id: str, now: datetime):
        insert = pg_insert if self.database.dialect_name == "postgresql" else sqlite_insert
        return insert(RateLimitWindowRecord).values(
            user_id=user_id, count=0, window_start=now
        ).on_conflict_do_nothing(index_elements=[RateLimitWindowRecord.user_id])

    @staticmethod
    def _roll_window(user_id: str, now: datetime, cutoff: datetime):
        return (
            update(RateLimitWindowRecord)
            .where(RateLimitWindowRecord.user_id == user_id)
            .where(RateLimitWindowRecord.window_start <= cutoff)
            .values(count=0, window_start=now)
            .execution_options(synchronize_session=False)
        )

    @staticmethod
    async def _read(session, user_id: str) -> Optional[RateLimitWindow]:
        result = await session.execute(
            select(RateLimitWindowRecord.count, RateLimitWindowRecord.window_start)
            .where(RateLimitWindowRecord.user_id == user_id)
        )
        row = result.first()
        if row is None:
            return None
        return RateLimitWindow(user_id=user_id, count=row.count, window_start=as_utc(row.window_start))

    async def get_or_init_window(self, user_id: str, now: datetime, window: timedelta) -> RateLimitWindow:
        """Return the user's current window, creating it or rolling it forward if expired."""
        session = await self.database.get_session()
        async with session, session.begin():
            await session.execute(self._insert_window(user_id, now))
            await session.execute(self._roll_window(user_id, now, now - window))
            return await self._read(session, user_id)

    async def atomic_reserve(
        self, user_id: str, limit: int, now: datetime, window: timedelta
    ) -> Tuple[bool, RateLimitWindow]:
        """
        Claim one unit of quota in a single conditional UPDATE.

        The statement rolls an expired window and increments the count at once;
        it only matches when the window is expired or count < limit.

        Returns:
            Tuple of (granted, window after the operation)
        """
        cutoff = now - window
        session = await self.database.get_session()
        async with session, session.begin():
            await session.execute(self._insert_window(user_id, now))

            if limit > 0:
                expired = RateLimitWindowRecord.window_start <= cutoff
                stmt = (
                    update(RateLimitWindowRecord)
                    .where(RateLimitWindowRecord.user_id == user_id)
                    .where(or_(expired, RateLimitWindowRecord.count < limit))
                    .values(
                        count=case((expired, 1), else_=RateLimitWindowRecord.count + 1),
                        window_start=case(
                            (expired, literal(now, RateLimitWindowRecord.window_start.type)),
                            else_=RateLimitWindowRecord.window_start,
                        ),
                    )
                    .returning(RateLimitWindowRecord.count, RateLimitWindowRecord.window_start)
                    .execution_options(synchronize_session=False)
                )
                row = (await session.execute(stmt)).first()
                if row is not None:
                    return True, RateLimitWindow(
                        user_id=user_id, count=row.count, window_start=as_utc(row.window_start)
                    )

            await session.execute(self._roll_window(user_id, now, cutoff))
            return False, await self._read(session, user_id)

    async def atomic_release(self, user_id: str, window_start: Optional[datetime] = None) -> Optional[RateLimitWindow]:
        """
        Give back one unit of quota, never going below zero.

        When window_start is given the refund only applies while that window is
        still current; a unit reserved in a window that has since rolled is not
        returned to the new one.
        """
        session = await self.database.get_session()
        async with session, session.begin():
            stmt = (
                update(RateLimitWindowRecord)
                .where(RateLimitWindowRecord.user_id == user_id)
                .where(RateLimitWindowRecord.count > 0)
            )
            if window_start is not None:
                stmt = stmt.where(RateLimitWindowRecord.window_start == window_start)
            stmt = (
                stmt.values(count=RateLimitWindowRecord.count - 1)
                .returning(RateLimitWindowRecord.count, RateLimitWindowRecord.window_start)
                .execution_options(synchronize_session=False)
            )
            row = (await session.execute(stmt)).first()
            if row is not None:
                return RateLimitWindow(user_id=user_id, count=row.count, window_start=as_utc(row.window_start))
            return await self._read(session, user_id)


class InMemoryRateLimitStore:
    """Process-local rate limit windows, for development and tests."""

    def __init__(self):
        self._windows: Dict[str, RateLimitWindow] = {}
        # One lock per user seen, never evicted; bounded by the user count of one process
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock(self, user_id: str) -> asyncio.Lock:
        return self._locks.setdefault(user_id, asyncio.Lock())

    def _current(self, user_id: str, now: datetime, window: timedelta) -> RateLimitWindow:
        current = self._windows.get(user_id)
        if current is None or now - current.window_start >= window:
            current = RateLimitWindow(user_id=user_id, count=0, window_start=now)
            self._windows[user_id] = current
        return current

    async def get_or_init_window(self, user_id: str, now: datetime, window: timedelta) -> RateLimitWindow:
        async with self._lock(user_id):
            return self._current(user_id, now, window)

    async def atomic_reserve(
        self, user_id: str, limit: int, now: datetime, window: timedelta
    ) -> Tuple[bool, RateLimitWindow]:
        async with self._lock(user_id):
            current = self._current(user_id, now, window)
            if current.count >= limit:
                return False, current
            updated = RateLimitWindow(user_id=user_id, count=current.count + 1, window_start=current.window_start)
            self._windows[user_id] = updated
            return True, updated

    async def atomic_release(self, user_id: str, window_start: Optional[datetime] = None) -> Optional[RateLimitWindow]:
        async with self._lock(user_id):
            current = self._windows.get(user_id)
            if current is None:
                return None
            if window_start is not None and current.window_start != window_start:
                return current
            updated = RateLimitWindow(
                user_id=user_id, count=max(0, current.count - 1), window_start=current.window_start
            )
            self._windows[user_id] = updated
            return updated
