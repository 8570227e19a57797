import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from prompt_enhancer.models.enhancement import RateLimitInfo, RateLimitWindow, Reservation
from prompt_enhancer.services.errors import QuotaStoreUnavailable

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class QuotaTracker:
    """
    Per-user fixed-window quota for enhancement calls.

    Quota is reserved before the external call and released if the call fails,
    so concurrent requests from one user can never exceed the limit. The limit is
    passed on every call, which lets a tier change apply immediately.
    """

    def __init__(self, store, window: timedelta = timedelta(hours=1),
                 clock: Callable[[], datetime] = utc_now):
        self.store = store
        self.window = window
        self.clock = clock

    def _info(self, window: RateLimitWindow, limit: int) -> RateLimitInfo:
        remaining = max(0, limit - window.count)
        return RateLimitInfo(
            allowed=remaining > 0,
            remaining=remaining,
            limit=limit,
            resets_at=window.window_start + self.window,
        )

    async def status(self, user_id: str, limit: int) -> RateLimitInfo:
        """
        Report the user's quota without consuming any of it.

        Raises:
            QuotaStoreUnavailable: If the store cannot be read
        """
        try:
            window = await self.store.get_or_init_window(user_id, self.clock(), self.window)
        except Exception as e:
            logger.error(f"Failed to read rate limit window for {user_id}: {str(e)}")
            raise QuotaStoreUnavailable("Rate limit store is unavailable") from e
        return self._info(window, limit)

    async def reserve(self, user_id: str, limit: int) -> Reservation:
        """
        Atomically claim one unit of quota.

        Fails closed: if the store is unavailable the reservation is refused.
        """
        now = self.clock()
        try:
            granted, window = await self.store.atomic_reserve(user_id, limit, now, self.window)
        except Exception as e:
            logger.error(f"Rate limit store error while reserving for {user_id}, denying request: {str(e)}")
            return Reservation(
                granted=False,
                info=RateLimitInfo(allowed=False, remaining=0, limit=limit, resets_at=now + self.window),
            )

        info = self._info(window, limit)
        if granted:
            logger.info(f"Quota reserved for {user_id}: {window.count}/{limit} used")
        else:
            logger.warning(f"Rate limit exceeded for {user_id}: {window.count}/{limit} used")
        return Reservation(granted=granted, info=info, window_start=window.window_start if granted else None)

    async def release(self, user_id: str, window_start: Optional[datetime] = None) -> Optional[RateLimitWindow]:
        """
        Refund one reserved unit (floor 0) after a failed call.

        Pass the reservation's window_start so a refund that arrives after the
        window rolled does not free a slot in the new window.
        """
        window = await self.store.atomic_release(user_id, window_start)
        if window is not None:
            logger.info(f"Quota released for {user_id}: {window.count} used")
        return window
