"""Throttling middleware: per-user rate limit for messages and button presses.

Commands always pass through so /start and /cancel work for a user who
has been throttled.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Awaitable, Callable, Dict

from aiogram import BaseMiddleware
from aiogram.types import CallbackQuery, Message, TelegramObject

from membership_bot.config import settings

logger = logging.getLogger(__name__)


class ThrottlingMiddleware(BaseMiddleware):
    def __init__(
        self,
        limit: int | None = None,
        window: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__()
        self.limit = limit if limit is not None else settings.RATE_LIMIT_MESSAGES
        self.window = window if window is not None else settings.RATE_LIMIT_SECONDS
        self._clock = clock
        self._hits: Dict[int, list[float]] = {}
        self._last_cleanup: float = 0.0

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any],
    ) -> Any:
        if not isinstance(event, (Message, CallbackQuery)) or not event.from_user:
            return await handler(event, data)
        if isinstance(event, Message) and event.text and event.text.startswith("/"):
            return await handler(event, data)

        uid = event.from_user.id
        now = self._clock()

        # Purge idle users every 5 minutes
        if now - self._last_cleanup > 300:
            self._cleanup(now)
            self._last_cleanup = now

        hits = self._hits.setdefault(uid, [])
        cutoff = now - self.window
        hits[:] = [t for t in hits if t > cutoff]
        if len(hits) >= self.limit:
            logger.warning("Rate-limit: user %d", uid)
            if isinstance(event, CallbackQuery):
                await event.answer("Too fast — please wait a moment.")
            return None
        hits.append(now)

        return await handler(event, data)

    def _cleanup(self, now: float) -> None:
        """Remove idle users so the table does not grow without bound."""
        stale = [
            uid for uid, ts in self._hits.items()
            if not ts or (now - ts[-1]) > self.window * 10
        ]
        for uid in stale:
            del self._hits[uid]
