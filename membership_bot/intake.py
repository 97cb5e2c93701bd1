"""Intake endpoint client — fire-and-forget POST of the finished application.

The endpoint answers with nothing usable, so the response body is never
read. Transport failures are logged and otherwise ignored.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Set

import aiohttp

from membership_bot.config import settings

logger = logging.getLogger(__name__)

# Strong references so pending dispatches are not garbage-collected
_pending: Set[asyncio.Task] = set()


async def post_application(payload: dict[str, Any], url: str | None = None) -> bool:
    """POST ``payload`` as JSON. Returns True if the request went out without error."""
    url = url if url is not None else settings.INTAKE_URL
    if not url:
        logger.warning("INTAKE_URL is empty — application for %r not sent", payload.get("companyName"))
        return False

    timeout = aiohttp.ClientTimeout(total=settings.INTAKE_TIMEOUT_SECONDS)
    try:
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.post(url, json=payload) as resp:
                logger.info("Application for %r dispatched (HTTP %d)", payload.get("companyName"), resp.status)
    except Exception as exc:
        logger.warning("Intake request failed: %s", exc)
        return False
    return True


def dispatch_application(payload: dict[str, Any]) -> asyncio.Task:
    """Schedule ``post_application`` on the running loop and return at once."""
    task = asyncio.get_running_loop().create_task(post_application(payload))
    _pending.add(task)
    task.add_done_callback(_pending.discard)
    return task
