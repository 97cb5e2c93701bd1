"""GS1 membership registration bot — entry point.

Resilience features:
1. Auto-restart polling on crash (up to 100 retries with backoff).
2. Health-check HTTP server for the hosting platform.
3. Bot commands registered on every start.
"""

from __future__ import annotations

import asyncio
import logging
import sys

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode
from aiogram.fsm.storage.memory import MemoryStorage
from aiogram.types import BotCommand

from membership_bot.config import settings
from membership_bot.handlers import common, wizard
from membership_bot.handlers.common import fallback_router
from membership_bot.middleware import ThrottlingMiddleware


def _setup_logging() -> None:
    fmt = logging.Formatter(
        "%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(fmt)
    logging.root.handlers = [handler]
    logging.root.setLevel(settings.LOG_LEVEL)


# ═══════════════════════════════════════════════════════════════
# HTTP health server
# ═══════════════════════════════════════════════════════════════

async def _start_health_server() -> None:
    """Minimal HTTP server so the platform knows the service is alive."""
    from aiohttp import web

    async def _health(_r: web.Request) -> web.Response:
        return web.Response(text="ok")

    app = web.Application()
    app.router.add_get("/", _health)
    app.router.add_get("/health", _health)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "0.0.0.0", settings.HEALTH_PORT)
    await site.start()


# ═══════════════════════════════════════════════════════════════
# MAIN
# ═══════════════════════════════════════════════════════════════

async def main() -> None:
    _setup_logging()
    logger = logging.getLogger("bot")

    if not settings.BOT_TOKEN:
        logger.critical("BOT_TOKEN is not set — exiting")
        return
    if not settings.INTAKE_URL:
        logger.warning("INTAKE_URL is not set — applications will not be delivered")

    logger.info("Starting GS1 membership bot")

    bot = Bot(
        token=settings.BOT_TOKEN,
        default=DefaultBotProperties(parse_mode=ParseMode.HTML),
    )

    await bot.set_my_commands([
        BotCommand(command="start", description="🏷 Welcome"),
        BotCommand(command="register", description="📝 New application"),
        BotCommand(command="fees", description="💳 Fees"),
        BotCommand(command="cancel", description="✖️ Close message / stop typing"),
        BotCommand(command="help", description="ℹ️ Help"),
    ])

    dp = Dispatcher(storage=MemoryStorage())
    throttle = ThrottlingMiddleware()
    dp.message.middleware(throttle)
    dp.callback_query.middleware(throttle)

    # Router order matters: common first, then the wizard, fallback last.
    dp.include_router(common.router)
    dp.include_router(wizard.router)
    dp.include_router(fallback_router)

    await _start_health_server()
    logger.info("Health server on :%d", settings.HEALTH_PORT)

    # ── Polling with auto-restart ─────────────────────────────
    MAX_RETRIES = 100
    for attempt in range(1, MAX_RETRIES + 1):
        try:
            await bot.delete_webhook(drop_pending_updates=False)
            logger.info("Polling started (attempt #%d)", attempt)
            await dp.start_polling(
                bot,
                polling_timeout=30,
                handle_signals=False,
            )
            logger.info("Polling stopped cleanly")
            break

        except Exception as exc:
            logger.error(
                "Polling crashed (attempt #%d/%d): %s",
                attempt, MAX_RETRIES, exc,
                exc_info=True,
            )
            if attempt < MAX_RETRIES:
                wait = min(attempt * 5, 60)   # 5s → 10s → … → cap at 60s
                logger.info("Restarting polling in %ds…", wait)
                await asyncio.sleep(wait)
            else:
                logger.critical("Max retries (%d) reached — exiting", MAX_RETRIES)

    await bot.session.close()
    logger.info("Bot stopped")


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
