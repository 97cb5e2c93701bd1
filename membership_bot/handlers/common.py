"""Common handlers: /start, /help, /fees, error handler, fallback.

The fallback_router also includes a CATCH-ALL for callback queries
so that when FSM state is lost (e.g. after a restart), inline-button
presses from an old card restart the application instead of vanishing.
"""

from __future__ import annotations

import logging
from typing import Iterable

from aiogram import Bot, F, Router
from aiogram.filters import Command, CommandStart
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery, ErrorEvent, Message

from membership_bot.fees import FEE_CATEGORIES, FeeTier, format_pkr
from membership_bot.handlers.wizard import start_wizard
from membership_bot.keyboards import start_kb

logger = logging.getLogger(__name__)
router = Router()
fallback_router = Router()

# ── Visual constants ─────────────────────────────────────────
_DIV = "━" * 20

WELCOME_TEXT = (
    "🏷  <b>GS1 Pakistan</b>\n"
    f"{_DIV}\n\n"
    "Online membership application\n"
    "for barcodes (GTIN-13 / GTIN-8) and GLNs.\n\n"
    "You will need:\n"
    "✓ Company details and NTN or CNIC\n"
    "✓ CEO, key contact and accounts contact\n"
    "✓ Product categories and the number of GTINs\n"
    "✓ An image of your signature (under 1 MB)\n\n"
    f"{_DIV}\n"
    "👇 <b>Ready when you are</b>"
)


# ═══════════════════════════════════════════════════════════════
# /start
# ═══════════════════════════════════════════════════════════════

@router.message(CommandStart())
async def cmd_start(message: Message, state: FSMContext) -> None:
    await state.clear()
    await message.answer(WELCOME_TEXT, reply_markup=start_kb())


@router.message(F.text.regexp(r"(?i)^(start|register|menu)$"))
async def text_start(message: Message, state: FSMContext) -> None:
    await cmd_start(message, state)


# ═══════════════════════════════════════════════════════════════
# /help and /fees
# ═══════════════════════════════════════════════════════════════

@router.message(Command("help"))
async def cmd_help(message: Message) -> None:
    await message.answer(
        "🏷 <b>GS1 Pakistan — Membership bot</b>\n\n"
        "▸ /start — Welcome\n"
        "▸ /register — Start a new application\n"
        "▸ /fees — Entrance and annual fees\n"
        "▸ /cancel — Close a message or stop typing a field\n"
        "▸ /help — This help",
    )


def _fee_rows(rows: Iterable[FeeTier]) -> list[str]:
    return [
        f"  {row.label}: {format_pkr(row.total)} "
        f"<i>({format_pkr(row.base_fee)} + {format_pkr(row.pra)} PRA)</i>"
        for row in rows
    ]


def fees_text() -> str:
    lines: list[str] = []
    for category in FEE_CATEGORIES:
        lines.append(f"🏷 <b>{category.name}</b>\n<i>{category.description}</i>")
        lines.append("💳 Entrance Fee (incl. govt. taxes)")
        lines += _fee_rows(category.entrance)
        lines.append("💳 Annual Fee (incl. govt. taxes)")
        lines += _fee_rows(category.annual)
        lines.append(_DIV)
    lines.append("<i>Annual fees are due from one calendar year after the allocation date.</i>")
    return "\n".join(lines)


@router.message(Command("fees"))
async def cmd_fees(message: Message) -> None:
    await message.answer(fees_text())


# ═══════════════════════════════════════════════════════════════
# Global error handler
# ═══════════════════════════════════════════════════════════════

@router.error()
async def global_error_handler(event: ErrorEvent) -> None:
    logger.error(
        "Unhandled error in update %s: %s",
        event.update.update_id if event.update else "?",
        event.exception,
        exc_info=event.exception,
    )


# ═══════════════════════════════════════════════════════════════
# FALLBACK: catch-all for expired/lost sessions
# ═══════════════════════════════════════════════════════════════

@fallback_router.callback_query()
async def expired_callback(cb: CallbackQuery, state: FSMContext, bot: Bot) -> None:
    """Handle any callback that wasn't caught by the wizard handlers.

    MemoryStorage is wiped on restart, so buttons on an old card lose
    their session; the application is restarted from step 1.
    """
    logger.info(
        "Expired/unmatched callback from user %s: %s",
        cb.from_user.id, cb.data,
    )
    await cb.answer("⏳ Session expired — starting over", show_alert=False)
    try:
        await start_wizard(cb.message, state, bot)  # type: ignore[arg-type]
    except Exception as exc:
        logger.error("Recovery after expired callback failed: %s", exc)


@fallback_router.message()
async def fallback_message(message: Message) -> None:
    await message.answer(
        "ℹ️ Use the buttons on the application card.\n"
        "To start a new application — /register",
    )
