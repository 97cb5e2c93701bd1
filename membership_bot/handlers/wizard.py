"""
Registration wizard with edit-in-place UX.

Company → GLN/billing → CEO → key contact → accounts contact →
products & fees → declaration → submit

• The WizardController is kept in FSM storage and reloaded per update.
• One progress card per step, with inline buttons for closed choices.
• Open fields are asked as a prompt; the next text message is the value.
• Rejections and the final confirmation are shown as a separate
  notification that has to be acknowledged before continuing.
"""

from __future__ import annotations

import asyncio
import logging
from html import escape
from typing import Any, Dict, Set

from aiogram import Bot, F, Router
from aiogram.filters import Command
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery, InlineKeyboardMarkup, Message

from membership_bot.config import settings
from membership_bot.fees import FEE_TIERS_BY_KEY, TRANSITION_SECONDS
from membership_bot.form_state import (
    ADDRESS_SENTINEL,
    CATEGORIES,
    CEO_DESIGNATIONS,
    PROVINCES,
    TITLES,
    FormState,
    filled_address_count,
)
from membership_bot.intake import dispatch_application
from membership_bot.keyboards import (
    COMPANY_FIELDS,
    CONTACT_BY_STEP,
    CONTACT_FIELDS,
    FIELD_HINTS,
    cancel_input_kb,
    categories_kb,
    field_label,
    notification_kb,
    step_kb,
)
from membership_bot.signature import check_signature, to_data_url
from membership_bot.states import RegistrationForm
from membership_bot.validators import LAST_STEP, MSG_TERMS_MISSING, Step
from membership_bot.wizard import SUCCESS_POINTS, SUCCESS_TITLE, WizardController

logger = logging.getLogger(__name__)
router = Router()

_background: Set[asyncio.Task] = set()


# ── Session storage ──────────────────────────────────────────────────

def _dispatcher(bot: Bot):  # noqa: ANN202
    def dispatch(payload: Dict[str, Any]) -> None:
        dispatch_application(payload)
        if settings.admin_ids:
            task = asyncio.get_running_loop().create_task(_notify_admins(bot, payload))
            _background.add(task)
            task.add_done_callback(_background.discard)
    return dispatch


async def _load(state: FSMContext, bot: Bot) -> WizardController:
    data = await state.get_data()
    return WizardController.load(data.get("wizard"), _dispatcher(bot))


async def _save(state: FSMContext, wizard: WizardController) -> None:
    await state.update_data(wizard=wizard.dump())


# ── Card rendering ───────────────────────────────────────────────────

def _bar(step: int) -> str:
    step = max(1, min(int(LAST_STEP), step))
    filled = "▰" * step
    empty = "▱" * (int(LAST_STEP) - step)
    return f"Step {step}/{int(LAST_STEP)}  {filled}{empty}"


def _line(label: str, value: Any) -> str:
    if value:
        return f"  ✅ {label}: {escape(str(value))}"
    return f"  ▫️ {label}"


def _company_lines(form: FormState, fmt: str) -> list[str]:
    lines = [_line(label, getattr(form, key)) for key, label in COMPANY_FIELDS.items()]
    lines.append(_line("Province", form.province))
    lines.append(_line(fmt or "NTN / CNIC", form.ntn if fmt else ""))
    lines.append(_line("Website", form.website) if form.website else "  ▫️ Website: none")
    return lines


def _gln_lines(form: FormState) -> list[str]:
    lines = [f"  GLN required: {'Yes' if form.gln_required else 'No'}"]
    if form.gln_required:
        lines.append(f"  Total GLNs: {filled_address_count(form.gln_addresses)}")
    lines.append(f"  Separate billing address: {form.billing_required}")
    if form.billing_required == "Yes":
        address = form.billing_addresses[0] if form.billing_addresses else ""
        lines.append(_line("Billing address", "" if address == ADDRESS_SENTINEL else address))
    return lines


def _contact_lines(form: FormState, step: Step) -> list[str]:
    contact = getattr(form, CONTACT_BY_STEP[step])
    lines = [f"  Title: {contact.title}"]
    lines += [_line(label, getattr(contact, key)) for key, label in CONTACT_FIELDS.items()]
    return lines


def _product_lines(form: FormState) -> list[str]:
    lines = []
    if form.selected_categories:
        lines.append(f"  ✅ Categories: {escape(', '.join(form.selected_categories))}")
    else:
        lines.append("  ▫️ Categories")
    lines.append(f"  GTIN-8 required: {form.gtin8s_required.capitalize()}")
    if form.gtin8_required:
        lines.append(_line("Number of GTIN-8s", form.gtin8))
    fees = ", ".join(FEE_TIERS_BY_KEY[f].label for f in form.selected_fees if f in FEE_TIERS_BY_KEY)
    lines.append(_line("Annual fee tier", fees))
    return lines


def _declaration_lines(form: FormState, show_errors: bool) -> list[str]:
    lines = [
        _line("Full Name", form.user_name),
        "  ✅ Signature uploaded" if form.uploaded_image else "  ▫️ Signature",
        "  ✅ Terms accepted" if form.agree_terms else "  ▫️ Terms and conditions",
    ]
    if show_errors and not form.agree_terms:
        lines.append(f"  ⯇ {MSG_TERMS_MISSING}")
    return lines


def render_card(wizard: WizardController, prompt: str = "") -> str:
    form = wizard.state
    step = wizard.step
    lines: list[str] = [
        "<b>GS1 Pakistan • Membership application</b>\n"
        f"{_bar(step)}\n"
        f"<b>{step.title}</b>\n"
    ]
    if step == Step.COMPANY_INFO:
        lines += _company_lines(form, wizard.format)
    elif step == Step.GLN_BILLING:
        lines += _gln_lines(form)
    elif step in CONTACT_BY_STEP:
        lines += _contact_lines(form, step)
    elif step == Step.PRODUCTS:
        lines += _product_lines(form)
    else:
        lines += _declaration_lines(form, wizard.show_errors)

    if prompt:
        lines.append(f"\n{prompt}")
    return "\n".join(lines)


def render_notification(wizard: WizardController) -> str:
    note = wizard.notification
    if note is None:
        return ""
    if note.kind == "success":
        points = "\n".join(f"• {p}" for p in SUCCESS_POINTS)
        return f"✔ <b>{SUCCESS_TITLE}</b>\n\n{points}\n\n{escape(note.message)}"
    return f"⚠ {escape(note.message)}"


async def _safe_edit(cb: CallbackQuery, text: str, reply_markup: InlineKeyboardMarkup | None = None) -> None:
    """If the card can't be edited (too old, unchanged), send a new one."""
    try:
        await cb.message.edit_text(text, reply_markup=reply_markup)  # type: ignore[union-attr]
    except Exception:
        await cb.message.answer(text, reply_markup=reply_markup)  # type: ignore[union-attr]


def _step_markup(wizard: WizardController) -> InlineKeyboardMarkup:
    return step_kb(wizard.step, wizard.state, wizard.format, wizard.fee_policy)


async def _show_notification(message: Message, wizard: WizardController) -> None:
    if wizard.notification is not None:
        await message.answer(render_notification(wizard), reply_markup=notification_kb())


async def _refresh(cb: CallbackQuery, state: FSMContext, wizard: WizardController) -> None:
    await _save(state, wizard)
    await state.set_state(RegistrationForm.card)
    await _safe_edit(cb, render_card(wizard), reply_markup=_step_markup(wizard))


async def _blocked(cb: CallbackQuery, wizard: WizardController) -> bool:
    """An open notification blocks the wizard until it is acknowledged."""
    if wizard.notification is None:
        return False
    await cb.answer("Please close the message above first.", show_alert=True)
    return True


# ── Start ────────────────────────────────────────────────────────────

async def start_wizard(message: Message, state: FSMContext, bot: Bot) -> None:
    await state.clear()
    wizard = WizardController(_dispatcher(bot))
    await _save(state, wizard)
    await message.answer(render_card(wizard), reply_markup=_step_markup(wizard))
    await state.set_state(RegistrationForm.card)


@router.message(Command("register"))
async def cmd_register(message: Message, state: FSMContext, bot: Bot) -> None:
    await start_wizard(message, state, bot)


@router.callback_query(F.data == "action:start")
async def action_start(cb: CallbackQuery, state: FSMContext, bot: Bot) -> None:
    await start_wizard(cb.message, state, bot)  # type: ignore[arg-type]
    await cb.answer()


# ── Notification acknowledgement ─────────────────────────────────────

@router.callback_query(F.data == "ok")
async def acknowledge(cb: CallbackQuery, state: FSMContext, bot: Bot) -> None:
    wizard = await _load(state, bot)
    wizard.acknowledge()
    await _save(state, wizard)
    try:
        await cb.message.delete()  # type: ignore[union-attr]
    except Exception:
        await cb.message.edit_reply_markup(reply_markup=None)  # type: ignore[union-attr]
    await cb.answer()


@router.message(Command("cancel"))
async def cmd_cancel(message: Message, state: FSMContext, bot: Bot) -> None:
    """Escape: dismiss an open notification or abandon a pending prompt."""
    wizard = await _load(state, bot)
    wizard.acknowledge()
    await _save(state, wizard)
    await state.set_state(RegistrationForm.card)
    await message.answer(render_card(wizard), reply_markup=_step_markup(wizard))


# ── Navigation ───────────────────────────────────────────────────────

@router.callback_query(F.data == "nav:next")
async def nav_next(cb: CallbackQuery, state: FSMContext, bot: Bot) -> None:
    wizard = await _load(state, bot)
    if await _blocked(cb, wizard):
        return
    advanced = wizard.advance()
    await _refresh(cb, state, wizard)
    if not advanced:
        await _show_notification(cb.message, wizard)  # type: ignore[arg-type]
    await cb.answer()


@router.callback_query(F.data == "nav:back")
async def nav_back(cb: CallbackQuery, state: FSMContext, bot: Bot) -> None:
    wizard = await _load(state, bot)
    if await _blocked(cb, wizard):
        return
    wizard.retreat()
    await _refresh(cb, state, wizard)
    await cb.answer()


@router.callback_query(F.data == "nav:submit")
async def nav_submit(cb: CallbackQuery, state: FSMContext, bot: Bot) -> None:
    wizard = await _load(state, bot)
    if await _blocked(cb, wizard):
        return
    submitted = wizard.submit()
    await _save(state, wizard)
    if submitted:
        await _safe_edit(cb, "📨 Application sent.")
        await cb.message.answer(render_card(wizard), reply_markup=_step_markup(wizard))  # type: ignore[union-attr]
        await state.set_state(RegistrationForm.card)
    else:
        await _refresh(cb, state, wizard)
    await _show_notification(cb.message, wizard)  # type: ignore[arg-type]
    await cb.answer()


# ── Closed choices ───────────────────────────────────────────────────

_CHOICE_OPTIONS: Dict[str, tuple[str, ...]] = {
    "province": PROVINCES,
    "ceo.designation": CEO_DESIGNATIONS,
    "ceo.title": TITLES,
    "key_contact.title": TITLES,
    "accounts_contact.title": TITLES,
}


@router.callback_query(F.data.startswith("c:"))
async def pick_choice(cb: CallbackQuery, state: FSMContext, bot: Bot) -> None:
    # c:<field>:<value>
    _, field, value = cb.data.split(":", 2)  # type: ignore[union-attr]
    wizard = await _load(state, bot)
    if await _blocked(cb, wizard):
        return

    if field == "format":
        wizard.set_format(value)
    else:
        options = _CHOICE_OPTIONS.get(field)
        if options is None or not value.isdigit() or int(value) >= len(options):
            await cb.answer()
            return
        choice = options[int(value)]
        if "." in field:
            contact_key, sub_field = field.split(".", 1)
            wizard.store.set_sub_field(contact_key, sub_field, choice)
        else:
            wizard.store.set(**{field: choice})

    await _refresh(cb, state, wizard)
    await cb.answer()


@router.callback_query(F.data.startswith("yn:"))
async def pick_yes_no(cb: CallbackQuery, state: FSMContext, bot: Bot) -> None:
    # yn:<question>:<y|n>
    _, question, answer = cb.data.split(":", 2)  # type: ignore[union-attr]
    yes = answer == "y"
    wizard = await _load(state, bot)
    if await _blocked(cb, wizard):
        return

    if question == "website":
        wizard.set_has_website(yes)
    elif question == "gln":
        wizard.store.set_gln_required(yes)
    elif question == "billing":
        wizard.store.set_billing_required("Yes" if yes else "No")
    elif question == "gtin8":
        wizard.store.set(gtin8s_required="yes" if yes else "no")

    await _refresh(cb, state, wizard)
    await cb.answer()


# ── GLN addresses ────────────────────────────────────────────────────

@router.callback_query(F.data.startswith("gln:"))
async def gln_address_action(cb: CallbackQuery, state: FSMContext, bot: Bot) -> None:
    parts = cb.data.split(":")  # type: ignore[union-attr]
    wizard = await _load(state, bot)
    if await _blocked(cb, wizard):
        return

    action = parts[1]
    if action == "add":
        if not wizard.store.add_gln_address():
            await cb.answer("A maximum of 20 GLN addresses can be entered.", show_alert=True)
            return
        index = len(wizard.state.gln_addresses) - 1
    else:
        index = int(parts[2])
        if index >= len(wizard.state.gln_addresses):
            await cb.answer()
            return

    if action == "del":
        wizard.store.remove_gln_address(index)
        await _refresh(cb, state, wizard)
        await cb.answer()
        return

    await _save(state, wizard)
    await _ask(cb, state, wizard, f"gln:{index}")


# ── Free-text fields ─────────────────────────────────────────────────

async def _ask(cb: CallbackQuery, state: FSMContext, wizard: WizardController, field: str) -> None:
    hint = FIELD_HINTS.get(field, "")
    prompt = f"✍️ <b>Send {field_label(field)}:</b>"
    if hint:
        prompt += f"\n<i>{escape(hint)}</i>"
    await state.update_data(pending_field=field)
    await state.set_state(RegistrationForm.field_input)
    await _safe_edit(cb, render_card(wizard, prompt), reply_markup=cancel_input_kb())
    await cb.answer()


@router.callback_query(F.data.startswith("f:"))
async def ask_field(cb: CallbackQuery, state: FSMContext, bot: Bot) -> None:
    field = cb.data.split(":", 1)[1]  # type: ignore[union-attr]
    wizard = await _load(state, bot)
    if await _blocked(cb, wizard):
        return
    if field == "ntn" and not wizard.format:
        await cb.answer("Select NTN or CNIC first.", show_alert=True)
        return
    await _ask(cb, state, wizard, field)


@router.callback_query(F.data == "input:cancel")
async def cancel_input(cb: CallbackQuery, state: FSMContext, bot: Bot) -> None:
    wizard = await _load(state, bot)
    await _refresh(cb, state, wizard)
    await cb.answer()


def apply_text(wizard: WizardController, field: str, text: str) -> None:
    """Route a typed value to the right store operation."""
    if field.startswith("gln:"):
        wizard.store.update_gln_address(int(field.split(":", 1)[1]), text)
    elif field == "billing":
        wizard.store.set_billing_address(text)
    elif "." in field:
        contact_key, sub_field = field.split(".", 1)
        wizard.store.set_sub_field(contact_key, sub_field, text)
    else:
        wizard.edit_field(field, text)


@router.message(RegistrationForm.field_input, F.text)
async def type_field(message: Message, state: FSMContext, bot: Bot) -> None:
    data = await state.get_data()
    field = data.get("pending_field")
    wizard = await _load(state, bot)
    if field:
        try:
            apply_text(wizard, field, (message.text or "").strip())
        except (IndexError, KeyError, ValueError) as exc:
            logger.warning("Could not store %s: %s", field, exc)
    await _save(state, wizard)
    await state.update_data(pending_field=None)
    await state.set_state(RegistrationForm.card)
    await message.answer(render_card(wizard), reply_markup=_step_markup(wizard))


# ── Categories ───────────────────────────────────────────────────────

@router.callback_query(F.data == "cats")
async def open_categories(cb: CallbackQuery, state: FSMContext, bot: Bot) -> None:
    wizard = await _load(state, bot)
    if await _blocked(cb, wizard):
        return
    await _safe_edit(
        cb,
        render_card(wizard, "📂 <b>Product categories</b> — tap to select or clear:"),
        reply_markup=categories_kb(wizard.state),
    )
    await cb.answer()


@router.callback_query(F.data.startswith("cat:"))
async def toggle_category(cb: CallbackQuery, state: FSMContext, bot: Bot) -> None:
    raw = cb.data.split(":", 1)[1]  # type: ignore[union-attr]
    wizard = await _load(state, bot)
    if not raw.isdigit() or int(raw) >= len(CATEGORIES):
        await cb.answer()
        return
    wizard.store.toggle_category(CATEGORIES[int(raw)])
    await _save(state, wizard)
    await cb.message.edit_reply_markup(reply_markup=categories_kb(wizard.state))  # type: ignore[union-attr]
    await cb.answer()


@router.callback_query(F.data == "cats:done")
async def close_categories(cb: CallbackQuery, state: FSMContext, bot: Bot) -> None:
    wizard = await _load(state, bot)
    await _refresh(cb, state, wizard)
    await cb.answer()


# ── Fee table ────────────────────────────────────────────────────────

@router.callback_query(F.data.startswith("fee:"))
async def toggle_fee(cb: CallbackQuery, state: FSMContext, bot: Bot) -> None:
    fee = cb.data.split(":", 1)[1]  # type: ignore[union-attr]
    wizard = await _load(state, bot)
    if await _blocked(cb, wizard):
        return
    if fee not in FEE_TIERS_BY_KEY or wizard.step != Step.PRODUCTS:
        # Stale fee row from a card that has moved on
        await cb.answer()
        return
    if not wizard.toggle_fee(fee):
        await cb.answer("Not available when GTIN-8 numbers are requested.", show_alert=True)
        return

    await _refresh(cb, state, wizard)
    await cb.answer()

    # Drop the row highlight once the transition is over
    await asyncio.sleep(TRANSITION_SECONDS)
    current = await _load(state, bot)
    if current.step != Step.PRODUCTS or current.notification is not None:
        return
    try:
        await cb.message.edit_reply_markup(reply_markup=_step_markup(current))  # type: ignore[union-attr]
    except Exception as exc:
        logger.debug("Fee row refresh skipped: %s", exc)


# ── Declaration ──────────────────────────────────────────────────────

@router.callback_query(F.data == "terms")
async def toggle_terms(cb: CallbackQuery, state: FSMContext, bot: Bot) -> None:
    wizard = await _load(state, bot)
    if await _blocked(cb, wizard):
        return
    wizard.store.set(agree_terms=not wizard.state.agree_terms)
    await _refresh(cb, state, wizard)
    await cb.answer()


@router.callback_query(F.data == "sig")
async def ask_signature(cb: CallbackQuery, state: FSMContext, bot: Bot) -> None:
    wizard = await _load(state, bot)
    if await _blocked(cb, wizard):
        return
    await state.set_state(RegistrationForm.signature)
    await _safe_edit(
        cb,
        render_card(wizard, "🖋 <b>Send an image of your signature</b> (JPG, PNG, under 1 MB)."),
        reply_markup=cancel_input_kb(),
    )
    await cb.answer()


@router.message(RegistrationForm.signature, F.photo | F.document)
async def receive_signature(message: Message, state: FSMContext, bot: Bot) -> None:
    wizard = await _load(state, bot)
    if wizard.notification is not None:
        await message.answer("⚠️ Please close the message above first.")
        return

    if message.photo:
        upload = message.photo[-1]
        mime_type: str | None = "image/jpeg"
    else:
        upload = message.document  # type: ignore[assignment]
        mime_type = message.document.mime_type  # type: ignore[union-attr]

    problem = check_signature(mime_type, upload.file_size)
    data = b""
    if problem is None:
        buf = await bot.download(upload.file_id)
        data = buf.read()  # type: ignore[union-attr]
        # Telegram does not always report file_size up front
        problem = check_signature(mime_type, len(data))
    if problem:
        wizard.notify(problem)
        await _save(state, wizard)
        await _show_notification(message, wizard)
        return

    wizard.attach_signature(to_data_url(data, mime_type))  # type: ignore[arg-type]
    await _save(state, wizard)
    await state.set_state(RegistrationForm.card)
    await message.answer(render_card(wizard), reply_markup=_step_markup(wizard))


@router.message(RegistrationForm.signature)
async def signature_not_a_file(message: Message) -> None:
    await message.answer("⚠️ Please send the signature as a photo or an image file.")


# ── Back-office notice ───────────────────────────────────────────────

def admin_summary(payload: Dict[str, Any]) -> str:
    ceo = payload.get("ceo") or {}
    fees = ", ".join(payload.get("selectedFees") or []) or "—"
    categories = ", ".join(payload.get("selectedCategories") or []) or "—"
    website = payload.get("website") or "—"
    return (
        f"🆕 <b>New membership application</b>\n\n"
        f"🏢 {escape(payload.get('companyName', ''))}\n"
        f"📍 {escape(payload.get('streetAddress', ''))}, {escape(payload.get('city', ''))}, "
        f"{escape(payload.get('province', ''))} {escape(payload.get('postCode', ''))}\n"
        f"🧾 {escape(payload.get('ntn', ''))}\n"
        f"📱 {escape(payload.get('telephone', ''))} · ✉️ {escape(payload.get('email', ''))}\n"
        f"🌐 {escape(website)}\n"
        f"👤 {escape(ceo.get('title', ''))} {escape(ceo.get('firstName', ''))} "
        f"{escape(ceo.get('lastName', ''))} ({escape(ceo.get('designation', ''))})\n"
        f"📂 {escape(categories)}\n"
        f"💳 {escape(fees)}\n"
        f"✍️ {escape(payload.get('userName', ''))}"
    )


async def _notify_admins(bot: Bot, payload: Dict[str, Any]) -> None:
    text = admin_summary(payload)
    for admin_id in settings.admin_ids:
        try:
            await bot.send_message(admin_id, text)
        except Exception as exc:
            logger.error("Failed to notify admin %s: %s", admin_id, exc)
