"""All keyboards and field labels of the registration wizard."""

from __future__ import annotations

from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup
from aiogram.utils.keyboard import InlineKeyboardBuilder

from membership_bot.codecs import TAX_ID_FORMATS
from membership_bot.fees import FEE_TIERS, FeeSelectionPolicy, format_pkr, is_tier_enabled
from membership_bot.form_state import (
    ADDRESS_SENTINEL,
    CATEGORIES,
    CEO_DESIGNATIONS,
    MAX_ADDRESSES,
    PROVINCES,
    TITLES,
    FormState,
)
from membership_bot.validators import FIRST_STEP, LAST_STEP, Step

# ── Field labels (field key → prompt label) ─────────────────────────

COMPANY_FIELDS: dict[str, str] = {
    "company_name": "Company Name",
    "street_address": "Street Address",
    "city": "City",
    "post_code": "Postal Code",
    "telephone": "Telephone (incl. city code)",
    "email": "Email",
    "company_reg_no": "Company Registration No.",
    "no_of_employees": "Number of Employees",
}

CONTACT_FIELDS: dict[str, str] = {
    "designation": "Designation",
    "first_name": "First Name",
    "last_name": "Last Name",
    "email": "Email",
    "telephone": "Mobile or Telephone",
}

CONTACT_BY_STEP: dict[Step, str] = {
    Step.CEO: "ceo",
    Step.KEY_CONTACT: "key_contact",
    Step.ACCOUNTS_CONTACT: "accounts_contact",
}

FIELD_HINTS: dict[str, str] = {
    "company_name": "Note: ensure the company name matches the NTN.",
    "telephone": "e.g. 923001234567 (minimum 5 digits after 92)",
    "ntn": "NTN: AB12345-6 · CNIC: 12345-1234567-1",
    "website": "e.g. www.example.com",
    "gtin8": "Annual fee: Rs. 3,488 per GTIN-8 + 16% PRA (minimum 10 GTIN-8s).",
    "billing": "Full billing address",
}


def field_label(field: str) -> str:
    """Human label for a (possibly dotted ``contact.field``) field key."""
    if "." in field:
        return CONTACT_FIELDS.get(field.split(".", 1)[1], field)
    if field.startswith("gln:"):
        return "GLN address"
    return {
        **COMPANY_FIELDS,
        "ntn": "NTN / CNIC",
        "website": "Website",
        "gtin8": "Number of GTIN-8s",
        "billing": "Billing Address",
        "user_name": "Full Name",
    }.get(field, field)


def _mark(selected: bool) -> str:
    return "🔘" if selected else "⚪️"


def _nav_row(step: Step) -> list[InlineKeyboardButton]:
    row: list[InlineKeyboardButton] = []
    if step > FIRST_STEP:
        row.append(InlineKeyboardButton(text="◀ Back", callback_data="nav:back"))
    if step < LAST_STEP:
        row.append(InlineKeyboardButton(text="Next ▶", callback_data="nav:next"))
    else:
        row.append(InlineKeyboardButton(text="📨 Submit", callback_data="nav:submit"))
    return row


# ── Step keyboards ───────────────────────────────────────────────────

def company_kb(form: FormState, fmt: str) -> InlineKeyboardMarkup:
    b = InlineKeyboardBuilder()
    for key, label in COMPANY_FIELDS.items():
        b.button(text=f"✏️ {label}", callback_data=f"f:{key}")
    b.adjust(2)
    b.row(*[
        InlineKeyboardButton(text=f"{_mark(form.province == p)} {p}", callback_data=f"c:province:{i}")
        for i, p in enumerate(PROVINCES)
    ], width=2)
    b.row(*[
        InlineKeyboardButton(text=f"{_mark(fmt == f)} {f}", callback_data=f"c:format:{f}")
        for f in TAX_ID_FORMATS
    ])
    if fmt:
        b.row(InlineKeyboardButton(text=f"✏️ {fmt} number", callback_data="f:ntn"))
    b.row(
        InlineKeyboardButton(text=f"{_mark(form.website != '')} Website: Yes", callback_data="yn:website:y"),
        InlineKeyboardButton(text=f"{_mark(form.website == '')} No", callback_data="yn:website:n"),
    )
    if form.website != "":
        b.row(InlineKeyboardButton(text="✏️ Website", callback_data="f:website"))
    b.row(*_nav_row(Step.COMPANY_INFO))
    return b.as_markup()


def gln_billing_kb(form: FormState) -> InlineKeyboardMarkup:
    b = InlineKeyboardBuilder()
    b.row(
        InlineKeyboardButton(text=f"{_mark(form.gln_required)} GLN: Yes", callback_data="yn:gln:y"),
        InlineKeyboardButton(text=f"{_mark(not form.gln_required)} No", callback_data="yn:gln:n"),
    )
    if form.gln_required:
        for index, address in enumerate(form.gln_addresses):
            if address == ADDRESS_SENTINEL:
                continue
            text = address or "(empty)"
            b.row(
                InlineKeyboardButton(text=f"✏️ {text[:30]}", callback_data=f"gln:edit:{index}"),
                InlineKeyboardButton(text="🗑", callback_data=f"gln:del:{index}"),
            )
        if len(form.gln_addresses) < MAX_ADDRESSES:
            b.row(InlineKeyboardButton(text="➕ Add GLN address", callback_data="gln:add"))
    billing_yes = form.billing_required == "Yes"
    b.row(
        InlineKeyboardButton(text=f"{_mark(billing_yes)} Separate billing: Yes", callback_data="yn:billing:y"),
        InlineKeyboardButton(text=f"{_mark(not billing_yes)} No", callback_data="yn:billing:n"),
    )
    if billing_yes:
        b.row(InlineKeyboardButton(text="✏️ Billing address", callback_data="f:billing"))
    b.row(*_nav_row(Step.GLN_BILLING))
    return b.as_markup()


def contact_kb(step: Step, form: FormState) -> InlineKeyboardMarkup:
    contact_key = CONTACT_BY_STEP[step]
    contact = getattr(form, contact_key)
    b = InlineKeyboardBuilder()
    if step == Step.CEO:
        b.row(*[
            InlineKeyboardButton(
                text=f"{_mark(contact.designation == d)} {d}",
                callback_data=f"c:{contact_key}.designation:{i}",
            )
            for i, d in enumerate(CEO_DESIGNATIONS)
        ], width=2)
    b.row(*[
        InlineKeyboardButton(
            text=f"{_mark(contact.title == t)} {t}",
            callback_data=f"c:{contact_key}.title:{i}",
        )
        for i, t in enumerate(TITLES)
    ])
    fields = [
        (key, label) for key, label in CONTACT_FIELDS.items()
        if not (step == Step.CEO and key == "designation")
    ]
    b.row(*[
        InlineKeyboardButton(text=f"✏️ {label}", callback_data=f"f:{contact_key}.{key}")
        for key, label in fields
    ], width=2)
    b.row(*_nav_row(step))
    return b.as_markup()


def products_kb(form: FormState, policy: FeeSelectionPolicy) -> InlineKeyboardMarkup:
    b = InlineKeyboardBuilder()
    count = len(form.selected_categories)
    b.row(InlineKeyboardButton(
        text=f"📂 Categories ({count} selected)" if count else "📂 Select categories…",
        callback_data="cats",
    ))
    gtin8 = form.gtin8_required
    b.row(
        InlineKeyboardButton(text=f"{_mark(gtin8)} GTIN-8: Yes", callback_data="yn:gtin8:y"),
        InlineKeyboardButton(text=f"{_mark(not gtin8)} No", callback_data="yn:gtin8:n"),
    )
    if gtin8:
        b.row(InlineKeyboardButton(text="✏️ Number of GTIN-8s", callback_data="f:gtin8"))
    for tier in FEE_TIERS:
        selected = tier.key in form.selected_fees
        box = "☑️" if selected else "⬜️"
        if not is_tier_enabled(form, tier.key):
            box = "🚫"
        flash = " ✨" if policy.is_transitioning(tier.key) else ""
        b.row(InlineKeyboardButton(
            text=f"{box} {tier.label} — {format_pkr(tier.total)}{flash}",
            callback_data=f"fee:{tier.key}",
        ))
    b.row(*_nav_row(Step.PRODUCTS))
    return b.as_markup()


def categories_kb(form: FormState) -> InlineKeyboardMarkup:
    b = InlineKeyboardBuilder()
    for index, category in enumerate(CATEGORIES):
        tick = "✅" if category in form.selected_categories else "▫️"
        b.button(text=f"{tick} {category}", callback_data=f"cat:{index}")
    b.adjust(2)
    b.row(InlineKeyboardButton(text="✔️ Done", callback_data="cats:done"))
    return b.as_markup()


def declaration_kb(form: FormState) -> InlineKeyboardMarkup:
    b = InlineKeyboardBuilder()
    b.row(InlineKeyboardButton(text="✏️ Full Name", callback_data="f:user_name"))
    b.row(InlineKeyboardButton(
        text="🖋 Replace signature" if form.uploaded_image else "🖋 Upload signature",
        callback_data="sig",
    ))
    b.row(InlineKeyboardButton(
        text=f"{'☑️' if form.agree_terms else '⬜️'} I agree to all terms and conditions",
        callback_data="terms",
    ))
    b.row(*_nav_row(Step.DECLARATION))
    return b.as_markup()


def step_kb(step: Step, form: FormState, fmt: str, policy: FeeSelectionPolicy) -> InlineKeyboardMarkup:
    if step == Step.COMPANY_INFO:
        return company_kb(form, fmt)
    if step == Step.GLN_BILLING:
        return gln_billing_kb(form)
    if step in CONTACT_BY_STEP:
        return contact_kb(step, form)
    if step == Step.PRODUCTS:
        return products_kb(form, policy)
    return declaration_kb(form)


# ── Misc ─────────────────────────────────────────────────────────────

def cancel_input_kb() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        inline_keyboard=[[InlineKeyboardButton(text="✖️ Cancel", callback_data="input:cancel")]]
    )


def notification_kb() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        inline_keyboard=[[InlineKeyboardButton(text="Got it, thanks!", callback_data="ok")]]
    )


def start_kb() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        inline_keyboard=[[InlineKeyboardButton(text="📝 Start registration", callback_data="action:start")]]
    )
