"""Field codecs: normalise raw user input into canonical field values.

Every function here is pure and is applied on each edit, so the stored
value is always in canonical shape. The ``is_valid_*`` predicates check the
*complete* shape and are shared with the step validators.
"""

from __future__ import annotations

import re

TELEPHONE_PREFIX = "92"
WEBSITE_PREFIX = "www."

FORMAT_NTN = "NTN"
FORMAT_CNIC = "CNIC"
TAX_ID_FORMATS = (FORMAT_NTN, FORMAT_CNIC)

NTN_LENGTH = 9
CNIC_LENGTH = 15

_NTN_RE = re.compile(r"^[A-Z0-9]{7}-[0-9]$")
_CNIC_RE = re.compile(r"^[0-9]{5}-[0-9]{7}-[0-9]$")
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


# ── Tax identifier ───────────────────────────────────────────────────

def format_ntn(raw: str) -> str:
    """``ab12345-6`` style input → ``AB12345-6`` (7 alphanumerics, dash, 1 digit)."""
    value = re.sub(r"[^A-Z0-9-]", "", raw.upper())
    chars = value.replace("-", "")
    head, tail = chars[:7], re.sub(r"\D", "", chars[7:])
    value = head + ("-" if len(head) == 7 else "") + tail
    return value[:NTN_LENGTH]


def format_cnic(raw: str) -> str:
    """Digits only, dashes after the 5th and the 12th digit."""
    digits = re.sub(r"[^0-9]", "", raw)
    if len(digits) <= 5:
        value = digits
    elif len(digits) <= 12:
        value = f"{digits[:5]}-{digits[5:]}"
    else:
        value = f"{digits[:5]}-{digits[5:12]}-{digits[12:13]}"
    return value[:CNIC_LENGTH]


def format_tax_id(raw: str, fmt: str) -> str:
    """Dispatch on the NTN / CNIC discriminator.

    With no discriminator selected the field is disabled, so nothing is kept.
    """
    if fmt == FORMAT_NTN:
        return format_ntn(raw)
    if fmt == FORMAT_CNIC:
        return format_cnic(raw)
    return ""


def is_valid_ntn(value: str) -> bool:
    return len(value) == NTN_LENGTH and bool(_NTN_RE.match(value))


def is_valid_cnic(value: str) -> bool:
    return len(value) == CNIC_LENGTH and bool(_CNIC_RE.match(value))


def is_valid_tax_id(value: str, fmt: str) -> bool:
    if fmt == FORMAT_NTN:
        return bool(value) and is_valid_ntn(value)
    if fmt == FORMAT_CNIC:
        return bool(value) and is_valid_cnic(value)
    return False


# ── Contact fields ───────────────────────────────────────────────────

def format_telephone(raw: str) -> str:
    """Keep digits only; the country-code prefix can never be removed."""
    value = re.sub(r"\D", "", raw)
    if not value.startswith(TELEPHONE_PREFIX):
        value = TELEPHONE_PREFIX
    return value


def is_valid_telephone(value: str) -> bool:
    return value.startswith(TELEPHONE_PREFIX) and len(value) >= 7


def is_valid_email(value: str) -> bool:
    return bool(_EMAIL_RE.match(value))


# ── Address fields ───────────────────────────────────────────────────

def format_postcode(raw: str, current: str) -> str:
    """Non-digit input is rejected and the previous value kept."""
    if re.fullmatch(r"\d*", raw):
        return raw
    return current


def format_city(raw: str) -> str:
    value = re.sub(r"[^a-zA-Z\s]", "", raw)
    if value:
        value = value[0].upper() + value[1:].lower()
    return value


def format_company_name(raw: str) -> str:
    if raw and re.match(r"[a-zA-Z]", raw[0]):
        return raw[0].upper() + raw[1:]
    return raw


# ── Website ──────────────────────────────────────────────────────────

def website_for_choice(has_website: bool) -> str:
    """Yes seeds the prefix, no clears to "" (the "no website" value)."""
    return WEBSITE_PREFIX if has_website else ""


def is_valid_website(value: str) -> bool:
    if value == "":
        return True
    return value.startswith(WEBSITE_PREFIX) and len(value) > 8
