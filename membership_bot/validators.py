"""Per-step validators and the diagnostic message shown when a step is rejected."""

from __future__ import annotations

from enum import IntEnum
from typing import Callable, Dict

from membership_bot.codecs import (
    FORMAT_CNIC,
    FORMAT_NTN,
    is_valid_email,
    is_valid_tax_id,
    is_valid_telephone,
    is_valid_website,
)
from membership_bot.form_state import ContactInfo, FormState, filled_address_count, real_addresses


class Step(IntEnum):
    COMPANY_INFO = 1
    GLN_BILLING = 2
    CEO = 3
    KEY_CONTACT = 4
    ACCOUNTS_CONTACT = 5
    PRODUCTS = 6
    DECLARATION = 7

    @property
    def title(self) -> str:
        return STEP_TITLES[self]


STEP_TITLES: Dict[Step, str] = {
    Step.COMPANY_INFO: "Company Information",
    Step.GLN_BILLING: "GLN and Billing Information",
    Step.CEO: "CEO / Managing Director",
    Step.KEY_CONTACT: "Key Contact for GS1 Activate Tool",
    Step.ACCOUNTS_CONTACT: "Accounts Contact",
    Step.PRODUCTS: "Product Information",
    Step.DECLARATION: "Declaration",
}

FIRST_STEP = Step.COMPANY_INFO
LAST_STEP = Step.DECLARATION

# ── Messages ─────────────────────────────────────────────────────────

MSG_GENERIC = "Please fill all required fields correctly before proceeding."
MSG_SUBMIT_GENERIC = "Please fill all required fields correctly."
MSG_FORMAT_MISSING = "Please fill all required fields (*) correctly before proceeding."
MSG_NTN_INVALID = "Please complete the NTN field in format: AB12345-6"
MSG_CNIC_INVALID = "Please complete the CNIC field in format: 12345-1234567-1"
MSG_TELEPHONE_INVALID = "Please enter a valid telephone number (e.g., 923001234567)"
MSG_EMAIL_INVALID = "Please enter a valid email address (e.g., example@company.com)"
MSG_WEBSITE_INVALID = "Please enter a complete website URL (e.g.,www.example.com)"
MSG_GLN_MISSING_STEP1 = (
    'Please enter at least one GLN address or select "No" if GLN is not required.'
)
MSG_GLN_MISSING = "Please enter at least one GLN address."
MSG_GTINS_MISSING = "Please select whether you require GTINs."
MSG_GTIN8_MISSING = "Please enter GTIN8 information."
MSG_CATEGORIES_MISSING = "Please select at least one product category."
MSG_FEES_MISSING = "Please select the required number of Global Trade Item Numbers (GTINs)."
MSG_NAME_MISSING = "Please enter your full name."
MSG_SIGNATURE_MISSING = "Please upload your signature."
MSG_TERMS_MISSING = "Please agree to the terms and conditions."


# ── Validators ───────────────────────────────────────────────────────

def validate_company_info(state: FormState, fmt: str) -> bool:
    return (
        bool(state.form_name)
        and bool(state.company_name)
        and bool(state.street_address)
        and bool(state.city)
        and bool(state.province)
        and bool(state.post_code)
        and bool(state.telephone)
        and is_valid_telephone(state.telephone)
        and bool(state.email)
        and is_valid_email(state.email)
        and bool(state.no_of_employees)
        and bool(fmt)
        and is_valid_tax_id(state.ntn, fmt)
        and is_valid_website(state.website)
    )


def validate_gln_billing(state: FormState, fmt: str) -> bool:
    # The disjunction binds loosest: a "yes" to GLN passes the step on its
    # own, without the GTIN checks. Kept as the intake team receives it.
    return state.gln_required or (
        all(addr for addr in real_addresses(state.gln_addresses))
        and bool(state.gtins_required)
        and (state.gtin8s_required == "no" or bool(state.gtin8))
    )


def _contact_complete(contact: ContactInfo) -> bool:
    return all(
        (
            contact.designation,
            contact.title,
            contact.first_name,
            contact.last_name,
            contact.email,
            contact.telephone,
        )
    )


def validate_ceo(state: FormState, fmt: str) -> bool:
    return _contact_complete(state.ceo)


def validate_key_contact(state: FormState, fmt: str) -> bool:
    return _contact_complete(state.key_contact)


def validate_accounts_contact(state: FormState, fmt: str) -> bool:
    return _contact_complete(state.accounts_contact)


def validate_products(state: FormState, fmt: str) -> bool:
    categories_ok = len(state.selected_categories) > 0
    gtin8_ok = state.gtin8s_required == "no" or bool(state.gtin8)
    # The fee table may only be skipped on the GTIN-8 path
    fees_ok = state.gtin8s_required == "yes" or len(state.selected_fees) > 0
    return categories_ok and gtin8_ok and fees_ok


def validate_declaration(state: FormState, fmt: str = "") -> bool:
    return bool(state.user_name) and bool(state.uploaded_image) and state.agree_terms


Validator = Callable[[FormState, str], bool]

VALIDATORS: Dict[Step, Validator] = {
    Step.COMPANY_INFO: validate_company_info,
    Step.GLN_BILLING: validate_gln_billing,
    Step.CEO: validate_ceo,
    Step.KEY_CONTACT: validate_key_contact,
    Step.ACCOUNTS_CONTACT: validate_accounts_contact,
    Step.PRODUCTS: validate_products,
    Step.DECLARATION: validate_declaration,
}


def validate_step(step: int, state: FormState, fmt: str) -> bool:
    """Run the validator registered for ``step``; unknown steps always pass."""
    try:
        validator = VALIDATORS[Step(step)]
    except (ValueError, KeyError):
        return True
    return validator(state, fmt)


# ── Diagnostics ──────────────────────────────────────────────────────

def _diagnose_company_info(state: FormState, fmt: str) -> str | None:
    if not fmt:
        return MSG_FORMAT_MISSING
    if fmt == FORMAT_NTN and not is_valid_tax_id(state.ntn, fmt):
        return MSG_NTN_INVALID
    if fmt == FORMAT_CNIC and not is_valid_tax_id(state.ntn, fmt):
        return MSG_CNIC_INVALID
    if not is_valid_telephone(state.telephone):
        return MSG_TELEPHONE_INVALID
    if not state.email or not is_valid_email(state.email):
        return MSG_EMAIL_INVALID
    if not is_valid_website(state.website):
        return MSG_WEBSITE_INVALID
    if state.gln_required and filled_address_count(state.gln_addresses) == 0:
        return MSG_GLN_MISSING_STEP1
    return None


def _diagnose_gln_billing(state: FormState, fmt: str) -> str | None:
    message = None
    if state.gln_required and filled_address_count(state.gln_addresses) == 0:
        message = MSG_GLN_MISSING
    # GTIN problems take precedence over the address message
    if not state.gtins_required:
        message = MSG_GTINS_MISSING
    elif state.gtin8_required and not state.gtin8:
        message = MSG_GTIN8_MISSING
    return message


def _diagnose_products(state: FormState, fmt: str) -> str | None:
    if not state.selected_categories:
        return MSG_CATEGORIES_MISSING
    if state.gtin8_required and not state.gtin8:
        return MSG_GTIN8_MISSING
    if state.gtin8s_required == "no" and not state.selected_fees:
        return MSG_FEES_MISSING
    return None


def _diagnose_declaration(state: FormState, fmt: str = "") -> str | None:
    if not state.user_name:
        return MSG_NAME_MISSING
    if not state.uploaded_image:
        return MSG_SIGNATURE_MISSING
    if not state.agree_terms:
        return MSG_TERMS_MISSING
    return None


_DIAGNOSTICS: Dict[Step, Callable[[FormState, str], str | None]] = {
    Step.COMPANY_INFO: _diagnose_company_info,
    Step.GLN_BILLING: _diagnose_gln_billing,
    Step.PRODUCTS: _diagnose_products,
    Step.DECLARATION: _diagnose_declaration,
}


def diagnose(step: int, state: FormState, fmt: str) -> str:
    """Most specific reason ``step`` is rejected, else the generic message."""
    try:
        check = _DIAGNOSTICS.get(Step(step))
    except ValueError:
        check = None
    message = check(state, fmt) if check else None
    return message or MSG_GENERIC


def diagnose_submission(state: FormState) -> str:
    return _diagnose_declaration(state) or MSG_SUBMIT_GENERIC
