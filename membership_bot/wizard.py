"""Wizard controller: step sequencing, rejection messages and the submission gate.

One controller exists per applicant session. It owns the form store, the
NTN/CNIC discriminator and the pending notification; the bot handlers load
it from FSM storage, call one operation and dump it back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Literal, Optional

from membership_bot.codecs import (
    TAX_ID_FORMATS,
    format_city,
    format_company_name,
    format_postcode,
    format_tax_id,
    format_telephone,
    website_for_choice,
)
from membership_bot.fees import FeeSelectionPolicy
from membership_bot.form_state import FormState, FormStore
from membership_bot.validators import (
    FIRST_STEP,
    LAST_STEP,
    Step,
    diagnose,
    diagnose_submission,
    validate_declaration,
    validate_step,
)

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = "Further details are in the email."
SUCCESS_TITLE = "Form submitted successfully!"
SUCCESS_POINTS = (
    "A copy of your application will be emailed within 60 seconds — please check your inbox.",
    "After reviewing your application, you will receive an invoice shortly.",
    "Please complete the payment and share proof of payment.",
    "Your application will remain on hold until the payment is confirmed.",
)

Dispatcher = Callable[[Dict[str, Any]], Any]

# Single-argument codecs applied on every edit of the field
_FIELD_CODECS: Dict[str, Callable[[str], str]] = {
    "company_name": format_company_name,
    "city": format_city,
    "telephone": format_telephone,
}


@dataclass
class Notification:
    message: str
    kind: Literal["success", "error"] = "error"


class WizardController:
    def __init__(
        self,
        dispatcher: Dispatcher,
        store: FormStore | None = None,
        fee_policy: FeeSelectionPolicy | None = None,
    ) -> None:
        self.dispatcher = dispatcher
        self.store = store if store is not None else FormStore()
        self.fee_policy = fee_policy if fee_policy is not None else FeeSelectionPolicy()
        self.format = ""
        self.step = FIRST_STEP
        self.show_errors = False
        self.notification: Optional[Notification] = None

    @property
    def state(self) -> FormState:
        return self.store.get()

    # ── Field edits ──────────────────────────────────────────────────

    def set_format(self, fmt: str) -> None:
        """Switch NTN/CNIC; the number typed under the old format is discarded."""
        if fmt not in TAX_ID_FORMATS:
            raise ValueError(f"Unknown tax identifier format: {fmt!r}")
        self.format = fmt
        self.store.set(ntn="")

    def edit_tax_id(self, raw: str) -> str:
        """Mask ``raw`` with the selected NTN/CNIC format and store it."""
        value = format_tax_id(raw, self.format)
        self.store.set(ntn=value)
        return value

    def edit_field(self, field: str, raw: str) -> str:
        """Store ``raw`` through the field's codec and return the stored value."""
        if field == "ntn":
            return self.edit_tax_id(raw)
        current = self.store.get()
        if field == "post_code":
            value = format_postcode(raw, current.post_code)
        elif field in _FIELD_CODECS:
            value = _FIELD_CODECS[field](raw)
        else:
            value = raw
        self.store.set(**{field: value})
        return value

    def set_has_website(self, has_website: bool) -> None:
        self.store.set(website=website_for_choice(has_website))

    def toggle_fee(self, fee: str) -> bool:
        accepted, selection = self.fee_policy.toggle(self.store.get(), fee)
        if accepted:
            self.store.set(selected_fees=selection)
        return accepted

    def attach_signature(self, data_url: str) -> None:
        self.store.set(uploaded_image=data_url)

    # ── Transitions ──────────────────────────────────────────────────

    def advance(self) -> bool:
        state = self.store.get()
        if validate_step(self.step, state, self.format):
            self.show_errors = False
            if self.step < LAST_STEP:
                self.step = Step(self.step + 1)
            logger.debug("Advanced to step %d", self.step)
            return True

        self.show_errors = True
        message = diagnose(self.step, state, self.format)
        logger.info("Step %d rejected: %s", self.step, message)
        self.notify(message)
        return False

    def retreat(self) -> None:
        if self.step > FIRST_STEP:
            self.step = Step(self.step - 1)
        logger.debug("Back to step %d", self.step)

    def submit(self) -> bool:
        """Validate the declaration step and hand the application off.

        Success means "locally valid and dispatched": the dispatcher's result
        is not awaited and the session is reset straight away.
        """
        state = self.store.get()
        if not validate_declaration(state):
            self.show_errors = True
            message = diagnose_submission(state)
            logger.info("Submission rejected: %s", message)
            self.notify(message)
            return False

        self.dispatcher(state.to_payload())
        logger.info("Application for %r dispatched", state.company_name)

        self.notify(SUCCESS_MESSAGE, "success")
        self.store.reset()
        self.format = ""
        self.step = FIRST_STEP
        self.show_errors = False
        return True

    # ── Notifications ────────────────────────────────────────────────

    def notify(self, message: str, kind: Literal["success", "error"] = "error") -> None:
        self.notification = Notification(message, kind)

    def acknowledge(self) -> None:
        self.notification = None

    # ── FSM storage round-trip ───────────────────────────────────────

    def dump(self) -> Dict[str, Any]:
        return {
            "form": self.store.dump(),
            "format": self.format,
            "step": int(self.step),
            "show_errors": self.show_errors,
            "notification": (
                {"message": self.notification.message, "kind": self.notification.kind}
                if self.notification
                else None
            ),
        }

    @classmethod
    def load(cls, data: Dict[str, Any] | None, dispatcher: Dispatcher) -> "WizardController":
        wizard = cls(dispatcher)
        if not data:
            return wizard
        wizard.store = FormStore.load(data.get("form"))
        wizard.format = data.get("format", "")
        wizard.step = Step(data.get("step", FIRST_STEP))
        wizard.show_errors = bool(data.get("show_errors", False))
        note = data.get("notification")
        if note:
            wizard.notification = Notification(note["message"], note["kind"])
        return wizard
