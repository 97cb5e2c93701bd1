from membership_bot.fees import FeeSelectionPolicy
from membership_bot.handlers.common import fees_text
from membership_bot.handlers.wizard import admin_summary, apply_text, render_card, render_notification
from membership_bot.keyboards import categories_kb, field_label, step_kb
from membership_bot.form_state import FormState
from membership_bot.validators import MSG_TERMS_MISSING, Step
from membership_bot.wizard import SUCCESS_TITLE, WizardController


def _wizard() -> WizardController:
    return WizardController(lambda payload: None)


def _callbacks(markup) -> list[str]:
    return [button.callback_data for row in markup.inline_keyboard for button in row]


def test_card_shows_progress_and_escapes_values():
    wizard = _wizard()
    wizard.edit_field("company_name", "acme <foods>")
    card = render_card(wizard, "Send City:")
    assert "Step 1/7" in card
    assert "Company Information" in card
    assert "Acme &lt;foods&gt;" in card
    assert card.endswith("Send City:")


def test_card_for_every_step_renders():
    wizard = _wizard()
    for step in Step:
        wizard.step = step
        assert step.title in render_card(wizard)


def test_terms_hint_only_after_a_rejected_attempt():
    wizard = _wizard()
    wizard.step = Step.DECLARATION
    assert MSG_TERMS_MISSING not in render_card(wizard)
    wizard.submit()
    assert MSG_TERMS_MISSING in render_card(wizard)


def test_notifications_render_by_kind():
    wizard = _wizard()
    assert render_notification(wizard) == ""
    wizard.notify("Please enter your full name.")
    assert render_notification(wizard) == "⚠ Please enter your full name."
    wizard.notify("Further details are in the email.", "success")
    assert SUCCESS_TITLE in render_notification(wizard)


def test_apply_text_routes_fields():
    wizard = _wizard()
    wizard.store.set_gln_required(True)
    apply_text(wizard, "gln:0", "Plot 1, Lahore")
    apply_text(wizard, "ceo.first_name", "Ali")
    apply_text(wizard, "billing", "12 Mall Road")
    apply_text(wizard, "telephone", "0300")
    state = wizard.state
    assert state.gln_addresses == ["Plot 1, Lahore"]
    assert state.ceo.first_name == "Ali"
    assert state.billing_addresses == ["12 Mall Road"]
    assert state.telephone == "92"


def test_company_keyboard_offers_tax_id_only_after_format():
    form = FormState()
    policy = FeeSelectionPolicy()
    assert "f:ntn" not in _callbacks(step_kb(Step.COMPANY_INFO, form, "", policy))
    callbacks = _callbacks(step_kb(Step.COMPANY_INFO, form, "NTN", policy))
    assert "f:ntn" in callbacks
    assert "nav:next" in callbacks
    assert "nav:back" not in callbacks


def test_gln_keyboard_skips_sentinel_rows():
    form = FormState(gln_required=True, gln_addresses=["-", "Plot 1"])
    callbacks = _callbacks(step_kb(Step.GLN_BILLING, form, "", FeeSelectionPolicy()))
    assert "gln:edit:1" in callbacks
    assert "gln:edit:0" not in callbacks


def test_declaration_keyboard_has_submit():
    callbacks = _callbacks(step_kb(Step.DECLARATION, FormState(), "", FeeSelectionPolicy()))
    assert "nav:submit" in callbacks
    assert "nav:next" not in callbacks


def test_category_keyboard_lists_all_categories():
    callbacks = _callbacks(categories_kb(FormState()))
    assert callbacks[-1] == "cats:done"
    assert len(callbacks) == 31


def test_field_labels():
    assert field_label("company_name") == "Company Name"
    assert field_label("key_contact.last_name") == "Last Name"
    assert field_label("gln:3") == "GLN address"


def test_admin_summary_and_fee_table():
    payload = FormState(company_name="Acme", selected_fees=["100 GTINs"]).to_payload()
    summary = admin_summary(payload)
    assert "Acme" in summary
    assert "100 GTINs" in summary
    assert "PKR 30,355" in fees_text()


def test_fee_table_lists_every_membership_category():
    text = fees_text()
    for name in ("General", "Healthcare", "UDI", "Textile"):
        assert f"<b>{name}</b>" in text
    assert "PKR 13,920" in text
    assert "PKR 41,760" in text
