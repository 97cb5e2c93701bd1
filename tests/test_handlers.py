import asyncio
import io
from types import SimpleNamespace

from aiogram.fsm.context import FSMContext
from aiogram.fsm.storage.base import StorageKey
from aiogram.fsm.storage.memory import MemoryStorage

from membership_bot.handlers import wizard as handlers
from membership_bot.signature import MAX_SIGNATURE_BYTES, MSG_NOT_AN_IMAGE, MSG_TOO_LARGE
from membership_bot.states import RegistrationForm
from membership_bot.validators import Step
from membership_bot.wizard import WizardController

BLOCKED = "Please close the message above first."


class FakeMessage:
    def __init__(self, text: str = "", photo=None, document=None) -> None:
        self.text = text
        self.photo = photo
        self.document = document
        self.sent: list[str] = []
        self.markups: list = []
        self.deleted = False

    async def answer(self, text, reply_markup=None, **kwargs):
        self.sent.append(text)

    async def edit_text(self, text, reply_markup=None, **kwargs):
        self.markups.append(reply_markup)

    async def edit_reply_markup(self, reply_markup=None, **kwargs):
        self.markups.append(reply_markup)

    async def delete(self):
        self.deleted = True


class FakeCallback:
    def __init__(self, data: str, message: FakeMessage | None = None) -> None:
        self.data = data
        self.message = message or FakeMessage()
        self.answers: list[tuple] = []

    async def answer(self, text=None, show_alert=False, **kwargs):
        self.answers.append((text, show_alert))


class FakeBot:
    def __init__(self, content: bytes = b"\x89PNG") -> None:
        self.content = content
        self.downloads: list[str] = []

    async def download(self, file_id, destination=None):
        self.downloads.append(file_id)
        return io.BytesIO(self.content)


def _context() -> FSMContext:
    return FSMContext(storage=MemoryStorage(), key=StorageKey(bot_id=1, chat_id=7, user_id=7))


async def _seed(state: FSMContext, wizard: WizardController) -> None:
    await state.update_data(wizard=wizard.dump())


async def _stored(state: FSMContext) -> WizardController:
    data = await state.get_data()
    return WizardController.load(data["wizard"], lambda payload: None)


def _callbacks(markup) -> list[str]:
    return [button.callback_data for row in markup.inline_keyboard for button in row]


def _wizard_at(step: Step) -> WizardController:
    wizard = WizardController(lambda payload: None)
    wizard.step = step
    return wizard


def test_open_notification_blocks_navigation():
    state, bot = _context(), FakeBot()
    wizard = _wizard_at(Step.COMPANY_INFO)
    wizard.notify("Please enter your company name.")
    cb = FakeCallback("nav:next")

    async def scenario() -> WizardController:
        await _seed(state, wizard)
        await handlers.nav_next(cb, state, bot)
        return await _stored(state)

    stored = asyncio.run(scenario())
    assert cb.answers == [(BLOCKED, True)]
    assert stored.step == Step.COMPANY_INFO
    assert stored.notification.message == "Please enter your company name."


def test_ok_button_closes_the_notification():
    state, bot = _context(), FakeBot()
    wizard = _wizard_at(Step.CEO)
    wizard.notify("Please fill in all the required fields.")
    cb = FakeCallback("ok")

    async def scenario() -> WizardController:
        await _seed(state, wizard)
        await handlers.acknowledge(cb, state, bot)
        return await _stored(state)

    stored = asyncio.run(scenario())
    assert stored.notification is None
    assert stored.step == Step.CEO
    assert cb.message.deleted


def test_cancel_command_closes_notification_and_prompt():
    state, bot = _context(), FakeBot()
    wizard = _wizard_at(Step.GLN_BILLING)
    wizard.notify("Please fill in all the required fields.")
    message = FakeMessage("/cancel")

    async def scenario() -> tuple:
        await _seed(state, wizard)
        await state.set_state(RegistrationForm.field_input)
        await handlers.cmd_cancel(message, state, bot)
        return await _stored(state), await state.get_state()

    stored, fsm_state = asyncio.run(scenario())
    assert stored.notification is None
    assert fsm_state == RegistrationForm.card.state
    assert "GLN and Billing Information" in message.sent[-1]


def test_rejected_submission_opens_a_notification():
    state, bot = _context(), FakeBot()
    cb = FakeCallback("nav:submit")

    async def scenario() -> WizardController:
        await _seed(state, _wizard_at(Step.DECLARATION))
        await handlers.nav_submit(cb, state, bot)
        return await _stored(state)

    stored = asyncio.run(scenario())
    assert stored.step == Step.DECLARATION
    assert stored.show_errors
    assert stored.notification is not None
    assert cb.message.sent[-1].startswith("⚠")


def test_fee_highlight_refresh_does_not_redraw_a_later_step(monkeypatch):
    monkeypatch.setattr(handlers, "TRANSITION_SECONDS", 0.05)
    state, bot = _context(), FakeBot()
    wizard = _wizard_at(Step.PRODUCTS)
    wizard.store.toggle_category("Tea")
    card = FakeMessage()

    async def scenario() -> WizardController:
        await _seed(state, wizard)
        toggle = asyncio.create_task(
            handlers.toggle_fee(FakeCallback("fee:100 GTINs", card), state, bot)
        )
        await asyncio.sleep(0.01)
        await handlers.nav_next(FakeCallback("nav:next", card), state, bot)
        await toggle
        return await _stored(state)

    stored = asyncio.run(scenario())
    assert stored.step == Step.DECLARATION
    assert stored.state.selected_fees == ["100 GTINs"]
    last = _callbacks(card.markups[-1])
    assert "nav:submit" in last
    assert not any(data.startswith("fee:") for data in last)


def test_stale_fee_button_leaves_selection_alone():
    state, bot = _context(), FakeBot()
    cb = FakeCallback("fee:100 GTINs")

    async def scenario() -> WizardController:
        await _seed(state, _wizard_at(Step.DECLARATION))
        await handlers.toggle_fee(cb, state, bot)
        return await _stored(state)

    stored = asyncio.run(scenario())
    assert stored.state.selected_fees == []
    assert cb.message.markups == []


def test_rejected_signature_is_not_stored_and_blocks_retries():
    state, bot = _context(), FakeBot()
    pdf = FakeMessage(document=SimpleNamespace(file_id="doc1", file_size=10, mime_type="application/pdf"))
    photo = FakeMessage(photo=[SimpleNamespace(file_id="ph1", file_size=2048)])

    async def scenario() -> tuple:
        await _seed(state, _wizard_at(Step.DECLARATION))
        await state.set_state(RegistrationForm.signature)
        await handlers.receive_signature(pdf, state, bot)
        after_pdf = await _stored(state)
        await handlers.receive_signature(photo, state, bot)
        return after_pdf, await _stored(state)

    after_pdf, after_photo = asyncio.run(scenario())
    assert after_pdf.state.uploaded_image is None
    assert after_pdf.notification.message == MSG_NOT_AN_IMAGE
    assert after_photo.state.uploaded_image is None
    assert photo.sent[-1].endswith(BLOCKED)
    assert bot.downloads == []


def test_signature_without_reported_size_is_checked_after_download():
    state = _context()
    bot = FakeBot(content=b"\0" * (MAX_SIGNATURE_BYTES + 1))
    photo = FakeMessage(photo=[SimpleNamespace(file_id="ph1", file_size=None)])

    async def scenario() -> WizardController:
        await _seed(state, _wizard_at(Step.DECLARATION))
        await state.set_state(RegistrationForm.signature)
        await handlers.receive_signature(photo, state, bot)
        return await _stored(state)

    stored = asyncio.run(scenario())
    assert bot.downloads == ["ph1"]
    assert stored.state.uploaded_image is None
    assert stored.notification.message == MSG_TOO_LARGE


def test_accepted_signature_is_stored_as_data_url():
    state, bot = _context(), FakeBot()
    photo = FakeMessage(photo=[SimpleNamespace(file_id="ph1", file_size=4)])

    async def scenario() -> tuple:
        await _seed(state, _wizard_at(Step.DECLARATION))
        await state.set_state(RegistrationForm.signature)
        await handlers.receive_signature(photo, state, bot)
        return await _stored(state), await state.get_state()

    stored, fsm_state = asyncio.run(scenario())
    assert stored.state.uploaded_image.startswith("data:image/jpeg;base64,")
    assert stored.notification is None
    assert fsm_state == RegistrationForm.card.state
