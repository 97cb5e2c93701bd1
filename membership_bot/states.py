"""FSM states for the registration wizard.

The wizard's own step lives in the stored controller; these states only
say what kind of input the bot is waiting for.
"""

from aiogram.fsm.state import State, StatesGroup


class RegistrationForm(StatesGroup):
    card        = State()   # step card shown, buttons only
    field_input = State()   # waiting for a typed value of `pending_field`
    signature   = State()   # waiting for the signature image
