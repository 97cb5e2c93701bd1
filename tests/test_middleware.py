import asyncio
from datetime import datetime

from aiogram.types import Chat, Message, User

from membership_bot.middleware import ThrottlingMiddleware


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _message(text: str, user_id: int = 7) -> Message:
    return Message(
        message_id=1,
        date=datetime.now(),
        chat=Chat(id=user_id, type="private"),
        from_user=User(id=user_id, is_bot=False, first_name="Sara"),
        text=text,
    )


async def _handler(event, data):
    return "handled"


def test_messages_over_the_limit_are_dropped():
    clock = FakeClock()
    mw = ThrottlingMiddleware(limit=2, window=3, clock=clock)

    async def scenario() -> list:
        return [await mw(_handler, _message("Acme"), {}) for _ in range(3)]

    assert asyncio.run(scenario()) == ["handled", "handled", None]


def test_window_expiry_lets_the_user_back_in():
    clock = FakeClock()
    mw = ThrottlingMiddleware(limit=1, window=3, clock=clock)

    async def scenario() -> list:
        first = await mw(_handler, _message("a"), {})
        blocked = await mw(_handler, _message("b"), {})
        clock.now += 3.5
        again = await mw(_handler, _message("c"), {})
        return [first, blocked, again]

    assert asyncio.run(scenario()) == ["handled", None, "handled"]


def test_commands_and_other_users_are_not_throttled():
    clock = FakeClock()
    mw = ThrottlingMiddleware(limit=1, window=3, clock=clock)

    async def scenario() -> list:
        return [
            await mw(_handler, _message("x"), {}),
            await mw(_handler, _message("/cancel"), {}),
            await mw(_handler, _message("y", user_id=8), {}),
        ]

    assert asyncio.run(scenario()) == ["handled", "handled", "handled"]
