"""Menu wizard — a reply keyboard that waits until one of its buttons is chosen."""

from __future__ import annotations

import dataclasses
from typing import TYPE_CHECKING, Any, Callable, Mapping

from core.logger import TgflowLogger
from core.state import call_handler
from bot.keyboards import Button, build_keyboard, find_button, flatten, normalize_rows
from sdk.exceptions import APIException, TransportError
from sdk.models import Message

if TYPE_CHECKING:
    from bot.engine import BotEngine
    from bot.scope import Scope

logger = TgflowLogger.get_logger()


@dataclasses.dataclass
class Menu:
    """Prompt text, button tree and extra ``sendMessage`` options."""

    message: str
    keyboard: list[Any]
    options: dict[str, Any] = dataclasses.field(default_factory=dict)

    @classmethod
    def coerce(cls, data: "Menu | Mapping[str, Any]") -> "Menu":
        if isinstance(data, Menu):
            return data
        return cls(
            message=data["message"],
            keyboard=list(data["keyboard"]),
            options=dict(data.get("options") or {}),
        )


def menu_options(menu: Menu) -> dict[str, Any]:
    """``sendMessage`` options for *menu*; a caller ``reply_markup`` is merged key-wise."""
    options: dict[str, Any] = {
        "reply_markup": {
            "resize_keyboard": True,
            "one_time_keyboard": True,
            "keyboard": build_keyboard(menu.keyboard),
        }
    }
    for key, value in menu.options.items():
        if key == "reply_markup" and isinstance(value, Mapping):
            value = {**options["reply_markup"], **value}
        options[key] = value
    return options


def match_reply(buttons: list[Button], message: Message | None) -> tuple[Button, Any] | None:
    """Find the button *message* answers, with the payload to pass its callback."""
    if message is None:
        return None
    if message.text:
        button = find_button(buttons, message.text)
        return (button, None) if button else None
    if message.location is not None:
        button = next((b for b in buttons if b.request_location), None)
        return (button, message.location) if button else None
    if message.contact is not None:
        button = next((b for b in buttons if b.request_contact), None)
        return (button, message.contact) if button else None
    return None


async def send_menu(
    engine: "BotEngine",
    chat_id: int,
    menu: "Menu | Mapping[str, Any]",
    done: Callable[..., Any] | None = None,
) -> Any:
    """Send *menu* to *chat_id* and resolve the user's choice.

    The menu keeps waiting until a reply matches a button.  The matching
    button's ``callback`` runs first (with the shared location or contact
    when the button requested one), then *done* with the reply scope.
    """
    menu = Menu.coerce(menu)
    buttons = flatten(normalize_rows(menu.keyboard))

    async def on_reply(scope: "Scope") -> None:
        match = match_reply(buttons, scope.message)
        if match is None:
            logger.debug("Menu reply matched no button, waiting again", extra={"chat_id": chat_id})
            engine.wait_for_message(chat_id, on_reply)
            return

        button, payload = match
        logger.info("Menu choice", extra={"chat_id": chat_id, "button": button.text})
        if button.callback is not None:
            if payload is None:
                await call_handler(button.callback)
            else:
                await call_handler(button.callback, payload)
        if done is not None:
            await call_handler(done, scope)

    continuation = engine.wait_for_message(chat_id, on_reply)
    try:
        return await engine.send_message(chat_id, menu.message, **menu_options(menu))
    except (APIException, TransportError):
        engine.state.waiting.cancel(chat_id, continuation)
        logger.warning("Menu prompt failed, reply slot released", extra={"chat_id": chat_id})
        raise
