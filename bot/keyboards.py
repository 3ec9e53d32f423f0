"""Keyboard definitions — declarative button trees to Bot API markup.

A button tree is a list of rows.  Each item is a plain string, a button
mapping such as ``{"text": "Share", "request_location": True}`` or a
:class:`Button`, or a list of those forming one row.
"""

from __future__ import annotations

import dataclasses
from typing import Any, Callable, Iterable, Mapping

from core.state import CallbackTable
from sdk.models import InlineKeyboardButton, KeyboardButton


@dataclasses.dataclass(frozen=True, slots=True)
class Button:
    """One keyboard button and what pressing it means."""

    text: str
    request_location: bool = False
    request_contact: bool = False
    callback: Callable[..., Any] | None = None
    action: str | None = None
    url: str | None = None

    @classmethod
    def coerce(cls, item: "str | Mapping[str, Any] | Button") -> "Button":
        if isinstance(item, Button):
            return item
        if isinstance(item, str):
            return cls(text=item)
        if isinstance(item, Mapping):
            return cls(
                text=str(item["text"]),
                request_location=bool(item.get("request_location")),
                request_contact=bool(item.get("request_contact")),
                callback=item.get("callback"),
                action=item.get("action"),
                url=item.get("url"),
            )
        raise TypeError(f"Cannot build a keyboard button from {item!r}")


Rows = list[list[Button]]


def normalize_rows(items: Iterable[Any]) -> Rows:
    """Turn a button tree into rows of :class:`Button`."""
    rows: Rows = []
    for item in items:
        if isinstance(item, (list, tuple)):
            rows.append([Button.coerce(cell) for cell in item])
        else:
            rows.append([Button.coerce(item)])
    return rows


def flatten(rows: Rows) -> list[Button]:
    return [button for row in rows for button in row]


def find_button(buttons: Iterable[Button], text: str) -> Button | None:
    return next((b for b in buttons if b.text == text), None)


def build_keyboard(items: Iterable[Any]) -> list[list[dict]]:
    """Render a reply keyboard (``ReplyKeyboardMarkup.keyboard``)."""
    return [
        [
            KeyboardButton(
                text=button.text,
                request_location=button.request_location or None,
                request_contact=button.request_contact or None,
            ).model_dump(exclude_none=True)
            for button in row
        ]
        for row in normalize_rows(items)
    ]


def build_inline_keyboard(callbacks: CallbackTable, actor_id: int, items: Iterable[Any]) -> list[list[dict]]:
    """Render an inline keyboard, registering each button's callback.

    URL buttons open the link.  Every other button gets a fresh random
    ``callback_data`` token; its ``callback`` (if any) is stored under
    ``(actor_id, token)``.
    """
    keyboard: list[list[dict]] = []
    for row in normalize_rows(items):
        rendered = []
        for button in row:
            if button.url:
                markup = InlineKeyboardButton(text=button.text, url=button.url)
            else:
                token = callbacks.new_token()
                if button.callback is not None:
                    callbacks.register(actor_id, button.callback, token=token)
                markup = InlineKeyboardButton(text=button.text, callback_data=token)
            rendered.append(markup.model_dump(exclude_none=True))
        keyboard.append(rendered)
    return keyboard
