"""Inbound events — a closed variant of message and callback-query updates.

Raw ``getUpdates`` dicts are validated into :mod:`sdk.models` once, here,
and wrapped in one of two frozen event types.  Every other update kind is
dropped with a debug log.
"""

from __future__ import annotations

import dataclasses
from typing import Union

from pydantic import ValidationError

from core.logger import TgflowLogger
from sdk.models import CallbackQuery, Message, Update, User

logger = TgflowLogger.get_logger()


@dataclasses.dataclass(frozen=True, slots=True)
class MessageEvent:
    """A message sent to the bot."""

    update_id: int
    chat_id: int | None
    actor: User | None
    message: Message


@dataclasses.dataclass(frozen=True, slots=True)
class CallbackQueryEvent:
    """An inline-keyboard button press."""

    update_id: int
    chat_id: int | None
    actor: User
    query: CallbackQuery

    @property
    def token(self) -> str:
        return self.query.data or ""


Event = Union[MessageEvent, CallbackQueryEvent]


def _chat_id_of(message: Message | None) -> int | None:
    """Chat id of *message*, falling back to the sender's id."""
    if message is None:
        return None
    if message.chat is not None:
        return message.chat.id
    if message.from_field is not None:
        return message.from_field.id
    return None


def event_from_update(update: Update) -> Event | None:
    """Wrap a validated :class:`~sdk.models.Update` in its event type."""
    if update.message is not None:
        return MessageEvent(
            update_id=update.update_id,
            chat_id=_chat_id_of(update.message),
            actor=update.message.from_field,
            message=update.message,
        )
    if update.callback_query is not None:
        query = update.callback_query
        return CallbackQueryEvent(
            update_id=update.update_id,
            chat_id=_chat_id_of(query.message),
            actor=query.from_field,
            query=query,
        )
    return None


def parse_update(raw: dict) -> Event | None:
    """Validate a raw update dict and return its event, or ``None`` to skip it."""
    update_id = raw.get("update_id")
    try:
        update = Update.model_validate(raw)
    except ValidationError as exc:
        logger.warning("Failed to parse update", extra={"update_id": update_id, "error": str(exc)})
        return None

    event = event_from_update(update)
    if event is None:
        logger.debug("Unsupported update kind — skipping", extra={"update_id": update_id})
    return event
