"""Per-event scope — identity plus actions pre-bound to the event's chat.

A :class:`Scope` is created for every dispatched event and handed to every
handler, hook and continuation that runs for it.
"""

from __future__ import annotations

import functools
from typing import TYPE_CHECKING, Any

from bot.events import CallbackQueryEvent, Event, MessageEvent
from sdk.models import Message, User

if TYPE_CHECKING:
    from bot.engine import BotEngine

# Engine methods whose first argument is a chat id.
CHAT_ACTIONS: tuple[str, ...] = (
    "send_message",
    "forward_message",
    "send_chat_action",
    "send_location",
    "send_venue",
    "send_contact",
    "edit_chat_message_text",
    "edit_chat_message_caption",
    "edit_chat_message_reply_markup",
    "wait_for_message",
    "send_menu",
    "send_form",
    "send_message_with_inline_keyboard",
    "send_venue_with_inline_keyboard",
    "send_location_with_inline_keyboard",
)

INLINE_KEYBOARD_ACTIONS: frozenset[str] = frozenset(
    name for name in CHAT_ACTIONS if name.endswith("_with_inline_keyboard")
)


class Scope:
    """Context for one event.

    Attributes:
        event: The triggering :class:`~bot.events.MessageEvent` or
            :class:`~bot.events.CallbackQueryEvent`.
        chat_id: Chat the event belongs to.
        user: The acting user.
        message: The message (for callback queries, the message carrying
            the pressed keyboard, if any).
        params: Positional command parameters, set by the command router.
        data: ``callback_data`` of the pressed button (callback queries only).
    """

    def __init__(self, engine: "BotEngine", event: Event) -> None:
        self.engine = engine
        self.event = event
        self.chat_id: int | None = event.chat_id
        self.user: User | None = event.actor
        self.params: dict[str, str] | None = None
        self.data: str | None = None
        self.message: Message | None

        if isinstance(event, CallbackQueryEvent):
            self.message = event.query.message
            self.data = event.query.data
        else:
            self.message = event.message

        for name in CHAT_ACTIONS:
            action = getattr(engine, name)
            if name in INLINE_KEYBOARD_ACTIONS and self.user is not None:
                # Buttons belong to the user who triggered this event.
                action = functools.partial(action, actor_id=self.user.id)
            setattr(self, name, functools.partial(action, self.chat_id))

    def __repr__(self) -> str:
        kind = type(self.event).__name__
        return f"<Scope {kind} chat_id={self.chat_id} user_id={self.user.id if self.user else None}>"

    @property
    def is_callback_query(self) -> bool:
        return isinstance(self.event, CallbackQueryEvent)

    @property
    def text(self) -> str | None:
        return self.message.text if self.message is not None else None

    async def goto(self, text: str) -> None:
        """Drop the chat's waiting reply and handle *text* as a fresh message."""
        await self.engine.dispatcher.goto(self, text)

    # ── callback-query only ──────────────────────────────────────────────

    async def answer(self, text: str | None = None, **options: Any) -> Any:
        """Answer the callback query that created this scope."""
        if not self.is_callback_query:
            raise TypeError("answer() is only available for callback-query scopes")
        return await self.engine.client.answer_callback_query(self.event.query.id, text, **options)

    def clear_callback(self) -> None:
        """Forget the continuation bound to the pressed button."""
        if not self.is_callback_query:
            raise TypeError("clear_callback() is only available for callback-query scopes")
        self.engine.state.callbacks.discard(self.event.actor.id, self.event.token)


def build_scope(engine: "BotEngine", event: Event) -> Scope:
    return Scope(engine, event)


def synthetic_message_event(scope: Scope, text: str) -> MessageEvent:
    """Build a message event carrying *text* from the scope's chat and user.

    Used by :meth:`Scope.goto` so command handlers receive the same
    interface they would from a typed message.
    """
    base = scope.message or Message()
    message = base.model_copy(update={
        "text": text,
        "from_field": scope.user,
        "location": None,
        "contact": None,
    })
    return MessageEvent(
        update_id=scope.event.update_id,
        chat_id=scope.chat_id,
        actor=scope.user,
        message=message,
    )
