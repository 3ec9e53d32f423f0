"""Per-engine session state — waiting slots and callback-query continuations.

Each :class:`~bot.engine.BotEngine` owns exactly one :class:`SessionState`,
so several bots can live in one process and tests never share tables.

Design:
- ``Continuation`` wraps a handler with its own identifier, creation time
  and optional time-to-live.
- ``WaitingTable`` keeps at most one continuation per chat and runs the
  small state machine *idle → waiting(id) → consuming → idle*.
- ``CallbackTable`` keys one-shot continuations by ``(actor_id, token)``
  where *token* is the random ``callback_data`` of an inline button.
"""

from __future__ import annotations

import collections
import dataclasses
import enum
import inspect
import itertools
import secrets
import time
from typing import Any, Awaitable, Callable

from core.logger import TgflowLogger

logger = TgflowLogger.get_logger()

Handler = Callable[..., Any]

_ids = itertools.count(1)


async def call_handler(handler: Handler, *args: Any) -> Any:
    """Invoke *handler* and await the result when it is awaitable.

    Handlers, hooks and button callbacks may be plain functions or
    coroutine functions.
    """
    result = handler(*args)
    if inspect.isawaitable(result):
        return await result
    return result


class SlotBusyError(RuntimeError):
    """Raised when a chat already waits for a reply and the policy is ``reject``."""

    def __init__(self, chat_id: int) -> None:
        self.chat_id = chat_id
        super().__init__(f"Chat {chat_id} is already waiting for a reply")


class WaitPolicy(str, enum.Enum):
    """What :meth:`WaitingTable.install` does when the chat is already waiting."""

    REPLACE = "replace"
    REJECT = "reject"


class SlotState(str, enum.Enum):
    IDLE = "idle"
    WAITING = "waiting"
    CONSUMING = "consuming"


@dataclasses.dataclass(slots=True)
class Continuation:
    """A stored handler waiting for its triggering event."""

    handler: Handler
    id: int = dataclasses.field(default_factory=lambda: next(_ids))
    created_at: float = dataclasses.field(default_factory=lambda: time.monotonic())
    ttl: float | None = None

    def expired(self, now: float | None = None) -> bool:
        if self.ttl is None:
            return False
        now = time.monotonic() if now is None else now
        return now - self.created_at >= self.ttl


# ── Waiting callbacks ────────────────────────────────────────────────────────


class WaitingTable:
    """Single-slot continuation per chat.

    Installing while the chat waits replaces the previous continuation
    (``WaitPolicy.REPLACE``) or raises :class:`SlotBusyError`
    (``WaitPolicy.REJECT``).  A continuation is detached from its slot
    before it runs, so it fires at most once even when messages for the
    chat overlap; while it runs it may install a successor for its own chat.
    """

    def __init__(self, policy: WaitPolicy | str = WaitPolicy.REPLACE) -> None:
        self.policy = WaitPolicy(policy)
        self._slots: dict[int, Continuation] = {}
        # chat id -> number of continuations currently running for it
        self._consuming: collections.Counter[int] = collections.Counter()

    def __contains__(self, chat_id: int) -> bool:
        return chat_id in self._slots

    def __len__(self) -> int:
        return len(self._slots)

    def get(self, chat_id: int) -> Continuation | None:
        return self._slots.get(chat_id)

    def state(self, chat_id: int) -> SlotState:
        if self._consuming[chat_id] > 0:
            return SlotState.CONSUMING
        if chat_id in self._slots:
            return SlotState.WAITING
        return SlotState.IDLE

    def install(self, chat_id: int, handler: Handler) -> Continuation:
        """Register *handler* as the next-reply continuation for *chat_id*."""
        current = self._slots.get(chat_id)
        if (
            current is not None
            and self.policy is WaitPolicy.REJECT
            and self.state(chat_id) is not SlotState.CONSUMING
        ):
            raise SlotBusyError(chat_id)
        continuation = Continuation(handler)
        self._slots[chat_id] = continuation
        logger.debug(
            "Waiting continuation installed",
            extra={"chat_id": chat_id, "continuation_id": continuation.id, "replaced": current.id if current else None},
        )
        return continuation

    def clear(self, chat_id: int) -> None:
        """Drop the continuation for *chat_id*, if any."""
        self._slots.pop(chat_id, None)

    def cancel(self, chat_id: int, continuation: Continuation) -> bool:
        """Drop *continuation* if it still occupies the chat's slot."""
        if self._slots.get(chat_id) is continuation:
            del self._slots[chat_id]
            return True
        return False

    async def deliver(self, chat_id: int, scope: Any) -> bool:
        """Detach the chat's continuation and invoke it with *scope*.

        Anything the continuation installs while it runs stays armed.
        Returns ``False`` when the chat was not waiting.
        """
        continuation = self._slots.pop(chat_id, None)
        if continuation is None:
            return False

        self._consuming[chat_id] += 1
        try:
            await call_handler(continuation.handler, scope)
        finally:
            self._consuming[chat_id] -= 1
            if self._consuming[chat_id] <= 0:
                del self._consuming[chat_id]
        return True


# ── Callback-query continuations ────────────────────────────────────────────


class CallbackTable:
    """Continuations triggered by inline-keyboard button presses.

    Entries persist until removed or, when *ttl* is set, until they expire.
    """

    TOKEN_BYTES: int = 12

    def __init__(self, ttl: float | None = None) -> None:
        self.ttl = ttl or None
        self._entries: dict[tuple[int, str], Continuation] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def new_token(self) -> str:
        """Return a random token not currently used by any entry."""
        while True:
            token = secrets.token_urlsafe(self.TOKEN_BYTES)
            if not any(key[1] == token for key in self._entries):
                return token

    def register(self, actor_id: int, handler: Handler, token: str | None = None) -> str:
        """Store *handler* under ``(actor_id, token)`` and return the token."""
        token = token or self.new_token()
        self._entries[(actor_id, token)] = Continuation(handler, ttl=self.ttl)
        return token

    def get(self, actor_id: int, token: str) -> Continuation | None:
        """Return the live continuation for the key, dropping it if expired."""
        continuation = self._entries.get((actor_id, token))
        if continuation is not None and continuation.expired():
            del self._entries[(actor_id, token)]
            logger.debug("Callback continuation expired", extra={"user_id": actor_id, "token": token})
            return None
        return continuation

    def discard(self, actor_id: int, token: str) -> None:
        self._entries.pop((actor_id, token), None)

    def purge_expired(self) -> int:
        """Remove every expired entry; returns how many were dropped."""
        now = time.monotonic()
        stale = [key for key, cont in self._entries.items() if cont.expired(now)]
        for key in stale:
            del self._entries[key]
        return len(stale)


# ── Aggregate ────────────────────────────────────────────────────────────────

Hook = Callable[[Any, Callable[[], Awaitable[None]]], Any]


@dataclasses.dataclass
class SessionState:
    """Everything the dispatcher mutates or reads at runtime."""

    waiting: WaitingTable = dataclasses.field(default_factory=WaitingTable)
    callbacks: CallbackTable = dataclasses.field(default_factory=CallbackTable)
    before_update: Hook | None = None
    before_command: Hook | None = None
    before_text: Hook | None = None
    on_empty_callback: Handler | None = None
