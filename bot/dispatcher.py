"""Update dispatcher — message and callback-query pipelines.

Routes each incoming Telegram update either through the command/text
router and the chat's waiting continuation, or through the callback-query
table.  Middleware hooks registered on the engine wrap the pipelines; a hook
receives the scope and a ``next`` coroutine function and decides whether
and when the pipeline runs.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Awaitable, Callable

from core.logger import TgflowLogger
from core.state import Hook, call_handler
from bot.events import CallbackQueryEvent, MessageEvent, parse_update
from bot.registry import is_command
from bot.scope import Scope, build_scope, synthetic_message_event

if TYPE_CHECKING:
    from bot.engine import BotEngine

logger = TgflowLogger.get_logger()


async def _run_hooked(hook: Hook | None, scope: Scope, step: Callable[[], Awaitable[None]]) -> None:
    """Run *step* directly, or hand it to *hook* as ``next``."""
    if hook is None:
        await step()
    else:
        await call_handler(hook, scope, step)


class Dispatcher:
    """Routes events for one :class:`~bot.engine.BotEngine`."""

    def __init__(self, engine: "BotEngine") -> None:
        self.engine = engine

    @property
    def state(self):
        return self.engine.state

    async def process_update(self, update: dict) -> None:
        """Dispatch a single raw update, isolating handler failures.

        An exception escaping a handler is logged and swallowed so one
        failing chat never stops the poll loop.
        """
        update_id = update.get("update_id")
        event = parse_update(update)
        if event is None:
            return

        scope = build_scope(self.engine, event)
        logger.debug("Processing update", extra={"update_id": update_id, "chat_id": scope.chat_id, "kind": type(event).__name__})
        try:
            await _run_hooked(self.state.before_update, scope, lambda: self.dispatch(scope))
        except Exception:
            logger.exception("Unhandled error while processing update", extra={"update_id": update_id, "chat_id": scope.chat_id})

    async def dispatch(self, scope: Scope) -> None:
        """Send *scope* down the pipeline matching its event type."""
        event = scope.event
        if isinstance(event, MessageEvent):
            await self.process_message(scope)
        elif isinstance(event, CallbackQueryEvent):
            await self.process_callback_query(scope)
        else:
            raise TypeError(f"Unsupported event type: {type(event).__name__}")

    # ── message pipeline ─────────────────────────────────────────────────

    async def process_message(self, scope: Scope) -> None:
        text = scope.text
        commands = self.engine.commands

        if text:
            if is_command(text):
                resolved = commands.resolve(text)
                if resolved is None:
                    logger.debug("Unknown command — ignored", extra={"chat_id": scope.chat_id, "text": text[:80]})
                else:
                    entry, params = resolved
                    scope.params = params
                    logger.info("Command dispatched", extra={"chat_id": scope.chat_id, "user_id": scope.user.id if scope.user else None, "command": entry.name})
                    await _run_hooked(
                        self.state.before_command, scope,
                        lambda: call_handler(entry.handler, scope),
                    )
            else:
                await _run_hooked(self.state.before_text, scope, lambda: self._run_text(scope, text))

        if not is_command(text) and scope.chat_id is not None:
            await self.state.waiting.deliver(scope.chat_id, scope)

    async def _run_text(self, scope: Scope, text: str) -> None:
        texts = self.engine.texts
        handler = texts.get(text)
        if texts.catch_all is not None:
            await call_handler(texts.catch_all, scope)
        if handler is not None:
            await call_handler(handler, scope)

    # ── callback-query pipeline ──────────────────────────────────────────

    async def process_callback_query(self, scope: Scope) -> None:
        event = scope.event
        if not isinstance(event, CallbackQueryEvent):
            raise TypeError(f"Expected a callback-query scope, got {type(event).__name__}")
        callbacks = self.state.callbacks
        if callbacks.ttl is not None:
            dropped = callbacks.purge_expired()
            if dropped:
                logger.debug("Expired callbacks purged", extra={"count": dropped})
        continuation = callbacks.get(event.actor.id, event.token)
        if continuation is not None:
            await call_handler(continuation.handler, scope)
        elif self.state.on_empty_callback is not None:
            await call_handler(self.state.on_empty_callback, scope)
        else:
            logger.debug("No continuation for callback query", extra={"user_id": event.actor.id, "token": event.token})

    # ── programmatic jumps ───────────────────────────────────────────────

    async def goto(self, scope: Scope, text: str) -> None:
        """Clear the chat's waiting reply and re-run the message pipeline with *text*."""
        if scope.chat_id is not None:
            self.state.waiting.clear(scope.chat_id)
        new_scope = build_scope(self.engine, synthetic_message_event(scope, text))
        await self.process_message(new_scope)
