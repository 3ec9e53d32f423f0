"""BotEngine — registration surface, chat actions and the polling entry point.

One engine owns its registries, its session state, a dispatcher and a
poller.  Application code registers handlers on it before calling
:meth:`BotEngine.run`::

    engine = BotEngine(TelegramClient(BASE_URL))

    @engine.command("status:id")
    async def status(scope):
        await scope.send_message(f"Status of {scope.params.get('id')}")

    asyncio.run(engine.run())
"""

from __future__ import annotations

from typing import Any, Callable, Mapping

from core.logger import TgflowLogger
from core.state import CallbackTable, Continuation, Handler, Hook, SessionState, WaitingTable, WaitPolicy
from bot.dispatcher import Dispatcher
from bot.form import Form, FormSession, send_form
from bot.keyboards import build_inline_keyboard, build_keyboard
from bot.menu import Menu, send_menu
from bot.polling import Poller
from bot.registry import CommandRegistry, TextRegistry
from sdk.client import TelegramClient

logger = TgflowLogger.get_logger()


class BotEngine:
    """A bot: handlers, session state and a long-polling loop."""

    def __init__(
        self,
        client: TelegramClient,
        *,
        poll_timeout: int = 50,
        max_inflight: int = 1,
        retry_delay: float = 5.0,
        callback_ttl: float | None = None,
        wait_policy: WaitPolicy | str = WaitPolicy.REPLACE,
    ) -> None:
        self.client = client
        self.commands = CommandRegistry()
        self.texts = TextRegistry()
        self.state = SessionState(
            waiting=WaitingTable(wait_policy),
            callbacks=CallbackTable(callback_ttl),
        )
        self.dispatcher = Dispatcher(self)
        self.poller = Poller(
            client,
            self.dispatcher.process_update,
            timeout=poll_timeout,
            max_inflight=max_inflight,
            retry_delay=retry_delay,
        )

    @classmethod
    def from_config(cls, client: TelegramClient) -> "BotEngine":
        """Build an engine with the tunables from :mod:`config`."""
        import config

        return cls(
            client,
            poll_timeout=config.POLL_TIMEOUT,
            max_inflight=config.POLL_MAX_INFLIGHT,
            retry_delay=config.POLL_RETRY_DELAY,
            callback_ttl=config.CALLBACK_TTL or None,
            wait_policy=config.WAIT_POLICY,
        )

    # ── registration ─────────────────────────────────────────────────────

    def command(self, spec: str, handler: Handler | None = None) -> Any:
        """Register *handler* for ``"name[:param...]"``; usable as a decorator."""
        if handler is None:
            return self.commands.register(spec)
        self.commands.add(spec, handler)
        return handler

    def text(self, text: str | Handler, handler: Handler | None = None) -> Any:
        """Register a handler for literal *text*, or a catch-all when given only a function."""
        if callable(text):
            self.texts.set_catch_all(text)
            return text
        if handler is None:
            def decorator(func: Handler) -> Handler:
                self.texts.add(text, func)
                return func
            return decorator
        self.texts.add(text, handler)
        return handler

    def before_update(self, hook: Hook) -> Hook:
        self.state.before_update = hook
        return hook

    def before_command(self, hook: Hook) -> Hook:
        self.state.before_command = hook
        return hook

    def before_text(self, hook: Hook) -> Hook:
        self.state.before_text = hook
        return hook

    def on_empty_callback_query(self, handler: Handler) -> Handler:
        self.state.on_empty_callback = handler
        return handler

    def wait_for_message(self, chat_id: int, handler: Handler) -> Continuation:
        """Deliver the next non-command message from *chat_id* to *handler*."""
        return self.state.waiting.install(chat_id, handler)

    # ── keyboards ────────────────────────────────────────────────────────

    def build_keyboard(self, items: list[Any]) -> list[list[dict]]:
        return build_keyboard(items)

    def build_inline_keyboard(self, actor_id: int, items: list[Any]) -> list[list[dict]]:
        return build_inline_keyboard(self.state.callbacks, actor_id, items)

    # ── chat actions ─────────────────────────────────────────────────────

    async def send_message(self, chat_id: int, text: str, **options: Any) -> Any:
        return await self.client.send_message(chat_id, text, **options)

    async def forward_message(self, chat_id: int, from_chat_id: int, message_id: int) -> Any:
        return await self.client.forward_message(chat_id, from_chat_id, message_id)

    async def send_chat_action(self, chat_id: int, action: str) -> Any:
        return await self.client.send_chat_action(chat_id, action)

    async def send_location(self, chat_id: int, latitude: float, longitude: float, **options: Any) -> Any:
        return await self.client.send_location(chat_id, latitude, longitude, **options)

    async def send_venue(self, chat_id: int, latitude: float, longitude: float, title: str, address: str, **options: Any) -> Any:
        return await self.client.send_venue(chat_id, latitude, longitude, title, address, **options)

    async def send_contact(self, chat_id: int, phone_number: str, first_name: str, **options: Any) -> Any:
        return await self.client.send_contact(chat_id, phone_number, first_name, **options)

    async def edit_chat_message_text(self, chat_id: int, message_id: int, text: str, **options: Any) -> Any:
        return await self.client.edit_message_text(text, chat_id=chat_id, message_id=message_id, **options)

    async def edit_chat_message_caption(self, chat_id: int, message_id: int, caption: str, **options: Any) -> Any:
        return await self.client.edit_message_caption(caption, chat_id=chat_id, message_id=message_id, **options)

    async def edit_chat_message_reply_markup(self, chat_id: int, message_id: int, reply_markup: dict) -> Any:
        return await self.client.edit_message_reply_markup(reply_markup, chat_id=chat_id, message_id=message_id)

    # Inline-keyboard callbacks are keyed by the user expected to press them.
    # Without *actor_id* that is the chat id, which is the user in a private chat.

    async def send_message_with_inline_keyboard(self, chat_id: int, text: str, keyboard: list[Any], *, actor_id: int | None = None, **options: Any) -> Any:
        options["reply_markup"] = {"inline_keyboard": self.build_inline_keyboard(actor_id or chat_id, keyboard)}
        return await self.send_message(chat_id, text, **options)

    async def send_location_with_inline_keyboard(self, chat_id: int, latitude: float, longitude: float, keyboard: list[Any], *, actor_id: int | None = None, **options: Any) -> Any:
        options["reply_markup"] = {"inline_keyboard": self.build_inline_keyboard(actor_id or chat_id, keyboard)}
        return await self.send_location(chat_id, latitude, longitude, **options)

    async def send_venue_with_inline_keyboard(self, chat_id: int, latitude: float, longitude: float, title: str, address: str, keyboard: list[Any], *, actor_id: int | None = None, **options: Any) -> Any:
        options["reply_markup"] = {"inline_keyboard": self.build_inline_keyboard(actor_id or chat_id, keyboard)}
        return await self.send_venue(chat_id, latitude, longitude, title, address, **options)

    # ── wizards ──────────────────────────────────────────────────────────

    async def send_menu(self, chat_id: int, menu: Menu | Mapping[str, Any], done: Callable[..., Any] | None = None) -> Any:
        return await send_menu(self, chat_id, menu, done)

    async def send_form(self, chat_id: int, form: Form | Mapping[str, Any], done: Callable[..., Any] | None = None) -> FormSession:
        return await send_form(self, chat_id, form, done)

    # ── running ──────────────────────────────────────────────────────────

    async def process_update(self, update: dict) -> None:
        await self.dispatcher.process_update(update)

    async def run(self) -> None:
        """Long-poll until :meth:`stop` is called."""
        logger.info("Bot is running", extra={"commands": sorted(self.commands.entries()), "texts": len(self.texts.entries())})
        await self.poller.run()

    def stop(self) -> None:
        self.poller.stop()
