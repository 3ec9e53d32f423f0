"""Demo handlers for the tgflow example bot.

:func:`register_handlers` wires a small set of commands onto an engine to
show each building block: plain commands, commands with parameters, a menu,
a form and an inline keyboard.
"""

from typing import Any

from core.logger import TgflowLogger
from bot.engine import BotEngine
from bot.scope import Scope

logger = TgflowLogger.get_logger()

HELP_TEXT = (
    "📖 Available commands:\n"
    "/start — Say hello\n"
    "/help — Show this message\n"
    "/echo <text> — Repeat the first word back\n"
    "/menu — Pick a colour from a keyboard\n"
    "/signup — Fill in a short form\n"
    "/vote — Vote with inline buttons"
)


def _is_age(message: Any, on_keyboard: Any) -> bool:
    text = message.text or ""
    return text.isdigit() and 0 < int(text) < 150


def _city_field(result: dict) -> dict | None:
    """Only ask adults for their city."""
    if int(result.get("age", 0)) < 18:
        return None
    return {"prompt": "Which city do you live in?", "keyboard": [["Skip"]]}


def register_handlers(engine: BotEngine) -> None:
    """Register the demo commands on *engine*."""

    @engine.command("start")
    async def handle_start(scope: Scope) -> None:
        name = scope.user.first_name if scope.user else "there"
        logger.info("User invoked /start", extra={"user_id": scope.user.id if scope.user else None, "chat_id": scope.chat_id})
        await scope.send_message(f"👋 Hello, {name}! Send /help to see what I can do.")

    @engine.command("help")
    async def handle_help(scope: Scope) -> None:
        await scope.send_message(HELP_TEXT)

    @engine.command("echo:text")
    async def handle_echo(scope: Scope) -> None:
        text = (scope.params or {}).get("text")
        if text is None:
            await scope.send_message("Usage: /echo <text>")
            return
        await scope.send_message(text)

    @engine.command("menu")
    async def handle_menu(scope: Scope) -> None:
        chosen: dict[str, str] = {}

        def pick(colour: str):
            return lambda: chosen.setdefault("colour", colour)

        async def on_done(reply_scope: Scope) -> None:
            await reply_scope.send_message(f"You picked {chosen.get('colour', 'nothing')}.")

        await scope.send_menu(
            {
                "message": "🎨 Pick a colour:",
                "keyboard": [
                    [{"text": "Red", "callback": pick("red")}, {"text": "Blue", "callback": pick("blue")}],
                    {"text": "Cancel", "callback": pick("nothing")},
                ],
            },
            on_done,
        )

    @engine.command("signup")
    async def handle_signup(scope: Scope) -> None:
        chat_id = scope.chat_id

        async def on_done(result: dict) -> None:
            logger.info("Signup completed", extra={"chat_id": chat_id, "fields": sorted(result)})
            summary = "\n".join(f"• {key}: {value}" for key, value in result.items())
            await engine.send_message(chat_id, f"✅ Thanks for signing up!\n{summary}", reply_markup={"remove_keyboard": True})

        async def cancel(result: dict, complete: Any) -> None:
            await engine.send_message(chat_id, "❌ Signup cancelled.", reply_markup={"remove_keyboard": True})

        await scope.send_form(
            {
                "fields": {
                    "name": {"prompt": "What is your name?", "keyboard": [[{"text": "Cancel", "action": "cancel"}]]},
                    "age": {
                        "prompt": "How old are you?",
                        "validator": _is_age,
                        "error_message": "Please send your age as a number.",
                    },
                    "city": _city_field,
                },
                "actions": {"cancel": cancel},
            },
            on_done,
        )

    @engine.command("vote")
    async def handle_vote(scope: Scope) -> None:
        async def vote(choice: str, button_scope: Scope) -> None:
            logger.info("Vote received", extra={"user_id": button_scope.user.id, "choice": choice})
            await button_scope.answer(f"You voted {choice}")
            button_scope.clear_callback()

        await scope.send_message_with_inline_keyboard(
            "🗳 Do you like this bot?",
            [
                [
                    {"text": "👍", "callback": lambda s: vote("yes", s)},
                    {"text": "👎", "callback": lambda s: vote("no", s)},
                ],
                {"text": "Source", "url": "https://core.telegram.org/bots/api"},
            ],
        )

    @engine.text
    def log_text(scope: Scope) -> None:
        logger.debug("Text received", extra={"chat_id": scope.chat_id, "text": (scope.text or "")[:80]})

    @engine.on_empty_callback_query
    async def stale_button(scope: Scope) -> None:
        await scope.answer("This button has expired.")
