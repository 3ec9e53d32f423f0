"""Tests for the demo handlers and the entry point."""

import sys
import os
from unittest.mock import patch, AsyncMock, MagicMock

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from bot.engine import BotEngine
from bot.handlers import register_handlers
from sdk.client import TelegramClient


@pytest.fixture()
def engine() -> BotEngine:
    client = MagicMock(spec=TelegramClient)
    client.send_message = AsyncMock(return_value={"message_id": 1})
    client.answer_callback_query = AsyncMock(return_value=True)
    engine = BotEngine(client)
    register_handlers(engine)
    return engine


def _make_update(text: str, user_id: int = 5, chat_id: int = 1000) -> dict:
    return {
        "update_id": 1,
        "message": {
            "message_id": 1,
            "date": 0,
            "chat": {"id": chat_id, "type": "private"},
            "from": {"id": user_id, "is_bot": False, "first_name": f"User{user_id}"},
            "text": text,
        },
    }


def _make_callback_query(user_id: int, data: str, chat_id: int = 1000, cb_id: str = "cb123") -> dict:
    return {
        "update_id": 2,
        "callback_query": {
            "id": cb_id,
            "from": {"id": user_id, "is_bot": False, "first_name": f"User{user_id}"},
            "message": {"message_id": 10, "date": 0, "chat": {"id": chat_id, "type": "private"}},
            "data": data,
        },
    }


def _last_text(engine: BotEngine) -> str:
    return engine.client.send_message.call_args.args[1]


class TestDemoCommands:
    @pytest.mark.asyncio
    async def test_start_greets_by_name(self, engine) -> None:
        await engine.process_update(_make_update("/start", user_id=42))
        assert "User42" in _last_text(engine)

    @pytest.mark.asyncio
    async def test_help_lists_commands(self, engine) -> None:
        await engine.process_update(_make_update("/help"))
        for cmd in ("/echo", "/menu", "/signup", "/vote"):
            assert cmd in _last_text(engine)

    @pytest.mark.asyncio
    async def test_echo(self, engine) -> None:
        await engine.process_update(_make_update("/echo hello world"))
        assert _last_text(engine) == "hello"

    @pytest.mark.asyncio
    async def test_echo_without_argument(self, engine) -> None:
        await engine.process_update(_make_update("/echo"))
        assert "Usage" in _last_text(engine)

    @pytest.mark.asyncio
    async def test_menu_choice(self, engine) -> None:
        await engine.process_update(_make_update("/menu"))
        await engine.process_update(_make_update("Blue"))
        assert _last_text(engine) == "You picked blue."


class TestSignupForm:
    @pytest.mark.asyncio
    async def test_minor_skips_city(self, engine) -> None:
        for text in ("/signup", "Ann", "12"):
            await engine.process_update(_make_update(text))
        assert "Thanks for signing up" in _last_text(engine)
        assert "city" not in _last_text(engine)

    @pytest.mark.asyncio
    async def test_adult_is_asked_for_city(self, engine) -> None:
        for text in ("/signup", "Ann", "abc", "30"):
            await engine.process_update(_make_update(text))
        assert _last_text(engine) == "Which city do you live in?"
        await engine.process_update(_make_update("Paris"))
        assert "city: Paris" in _last_text(engine)

    @pytest.mark.asyncio
    async def test_cancel(self, engine) -> None:
        await engine.process_update(_make_update("/signup"))
        await engine.process_update(_make_update("Cancel"))
        assert "cancelled" in _last_text(engine)
        assert 1000 not in engine.state.waiting


class TestVote:
    @pytest.mark.asyncio
    async def test_vote_answers_and_clears(self, engine) -> None:
        await engine.process_update(_make_update("/vote", chat_id=1000))
        markup = engine.client.send_message.call_args.kwargs["reply_markup"]
        yes_token = markup["inline_keyboard"][0][0]["callback_data"]
        assert markup["inline_keyboard"][1][0]["url"].startswith("https://")

        await engine.process_update(_make_callback_query(5, yes_token, cb_id="q1"))
        engine.client.answer_callback_query.assert_awaited_once_with("q1", "You voted yes")

        await engine.process_update(_make_callback_query(5, yes_token, cb_id="q2"))
        engine.client.answer_callback_query.assert_awaited_with("q2", "This button has expired.")


class TestMain:
    def test_missing_token_raises(self) -> None:
        import main

        with patch.object(main, "BOT_TOKEN", None):
            with pytest.raises(EnvironmentError):
                main.build_engine()

    def test_build_engine_registers_demo(self) -> None:
        import main

        with patch.object(main, "BOT_TOKEN", "123:abc"):
            engine = main.build_engine()
        assert "signup" in engine.commands
        assert engine.texts.catch_all is not None
