"""Tests for the menu wizard and keyboard rendering."""

import sys
import os
from unittest.mock import AsyncMock, MagicMock

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from bot.engine import BotEngine
from bot.keyboards import Button, build_inline_keyboard, build_keyboard, normalize_rows
from bot.menu import Menu, menu_options
from core.state import CallbackTable
from sdk.client import TelegramClient
from sdk.exceptions import APIException, TransportError


@pytest.fixture()
def engine() -> BotEngine:
    client = MagicMock(spec=TelegramClient)
    client.send_message = AsyncMock(return_value={"message_id": 1})
    return BotEngine(client)


def _reply(chat_id: int = 1000, text: str | None = None, **extra) -> dict:
    message = {"message_id": 3, "date": 0, "chat": {"id": chat_id}, "from": {"id": 5}}
    if text is not None:
        message["text"] = text
    message.update(extra)
    return {"update_id": 3, "message": message}


# ── Keyboards ────────────────────────────────────────────────────────────────


class TestKeyboards:
    def test_rows_and_flags(self) -> None:
        rows = build_keyboard(["A", ["B", {"text": "Where", "request_location": True}]])
        assert rows == [
            [{"text": "A"}],
            [{"text": "B"}, {"text": "Where", "request_location": True}],
        ]

    def test_button_coerce(self) -> None:
        btn = Button.coerce({"text": "C", "request_contact": True, "action": "stop"})
        assert btn.request_contact and btn.action == "stop"
        assert Button.coerce(btn) is btn
        with pytest.raises(TypeError):
            Button.coerce(42)

    def test_inline_tokens_never_collide(self) -> None:
        callbacks = CallbackTable()
        rows = build_inline_keyboard(callbacks, 5, [["A", "B"], {"text": "C", "callback": print}])
        tokens = [btn["callback_data"] for row in rows for btn in row]
        assert len(set(tokens)) == 3
        assert len(callbacks) == 1

    def test_normalize_rows(self) -> None:
        rows = normalize_rows([("A", "B"), "C"])
        assert [[b.text for b in row] for row in rows] == [["A", "B"], ["C"]]


class TestMenuOptions:
    def test_defaults(self) -> None:
        options = menu_options(Menu("Pick", ["A"]))
        assert options["reply_markup"] == {
            "resize_keyboard": True,
            "one_time_keyboard": True,
            "keyboard": [[{"text": "A"}]],
        }

    def test_reply_markup_merged(self) -> None:
        options = menu_options(Menu("Pick", ["A"], {"reply_markup": {"one_time_keyboard": False}, "parse_mode": "HTML"}))
        assert options["reply_markup"]["one_time_keyboard"] is False
        assert options["reply_markup"]["keyboard"] == [[{"text": "A"}]]
        assert options["parse_mode"] == "HTML"


# ── send_menu ────────────────────────────────────────────────────────────────


class TestSendMenu:
    """Menus wait until one of their buttons is chosen."""

    @pytest.mark.asyncio
    async def test_chosen_button_callback_runs_once(self, engine) -> None:
        a, b = MagicMock(), MagicMock()
        done = AsyncMock()
        await engine.send_menu(1000, {"message": "Pick", "keyboard": [[{"text": "A", "callback": a}, {"text": "B", "callback": b}]]}, done)

        engine.client.send_message.assert_awaited_once()
        assert engine.client.send_message.call_args.args == (1000, "Pick")

        await engine.process_update(_reply(text="B"))
        await engine.process_update(_reply(text="B"))
        b.assert_called_once_with()
        a.assert_not_called()
        done.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unmatched_reply_rearms(self, engine) -> None:
        chosen = MagicMock()
        await engine.send_menu(1000, Menu("Pick", [{"text": "Yes", "callback": chosen}]))

        await engine.process_update(_reply(text="maybe"))
        assert 1000 in engine.state.waiting
        chosen.assert_not_called()

        await engine.process_update(_reply(text="Yes"))
        chosen.assert_called_once_with()
        assert 1000 not in engine.state.waiting

    @pytest.mark.asyncio
    async def test_plain_string_buttons_match(self, engine) -> None:
        done = MagicMock()
        await engine.send_menu(1000, {"message": "Pick", "keyboard": ["One", "Two"]}, done)
        await engine.process_update(_reply(text="Two"))
        assert done.call_args.args[0].text == "Two"

    @pytest.mark.asyncio
    async def test_location_goes_to_location_button(self, engine) -> None:
        shared = MagicMock()
        await engine.send_menu(1000, {
            "message": "Where are you?",
            "keyboard": ["Skip", {"text": "Send location", "request_location": True, "callback": shared}],
        })
        await engine.process_update(_reply(location={"latitude": 1.0, "longitude": 2.0}))
        location = shared.call_args.args[0]
        assert (location.latitude, location.longitude) == (1.0, 2.0)

    @pytest.mark.asyncio
    async def test_contact_goes_to_contact_button(self, engine) -> None:
        shared = AsyncMock()
        await engine.send_menu(1000, {
            "message": "Phone?",
            "keyboard": [{"text": "Share", "request_contact": True, "callback": shared}],
        })
        await engine.process_update(_reply(contact={"phone_number": "+1", "first_name": "Ann"}))
        shared.assert_awaited_once()
        assert shared.call_args.args[0].phone_number == "+1"

    @pytest.mark.asyncio
    async def test_commands_bypass_the_menu(self, engine) -> None:
        chosen = MagicMock()
        engine.command("help", lambda scope: None)
        await engine.send_menu(1000, {"message": "Pick", "keyboard": [{"text": "/help", "callback": chosen}]})
        await engine.process_update(_reply(text="/help"))
        chosen.assert_not_called()
        assert 1000 in engine.state.waiting

    @pytest.mark.asyncio
    async def test_failed_send_releases_slot(self, engine) -> None:
        engine.client.send_message = AsyncMock(side_effect=APIException(400, {"description": "chat not found"}))
        chosen = MagicMock()

        with pytest.raises(APIException):
            await engine.send_menu(1000, {"message": "Pick", "keyboard": [{"text": "A", "callback": chosen}]})
        assert 1000 not in engine.state.waiting

        await engine.process_update(_reply(text="A"))
        chosen.assert_not_called()

    @pytest.mark.asyncio
    async def test_failed_send_keeps_newer_waiter(self, engine) -> None:
        newer = MagicMock()

        async def send_then_fail(chat_id, text, **options):
            engine.wait_for_message(chat_id, newer)
            raise TransportError("sendMessage", ConnectionError("reset"))

        engine.client.send_message = AsyncMock(side_effect=send_then_fail)
        with pytest.raises(TransportError):
            await engine.send_menu(1000, {"message": "Pick", "keyboard": ["A"]})

        await engine.process_update(_reply(text="A"))
        newer.assert_called_once()
