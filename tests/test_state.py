"""Tests for the session state tables."""

import asyncio
import sys
import os
from unittest.mock import patch

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from core.state import (
    CallbackTable,
    Continuation,
    SlotBusyError,
    SlotState,
    WaitingTable,
    WaitPolicy,
    call_handler,
)


class TestCallHandler:
    @pytest.mark.asyncio
    async def test_sync_and_async(self) -> None:
        async def coro(x):
            return x * 2

        assert await call_handler(lambda x: x + 1, 1) == 2
        assert await call_handler(coro, 2) == 4


class TestContinuation:
    def test_ids_are_unique(self) -> None:
        assert Continuation(print).id != Continuation(print).id

    def test_no_ttl_never_expires(self) -> None:
        assert not Continuation(print).expired(now=1e12)

    def test_ttl_expiry(self) -> None:
        cont = Continuation(print, created_at=100.0, ttl=10)
        assert not cont.expired(now=105.0)
        assert cont.expired(now=110.0)


# ── WaitingTable ─────────────────────────────────────────────────────────────


class TestWaitingTable:
    """Single-slot continuation per chat."""

    @pytest.mark.asyncio
    async def test_deliver_once(self) -> None:
        table = WaitingTable()
        seen = []
        table.install(1, seen.append)

        assert table.state(1) is SlotState.WAITING
        assert await table.deliver(1, "a") is True
        assert await table.deliver(1, "b") is False
        assert seen == ["a"]
        assert table.state(1) is SlotState.IDLE

    @pytest.mark.asyncio
    async def test_reinstall_during_delivery_is_kept(self) -> None:
        table = WaitingTable()
        seen = []

        def handler(scope):
            seen.append(scope)
            table.install(1, handler)

        table.install(1, handler)
        await table.deliver(1, "a")
        await table.deliver(1, "b")
        assert seen == ["a", "b"]
        assert 1 in table

    @pytest.mark.asyncio
    async def test_state_is_consuming_while_running(self) -> None:
        table = WaitingTable()
        states = []
        table.install(1, lambda scope: states.append(table.state(1)))
        await table.deliver(1, None)
        assert states == [SlotState.CONSUMING]

    @pytest.mark.asyncio
    async def test_slot_cleared_when_handler_raises(self) -> None:
        table = WaitingTable()

        def boom(scope):
            raise RuntimeError("boom")

        table.install(1, boom)
        with pytest.raises(RuntimeError):
            await table.deliver(1, None)
        assert 1 not in table

    @pytest.mark.asyncio
    async def test_overlapping_messages_invoke_once(self) -> None:
        table = WaitingTable()
        release = asyncio.Event()
        calls = []

        async def slow(scope):
            calls.append(scope)
            await release.wait()

        table.install(1, slow)
        first = asyncio.create_task(table.deliver(1, "first"))
        await asyncio.sleep(0)
        assert table.state(1) is SlotState.CONSUMING
        assert await table.deliver(1, "second") is False

        release.set()
        assert await first is True
        assert calls == ["first"]
        assert table.state(1) is SlotState.IDLE

    @pytest.mark.asyncio
    async def test_successor_runs_while_predecessor_still_consuming(self) -> None:
        table = WaitingTable()
        release = asyncio.Event()
        seen = []

        async def slow(scope):
            table.install(1, seen.append)
            await release.wait()

        table.install(1, slow)
        first = asyncio.create_task(table.deliver(1, "first"))
        await asyncio.sleep(0)
        assert await table.deliver(1, "second") is True
        assert table.state(1) is SlotState.CONSUMING

        release.set()
        await first
        assert seen == ["second"]
        assert table.state(1) is SlotState.IDLE

    def test_cancel_only_matching_continuation(self) -> None:
        table = WaitingTable()
        old = table.install(1, print)
        table.install(1, repr)
        assert table.cancel(1, old) is False
        assert 1 in table
        assert table.cancel(1, table.get(1)) is True
        assert 1 not in table

    def test_replace_policy(self) -> None:
        table = WaitingTable(WaitPolicy.REPLACE)
        first = table.install(1, print)
        second = table.install(1, repr)
        assert table.get(1) is second
        assert first.id != second.id

    def test_reject_policy(self) -> None:
        table = WaitingTable("reject")
        table.install(1, print)
        with pytest.raises(SlotBusyError) as exc_info:
            table.install(1, repr)
        assert exc_info.value.chat_id == 1
        assert table.get(1).handler is print

    @pytest.mark.asyncio
    async def test_reject_policy_allows_successor_from_running_continuation(self) -> None:
        table = WaitingTable(WaitPolicy.REJECT)

        def handler(scope):
            table.install(1, print)
            table.install(1, repr)

        table.install(1, handler)
        await table.deliver(1, None)
        assert table.get(1).handler is repr

    def test_chats_are_independent(self) -> None:
        table = WaitingTable(WaitPolicy.REJECT)
        table.install(1, print)
        table.install(2, print)
        assert len(table) == 2

    def test_clear(self) -> None:
        table = WaitingTable()
        table.install(1, print)
        table.clear(1)
        table.clear(99)
        assert table.state(1) is SlotState.IDLE


# ── CallbackTable ────────────────────────────────────────────────────────────


class TestCallbackTable:
    """Inline-button continuations keyed by (actor, token)."""

    def test_register_and_get(self) -> None:
        table = CallbackTable()
        token = table.register(5, print)
        assert table.get(5, token).handler is print
        assert table.get(6, token) is None

    def test_entries_persist_until_discarded(self) -> None:
        table = CallbackTable()
        token = table.register(5, print)
        assert table.get(5, token) is not None
        assert table.get(5, token) is not None
        table.discard(5, token)
        assert table.get(5, token) is None

    def test_tokens_are_unique(self) -> None:
        table = CallbackTable()
        tokens = {table.register(5, print) for _ in range(200)}
        assert len(tokens) == 200

    def test_new_token_skips_collisions(self) -> None:
        table = CallbackTable()
        table.register(5, print, token="dup")
        with patch("core.state.secrets.token_urlsafe", side_effect=["dup", "fresh"]):
            assert table.new_token() == "fresh"

    def test_ttl_expiry(self) -> None:
        table = CallbackTable(ttl=30)
        with patch("core.state.time.monotonic", return_value=1000.0):
            token = table.register(5, print)
        with patch("core.state.time.monotonic", return_value=1010.0):
            assert table.get(5, token) is not None
        with patch("core.state.time.monotonic", return_value=1031.0):
            assert table.get(5, token) is None
        assert len(table) == 0

    def test_purge_expired(self) -> None:
        table = CallbackTable(ttl=30)
        with patch("core.state.time.monotonic", return_value=0.0):
            table.register(5, print)
            table.register(6, print)
        with patch("core.state.time.monotonic", return_value=100.0):
            assert table.purge_expired() == 2
        assert len(table) == 0

    def test_zero_ttl_means_no_expiry(self) -> None:
        assert CallbackTable(ttl=0).ttl is None
