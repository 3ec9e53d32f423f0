"""Command and text registries — the routing tables of one engine.

Design:
- ``CommandEntry`` binds a command name, its handler and the ordered names of
  its positional parameters (``None`` when the command declares none).
- ``CommandRegistry`` is populated from definition strings such as
  ``"status:id"`` or ``"/move : from : to"`` and resolves message text into
  an entry plus a parameter mapping.
- ``TextRegistry`` maps literal message text to handlers and keeps one
  optional catch-all handler that observes every non-command text.

Both registries are filled before polling starts and only read during
dispatch.  Each :class:`~bot.engine.BotEngine` owns its own pair.
"""

from __future__ import annotations

import dataclasses
from typing import Any, Callable

COMMAND_PREFIX = "/"

HandlerFunc = Callable[..., Any]


def is_command(text: str | None) -> bool:
    """``True`` when *text* is a command attempt."""
    return bool(text) and text.startswith(COMMAND_PREFIX)


def parse_command_spec(spec: str) -> tuple[str, tuple[str, ...] | None]:
    """Split ``"name:param1:param2"`` into ``("name", ("param1", "param2"))``.

    A leading prefix and all whitespace are ignored.
    """
    compact = "".join(spec.split())
    if compact.startswith(COMMAND_PREFIX):
        compact = compact[len(COMMAND_PREFIX):]
    name, *params = compact.split(":")
    if not name:
        raise ValueError(f"Command spec {spec!r} has no command name")
    cleaned = tuple(p for p in params if p)
    return name, cleaned or None


# ── Registry entry ───────────────────────────────────────────────────────────

@dataclasses.dataclass(frozen=True, slots=True)
class CommandEntry:
    """Metadata for a single registered command."""
    name: str                          # e.g. "status"
    handler: HandlerFunc               # called with the scope
    params: tuple[str, ...] | None     # positional parameter names

    def bind(self, args: list[str]) -> dict[str, str] | None:
        """Zip *args* onto the declared parameter names.

        Extra arguments are dropped and missing ones leave their key absent.
        """
        if self.params is None:
            return None
        return dict(zip(self.params, args))


# ── Command registry ─────────────────────────────────────────────────────────

class CommandRegistry:
    """Command name → :class:`CommandEntry`.

    Usage::

        commands = CommandRegistry()

        @commands.register("status:id")
        async def status(scope): ...

        entry, params = commands.resolve("/status 42")
    """

    def __init__(self) -> None:
        self._entries: dict[str, CommandEntry] = {}

    def __contains__(self, name: str) -> bool:
        return name in self._entries

    def add(self, spec: str, handler: HandlerFunc) -> CommandEntry:
        """Register *handler* for the command described by *spec*."""
        name, params = parse_command_spec(spec)
        entry = CommandEntry(name=name, handler=handler, params=params)
        self._entries[name] = entry
        return entry

    def register(self, spec: str) -> Callable[[HandlerFunc], HandlerFunc]:
        """Decorator form of :meth:`add`."""
        def decorator(func: HandlerFunc) -> HandlerFunc:
            self.add(spec, func)
            return func
        return decorator

    # ── lookup helpers ───────────────────────────────────────────────────

    def get(self, name: str) -> CommandEntry | None:
        """Return the entry for *name*, or ``None``."""
        return self._entries.get(name)

    def entries(self) -> dict[str, CommandEntry]:
        """Return a *read-only* view of all registered commands."""
        return dict(self._entries)

    def resolve(self, text: str) -> tuple[CommandEntry, dict[str, str] | None] | None:
        """Parse command *text* and look it up.

        Returns ``(entry, params)`` or ``None`` when the text is not a
        command or names no registered command.  A ``@botname`` suffix on
        the command name is ignored.
        """
        if not is_command(text):
            return None
        tokens = text[len(COMMAND_PREFIX):].split()
        if not tokens:
            return None
        name = tokens[0].split("@")[0]
        entry = self._entries.get(name)
        if entry is None:
            return None
        return entry, entry.bind(tokens[1:])


# ── Text registry ────────────────────────────────────────────────────────────

class TextRegistry:
    """Literal text → handler, plus an optional catch-all."""

    def __init__(self) -> None:
        self._handlers: dict[str, HandlerFunc] = {}
        self.catch_all: HandlerFunc | None = None

    def add(self, text: str, handler: HandlerFunc) -> None:
        self._handlers[text] = handler

    def set_catch_all(self, handler: HandlerFunc) -> None:
        self.catch_all = handler

    def get(self, text: str) -> HandlerFunc | None:
        return self._handlers.get(text)

    def entries(self) -> dict[str, HandlerFunc]:
        return dict(self._handlers)
