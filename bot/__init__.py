"""tgflow bot layer — engine, dispatcher, polling and conversation wizards.

This package may import from ``core/``, ``sdk/`` and ``config`` only.
"""

from bot.dispatcher import Dispatcher
from bot.engine import BotEngine
from bot.events import CallbackQueryEvent, MessageEvent, parse_update
from bot.form import Form, FormField, FormSession
from bot.keyboards import Button
from bot.menu import Menu
from bot.polling import Poller
from bot.registry import CommandRegistry, TextRegistry
from bot.scope import Scope

__all__ = [
    # Engine
    "BotEngine",
    "Dispatcher",
    "Poller",
    "Scope",
    # Events
    "MessageEvent",
    "CallbackQueryEvent",
    "parse_update",
    # Routing tables
    "CommandRegistry",
    "TextRegistry",
    # Wizards
    "Button",
    "Menu",
    "Form",
    "FormField",
    "FormSession",
]
