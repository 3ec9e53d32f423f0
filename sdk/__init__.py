"""Telegram Bot API transport — Pydantic models, async client, and exceptions.

Usage::

    from sdk import TelegramClient, APIException, TransportError
    from sdk.models import Update, Message, CallbackQuery
"""

from sdk.client import TelegramClient
from sdk.exceptions import APIException, TransportError

__all__ = [
    "TelegramClient",
    "APIException",
    "TransportError",
]
