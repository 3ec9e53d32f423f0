"""TelegramClient -- transport layer for the Telegram Bot API.

One primitive, :meth:`TelegramClient.call`, posts a method with named
parameters and returns the ``result`` payload, raising on any other outcome.
HTTP calls use the ``requests`` library, offloaded via
:func:`asyncio.to_thread` so the event loop is never blocked.  The remaining
methods are thin wrappers that only name their parameters.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Union

import requests

from sdk.exceptions import APIException, TransportError

_sdk_logger = logging.getLogger("tgflow.sdk")

ChatId = Union[int, str]


class TelegramClient:
    """Async client for the Telegram Bot API.

    Every failure is raised: :class:`TransportError` when no response
    arrived, :class:`APIException` when the API answered with anything but
    ``ok: true`` and a result.
    """

    _DEFAULT_TIMEOUT: int = 10

    def __init__(self, base_url: str, timeout: int = _DEFAULT_TIMEOUT) -> None:
        """Create a new client bound to *base_url*.

        Args:
            base_url: Full Bot API base URL (e.g. ``https://api.telegram.org/bot<token>``).
            timeout: Default request timeout in seconds.
        """
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    # ------------------------------------------------------------------
    #  Internal helpers
    # ------------------------------------------------------------------

    def _post(self, method: str, payload: Dict[str, Any], timeout: float) -> Any:
        """Send a POST request and return the ``result`` field of the body.

        Raises:
            APIException: If the status is not 2xx or the body is not ``ok``.
            TransportError: On transport-level failures.
        """
        url = f"{self._base_url}/{method}"
        try:
            response = requests.post(url, json=payload, timeout=timeout)
        except requests.RequestException as exc:
            raise TransportError(method, exc) from exc
        try:
            body = response.json()
        except ValueError:
            body = {"description": "Response body is not JSON"}
        if not isinstance(body, dict):
            body = {"description": "Unexpected response body"}
        if not response.ok or not body.get("ok") or "result" not in body:
            raise APIException(response.status_code, body)
        return body["result"]

    async def call(self, method: str, request_timeout: float | None = None, **params: Any) -> Any:
        """Invoke *method* with *params*, dropping parameters set to ``None``."""
        payload = {key: value for key, value in params.items() if value is not None}
        _sdk_logger.debug("API call", extra={"api_method": method, "params": sorted(payload)})
        try:
            return await asyncio.to_thread(self._post, method, payload, request_timeout or self._timeout)
        except APIException as exc:
            _sdk_logger.warning("API call rejected", extra={"api_method": method, "status_code": exc.status_code, "error": exc.description})
            raise
        except TransportError as exc:
            _sdk_logger.error("API call failed", extra={"api_method": method, "error": str(exc.cause)})
            raise

    # ------------------------------------------------------------------
    #  Updates
    # ------------------------------------------------------------------

    async def get_updates(self, offset: Optional[int] = None, timeout: int = 0, limit: Optional[int] = None, allowed_updates: Optional[List[str]] = None) -> List[Dict[str, Any]]:
        """Long-poll for new updates; the HTTP timeout outlasts the poll timeout."""
        result = await self.call(
            "getUpdates",
            request_timeout=timeout + self._timeout,
            offset=offset,
            limit=limit,
            allowed_updates=allowed_updates,
            timeout=timeout,
        )
        return result or []

    async def get_me(self) -> Dict[str, Any]:
        return await self.call("getMe")

    # ------------------------------------------------------------------
    #  Sending
    # ------------------------------------------------------------------

    async def send_message(self, chat_id: ChatId, text: str, **options: Any) -> Dict[str, Any]:
        return await self.call("sendMessage", chat_id=chat_id, text=text, **options)

    async def forward_message(self, chat_id: ChatId, from_chat_id: ChatId, message_id: int) -> Dict[str, Any]:
        return await self.call("forwardMessage", chat_id=chat_id, from_chat_id=from_chat_id, message_id=message_id)

    async def send_chat_action(self, chat_id: ChatId, action: str) -> bool:
        return await self.call("sendChatAction", chat_id=chat_id, action=action)

    async def send_location(self, chat_id: ChatId, latitude: float, longitude: float, **options: Any) -> Dict[str, Any]:
        return await self.call("sendLocation", chat_id=chat_id, latitude=latitude, longitude=longitude, **options)

    async def send_venue(self, chat_id: ChatId, latitude: float, longitude: float, title: str, address: str, **options: Any) -> Dict[str, Any]:
        return await self.call("sendVenue", chat_id=chat_id, latitude=latitude, longitude=longitude, title=title, address=address, **options)

    async def send_contact(self, chat_id: ChatId, phone_number: str, first_name: str, **options: Any) -> Dict[str, Any]:
        return await self.call("sendContact", chat_id=chat_id, phone_number=phone_number, first_name=first_name, **options)

    # ------------------------------------------------------------------
    #  Editing (chat messages or inline messages)
    # ------------------------------------------------------------------

    async def edit_message_text(self, text: str, chat_id: Optional[ChatId] = None, message_id: Optional[int] = None, inline_message_id: Optional[str] = None, **options: Any) -> Any:
        return await self.call("editMessageText", text=text, chat_id=chat_id, message_id=message_id, inline_message_id=inline_message_id, **options)

    async def edit_message_caption(self, caption: str, chat_id: Optional[ChatId] = None, message_id: Optional[int] = None, inline_message_id: Optional[str] = None, **options: Any) -> Any:
        return await self.call("editMessageCaption", caption=caption, chat_id=chat_id, message_id=message_id, inline_message_id=inline_message_id, **options)

    async def edit_message_reply_markup(self, reply_markup: Dict[str, Any], chat_id: Optional[ChatId] = None, message_id: Optional[int] = None, inline_message_id: Optional[str] = None) -> Any:
        return await self.call("editMessageReplyMarkup", reply_markup=reply_markup, chat_id=chat_id, message_id=message_id, inline_message_id=inline_message_id)

    # ------------------------------------------------------------------
    #  Files, users, callback queries
    # ------------------------------------------------------------------

    async def get_file(self, file_id: str) -> Dict[str, Any]:
        return await self.call("getFile", file_id=file_id)

    async def get_user_profile_photos(self, user_id: int, offset: Optional[int] = None, limit: Optional[int] = None) -> Dict[str, Any]:
        return await self.call("getUserProfilePhotos", user_id=user_id, offset=offset, limit=limit)

    async def answer_callback_query(self, callback_query_id: str, text: Optional[str] = None, **options: Any) -> bool:
        """Acknowledge a callback query so the spinner disappears for the user."""
        return await self.call("answerCallbackQuery", callback_query_id=callback_query_id, text=text, **options)
