"""Pydantic data models for the subset of the Telegram Bot API tgflow consumes.

Every class corresponds to a Bot API object.  Updates are validated into
these models once, at the dispatcher boundary.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class Update(BaseModel):
    """This [object](https://core.telegram.org/bots/api/#available-types) represents an incoming update. At most **one** of the optional parameters can be present in any given update."""

    update_id: int
    message: Optional["Message"] = None
    edited_message: Optional["Message"] = None
    channel_post: Optional["Message"] = None
    edited_channel_post: Optional["Message"] = None
    callback_query: Optional["CallbackQuery"] = None

    model_config = {"populate_by_name": True}


class User(BaseModel):
    """This object represents a Telegram user or bot."""

    id: int
    is_bot: bool = False
    first_name: str = ""
    last_name: Optional[str] = None
    username: Optional[str] = None
    language_code: Optional[str] = None

    model_config = {"populate_by_name": True}


class Chat(BaseModel):
    """This object represents a chat."""

    id: int
    type: str = "private"
    title: Optional[str] = None
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    model_config = {"populate_by_name": True}


class Location(BaseModel):
    """This object represents a point on the map."""

    longitude: float
    latitude: float
    horizontal_accuracy: Optional[float] = None

    model_config = {"populate_by_name": True}


class Contact(BaseModel):
    """This object represents a phone contact."""

    phone_number: str
    first_name: str
    last_name: Optional[str] = None
    user_id: Optional[int] = None
    vcard: Optional[str] = None

    model_config = {"populate_by_name": True}


class Message(BaseModel):
    """This object represents a message."""

    message_id: int = 0
    date: int = 0
    chat: Optional["Chat"] = None
    from_field: Optional["User"] = Field(None, alias="from")
    sender_chat: Optional["Chat"] = None
    text: Optional[str] = None
    caption: Optional[str] = None
    location: Optional["Location"] = None
    contact: Optional["Contact"] = None

    model_config = {"populate_by_name": True}


class CallbackQuery(BaseModel):
    """This object represents an incoming callback query from a callback button in an inline keyboard."""

    id: str
    from_field: "User" = Field(..., alias="from")
    message: Optional["Message"] = None
    inline_message_id: Optional[str] = None
    chat_instance: Optional[str] = None
    data: Optional[str] = None

    model_config = {"populate_by_name": True}


class KeyboardButton(BaseModel):
    """This object represents one button of the reply keyboard."""

    text: str
    request_contact: Optional[bool] = None
    request_location: Optional[bool] = None

    model_config = {"populate_by_name": True}


class InlineKeyboardButton(BaseModel):
    """This object represents one button of an inline keyboard."""

    text: str
    url: Optional[str] = None
    callback_data: Optional[str] = None

    model_config = {"populate_by_name": True}


Update.model_rebuild()
Message.model_rebuild()
CallbackQuery.model_rebuild()
