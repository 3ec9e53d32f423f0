"""Form wizard — collect validated answers to a fixed sequence of fields.

A form is an ordered mapping of field keys to field descriptors.  A
descriptor is a :class:`FormField` (or a mapping with the same keys), or a
function of the answers collected so far that returns a descriptor, or a
falsy value to skip the field.  Keyboard buttons tagged with an ``action``
name call the matching entry of ``Form.actions`` instead of being stored
as an answer; the action receives the current result and the completion
callback and owns what happens next.

Example::

    form = {
        "fields": {
            "name": {"prompt": "Your name?"},
            "age": {
                "prompt": "Your age?",
                "validator": lambda message, _: (message.text or "").isdigit(),
                "error_message": "Digits only, please.",
            },
        },
    }
    await engine.send_form(chat_id, form, on_done)
"""

from __future__ import annotations

import dataclasses
import functools
from typing import TYPE_CHECKING, Any, Callable, Mapping, Union

from core.logger import TgflowLogger
from core.state import call_handler
from bot.keyboards import Button, build_keyboard, find_button, flatten, normalize_rows
from sdk.exceptions import APIException, TransportError

if TYPE_CHECKING:
    from bot.engine import BotEngine
    from bot.scope import Scope

logger = TgflowLogger.get_logger()


@dataclasses.dataclass
class FormField:
    """Static description of one form question."""

    prompt: str
    keyboard: list[Any] | None = None
    validator: Callable[..., Any] | None = None
    error_message: str | None = None
    options: dict[str, Any] = dataclasses.field(default_factory=dict)

    @classmethod
    def coerce(cls, data: "FormField | Mapping[str, Any]") -> "FormField":
        if isinstance(data, FormField):
            return data
        prompt = data.get("prompt", data.get("q"))
        if prompt is None:
            raise ValueError(f"Form field {data!r} has no prompt")
        return cls(
            prompt=prompt,
            keyboard=data.get("keyboard"),
            validator=data.get("validator"),
            error_message=data.get("error_message", data.get("error")),
            options=dict(data.get("options") or {}),
        )


FieldSpec = Union[FormField, Mapping[str, Any], Callable[[dict], Any]]


@dataclasses.dataclass
class Form:
    fields: dict[str, FieldSpec]
    actions: dict[str, Callable[..., Any]] = dataclasses.field(default_factory=dict)
    options: dict[str, Any] = dataclasses.field(default_factory=dict)

    @classmethod
    def coerce(cls, data: "Form | Mapping[str, Any]") -> "Form":
        if isinstance(data, Form):
            return data
        return cls(
            fields=dict(data["fields"]),
            actions=dict(data.get("actions") or {}),
            options=dict(data.get("options") or {}),
        )


class FormSession:
    """Drives one form in one chat until its completion callback fires."""

    def __init__(
        self,
        engine: "BotEngine",
        chat_id: int,
        form: Form,
        done: Callable[..., Any] | None = None,
    ) -> None:
        self.engine = engine
        self.chat_id = chat_id
        self.form = form
        self.done = done
        self.keys: list[str] = list(form.fields)
        self.index = 0
        self.result: dict[str, Any] = {}
        self.finished = False

    @property
    def current_key(self) -> str | None:
        return self.keys[self.index] if self.index < len(self.keys) else None

    def resolve_field(self, key: str) -> FormField | None:
        """Descriptor for *key*; computed fields are evaluated against the result."""
        spec = self.form.fields[key]
        if callable(spec) and not isinstance(spec, (FormField, Mapping)):
            spec = spec(self.result)
            if not spec:
                return None
        return FormField.coerce(spec)

    def prompt_options(self, field: FormField) -> dict[str, Any]:
        options: dict[str, Any] = {"disable_web_page_preview": True}
        if field.keyboard:
            options["reply_markup"] = {
                "one_time_keyboard": True,
                "resize_keyboard": True,
                "keyboard": build_keyboard(field.keyboard),
            }
        options.update(self.form.options)
        options.update(field.options)
        return options

    async def start(self) -> None:
        await self.prompt()

    async def prompt(self) -> None:
        """Ask the current field, skipping computed fields that resolve falsy."""
        key = self.current_key
        while key is not None:
            field = self.resolve_field(key)
            if field is not None:
                break
            logger.debug("Form field skipped", extra={"chat_id": self.chat_id, "field": key})
            self.index += 1
            key = self.current_key
        else:
            await self.finish()
            return

        buttons = flatten(normalize_rows(field.keyboard or []))
        continuation = self.engine.wait_for_message(
            self.chat_id, functools.partial(self.on_reply, key, field, buttons)
        )
        try:
            await self.engine.send_message(self.chat_id, field.prompt, **self.prompt_options(field))
        except (APIException, TransportError):
            self.engine.state.waiting.cancel(self.chat_id, continuation)
            logger.warning("Form prompt failed, reply slot released", extra={"chat_id": self.chat_id, "field": key})
            raise

    async def on_reply(self, key: str, field: FormField, buttons: list[Button], scope: "Scope") -> None:
        message = scope.message

        def on_keyboard(text: str) -> bool:
            return find_button(buttons, text) is not None

        if field.validator is not None and not await call_handler(field.validator, message, on_keyboard):
            logger.info("Form answer rejected", extra={"chat_id": self.chat_id, "field": key})
            if field.error_message:
                await self.engine.send_message(self.chat_id, field.error_message, disable_web_page_preview=True)
            await self.prompt()
            return

        if message.text:
            button = find_button(buttons, message.text)
            if button is not None and button.action and button.action in self.form.actions:
                logger.info("Form action triggered", extra={"chat_id": self.chat_id, "field": key, "action": button.action})
                await call_handler(self.form.actions[button.action], self.result, self._complete)
                return

        self.result[key] = message.text or message.location or message.contact
        self.index += 1
        await self.prompt()

    async def _complete(self, result: dict[str, Any] | None = None) -> None:
        """Completion callback handed to actions; defaults to the current result."""
        if result is not None:
            self.result = result
        await self.finish()

    async def finish(self) -> None:
        """Hand the result to the completion callback, once per session."""
        if self.finished:
            logger.debug("Form already completed", extra={"chat_id": self.chat_id})
            return
        self.finished = True
        logger.info("Form completed", extra={"chat_id": self.chat_id, "fields": sorted(self.result)})
        if self.done is not None:
            await call_handler(self.done, self.result)


async def send_form(
    engine: "BotEngine",
    chat_id: int,
    form: "Form | Mapping[str, Any]",
    done: Callable[..., Any] | None = None,
) -> FormSession:
    """Start *form* in *chat_id*; *done* receives the collected result."""
    session = FormSession(engine, chat_id, Form.coerce(form), done)
    await session.start()
    return session
