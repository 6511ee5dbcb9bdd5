"""Inbound and outbound chat message models."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class EventKind(str, Enum):
    """What an inbound update carries."""

    COMMAND = "command"
    TEXT = "text"
    CALLBACK = "callback"


@dataclass(frozen=True)
class Button:
    """An inline keyboard button and the payload it sends back."""

    text: str
    data: str


@dataclass(frozen=True)
class InboundEvent:
    """One user action, normalized from a transport update.

    Attributes:
        kind: Command, plain text or button press.
        chat_id: Chat the reply goes to; identifies the user.
        update_id: Transport sequence number.
        text: Message text (commands keep their arguments here).
        command: Command name without the slash or bot suffix.
        callback_data: Payload of the pressed button.
        callback_id: Identifier needed to acknowledge the button press.
    """

    kind: EventKind
    chat_id: int
    update_id: int = 0
    text: str = ""
    command: str | None = None
    callback_data: str | None = None
    callback_id: str | None = None


def _command_name(text: str, entities: list[dict[str, Any]] | None) -> str | None:
    if entities:
        first = entities[0]
        if first.get("type") != "bot_command" or first.get("offset") != 0:
            return None
        token = text[: int(first.get("length", len(text)))]
    elif text.startswith("/"):
        token = text.split(maxsplit=1)[0]
    else:
        return None
    name = token.lstrip("/").split("@", 1)[0]
    return name.lower() or None


def parse_update(update: dict[str, Any]) -> InboundEvent | None:
    """Convert a raw Bot API update into an InboundEvent.

    Returns None for updates the tracker does not react to (edits,
    channel posts, callbacks without a chat).
    """
    update_id = int(update.get("update_id", 0))

    callback = update.get("callback_query")
    if callback is not None:
        message = callback.get("message") or {}
        chat_id = (message.get("chat") or {}).get("id")
        if chat_id is None:
            chat_id = (callback.get("from") or {}).get("id")
        if chat_id is None:
            return None
        return InboundEvent(
            kind=EventKind.CALLBACK,
            chat_id=int(chat_id),
            update_id=update_id,
            callback_data=callback.get("data"),
            callback_id=callback.get("id"),
        )

    message = update.get("message")
    if message is None:
        return None
    chat_id = (message.get("chat") or {}).get("id")
    if chat_id is None:
        return None

    text = message.get("text") or ""
    command = _command_name(text, message.get("entities"))
    if command is not None:
        return InboundEvent(
            kind=EventKind.COMMAND,
            chat_id=int(chat_id),
            update_id=update_id,
            text=text,
            command=command,
        )
    return InboundEvent(
        kind=EventKind.TEXT,
        chat_id=int(chat_id),
        update_id=update_id,
        text=text.strip(),
    )
