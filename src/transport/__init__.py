"""Chat transport: Telegram Bot API client and inbound event parsing."""

from src.transport.models import Button, EventKind, InboundEvent, parse_update
from src.transport.telegram import TelegramTransport

__all__ = [
    "Button",
    "EventKind",
    "InboundEvent",
    "TelegramTransport",
    "parse_update",
]
