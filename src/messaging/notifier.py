"""Best-effort delivery of catalog messages to a user's chat."""

from __future__ import annotations

from typing import Any

from src.errors import TransportError
from src.messaging.catalog import MessageCatalog
from src.transport.models import Button
from src.utils.logging import get_logger

logger = get_logger("notifier")


class Notifier:
    """Render a message from the catalog and send it.

    Send failures are logged and reported as ``False``; callers never see
    a transport exception, so a failed notification cannot undo the state
    change that triggered it.
    """

    def __init__(self, transport: Any, catalog: MessageCatalog):
        self.transport = transport
        self.catalog = catalog

    def render(self, message_id: str, **data: Any) -> str:
        return self.catalog.render(message_id, **data)

    async def notify(
        self,
        chat_id: int,
        message_id: str,
        *,
        buttons: list[Button] | None = None,
        **data: Any,
    ) -> bool:
        """Send ``message_id`` rendered with ``data`` to ``chat_id``.

        Returns:
            True if the transport accepted the message.
        """
        text = self.render(message_id, **data)
        try:
            if buttons:
                await self.transport.send_message(chat_id, text, buttons=buttons)
            else:
                await self.transport.send_message(chat_id, text)
        except TransportError as e:
            logger.warning("Could not send %s to chat %s: %s", message_id, chat_id, e)
            return False
        return True
