"""Telegram Bot API client.

Only the handful of methods the tracker needs: ``getMe`` to check the
token at startup, ``getUpdates`` long polling, ``sendMessage`` with an
optional inline keyboard and ``answerCallbackQuery``.

API docs: https://core.telegram.org/bots/api
"""

from __future__ import annotations

from typing import Any

import httpx

from src.errors import TransportError
from src.transport.models import Button, InboundEvent, parse_update
from src.utils.logging import get_logger

logger = get_logger("transport")

TELEGRAM_API_BASE = "https://api.telegram.org"


class TelegramTransport:
    """
    Async client for the Telegram Bot API.

    Usage:
        async with TelegramTransport(token) as transport:
            me = await transport.get_me()
            events, offset = await transport.get_updates(offset=0)
            await transport.send_message(chat_id, "Hello")
    """

    def __init__(
        self,
        token: str,
        *,
        base_url: str = TELEGRAM_API_BASE,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.timeout = timeout
        self._client = client or httpx.AsyncClient(
            base_url=f"{base_url.rstrip('/')}/bot{token}",
            timeout=timeout,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> TelegramTransport:
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()

    async def _call(
        self,
        method: str,
        payload: dict[str, Any] | None = None,
        *,
        timeout: float | None = None,
    ) -> Any:
        """Invoke a Bot API method and return its ``result``.

        Raises:
            TransportError: On network errors, timeouts or ``ok: false``.
        """
        try:
            resp = await self._client.post(
                f"/{method}",
                json=payload or {},
                timeout=timeout if timeout is not None else self.timeout,
            )
            data = resp.json()
        except httpx.HTTPError as e:
            raise TransportError(f"{method} failed: {e}") from e
        except ValueError as e:
            raise TransportError(f"{method} returned a non-JSON body") from e

        if not isinstance(data, dict) or not data.get("ok"):
            description = data.get("description") if isinstance(data, dict) else None
            raise TransportError(
                f"{method} rejected ({resp.status_code}): {description or 'no description'}"
            )
        return data.get("result")

    async def get_me(self) -> dict[str, Any]:
        """Return the bot's own user object; fails on an invalid token."""
        return await self._call("getMe")

    async def get_updates(
        self, offset: int = 0, poll_timeout: int = 60
    ) -> tuple[list[InboundEvent], int]:
        """Long-poll for new updates.

        Args:
            offset: First update id to return; earlier ones are confirmed.
            poll_timeout: Seconds the server may hold the request open.

        Returns:
            The parsed events and the offset to use for the next call.
        """
        result = await self._call(
            "getUpdates",
            {
                "offset": offset,
                "timeout": poll_timeout,
                "allowed_updates": ["message", "callback_query"],
            },
            timeout=poll_timeout + self.timeout,
        )

        events: list[InboundEvent] = []
        next_offset = offset
        for update in result or []:
            update_id = int(update.get("update_id", 0))
            next_offset = max(next_offset, update_id + 1)
            event = parse_update(update)
            if event is None:
                logger.debug("Ignoring update %s", update_id)
                continue
            events.append(event)
        return events, next_offset

    async def send_message(
        self,
        chat_id: int,
        text: str,
        buttons: list[Button] | None = None,
    ) -> dict[str, Any]:
        """Send a text message, optionally with a one-row inline keyboard."""
        payload: dict[str, Any] = {"chat_id": chat_id, "text": text}
        if buttons:
            payload["reply_markup"] = {
                "inline_keyboard": [
                    [{"text": b.text, "callback_data": b.data} for b in buttons]
                ]
            }
        return await self._call("sendMessage", payload)

    async def answer_callback(self, callback_id: str) -> bool:
        """Acknowledge a button press so the client stops its spinner."""
        return bool(
            await self._call("answerCallbackQuery", {"callback_query_id": callback_id})
        )
