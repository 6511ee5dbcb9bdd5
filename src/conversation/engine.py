"""Intake conversation for tracked applications.

Each inbound event maps to exactly one outcome: start tracking, remove
tracking, supply the application number, supply the city, or an
"unknown command" reply. An event causes at most one store mutation and
at most one outbound message.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

import aiosqlite

from src.errors import CityNotFoundError, StatusSourceError, TransportError
from src.messaging.notifier import Notifier
from src.status.client import is_not_found, is_ready
from src.tracker.models import (
    UNSET_APPLICATION_NUMBER,
    Category,
    IntakeState,
    TrackedApplication,
)
from src.transport.models import Button, EventKind, InboundEvent
from src.utils.logging import get_logger

logger = get_logger("conversation")

START_COMMAND = "start"
REMOVE_COMMAND = "remove"

TextHandler = Callable[[TrackedApplication, InboundEvent], Awaitable[str]]


class ConversationEngine:
    """Advance a user's tracked application through intake.

    Intake steps per category:
        short validity: category -> number (status checked immediately) -> tracking
        long validity:  category -> number -> city -> tracking
    """

    def __init__(
        self,
        *,
        repository: Any,
        status_source: Any,
        notifier: Notifier,
        interval_minutes: int = 30,
    ) -> None:
        self.repository = repository
        self.status_source = status_source
        self.notifier = notifier
        self.interval_minutes = interval_minutes
        self._text_handlers: dict[tuple[Category, IntakeState], TextHandler] = {
            (Category.SHORT_VALIDITY, IntakeState.AWAITING_NUMBER): self._short_number,
            (Category.LONG_VALIDITY, IntakeState.AWAITING_NUMBER): self._long_number,
            (Category.LONG_VALIDITY, IntakeState.AWAITING_CITY): self._long_city,
        }

    async def handle(self, event: InboundEvent) -> str | None:
        """Process one inbound event.

        Returns:
            The id of the message sent in reply, or None when the event was
            abandoned because the store failed.
        """
        if event.kind == EventKind.CALLBACK:
            await self._acknowledge(event)

        try:
            record = await self.repository.get_by_user(event.chat_id)
            if event.kind == EventKind.CALLBACK:
                return await self._select_category(event, record)
            if event.kind == EventKind.COMMAND:
                return await self._command(event, record)
            return await self._text(event, record)
        except aiosqlite.Error:
            logger.exception("Store failure while handling chat %s", event.chat_id)
            return None

    async def _reply(self, chat_id: int, message_id: str, **kwargs: Any) -> str:
        await self.notifier.notify(chat_id, message_id, **kwargs)
        return message_id

    async def _acknowledge(self, event: InboundEvent) -> None:
        if not event.callback_id:
            return
        try:
            await self.notifier.transport.answer_callback(event.callback_id)
        except TransportError as e:
            logger.debug("Could not acknowledge callback %s: %s", event.callback_id, e)

    # ---- Commands ----

    async def _command(
        self, event: InboundEvent, record: TrackedApplication | None
    ) -> str:
        if event.command == START_COMMAND:
            if record is not None:
                return await self._already_tracking(record)
            return await self._reply(
                event.chat_id,
                "please_select_passport_validity_period",
                buttons=self._category_buttons(),
            )

        if event.command == REMOVE_COMMAND:
            if record is None:
                return await self._reply(event.chat_id, "no_active_application")
            await self.repository.delete(record.id)
            logger.info("User %s removed application %s", record.user_id, record.id)
            return await self._reply(
                event.chat_id,
                "your_application_was_deleted",
                ApplicationNumber=record.application_number,
            )

        return await self._reply(event.chat_id, "unknown_command")

    def _category_buttons(self) -> list[Button]:
        return [
            Button(self.notifier.render("five_years"), Category.SHORT_VALIDITY.value),
            Button(self.notifier.render("ten_years"), Category.LONG_VALIDITY.value),
        ]

    async def _already_tracking(self, record: TrackedApplication) -> str:
        return await self._reply(
            record.user_id,
            "your_application_is_being_checked",
            ApplicationNumber=record.application_number,
            Status=record.status,
            IntervalMinutes=self.interval_minutes,
        )

    # ---- Category selection ----

    async def _select_category(
        self, event: InboundEvent, record: TrackedApplication | None
    ) -> str:
        try:
            category = Category(event.callback_data or "")
        except ValueError:
            return await self._reply(event.chat_id, "unknown_command")

        if record is not None:
            return await self._already_tracking(record)

        record = TrackedApplication(user_id=event.chat_id, category=category)
        await self.repository.create(record)
        logger.info(
            "User %s started tracking (%s-year passport)", event.chat_id, category.value
        )
        return await self._reply(event.chat_id, "please_provide_application_number")

    # ---- Plain text ----

    async def _text(self, event: InboundEvent, record: TrackedApplication | None) -> str:
        handler = None
        if record is not None and event.text:
            handler = self._text_handlers.get((record.category, record.state))
        if handler is None:
            return await self._reply(event.chat_id, "unknown_command")
        return await handler(record, event)

    async def _short_number(self, record: TrackedApplication, event: InboundEvent) -> str:
        number = event.text
        if number == UNSET_APPLICATION_NUMBER:
            return await self._reply(event.chat_id, "no_saved_application")

        try:
            status = await self.status_source.lookup_status(number)
        except StatusSourceError as e:
            logger.warning("Status lookup for %s failed: %s", number, e)
            return await self._reply(event.chat_id, "error_getting_status")

        if is_not_found(status):
            return await self._reply(event.chat_id, "no_saved_application")

        if is_ready(status):
            await self.repository.delete(record.id)
            logger.info("Application %s already ready; record %s removed", number, record.id)
            return await self._reply(event.chat_id, "your_document_is_ready")

        await self.repository.update_fields(
            record.id,
            {
                "application_number": number,
                "status": status,
                "checks_since_change": 1,
                "state": IntakeState.TRACKING,
            },
        )
        logger.info("User %s enrolled application %s", record.user_id, number)
        return await self._reply(event.chat_id, "application_saved", Status=status)

    async def _long_number(self, record: TrackedApplication, event: InboundEvent) -> str:
        if event.text == UNSET_APPLICATION_NUMBER:
            return await self._reply(event.chat_id, "no_saved_application")

        # The status is not queried until the city is known as well
        await self.repository.update_fields(
            record.id,
            {"application_number": event.text, "state": IntakeState.AWAITING_CITY},
        )
        return await self._reply(event.chat_id, "please_specify_city")

    async def _long_city(self, record: TrackedApplication, event: InboundEvent) -> str:
        try:
            city_id = await self.status_source.lookup_city_id(event.text)
        except CityNotFoundError:
            return await self._reply(event.chat_id, "the_city_was_not_found")
        except StatusSourceError as e:
            logger.warning("City lookup for %r failed: %s", event.text, e)
            return await self._reply(event.chat_id, "error_getting_status")

        await self.repository.update_fields(
            record.id,
            {"city_id": city_id, "state": IntakeState.TRACKING},
        )
        logger.info(
            "User %s enrolled application %s (city %s)",
            record.user_id,
            record.application_number,
            city_id,
        )
        return await self._reply(event.chat_id, "application_saved", Status=record.status)
