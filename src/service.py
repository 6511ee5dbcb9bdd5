"""Service runtime: wires the tracker components and runs their tasks.

Tasks, all started from ``TrackerService.run``:

- update poller: long-polls the chat transport and feeds a bounded queue;
- consumer: handles queued events one at a time, in arrival order;
- reconciliation: polls the status source at a fixed rate;
- health server: serves ``/health`` and ``/ready`` (optional).
"""

from __future__ import annotations

import asyncio
import contextlib
import signal
from typing import Any

import aiosqlite
import uvicorn

from src.config.settings import Settings
from src.conversation.engine import ConversationEngine
from src.errors import StartupError, TransportError
from src.health.api import create_health_app
from src.messaging.catalog import MessageCatalog
from src.messaging.notifier import Notifier
from src.reconcile.loop import ReconciliationTask, Reconciler
from src.status.client import StatusSourceClient
from src.tracker.repository import ApplicationRepository
from src.transport.models import InboundEvent
from src.transport.telegram import TelegramTransport
from src.utils.logging import get_logger

logger = get_logger("service")

# Pause after a failed getUpdates call before polling again
POLL_RETRY_SECONDS = 5.0


class TrackerService:
    """Own the long-lived components and the tasks that drive them.

    Usage:
        service = TrackerService.from_settings(Settings())
        await service.run()
    """

    def __init__(
        self,
        settings: Settings,
        *,
        repository: Any,
        status_source: Any,
        transport: Any,
        catalog: MessageCatalog,
    ) -> None:
        self.settings = settings
        self.repository = repository
        self.status_source = status_source
        self.transport = transport
        self.notifier = Notifier(transport, catalog)
        self.engine = ConversationEngine(
            repository=repository,
            status_source=status_source,
            notifier=self.notifier,
            interval_minutes=settings.reconcile_interval_minutes,
        )
        self.reconciler = Reconciler(
            repository=repository,
            status_source=status_source,
            notifier=self.notifier,
            threshold=settings.stale_threshold,
        )
        self.reconciliation = ReconciliationTask(
            self.reconciler, settings.reconcile_interval_seconds
        )
        self.bot_username: str | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> TrackerService:
        """Build the service and its adapters from settings.

        Raises:
            StartupError: If the bot token is missing.
        """
        if not settings.telegram_bot_token:
            raise StartupError("TELEGRAM_BOT_TOKEN is not set")

        return cls(
            settings,
            repository=ApplicationRepository(settings.tracker_db_path),
            status_source=StatusSourceClient(
                settings.status_source_url,
                settings.city_lookup_url,
                long_validity_status_url=settings.long_validity_status_url,
                timeout=settings.http_timeout_seconds,
            ),
            transport=TelegramTransport(
                settings.telegram_bot_token,
                base_url=settings.telegram_api_url,
                timeout=settings.http_timeout_seconds,
            ),
            catalog=MessageCatalog.load(settings.locale.value),
        )

    async def open_store(self) -> None:
        """Open the tracker database.

        Raises:
            StartupError: If the database cannot be opened or created.
        """
        try:
            await self.repository.initialize()
        except (aiosqlite.Error, OSError) as e:
            raise StartupError(f"Cannot open tracker database: {e}") from e

    async def start(self) -> None:
        """Open the store and authenticate with the chat transport.

        Raises:
            StartupError: If either dependency is unreachable.
        """
        await self.open_store()
        try:
            me = await self.transport.get_me()
        except TransportError as e:
            raise StartupError(f"Cannot authenticate with Telegram: {e}") from e
        self.bot_username = (me or {}).get("username")
        logger.info("Connected as @%s", self.bot_username)

    async def close(self) -> None:
        for closer in (self.transport.close, self.status_source.close, self.repository.close):
            with contextlib.suppress(Exception):
                await closer()

    async def run(self, stop_event: asyncio.Event | None = None) -> None:
        """Run until ``stop_event`` is set, SIGINT/SIGTERM arrives, or a task dies."""
        stop_event = stop_event or asyncio.Event()
        try:
            await self.start()
        except BaseException:
            await self.close()
            raise

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(Exception):
                loop.add_signal_handler(sig, stop_event.set)

        queue: asyncio.Queue[InboundEvent] = asyncio.Queue(
            maxsize=self.settings.inbound_queue_size
        )
        tasks = [
            asyncio.create_task(self._poll_updates(queue, stop_event), name="poller"),
            asyncio.create_task(self._consume(queue), name="consumer"),
            asyncio.create_task(self.reconciliation.run(stop_event), name="reconciler"),
        ]
        if self.settings.health_port:
            tasks.append(asyncio.create_task(self._serve_health(stop_event), name="health"))
        stop_waiter = asyncio.create_task(stop_event.wait(), name="stop")

        try:
            done, _ = await asyncio.wait(
                [*tasks, stop_waiter], return_when=asyncio.FIRST_COMPLETED
            )
            for task in done:
                if task is stop_waiter or task.cancelled():
                    continue
                if task.exception() is not None:
                    logger.error(
                        "Task %s crashed", task.get_name(), exc_info=task.exception()
                    )
                else:
                    logger.info("Task %s finished; shutting down", task.get_name())
        finally:
            stop_event.set()
            for task in [*tasks, stop_waiter]:
                task.cancel()
            await asyncio.gather(*tasks, stop_waiter, return_exceptions=True)
            for sig in (signal.SIGINT, signal.SIGTERM):
                with contextlib.suppress(Exception):
                    loop.remove_signal_handler(sig)
            await self.close()
            logger.info("Stopped")

    async def _poll_updates(
        self, queue: asyncio.Queue[InboundEvent], stop_event: asyncio.Event
    ) -> None:
        offset = 0
        while not stop_event.is_set():
            try:
                events, offset = await self.transport.get_updates(
                    offset, poll_timeout=self.settings.telegram_poll_timeout
                )
            except TransportError as e:
                logger.warning("Polling updates failed: %s", e)
                await asyncio.sleep(POLL_RETRY_SECONDS)
                continue
            for event in events:
                await queue.put(event)

    async def _consume(self, queue: asyncio.Queue[InboundEvent]) -> None:
        while True:
            event = await queue.get()
            try:
                await self.engine.handle(event)
            except Exception:
                logger.exception("Unhandled error for update %s", event.update_id)
            finally:
                queue.task_done()

    async def _serve_health(self, stop_event: asyncio.Event) -> None:
        app, checker = create_health_app()
        checker.add_readiness_check("database", self.repository.ping)
        checker.add_detail(
            "last_reconciliation",
            lambda: self.reconciliation.last_report.summary()
            if self.reconciliation.last_report
            else None,
        )

        server = uvicorn.Server(
            uvicorn.Config(
                app,
                host=self.settings.health_host,
                port=self.settings.health_port,
                log_level="warning",
            )
        )
        serve = asyncio.create_task(server.serve())
        try:
            await stop_event.wait()
        finally:
            checker.shutdown()
            server.should_exit = True
            await serve
