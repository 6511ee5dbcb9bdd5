"""Tests for the service runtime."""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from src.config.settings import Settings
from src.errors import StartupError, TransportError
from src.messaging.catalog import MessageCatalog
from src.service import TrackerService
from src.tracker.repository import ApplicationRepository
from src.transport.models import EventKind, InboundEvent


def _settings(**overrides) -> Settings:
    values = {
        "telegram_bot_token": "123:abc",
        "health_port": 0,
        "reconcile_interval_minutes": 60,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def _transport(updates=None):
    batches = list(updates or [])

    async def get_updates(offset=0, poll_timeout=60):
        if batches:
            batch = batches.pop(0)
            if isinstance(batch, Exception):
                raise batch
            return batch, offset + len(batch)
        await asyncio.sleep(3600)
        return [], offset

    return SimpleNamespace(
        get_me=AsyncMock(return_value={"id": 1, "username": "passport_bot"}),
        get_updates=AsyncMock(side_effect=get_updates),
        send_message=AsyncMock(return_value={"message_id": 1}),
        answer_callback=AsyncMock(return_value=True),
        close=AsyncMock(),
    )


def _status_source():
    return SimpleNamespace(
        lookup_status=AsyncMock(return_value="Принято"),
        lookup_city_id=AsyncMock(return_value=77),
        supports=lambda category: True,
        close=AsyncMock(),
    )


def _service(tmp_path, transport, repository=None) -> TrackerService:
    return TrackerService(
        _settings(),
        repository=repository or ApplicationRepository(tmp_path / "tracker.db"),
        status_source=_status_source(),
        transport=transport,
        catalog=MessageCatalog.load("en"),
    )


async def _wait_for(predicate, timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


class TestFromSettings:
    def test_missing_token_is_a_startup_error(self):
        with pytest.raises(StartupError, match="TELEGRAM_BOT_TOKEN"):
            TrackerService.from_settings(_settings(telegram_bot_token=None))

    @pytest.mark.asyncio
    async def test_builds_components(self, tmp_path):
        service = TrackerService.from_settings(
            _settings(tracker_db_path=tmp_path / "tracker.db", stale_threshold=96)
        )

        assert service.reconciler.threshold == 96
        assert service.reconciliation.interval_seconds == 3600
        assert service.engine.interval_minutes == 60
        await service.close()


class TestStart:
    @pytest.mark.asyncio
    async def test_unreachable_database(self, tmp_path):
        repository = SimpleNamespace(
            initialize=AsyncMock(side_effect=OSError("read-only file system"))
        )
        service = _service(tmp_path, _transport(), repository=repository)

        with pytest.raises(StartupError, match="database"):
            await service.start()

    @pytest.mark.asyncio
    async def test_rejected_token_releases_everything(self, tmp_path):
        transport = _transport()
        transport.get_me = AsyncMock(side_effect=TransportError("getMe rejected (401)"))
        service = _service(tmp_path, transport)

        with pytest.raises(StartupError, match="authenticate"):
            await asyncio.wait_for(service.run(asyncio.Event()), timeout=2)

        assert service.repository._connection is None
        transport.close.assert_awaited_once()
        service.status_source.close.assert_awaited_once()
        transport.get_updates.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unusable_database_fails_run(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory", encoding="utf-8")
        transport = _transport()
        service = _service(
            tmp_path, transport, repository=ApplicationRepository(blocker / "tracker.db")
        )

        with pytest.raises(StartupError, match="database"):
            await asyncio.wait_for(service.run(asyncio.Event()), timeout=2)

        transport.get_me.assert_not_awaited()
        transport.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_records_bot_username(self, tmp_path):
        service = _service(tmp_path, _transport())

        await service.start()

        assert service.bot_username == "passport_bot"
        await service.close()


class TestRun:
    @pytest.mark.asyncio
    async def test_handles_polled_events_until_stopped(self, tmp_path):
        start = InboundEvent(EventKind.COMMAND, 42, update_id=1, text="/start", command="start")
        transport = _transport(updates=[[start]])
        service = _service(tmp_path, transport)
        stop = asyncio.Event()

        runner = asyncio.create_task(service.run(stop))
        await _wait_for(lambda: transport.send_message.await_count >= 1)
        stop.set()
        await asyncio.wait_for(runner, timeout=2)

        assert transport.send_message.await_args.args[:2] == (
            42,
            "Please select the passport validity period.",
        )
        assert service.reconciliation.passes >= 1
        transport.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_events_are_handled_in_order(self, tmp_path):
        events = [
            InboundEvent(EventKind.CALLBACK, 42, update_id=1, callback_data="5"),
            InboundEvent(EventKind.TEXT, 42, update_id=2, text="A123"),
        ]
        transport = _transport(updates=[events])
        service = _service(tmp_path, transport)
        stop = asyncio.Event()

        runner = asyncio.create_task(service.run(stop))
        await _wait_for(lambda: transport.send_message.await_count >= 2)
        record = await service.repository.get_by_user(42)
        stop.set()
        await asyncio.wait_for(runner, timeout=2)

        assert record.application_number == "A123"

    @pytest.mark.asyncio
    async def test_poll_failure_is_retried(self, tmp_path, monkeypatch):
        monkeypatch.setattr("src.service.POLL_RETRY_SECONDS", 0)
        start = InboundEvent(EventKind.COMMAND, 42, update_id=1, text="/start", command="start")
        transport = _transport(updates=[TransportError("502"), [start]])
        service = _service(tmp_path, transport)
        stop = asyncio.Event()

        runner = asyncio.create_task(service.run(stop))
        await _wait_for(lambda: transport.send_message.await_count >= 1)
        stop.set()
        await asyncio.wait_for(runner, timeout=2)

        assert transport.get_updates.await_count >= 2

    @pytest.mark.asyncio
    async def test_crashed_task_shuts_down_service(self, tmp_path, caplog):
        transport = _transport()
        service = _service(tmp_path, transport)
        service.reconciliation.run = AsyncMock(side_effect=RuntimeError("boom"))

        await asyncio.wait_for(service.run(asyncio.Event()), timeout=2)

        assert "Task reconciler crashed" in caplog.text
        transport.close.assert_awaited_once()
