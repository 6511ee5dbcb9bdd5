"""Pytest configuration and shared fixtures."""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from src.messaging.catalog import MessageCatalog
from src.tracker.models import Category, IntakeState, TrackedApplication


@pytest.fixture(autouse=True)
def _reset_logging():
    """Give every test an unconfigured application logger (caplog relies on it)."""
    from src.utils.logging import reset_logging

    reset_logging()
    yield
    reset_logging()


@pytest.fixture
async def repo(tmp_path):
    """An initialized repository backed by a temporary database."""
    from src.tracker.repository import ApplicationRepository

    repository = ApplicationRepository(tmp_path / "tracker.db")
    await repository.initialize()
    yield repository
    await repository.close()


@pytest.fixture
def catalog() -> MessageCatalog:
    """The English message catalog, so assertions read naturally."""
    return MessageCatalog.load("en")


@pytest.fixture
def transport():
    """A chat transport double recording outbound calls."""
    return SimpleNamespace(
        send_message=AsyncMock(return_value={"message_id": 1}),
        answer_callback=AsyncMock(return_value=True),
    )


@pytest.fixture
def tracking_record():
    """Factory for an enrolled short-validity record."""

    def _make(
        user_id: int = 42,
        status: str = "В обработке",
        checks: int = 0,
        category: Category = Category.SHORT_VALIDITY,
        city_id: int = 0,
    ) -> TrackedApplication:
        return TrackedApplication(
            user_id=user_id,
            category=category,
            application_number="A123",
            city_id=city_id,
            state=IntakeState.TRACKING,
            status=status,
            checks_since_change=checks,
        )

    return _make
