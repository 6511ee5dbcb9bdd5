"""Tests for the ApplicationRepository database layer."""

import sqlite3

import pytest

from src.tracker.models import Category, IntakeState, TrackedApplication


class TestDatabaseInitialization:
    """Test database initialization."""

    @pytest.mark.asyncio
    async def test_creates_database_file_if_not_exists(self, tmp_path):
        """Should create database file (and its directory) if missing."""
        from src.tracker.repository import ApplicationRepository

        db_path = tmp_path / "nested" / "tracker.db"
        assert not db_path.exists()

        repo = ApplicationRepository(db_path)
        await repo.initialize()

        assert db_path.exists()
        await repo.close()

    @pytest.mark.asyncio
    async def test_creates_applications_table_with_correct_schema(self, tmp_path):
        """Should create the applications table with all required columns."""
        from src.tracker.repository import ApplicationRepository

        repo = ApplicationRepository(tmp_path / "tracker.db")
        await repo.initialize()

        async with repo._get_connection() as conn:
            cursor = await conn.execute("PRAGMA table_info(applications)")
            columns = await cursor.fetchall()
            column_names = [col[1] for col in columns]

        expected_columns = [
            "id",
            "user_id",
            "category",
            "application_number",
            "city_id",
            "state",
            "status",
            "checks_since_change",
            "created_at",
            "updated_at",
        ]
        for col in expected_columns:
            assert col in column_names

        await repo.close()

    @pytest.mark.asyncio
    async def test_handles_existing_database_gracefully(self, tmp_path):
        """Should not error when database already exists."""
        from src.tracker.repository import ApplicationRepository

        db_path = tmp_path / "tracker.db"

        repo1 = ApplicationRepository(db_path)
        await repo1.initialize()
        await repo1.close()

        repo2 = ApplicationRepository(db_path)
        await repo2.initialize()
        assert await repo2.ping() is True
        await repo2.close()


class TestCRUDOperations:
    """Test CRUD operations."""

    @pytest.fixture
    def sample_record(self):
        return TrackedApplication(user_id=42, category=Category.SHORT_VALIDITY)

    @pytest.mark.asyncio
    async def test_create_and_get_by_user(self, repo, sample_record):
        await repo.create(sample_record)

        result = await repo.get_by_user(42)
        assert result is not None
        assert result.id == sample_record.id
        assert result.category == Category.SHORT_VALIDITY
        assert result.application_number == "0"
        assert result.city_id == 0
        assert result.state == IntakeState.AWAITING_NUMBER

    @pytest.mark.asyncio
    async def test_create_rejects_second_record_for_same_user(self, repo, sample_record):
        """The unique index enforces one record per user."""
        await repo.create(sample_record)

        with pytest.raises(sqlite3.IntegrityError):
            await repo.create(
                TrackedApplication(user_id=42, category=Category.LONG_VALIDITY)
            )

    @pytest.mark.asyncio
    async def test_get_by_user_returns_none_if_not_found(self, repo):
        assert await repo.get_by_user(999) is None

    @pytest.mark.asyncio
    async def test_get_by_id(self, repo, sample_record):
        await repo.create(sample_record)

        result = await repo.get_by_id(sample_record.id)
        assert result is not None
        assert result.user_id == 42
        assert await repo.get_by_id("missing") is None

    @pytest.mark.asyncio
    async def test_update_fields_sets_values(self, repo, sample_record):
        await repo.create(sample_record)

        updated = await repo.update_fields(
            sample_record.id,
            {
                "application_number": "A123",
                "status": "В обработке",
                "checks_since_change": 1,
                "state": IntakeState.TRACKING,
            },
        )

        assert updated is True
        result = await repo.get_by_user(42)
        assert result.application_number == "A123"
        assert result.status == "В обработке"
        assert result.checks_since_change == 1
        assert result.state == IntakeState.TRACKING
        assert result.updated_at >= sample_record.updated_at

    @pytest.mark.asyncio
    async def test_update_fields_with_expected_values_applies_when_matching(
        self, repo, sample_record
    ):
        await repo.create(sample_record)

        updated = await repo.update_fields(
            sample_record.id,
            {"checks_since_change": 1},
            expected={"status": "", "checks_since_change": 0},
        )

        assert updated is True
        assert (await repo.get_by_user(42)).checks_since_change == 1

    @pytest.mark.asyncio
    async def test_update_fields_with_stale_expected_values_is_rejected(
        self, repo, sample_record
    ):
        """A conditional update must not overwrite a concurrent change."""
        await repo.create(sample_record)
        await repo.update_fields(sample_record.id, {"checks_since_change": 5})

        updated = await repo.update_fields(
            sample_record.id,
            {"checks_since_change": 1},
            expected={"checks_since_change": 0},
        )

        assert updated is False
        assert (await repo.get_by_user(42)).checks_since_change == 5

    @pytest.mark.asyncio
    async def test_update_fields_returns_false_for_missing_record(self, repo):
        assert await repo.update_fields("missing", {"status": "x"}) is False

    @pytest.mark.asyncio
    async def test_update_fields_rejects_immutable_columns(self, repo, sample_record):
        await repo.create(sample_record)

        with pytest.raises(ValueError, match="user_id"):
            await repo.update_fields(sample_record.id, {"user_id": 7})

    @pytest.mark.asyncio
    async def test_delete_removes_record(self, repo, sample_record):
        await repo.create(sample_record)

        assert await repo.delete(sample_record.id) is True
        assert await repo.get_by_user(42) is None
        assert await repo.delete(sample_record.id) is False

    @pytest.mark.asyncio
    async def test_list_all_returns_every_record(self, repo):
        await repo.create(TrackedApplication(user_id=1, category=Category.SHORT_VALIDITY))
        await repo.create(TrackedApplication(user_id=2, category=Category.LONG_VALIDITY))

        result = await repo.list_all()
        assert sorted(r.user_id for r in result) == [1, 2]

    @pytest.mark.asyncio
    async def test_get_state_counts(self, repo):
        await repo.create(TrackedApplication(user_id=1, category=Category.SHORT_VALIDITY))
        await repo.create(
            TrackedApplication(
                user_id=2,
                category=Category.SHORT_VALIDITY,
                application_number="A1",
                state=IntakeState.TRACKING,
            )
        )
        await repo.create(
            TrackedApplication(
                user_id=3,
                category=Category.SHORT_VALIDITY,
                application_number="A2",
                state=IntakeState.TRACKING,
            )
        )

        counts = await repo.get_state_counts()
        assert counts[IntakeState.AWAITING_NUMBER] == 1
        assert counts[IntakeState.TRACKING] == 2
        assert IntakeState.AWAITING_CITY not in counts
