"""Database repository for the application tracker.

This module provides async SQLite database operations for storing
and retrieving tracked passport applications.
"""

from collections.abc import AsyncGenerator, Mapping
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import aiosqlite

from src.tracker.models import Category, IntakeState, TrackedApplication

# SQL schema for the applications table
CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS applications (
    id TEXT PRIMARY KEY,
    user_id INTEGER NOT NULL,
    category TEXT NOT NULL,
    application_number TEXT NOT NULL DEFAULT '0',
    city_id INTEGER NOT NULL DEFAULT 0,
    state TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT '',
    checks_since_change INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
)
"""

CREATE_INDEX_SQL = """
CREATE UNIQUE INDEX IF NOT EXISTS idx_applications_user ON applications(user_id);
CREATE INDEX IF NOT EXISTS idx_applications_state ON applications(state);
"""

# Columns that may change after creation
UPDATABLE_FIELDS = frozenset(
    {"application_number", "city_id", "state", "status", "checks_since_change"}
)


def _to_column(value: Any) -> Any:
    if isinstance(value, IntakeState | Category):
        return value.value
    return value


class ApplicationRepository:
    """Async SQLite repository for tracked applications.

    A single connection is shared by the conversation and reconciliation
    paths; every write is one statement followed by a commit, so a record
    is never left half-updated.
    """

    def __init__(self, db_path: Path | str):
        """Initialize the repository.

        Args:
            db_path: Path to the SQLite database file.
        """
        self.db_path = Path(db_path)
        self._connection: aiosqlite.Connection | None = None

    @asynccontextmanager
    async def _get_connection(self) -> AsyncGenerator[aiosqlite.Connection, None]:
        """Get a database connection.

        Yields:
            An aiosqlite connection.
        """
        if self._connection is None:
            self._connection = await aiosqlite.connect(self.db_path)
            self._connection.row_factory = aiosqlite.Row
        yield self._connection

    async def initialize(self) -> None:
        """Initialize the database, creating tables if needed."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        async with self._get_connection() as conn:
            await conn.execute(CREATE_TABLE_SQL)
            await conn.executescript(CREATE_INDEX_SQL)
            await conn.commit()

    async def close(self) -> None:
        """Close the database connection."""
        if self._connection is not None:
            await self._connection.close()
            self._connection = None

    async def ping(self) -> bool:
        """Run a trivial query; used by the readiness probe."""
        async with self._get_connection() as conn:
            cursor = await conn.execute("SELECT 1")
            row = await cursor.fetchone()
        return row is not None

    async def create(self, record: TrackedApplication) -> None:
        """Insert a new tracked application.

        Args:
            record: The record to insert.

        Raises:
            sqlite3.IntegrityError: If the user already has a record.
        """
        async with self._get_connection() as conn:
            await conn.execute(
                """
                INSERT INTO applications (
                    id, user_id, category, application_number, city_id,
                    state, status, checks_since_change, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.id,
                    record.user_id,
                    record.category.value,
                    record.application_number,
                    record.city_id,
                    record.state.value,
                    record.status,
                    record.checks_since_change,
                    record.created_at.isoformat(),
                    record.updated_at.isoformat(),
                ),
            )
            await conn.commit()

    async def get_by_user(self, user_id: int) -> TrackedApplication | None:
        """Get the record owned by a chat user.

        Args:
            user_id: The chat id to look up.

        Returns:
            The record if found, None otherwise.
        """
        async with self._get_connection() as conn:
            cursor = await conn.execute(
                "SELECT * FROM applications WHERE user_id = ?",
                (user_id,),
            )
            row = await cursor.fetchone()

        if row is None:
            return None

        return self._row_to_record(row)

    async def get_by_id(self, record_id: str) -> TrackedApplication | None:
        """Get a record by its identifier."""
        async with self._get_connection() as conn:
            cursor = await conn.execute(
                "SELECT * FROM applications WHERE id = ?",
                (record_id,),
            )
            row = await cursor.fetchone()

        if row is None:
            return None

        return self._row_to_record(row)

    async def update_fields(
        self,
        record_id: str,
        fields: Mapping[str, Any],
        expected: Mapping[str, Any] | None = None,
    ) -> bool:
        """Update some fields of a record in one statement.

        When ``expected`` is given the update only applies if the stored
        values still match it, which makes a read-modify-write atomic per
        record.

        Args:
            record_id: Identifier of the record to update.
            fields: Column values to set.
            expected: Column values the row must still hold.

        Returns:
            True if a row was updated, False if it vanished or changed.

        Raises:
            ValueError: If a column is not updatable.
        """
        expected = expected or {}
        unknown = (set(fields) | set(expected)) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields: {sorted(unknown)}")
        if not fields:
            return False

        assignments = [f"{name} = ?" for name in fields]
        params: list[Any] = [_to_column(value) for value in fields.values()]
        assignments.append("updated_at = ?")
        params.append(datetime.now(UTC).isoformat())

        conditions = ["id = ?"]
        params.append(record_id)
        for name, value in expected.items():
            conditions.append(f"{name} = ?")
            params.append(_to_column(value))

        sql = (
            f"UPDATE applications SET {', '.join(assignments)} "
            f"WHERE {' AND '.join(conditions)}"
        )
        async with self._get_connection() as conn:
            cursor = await conn.execute(sql, params)
            await conn.commit()
            return cursor.rowcount > 0

    async def delete(self, record_id: str) -> bool:
        """Delete a record.

        Returns:
            True if a row was removed.
        """
        async with self._get_connection() as conn:
            cursor = await conn.execute(
                "DELETE FROM applications WHERE id = ?",
                (record_id,),
            )
            await conn.commit()
            return cursor.rowcount > 0

    async def list_all(self) -> list[TrackedApplication]:
        """Return every stored record, oldest first."""
        async with self._get_connection() as conn:
            cursor = await conn.execute(
                "SELECT * FROM applications ORDER BY created_at"
            )
            rows = await cursor.fetchall()

        return [self._row_to_record(row) for row in rows]

    async def get_state_counts(self) -> dict[IntakeState, int]:
        """Return record counts grouped by intake state."""
        async with self._get_connection() as conn:
            cursor = await conn.execute(
                "SELECT state, COUNT(*) AS count FROM applications GROUP BY state"
            )
            rows = await cursor.fetchall()

        counts: dict[IntakeState, int] = {}
        for row in rows:
            try:
                state = IntakeState(row["state"])
            except ValueError:
                continue
            counts[state] = int(row["count"]) if row["count"] is not None else 0
        return counts

    def _row_to_record(self, row: aiosqlite.Row) -> TrackedApplication:
        """Convert a database row to a TrackedApplication.

        Args:
            row: The database row.

        Returns:
            A TrackedApplication instance.
        """
        return TrackedApplication(
            id=row["id"],
            user_id=int(row["user_id"]),
            category=Category(row["category"]),
            application_number=row["application_number"],
            city_id=int(row["city_id"]),
            state=IntakeState(row["state"]),
            status=row["status"] or "",
            checks_since_change=int(row["checks_since_change"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )
