"""
Month Repositories - Durable storage behind the month store

BudgetFlow keeps every month in memory and treats a repository as a
write-behind collaborator: all months are read once at session start, and
each mutation writes the one month it changed. There is no reconciliation
pass, so the last successful write of a month wins.

Months are stored whole, as the JSON of the BudgetMonth model, keyed by
(user_id, month_id). Stored data is not trusted on the way back in: rows
that no longer validate are logged and skipped, and the normalizer repairs
the rest.
"""

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Protocol

from pydantic import ValidationError as ModelValidationError

from budget_flow.budget.models import BudgetMonth
from budget_flow.kernel.errors import PersistenceError
from budget_flow.kernel.logging import get_logger
from budget_flow.kernel.retry import retry_on_sqlite_lock

logger = get_logger(__name__)


class MonthRepository(Protocol):
    """Persistence collaborator consumed by BudgetFlow"""

    def load_all_months(self, user_id: str) -> dict[str, BudgetMonth]:
        """Return every stored month for the user, keyed by month id"""
        ...

    def save_month(self, user_id: str, month_id: str, month: BudgetMonth) -> None:
        """Insert or replace one month; raise on failure"""
        ...


def _decode_month(user_id: str, month_id: str, state_json: str) -> BudgetMonth | None:
    """Parse a stored month, or log and return None if it no longer validates"""
    try:
        month = BudgetMonth.model_validate_json(state_json)
    except ModelValidationError as e:
        logger.warning(
            "Skipping stored month that failed validation",
            month_id=month_id,
            user_id=user_id,
            error_count=e.error_count(),
        )
        return None

    if month.id != month_id:
        logger.warning(
            "Skipping stored month with mismatched key",
            month_id=month_id,
            stored_id=month.id,
            user_id=user_id,
        )
        return None
    return month


class InMemoryMonthRepository:
    """
    Repository holding serialized months in a dict

    Stores JSON rather than model instances so a round trip exercises the
    same decode path as SQLite. Used by tests and throwaway sessions.
    """

    def __init__(self) -> None:
        self._rows: dict[tuple[str, str], str] = {}
        self.save_count = 0

    def load_all_months(self, user_id: str) -> dict[str, BudgetMonth]:
        months: dict[str, BudgetMonth] = {}
        for (owner, month_id), state_json in sorted(self._rows.items()):
            if owner != user_id:
                continue
            month = _decode_month(user_id, month_id, state_json)
            if month is not None:
                months[month_id] = month
        return months

    def save_month(self, user_id: str, month_id: str, month: BudgetMonth) -> None:
        self._rows[(user_id, month_id)] = month.model_dump_json()
        self.save_count += 1

    def put_raw(self, user_id: str, month_id: str, state_json: str) -> None:
        """Store raw JSON as-is (for seeding legacy or malformed data)"""
        self._rows[(user_id, month_id)] = state_json

    def get_raw(self, user_id: str, month_id: str) -> str | None:
        return self._rows.get((user_id, month_id))


class SQLiteMonthRepository:
    """
    SQLite-based month repository

    Schema:
    - months table: one row per (user_id, month_id) holding the month JSON

    Each call opens its own connection, so the repository can be used from
    the background writer thread and the caller's thread alike.
    """

    def __init__(self, db_path: str | Path) -> None:
        """
        Initialize repository with SQLite database

        Args:
            db_path: Path to SQLite database file (created if missing)
        """
        self.db_path = Path(db_path)
        self._initialize_schema()

    def _initialize_schema(self) -> None:
        """Create tables if they don't exist"""
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS months (
                    user_id TEXT NOT NULL,
                    month_id TEXT NOT NULL,
                    state_json TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    PRIMARY KEY (user_id, month_id)
                )
            """)
            conn.commit()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Context manager for database connections"""
        conn = sqlite3.connect(str(self.db_path), timeout=5.0)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    def load_all_months(self, user_id: str) -> dict[str, BudgetMonth]:
        """
        Load every month stored for a user

        Raises:
            PersistenceError: If the database cannot be read
        """
        try:
            with self._connect() as conn:
                cursor = conn.execute(
                    "SELECT month_id, state_json FROM months WHERE user_id = ? ORDER BY month_id",
                    (user_id,),
                )
                rows = cursor.fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(user_id, None, str(e)) from e

        months: dict[str, BudgetMonth] = {}
        for row in rows:
            month = _decode_month(user_id, row["month_id"], row["state_json"])
            if month is not None:
                months[row["month_id"]] = month

        logger.debug("Months loaded", month_count=len(months), db_path=str(self.db_path))
        return months

    def save_month(self, user_id: str, month_id: str, month: BudgetMonth) -> None:
        """
        Insert or replace one month

        Raises:
            PersistenceError: If the write fails after lock retries
        """
        try:
            self._write(user_id, month_id, month.model_dump_json())
        except sqlite3.Error as e:
            raise PersistenceError(user_id, month_id, str(e)) from e

    @retry_on_sqlite_lock()
    def _write(self, user_id: str, month_id: str, state_json: str) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO months (user_id, month_id, state_json, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(user_id, month_id) DO UPDATE SET
                    state_json = excluded.state_json,
                    updated_at = excluded.updated_at
            """,
                (
                    user_id,
                    month_id,
                    state_json,
                    datetime.now(timezone.utc).isoformat(),
                ),
            )
            conn.commit()

    def list_month_ids(self, user_id: str) -> list[str]:
        """
        List stored month ids for a user, oldest first

        Returns:
            Month ids as stored, including rows that may fail validation
        """
        with self._connect() as conn:
            cursor = conn.execute(
                "SELECT month_id FROM months WHERE user_id = ? ORDER BY month_id",
                (user_id,),
            )
            return [row["month_id"] for row in cursor.fetchall()]
