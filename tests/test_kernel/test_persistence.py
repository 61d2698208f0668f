"""
Tests for Month Repositories - SQLite and in-memory storage
"""

import sqlite3
from decimal import Decimal
from pathlib import Path

import pytest

from budget_flow.kernel.errors import PersistenceError
from budget_flow.kernel.persistence import InMemoryMonthRepository, SQLiteMonthRepository
from tests.helpers import make_category, make_income, make_month, system_categories


def sample_month(month_id: str = "2025-06"):
    return make_month(
        month_id,
        categories=[make_category("Dining", "100.10", spent=["12.34"]), *system_categories("50")],
        incomes=[make_income("2500")],
        starting_debt="400",
    )


class TestSQLiteMonthRepository:
    def test_save_and_load_round_trip(self, temp_db: Path) -> None:
        repo = SQLiteMonthRepository(temp_db)
        month = sample_month()

        repo.save_month("user-1", month.id, month)
        loaded = repo.load_all_months("user-1")

        assert loaded == {"2025-06": month}
        assert loaded["2025-06"].categories[0].budgeted_amount == Decimal("100.10")

    def test_save_replaces_existing_row(self, temp_db: Path) -> None:
        repo = SQLiteMonthRepository(temp_db)
        month = sample_month()
        closed = month.model_copy(update={"is_rolled_over": True})

        repo.save_month("user-1", month.id, month)
        repo.save_month("user-1", month.id, closed)

        assert repo.list_month_ids("user-1") == ["2025-06"]
        assert repo.load_all_months("user-1")["2025-06"].is_rolled_over is True

    def test_months_are_scoped_per_user(self, temp_db: Path) -> None:
        repo = SQLiteMonthRepository(temp_db)
        repo.save_month("user-1", "2025-06", sample_month())
        repo.save_month("user-2", "2025-07", sample_month("2025-07"))

        assert list(repo.load_all_months("user-1")) == ["2025-06"]
        assert list(repo.load_all_months("user-2")) == ["2025-07"]
        assert repo.load_all_months("nobody") == {}

    def test_data_survives_new_repository_instance(self, temp_db: Path) -> None:
        SQLiteMonthRepository(temp_db).save_month("user-1", "2025-06", sample_month())

        reopened = SQLiteMonthRepository(temp_db)

        assert list(reopened.load_all_months("user-1")) == ["2025-06"]

    def test_invalid_rows_are_skipped(self, temp_db: Path) -> None:
        repo = SQLiteMonthRepository(temp_db)
        repo.save_month("user-1", "2025-06", sample_month())
        with sqlite3.connect(temp_db) as conn:
            conn.execute(
                "INSERT INTO months VALUES (?, ?, ?, ?)",
                ("user-1", "2025-07", '{"id": "2025-07", "year": "bad"}', "now"),
            )
            conn.execute(
                "INSERT INTO months VALUES (?, ?, ?, ?)",
                ("user-1", "2025-08", sample_month("2025-09").model_dump_json(), "now"),
            )
        conn.close()

        loaded = repo.load_all_months("user-1")

        assert list(loaded) == ["2025-06"]
        assert repo.list_month_ids("user-1") == ["2025-06", "2025-07", "2025-08"]

    def test_unreadable_database_raises_persistence_error(self, tmp_path: Path) -> None:
        repo = SQLiteMonthRepository(tmp_path / "budget.db")
        repo.db_path = tmp_path  # a directory cannot be opened as a database

        with pytest.raises(PersistenceError):
            repo.load_all_months("user-1")

        with pytest.raises(PersistenceError):
            repo.save_month("user-1", "2025-06", sample_month())


class TestInMemoryMonthRepository:
    def test_round_trip_goes_through_json(self) -> None:
        repo = InMemoryMonthRepository()
        month = sample_month()

        repo.save_month("user-1", month.id, month)

        assert repo.save_count == 1
        assert repo.get_raw("user-1", "2025-06") == month.model_dump_json()
        assert repo.load_all_months("user-1") == {"2025-06": month}

    def test_malformed_and_mismatched_rows_are_skipped(self) -> None:
        repo = InMemoryMonthRepository()
        repo.put_raw("user-1", "2025-05", "not json")
        repo.put_raw("user-1", "2025-06", sample_month("2025-07").model_dump_json())
        repo.save_month("user-1", "2025-08", sample_month("2025-08"))

        assert list(repo.load_all_months("user-1")) == ["2025-08"]

    def test_load_returns_months_oldest_first(self) -> None:
        repo = InMemoryMonthRepository()
        for month_id in ("2025-09", "2024-12", "2025-01"):
            repo.save_month("user-1", month_id, sample_month(month_id))

        assert list(repo.load_all_months("user-1")) == ["2024-12", "2025-01", "2025-09"]
