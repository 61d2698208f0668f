"""
Pytest configuration and shared fixtures

Every BudgetFlow built here writes inline (ImmediateExecutor), uses a fixed
clock and sequential ids, so assertions can name ids and timestamps.
"""

from datetime import datetime, timezone
from pathlib import Path

import pytest

from budget_flow.flow import BudgetFlow
from budget_flow.kernel.dispatch import ImmediateExecutor
from budget_flow.kernel.ids import SequentialIdFactory
from budget_flow.kernel.policy import BudgetPolicy
from budget_flow.kernel.time import FixedTimeProvider
from tests.helpers import RecordingRepository


@pytest.fixture
def temp_db(tmp_path: Path) -> Path:
    """Path for a fresh SQLite database inside the test's tmp dir"""
    return tmp_path / "budget.db"


@pytest.fixture
def test_time() -> FixedTimeProvider:
    """
    Provide a controllable time provider for deterministic tests

    Default time: 2025-06-15 12:00:00 UTC, so the default month is 2025-06.
    """
    return FixedTimeProvider(datetime(2025, 6, 15, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def ids() -> SequentialIdFactory:
    return SequentialIdFactory("id")


@pytest.fixture
def policy() -> BudgetPolicy:
    return BudgetPolicy()


@pytest.fixture
def repository() -> RecordingRepository:
    return RecordingRepository()


@pytest.fixture
def flow(
    repository: RecordingRepository,
    test_time: FixedTimeProvider,
    ids: SequentialIdFactory,
    policy: BudgetPolicy,
) -> BudgetFlow:
    """BudgetFlow for user-1, displaying 2025-06, writing inline"""
    return BudgetFlow(
        "user-1",
        repository,
        policy=policy,
        time_provider=test_time,
        id_factory=ids,
        executor=ImmediateExecutor(),
    )
