"""
Persistence Dispatcher - Fire-and-forget month writes

Mutations update the in-memory store first and then hand the changed month
to this dispatcher, which submits the write to an Executor and returns the
Future straight away. Callers may ignore it, wait on it, or inspect its
exception; the store stays authoritative either way.

The default executor is a single worker thread, so writes of the same
month land in the order they were made. Tests and the CLI use
ImmediateExecutor, which runs each write inline.
"""

import contextvars
import threading
from collections.abc import Callable
from concurrent.futures import Executor, Future, ThreadPoolExecutor, wait
from typing import Any

from budget_flow.budget.models import BudgetMonth
from budget_flow.kernel.logging import get_logger
from budget_flow.kernel.metrics import persistence_writes_total
from budget_flow.kernel.persistence import MonthRepository
from budget_flow.kernel.policy import BudgetPolicy
from budget_flow.kernel.retry import with_write_policy

logger = get_logger(__name__)


class ImmediateExecutor(Executor):
    """
    Executor that runs each call inline on submit

    The returned Future is already resolved; exceptions are captured on it
    rather than raised, exactly as a worker thread would report them.
    """

    def __init__(self) -> None:
        self._shutdown = False

    def submit(self, fn: Callable[..., Any], /, *args: Any, **kwargs: Any) -> Future:
        if self._shutdown:
            raise RuntimeError("cannot schedule new futures after shutdown")

        future: Future = Future()
        future.set_running_or_notify_cancel()
        try:
            result = fn(*args, **kwargs)
        except Exception as e:
            future.set_exception(e)
        else:
            future.set_result(result)
        return future

    def shutdown(self, wait: bool = True, *, cancel_futures: bool = False) -> None:
        self._shutdown = True


class PersistenceDispatcher:
    """
    Dispatches month writes for one user session

    Failures are logged and counted in a done-callback; they never reach
    the mutation that triggered the write.
    """

    def __init__(
        self,
        repository: MonthRepository,
        user_id: str,
        policy: BudgetPolicy | None = None,
        executor: Executor | None = None,
    ) -> None:
        """
        Initialize dispatcher

        Args:
            repository: Where months are written
            user_id: Owner of every month this dispatcher writes
            policy: Retry settings (defaults to a single attempt)
            executor: Where writes run (defaults per policy.background_writes)
        """
        self.repository = repository
        self.user_id = user_id
        self.policy = policy or BudgetPolicy()
        if executor is None:
            executor = (
                ThreadPoolExecutor(max_workers=1, thread_name_prefix="budget-flow-writer")
                if self.policy.background_writes
                else ImmediateExecutor()
            )
        self._executor = executor
        self._save = with_write_policy(self.repository.save_month, self.policy)
        self._pending: set[Future] = set()
        self._lock = threading.Lock()

    def dispatch(self, month: BudgetMonth) -> Future:
        """
        Submit a write of month and return its Future

        The month is an immutable snapshot, so later mutations cannot
        change what this write stores.
        """
        # The write runs in a copy of the caller's context so its log lines
        # keep the session id
        context = contextvars.copy_context()
        future = self._executor.submit(
            context.run, self._save, self.user_id, month.id, month
        )
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(
            lambda done: context.copy().run(self._on_done, month.id, done)
        )
        return future

    def _on_done(self, month_id: str, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)
        if future.cancelled():
            return
        error = future.exception()
        if error is None:
            persistence_writes_total.labels(status="success").inc()
            logger.debug("Month persisted", month_id=month_id)
            return

        persistence_writes_total.labels(status="failure").inc()
        logger.error(
            "Month write failed - in-memory state kept",
            month_id=month_id,
            error=str(error),
            error_type=type(error).__name__,
        )

    def flush(self, timeout: float | None = None) -> None:
        """Block until every dispatched write has finished"""
        with self._lock:
            pending = list(self._pending)
        if pending:
            wait(pending, timeout=timeout)

    def close(self) -> None:
        """Wait for outstanding writes and stop the executor"""
        self.flush()
        self._executor.shutdown(wait=True)
