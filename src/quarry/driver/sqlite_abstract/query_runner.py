import threading
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Iterator, List, Optional, Sequence, Union

from quarry.constants import ReplicationMode
from quarry.driver.query_runner import QueryRunner
from quarry.driver.types import QueryResult

if TYPE_CHECKING:
    from quarry.driver.base import Driver


class AbstractSqliteQueryRunner(QueryRunner):
    """Runner shared by every caller of a SQLite-family driver.

    SQLite allows a single writer, so the driver hands out one cached
    runner. Releasing it keeps the connection open for the next caller;
    the connection is closed when the driver disconnects.

    Callers on different threads are serialized with a reentrant lock.
    ``start_transaction`` takes the lock and keeps it until the transaction
    is committed or rolled back, so statements from other threads wait for
    the transaction instead of running inside it.
    """

    def __init__(self, driver: "Driver", mode: ReplicationMode = ReplicationMode.MASTER):
        super().__init__(driver, mode)
        self.lock = threading.RLock()

    @contextmanager
    def exclusive(self) -> Iterator["AbstractSqliteQueryRunner"]:
        with self.lock:
            yield self

    def start_transaction(self, isolation_level: Optional[str] = None) -> None:
        self.lock.acquire()
        try:
            super().start_transaction(isolation_level)
        except Exception:
            self.lock.release()
            raise

    def commit_transaction(self) -> None:
        super().commit_transaction()
        self.lock.release()

    def rollback_transaction(self) -> None:
        was_active = self.is_transaction_active
        try:
            super().rollback_transaction()
        finally:
            if was_active and not self.is_transaction_active:
                self.lock.release()

    def query(
        self,
        query: str,
        parameters: Optional[Sequence[Any]] = None,
        use_structured_result: bool = False,
    ) -> Union[QueryResult, List[Any]]:
        with self.lock:
            return super().query(query, parameters, use_structured_result)

    def release(self) -> None:
        pass
