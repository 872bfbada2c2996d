"""Query runner: one connection's worth of statement execution.

A runner wraps a single SQLAlchemy ``Connection`` checked out from its
driver's engine. Statements run with SQL text and positional parameters
through ``exec_driver_sql``, so what the builders produced is exactly
what the DB-API receives.
"""

import logging
import time
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Optional, Sequence, Union

from sqlalchemy.engine import Connection, CursorResult, RootTransaction

from quarry.common.exceptions import (
    QueryFailedError,
    QueryRunnerAlreadyReleasedError,
    TransactionAlreadyStartedError,
    TransactionNotStartedError,
)
from quarry.constants import ReplicationMode
from quarry.driver.types import QueryResult
from quarry.logging import get_logger
from quarry.subscriber import Broadcaster, BroadcastEvent
from quarry.utils.decorators import traced

if TYPE_CHECKING:
    from quarry.driver.base import Driver

logger = get_logger(__name__)


class QueryRunner:
    """Executes statements and manages the transaction of one connection.

    The connection is checked out lazily on the first statement and returned
    to the pool by ``release``. While no transaction is active every
    statement is committed as soon as it completes.

    Attributes:
        driver: Driver that created this runner
        data_source: The driver's data source
        mode: Replication side this runner targets
        broadcaster: Dispatches subscriber events for this runner
        is_released: Set once ``release`` ran; later statements are rejected
        is_transaction_active: Whether ``start_transaction`` is in effect
    """

    def __init__(self, driver: "Driver", mode: ReplicationMode = ReplicationMode.MASTER):
        self.driver = driver
        self.data_source = driver.data_source
        self.mode = mode
        self.broadcaster = Broadcaster(self)
        self.is_released = False
        self.is_transaction_active = False
        self._connection: Optional[Connection] = None
        self._transaction: Optional[RootTransaction] = None

    def connect(self) -> Connection:
        """Return this runner's connection, checking one out if needed.

        Raises:
            QueryRunnerAlreadyReleasedError: If the runner was released
        """
        if self.is_released:
            raise QueryRunnerAlreadyReleasedError()
        if self._connection is None:
            self._connection = self.driver.obtain_connection()
        return self._connection

    def release(self) -> None:
        """Return the connection to the pool. The runner is unusable afterwards."""
        if self.is_released:
            return
        self.is_released = True
        self.close_connection()

    def close_connection(self) -> None:
        """Close the checked-out connection without marking the runner released.

        An open transaction is rolled back by SQLAlchemy on close.
        """
        connection, self._connection = self._connection, None
        self._transaction = None
        self.is_transaction_active = False
        if connection is not None:
            connection.close()

    @contextmanager
    def exclusive(self) -> Iterator["QueryRunner"]:
        """Hold this runner for a sequence of calls that must not interleave.

        Each caller owns its runner here, so there is nothing to wait for.
        Runners shared between threads override this with a lock.
        """
        yield self

    def start_transaction(self, isolation_level: Optional[str] = None) -> None:
        """Begin a transaction on this runner's connection.

        Args:
            isolation_level: Optional SQLAlchemy isolation level name, applied
                to the connection before the transaction begins

        Raises:
            TransactionAlreadyStartedError: If a transaction is already active
        """
        if self.is_transaction_active:
            raise TransactionAlreadyStartedError()

        self.broadcaster.broadcast(BroadcastEvent.BEFORE_TRANSACTION_START)
        connection = self.connect()
        if connection.in_transaction():
            connection.commit()
        if isolation_level:
            connection.execution_options(isolation_level=isolation_level)
        self._transaction = connection.begin()
        self.is_transaction_active = True
        logger.debug("Transaction started", extra={"data_source": self.data_source.name})
        self.broadcaster.broadcast(BroadcastEvent.AFTER_TRANSACTION_START)

    def commit_transaction(self) -> None:
        """Commit the active transaction.

        Raises:
            TransactionNotStartedError: If no transaction is active
        """
        if not self.is_transaction_active or self._transaction is None:
            raise TransactionNotStartedError()

        self.broadcaster.broadcast(BroadcastEvent.BEFORE_TRANSACTION_COMMIT)
        self._transaction.commit()
        self._transaction = None
        self.is_transaction_active = False
        logger.debug("Transaction committed", extra={"data_source": self.data_source.name})
        self.broadcaster.broadcast(BroadcastEvent.AFTER_TRANSACTION_COMMIT)

    def rollback_transaction(self) -> None:
        """Roll the active transaction back.

        Raises:
            TransactionNotStartedError: If no transaction is active
        """
        if not self.is_transaction_active or self._transaction is None:
            raise TransactionNotStartedError()

        self.broadcaster.broadcast(BroadcastEvent.BEFORE_TRANSACTION_ROLLBACK)
        try:
            self._transaction.rollback()
        finally:
            self._transaction = None
            self.is_transaction_active = False
        logger.debug("Transaction rolled back", extra={"data_source": self.data_source.name})
        self.broadcaster.broadcast(BroadcastEvent.AFTER_TRANSACTION_ROLLBACK)

    def _span_attributes(self, query: str) -> Dict[str, Any]:
        """Build OpenTelemetry span attributes for a statement."""
        statement = (query or "").strip()
        if len(statement) > 4096:
            statement = f"{statement[:4093]}..."
        operation = statement.split(None, 1)[0].upper() if statement else None
        return {
            "db.system": self.driver.name,
            "db.name": self.driver.database,
            "db.operation": operation,
            "db.statement": statement or None,
            "quarry.data_source": self.data_source.name,
        }

    @traced(
        span_name="quarry.query_runner.query",
        attribute_getter=lambda self, query, parameters=None, use_structured_result=False: self._span_attributes(query),
    )
    def query(
        self,
        query: str,
        parameters: Optional[Sequence[Any]] = None,
        use_structured_result: bool = False,
    ) -> Union[QueryResult, List[Dict[str, Any]]]:
        """Execute one statement.

        Args:
            query: SQL text using the driver's positional placeholders
            parameters: Values in placeholder order
            use_structured_result: Return the full ``QueryResult`` instead of
                only the records

        Returns:
            QueryResult, or the list of row mappings

        Raises:
            QueryRunnerAlreadyReleasedError: If the runner was released
            QueryFailedError: If the backend rejected the statement
        """
        if self.is_released:
            raise QueryRunnerAlreadyReleasedError()

        connection = self.connect()
        bound = list(parameters or [])
        payload = {
            "data_source": self.data_source.name,
            "db.system": self.driver.name,
            "db.statement": query,
            "db.parameters.count": len(bound),
        }
        logger.log(
            logging.INFO if self.driver.options.log_queries else logging.DEBUG,
            "Executing query",
            extra=payload,
        )

        start_time = time.time()
        try:
            cursor = connection.exec_driver_sql(query, tuple(bound))
            result = self._build_query_result(cursor)
            if not self.is_transaction_active:
                connection.commit()
        except Exception as exc:
            duration = time.time() - start_time
            logger.error(
                "Query failed",
                extra={**payload, "duration.seconds": f"{duration:.6f}", "error": str(exc)},
                exc_info=True,
            )
            if not self.is_transaction_active and connection.in_transaction():
                connection.rollback()
            raise QueryFailedError(query, bound, exc) from exc

        duration = time.time() - start_time
        max_time = self.driver.options.max_query_execution_time
        if max_time is not None and duration > max_time:
            logger.warning("Query is slow", extra={**payload, "duration.seconds": f"{duration:.6f}"})

        self._after_query(query)
        return result if use_structured_result else result.records

    def _build_query_result(self, cursor: CursorResult) -> QueryResult:
        affected = cursor.rowcount if cursor.rowcount is not None and cursor.rowcount >= 0 else None
        if cursor.returns_rows:
            records = [dict(row) for row in cursor.mappings().all()]
            return QueryResult(records=records, raw=records, affected=affected)

        last_insert_id = cursor.lastrowid if self.driver.last_insert_id_supported else None
        return QueryResult(
            records=[],
            raw={"affected_rows": affected, "last_insert_id": last_insert_id},
            affected=affected,
        )

    def _after_query(self, query: str) -> None:
        """Hook run after a statement succeeded.

        Override this method in subclasses that must react to writes.

        Args:
            query: The statement that ran
        """
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(driver={self.driver.name!r}, released={self.is_released})"
