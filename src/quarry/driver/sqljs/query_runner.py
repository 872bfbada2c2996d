import re

from quarry.driver.sqlite_abstract import AbstractSqliteQueryRunner

_READ_ONLY_STATEMENT = re.compile(r"^\s*(?:/\*.*?\*/\s*)*(?:SELECT|PRAGMA|EXPLAIN)\b", re.IGNORECASE | re.DOTALL)


class SqljsQueryRunner(AbstractSqliteQueryRunner):
    """Runner for the embedded driver that keeps persisted storage current.

    Every statement that may modify the database marks the runner dirty.
    Pending changes are flushed through ``driver.auto_save()`` right after
    the statement when no transaction is active, after a commit, and when
    the runner is released.
    """

    _is_dirty = False

    def _after_query(self, query: str) -> None:
        if not _READ_ONLY_STATEMENT.match(query):
            self._is_dirty = True
        if not self.is_transaction_active:
            self.flush()

    def commit_transaction(self) -> None:
        with self.lock:
            super().commit_transaction()
            self.flush()

    def rollback_transaction(self) -> None:
        with self.lock:
            try:
                super().rollback_transaction()
            finally:
                self._is_dirty = False

    def release(self) -> None:
        with self.lock:
            if not self.is_transaction_active:
                self.flush()

    def flush(self) -> None:
        """Hand pending changes to the driver's auto-save."""
        if self._is_dirty:
            self._is_dirty = False
            self.driver.auto_save()
