from .driver import AbstractSqliteDriver
from .query_runner import AbstractSqliteQueryRunner

__all__ = ["AbstractSqliteDriver", "AbstractSqliteQueryRunner"]
