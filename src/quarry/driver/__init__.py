"""Drivers: the dialect knowledge and connection lifecycle per backend."""

from .base import Driver
from .factory import DriverFactory
from .mysql import MysqlDriver
from .network import NetworkDriver
from .postgres import PostgresDriver
from .query_runner import QueryRunner
from .sqlite import SqliteDriver
from .sqlite_abstract import AbstractSqliteDriver, AbstractSqliteQueryRunner
from .sqljs import FileStorage, KeyValueStorage, SqljsDriver, SqljsQueryRunner
from .sqlserver import SqlServerDriver
from .types import CteCapabilities, DriverCapabilities, QueryResult

__all__ = [
    "Driver",
    "DriverFactory",
    "NetworkDriver",
    "PostgresDriver",
    "MysqlDriver",
    "SqlServerDriver",
    "AbstractSqliteDriver",
    "AbstractSqliteQueryRunner",
    "SqliteDriver",
    "SqljsDriver",
    "SqljsQueryRunner",
    "FileStorage",
    "KeyValueStorage",
    "QueryRunner",
    "QueryResult",
    "DriverCapabilities",
    "CteCapabilities",
]
