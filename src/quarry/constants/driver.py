"""Driver-related constants and enumerations."""

from enum import Enum


class DatabaseType(str, Enum):
    """Backend identifiers the driver factory can construct.

    The set is closed: every member has exactly one driver class in
    ``quarry.driver.factory`` and any other identifier is rejected with
    ``MissingDriverError``.

    Values:
        POSTGRES: PostgreSQL over psycopg2.
        MYSQL: MySQL over PyMySQL.
        MARIADB: MariaDB over PyMySQL (shares the MySQL driver).
        MSSQL: SQL Server over pyodbc.
        SQLITE: File-backed SQLite via the standard ``sqlite3`` module.
        SQLJS: Embedded in-memory SQLite with pluggable persistence.
    """

    POSTGRES = "postgres"
    MYSQL = "mysql"
    MARIADB = "mariadb"
    MSSQL = "mssql"
    SQLITE = "sqlite"
    SQLJS = "sqljs"


class ReplicationMode(str, Enum):
    """Which side of a replicated setup a query runner talks to."""

    MASTER = "master"
    SLAVE = "slave"


class StorageType(str, Enum):
    """Persistence target for the embedded driver.

    Values:
        FILE: Raw database bytes written to a path on disk.
        KEY_VALUE: Database bytes stored as a JSON array of integers
            under a key of a mutable mapping.
    """

    FILE = "file"
    KEY_VALUE = "key_value"
