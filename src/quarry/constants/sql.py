"""SQL and query-related constants.

This module contains the statement and condition enums shared by the
query builders, the drivers and the result models. They live at the
bottom of the dependency graph so any layer can import them.
"""

from enum import Enum


class QueryType(str, Enum):
    """Kind of statement an expression map lowers to.

    Values:
        SELECT: Row-returning read.
        INSERT: Row insertion, optionally returning generated values.
        UPDATE: In-place modification of matching rows.
        DELETE: Removal of matching rows.
    """

    SELECT = "select"
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


class WhereType(str, Enum):
    """Connector joining a WHERE node to the node before it.

    The first node of a WHERE list is always ``SIMPLE`` and renders bare;
    every following node is rendered with an ``AND``/``OR`` prefix.
    """

    SIMPLE = "simple"
    AND = "and"
    OR = "or"


class ReturningStyle(str, Enum):
    """How a dialect hands back rows touched by a write statement.

    Values:
        RETURNING: Trailing ``RETURNING <cols>`` clause (PostgreSQL, MariaDB).
        OUTPUT: ``OUTPUT <cols>`` placed before VALUES/WHERE (SQL Server).
        NONE: The dialect cannot return rows from writes.
    """

    RETURNING = "returning"
    OUTPUT = "output"
    NONE = "none"


class GenerationStrategy(str, Enum):
    """Strategy a column uses to produce its value on insert."""

    INCREMENT = "increment"
    IDENTITY = "identity"
    UUID = "uuid"
    ROWID = "rowid"


class OrderDirection(str, Enum):
    """Sort direction for ORDER BY items."""

    ASC = "ASC"
    DESC = "DESC"
