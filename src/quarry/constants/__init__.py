"""Constants shared across quarry layers."""

from .driver import DatabaseType, ReplicationMode, StorageType
from .sql import GenerationStrategy, OrderDirection, QueryType, ReturningStyle, WhereType

__all__ = [
    "DatabaseType",
    "ReplicationMode",
    "StorageType",
    "QueryType",
    "WhereType",
    "ReturningStyle",
    "GenerationStrategy",
    "OrderDirection",
]
