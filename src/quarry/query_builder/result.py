"""Typed results returned by statement builders' ``execute()``."""

from typing import Any, Dict, List, Optional

from pydantic import Field

from quarry.driver.types import QueryResult
from quarry.types import FrozenQuarryModel


class DeleteResult(FrozenQuarryModel):
    """Outcome of a DELETE.

    Attributes:
        raw: Driver payload; the returned rows when RETURNING/OUTPUT was used
        affected: Rows removed, when the backend reports it
    """

    raw: Any = None
    affected: Optional[int] = None

    @classmethod
    def from_query_result(cls, query_result: QueryResult) -> "DeleteResult":
        return cls(raw=query_result.raw, affected=query_result.affected)


class UpdateResult(FrozenQuarryModel):
    """Outcome of an UPDATE."""

    raw: Any = None
    affected: Optional[int] = None
    generated_maps: List[Dict[str, Any]] = Field(default_factory=list)

    @classmethod
    def from_query_result(cls, query_result: QueryResult) -> "UpdateResult":
        return cls(
            raw=query_result.raw,
            affected=query_result.affected,
            generated_maps=[dict(row) for row in query_result.records],
        )


class InsertResult(FrozenQuarryModel):
    """Outcome of an INSERT.

    Attributes:
        identifiers: Primary key map per inserted value set (None when unknown)
        generated_maps: Database-generated values per inserted value set
        raw: Driver payload
    """

    identifiers: List[Optional[Dict[str, Any]]] = Field(default_factory=list)
    generated_maps: List[Dict[str, Any]] = Field(default_factory=list)
    raw: Any = None
