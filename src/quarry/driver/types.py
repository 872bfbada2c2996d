"""Value types shared by drivers, query runners and builders."""

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Literal, Optional

from quarry.constants import QueryType, ReturningStyle
from quarry.types import FrozenQuarryModel


@dataclass(frozen=True)
class CteCapabilities:
    """What a dialect allows in a WITH block."""

    enabled: bool = False
    requires_recursive_hint: bool = False
    materialized_hint: bool = False
    writable: bool = False


@dataclass(frozen=True)
class DriverCapabilities:
    """Static description of dialect features the builders branch on."""

    returning_style: ReturningStyle = ReturningStyle.NONE
    returning_statements: FrozenSet[QueryType] = frozenset()
    cte: CteCapabilities = field(default_factory=CteCapabilities)
    default_keyword_in_values: bool = True
    empty_insert_expression: str = "DEFAULT VALUES"
    insert_ignore: Optional[Literal["or_ignore", "ignore", "on_conflict"]] = None


class QueryResult(FrozenQuarryModel):
    """Normalized response of one statement.

    Attributes:
        records: Rows returned by the statement, as column-name mappings
        raw: Driver-level payload. The records for row-returning statements,
            otherwise a mapping with ``affected_rows`` and ``last_insert_id``
        affected: Number of rows touched, when the backend reports it
    """

    records: List[Dict[str, Any]] = []
    raw: Any = None
    affected: Optional[int] = None
