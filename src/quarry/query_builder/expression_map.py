"""In-memory model of a statement under construction.

Pure data: nothing here performs I/O or renders SQL. Builders mutate an
``ExpressionMap`` through their fluent methods and lower it to text on
demand.
"""

import copy
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Dict, List, Literal, Optional, Tuple, Union

from quarry.constants import OrderDirection, QueryType, WhereType

if TYPE_CHECKING:
    from quarry.metadata import EntityMetadata


@dataclass
class Alias:
    """Name under which a table (and optionally its metadata) is referenced."""

    name: str
    metadata: Optional["EntityMetadata"] = None
    table_path: Optional[str] = None
    type: Literal["from", "select", "other"] = "from"

    @property
    def has_metadata(self) -> bool:
        return self.metadata is not None

    @property
    def target(self) -> Any:
        return self.metadata.target if self.metadata is not None else self.table_path


@dataclass(frozen=True)
class BracketsCondition:
    """Parenthesized group of WHERE clauses, optionally negated."""

    operator: Literal["brackets", "not"]
    clauses: Tuple["WhereClause", ...]


@dataclass(frozen=True)
class WhereClause:
    """One node of the WHERE sequence and the connector that precedes it."""

    type: WhereType
    condition: Union[str, BracketsCondition]


@dataclass
class CommonTableExpression:
    """Named sub-statement rendered in the WITH block."""

    query: Any
    alias: str
    column_names: Optional[Tuple[str, ...]] = None
    recursive: bool = False
    materialized: Optional[bool] = None


@dataclass
class OrderByItem:
    direction: OrderDirection = OrderDirection.ASC
    nulls: Optional[Literal["NULLS FIRST", "NULLS LAST"]] = None


@dataclass
class ExpressionMap:
    """Mutable state of one statement builder.

    Attributes:
        query_type: Statement kind the map lowers to
        main_alias: The single alias the statement targets
        aliases: Every alias known to the statement, main alias included
        wheres: Ordered WHERE clause nodes
        common_table_expressions: WITH block entries in declaration order
        returning: Columns for RETURNING/OUTPUT; a string is used verbatim
        use_transaction: Wrap execution in a transaction when none is active
        call_listeners: Broadcast subscriber events around execution
        alias_name_prefixing_enabled: Qualify column references with the alias
        parameters: Bound parameter values keyed by name
        parameter_index: Counter for generated parameter names
        comment: Text of the leading ``/* */`` comment
    """

    query_type: QueryType = QueryType.SELECT
    main_alias: Optional[Alias] = None
    aliases: List[Alias] = field(default_factory=list)
    wheres: List[WhereClause] = field(default_factory=list)
    common_table_expressions: List[CommonTableExpression] = field(default_factory=list)
    returning: Optional[Union[str, List[str]]] = None
    use_transaction: bool = False
    call_listeners: bool = True
    alias_name_prefixing_enabled: bool = True
    parameters: Dict[str, Any] = field(default_factory=dict)
    parameter_index: int = 0
    comment: Optional[str] = None

    # insert
    insert_columns: Optional[List[str]] = None
    value_set: Optional[Union[Dict[str, Any], List[Dict[str, Any]]]] = None
    on_ignore: bool = False
    update_entity: bool = True

    # select
    selects: List[Tuple[str, Optional[str]]] = field(default_factory=list)
    order_bys: Dict[str, OrderByItem] = field(default_factory=dict)
    limit: Optional[int] = None
    offset: Optional[int] = None
    with_deleted: bool = False

    def create_alias(
        self,
        name: str,
        metadata: Optional["EntityMetadata"] = None,
        table_path: Optional[str] = None,
        type: Literal["from", "select", "other"] = "from",
    ) -> Alias:
        alias = Alias(name=name, metadata=metadata, table_path=table_path, type=type)
        self.aliases.append(alias)
        return alias

    def set_main_alias(self, alias: Alias) -> Alias:
        """Make ``alias`` the statement's only main alias."""
        if self.main_alias is not None and self.main_alias is not alias:
            self.aliases = [existing for existing in self.aliases if existing is not self.main_alias]
        if not any(existing is alias for existing in self.aliases):
            self.aliases.append(alias)
        self.main_alias = alias
        return alias

    def find_alias_by_name(self, name: str) -> Optional[Alias]:
        return next((alias for alias in self.aliases if alias.name == name), None)

    @property
    def value_sets(self) -> List[Dict[str, Any]]:
        if self.value_set is None:
            return []
        if isinstance(self.value_set, dict):
            return [self.value_set]
        return list(self.value_set)

    def clone(self) -> "ExpressionMap":
        """Copy every mutable container; metadata references are shared."""
        aliases = [replace(alias) for alias in self.aliases]
        main_alias = None
        if self.main_alias is not None:
            index = next((i for i, alias in enumerate(self.aliases) if alias is self.main_alias), None)
            main_alias = aliases[index] if index is not None else replace(self.main_alias)

        return replace(
            self,
            main_alias=main_alias,
            aliases=aliases,
            wheres=list(self.wheres),
            common_table_expressions=[replace(cte) for cte in self.common_table_expressions],
            returning=list(self.returning) if isinstance(self.returning, list) else self.returning,
            parameters=dict(self.parameters),
            insert_columns=list(self.insert_columns) if self.insert_columns is not None else None,
            value_set=copy.deepcopy(self.value_set),
            selects=list(self.selects),
            order_bys={key: replace(item) for key, item in self.order_bys.items()},
        )
