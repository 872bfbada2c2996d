"""Shared machinery of every statement builder.

A builder owns one ``ExpressionMap``. Fluent methods mutate the map and
return the builder; ``get_query()`` lowers the map to SQL text without
touching it; ``execute()`` (on the concrete builders) runs the lowered
statement through ``_execute_statement``, which owns the transaction and
listener lifecycle around the call.
"""

import re
from abc import ABC, abstractmethod
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
    TypeVar,
    Union,
)

from quarry.common.exceptions import (
    EntityMetadataNotFoundError,
    ReturningStatementNotSupportedError,
    UnsupportedFeatureError,
    validation_error,
)
from quarry.constants import QueryType, ReturningStyle, WhereType
from quarry.driver.types import QueryResult
from quarry.logging import get_logger
from quarry.metadata import EntityMetadata, EntitySchema
from quarry.query_builder.brackets import Brackets, NotBrackets
from quarry.query_builder.expression_map import (
    Alias,
    BracketsCondition,
    CommonTableExpression,
    ExpressionMap,
    WhereClause,
)
from quarry.subscriber import BroadcastEvent

if TYPE_CHECKING:
    from quarry.data_source import DataSource
    from quarry.driver.base import Driver
    from quarry.driver.query_runner import QueryRunner
    from quarry.query_builder.delete import DeleteQueryBuilder
    from quarry.query_builder.insert import InsertQueryBuilder
    from quarry.query_builder.select import SelectQueryBuilder
    from quarry.query_builder.update import UpdateQueryBuilder

logger = get_logger(__name__)

PARAMETER_NAME = re.compile(r"^[A-Za-z0-9_.]+$")

WhereCondition = Union[str, Brackets, Callable[[Any], str], Mapping[str, Any], Sequence[Mapping[str, Any]]]
R = TypeVar("R")


def _is_empty_condition(condition: Union[str, BracketsCondition]) -> bool:
    if isinstance(condition, BracketsCondition):
        return not condition.clauses
    return not condition


class WhereExpressionBuilder:
    """``where`` family shared by top-level builders and bracket groups.

    Implementations provide ``_replace_wheres``, ``_append_where``,
    ``_get_where_condition``, ``_get_where_in_ids_condition`` and
    ``set_parameters``.
    """

    def where(self, where: WhereCondition, parameters: Optional[Dict[str, Any]] = None):
        """Replace every WHERE condition with ``where``.

        Args:
            where: SQL string, ``Brackets`` group, callable returning SQL,
                property mapping, or list of property mappings
            parameters: Values for named parameters used in ``where``

        Returns:
            The builder, for chaining
        """
        self._replace_wheres([])
        condition = self._get_where_condition(where)
        if not _is_empty_condition(condition):
            self._replace_wheres([WhereClause(WhereType.SIMPLE, condition)])
        if parameters:
            self.set_parameters(parameters)
        return self

    def and_where(self, where: WhereCondition, parameters: Optional[Dict[str, Any]] = None):
        """Append ``where`` joined with AND. An empty condition adds nothing."""
        condition = self._get_where_condition(where)
        if not _is_empty_condition(condition):
            self._append_where(WhereClause(WhereType.AND, condition))
        if parameters:
            self.set_parameters(parameters)
        return self

    def or_where(self, where: WhereCondition, parameters: Optional[Dict[str, Any]] = None):
        """Append ``where`` joined with OR. An empty condition adds nothing."""
        condition = self._get_where_condition(where)
        if not _is_empty_condition(condition):
            self._append_where(WhereClause(WhereType.OR, condition))
        if parameters:
            self.set_parameters(parameters)
        return self

    def where_in_ids(self, ids: Any):
        """Replace the WHERE conditions with a primary key match on ``ids``."""
        return self.where(self._get_where_in_ids_condition(ids))

    def and_where_in_ids(self, ids: Any):
        return self.and_where(self._get_where_in_ids_condition(ids))

    def or_where_in_ids(self, ids: Any):
        return self.or_where(self._get_where_in_ids_condition(ids))


class _NestedWhereBuilder(WhereExpressionBuilder):
    """Collects the clauses of a ``Brackets`` group for its parent builder."""

    def __init__(self, parent: "QueryBuilder"):
        self.parent = parent
        self.wheres: List[WhereClause] = []

    def _replace_wheres(self, wheres: List[WhereClause]) -> None:
        self.wheres = list(wheres)

    def _append_where(self, clause: WhereClause) -> None:
        self.wheres.append(clause)

    def _get_where_condition(self, where: WhereCondition) -> Union[str, BracketsCondition]:
        return self.parent._get_where_condition(where)

    def _get_where_in_ids_condition(self, ids: Any) -> WhereCondition:
        return self.parent._get_where_in_ids_condition(ids)

    def set_parameter(self, key: str, value: Any) -> "_NestedWhereBuilder":
        self.parent.set_parameter(key, value)
        return self

    def set_parameters(self, parameters: Dict[str, Any]) -> "_NestedWhereBuilder":
        self.parent.set_parameters(parameters)
        return self

    def create_parameter(self, value: Any) -> str:
        return self.parent.create_parameter(value)

    def escape(self, name: str) -> str:
        return self.parent.escape(name)


class QueryBuilder(ABC):
    """Base class of the select/insert/update/delete builders.

    Args:
        connection_or_builder: A data source, or a builder whose state
            (data source, query runner and a clone of its expression map)
            the new builder starts from
        query_runner: Runner to execute on instead of a fresh one per call

    Attributes:
        data_source: Data source the statement runs against
        query_runner: Caller-supplied runner, or None
        expression_map: The statement under construction
    """

    def __init__(
        self,
        connection_or_builder: Union["DataSource", "QueryBuilder"],
        query_runner: Optional["QueryRunner"] = None,
    ):
        if isinstance(connection_or_builder, QueryBuilder):
            self.data_source = connection_or_builder.data_source
            self.query_runner = connection_or_builder.query_runner
            self.expression_map: ExpressionMap = connection_or_builder.expression_map.clone()
        else:
            self.data_source = connection_or_builder
            self.query_runner = query_runner
            self.expression_map = ExpressionMap()

    @property
    def driver(self) -> "Driver":
        return self.data_source.driver

    @property
    def alias(self) -> str:
        if self.expression_map.main_alias is None:
            raise validation_error("Main alias is not set", field="main_alias")
        return self.expression_map.main_alias.name

    @abstractmethod
    def _create_statement_expression(self) -> str:
        """Render the statement clause (everything after comment and WITH)."""

    # -- builder conversion ------------------------------------------------

    def select(self, selection: Optional[Union[str, List[str]]] = None, selection_alias: Optional[str] = None) -> "SelectQueryBuilder":
        """Continue as a SELECT statement over a copy of this builder's state."""
        from quarry.query_builder.select import SelectQueryBuilder

        builder = SelectQueryBuilder(self)
        builder.expression_map.query_type = QueryType.SELECT
        if selection is not None:
            builder.select(selection, selection_alias)
        return builder

    def insert(self) -> "InsertQueryBuilder":
        """Continue as an INSERT statement over a copy of this builder's state."""
        from quarry.query_builder.insert import InsertQueryBuilder

        builder = InsertQueryBuilder(self)
        builder.expression_map.query_type = QueryType.INSERT
        return builder

    def update(self, target: Any = None, values: Optional[Dict[str, Any]] = None) -> "UpdateQueryBuilder":
        """Continue as an UPDATE of ``target`` (or of the current main alias)."""
        from quarry.query_builder.update import UpdateQueryBuilder

        builder = UpdateQueryBuilder(self)
        builder.expression_map.query_type = QueryType.UPDATE
        if target is not None:
            builder.expression_map.set_main_alias(builder.create_from_alias(target))
        if values is not None:
            builder.set(values)
        return builder

    def delete(self) -> "DeleteQueryBuilder":
        """Continue as a DELETE statement over a copy of this builder's state."""
        from quarry.query_builder.delete import DeleteQueryBuilder

        builder = DeleteQueryBuilder(self)
        builder.expression_map.query_type = QueryType.DELETE
        return builder

    def clone(self):
        """Independent copy of this builder; later changes do not leak either way."""
        return type(self)(self)

    # -- options -----------------------------------------------------------

    def comment(self, comment: str):
        """Prefix the statement with ``/* comment */``."""
        self.expression_map.comment = comment
        return self

    def use_transaction(self, enabled: bool = True):
        """Run ``execute()`` inside a transaction when none is active."""
        self.expression_map.use_transaction = enabled
        return self

    def call_listeners(self, enabled: bool = True):
        """Broadcast subscriber events around ``execute()``."""
        self.expression_map.call_listeners = enabled
        return self

    def set_query_runner(self, query_runner: "QueryRunner"):
        """Execute on ``query_runner``; the builder will not release it."""
        self.query_runner = query_runner
        return self

    def add_common_table_expression(
        self,
        query: Union[str, "QueryBuilder"],
        alias: str,
        column_names: Optional[Iterable[str]] = None,
        recursive: bool = False,
        materialized: Optional[bool] = None,
    ):
        """Add an entry to the statement's WITH block.

        Args:
            query: SQL text or a builder rendered at lowering time
            alias: Name the expression is referenced by
            column_names: Optional column list for the expression
            recursive: Mark the block recursive where the dialect needs it
            materialized: Materialization hint, ignored where unsupported

        Raises:
            UnsupportedFeatureError: If the dialect has no WITH support
        """
        if not self.driver.capabilities.cte.enabled:
            raise UnsupportedFeatureError(f"{self.driver.name} does not support common table expressions")
        self.expression_map.common_table_expressions.append(CommonTableExpression(
            query=query,
            alias=alias,
            column_names=tuple(column_names) if column_names else None,
            recursive=recursive,
            materialized=materialized,
        ))
        return self

    # -- parameters --------------------------------------------------------

    def set_parameter(self, key: str, value: Any):
        """Bind ``value`` to the named parameter ``key``.

        Raises:
            QuarryError: With VALIDATION_ERROR for callables or invalid names
        """
        if callable(value):
            raise validation_error(
                f"Function parameter isn't supported in the parameters. Please check \"{key}\" parameter.",
                field=key,
            )
        if not PARAMETER_NAME.match(key):
            raise validation_error(
                "QueryBuilder parameter keys may only contain numbers, letters, underscores, or periods.",
                field=key,
            )
        self.expression_map.parameters[key] = value
        return self

    def set_parameters(self, parameters: Dict[str, Any]):
        for key, value in parameters.items():
            self.set_parameter(key, value)
        return self

    def create_parameter(self, value: Any) -> str:
        """Bind ``value`` under a generated name and return the name."""
        name = f"orm_param_{self.expression_map.parameter_index}"
        self.expression_map.parameter_index += 1
        self.set_parameter(name, value)
        return name

    def get_parameters(self) -> Dict[str, Any]:
        """All values the lowered statement refers to, keyed by name."""
        parameters: Dict[str, Any] = {}
        for cte in self.expression_map.common_table_expressions:
            if isinstance(cte.query, QueryBuilder):
                parameters.update(cte.query.get_parameters())
        parameters.update(self.expression_map.parameters)
        parameters.update(self._get_statement_parameters())
        return parameters

    def _get_statement_parameters(self) -> Dict[str, Any]:
        """Values derived from statement state at lowering time (VALUES, SET)."""
        return {}

    # -- lowering ----------------------------------------------------------

    def get_query(self) -> str:
        """Render the statement with named parameters.

        Pure: calling it any number of times yields the same text and never
        changes the expression map.
        """
        sql = self.create_comment() + self.create_cte_expression() + self._create_statement_expression()
        return sql.strip()

    def get_query_and_parameters(self) -> Tuple[str, List[Any]]:
        """Render the statement with the driver's positional placeholders.

        Returns:
            The SQL text and its parameter values in placeholder order
        """
        return self.driver.escape_query_with_parameters(self.get_query(), self.get_parameters())

    def get_sql(self) -> str:
        return self.get_query_and_parameters()[0]

    def escape(self, name: str) -> str:
        return self.driver.escape(name)

    def get_table_name(self, table_path: str) -> str:
        """Escape every dotted segment of a table path."""
        return ".".join(self.escape(part) if part else part for part in table_path.split("."))

    def get_main_table_name(self) -> str:
        alias = self.expression_map.main_alias
        if alias is None:
            raise validation_error("Main alias is not set", field="main_alias")
        if alias.metadata is not None:
            metadata = alias.metadata
            return self.driver.build_table_name(metadata.table_name, metadata.schema_name, metadata.database)
        return alias.table_path or alias.name

    def create_from_alias(self, target: Any, alias_name: Optional[str] = None) -> Alias:
        """Create an alias for an entity target or a plain table name.

        Raises:
            EntityMetadataNotFoundError: If a non-string target has no metadata
        """
        if isinstance(target, EntitySchema):
            target = target.options.name

        if self.data_source.has_metadata(target):
            metadata = self.data_source.get_metadata(target)
            return self.expression_map.create_alias(
                name=alias_name or metadata.table_name,
                metadata=metadata,
            )
        if isinstance(target, str):
            return self.expression_map.create_alias(name=alias_name or target, table_path=target)
        raise EntityMetadataNotFoundError(target)

    def _set_main_target(self, target: Any, alias_name: Optional[str] = None) -> None:
        self.expression_map.set_main_alias(self.create_from_alias(target, alias_name))

    def create_comment(self) -> str:
        if not self.expression_map.comment:
            return ""
        # a "*/" inside the text would end the comment early
        return f"/* {self.expression_map.comment.replace('*/', '')} */ "

    def create_cte_expression(self) -> str:
        ctes = self.expression_map.common_table_expressions
        if not ctes:
            return ""

        capabilities = self.driver.capabilities.cte
        expressions: List[str] = []
        for cte in ctes:
            sql = cte.query.get_query() if isinstance(cte.query, QueryBuilder) else cte.query
            expression = self.escape(cte.alias)
            if cte.column_names:
                expression += "(" + ", ".join(self.escape(name) for name in cte.column_names) + ")"
            expression += " AS "
            if cte.materialized is not None and capabilities.materialized_hint:
                expression += "MATERIALIZED " if cte.materialized else "NOT MATERIALIZED "
            expression += f"({sql})"
            expressions.append(expression)

        recursive = capabilities.requires_recursive_hint and any(cte.recursive for cte in ctes)
        return "WITH " + ("RECURSIVE " if recursive else "") + ", ".join(expressions) + " "

    # -- where -------------------------------------------------------------

    def _replace_wheres(self, wheres: List[WhereClause]) -> None:
        self.expression_map.wheres = list(wheres)

    def _append_where(self, clause: WhereClause) -> None:
        self.expression_map.wheres.append(clause)

    def _main_metadata(self) -> EntityMetadata:
        alias = self.expression_map.main_alias
        if alias is None or alias.metadata is None:
            raise validation_error("Entity metadata is required for primary key conditions", field="main_alias")
        return alias.metadata

    def _column_reference(self, property_name: str) -> str:
        alias = self.expression_map.main_alias
        column = alias.metadata.find_column_with_property_name(property_name) if alias and alias.metadata else None
        escaped = self.escape(column.database_name if column else property_name)
        if self.expression_map.alias_name_prefixing_enabled and alias is not None:
            return f"{self.escape(alias.name)}.{escaped}"
        return escaped

    def _get_where_condition(self, where: WhereCondition) -> Union[str, BracketsCondition]:
        if isinstance(where, str):
            return where
        if isinstance(where, Brackets):
            nested = _NestedWhereBuilder(self)
            where.where_factory(nested)
            operator = "not" if isinstance(where, NotBrackets) else "brackets"
            return BracketsCondition(operator=operator, clauses=tuple(nested.wheres))
        if callable(where):
            return where(self)
        if isinstance(where, Mapping):
            return self._build_mapping_condition(where)
        if isinstance(where, (list, tuple)):
            groups = [self._build_mapping_condition(item) for item in where]
            if len(groups) == 1:
                return groups[0]
            return " OR ".join(f"({group})" for group in groups)
        raise validation_error(f"Unsupported where condition: {type(where).__name__}", field="where")

    def _build_mapping_condition(self, mapping: Mapping[str, Any]) -> str:
        parts: List[str] = []
        for key, value in mapping.items():
            reference = self._column_reference(key)
            if value is None:
                parts.append(f"{reference} IS NULL")
            elif isinstance(value, (list, tuple, set, frozenset)):
                parts.append(f"{reference} IN (:...{self.create_parameter(list(value))})")
            else:
                parts.append(f"{reference} = :{self.create_parameter(value)}")
        return " AND ".join(parts)

    def _get_where_in_ids_condition(self, ids: Any) -> WhereCondition:
        metadata = self._main_metadata()
        if not metadata.primary_columns:
            raise validation_error(f"Entity {metadata.name} has no primary columns", field="ids")

        id_list = list(ids) if isinstance(ids, (list, tuple)) else [ids]
        normalized = [metadata.ensure_entity_id_map(value) for value in id_list]

        if not metadata.has_multiple_primary_keys:
            primary = metadata.primary_columns[0]
            return {primary.property_name: [id_map.get(primary.property_name) for id_map in normalized]}

        if not normalized:
            return "0=1"

        def or_each_id(builder: _NestedWhereBuilder) -> None:
            for id_map in normalized:
                builder.or_where(Brackets(lambda inner, id_map=id_map: inner.where(id_map)))

        return Brackets(or_each_id)

    def create_where_expression(self) -> str:
        conditions: List[str] = []
        where_expression = self._create_where_clauses_expression(self.expression_map.wheres)
        if where_expression:
            conditions.append(where_expression)

        soft_delete_condition = self._create_soft_delete_condition()
        if soft_delete_condition:
            conditions.append(soft_delete_condition)

        if not conditions:
            return ""
        if len(conditions) == 1:
            return f" WHERE {conditions[0]}"
        return " WHERE ( " + " ) AND ( ".join(conditions) + " )"

    def _create_soft_delete_condition(self) -> Optional[str]:
        return None

    def _create_where_clauses_expression(self, clauses: Sequence[WhereClause]) -> str:
        expressions: List[str] = []
        for index, clause in enumerate(clauses):
            expression = self._create_where_condition_expression(clause.condition)
            if index > 0 and clause.type == WhereType.AND:
                expression = "AND " + expression
            elif index > 0 and clause.type == WhereType.OR:
                expression = "OR " + expression
            expressions.append(expression)
        return " ".join(expressions).strip()

    def _create_where_condition_expression(self, condition: Union[str, BracketsCondition]) -> str:
        if isinstance(condition, str):
            return condition
        inner = self._create_where_clauses_expression(condition.clauses)
        if condition.operator == "not":
            return f"NOT({inner})"
        return f"({inner})"

    # -- execution ---------------------------------------------------------

    def obtain_query_runner(self) -> "QueryRunner":
        """The caller's runner, or a fresh one from the data source."""
        return self.query_runner or self.data_source.create_query_runner()

    def _execute_statement(
        self,
        build_result: Callable[[QueryResult, "QueryRunner"], R],
        before_event: Optional[BroadcastEvent] = None,
        after_event: Optional[BroadcastEvent] = None,
        entities: Optional[Iterable[Any]] = None,
    ) -> R:
        """Run the lowered statement with transaction and listener handling.

        A transaction is started only when ``use_transaction`` is set and
        the runner has none active, and only that transaction is committed
        or rolled back here. A failure during rollback is logged and the
        original exception is re-raised. A runner obtained here (not
        supplied by the caller) is released on every path. The whole sequence
        runs inside ``query_runner.exclusive()`` so a shared runner is not
        interleaved with statements from other threads.

        Args:
            build_result: Turns the runner's ``QueryResult`` into the typed result
            before_event: Subscriber event broadcast before the statement
            after_event: Subscriber event broadcast after the statement
            entities: Payloads for the subscriber events

        Returns:
            Whatever ``build_result`` returns
        """
        sql, parameters = self.get_query_and_parameters()
        query_runner = self.obtain_query_runner()
        transaction_started_here = False
        entities = list(entities) if entities is not None else None

        with query_runner.exclusive():
            try:
                if self.expression_map.use_transaction and not query_runner.is_transaction_active:
                    query_runner.start_transaction()
                    transaction_started_here = True

                alias = self.expression_map.main_alias
                broadcast = self.expression_map.call_listeners and alias is not None and alias.has_metadata
                if broadcast and before_event is not None:
                    query_runner.broadcaster.broadcast(before_event, alias.metadata, entities)

                query_result = query_runner.query(sql, parameters, use_structured_result=True)
                result = build_result(query_result, query_runner)

                if broadcast and after_event is not None:
                    query_runner.broadcaster.broadcast(after_event, alias.metadata, entities)

                if transaction_started_here:
                    query_runner.commit_transaction()

                return result

            except Exception:
                if transaction_started_here:
                    try:
                        query_runner.rollback_transaction()
                    except Exception as rollback_error:
                        logger.warning(
                            "Rollback after failed statement also failed",
                            extra={"data_source": self.data_source.name, "error": str(rollback_error)},
                        )
                raise

            finally:
                if query_runner is not self.query_runner:
                    query_runner.release()


class ReturningExpressionBuilder:
    """``returning``/``output`` for the write builders."""

    def returning(self, columns: Union[str, Sequence[str]]):
        """Ask the database to hand back ``columns`` of the touched rows.

        Args:
            columns: Property or column names, or a raw SQL fragment

        Raises:
            ReturningStatementNotSupportedError: If the dialect cannot return
                rows from this statement kind; the statement is left unchanged
        """
        query_type = self.expression_map.query_type
        if not self.driver.is_returning_sql_supported(query_type):
            raise ReturningStatementNotSupportedError(QueryType(query_type).value)
        self.expression_map.returning = columns if isinstance(columns, str) else list(columns)
        return self

    def output(self, columns: Union[str, Sequence[str]]):
        """Alias of ``returning`` named after the SQL Server keyword."""
        return self.returning(columns)

    def _returning_columns(self) -> Optional[Union[str, List[str]]]:
        return self.expression_map.returning

    def _create_returning_columns_expression(self) -> str:
        returning = self._returning_columns()
        if not returning:
            return ""
        if isinstance(returning, str):
            return returning

        alias = self.expression_map.main_alias
        if alias is None or alias.metadata is None:
            return ", ".join(returning)

        prefix = ""
        if self.driver.capabilities.returning_style == ReturningStyle.OUTPUT:
            prefix = "DELETED." if self.expression_map.query_type == QueryType.DELETE else "INSERTED."

        names: List[str] = []
        for name in returning:
            column = alias.metadata.find_column_with_property_name(name)
            names.append(prefix + self.escape(column.database_name if column else name))
        return ", ".join(names)

    def _create_output_expression(self) -> str:
        if self.driver.capabilities.returning_style != ReturningStyle.OUTPUT:
            return ""
        columns = self._create_returning_columns_expression()
        return f" OUTPUT {columns}" if columns else ""

    def _create_returning_suffix(self) -> str:
        if self.driver.capabilities.returning_style != ReturningStyle.RETURNING:
            return ""
        columns = self._create_returning_columns_expression()
        return f" RETURNING {columns}" if columns else ""
