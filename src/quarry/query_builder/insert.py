"""INSERT statement builder."""

from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Optional, Sequence, Set, Tuple, Union

from quarry.common.exceptions import UnsupportedFeatureError
from quarry.constants import QueryType
from quarry.driver.types import QueryResult
from quarry.metadata import ColumnMetadata, EntityMetadata
from quarry.query_builder.base import QueryBuilder, ReturningExpressionBuilder
from quarry.query_builder.result import InsertResult
from quarry.subscriber import BroadcastEvent

if TYPE_CHECKING:
    from quarry.data_source import DataSource
    from quarry.driver.query_runner import QueryRunner

_MISSING = object()

ValueSet = Dict[str, Any]


class InsertQueryBuilder(ReturningExpressionBuilder, QueryBuilder):
    """Builds and runs ``INSERT`` statements.

    Values are bound as parameters named after their row and column
    position (``i0_0``, ``i0_1``, ...). Those parameters are derived from the
    value sets at lowering time and never stored on the builder. A callable
    value is rendered as the raw SQL it returns.

    Example:
        >>> result = (
        ...     data_source.create_query_builder()
        ...     .insert()
        ...     .into(User)
        ...     .values([{"name": "Ada"}, {"name": "Grace"}])
        ...     .execute()
        ... )
        >>> result.identifiers
        [{'id': 1}, {'id': 2}]
    """

    def __init__(
        self,
        connection_or_builder: Union["DataSource", QueryBuilder],
        query_runner: Optional["QueryRunner"] = None,
    ):
        super().__init__(connection_or_builder, query_runner)
        self.expression_map.query_type = QueryType.INSERT

    def into(self, target: Any, columns: Optional[Sequence[str]] = None) -> "InsertQueryBuilder":
        """Set the table rows go into, optionally restricting the columns."""
        self._set_main_target(target)
        self.expression_map.insert_columns = list(columns) if columns else None
        return self

    def values(self, values: Union[ValueSet, List[ValueSet]]) -> "InsertQueryBuilder":
        """Set the row (mapping) or rows (list of mappings) to insert."""
        self.expression_map.value_set = values
        return self

    def or_ignore(self, enabled: bool = True) -> "InsertQueryBuilder":
        """Skip rows that would violate a unique constraint.

        Raises:
            UnsupportedFeatureError: If the dialect has no such clause
        """
        if enabled and self.driver.capabilities.insert_ignore is None:
            raise UnsupportedFeatureError(f"{self.driver.name} does not support ignoring conflicting inserts")
        self.expression_map.on_ignore = enabled
        return self

    def update_entity(self, enabled: bool) -> "InsertQueryBuilder":
        """Whether generated values are read back after the insert."""
        self.expression_map.update_entity = enabled
        return self

    # -- lowering ----------------------------------------------------------

    def _get_insert_columns(self) -> List[Tuple[str, Optional[ColumnMetadata]]]:
        """Columns of the statement as ``(property_name, column)`` pairs."""
        alias = self.expression_map.main_alias
        value_sets = self.expression_map.value_sets
        requested = self.expression_map.insert_columns

        if alias is None or alias.metadata is None:
            if requested:
                return [(name, None) for name in requested]
            names: List[str] = []
            for value_set in value_sets:
                names.extend(key for key in value_set if key not in names)
            return [(name, None) for name in names]

        columns: List[Tuple[str, Optional[ColumnMetadata]]] = []
        for column in alias.metadata.columns:
            if requested and column.property_name not in requested:
                continue
            present = any(column.property_name in value_set for value_set in value_sets)
            if column.is_generated and not any(value_set.get(column.property_name) is not None for value_set in value_sets):
                continue
            if present or column.is_create_date or column.is_update_date or column.is_version:
                columns.append((column.property_name, column))
        return columns

    def _iter_value_cells(self) -> Iterator[Tuple[int, int, Optional[ColumnMetadata], Any]]:
        columns = self._get_insert_columns()
        for row_index, value_set in enumerate(self.expression_map.value_sets):
            for column_index, (property_name, column) in enumerate(columns):
                yield row_index, column_index, column, value_set.get(property_name, _MISSING)

    @staticmethod
    def _parameter_name(row_index: int, column_index: int) -> str:
        return f"i{row_index}_{column_index}"

    def _get_statement_parameters(self) -> Dict[str, Any]:
        return {
            self._parameter_name(row_index, column_index): value
            for row_index, column_index, _, value in self._iter_value_cells()
            if value is not _MISSING and value is not None and not callable(value)
        }

    def _render_value(self, row_index: int, column_index: int, column: Optional[ColumnMetadata], value: Any) -> str:
        if value is _MISSING:
            if column is not None and (column.is_create_date or column.is_update_date):
                return "CURRENT_TIMESTAMP"
            if column is not None and column.is_version:
                return "1"
            return "DEFAULT" if self.driver.capabilities.default_keyword_in_values else "NULL"
        if value is None:
            return "NULL"
        if callable(value):
            return value()
        return ":" + self._parameter_name(row_index, column_index)

    def _returning_columns(self) -> Optional[Union[str, List[str]]]:
        if self.expression_map.returning:
            return self.expression_map.returning

        alias = self.expression_map.main_alias
        if (
            alias is None
            or alias.metadata is None
            or not self.expression_map.update_entity
            or not self.driver.is_returning_sql_supported(QueryType.INSERT)
        ):
            return None

        names: List[str] = []
        for column in alias.metadata.columns:
            if column.is_primary or column.is_generated or column.is_create_date or column.is_update_date or column.is_version:
                if column.property_name not in names:
                    names.append(column.property_name)
        return names or None

    def _create_statement_expression(self) -> str:
        capabilities = self.driver.capabilities
        table_name = self.get_table_name(self.get_main_table_name())

        ignore = capabilities.insert_ignore if self.expression_map.on_ignore else None
        prefix = {"or_ignore": "INSERT OR IGNORE INTO", "ignore": "INSERT IGNORE INTO"}.get(ignore, "INSERT INTO")

        columns = self._get_insert_columns() if self.expression_map.value_sets else []
        if columns:
            column_expression = "(" + ", ".join(
                self.escape(column.database_name if column is not None else name) for name, column in columns
            ) + ")"
            rows: Dict[int, List[str]] = {}
            for row_index, column_index, column, value in self._iter_value_cells():
                rows.setdefault(row_index, []).append(self._render_value(row_index, column_index, column, value))
            values_expression = "VALUES " + ", ".join("(" + ", ".join(row) + ")" for row in rows.values())
        else:
            column_expression = ""
            values_expression = capabilities.empty_insert_expression

        return (
            f"{prefix} {table_name}{column_expression}"
            f"{self._create_output_expression()}"
            f" {values_expression}"
            f"{' ON CONFLICT DO NOTHING' if ignore == 'on_conflict' else ''}"
            f"{self._create_returning_suffix()}"
        )

    # -- execution ---------------------------------------------------------

    def execute(self) -> InsertResult:
        """Run the INSERT.

        Returns:
            InsertResult with identifiers and generated values per value set

        Raises:
            QueryFailedError: If the backend rejected the statement
        """
        value_sets = self.expression_map.value_sets
        return self._execute_statement(
            lambda query_result, _: self._create_insert_result(query_result),
            before_event=BroadcastEvent.BEFORE_INSERT,
            after_event=BroadcastEvent.AFTER_INSERT,
            entities=value_sets,
        )

    def _create_insert_result(self, query_result: QueryResult) -> InsertResult:
        alias = self.expression_map.main_alias
        if alias is None or alias.metadata is None:
            return InsertResult(raw=query_result.raw)

        metadata = alias.metadata
        value_sets = self.expression_map.value_sets
        known_rows = self._rows_with_known_generated_values(metadata, query_result)
        generated_maps: List[Dict[str, Any]] = []
        identifiers: List[Optional[Dict[str, Any]]] = []

        for index, value_set in enumerate(value_sets):
            generated: Dict[str, Any] = {}
            if self.expression_map.update_entity and index in known_rows:
                generated = self.driver.create_generated_map(metadata, query_result, index, len(value_sets)) or {}
            generated_maps.append(generated)
            filled = {key: value for key, value in generated.items() if value_set.get(key) is None}
            identifiers.append(metadata.get_entity_id_map({**value_set, **filled}))

        return InsertResult(identifiers=identifiers, generated_maps=generated_maps, raw=query_result.raw)

    def _rows_with_known_generated_values(self, metadata: EntityMetadata, query_result: QueryResult) -> Set[int]:
        """Indexes of the value sets whose generated values the driver can report.

        Rows returned by the statement itself are always known. Otherwise the
        ids are derived from one last insert id and are only consecutive when
        every row was inserted and none supplied its own generated primary
        key. For other batches only the row the reported id belongs to is
        known, and only on drivers that report the final row's id.
        """
        value_sets = self.expression_map.value_sets
        if query_result.records or not self.driver.last_insert_id_supported:
            return set(range(len(value_sets)))

        generated_keys = [column.property_name for column in metadata.generated_columns if column.is_primary]
        supplied = [any(value_set.get(key) is not None for key in generated_keys) for value_set in value_sets]
        if self.expression_map.on_ignore:
            all_inserted = query_result.affected == len(value_sets)
        else:
            all_inserted = query_result.affected in (None, len(value_sets))

        if not any(supplied) and all_inserted:
            return set(range(len(value_sets)))
        last = len(value_sets) - 1
        if self.driver.last_insert_id_is_last_row and all_inserted and not supplied[last]:
            return {last}
        return set()
