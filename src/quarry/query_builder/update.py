"""UPDATE statement builder."""

from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple, Union

from quarry.common.exceptions import validation_error
from quarry.constants import QueryType
from quarry.query_builder.base import QueryBuilder, ReturningExpressionBuilder, WhereExpressionBuilder
from quarry.query_builder.result import UpdateResult
from quarry.subscriber import BroadcastEvent

if TYPE_CHECKING:
    from quarry.data_source import DataSource
    from quarry.driver.query_runner import QueryRunner


class UpdateQueryBuilder(ReturningExpressionBuilder, WhereExpressionBuilder, QueryBuilder):
    """Builds and runs ``UPDATE`` statements.

    Values are bound as ``upd_<position>`` parameters; a callable value is
    rendered as the raw SQL expression it returns. For entities with an
    update-date column that column is set to ``CURRENT_TIMESTAMP``, and a
    version column is incremented, unless the caller sets them explicitly.

    Example:
        >>> (
        ...     data_source.create_query_builder()
        ...     .update(User, {"name": "Ada", "logins": lambda: "logins + 1"})
        ...     .where("id = :id", {"id": 1})
        ...     .execute()
        ... )
    """

    def __init__(
        self,
        connection_or_builder: Union["DataSource", QueryBuilder],
        query_runner: Optional["QueryRunner"] = None,
    ):
        super().__init__(connection_or_builder, query_runner)
        self.expression_map.query_type = QueryType.UPDATE
        self.expression_map.alias_name_prefixing_enabled = False

    def set(self, values: Dict[str, Any]) -> "UpdateQueryBuilder":
        """Set the column values to write, keyed by property or column name."""
        self.expression_map.value_set = values
        return self

    def _get_update_values(self) -> Dict[str, Any]:
        value_set = self.expression_map.value_set
        if isinstance(value_set, list):
            return value_set[0] if value_set else {}
        return value_set or {}

    def _get_set_items(self) -> List[Tuple[str, Any]]:
        """``(column_name, value)`` pairs; values that are callables are raw SQL."""
        values = self._get_update_values()
        alias = self.expression_map.main_alias
        metadata = alias.metadata if alias is not None else None

        items: List[Tuple[str, Any]] = []
        for key, value in values.items():
            column = metadata.find_column_with_property_name(key) if metadata else None
            items.append((column.database_name if column else key, value))

        if metadata is not None:
            explicit = {name for name, _ in items}
            update_date = metadata.update_date_column
            if update_date is not None and update_date.database_name not in explicit:
                items.append((update_date.database_name, lambda: "CURRENT_TIMESTAMP"))
            version = metadata.version_column
            if version is not None and version.database_name not in explicit:
                escaped = self.escape(version.database_name)
                items.append((version.database_name, lambda: f"{escaped} + 1"))
        return items

    def _get_statement_parameters(self) -> Dict[str, Any]:
        return {
            f"upd_{index}": value
            for index, (_, value) in enumerate(self._get_set_items())
            if not callable(value)
        }

    def _create_statement_expression(self) -> str:
        items = self._get_set_items()
        if not items:
            raise validation_error(
                "Cannot perform update query because update values are not defined. "
                "Call \"qb.set(...)\" method to specify updated values.",
                field="values",
            )

        assignments = []
        for index, (name, value) in enumerate(items):
            expression = value() if callable(value) else f":upd_{index}"
            assignments.append(f"{self.escape(name)} = {expression}")

        return (
            f"UPDATE {self.get_table_name(self.get_main_table_name())}"
            f" SET {', '.join(assignments)}"
            f"{self._create_output_expression()}"
            f"{self.create_where_expression()}"
            f"{self._create_returning_suffix()}"
        )

    def execute(self) -> UpdateResult:
        """Run the UPDATE.

        Returns:
            UpdateResult with the affected row count and any returned rows

        Raises:
            QuarryError: With VALIDATION_ERROR when no values were set
            QueryFailedError: If the backend rejected the statement
        """
        return self._execute_statement(
            lambda query_result, _: UpdateResult.from_query_result(query_result),
            before_event=BroadcastEvent.BEFORE_UPDATE,
            after_event=BroadcastEvent.AFTER_UPDATE,
            entities=[self._get_update_values()],
        )
