"""DELETE statement builder."""

from typing import TYPE_CHECKING, Any, Optional, Union

from quarry.constants import QueryType
from quarry.query_builder.base import QueryBuilder, ReturningExpressionBuilder, WhereExpressionBuilder
from quarry.query_builder.result import DeleteResult
from quarry.subscriber import BroadcastEvent

if TYPE_CHECKING:
    from quarry.data_source import DataSource
    from quarry.driver.query_runner import QueryRunner


class DeleteQueryBuilder(ReturningExpressionBuilder, WhereExpressionBuilder, QueryBuilder):
    """Builds and runs ``DELETE FROM`` statements.

    Column references are never prefixed with the alias, since a DELETE
    names its table exactly once.

    Example:
        >>> result = (
        ...     data_source.create_query_builder()
        ...     .delete()
        ...     .from_(User)
        ...     .where("age > :age", {"age": 18})
        ...     .execute()
        ... )
        >>> result.affected
        3
    """

    def __init__(
        self,
        connection_or_builder: Union["DataSource", QueryBuilder],
        query_runner: Optional["QueryRunner"] = None,
    ):
        super().__init__(connection_or_builder, query_runner)
        self.expression_map.query_type = QueryType.DELETE
        self.expression_map.alias_name_prefixing_enabled = False

    def from_(self, target: Any, alias_name: Optional[str] = None) -> "DeleteQueryBuilder":
        """Set the table rows are deleted from.

        Args:
            target: Entity class, ``EntitySchema``, registered entity name, or
                a plain table name
            alias_name: Optional alias for the table

        Returns:
            The builder, for chaining
        """
        self._set_main_target(target, alias_name)
        return self

    def _create_statement_expression(self) -> str:
        return (
            f"DELETE FROM {self.get_table_name(self.get_main_table_name())}"
            f"{self._create_output_expression()}"
            f"{self.create_where_expression()}"
            f"{self._create_returning_suffix()}"
        )

    def execute(self) -> DeleteResult:
        """Run the DELETE.

        Returns:
            DeleteResult with the affected row count and raw driver payload

        Raises:
            QueryFailedError: If the backend rejected the statement
        """
        return self._execute_statement(
            lambda query_result, _: DeleteResult.from_query_result(query_result),
            before_event=BroadcastEvent.BEFORE_REMOVE,
            after_event=BroadcastEvent.AFTER_REMOVE,
        )
