"""SELECT statement builder."""

from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Union

from quarry.common.exceptions import validation_error
from quarry.constants import OrderDirection, QueryType
from quarry.query_builder.base import QueryBuilder, WhereExpressionBuilder
from quarry.query_builder.expression_map import OrderByItem

if TYPE_CHECKING:
    from quarry.data_source import DataSource
    from quarry.driver.query_runner import QueryRunner

Nulls = Optional[str]


class SelectQueryBuilder(WhereExpressionBuilder, QueryBuilder):
    """Builds and runs ``SELECT`` statements returning raw rows.

    Entities with a delete-date column only see rows where that column is
    NULL, unless ``with_deleted()`` is called.

    Example:
        >>> rows = (
        ...     data_source.create_query_builder()
        ...     .select(["user.id", "user.name"])
        ...     .from_(User, "user")
        ...     .where({"name": "Ada"})
        ...     .order_by("user.id", "DESC")
        ...     .limit(10)
        ...     .get_raw_many()
        ... )
    """

    def __init__(
        self,
        connection_or_builder: Union["DataSource", QueryBuilder],
        query_runner: Optional["QueryRunner"] = None,
    ):
        super().__init__(connection_or_builder, query_runner)
        self.expression_map.query_type = QueryType.SELECT

    def select(self, selection: Optional[Union[str, List[str]]] = None, selection_alias: Optional[str] = None) -> "SelectQueryBuilder":
        """Replace the selected expressions; nothing selected means ``*``."""
        self.expression_map.query_type = QueryType.SELECT
        if selection is None:
            self.expression_map.selects = []
        elif isinstance(selection, (list, tuple)):
            self.expression_map.selects = [(item, None) for item in selection]
        else:
            self.expression_map.selects = [(selection, selection_alias)]
        return self

    def add_select(self, selection: Union[str, List[str]], selection_alias: Optional[str] = None) -> "SelectQueryBuilder":
        if isinstance(selection, (list, tuple)):
            self.expression_map.selects.extend((item, None) for item in selection)
        else:
            self.expression_map.selects.append((selection, selection_alias))
        return self

    def from_(self, target: Any, alias_name: Optional[str] = None) -> "SelectQueryBuilder":
        """Set the table rows are read from."""
        self._set_main_target(target, alias_name)
        return self

    def order_by(
        self,
        sort: Optional[Union[str, Mapping[str, Union[str, OrderDirection]]]] = None,
        order: Union[str, OrderDirection] = OrderDirection.ASC,
        nulls: Nulls = None,
    ) -> "SelectQueryBuilder":
        """Replace the ORDER BY list. ``None`` clears it.

        Args:
            sort: Expression to sort by, or a mapping of expression to direction
            order: ``ASC`` or ``DESC``
            nulls: ``NULLS FIRST`` or ``NULLS LAST``
        """
        self.expression_map.order_bys = {}
        if sort is not None:
            self.add_order_by(sort, order, nulls)
        return self

    def add_order_by(
        self,
        sort: Union[str, Mapping[str, Union[str, OrderDirection]]],
        order: Union[str, OrderDirection] = OrderDirection.ASC,
        nulls: Nulls = None,
    ) -> "SelectQueryBuilder":
        if isinstance(sort, Mapping):
            for expression, direction in sort.items():
                self.add_order_by(expression, direction)
            return self

        direction = OrderDirection(str(getattr(order, "value", order)).upper())
        if nulls is not None and nulls not in ("NULLS FIRST", "NULLS LAST"):
            raise validation_error("SelectQueryBuilder.add_order_by \"nulls\" can accept only \"NULLS FIRST\" and \"NULLS LAST\" values.", field="nulls", value=nulls)
        self.expression_map.order_bys[sort] = OrderByItem(direction=direction, nulls=nulls)
        return self

    def limit(self, limit: Optional[int] = None) -> "SelectQueryBuilder":
        self.expression_map.limit = self._normalize_paging("limit", limit)
        return self

    def offset(self, offset: Optional[int] = None) -> "SelectQueryBuilder":
        self.expression_map.offset = self._normalize_paging("offset", offset)
        return self

    @staticmethod
    def _normalize_paging(name: str, value: Any) -> Optional[int]:
        if value is None:
            return None
        try:
            number = int(value)
        except (TypeError, ValueError):
            raise validation_error(f"Provided \"{name}\" value is not a number. Please provide a numeric value.", field=name, value=value) from None
        if number < 0:
            raise validation_error(f"Provided \"{name}\" value must not be negative.", field=name, value=value)
        return number

    def with_deleted(self) -> "SelectQueryBuilder":
        """Include soft-deleted rows."""
        self.expression_map.with_deleted = True
        return self

    # -- lowering ----------------------------------------------------------

    def _create_statement_expression(self) -> str:
        return (
            f"SELECT {self._create_select_expression()}"
            f"{self._create_from_expression()}"
            f"{self.create_where_expression()}"
            f"{self._create_order_by_expression()}"
            f"{self.driver.build_limit_offset(self.expression_map.limit, self.expression_map.offset, bool(self.expression_map.order_bys))}"
        )

    def _create_select_expression(self) -> str:
        if not self.expression_map.selects:
            return "*"
        return ", ".join(
            f"{selection} AS {self.escape(alias)}" if alias else selection
            for selection, alias in self.expression_map.selects
        )

    def _create_from_expression(self) -> str:
        alias = self.expression_map.main_alias
        if alias is None:
            return ""
        return f" FROM {self.get_table_name(self.get_main_table_name())} {self.escape(alias.name)}"

    def _create_soft_delete_condition(self) -> Optional[str]:
        alias = self.expression_map.main_alias
        if alias is None or alias.metadata is None or self.expression_map.with_deleted:
            return None
        column = alias.metadata.delete_date_column
        if column is None:
            return None
        return f"{self._column_reference(column.property_name)} IS NULL"

    def _create_order_by_expression(self) -> str:
        if not self.expression_map.order_bys:
            return ""
        items = []
        for expression, item in self.expression_map.order_bys.items():
            rendered = f"{expression} {OrderDirection(item.direction).value}"
            if item.nulls:
                rendered += f" {item.nulls}"
            items.append(rendered)
        return " ORDER BY " + ", ".join(items)

    # -- execution ---------------------------------------------------------

    def execute(self) -> List[Dict[str, Any]]:
        """Run the SELECT and return every row as a column mapping."""
        return self._execute_statement(lambda query_result, _: list(query_result.records))

    def get_raw_many(self) -> List[Dict[str, Any]]:
        return self.execute()

    def get_raw_one(self) -> Optional[Dict[str, Any]]:
        rows = self.execute()
        return rows[0] if rows else None

    def get_count(self) -> int:
        """Count the rows matching the current FROM and WHERE state."""
        builder = self.clone()
        builder.expression_map.selects = [("COUNT(*)", "cnt")]
        builder.expression_map.order_bys = {}
        builder.expression_map.limit = None
        builder.expression_map.offset = None
        row = builder.get_raw_one()
        return int(row["cnt"]) if row else 0
