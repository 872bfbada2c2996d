"""Unit tests for DELETE lowering across dialects."""

import pytest

from quarry import Brackets, NotBrackets, ReturningStatementNotSupportedError
from quarry.constants import QueryType


def _delete_adults(data_source):
    return (
        data_source.create_query_builder()
        .delete()
        .from_("user")
        .where("age > :age", {"age": 18})
    )


class TestDeleteLowering:
    """Statement shape per returning style."""

    def test_plain_delete_on_returning_dialect(self, postgres):
        qb = _delete_adults(postgres)
        assert qb.get_query() == 'DELETE FROM "user" WHERE age > :age'

    def test_output_clause_precedes_where(self, mssql):
        qb = _delete_adults(mssql).returning(["id"])
        assert qb.get_query() == 'DELETE FROM "user" OUTPUT id WHERE age > :age'

    def test_returning_clause_follows_where(self, postgres):
        qb = _delete_adults(postgres).returning(["id"])
        assert qb.get_query() == 'DELETE FROM "user" WHERE age > :age RETURNING id'

    def test_mysql_quotes_with_backticks(self, mysql):
        assert _delete_adults(mysql).get_query() == "DELETE FROM `user` WHERE age > :age"

    def test_delete_without_where(self, postgres):
        qb = postgres.create_query_builder().delete().from_("user")
        assert qb.get_query() == 'DELETE FROM "user"'

    def test_output_alias_is_equivalent_to_returning(self, mssql):
        qb = _delete_adults(mssql).output("id, name")
        assert qb.get_query() == 'DELETE FROM "user" OUTPUT id, name WHERE age > :age'

    def test_returning_with_metadata_uses_escaped_column_names(self, mssql, postgres):
        pg = postgres.create_query_builder().delete().from_("User").where("id = 1").returning(["id", "name"])
        assert pg.get_query() == 'DELETE FROM "users" WHERE id = 1 RETURNING "id", "name"'

        ms = mssql.create_query_builder().delete().from_("User").where("id = 1").returning(["id"])
        assert ms.get_query() == 'DELETE FROM "users" OUTPUT DELETED."id" WHERE id = 1'

    def test_positional_parameters_per_dialect(self, postgres, mssql):
        sql, parameters = _delete_adults(postgres).get_query_and_parameters()
        assert sql == 'DELETE FROM "user" WHERE age > %s'
        assert parameters == [18]

        sql, parameters = _delete_adults(mssql).get_query_and_parameters()
        assert sql == 'DELETE FROM "user" WHERE age > ?'
        assert parameters == [18]

    def test_comment_and_cte_prefix(self, postgres):
        qb = (
            postgres.create_query_builder()
            .delete()
            .from_("user")
            .where('id IN (SELECT id FROM "stale")')
            .comment("cleanup */ job")
            .add_common_table_expression("SELECT id FROM session WHERE expired", "stale", ["id"])
        )
        assert qb.get_query() == (
            '/* cleanup  job */ WITH "stale"("id") AS (SELECT id FROM session WHERE expired) '
            'DELETE FROM "user" WHERE id IN (SELECT id FROM "stale")'
        )

    def test_from_twice_last_call_wins(self, postgres):
        qb = postgres.create_query_builder().delete().from_("user").from_("post")
        assert qb.get_query() == 'DELETE FROM "post"'
        assert len(qb.expression_map.aliases) == 1


class TestReturningUnsupported:
    def test_mysql_rejects_returning_and_leaves_state_unset(self, mysql):
        qb = _delete_adults(mysql)
        with pytest.raises(ReturningStatementNotSupportedError):
            qb.returning(["id"])
        assert qb.expression_map.returning is None
        assert qb.get_query() == "DELETE FROM `user` WHERE age > :age"

    def test_sqlite_family_rejects_returning(self, sqljs):
        qb = sqljs.create_query_builder().delete().from_("user")
        with pytest.raises(ReturningStatementNotSupportedError):
            qb.output(["id"])
        assert qb.expression_map.returning is None

    def test_mariadb_allows_returning_for_delete_but_not_update(self, make_data_source):
        mariadb = make_data_source("mariadb", host="localhost")
        qb = _delete_adults(mariadb).returning(["id"])
        assert qb.get_query() == "DELETE FROM `user` WHERE age > :age RETURNING id"

        update = mariadb.create_query_builder().update("user", {"age": 1})
        with pytest.raises(ReturningStatementNotSupportedError):
            update.returning(["id"])
        assert update.expression_map.query_type == QueryType.UPDATE


class TestWhereComposition:
    """WHERE node ordering, replacement and grouping."""

    def test_and_or_preserve_call_order_and_connectors(self, postgres):
        qb = (
            _delete_adults(postgres)
            .or_where("name = :name", {"name": "root"})
            .and_where("deleted_at IS NULL")
            .or_where("age < 0")
        )
        assert qb.get_query() == (
            'DELETE FROM "user" WHERE age > :age OR name = :name AND deleted_at IS NULL OR age < 0'
        )
        assert [clause.type for clause in qb.expression_map.wheres] == ["simple", "or", "and", "or"]

    def test_where_twice_equals_where_once(self, postgres):
        twice = (
            postgres.create_query_builder().delete().from_("user")
            .where("age > 1").and_where("age < 5")
            .where("name = 'x'")
        )
        once = postgres.create_query_builder().delete().from_("user").where("name = 'x'")
        assert twice.get_query() == once.get_query()
        assert len(twice.expression_map.wheres) == 1

    def test_get_query_is_idempotent(self, mssql):
        qb = _delete_adults(mssql).and_where({"name": ["a", "b"]}).returning(["id"])
        first = qb.get_query()
        assert all(qb.get_query() == first for _ in range(5))
        assert qb.get_query_and_parameters() == qb.get_query_and_parameters()

    def test_brackets_and_not_brackets(self, postgres):
        qb = (
            postgres.create_query_builder().delete().from_("user")
            .where("age > 18")
            .and_where(Brackets(lambda inner: inner.where("name = 'a'").or_where("name = 'b'")))
            .or_where(NotBrackets(lambda inner: inner.where("age IS NULL")))
        )
        assert qb.get_query() == (
            """DELETE FROM "user" WHERE age > 18 AND (name = 'a' OR name = 'b') OR NOT(age IS NULL)"""
        )

    def test_mapping_condition_binds_parameters(self, postgres):
        qb = postgres.create_query_builder().delete().from_("user").where({"name": "Ada", "deleted_at": None, "age": [1, 2]})
        assert qb.get_query() == (
            'DELETE FROM "user" WHERE "name" = :orm_param_0 AND "deleted_at" IS NULL '
            'AND "age" IN (:...orm_param_1)'
        )
        sql, parameters = qb.get_query_and_parameters()
        assert sql.endswith('"age" IN (%s, %s)')
        assert parameters == ["Ada", 1, 2]

    def test_where_in_ids_single_primary_key(self, postgres):
        user = postgres.get_metadata("User").target
        qb = postgres.create_query_builder().delete().from_(user).where_in_ids([1, 2, 3])
        assert qb.get_query() == 'DELETE FROM "users" WHERE "id" IN (:...orm_param_0)'
        assert qb.get_parameters() == {"orm_param_0": [1, 2, 3]}

    def test_where_in_ids_composite_primary_key(self, postgres):
        post = postgres.get_metadata("Post").target
        qb = postgres.create_query_builder().delete().from_(post).where_in_ids(
            [{"author_id": 1, "slug": "a"}, {"author_id": 2, "slug": "b"}]
        )
        assert qb.get_query() == (
            'DELETE FROM "posts" WHERE (("author_id" = :orm_param_0 AND "slug" = :orm_param_1) '
            'OR ("author_id" = :orm_param_2 AND "slug" = :orm_param_3))'
        )

    def test_invalid_parameter_names_and_callables_are_rejected(self, postgres):
        from quarry import QuarryError

        qb = postgres.create_query_builder().delete().from_("user")
        with pytest.raises(QuarryError, match="parameter keys"):
            qb.set_parameter("bad-name", 1)
        with pytest.raises(QuarryError, match="Function parameter"):
            qb.set_parameter("fn", lambda: 1)
        assert qb.get_parameters() == {}

    def test_empty_appended_conditions_add_nothing(self, postgres):
        qb = (
            postgres.create_query_builder().delete().from_("user")
            .where("a = 1")
            .and_where({})
            .or_where("")
            .and_where(Brackets(lambda inner: None))
        )
        assert qb.get_query() == 'DELETE FROM "user" WHERE a = 1'
        assert len(qb.expression_map.wheres) == 1

    def test_empty_conditions_inside_brackets_are_skipped(self, postgres):
        qb = postgres.create_query_builder().delete().from_("user").where(
            Brackets(lambda inner: inner.where("a = 1").or_where({}).and_where("b = 2"))
        )
        assert qb.get_query() == 'DELETE FROM "user" WHERE (a = 1 AND b = 2)'

    def test_where_in_ids_scalar_on_composite_key_is_a_validation_error(self, postgres):
        from quarry import QuarryError
        from quarry.common.exceptions import ErrorCode

        post = postgres.get_metadata("Post").target
        with pytest.raises(QuarryError) as exc_info:
            postgres.create_query_builder().delete().from_(post).where_in_ids(1)

        assert exc_info.value.error_code == ErrorCode.VALIDATION_ERROR
        assert exc_info.value.details == {"field": "ids", "value": "1"}
