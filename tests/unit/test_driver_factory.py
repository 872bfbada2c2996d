"""Unit tests for driver dispatch and the network connection lifecycle."""

from urllib.parse import quote_plus

import pytest
from unittest.mock import MagicMock, Mock, patch

from sqlalchemy.exc import NoSuchModuleError, OperationalError

from quarry import (
    DataSource,
    DriverOptionNotSetError,
    DriverPackageNotInstalledError,
    MissingDriverError,
    QuarryError,
)
from quarry.common.exceptions import ErrorCode
from quarry.constants import QueryType, ReturningStyle
from quarry.driver import (
    DriverFactory,
    MysqlDriver,
    PostgresDriver,
    SqliteDriver,
    SqljsDriver,
    SqlServerDriver,
)

KNOWN = ["postgres", "mysql", "mariadb", "mssql", "sqlite", "sqljs"]


class TestDriverFactory:
    """Closed dispatch over backend identifiers."""

    def test_postgres_driver_reports_returning_support(self, postgres):
        driver = DriverFactory().create(postgres)

        assert isinstance(driver, PostgresDriver)
        assert driver.capabilities.returning_style == ReturningStyle.RETURNING
        for query_type in (QueryType.INSERT, QueryType.UPDATE, QueryType.DELETE):
            assert driver.is_returning_sql_supported(query_type)

    def test_unknown_identifier_lists_every_known_backend(self):
        data_source = Mock()
        data_source.name = "default"
        data_source.options.type = "does-not-exist"

        with pytest.raises(MissingDriverError) as exc_info:
            DriverFactory().create(data_source)

        error = exc_info.value
        assert error.driver_type == "does-not-exist"
        assert error.known_types == KNOWN
        assert error.error_code == ErrorCode.PLATFORM_NOT_SUPPORTED
        for name in KNOWN:
            assert f'"{name}"' in str(error)

    def test_known_types_follow_the_enum(self):
        assert DriverFactory.known_types() == KNOWN

    def test_data_source_construction_surfaces_missing_driver(self):
        with pytest.raises(MissingDriverError):
            DataSource(type="does-not-exist")

    @pytest.mark.parametrize(
        "driver_type, options, driver_class",
        [
            ("postgres", {}, PostgresDriver),
            ("mysql", {}, MysqlDriver),
            ("mariadb", {}, MysqlDriver),
            ("mssql", {}, SqlServerDriver),
            ("sqlite", {"database": ":memory:"}, SqliteDriver),
            ("sqljs", {}, SqljsDriver),
        ],
    )
    def test_each_identifier_maps_to_its_driver(self, driver_type, options, driver_class):
        data_source = DataSource(type=driver_type, **options)
        assert type(data_source.driver) is driver_class

    def test_identifier_is_normalized(self):
        data_source = DataSource(type="  Postgres ")
        assert isinstance(data_source.driver, PostgresDriver)

    def test_sqlite_requires_database_option(self):
        with pytest.raises(DriverOptionNotSetError) as exc_info:
            DataSource(type="sqlite")
        assert exc_info.value.option_name == "database"


class TestDialectCapabilities:
    def test_mysql_has_no_returning(self, mysql):
        assert mysql.driver.capabilities.returning_style == ReturningStyle.NONE
        assert not mysql.driver.is_returning_sql_supported(QueryType.DELETE)

    def test_mssql_uses_output_for_writes(self, mssql):
        driver = mssql.driver
        assert driver.capabilities.returning_style == ReturningStyle.OUTPUT
        assert driver.is_returning_sql_supported(QueryType.UPDATE)
        assert not driver.is_returning_sql_supported(QueryType.SELECT)

    def test_table_names_per_dialect(self, postgres, mysql, mssql, sqljs):
        assert postgres.driver.build_table_name("users", "public", "app") == "public.users"
        assert mysql.driver.build_table_name("users", "public", "app") == "app.users"
        assert mssql.driver.build_table_name("users", "dbo", "app") == "app.dbo.users"
        assert sqljs.driver.build_table_name("users", "main", "app") == "users"

    def test_limit_offset_per_dialect(self, postgres, mysql, mssql, sqljs):
        assert postgres.driver.build_limit_offset(10, 20) == " LIMIT 10 OFFSET 20"
        assert mysql.driver.build_limit_offset(None, 5).startswith(" LIMIT 18446744073709551615 OFFSET 5")
        assert sqljs.driver.build_limit_offset(None, 5) == " LIMIT -1 OFFSET 5"
        assert mssql.driver.build_limit_offset(10, None, has_order=False) == (
            " ORDER BY (SELECT NULL) OFFSET 0 ROWS FETCH NEXT 10 ROWS ONLY"
        )

    def test_parameter_escaping_leaves_casts_and_unknown_names(self, postgres):
        sql, parameters = postgres.driver.escape_query_with_parameters(
            "SELECT :a::int, '12:30', :missing, 5 % 2, :...ids", {"a": 1, "ids": []}
        )
        assert sql == "SELECT %s::int, '12:30', :missing, 5 %% 2, NULL"
        assert parameters == [1]


class TestNetworkConnect:
    """Engine creation and connect retries, without a server."""

    def test_missing_dbapi_package(self, postgres):
        with patch("quarry.driver.network.create_engine", side_effect=NoSuchModuleError("psycopg2")):
            with pytest.raises(DriverPackageNotInstalledError) as exc_info:
                postgres.driver.connect()

        assert exc_info.value.package_name == "psycopg2-binary"
        assert exc_info.value.error_code == ErrorCode.DRIVER_PACKAGE_MISSING

    def test_connect_retries_then_wraps_connection_error(self, make_data_source):
        data_source = make_data_source("postgres", host="db", connect_retries=2)
        engine = MagicMock()
        engine.connect.side_effect = OperationalError("SELECT 1", {}, Exception("server down"))

        with patch("quarry.driver.network.create_engine", return_value=engine), \
                patch("quarry.utils.decorators.time.sleep") as sleep:
            with pytest.raises(QuarryError) as exc_info:
                data_source.initialize()

        assert exc_info.value.error_code == ErrorCode.CONNECTION_ERROR
        assert engine.connect.call_count == 3
        assert sleep.call_count == 2
        engine.dispose.assert_called_once()
        assert not data_source.is_initialized
        assert data_source.driver.engine is None

    def test_successful_connect_and_destroy(self, postgres):
        engine = MagicMock()
        with patch("quarry.driver.network.create_engine", return_value=engine) as create:
            postgres.initialize()

        assert postgres.is_initialized
        url = create.call_args.args[0]
        assert url.drivername == "postgresql+psycopg2"
        assert url.host == "localhost"
        assert url.database == "app"

        postgres.destroy()
        engine.dispose.assert_called_once()
        assert postgres.driver.engine is None

    def test_mssql_odbc_connection_string_is_passed_verbatim(self, make_data_source):
        data_source = make_data_source("mssql", odbc_connection_string="Driver={ODBC};Server=db;")
        assert data_source.driver.build_url() == (
            "mssql+pyodbc:///?odbc_connect=" + quote_plus("Driver={ODBC};Server=db;")
        )
