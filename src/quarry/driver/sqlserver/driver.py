from typing import Dict, Optional, Union
from urllib import parse

from sqlalchemy.engine import URL, Engine

from quarry.common.exceptions import DriverPackageNotInstalledError
from quarry.constants import QueryType, ReturningStyle
from quarry.driver.network import NetworkDriver
from quarry.driver.types import CteCapabilities, DriverCapabilities


class SqlServerDriver(NetworkDriver):
    """Microsoft SQL Server over pyodbc.

    Rows touched by writes come back through ``OUTPUT INSERTED.*`` /
    ``OUTPUT DELETED.*``; paging uses ``OFFSET ... FETCH NEXT``.
    """

    dialect_driver = "mssql+pyodbc"
    dbapi_package = "pyodbc"
    capabilities = DriverCapabilities(
        returning_style=ReturningStyle.OUTPUT,
        returning_statements=frozenset({QueryType.INSERT, QueryType.UPDATE, QueryType.DELETE}),
        cte=CteCapabilities(enabled=True, writable=True),
        default_keyword_in_values=True,
        insert_ignore=None,
    )

    def build_url(self) -> Union[str, URL]:
        if self.options.odbc_connection_string is not None:
            params = parse.quote_plus(self.options.odbc_connection_string.get_secret_value())
            return f"mssql+pyodbc:///?odbc_connect={params}"
        return super().build_url()

    def _url_query(self) -> Dict[str, str]:
        return {"driver": self.options.odbc_driver}

    def _create_engine(self) -> Engine:
        try:
            import pyodbc
        except ImportError as exc:
            raise DriverPackageNotInstalledError(self.name, self.dbapi_package, cause=exc) from exc

        # Disable pyodbc pooling as SQLAlchemy handles it
        pyodbc.pooling = False
        return super()._create_engine()

    def build_table_name(self, table_name: str, schema: Optional[str] = None, database: Optional[str] = None) -> str:
        return ".".join(part for part in (database, schema, table_name) if part)

    def build_limit_offset(self, limit: Optional[int], offset: Optional[int], has_order: bool = True) -> str:
        if limit is None and offset is None:
            return ""
        # OFFSET/FETCH is only valid after an ORDER BY
        expression = "" if has_order else " ORDER BY (SELECT NULL)"
        expression += f" OFFSET {offset or 0} ROWS"
        if limit is not None:
            expression += f" FETCH NEXT {limit} ROWS ONLY"
        return expression
