"""Driver factory.

Maps a data source's backend identifier onto the driver class that serves
it. The set of backends is closed; anything else is reported with the full
list of identifiers the factory recognizes.
"""

from typing import TYPE_CHECKING, Dict, List, Type

from quarry.common.exceptions import MissingDriverError
from quarry.constants import DatabaseType
from quarry.driver.base import Driver
from quarry.driver.mysql import MysqlDriver
from quarry.driver.postgres import PostgresDriver
from quarry.driver.sqlite import SqliteDriver
from quarry.driver.sqljs import SqljsDriver
from quarry.driver.sqlserver import SqlServerDriver
from quarry.logging import get_logger

if TYPE_CHECKING:
    from quarry.data_source import DataSource

logger = get_logger(__name__)


class DriverFactory:
    """Creates the driver for a data source.

    Example:
        >>> driver = DriverFactory().create(data_source)  # options.type == "postgres"
        >>> isinstance(driver, PostgresDriver)
        True
    """

    _drivers: Dict[DatabaseType, Type[Driver]] = {
        DatabaseType.POSTGRES: PostgresDriver,
        DatabaseType.MYSQL: MysqlDriver,
        DatabaseType.MARIADB: MysqlDriver,
        DatabaseType.MSSQL: SqlServerDriver,
        DatabaseType.SQLITE: SqliteDriver,
        DatabaseType.SQLJS: SqljsDriver,
    }

    def create(self, data_source: "DataSource") -> Driver:
        """Build the driver matching ``data_source.options.type``.

        Raises:
            MissingDriverError: If the identifier names no known backend
        """
        driver_type = data_source.options.type
        try:
            database_type = DatabaseType(driver_type)
        except ValueError:
            raise MissingDriverError(driver_type, self.known_types()) from None

        driver_class = self._drivers[database_type]
        logger.debug(
            "Creating driver",
            extra={"data_source": data_source.name, "db.system": database_type.value, "driver": driver_class.__name__},
        )
        return driver_class(data_source)

    @classmethod
    def known_types(cls) -> List[str]:
        return [database_type.value for database_type in DatabaseType]
