from pathlib import Path
from typing import TYPE_CHECKING

from quarry.common.exceptions import DriverOptionNotSetError
from quarry.driver.sqlite_abstract import AbstractSqliteDriver
from quarry.logging import get_logger

if TYPE_CHECKING:
    from quarry.data_source import DataSource

logger = get_logger(__name__)


class SqliteDriver(AbstractSqliteDriver):
    """File-backed SQLite.

    ``options.database`` is the file path; ``:memory:`` gives a private
    in-memory database.
    """

    def __init__(self, data_source: "DataSource"):
        super().__init__(data_source)
        if not self.options.database:
            raise DriverOptionNotSetError("database")

    def connect(self) -> None:
        database = self.options.database
        if database != ":memory:":
            Path(database).expanduser().parent.mkdir(parents=True, exist_ok=True)
        self._install_connection(self.sqlite.connect(database, check_same_thread=False))
        logger.info("Opened SQLite database", extra={"data_source": self.data_source.name, "db.name": database})
