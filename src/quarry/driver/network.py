"""Shared lifecycle for drivers that talk to a database server."""

from typing import ClassVar, Dict, Union

from sqlalchemy import create_engine
from sqlalchemy.engine import URL, Engine
from sqlalchemy.exc import NoSuchModuleError, OperationalError
from sqlalchemy.pool import QueuePool

from quarry.common.exceptions import (
    CannotExecuteNotConnectedError,
    DriverPackageNotInstalledError,
    configuration_error,
    connection_error,
)
from quarry.constants import ReplicationMode
from quarry.driver.base import Driver
from quarry.driver.query_runner import QueryRunner
from quarry.logging import get_logger
from quarry.utils.decorators import retry_with_backoff

logger = get_logger(__name__)


class NetworkDriver(Driver):
    """SQLAlchemy-pooled driver for client/server databases.

    Every ``create_query_runner`` call returns a new runner, each checking
    its own connection out of the pool, so concurrent callers never share a
    connection.

    Platform Customization:
        Subclasses set ``dialect_driver`` (SQLAlchemy ``dialect+dbapi``) and
        ``dbapi_package`` (what to install when the import fails), and may
        override ``build_url`` or ``_url_query``.
    """

    dialect_driver: ClassVar[str] = ""
    dbapi_package: ClassVar[str] = ""

    def build_url(self) -> Union[str, URL]:
        """Return the SQLAlchemy URL for this data source.

        Raises:
            QuarryError: With CONFIG_ERROR when neither url nor host is set
        """
        if self.options.url is not None:
            return self.options.url.get_secret_value()
        if not self.options.host:
            raise configuration_error(f"Either url or host must be set for {self.name}", config_key="host")
        return URL.create(
            self.dialect_driver,
            username=self.options.username,
            password=self.options.password.get_secret_value() if self.options.password else None,
            host=self.options.host,
            port=self.options.port,
            database=self.options.database,
            query=self._url_query(),
        )

    def _url_query(self) -> Dict[str, str]:
        return {}

    def _create_engine(self) -> Engine:
        """Create SQLAlchemy engine with connection pooling.

        Raises:
            DriverPackageNotInstalledError: If the DB-API module is missing
        """
        try:
            engine = create_engine(
                self.build_url(),
                poolclass=QueuePool,
                pool_pre_ping=True,
                pool_size=self.options.pool_size,
                max_overflow=self.options.max_overflow,
                pool_timeout=self.options.pool_timeout,
            )
        except (ImportError, NoSuchModuleError) as exc:
            raise DriverPackageNotInstalledError(self.name, self.dbapi_package, cause=exc) from exc

        logger.info(
            f"Created {self.name} engine",
            extra={"data_source": self.data_source.name, "db.system": self.name},
        )
        return engine

    def connect(self) -> None:
        """Create the pool and verify the server is reachable.

        Raises:
            DriverPackageNotInstalledError: If the DB-API module is missing
            QuarryError: With CONNECTION_ERROR when the server stays unreachable
        """
        self.engine = self._create_engine()
        ping = retry_with_backoff(
            max_retries=self.options.connect_retries,
            initial_delay=1,
            exponential_base=2,
            retry_on=(OperationalError,),
        )(self._ping)
        try:
            ping()
        except OperationalError as exc:
            self.engine.dispose()
            self.engine = None
            raise connection_error(
                f"Failed to connect to {self.name}",
                service=self.name,
                host=self.options.host,
                cause=exc,
            ) from exc

    def _ping(self) -> None:
        with self.engine.connect():
            pass

    def disconnect(self) -> None:
        if self.engine is not None:
            self.engine.dispose()
            self.engine = None

    def create_query_runner(self, mode: ReplicationMode = ReplicationMode.MASTER) -> QueryRunner:
        if self.engine is None:
            raise CannotExecuteNotConnectedError(self.data_source.name)
        return QueryRunner(self, mode)
