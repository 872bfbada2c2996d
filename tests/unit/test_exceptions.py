"""Unit tests for the error taxonomy."""

import pytest

from quarry import (
    CannotExecuteNotConnectedError,
    DriverPackageNotInstalledError,
    MissingDriverError,
    QueryFailedError,
    QuarryError,
    ReturningStatementNotSupportedError,
    UnsupportedFeatureError,
)
from quarry.common.exceptions import (
    ErrorCode,
    configuration_error,
    connection_error,
    execution_error,
    validation_error,
)


class TestQuarryError:
    def test_str_includes_code_and_cause(self):
        cause = ValueError("bad value")
        error = QuarryError("Something failed", cause=cause)

        assert str(error) == "[EXECUTION_001] Something failed (caused by: ValueError: bad value)"
        assert error.error_code == ErrorCode.EXECUTION_ERROR

    def test_to_dict(self):
        error = MissingDriverError("oracle", ["postgres", "mysql"])
        assert error.to_dict() == {
            "type": "MissingDriverError",
            "message": 'Wrong driver: "oracle" given. Supported drivers are: "postgres", "mysql".',
            "error_code": "PLATFORM_001",
            "error_name": "PLATFORM_NOT_SUPPORTED",
            "details": {"driver_type": "oracle", "known_types": ["postgres", "mysql"]},
        }

    def test_from_error_code(self):
        error = QuarryError.from_error_code(ErrorCode.INVALID_IDENTIFIER, "Bad name")
        assert error.error_code == ErrorCode.INVALID_IDENTIFIER
        assert error.message == "Bad name"

    def test_subclasses_are_catchable_as_base(self):
        with pytest.raises(QuarryError):
            raise CannotExecuteNotConnectedError("default")

    def test_returning_error_is_an_unsupported_feature(self):
        error = ReturningStatementNotSupportedError("delete")
        assert isinstance(error, UnsupportedFeatureError)
        assert error.error_code == ErrorCode.FEATURE_NOT_SUPPORTED
        assert error.details == {"query_type": "delete"}

    def test_driver_package_message_names_the_install_command(self):
        error = DriverPackageNotInstalledError("Postgres", "psycopg2-binary")
        assert 'pip install psycopg2-binary' in error.message

    def test_query_failed_keeps_statement_and_parameters(self):
        error = QueryFailedError("SELECT ?", (1,), RuntimeError("boom"))
        assert error.query == "SELECT ?"
        assert error.parameters == [1]
        assert isinstance(error.cause, RuntimeError)

    def test_long_statements_are_truncated_in_details(self):
        error = QueryFailedError("x" * 600, None, RuntimeError("boom"))
        assert len(error.details["query"]) == 503
        assert error.query == "x" * 600


class TestErrorHelpers:
    @pytest.mark.parametrize(
        "factory, kwargs, code, details",
        [
            (configuration_error, {"config_key": "host"}, ErrorCode.CONFIG_ERROR, {"config_key": "host"}),
            (validation_error, {"field": "limit", "value": -1}, ErrorCode.VALIDATION_ERROR, {"field": "limit", "value": "-1"}),
            (connection_error, {"service": "postgres", "host": "db"}, ErrorCode.CONNECTION_ERROR, {"service": "postgres", "host": "db"}),
            (execution_error, {"operation": "save"}, ErrorCode.EXECUTION_ERROR, {"operation": "save"}),
        ],
    )
    def test_helpers_set_code_and_details(self, factory, kwargs, code, details):
        error = factory("failed", **kwargs)
        assert isinstance(error, QuarryError)
        assert error.error_code == code
        assert error.details == details

    def test_network_driver_without_host_is_a_configuration_error(self, make_data_source):
        data_source = make_data_source("postgres")
        with pytest.raises(QuarryError) as exc_info:
            data_source.driver.build_url()
        assert exc_info.value.error_code == ErrorCode.CONFIG_ERROR
