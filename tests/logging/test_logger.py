import io
import json
import logging

import pytest

from quarry.logging import get_logger, setup_logging


@pytest.fixture
def quarry_logger():
    logger = logging.getLogger("quarry")
    saved = (list(logger.handlers), logger.level, logger.propagate)
    yield logger
    logger.handlers[:], logger.level, logger.propagate = saved


def test_get_logger_nests_names_below_the_package():
    assert get_logger("quarry.driver.sqljs").name == "quarry.driver.sqljs"
    assert get_logger("reporting").name == "quarry.reporting"
    assert get_logger("quarry").name == "quarry"


def test_setup_logging_writes_json_lines(quarry_logger):
    stream = io.StringIO()
    root_handlers = list(logging.getLogger().handlers)

    setup_logging("debug", stream=stream)
    get_logger("quarry.test").info("Executing query", extra={"db.statement": "SELECT 1", "data_source": "default"})

    payload = json.loads(stream.getvalue().splitlines()[-1])
    assert payload["message"] == "Executing query"
    assert payload["logger"] == "quarry.test"
    assert payload["db.statement"] == "SELECT 1"
    assert payload["sdk_name"] == "quarry"
    assert quarry_logger.propagate is False
    assert logging.getLogger().handlers == root_handlers


def test_setup_logging_plain_text_respects_level(quarry_logger):
    stream = io.StringIO()

    setup_logging("WARNING", json_output=False, stream=stream)
    log = get_logger("quarry.test")
    log.info("Executing query")
    log.warning("Query is slow")

    lines = stream.getvalue().splitlines()
    assert len(lines) == 1
    assert lines[0].endswith("WARNING [quarry.test] Query is slow")
