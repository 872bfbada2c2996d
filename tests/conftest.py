"""Shared fixtures.

Dialect tests build data sources for the network backends without
connecting them: lowering SQL never touches the server. Execution tests run
on the embedded ``sqljs`` driver, which needs only the standard sqlite3
module.
"""

import os

import pytest

from quarry import DataSource
from quarry.metadata import ColumnMetadata, EntityMetadata


class User:
    pass


class Post:
    pass


def user_metadata() -> EntityMetadata:
    return EntityMetadata(
        target=User,
        table_name="users",
        columns=[
            ColumnMetadata(property_name="id", is_primary=True, is_generated=True, generation_strategy="increment"),
            ColumnMetadata(property_name="name"),
            ColumnMetadata(property_name="age"),
            ColumnMetadata(property_name="deleted_at", is_delete_date=True),
        ],
    )


def post_metadata() -> EntityMetadata:
    return EntityMetadata(
        target=Post,
        table_name="posts",
        columns=[
            ColumnMetadata(property_name="author_id", is_primary=True),
            ColumnMetadata(property_name="slug", is_primary=True),
            ColumnMetadata(property_name="title", database_name="post_title"),
            ColumnMetadata(property_name="updated_at", is_update_date=True),
            ColumnMetadata(property_name="revision", is_version=True),
        ],
    )


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    """Keep QUARRY_* variables and any local .env file out of the tests."""
    for key in list(os.environ):
        if key.upper().startswith("QUARRY_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setattr("quarry.settings.connection._settings", None)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def make_data_source():
    """Build a data source of the given type with the test entities registered."""

    def factory(type: str, **options) -> DataSource:
        return DataSource(type=type, entities=[user_metadata(), post_metadata()], **options)

    return factory


@pytest.fixture
def postgres(make_data_source):
    return make_data_source("postgres", host="localhost", database="app")


@pytest.fixture
def mssql(make_data_source):
    return make_data_source("mssql", host="localhost", database="app")


@pytest.fixture
def mysql(make_data_source):
    return make_data_source("mysql", host="localhost", database="app")


@pytest.fixture
def sqljs(make_data_source):
    """Initialized in-memory embedded data source with ``users`` and ``posts`` tables."""
    data_source = make_data_source("sqljs")
    data_source.initialize()
    data_source.query(
        "CREATE TABLE users (id INTEGER PRIMARY KEY AUTOINCREMENT, name TEXT, age INTEGER, deleted_at TEXT)"
    )
    data_source.query(
        "CREATE TABLE posts (author_id INTEGER, slug TEXT, post_title TEXT, "
        "updated_at TEXT, revision INTEGER, PRIMARY KEY (author_id, slug))"
    )
    yield data_source
    if data_source.is_initialized:
        data_source.destroy()
