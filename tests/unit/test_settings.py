"""Unit tests for connection settings and data source configuration."""

import pytest
from pydantic import ValidationError

from quarry import ConnectionSettings, DataSource, QuarryError
from quarry.common.exceptions import ErrorCode, EntityMetadataNotFoundError
from quarry.constants import StorageType
from quarry.driver import SqljsDriver
from quarry.metadata import ColumnMetadata, EntitySchema
from quarry.settings import _reload_settings, get_settings


class TestConnectionSettings:
    def test_environment_variables_are_read(self, monkeypatch):
        monkeypatch.setenv("QUARRY_TYPE", "SQLJS")
        monkeypatch.setenv("QUARRY_AUTO_SAVE", "true")
        monkeypatch.setenv("QUARRY_LOCATION", "app.db")
        monkeypatch.setenv("QUARRY_STORAGE", "key_value")

        settings = _reload_settings()

        assert settings.type == "sqljs"
        assert settings.auto_save is True
        assert settings.location == "app.db"
        assert settings.storage == StorageType.KEY_VALUE
        assert settings.storage_backend == {}
        assert get_settings() is settings

    def test_data_source_falls_back_to_environment(self, monkeypatch):
        monkeypatch.setenv("QUARRY_TYPE", "sqljs")
        monkeypatch.setenv("QUARRY_NAME", "from-env")

        data_source = DataSource()

        assert data_source.name == "from-env"
        assert isinstance(data_source.driver, SqljsDriver)

    def test_type_is_required(self):
        with pytest.raises(ValidationError):
            ConnectionSettings()

    def test_port_range_is_validated(self):
        with pytest.raises(ValidationError):
            ConnectionSettings(type="postgres", port=70000)

    def test_secrets_are_masked(self):
        settings = ConnectionSettings(type="postgres", password="hunter2")
        assert "hunter2" not in repr(settings)
        assert settings.password.get_secret_value() == "hunter2"

    def test_options_merge_with_keyword_arguments(self):
        base = ConnectionSettings(type="postgres", host="db", name="primary")

        from_model = DataSource(base, name="replica")
        from_mapping = DataSource({"type": "postgres", "host": "db"}, port=5433)

        assert from_model.name == "replica"
        assert from_model.options.host == "db"
        assert base.name == "primary"
        assert from_mapping.options.port == 5433


class TestDataSourceLifecycle:
    def test_initialize_twice_is_rejected(self, sqljs):
        with pytest.raises(QuarryError) as exc_info:
            sqljs.initialize()
        assert exc_info.value.error_code == ErrorCode.CONNECTION_ERROR

    def test_operations_need_initialization(self, make_data_source):
        data_source = make_data_source("sqljs")
        for operation in (data_source.destroy, data_source.create_query_runner, lambda: data_source.query("SELECT 1")):
            with pytest.raises(QuarryError) as exc_info:
                operation()
            assert exc_info.value.error_code == ErrorCode.NOT_CONNECTED

    def test_context_manager_connects_and_destroys(self, make_data_source):
        with make_data_source("sqljs") as data_source:
            assert data_source.is_initialized
            assert data_source.query("SELECT 1 AS one") == [{"one": 1}]
        assert not data_source.is_initialized

    def test_named_parameters_in_raw_queries(self, sqljs):
        sqljs.query("INSERT INTO users (name, age) VALUES (:name, :age)", {"name": "Ada", "age": 36})
        rows = sqljs.query("SELECT name FROM users WHERE age IN (:...ages)", {"ages": [30, 36]})
        assert rows == [{"name": "Ada"}]


class TestMetadataRegistry:
    def test_lookup_by_target_name_and_table(self, postgres):
        metadata = postgres.get_metadata("User")
        assert postgres.get_metadata(metadata.target) is metadata
        assert postgres.get_metadata("users") is metadata
        assert postgres.has_metadata("Post")
        assert not postgres.has_metadata("Comment")

    def test_unknown_target_raises(self, postgres):
        with pytest.raises(EntityMetadataNotFoundError):
            postgres.get_metadata("Comment")
        with pytest.raises(EntityMetadataNotFoundError):
            postgres.create_query_builder().delete().from_(object())

    def test_entity_schema_is_registered_as_metadata(self):
        schema = EntitySchema(
            name="Tag",
            table_name="tags",
            columns=[
                ColumnMetadata(property_name="id", is_primary=True, is_generated=True, generation_strategy="increment"),
                ColumnMetadata(property_name="label", database_name="tag_label"),
            ],
        )
        data_source = DataSource(type="postgres", entities=[schema])

        qb = data_source.create_query_builder().insert().into(schema).values({"label": "new"})
        assert qb.get_query() == 'INSERT INTO "tags"("tag_label") VALUES (:i0_0) RETURNING "id"'
