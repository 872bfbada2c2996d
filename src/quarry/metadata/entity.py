"""Entity metadata: the table a target maps to and its columns."""

from typing import Any, Dict, List, Optional

from pydantic import Field, model_validator

from quarry.common.exceptions import validation_error
from quarry.metadata.column import ColumnMetadata
from quarry.types import QuarryBaseModel


class EntityMetadata(QuarryBaseModel):
    """Everything the builders need to know about one mapped entity.

    ``target`` is whatever the caller uses to refer to the entity (usually a
    class); ``name`` and ``table_name`` are resolved from it when omitted.
    """

    target: Any = None
    name: str = ""
    table_name: str = ""
    schema_name: Optional[str] = None
    database: Optional[str] = None
    columns: List[ColumnMetadata] = Field(default_factory=list)

    @model_validator(mode="after")
    def _resolve_names(self) -> "EntityMetadata":
        if not self.name:
            target_name = getattr(self.target, "__name__", None)
            if target_name is None and isinstance(self.target, str):
                target_name = self.target
            object.__setattr__(self, "name", target_name or self.table_name)
        if not self.table_name:
            object.__setattr__(self, "table_name", self.name.lower())
        return self

    @property
    def primary_columns(self) -> List[ColumnMetadata]:
        return [column for column in self.columns if column.is_primary]

    @property
    def generated_columns(self) -> List[ColumnMetadata]:
        return [column for column in self.columns if column.is_generated]

    @property
    def has_multiple_primary_keys(self) -> bool:
        return len(self.primary_columns) > 1

    @property
    def update_date_column(self) -> Optional[ColumnMetadata]:
        return next((c for c in self.columns if c.is_update_date), None)

    @property
    def delete_date_column(self) -> Optional[ColumnMetadata]:
        return next((c for c in self.columns if c.is_delete_date), None)

    @property
    def version_column(self) -> Optional[ColumnMetadata]:
        return next((c for c in self.columns if c.is_version), None)

    def find_column_with_property_name(self, property_name: str) -> Optional[ColumnMetadata]:
        """Look a column up by property name, falling back to its column name."""
        for column in self.columns:
            if column.property_name == property_name:
                return column
        for column in self.columns:
            if column.database_name == property_name:
                return column
        return None

    def ensure_entity_id_map(self, id_value: Any) -> Dict[str, Any]:
        """Normalize an id into a ``{property_name: value}`` map.

        Scalars are accepted only for single-column primary keys; mappings
        are passed through.

        Raises:
            QuarryError: VALIDATION_ERROR if a scalar id is given for a
                composite primary key
        """
        if isinstance(id_value, dict):
            return dict(id_value)
        if self.has_multiple_primary_keys:
            raise validation_error(
                f"Entity {self.name} has a composite primary key; pass ids as mappings of property to value",
                field="ids",
                value=id_value,
            )
        return self.primary_columns[0].create_value_map(id_value)

    def get_entity_id_map(self, entity: Any) -> Optional[Dict[str, Any]]:
        """Extract primary key values from an entity, or None when any is missing."""
        id_map: Dict[str, Any] = {}
        for column in self.primary_columns:
            value = column.get_entity_value(entity)
            if value is None:
                return None
            id_map.update(column.create_value_map(value))
        return id_map or None
