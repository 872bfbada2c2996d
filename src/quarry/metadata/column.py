"""Column metadata consumed by the statement builders."""

from typing import Any, Dict, Optional

from pydantic import Field, model_validator

from quarry.constants import GenerationStrategy
from quarry.types import QuarryBaseModel


class ColumnMetadata(QuarryBaseModel):
    """Mapping between an entity property and a table column.

    Example:
        >>> ColumnMetadata(property_name="id", is_primary=True,
        ...                is_generated=True, generation_strategy="increment")
    """

    property_name: str = Field(..., description="Attribute name on the entity")
    database_name: Optional[str] = Field(default=None, description="Column name in the table; defaults to property_name")
    is_primary: bool = False
    is_generated: bool = False
    generation_strategy: Optional[GenerationStrategy] = None
    is_nullable: bool = True
    is_create_date: bool = False
    is_update_date: bool = False
    is_delete_date: bool = False
    is_version: bool = False

    @model_validator(mode="after")
    def _default_database_name(self) -> "ColumnMetadata":
        if not self.database_name:
            object.__setattr__(self, "database_name", self.property_name)
        return self

    def create_value_map(self, value: Any) -> Dict[str, Any]:
        """Wrap a value into a property map suitable for merging into an entity."""
        return {self.property_name: value}

    def get_entity_value(self, entity: Any) -> Any:
        """Read this column's property from a mapping or an object."""
        if entity is None:
            return None
        if isinstance(entity, dict):
            return entity.get(self.property_name)
        return getattr(entity, self.property_name, None)
