"""Entity and column metadata consumed by builders and drivers."""

from .column import ColumnMetadata
from .entity import EntityMetadata
from .schema import EntitySchema, EntitySchemaOptions

__all__ = ["ColumnMetadata", "EntityMetadata", "EntitySchema", "EntitySchemaOptions"]
