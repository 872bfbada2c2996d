"""Declarative entity description that does not need a Python class."""

from typing import List, Optional

from pydantic import Field

from quarry.metadata.column import ColumnMetadata
from quarry.metadata.entity import EntityMetadata
from quarry.types import QuarryBaseModel


class EntitySchemaOptions(QuarryBaseModel):
    name: str = Field(..., description="Name the schema is registered and looked up under")
    table_name: Optional[str] = None
    schema_name: Optional[str] = None
    database: Optional[str] = None
    columns: List[ColumnMetadata] = Field(default_factory=list)


class EntitySchema:
    """Entity defined by name and columns rather than by a class.

    Builders accept an ``EntitySchema`` wherever they accept a target and
    resolve it to ``options.name`` before looking up metadata.

    Example:
        >>> users = EntitySchema(name="User", table_name="users", columns=[
        ...     ColumnMetadata(property_name="id", is_primary=True),
        ... ])
    """

    def __init__(self, name: str, columns: Optional[List[ColumnMetadata]] = None, **options):
        self.options = EntitySchemaOptions(name=name, columns=columns or [], **options)

    @property
    def name(self) -> str:
        return self.options.name

    def to_metadata(self) -> EntityMetadata:
        return EntityMetadata(
            target=self,
            name=self.options.name,
            table_name=self.options.table_name or self.options.name,
            schema_name=self.options.schema_name,
            database=self.options.database,
            columns=list(self.options.columns),
        )

    def __repr__(self) -> str:
        return f"EntitySchema(name={self.options.name!r})"
