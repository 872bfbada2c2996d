"""Base model class for all quarry models with serialization support."""

from typing import Any, Dict

from pydantic import BaseModel, ConfigDict


class QuarryBaseModel(BaseModel):
    """Base model for quarry models with built-in serialization.

    Provides common functionality for all quarry models including:
    - Serialization to dictionary via to_dict()
    - Consistent configuration
    """
    model_config = ConfigDict(
        arbitrary_types_allowed=True,
        use_enum_values=True,
        validate_assignment=True
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary for serialization.

        Returns:
            Dictionary representation with enums reduced to their values
        """
        data = self.model_dump(by_alias=False, exclude_none=True)

        def convert_nested(obj):
            if isinstance(obj, dict):
                return {k: convert_nested(v) for k, v in obj.items()}
            elif isinstance(obj, list):
                return [convert_nested(item) for item in obj]
            elif hasattr(obj, 'value'):
                return obj.value
            return obj

        return convert_nested(data)


class FrozenQuarryModel(QuarryBaseModel):
    """Immutable variant used for values built once and only read afterwards."""
    model_config = ConfigDict(
        arbitrary_types_allowed=True,
        use_enum_values=True,
        frozen=True,
    )
