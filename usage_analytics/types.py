"""Shared pydantic base types."""
from pydantic import BaseModel, ConfigDict


class ConfiguredBaseModel(BaseModel):
    """Base model used by all request/response schemas."""

    model_config = ConfigDict(use_enum_values=True, populate_by_name=True)
