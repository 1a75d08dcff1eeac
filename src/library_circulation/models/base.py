"""Shared pydantic base for the REST wire format."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """
    Fields are snake_case in Python and camelCase on the wire.

    Input accepts either spelling; FastAPI serializes responses by alias.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
