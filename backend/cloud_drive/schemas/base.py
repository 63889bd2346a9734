"""camelCase schema bases.

Python attributes stay snake_case (``is_starred``, ``owner_id``); the wire
format is camelCase (``isStarred``, ``ownerId``). Request bodies accept either.
"""
from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Request bodies."""
    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
    }


class CamelORMModel(CamelModel):
    """Responses built from ORM rows or from cached camelCase dicts."""
    model_config = {
        **CamelModel.model_config,
        "from_attributes": True,
    }

    def to_json(self) -> dict:
        """JSON-safe camelCase dict, ready for an envelope or the cache."""
        return self.model_dump(mode="json", by_alias=True)
