"""Shared pydantic base for documents and API payloads."""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """snake_case in Python and MongoDB, camelCase on the wire.

    ``populate_by_name`` lets documents loaded from MongoDB (snake_case keys)
    and request bodies (camelCase keys) build the same model.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
    )
