"""Base domain model classes."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


def generate_id() -> str:
    """Generate a unique identifier."""
    return str(uuid.uuid4())


def utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(timezone.utc)


class PersistedModel(BaseModel):
    """Base class for models that are part of the persisted state record.

    Field names are snake_case in Python and camelCase on disk.
    """

    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "extra": "forbid",
    }


class ValueObject(PersistedModel):
    """Base class for value objects (immutable)."""

    model_config = {**PersistedModel.model_config, "frozen": True}
