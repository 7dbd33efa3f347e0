"""Shared building blocks for API schemas.

The web client speaks camelCase; models accept either spelling on input
and FastAPI serializes responses by alias.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import Annotated

from pydantic import BaseModel, ConfigDict, PlainSerializer
from pydantic.alias_generators import to_camel

# Decimal in Python, plain JSON number on the wire.
Money = Annotated[
    Decimal, PlainSerializer(float, return_type=float, when_used="json")
]


def _format_utc(value: datetime) -> str:
    # Naive datetimes come from TimestampMixin and are already UTC
    if value.tzinfo is not None:
        value = value.astimezone(UTC)
    else:
        value = value.replace(tzinfo=UTC)
    return value.replace(microsecond=0).isoformat().replace("+00:00", "Z")


# ISO 8601 in UTC with a Z suffix (e.g. 2026-01-19T12:34:56Z)
UTCDateTime = Annotated[
    datetime, PlainSerializer(_format_utc, return_type=str, when_used="json")
]


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )
