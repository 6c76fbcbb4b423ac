"""Base model and timestamp helpers shared by pytrackfit models.

Every persisted model inherits from :class:`TrackfitBaseModel` which
provides:

* ``alias_generator=to_camel`` so stored/wire JSON uses camelCase keys
  while Python code uses snake_case fields.
* ``extra="forbid"`` so unknown keys fail decoding instead of being
  silently dropped.
* ``frozen=True``; state changes go through ``model_copy(update=...)``.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated, Any

from pydantic import AwareDatetime, BaseModel, BeforeValidator, ConfigDict
from pydantic.alias_generators import to_camel

# Threshold to distinguish seconds from milliseconds.
_MS_THRESHOLD = 1_000_000_000_000


def utcnow() -> datetime:
    return datetime.now(UTC)


def parse_timestamp(value: Any) -> Any:
    """Convert epoch numbers (seconds **or** milliseconds) to a UTC datetime.

    Strings and datetimes are passed through for pydantic to parse, so a
    naive ISO string still fails the aware-datetime check.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        ts = float(value)
        if ts >= _MS_THRESHOLD:
            ts /= 1000.0
        return datetime.fromtimestamp(ts, tz=UTC)
    return value


Timestamp = Annotated[AwareDatetime, BeforeValidator(parse_timestamp)]
"""Timezone-aware datetime; epoch seconds/ms are accepted, naive values are not."""


class TrackfitBaseModel(BaseModel):
    """Base for persisted pytrackfit models."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        populate_by_name=True,
        alias_generator=to_camel,
        str_strip_whitespace=True,
    )

    def to_json_dict(self) -> dict[str, Any]:
        """JSON-compatible dict using camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)
