"""Tracking entry model and its serialization contract."""

from __future__ import annotations

import secrets
import time
from collections.abc import Mapping
from enum import StrEnum
from typing import Any

import pydantic
from pydantic import Field, field_validator, model_validator

from pytrackfit.exceptions import ValidationError
from pytrackfit.models._base import Timestamp, TrackfitBaseModel, utcnow
from pytrackfit.models.inspection import InspectionChecks, InspectionGrading
from pytrackfit.models.qr import FittingCode

Location = str | dict[str, Any]


class EntryKind(StrEnum):
    SCAN = "scan"
    INSPECTION = "inspection"
    MOVEMENT = "movement"


class SyncState(StrEnum):
    """Upload state of an entry.

    ``PARTIAL`` means some, but not all, required endpoints acknowledged
    the entry; it is still eligible for sync like ``PENDING``.
    """

    PENDING = "pending"
    PARTIAL = "partial"
    SYNCED = "synced"
    FAILED = "failed"

    @property
    def is_open(self) -> bool:
        return self in (SyncState.PENDING, SyncState.PARTIAL)


def new_entry_id() -> str:
    """Generate a ``track_<epoch ms>_<random>`` identifier."""
    return f"track_{int(time.time() * 1000)}_{secrets.token_hex(6)}"


# ---------------------------------------------------------------------------
# Kind-specific payloads
# ---------------------------------------------------------------------------


class ScanPayload(TrackfitBaseModel):
    scan_id: str | None = None
    scan_type: str = "qr_code"
    qr_code: str | None = None
    fitting: FittingCode | None = None
    location: Location | None = None
    user_id: str | None = None


class InspectionPayload(TrackfitBaseModel):
    inspection_id: str | None = None
    condition: str = Field(min_length=1)
    notes: str = ""
    inspection_type: str = "visual"
    duration: float = Field(default=0.0, ge=0)
    """Inspection duration in seconds."""
    photos: int = Field(default=0, ge=0)
    """Number of photos attached on the device."""
    location: Location | None = None
    user_id: str | None = None
    overall_grade: str | None = None
    checks: InspectionChecks | None = None
    grading: InspectionGrading | None = None
    """Derived from ``checks`` when the inspection was captured."""


class MovementPayload(TrackfitBaseModel):
    from_location: Location
    to_location: Location
    reason: str = "relocation"
    transport_method: str = "manual"
    approval_id: str | None = None
    estimated_duration: float = Field(default=0.0, ge=0)
    user_id: str | None = None


PAYLOAD_MODELS: dict[EntryKind, type[TrackfitBaseModel]] = {
    EntryKind.SCAN: ScanPayload,
    EntryKind.INSPECTION: InspectionPayload,
    EntryKind.MOVEMENT: MovementPayload,
}


def payload_dict(payload: TrackfitBaseModel) -> dict[str, Any]:
    """Serialize a capture payload to the camelCase dict stored on an entry."""
    return payload.model_dump(mode="json", by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
# Entry
# ---------------------------------------------------------------------------


class TrackingEntry(TrackfitBaseModel):
    """A unit of field-captured data awaiting (or done with) upload."""

    id: str = Field(default_factory=new_entry_id, min_length=1)
    kind: EntryKind
    subject_id: str = Field(min_length=1)
    """Fitting the entry refers to (opaque identifier)."""
    timestamp: Timestamp = Field(default_factory=utcnow)
    payload: dict[str, Any] = Field(default_factory=dict)
    sync_state: SyncState = SyncState.PENDING
    sync_error: str | None = None
    synced_at: Timestamp | None = None

    @field_validator("id", "subject_id")
    @classmethod
    def _non_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must be non-empty")
        return value

    @model_validator(mode="after")
    def _check_payload(self) -> TrackingEntry:
        try:
            PAYLOAD_MODELS[self.kind].model_validate(self.payload)
        except pydantic.ValidationError as exc:
            raise ValueError(f"payload does not match kind {self.kind.value!r}: {exc}") from None
        return self

    def with_sync_state(
        self,
        state: SyncState,
        *,
        error: str | None = None,
        synced_at: Any = None,
    ) -> TrackingEntry:
        """Return a copy carrying a new sync state."""
        return self.model_copy(
            update={
                "sync_state": state,
                "sync_error": error,
                "synced_at": synced_at if synced_at is not None else self.synced_at,
            }
        )


def _describe(exc: pydantic.ValidationError) -> tuple[str, str]:
    errors = exc.errors()
    if not errors:
        return str(exc), ""
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location or 'entry'}: {first.get('msg', 'invalid value')}", location


def encode_entry(entry: TrackingEntry) -> bytes:
    """Serialize an entry to UTF-8 JSON bytes (camelCase keys)."""
    return entry.model_dump_json(by_alias=True).encode("utf-8")


def decode_entry(raw: bytes | str) -> TrackingEntry:
    """Deserialize an entry, raising :class:`ValidationError` on bad input."""
    try:
        return TrackingEntry.model_validate_json(raw)
    except pydantic.ValidationError as exc:
        message, field = _describe(exc)
        raise ValidationError(f"Invalid tracking entry: {message}", field=field) from exc


def validate_entry(data: TrackingEntry | Mapping[str, Any]) -> TrackingEntry:
    """Validate an entry given as a model or a decoded JSON mapping."""
    if isinstance(data, TrackingEntry):
        # Re-validate; model_copy() updates bypass validation.
        data = data.to_json_dict()
    try:
        return TrackingEntry.model_validate(dict(data))
    except pydantic.ValidationError as exc:
        message, field = _describe(exc)
        raise ValidationError(f"Invalid tracking entry: {message}", field=field) from exc
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Invalid tracking entry: {exc}") from exc
