"""Data models for tracking entries, cache entries and sync results."""

from pytrackfit.models._base import Timestamp, TrackfitBaseModel, parse_timestamp
from pytrackfit.models.cache import CacheEntry
from pytrackfit.models.entry import (
    EntryKind,
    InspectionPayload,
    MovementPayload,
    ScanPayload,
    SyncState,
    TrackingEntry,
    decode_entry,
    encode_entry,
    new_entry_id,
    validate_entry,
)
from pytrackfit.models.inspection import (
    CheckResult,
    DimensionalCheck,
    FunctionalCheck,
    InspectionChecks,
    InspectionGrading,
    MaterialCheck,
    Tolerance,
    VisualCheck,
    grade_inspection,
)
from pytrackfit.models.qr import FittingCode, is_valid_fitting_code, parse_fitting_code
from pytrackfit.models.queue import EndpointOutcome, ErrorKind, QueueItem
from pytrackfit.models.results import (
    ActivityStats,
    DashboardSummary,
    ExportBundle,
    FailedEntry,
    ImportSummary,
    SyncCycleReport,
    SyncStatus,
    UploadResult,
)

__all__ = [
    "ActivityStats",
    "CacheEntry",
    "CheckResult",
    "DimensionalCheck",
    "DashboardSummary",
    "EndpointOutcome",
    "EntryKind",
    "ErrorKind",
    "ExportBundle",
    "FailedEntry",
    "FittingCode",
    "FunctionalCheck",
    "ImportSummary",
    "InspectionChecks",
    "InspectionGrading",
    "InspectionPayload",
    "MaterialCheck",
    "MovementPayload",
    "QueueItem",
    "ScanPayload",
    "SyncCycleReport",
    "SyncState",
    "SyncStatus",
    "Timestamp",
    "Tolerance",
    "TrackfitBaseModel",
    "TrackingEntry",
    "UploadResult",
    "VisualCheck",
    "decode_entry",
    "encode_entry",
    "grade_inspection",
    "is_valid_fitting_code",
    "new_entry_id",
    "parse_fitting_code",
    "parse_timestamp",
    "validate_entry",
]
