"""pytrackfit - Async offline capture and sync layer for track-fitting inspection data."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pytrackfit")
except PackageNotFoundError:
    __version__ = "0+local"
from pytrackfit.auth import AuthProvider, StaticTokenAuth, StoreTokenAuth
from pytrackfit.cache import EntryCache, TtlCache
from pytrackfit.client import TrackfitClient
from pytrackfit.config import TrackfitConfig
from pytrackfit.exceptions import (
    RemoteAuthError,
    RemoteRejection,
    StorageFault,
    TrackfitConfigError,
    TrackfitError,
    TransientNetworkError,
    ValidationError,
)
from pytrackfit.models import (
    ActivityStats,
    CacheEntry,
    DashboardSummary,
    EntryKind,
    ExportBundle,
    FittingCode,
    ImportSummary,
    InspectionChecks,
    InspectionGrading,
    SyncCycleReport,
    SyncState,
    SyncStatus,
    TrackingEntry,
    UploadResult,
    parse_fitting_code,
)
from pytrackfit.storage import FileStore, KeyValueStore, MemoryStore
from pytrackfit.sync import HttpEndpoint, NetworkProbe, RemoteEndpoint, SyncQueue, Synchronizer

__all__ = [
    "__version__",
    "ActivityStats",
    "AuthProvider",
    "CacheEntry",
    "DashboardSummary",
    "EntryCache",
    "EntryKind",
    "ExportBundle",
    "FileStore",
    "FittingCode",
    "HttpEndpoint",
    "ImportSummary",
    "InspectionChecks",
    "InspectionGrading",
    "KeyValueStore",
    "MemoryStore",
    "NetworkProbe",
    "RemoteAuthError",
    "RemoteEndpoint",
    "RemoteRejection",
    "StaticTokenAuth",
    "StorageFault",
    "StoreTokenAuth",
    "SyncCycleReport",
    "SyncQueue",
    "SyncState",
    "SyncStatus",
    "Synchronizer",
    "TrackfitClient",
    "TrackfitConfig",
    "TrackfitConfigError",
    "TrackfitError",
    "TrackingEntry",
    "TransientNetworkError",
    "TtlCache",
    "UploadResult",
    "ValidationError",
    "parse_fitting_code",
]
