"""Client configuration for pytrackfit."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from pytrackfit._constants import TMS_BASE_URL, TMS_ENDPOINT, UDM_BASE_URL, UDM_ENDPOINT, UPLOAD_PATH
from pytrackfit.exceptions import TrackfitConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_names(value: str) -> tuple[str, ...]:
    return tuple(part.strip() for part in value.split(",") if part.strip())


@dataclasses.dataclass(frozen=True)
class TrackfitConfig:
    """Client configuration.

    Parameters
    ----------
    udm_base_url : str
        Base URL of the UDM (inventory) portal API.
    tms_base_url : str
        Base URL of the TMS (track management) portal API.
    upload_path : str
        Path appended to each portal base URL for entry uploads.
    required_endpoints : tuple of str
        Endpoints that must acknowledge an entry before it counts as
        synced and leaves the queue.
    optional_endpoints : tuple of str
        Endpoints attempted best-effort after the required ones.
    batch_size : int
        Maximum number of entries drained per sync cycle.
    max_concurrency : int
        Maximum number of entries uploading at the same time.
    upload_timeout : float
        Seconds allowed for a single endpoint upload attempt.
    max_attempts : int
        Failed attempts after which an entry becomes terminally failed.
    backoff_base : float
        Delay in seconds before the first retry.
    backoff_cap : float
        Upper bound for the retry delay.
    backoff_jitter : float
        Fraction of the delay randomized in either direction (0 disables).
    probe_url : str or None
        URL checked for reachability. Defaults to ``tms_base_url``.
    probe_interval : float
        Seconds between background probe/sync iterations.
    probe_timeout : float
        Seconds allowed for a reachability check.
    dashboard_ttl : float
        Lifetime of the memoized dashboard summary in seconds.
    offline_mode : bool
        Treat the network as unavailable without probing. Capture keeps
        working; nothing is uploaded.
    storage_dir : str or None
        Directory for the file-backed store. ``None`` keeps everything
        in memory.
    retain_synced : bool
        Keep entries in the local store after a confirmed sync. When
        ``False`` they are deleted once every required endpoint has
        acknowledged them.
    """

    udm_base_url: str = UDM_BASE_URL
    tms_base_url: str = TMS_BASE_URL
    upload_path: str = UPLOAD_PATH
    required_endpoints: tuple[str, ...] = (UDM_ENDPOINT, TMS_ENDPOINT)
    optional_endpoints: tuple[str, ...] = ()
    batch_size: int = 25
    max_concurrency: int = 4
    upload_timeout: float = 10.0
    max_attempts: int = 5
    backoff_base: float = 1.0
    backoff_cap: float = 60.0
    backoff_jitter: float = 0.2
    probe_url: str | None = None
    probe_interval: float = 5.0
    probe_timeout: float = 3.0
    dashboard_ttl: float = 5 * 60
    offline_mode: bool = False
    storage_dir: str | None = None
    retain_synced: bool = True

    def __post_init__(self) -> None:
        if not self.required_endpoints:
            raise TrackfitConfigError("At least one required endpoint must be configured")
        overlap = set(self.required_endpoints) & set(self.optional_endpoints)
        if overlap:
            raise TrackfitConfigError(f"Endpoints cannot be both required and optional: {sorted(overlap)}")
        for name in ("batch_size", "max_concurrency", "max_attempts"):
            if getattr(self, name) < 1:
                raise TrackfitConfigError(f"{name} must be >= 1")
        for name in ("upload_timeout", "probe_interval", "probe_timeout"):
            if getattr(self, name) <= 0:
                raise TrackfitConfigError(f"{name} must be > 0")
        if self.backoff_base < 0 or self.backoff_cap < self.backoff_base:
            raise TrackfitConfigError("backoff_cap must be >= backoff_base >= 0")
        if not 0 <= self.backoff_jitter <= 1:
            raise TrackfitConfigError("backoff_jitter must be between 0 and 1")
        if self.dashboard_ttl < 0:
            raise TrackfitConfigError("dashboard_ttl must be >= 0")

    @property
    def endpoint_order(self) -> tuple[str, ...]:
        """All endpoints in attempt order (required first)."""
        return self.required_endpoints + self.optional_endpoints

    @property
    def effective_probe_url(self) -> str:
        return self.probe_url or self.tms_base_url

    @classmethod
    def from_env(cls, **overrides: Any) -> TrackfitConfig:
        """Create configuration from environment variables.

        Reads optional ``TRACKFIT_*`` variables. Explicit keyword
        arguments override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        TrackfitConfig
            Populated configuration.
        """
        env = os.environ

        _ENV_STR_MAP = {
            "TRACKFIT_UDM_BASE_URL": "udm_base_url",
            "TRACKFIT_TMS_BASE_URL": "tms_base_url",
            "TRACKFIT_UPLOAD_PATH": "upload_path",
            "TRACKFIT_PROBE_URL": "probe_url",
            "TRACKFIT_STORAGE_DIR": "storage_dir",
        }
        _ENV_INT_MAP = {
            "TRACKFIT_BATCH_SIZE": "batch_size",
            "TRACKFIT_MAX_CONCURRENCY": "max_concurrency",
            "TRACKFIT_MAX_ATTEMPTS": "max_attempts",
        }
        _ENV_FLOAT_MAP = {
            "TRACKFIT_UPLOAD_TIMEOUT": "upload_timeout",
            "TRACKFIT_BACKOFF_BASE": "backoff_base",
            "TRACKFIT_BACKOFF_CAP": "backoff_cap",
            "TRACKFIT_BACKOFF_JITTER": "backoff_jitter",
            "TRACKFIT_PROBE_INTERVAL": "probe_interval",
            "TRACKFIT_PROBE_TIMEOUT": "probe_timeout",
            "TRACKFIT_DASHBOARD_TTL": "dashboard_ttl",
        }

        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        try:
            for env_key, field_name in _ENV_INT_MAP.items():
                val = env.get(env_key)
                if val is not None:
                    config_kwargs[field_name] = int(val)
            for env_key, field_name in _ENV_FLOAT_MAP.items():
                val = env.get(env_key)
                if val is not None:
                    config_kwargs[field_name] = float(val)
        except ValueError as exc:
            raise TrackfitConfigError(f"Invalid numeric environment value: {exc}") from exc

        required_env = env.get("TRACKFIT_REQUIRED_ENDPOINTS")
        if required_env is not None:
            config_kwargs["required_endpoints"] = _env_names(required_env)
        optional_env = env.get("TRACKFIT_OPTIONAL_ENDPOINTS")
        if optional_env is not None:
            config_kwargs["optional_endpoints"] = _env_names(optional_env)

        if "offline_mode" not in overrides:
            config_kwargs["offline_mode"] = _env_bool(env.get("TRACKFIT_OFFLINE_MODE"), False)
        if "retain_synced" not in overrides:
            config_kwargs["retain_synced"] = _env_bool(env.get("TRACKFIT_RETAIN_SYNCED"), True)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
