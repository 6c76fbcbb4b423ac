from __future__ import annotations

import pytest

from pytrackfit.config import TrackfitConfig
from pytrackfit.exceptions import TrackfitConfigError


def test_defaults_require_both_portals() -> None:
    config = TrackfitConfig()

    assert config.endpoint_order == ("udm", "tms")
    assert config.dashboard_ttl == 300
    assert config.effective_probe_url == config.tms_base_url


def test_from_env_reads_trackfit_variables(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TRACKFIT_BATCH_SIZE", "10")
    monkeypatch.setenv("TRACKFIT_UPLOAD_TIMEOUT", "2.5")
    monkeypatch.setenv("TRACKFIT_REQUIRED_ENDPOINTS", "tms")
    monkeypatch.setenv("TRACKFIT_OPTIONAL_ENDPOINTS", " udm , ")
    monkeypatch.setenv("TRACKFIT_OFFLINE_MODE", "yes")
    monkeypatch.setenv("TRACKFIT_PROBE_URL", "https://probe.example/health")

    config = TrackfitConfig.from_env(max_concurrency=2)

    assert config.batch_size == 10
    assert config.upload_timeout == 2.5
    assert config.required_endpoints == ("tms",)
    assert config.optional_endpoints == ("udm",)
    assert config.offline_mode is True
    assert config.max_concurrency == 2
    assert config.effective_probe_url == "https://probe.example/health"


def test_overrides_win_over_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TRACKFIT_OFFLINE_MODE", "1")
    monkeypatch.setenv("TRACKFIT_BATCH_SIZE", "10")

    config = TrackfitConfig.from_env(offline_mode=False, batch_size=3)

    assert config.offline_mode is False
    assert config.batch_size == 3


def test_from_env_rejects_bad_numbers(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TRACKFIT_MAX_ATTEMPTS", "many")

    with pytest.raises(TrackfitConfigError, match="numeric"):
        TrackfitConfig.from_env()


@pytest.mark.parametrize(
    "kwargs",
    [
        {"required_endpoints": ()},
        {"required_endpoints": ("udm",), "optional_endpoints": ("udm",)},
        {"batch_size": 0},
        {"max_concurrency": 0},
        {"upload_timeout": 0},
        {"backoff_base": 10.0, "backoff_cap": 5.0},
        {"backoff_jitter": 1.5},
        {"dashboard_ttl": -1},
    ],
)
def test_invalid_values_are_rejected(kwargs: dict[str, object]) -> None:
    with pytest.raises(TrackfitConfigError):
        TrackfitConfig(**kwargs)
