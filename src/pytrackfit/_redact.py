"""Scrub upload traffic before it reaches DEBUG logs.

Two kinds of field are treated differently:

* credentials (``Authorization`` headers, stored auth tokens) are
  replaced outright;
* people identifiers in capture payloads (``userId``, inspector names,
  movement approvals) are replaced by a short stable digest, so one
  inspector's uploads can still be followed through a log without the
  log naming them.

Keys are matched case-insensitively at any depth.
"""

from __future__ import annotations

import hashlib
from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import BaseModel

_CREDENTIAL_KEYS: frozenset[str] = frozenset(
    {
        "authorization",
        "authtoken",
        "accesstoken",
        "refreshtoken",
        "token",
        "password",
        "cookie",
        "set-cookie",
        "inspectorsignature",
    }
)

_PERSON_KEYS: frozenset[str] = frozenset(
    {
        "userid",
        "inspector",
        "inspectorname",
        "approvalid",
        "deviceid",
    }
)

_MAX_DEPTH = 20


def pseudonym(value: Any) -> str:
    """Stable, non-reversible stand-in for a person identifier."""
    digest = hashlib.sha256(str(value).encode("utf-8")).hexdigest()
    return f"<id:{digest[:8]}>"


def _scrub_text(text: str, max_string: int) -> str:
    if text[:7].lower() == "bearer ":
        return "Bearer <redacted>"
    if len(text) > max_string:
        return f"{text[:max_string]}…<truncated>"
    return text


def redact_for_log(value: Any, *, max_string: int = 512, _depth: int = 0) -> Any:
    """Return a copy of *value* that is safe to log.

    Pydantic models are dumped by alias first, so entries and payloads
    can be passed as-is.
    """
    if _depth > _MAX_DEPTH:
        return "<max-depth>"
    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, str):
        return _scrub_text(value, max_string)
    if isinstance(value, (bytes, bytearray)):
        return f"<bytes:{len(value)}b>"
    if isinstance(value, BaseModel):
        value = value.model_dump(mode="json", by_alias=True, exclude_none=True)

    if isinstance(value, Mapping):
        scrubbed: dict[str, Any] = {}
        for raw_key, item in value.items():
            key = str(raw_key)
            folded = key.lower()
            if folded in _CREDENTIAL_KEYS:
                scrubbed[key] = "<redacted>"
            elif folded in _PERSON_KEYS and item is not None:
                scrubbed[key] = pseudonym(item)
            else:
                scrubbed[key] = redact_for_log(item, max_string=max_string, _depth=_depth + 1)
        return scrubbed

    if isinstance(value, Sequence):
        return [redact_for_log(item, max_string=max_string, _depth=_depth + 1) for item in value]

    return repr(value)
