"""Utility helpers for the NetPick service."""

from __future__ import annotations

import secrets
from datetime import datetime, timezone
from typing import Any, Mapping


def first_forwarded_value(header_value: str | None) -> str | None:
    if not header_value:
        return None
    value = header_value.split(",", 1)[0].strip()
    return value or None


def client_ip_from_headers(headers: Mapping[str, str]) -> str:
    """Return the caller's address as reported by common proxy headers."""

    for header in ("x-forwarded-for", "x-real-ip", "cf-connecting-ip"):
        value = first_forwarded_value(headers.get(header))
        if value:
            return value
    return "unknown"


def generate_request_id() -> str:
    return secrets.token_hex(12)


def utc_isoformat(timestamp: float | None = None) -> str:
    """Return an ISO-8601 UTC timestamp, ``now`` when none is given."""

    if timestamp is None:
        moment = datetime.now(timezone.utc)
    else:
        moment = datetime.fromtimestamp(timestamp, tz=timezone.utc)
    return moment.isoformat().replace("+00:00", "Z")


def coerce_int(value: Any, *, default: int | None = None) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default
