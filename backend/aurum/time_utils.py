from __future__ import annotations

import secrets
import time
from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def epoch_millis() -> int:
    return int(time.time() * 1000)


def time_derived_number(prefix: str) -> str:
    """
    Time-derived document number, e.g. INV-1718000000000-042.

    The millisecond stamp orders documents; the random suffix keeps two
    requests landing in the same millisecond apart. Uniqueness is still
    enforced by the column constraint.
    """
    return f"{prefix}-{epoch_millis()}-{secrets.randbelow(1000):03d}"


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")
