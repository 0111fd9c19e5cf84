from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Optional

Clock = Callable[[], float]

# 9999-12-31T23:59:59Z; stands in for "no end" so expiry comparisons stay total.
PERMANENT_EXPIRES_AT = 253402300799.0


def iso_from_ts(ts: Optional[float]) -> Optional[str]:
    if ts is None:
        return None
    return datetime.fromtimestamp(float(ts), tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def ts_from_iso(value: Any) -> Optional[float]:
    """
    Parse a stored timestamp (ISO-8601 string or epoch number) into epoch seconds.

    Unparseable values return None.
    """
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    s = str(value).strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp()
