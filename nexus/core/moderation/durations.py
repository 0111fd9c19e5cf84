from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

from nexus.core.clock import PERMANENT_EXPIRES_AT, iso_from_ts
from nexus.core.errors import ValidationError
from nexus.core.identity.models import PermissionTier


PERMANENT = "permanent"
CUSTOM = "custom"

# token -> (seconds, label)
FIXED_DURATIONS: Dict[str, tuple] = {
    "30m": (30 * 60, "30 minutes"),
    "1h": (60 * 60, "1 hour"),
    "12h": (12 * 60 * 60, "12 hours"),
    "1d": (24 * 60 * 60, "1 day"),
    "1w": (7 * 24 * 60 * 60, "1 week"),
}

DURATION_TOKENS = tuple(FIXED_DURATIONS) + (PERMANENT, CUSTOM)

STANDARD_TIER_TOKEN = "1d"


@dataclass(frozen=True)
class ResolvedDuration:
    expires_at: float
    label: str
    clamped: bool = False


def normalize_token(token: Optional[str]) -> str:
    t = str(token or "").strip().lower()
    return t or PERMANENT


def resolve_duration(
    token: Optional[str],
    *,
    tier: PermissionTier,
    now: float,
    custom_expires_at: Optional[float] = None,
    standard_max_seconds: int = FIXED_DURATIONS[STANDARD_TIER_TOKEN][0],
) -> ResolvedDuration:
    """
    Turn a duration token into an absolute expiry.

    Standard tier never gets more than `standard_max_seconds`: permanent,
    custom and longer fixed offsets are narrowed to it without error.
    Permanent is a far-future timestamp, never None.
    """
    t = normalize_token(token)
    if t not in DURATION_TOKENS:
        raise ValidationError(f"Unknown ban duration '{token}'.", duration=str(token))

    if tier != PermissionTier.elevated:
        fixed = FIXED_DURATIONS.get(t)
        if fixed is not None and fixed[0] <= int(standard_max_seconds):
            return ResolvedDuration(expires_at=now + fixed[0], label=fixed[1])
        return ResolvedDuration(expires_at=now + int(standard_max_seconds), label=_label_for_seconds(int(standard_max_seconds)), clamped=True)

    if t == PERMANENT:
        return ResolvedDuration(expires_at=PERMANENT_EXPIRES_AT, label="permanent")
    if t == CUSTOM:
        if custom_expires_at is None:
            raise ValidationError("A custom ban needs an expiry timestamp.", duration=t)
        if float(custom_expires_at) <= now:
            raise ValidationError("Custom ban expiry must be in the future.", duration=t)
        return ResolvedDuration(expires_at=float(custom_expires_at), label=f"until {iso_from_ts(float(custom_expires_at))}")
    seconds, label = FIXED_DURATIONS[t]
    return ResolvedDuration(expires_at=now + seconds, label=label)


def _label_for_seconds(seconds: int) -> str:
    for secs, label in FIXED_DURATIONS.values():
        if secs == seconds:
            return label
    return f"{seconds} seconds"
