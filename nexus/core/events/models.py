from __future__ import annotations

import json
import time
import uuid
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from nexus.core.events.redaction import redact


# Signal catalogue
IDENTITY_STORE_CHANGED = "identity-store-changed"
RESYNC_REQUESTED = "resync-requested"
REMOTE_AUTH_CHANGED = "remote-auth-changed"
TOAST_PUBLISHED = "toast-published"

SYNC_SIGNALS = (IDENTITY_STORE_CHANGED, RESYNC_REQUESTED, REMOTE_AUTH_CHANGED)


class EventSeverity(str, Enum):
    INFO = "INFO"
    SUCCESS = "SUCCESS"
    WARN = "WARN"
    ERROR = "ERROR"


class SignalSource(str, Enum):
    auth = "auth"
    store = "store"
    sync = "sync"
    moderation = "moderation"
    audit = "audit"
    commands = "commands"
    web = "web"
    bus = "bus"


class Signal(BaseModel):
    """One message on the bus. Payloads are redacted and must survive json.dumps."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str = Field(min_length=1)
    source: SignalSource
    payload: Dict[str, Any] = Field(default_factory=dict)
    severity: EventSeverity = EventSeverity.INFO
    signal_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    emitted_at: float = Field(default_factory=time.time)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        v = str(v).strip()
        if not v:
            raise ValueError("signal name required")
        return v

    @field_validator("payload")
    @classmethod
    def _safe_payload(cls, v: Dict[str, Any]) -> Dict[str, Any]:
        safe = redact(dict(v))
        try:
            json.dumps(safe, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise ValueError("payload must be JSON-serializable") from e
        return safe


def toast_event(message: str, *, title: Optional[str] = None, severity: EventSeverity = EventSeverity.INFO) -> Signal:
    """`toast-published` signal consumed by whatever notification surface is attached."""
    return Signal(
        name=TOAST_PUBLISHED,
        source=SignalSource.audit,
        severity=severity,
        payload={"title": title, "message": str(message), "severity": severity.value},
    )
