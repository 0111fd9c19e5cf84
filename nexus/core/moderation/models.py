from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from nexus.core.audit.models import AdminLogEntry
from nexus.core.errors import NexusError


class ModerationAction(str, Enum):
    BAN = "BAN"
    UNBAN = "UNBAN"
    DELETE_IDENTITY = "DELETE_IDENTITY"


class ModerationRequest(BaseModel):
    """What the operator asked for. Not persisted."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    target_identity_ref: str = Field(min_length=1)
    action_kind: ModerationAction
    reason: Optional[str] = None
    duration_token: Optional[str] = None
    custom_expires_at: Optional[float] = None


@dataclass(frozen=True)
class ModerationOutcome:
    """Typed result of ModerationActionExecutor.execute; errors are returned, not raised."""

    ok: bool
    action_kind: ModerationAction
    target_identity_ref: str
    error: Optional[NexusError] = None
    expires_at: Optional[float] = None
    duration_label: Optional[str] = None
    clamped: bool = False
    log_entry: Optional[AdminLogEntry] = None

    @property
    def error_code(self) -> Optional[str]:
        return self.error.code if self.error is not None else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": bool(self.ok),
            "action": self.action_kind.value,
            "target": self.target_identity_ref,
            "error": self.error.to_dict() if self.error is not None else None,
            "expires_at": self.expires_at,
            "duration_label": self.duration_label,
            "clamped": bool(self.clamped),
            "log_entry_id": self.log_entry.id if self.log_entry is not None else None,
        }
