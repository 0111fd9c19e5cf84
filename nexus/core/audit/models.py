from __future__ import annotations

import time
import uuid
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from nexus.core.clock import iso_from_ts, ts_from_iso


class AdminAction(str, Enum):
    BAN = "BAN"
    UNBAN = "UNBAN"
    DELETE_IDENTITY = "DELETE_IDENTITY"
    DELETE_MESSAGE = "DELETE_MESSAGE"
    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"


class AdminLogEntry(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    actor_identity_ref: str
    action_kind: AdminAction
    target_identity_ref: Optional[str] = None
    detail_text: str
    occurred_at: float = Field(default_factory=lambda: time.time())

    def to_record(self) -> Dict[str, Any]:
        """`admin_logs` row shape."""
        return {
            "id": self.id,
            "admin_id": self.actor_identity_ref,
            "action_type": self.action_kind.value,
            "target_user_id": self.target_identity_ref,
            "details": self.detail_text,
            "created_at": iso_from_ts(self.occurred_at),
        }

    @classmethod
    def from_record(cls, rec: Dict[str, Any]) -> "AdminLogEntry":
        return cls(
            id=str(rec.get("id") or uuid.uuid4().hex),
            actor_identity_ref=str(rec.get("admin_id") or "unknown"),
            action_kind=AdminAction(str(rec.get("action_type"))),
            target_identity_ref=rec.get("target_user_id") or None,
            detail_text=str(rec.get("details") or ""),
            occurred_at=ts_from_iso(rec.get("created_at")) or 0.0,
        )
