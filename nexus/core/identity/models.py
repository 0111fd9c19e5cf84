from __future__ import annotations

import time
import uuid
from enum import Enum
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from nexus.core.clock import PERMANENT_EXPIRES_AT, iso_from_ts, ts_from_iso


class IdentityStatus(str, Enum):
    online = "online"
    offline = "offline"


class PermissionTier(str, Enum):
    elevated = "elevated"
    standard = "standard"


class Identity(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    username: str = Field(min_length=1, max_length=120)
    display_name: Optional[str] = None
    email: str = ""
    status: IdentityStatus = IdentityStatus.offline
    banned: bool = False
    ban_reason: Optional[str] = None
    ban_expires_at: Optional[float] = None
    created_at: float = Field(default_factory=lambda: time.time())

    @classmethod
    def from_record(cls, rec: Dict[str, Any]) -> "Identity":
        """
        Normalize a stored row (`profiles` table shape or demo JSON) into an Identity.

        Stored rows use `ban_until` / `ban_reason` and ISO timestamps.
        """
        status = str(rec.get("status") or "offline")
        return cls(
            id=str(rec.get("id")),
            username=str(rec.get("username") or rec.get("id")),
            display_name=rec.get("display_name") or rec.get("name") or None,
            email=str(rec.get("email") or ""),
            status=IdentityStatus.online if status == "online" else IdentityStatus.offline,
            banned=bool(rec.get("banned", False)),
            ban_reason=rec.get("ban_reason") or None,
            ban_expires_at=ts_from_iso(rec.get("ban_until", rec.get("ban_expires_at"))),
            created_at=ts_from_iso(rec.get("created_at")) or 0.0,
        )

    def to_record(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "display_name": self.display_name,
            "email": self.email,
            "status": self.status.value,
            "banned": bool(self.banned),
            "ban_reason": self.ban_reason,
            "ban_until": iso_from_ts(self.ban_expires_at),
            "created_at": iso_from_ts(self.created_at),
        }


class Message(BaseModel):
    """A user-posted message as listed for review, with its author joined in."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str = Field(min_length=1)
    author_ref: str
    content: str = ""
    created_at: float = 0.0
    author_username: Optional[str] = None
    author_display_name: Optional[str] = None
    author_email: Optional[str] = None

    @classmethod
    def from_record(cls, rec: Dict[str, Any]) -> "Message":
        """`messages` row, optionally carrying the joined author under `user`."""
        if not rec.get("id"):
            raise ValueError("message row without id")
        author = rec.get("user") if isinstance(rec.get("user"), dict) else {}
        return cls(
            id=str(rec["id"]),
            author_ref=str(rec.get("user_id") or author.get("id") or "unknown"),
            content=str(rec.get("content") or ""),
            created_at=ts_from_iso(rec.get("created_at")) or 0.0,
            author_username=author.get("username") or None,
            author_display_name=author.get("full_name") or author.get("display_name") or None,
            author_email=author.get("email") or None,
        )

    def to_record(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.author_ref,
            "content": self.content,
            "created_at": iso_from_ts(self.created_at),
        }

    @property
    def author_label(self) -> str:
        return self.author_username or self.author_display_name or self.author_ref


class BanState(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    identity_ref: Optional[str] = None
    banned: bool = False
    reason: Optional[str] = None
    expires_at: Optional[float] = None

    @property
    def permanent(self) -> bool:
        return bool(self.banned) and (self.expires_at is None or self.expires_at >= PERMANENT_EXPIRES_AT)


class BanUpdate(BaseModel):
    """Ban fields written by the moderation pipeline."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    banned: bool
    expires_at: Optional[float] = None
    reason: Optional[str] = None


class _SessionBase(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    identity_ref: str = Field(min_length=1)
    issued_at: float
    display_name: Optional[str] = None
    email: Optional[str] = None


class LocalSession(_SessionBase):
    kind: Literal["local"] = "local"


class RemoteSession(_SessionBase):
    kind: Literal["remote"] = "remote"


# Sessions are built only by SessionResolver.
Session = Annotated[Union[LocalSession, RemoteSession], Field(discriminator="kind")]


class Operator(BaseModel):
    """The acting identity for privileged operations."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    identity_ref: str
    display_name: str = ""
    tier: PermissionTier = PermissionTier.standard

    @property
    def label(self) -> str:
        return self.display_name or self.identity_ref
