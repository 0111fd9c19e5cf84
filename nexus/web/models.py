from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from nexus.core.moderation.models import ModerationAction


class LoginRequest(BaseModel):
    passphrase: str = Field(min_length=1, max_length=512)


class SessionResponse(BaseModel):
    authenticated: bool
    suspended: bool
    generation: int
    identity_ref: Optional[str] = None
    display_name: Optional[str] = None
    kind: Optional[str] = None
    tier: Optional[str] = None
    ban_reason: Optional[str] = None
    ban_expires_at: Optional[float] = None


class ModerationBody(BaseModel):
    target: str = Field(min_length=1, max_length=200)
    action: ModerationAction
    reason: Optional[str] = Field(default=None, max_length=1000)
    duration: Optional[str] = Field(default=None, max_length=32)
    custom_expires_at: Optional[float] = None


class ConsoleInput(BaseModel):
    text: str = Field(default="", max_length=4000)


class SuggestResponse(BaseModel):
    phase: str
    recognized_verb: Optional[str] = None
    open: bool
    suggestions: List[Dict[str, Any]]


class SubmitResponse(BaseModel):
    ok: bool
    kind: str
    error: Optional[str] = None
    outcome: Optional[Dict[str, Any]] = None
    messages: List[Dict[str, Any]] = Field(default_factory=list)


class RemoteAuthHook(BaseModel):
    event: str = Field(default="auth-state-changed", max_length=64)
