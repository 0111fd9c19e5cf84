from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, List, Optional

from nexus.core.audit.models import AdminLogEntry
from nexus.core.identity.models import BanUpdate, Identity


@dataclass(frozen=True)
class StoreResult:
    """
    Outcome of one store call.

    ok=False means the backing store failed (unreachable, I/O error); the
    caller decides how to degrade. ok=True with value=None means "absent".
    """

    ok: bool
    value: Any = None
    error: Optional[str] = None

    @classmethod
    def found(cls, value: Any) -> "StoreResult":
        return cls(ok=True, value=value)

    @classmethod
    def absent(cls) -> "StoreResult":
        return cls(ok=True, value=None)

    @classmethod
    def failed(cls, error: str) -> "StoreResult":
        return cls(ok=False, value=None, error=str(error))


class IdentityStore(ABC):
    """
    Narrow persistence contract consumed by the session and moderation core.

    Every method returns a StoreResult and must not raise for backend faults.
    """

    name: str = "store"

    # ---- session slots ----
    @abstractmethod
    async def get_local_session(self) -> StoreResult:
        """value: raw session text as persisted (may be malformed) or None."""
        raise NotImplementedError

    @abstractmethod
    async def set_local_session(self, raw: str) -> StoreResult:
        raise NotImplementedError

    @abstractmethod
    async def clear_local_session(self) -> StoreResult:
        raise NotImplementedError

    @abstractmethod
    async def get_remote_session(self) -> StoreResult:
        """value: provider session object (dict) or None."""
        raise NotImplementedError

    # ---- identities ----
    @abstractmethod
    async def get_identity(self, ref: str) -> StoreResult:
        """value: Identity or None."""
        raise NotImplementedError

    @abstractmethod
    async def list_identities(self) -> StoreResult:
        """value: List[Identity], newest first."""
        raise NotImplementedError

    @abstractmethod
    async def update_ban_state(self, ref: str, update: BanUpdate) -> StoreResult:
        raise NotImplementedError

    @abstractmethod
    async def delete_identity(self, ref: str) -> StoreResult:
        raise NotImplementedError

    # ---- messages ----
    @abstractmethod
    async def list_messages(self, limit: int = 50) -> StoreResult:
        """value: List[Message], newest first, authors joined in."""
        raise NotImplementedError

    @abstractmethod
    async def delete_message(self, message_id: str) -> StoreResult:
        """value: the removed Message, or None when no message has that id."""
        raise NotImplementedError

    # ---- audit log ----
    @abstractmethod
    async def append_audit_log(self, entry: AdminLogEntry) -> StoreResult:
        raise NotImplementedError

    @abstractmethod
    async def list_audit_log(self, limit: int = 50) -> StoreResult:
        """value: List[AdminLogEntry], newest first."""
        raise NotImplementedError


def find_identity(identities: List[Identity], ref: str) -> Optional[Identity]:
    """Match by id first, then by email (demo sessions carry only the email)."""
    ref = str(ref or "")
    for ident in identities:
        if ident.id == ref:
            return ident
    low = ref.lower()
    for ident in identities:
        if ident.email and ident.email.lower() == low:
            return ident
    return None
