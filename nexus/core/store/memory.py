from __future__ import annotations

from typing import Dict, List, Optional

from nexus.core.audit.models import AdminLogEntry
from nexus.core.identity.models import BanUpdate, Identity, Message
from nexus.core.store.interface import IdentityStore, StoreResult, find_identity


class InMemoryIdentityStore(IdentityStore):
    """
    Process-local store. Used by tests and as an ephemeral demo backend.

    `fail_reads` / `fail_writes` / `fail_audit` / `fail_remote` simulate an
    unreachable backend.
    """

    name = "memory"

    def __init__(
        self,
        identities: Optional[List[Identity]] = None,
        *,
        local_session: Optional[str] = None,
        remote_session: Optional[dict] = None,
    ):
        self._identities: Dict[str, Identity] = {i.id: i for i in (identities or [])}
        self._local_session = local_session
        self._remote_session = remote_session
        self._audit: List[AdminLogEntry] = []
        self._messages: Dict[str, Message] = {}
        self.fail_reads = False
        self.fail_writes = False
        self.fail_audit = False
        self.fail_remote = False
        self.writes = 0

    # ---- test helpers ----
    def put(self, identity: Identity) -> None:
        self._identities[identity.id] = identity

    def put_message(self, message: Message) -> None:
        self._messages[message.id] = message

    def set_remote_session(self, session: Optional[dict]) -> None:
        self._remote_session = session

    @property
    def audit_entries(self) -> List[AdminLogEntry]:
        return list(self._audit)

    @property
    def local_session_raw(self) -> Optional[str]:
        return self._local_session

    # ---- session slots ----
    async def get_local_session(self) -> StoreResult:
        return StoreResult.found(self._local_session)

    async def set_local_session(self, raw: str) -> StoreResult:
        self._local_session = str(raw)
        return StoreResult.found(None)

    async def clear_local_session(self) -> StoreResult:
        self._local_session = None
        return StoreResult.found(None)

    async def get_remote_session(self) -> StoreResult:
        if self.fail_remote:
            return StoreResult.failed("remote provider unreachable")
        return StoreResult.found(self._remote_session)

    # ---- identities ----
    async def get_identity(self, ref: str) -> StoreResult:
        if self.fail_reads:
            return StoreResult.failed("identity store unreachable")
        return StoreResult.found(find_identity(list(self._identities.values()), ref))

    async def list_identities(self) -> StoreResult:
        if self.fail_reads:
            return StoreResult.failed("identity store unreachable")
        rows = sorted(self._identities.values(), key=lambda i: i.created_at, reverse=True)
        return StoreResult.found(rows)

    async def update_ban_state(self, ref: str, update: BanUpdate) -> StoreResult:
        if self.fail_writes:
            return StoreResult.failed("identity store unreachable")
        cur = find_identity(list(self._identities.values()), ref)
        if cur is None:
            return StoreResult.absent()
        self._identities[cur.id] = cur.model_copy(update={"banned": update.banned, "ban_expires_at": update.expires_at, "ban_reason": update.reason})
        self.writes += 1
        return StoreResult.found(self._identities[cur.id])

    async def delete_identity(self, ref: str) -> StoreResult:
        if self.fail_writes:
            return StoreResult.failed("identity store unreachable")
        cur = find_identity(list(self._identities.values()), ref)
        if cur is None:
            return StoreResult.absent()
        del self._identities[cur.id]
        self.writes += 1
        return StoreResult.found(cur)

    # ---- messages ----
    async def list_messages(self, limit: int = 50) -> StoreResult:
        if self.fail_reads:
            return StoreResult.failed("message table unreachable")
        rows = sorted(self._messages.values(), key=lambda m: m.created_at, reverse=True)
        return StoreResult.found([self._with_author(m) for m in rows[: max(1, int(limit))]])

    async def delete_message(self, message_id: str) -> StoreResult:
        if self.fail_writes:
            return StoreResult.failed("message table unreachable")
        cur = self._messages.pop(str(message_id), None)
        if cur is None:
            return StoreResult.absent()
        self.writes += 1
        return StoreResult.found(self._with_author(cur))

    def _with_author(self, message: Message) -> Message:
        author = self._identities.get(message.author_ref)
        if author is None:
            return message
        return message.model_copy(
            update={"author_username": author.username, "author_display_name": author.display_name, "author_email": author.email or None}
        )

    # ---- audit log ----
    async def append_audit_log(self, entry: AdminLogEntry) -> StoreResult:
        if self.fail_audit:
            return StoreResult.failed("audit table unreachable")
        self._audit.append(entry)
        return StoreResult.found(entry)

    async def list_audit_log(self, limit: int = 50) -> StoreResult:
        rows = sorted(self._audit, key=lambda e: e.occurred_at, reverse=True)
        return StoreResult.found(rows[: max(1, int(limit))])
