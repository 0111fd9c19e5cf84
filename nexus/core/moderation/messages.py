from __future__ import annotations

import logging
import time
from typing import List, Optional

from nexus.core.audit.logger import AuditLogger
from nexus.core.audit.models import AdminAction, AdminLogEntry
from nexus.core.clock import Clock
from nexus.core.errors import MessageNotFound, StorageUnavailable, ValidationError
from nexus.core.identity.models import Message, Operator
from nexus.core.store.interface import IdentityStore

_EXCERPT_CHARS = 80


def _excerpt(text: str) -> str:
    flat = " ".join(str(text or "").split())
    if len(flat) <= _EXCERPT_CHARS:
        return flat
    return flat[: _EXCERPT_CHARS - 3].rstrip() + "..."


class MessageReview:
    """
    Operator review of user-posted messages: newest-first listing and removal.

    Removal order: store delete -> audit record (DELETE_MESSAGE). Messages do
    not feed the session snapshot, so no resync is requested.
    """

    def __init__(
        self,
        *,
        store: IdentityStore,
        audit: AuditLogger,
        clock: Clock = time.time,
        logger: Optional[logging.Logger] = None,
    ):
        self.store = store
        self.audit = audit
        self.clock = clock
        self.logger = logger or logging.getLogger("nexus.moderation")

    async def list(self, limit: int = 50) -> List[Message]:
        res = await self.store.list_messages(limit=max(1, int(limit)))
        if not res.ok:
            raise StorageUnavailable("Message table is unreachable.", error=res.error)
        return list(res.value or [])

    async def delete(self, message_id: str, acting: Operator) -> Message:
        ref = str(message_id or "").strip()
        if not ref:
            raise ValidationError("A message id is required.")
        res = await self.store.delete_message(ref)
        if not res.ok:
            raise StorageUnavailable(target=ref, error=res.error)
        if res.value is None:
            raise MessageNotFound(f"No message with id '{ref}'.", target=ref)

        msg: Message = res.value
        entry = AdminLogEntry(
            actor_identity_ref=acting.identity_ref,
            action_kind=AdminAction.DELETE_MESSAGE,
            target_identity_ref=msg.author_ref if msg.author_ref != "unknown" else None,
            detail_text=f'{acting.label} removed message {msg.id} from {msg.author_label}: "{_excerpt(msg.content)}"',
            occurred_at=float(self.clock()),
        )
        await self.audit.record(entry)
        return msg
