from __future__ import annotations

import logging
from typing import List, Optional

from nexus.core.audit.formatter import format_line, toast_title
from nexus.core.audit.models import AdminAction, AdminLogEntry
from nexus.core.errors import AuditWriteFailed
from nexus.core.events.bus import SignalBus
from nexus.core.events.models import EventSeverity, toast_event
from nexus.core.store.interface import IdentityStore


_TOAST_SEVERITY = {
    AdminAction.BAN: EventSeverity.WARN,
    AdminAction.DELETE_IDENTITY: EventSeverity.WARN,
    AdminAction.DELETE_MESSAGE: EventSeverity.WARN,
    AdminAction.UNBAN: EventSeverity.SUCCESS,
    AdminAction.LOGIN: EventSeverity.INFO,
    AdminAction.LOGOUT: EventSeverity.INFO,
}


class AuditLogger:
    """
    Append-only admin trail.

    Persistence is best effort: a failed write is logged as AuditWriteFailed
    and never propagates to the action that produced the entry.
    """

    def __init__(self, *, store: IdentityStore, bus: Optional[SignalBus] = None, logger: Optional[logging.Logger] = None):
        self.store = store
        self.bus = bus
        self.logger = logger or logging.getLogger("nexus.audit")
        self.failed_writes = 0

    async def record(self, entry: AdminLogEntry) -> None:
        self.logger.info(format_line(entry))
        try:
            res = await self.store.append_audit_log(entry)
            if not res.ok:
                raise AuditWriteFailed(entry_id=entry.id, error=res.error)
        except Exception as e:  # noqa: BLE001
            self.failed_writes += 1
            err = e if isinstance(e, AuditWriteFailed) else AuditWriteFailed(entry_id=entry.id, error=str(e))
            self.logger.warning(f"{err.user_message} {err.to_dict()['context']}")

        if self.bus is not None:
            self.bus.publish(toast_event(entry.detail_text, title=toast_title(entry), severity=_TOAST_SEVERITY.get(entry.action_kind, EventSeverity.INFO)))

    async def recent(self, limit: int = 50) -> List[AdminLogEntry]:
        res = await self.store.list_audit_log(limit=limit)
        if not res.ok:
            self.logger.warning(f"Audit log unavailable: {res.error}")
            return []
        return list(res.value or [])
