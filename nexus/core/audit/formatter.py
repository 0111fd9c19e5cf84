from __future__ import annotations

import time

from nexus.core.audit.models import AdminAction, AdminLogEntry


_VERBS = {
    AdminAction.BAN: "banned",
    AdminAction.UNBAN: "reinstated",
    AdminAction.DELETE_IDENTITY: "deleted",
    AdminAction.DELETE_MESSAGE: "removed a message",
    AdminAction.LOGIN: "signed in",
    AdminAction.LOGOUT: "signed out",
}


def format_line(entry: AdminLogEntry) -> str:
    ts = time.strftime("%Y-%m-%d %H:%M:%S", time.gmtime(float(entry.occurred_at)))
    return f"{ts} [{entry.action_kind.value}] {entry.detail_text}"


def toast_title(entry: AdminLogEntry) -> str:
    return f"Operator {_VERBS.get(entry.action_kind, entry.action_kind.value.lower())}"
