from __future__ import annotations

"""
File-backed demo store.

Used when no hosted table store is configured. Layout under `data_dir`:
- users.json        list of `profiles` rows
- session.json      raw text of the manually issued local session
- messages.json     list of `messages` rows (author joined from users.json on read)
- admin_logs.jsonl  hash-chained audit rows

Another process editing these files is the cross-context change signal picked
up by StoreWatcher.
"""

import asyncio
import logging
import os
import time
from typing import Any, Dict, List, Optional

from nexus.core.audit.models import AdminLogEntry
from nexus.core.audit.store_jsonl import AuditJsonlStore
from nexus.core.clock import iso_from_ts
from nexus.core.config.io import atomic_write_json, atomic_write_text, read_json_file
from nexus.core.identity.models import BanUpdate, Identity, Message
from nexus.core.store.interface import IdentityStore, StoreResult, find_identity


_DAY = 86400.0


def demo_identities(now: Optional[float] = None) -> List[Dict[str, Any]]:
    t = float(now if now is not None else time.time())
    rows = [
        ("1", "kaito_admin", "kaito@nexus.io", False, None, 0, "online"),
        ("2", "shadow_user", "shadow@dark.net", True, "2026-01-01T00:00:00Z", 1, "offline"),
        ("3", "beta_tester", "tester@google.com", False, None, 3, "offline"),
        ("4", "nova_prime", "nova@space.io", False, None, 4, "online"),
        ("5", "admin_test", "test@nexus.io", False, None, 6, "offline"),
        ("6", "zero_cool", "zero@hack.net", False, None, 7, "online"),
        ("7", "acid_burn", "acid@hack.net", False, None, 8, "online"),
        ("8", "lord_nikon", "nikon@hack.net", False, None, 9, "offline"),
    ]
    return [
        {
            "id": rid,
            "username": username,
            "email": email,
            "banned": banned,
            "ban_until": until,
            "ban_reason": "Policy violation" if banned else None,
            "created_at": iso_from_ts(t - age * _DAY),
            "status": status,
        }
        for rid, username, email, banned, until, age, status in rows
    ]


def demo_messages(now: Optional[float] = None) -> List[Dict[str, Any]]:
    t = float(now if now is not None else time.time())
    rows = [
        ("m1", "1", "Neural link established. Scanning frequencies.", 0),
        ("m2", "6", "Packet loss at 0.001%. System stable.", 3600),
        ("m3", "2", "anyone selling cheap boosts? dm me", 7200),
        ("m4", "7", "Mess with the best, die like the rest.", 86400),
    ]
    return [
        {"id": mid, "user_id": author, "content": content, "created_at": iso_from_ts(t - age)}
        for mid, author, content, age in rows
    ]


class LocalIdentityStore(IdentityStore):
    name = "local"

    def __init__(self, *, data_dir: str, seed_demo: bool = True, logger: Optional[logging.Logger] = None):
        self.data_dir = data_dir
        self.users_path = os.path.join(data_dir, "users.json")
        self.session_path = os.path.join(data_dir, "session.json")
        self.messages_path = os.path.join(data_dir, "messages.json")
        self.audit = AuditJsonlStore(path=os.path.join(data_dir, "admin_logs.jsonl"))
        self.logger = logger or logging.getLogger("nexus.store")
        os.makedirs(data_dir, exist_ok=True)
        if seed_demo and not os.path.exists(self.users_path):
            atomic_write_json(self.users_path, demo_identities())
        if seed_demo and not os.path.exists(self.messages_path):
            atomic_write_json(self.messages_path, demo_messages())

    @property
    def watched_paths(self) -> List[str]:
        return [self.users_path, self.session_path]

    # ---- sync helpers (run off-loop) ----
    def _read_users(self) -> List[Identity]:
        rr = read_json_file(self.users_path, expect=list)
        if not rr.ok:
            if rr.error == "missing":
                return []
            raise OSError(f"users.json unreadable: {rr.error}")
        out: List[Identity] = []
        for rec in rr.data:
            if not isinstance(rec, dict) or not rec.get("id"):
                continue
            try:
                out.append(Identity.from_record(rec))
            except ValueError as e:
                self.logger.warning(f"Skipping malformed identity row {rec.get('id')}: {e}")
        return out

    def _write_users(self, users: List[Identity]) -> None:
        atomic_write_json(self.users_path, [u.to_record() for u in users])

    def _read_messages(self) -> List[Message]:
        rr = read_json_file(self.messages_path, expect=list)
        if not rr.ok:
            if rr.error == "missing":
                return []
            raise OSError(f"messages.json unreadable: {rr.error}")
        out: List[Message] = []
        for rec in rr.data:
            if not isinstance(rec, dict):
                continue
            try:
                out.append(Message.from_record(rec))
            except ValueError as e:
                self.logger.warning(f"Skipping malformed message row: {e}")
        return out

    def _joined(self, messages: List[Message]) -> List[Message]:
        authors = {u.id: u for u in self._read_users()}
        out: List[Message] = []
        for m in messages:
            a = authors.get(m.author_ref)
            if a is not None:
                m = m.model_copy(update={"author_username": a.username, "author_display_name": a.display_name, "author_email": a.email or None})
            out.append(m)
        return out

    def _read_session_text(self) -> Optional[str]:
        if not os.path.exists(self.session_path):
            return None
        with open(self.session_path, "r", encoding="utf-8") as f:
            return f.read()

    async def _call(self, fn, *args) -> StoreResult:  # noqa: ANN001
        try:
            return StoreResult.found(await asyncio.to_thread(fn, *args))
        except (OSError, ValueError) as e:
            self.logger.warning(f"Local store call {getattr(fn, '__name__', 'call')} failed: {e}")
            return StoreResult.failed(str(e))

    # ---- session slots ----
    async def get_local_session(self) -> StoreResult:
        return await self._call(self._read_session_text)

    async def set_local_session(self, raw: str) -> StoreResult:
        return await self._call(atomic_write_text, self.session_path, str(raw))

    async def clear_local_session(self) -> StoreResult:
        def _rm() -> None:
            if os.path.exists(self.session_path):
                os.remove(self.session_path)

        return await self._call(_rm)

    async def get_remote_session(self) -> StoreResult:
        # No remote provider behind the demo store.
        return StoreResult.absent()

    # ---- identities ----
    async def get_identity(self, ref: str) -> StoreResult:
        res = await self._call(self._read_users)
        if not res.ok:
            return res
        return StoreResult.found(find_identity(res.value, ref))

    async def list_identities(self) -> StoreResult:
        res = await self._call(self._read_users)
        if not res.ok:
            return res
        return StoreResult.found(sorted(res.value, key=lambda i: i.created_at, reverse=True))

    async def update_ban_state(self, ref: str, update: BanUpdate) -> StoreResult:
        def _update() -> Optional[Identity]:
            users = self._read_users()
            cur = find_identity(users, ref)
            if cur is None:
                return None
            new = cur.model_copy(update={"banned": update.banned, "ban_expires_at": update.expires_at, "ban_reason": update.reason})
            self._write_users([new if u.id == cur.id else u for u in users])
            return new

        return await self._call(_update)

    async def delete_identity(self, ref: str) -> StoreResult:
        def _delete() -> Optional[Identity]:
            users = self._read_users()
            cur = find_identity(users, ref)
            if cur is None:
                return None
            self._write_users([u for u in users if u.id != cur.id])
            return cur

        return await self._call(_delete)

    # ---- messages ----
    async def list_messages(self, limit: int = 50) -> StoreResult:
        def _list() -> List[Message]:
            rows = sorted(self._read_messages(), key=lambda m: m.created_at, reverse=True)
            return self._joined(rows[: max(1, int(limit))])

        return await self._call(_list)

    async def delete_message(self, message_id: str) -> StoreResult:
        def _delete() -> Optional[Message]:
            rows = self._read_messages()
            cur = next((m for m in rows if m.id == str(message_id)), None)
            if cur is None:
                return None
            atomic_write_json(self.messages_path, [m.to_record() for m in rows if m.id != cur.id])
            return self._joined([cur])[0]

        return await self._call(_delete)

    # ---- audit log ----
    async def append_audit_log(self, entry: AdminLogEntry) -> StoreResult:
        return await self._call(self.audit.append, entry)

    async def list_audit_log(self, limit: int = 50) -> StoreResult:
        res = await self._call(self.audit.entries)
        if not res.ok:
            return res
        entries = list(res.value)
        entries.sort(key=lambda e: e.occurred_at, reverse=True)
        return StoreResult.found(entries[: max(1, int(limit))])
