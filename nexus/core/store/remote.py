from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests

from nexus.core.audit.models import AdminLogEntry
from nexus.core.clock import iso_from_ts
from nexus.core.identity.models import BanUpdate, Identity, Message
from nexus.core.store.interface import IdentityStore, StoreResult


@dataclass
class RemoteStoreConfig:
    base_url: str
    api_key: str
    access_token: Optional[str] = None
    timeout_seconds: float = 5.0
    profiles_table: str = "profiles"
    logs_table: str = "admin_logs"
    messages_table: str = "messages"


@dataclass
class RemoteIdentityStore(IdentityStore):
    """
    Hosted table store speaking the PostgREST dialect (`/rest/v1/<table>`),
    with the provider session read from `/auth/v1/user`.

    The manual local session slot is kept in memory on this process.
    """

    cfg: RemoteStoreConfig
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("nexus.store"))
    http: Any = None
    _local_session: Optional[str] = None
    name: str = "remote"

    def __post_init__(self) -> None:
        if self.http is None:
            self.http = requests.Session()

    def _url(self, path: str) -> str:
        return f"{self.cfg.base_url.rstrip('/')}{path}"

    def _headers(self, *, bearer: Optional[str] = None, prefer: Optional[str] = None) -> Dict[str, str]:
        h = {
            "apikey": self.cfg.api_key,
            "Authorization": f"Bearer {bearer or self.cfg.api_key}",
            "Content-Type": "application/json",
        }
        if prefer:
            h["Prefer"] = prefer
        return h

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        r = self.http.request(method, self._url(path), timeout=float(self.cfg.timeout_seconds), **kwargs)
        if r.status_code == 404 or r.status_code == 406:
            return None
        r.raise_for_status()
        if not r.content:
            return None
        return r.json()

    async def _call(self, method: str, path: str, **kwargs: Any) -> StoreResult:
        try:
            return StoreResult.found(await asyncio.to_thread(self._request, method, path, **kwargs))
        except (requests.RequestException, ValueError) as e:
            self.logger.warning(f"Remote store {method} {path} failed: {e}")
            return StoreResult.failed(str(e))

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
        if not self.cfg.access_token:
            return StoreResult.absent()
        res = await self._call("GET", "/auth/v1/user", headers=self._headers(bearer=self.cfg.access_token))
        if not res.ok or not isinstance(res.value, dict) or not res.value.get("id"):
            return res if not res.ok else StoreResult.absent()
        user = res.value
        meta = user.get("user_metadata") or {}
        return StoreResult.found(
            {
                "user": {"id": str(user["id"]), "email": user.get("email"), "name": meta.get("name")},
                "issued_at": user.get("last_sign_in_at"),
            }
        )

    # ---- identities ----
    def _profiles(self) -> str:
        return f"/rest/v1/{self.cfg.profiles_table}"

    def _identity_row(self, rec: Any) -> StoreResult:
        try:
            return StoreResult.found(Identity.from_record(rec))
        except (ValueError, AttributeError) as e:
            self.logger.warning(f"Rejected malformed profile row: {e}")
            return StoreResult.failed(f"malformed profile row: {e}")

    async def get_identity(self, ref: str) -> StoreResult:
        res = await self._call("GET", self._profiles(), params={"id": f"eq.{ref}", "select": "*"}, headers=self._headers())
        if not res.ok:
            return res
        rows = res.value or []
        if not rows and "@" in ref:
            res = await self._call("GET", self._profiles(), params={"email": f"eq.{ref}", "select": "*"}, headers=self._headers())
            if not res.ok:
                return res
            rows = res.value or []
        if not rows:
            return StoreResult.absent()
        return self._identity_row(rows[0])

    async def list_identities(self) -> StoreResult:
        res = await self._call("GET", self._profiles(), params={"select": "*", "order": "created_at.desc"}, headers=self._headers())
        if not res.ok:
            return res
        out: List[Identity] = []
        for rec in res.value or []:
            try:
                out.append(Identity.from_record(rec))
            except ValueError as e:
                self.logger.warning(f"Skipping malformed profile row: {e}")
        return StoreResult.found(out)

    async def update_ban_state(self, ref: str, update: BanUpdate) -> StoreResult:
        body = {"banned": bool(update.banned), "ban_until": iso_from_ts(update.expires_at), "ban_reason": update.reason}
        res = await self._call("PATCH", self._profiles(), params={"id": f"eq.{ref}"}, json=body, headers=self._headers(prefer="return=representation"))
        if not res.ok:
            return res
        rows = res.value or []
        return self._identity_row(rows[0]) if rows else StoreResult.absent()

    async def delete_identity(self, ref: str) -> StoreResult:
        res = await self._call("DELETE", self._profiles(), params={"id": f"eq.{ref}"}, headers=self._headers(prefer="return=representation"))
        if not res.ok:
            return res
        rows = res.value or []
        return self._identity_row(rows[0]) if rows else StoreResult.absent()

    # ---- messages ----
    def _messages(self) -> str:
        return f"/rest/v1/{self.cfg.messages_table}"

    async def list_messages(self, limit: int = 50) -> StoreResult:
        res = await self._call(
            "GET",
            self._messages(),
            params={"select": "*,user:user_id(id,username,full_name,email)", "order": "created_at.desc", "limit": str(max(1, int(limit)))},
            headers=self._headers(),
        )
        if not res.ok:
            return res
        out: List[Message] = []
        for rec in res.value or []:
            try:
                out.append(Message.from_record(rec))
            except (ValueError, AttributeError) as e:
                self.logger.warning(f"Skipping malformed message row: {e}")
        return StoreResult.found(out)

    async def delete_message(self, message_id: str) -> StoreResult:
        res = await self._call("DELETE", self._messages(), params={"id": f"eq.{message_id}"}, headers=self._headers(prefer="return=representation"))
        if not res.ok:
            return res
        rows = res.value or []
        if not rows:
            return StoreResult.absent()
        try:
            return StoreResult.found(Message.from_record(rows[0]))
        except (ValueError, AttributeError) as e:
            # The row is gone either way; report it by id.
            self.logger.warning(f"Deleted message {message_id} came back malformed: {e}")
            return StoreResult.found(Message(id=str(message_id), author_ref="unknown"))

    # ---- audit log ----
    async def append_audit_log(self, entry: AdminLogEntry) -> StoreResult:
        return await self._call("POST", f"/rest/v1/{self.cfg.logs_table}", json=entry.to_record(), headers=self._headers(prefer="return=minimal"))

    async def list_audit_log(self, limit: int = 50) -> StoreResult:
        res = await self._call(
            "GET",
            f"/rest/v1/{self.cfg.logs_table}",
            params={"select": "*", "order": "created_at.desc", "limit": str(max(1, int(limit)))},
            headers=self._headers(),
        )
        if not res.ok:
            return res
        out: List[AdminLogEntry] = []
        for rec in res.value or []:
            try:
                out.append(AdminLogEntry.from_record(rec))
            except ValueError:
                continue
        return StoreResult.found(out)
