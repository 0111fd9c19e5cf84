from __future__ import annotations

"""
SessionResolver: picks the single authoritative operator session.

Priority, first match wins:
1. manually issued local session (login override)
2. remote provider session
3. none
"""

import json
import logging
import time
from typing import Any, Dict, Optional

from nexus.core.clock import Clock, ts_from_iso
from nexus.core.errors import MalformedLocalSession, StorageUnavailable
from nexus.core.identity.models import LocalSession, RemoteSession, Session
from nexus.core.store.interface import IdentityStore


def _identity_fields(obj: Any) -> Optional[Dict[str, Any]]:
    """Extract {identity_ref, display_name, email} from a raw session object, or None."""
    if not isinstance(obj, dict):
        return None
    user = obj.get("user")
    if isinstance(user, dict) and user.get("id"):
        return {"identity_ref": str(user["id"]), "display_name": user.get("name") or None, "email": user.get("email") or None}
    if obj.get("identity_ref"):
        return {"identity_ref": str(obj["identity_ref"]), "display_name": obj.get("display_name") or None, "email": obj.get("email") or None}
    return None


class SessionResolver:
    def __init__(self, *, store: IdentityStore, clock: Clock = time.time, logger: Optional[logging.Logger] = None):
        self.store = store
        self.clock = clock
        self.logger = logger or logging.getLogger("nexus.identity")

    async def resolve(self) -> Optional[Session]:
        """Total: never raises, lookup failures read as absent."""
        try:
            local = await self._resolve_local()
            if local is not None:
                return local
            return await self._resolve_remote()
        except Exception as e:  # noqa: BLE001
            self.logger.error(f"Session resolution failed, treating as unauthenticated: {e}")
            return None

    async def _resolve_local(self) -> Optional[LocalSession]:
        res = await self.store.get_local_session()
        if not res.ok:
            self._note(StorageUnavailable(slot="local", error=res.error))
            return None
        raw = res.value
        if raw is None or (isinstance(raw, str) and not raw.strip()):
            return None

        try:
            obj = json.loads(raw) if isinstance(raw, str) else raw
        except ValueError as e:
            return await self._discard_local(MalformedLocalSession(reason=f"corrupt_json:{e}"))
        fields = _identity_fields(obj)
        if fields is None:
            return await self._discard_local(MalformedLocalSession(reason="missing identity reference"))

        now = float(self.clock())
        expires_at = _to_epoch(obj.get("expires_at"))
        if expires_at is not None and expires_at <= now:
            self.logger.info(f"Local session for {fields['identity_ref']} expired; clearing")
            await self.store.clear_local_session()
            return None

        issued_at = _to_epoch(obj.get("issued_at")) or now
        try:
            return LocalSession(issued_at=issued_at, **fields)
        except ValueError as e:
            return await self._discard_local(MalformedLocalSession(reason=f"invalid fields: {e.__class__.__name__}"))

    async def _resolve_remote(self) -> Optional[RemoteSession]:
        res = await self.store.get_remote_session()
        if not res.ok:
            self._note(StorageUnavailable(slot="remote", error=res.error))
            return None
        fields = _identity_fields(res.value)
        if fields is None:
            return None
        issued_at = _to_epoch(res.value.get("issued_at")) or float(self.clock())
        try:
            return RemoteSession(issued_at=issued_at, **fields)
        except ValueError as e:
            self.logger.warning(f"Remote session for {fields['identity_ref']} rejected: {e}")
            return None

    async def _discard_local(self, err: MalformedLocalSession) -> None:
        self._note(err)
        cleared = await self.store.clear_local_session()
        if not cleared.ok:
            self.logger.warning(f"Could not clear corrupt local session: {cleared.error}")
        return None

    def _note(self, err: Exception) -> None:
        ctx = getattr(err, "context", {})
        self.logger.warning(f"Session lookup degraded ({getattr(err, 'code', type(err).__name__)}): {ctx}")


def _to_epoch(value: Any) -> Optional[float]:
    """Session timestamps come as ISO strings, epoch seconds, or epoch millis."""
    ts = ts_from_iso(value)
    if ts is None:
        return None
    if ts > 100_000_000_000:
        ts = ts / 1000.0
    return ts
