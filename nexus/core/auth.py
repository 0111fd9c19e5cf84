from __future__ import annotations

import json
import logging
import secrets
import time
from typing import List, Optional, Sequence

from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from nexus.core.audit.logger import AuditLogger
from nexus.core.audit.models import AdminAction, AdminLogEntry
from nexus.core.clock import Clock
from nexus.core.config.models import CredentialEntry
from nexus.core.errors import PermissionDeniedError, StorageUnavailable, ValidationError
from nexus.core.events.bus import SignalBus
from nexus.core.events.models import RESYNC_REQUESTED, Signal, SignalSource
from nexus.core.identity.models import LocalSession
from nexus.core.store.interface import IdentityStore


_SCHEME = "scrypt"


def _scrypt_hash(passphrase: str, salt: bytes, n: int = 2**14, r: int = 8, p: int = 1) -> bytes:
    kdf = Scrypt(salt=salt, length=32, n=n, r=r, p=p)
    return kdf.derive(passphrase.encode("utf-8"))


def hash_passphrase(passphrase: str, *, n: int = 2**14, r: int = 8, p: int = 1) -> str:
    """Encode as `scrypt$n$r$p$salt_hex$digest_hex`."""
    if not passphrase:
        raise ValidationError("Passphrase must not be empty.")
    salt = secrets.token_bytes(16)
    digest = _scrypt_hash(passphrase, salt, n=n, r=r, p=p)
    return f"{_SCHEME}${n}${r}${p}${salt.hex()}${digest.hex()}"


def verify_passphrase(passphrase: str, encoded: str) -> bool:
    parts = str(encoded or "").split("$")
    if len(parts) != 6 or parts[0] != _SCHEME:
        return False
    try:
        n, r, p = int(parts[1]), int(parts[2]), int(parts[3])
        salt = bytes.fromhex(parts[4])
        expected = bytes.fromhex(parts[5])
    except ValueError:
        return False
    digest = _scrypt_hash(passphrase, salt, n=n, r=r, p=p)
    return secrets.compare_digest(digest, expected)


class LoginService:
    """
    Static-credential console login.

    A successful login writes the manual local session record; the sync
    pipeline picks it up through `resync-requested`, it never reads this
    service directly.
    """

    def __init__(
        self,
        *,
        store: IdentityStore,
        audit: AuditLogger,
        bus: SignalBus,
        credentials: Sequence[CredentialEntry],
        session_ttl_seconds: int = 3600,
        clock: Clock = time.time,
        logger: Optional[logging.Logger] = None,
    ):
        self.store = store
        self.audit = audit
        self.bus = bus
        self.credentials: List[CredentialEntry] = list(credentials)
        self.session_ttl_seconds = int(session_ttl_seconds)
        self.clock = clock
        self.logger = logger or logging.getLogger("nexus.auth")

    def match(self, passphrase: str) -> Optional[CredentialEntry]:
        if not passphrase:
            return None
        for cred in self.credentials:
            if verify_passphrase(passphrase, cred.digest):
                return cred
        return None

    async def login(self, passphrase: str) -> LocalSession:
        cred = self.match(passphrase)
        if cred is None:
            self.logger.warning("Console login rejected: invalid access code")
            raise PermissionDeniedError("Invalid access code.")

        now = float(self.clock())
        record = {
            "user": {"id": cred.identity_ref, "email": cred.email, "name": cred.display_name},
            "issued_at": now,
            "expires_at": now + self.session_ttl_seconds,
        }
        res = await self.store.set_local_session(json.dumps(record, ensure_ascii=False))
        if not res.ok:
            raise StorageUnavailable("Could not persist the console session.", error=res.error)

        self.logger.info(f"Operator {cred.identity_ref} logged in")
        await self.audit.record(
            AdminLogEntry(
                actor_identity_ref=cred.identity_ref,
                action_kind=AdminAction.LOGIN,
                detail_text=f"{cred.display_name or cred.email} opened a console session.",
                occurred_at=now,
            )
        )
        self._resync("login")
        return LocalSession(identity_ref=cred.identity_ref, issued_at=now, display_name=cred.display_name, email=cred.email)

    async def logout(self, actor_identity_ref: Optional[str] = None, *, actor_label: Optional[str] = None) -> None:
        res = await self.store.clear_local_session()
        if not res.ok:
            raise StorageUnavailable("Could not clear the console session.", error=res.error)
        if actor_identity_ref:
            self.logger.info(f"Operator {actor_identity_ref} logged out")
            await self.audit.record(
                AdminLogEntry(
                    actor_identity_ref=actor_identity_ref,
                    action_kind=AdminAction.LOGOUT,
                    detail_text=f"{actor_label or actor_identity_ref} closed the console session.",
                    occurred_at=float(self.clock()),
                )
            )
        self._resync("logout")

    def _resync(self, reason: str) -> None:
        self.bus.publish(Signal(name=RESYNC_REQUESTED, source=SignalSource.auth, payload={"reason": reason}))
