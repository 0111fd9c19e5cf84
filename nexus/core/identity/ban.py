from __future__ import annotations

import logging
import time
from typing import Iterable, Optional

from nexus.core.clock import Clock
from nexus.core.identity.models import BanState, Identity
from nexus.core.store.interface import IdentityStore


def effective_ban(identity: Identity, now: float) -> BanState:
    """Expiry-aware ban state for a stored identity; a lapsed ban reads as not banned."""
    if identity.banned and identity.ban_expires_at is not None and identity.ban_expires_at < now:
        return BanState(identity_ref=identity.id, banned=False)
    return BanState(
        identity_ref=identity.id,
        banned=bool(identity.banned),
        reason=identity.ban_reason,
        expires_at=identity.ban_expires_at,
    )


class BanEvaluator:
    def __init__(
        self,
        *,
        store: IdentityStore,
        root_identities: Iterable[str] = (),
        clock: Clock = time.time,
        logger: Optional[logging.Logger] = None,
    ):
        self.store = store
        self.root_identities = frozenset(str(r) for r in root_identities)
        self.clock = clock
        self.logger = logger or logging.getLogger("nexus.identity")

    def is_root(self, identity_ref: str) -> bool:
        return str(identity_ref) in self.root_identities

    async def evaluate(self, identity_ref: str, *, now: Optional[float] = None) -> BanState:
        ref = str(identity_ref)
        # Root identities never touch the store.
        if self.is_root(ref):
            return BanState(identity_ref=ref, banned=False)

        res = await self.store.get_identity(ref)
        if not res.ok:
            self.logger.warning(f"Ban lookup for {ref} failed, treating as not banned: {res.error}")
            return BanState(identity_ref=ref, banned=False)
        if res.value is None:
            return BanState(identity_ref=ref, banned=False, reason=None)

        state = effective_ban(res.value, float(now if now is not None else self.clock()))
        # The store may match by email; report against the ref that was asked for.
        return state.model_copy(update={"identity_ref": ref})
