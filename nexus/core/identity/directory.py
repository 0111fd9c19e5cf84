from __future__ import annotations

import time
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from nexus.core.clock import Clock
from nexus.core.errors import StorageUnavailable
from nexus.core.identity.ban import effective_ban
from nexus.core.identity.models import BanState, Identity, IdentityStatus
from nexus.core.store.interface import IdentityStore


class DirectoryFilter(str, Enum):
    all = "all"
    active = "active"
    banned = "banned"


class DirectoryRow(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    identity: Identity
    ban: BanState


class DirectoryOverview(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    total: int
    banned: int
    online: int


class IdentityDirectory:
    """Read-only identity listing for the operator screens."""

    def __init__(self, *, store: IdentityStore, clock: Clock = time.time):
        self.store = store
        self.clock = clock

    async def identities(self) -> List[Identity]:
        res = await self.store.list_identities()
        if not res.ok:
            raise StorageUnavailable(error=res.error)
        return list(res.value or [])

    async def list(self, *, filter: DirectoryFilter = DirectoryFilter.all, search: Optional[str] = None) -> List[DirectoryRow]:
        now = float(self.clock())
        needle = (search or "").strip().lower()
        out: List[DirectoryRow] = []
        for ident in await self.identities():
            ban = effective_ban(ident, now)
            if filter == DirectoryFilter.active and ban.banned:
                continue
            if filter == DirectoryFilter.banned and not ban.banned:
                continue
            if needle and needle not in ident.username.lower() and needle not in (ident.email or "").lower():
                continue
            out.append(DirectoryRow(identity=ident, ban=ban))
        return out

    async def overview(self) -> DirectoryOverview:
        now = float(self.clock())
        idents = await self.identities()
        return DirectoryOverview(
            total=len(idents),
            banned=sum(1 for i in idents if effective_ban(i, now).banned),
            online=sum(1 for i in idents if i.status == IdentityStatus.online),
        )
