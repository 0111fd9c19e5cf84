from __future__ import annotations

import logging
import time
from typing import Optional

from nexus.core.audit.logger import AuditLogger
from nexus.core.audit.models import AdminAction, AdminLogEntry
from nexus.core.clock import Clock
from nexus.core.errors import (
    IdentityNotFound,
    MissingReason,
    NexusError,
    PermissionDeniedError,
    StorageUnavailable,
)
from nexus.core.events.bus import SignalBus
from nexus.core.events.models import RESYNC_REQUESTED, Signal, SignalSource
from nexus.core.identity.models import BanUpdate, Identity, Operator, PermissionTier
from nexus.core.moderation.durations import FIXED_DURATIONS, STANDARD_TIER_TOKEN, resolve_duration
from nexus.core.moderation.models import ModerationAction, ModerationOutcome, ModerationRequest
from nexus.core.store.interface import IdentityStore


class ModerationActionExecutor:
    """
    Runs privileged identity transitions.

    Order on success: store write -> audit record -> `resync-requested`.
    The committed session snapshot is never touched here; a just-banned
    operator is logged out by the next sync pass.
    """

    def __init__(
        self,
        *,
        store: IdentityStore,
        audit: AuditLogger,
        bus: SignalBus,
        clock: Clock = time.time,
        standard_max_seconds: int = FIXED_DURATIONS[STANDARD_TIER_TOKEN][0],
        logger: Optional[logging.Logger] = None,
    ):
        self.store = store
        self.audit = audit
        self.bus = bus
        self.clock = clock
        self.standard_max_seconds = int(standard_max_seconds)
        self.logger = logger or logging.getLogger("nexus.moderation")

    async def execute(self, request: ModerationRequest, acting: Operator) -> ModerationOutcome:
        try:
            if request.action_kind == ModerationAction.BAN:
                return await self._ban(request, acting)
            if request.action_kind == ModerationAction.UNBAN:
                return await self._unban(request, acting)
            return await self._delete(request, acting)
        except NexusError as e:
            return self._failed(request, e)

    # ---- actions ----
    async def _ban(self, request: ModerationRequest, acting: Operator) -> ModerationOutcome:
        reason = (request.reason or "").strip()
        if not reason:
            raise MissingReason(target=request.target_identity_ref)

        now = float(self.clock())
        # Unknown tokens are rejected before any store access.
        duration = resolve_duration(
            request.duration_token,
            tier=acting.tier,
            now=now,
            custom_expires_at=request.custom_expires_at,
            standard_max_seconds=self.standard_max_seconds,
        )
        target = await self._target(request.target_identity_ref)
        if duration.clamped:
            self.logger.info(
                f"Ban duration for {target.username} narrowed to {duration.label} "
                f"(requested {request.duration_token or 'permanent'} by standard-tier {acting.label})"
            )

        await self._write(self.store.update_ban_state(target.id, BanUpdate(banned=True, expires_at=duration.expires_at, reason=reason)), target)
        entry = AdminLogEntry(
            actor_identity_ref=acting.identity_ref,
            action_kind=AdminAction.BAN,
            target_identity_ref=target.id,
            detail_text=f"{acting.label} banned {target.username} for {duration.label}. Reason: {reason}",
            occurred_at=now,
        )
        return await self._finish(request, target, entry, expires_at=duration.expires_at, label=duration.label, clamped=duration.clamped)

    async def _unban(self, request: ModerationRequest, acting: Operator) -> ModerationOutcome:
        target = await self._target(request.target_identity_ref)
        await self._write(self.store.update_ban_state(target.id, BanUpdate(banned=False, expires_at=None, reason=None)), target)
        reason = (request.reason or "").strip()
        detail = f"{acting.label} reinstated access for {target.username}."
        if reason:
            detail = f"{detail} Reason: {reason}"
        entry = AdminLogEntry(
            actor_identity_ref=acting.identity_ref,
            action_kind=AdminAction.UNBAN,
            target_identity_ref=target.id,
            detail_text=detail,
            occurred_at=float(self.clock()),
        )
        return await self._finish(request, target, entry)

    async def _delete(self, request: ModerationRequest, acting: Operator) -> ModerationOutcome:
        if acting.tier != PermissionTier.elevated:
            raise PermissionDeniedError("Deleting an identity requires the elevated tier.", actor=acting.identity_ref)
        target = await self._target(request.target_identity_ref)
        await self._write(self.store.delete_identity(target.id), target)
        reason = (request.reason or "").strip()
        detail = f"{acting.label} deleted identity {target.username} ({target.email or target.id})."
        if reason:
            detail = f"{detail} Reason: {reason}"
        entry = AdminLogEntry(
            actor_identity_ref=acting.identity_ref,
            action_kind=AdminAction.DELETE_IDENTITY,
            target_identity_ref=target.id,
            detail_text=detail,
            occurred_at=float(self.clock()),
        )
        return await self._finish(request, target, entry)

    # ---- helpers ----
    async def _target(self, ref: str) -> Identity:
        res = await self.store.get_identity(ref)
        if not res.ok:
            raise StorageUnavailable(target=ref, error=res.error)
        if res.value is None:
            raise IdentityNotFound(f"No identity matches '{ref}'.", target=ref)
        return res.value

    async def _write(self, op, target: Identity) -> None:  # noqa: ANN001
        res = await op
        if not res.ok:
            raise StorageUnavailable(target=target.id, error=res.error)
        if res.value is None:
            # Vanished between lookup and write.
            raise IdentityNotFound(f"No identity matches '{target.id}'.", target=target.id)

    async def _finish(
        self,
        request: ModerationRequest,
        target: Identity,
        entry: AdminLogEntry,
        *,
        expires_at: Optional[float] = None,
        label: Optional[str] = None,
        clamped: bool = False,
    ) -> ModerationOutcome:
        await self.audit.record(entry)
        self.bus.publish(
            Signal(
                name=RESYNC_REQUESTED,
                source=SignalSource.moderation,
                payload={"identity_ref": target.id, "action": request.action_kind.value},
            )
        )
        return ModerationOutcome(
            ok=True,
            action_kind=request.action_kind,
            target_identity_ref=target.id,
            expires_at=expires_at,
            duration_label=label,
            clamped=clamped,
            log_entry=entry,
        )

    def _failed(self, request: ModerationRequest, err: NexusError) -> ModerationOutcome:
        self.logger.warning(f"{request.action_kind.value} on {request.target_identity_ref} rejected: {err.code}")
        return ModerationOutcome(ok=False, action_kind=request.action_kind, target_identity_ref=request.target_identity_ref, error=err)
