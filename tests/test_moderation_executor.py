from __future__ import annotations

import asyncio
import logging

import pytest

from nexus.core.audit.logger import AuditLogger
from nexus.core.audit.models import AdminAction
from nexus.core.clock import PERMANENT_EXPIRES_AT
from nexus.core.events.bus import SignalBus
from nexus.core.events.models import RESYNC_REQUESTED
from nexus.core.identity.models import Operator, PermissionTier
from nexus.core.moderation.executor import ModerationActionExecutor
from nexus.core.moderation.models import ModerationAction, ModerationRequest

from .helpers.log_assertions import assert_log_mentions

DAY = 86400

ELEVATED = Operator(identity_ref="u1", display_name="kaito_admin", tier=PermissionTier.elevated)
STANDARD = Operator(identity_ref="u7", display_name="acid_burn", tier=PermissionTier.standard)


def _executor(store, clock, bus=None):
    bus = bus or SignalBus()
    return ModerationActionExecutor(store=store, audit=AuditLogger(store=store, bus=bus), bus=bus, clock=clock.time)


def _ban(target="u2", reason="spam", duration="1d", **kw):
    return ModerationRequest(target_identity_ref=target, action_kind=ModerationAction.BAN, reason=reason, duration_token=duration, **kw)


def _run(executor, request, acting):
    return asyncio.run(executor.execute(request, acting))


@pytest.mark.parametrize("reason", [None, "", "   "])
def test_ban_without_reason_writes_nothing(store, clock, reason):
    out = _run(_executor(store, clock), _ban(reason=reason), ELEVATED)
    assert out.ok is False
    assert out.error_code == "missing_reason"
    assert store.writes == 0
    assert store.audit_entries == []


def test_standard_tier_permanent_is_narrowed_to_one_day(store, clock):
    out = _run(_executor(store, clock), _ban(duration="permanent"), STANDARD)
    assert out.ok is True
    assert out.clamped is True
    assert out.expires_at == clock.time() + DAY
    stored = asyncio.run(store.get_identity("u2")).value
    assert stored.banned is True
    assert stored.ban_expires_at == clock.time() + DAY


def test_standard_tier_longer_offset_and_custom_are_narrowed(store, clock):
    ex = _executor(store, clock)
    week = _run(ex, _ban(duration="1w"), STANDARD)
    custom = _run(ex, _ban(duration="custom", custom_expires_at=clock.time() + 30 * DAY), STANDARD)
    assert (week.clamped, week.expires_at) == (True, clock.time() + DAY)
    assert (custom.clamped, custom.expires_at) == (True, clock.time() + DAY)


def test_standard_tier_short_offset_is_honoured(store, clock):
    out = _run(_executor(store, clock), _ban(duration="1h"), STANDARD)
    assert out.clamped is False
    assert out.expires_at == clock.time() + 3600
    assert out.duration_label == "1 hour"


def test_elevated_permanent_uses_far_future_expiry(store, clock):
    out = _run(_executor(store, clock), _ban(duration="permanent"), ELEVATED)
    assert out.ok is True
    assert out.clamped is False
    assert out.expires_at == PERMANENT_EXPIRES_AT


def test_elevated_custom_needs_future_timestamp(store, clock):
    ex = _executor(store, clock)
    past = _run(ex, _ban(duration="custom", custom_expires_at=clock.time() - 1), ELEVATED)
    missing = _run(ex, _ban(duration="custom"), ELEVATED)
    ok = _run(ex, _ban(duration="custom", custom_expires_at=clock.time() + 5 * DAY), ELEVATED)
    assert past.error_code == "validation_error"
    assert missing.error_code == "validation_error"
    assert ok.ok is True and ok.expires_at == clock.time() + 5 * DAY
    assert store.writes == 1


def test_unknown_duration_rejected_before_store_access(store, clock):
    out = _run(_executor(store, clock), _ban(duration="3y"), ELEVATED)
    assert out.error_code == "validation_error"
    assert store.writes == 0


def test_ban_records_audit_and_requests_resync(store, clock):
    bus = SignalBus()
    ex = _executor(store, clock, bus=bus)
    resyncs = []

    async def run():
        bus.subscribe(RESYNC_REQUESTED, lambda ev: resyncs.append(ev.payload))
        out = await ex.execute(_ban(reason="Spamming links"), ELEVATED)
        await bus.drain(timeout=2)
        return out

    out = asyncio.run(run())
    assert out.ok is True
    entries = store.audit_entries
    assert len(entries) == 1
    entry = entries[0]
    assert entry.action_kind == AdminAction.BAN
    assert entry.actor_identity_ref == "u1"
    assert entry.target_identity_ref == "u2"
    assert entry.detail_text == "kaito_admin banned shadow_user for 1 day. Reason: Spamming links"
    assert out.log_entry == entry
    assert resyncs == [{"identity_ref": "u2", "action": "BAN"}]


def test_target_not_found(store, clock):
    out = _run(_executor(store, clock), _ban(target="ghost"), ELEVATED)
    assert out.error_code == "identity_not_found"
    assert store.audit_entries == []


def test_target_found_by_email(store, clock):
    out = _run(_executor(store, clock), _ban(target="shadow_user@example.test"), ELEVATED)
    assert out.ok is True
    assert out.target_identity_ref == "u2"


def test_unban_clears_ban_fields(store, clock):
    ex = _executor(store, clock)
    _run(ex, _ban(), ELEVATED)
    out = _run(ex, ModerationRequest(target_identity_ref="u2", action_kind=ModerationAction.UNBAN), STANDARD)
    assert out.ok is True
    stored = asyncio.run(store.get_identity("u2")).value
    assert (stored.banned, stored.ban_expires_at, stored.ban_reason) == (False, None, None)
    assert store.audit_entries[-1].action_kind == AdminAction.UNBAN


def test_delete_requires_elevated_tier(store, clock):
    ex = _executor(store, clock)
    req = ModerationRequest(target_identity_ref="u3", action_kind=ModerationAction.DELETE_IDENTITY)
    denied = _run(ex, req, STANDARD)
    assert denied.error_code == "permission_denied"
    assert asyncio.run(store.get_identity("u3")).value is not None

    done = _run(ex, req, ELEVATED)
    assert done.ok is True
    assert asyncio.run(store.get_identity("u3")).value is None
    assert store.audit_entries[-1].action_kind == AdminAction.DELETE_IDENTITY


def test_audit_failure_does_not_block_the_action(store, clock):
    store.fail_audit = True
    ex = _executor(store, clock)
    out = _run(ex, _ban(), ELEVATED)
    assert out.ok is True
    assert asyncio.run(store.get_identity("u2")).value.banned is True
    assert ex.audit.failed_writes == 1


def test_store_write_failure_is_reported(store, clock):
    store.fail_writes = True
    out = _run(_executor(store, clock), _ban(), ELEVATED)
    assert out.error_code == "storage_unavailable"
    assert store.audit_entries == []


def test_narrowing_is_logged(store, clock, caplog):
    caplog.set_level(logging.INFO, logger="nexus.moderation")
    _run(_executor(store, clock), _ban(duration="permanent"), STANDARD)
    assert_log_mentions(caplog, "shadow_user narrowed to 1 day", "standard-tier acid_burn")
