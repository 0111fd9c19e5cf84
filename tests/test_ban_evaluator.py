from __future__ import annotations

import asyncio

from nexus.core.identity.ban import BanEvaluator, effective_ban
from nexus.core.store.memory import InMemoryIdentityStore

from .helpers.fakes import make_identity


def _evaluate(store, clock, ref, roots=()):
    ev = BanEvaluator(store=store, root_identities=roots, clock=clock.time)
    return asyncio.run(ev.evaluate(ref))


def test_root_identity_is_never_banned(clock):
    store = InMemoryIdentityStore([make_identity("root", "root_admin", banned=True, ban_reason="x")])
    state = _evaluate(store, clock, "root", roots=["root"])
    assert state.banned is False
    assert state.identity_ref == "root"


def test_root_bypass_does_not_touch_store(clock):
    store = InMemoryIdentityStore()
    store.fail_reads = True
    assert _evaluate(store, clock, "root", roots=["root"]).banned is False


def test_lapsed_ban_reads_as_not_banned(clock):
    ident = make_identity("u2", "shadow_user", banned=True, ban_reason="spam", ban_expires_at=clock.time() - 1)
    assert _evaluate(InMemoryIdentityStore([ident]), clock, "u2").banned is False


def test_active_ban_carries_reason_and_expiry(clock):
    until = clock.time() + 3600
    ident = make_identity("u2", "shadow_user", banned=True, ban_reason="spam", ban_expires_at=until)
    state = _evaluate(InMemoryIdentityStore([ident]), clock, "u2")
    assert state.banned is True
    assert state.reason == "spam"
    assert state.expires_at == until


def test_ban_without_expiry_is_permanent(clock):
    ident = make_identity("u2", "shadow_user", banned=True, ban_reason="spam")
    state = _evaluate(InMemoryIdentityStore([ident]), clock, "u2")
    assert state.banned is True
    assert state.permanent


def test_unknown_identity_is_not_banned(clock):
    state = _evaluate(InMemoryIdentityStore(), clock, "ghost")
    assert state.banned is False
    assert state.reason is None


def test_store_failure_is_not_banned(clock):
    store = InMemoryIdentityStore([make_identity("u2", "shadow_user", banned=True)])
    store.fail_reads = True
    assert _evaluate(store, clock, "u2").banned is False


def test_lookup_by_email_reports_requested_ref(clock):
    ident = make_identity("u2", "shadow_user", email="shadow@dark.net", banned=True, ban_reason="spam")
    state = _evaluate(InMemoryIdentityStore([ident]), clock, "shadow@dark.net")
    assert state.banned is True
    assert state.identity_ref == "shadow@dark.net"


def test_effective_ban_boundary(clock):
    now = clock.time()
    ident = make_identity("u2", "shadow_user", banned=True, ban_expires_at=now)
    # Expiry equal to now is still in force; strictly past is lapsed.
    assert effective_ban(ident, now).banned is True
    assert effective_ban(ident, now + 0.001).banned is False
