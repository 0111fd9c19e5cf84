from __future__ import annotations

import asyncio

from nexus.core.identity.models import LocalSession, RemoteSession
from nexus.core.identity.resolver import SessionResolver
from nexus.core.store.memory import InMemoryIdentityStore

from .helpers.fakes import local_session_json, remote_session


def _resolver(store, clock):
    return SessionResolver(store=store, clock=clock.time)


def test_local_session_wins_over_remote(clock):
    store = InMemoryIdentityStore(
        local_session=local_session_json("u1", issued_at=clock.time(), name="Kaito"),
        remote_session=remote_session("u2"),
    )
    s = asyncio.run(_resolver(store, clock).resolve())
    assert isinstance(s, LocalSession)
    assert s.identity_ref == "u1"
    assert s.display_name == "Kaito"


def test_remote_session_used_when_no_local(clock):
    store = InMemoryIdentityStore(remote_session=remote_session("u2", email="shadow@dark.net"))
    s = asyncio.run(_resolver(store, clock).resolve())
    assert isinstance(s, RemoteSession)
    assert s.identity_ref == "u2"
    assert s.email == "shadow@dark.net"


def test_no_sessions_resolves_to_none(clock):
    assert asyncio.run(_resolver(InMemoryIdentityStore(), clock).resolve()) is None


def test_malformed_local_falls_back_to_remote_and_clears_slot(clock):
    store = InMemoryIdentityStore(local_session="{not json", remote_session=remote_session("u2"))
    s = asyncio.run(_resolver(store, clock).resolve())
    assert isinstance(s, RemoteSession)
    assert s.identity_ref == "u2"
    assert store.local_session_raw is None


def test_wrong_typed_local_fields_fall_back_to_remote_and_clear_slot(clock):
    store = InMemoryIdentityStore(local_session='{"user": {"id": "u1", "name": 123}}', remote_session=remote_session("u2"))
    s = asyncio.run(_resolver(store, clock).resolve())
    assert isinstance(s, RemoteSession)
    assert s.identity_ref == "u2"
    assert store.local_session_raw is None


def test_wrong_typed_remote_fields_read_as_unauthenticated(clock):
    store = InMemoryIdentityStore(remote_session={"user": {"id": "u2", "email": 5}})
    assert asyncio.run(_resolver(store, clock).resolve()) is None


def test_local_without_identity_is_discarded(clock):
    store = InMemoryIdentityStore(local_session='{"user": {"email": "x@y.z"}}')
    assert asyncio.run(_resolver(store, clock).resolve()) is None
    assert store.local_session_raw is None


def test_expired_local_session_is_cleared(clock):
    raw = local_session_json("u1", issued_at=clock.time() - 7200, expires_at=clock.time() - 1)
    store = InMemoryIdentityStore(local_session=raw, remote_session=remote_session("u2"))
    s = asyncio.run(_resolver(store, clock).resolve())
    # Remote still answers once the manual override has lapsed.
    assert isinstance(s, RemoteSession)
    assert store.local_session_raw is None


def test_millisecond_expiry_is_understood(clock):
    raw = local_session_json("u1", issued_at=clock.time(), expires_at=(clock.time() + 600) * 1000)
    store = InMemoryIdentityStore(local_session=raw)
    s = asyncio.run(_resolver(store, clock).resolve())
    assert s is not None and s.identity_ref == "u1"


def test_remote_failure_reads_as_unauthenticated(clock):
    store = InMemoryIdentityStore(remote_session=remote_session("u2"))
    store.fail_remote = True
    assert asyncio.run(_resolver(store, clock).resolve()) is None
