from __future__ import annotations

import asyncio
import json

import pytest

from nexus.core.audit.logger import AuditLogger
from nexus.core.auth import LoginService, hash_passphrase, verify_passphrase
from nexus.core.config.models import CredentialEntry
from nexus.core.errors import PermissionDeniedError, StorageUnavailable, ValidationError
from nexus.core.events.bus import SignalBus

from .helpers.fakes import TEST_CODE


def test_digest_verifies_only_the_right_code(test_digest):
    assert test_digest.startswith("scrypt$1024$8$1$")
    assert verify_passphrase(TEST_CODE, test_digest) is True
    assert verify_passphrase("nexus-test-cod", test_digest) is False


@pytest.mark.parametrize("encoded", ["", "plain", "scrypt$x$8$1$00$00", "bcrypt$1024$8$1$00$00", "scrypt$1024$8$1$zz$00"])
def test_malformed_digest_never_verifies(encoded):
    assert verify_passphrase(TEST_CODE, encoded) is False


def test_empty_passphrase_cannot_be_hashed():
    with pytest.raises(ValidationError):
        hash_passphrase("")


def test_salt_makes_digests_differ():
    assert hash_passphrase("same", n=2**10) != hash_passphrase("same", n=2**10)


def _service(store, clock, digest):
    bus = SignalBus()
    cred = CredentialEntry(digest=digest, identity_ref="op-1", email="op@example.test", display_name="Op")
    return LoginService(store=store, audit=AuditLogger(store=store, bus=bus), bus=bus, credentials=[cred], session_ttl_seconds=600, clock=clock.time)


def test_login_writes_session_with_ttl(store, clock, test_digest):
    svc = _service(store, clock, test_digest)
    session = asyncio.run(svc.login(TEST_CODE))
    assert (session.identity_ref, session.kind) == ("op-1", "local")
    record = json.loads(store.local_session_raw)
    assert record["expires_at"] == clock.time() + 600
    assert record["user"]["id"] == "op-1"
    assert store.audit_entries[-1].detail_text == "Op opened a console session."


def test_login_rejects_wrong_code_without_side_effects(store, clock, test_digest):
    svc = _service(store, clock, test_digest)
    with pytest.raises(PermissionDeniedError):
        asyncio.run(svc.login("wrong"))
    assert store.local_session_raw is None
    assert store.audit_entries == []


def test_logout_failure_surfaces(store, clock, test_digest):
    svc = _service(store, clock, test_digest)

    async def broken_clear():
        from nexus.core.store.interface import StoreResult

        return StoreResult.failed("disk full")

    store.clear_local_session = broken_clear
    with pytest.raises(StorageUnavailable):
        asyncio.run(svc.logout("op-1"))
