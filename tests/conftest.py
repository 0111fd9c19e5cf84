from __future__ import annotations

import pytest

from nexus.core.config.models import AuthConfig, ConsoleConfig, CredentialEntry, OperatorsConfig
from nexus.core.identity.models import IdentityStatus
from nexus.core.store.memory import InMemoryIdentityStore

from .helpers.fakes import TEST_CODE, FakeClock, make_identity


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def identities():
    return [
        make_identity("u1", "kaito_admin", status=IdentityStatus.online),
        make_identity("u2", "shadow_user"),
        make_identity("u3", "beta_tester"),
        make_identity("u7", "acid_burn", status=IdentityStatus.online),
    ]


@pytest.fixture
def store(identities):
    return InMemoryIdentityStore(identities)


@pytest.fixture(scope="session")
def test_digest():
    from nexus.core.auth import hash_passphrase

    return hash_passphrase(TEST_CODE, n=2**10)


@pytest.fixture
def console_cfg(test_digest):
    return ConsoleConfig(
        operators=OperatorsConfig(root_identities=["nexus-admin-master"], elevated_identities=["u1"]),
        auth=AuthConfig(
            session_ttl_seconds=3600,
            credentials=[CredentialEntry(digest=test_digest, identity_ref="nexus-admin-master", email="master@nexus.admin", display_name="Burak")],
        ),
    )
