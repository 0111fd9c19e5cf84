from __future__ import annotations

import asyncio

import pytest

from nexus.core.audit.logger import AuditLogger
from nexus.core.audit.models import AdminAction
from nexus.core.errors import MessageNotFound, StorageUnavailable, ValidationError
from nexus.core.events.bus import SignalBus
from nexus.core.events.models import TOAST_PUBLISHED
from nexus.core.identity.models import Operator, PermissionTier
from nexus.core.moderation.messages import MessageReview

from .helpers.fakes import make_message

STANDARD = Operator(identity_ref="u7", display_name="acid_burn", tier=PermissionTier.standard)


@pytest.fixture
def review(store, clock):
    store.put_message(make_message("m1", "u2", "buy cheap boosts", created_at=clock.time() - 60))
    store.put_message(make_message("m2", "u3", "hello there", created_at=clock.time()))
    store.put_message(make_message("m3", "ghost", "orphaned", created_at=clock.time() - 120))
    return MessageReview(store=store, audit=AuditLogger(store=store, bus=SignalBus()), clock=clock.time)


def test_listing_is_newest_first_with_authors_joined(review):
    rows = asyncio.run(review.list())
    assert [m.id for m in rows] == ["m2", "m1", "m3"]
    assert rows[0].author_username == "beta_tester"
    assert rows[0].author_email == "beta_tester@example.test"
    # No matching identity: the raw reference stands in for the author.
    assert rows[2].author_username is None
    assert rows[2].author_label == "ghost"


def test_listing_honours_limit(review):
    assert [m.id for m in asyncio.run(review.list(limit=1))] == ["m2"]


def test_delete_removes_and_records_audit_entry(review, store, clock):
    msg = asyncio.run(review.delete("m1", STANDARD))
    assert msg.id == "m1"
    assert [m.id for m in asyncio.run(review.list())] == ["m2", "m3"]
    entry = store.audit_entries[-1]
    assert entry.action_kind == AdminAction.DELETE_MESSAGE
    assert entry.actor_identity_ref == "u7"
    assert entry.target_identity_ref == "u2"
    assert entry.occurred_at == clock.time()
    assert entry.detail_text == 'acid_burn removed message m1 from shadow_user: "buy cheap boosts"'


def test_delete_publishes_toast(store, clock):
    bus = SignalBus()
    seen = []
    store.put_message(make_message("m1", "u2", "x"))
    review = MessageReview(store=store, audit=AuditLogger(store=store, bus=bus), clock=clock.time)

    async def run():
        bus.subscribe(TOAST_PUBLISHED, lambda sig: seen.append(sig.payload))
        await review.delete("m1", STANDARD)
        await bus.drain(timeout=1.0)

    asyncio.run(run())
    assert seen and seen[0]["title"] == "Operator removed a message"


def test_unknown_message_is_not_found_and_not_audited(review, store):
    with pytest.raises(MessageNotFound):
        asyncio.run(review.delete("nope", STANDARD))
    with pytest.raises(ValidationError):
        asyncio.run(review.delete("  ", STANDARD))
    assert store.audit_entries == []


def test_store_outage_surfaces(review, store):
    store.fail_reads = True
    store.fail_writes = True
    with pytest.raises(StorageUnavailable):
        asyncio.run(review.list())
    with pytest.raises(StorageUnavailable):
        asyncio.run(review.delete("m1", STANDARD))
    assert store.audit_entries == []


def test_long_content_is_shortened_in_the_log(store, clock):
    store.put_message(make_message("m9", "u2", "word " * 60))
    review = MessageReview(store=store, audit=AuditLogger(store=store), clock=clock.time)
    asyncio.run(review.delete("m9", STANDARD))
    detail = store.audit_entries[-1].detail_text
    assert detail.endswith('..."')
    assert len(detail) < 140
