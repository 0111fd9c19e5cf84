from __future__ import annotations

import asyncio
import json
import os

from nexus.core.audit.models import AdminAction, AdminLogEntry
from nexus.core.identity.models import BanUpdate
from nexus.core.store.local import LocalIdentityStore


def test_seeds_demo_identities_newest_first(tmp_path):
    store = LocalIdentityStore(data_dir=str(tmp_path))
    res = asyncio.run(store.list_identities())
    assert res.ok
    names = [i.username for i in res.value]
    assert len(names) == 8
    assert names[0] == "kaito_admin"
    assert names[-1] == "lord_nikon"


def test_no_seed_means_empty(tmp_path):
    store = LocalIdentityStore(data_dir=str(tmp_path), seed_demo=False)
    res = asyncio.run(store.list_identities())
    assert res.ok and res.value == []


def test_ban_update_persists_iso_expiry(tmp_path):
    store = LocalIdentityStore(data_dir=str(tmp_path))
    res = asyncio.run(store.update_ban_state("3", BanUpdate(banned=True, expires_at=1_700_000_000.0, reason="spam")))
    assert res.ok and res.value.banned is True
    with open(store.users_path, "r", encoding="utf-8") as f:
        rows = {r["id"]: r for r in json.load(f)}
    assert rows["3"]["ban_until"] == "2023-11-14T22:13:20Z"
    assert rows["3"]["ban_reason"] == "spam"
    again = asyncio.run(store.get_identity("tester@google.com"))
    assert again.value.id == "3"
    assert again.value.ban_expires_at == 1_700_000_000.0


def test_update_and_delete_unknown_are_absent(tmp_path):
    store = LocalIdentityStore(data_dir=str(tmp_path))
    assert asyncio.run(store.update_ban_state("nope", BanUpdate(banned=True))).value is None
    assert asyncio.run(store.delete_identity("nope")).value is None


def test_delete_removes_row(tmp_path):
    store = LocalIdentityStore(data_dir=str(tmp_path))
    gone = asyncio.run(store.delete_identity("8"))
    assert gone.value.username == "lord_nikon"
    assert asyncio.run(store.get_identity("8")).value is None


def test_session_slot_round_trip(tmp_path):
    store = LocalIdentityStore(data_dir=str(tmp_path))

    async def run():
        empty = await store.get_local_session()
        await store.set_local_session('{"user": {"id": "x"}}')
        stored = await store.get_local_session()
        await store.clear_local_session()
        cleared = await store.get_local_session()
        return empty.value, stored.value, cleared.value

    assert asyncio.run(run()) == (None, '{"user": {"id": "x"}}', None)
    assert not os.path.exists(store.session_path)


def test_corrupt_users_file_is_a_failed_result(tmp_path):
    store = LocalIdentityStore(data_dir=str(tmp_path))
    with open(store.users_path, "w", encoding="utf-8") as f:
        f.write("{broken")
    res = asyncio.run(store.get_identity("1"))
    assert res.ok is False
    assert "users.json" in res.error


def test_audit_log_is_hash_chained(tmp_path):
    store = LocalIdentityStore(data_dir=str(tmp_path))

    async def run():
        for i in range(3):
            await store.append_audit_log(AdminLogEntry(actor_identity_ref="1", action_kind=AdminAction.BAN, target_identity_ref="2", detail_text=f"#{i}", occurred_at=1000.0 + i))
        return await store.list_audit_log(limit=2)

    res = asyncio.run(run())
    assert [e.detail_text for e in res.value] == ["#2", "#1"]
    assert store.audit.verify() is True


def test_watched_paths_cover_users_and_session(tmp_path):
    store = LocalIdentityStore(data_dir=str(tmp_path))
    assert store.watched_paths == [store.users_path, store.session_path]


def test_seeded_messages_join_their_authors(tmp_path):
    store = LocalIdentityStore(data_dir=str(tmp_path))
    res = asyncio.run(store.list_messages(limit=2))
    assert res.ok
    assert [m.id for m in res.value] == ["m1", "m2"]
    assert res.value[0].author_username == "kaito_admin"
    assert res.value[1].author_email == "zero@hack.net"


def test_message_delete_rewrites_file(tmp_path):
    store = LocalIdentityStore(data_dir=str(tmp_path))
    res = asyncio.run(store.delete_message("m3"))
    assert res.ok and res.value.author_username == "shadow_user"
    with open(store.messages_path, "r", encoding="utf-8") as f:
        assert [r["id"] for r in json.load(f)] == ["m1", "m2", "m4"]
    assert asyncio.run(store.delete_message("m3")).value is None


def test_corrupt_messages_file_is_failed_result(tmp_path):
    store = LocalIdentityStore(data_dir=str(tmp_path))
    with open(store.messages_path, "w", encoding="utf-8") as f:
        f.write("{oops")
    assert asyncio.run(store.list_messages()).ok is False
