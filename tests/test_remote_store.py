from __future__ import annotations

import asyncio

import requests

from nexus.core.audit.models import AdminAction, AdminLogEntry
from nexus.core.identity.ban import BanEvaluator
from nexus.core.identity.models import BanUpdate
from nexus.core.store.remote import RemoteIdentityStore, RemoteStoreConfig

from .helpers.fakes import FakeHttp, FakeResponse

ROW = {
    "id": "u2",
    "username": "shadow_user",
    "email": "shadow@dark.net",
    "banned": True,
    "ban_until": "2023-11-14T22:13:20Z",
    "ban_reason": "spam",
    "created_at": "2023-01-01T00:00:00Z",
    "status": "offline",
}


def _store(http, token=None):
    cfg = RemoteStoreConfig(base_url="https://demo.example.test", api_key="anon-key", access_token=token)
    return RemoteIdentityStore(cfg=cfg, http=http)


def test_get_identity_parses_profile_row():
    http = FakeHttp()
    http.route("GET", "/rest/v1/profiles", FakeResponse(200, [ROW]))
    res = asyncio.run(_store(http).get_identity("u2"))
    assert res.ok
    ident = res.value
    assert (ident.username, ident.banned, ident.ban_reason) == ("shadow_user", True, "spam")
    assert ident.ban_expires_at == 1_700_000_000.0
    call = http.calls[0]
    assert call["params"]["id"] == "eq.u2"
    assert call["headers"]["apikey"] == "anon-key"


def test_get_identity_falls_back_to_email():
    http = FakeHttp()

    def profiles(kwargs):
        params = kwargs.get("params") or {}
        return FakeResponse(200, [ROW] if params.get("email") == "eq.shadow@dark.net" else [])

    http.route("GET", "/rest/v1/profiles", profiles)
    res = asyncio.run(_store(http).get_identity("shadow@dark.net"))
    assert res.value.id == "u2"
    assert len(http.calls) == 2


def test_missing_row_is_absent():
    http = FakeHttp()
    http.route("GET", "/rest/v1/profiles", FakeResponse(200, []))
    res = asyncio.run(_store(http).get_identity("ghost"))
    assert res.ok and res.value is None


def test_network_error_is_failed_result():
    http = FakeHttp()
    http.route("GET", "/rest/v1/profiles", requests.ConnectionError("down"))
    res = asyncio.run(_store(http).list_identities())
    assert res.ok is False
    assert "down" in res.error


def test_server_error_is_failed_result():
    http = FakeHttp()
    http.route("PATCH", "/rest/v1/profiles", FakeResponse(500, {"message": "boom"}))
    res = asyncio.run(_store(http).update_ban_state("u2", BanUpdate(banned=True, reason="x")))
    assert res.ok is False


def test_ban_update_sends_iso_expiry():
    http = FakeHttp()
    http.route("PATCH", "/rest/v1/profiles", FakeResponse(200, [ROW]))
    res = asyncio.run(_store(http).update_ban_state("u2", BanUpdate(banned=True, expires_at=1_700_000_000.0, reason="spam")))
    assert res.value.id == "u2"
    call = http.calls[0]
    assert call["json"] == {"banned": True, "ban_until": "2023-11-14T22:13:20Z", "ban_reason": "spam"}
    assert call["headers"]["Prefer"] == "return=representation"


def test_remote_session_needs_access_token():
    http = FakeHttp()
    assert asyncio.run(_store(http).get_remote_session()).value is None
    assert http.calls == []


def test_remote_session_from_auth_user():
    http = FakeHttp()
    http.route("GET", "/auth/v1/user", FakeResponse(200, {"id": "u2", "email": "shadow@dark.net", "user_metadata": {"name": "Shadow"}, "last_sign_in_at": "2023-11-14T22:13:20Z"}))
    res = asyncio.run(_store(http, token="user-jwt").get_remote_session())
    assert res.value["user"] == {"id": "u2", "email": "shadow@dark.net", "name": "Shadow"}
    assert http.calls[0]["headers"]["Authorization"] == "Bearer user-jwt"


def test_audit_append_posts_admin_log_row():
    http = FakeHttp()
    http.route("POST", "/rest/v1/admin_logs", FakeResponse(201))
    entry = AdminLogEntry(actor_identity_ref="u1", action_kind=AdminAction.BAN, target_identity_ref="u2", detail_text="x", occurred_at=1_700_000_000.0)
    res = asyncio.run(_store(http).append_audit_log(entry))
    assert res.ok
    assert http.calls[0]["json"]["action_type"] == "BAN"
    assert http.calls[0]["json"]["admin_id"] == "u1"


def test_schema_violating_profile_row_is_failed_result():
    http = FakeHttp()
    http.route("GET", "/rest/v1/profiles", FakeResponse(200, [{"id": "u9", "username": "x" * 200}]))
    res = asyncio.run(_store(http).get_identity("u9"))
    assert res.ok is False
    assert "malformed profile row" in res.error


def test_ban_check_over_malformed_row_reads_as_not_banned():
    http = FakeHttp()
    http.route("GET", "/rest/v1/profiles", FakeResponse(200, [{"id": "u9", "username": "x" * 200}]))
    state = asyncio.run(BanEvaluator(store=_store(http)).evaluate("u9"))
    assert state.banned is False


def test_malformed_row_after_ban_update_is_failed_result():
    http = FakeHttp()
    http.route("PATCH", "/rest/v1/profiles", FakeResponse(200, [{"id": "u2", "username": "x" * 200}]))
    http.route("DELETE", "/rest/v1/profiles", FakeResponse(200, ["not-a-row"]))
    store = _store(http)
    assert asyncio.run(store.update_ban_state("u2", BanUpdate(banned=True, reason="x"))).ok is False
    assert asyncio.run(store.delete_identity("u2")).ok is False


def test_messages_listing_joins_author_and_skips_bad_rows():
    http = FakeHttp()
    rows = [
        {"id": "m1", "user_id": "u2", "content": "hi", "created_at": "2023-11-14T22:13:20Z", "user": {"id": "u2", "username": "shadow_user", "full_name": "Shadow", "email": "shadow@dark.net"}},
        {"user_id": "u3", "content": "no id"},
    ]
    http.route("GET", "/rest/v1/messages", FakeResponse(200, rows))
    res = asyncio.run(_store(http).list_messages(limit=10))
    assert res.ok
    assert [(m.id, m.author_username, m.author_display_name) for m in res.value] == [("m1", "shadow_user", "Shadow")]
    assert res.value[0].created_at == 1_700_000_000.0
    params = http.calls[0]["params"]
    assert params["select"] == "*,user:user_id(id,username,full_name,email)"
    assert (params["order"], params["limit"]) == ("created_at.desc", "10")


def test_message_delete_by_id():
    http = FakeHttp()
    http.route("DELETE", "/rest/v1/messages", FakeResponse(200, [{"id": "m1", "user_id": "u2", "content": "hi"}]))
    res = asyncio.run(_store(http).delete_message("m1"))
    assert res.value.author_ref == "u2"
    assert http.calls[0]["params"] == {"id": "eq.m1"}
    assert http.calls[0]["headers"]["Prefer"] == "return=representation"


def test_message_delete_of_missing_row_is_absent():
    http = FakeHttp()
    http.route("DELETE", "/rest/v1/messages", FakeResponse(200, []))
    res = asyncio.run(_store(http).delete_message("m404"))
    assert res.ok and res.value is None
