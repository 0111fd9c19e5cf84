from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from nexus.core.audit.formatter import format_line
from nexus.core.commands.models import ChatMessage, ClearBuffer, DispatchModeration, InlineError
from nexus.core.errors import NexusError
from nexus.core.identity.directory import DirectoryFilter
from nexus.core.identity.models import Operator
from nexus.core.moderation.models import ModerationRequest
from nexus.core.runtime import ConsoleRuntime
from nexus.core.sync.scheduler import Snapshot
from nexus.web.models import (
    ConsoleInput,
    LoginRequest,
    ModerationBody,
    RemoteAuthHook,
    SessionResponse,
    SubmitResponse,
    SuggestResponse,
)


_STATUS_BY_CODE = {
    "permission_denied": 403,
    "validation_error": 400,
    "missing_reason": 400,
    "identity_not_found": 404,
    "message_not_found": 404,
    "storage_unavailable": 503,
}


def _session_response(runtime: ConsoleRuntime, snap: Snapshot) -> SessionResponse:
    if snap.session is None:
        return SessionResponse(authenticated=False, suspended=False, generation=snap.generation)
    op = runtime.tiers.operator_for(snap.session)
    return SessionResponse(
        authenticated=True,
        suspended=snap.suspended,
        generation=snap.generation,
        identity_ref=op.identity_ref,
        display_name=op.label,
        kind=snap.session.kind,
        tier=op.tier.value,
        ban_reason=snap.ban_state.reason if snap.suspended else None,
        ban_expires_at=snap.ban_state.expires_at if snap.suspended else None,
    )


def _result_kind(result: object) -> str:
    if isinstance(result, ChatMessage):
        return "chat"
    if isinstance(result, DispatchModeration):
        return "moderation"
    if isinstance(result, ClearBuffer):
        return result.verb
    if isinstance(result, InlineError):
        return "error"
    return "noop"


def create_app(
    runtime: ConsoleRuntime,
    *,
    logger: Optional[logging.Logger] = None,
    allowed_origins: Optional[list] = None,
    manage_lifecycle: bool = True,
) -> FastAPI:
    log = logger or logging.getLogger("nexus.web")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if manage_lifecycle:
            await runtime.start()
        try:
            yield
        finally:
            if manage_lifecycle:
                await runtime.stop()

    app = FastAPI(title="Nexus Console", version="0.1.0", lifespan=lifespan)

    if allowed_origins:
        if any(o == "*" for o in allowed_origins):
            raise ValueError("Wildcard CORS origins are not allowed.")
        app.add_middleware(
            CORSMiddleware,
            allow_origins=allowed_origins,
            allow_credentials=False,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.exception_handler(NexusError)
    async def nexus_error_handler(request: Request, exc: NexusError):
        code = _STATUS_BY_CODE.get(exc.code, 500)
        log.warning(f"{request.method} {request.url.path} -> {code} {exc.code}: {exc.to_dict()['context']}")
        return JSONResponse(status_code=code, content={"detail": exc.user_message, "code": exc.code})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"detail": "Invalid request.", "code": "validation_error"})

    def _operator() -> Operator:
        return runtime.console.acting()

    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "store": getattr(runtime.store, "name", type(runtime.store).__name__),
            "remote": runtime.cfg.is_remote_configured(),
            "sync_alive": runtime.scheduler.alive,
        }

    # ---- auth ----
    @app.post("/v1/auth/login", response_model=SessionResponse)
    async def login(req: LoginRequest):
        await runtime.login(req.passphrase)
        return _session_response(runtime, runtime.snapshot())

    @app.post("/v1/auth/logout", response_model=SessionResponse)
    async def logout():
        snap = await runtime.logout()
        return _session_response(runtime, snap)

    @app.get("/v1/session", response_model=SessionResponse)
    async def session():
        return _session_response(runtime, runtime.snapshot())

    @app.post("/v1/hooks/auth", response_model=SessionResponse)
    async def remote_auth_hook(req: RemoteAuthHook):
        snap = await runtime.remote_auth_changed({"event": req.event})
        return _session_response(runtime, snap)

    # ---- directory ----
    @app.get("/v1/identities")
    async def identities(filter: DirectoryFilter = Query(default=DirectoryFilter.all), search: Optional[str] = Query(default=None, max_length=200)):
        _operator()
        rows = await runtime.directory.list(filter=filter, search=search)
        return {"identities": [{**r.identity.model_dump(mode="json"), "effective_ban": r.ban.model_dump(mode="json")} for r in rows]}

    @app.get("/v1/overview")
    async def overview():
        _operator()
        return (await runtime.directory.overview()).model_dump()

    @app.get("/v1/logs")
    async def logs(limit: int = Query(default=50, ge=1, le=500)):
        _operator()
        entries = await runtime.audit.recent(limit)
        return {"entries": [{**e.model_dump(mode="json"), "line": format_line(e)} for e in entries]}

    # ---- message review ----
    @app.get("/v1/messages")
    async def messages(limit: int = Query(default=50, ge=1, le=200)):
        rows = await runtime.list_messages(limit)
        return {"messages": [{**m.model_dump(mode="json"), "author_label": m.author_label} for m in rows]}

    @app.delete("/v1/messages/{message_id}")
    async def delete_message(message_id: str):
        msg = await runtime.delete_message(message_id)
        return {"ok": True, "deleted": msg.model_dump(mode="json")}

    # ---- moderation ----
    @app.post("/v1/moderation")
    async def moderation(body: ModerationBody):
        request = ModerationRequest(
            target_identity_ref=body.target,
            action_kind=body.action,
            reason=body.reason,
            duration_token=body.duration,
            custom_expires_at=body.custom_expires_at,
        )
        outcome = await runtime.moderate(request)
        if not outcome.ok and outcome.error is not None:
            raise outcome.error
        return outcome.to_dict()

    # ---- console ----
    @app.post("/v1/console/suggest", response_model=SuggestResponse)
    async def console_suggest(req: ConsoleInput):
        _operator()
        state = await runtime.console.suggest(req.text)
        return SuggestResponse(
            phase=state.phase.value,
            recognized_verb=state.recognized_verb,
            open=state.open,
            suggestions=[s.model_dump() for s in state.suggestions],
        )

    @app.post("/v1/console/submit", response_model=SubmitResponse)
    async def console_submit(req: ConsoleInput):
        reply = await runtime.console.submit(req.text)
        await runtime.settle()
        return SubmitResponse(
            ok=reply.ok,
            kind=_result_kind(reply.result),
            error=reply.error,
            outcome=reply.outcome.to_dict() if reply.outcome is not None else None,
            messages=[m.model_dump(mode="json") for m in reply.added],
        )

    @app.get("/v1/console/messages")
    async def console_messages():
        _operator()
        return {"messages": [m.model_dump(mode="json") for m in runtime.console.messages]}

    return app
