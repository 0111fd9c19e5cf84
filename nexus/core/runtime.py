from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional

from nexus.core.audit.logger import AuditLogger
from nexus.core.auth import LoginService
from nexus.core.clock import Clock
from nexus.core.commands.console import OperatorConsole
from nexus.core.commands.interpreter import CommandInterpreter
from nexus.core.config.models import ConsoleConfig
from nexus.core.events.bus import SignalBus
from nexus.core.events.models import REMOTE_AUTH_CHANGED, Signal, SignalSource
from nexus.core.identity.ban import BanEvaluator
from nexus.core.identity.directory import IdentityDirectory
from nexus.core.identity.models import LocalSession, Message
from nexus.core.identity.resolver import SessionResolver
from nexus.core.identity.tiers import TierPolicy
from nexus.core.moderation.durations import FIXED_DURATIONS
from nexus.core.moderation.executor import ModerationActionExecutor
from nexus.core.moderation.messages import MessageReview
from nexus.core.moderation.models import ModerationOutcome, ModerationRequest
from nexus.core.store.interface import IdentityStore
from nexus.core.store.local import LocalIdentityStore
from nexus.core.store.remote import RemoteIdentityStore, RemoteStoreConfig
from nexus.core.sync.scheduler import Snapshot, SyncScheduler
from nexus.core.sync.watcher import StoreWatcher, WatcherConfig


def build_store(cfg: ConsoleConfig, *, logger: Optional[logging.Logger] = None) -> IdentityStore:
    """Hosted table store when configured, otherwise the local demo files."""
    if cfg.is_remote_configured():
        r = cfg.remote
        return RemoteIdentityStore(
            cfg=RemoteStoreConfig(
                base_url=r.base_url,
                api_key=r.api_key,
                access_token=r.access_token or None,
                timeout_seconds=r.timeout_seconds,
                profiles_table=r.profiles_table,
                logs_table=r.logs_table,
                messages_table=r.messages_table,
            ),
            logger=logger or logging.getLogger("nexus.store"),
        )
    return LocalIdentityStore(data_dir=cfg.store.data_dir, seed_demo=cfg.store.seed_demo, logger=logger)


class ConsoleRuntime:
    """
    Composition root: one bus, one store, one scheduler per process.

    start() subscribes the scheduler and commits the first snapshot; stop()
    tears the scheduler down so no later sync can commit.
    """

    def __init__(
        self,
        *,
        cfg: ConsoleConfig,
        store: Optional[IdentityStore] = None,
        clock: Clock = time.time,
        logger: Optional[logging.Logger] = None,
    ):
        self.cfg = cfg
        self.clock = clock
        self.logger = logger or logging.getLogger("nexus")
        self.bus = SignalBus(logger=self.logger.getChild("events"))
        self.store = store if store is not None else build_store(cfg, logger=self.logger.getChild("store"))

        ops = cfg.operators
        self.tiers = TierPolicy(root_identities=ops.root_identities, elevated_identities=ops.elevated_identities)
        self.audit = AuditLogger(store=self.store, bus=self.bus, logger=self.logger.getChild("audit"))
        self.resolver = SessionResolver(store=self.store, clock=clock, logger=self.logger.getChild("identity"))
        self.evaluator = BanEvaluator(store=self.store, root_identities=ops.root_identities, clock=clock, logger=self.logger.getChild("identity"))
        self.scheduler = SyncScheduler(resolver=self.resolver, evaluator=self.evaluator, bus=self.bus, clock=clock, logger=self.logger.getChild("sync"))
        self.executor = ModerationActionExecutor(
            store=self.store,
            audit=self.audit,
            bus=self.bus,
            clock=clock,
            standard_max_seconds=FIXED_DURATIONS[ops.standard_max_duration][0],
            logger=self.logger.getChild("moderation"),
        )
        self.messages = MessageReview(store=self.store, audit=self.audit, clock=clock, logger=self.logger.getChild("moderation"))
        self.directory = IdentityDirectory(store=self.store, clock=clock)
        self.interpreter = CommandInterpreter(
            sigil=cfg.commands.sigil,
            default_reason=cfg.commands.default_reason,
            default_duration=cfg.commands.default_duration,
        )
        self.console = OperatorConsole(
            interpreter=self.interpreter,
            executor=self.executor,
            directory=self.directory,
            scheduler=self.scheduler,
            tiers=self.tiers,
            clock=clock,
            max_messages=cfg.commands.max_messages,
            logger=self.logger.getChild("commands"),
        )
        self.login_service = LoginService(
            store=self.store,
            audit=self.audit,
            bus=self.bus,
            credentials=cfg.auth.credentials,
            session_ttl_seconds=cfg.auth.session_ttl_seconds,
            clock=clock,
            logger=self.logger.getChild("auth"),
        )
        self.watcher: Optional[StoreWatcher] = None
        if isinstance(self.store, LocalIdentityStore) and cfg.store.watch:
            self.watcher = StoreWatcher(
                paths=self.store.watched_paths,
                cfg=WatcherConfig(enabled=True, debounce_ms=cfg.store.debounce_ms, poll_interval_ms=cfg.store.poll_interval_ms),
                bus=self.bus,
                logger=self.logger.getChild("sync"),
            )

    # ---- lifecycle ----
    async def start(self) -> Snapshot:
        self.logger.info(f"Console runtime starting (store={getattr(self.store, 'name', type(self.store).__name__)})")
        self.scheduler.start()
        if self.watcher is not None:
            self.watcher.start()
        await self.scheduler.sync()
        return self.scheduler.read()

    async def stop(self) -> None:
        self.scheduler.stop()
        if self.watcher is not None:
            await self.watcher.stop()
        try:
            await self.bus.drain(timeout=5.0)
        except asyncio.TimeoutError:
            self.logger.warning("Signal handlers still pending at shutdown")
        self.logger.info("Console runtime stopped")

    async def settle(self) -> Snapshot:
        """Wait for every queued signal (and the syncs it triggers) to finish."""
        await self.bus.drain(timeout=10.0)
        return self.scheduler.read()

    # ---- operations ----
    def snapshot(self) -> Snapshot:
        return self.scheduler.read()

    async def login(self, passphrase: str) -> LocalSession:
        session = await self.login_service.login(passphrase)
        await self.settle()
        return session

    async def logout(self) -> Snapshot:
        snap = self.scheduler.read()
        if snap.session is not None:
            op = self.tiers.operator_for(snap.session)
            await self.login_service.logout(op.identity_ref, actor_label=op.label)
        else:
            await self.login_service.logout()
        return await self.settle()

    async def moderate(self, request: ModerationRequest) -> ModerationOutcome:
        acting = self.console.acting()
        outcome = await self.executor.execute(request, acting)
        await self.settle()
        return outcome

    async def list_messages(self, limit: int = 50) -> List[Message]:
        self.console.acting()
        return await self.messages.list(limit)

    async def delete_message(self, message_id: str) -> Message:
        acting = self.console.acting()
        msg = await self.messages.delete(message_id, acting)
        await self.settle()
        return msg

    async def remote_auth_changed(self, payload: Optional[Dict[str, Any]] = None) -> Snapshot:
        self.bus.publish(Signal(name=REMOTE_AUTH_CHANGED, source=SignalSource.web, payload=dict(payload or {})))
        return await self.settle()
