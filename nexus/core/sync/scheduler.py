from __future__ import annotations

import itertools
import logging
import time
from typing import Callable, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from nexus.core.clock import Clock
from nexus.core.events.bus import SignalBus
from nexus.core.events.models import SYNC_SIGNALS, Signal
from nexus.core.identity.ban import BanEvaluator
from nexus.core.identity.models import BanState, Session
from nexus.core.identity.resolver import SessionResolver


class Snapshot(BaseModel):
    """Session and ban state produced by one sync pass; always published together."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    session: Optional[Session] = None
    ban_state: BanState = Field(default_factory=BanState)
    generation: int = 0
    committed_at: float = 0.0

    @property
    def authenticated(self) -> bool:
        return self.session is not None

    @property
    def suspended(self) -> bool:
        return self.session is not None and bool(self.ban_state.banned)


SnapshotListener = Callable[[Snapshot], None]


class SyncScheduler:
    """
    Re-resolves the operator session and its ban state whenever a sync signal fires.

    - every trigger runs the same sync(); overlapping runs are allowed
    - a sync recomputes everything from the store and commits one frozen Snapshot
    - a run that started before the last committed run is discarded instead of
      overwriting fresher state
    - after stop(), in-flight runs finish but never commit
    """

    def __init__(
        self,
        *,
        resolver: SessionResolver,
        evaluator: BanEvaluator,
        bus: SignalBus,
        clock: Clock = time.time,
        logger: Optional[logging.Logger] = None,
    ):
        self.resolver = resolver
        self.evaluator = evaluator
        self.bus = bus
        self.clock = clock
        self.logger = logger or logging.getLogger("nexus.sync")
        self._snapshot = Snapshot()
        self._alive = False
        self._tickets = itertools.count(1)
        self._last_committed_ticket = 0
        self._releases: List[Callable[[], None]] = []
        self._listeners: List[SnapshotListener] = []
        self.runs = 0
        self.discarded = 0

    # ---- lifecycle ----
    def start(self) -> None:
        if self._alive:
            return
        self._alive = True
        for signal in SYNC_SIGNALS:
            self._releases.append(self.bus.subscribe(signal, self._on_signal, priority=10))
        self.logger.info("Sync scheduler started")

    def stop(self) -> None:
        self._alive = False
        for release in self._releases:
            release()
        self._releases = []
        self.logger.info("Sync scheduler stopped")

    @property
    def alive(self) -> bool:
        return self._alive

    # ---- read side ----
    def read(self) -> Snapshot:
        return self._snapshot

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _release() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _release

    # ---- sync ----
    async def _on_signal(self, ev: Signal) -> None:
        self.logger.debug(f"Sync triggered by {ev.name}")
        await self.sync()

    async def sync(self) -> Optional[Snapshot]:
        """
        One full resolution pass. Returns the committed snapshot, or None when
        the result was discarded (torn down, or superseded by a newer run).
        """
        ticket = next(self._tickets)
        self.runs += 1

        session = await self.resolver.resolve()
        if session is not None:
            ban_state = await self.evaluator.evaluate(session.identity_ref)
        else:
            ban_state = BanState()

        if not self._alive:
            self.discarded += 1
            return None
        if ticket < self._last_committed_ticket:
            self.discarded += 1
            return None

        snap = Snapshot(session=session, ban_state=ban_state, generation=ticket, committed_at=float(self.clock()))
        self._last_committed_ticket = ticket
        self._snapshot = snap
        self._notify(snap)
        return snap

    def _notify(self, snap: Snapshot) -> None:
        for listener in list(self._listeners):
            try:
                listener(snap)
            except Exception as e:  # noqa: BLE001
                self.logger.error(f"Snapshot listener failed: {e}")
