from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Union

from pydantic import BaseModel, ConfigDict, Field

from nexus.core.events.models import Signal


Handler = Callable[[Signal], Union[None, Awaitable[None]]]


class SignalBusConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    enabled: bool = True
    max_pending: int = Field(default=1000, ge=10, le=100_000)


@dataclass
class SignalBusStats:
    published_total: int = 0
    dropped_total: int = 0
    delivered_total: int = 0
    handler_errors_total: int = 0
    subscribers: int = 0
    per_type_published: Dict[str, int] = field(default_factory=dict)


@dataclass
class _Sub:
    name: str
    handler: Handler
    priority: int


class SignalBus:
    """
    In-process typed publish/subscribe channel for one asyncio loop.

    - publish is non-blocking: each matching handler runs as its own task
    - no ordering guarantee across handlers or across publishes
    - handler failures are isolated (logged, counted) and never reach the publisher
    """

    def __init__(self, *, cfg: Optional[SignalBusConfig] = None, logger: Optional[logging.Logger] = None):
        self.cfg = cfg or SignalBusConfig()
        self.logger = logger or logging.getLogger("nexus.events")
        self._subs: List[_Sub] = []
        self._pending: Set[asyncio.Task] = set()
        self._stats = SignalBusStats()

    def subscribe(self, name: str, handler: Handler, priority: int = 50) -> Callable[[], None]:
        """
        name supports:
        - exact match ("resync-requested")
        - prefix match ("audit.*")
        - wildcard all ("*")

        Returns a callable that removes this subscription.
        """
        if not callable(handler):
            raise ValueError("handler must be callable")
        sub = _Sub(name=str(name), handler=handler, priority=int(priority))
        self._subs.append(sub)
        self._subs.sort(key=lambda s: s.priority)
        self._stats.subscribers = len(self._subs)

        def _release() -> None:
            if sub in self._subs:
                self._subs.remove(sub)
                self._stats.subscribers = len(self._subs)

        return _release

    def publish(self, ev: Signal) -> bool:
        if not self.cfg.enabled:
            return False
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._stats.dropped_total += 1
            self.logger.warning(f"Signal {ev.name} dropped: no running event loop")
            return False
        if len(self._pending) >= int(self.cfg.max_pending):
            self._stats.dropped_total += 1
            self.logger.warning(f"Signal {ev.name} dropped: {len(self._pending)} handlers pending")
            return False

        self._stats.published_total += 1
        self._stats.per_type_published[ev.name] = self._stats.per_type_published.get(ev.name, 0) + 1
        for s in list(self._subs):
            if not _match(s.name, ev.name):
                continue
            task = loop.create_task(self._safe_handle(s.handler, ev))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
            self._stats.delivered_total += 1
        return True

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait until every handler task scheduled so far (and any they schedule) has finished."""

        async def _wait_all() -> None:
            while self._pending:
                await asyncio.gather(*list(self._pending), return_exceptions=True)

        if timeout is None:
            await _wait_all()
        else:
            await asyncio.wait_for(_wait_all(), timeout=timeout)

    def get_stats(self) -> Dict[str, Any]:
        return {
            "enabled": bool(self.cfg.enabled),
            "published_total": self._stats.published_total,
            "dropped_total": self._stats.dropped_total,
            "delivered_total": self._stats.delivered_total,
            "handler_errors_total": self._stats.handler_errors_total,
            "subscribers": self._stats.subscribers,
            "pending": len(self._pending),
            "per_type_published": dict(self._stats.per_type_published),
        }

    def list_subscribers(self) -> List[Dict[str, Any]]:
        return [{"name": s.name, "priority": s.priority, "handler": getattr(s.handler, "__name__", "handler")} for s in self._subs]

    # ---- internals ----
    async def _safe_handle(self, handler: Handler, ev: Signal) -> None:
        try:
            out = handler(ev)
            if inspect.isawaitable(out):
                await out
        except asyncio.CancelledError:
            raise
        except Exception as e:  # noqa: BLE001
            self._stats.handler_errors_total += 1
            self.logger.error(f"Signal handler {getattr(handler, '__name__', 'handler')} failed for {ev.name}: {e}")


def _match(subscribed: str, name: str) -> bool:
    if subscribed == "*":
        return True
    if subscribed.endswith(".*"):
        return str(name).startswith(subscribed[:-2])
    return subscribed == name
