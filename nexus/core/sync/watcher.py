from __future__ import annotations

import asyncio
import logging
import os
import time
from dataclasses import dataclass
from typing import Dict, List, Optional

from nexus.core.events.bus import SignalBus
from nexus.core.events.models import IDENTITY_STORE_CHANGED, Signal, SignalSource


@dataclass
class WatcherConfig:
    enabled: bool = True
    debounce_ms: int = 250
    poll_interval_ms: int = 500


class StoreWatcher:
    """
    Debounced mtime poller over the local store files.

    A change made by another process publishes `identity-store-changed`.
    """

    def __init__(self, *, paths: List[str], cfg: WatcherConfig, bus: SignalBus, logger: Optional[logging.Logger] = None):
        self.paths = list(paths)
        self.cfg = cfg
        self.bus = bus
        self.logger = logger or logging.getLogger("nexus.sync")
        self._task: Optional[asyncio.Task] = None
        self._last_mtimes: Dict[str, Optional[float]] = {}
        self._last_fire = 0.0

    def start(self) -> None:
        if not self.cfg.enabled or self._task is not None:
            return
        self._last_mtimes = {p: self._mtime(p) for p in self.paths}
        self._task = asyncio.get_running_loop().create_task(self._poll_loop())

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    @staticmethod
    def _mtime(path: str) -> Optional[float]:
        try:
            return os.path.getmtime(path)
        except OSError:
            return None

    def check(self) -> bool:
        """One poll step; returns True when a change signal was published."""
        changed = False
        for path in self.paths:
            m = self._mtime(path)
            if m != self._last_mtimes.get(path):
                self._last_mtimes[path] = m
                changed = True
        now = time.time()
        debounce = max(0.0, float(self.cfg.debounce_ms) / 1000.0)
        if changed and (now - self._last_fire) >= debounce:
            self._last_fire = now
            self.bus.publish(Signal(name=IDENTITY_STORE_CHANGED, source=SignalSource.store, payload={"origin": "file"}))
            return True
        return False

    async def _poll_loop(self) -> None:
        interval = max(0.05, float(self.cfg.poll_interval_ms) / 1000.0)
        while True:
            try:
                self.check()
            except Exception as e:  # noqa: BLE001
                self.logger.warning(f"Store watcher error: {e}")
            await asyncio.sleep(interval)
