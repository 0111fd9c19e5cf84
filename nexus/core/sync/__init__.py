from nexus.core.sync.scheduler import Snapshot, SyncScheduler
from nexus.core.sync.watcher import StoreWatcher, WatcherConfig

__all__ = ["Snapshot", "SyncScheduler", "StoreWatcher", "WatcherConfig"]
