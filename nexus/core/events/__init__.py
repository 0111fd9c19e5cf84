"""
Typed signal bus + event models shared by the sync and moderation pipelines.
"""

from nexus.core.events.redaction import redact
from nexus.core.events.models import (
    IDENTITY_STORE_CHANGED,
    REMOTE_AUTH_CHANGED,
    RESYNC_REQUESTED,
    SYNC_SIGNALS,
    TOAST_PUBLISHED,
    Signal,
    EventSeverity,
    SignalSource,
    toast_event,
)
from nexus.core.events.bus import SignalBus, SignalBusConfig

__all__ = [
    "redact",
    "Signal",
    "EventSeverity",
    "SignalSource",
    "SignalBus",
    "SignalBusConfig",
    "toast_event",
    "IDENTITY_STORE_CHANGED",
    "RESYNC_REQUESTED",
    "REMOTE_AUTH_CHANGED",
    "TOAST_PUBLISHED",
    "SYNC_SIGNALS",
]
