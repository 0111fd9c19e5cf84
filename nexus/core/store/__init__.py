"""
IdentityStore adapters: in-memory, local demo files, hosted table store.
"""

from nexus.core.store.interface import IdentityStore, StoreResult, find_identity
from nexus.core.store.memory import InMemoryIdentityStore
from nexus.core.store.local import LocalIdentityStore
from nexus.core.store.remote import RemoteIdentityStore, RemoteStoreConfig

__all__ = [
    "IdentityStore",
    "StoreResult",
    "find_identity",
    "InMemoryIdentityStore",
    "LocalIdentityStore",
    "RemoteIdentityStore",
    "RemoteStoreConfig",
]
