"""State synchronization layer.

Keeps JSON documents mirrored between memory, the local cache and the
remote planner state table. Local writes are immediate; remote writes are
debounced and coalesced.
"""

from pymedtrip.sync.scheduler import DebouncedCall
from pymedtrip.sync.store import PostgrestStateStore, RemoteStateStore
from pymedtrip.sync.synchronizer import StateSynchronizer, SyncedState

__all__ = [
    "DebouncedCall",
    "PostgrestStateStore",
    "RemoteStateStore",
    "StateSynchronizer",
    "SyncedState",
]
