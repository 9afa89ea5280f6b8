"""Record store with live subscriptions"""

from .record_store import RecordStore, get_record_store, reset_record_store, UPDATABLE_FIELDS
from .subscriptions import Snapshot, Subscription, SnapshotEvent

__all__ = [
    "RecordStore",
    "get_record_store",
    "reset_record_store",
    "UPDATABLE_FIELDS",
    "Snapshot",
    "Subscription",
    "SnapshotEvent",
]
