"""
Live query subscriptions for the record store.

Every message on a subscription is a complete, immutable snapshot of the
owner's records (or a StoreOperationError). Consumers replace their state
wholesale on each message instead of patching it.
"""

import asyncio
import logging
import threading
import uuid
from dataclasses import dataclass
from typing import Callable, Optional, Tuple, Union

from apptracker.errors import StoreOperationError
from ..models.application_models import JobApplication

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Snapshot:
    """Full result set of an owner's records at one point in time"""
    owner_id: str
    records: Tuple[JobApplication, ...]
    version: int
    revision: int = 0  # owner change counter in the database when loaded

    def __len__(self) -> int:
        return len(self.records)


SnapshotEvent = Union[Snapshot, StoreOperationError]

_CLOSED = object()


class Subscription:
    """
    Async stream of snapshots for one owner.

    Usage:
        async with store.subscribe(owner_id) as subscription:
            async for event in subscription:
                ...

    Items may be pushed from any thread; they are handed to the owning event
    loop with call_soon_threadsafe.
    """

    def __init__(
        self,
        owner_id: str,
        label: Optional[str] = None,
        on_close: Optional[Callable[["Subscription"], None]] = None,
    ):
        self.id = f"sub_{uuid.uuid4().hex[:12]}"
        self.owner_id = owner_id
        self.label = label
        self._loop = asyncio.get_running_loop()
        self._queue: asyncio.Queue = asyncio.Queue()
        self._on_close = on_close
        self._closed = False
        self._lock = threading.Lock()
        self._task: Optional[asyncio.Task] = None
        # Revision of the newest snapshot handed to the consumer
        self.revision = -1

    @property
    def closed(self) -> bool:
        return self._closed

    def push(self, event: SnapshotEvent) -> None:
        """Deliver a snapshot or error to the consumer. Snapshots older than the last one are dropped."""
        if self._closed:
            return
        if isinstance(event, Snapshot):
            with self._lock:
                if event.revision < self.revision:
                    logger.debug(f"[{self.id}] Dropped stale snapshot (revision {event.revision})")
                    return
                self.revision = event.revision
        self._put(event)

    def attach_task(self, task: asyncio.Task) -> None:
        """Tie a background task to this subscription; it is cancelled on unsubscribe"""
        self._task = task

    def _put(self, item) -> None:
        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, item)
        except RuntimeError:
            # Event loop already closed; nobody is listening any more
            logger.debug(f"[{self.id}] Dropped event, loop closed")

    def unsubscribe(self) -> None:
        """Stop the stream and release it from the store. Safe to call twice."""
        with self._lock:
            if self._closed:
                return
            self._closed = True

        self._put(_CLOSED)
        if self._task is not None:
            try:
                self._loop.call_soon_threadsafe(self._task.cancel)
            except RuntimeError:
                logger.debug(f"[{self.id}] Watcher not cancelled, loop closed")
        if self._on_close:
            self._on_close(self)
        logger.debug(f"[{self.id}] Unsubscribed owner {self.owner_id}")

    async def next(self, timeout: Optional[float] = None) -> Optional[SnapshotEvent]:
        """Wait for the next event; None once the subscription is closed"""
        if timeout is None:
            item = await self._queue.get()
        else:
            item = await asyncio.wait_for(self._queue.get(), timeout)

        if item is _CLOSED:
            # Keep the marker so later calls also see the end of stream
            self._queue.put_nowait(_CLOSED)
            return None
        return item

    def __aiter__(self):
        return self

    async def __anext__(self) -> SnapshotEvent:
        item = await self.next()
        if item is None:
            raise StopAsyncIteration
        return item

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.unsubscribe()


class SubscriptionRegistry:
    """Thread-safe bookkeeping of open subscriptions per owner"""

    def __init__(self):
        self._subscriptions: dict[str, dict[str, Subscription]] = {}
        self._lock = threading.Lock()

    def add(self, subscription: Subscription) -> None:
        with self._lock:
            self._subscriptions.setdefault(subscription.owner_id, {})[subscription.id] = subscription

    def remove(self, subscription: Subscription) -> None:
        with self._lock:
            owned = self._subscriptions.get(subscription.owner_id)
            if owned is None:
                return
            owned.pop(subscription.id, None)
            if not owned:
                del self._subscriptions[subscription.owner_id]

    def for_owner(self, owner_id: str, label: Optional[str] = None) -> list[Subscription]:
        with self._lock:
            owned = list(self._subscriptions.get(owner_id, {}).values())
        if label is not None:
            owned = [s for s in owned if s.label == label]
        return owned

    def count(self, owner_id: Optional[str] = None) -> int:
        with self._lock:
            if owner_id is not None:
                return len(self._subscriptions.get(owner_id, {}))
            return sum(len(owned) for owned in self._subscriptions.values())
