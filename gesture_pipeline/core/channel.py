"""
Bounded single-slot channel between pipeline stages.

Two send policies are provided:
    try_send        : drop the new item when full (capture → recognizer)
    send_overwrite  : evict the oldest item when full (recognizer → UI)

Neither send ever blocks. ``recv_latest`` blocks for one item and then
drains whatever else is queued, keeping only the newest.
"""

import logging
import threading
from collections import deque
from typing import Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Channel(Generic[T]):
    """Thread-safe bounded queue with lossy sends and close semantics.

    Example:
        >>> frames = Channel(capacity=1)
        >>> frames.try_send(frame)
        True
        >>> latest = frames.recv_latest()
    """

    def __init__(self, capacity: int = 1, name: str = "channel"):
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.capacity = capacity
        self.name = name
        self._items = deque()  # type: deque
        self._cond = threading.Condition(threading.Lock())
        self._closed = False
        self._dropped = 0
        self._overwritten = 0
        self._stale = 0

    def try_send(self, item: T) -> bool:
        """Enqueue unless full or closed; returns False when the item was dropped."""
        with self._cond:
            if self._closed or len(self._items) >= self.capacity:
                self._dropped += 1
                return False
            self._items.append(item)
            self._cond.notify()
            return True

    def send_overwrite(self, item: T) -> bool:
        """Enqueue, evicting the oldest items if full; False only when closed."""
        with self._cond:
            if self._closed:
                self._dropped += 1
                return False
            while len(self._items) >= self.capacity:
                self._items.popleft()
                self._overwritten += 1
            self._items.append(item)
            self._cond.notify()
            return True

    def recv(self) -> Optional[T]:
        """Block until an item is available; None once closed and empty."""
        with self._cond:
            while not self._items and not self._closed:
                self._cond.wait()
            if self._items:
                return self._items.popleft()
            return None

    def try_recv(self) -> Optional[T]:
        """Non-blocking receive; None when empty."""
        with self._cond:
            if self._items:
                return self._items.popleft()
            return None

    def recv_latest(self) -> Optional[T]:
        """Block for one item, then drain the queue and return the newest."""
        item = self.recv()
        if item is None:
            return None
        while True:
            newer = self.try_recv()
            if newer is None:
                return item
            with self._cond:
                self._stale += 1
            item = newer

    def close(self) -> None:
        """Reject further sends and wake every blocked receiver."""
        with self._cond:
            if not self._closed:
                self._closed = True
                logger.debug("Channel %s closed", self.name)
            self._cond.notify_all()

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed

    @property
    def dropped(self) -> int:
        """Items rejected by a full or closed channel."""
        with self._cond:
            return self._dropped

    @property
    def overwritten(self) -> int:
        """Items evicted by send_overwrite before being received."""
        with self._cond:
            return self._overwritten

    @property
    def stale(self) -> int:
        """Items discarded by recv_latest in favour of a newer one."""
        with self._cond:
            return self._stale

    def __len__(self):
        with self._cond:
            return len(self._items)
