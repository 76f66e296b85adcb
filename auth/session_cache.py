"""
OAuth Session Cache
===================

Process-local, time-bounded key-value storage for handshake state that must
survive the redirect to the provider and back, but nothing longer.

Entries expire a fixed time after they are written. The cache is also capped
at ``max_entries``; once full, the least recently used entry is evicted to
make room. Nothing is persisted, so a restart drops every in-flight handshake.
"""

import logging
import threading
from collections import OrderedDict
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional, Tuple

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SessionCache:
    """
    TTL cache with LRU eviction as a size backstop.

    Args:
        max_entries (int): Maximum number of live entries
        ttl (timedelta): Lifetime of an entry from the moment it is written
        clock (Callable[[], datetime]): Source of the current time
    """

    def __init__(
        self,
        max_entries: int = 1000,
        ttl: timedelta = timedelta(minutes=15),
        clock: Optional[Clock] = None,
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be positive")
        self.max_entries = max_entries
        self.ttl = ttl
        self.clock = clock or utc_now
        self._entries: "OrderedDict[str, Tuple[datetime, Any]]" = OrderedDict()
        self._lock = threading.Lock()

    def now(self) -> datetime:
        return self.clock()

    def put(self, key: str, value: Any, ttl: Optional[timedelta] = None) -> None:
        expires_at = self.now() + (ttl or self.ttl)
        with self._lock:
            self._entries[key] = (expires_at, value)
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.warning(f"OAuth cache full, evicted least recently used entry {evicted.split(':', 1)[0]}:*")

    def get(self, key: str) -> Optional[Any]:
        """Return the value for ``key``, or None when absent or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self.now() >= expires_at:
                del self._entries[key]
                return None
            self._entries.move_to_end(key)
            return value

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def purge_expired(self) -> int:
        """Drop every expired entry and return how many were removed."""
        now = self.now()
        with self._lock:
            expired = [key for key, (expires_at, _) in self._entries.items() if now >= expires_at]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None
