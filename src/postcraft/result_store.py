from __future__ import annotations

import time
import uuid
from collections import OrderedDict
from collections.abc import Callable

from .models import StructuredPost


class ResultStore:
    """
    Short-lived, per-identifier hand-off of finished posts.

    Entries expire after `ttl_seconds`; when `max_entries` is reached the
    oldest entry is evicted to make room.
    """

    def __init__(
        self,
        *,
        ttl_seconds: float = 900.0,
        max_entries: int = 128,
        clock: Callable[[], float] | None = None,
    ):
        self._ttl_seconds = max(0.0, float(ttl_seconds))
        self._max_entries = max(1, int(max_entries))
        self._clock: Callable[[], float] = clock or time.monotonic
        self._entries: OrderedDict[str, tuple[float, StructuredPost]] = OrderedDict()

    def __len__(self) -> int:
        self.evict_expired()
        return len(self._entries)

    def evict_expired(self) -> int:
        now = self._clock()
        expired = [key for key, (expires_at, _) in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def put(self, post: StructuredPost, result_id: str | None = None) -> str:
        self.evict_expired()
        key = result_id or uuid.uuid4().hex
        self._entries.pop(key, None)
        while len(self._entries) >= self._max_entries:
            self._entries.popitem(last=False)
        self._entries[key] = (self._clock() + self._ttl_seconds, post)
        return key

    def get(self, result_id: str) -> StructuredPost | None:
        self.evict_expired()
        entry = self._entries.get(result_id)
        return entry[1] if entry else None

    def pop(self, result_id: str) -> StructuredPost | None:
        self.evict_expired()
        entry = self._entries.pop(result_id, None)
        return entry[1] if entry else None
