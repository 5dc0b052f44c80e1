import threading
import time
from typing import Callable, Dict, Tuple

from resolution import OwnerSnapshot


class SnapshotCache:
    """
    Read-through cache of owner snapshots for public views.

    - Entries expire ``ttl_seconds`` after they were loaded.
    - ``ttl_seconds <= 0`` disables caching; every get loads fresh.
    - Edit endpoints call ``invalidate(owner_id)`` after every mutation. A load
      that was already running when the owner was invalidated is returned to
      its caller but not stored.
    - Snapshots of unknown owners are never stored, and at most
      ``max_entries`` owners are held.
    """

    def __init__(self, loader: Callable[[str], OwnerSnapshot], ttl_seconds: float = 10.0,
                 clock: Callable[[], float] = time.monotonic, max_entries: int = 1024) -> None:
        self._loader = loader
        self._ttl = ttl_seconds
        self._clock = clock
        self._max_entries = max_entries
        self._lock = threading.Lock()
        self._entries: Dict[str, Tuple[float, OwnerSnapshot]] = {}
        self._generations: Dict[str, int] = {}
        self._epoch = 0

    @property
    def enabled(self) -> bool:
        return self._ttl > 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, owner_id: str) -> OwnerSnapshot:
        if not self.enabled:
            return self._loader(owner_id)

        now = self._clock()
        with self._lock:
            entry = self._entries.get(owner_id)
            if entry is not None and now - entry[0] < self._ttl:
                return entry[1]
            started = (self._epoch, self._generations.get(owner_id, 0))

        snapshot = self._loader(owner_id)
        if snapshot.record is None:
            return snapshot

        with self._lock:
            if started != (self._epoch, self._generations.get(owner_id, 0)):
                return snapshot
            self._evict(now)
            self._entries[owner_id] = (now, snapshot)
        return snapshot

    def _evict(self, now: float) -> None:
        # caller holds the lock
        expired = [k for k, (loaded_at, _) in self._entries.items() if now - loaded_at >= self._ttl]
        for key in expired:
            del self._entries[key]
        while self._entries and len(self._entries) >= self._max_entries:
            oldest = min(self._entries, key=lambda k: self._entries[k][0])
            del self._entries[oldest]

    def invalidate(self, owner_id: str) -> None:
        with self._lock:
            self._entries.pop(owner_id, None)
            self._generations[owner_id] = self._generations.get(owner_id, 0) + 1

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._generations.clear()
            self._epoch += 1
