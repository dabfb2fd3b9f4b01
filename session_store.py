# session_store.py

import heapq
import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

# Configure logging
logger = logging.getLogger("watchbot.session_store")
logger.setLevel(logging.INFO)


class MediaType(Enum):
    """Kinds of media a link can point at. Values are TMDB path segments."""
    MOVIE = "movie"
    SERIES = "tv"

    @classmethod
    def parse(cls, value: str) -> "MediaType":
        """Accept ``movie``, ``tv`` or ``series`` (case-insensitive)."""
        normalized = (value or "").strip().lower()
        if normalized == "series":
            return cls.SERIES
        return cls(normalized)

    @property
    def torrentio_type(self) -> str:
        return "movie" if self is MediaType.MOVIE else "series"


@dataclass(frozen=True)
class TemporaryRecord:
    """What a watch link token points at."""
    media_type: MediaType
    external_id: str
    title: str = ""
    season_num: Optional[int] = None
    episode_num: Optional[int] = None
    is_backup: bool = False
    created_at: float = field(default_factory=time.time)


@dataclass
class _Entry:
    record: TemporaryRecord
    expires_at: float
    generation: int


class TemporaryRecordStore:
    """
    In-memory token to record mapping where every entry expires on its own.

    Expiry is tracked with a min-heap of ``(expires_at, generation, token)``
    that is drained lazily on every access, so there is no timer object per
    token. Replacing a token bumps its generation; heap items left behind by
    the old entry are ignored when they surface.

    Every public method takes the same lock and never awaits, which keeps
    insert, replace, expire and remove atomic with respect to each other.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: Dict[str, _Entry] = {}
        self._expiry_heap: List[Tuple[float, int, str]] = []
        self._generation = 0
        self._lock = threading.Lock()

    def put(self, token: str, record: TemporaryRecord, ttl: float) -> None:
        """
        Insert or replace the record for ``token``, expiring ``ttl`` seconds from now.

        A non-positive ``ttl`` means immediate expiry: any previous record is
        dropped and the new one is never retrievable.
        """
        with self._lock:
            now = self._clock()
            self._purge_expired_locked(now)
            if ttl <= 0:
                self._entries.pop(token, None)
                logger.debug(f"Record {token} stored with ttl={ttl}, expired immediately")
                return

            self._generation += 1
            expires_at = now + ttl
            self._entries[token] = _Entry(record, expires_at, self._generation)
            heapq.heappush(self._expiry_heap, (expires_at, self._generation, token))
            logger.debug(f"Stored record {token} for {ttl}s")

    def get(self, token: str) -> Optional[TemporaryRecord]:
        """Return the live record for ``token`` or None. Never renews the TTL."""
        with self._lock:
            now = self._clock()
            self._purge_expired_locked(now)
            entry = self._entries.get(token)
            if entry is None or entry.expires_at <= now:
                return None
            return entry.record

    def remove(self, token: str) -> None:
        """Delete ``token`` if present; removing an unknown token is a no-op."""
        with self._lock:
            if self._entries.pop(token, None) is not None:
                logger.debug(f"Removed record {token}")
            self._purge_expired_locked(self._clock())

    def purge_expired(self) -> int:
        """Drop every expired entry and return how many were removed."""
        with self._lock:
            return self._purge_expired_locked(self._clock())

    def __len__(self) -> int:
        with self._lock:
            self._purge_expired_locked(self._clock())
            return len(self._entries)

    def __contains__(self, token: object) -> bool:
        return isinstance(token, str) and self.get(token) is not None

    def _purge_expired_locked(self, now: float) -> int:
        removed = 0
        heap = self._expiry_heap
        while heap and heap[0][0] <= now:
            _, generation, token = heapq.heappop(heap)
            entry = self._entries.get(token)
            # Only the heap item of the current generation may delete the entry.
            if entry is not None and entry.generation == generation:
                del self._entries[token]
                removed += 1
        # Heap items for removed or replaced tokens linger until they expire;
        # rebuild when they dominate.
        if len(heap) > 64 and len(heap) > 2 * len(self._entries):
            self._expiry_heap = [
                (entry.expires_at, entry.generation, token) for token, entry in self._entries.items()
            ]
            heapq.heapify(self._expiry_heap)
        if removed:
            logger.debug(f"Expired {removed} record(s)")
        return removed
