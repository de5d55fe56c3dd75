from datetime import datetime, timezone
from typing import Callable, Dict, Generic, Iterator, Optional, Tuple, TypeVar

V = TypeVar("V")

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ExpiringStore(Generic[V]):
    """In-memory keyed records with a last-write instant per key.

    Nothing expires on its own: callers invoke ``sweep(now)`` at the top of
    the read/write paths that care about staleness. ``expires_at`` tells the
    sweep when a value stops being valid; without it entries are never swept.
    Not safe for concurrent mutation from several threads.
    """

    def __init__(
        self,
        expires_at: Optional[Callable[[V], datetime]] = None,
        clock: Clock = utcnow,
    ):
        self._entries: Dict[str, Tuple[V, datetime]] = {}
        self._expires_at = expires_at
        self._clock = clock

    def get(self, key: str) -> Optional[V]:
        entry = self._entries.get(key)
        return entry[0] if entry else None

    def last_updated(self, key: str) -> Optional[datetime]:
        entry = self._entries.get(key)
        return entry[1] if entry else None

    def set(self, key: str, value: V) -> None:
        self._entries[key] = (value, self._clock())

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def sweep(self, now: Optional[datetime] = None) -> int:
        """Drop every entry whose expiry is at or before ``now``."""
        if self._expires_at is None:
            return 0
        now = now or self._clock()
        stale = [key for key, (value, _) in self._entries.items() if self._expires_at(value) <= now]
        for key in stale:
            del self._entries[key]
        return len(stale)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._entries))
