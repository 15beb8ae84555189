"""Lock-guarded containers backing the server registry.

- EndpointIndex: (ip, port) -> current entry for that endpoint
- TimelineIndex: last-update timestamp -> bucket of entries, ascending
"""

import threading
from typing import Any, Dict, Iterator, List, Optional, Tuple

from sortedcontainers import SortedDict


Endpoint = Tuple[str, int]


class EndpointIndex:
    """Thread-safe endpoint -> entry mapping under a single lock."""

    def __init__(self):
        self._lock = threading.Lock()
        self._entries: Dict[Endpoint, Any] = {}

    def get(self, endpoint: Endpoint) -> Optional[Any]:
        with self._lock:
            return self._entries.get(endpoint)

    def set(self, endpoint: Endpoint, entry: Any) -> None:
        with self._lock:
            self._entries[endpoint] = entry

    def delete(self, endpoint: Endpoint) -> None:
        with self._lock:
            self._entries.pop(endpoint, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class TimelineIndex:
    """Thread-safe ordered mapping of timestamp -> bucket of entries.

    The lock is re-entrant so a caller holding ``lock`` can still use the
    point operations and ``iterate_ascending`` inside one critical section.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._buckets: SortedDict = SortedDict()

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    def get(self, timestamp: int) -> Optional[List[Any]]:
        with self._lock:
            return self._buckets.get(timestamp)

    def set(self, timestamp: int, bucket: List[Any]) -> None:
        with self._lock:
            self._buckets[timestamp] = bucket

    def delete(self, timestamp: int) -> None:
        with self._lock:
            self._buckets.pop(timestamp, None)

    def iterate_ascending(self) -> Iterator[Tuple[int, List[Any]]]:
        """Yield ``(timestamp, bucket)`` pairs, oldest first.

        Holds the lock until the iteration is exhausted or closed, so the
        buckets must not be inserted or deleted while iterating.
        """
        with self._lock:
            for timestamp, bucket in self._buckets.items():
                yield timestamp, bucket

    def __len__(self) -> int:
        with self._lock:
            return len(self._buckets)
