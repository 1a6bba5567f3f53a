from __future__ import annotations

from collections import defaultdict


class ActiveSessions:
    """
    Live stream sessions per bundle key.

    The storage reaper consults this before deleting a bundle directory.
    Only touched from the event loop, so no lock.
    """

    def __init__(self) -> None:
        # bundle key -> number of open sessions
        self._counts: defaultdict[str, int] = defaultdict(int)

    def acquire(self, key: str) -> None:
        self._counts[key] += 1

    def release(self, key: str) -> None:
        if self._counts.get(key, 0) <= 1:
            self._counts.pop(key, None)
        else:
            self._counts[key] -= 1

    def is_active(self, key: str) -> bool:
        return self._counts.get(key, 0) > 0
