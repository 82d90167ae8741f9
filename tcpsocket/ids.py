from __future__ import annotations
import itertools
import threading


class IdentityAllocator:
    """Hands out process-unique socket ids from a monotonic counter.

    Sockets created by the application and connections announced by the
    engine draw from the same allocator, so ids never collide on a shared
    channel.
    """

    def __init__(self, start: int = 1):
        self._counter = itertools.count(start)
        self._lock = threading.Lock()

    def next_id(self) -> int:
        with self._lock:
            return next(self._counter)


_default = IdentityAllocator()


def default_allocator() -> IdentityAllocator:
    return _default
