import threading
import weakref
from contextlib import contextmanager
from typing import Iterator


class _SessionLock:
    # _thread.lock cannot be weakly referenced, so wrap it
    __slots__ = ("lock", "__weakref__")

    def __init__(self):
        self.lock = threading.Lock()


class SessionLockRegistry:
    """
    One lock per proctoring session id.

    Locks live only while someone holds a reference, so ended sessions do not
    accumulate entries.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: "weakref.WeakValueDictionary[str, _SessionLock]" = weakref.WeakValueDictionary()

    def _lock_for(self, session_id: str) -> _SessionLock:
        with self._guard:
            entry = self._locks.get(session_id)
            if entry is None:
                entry = _SessionLock()
                self._locks[session_id] = entry
            return entry

    @contextmanager
    def hold(self, session_id: str) -> Iterator[None]:
        entry = self._lock_for(session_id)
        with entry.lock:
            yield

    def __len__(self) -> int:
        return len(self._locks)


session_locks = SessionLockRegistry()
