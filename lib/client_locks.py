import asyncio
import threading
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict


class ClientLocks:
    """
    Process-local registry of one asyncio.Lock per client phone number.

    Holding a client's lock serializes everything that reads and rewrites
    that client's conversation. A lock exists only while someone holds or
    waits on it, so the registry does not grow with the number of clients
    ever seen. All locks must be used from the same event loop.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._locks: Dict[str, asyncio.Lock] = {}
        self._holders: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, phone: str) -> AsyncIterator[None]:
        with self._lock:
            lock = self._locks.get(phone)
            if lock is None:
                lock = asyncio.Lock()
                self._locks[phone] = lock
            self._holders[phone] = self._holders.get(phone, 0) + 1

        try:
            async with lock:
                yield
        finally:
            with self._lock:
                self._holders[phone] -= 1
                if not self._holders[phone]:
                    del self._holders[phone]
                    del self._locks[phone]

    def __len__(self) -> int:
        with self._lock:
            return len(self._locks)
