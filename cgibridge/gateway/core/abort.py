import asyncio
import threading
from typing import List, Tuple


class AbortSignal:
    """
    One-shot cancellation signal shared between a caller and running invocations.

    `abort()` may be called from any thread. Async waiters are woken on their
    own event loop; synchronous code polls `aborted`.
    """

    def __init__(self):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._waiters: List[Tuple[asyncio.AbstractEventLoop, asyncio.Future]] = []

    @property
    def aborted(self) -> bool:
        return self._event.is_set()

    def abort(self) -> None:
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            waiters, self._waiters = self._waiters, []

        for loop, waiter in waiters:
            if not loop.is_closed():
                loop.call_soon_threadsafe(self._wake, waiter)

    async def wait(self) -> None:
        """Suspend until the signal is aborted."""
        loop = asyncio.get_running_loop()
        waiter = loop.create_future()
        with self._lock:
            if self._event.is_set():
                return
            self._waiters.append((loop, waiter))

        try:
            await waiter
        finally:
            with self._lock:
                if (loop, waiter) in self._waiters:
                    self._waiters.remove((loop, waiter))

    @staticmethod
    def _wake(waiter: asyncio.Future) -> None:
        if not waiter.done():
            waiter.set_result(None)

    def __repr__(self) -> str:
        return f"AbortSignal(aborted={self.aborted})"
