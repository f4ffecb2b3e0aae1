"""One-shot completion signal shared by the handler, the deadline and the shutdown waiter."""

import threading
from typing import Optional


class CompletionSignal:
    """Thread-safe signal that moves from pending to fired exactly once.

    Any number of callers may `fire()` it concurrently; only the first call
    wins and records its reason, later calls return False and do nothing.
    """

    def __init__(self) -> None:
        """Initialize CompletionSignal state."""
        self._lock = threading.Lock()
        self._event = threading.Event()
        self._reason: Optional[str] = None

    @property
    def fired(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def fire(self, reason: str = "done") -> bool:
        """Fire the signal; return True only for the call that won."""
        with self._lock:
            if self._event.is_set():
                return False
            self._reason = str(reason or "done")
            self._event.set()
        return True

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until fired or `timeout` elapses; return whether it fired."""
        return self._event.wait(timeout)
