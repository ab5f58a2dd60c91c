"""
Cancellation tokens for blocking SDK operations.

Every operation that can wait (advancing an event iterator, delivering into a
channel, waiting for a receipt) accepts a ``CancelToken``. Firing the token
makes the wait resolve as "stopped" rather than as a failure.
"""
import logging
import threading
from typing import Callable, List, Optional

from .exceptions import OperationCancelled

logger = logging.getLogger(__name__)


class CancelToken:
    """
    One-shot cancellation signal.

    Waiters either poll ``cancelled``, block in ``wait()``, or register a
    callback with ``add_callback()`` that runs exactly once when the token
    fires. A token created with ``timeout`` fires by itself after that many
    seconds.
    """

    def __init__(self, timeout: Optional[float] = None):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: List[Callable[[], None]] = []
        self._timer: Optional[threading.Timer] = None
        if timeout is not None:
            self._timer = threading.Timer(timeout, self.cancel)
            self._timer.daemon = True
            self._timer.start()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        """Fire the token. Calling it again has no effect."""
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []
        if self._timer is not None:
            self._timer.cancel()
        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                logger.warning(f"Cancel callback failed: {e}", exc_info=True)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the token fires or ``timeout`` elapses; return whether it fired."""
        return self._event.wait(timeout)

    def add_callback(self, callback: Callable[[], None]) -> Callable[[], None]:
        """
        Run ``callback`` once when the token fires.

        If the token already fired the callback runs immediately.

        Returns:
            A function that unregisters the callback
        """
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)

                def remove() -> None:
                    with self._lock:
                        if callback in self._callbacks:
                            self._callbacks.remove(callback)

                return remove
        callback()
        return lambda: None

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise OperationCancelled("Operation cancelled")

    def __repr__(self) -> str:
        return f"CancelToken(cancelled={self.cancelled})"
