"""
Live log subscriptions.

A ``LogSubscription`` is the hand-off point between a transport's producer
(a polling thread, a simulated backend) and the binding layer: records go
into the ``logs`` channel, and the end of the stream is signalled exactly
once through ``done`` together with an optional error.
"""
import logging
import threading
from typing import Callable, Optional

from ..cancel import CancelToken
from ..channel import Channel
from ..exceptions import SubscriptionError
from ..models import LogRecord

logger = logging.getLogger(__name__)


class LogSubscription:
    """
    Stream of log records with a single-assignment terminal slot.

    Args:
        on_unsubscribe: Releases the transport-level resource; called at most once
        buffer_size: Maximum number of undelivered records, 0 for unbounded
    """

    def __init__(self, on_unsubscribe: Optional[Callable[[], None]] = None, buffer_size: int = 0):
        self.logs: Channel[LogRecord] = Channel(buffer_size)
        self.done = CancelToken()
        self._lock = threading.Lock()
        self._error: Optional[SubscriptionError] = None
        self._unsubscribed = False
        self._on_unsubscribe = on_unsubscribe

    @property
    def error(self) -> Optional[SubscriptionError]:
        """Error that ended the stream, None while running or after a clean end."""
        return self._error

    @property
    def unsubscribed(self) -> bool:
        return self._unsubscribed

    def deliver(self, record: LogRecord) -> bool:
        """
        Hand a record to the consumer (producer side).

        Returns:
            False once the stream has ended and the record was dropped
        """
        if self.done.cancelled:
            return False
        return self.logs.put(record, cancel=self.done)

    def fail(self, error: Exception) -> None:
        """End the stream with an error (producer side). Only the first end counts."""
        if not isinstance(error, SubscriptionError):
            wrapped = SubscriptionError(f"Log subscription failed: {error}")
            wrapped.__cause__ = error
            error = wrapped
        with self._lock:
            if self.done.cancelled or self._error is not None:
                return
            self._error = error
        logger.warning(f"Log subscription ended with error: {error}")
        self.done.cancel()

    def finish(self) -> None:
        """End the stream cleanly (producer side)."""
        self.done.cancel()

    def unsubscribe(self) -> None:
        """Stop the stream and release transport resources. Safe to call repeatedly."""
        with self._lock:
            if self._unsubscribed:
                return
            self._unsubscribed = True
        self.done.cancel()
        if self._on_unsubscribe is not None:
            try:
                self._on_unsubscribe()
            except Exception as e:
                # Log warning but don't prevent cleanup
                logger.warning(f"Error releasing log subscription: {e}", exc_info=True)
        logger.debug("Log subscription released")

    def __enter__(self) -> "LogSubscription":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.unsubscribe()
