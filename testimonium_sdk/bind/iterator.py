"""
Event iterator merging a historical log query with a live subscription.
"""
import collections
import logging
import threading
from typing import Any, Deque, Generic, Iterator, Optional, Sequence, Type, TypeVar

from ..exceptions import DecodeError, TestimoniumError
from ..models import ContractEvent, FilterOptions, LogRecord, WatchOptions
from ..transport.subscription import LogSubscription
from .bound_contract import BoundContract

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=ContractEvent)


class EventIterator(Generic[E]):
    """
    Forward-only cursor over the events of one kind.

    Historical records are returned first, then records from the live
    subscription as they arrive. Records seen by both sources are returned
    twice; ``event.raw.position`` identifies duplicates.

    ``next()`` never raises. After it returns False, ``error`` tells an
    ordinary end (None) from a failure. Always ``close()`` the iterator, or
    use it as a context manager, to release the subscription.

    Use ``EventIterator.open`` to create one.
    """

    def __init__(
        self,
        contract: BoundContract,
        event_cls: Type[E],
        event_name: str,
        backlog: Sequence[LogRecord],
        subscription: Optional[LogSubscription],
        opts: FilterOptions
    ):
        self._contract = contract
        self._event_cls = event_cls
        self._event_name = event_name
        self._backlog: Deque[LogRecord] = collections.deque(backlog)
        self._sub = subscription
        self._opts = opts
        self.event: Optional[E] = None
        self._fail: Optional[TestimoniumError] = None
        self._pending_fail: Optional[TestimoniumError] = None
        self._done = False
        self._closed = False
        self._close_lock = threading.Lock()

    @classmethod
    def open(
        cls,
        contract: BoundContract,
        event_cls: Type[E],
        event_name: str,
        opts: Optional[FilterOptions] = None,
        *query: Optional[Sequence[Any]]
    ) -> "EventIterator[E]":
        """
        Start iterating ``event_name`` logs.

        When ``opts.end`` is None the live subscription is opened before the
        historical query runs, so logs emitted in between are not missed.

        Raises:
            FilterError: If the historical query fails
            SubscriptionError: If the live subscription cannot be opened
        """
        opts = opts or FilterOptions()
        subscription = None
        if opts.end is None:
            subscription = contract.watch_logs(WatchOptions(cancel=opts.cancel), event_name, *query)
        try:
            backlog = contract.filter_logs(opts, event_name, *query)
        except Exception:
            if subscription is not None:
                subscription.unsubscribe()
            raise
        logger.debug(
            f"Opened {event_name} iterator with {len(backlog)} historical records"
            f"{' and a live subscription' if subscription is not None else ''}"
        )
        return cls(contract, event_cls, event_name, backlog, subscription, opts)

    @property
    def error(self) -> Optional[TestimoniumError]:
        """Terminal error, None if iteration ended normally or is still running."""
        return self._fail

    def next(self) -> bool:
        """
        Advance to the next event.

        Returns:
            True when ``event`` holds a new event, False when there are no more
        """
        if self._fail is not None:
            return False

        if self._backlog:
            return self._unpack(self._backlog.popleft())

        if self._sub is None:
            return False

        if self._done:
            record = self._sub.logs.get(block=False)
            if record is not None:
                return self._unpack(record)
            self._fail = self._pending_fail
            return False

        record = self._sub.logs.get(cancel=(self._opts.cancel, self._sub.done))
        if record is not None:
            return self._unpack(record)
        if self._sub.done.cancelled:
            # Drain whatever was buffered before reporting how the stream ended
            self._done = True
            self._pending_fail = self._sub.error
            return self.next()
        return False

    def _unpack(self, record: LogRecord) -> bool:
        try:
            self.event = self._contract.unpack_log(self._event_cls, self._event_name, record)
        except DecodeError as e:
            logger.warning(f"Stopping {self._event_name} iteration: {e}")
            self._fail = e
            return False
        return True

    def close(self) -> None:
        """Release the live subscription. Safe to call more than once."""
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
        if self._sub is not None:
            self._sub.unsubscribe()

    def __iter__(self) -> Iterator[E]:
        while self.next():
            yield self.event

    def __enter__(self) -> "EventIterator[E]":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
