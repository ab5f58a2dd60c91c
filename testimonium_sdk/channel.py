"""
Buffered delivery channel with cancellable waits.

A ``Channel`` connects a producer thread (a transport poller, a watch
dispatcher) to a consumer. Both ``put`` and ``get`` can wait on any number of
``CancelToken`` objects at once, which is how the SDK waits for "a record,
an error or a cancellation, whichever comes first" without polling.
"""
import collections
import threading
from contextlib import contextmanager
from typing import Deque, Generic, Iterable, Iterator, Optional, Sequence, TypeVar, Union

from .cancel import CancelToken

T = TypeVar('T')

CancelArg = Union[None, CancelToken, Sequence[Optional[CancelToken]]]


def _tokens(cancel: CancelArg) -> Sequence[CancelToken]:
    if cancel is None:
        return ()
    if isinstance(cancel, CancelToken):
        return (cancel,)
    return tuple(token for token in cancel if token is not None)


class Channel(Generic[T]):
    """
    FIFO channel guarded by a condition variable.

    Args:
        maxsize: Maximum number of buffered items, 0 for unbounded
    """

    def __init__(self, maxsize: int = 0):
        self._items: Deque[T] = collections.deque()
        self._maxsize = maxsize
        self._cond = threading.Condition()
        self._closed = False

    @contextmanager
    def _watching(self, tokens: Iterable[CancelToken]) -> Iterator[None]:
        """Wake waiters on this channel whenever one of ``tokens`` fires."""
        def wake() -> None:
            with self._cond:
                self._cond.notify_all()

        removers = [token.add_callback(wake) for token in tokens]
        try:
            yield
        finally:
            for remove in removers:
                remove()

    def put(self, item: T, cancel: CancelArg = None) -> bool:
        """
        Append ``item``, waiting for free space if the channel is bounded.

        Returns:
            True if the item was enqueued, False if a token fired or the
            channel was closed first
        """
        tokens = _tokens(cancel)
        with self._watching(tokens):
            with self._cond:
                while True:
                    if self._closed or any(token.cancelled for token in tokens):
                        return False
                    if not self._maxsize or len(self._items) < self._maxsize:
                        self._items.append(item)
                        self._cond.notify_all()
                        return True
                    self._cond.wait()

    def get(self, block: bool = True, cancel: CancelArg = None) -> Optional[T]:
        """
        Remove and return the oldest item.

        Buffered items are always handed out before cancellation or closing
        is considered.

        Returns:
            The item, or None when the channel is empty and either ``block``
            is False, a token fired, or the channel is closed
        """
        tokens = _tokens(cancel)
        with self._watching(tokens):
            with self._cond:
                while True:
                    if self._items:
                        item = self._items.popleft()
                        self._cond.notify_all()
                        return item
                    if not block or self._closed or any(token.cancelled for token in tokens):
                        return None
                    self._cond.wait()

    def close(self) -> None:
        """Refuse further puts; buffered items stay readable."""
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    @property
    def closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        with self._cond:
            return len(self._items)

    def __iter__(self) -> Iterator[T]:
        """Drain items until the channel is closed and empty."""
        while True:
            item = self.get()
            if item is None:
                return
            yield item
