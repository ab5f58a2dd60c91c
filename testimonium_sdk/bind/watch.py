"""
Background dispatcher pushing decoded events into a caller-supplied sink.
"""
import logging
import threading
from typing import Any, Callable, Generic, Optional, Sequence, Type, TypeVar, Union

from ..cancel import CancelToken
from ..channel import Channel
from ..exceptions import DecodeError
from ..models import ContractEvent, WatchOptions
from ..transport.subscription import LogSubscription
from .bound_contract import BoundContract

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=ContractEvent)

Sink = Union[Channel, Callable[[Any], None]]


class EventWatch(Generic[E]):
    """
    Handle for a running watch.

    The dispatcher thread stops on the first decode failure, when the
    subscription fails, or when the watch is cancelled. Only the first two
    set ``error``.
    """

    def __init__(
        self,
        contract: BoundContract,
        event_cls: Type[E],
        event_name: str,
        subscription: LogSubscription,
        sink: Sink,
        cancel: Optional[CancelToken] = None
    ):
        self._contract = contract
        self._event_cls = event_cls
        self._event_name = event_name
        self._sub = subscription
        self._sink = sink
        self._quit = CancelToken()
        self._error: Optional[Exception] = None
        self._remove_link: Callable[[], None] = lambda: None
        if cancel is not None:
            self._remove_link = cancel.add_callback(self._quit.cancel)
        self._thread = threading.Thread(
            target=self._run,
            name=f"watch-{event_name}",
            daemon=True
        )
        self._thread.start()

    @classmethod
    def start(
        cls,
        contract: BoundContract,
        event_cls: Type[E],
        event_name: str,
        opts: Optional[WatchOptions],
        sink: Sink,
        *query: Optional[Sequence[Any]]
    ) -> "EventWatch[E]":
        """
        Subscribe to ``event_name`` logs and forward them into ``sink``.

        ``sink`` is a ``Channel`` or a callable taking one event.

        Raises:
            SubscriptionError: If the subscription cannot be opened
        """
        opts = opts or WatchOptions()
        subscription = contract.watch_logs(opts, event_name, *query)
        return cls(contract, event_cls, event_name, subscription, sink, cancel=opts.cancel)

    @property
    def error(self) -> Optional[Exception]:
        """Why the watch stopped; None while running or after cancellation."""
        return self._error

    @property
    def running(self) -> bool:
        return self._thread.is_alive()

    def _run(self) -> None:
        try:
            self._error = self._loop()
        finally:
            self._remove_link()
            self._sub.unsubscribe()
        if self._error is not None:
            logger.warning(f"Watch for {self._event_name} stopped: {self._error}")
        else:
            logger.debug(f"Watch for {self._event_name} stopped")

    def _loop(self) -> Optional[Exception]:
        tokens = (self._quit, self._sub.done)
        while True:
            if self._quit.cancelled:
                return None
            if self._sub.done.cancelled:
                return self._sub.error
            record = self._sub.logs.get(cancel=tokens)
            if record is None:
                continue
            try:
                event = self._contract.unpack_log(self._event_cls, self._event_name, record)
            except DecodeError as e:
                return e
            if isinstance(self._sink, Channel):
                if not self._sink.put(event, cancel=tokens):
                    continue
            else:
                try:
                    self._sink(event)
                except Exception as e:
                    logger.error(f"Event sink for {self._event_name} raised: {e}", exc_info=True)
                    return e

    def unsubscribe(self) -> None:
        """Stop the watch and wait for the dispatcher to exit. Safe to call repeatedly."""
        self._quit.cancel()
        if threading.current_thread() is not self._thread:
            self._thread.join()

    def wait(self, timeout: Optional[float] = None) -> Optional[Exception]:
        """Block until the watch stops on its own or ``timeout`` elapses; return ``error``."""
        self._thread.join(timeout)
        return self._error

    def __enter__(self) -> "EventWatch[E]":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.unsubscribe()
