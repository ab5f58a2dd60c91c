"""
Typed facades over a bound contract.

Per-contract classes derive from ``Caller`` (read-only methods),
``Transactor`` (state-mutating methods) and ``Filterer`` (events), and mark
their public methods with ``call_method`` / ``transact_method`` so a
``Session`` knows which default options to bind.
"""
import functools
import logging
from typing import Any, Callable, ClassVar, Optional, Sequence, Type, TypeVar

from pydantic import BaseModel, ValidationError

from ..exceptions import DecodeError
from ..models import CallOptions, ContractEvent, FilterOptions, LogRecord, TransactOptions, Transaction, WatchOptions
from ..transport.base import ContractTransport
from .bound_contract import BoundContract
from .iterator import EventIterator
from .watch import EventWatch, Sink

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])
E = TypeVar("E", bound=ContractEvent)
S = TypeVar("S", bound=BaseModel)

CALL = "call"
TRANSACT = "transact"


def call_method(fn: F) -> F:
    """Mark a facade method taking ``CallOptions`` as its first argument."""
    fn._binding_kind = CALL
    return fn


def transact_method(fn: F) -> F:
    """Mark a facade method taking ``TransactOptions`` as its first argument."""
    fn._binding_kind = TRANSACT
    return fn


class _Facade:
    """Common base: holds the shared ``BoundContract``."""

    ABI: ClassVar[str] = "[]"

    def __init__(self, contract: BoundContract):
        self._contract = contract

    @classmethod
    def at(cls, address: str, transport: ContractTransport):
        """Bind the class's ABI to ``address``."""
        return cls(BoundContract(address, cls.ABI, transport))

    @property
    def contract(self) -> BoundContract:
        return self._contract

    @property
    def address(self) -> str:
        return self._contract.address

    def __repr__(self) -> str:
        return f"{type(self).__name__}(address={self.address!r})"


class Caller(_Facade):
    """Read-only half of a contract binding."""

    def _call(self, opts: Optional[CallOptions], method: str, *args: Any) -> Any:
        result = self._contract.call(opts, method, *args)
        if not result:
            return None
        if len(result) == 1:
            return result[0]
        return result

    def _call_struct(self, struct_cls: Type[S], opts: Optional[CallOptions], method: str, *args: Any) -> S:
        """Call a method with named outputs and return them as ``struct_cls``."""
        result = self._contract.call(opts, method, *args)
        names = self._contract.abi.method(method).output_names
        try:
            return struct_cls.model_validate(dict(zip(names, result)))
        except ValidationError as e:
            raise DecodeError(f"Cannot build {struct_cls.__name__} from {method} output: {e}") from e


class Transactor(_Facade):
    """State-mutating half of a contract binding."""

    def _transact(self, opts: TransactOptions, method: str, *args: Any) -> Transaction:
        return self._contract.transact(opts, method, *args)

    @transact_method
    def transfer(self, opts: TransactOptions) -> Transaction:
        """Send ``opts.value`` wei to the contract's fallback."""
        return self._contract.transfer(opts)


class Filterer(_Facade):
    """Event half of a contract binding."""

    def _filter(
        self,
        event_cls: Type[E],
        event: str,
        opts: Optional[FilterOptions],
        *query: Optional[Sequence[Any]]
    ) -> EventIterator[E]:
        return EventIterator.open(self._contract, event_cls, event, opts, *query)

    def _watch(
        self,
        event_cls: Type[E],
        event: str,
        opts: Optional[WatchOptions],
        sink: Sink,
        *query: Optional[Sequence[Any]]
    ) -> EventWatch[E]:
        return EventWatch.start(self._contract, event_cls, event, opts, sink, *query)

    def _parse(self, event_cls: Type[E], event: str, record: LogRecord) -> E:
        return self._contract.unpack_log(event_cls, event, record)


class Session:
    """
    Contract binding with pre-set call and transact options.

    Methods marked with ``call_method`` receive ``call_opts`` and methods
    marked with ``transact_method`` receive ``transact_opts`` as their first
    argument; everything else is passed through untouched. A session built
    without ``transact_opts`` is read-only: transaction methods are not
    available on it.

    Example:
        session = Session(testimonium, call_opts=CallOptions(block=100))
        session.is_block(block_hash)
    """

    def __init__(
        self,
        contract: _Facade,
        call_opts: Optional[CallOptions] = None,
        transact_opts: Optional[TransactOptions] = None
    ):
        self.contract = contract
        self.call_opts = call_opts or CallOptions()
        self.transact_opts = transact_opts

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        attr = getattr(self.contract, name)
        kind = getattr(attr, "_binding_kind", None)
        if kind == CALL:
            return functools.partial(attr, self.call_opts)
        if kind == TRANSACT:
            if self.transact_opts is None:
                raise AttributeError(f"{name} needs transact options, this session is read-only")
            return functools.partial(attr, self.transact_opts)
        return attr

    def __repr__(self) -> str:
        mode = "read-write" if self.transact_opts is not None else "read-only"
        return f"Session({self.contract!r}, {mode})"
