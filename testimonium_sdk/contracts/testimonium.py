"""
Binding for the Testimonium relay contract.

Testimonium stores Ethereum block headers submitted to it, lets anyone
dispute a header during its lock period, and verifies transaction inclusion
against headers with enough confirmations.
"""
import logging
from typing import Any, ClassVar, List, Optional, Sequence, Tuple

from pydantic import BaseModel, Field

from ..bind import Caller, EventIterator, EventWatch, Filterer, Session, Transactor, call_method, transact_method
from ..bind.watch import Sink
from ..models import CallOptions, ContractEvent, FilterOptions, LogRecord, TransactOptions, Transaction, WatchOptions

logger = logging.getLogger(__name__)


def _fn(name, inputs, outputs, mutability="view"):
    return {
        "constant": mutability in ("view", "pure"),
        "inputs": [{"name": n, "type": t} for n, t in inputs],
        "name": name,
        "outputs": [{"name": n, "type": t} for n, t in outputs],
        "payable": False,
        "stateMutability": mutability,
        "type": "function",
    }


TESTIMONIUM_ABI: List[dict] = [
    _fn("isUnlocked", [("blockHash", "bytes32")], [("", "bool")]),
    _fn("isBlock", [("hash", "bytes32")], [("", "bool")]),
    _fn("disputeBlock", [("blockHash", "bytes32")], [], "nonpayable"),
    _fn(
        "getBlock",
        [("hash", "bytes32")],
        [("", "bytes32")] + [("", "uint256")] * 5 + [("", "bytes32")],
    ),
    _fn(
        "verifyTransaction",
        [("txHash", "bytes32"), ("requested", "bytes32"), ("noOfConfirmations", "uint8")],
        [("", "bool")],
    ),
    _fn("getBlockHashOfEndpoint", [("index", "uint256")], [("", "bytes32")]),
    _fn(
        "headers",
        [("", "bytes32")],
        [
            ("parent", "bytes32"),
            ("stateRoot", "bytes32"),
            ("transactionsRoot", "bytes32"),
            ("receiptsRoot", "bytes32"),
            ("blockNumber", "uint256"),
            ("rlpHeaderHashWithoutNonce", "bytes32"),
            ("nonce", "uint256"),
            ("lockedUntil", "uint256"),
            ("totalDifficulty", "uint256"),
            ("orderedIndex", "uint256"),
            ("iterableIndex", "uint256"),
            ("latestFork", "bytes32"),
        ],
    ),
    _fn("submitHeader", [("_rlpHeader", "bytes")], [], "nonpayable"),
    _fn("getNoOfForks", [], [("", "uint256")]),
    {
        "inputs": [
            {"name": "_rlpHeader", "type": "bytes"},
            {"name": "totalDifficulty", "type": "uint256"},
        ],
        "payable": False,
        "stateMutability": "nonpayable",
        "type": "constructor",
    },
    {
        "anonymous": False,
        "inputs": [
            {"indexed": False, "name": "hash", "type": "bytes32"},
            {"indexed": False, "name": "hashWithoutNonce", "type": "bytes32"},
            {"indexed": False, "name": "nonce", "type": "uint256"},
            {"indexed": False, "name": "parent", "type": "bytes32"},
        ],
        "name": "SubmitBlockHeader",
        "type": "event",
    },
]

SUBMIT_BLOCK_HEADER = "SubmitBlockHeader"


class Header(BaseModel):
    """A stored block header as returned by ``headers(bytes32)``"""
    parent: bytes
    state_root: bytes = Field(..., alias="stateRoot")
    transactions_root: bytes = Field(..., alias="transactionsRoot")
    receipts_root: bytes = Field(..., alias="receiptsRoot")
    block_number: int = Field(..., alias="blockNumber")
    rlp_header_hash_without_nonce: bytes = Field(..., alias="rlpHeaderHashWithoutNonce")
    nonce: int
    locked_until: int = Field(..., alias="lockedUntil")
    total_difficulty: int = Field(..., alias="totalDifficulty")
    ordered_index: int = Field(..., alias="orderedIndex")
    iterable_index: int = Field(..., alias="iterableIndex")
    latest_fork: bytes = Field(..., alias="latestFork")

    class Config:
        populate_by_name = True
        frozen = True


class SubmitBlockHeader(ContractEvent):
    """A ``SubmitBlockHeader`` log: a header was accepted by the relay"""
    hash: bytes
    hash_without_nonce: bytes = Field(..., alias="hashWithoutNonce")
    nonce: int
    parent: bytes


class TestimoniumCaller(Caller):
    """Read-only Testimonium binding"""

    ABI: ClassVar[Any] = TESTIMONIUM_ABI

    @call_method
    def get_block(self, opts: Optional[CallOptions], block_hash: bytes) -> Tuple[bytes, int, int, int, int, int, bytes]:
        """Summary of a stored block as the seven values the contract returns."""
        return self._call(opts, "getBlock", block_hash)

    @call_method
    def get_block_hash_of_endpoint(self, opts: Optional[CallOptions], index: int) -> bytes:
        """Hash of the fork endpoint at ``index``."""
        return self._call(opts, "getBlockHashOfEndpoint", index)

    @call_method
    def get_no_of_forks(self, opts: Optional[CallOptions]) -> int:
        return self._call(opts, "getNoOfForks")

    @call_method
    def headers(self, opts: Optional[CallOptions], block_hash: bytes) -> Header:
        return self._call_struct(Header, opts, "headers", block_hash)

    @call_method
    def is_block(self, opts: Optional[CallOptions], block_hash: bytes) -> bool:
        return self._call(opts, "isBlock", block_hash)

    @call_method
    def is_unlocked(self, opts: Optional[CallOptions], block_hash: bytes) -> bool:
        """Whether the header's dispute period has ended."""
        return self._call(opts, "isUnlocked", block_hash)

    @call_method
    def verify_transaction(
        self,
        opts: Optional[CallOptions],
        tx_hash: bytes,
        requested: bytes,
        no_of_confirmations: int
    ) -> bool:
        """
        Check that ``tx_hash`` is included in block ``requested`` and that the
        block is buried under at least ``no_of_confirmations`` headers.
        """
        return self._call(opts, "verifyTransaction", tx_hash, requested, no_of_confirmations)


class TestimoniumTransactor(Transactor):
    """State-mutating Testimonium binding"""

    ABI: ClassVar[Any] = TESTIMONIUM_ABI

    @transact_method
    def dispute_block(self, opts: TransactOptions, block_hash: bytes) -> Transaction:
        return self._transact(opts, "disputeBlock", block_hash)

    @transact_method
    def submit_header(self, opts: TransactOptions, rlp_header: bytes) -> Transaction:
        """Submit an RLP encoded block header to the relay."""
        return self._transact(opts, "submitHeader", rlp_header)


class TestimoniumFilterer(Filterer):
    """Testimonium event binding"""

    ABI: ClassVar[Any] = TESTIMONIUM_ABI

    def filter_submit_block_header(self, opts: Optional[FilterOptions] = None) -> EventIterator[SubmitBlockHeader]:
        """
        Iterate ``SubmitBlockHeader`` events from ``opts.start``.

        Without ``opts.end`` the iterator keeps following new blocks.
        """
        return self._filter(SubmitBlockHeader, SUBMIT_BLOCK_HEADER, opts)

    def watch_submit_block_header(
        self,
        opts: Optional[WatchOptions],
        sink: Sink
    ) -> EventWatch[SubmitBlockHeader]:
        return self._watch(SubmitBlockHeader, SUBMIT_BLOCK_HEADER, opts, sink)

    def parse_submit_block_header(self, record: LogRecord) -> SubmitBlockHeader:
        return self._parse(SubmitBlockHeader, SUBMIT_BLOCK_HEADER, record)


class Testimonium(TestimoniumCaller, TestimoniumTransactor, TestimoniumFilterer):
    """
    Complete Testimonium binding: calls, transactions and events on one
    shared ``BoundContract``.

    Example:
        relay = Testimonium.at("0xBcA7...", transport)
        if relay.is_block(None, block_hash):
            header = relay.headers(None, block_hash)
    """

    ABI: ClassVar[Any] = TESTIMONIUM_ABI

    @property
    def caller(self) -> TestimoniumCaller:
        return TestimoniumCaller(self._contract)

    @property
    def transactor(self) -> TestimoniumTransactor:
        return TestimoniumTransactor(self._contract)

    @property
    def filterer(self) -> TestimoniumFilterer:
        return TestimoniumFilterer(self._contract)

    def session(
        self,
        call_opts: Optional[CallOptions] = None,
        transact_opts: Optional[TransactOptions] = None
    ) -> Session:
        """Bind default options so they need not be passed on every call."""
        return Session(self, call_opts=call_opts, transact_opts=transact_opts)


def parse_logs(relay: TestimoniumFilterer, records: Sequence[LogRecord]) -> List[SubmitBlockHeader]:
    """Decode a batch of already fetched ``SubmitBlockHeader`` records."""
    return [relay.parse_submit_block_header(record) for record in records]
