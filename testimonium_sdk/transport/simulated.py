"""
In-memory transport for tests and local development.

``SimulatedTransport`` plays the part of a node: contract calls are answered
by registered handlers, sent transactions are recorded and can be mined into
receipts, historical logs are stored in a list, and live subscriptions are
fed explicitly with ``emit``. Failures of each capability can be injected.
"""
import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from eth_account import Account
from eth_utils import keccak, to_bytes

from ..exceptions import (
    CallReverted, FilterError, SubmissionError, SubscriptionError
)
from ..models import BlockRef, LogRecord, TxReceipt
from .base import ContractTransport, Topics
from .subscription import LogSubscription

# Configure logger
logger = logging.getLogger(__name__)

CallHandler = Callable[[bytes], bytes]

# Minimal runtime code so code_at() reports a deployed contract
DEFAULT_CODE = bytes.fromhex("6080604052")


def _key(address: str) -> str:
    return address.lower()


def _matches(record: LogRecord, address: str, topics: Topics) -> bool:
    if _key(record.address) != _key(address):
        return False
    for position, options in enumerate(topics):
        if options is None:
            continue
        if position >= len(record.topics) or record.topics[position] not in options:
            return False
    return True


class SimulatedTransport(ContractTransport):
    """
    Node simulator implementing the full transport capability set.

    Args:
        chain_id: Chain id reported to signers
        gas_price: Value returned by ``suggest_gas_price``
        gas_estimate: Value returned by ``estimate_gas``
    """

    def __init__(self, chain_id: int = 1337, gas_price: int = 10**9, gas_estimate: int = 100_000):
        self._chain_id = chain_id
        self.gas_price = gas_price
        self.gas_estimate = gas_estimate
        self._lock = threading.Lock()
        self._code: Dict[str, bytes] = {}
        self._handlers: Dict[Tuple[str, bytes], CallHandler] = {}
        self._nonces: Dict[str, int] = {}
        self._logs: List[LogRecord] = []
        self._subscriptions: List[Tuple[str, Topics, LogSubscription]] = []
        self._pending: List[Tuple[bytes, str, Optional[str]]] = []
        self._receipts: Dict[bytes, TxReceipt] = {}
        self.block_number = 0

        # Recorded traffic
        self.calls: List[Tuple[str, bytes, Optional[BlockRef], Optional[str]]] = []
        self.sent: List[bytes] = []
        self.estimates: List[Dict[str, Any]] = []
        self.subscribe_calls = 0
        self.unsubscribe_calls = 0

        # Injected failures
        self.call_error: Optional[Exception] = None
        self.submit_error: Optional[Exception] = None
        self.filter_error: Optional[Exception] = None
        self.subscribe_error: Optional[Exception] = None

    # Chain setup

    def deploy(self, address: str, code: bytes = DEFAULT_CODE) -> None:
        """Place code at ``address`` so it looks like a deployed contract."""
        self._code[_key(address)] = code

    def on_call(self, address: str, selector: bytes, response: Union[bytes, CallHandler]) -> None:
        """
        Answer calls to ``address`` whose calldata starts with ``selector``.

        ``response`` is either the raw return bytes or a function receiving
        the full calldata and returning them.
        """
        if isinstance(response, (bytes, bytearray)):
            payload = bytes(response)
            handler: CallHandler = lambda _data: payload
        else:
            handler = response
        self._handlers[(_key(address), bytes(selector))] = handler
        if _key(address) not in self._code:
            self.deploy(address)

    def make_log(
        self,
        address: str,
        topics: List[bytes],
        data: bytes = b"",
        block_number: Optional[int] = None,
        log_index: int = 0,
        transaction_hash: Optional[bytes] = None
    ) -> LogRecord:
        """Build a log record with deterministic provenance."""
        if block_number is None:
            block_number = self.block_number
        return LogRecord(
            address=address,
            topics=list(topics),
            data=data,
            block_number=block_number,
            block_hash=keccak(text=f"block-{block_number}"),
            transaction_hash=transaction_hash or keccak(text=f"tx-{block_number}-{log_index}"),
            transaction_index=0,
            log_index=log_index,
        )

    def add_log(self, record: LogRecord) -> LogRecord:
        """Store a record in history, visible to ``filter_logs`` only."""
        with self._lock:
            self._logs.append(record)
        return record

    def emit(self, record: LogRecord) -> int:
        """
        Push a record to every live subscription whose filter matches.

        Returns:
            Number of subscriptions that accepted the record
        """
        with self._lock:
            targets = [sub for address, topics, sub in self._subscriptions if _matches(record, address, topics)]
        return sum(1 for sub in targets if sub.deliver(record))

    def fail_subscriptions(self, error: Exception) -> None:
        """End every live subscription with ``error``."""
        for _, _, sub in self._live():
            sub.fail(error)

    def finish_subscriptions(self) -> None:
        """End every live subscription cleanly."""
        for _, _, sub in self._live():
            sub.finish()

    def _live(self) -> List[Tuple[str, Topics, LogSubscription]]:
        with self._lock:
            return list(self._subscriptions)

    @property
    def active_subscriptions(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def mine(self) -> List[TxReceipt]:
        """Include every pending transaction in a new block."""
        with self._lock:
            pending, self._pending = self._pending, []
            self.block_number += 1
            block_hash = "0x" + keccak(text=f"block-{self.block_number}").hex()
            mined = []
            for tx_hash, sender, to in pending:
                receipt = TxReceipt(
                    transactionHash="0x" + tx_hash.hex(),
                    blockNumber=self.block_number,
                    blockHash=block_hash,
                    status=1,
                    gasUsed=21_000,
                    **{"from": sender, "to": to}
                )
                self._receipts[tx_hash] = receipt
                mined.append(receipt)
        logger.debug(f"Mined block {self.block_number} with {len(mined)} transactions")
        return mined

    # Transport capabilities

    def call_contract(
        self,
        address: str,
        data: bytes,
        block: Optional[BlockRef] = None,
        from_address: Optional[str] = None
    ) -> bytes:
        self.calls.append((address, bytes(data), block, from_address))
        if self.call_error is not None:
            raise self.call_error
        if _key(address) not in self._code:
            return b""
        handler = self._handlers.get((_key(address), bytes(data[:4])))
        if handler is None:
            raise CallReverted("execution reverted")
        return handler(bytes(data))

    def code_at(self, address: str, block: Optional[BlockRef] = None) -> bytes:
        return self._code.get(_key(address), b"")

    def send_transaction(self, raw_tx: bytes) -> bytes:
        if self.submit_error is not None:
            if isinstance(self.submit_error, SubmissionError):
                raise self.submit_error
            raise SubmissionError(f"Failed to send transaction: {self.submit_error}") from self.submit_error
        try:
            sender = Account.recover_transaction(raw_tx)
        except Exception as e:
            raise SubmissionError(f"Invalid raw transaction: {e}") from e
        tx_hash = keccak(raw_tx)
        with self._lock:
            self.sent.append(bytes(raw_tx))
            self._nonces[_key(sender)] = self._nonces.get(_key(sender), 0) + 1
            self._pending.append((tx_hash, sender, None))
        logger.debug(f"Accepted transaction 0x{tx_hash.hex()} from {sender}")
        return tx_hash

    def pending_nonce(self, address: str) -> int:
        return self._nonces.get(_key(address), 0)

    def suggest_gas_price(self) -> int:
        return self.gas_price

    def estimate_gas(self, transaction: Dict[str, Any]) -> int:
        self.estimates.append(dict(transaction))
        return self.gas_estimate

    def chain_id(self) -> int:
        return self._chain_id

    def latest_block(self) -> int:
        return self.block_number

    def filter_logs(
        self,
        address: str,
        topics: Topics,
        start: int = 0,
        end: Optional[int] = None
    ) -> List[LogRecord]:
        if self.filter_error is not None:
            if isinstance(self.filter_error, FilterError):
                raise self.filter_error
            raise FilterError(f"Log query failed: {self.filter_error}") from self.filter_error
        with self._lock:
            history = list(self._logs)
        return [
            record for record in history
            if _matches(record, address, topics)
            and (record.block_number or 0) >= start
            and (end is None or (record.block_number or 0) <= end)
        ]

    def subscribe_logs(
        self,
        address: str,
        topics: Topics,
        start: Optional[int] = None
    ) -> LogSubscription:
        self.subscribe_calls += 1
        if self.subscribe_error is not None:
            if isinstance(self.subscribe_error, SubscriptionError):
                raise self.subscribe_error
            raise SubscriptionError(f"Cannot subscribe: {self.subscribe_error}") from self.subscribe_error

        entry: List[Tuple[str, Topics, LogSubscription]] = []

        def release() -> None:
            with self._lock:
                self.unsubscribe_calls += 1
                if entry[0] in self._subscriptions:
                    self._subscriptions.remove(entry[0])

        subscription = LogSubscription(on_unsubscribe=release)
        entry.append((address, list(topics), subscription))
        with self._lock:
            self._subscriptions.append(entry[0])
        return subscription

    def transaction_receipt(self, tx_hash: bytes) -> Optional[TxReceipt]:
        if isinstance(tx_hash, str):
            tx_hash = to_bytes(hexstr=tx_hash)
        return self._receipts.get(bytes(tx_hash))
