"""
Transport layer for contract bindings.

This module defines the capability set the binding layer consumes from a
node connection: point-in-time calls, transaction submission, historical
log queries and live log subscriptions, plus the account and fee lookups a
transaction needs before it can be signed.
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ..abi import Topics
from ..models import BlockRef, LogRecord, TxReceipt
from .subscription import LogSubscription

# Configure logger
logger = logging.getLogger(__name__)


class ContractTransport(ABC):
    """
    Abstract base class for node transports.

    Implementations translate their library's failures into the SDK's
    ``TransportError`` family; nothing above this layer sees library
    exceptions.
    """

    @abstractmethod
    def call_contract(
        self,
        address: str,
        data: bytes,
        block: Optional[BlockRef] = None,
        from_address: Optional[str] = None
    ) -> bytes:
        """
        Execute a read-only call against the contract.

        Args:
            address: Contract address
            data: Encoded calldata
            block: Block number or tag, latest when None
            from_address: Caller identity to simulate

        Returns:
            Raw return bytes

        Raises:
            CallReverted: If execution fails
            TransportError: If the node cannot be reached
        """
        pass

    @abstractmethod
    def code_at(self, address: str, block: Optional[BlockRef] = None) -> bytes:
        """Return the code deployed at ``address``."""
        pass

    @abstractmethod
    def send_transaction(self, raw_tx: bytes) -> bytes:
        """
        Submit a signed transaction.

        Returns:
            Transaction hash

        Raises:
            SubmissionError: If the node rejects the transaction
        """
        pass

    @abstractmethod
    def pending_nonce(self, address: str) -> int:
        """Next nonce for ``address``, counting pending transactions."""
        pass

    @abstractmethod
    def suggest_gas_price(self) -> int:
        pass

    @abstractmethod
    def estimate_gas(self, transaction: Dict[str, Any]) -> int:
        pass

    @abstractmethod
    def chain_id(self) -> int:
        pass

    @abstractmethod
    def latest_block(self) -> int:
        """Number of the most recent block."""
        pass

    @abstractmethod
    def filter_logs(
        self,
        address: str,
        topics: Topics,
        start: int = 0,
        end: Optional[int] = None
    ) -> List[LogRecord]:
        """
        Run a one-shot historical log query.

        Args:
            address: Contract address
            topics: Topic filter, one entry per position (None matches anything)
            start: First block
            end: Last block, latest when None

        Raises:
            FilterError: If the query fails
        """
        pass

    @abstractmethod
    def subscribe_logs(
        self,
        address: str,
        topics: Topics,
        start: Optional[int] = None
    ) -> LogSubscription:
        """
        Open a live log subscription.

        Raises:
            SubscriptionError: If streaming cannot be established
        """
        pass

    @abstractmethod
    def transaction_receipt(self, tx_hash: bytes) -> Optional[TxReceipt]:
        """Receipt for a mined transaction, None while it is pending."""
        pass

    def close(self) -> None:
        """Close any open connections or resources."""
        pass

    def __enter__(self) -> "ContractTransport":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
