"""
JSON-RPC transport backed by web3.py.

Live subscriptions are served over plain HTTP by installing a node-side log
filter and polling ``eth_getFilterChanges`` from a background thread.
"""
import logging
import threading
from typing import Any, Dict, List, Optional

import requests
from eth_utils import to_checksum_address
from pydantic import ValidationError
from web3 import Web3
from web3.exceptions import ContractLogicError, TransactionNotFound, Web3Exception

from ..exceptions import (
    CallReverted, FilterError, SubmissionError, SubscriptionError, TransportError
)
from ..models import BlockRef, LogRecord, TxReceipt
from .base import ContractTransport, Topics
from .subscription import LogSubscription

# Configure logger
logger = logging.getLogger(__name__)

# Failures that mean "the node or the connection misbehaved"
_NODE_ERRORS = (Web3Exception, requests.RequestException, ValueError)

DEFAULT_POLL_INTERVAL = 1.0


def _hex(data: bytes) -> str:
    return "0x" + bytes(data).hex()


def _topics_param(topics: Topics) -> List[Any]:
    return [None if options is None else [_hex(topic) for topic in options] for options in topics]


def _revert_data(error: ContractLogicError) -> Optional[bytes]:
    data = getattr(error, "data", None)
    if isinstance(data, (bytes, bytearray)):
        return bytes(data)
    if isinstance(data, str) and data.startswith("0x"):
        try:
            return bytes.fromhex(data[2:])
        except ValueError:
            return None
    return None


def _plain(value: Any) -> Any:
    """Convert web3 AttributeDicts and HexBytes into plain dicts and hex strings."""
    if isinstance(value, (bytes, bytearray)):
        return _hex(value)
    if isinstance(value, dict) or hasattr(value, "items"):
        return {key: _plain(item) for key, item in dict(value).items()}
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    return value


class Web3Transport(ContractTransport):
    """
    Transport talking to an Ethereum node over HTTP JSON-RPC.

    Args:
        rpc_url: Node endpoint URL
        session: Optional requests session (e.g. with retry adapters mounted)
        timeout: Request timeout in seconds
        poll_interval: Seconds between ``eth_getFilterChanges`` polls
        w3: Pre-built Web3 instance, mainly for tests
    """

    def __init__(
        self,
        rpc_url: str,
        session: Optional[requests.Session] = None,
        timeout: int = 30,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        w3: Optional[Web3] = None
    ):
        self.rpc_url = rpc_url
        self.poll_interval = poll_interval
        self.session = session
        if w3 is None:
            provider = Web3.HTTPProvider(
                rpc_url,
                request_kwargs={"timeout": timeout},
                session=session
            )
            w3 = Web3(provider)
        self.w3 = w3
        logger.debug(f"Initialized web3 transport for {rpc_url}")

    def call_contract(
        self,
        address: str,
        data: bytes,
        block: Optional[BlockRef] = None,
        from_address: Optional[str] = None
    ) -> bytes:
        tx: Dict[str, Any] = {"to": to_checksum_address(address), "data": _hex(data)}
        if from_address:
            tx["from"] = to_checksum_address(from_address)
        try:
            result = self.w3.eth.call(tx, block_identifier=block if block is not None else "latest")
        except ContractLogicError as e:
            logger.debug(f"eth_call reverted: {e}")
            raise CallReverted(f"Execution reverted: {e}", revert_data=_revert_data(e)) from e
        except _NODE_ERRORS as e:
            raise TransportError(f"eth_call failed: {e}") from e
        return bytes(result)

    def code_at(self, address: str, block: Optional[BlockRef] = None) -> bytes:
        try:
            code = self.w3.eth.get_code(
                to_checksum_address(address),
                block_identifier=block if block is not None else "latest"
            )
        except _NODE_ERRORS as e:
            raise TransportError(f"eth_getCode failed: {e}") from e
        return bytes(code)

    def send_transaction(self, raw_tx: bytes) -> bytes:
        try:
            tx_hash = self.w3.eth.send_raw_transaction(raw_tx)
        except _NODE_ERRORS as e:
            logger.error(f"Failed to send transaction: {e}")
            raise SubmissionError(f"Failed to send transaction: {e}") from e
        return bytes(tx_hash)

    def pending_nonce(self, address: str) -> int:
        try:
            return self.w3.eth.get_transaction_count(to_checksum_address(address), "pending")
        except _NODE_ERRORS as e:
            raise TransportError(f"eth_getTransactionCount failed: {e}") from e

    def suggest_gas_price(self) -> int:
        try:
            return self.w3.eth.gas_price
        except _NODE_ERRORS as e:
            raise TransportError(f"eth_gasPrice failed: {e}") from e

    def estimate_gas(self, transaction: Dict[str, Any]) -> int:
        tx = dict(transaction)
        if isinstance(tx.get("data"), (bytes, bytearray)):
            tx["data"] = _hex(tx["data"])
        try:
            return self.w3.eth.estimate_gas(tx)
        except _NODE_ERRORS as e:
            raise TransportError(f"eth_estimateGas failed: {e}") from e

    def chain_id(self) -> int:
        try:
            return self.w3.eth.chain_id
        except _NODE_ERRORS as e:
            raise TransportError(f"eth_chainId failed: {e}") from e

    def latest_block(self) -> int:
        """Number of the most recent block."""
        try:
            return self.w3.eth.block_number
        except _NODE_ERRORS as e:
            raise TransportError(f"eth_blockNumber failed: {e}") from e

    def filter_logs(
        self,
        address: str,
        topics: Topics,
        start: int = 0,
        end: Optional[int] = None
    ) -> List[LogRecord]:
        params = {
            "address": to_checksum_address(address),
            "fromBlock": start,
            "toBlock": end if end is not None else "latest",
            "topics": _topics_param(topics),
        }
        try:
            entries = self.w3.eth.get_logs(params)
        except _NODE_ERRORS as e:
            logger.error(f"Log query failed: {e}")
            raise FilterError(f"eth_getLogs failed: {e}") from e
        logger.debug(f"eth_getLogs returned {len(entries)} records for blocks {start}..{params['toBlock']}")
        try:
            return [LogRecord.model_validate(dict(entry)) for entry in entries]
        except ValidationError as e:
            logger.error(f"Node returned a malformed log: {e}")
            raise FilterError(f"Malformed log from eth_getLogs: {e}") from e

    def subscribe_logs(
        self,
        address: str,
        topics: Topics,
        start: Optional[int] = None
    ) -> LogSubscription:
        params = {
            "address": to_checksum_address(address),
            "fromBlock": start if start is not None else "latest",
            "topics": _topics_param(topics),
        }
        try:
            log_filter = self.w3.eth.filter(params)
        except _NODE_ERRORS as e:
            logger.error(f"Failed to install log filter: {e}")
            raise SubscriptionError(f"eth_newFilter failed: {e}") from e
        filter_id = log_filter.filter_id

        def release() -> None:
            self.w3.eth.uninstall_filter(filter_id)

        subscription = LogSubscription(on_unsubscribe=release)
        poller = threading.Thread(
            target=self._poll_filter,
            args=(subscription, filter_id),
            name=f"log-filter-{filter_id}",
            daemon=True
        )
        poller.start()
        logger.info(f"Subscribed to logs of {params['address']} (filter {filter_id})")
        return subscription

    def _poll_filter(self, subscription: LogSubscription, filter_id: str) -> None:
        while not subscription.done.cancelled:
            try:
                entries = self.w3.eth.get_filter_changes(filter_id)
                records = [LogRecord.model_validate(dict(entry)) for entry in entries]
            except Exception as e:
                if subscription.done.cancelled:
                    return
                logger.error(f"Log filter {filter_id} failed: {e}")
                failure = SubscriptionError(f"eth_getFilterChanges failed: {e}")
                failure.__cause__ = e
                subscription.fail(failure)
                return
            for record in records:
                if not subscription.deliver(record):
                    return
            subscription.done.wait(self.poll_interval)

    def transaction_receipt(self, tx_hash: bytes) -> Optional[TxReceipt]:
        try:
            receipt = self.w3.eth.get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            return None
        except _NODE_ERRORS as e:
            raise TransportError(f"eth_getTransactionReceipt failed: {e}") from e
        if receipt is None:
            return None
        return TxReceipt.model_validate(_plain(receipt))

    def close(self) -> None:
        """Close the HTTP session."""
        if self.session is not None and callable(getattr(self.session, "close", None)):
            try:
                self.session.close()
                logger.debug("HTTP session closed.")
            except Exception as e:
                # Log warning but don't prevent cleanup
                logger.warning(f"Error closing HTTP session: {e}", exc_info=True)
