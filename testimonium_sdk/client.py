"""
TestimoniumClient - high-level client for a deployed Testimonium relay.
"""
import logging
import os
import urllib.parse
from typing import Optional, Union

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .bind import EventIterator, Session, wait_mined
from .cancel import CancelToken
from .config import NetworkConfig
from .contracts import Header, SubmitBlockHeader, Testimonium
from .exceptions import TestimoniumError
from .models import CallOptions, FilterOptions, TransactOptions, Transaction, TxReceipt
from .signer import LocalSigner, Signer
from .transport import Web3Transport


def _is_local(url: str) -> bool:
    host = urllib.parse.urlparse(url).hostname or ""
    return host in ("localhost", "127.0.0.1")


def _hash32(value: Union[str, bytes], name: str) -> bytes:
    """Accept a 32-byte hash as bytes or a hex string with or without 0x."""
    if isinstance(value, str):
        text = value[2:] if value.startswith("0x") else value
        try:
            value = bytes.fromhex(text)
        except ValueError as e:
            raise ValueError(f"Invalid {name} format: {e}")
    if len(value) != 32:
        raise ValueError(f"{name} must be 32 bytes, got {len(value)}")
    return bytes(value)


class TestimoniumClient:
    """
    Client for a Testimonium relay contract.

    This client handles:
    1. Connecting to an Ethereum node over JSON-RPC with retries
    2. Reading relay state (stored headers, fork endpoints, verification)
    3. Submitting and disputing headers
    4. Following SubmitBlockHeader events

    Without ``priv_key`` or ``signer`` the client is read-only.
    """

    def __init__(
        self,
        rpc_url: str,
        contract_address: str,
        priv_key: Optional[str] = None,
        signer: Optional[Signer] = None,
        retry_count: int = 3,
        timeout: int = 30,
        poll_interval: Optional[float] = None,
        expected_chain_id: Optional[int] = None,
        explorer_url: Optional[str] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the TestimoniumClient

        Args:
            rpc_url: Ethereum RPC endpoint URL
            contract_address: Testimonium contract address
            priv_key: Ethereum private key (optional)
            signer: Custom signer object (optional, takes precedence over priv_key)
            retry_count: Number of retries for HTTP requests
            timeout: Timeout for HTTP requests in seconds
            poll_interval: Seconds between subscription and receipt polls
            expected_chain_id: Chain id checked by ``assert_chain_id``
            explorer_url: Block explorer base URL used by ``tx_url``
            logger: Optional logger instance to use for debug/info logging

        Raises:
            ValueError: If the RPC URL doesn't use https (unless it is local or
                TESTIMONIUM_INSECURE_RPC=1 is set), or the address is invalid
        """
        parsed = urllib.parse.urlparse(rpc_url)
        insecure_ok = os.environ.get("TESTIMONIUM_INSECURE_RPC") == "1"
        if parsed.scheme != "https" and not _is_local(rpc_url) and not insecure_ok:
            raise ValueError(f"rpc_url must use https:// for security (got: {parsed.scheme}://)")

        self.rpc_url = rpc_url
        self.logger = logger or logging.getLogger(__name__)
        self.expected_chain_id = expected_chain_id
        self.explorer_url = explorer_url.rstrip("/") if explorer_url else None
        self.poll_interval = poll_interval if poll_interval is not None else NetworkConfig.get_poll_interval()
        self.timeout = timeout

        self.signer: Optional[Signer] = signer
        if self.signer is None and priv_key:
            self.signer = LocalSigner(priv_key)

        # Setup HTTP session with retries
        self.session = requests.Session()
        retries = Retry(
            total=retry_count,
            backoff_factor=0.5,
            status_forcelist=[500, 502, 503, 504],
            allowed_methods=["GET", "POST"],
            raise_on_status=False,
            connect=retry_count,
            read=retry_count,
            other=retry_count
        )
        self.session.mount("http://", HTTPAdapter(max_retries=retries))
        self.session.mount("https://", HTTPAdapter(max_retries=retries))

        self.transport = Web3Transport(
            rpc_url,
            session=self.session,
            timeout=timeout,
            poll_interval=self.poll_interval
        )
        self.relay = Testimonium.at(contract_address, self.transport)
        self.logger.debug(f"TestimoniumClient ready for {self.relay.address} via {rpc_url}")

    @classmethod
    def from_network(
        cls,
        network: str,
        priv_key: Optional[str] = None,
        signer: Optional[Signer] = None,
        rpc_url: Optional[str] = None,
        contract_address: Optional[str] = None,
        **kwargs
    ) -> "TestimoniumClient":
        """
        Create a client from the packaged network configuration.

        Args:
            network: Network name, e.g. "local" or "sepolia"
            priv_key: Ethereum private key (optional)
            signer: Custom signer object (optional)
            rpc_url: Override the configured RPC URL
            contract_address: Override the configured Testimonium address
            **kwargs: Passed to the constructor

        Raises:
            ValueError: If the network is unknown or has no deployment
        """
        return cls(
            rpc_url=NetworkConfig.get_rpc_url(network, rpc_url),
            contract_address=NetworkConfig.get_testimonium_address(network, contract_address),
            priv_key=priv_key,
            signer=signer,
            expected_chain_id=NetworkConfig.get_chain_id(network),
            explorer_url=NetworkConfig.get_explorer_url(network),
            **kwargs
        )

    @property
    def address(self) -> str:
        """
        Get the signing account address

        Raises:
            ValueError: If the client is read-only
        """
        if self.signer is None:
            raise ValueError("No account or signer available")
        return self.signer.address

    @property
    def contract_address(self) -> str:
        return self.relay.address

    def call_options(self, block: Optional[Union[int, str]] = None, cancel: Optional[CancelToken] = None) -> CallOptions:
        from_address = self.signer.address if self.signer is not None else None
        return CallOptions(from_address=from_address, block=block, cancel=cancel)

    def transact_options(self, **overrides) -> TransactOptions:
        """
        Transaction options for the client's signer.

        Raises:
            ValueError: If the client is read-only
        """
        if self.signer is None:
            raise ValueError("A priv_key or signer is required to send transactions")
        return TransactOptions(signer=self.signer, **overrides)

    def session(self, block: Optional[Union[int, str]] = None) -> Session:
        """Relay session bound to this client's options; read-only without a signer."""
        transact_opts = self.transact_options() if self.signer is not None else None
        return self.relay.session(call_opts=self.call_options(block), transact_opts=transact_opts)

    def assert_chain_id(self) -> int:
        """
        Check that the node serves the expected chain.

        Raises:
            TestimoniumError: If the chain id differs from ``expected_chain_id``
        """
        actual = self.transport.chain_id()
        if self.expected_chain_id is not None and actual != self.expected_chain_id:
            raise TestimoniumError(
                f"Chain ID mismatch: expected {self.expected_chain_id}, node reports {actual}"
            )
        return actual

    def tx_url(self, tx_hash: str) -> Optional[str]:
        """Block explorer link for a transaction hash, if an explorer is configured."""
        if not self.explorer_url:
            return None
        if not tx_hash.startswith("0x"):
            tx_hash = "0x" + tx_hash
        return f"{self.explorer_url}/tx/{tx_hash}"

    # Reads

    def is_block(self, block_hash: Union[str, bytes]) -> bool:
        return self.relay.is_block(self.call_options(), _hash32(block_hash, "block_hash"))

    def is_unlocked(self, block_hash: Union[str, bytes]) -> bool:
        return self.relay.is_unlocked(self.call_options(), _hash32(block_hash, "block_hash"))

    def get_header(self, block_hash: Union[str, bytes]) -> Header:
        return self.relay.headers(self.call_options(), _hash32(block_hash, "block_hash"))

    def verify_transaction(
        self,
        tx_hash: Union[str, bytes],
        block_hash: Union[str, bytes],
        confirmations: int
    ) -> bool:
        """Ask the relay whether ``tx_hash`` is in ``block_hash`` with enough confirmations."""
        return self.relay.verify_transaction(
            self.call_options(),
            _hash32(tx_hash, "tx_hash"),
            _hash32(block_hash, "block_hash"),
            confirmations
        )

    # Writes

    def submit_header(
        self,
        rlp_header: Union[str, bytes],
        gas: Optional[int] = None,
        gas_price_override: Optional[int] = None,
        wait_for_receipt: bool = False
    ) -> Union[Transaction, TxReceipt]:
        """
        Submit an RLP encoded block header.

        Returns:
            The receipt when ``wait_for_receipt`` is set, otherwise the
            submitted transaction
        """
        if isinstance(rlp_header, str):
            rlp_header = bytes.fromhex(rlp_header[2:] if rlp_header.startswith("0x") else rlp_header)
        opts = self.transact_options(gas_limit=gas, gas_price=gas_price_override)
        tx = self.relay.submit_header(opts, rlp_header)
        if wait_for_receipt:
            return self.wait_mined(tx)
        return tx

    def dispute_block(
        self,
        block_hash: Union[str, bytes],
        wait_for_receipt: bool = False
    ) -> Union[Transaction, TxReceipt]:
        tx = self.relay.dispute_block(self.transact_options(), _hash32(block_hash, "block_hash"))
        if wait_for_receipt:
            return self.wait_mined(tx)
        return tx

    def wait_mined(self, tx: Union[Transaction, str], cancel: Optional[CancelToken] = None) -> TxReceipt:
        return wait_mined(self.transport, tx, cancel=cancel, poll_interval=self.poll_interval)

    # Events

    def header_events(
        self,
        from_block: int = 0,
        to_block: Optional[int] = None,
        cancel: Optional[CancelToken] = None
    ) -> EventIterator[SubmitBlockHeader]:
        """
        Iterate SubmitBlockHeader events from ``from_block``.

        Without ``to_block`` the iterator follows new blocks until cancelled
        or closed.
        """
        return self.relay.filter_submit_block_header(
            FilterOptions(start=from_block, end=to_block, cancel=cancel)
        )

    def close(self) -> None:
        """Close the transport and its HTTP session."""
        self.transport.close()

    def __enter__(self) -> "TestimoniumClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
