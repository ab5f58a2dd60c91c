"""
Generic contract binding.

``BoundContract`` ties a contract address and its ABI to a transport and
offers the four primitive operations every typed facade is built from:
read calls, transactions, historical log queries and live log watches.
"""
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple, Type, TypeVar, Union

from eth_utils import is_address, to_checksum_address
from pydantic import ValidationError

from ..abi import AbiGateway
from ..exceptions import (
    DecodeError, FilterError, NoContractCode, OperationCancelled, SubmissionError,
    SubscriptionError, TransportError
)
from ..models import (
    CallOptions, ContractEvent, FilterOptions, LogRecord, TransactOptions, Transaction, WatchOptions
)
from ..transport.base import ContractTransport
from ..transport.subscription import LogSubscription

# Configure logger
logger = logging.getLogger(__name__)

E = TypeVar("E", bound=ContractEvent)


class BoundContract:
    """
    A contract address bound to its ABI and a transport.

    The binding is immutable: rebinding to another address or ABI means
    constructing a new instance. One instance can be shared by any number of
    facades, iterators and watches.

    Args:
        address: Contract address
        abi: ABI as JSON text, a parsed list, or an existing ``AbiGateway``
        transport: Node transport

    Raises:
        ValueError: If the address is not a valid Ethereum address
        MalformedABI: If the ABI cannot be parsed
    """

    def __init__(
        self,
        address: str,
        abi: Union[str, Sequence[Dict[str, Any]], AbiGateway],
        transport: ContractTransport
    ):
        if not is_address(address):
            raise ValueError(f"Invalid contract address: {address}")
        self._address = to_checksum_address(address)
        self._abi = abi if isinstance(abi, AbiGateway) else AbiGateway(abi)
        self._transport = transport

    @property
    def address(self) -> str:
        return self._address

    @property
    def abi(self) -> AbiGateway:
        return self._abi

    @property
    def transport(self) -> ContractTransport:
        return self._transport

    def __repr__(self) -> str:
        return f"BoundContract(address={self._address!r})"

    def call(self, opts: Optional[CallOptions], method: str, *args: Any) -> Tuple[Any, ...]:
        """
        Invoke a read-only method and decode its outputs.

        Returns:
            The decoded outputs, one tuple element per declared output

        Raises:
            OperationCancelled: If ``opts.cancel`` already fired
            EncodeError: If the arguments do not fit the method
            CallReverted: If execution failed
            NoContractCode: If nothing is deployed at the address
            DecodeError: If the returned bytes do not match the outputs
        """
        opts = opts or CallOptions()
        if opts.cancel is not None:
            opts.cancel.raise_if_cancelled()
        data = self._abi.encode(method, *args)
        output = self._transport.call_contract(
            self._address, data, block=opts.block, from_address=opts.from_address
        )
        declared = self._abi.method(method).outputs
        if not output and declared:
            if not self._transport.code_at(self._address, block=opts.block):
                raise NoContractCode(f"No contract code at {self._address}")
        result = self._abi.decode_result(method, output)
        logger.debug(f"Call {method} returned {len(result)} values")
        return result

    def transact(self, opts: TransactOptions, method: str, *args: Any) -> Transaction:
        """
        Sign and submit a method invocation. Does not wait for mining.

        Raises:
            OperationCancelled: If ``opts.cancel`` already fired
            EncodeError: If the arguments do not fit the method
            SubmissionError: If filling, signing or sending the transaction fails
        """
        data = self._abi.encode(method, *args)
        return self._submit(opts, data)

    def transfer(self, opts: TransactOptions) -> Transaction:
        """Send ``opts.value`` with empty calldata, invoking the fallback."""
        return self._submit(opts, b"")

    def _submit(self, opts: TransactOptions, data: bytes) -> Transaction:
        if opts.cancel is not None:
            opts.cancel.raise_if_cancelled()
        signer = opts.signer
        try:
            nonce = opts.nonce if opts.nonce is not None else self._transport.pending_nonce(signer.address)
            gas_price = opts.gas_price if opts.gas_price is not None else self._transport.suggest_gas_price()
            gas = opts.gas_limit
            if gas is None:
                gas = self._transport.estimate_gas({
                    "from": signer.address,
                    "to": self._address,
                    "value": opts.value,
                    "data": data,
                })
            chain_id = self._transport.chain_id()
        except SubmissionError:
            raise
        except TransportError as e:
            logger.error(f"Failed to prepare transaction: {e}")
            raise SubmissionError(f"Failed to prepare transaction: {e}") from e

        tx = {
            "to": self._address,
            "value": opts.value,
            "gas": gas,
            "gasPrice": gas_price,
            "nonce": nonce,
            "data": "0x" + data.hex(),
            "chainId": chain_id,
        }
        try:
            signed = signer.sign_transaction(tx)
            # eth_account accounts return a SignedTransaction rather than raw bytes
            raw = signed if isinstance(signed, (bytes, bytearray)) else signed.raw_transaction
        except Exception as e:
            logger.error(f"Failed to sign transaction: {e}")
            raise SubmissionError(f"Failed to sign transaction: {e}") from e

        if opts.cancel is not None and opts.cancel.cancelled:
            raise OperationCancelled("Transaction cancelled before submission")
        tx_hash = self._transport.send_transaction(raw)
        hash_hex = "0x" + bytes(tx_hash).hex()
        logger.info(f"Transaction sent: {hash_hex}")
        return Transaction(
            hash=hash_hex,
            nonce=nonce,
            to=self._address,
            value=opts.value,
            gas=gas,
            gas_price=gas_price,
            data=data,
            chain_id=chain_id,
            raw=bytes(raw),
        )

    def filter_logs(
        self,
        opts: Optional[FilterOptions],
        event: str,
        *query: Optional[Sequence[Any]]
    ) -> List[LogRecord]:
        """
        Run a one-shot historical query for ``event``.

        Raises:
            FilterError: If the query fails
        """
        opts = opts or FilterOptions()
        topics = self._abi.event_topics(event, *query)
        try:
            records = self._transport.filter_logs(self._address, topics, start=opts.start, end=opts.end)
        except FilterError:
            raise
        except TransportError as e:
            raise FilterError(f"Log query for {event} failed: {e}") from e
        logger.debug(f"Historical query for {event} returned {len(records)} records")
        return records

    def watch_logs(
        self,
        opts: Optional[Union[WatchOptions, FilterOptions]],
        event: str,
        *query: Optional[Sequence[Any]]
    ) -> LogSubscription:
        """
        Open a live subscription for ``event``.

        Raises:
            SubscriptionError: If streaming cannot be established
        """
        start = opts.start if opts is not None else None
        topics = self._abi.event_topics(event, *query)
        try:
            subscription = self._transport.subscribe_logs(self._address, topics, start=start)
        except SubscriptionError:
            raise
        except TransportError as e:
            raise SubscriptionError(f"Cannot subscribe to {event}: {e}") from e
        logger.info(f"Watching {event} logs of {self._address}")
        return subscription

    def unpack_log(self, event_cls: Type[E], event: str, record: LogRecord) -> E:
        """
        Decode ``record`` into ``event_cls`` with the raw record attached.

        Raises:
            DecodeError: If the record does not match the event
        """
        values = self._abi.decode_log(event, record)
        try:
            return event_cls.model_validate({**values, "raw": record})
        except ValidationError as e:
            raise DecodeError(f"Cannot build {event_cls.__name__} from {event} log: {e}") from e
