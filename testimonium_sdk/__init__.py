"""
Testimonium SDK - typed client for the Testimonium Ethereum relay contract.
"""
from .abi import AbiGateway
from .bind import (
    BoundContract,
    Caller,
    EventIterator,
    EventWatch,
    Filterer,
    Session,
    Transactor,
    call_method,
    transact_method,
    wait_mined,
)
from .cancel import CancelToken
from .channel import Channel
from .client import TestimoniumClient
from .config import NetworkConfig
from .contracts import Header, SubmitBlockHeader, Testimonium
from .exceptions import (
    CallReverted,
    DecodeError,
    EncodeError,
    FilterError,
    MalformedABI,
    NoContractCode,
    OperationCancelled,
    SubmissionError,
    SubscriptionError,
    TestimoniumError,
    TransportError,
)
from .models import (
    CallOptions,
    ContractEvent,
    FilterOptions,
    LogRecord,
    TransactOptions,
    Transaction,
    TxReceipt,
    WatchOptions,
)
from .signer import LocalSigner, Signer
from .transport import ContractTransport, LogSubscription, SimulatedTransport, Web3Transport
from .version import __version__

__all__ = [
    "AbiGateway",
    "BoundContract",
    "Caller",
    "CallOptions",
    "CallReverted",
    "CancelToken",
    "Channel",
    "ContractEvent",
    "ContractTransport",
    "DecodeError",
    "EncodeError",
    "EventIterator",
    "EventWatch",
    "Filterer",
    "FilterError",
    "FilterOptions",
    "Header",
    "LocalSigner",
    "LogRecord",
    "LogSubscription",
    "MalformedABI",
    "NetworkConfig",
    "NoContractCode",
    "OperationCancelled",
    "Session",
    "Signer",
    "SimulatedTransport",
    "SubmissionError",
    "SubmitBlockHeader",
    "SubscriptionError",
    "Testimonium",
    "TestimoniumClient",
    "TestimoniumError",
    "TransactOptions",
    "Transaction",
    "Transactor",
    "TransportError",
    "TxReceipt",
    "WatchOptions",
    "Web3Transport",
    "call_method",
    "transact_method",
    "wait_mined",
    "__version__",
]
