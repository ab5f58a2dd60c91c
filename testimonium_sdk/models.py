"""
Data models for the Testimonium SDK.
"""
from typing import Any, Dict, List, Optional, Tuple, Union

from eth_utils import to_bytes
from pydantic import BaseModel, Field, field_validator

from .cancel import CancelToken
from .signer import Signer

BlockRef = Union[int, str]


def _hex_to_bytes(value: Any) -> Any:
    if isinstance(value, str):
        return to_bytes(hexstr=value)
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    return value


def _hex_to_int(value: Any) -> Any:
    if isinstance(value, str) and value.startswith("0x"):
        return int(value, 16)
    return value


class CallOptions(BaseModel):
    """Options for a read-only contract call"""
    from_address: Optional[str] = None
    block: Optional[BlockRef] = None
    cancel: Optional[CancelToken] = None

    class Config:
        frozen = True
        arbitrary_types_allowed = True


class TransactOptions(BaseModel):
    """Options for a state-mutating transaction; unset gas and nonce are filled from the node"""
    signer: Signer
    gas_limit: Optional[int] = None
    gas_price: Optional[int] = None
    nonce: Optional[int] = None
    value: int = 0
    cancel: Optional[CancelToken] = None

    class Config:
        frozen = True
        arbitrary_types_allowed = True


class FilterOptions(BaseModel):
    """
    Options for event iteration.

    ``end=None`` follows the chain past the historical range with a live
    subscription; an explicit ``end`` bounds the iteration to the historical
    query.
    """
    start: int = 0
    end: Optional[int] = None
    cancel: Optional[CancelToken] = None

    class Config:
        frozen = True
        arbitrary_types_allowed = True


class WatchOptions(BaseModel):
    """Options for a live log subscription"""
    start: Optional[int] = None
    cancel: Optional[CancelToken] = None

    class Config:
        frozen = True
        arbitrary_types_allowed = True


class LogRecord(BaseModel):
    """Raw log record as reported by the node"""
    address: str
    topics: List[bytes] = Field(default_factory=list)
    data: bytes = b""
    block_number: Optional[int] = Field(None, alias="blockNumber")
    block_hash: Optional[bytes] = Field(None, alias="blockHash")
    transaction_hash: Optional[bytes] = Field(None, alias="transactionHash")
    transaction_index: Optional[int] = Field(None, alias="transactionIndex")
    log_index: Optional[int] = Field(None, alias="logIndex")
    removed: bool = False

    class Config:
        populate_by_name = True
        frozen = True

    @field_validator("topics", mode="before")
    @classmethod
    def _topics_to_bytes(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple)):
            return [_hex_to_bytes(topic) for topic in value]
        return value

    @field_validator("data", "block_hash", "transaction_hash", mode="before")
    @classmethod
    def _bytes_fields(cls, value: Any) -> Any:
        return _hex_to_bytes(value)

    @field_validator("block_number", "transaction_index", "log_index", mode="before")
    @classmethod
    def _int_fields(cls, value: Any) -> Any:
        return _hex_to_int(value)

    @property
    def position(self) -> Tuple[Optional[bytes], Optional[int]]:
        """Unique position of the log on chain, usable for deduplication"""
        return self.block_hash, self.log_index


class ContractEvent(BaseModel):
    """Base for typed contract events: decoded fields plus the raw log they came from"""
    raw: LogRecord

    class Config:
        populate_by_name = True
        frozen = True


class Transaction(BaseModel):
    """A submitted transaction"""
    hash: str
    nonce: int
    to: Optional[str] = None
    value: int = 0
    gas: int
    gas_price: int
    data: bytes = b""
    chain_id: int
    raw: bytes

    class Config:
        frozen = True


class TxReceipt(BaseModel):
    """Transaction receipt from the blockchain"""
    tx_hash: str = Field(..., alias="transactionHash")
    block_number: int = Field(..., alias="blockNumber")
    block_hash: str = Field(..., alias="blockHash")
    status: int
    gas_used: int = Field(..., alias="gasUsed")
    from_address: str = Field(..., alias="from")
    to_address: Optional[str] = Field(None, alias="to")
    contract_address: Optional[str] = Field(None, alias="contractAddress")
    logs: List[Dict[str, Any]] = Field(default_factory=list)

    class Config:
        populate_by_name = True

    @property
    def succeeded(self) -> bool:
        return self.status == 1
