"""
Pytest fixtures for the Testimonium SDK tests.
"""
from typing import Optional

import eth_abi
import pytest
from eth_utils import keccak

from testimonium_sdk.config import NetworkConfig
from testimonium_sdk.contracts import Testimonium
from testimonium_sdk.models import LogRecord
from testimonium_sdk.signer import LocalSigner
from testimonium_sdk.transport import SimulatedTransport

TEST_PRIV_KEY = "0x1ab7e4534afb18687b9f68872e0f3d6c750628ed6c26b64ccb1aad01b785164d"
TEST_CONTRACT = "0xbca729959391a8d64cf8d08c71b26f3d0e25e83f"
TEST_RPC_URL = "https://rpc.example.com"
TEST_CHAIN_ID = 1337

SUBMIT_BLOCK_HEADER_TOPIC = bytes.fromhex(
    "7583fb6e9684405668d44c92639440a022838246fba8f0e36374203764be2cb2"
)

# Waits in concurrency tests are bounded by this many seconds
WAIT = 5.0


def hash32(fill: int) -> bytes:
    """A recognisable 32-byte value such as 0xAAAA..."""
    return bytes([fill]) * 32


def header_log(
    transport: SimulatedTransport,
    block_hash: bytes,
    nonce: int,
    parent: bytes,
    hash_without_nonce: Optional[bytes] = None,
    block_number: int = 1,
    log_index: int = 0,
    address: str = TEST_CONTRACT
) -> LogRecord:
    """Build a SubmitBlockHeader log record as a node would report it."""
    data = eth_abi.encode(
        ["bytes32", "bytes32", "uint256", "bytes32"],
        [block_hash, hash_without_nonce or keccak(block_hash), nonce, parent],
    )
    return transport.make_log(
        address,
        [SUBMIT_BLOCK_HEADER_TOPIC],
        data,
        block_number=block_number,
        log_index=log_index,
    )


@pytest.fixture(autouse=True)
def _reset_network_cache():
    """Keep NetworkConfig's class-level cache from leaking between tests."""
    NetworkConfig._networks_cache = None
    yield
    NetworkConfig._networks_cache = None


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Ignore relay settings from the developer's shell."""
    for name in (
        "TESTIMONIUM_RPC_URL", "TESTIMONIUM_CONTRACT", "TESTIMONIUM_INSECURE_RPC",
        "TESTIMONIUM_POLL_INTERVAL", "LOCAL_RPC_URL", "SEPOLIA_RPC_URL", "NO_COLOR",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def transport():
    """In-memory node with the relay deployed at TEST_CONTRACT."""
    sim = SimulatedTransport(chain_id=TEST_CHAIN_ID)
    sim.deploy(TEST_CONTRACT)
    return sim


@pytest.fixture
def relay(transport):
    return Testimonium.at(TEST_CONTRACT, transport)


@pytest.fixture
def signer():
    return LocalSigner(TEST_PRIV_KEY)
