"""
Waiting for submitted transactions to be mined.
"""
import logging
from typing import Optional, Union

from eth_utils import to_bytes

from ..cancel import CancelToken
from ..exceptions import OperationCancelled
from ..models import Transaction, TxReceipt
from ..transport.base import ContractTransport

logger = logging.getLogger(__name__)


def wait_mined(
    transport: ContractTransport,
    tx: Union[Transaction, str, bytes],
    cancel: Optional[CancelToken] = None,
    poll_interval: float = 1.0
) -> TxReceipt:
    """
    Poll for the receipt of ``tx`` until it is mined.

    Args:
        transport: Node transport
        tx: Transaction handle or its hash
        cancel: Stops waiting when fired
        poll_interval: Seconds between receipt queries

    Returns:
        The transaction receipt

    Raises:
        OperationCancelled: If ``cancel`` fires before the receipt is available
        TransportError: If a receipt query fails
    """
    if isinstance(tx, Transaction):
        tx_hash = to_bytes(hexstr=tx.hash)
    elif isinstance(tx, str):
        tx_hash = to_bytes(hexstr=tx)
    else:
        tx_hash = bytes(tx)
    cancel = cancel or CancelToken()

    while True:
        receipt = transport.transaction_receipt(tx_hash)
        if receipt is not None:
            logger.debug(f"Transaction 0x{tx_hash.hex()} mined in block {receipt.block_number}")
            return receipt
        logger.debug("Transaction not yet mined")
        if cancel.wait(poll_interval):
            raise OperationCancelled(f"Stopped waiting for transaction 0x{tx_hash.hex()}")
