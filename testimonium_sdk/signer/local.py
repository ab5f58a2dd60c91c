"""
Signer backed by a local private key.
"""
import logging
from typing import Any, Dict

from eth_account import Account
from eth_account.signers.local import LocalAccount

logger = logging.getLogger(__name__)


class LocalSigner:
    """
    Signs transactions with an in-process private key.

    Args:
        private_key: Hex encoded secp256k1 private key
    """

    def __init__(self, private_key: str):
        self._account: LocalAccount = Account.from_key(private_key)
        self.address = self._account.address
        logger.debug(f"Initialized local signer for {self.address}")

    def sign_transaction(self, transaction_dict: Dict[str, Any]) -> bytes:
        signed = self._account.sign_transaction(transaction_dict)
        return bytes(signed.raw_transaction)

    def __repr__(self) -> str:
        return f"LocalSigner(address={self.address})"
