"""
Signer protocol for transaction authorization.
"""
from typing import Any, Dict, Protocol, runtime_checkable


@runtime_checkable
class Signer(Protocol):
    """Protocol for objects that can authorize transactions"""
    address: str

    def sign_transaction(self, transaction_dict: Dict[str, Any]) -> bytes:
        """Sign transaction and return the raw signed payload"""
        ...


from .local import LocalSigner  # noqa: E402

__all__ = ["Signer", "LocalSigner"]
