"""
Exceptions for the Testimonium SDK.
"""
from typing import Optional


class TestimoniumError(Exception):
    """Base exception for all SDK errors."""
    pass


class OperationCancelled(TestimoniumError):
    """Raised by operations that must produce a value but were cancelled first."""
    pass


class MalformedABI(TestimoniumError):
    """Raised at bind time when the ABI description cannot be parsed."""
    pass


class EncodeError(TestimoniumError):
    """Raised when arguments do not fit a method's declared inputs."""
    pass


class DecodeError(TestimoniumError):
    """Raised when returned bytes or a log record do not match the declared shape."""
    pass


class TransportError(TestimoniumError):
    """Raised when the underlying node connection fails."""
    pass


class CallReverted(TransportError):
    """Raised when the node reports execution failure for a read call."""

    def __init__(self, message: str, revert_data: Optional[bytes] = None):
        self.revert_data = revert_data
        super().__init__(message)


class NoContractCode(CallReverted):
    """Raised when a call returns nothing because no contract lives at the address."""
    pass


class SubmissionError(TransportError):
    """Raised when a transaction cannot be signed or submitted."""
    pass


class FilterError(TransportError):
    """Raised when a historical log query fails."""
    pass


class SubscriptionError(TransportError):
    """Raised when a live log subscription cannot be established or breaks."""
    pass
