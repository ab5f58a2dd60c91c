"""
Node transports for contract bindings.
"""
from .base import ContractTransport
from .simulated import SimulatedTransport
from .subscription import LogSubscription
from .web3_transport import Web3Transport

__all__ = [
    "ContractTransport",
    "LogSubscription",
    "SimulatedTransport",
    "Web3Transport",
]
