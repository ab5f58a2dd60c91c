"""
Generic ABI-driven contract binding.
"""
from .bound_contract import BoundContract
from .facade import Caller, Filterer, Session, Transactor, call_method, transact_method
from .iterator import EventIterator
from .waiter import wait_mined
from .watch import EventWatch

__all__ = [
    "BoundContract",
    "Caller",
    "EventIterator",
    "EventWatch",
    "Filterer",
    "Session",
    "Transactor",
    "call_method",
    "transact_method",
    "wait_mined",
]
