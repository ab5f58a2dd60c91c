"""
Typed bindings for specific contracts.
"""
from .testimonium import (
    TESTIMONIUM_ABI,
    Header,
    SubmitBlockHeader,
    Testimonium,
    TestimoniumCaller,
    TestimoniumFilterer,
    TestimoniumTransactor,
    parse_logs,
)

__all__ = [
    "TESTIMONIUM_ABI",
    "Header",
    "SubmitBlockHeader",
    "Testimonium",
    "TestimoniumCaller",
    "TestimoniumFilterer",
    "TestimoniumTransactor",
    "parse_logs",
]
