"""Exceptions raised by the priority forest.

Two failure kinds exist. A ``ContractViolation`` is a programmer error
(popping an empty forest, using a handle the forest does not own, using a
forest after it was merged away) and is never reported through a sentinel.
An ``AllocationError`` comes from the allocation hooks and always leaves
the forest exactly as it was before the failing call.
"""

from __future__ import annotations

from typing import Any

__all__ = [
    "AllocationError",
    "ConsumedForestError",
    "ContractViolation",
    "EmptyForestError",
    "ForeignNodeError",
]


class ContractViolation(Exception):
    """Base class for misuse of the forest API."""

    pass


class EmptyForestError(ContractViolation, IndexError):
    """Raised when reading or removing the minimum of an empty forest."""

    def __init__(self, op: str) -> None:
        super().__init__(f"Cannot {op} an empty forest")


class ForeignNodeError(ContractViolation, LookupError):
    """Raised for a handle that is not a live node of the given forest."""

    def __init__(self, handle: Any) -> None:
        super().__init__(f"Handle is not live in this forest: {handle}")


class ConsumedForestError(ContractViolation):
    """Raised when a forest is used after being merged or closed."""

    def __init__(self) -> None:
        super().__init__("Forest was consumed by merge or close")


class AllocationError(MemoryError):
    """Raised by an allocator that cannot satisfy a request."""

    def __init__(self, requested: int, available: int) -> None:
        super().__init__(
            f"Cannot allocate {requested} cells ({available} available)"
        )
        self.requested = requested
        self.available = available
