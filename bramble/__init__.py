from bramble.alloc import DEFAULT_ALLOCATOR, Allocator, BoundedAllocator
from bramble.common import Entry, Flip, Ordering, compare, ordering_of
from bramble.errors import (
    AllocationError,
    ConsumedForestError,
    ContractViolation,
    EmptyForestError,
    ForeignNodeError,
)
from bramble.forest import Handle, PriorityForest

__all__ = [
    "AllocationError",
    "Allocator",
    "BoundedAllocator",
    "ConsumedForestError",
    "ContractViolation",
    "DEFAULT_ALLOCATOR",
    "EmptyForestError",
    "Entry",
    "Flip",
    "ForeignNodeError",
    "Handle",
    "Ordering",
    "PriorityForest",
    "compare",
    "ordering_of",
]
