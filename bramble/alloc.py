"""Allocation hooks for the priority forest.

A forest obtains every node, and the scratch space of each consolidation,
from the allocator it was constructed with. Swapping the allocator is how
callers switch to pooled or capacity-bounded strategies without touching
the forest itself.
"""

from __future__ import annotations

import logging
from abc import ABCMeta, abstractmethod
from typing import Any, List, Optional, override

from bramble.errors import AllocationError
from bramble.node import Node

__all__ = ["Allocator", "BoundedAllocator", "DefaultAllocator", "DEFAULT_ALLOCATOR"]

_LOGGER = logging.getLogger(__name__)


class Allocator(metaclass=ABCMeta):
    """Pluggable source of forest nodes and scratch cells.

    Implementations raise ``AllocationError`` to refuse a request, and must
    not have changed any of their own accounting when they do.
    """

    @abstractmethod
    def allocate[T](self, value: T) -> Node[T]:
        """Return a fresh singleton node holding the given value."""
        raise NotImplementedError()

    @abstractmethod
    def deallocate(self, node: Node[Any]) -> None:
        """Take back a node that is no longer part of any forest."""
        raise NotImplementedError()

    @abstractmethod
    def reserve(self, cells: int) -> None:
        """Claim scratch cells for the duration of one operation."""
        raise NotImplementedError()

    @abstractmethod
    def release(self, cells: int) -> None:
        """Return scratch cells claimed by ``reserve``."""
        raise NotImplementedError()


class DefaultAllocator(Allocator):
    """Unbounded allocator backed by the garbage collector."""

    @override
    def allocate[T](self, value: T) -> Node[T]:
        return Node(value)

    @override
    def deallocate(self, node: Node[Any]) -> None:
        node.reset(None)

    @override
    def reserve(self, cells: int) -> None:
        pass

    @override
    def release(self, cells: int) -> None:
        pass


DEFAULT_ALLOCATOR: Allocator = DefaultAllocator()


class BoundedAllocator(Allocator):
    """Pooling allocator with a fixed number of cells.

    Live nodes and reserved scratch cells both count against the capacity.
    Deallocated nodes are kept on a free list and recycled by later
    allocations.
    """

    def __init__(self, capacity: int) -> None:
        """Create an allocator.

        Args:
            capacity: Total number of cells available (must be >= 0).

        Raises:
            ValueError: If capacity is negative.
        """
        if capacity < 0:
            raise ValueError("Allocator capacity must be non-negative")
        self._capacity = capacity
        self._in_use = 0
        self._free: List[Node[Any]] = []

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def in_use(self) -> int:
        return self._in_use

    @property
    def available(self) -> int:
        return self._capacity - self._in_use

    @property
    def pooled(self) -> int:
        """Number of recycled nodes waiting on the free list."""
        return len(self._free)

    def _claim(self, cells: int) -> None:
        if cells > self.available:
            _LOGGER.warning(
                "Refusing allocation of %d cells (%d of %d in use)",
                cells,
                self._in_use,
                self._capacity,
            )
            raise AllocationError(cells, self.available)
        self._in_use += cells

    @override
    def allocate[T](self, value: T) -> Node[T]:
        self._claim(1)
        node: Optional[Node[Any]] = self._free.pop() if self._free else None
        if node is None:
            return Node(value)
        node.reset(value)
        return node

    @override
    def deallocate(self, node: Node[Any]) -> None:
        node.reset(None)
        self._in_use -= 1
        self._free.append(node)

    @override
    def reserve(self, cells: int) -> None:
        self._claim(cells)

    @override
    def release(self, cells: int) -> None:
        self._in_use -= cells
