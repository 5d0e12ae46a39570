"""Mergeable priority queue built as a Fibonacci-heap forest.

The forest is a ring of heap-ordered multi-way trees plus a pointer to the
root holding the minimum. Insertion and merging only splice rings, so they
are O(1). Removing the minimum promotes its children to roots and then
consolidates the root ring until no two roots share a degree, which is
O(log n) amortized. Cutting a node out of its parent marks the parent, and
cutting a child from an already marked parent cuts the parent too
(cascading cut); this keeps every degree logarithmic in the size and backs
both ``delete`` and ``decrease_key``.
"""

from __future__ import annotations

import copy
import logging
import math
from dataclasses import dataclass
from typing import (
    Any,
    Callable,
    Dict,
    Generator,
    Iterable,
    List,
    Optional,
    Type,
    override,
)

from bramble.alloc import DEFAULT_ALLOCATOR, Allocator
from bramble.common import Comparator, Impossible, Ordering, Sized, compare
from bramble.errors import ConsumedForestError, EmptyForestError, ForeignNodeError
from bramble.node import Node, Owner, iter_ring, merge_lists

__all__ = ["Handle", "PriorityForest", "degree_bound"]

_LOGGER = logging.getLogger(__name__)

_PHI = (1 + math.sqrt(5)) / 2


def degree_bound(size: int) -> int:
    """Number of degree-table slots a consolidation of ``size`` nodes needs.

    A root of degree k holds at least Fib(k+2) >= phi**k nodes, so every
    degree is at most log_phi(size). One extra slot absorbs float rounding.
    """
    if size <= 1:
        return 1
    return int(math.log(size) / math.log(_PHI)) + 2


def _fib(n: int) -> int:
    a, b = 0, 1
    for _ in range(n):
        a, b = b, a + b
    return a


@dataclass(frozen=True, eq=False)
class Handle[T]:
    """Opaque reference to one inserted element.

    Returned by ``PriorityForest.insert`` and accepted by ``delete`` and
    ``decrease_key``. A handle goes stale once its element is removed.
    """

    _node: Node[T]
    _generation: int

    @property
    def live(self) -> bool:
        """True while the element is still held by some forest."""
        node = self._node
        return node.owner is not None and node.generation == self._generation

    @property
    def value(self) -> T:
        """Read-only view of the element.

        Raises:
            ForeignNodeError: If the handle is stale.
        """
        if not self.live:
            raise ForeignNodeError(self)
        return self._node.value


class PriorityForest[T](Sized):
    """A Fredman-Tarjan Fibonacci heap as a mutable mergeable min-queue.

    Not thread safe: callers must serialize access to one forest.
    """

    def __init__(
        self,
        comparator: Comparator[T] = compare,
        allocator: Optional[Allocator] = None,
        copier: Callable[[T], T] = copy.copy,
    ) -> None:
        """Create an empty forest.

        Args:
            comparator: Total order over payloads.
            allocator: Source of nodes and scratch cells. Defaults to the
                shared unbounded allocator.
            copier: Makes the forest's own copy of each inserted payload.
        """
        self._comparator = comparator
        self._allocator = DEFAULT_ALLOCATOR if allocator is None else allocator
        self._copier = copier
        self._owner = Owner()
        self._min: Optional[Node[T]] = None
        self._size = 0
        self._consumed = False

    @staticmethod
    def empty(_ty: Optional[Type[T]] = None) -> PriorityForest[T]:
        """Create an empty forest with the default configuration.

        Args:
            _ty: Optional type hint for elements (unused).
        """
        return PriorityForest()

    @staticmethod
    def mk(
        values: Iterable[T],
        comparator: Comparator[T] = compare,
        allocator: Optional[Allocator] = None,
        copier: Callable[[T], T] = copy.copy,
    ) -> PriorityForest[T]:
        """Create a forest holding all the given values."""
        forest = PriorityForest(comparator, allocator, copier)
        forest.insert_all(values)
        return forest

    @property
    def comparator(self) -> Comparator[T]:
        return self._comparator

    @property
    def allocator(self) -> Allocator:
        return self._allocator

    @property
    def copier(self) -> Callable[[T], T]:
        return self._copier

    @property
    def consumed(self) -> bool:
        """True once the forest was merged into another or closed."""
        return self._consumed

    @override
    def size(self) -> int:
        """Return the number of elements in the forest."""
        self._check_usable()
        return self._size

    def is_empty(self) -> bool:
        return self.null()

    def insert(self, value: T) -> Handle[T]:
        """Insert a copy of the value.

        Time Complexity: O(1)

        Args:
            value: The element to insert.

        Returns:
            A handle to the inserted element.

        Raises:
            AllocationError: If the allocator refuses; the forest is unchanged.
        """
        self._check_usable()
        node = self._allocator.allocate(self._copier(value))
        node.owner = self._owner
        self._min = merge_lists(self._min, node, self._comparator)
        self._size += 1
        return Handle(node, node.generation)

    def insert_all(self, values: Iterable[T]) -> List[Handle[T]]:
        """Insert every value of the iterable, in order."""
        return [self.insert(value) for value in values]

    def peek(self) -> T:
        """Return the minimum element without removing it.

        Raises:
            EmptyForestError: If the forest is empty.
        """
        self._check_usable()
        if self._min is None:
            raise EmptyForestError("peek")
        return self._min.value

    def find_min(self) -> Optional[T]:
        """Return the minimum element, or None if the forest is empty."""
        self._check_usable()
        return None if self._min is None else self._min.value

    def pop(self) -> T:
        """Remove and return the minimum element.

        Time Complexity: O(log n) amortized

        Raises:
            EmptyForestError: If the forest is empty.
            AllocationError: If consolidation scratch space is refused;
                the forest is unchanged.
        """
        self._check_usable()
        removed = self._min
        if removed is None:
            raise EmptyForestError("pop")
        cells = self._scratch_cells(removed)
        self._allocator.reserve(cells)
        try:
            self._remove_min()
        finally:
            self._allocator.release(cells)
        return self._dispose(removed)

    def drain(self) -> Generator[T]:
        """Pop elements until the forest is empty, in ascending order."""
        while self.size() > 0:
            yield self.pop()

    def delete(self, handle: Handle[T]) -> T:
        """Remove an arbitrary element.

        Time Complexity: O(log n) amortized

        Args:
            handle: Handle returned by ``insert`` on this forest (or on a
                forest merged into it).

        Returns:
            The removed element.

        Raises:
            ForeignNodeError: If the handle is stale or not from this forest.
            AllocationError: If consolidation scratch space is refused;
                the forest is unchanged.
        """
        self._check_usable()
        node = self._resolve(handle)
        cells = self._scratch_cells(node)
        self._allocator.reserve(cells)
        try:
            if node.parent is not None:
                self._cut(node)
            self._min = node
            self._remove_min()
        finally:
            self._allocator.release(cells)
        return self._dispose(node)

    def decrease_key(self, handle: Handle[T], value: T) -> None:
        """Replace an element with a smaller or equal one.

        Time Complexity: O(1) amortized

        Raises:
            ForeignNodeError: If the handle is stale or not from this forest.
            ValueError: If the new value compares greater than the old one.
        """
        self._check_usable()
        node = self._resolve(handle)
        new_value = self._copier(value)
        if self._comparator(new_value, node.value) == Ordering.Gt:
            raise ValueError("decrease_key cannot increase an element")
        node.value = new_value
        parent = node.parent
        if parent is not None:
            if self._comparator(new_value, parent.value) == Ordering.Lt:
                self._cut(node)
        elif self._min is not None:
            if self._comparator(new_value, self._min.value) == Ordering.Lt:
                self._min = node

    def merge(self, other: PriorityForest[T]) -> PriorityForest[T]:
        """Merge this forest with another, consuming both.

        Time Complexity: O(1)

        Both forests must share comparator, allocator and copier. Afterwards
        neither input may be used again; handles into either now refer to the
        result.

        Returns:
            A new forest holding all elements of both.

        Raises:
            ValueError: If the forests are the same object or configured
                differently.
            ConsumedForestError: If either forest was already consumed.
        """
        self._check_usable()
        other._check_usable()
        if other is self:
            raise ValueError("Cannot merge a forest with itself")
        if other._comparator is not self._comparator:
            raise ValueError("Cannot merge forests with different comparators")
        if other._allocator is not self._allocator:
            raise ValueError("Cannot merge forests with different allocators")
        if other._copier is not self._copier:
            raise ValueError("Cannot merge forests with different copiers")
        merged: PriorityForest[T] = PriorityForest(
            self._comparator, self._allocator, self._copier
        )
        merged._min = merge_lists(self._min, other._min, self._comparator)
        merged._size = self._size + other._size
        self._owner.forward = merged._owner
        other._owner.forward = merged._owner
        _LOGGER.debug("Merged forests of sizes %d and %d", self._size, other._size)
        self._consume()
        other._consume()
        return merged

    def close(self) -> None:
        """Release every remaining node and consume the forest.

        Calling close on a consumed forest does nothing.
        """
        if self._consumed:
            return
        released = 0
        stack = iter_ring(self._min)
        while stack:
            node = stack.pop()
            stack.extend(iter_ring(node.child))
            node.owner = None
            self._allocator.deallocate(node)
            released += 1
        _LOGGER.debug("Closed forest, released %d nodes", released)
        self._consume()

    def verify(self) -> None:
        """Check every structural invariant of the forest.

        Raises:
            Impossible: On the first violated invariant found.
        """
        self._check_usable()
        if self._min is None:
            if self._size != 0:
                raise Impossible(f"Empty root ring with size {self._size}")
            return
        total = 0
        for root in self._checked_ring(self._min):
            if root.parent is not None:
                raise Impossible("Root with a parent")
            if root.marked:
                raise Impossible("Marked root")
            if self._comparator(root.value, self._min.value) == Ordering.Lt:
                raise Impossible("Minimum pointer is not minimal")
            total += self._verify_tree(root)
        if total != self._size:
            raise Impossible(f"Counted {total} nodes but size is {self._size}")

    def __add__(self, other: PriorityForest[T]) -> PriorityForest[T]:
        """Alias for merge()."""
        return self.merge(other)

    def __enter__(self) -> PriorityForest[T]:
        self._check_usable()
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def _check_usable(self) -> None:
        if self._consumed:
            raise ConsumedForestError()

    def _consume(self) -> None:
        self._min = None
        self._size = 0
        self._consumed = True

    def _resolve(self, handle: Handle[T]) -> Node[T]:
        node = handle._node
        owner = node.owner
        if (
            owner is None
            or node.generation != handle._generation
            or owner.resolve() is not self._owner
        ):
            raise ForeignNodeError(handle)
        return node

    def _dispose(self, node: Node[T]) -> T:
        value = node.value
        node.owner = None
        self._allocator.deallocate(node)
        return value

    def _scratch_cells(self, target: Node[T]) -> int:
        # Degree table plus the snapshot of roots to visit once the target
        # is removed. Each cascading cut adds at most one root per ancestor.
        if self._min is None:
            raise Impossible
        roots = len(iter_ring(self._min))
        parent = target.parent
        while parent is not None:
            roots += 1
            parent = parent.parent
        return degree_bound(self._size) + roots - 1 + target.degree

    def _remove_min(self) -> None:
        removed = self._min
        if removed is None:
            raise Impossible
        table_size = degree_bound(self._size)
        rest = removed.detach()
        child = removed.child
        if child is not None:
            for node in iter_ring(child):
                node.parent = None
                node.marked = False
            removed.child = None
            removed.degree = 0
        start = merge_lists(rest, child, self._comparator)
        self._min = start
        if start is not None:
            self._consolidate(start, table_size)
        self._size -= 1

    def _consolidate(self, start: Node[T], table_size: int) -> None:
        table: List[Optional[Node[T]]] = [None] * table_size
        roots = iter_ring(start)
        links = 0
        for root in roots:
            cur = root
            while True:
                if cur.degree >= table_size:
                    raise Impossible(
                        f"Degree {cur.degree} exceeds table of {table_size}"
                    )
                other = table[cur.degree]
                if other is None:
                    table[cur.degree] = cur
                    break
                table[cur.degree] = None
                if self._comparator(other.value, cur.value) == Ordering.Lt:
                    winner, loser = other, cur
                else:
                    winner, loser = cur, other
                self._link(winner, loser)
                links += 1
                cur = winner
            if self._min is None:
                raise Impossible
            if self._comparator(cur.value, self._min.value) != Ordering.Gt:
                self._min = cur
        _LOGGER.debug(
            "Consolidated %d roots into %d with %d links",
            len(roots),
            len(roots) - links,
            links,
        )

    def _link(self, winner: Node[T], loser: Node[T]) -> None:
        loser.detach()
        loser.marked = False
        loser.parent = winner
        winner.child = merge_lists(winner.child, loser, self._comparator)
        winner.degree += 1

    def _cut(self, node: Node[T]) -> None:
        while True:
            node.marked = False
            parent = node.parent
            if parent is None:
                return
            rest = node.detach()
            if parent.child is node:
                parent.child = rest
            parent.degree -= 1
            node.parent = None
            # The existing minimum keeps its place on ties
            self._min = merge_lists(node, self._min, self._comparator)
            if parent.marked:
                node = parent
            else:
                if parent.parent is not None:
                    parent.marked = True
                return

    def _checked_ring(self, start: Node[T]) -> List[Node[T]]:
        members = iter_ring(start)
        for member in members:
            if member.next.prev is not member or member.prev.next is not member:
                raise Impossible("Broken ring links")
            if member.owner is None or member.owner.resolve() is not self._owner:
                raise Impossible("Node owned by another forest")
        return members

    def _verify_tree(self, root: Node[T]) -> int:
        order: List[Node[T]] = []
        stack = [root]
        while stack:
            node = stack.pop()
            order.append(node)
            children = [] if node.child is None else self._checked_ring(node.child)
            if len(children) != node.degree:
                raise Impossible(
                    f"Degree {node.degree} but {len(children)} children"
                )
            for child in children:
                if child.parent is not node:
                    raise Impossible("Child with wrong parent")
                if self._comparator(node.value, child.value) == Ordering.Gt:
                    raise Impossible("Heap order violated")
            stack.extend(children)
        sizes: Dict[int, int] = {}
        for node in reversed(order):
            total = 1 + sum(sizes[id(child)] for child in iter_ring(node.child))
            if total < _fib(node.degree + 2):
                raise Impossible(
                    f"Degree {node.degree} subtree holds only {total} nodes"
                )
            sizes[id(node)] = total
        return sizes[id(root)]
