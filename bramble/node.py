"""Tree nodes of the priority forest and the ring splice primitive.

Every node sits in exactly one circular doubly-linked ring: the root ring
of its forest, or the child ring of its parent. A singleton ring is a
node whose ``next`` and ``prev`` point at itself.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from bramble.common import Comparator, Ordering

__all__ = ["Node", "Owner", "iter_ring", "merge_lists"]


class Owner:
    """Ownership cell shared by every node of one forest.

    Merging forwards the consumed forests' cells to the cell of the merged
    forest, so ownership of all their nodes moves without visiting them.
    """

    __slots__ = ("forward",)

    def __init__(self) -> None:
        self.forward: Optional[Owner] = None

    def resolve(self) -> Owner:
        root = self
        while root.forward is not None:
            root = root.forward
        # Path compression
        cur = self
        while cur.forward is not None and cur.forward is not root:
            nxt = cur.forward
            cur.forward = root
            cur = nxt
        return root


@dataclass(eq=False)
class Node[T]:
    """One tree node of the forest.

    Attributes:
        value: The forest's own copy of the payload.
        degree: Number of direct children.
        marked: Whether the node lost a child since it last became a child.
        parent: Parent node, or None for a root.
        child: Any one member of the child ring, or None.
        next: Successor in the sibling (or root) ring.
        prev: Predecessor in the sibling (or root) ring.
        owner: Ownership cell of the holding forest, None once removed.
        generation: Bumped on every reuse so stale handles can be told apart.
    """

    value: T
    degree: int = 0
    marked: bool = False
    parent: Optional[Node[T]] = field(default=None, repr=False)
    child: Optional[Node[T]] = field(default=None, repr=False)
    next: Node[T] = field(init=False, repr=False)
    prev: Node[T] = field(init=False, repr=False)
    owner: Optional[Owner] = field(default=None, repr=False)
    generation: int = field(default=0, repr=False)

    def __post_init__(self) -> None:
        self.next = self
        self.prev = self

    def singleton(self) -> bool:
        return self.next is self

    def detach(self) -> Optional[Node[T]]:
        """Unlink this node from its ring and make it a singleton.

        Returns:
            Some remaining member of the old ring, or None if this node
            was alone in it.
        """
        if self.singleton():
            return None
        rest = self.next
        self.prev.next = self.next
        self.next.prev = self.prev
        self.next = self
        self.prev = self
        return rest

    def reset(self, value: T) -> None:
        """Reinitialize a recycled node as a fresh singleton tree."""
        self.value = value
        self.degree = 0
        self.marked = False
        self.parent = None
        self.child = None
        self.next = self
        self.prev = self
        self.owner = None
        self.generation += 1


def merge_lists[T](
    first: Optional[Node[T]],
    second: Optional[Node[T]],
    comparator: Comparator[T],
) -> Optional[Node[T]]:
    """Splice two rings together in O(1).

    Either ring may be None. Never allocates and never touches
    ``degree`` or ``marked``.

    Args:
        first: Any member of the first ring, or None.
        second: Any member of the second ring, or None.
        comparator: Ordering used to pick the returned head.

    Returns:
        None if both are None, the non-None argument if only one is,
        otherwise whichever head compares smaller. The second argument
        wins when the heads compare equal.
    """
    if first is None:
        return second
    elif second is None:
        return first
    else:
        first_next = first.next
        first.next = second.next
        first.next.prev = first
        second.next = first_next
        second.next.prev = second
        if comparator(first.value, second.value) == Ordering.Lt:
            return first
        else:
            return second


def iter_ring[T](start: Optional[Node[T]]) -> List[Node[T]]:
    """Snapshot the members of a ring, starting at the given node."""
    if start is None:
        return []
    members = [start]
    cur = start.next
    while cur is not start:
        members.append(cur)
        cur = cur.next
    return members
