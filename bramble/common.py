"""Common utility types and functions for the bramble priority forest.

This module provides the ordering vocabulary shared by the forest: the
three-way ``Ordering`` result, the default ``compare`` function, and small
wrappers that change how payloads are ordered.
"""

from __future__ import annotations

from abc import ABCMeta, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, cast, override

__all__ = [
    "Comparable",
    "Comparator",
    "Entry",
    "Flip",
    "Impossible",
    "Ordering",
    "Sized",
    "compare",
    "ordering_of",
]


class Impossible(Exception):
    """Exception raised when encountering theoretically impossible states.

    Used to indicate internal consistency violations in forest operations.
    """

    pass


class Sized(metaclass=ABCMeta):
    @abstractmethod
    def size(self) -> int: ...

    def null(self) -> bool:
        return self.size() == 0

    def __bool__(self) -> bool:
        return not self.null()

    def __len__(self) -> int:
        return self.size()


class Ordering(Enum):
    """Enumeration representing the result of a comparison operation."""

    Lt = -1
    Eq = 0
    Gt = 1


type Comparator[T] = Callable[[T, T], Ordering]


class Comparable[T](metaclass=ABCMeta):
    @abstractmethod
    def compare(self, other: T) -> Ordering: ...

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, type(self)):
            return self.compare(cast(T, other)) == Ordering.Eq
        else:
            return False

    def __ne__(self, other: Any) -> bool:
        return not self.__eq__(other)

    def __lt__(self, other: T) -> bool:
        return self.compare(other) == Ordering.Lt

    def __le__(self, other: T) -> bool:
        return not self.__gt__(other)

    def __gt__(self, other: T) -> bool:
        return self.compare(other) == Ordering.Gt

    def __ge__(self, other: T) -> bool:
        return not self.__lt__(other)


@dataclass(frozen=True, eq=False)
class Entry[K, V](Comparable["Entry[K, V]"]):
    """A priority-payload pair that compares only on the priority.

    This allows us to queue arbitrary payloads (even unorderable ones)
    by an explicit priority key.
    """

    key: K
    value: V

    @override
    def compare(self, other: Entry[K, V]) -> Ordering:
        """Compare entries based on their keys only."""
        return compare(self.key, other.key)


@dataclass(frozen=True, eq=False)
class Flip[T](Comparable["Flip[T]"]):
    """A wrapper that flips the comparison result of the wrapped value.

    This is useful for turning the min-forest into a max-forest by
    reversing the comparison order of elements.

    Example:
        >>> from bramble.common import Flip, compare, Ordering
        >>> compare(1, 2)  # Normal comparison
        <Ordering.Lt: -1>
        >>> compare(Flip(1), Flip(2))  # Flipped comparison
        <Ordering.Gt: 1>
    """

    value: T

    @override
    def compare(self, other: Flip[T]) -> Ordering:
        """Compare by flipping the result of comparing the wrapped values."""
        result = compare(self.value, other.value)
        if result == Ordering.Lt:
            return Ordering.Gt
        elif result == Ordering.Gt:
            return Ordering.Lt
        else:
            return Ordering.Eq


def compare[T](a: T, b: T) -> Ordering:
    """Compare two values and return their ordering relationship.

    Uses the objects' __eq__ and __lt__ methods to determine the comparison result.

    Args:
        a: First value to compare.
        b: Second value to compare.

    Returns:
        Ordering indicating the relationship between a and b.
    """
    # Unsafe eq/lt because generic protocols are half-baked
    if getattr(a, "__eq__")(b):
        return Ordering.Eq
    elif getattr(a, "__lt__")(b):
        return Ordering.Lt
    else:
        return Ordering.Gt


def ordering_of[T](cmp: Callable[[T, T], int]) -> Comparator[T]:
    """Adapt a C-style comparison function to a comparator.

    The wrapped function returns a negative number, zero or a positive
    number when its first argument is less than, equal to or greater
    than its second.

    Example:
        >>> by_length = ordering_of(lambda a, b: len(a) - len(b))
        >>> by_length("ab", "c")
        <Ordering.Gt: 1>
    """

    def wrapper(a: T, b: T) -> Ordering:
        r = cmp(a, b)
        if r < 0:
            return Ordering.Lt
        elif r > 0:
            return Ordering.Gt
        else:
            return Ordering.Eq

    return wrapper
