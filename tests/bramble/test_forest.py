import copy
import random
from typing import Dict, List

import pytest

from bramble.common import Entry, Flip, Impossible, ordering_of
from bramble.errors import (
    ConsumedForestError,
    ContractViolation,
    EmptyForestError,
    ForeignNodeError,
)
from bramble.forest import Handle, PriorityForest, degree_bound


def _linked_forest() -> tuple[PriorityForest[int], Dict[int, Handle[int]]]:
    """Build the tree 1[2, 3[4], 5[6, 7[8]]] by popping 0 out of 0..8."""
    forest: PriorityForest[int] = PriorityForest()
    handles = {value: forest.insert(value) for value in range(9)}
    assert forest.pop() == 0
    forest.verify()
    return forest, handles


def test_empty_forest():
    """Test creating an empty forest and asserting it is empty"""
    forest = PriorityForest.empty(int)
    assert forest.null()
    assert forest.is_empty()
    assert forest.size() == 0
    assert len(forest) == 0
    assert not forest
    assert forest.find_min() is None
    forest.verify()


def test_empty_forest_contract_violations():
    """Test reading or removing the minimum of an empty forest fails loudly"""
    forest = PriorityForest.empty(int)
    with pytest.raises(EmptyForestError):
        forest.peek()
    with pytest.raises(EmptyForestError):
        forest.pop()
    # Also usable as the usual builtin categories
    with pytest.raises(IndexError):
        forest.pop()
    with pytest.raises(ContractViolation):
        forest.peek()


def test_single_insert_makes_nonempty():
    """Test emptiness flips after exactly one insert"""
    forest = PriorityForest.empty(int)
    assert forest.is_empty()
    forest.insert(42)
    assert not forest.is_empty()
    assert forest.size() == 1
    assert forest.peek() == 42
    assert forest.pop() == 42
    assert forest.is_empty()


def test_mixed_insert_extraction_order():
    """Test extraction order and sizes for a small mixed insert"""
    forest = PriorityForest.empty(int)
    forest.insert_all([5, 3, 8, 1, 9, 2])
    assert forest.size() == 6
    assert forest.peek() == 1

    extracted = [forest.pop() for _ in range(3)]
    assert extracted == [1, 2, 3]
    assert forest.size() == 3
    forest.verify()

    extracted.extend(forest.drain())
    assert extracted == [1, 2, 3, 5, 8, 9]
    assert forest.is_empty()


def test_random_floats_track_minimum():
    """Test peek against a separately tracked minimum"""
    rng = random.Random(1234)
    forest = PriorityForest.empty(float)
    minimum = 1.0
    values: List[float] = []
    for _ in range(1000):
        value = rng.random()
        minimum = min(minimum, value)
        values.append(value)
        forest.insert(value)
    assert forest.peek() == minimum
    assert forest.size() == 1000

    assert forest.pop() == minimum
    forest.verify()
    assert [minimum] + list(forest.drain()) == sorted(values)


def test_merge_scenario():
    """Test merging two small forests and draining the union"""
    first = PriorityForest.mk([4, 2])
    second = PriorityForest.mk([3, 1])
    merged = first.merge(second)
    assert merged.size() == 4
    assert merged.peek() == 1
    merged.verify()
    assert list(merged.drain()) == [1, 2, 3, 4]


def test_merge_operator():
    """Test merging with + operator"""
    merged = PriorityForest.mk([3]) + PriorityForest.mk([1])
    assert merged.size() == 2
    assert merged.peek() == 1


def test_merge_with_empty():
    """Test merging where one side is empty"""
    merged = PriorityForest.mk([2, 1]) + PriorityForest.empty(int)
    assert list(merged.drain()) == [1, 2]

    merged = PriorityForest.empty(int) + PriorityForest.empty(int)
    assert merged.is_empty()
    merged.verify()


def test_merge_consumes_inputs():
    """Test both merge inputs are unusable afterwards"""
    first = PriorityForest.mk([1, 2])
    second = PriorityForest.mk([3])
    first.merge(second)
    for forest in (first, second):
        assert forest.consumed
        with pytest.raises(ConsumedForestError):
            forest.size()
        with pytest.raises(ConsumedForestError):
            forest.insert(4)
        with pytest.raises(ConsumedForestError):
            forest.pop()
        with pytest.raises(ConsumedForestError):
            forest.merge(PriorityForest.empty(int))


def test_merge_rejects_bad_inputs():
    """Test merge refuses itself and mismatched configurations"""
    forest = PriorityForest.mk([1])
    with pytest.raises(ValueError):
        forest.merge(forest)

    descending = PriorityForest(ordering_of(lambda a, b: b - a))
    with pytest.raises(ValueError):
        forest.merge(descending)
    # Still usable after a refused merge
    assert forest.peek() == 1


def test_merge_rejects_different_copier():
    """Test merge refuses forests that copy payloads differently"""
    shallow: PriorityForest[List[int]] = PriorityForest()
    deep: PriorityForest[List[int]] = PriorityForest(copier=copy.deepcopy)
    shallow.insert([1])
    deep.insert([2])
    with pytest.raises(ValueError):
        shallow.merge(deep)
    assert not shallow.consumed
    assert not deep.consumed
    assert shallow.peek() == [1]
    assert deep.peek() == [2]


def test_handles_survive_merge():
    """Test handles from both inputs work on the merged forest"""
    first: PriorityForest[int] = PriorityForest()
    second: PriorityForest[int] = PriorityForest()
    h5 = first.insert(5)
    h7 = second.insert(7)
    first.insert(1)
    second.insert(2)
    merged = first + second
    assert merged.delete(h5) == 5
    merged.decrease_key(h7, 0)
    assert merged.peek() == 0
    merged.verify()
    assert list(merged.drain()) == [0, 1, 2]


def test_nested_merges_move_handles():
    """Test handles follow through several merges"""
    forests = [PriorityForest.mk([i]) for i in range(4)]
    handle = forests[3].insert(10)
    merged = (forests[0] + forests[1]) + (forests[2] + forests[3])
    assert handle.live
    assert merged.delete(handle) == 10
    assert not handle.live
    assert list(merged.drain()) == [0, 1, 2, 3]


def test_consolidation_shape():
    """Test popping from nine ascending roots builds one binomial tree"""
    forest, handles = _linked_forest()
    root = handles[1]._node
    assert root.parent is None
    assert root.next is root
    assert root.degree == 3
    assert handles[7]._node.parent is handles[5]._node
    assert handles[8]._node.parent is handles[7]._node
    assert handles[4]._node.parent is handles[3]._node


def test_cut_marks_parent():
    """Test cutting a grandchild marks its non-root parent"""
    forest, handles = _linked_forest()
    forest.decrease_key(handles[8], 0)
    node7 = handles[7]._node
    node8 = handles[8]._node
    assert node8.parent is None
    assert not node8.marked
    assert node7.marked
    assert node7.degree == 0
    assert forest.peek() == 0
    forest.verify()


def test_cut_never_marks_root():
    """Test cutting a child of a root leaves the root unmarked"""
    forest, handles = _linked_forest()
    forest.decrease_key(handles[2], -1)
    node1 = handles[1]._node
    assert not node1.marked
    assert node1.degree == 2
    forest.verify()


def test_cascading_cut():
    """Test a second loss cuts the marked parent too"""
    forest, handles = _linked_forest()
    forest.decrease_key(handles[6], -2)
    node5 = handles[5]._node
    assert node5.marked

    forest.decrease_key(handles[7], -3)
    node1 = handles[1]._node
    node7 = handles[7]._node
    assert node5.parent is None
    assert not node5.marked
    assert node5.degree == 0
    assert node1.degree == 2
    assert not node1.marked
    assert node7.parent is None
    assert node7.degree == 1
    assert forest.peek() == -3
    forest.verify()
    assert list(forest.drain()) == [-3, -2, 1, 2, 3, 4, 5, 8]


def test_decrease_key_root():
    """Test decreasing a root below the minimum moves the minimum"""
    forest = PriorityForest.empty(int)
    handles = forest.insert_all([3, 1, 2])
    forest.decrease_key(handles[2], 0)
    assert forest.peek() == 0
    forest.decrease_key(handles[0], 0)
    assert forest.peek() == 0
    assert handles[2].value == 0
    forest.verify()


def test_decrease_key_without_cut():
    """Test a decrease that keeps heap order leaves the tree alone"""
    forest, handles = _linked_forest()
    forest.decrease_key(handles[8], 7)
    assert handles[8]._node.parent is handles[7]._node
    assert not handles[7]._node.marked
    forest.verify()


def test_decrease_key_rejects_increase():
    """Test decrease_key refuses a larger value"""
    forest = PriorityForest.empty(int)
    handle = forest.insert(5)
    with pytest.raises(ValueError):
        forest.decrease_key(handle, 6)
    assert handle.value == 5


def test_delete_inner_node():
    """Test deleting a node with children promotes them"""
    forest, handles = _linked_forest()
    assert forest.delete(handles[5]) == 5
    assert not handles[5].live
    assert forest.size() == 7
    forest.verify()
    assert list(forest.drain()) == [1, 2, 3, 4, 6, 7, 8]


def test_delete_leaf_marks_parent():
    """Test deleting a grandchild marks its parent"""
    forest, handles = _linked_forest()
    assert forest.delete(handles[8]) == 8
    assert handles[7]._node.marked
    forest.verify()
    assert list(forest.drain()) == [1, 2, 3, 4, 5, 6, 7]


def test_delete_non_minimum_root():
    """Test deleting a root that is not the minimum"""
    forest = PriorityForest.empty(int)
    handles = forest.insert_all([3, 1, 2])
    assert forest.delete(handles[0]) == 3
    assert forest.peek() == 1
    forest.verify()
    assert list(forest.drain()) == [1, 2]


def test_delete_minimum():
    """Test deleting the minimum behaves like pop"""
    forest = PriorityForest.empty(int)
    handles = forest.insert_all([3, 1, 2])
    assert forest.delete(handles[1]) == 1
    assert forest.peek() == 2


def test_delete_many():
    """Test deleting a scattered subset keeps the rest in order"""
    forest = PriorityForest.empty(int)
    handles = forest.insert_all(range(50))
    forest.pop()
    removed = set()
    for value in range(3, 50, 4):
        assert forest.delete(handles[value]) == value
        removed.add(value)
        forest.verify()
    expected = [v for v in range(1, 50) if v not in removed]
    assert list(forest.drain()) == expected


def test_delete_foreign_handle():
    """Test handles from another forest are rejected"""
    forest = PriorityForest.mk([1, 2])
    other: PriorityForest[int] = PriorityForest()
    foreign = other.insert(3)
    with pytest.raises(ForeignNodeError):
        forest.delete(foreign)
    with pytest.raises(ForeignNodeError):
        forest.decrease_key(foreign, 0)
    assert forest.size() == 2


def test_delete_stale_handle():
    """Test a handle of a popped element is rejected"""
    forest = PriorityForest.empty(int)
    handle = forest.insert(1)
    forest.insert(2)
    forest.pop()
    assert not handle.live
    with pytest.raises(ForeignNodeError):
        forest.delete(handle)
    with pytest.raises(LookupError):
        forest.delete(handle)


def test_max_forest_with_flip():
    """Test Flip turns the forest into a max-queue"""
    forest = PriorityForest.mk([Flip(v) for v in [3, 9, 1, 4]])
    assert [f.value for f in forest.drain()] == [9, 4, 3, 1]


def test_custom_comparator():
    """Test a C-style comparator adapted with ordering_of"""
    forest = PriorityForest(ordering_of(lambda a, b: len(a) - len(b)))
    forest.insert_all(["ccc", "a", "bb"])
    assert list(forest.drain()) == ["a", "bb", "ccc"]


def test_entry_payloads():
    """Test queuing unorderable payloads by priority"""
    forest = PriorityForest.mk(
        [Entry(2, {"task": "b"}), Entry(1, {"task": "a"}), Entry(3, {"task": "c"})]
    )
    assert [e.value["task"] for e in forest.drain()] == ["a", "b", "c"]


def test_insert_copies_payload():
    """Test the forest keeps its own copy of inserted values"""
    forest: PriorityForest[List[int]] = PriorityForest()
    payload = [1, 2]
    handle = forest.insert(payload)
    payload.append(3)
    assert forest.peek() == [1, 2]
    assert handle.value is not payload


def test_duplicates():
    """Test forest with duplicate elements"""
    forest = PriorityForest.mk([3, 1, 3, 2, 1])
    assert forest.size() == 5
    forest.pop()
    forest.verify()
    assert list(forest.drain()) == [1, 2, 3, 3]


def test_strings():
    """Test forest with string values"""
    words = ["zebra", "apple", "banana", "cherry"]
    forest = PriorityForest.mk(words)
    assert forest.peek() == "apple"
    assert list(forest.drain()) == sorted(words)


def test_close_and_context_manager():
    """Test teardown consumes the forest"""
    with PriorityForest.mk([1, 2, 3]) as forest:
        assert forest.peek() == 1
        handle = forest.insert(0)
    assert forest.consumed
    assert not handle.live
    with pytest.raises(ConsumedForestError):
        forest.peek()
    # Closing twice is harmless
    forest.close()


def test_degree_bound_covers_log2():
    """Test the degree table is never smaller than floor(log2 n) + 1"""
    for size in range(1, 5000):
        assert degree_bound(size) >= size.bit_length()


def test_verify_detects_corruption():
    """Test verify reports a broken heap order"""
    forest, handles = _linked_forest()
    handles[8]._node.value = -100
    with pytest.raises(Impossible):
        forest.verify()
