"""
Array-backed binary heap over ring slots.

The heap stores slot indices, never values: ``heap[i]`` is the index of a
slot in the ring and ``slot_values[heap[i]]`` is the value it is ordered by.
Every kernel that moves a slot writes its new position back into
``slot_positions`` so that a slot can always be located in O(1) and removed
in O(log n) without scanning.

A heap is the pair ``(heap, heap_meta)``; ``heap_meta`` holds the current
size and the orientation (``MAX_FIRST`` or ``MIN_FIRST``). Both orientations
go through the same kernels, only ``_outranks`` looks at the orientation.
"""
import numpy as np
from numba import njit, types

from .nbtypes import (
    IDX_HEAP_ORIENTATION,
    IDX_HEAP_SIZE,
    MAX_FIRST,
    MIN_FIRST,
    N_HEAP_META_FIELDS,
    NB_BOOL,
    NB_FLOAT64,
    NB_FLOAT64_ARRAY,
    NB_INT64,
    NB_INT64_ARRAY,
    NB_VOID,
    NO_POSITION,
    PY_FLOAT,
    PY_FLOAT_ARRAY,
    PY_INT,
    PY_INT_ARRAY,
)

HEAP_PAIR_TYPE = types.Tuple((NB_INT64_ARRAY, NB_INT64_ARRAY))


@njit(HEAP_PAIR_TYPE(NB_INT64, NB_INT64), cache=True)
def init_heap(capacity: PY_INT, orientation: PY_INT):
    if capacity < 1:
        raise ValueError('Should be: capacity >= 1')
    if orientation != MAX_FIRST and orientation != MIN_FIRST:
        raise ValueError('orientation must be MAX_FIRST or MIN_FIRST')
    heap_local = np.full(capacity, NO_POSITION, dtype=np.int64)
    heap_meta_local = np.zeros(N_HEAP_META_FIELDS, dtype=np.int64)
    heap_meta_local[IDX_HEAP_SIZE] = 0
    heap_meta_local[IDX_HEAP_ORIENTATION] = orientation
    return heap_local, heap_meta_local


@njit(NB_BOOL(NB_FLOAT64, NB_FLOAT64, NB_INT64), fastmath=True, cache=True)
def _outranks(value_a: PY_FLOAT, value_b: PY_FLOAT, orientation: PY_INT) -> bool:
    # strict: equal values never outrank each other, so ties never swap
    if orientation == MAX_FIRST:
        return value_a > value_b
    return value_a < value_b


@njit(NB_INT64(NB_INT64, NB_INT64_ARRAY, NB_INT64_ARRAY, NB_FLOAT64_ARRAY, NB_INT64_ARRAY),
      fastmath=True, boundscheck=False, cache=True)
def _sift_up(current_heap_idx: PY_INT,
             heap: PY_INT_ARRAY,
             heap_meta: PY_INT_ARRAY,
             slot_values: PY_FLOAT_ARRAY,
             slot_positions: PY_INT_ARRAY) -> PY_INT:
    orientation = heap_meta[IDX_HEAP_ORIENTATION]
    slot_to_sift = heap[current_heap_idx]
    value_to_sift = slot_values[slot_to_sift]
    while current_heap_idx > 0:
        parent_heap_idx = (current_heap_idx - 1) >> 1
        parent_slot = heap[parent_heap_idx]
        if not _outranks(value_to_sift, slot_values[parent_slot], orientation):
            break
        heap[current_heap_idx] = parent_slot
        slot_positions[parent_slot] = current_heap_idx
        current_heap_idx = parent_heap_idx
    heap[current_heap_idx] = slot_to_sift
    slot_positions[slot_to_sift] = current_heap_idx
    return current_heap_idx


@njit(NB_INT64(NB_INT64, NB_INT64_ARRAY, NB_INT64_ARRAY, NB_FLOAT64_ARRAY, NB_INT64_ARRAY),
      fastmath=True, boundscheck=False, cache=True)
def _sift_down(current_heap_idx: PY_INT,
               heap: PY_INT_ARRAY,
               heap_meta: PY_INT_ARRAY,
               slot_values: PY_FLOAT_ARRAY,
               slot_positions: PY_INT_ARRAY) -> PY_INT:
    _heap_sz = heap_meta[IDX_HEAP_SIZE]
    orientation = heap_meta[IDX_HEAP_ORIENTATION]
    slot_to_sift = heap[current_heap_idx]
    value_to_sift = slot_values[slot_to_sift]
    while True:
        child_idx = (current_heap_idx << 1) + 1
        if child_idx >= _heap_sz: break
        right_child_idx = child_idx + 1
        if right_child_idx < _heap_sz and \
           _outranks(slot_values[heap[right_child_idx]], slot_values[heap[child_idx]], orientation):
            child_idx = right_child_idx
        child_slot = heap[child_idx]
        if not _outranks(slot_values[child_slot], value_to_sift, orientation): break
        heap[current_heap_idx] = child_slot
        slot_positions[child_slot] = current_heap_idx
        current_heap_idx = child_idx
    heap[current_heap_idx] = slot_to_sift
    slot_positions[slot_to_sift] = current_heap_idx
    return current_heap_idx


@njit(NB_VOID(NB_INT64, NB_INT64_ARRAY, NB_INT64_ARRAY, NB_FLOAT64_ARRAY, NB_INT64_ARRAY),
      fastmath=True, boundscheck=False, cache=True)
def _restore_order(current_heap_idx: PY_INT,
                   heap: PY_INT_ARRAY,
                   heap_meta: PY_INT_ARRAY,
                   slot_values: PY_FLOAT_ARRAY,
                   slot_positions: PY_INT_ARRAY) -> None:
    # at most one of the two directions can move the element
    if _sift_up(current_heap_idx, heap, heap_meta, slot_values, slot_positions) == current_heap_idx:
        _sift_down(current_heap_idx, heap, heap_meta, slot_values, slot_positions)


@njit(NB_VOID(NB_INT64, NB_INT64_ARRAY, NB_INT64_ARRAY, NB_FLOAT64_ARRAY, NB_INT64_ARRAY),
      boundscheck=False, cache=True)
def heap_push(slot: PY_INT,
              heap: PY_INT_ARRAY,
              heap_meta: PY_INT_ARRAY,
              slot_values: PY_FLOAT_ARRAY,
              slot_positions: PY_INT_ARRAY) -> None:
    """Append ``slot`` and sift it up to its place."""
    _new_element_heap_idx = heap_meta[IDX_HEAP_SIZE]
    if _new_element_heap_idx >= len(heap):
        raise IndexError('push onto a full heap')
    heap[_new_element_heap_idx] = slot
    slot_positions[slot] = _new_element_heap_idx
    heap_meta[IDX_HEAP_SIZE] += 1
    _sift_up(_new_element_heap_idx, heap, heap_meta, slot_values, slot_positions)


@njit(NB_INT64(NB_INT64, NB_INT64_ARRAY, NB_INT64_ARRAY, NB_FLOAT64_ARRAY, NB_INT64_ARRAY),
      boundscheck=False, cache=True)
def heap_remove_at(heap_idx_to_remove: PY_INT,
                   heap: PY_INT_ARRAY,
                   heap_meta: PY_INT_ARRAY,
                   slot_values: PY_FLOAT_ARRAY,
                   slot_positions: PY_INT_ARRAY) -> PY_INT:
    """
    Remove the slot sitting at ``heap_idx_to_remove`` and return its index.

    The last element fills the hole and is sifted in whichever direction
    restores heap order. The removed slot's position is reset to
    ``NO_POSITION``.
    """
    _current_actual_heap_size = heap_meta[IDX_HEAP_SIZE]
    if heap_idx_to_remove < 0 or heap_idx_to_remove >= _current_actual_heap_size:
        raise IndexError('heap position out of range')
    _removed_slot = heap[heap_idx_to_remove]
    _last_heap_idx = _current_actual_heap_size - 1
    heap_meta[IDX_HEAP_SIZE] = _last_heap_idx
    slot_positions[_removed_slot] = NO_POSITION
    if heap_idx_to_remove != _last_heap_idx:
        _last_element_slot = heap[_last_heap_idx]
        heap[heap_idx_to_remove] = _last_element_slot
        slot_positions[_last_element_slot] = heap_idx_to_remove
        _restore_order(heap_idx_to_remove, heap, heap_meta, slot_values, slot_positions)
    heap[_last_heap_idx] = NO_POSITION
    return _removed_slot


@njit(NB_INT64(NB_INT64_ARRAY, NB_INT64_ARRAY, NB_FLOAT64_ARRAY, NB_INT64_ARRAY),
      boundscheck=False, cache=True)
def heap_pop_root(heap: PY_INT_ARRAY,
                  heap_meta: PY_INT_ARRAY,
                  slot_values: PY_FLOAT_ARRAY,
                  slot_positions: PY_INT_ARRAY) -> PY_INT:
    if heap_meta[IDX_HEAP_SIZE] == 0:
        raise IndexError('pop from an empty heap')
    return heap_remove_at(np.int64(0), heap, heap_meta, slot_values, slot_positions)


@njit(NB_VOID(NB_INT64, NB_INT64_ARRAY, NB_INT64_ARRAY, NB_FLOAT64_ARRAY, NB_INT64_ARRAY),
      boundscheck=False, cache=True)
def heap_fix_at(heap_idx: PY_INT,
                heap: PY_INT_ARRAY,
                heap_meta: PY_INT_ARRAY,
                slot_values: PY_FLOAT_ARRAY,
                slot_positions: PY_INT_ARRAY) -> None:
    """Re-establish heap order after the value of the slot at ``heap_idx`` changed in place."""
    if heap_idx < 0 or heap_idx >= heap_meta[IDX_HEAP_SIZE]:
        raise IndexError('heap position out of range')
    _restore_order(heap_idx, heap, heap_meta, slot_values, slot_positions)


@njit(NB_FLOAT64(NB_INT64_ARRAY, NB_INT64_ARRAY, NB_FLOAT64_ARRAY), boundscheck=False, cache=True)
def heap_root(heap: PY_INT_ARRAY,
              heap_meta: PY_INT_ARRAY,
              slot_values: PY_FLOAT_ARRAY) -> PY_FLOAT:
    if heap_meta[IDX_HEAP_SIZE] == 0:
        raise IndexError('root of an empty heap')
    return slot_values[heap[0]]


@njit(NB_INT64(NB_INT64_ARRAY), cache=True)
def heap_size(heap_meta: PY_INT_ARRAY) -> PY_INT:
    return heap_meta[IDX_HEAP_SIZE]
