import numpy as np
from numba import njit

from .heap import (
    _outranks,
    heap_fix_at,
    heap_pop_root,
    heap_push,
    heap_remove_at,
    heap_root,
    init_heap,
)
from .nbtypes import (
    IDX_HEAP_ORIENTATION,
    IDX_HEAP_SIZE,
    IDX_STATE_FILL_SIZE,
    IDX_STATE_K_WINDOW_SIZE,
    IDX_STATE_WRITE_CURSOR,
    MAX_FIRST,
    MIN_FIRST,
    N_STATE_FIELDS,
    NB_FLOAT64,
    NB_FLOAT64_ARRAY,
    NB_INT64,
    NB_INT64_ARRAY,
    NB_VOID,
    STATE_BUNDLE_TYPE,
    PY_FLOAT,
    PY_FLOAT_ARRAY,
    PY_INT,
    PY_INT_ARRAY,
    PyStateBundleType,
)
from .ring import advance, init_slot_ring, next_write_target, window_values


class InvariantViolation(RuntimeError):
    """The heaps and the slot ring disagree. The engine state is corrupt."""


# =============================================================================
# Audit result codes
# =============================================================================
AUDIT_OK = 0
AUDIT_SIZE_MISMATCH = 1
AUDIT_UNBALANCED = 2
AUDIT_BAD_BACK_REFERENCE = 3
AUDIT_HEAP_ORDER = 4
AUDIT_PARTITION = 5
AUDIT_CROSS_ORDER = 6

AUDIT_MESSAGES = {
    AUDIT_SIZE_MISMATCH: 'heap sizes do not add up to the filled count',
    AUDIT_UNBALANCED: 'low heap must hold as many slots as the high heap or one more',
    AUDIT_BAD_BACK_REFERENCE: 'a slot does not record its own heap position',
    AUDIT_HEAP_ORDER: 'a parent is outranked by one of its children',
    AUDIT_PARTITION: 'an occupied slot is not in exactly one heap',
    AUDIT_CROSS_ORDER: 'low heap root is greater than high heap root',
}


# =============================================================================
# Engine kernels
# =============================================================================

@njit(NB_INT64(NB_INT64, NB_INT64_ARRAY, NB_INT64_ARRAY, NB_INT64_ARRAY, NB_INT64_ARRAY, NB_INT64_ARRAY),
      boundscheck=False, cache=True)
def _owning_heap(slot: PY_INT,
                 slot_positions: PY_INT_ARRAY,
                 low_heap: PY_INT_ARRAY,
                 low_meta: PY_INT_ARRAY,
                 high_heap: PY_INT_ARRAY,
                 high_meta: PY_INT_ARRAY) -> PY_INT:
    # Identity check: values may repeat, slot indices never do.
    heap_idx = slot_positions[slot]
    if heap_idx < 0:
        return 0
    if heap_idx < low_meta[IDX_HEAP_SIZE] and low_heap[heap_idx] == slot:
        return MAX_FIRST
    if heap_idx < high_meta[IDX_HEAP_SIZE] and high_heap[heap_idx] == slot:
        return MIN_FIRST
    return 0


@njit(NB_VOID(NB_INT64, NB_FLOAT64,
              NB_INT64_ARRAY, NB_INT64_ARRAY, NB_INT64_ARRAY, NB_INT64_ARRAY,
              NB_FLOAT64_ARRAY, NB_INT64_ARRAY),
      boundscheck=False, cache=True)
def _move_across_boundary(slot: PY_INT,
                          new_value: PY_FLOAT,
                          from_heap: PY_INT_ARRAY,
                          from_meta: PY_INT_ARRAY,
                          to_heap: PY_INT_ARRAY,
                          to_meta: PY_INT_ARRAY,
                          slot_values: PY_FLOAT_ARRAY,
                          slot_positions: PY_INT_ARRAY) -> None:
    heap_remove_at(slot_positions[slot], from_heap, from_meta, slot_values, slot_positions)
    slot_values[slot] = new_value
    heap_push(slot, to_heap, to_meta, slot_values, slot_positions)
    # hand the boundary element back so both sizes stay unchanged
    _handed_back_slot = heap_pop_root(to_heap, to_meta, slot_values, slot_positions)
    heap_push(_handed_back_slot, from_heap, from_meta, slot_values, slot_positions)


@njit(NB_VOID(STATE_BUNDLE_TYPE, NB_FLOAT64), fastmath=True, boundscheck=False, cache=True)
def _push_while_filling(state_tuple: PyStateBundleType, new_value: PY_FLOAT) -> None:
    slot_values, slot_positions, \
    low_heap, low_meta, \
    high_heap, high_meta, _state_arr = state_tuple
    _new_element_slot = next_write_target(_state_arr)
    slot_values[_new_element_slot] = new_value
    if low_meta[IDX_HEAP_SIZE] == 0 or new_value <= heap_root(low_heap, low_meta, slot_values):
        heap_push(_new_element_slot, low_heap, low_meta, slot_values, slot_positions)
        if low_meta[IDX_HEAP_SIZE] > high_meta[IDX_HEAP_SIZE] + 1:
            _moved_slot = heap_pop_root(low_heap, low_meta, slot_values, slot_positions)
            heap_push(_moved_slot, high_heap, high_meta, slot_values, slot_positions)
    else:
        heap_push(_new_element_slot, high_heap, high_meta, slot_values, slot_positions)
        if high_meta[IDX_HEAP_SIZE] > low_meta[IDX_HEAP_SIZE]:
            _moved_slot = heap_pop_root(high_heap, high_meta, slot_values, slot_positions)
            heap_push(_moved_slot, low_heap, low_meta, slot_values, slot_positions)
    _state_arr[IDX_STATE_FILL_SIZE] += 1


@njit(NB_VOID(STATE_BUNDLE_TYPE, NB_FLOAT64), fastmath=True, boundscheck=False, cache=True)
def _replace_oldest(state_tuple: PyStateBundleType, new_value: PY_FLOAT) -> None:
    slot_values, slot_positions, \
    low_heap, low_meta, \
    high_heap, high_meta, _state_arr = state_tuple
    _oldest_element_slot = next_write_target(_state_arr)
    _owner = _owning_heap(_oldest_element_slot, slot_positions, low_heap, low_meta, high_heap, high_meta)
    _heap_idx = slot_positions[_oldest_element_slot]
    if _owner == MAX_FIRST:
        # a value equal to the other root stays where it is
        if high_meta[IDX_HEAP_SIZE] == 0 or new_value <= heap_root(high_heap, high_meta, slot_values):
            slot_values[_oldest_element_slot] = new_value
            heap_fix_at(_heap_idx, low_heap, low_meta, slot_values, slot_positions)
        else:
            _move_across_boundary(_oldest_element_slot, new_value,
                                  low_heap, low_meta, high_heap, high_meta,
                                  slot_values, slot_positions)
    elif _owner == MIN_FIRST:
        if low_meta[IDX_HEAP_SIZE] == 0 or new_value >= heap_root(low_heap, low_meta, slot_values):
            slot_values[_oldest_element_slot] = new_value
            heap_fix_at(_heap_idx, high_heap, high_meta, slot_values, slot_positions)
        else:
            _move_across_boundary(_oldest_element_slot, new_value,
                                  high_heap, high_meta, low_heap, low_meta,
                                  slot_values, slot_positions)
    else:
        raise InvariantViolation('evicted slot is owned by neither heap')


@njit(NB_VOID(STATE_BUNDLE_TYPE, NB_FLOAT64), boundscheck=False, cache=True)
def push_value(state_tuple: PyStateBundleType, new_value: PY_FLOAT) -> None:
    _state_arr = state_tuple[6]
    if _state_arr[IDX_STATE_FILL_SIZE] < _state_arr[IDX_STATE_K_WINDOW_SIZE]:
        _push_while_filling(state_tuple, new_value)
    else:
        _replace_oldest(state_tuple, new_value)
    advance(_state_arr)


@njit(NB_FLOAT64(STATE_BUNDLE_TYPE), fastmath=True, boundscheck=False, cache=True)
def current_median(state_tuple: PyStateBundleType) -> PY_FLOAT:
    slot_values, _, \
    low_heap, low_meta, \
    high_heap, high_meta, _state_arr = state_tuple
    if _state_arr[IDX_STATE_FILL_SIZE] == 0:
        return np.float64(np.nan)
    if low_meta[IDX_HEAP_SIZE] > high_meta[IDX_HEAP_SIZE]:
        return slot_values[low_heap[0]]
    return (slot_values[low_heap[0]] + slot_values[high_heap[0]]) / 2.0


@njit(NB_FLOAT64(STATE_BUNDLE_TYPE, NB_FLOAT64), boundscheck=False, cache=True)
def get_median(state_tuple: PyStateBundleType, new_value: PY_FLOAT) -> PY_FLOAT:
    push_value(state_tuple, new_value)
    return current_median(state_tuple)


# =============================================================================
# Invariant audit, O(W)
# =============================================================================

@njit(NB_INT64(NB_INT64_ARRAY, NB_INT64_ARRAY, NB_FLOAT64_ARRAY, NB_INT64_ARRAY, NB_INT64_ARRAY),
      cache=True)
def _audit_heap(heap: PY_INT_ARRAY,
                heap_meta: PY_INT_ARRAY,
                slot_values: PY_FLOAT_ARRAY,
                slot_positions: PY_INT_ARRAY,
                times_seen: PY_INT_ARRAY) -> PY_INT:
    _heap_sz = heap_meta[IDX_HEAP_SIZE]
    orientation = heap_meta[IDX_HEAP_ORIENTATION]
    k_window_size = len(slot_values)
    for heap_idx in range(_heap_sz):
        slot = heap[heap_idx]
        if slot < 0 or slot >= k_window_size or slot_positions[slot] != heap_idx:
            return AUDIT_BAD_BACK_REFERENCE
        times_seen[slot] += 1
        for child_idx in (2 * heap_idx + 1, 2 * heap_idx + 2):
            if child_idx < _heap_sz and _outranks(slot_values[heap[child_idx]], slot_values[slot], orientation):
                return AUDIT_HEAP_ORDER
    return AUDIT_OK


@njit(NB_INT64(STATE_BUNDLE_TYPE), cache=True)
def audit_state(state_tuple: PyStateBundleType) -> PY_INT:
    slot_values, slot_positions, \
    low_heap, low_meta, \
    high_heap, high_meta, _state_arr = state_tuple
    k_window_size = _state_arr[IDX_STATE_K_WINDOW_SIZE]
    fill_size = _state_arr[IDX_STATE_FILL_SIZE]
    low_size = low_meta[IDX_HEAP_SIZE]
    high_size = high_meta[IDX_HEAP_SIZE]
    if low_size + high_size != fill_size:
        return AUDIT_SIZE_MISMATCH
    if not (low_size == high_size or low_size == high_size + 1):
        return AUDIT_UNBALANCED
    times_seen = np.zeros(k_window_size, dtype=np.int64)
    code = _audit_heap(low_heap, low_meta, slot_values, slot_positions, times_seen)
    if code != AUDIT_OK:
        return code
    code = _audit_heap(high_heap, high_meta, slot_values, slot_positions, times_seen)
    if code != AUDIT_OK:
        return code
    oldest_slot = (_state_arr[IDX_STATE_WRITE_CURSOR] - fill_size) % k_window_size
    for i in range(fill_size):
        if times_seen[(oldest_slot + i) % k_window_size] != 1:
            return AUDIT_PARTITION
    if low_size > 0 and high_size > 0 and \
       slot_values[low_heap[0]] > slot_values[high_heap[0]]:
        return AUDIT_CROSS_ORDER
    return AUDIT_OK


def check_invariants(state_tuple: PyStateBundleType) -> None:
    code = audit_state(state_tuple)
    if code != AUDIT_OK:
        raise InvariantViolation(AUDIT_MESSAGES[code])


# =============================================================================
# Construction and batch API
# =============================================================================

@njit(STATE_BUNDLE_TYPE(NB_INT64), cache=True)
def _init_moving_median_numba(window_size: PY_INT) -> PyStateBundleType:
    if window_size < 1:
        raise ValueError('Should be: window_size >= 1')
    slot_values_local, slot_positions_local = init_slot_ring(window_size)
    low_heap_local, low_meta_local = init_heap(window_size, MAX_FIRST)
    high_heap_local, high_meta_local = init_heap(window_size, MIN_FIRST)
    _state_arr_local = np.zeros(N_STATE_FIELDS, dtype=np.int64)
    _state_arr_local[IDX_STATE_WRITE_CURSOR] = 0
    _state_arr_local[IDX_STATE_FILL_SIZE] = 0
    _state_arr_local[IDX_STATE_K_WINDOW_SIZE] = window_size
    return (slot_values_local, slot_positions_local,
            low_heap_local, low_meta_local,
            high_heap_local, high_meta_local,
            _state_arr_local)


def init_moving_median(window_size: int) -> PyStateBundleType:
    if int(window_size) != window_size:
        raise ValueError('window_size must be an integer')
    if window_size < 1:
        raise ValueError('Should be: window_size >= 1')
    return _init_moving_median_numba(np.int64(window_size))


def current_window(state_tuple: PyStateBundleType) -> PY_FLOAT_ARRAY:
    """Values currently in the window, oldest first."""
    return window_values(state_tuple[0], state_tuple[6])


@njit(NB_FLOAT64_ARRAY(NB_FLOAT64_ARRAY, NB_INT64), boundscheck=False, cache=True)
def rolling_median(input_array: PY_FLOAT_ARRAY,
                   window_size: PY_INT) -> PY_FLOAT_ARRAY:
    if window_size < 1:
        raise ValueError('Should be: window_size >= 1')
    n = len(input_array)
    output_medians = np.empty(n, dtype=np.float64)
    if n == 0:
        return output_medians
    state_tuple = _init_moving_median_numba(window_size)
    for i in range(n):
        output_medians[i] = get_median(state_tuple, input_array[i])
    return output_medians
