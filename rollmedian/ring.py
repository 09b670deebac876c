import numpy as np
from numba import njit, types

from .nbtypes import (
    IDX_STATE_FILL_SIZE,
    IDX_STATE_K_WINDOW_SIZE,
    IDX_STATE_WRITE_CURSOR,
    NB_FLOAT64_ARRAY,
    NB_INT64,
    NB_INT64_ARRAY,
    NB_VOID,
    NO_POSITION,
    PY_FLOAT_ARRAY,
    PY_INT,
    PY_INT_ARRAY,
)

SLOT_RING_TYPE = types.Tuple((NB_FLOAT64_ARRAY, NB_INT64_ARRAY))


@njit(SLOT_RING_TYPE(NB_INT64), cache=True)
def init_slot_ring(window_size: PY_INT):
    # Slots start logically empty: NaN value, no heap position.
    if window_size < 1:
        raise ValueError('Should be: window_size >= 1')
    slot_values_local = np.full(window_size, np.nan, dtype=np.float64)
    slot_positions_local = np.full(window_size, NO_POSITION, dtype=np.int64)
    return slot_values_local, slot_positions_local


@njit(NB_INT64(NB_INT64_ARRAY), cache=True)
def next_write_target(_state: PY_INT_ARRAY) -> PY_INT:
    """Slot the next push writes to: the oldest one once the ring is full."""
    return _state[IDX_STATE_WRITE_CURSOR]


@njit(NB_VOID(NB_INT64_ARRAY), cache=True)
def advance(_state: PY_INT_ARRAY) -> None:
    _state[IDX_STATE_WRITE_CURSOR] = (_state[IDX_STATE_WRITE_CURSOR] + 1) % _state[IDX_STATE_K_WINDOW_SIZE]


@njit(NB_FLOAT64_ARRAY(NB_FLOAT64_ARRAY, NB_INT64_ARRAY), boundscheck=False, cache=True)
def window_values(slot_values: PY_FLOAT_ARRAY, _state: PY_INT_ARRAY) -> PY_FLOAT_ARRAY:
    """Copy of the values currently in the window, oldest first."""
    k_window_size = _state[IDX_STATE_K_WINDOW_SIZE]
    fill_size = _state[IDX_STATE_FILL_SIZE]
    oldest_slot = (_state[IDX_STATE_WRITE_CURSOR] - fill_size) % k_window_size
    output_values = np.empty(fill_size, dtype=np.float64)
    for i in range(fill_size):
        output_values[i] = slot_values[(oldest_slot + i) % k_window_size]
    return output_values
