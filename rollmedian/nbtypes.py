import numpy as np
from numba import int64, float64, boolean, types, void
import numpy.typing as npt
from typing import Tuple, TypeAlias

# Python-compatible type for the state bundle
PyStateBundleType: TypeAlias = Tuple[
    npt.NDArray[np.float64],    # slot_values
    npt.NDArray[np.int64],      # slot_positions
    npt.NDArray[np.int64],      # low_heap
    npt.NDArray[np.int64],      # low_meta
    npt.NDArray[np.int64],      # high_heap
    npt.NDArray[np.int64],      # high_meta
    npt.NDArray[np.int64]       # _state
]

# =============================================================================
# Constants for _state array indices
# =============================================================================
IDX_STATE_WRITE_CURSOR = 0
IDX_STATE_FILL_SIZE = 1
IDX_STATE_K_WINDOW_SIZE = 2
N_STATE_FIELDS = 3

# =============================================================================
# Constants for heap header (heap_meta) indices and orientations
# =============================================================================
IDX_HEAP_SIZE = 0
IDX_HEAP_ORIENTATION = 1
N_HEAP_META_FIELDS = 2

MAX_FIRST = 1   # root is the maximum (low heap)
MIN_FIRST = -1  # root is the minimum (high heap)

NO_POSITION = -1

# =============================================================================
# Numba type for state_bundle
# =============================================================================
STATE_BUNDLE_TYPE = types.Tuple((
    float64[:], int64[:], int64[:], int64[:], int64[:], int64[:], int64[:]
))

# =============================================================================
# Helper Numba types for readable @njit signatures
# =============================================================================
NB_VOID = void
NB_BOOL = boolean
NB_INT64 = int64
NB_FLOAT64 = float64
NB_FLOAT64_ARRAY = float64[:]
NB_INT64_ARRAY = int64[:]

# =============================================================================
# Python-compatible aliases for annotations
# =============================================================================
PY_INT = int
PY_FLOAT = float
PY_FLOAT_ARRAY = npt.NDArray[np.float64]
PY_INT_ARRAY = npt.NDArray[np.int64]
