import logging

import numpy as np

from .core import (
    AUDIT_MESSAGES,
    AUDIT_OK,
    InvariantViolation,
    audit_state,
    current_median,
    current_window,
    init_moving_median,
    push_value,
)
from .nbtypes import IDX_STATE_FILL_SIZE, IDX_STATE_K_WINDOW_SIZE, PY_FLOAT_ARRAY

logger = logging.getLogger(__name__)

FILLING = 'filling'
STEADY = 'steady'


class MovingMedian:
    """
    Median of the last ``window_size`` pushed values.

    ``push`` costs O(log window_size), ``median`` is O(1). Before the window
    is full the median covers every value pushed so far. An instance is not
    thread safe; serialize access from the caller.
    """

    def __init__(self, window_size: int) -> None:
        self._state_bundle = init_moving_median(window_size)
        logger.debug('MovingMedian created with window_size=%d', window_size)

    @property
    def window_size(self) -> int:
        return int(self._state_bundle[6][IDX_STATE_K_WINDOW_SIZE])

    @property
    def filled_count(self) -> int:
        return int(self._state_bundle[6][IDX_STATE_FILL_SIZE])

    @property
    def is_full(self) -> bool:
        return self.filled_count == self.window_size

    @property
    def phase(self) -> str:
        return STEADY if self.is_full else FILLING

    def __len__(self) -> int:
        return self.filled_count

    def __repr__(self) -> str:
        return f'MovingMedian(window_size={self.window_size}, filled_count={self.filled_count})'

    def push(self, value: float) -> None:
        push_value(self._state_bundle, np.float64(value))

    def median(self) -> float:
        """Current median, NaN until the first push."""
        return float(current_median(self._state_bundle))

    def window(self) -> PY_FLOAT_ARRAY:
        return current_window(self._state_bundle)

    def check_invariants(self) -> None:
        code = audit_state(self._state_bundle)
        if code != AUDIT_OK:
            logger.error('MovingMedian state corrupt after %d values: %s',
                         self.filled_count, AUDIT_MESSAGES[code])
            raise InvariantViolation(AUDIT_MESSAGES[code])
