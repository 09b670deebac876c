from .core import (
    AUDIT_OK,
    InvariantViolation,
    audit_state,
    check_invariants,
    current_median,
    current_window,
    get_median,
    init_moving_median,
    push_value,
    rolling_median,
)
from .moving_median import FILLING, STEADY, MovingMedian

__all__ = [
    'AUDIT_OK',
    'FILLING',
    'InvariantViolation',
    'MovingMedian',
    'STEADY',
    'audit_state',
    'check_invariants',
    'current_median',
    'current_window',
    'get_median',
    'init_moving_median',
    'push_value',
    'rolling_median',
]
