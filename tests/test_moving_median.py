import logging
import math

import pytest
import numpy as np
from numpy.testing import assert_allclose, assert_array_equal

from rollmedian import FILLING, STEADY, InvariantViolation, MovingMedian
from rollmedian.core import (
    AUDIT_BAD_BACK_REFERENCE,
    AUDIT_CROSS_ORDER,
    AUDIT_OK,
    AUDIT_SIZE_MISMATCH,
    audit_state,
)

from percentile_oracle import windowed_median

# --- Table of (window_size, input, expected medians) ---
SCENARIOS = {
    "one_window_size": (1, [1, 3, 5, 7, 9, 11, math.nan], [1, 3, 5, 7, 9, 11, math.nan]),
    "odd_window_size": (3, [1, 3, 5, 7, 9, 11], [1, 2, 3, 5, 7, 9]),
    "even_window_size": (4, [1, 3, 5, 7, 9, 11], [1, 2, 3, 4, 6, 8]),
    "decreasing_values": (4, [19, 17, 15, 13, 11, 9], [19, 18, 17, 16, 14, 12]),
    "decreasing_increasing_values": (
        4,
        [21, 19, 17, 15, 13, 11, 13, 15, 17, 19],
        [21, 20, 19, 18, 16, 14, 13, 13, 14, 16],
    ),
    "increasing_decreasing_values": (
        4,
        [11, 13, 15, 17, 19, 21, 19, 17, 15, 13],
        [11, 12, 13, 14, 16, 18, 19, 19, 18, 16],
    ),
    "zig_zag": (
        4,
        [21, 23, 17, 27, 13, 31, 9, 35, 5, 39, 1],
        [21, 22, 21, 22, 20, 22, 20, 22, 20, 22, 20],
    ),
    "new_values_in_between": (
        4,
        [21, 21, 19, 19, 21, 21, 19, 19, 19, 19],
        [21, 21, 21, 20, 20, 20, 20, 20, 19, 19],
    ),
    "same_number_in_both_heaps_3_times": (
        4,
        [11, 13, 13, 13, 25, 27, 29, 31],
        [11, 12, 13, 13, 13, 19, 26, 28],
    ),
    "same_number_in_both_heaps_3_times_decreasing": (
        4,
        [31, 29, 29, 29, 17, 15, 13, 11],
        [31, 30, 29, 29, 29, 23, 16, 14],
    ),
    "same_number_in_both_heaps_4_times": (
        4,
        [11, 13, 13, 13, 13, 25, 27, 29, 31],
        [11, 12, 13, 13, 13, 13, 19, 26, 28],
    ),
}


def push_all(moving_median, data, audit=True):
    medians = []
    for value in data:
        moving_median.push(value)
        if audit:
            moving_median.check_invariants()
        medians.append(moving_median.median())
    return np.array(medians, dtype=np.float64)


@pytest.mark.parametrize("window_size, data, expected", list(SCENARIOS.values()), ids=list(SCENARIOS))
def test_known_scenarios(window_size, data, expected):
    actual = push_all(MovingMedian(window_size), data)
    assert_array_equal(actual, np.array(expected, dtype=np.float64))


def test_median_is_nan_before_first_push():
    moving_median = MovingMedian(5)
    assert math.isnan(moving_median.median())
    assert len(moving_median) == 0
    moving_median.check_invariants()


def test_median_read_is_idempotent():
    moving_median = MovingMedian(3)
    for value in [4.0, -1.0, 8.0, 2.5]:
        moving_median.push(value)
        first = moving_median.median()
        assert moving_median.median() == first
        assert moving_median.median() == first


def test_window_size_one_tracks_last_value():
    rng = np.random.default_rng(7)
    moving_median = MovingMedian(1)
    for value in rng.normal(size=50):
        moving_median.push(value)
        assert moving_median.median() == value


@pytest.mark.parametrize("window_size", [1, 2, 3, 4, 5, 6, 7, 8, 9, 10, 57])
def test_random_stream_matches_oracle_after_every_push(window_size):
    rng = np.random.default_rng(99)
    data = rng.random(300)
    moving_median = MovingMedian(window_size)
    for i, value in enumerate(data):
        moving_median.push(value)
        moving_median.check_invariants()
        assert_allclose(moving_median.median(), windowed_median(data, i, window_size),
                        rtol=0, atol=1e-12, err_msg=f"index {i}")


@pytest.mark.parametrize("window_size", [2, 3, 4, 5, 10, 33])
def test_duplicate_heavy_stream_matches_oracle(window_size):
    # digits 0..9 only: every window holds many repeats around the median
    rng = np.random.default_rng(99)
    data = rng.integers(0, 10, size=400).astype(np.float64)
    moving_median = MovingMedian(window_size)
    for i, value in enumerate(data):
        moving_median.push(value)
        moving_median.check_invariants()
        assert moving_median.median() == windowed_median(data, i, window_size), f"index {i}"


@pytest.mark.parametrize("data", [
    np.arange(40, dtype=np.float64),
    np.arange(40, 0, -1, dtype=np.float64),
    np.array([(-1.0) ** i * i for i in range(40)]),
], ids=["increasing", "decreasing", "zig_zag"])
@pytest.mark.parametrize("window_size", [2, 5, 8])
def test_monotonic_and_oscillating_streams(data, window_size):
    moving_median = MovingMedian(window_size)
    expected = [windowed_median(data, i, window_size) for i in range(len(data))]
    assert_array_equal(push_all(moving_median, data), expected)


def test_median_does_not_depend_on_order_of_duplicates():
    first = push_all(MovingMedian(4), [13, 13, 11, 13, 13, 25])
    second = push_all(MovingMedian(4), [13, 11, 13, 13, 13, 25])
    assert first[-1] == second[-1] == 13


def test_window_holds_latest_values():
    moving_median = MovingMedian(3)
    push_all(moving_median, [1.0, 2.0, 3.0, 4.0, 5.0])
    assert_array_equal(moving_median.window(), [3.0, 4.0, 5.0])


def test_filling_then_steady():
    moving_median = MovingMedian(3)
    assert moving_median.phase == FILLING
    for expected_count in (1, 2):
        moving_median.push(float(expected_count))
        assert moving_median.filled_count == expected_count
        assert moving_median.phase == FILLING
        assert not moving_median.is_full
    for value in (3.0, 4.0, 5.0):
        moving_median.push(value)
        assert moving_median.phase == STEADY
        assert moving_median.filled_count == 3
        assert len(moving_median) == 3
    assert moving_median.window_size == 3


@pytest.mark.parametrize("window_size", [0, -1, 2.5])
def test_rejects_bad_window_size(window_size):
    with pytest.raises(ValueError):
        MovingMedian(window_size)


def test_push_fails_fast_when_evicted_slot_is_orphaned():
    moving_median = MovingMedian(3)
    push_all(moving_median, [1.0, 2.0, 3.0])
    slot_positions = moving_median._state_bundle[1]
    slot_positions[0] = -1
    with pytest.raises(InvariantViolation):
        moving_median.push(4.0)


def test_audit_reports_broken_back_reference():
    moving_median = MovingMedian(5)
    push_all(moving_median, [1.0, 2.0, 3.0, 4.0, 5.0])
    slot_positions, low_heap = moving_median._state_bundle[1], moving_median._state_bundle[2]
    slot_positions[low_heap[0]] = 4
    assert audit_state(moving_median._state_bundle) == AUDIT_BAD_BACK_REFERENCE


def test_audit_reports_size_mismatch():
    moving_median = MovingMedian(5)
    push_all(moving_median, [1.0, 2.0])
    moving_median._state_bundle[6][1] += 1
    assert audit_state(moving_median._state_bundle) == AUDIT_SIZE_MISMATCH


def test_check_invariants_logs_and_raises_on_cross_order(caplog):
    moving_median = MovingMedian(5)
    push_all(moving_median, [1.0, 2.0, 3.0, 4.0, 5.0])
    assert audit_state(moving_median._state_bundle) == AUDIT_OK
    slot_values, low_heap = moving_median._state_bundle[0], moving_median._state_bundle[2]
    slot_values[low_heap[0]] = 100.0
    assert audit_state(moving_median._state_bundle) == AUDIT_CROSS_ORDER
    with caplog.at_level(logging.ERROR, logger="rollmedian.moving_median"):
        with pytest.raises(InvariantViolation, match="greater than high heap root"):
            moving_median.check_invariants()
    assert "state corrupt" in caplog.text
