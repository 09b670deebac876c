import math

import numpy as np


def exact_percentile(values, percent: float, interpolate: bool = True) -> float:
    """
    Exact percentile of ``values`` by partial selection on a copy.

    With ``interpolate`` the result is linear between the two order
    statistics around rank ``(n - 1) * percent / 100``; the 50th percentile
    is then the ordinary median.
    """
    data = np.array(values, dtype=np.float64)
    n = len(data)
    if n == 0 or percent < 0 or percent > 100:
        return np.nan
    if n == 1:
        return float(data[0])
    k = (n - 1) * percent / 100.0
    length = int(math.ceil(k)) + 1
    smallest = np.partition(data, length - 1)[:length]
    top = smallest[length - 1]
    remainder = k - int(k)
    if remainder == 0 or not interpolate:
        return float(top)
    second_top = np.max(smallest[:length - 1])
    return float(top * remainder + second_top * (1 - remainder))


def windowed_median(data, i: int, window_size: int) -> float:
    """Median of the window ending at index ``i``."""
    start_index = max(0, i - window_size + 1)
    return exact_percentile(data[start_index:i + 1], 50, True)
