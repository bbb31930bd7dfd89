import math
from collections.abc import Sequence

import numpy as np


def safe_ratio(numerator: float, denominator: float) -> float:
    """numerator / denominator, or 0.0 when undefined or non-finite."""
    if not denominator:
        return 0.0
    result = numerator / denominator
    return float(result) if math.isfinite(result) else 0.0


def allocate_proportionally(total: float, weights: Sequence[float]) -> np.ndarray:
    """
    Split ``total`` across slots in proportion to ``weights``.

    Used for shared costs with animal-days as weights. The shares always sum
    to ``total``: when every weight is zero the split is equal instead.
    """
    w = np.asarray(weights, dtype=np.float64)
    if w.size == 0:
        return np.zeros(0, dtype=np.float64)

    w = np.maximum(w, 0.0)
    weight_sum = w.sum()
    if weight_sum <= 0:
        return np.full(w.size, total / w.size, dtype=np.float64)

    with np.errstate(divide="ignore", invalid="ignore"):
        shares = np.nan_to_num(w / weight_sum, nan=0.0)
    return shares * total
