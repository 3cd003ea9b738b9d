import numpy as np


def build_bins(X: np.ndarray, max_bins: int = 256, min_bin_size: int = 5) -> list[np.ndarray]:
    """Build per-feature bin boundaries shared by every node of every tree.

    A column never gets more bins than ``len(column) // min_bin_size``, so a
    small dataset may end up with a single bin (and therefore no candidate
    splits) for every feature.
    """
    if max_bins < 2:
        raise ValueError("max_bins must be at least 2")
    if min_bin_size < 1:
        raise ValueError("min_bin_size must be positive")

    X = np.asarray(X, dtype=np.float64)
    if X.ndim != 2:
        raise ValueError("X must be a 2D array")

    n_samples, n_features = X.shape
    n_bins = min(max_bins, n_samples // min_bin_size)
    thresholds: list[np.ndarray] = []
    if n_bins < 2:
        return [np.array([], dtype=np.float64) for _ in range(n_features)]

    quantiles = np.linspace(0.0, 1.0, n_bins + 1)[1:-1]

    for feature_idx in range(n_features):
        column = X[:, feature_idx]
        values = np.unique(column)
        if values.size <= 1:
            thresholds.append(np.array([], dtype=np.float64))
            continue

        if values.size <= n_bins:
            # Midpoints between adjacent unique values define exact ordered bins.
            mids = (values[:-1] + values[1:]) * 0.5
        else:
            mids = np.quantile(column, quantiles, method="linear")
            mids = np.unique(mids)
            # A boundary equal to the column maximum would leave an empty top bin.
            mids = mids[mids < values[-1]]

        thresholds.append(np.asarray(mids, dtype=np.float64))

    return thresholds


def apply_bins(X: np.ndarray, bin_thresholds: list[np.ndarray]) -> np.ndarray:
    """Map values to int32 bin indices.

    Bin ``b`` holds values in ``(thresholds[b - 1], thresholds[b]]``, so
    ``bin <= j`` is the same test as ``value <= thresholds[j]``.
    """
    X = np.asarray(X, dtype=np.float64)
    if X.ndim != 2:
        raise ValueError("X must be a 2D array")
    if X.shape[1] != len(bin_thresholds):
        raise ValueError("bin_thresholds length must match number of features")

    n_samples, n_features = X.shape
    X_bin = np.zeros((n_samples, n_features), dtype=np.int32)

    for feature_idx in range(n_features):
        thresholds = bin_thresholds[feature_idx]
        if thresholds.size == 0:
            continue

        X_bin[:, feature_idx] = np.searchsorted(
            thresholds,
            X[:, feature_idx],
            side="left",
        ).astype(np.int32)

    return np.ascontiguousarray(X_bin)
