from __future__ import annotations

import numpy as np

from errors import ConfigurationError, DataError


def check_features(X, expected_columns: int | None = None) -> np.ndarray:
    """Return a read-only float64 copy of ``X``, rejecting malformed tables."""
    X = np.array(X, dtype=np.float64, order="C")
    if X.ndim != 2:
        raise DataError(f"feature table must be 2D (got {X.ndim}D)")
    if X.shape[0] == 0 or X.shape[1] == 0:
        raise DataError(f"feature table is empty (shape {X.shape})")
    if not np.all(np.isfinite(X)):
        bad_rows = np.unique(np.nonzero(~np.isfinite(X))[0])
        raise DataError(
            f"feature table contains non-finite values in rows {bad_rows[:10].tolist()}"
        )
    if expected_columns is not None and X.shape[1] != expected_columns:
        raise DataError(
            f"feature table has {X.shape[1]} columns, model expects {expected_columns}"
        )
    X.flags.writeable = False
    return X


def check_labels(y, row_count: int, class_count: int | None) -> tuple[np.ndarray, int]:
    """Validate class labels and resolve the class count.

    Labels may arrive as floats (``0.0``, ``1.0``) or as an ``n x 1`` column;
    both are accepted as long as every value is a non-negative integer.
    """
    y = np.asarray(y)
    if y.ndim == 2 and y.shape[1] == 1:
        y = y[:, 0]
    if y.ndim != 1:
        raise DataError(f"labels must be a 1D vector or an n x 1 table (got shape {y.shape})")
    if y.shape[0] != row_count:
        raise DataError(
            f"label count {y.shape[0]} does not match feature row count {row_count}"
        )

    try:
        y_float = y.astype(np.float64)
    except (TypeError, ValueError) as exc:
        raise DataError("labels must be integral class indices") from exc
    if not np.all(np.isfinite(y_float)) or not np.all(y_float == np.round(y_float)):
        raise DataError("labels must be integral class indices")
    labels = y_float.astype(np.int64)
    if labels.min() < 0:
        raise DataError(f"labels must be non-negative (found {int(labels.min())})")

    observed = int(labels.max()) + 1
    if class_count is None:
        class_count = observed
    elif observed > class_count:
        raise ConfigurationError(
            f"class_count={class_count} is inconsistent with observed label "
            f"{observed - 1}; labels must lie in [0, {class_count})"
        )

    labels.flags.writeable = False
    return labels, class_count
