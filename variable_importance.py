from __future__ import annotations

import numpy as np

from data_structures import DecisionTree


def normalize_mdi(accumulated: np.ndarray) -> np.ndarray:
    """Scale summed impurity decreases so they add up to one.

    An all-zero accumulator (no split anywhere in the forest) stays zero.
    """
    accumulated = np.asarray(accumulated, dtype=np.float64)
    total = float(accumulated.sum())
    if total <= 0.0:
        return np.zeros_like(accumulated)
    return accumulated / total


def permutation_accuracy_drop(
    tree: DecisionTree,
    X: np.ndarray,
    y: np.ndarray,
    oob_rows: np.ndarray,
    rng: np.random.Generator,
) -> np.ndarray:
    """Accuracy lost on a tree's out-of-bag rows when each feature is shuffled.

    Returns one entry per feature, all NaN when the tree has no out-of-bag
    rows.
    """
    n_features = X.shape[1]
    if oob_rows.size == 0:
        return np.full(n_features, np.nan)

    X_oob = np.array(X[oob_rows], dtype=np.float64)
    y_oob = y[oob_rows]
    baseline = float(np.mean(tree.predict(X_oob) == y_oob))

    drops = np.zeros(n_features, dtype=np.float64)
    for feature in range(n_features):
        original = X_oob[:, feature].copy()
        X_oob[:, feature] = rng.permutation(original)
        drops[feature] = baseline - float(np.mean(tree.predict(X_oob) == y_oob))
        X_oob[:, feature] = original
    return drops


def mda_importance(per_tree_drops: np.ndarray, scaled: bool = False) -> np.ndarray:
    """Mean decrease in accuracy over the trees that had out-of-bag rows.

    The scaled variant divides by the standard error of that mean; features
    whose drop never varies across trees keep their raw value.
    """
    drops = np.asarray(per_tree_drops, dtype=np.float64)
    n_features = drops.shape[1]
    defined = ~np.isnan(drops[:, 0])
    if not np.any(defined):
        return np.zeros(n_features, dtype=np.float64)

    drops = drops[defined]
    raw = drops.mean(axis=0)
    if not scaled:
        return raw

    n_trees = drops.shape[0]
    std_err = drops.std(axis=0) / np.sqrt(n_trees)
    result = raw.copy()
    nonzero = std_err > 0.0
    result[nonzero] = raw[nonzero] / std_err[nonzero]
    return result
