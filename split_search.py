from __future__ import annotations

from dataclasses import dataclass
import time

import numpy as np

# Rounding slack when comparing a decrease against the configured minimum.
_EPS = 1e-12


@dataclass(frozen=True)
class SplitCandidate:
    feature: int
    threshold: float
    threshold_bin: int | None = None


@dataclass
class SplitSearchMetrics:
    features_evaluated: int = 0
    candidates_evaluated: int = 0
    total_histogram_updates: int = 0
    time_spent_sec: float = 0.0


@dataclass
class SplitSearchResult:
    split: SplitCandidate | None
    impurity_decrease: float
    node_impurity: float
    node_counts: np.ndarray
    metrics: SplitSearchMetrics


@dataclass
class SplitSearchParams:
    method: str = "dense"  # one of: dense, hist
    min_observations_in_leaf_node: int = 1
    min_impurity_decrease: float = 0.0

    def __post_init__(self) -> None:
        if self.method not in {"dense", "hist"}:
            raise ValueError("method must be one of: dense, hist")
        if self.min_observations_in_leaf_node <= 0:
            raise ValueError("min_observations_in_leaf_node must be positive")


def gini(class_counts: np.ndarray) -> float:
    total = float(np.sum(class_counts))
    if total <= 0.0:
        return 0.0
    p = np.asarray(class_counts, dtype=np.float64) / total
    return float(1.0 - np.dot(p, p))


class GiniSplitSearch:
    """Best (feature, threshold) search for one node by Gini impurity decrease.

    The dense method sorts the node's values per feature and tries the
    midpoint between every pair of adjacent distinct values. The hist method
    accumulates per-bin class counts over bin boundaries precomputed for the
    whole column, trading threshold precision for a linear pass per feature.

    Ties are resolved towards the lowest feature index, then the lowest
    threshold.
    """

    def __init__(
        self,
        node_rows: np.ndarray,
        candidate_features: np.ndarray,
        X: np.ndarray,
        y: np.ndarray,
        class_count: int,
        params: SplitSearchParams,
        X_bin: np.ndarray | None = None,
        bin_thresholds: list[np.ndarray] | None = None,
    ) -> None:
        self.node_rows = np.asarray(node_rows, dtype=np.int64)
        self.candidate_features = np.sort(np.asarray(candidate_features, dtype=np.int64))
        self.X = X
        self.y = y
        self.class_count = int(class_count)
        self.params = params
        self.X_bin = X_bin
        self.bin_thresholds = bin_thresholds

        if params.method == "hist" and (X_bin is None or bin_thresholds is None):
            raise ValueError("hist split search needs X_bin and bin_thresholds")

        self.n_node = int(self.node_rows.size)
        self.node_labels = self.y[self.node_rows]
        self.node_counts = np.bincount(self.node_labels, minlength=self.class_count).astype(
            np.float64
        )

    def _decrease_for_prefix_counts(
        self,
        left_counts: np.ndarray,
        node_impurity: float,
    ) -> tuple[np.ndarray, np.ndarray]:
        """Impurity decrease of every split whose left child has ``left_counts``.

        Returns the decreases and the mask of splits honouring the minimum
        leaf size; invalid entries are set to -inf.
        """
        right_counts = self.node_counts[np.newaxis, :] - left_counts
        n_left = left_counts.sum(axis=1)
        n_right = right_counts.sum(axis=1)

        min_leaf = self.params.min_observations_in_leaf_node
        valid = (n_left >= min_leaf) & (n_right >= min_leaf)

        safe_left = np.maximum(n_left, 1.0)
        safe_right = np.maximum(n_right, 1.0)
        gini_left = 1.0 - np.sum(left_counts * left_counts, axis=1) / (safe_left * safe_left)
        gini_right = 1.0 - np.sum(right_counts * right_counts, axis=1) / (
            safe_right * safe_right
        )
        weighted = (n_left * gini_left + n_right * gini_right) / float(self.n_node)
        decrease = node_impurity - weighted
        decrease[~valid] = -np.inf
        return decrease, valid

    def _dense_feature_best(
        self, feature: int, node_impurity: float, metrics: SplitSearchMetrics
    ) -> tuple[SplitCandidate | None, float]:
        values = self.X[self.node_rows, feature]
        order = np.argsort(values, kind="stable")
        sorted_values = values[order]
        sorted_labels = self.node_labels[order]

        one_hot = np.zeros((self.n_node, self.class_count), dtype=np.float64)
        one_hot[np.arange(self.n_node), sorted_labels] = 1.0
        left_counts = np.cumsum(one_hot, axis=0)[:-1]

        decrease, valid = self._decrease_for_prefix_counts(left_counts, node_impurity)
        # Splitting between equal values is not a split.
        distinct = sorted_values[:-1] < sorted_values[1:]
        decrease[~distinct] = -np.inf
        valid &= distinct

        metrics.total_histogram_updates += self.n_node
        metrics.candidates_evaluated += int(np.sum(valid))
        if not np.any(valid):
            return None, -np.inf

        pos = int(np.argmax(decrease))
        lower = float(sorted_values[pos])
        upper = float(sorted_values[pos + 1])
        threshold = (lower + upper) * 0.5
        if not (lower <= threshold < upper):
            threshold = lower
        return SplitCandidate(feature=int(feature), threshold=threshold), float(decrease[pos])

    def _hist_feature_best(
        self, feature: int, node_impurity: float, metrics: SplitSearchMetrics
    ) -> tuple[SplitCandidate | None, float]:
        assert self.X_bin is not None
        assert self.bin_thresholds is not None

        thresholds = self.bin_thresholds[feature]
        num_bins = int(thresholds.size + 1)
        if num_bins <= 1:
            return None, -np.inf

        bins = self.X_bin[self.node_rows, feature].astype(np.int64)
        hist = np.bincount(
            bins * self.class_count + self.node_labels,
            minlength=num_bins * self.class_count,
        ).reshape(num_bins, self.class_count)
        left_counts = np.cumsum(hist, axis=0, dtype=np.float64)[:-1]

        decrease, valid = self._decrease_for_prefix_counts(left_counts, node_impurity)

        metrics.total_histogram_updates += self.n_node
        metrics.candidates_evaluated += int(np.sum(valid))
        if not np.any(valid):
            return None, -np.inf

        j = int(np.argmax(decrease))
        split = SplitCandidate(
            feature=int(feature),
            threshold=float(thresholds[j]),
            threshold_bin=j,
        )
        return split, float(decrease[j])

    def search(self) -> SplitSearchResult:
        start = time.perf_counter()
        metrics = SplitSearchMetrics()
        node_impurity = gini(self.node_counts)

        best_split = None
        best_decrease = -np.inf
        if self.n_node >= 2 and node_impurity > 0.0:
            for feature in self.candidate_features:
                if self.params.method == "hist":
                    split, decrease = self._hist_feature_best(int(feature), node_impurity, metrics)
                else:
                    split, decrease = self._dense_feature_best(int(feature), node_impurity, metrics)
                metrics.features_evaluated += 1
                if split is not None and decrease > best_decrease:
                    best_split = split
                    best_decrease = decrease

        if best_split is not None and best_decrease < self.params.min_impurity_decrease - _EPS:
            best_split = None

        metrics.time_spent_sec = time.perf_counter() - start
        return SplitSearchResult(
            split=best_split,
            impurity_decrease=best_decrease if best_split is not None else 0.0,
            node_impurity=node_impurity,
            node_counts=self.node_counts,
            metrics=metrics,
        )
