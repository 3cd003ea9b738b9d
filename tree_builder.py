from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from data_structures import DecisionTree, InternalNode, LeafNode, TreeNode
from split_search import (
    GiniSplitSearch,
    SplitCandidate,
    SplitSearchParams,
    SplitSearchResult,
    gini,
)


@dataclass
class TreeBuildMetrics:
    total_histogram_updates: int = 0
    candidates_evaluated: int = 0
    split_search_time_sec: float = 0.0
    nodes_visited: int = 0
    nodes_split: int = 0
    # Sum of impurity decrease x node size per feature (unnormalized MDI).
    feature_importance: np.ndarray = field(default_factory=lambda: np.zeros(0))


@dataclass
class TreeBuilderParams:
    features_per_node: int = 1
    min_observations_in_leaf_node: int = 1
    min_observations_in_split_node: int = 2
    max_tree_depth: int = 0  # 0: unlimited
    min_impurity_decrease_in_split_node: float = 0.0
    impurity_threshold: float = 0.0
    split_method: str = "dense"  # one of: dense, hist

    def __post_init__(self) -> None:
        if self.split_method not in {"dense", "hist"}:
            raise ValueError("split_method must be one of: dense, hist")
        if self.features_per_node <= 0:
            raise ValueError("features_per_node must be positive")
        if self.min_observations_in_leaf_node <= 0:
            raise ValueError("min_observations_in_leaf_node must be positive")


class TreeBuilder:
    """Grows one classification tree depth-first into a node arena."""

    def __init__(
        self,
        X: np.ndarray,
        y: np.ndarray,
        class_count: int,
        params: TreeBuilderParams,
        rng: np.random.Generator | None = None,
        X_bin: np.ndarray | None = None,
        bin_thresholds: list[np.ndarray] | None = None,
    ) -> None:
        self.X = X
        self.y = y
        self.class_count = int(class_count)
        self.params = params
        self.rng = rng if rng is not None else np.random.default_rng(0)
        self.X_bin = X_bin
        self.bin_thresholds = bin_thresholds

        self.n_samples, self.n_features = self.X.shape
        if params.features_per_node > self.n_features:
            raise ValueError(
                f"features_per_node={params.features_per_node} exceeds "
                f"n_features={self.n_features}"
            )
        self.split_params = SplitSearchParams(
            method=params.split_method,
            min_observations_in_leaf_node=params.min_observations_in_leaf_node,
            min_impurity_decrease=params.min_impurity_decrease_in_split_node,
        )
        self.metrics = TreeBuildMetrics(feature_importance=np.zeros(self.n_features))

    def _candidate_features_for_node(self) -> np.ndarray:
        if self.params.features_per_node >= self.n_features:
            return np.arange(self.n_features, dtype=np.int64)
        chosen = self.rng.choice(self.n_features, size=self.params.features_per_node, replace=False)
        return np.sort(chosen).astype(np.int64)

    def _partition_rows(
        self, rows: np.ndarray, split: SplitCandidate
    ) -> tuple[np.ndarray, np.ndarray]:
        if split.threshold_bin is not None and self.X_bin is not None:
            left_mask = self.X_bin[rows, split.feature] <= split.threshold_bin
        else:
            left_mask = self.X[rows, split.feature] <= split.threshold
        return rows[left_mask], rows[~left_mask]

    def _is_splittable(self, rows: np.ndarray, depth: int, node_counts: np.ndarray) -> bool:
        if self.params.max_tree_depth > 0 and depth >= self.params.max_tree_depth:
            return False
        if rows.size < self.params.min_observations_in_split_node:
            return False
        if rows.size < 2 * self.params.min_observations_in_leaf_node:
            return False
        if np.count_nonzero(node_counts) <= 1:
            return False
        if gini(node_counts) <= self.params.impurity_threshold:
            return False
        return True

    def _find_best_split(self, rows: np.ndarray) -> SplitSearchResult:
        search = GiniSplitSearch(
            node_rows=rows,
            candidate_features=self._candidate_features_for_node(),
            X=self.X,
            y=self.y,
            class_count=self.class_count,
            params=self.split_params,
            X_bin=self.X_bin,
            bin_thresholds=self.bin_thresholds,
        )
        result = search.search()

        self.metrics.total_histogram_updates += result.metrics.total_histogram_updates
        self.metrics.candidates_evaluated += result.metrics.candidates_evaluated
        self.metrics.split_search_time_sec += result.metrics.time_spent_sec
        return result

    def build_tree(self, rows: np.ndarray | None = None) -> DecisionTree:
        if rows is None:
            rows = np.arange(self.n_samples, dtype=np.int64)
        else:
            rows = np.asarray(rows, dtype=np.int64)
        if rows.size == 0:
            raise ValueError("cannot build a tree from an empty row subset")

        # Slots are reserved when a node is pushed so children always follow
        # their parent in the arena.
        arena: list[TreeNode | None] = [None]
        stack = [(0, rows, 0)]

        while stack:
            node_idx, node_rows, depth = stack.pop()
            self.metrics.nodes_visited += 1

            node_counts = np.bincount(self.y[node_rows], minlength=self.class_count)
            if not self._is_splittable(node_rows, depth, node_counts):
                arena[node_idx] = LeafNode.from_counts(node_counts)
                continue

            result = self._find_best_split(node_rows)
            if result.split is None:
                arena[node_idx] = LeafNode.from_counts(node_counts)
                continue

            left_rows, right_rows = self._partition_rows(node_rows, result.split)
            if (
                left_rows.size < self.params.min_observations_in_leaf_node
                or right_rows.size < self.params.min_observations_in_leaf_node
            ):
                arena[node_idx] = LeafNode.from_counts(node_counts)
                continue

            left_idx = len(arena)
            right_idx = left_idx + 1
            arena.extend([None, None])
            arena[node_idx] = InternalNode(
                feature=result.split.feature,
                threshold=result.split.threshold,
                left=left_idx,
                right=right_idx,
                n_observations=int(node_rows.size),
                impurity_decrease=result.impurity_decrease,
            )
            self.metrics.feature_importance[result.split.feature] += (
                result.impurity_decrease * node_rows.size
            )
            self.metrics.nodes_split += 1

            stack.append((right_idx, right_rows, depth + 1))
            stack.append((left_idx, left_rows, depth + 1))

        return DecisionTree(arena, class_count=self.class_count)
