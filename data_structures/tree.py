from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class InternalNode:
    feature: int
    threshold: float
    left: int
    right: int
    n_observations: int = 0
    impurity_decrease: float = 0.0


@dataclass(frozen=True, eq=False)
class LeafNode:
    class_counts: np.ndarray
    probabilities: np.ndarray
    label: int
    n_observations: int

    @classmethod
    def from_counts(cls, class_counts: np.ndarray) -> LeafNode:
        counts = np.asarray(class_counts, dtype=np.float64).copy()
        total = float(counts.sum())
        if total <= 0.0:
            raise ValueError("a leaf needs at least one observation")
        probabilities = counts / total
        counts.flags.writeable = False
        probabilities.flags.writeable = False
        # argmax breaks ties towards the lowest class index.
        return cls(
            class_counts=counts,
            probabilities=probabilities,
            label=int(np.argmax(counts)),
            n_observations=int(round(total)),
        )


TreeNode = InternalNode | LeafNode


def _readonly(array: np.ndarray) -> np.ndarray:
    array.flags.writeable = False
    return array


class DecisionTree:
    """Binary classification tree stored as a node arena.

    Children always sit at larger indices than their parent, which makes
    every root-to-leaf walk finite.
    """

    def __init__(self, nodes: list[TreeNode] | tuple[TreeNode, ...], class_count: int) -> None:
        if len(nodes) == 0:
            raise ValueError("a tree needs at least one node")
        self.nodes: tuple[TreeNode, ...] = tuple(nodes)
        self.class_count = int(class_count)

        node_count = len(self.nodes)
        feature = np.full(node_count, -1, dtype=np.int64)
        threshold = np.zeros(node_count, dtype=np.float64)
        left = np.full(node_count, -1, dtype=np.int64)
        right = np.full(node_count, -1, dtype=np.int64)
        proba = np.zeros((node_count, self.class_count), dtype=np.float64)
        label = np.full(node_count, -1, dtype=np.int64)

        for idx, node in enumerate(self.nodes):
            if isinstance(node, InternalNode):
                if not (idx < node.left < node_count and idx < node.right < node_count):
                    raise ValueError(f"node {idx} has out-of-order children")
                feature[idx] = node.feature
                threshold[idx] = node.threshold
                left[idx] = node.left
                right[idx] = node.right
            else:
                if node.probabilities.size != self.class_count:
                    raise ValueError(f"leaf {idx} does not cover {self.class_count} classes")
                proba[idx] = node.probabilities
                label[idx] = node.label

        self._feature = _readonly(feature)
        self._threshold = _readonly(threshold)
        self._left = _readonly(left)
        self._right = _readonly(right)
        self._proba = _readonly(proba)
        self._label = _readonly(label)
        self.depth = self._compute_depth()

    def _compute_depth(self) -> int:
        depths = np.zeros(len(self.nodes), dtype=np.int64)
        for idx, node in enumerate(self.nodes):
            if isinstance(node, InternalNode):
                depths[node.left] = depths[idx] + 1
                depths[node.right] = depths[idx] + 1
        return int(depths.max())

    @property
    def node_count(self) -> int:
        return len(self.nodes)

    @property
    def leaf_count(self) -> int:
        return int(np.sum(self._feature < 0))

    @property
    def root(self) -> TreeNode:
        return self.nodes[0]

    @property
    def node_labels(self) -> np.ndarray:
        """Predicted class per node, -1 for internal nodes."""
        return self._label

    @property
    def node_probabilities(self) -> np.ndarray:
        """Class distribution per node, zeros for internal nodes."""
        return self._proba

    def leaf_index_for_row(self, row: np.ndarray) -> int:
        idx = 0
        for _ in range(self.node_count):
            node = self.nodes[idx]
            if isinstance(node, LeafNode):
                return idx
            idx = node.left if row[node.feature] <= node.threshold else node.right
        raise RuntimeError("tree traversal did not reach a leaf")

    def apply(self, X: np.ndarray) -> np.ndarray:
        """Return the leaf index reached by every row of ``X``."""
        X = np.asarray(X, dtype=np.float64)
        node_ids = np.zeros(X.shape[0], dtype=np.int64)
        for _ in range(self.node_count):
            active = np.flatnonzero(self._feature[node_ids] >= 0)
            if active.size == 0:
                return node_ids
            current = node_ids[active]
            go_left = X[active, self._feature[current]] <= self._threshold[current]
            node_ids[active] = np.where(go_left, self._left[current], self._right[current])
        if np.any(self._feature[node_ids] >= 0):
            raise RuntimeError("tree traversal did not reach a leaf")
        return node_ids

    def predict_proba(self, X: np.ndarray) -> np.ndarray:
        return self._proba[self.apply(X)]

    def predict(self, X: np.ndarray) -> np.ndarray:
        return self._label[self.apply(X)]


@dataclass(frozen=True)
class ForestModel:
    trees: tuple[DecisionTree, ...]
    class_count: int
    feature_count: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "trees", tuple(self.trees))
        if len(self.trees) == 0:
            raise ValueError("a forest needs at least one tree")
        for tree_idx, tree in enumerate(self.trees):
            if tree.class_count != self.class_count:
                raise ValueError(
                    f"tree {tree_idx} has {tree.class_count} classes, "
                    f"model has {self.class_count}"
                )

    @property
    def tree_count(self) -> int:
        return len(self.trees)
