from __future__ import annotations

from dataclasses import dataclass
import logging
import time

import numpy as np
from joblib import Parallel, delayed, effective_n_jobs

from data_structures import ForestModel
from errors import ConfigurationError
from forest_params import ForestParams, InferMode, VotingMode
from validation import check_features

logger = logging.getLogger(__name__)


@dataclass
class InferResult:
    labels: np.ndarray | None  # (row_count, 1)
    probabilities: np.ndarray | None  # (row_count, class_count)


class InferenceEngine:
    """Routes rows through every tree of a forest and combines the leaves.

    Unweighted voting gives each tree one hard vote for its leaf's label.
    Weighted voting lets each tree contribute its leaf's class distribution,
    so confident leaves pull harder than mixed ones. In both modes the
    probability output is the mean leaf distribution across trees.
    """

    def __init__(
        self,
        infer_mode: InferMode = InferMode.CLASS_LABELS,
        voting_mode: VotingMode = VotingMode.WEIGHTED,
        n_jobs: int = 1,
    ) -> None:
        if not infer_mode:
            raise ConfigurationError(
                "infer_mode must request class labels, class probabilities, or both"
            )
        self.infer_mode = infer_mode
        self.voting_mode = voting_mode
        self.n_jobs = n_jobs

    @classmethod
    def from_params(cls, params: ForestParams) -> InferenceEngine:
        return cls(
            infer_mode=params.infer_mode,
            voting_mode=params.voting_mode,
            n_jobs=params.n_jobs,
        )

    @property
    def _wants_labels(self) -> bool:
        return bool(self.infer_mode & InferMode.CLASS_LABELS)

    @property
    def _wants_probabilities(self) -> bool:
        return bool(self.infer_mode & InferMode.CLASS_PROBABILITIES)

    def _predict_chunk(
        self, model: ForestModel, X: np.ndarray
    ) -> tuple[np.ndarray | None, np.ndarray | None]:
        n_rows = X.shape[0]
        hard_votes = self._wants_labels and self.voting_mode is VotingMode.UNWEIGHTED
        soft_votes = self._wants_probabilities or self.voting_mode is VotingMode.WEIGHTED

        votes = np.zeros((n_rows, model.class_count), dtype=np.int64) if hard_votes else None
        proba_sum = (
            np.zeros((n_rows, model.class_count), dtype=np.float64) if soft_votes else None
        )
        row_idx = np.arange(n_rows)

        for tree in model.trees:
            leaves = tree.apply(X)
            if votes is not None:
                votes[row_idx, tree.node_labels[leaves]] += 1
            if proba_sum is not None:
                proba_sum += tree.node_probabilities[leaves]

        labels = None
        if self._wants_labels:
            tally = votes if votes is not None else proba_sum
            labels = np.argmax(tally, axis=1).astype(np.int64)

        probabilities = None
        if self._wants_probabilities:
            probabilities = proba_sum / float(model.tree_count)
        return labels, probabilities

    def _row_chunks(self, n_rows: int) -> list[tuple[int, int]]:
        n_chunks = max(1, min(effective_n_jobs(self.n_jobs), n_rows))
        bounds = np.linspace(0, n_rows, n_chunks + 1).astype(np.int64)
        return [(int(bounds[i]), int(bounds[i + 1])) for i in range(n_chunks)]

    def infer(self, model: ForestModel, X) -> InferResult:
        if not isinstance(model, ForestModel):
            raise TypeError(f"expected a ForestModel, got {type(model).__name__}")
        X = check_features(X, expected_columns=model.feature_count)

        start = time.perf_counter()
        chunks = self._row_chunks(X.shape[0])
        if len(chunks) == 1:
            parts = [self._predict_chunk(model, X)]
        else:
            parts = Parallel(n_jobs=self.n_jobs, prefer="threads")(
                delayed(self._predict_chunk)(model, X[lo:hi]) for lo, hi in chunks
            )

        labels = None
        if self._wants_labels:
            labels = np.concatenate([part[0] for part in parts]).reshape(-1, 1)
        probabilities = None
        if self._wants_probabilities:
            probabilities = np.concatenate([part[1] for part in parts], axis=0)

        logger.info(
            "Inferred %d rows with %d trees (%s voting) in %.3fs",
            X.shape[0],
            model.tree_count,
            self.voting_mode.value,
            time.perf_counter() - start,
        )
        return InferResult(labels=labels, probabilities=probabilities)


def infer(params: ForestParams, model: ForestModel, X) -> InferResult:
    return InferenceEngine.from_params(params).infer(model, X)
