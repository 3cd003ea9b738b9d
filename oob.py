from __future__ import annotations

import logging

import numpy as np

logger = logging.getLogger(__name__)


class OOBTally:
    """Per-row out-of-bag vote counts, filled tree by tree.

    Each row collects one hard vote from every tree it was out-of-bag for.
    Tallies built independently (one per worker) merge by summation.
    """

    def __init__(self, row_count: int, class_count: int) -> None:
        self.votes = np.zeros((row_count, class_count), dtype=np.int64)

    def add(self, oob_rows: np.ndarray, predicted_labels: np.ndarray) -> None:
        np.add.at(self.votes, (np.asarray(oob_rows), np.asarray(predicted_labels)), 1)

    def merge(self, other: OOBTally) -> OOBTally:
        if other.votes.shape != self.votes.shape:
            raise ValueError("cannot merge out-of-bag tallies of different shapes")
        self.votes += other.votes
        return self

    @property
    def covered(self) -> np.ndarray:
        """Mask of rows that were out-of-bag for at least one tree."""
        return self.votes.sum(axis=1) > 0

    def predicted_labels(self) -> np.ndarray:
        """Majority vote per row (lowest class on ties); -1 for uncovered rows."""
        labels = np.argmax(self.votes, axis=1).astype(np.int64)
        labels[~self.covered] = -1
        return labels

    def error_per_observation(self, y: np.ndarray) -> np.ndarray:
        """0.0/1.0 misclassification per row, NaN where the row was never out-of-bag."""
        covered = self.covered
        errors = np.full(self.votes.shape[0], np.nan, dtype=np.float64)
        predicted = self.predicted_labels()
        errors[covered] = (predicted[covered] != np.asarray(y)[covered]).astype(np.float64)
        return errors

    def error(self, y: np.ndarray) -> float:
        """Mean of the defined per-row errors; NaN if no row was ever out-of-bag."""
        per_row = self.error_per_observation(y)
        defined = ~np.isnan(per_row)
        if not np.any(defined):
            logger.warning("No row was out-of-bag for any tree; out-of-bag error is undefined")
            return float("nan")
        return float(np.mean(per_row[defined]))
