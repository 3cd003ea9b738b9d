from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class BootstrapSample:
    row_count: int
    bagged_rows: np.ndarray
    oob_rows: np.ndarray

    @property
    def oob_fraction(self) -> float:
        return float(self.oob_rows.size) / self.row_count


def tree_rng(random_state: int, tree_idx: int) -> np.random.Generator:
    """Independent generator for one tree, reproducible from the base seed alone."""
    seed_seq = np.random.SeedSequence(random_state, spawn_key=(tree_idx,))
    return np.random.default_rng(seed_seq)


def draw_bootstrap(
    row_count: int,
    rng: np.random.Generator,
    fraction: float = 1.0,
    replace: bool = True,
) -> BootstrapSample:
    """Draw the bagged rows for one tree and the rows it never saw.

    With ``replace=False`` every row is used exactly once and nothing is
    out-of-bag.
    """
    if row_count <= 0:
        raise ValueError("row_count must be positive")

    if not replace:
        rows = np.arange(row_count, dtype=np.int64)
        return BootstrapSample(
            row_count, bagged_rows=rows, oob_rows=np.empty(0, dtype=np.int64)
        )

    sample_size = max(1, int(round(fraction * row_count)))
    bagged = rng.integers(0, row_count, size=sample_size, dtype=np.int64)

    in_bag = np.zeros(row_count, dtype=bool)
    in_bag[bagged] = True
    oob = np.flatnonzero(~in_bag).astype(np.int64)
    return BootstrapSample(row_count, bagged_rows=bagged, oob_rows=oob)
