import numpy as np
import pytest

from binning import apply_bins, build_bins
from bootstrap import draw_bootstrap, tree_rng


def test_bootstrap_rows_and_oob_partition_the_table():
    sample = draw_bootstrap(50, tree_rng(1, 0))

    assert sample.bagged_rows.size == 50
    assert sample.bagged_rows.min() >= 0
    assert sample.bagged_rows.max() < 50
    assert np.intersect1d(sample.bagged_rows, sample.oob_rows).size == 0
    assert np.union1d(sample.bagged_rows, sample.oob_rows).size == 50


def test_oob_fraction_is_close_to_one_over_e():
    fractions = [draw_bootstrap(5000, tree_rng(3, idx)).oob_fraction for idx in range(20)]
    assert abs(np.mean(fractions) - np.exp(-1.0)) < 0.02


def test_tree_streams_are_reproducible_and_distinct():
    first = draw_bootstrap(100, tree_rng(42, 7)).bagged_rows
    again = draw_bootstrap(100, tree_rng(42, 7)).bagged_rows
    other = draw_bootstrap(100, tree_rng(42, 8)).bagged_rows

    assert np.array_equal(first, again)
    assert not np.array_equal(first, other)


def test_sample_fraction_and_no_replacement():
    partial = draw_bootstrap(100, tree_rng(0, 0), fraction=0.3)
    assert partial.bagged_rows.size == 30

    full = draw_bootstrap(10, tree_rng(0, 0), replace=False)
    assert np.array_equal(full.bagged_rows, np.arange(10))
    assert full.oob_rows.size == 0
    assert full.oob_fraction == 0.0


def test_bootstrap_single_row():
    sample = draw_bootstrap(1, tree_rng(0, 0))
    assert np.array_equal(sample.bagged_rows, [0])
    assert sample.oob_rows.size == 0


def test_bins_route_like_raw_thresholds():
    rng = np.random.default_rng(9)
    X = np.column_stack([rng.normal(size=300), rng.integers(0, 4, size=300).astype(float)])

    thresholds = build_bins(X, max_bins=16, min_bin_size=5)
    X_bin = apply_bins(X, thresholds)

    assert thresholds[0].size <= 15
    assert np.all(np.diff(thresholds[0]) > 0)
    # Few distinct values: exact midpoints.
    assert np.allclose(thresholds[1], [0.5, 1.5, 2.5])

    for feature, feature_thresholds in enumerate(thresholds):
        for j, threshold in enumerate(feature_thresholds):
            assert np.array_equal(X_bin[:, feature] <= j, X[:, feature] <= threshold)


def test_small_tables_get_no_bins():
    X = np.arange(12.0).reshape(6, 2)
    thresholds = build_bins(X, max_bins=256, min_bin_size=5)

    assert all(t.size == 0 for t in thresholds)
    assert np.all(apply_bins(X, thresholds) == 0)


def test_bins_reject_bad_arguments():
    with pytest.raises(ValueError):
        build_bins(np.zeros((4, 1)), max_bins=1)
    with pytest.raises(ValueError):
        build_bins(np.zeros(4))
    with pytest.raises(ValueError):
        apply_bins(np.zeros((4, 2)), [np.array([0.5])])
