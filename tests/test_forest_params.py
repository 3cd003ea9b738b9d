import numpy as np
import pytest

from errors import ConfigurationError, ForestError
from forest_params import (
    ErrorMetricMode,
    ForestParams,
    InferMode,
    VariableImportanceMode,
    VotingMode,
)
from oob import OOBTally
from variable_importance import mda_importance, normalize_mdi


def test_defaults():
    params = ForestParams()

    assert params.tree_count == 100
    assert params.min_observations_in_leaf_node == 1
    assert params.variable_importance_mode is VariableImportanceMode.NONE
    assert params.error_metric_mode == ErrorMetricMode.NONE
    assert params.infer_mode == InferMode.CLASS_LABELS
    assert params.voting_mode is VotingMode.WEIGHTED
    assert params.resolve_features_per_node(2) == 1
    assert params.resolve_features_per_node(10) == 3


def test_string_and_name_spellings_are_accepted():
    params = ForestParams(
        variable_importance_mode="MDI",
        voting_mode="unweighted",
        error_metric_mode=["out_of_bag_error", ErrorMetricMode.OUT_OF_BAG_ERROR_PER_OBSERVATION],
        infer_mode="class_probabilities",
    )

    assert params.variable_importance_mode is VariableImportanceMode.MDI
    assert params.voting_mode is VotingMode.UNWEIGHTED
    assert params.computes_oob_error
    assert params.computes_oob_error_per_observation
    assert params.infer_mode == InferMode.CLASS_PROBABILITIES


@pytest.mark.parametrize(
    "kwargs",
    [
        {"tree_count": 0},
        {"features_per_node": 0},
        {"min_observations_in_leaf_node": 0},
        {"min_observations_in_split_node": 1},
        {"max_tree_depth": -1},
        {"observations_per_tree_fraction": 0.0},
        {"observations_per_tree_fraction": 1.5},
        {"split_method": "exact"},
        {"max_bins": 1},
        {"class_count": 0},
        {"infer_mode": InferMode.NONE},
        {"voting_mode": "soft"},
        {"error_metric_mode": ["oob"]},
        {"n_jobs": 0},
        {"bootstrap": False, "error_metric_mode": "out_of_bag_error"},
        {"bootstrap": False, "variable_importance_mode": "mda_raw"},
    ],
)
def test_invalid_configuration_is_rejected(kwargs):
    with pytest.raises(ConfigurationError):
        ForestParams(**kwargs)


def test_errors_are_value_errors():
    assert issubclass(ConfigurationError, ForestError)
    assert issubclass(ForestError, ValueError)


def test_oob_tally_majority_and_undefined_rows():
    tally = OOBTally(row_count=4, class_count=3)
    tally.add(np.array([0, 1, 1]), np.array([2, 0, 1]))
    other = OOBTally(row_count=4, class_count=3)
    other.add(np.array([0, 2]), np.array([2, 1]))
    tally.merge(other)

    y = np.array([2, 1, 0, 0])
    assert np.array_equal(tally.predicted_labels(), [2, 0, 1, -1])
    per_row = tally.error_per_observation(y)
    assert np.array_equal(per_row[:3], [0.0, 1.0, 1.0])
    assert np.isnan(per_row[3])
    assert np.isclose(tally.error(y), 2.0 / 3.0)


def test_oob_error_without_coverage_is_nan(caplog):
    tally = OOBTally(row_count=2, class_count=2)
    assert np.isnan(tally.error(np.array([0, 1])))
    assert "undefined" in caplog.text


def test_importance_helpers():
    assert np.array_equal(normalize_mdi(np.zeros(3)), np.zeros(3))
    assert np.allclose(normalize_mdi(np.array([1.0, 3.0, 0.0])), [0.25, 0.75, 0.0])

    drops = np.array([[0.2, 0.0], [0.4, 0.0], [np.nan, np.nan]])
    assert np.allclose(mda_importance(drops), [0.3, 0.0])
    scaled = mda_importance(drops, scaled=True)
    assert np.isclose(scaled[0], 0.3 / (0.1 / np.sqrt(2.0)))
    assert scaled[1] == 0.0
    assert np.array_equal(mda_importance(np.full((2, 2), np.nan)), np.zeros(2))
