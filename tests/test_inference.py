import numpy as np
import pytest

from data_structures import DecisionTree, ForestModel, InternalNode, LeafNode
from errors import ConfigurationError, DataError
from forest_params import ForestParams, InferMode, VotingMode
from forest_trainer import train
from inference import InferenceEngine, infer


def _stump(threshold, left_counts, right_counts):
    return DecisionTree(
        [
            InternalNode(feature=0, threshold=threshold, left=1, right=2),
            LeafNode.from_counts(np.array(left_counts, dtype=np.float64)),
            LeafNode.from_counts(np.array(right_counts, dtype=np.float64)),
        ],
        class_count=2,
    )


def _leaf_tree(counts):
    return DecisionTree([LeafNode.from_counts(np.array(counts, dtype=np.float64))], class_count=2)


def _voting_model():
    # Two lukewarm votes for class 0 against one confident vote for class 1.
    return ForestModel(
        trees=(_leaf_tree([3, 2]), _leaf_tree([3, 2]), _leaf_tree([0, 5])),
        class_count=2,
        feature_count=1,
    )


def test_unweighted_voting_counts_hard_votes():
    engine = InferenceEngine(
        infer_mode=InferMode.CLASS_LABELS | InferMode.CLASS_PROBABILITIES,
        voting_mode=VotingMode.UNWEIGHTED,
    )
    result = engine.infer(_voting_model(), np.array([[0.0], [1.0]]))

    assert np.array_equal(result.labels, [[0], [0]])
    assert np.allclose(result.probabilities, [[0.4, 0.6], [0.4, 0.6]])


def test_weighted_voting_uses_leaf_distributions():
    engine = InferenceEngine(
        infer_mode=InferMode.CLASS_LABELS | InferMode.CLASS_PROBABILITIES,
        voting_mode=VotingMode.WEIGHTED,
    )
    result = engine.infer(_voting_model(), np.array([[0.0]]))

    assert np.array_equal(result.labels, [[1]])
    assert np.allclose(result.probabilities, [[0.4, 0.6]])


def test_rows_follow_less_or_equal_to_the_left():
    model = ForestModel(trees=(_stump(0.5, [1, 0], [0, 1]),), class_count=2, feature_count=1)
    engine = InferenceEngine(infer_mode=InferMode.CLASS_LABELS)

    result = engine.infer(model, np.array([[0.0], [0.5], [0.50001], [7.0]]))
    assert np.array_equal(result.labels[:, 0], [0, 0, 1, 1])


def test_voting_ties_pick_lowest_class():
    model = ForestModel(
        trees=(_leaf_tree([1, 0]), _leaf_tree([0, 1])),
        class_count=2,
        feature_count=1,
    )
    for voting_mode in VotingMode:
        engine = InferenceEngine(voting_mode=voting_mode)
        assert engine.infer(model, np.array([[3.0]])).labels[0, 0] == 0


def test_only_requested_tables_are_produced():
    model = _voting_model()
    X = np.zeros((4, 1))

    labels_only = InferenceEngine(infer_mode=InferMode.CLASS_LABELS).infer(model, X)
    assert labels_only.labels.shape == (4, 1)
    assert labels_only.probabilities is None

    proba_only = InferenceEngine(infer_mode=InferMode.CLASS_PROBABILITIES).infer(model, X)
    assert proba_only.labels is None
    assert proba_only.probabilities.shape == (4, 2)


def test_requesting_no_output_is_a_configuration_error():
    with pytest.raises(ConfigurationError):
        InferenceEngine(infer_mode=InferMode.NONE)
    with pytest.raises(ConfigurationError):
        ForestParams(infer_mode=[])


def test_inference_rejects_wrong_inputs():
    engine = InferenceEngine()
    with pytest.raises(DataError):
        engine.infer(_voting_model(), np.zeros((3, 2)))
    with pytest.raises(DataError):
        engine.infer(_voting_model(), np.zeros((0, 1)))
    with pytest.raises(TypeError):
        engine.infer(object(), np.zeros((3, 1)))


def test_inference_is_idempotent_and_chunking_invariant():
    rng = np.random.default_rng(21)
    X = rng.normal(size=(150, 3))
    y = (X[:, 0] + X[:, 2] > 0).astype(np.int64)
    params = ForestParams(
        tree_count=8,
        infer_mode=["class_labels", "class_probabilities"],
        voting_mode="unweighted",
    )
    model = train(params, X, y).model
    X_test = rng.normal(size=(97, 3))

    first = infer(params, model, X_test)
    second = infer(params, model, X_test)
    threaded = InferenceEngine(
        infer_mode=params.infer_mode, voting_mode=params.voting_mode, n_jobs=4
    ).infer(model, X_test)

    for other in (second, threaded):
        assert np.array_equal(first.labels, other.labels)
        assert np.array_equal(first.probabilities, other.probabilities)
    assert np.allclose(first.probabilities.sum(axis=1), 1.0)
