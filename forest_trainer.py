from __future__ import annotations

from dataclasses import dataclass
import logging
import time

import numpy as np
from joblib import Parallel, delayed

from binning import apply_bins, build_bins
from bootstrap import draw_bootstrap, tree_rng
from data_structures import DecisionTree, ForestModel
from forest_params import ForestParams, VariableImportanceMode
from oob import OOBTally
from tree_builder import TreeBuilder, TreeBuilderParams, TreeBuildMetrics
from validation import check_features, check_labels
from variable_importance import mda_importance, normalize_mdi, permutation_accuracy_drop

logger = logging.getLogger(__name__)


@dataclass
class TrainResult:
    model: ForestModel
    var_importance: np.ndarray | None = None  # (1, column_count)
    oob_err: float | None = None
    oob_err_per_observation: np.ndarray | None = None  # (row_count, 1), NaN if never OOB


@dataclass
class _TreeOutput:
    tree: DecisionTree
    bagged_count: int
    oob_rows: np.ndarray
    oob_predictions: np.ndarray | None
    mda_drops: np.ndarray | None
    build_metrics: TreeBuildMetrics


class ForestTrainer:
    """Random forest classifier trainer: bagging plus per-node feature sampling."""

    def __init__(self, params: ForestParams | None = None) -> None:
        self.params = params or ForestParams()
        self.metrics: dict = {}

    def _tree_builder_params(self, features_per_node: int) -> TreeBuilderParams:
        return TreeBuilderParams(
            features_per_node=features_per_node,
            min_observations_in_leaf_node=self.params.min_observations_in_leaf_node,
            min_observations_in_split_node=self.params.min_observations_in_split_node,
            max_tree_depth=self.params.max_tree_depth,
            min_impurity_decrease_in_split_node=self.params.min_impurity_decrease_in_split_node,
            impurity_threshold=self.params.impurity_threshold,
            split_method=self.params.split_method,
        )

    def _train_tree(
        self,
        tree_idx: int,
        X: np.ndarray,
        y: np.ndarray,
        class_count: int,
        tree_params: TreeBuilderParams,
        X_bin: np.ndarray | None,
        bin_thresholds: list[np.ndarray] | None,
    ) -> _TreeOutput:
        rng = tree_rng(self.params.random_state, tree_idx)
        sample = draw_bootstrap(
            X.shape[0],
            rng,
            fraction=self.params.observations_per_tree_fraction,
            replace=self.params.bootstrap,
        )

        builder = TreeBuilder(
            X=X,
            y=y,
            class_count=class_count,
            params=tree_params,
            rng=rng,
            X_bin=X_bin,
            bin_thresholds=bin_thresholds,
        )
        tree = builder.build_tree(sample.bagged_rows)

        oob_predictions = None
        if self.params.error_metric_mode and sample.oob_rows.size > 0:
            oob_predictions = tree.predict(X[sample.oob_rows])

        mda_drops = None
        if self.params.computes_mda:
            mda_drops = permutation_accuracy_drop(tree, X, y, sample.oob_rows, rng)

        logger.debug(
            "Tree %d: %d nodes, depth %d, %d bagged rows, %d out-of-bag rows",
            tree_idx,
            tree.node_count,
            tree.depth,
            sample.bagged_rows.size,
            sample.oob_rows.size,
        )
        return _TreeOutput(
            tree=tree,
            bagged_count=int(sample.bagged_rows.size),
            oob_rows=sample.oob_rows,
            oob_predictions=oob_predictions,
            mda_drops=mda_drops,
            build_metrics=builder.metrics,
        )

    def fit(self, X, y) -> TrainResult:
        X = check_features(X)
        y, class_count = check_labels(y, X.shape[0], self.params.class_count)
        n_samples, n_features = X.shape
        features_per_node = self.params.resolve_features_per_node(n_features)

        if n_samples < 2 * self.params.min_observations_in_leaf_node:
            logger.warning(
                "min_observations_in_leaf_node=%d leaves no room to split %d rows; "
                "every tree will be a single leaf",
                self.params.min_observations_in_leaf_node,
                n_samples,
            )

        X_bin = None
        bin_thresholds = None
        if self.params.split_method == "hist":
            bin_thresholds = build_bins(
                X, max_bins=self.params.max_bins, min_bin_size=self.params.min_bin_size
            )
            X_bin = apply_bins(X, bin_thresholds)

        tree_params = self._tree_builder_params(features_per_node)
        logger.info(
            "Training %d trees on %d rows x %d features (%d classes, %s splits, n_jobs=%d)",
            self.params.tree_count,
            n_samples,
            n_features,
            class_count,
            self.params.split_method,
            self.params.n_jobs,
        )

        start = time.perf_counter()
        outputs = Parallel(n_jobs=self.params.n_jobs, prefer="threads")(
            delayed(self._train_tree)(
                tree_idx, X, y, class_count, tree_params, X_bin, bin_thresholds
            )
            for tree_idx in range(self.params.tree_count)
        )
        train_time = time.perf_counter() - start

        # Partial results are merged in tree order, independent of scheduling.
        model = ForestModel(
            trees=tuple(output.tree for output in outputs),
            class_count=class_count,
            feature_count=n_features,
        )
        result = TrainResult(model=model)

        if self.params.variable_importance_mode is VariableImportanceMode.MDI:
            accumulated = np.zeros(n_features, dtype=np.float64)
            for output in outputs:
                accumulated += output.build_metrics.feature_importance
            result.var_importance = normalize_mdi(accumulated).reshape(1, -1)
        elif self.params.computes_mda:
            drops = np.vstack([output.mda_drops for output in outputs])
            scaled = self.params.variable_importance_mode is VariableImportanceMode.MDA_SCALED
            result.var_importance = mda_importance(drops, scaled=scaled).reshape(1, -1)

        if self.params.error_metric_mode:
            tally = OOBTally(n_samples, class_count)
            for output in outputs:
                if output.oob_predictions is not None:
                    tally.add(output.oob_rows, output.oob_predictions)
            if self.params.computes_oob_error:
                result.oob_err = tally.error(y)
            if self.params.computes_oob_error_per_observation:
                result.oob_err_per_observation = tally.error_per_observation(y).reshape(-1, 1)

        self._record_metrics(outputs, train_time)
        logger.info(
            "Trained %d trees in %.3fs (%d nodes total)",
            model.tree_count,
            train_time,
            self.metrics["total_nodes"],
        )
        return result

    def _record_metrics(self, outputs: list[_TreeOutput], train_time: float) -> None:
        self.metrics = {
            "train_time_sec": train_time,
            "total_nodes": 0,
            "total_leaves": 0,
            "max_depth": 0,
            "split_search_time_sec": 0.0,
            "candidates_evaluated": 0,
            "total_histogram_updates": 0,
            "tree_metrics": [],
        }
        for tree_idx, output in enumerate(outputs):
            tree = output.tree
            self.metrics["total_nodes"] += tree.node_count
            self.metrics["total_leaves"] += tree.leaf_count
            self.metrics["max_depth"] = max(self.metrics["max_depth"], tree.depth)
            self.metrics["split_search_time_sec"] += output.build_metrics.split_search_time_sec
            self.metrics["candidates_evaluated"] += output.build_metrics.candidates_evaluated
            self.metrics["total_histogram_updates"] += (
                output.build_metrics.total_histogram_updates
            )
            self.metrics["tree_metrics"].append(
                {
                    "tree_idx": tree_idx,
                    "node_count": tree.node_count,
                    "leaf_count": tree.leaf_count,
                    "depth": tree.depth,
                    "bagged_rows": output.bagged_count,
                    "oob_rows": int(output.oob_rows.size),
                }
            )


def train(params: ForestParams, X, y) -> TrainResult:
    return ForestTrainer(params).fit(X, y)
