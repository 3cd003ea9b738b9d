from __future__ import annotations

import enum
from collections.abc import Iterable
from dataclasses import dataclass

from errors import ConfigurationError


class VariableImportanceMode(enum.Enum):
    NONE = "none"
    MDI = "mdi"
    MDA_RAW = "mda_raw"
    MDA_SCALED = "mda_scaled"


class VotingMode(enum.Enum):
    WEIGHTED = "weighted"
    UNWEIGHTED = "unweighted"


class ErrorMetricMode(enum.Flag):
    NONE = 0
    OUT_OF_BAG_ERROR = enum.auto()
    OUT_OF_BAG_ERROR_PER_OBSERVATION = enum.auto()


class InferMode(enum.Flag):
    NONE = 0
    CLASS_LABELS = enum.auto()
    CLASS_PROBABILITIES = enum.auto()


def _coerce_enum(value, enum_cls: type[enum.Enum], name: str) -> enum.Enum:
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        try:
            return enum_cls(value.lower())
        except ValueError:
            pass
    choices = ", ".join(member.value for member in enum_cls)
    raise ConfigurationError(f"{name} must be one of: {choices} (got {value!r})")


def _coerce_flag(value, flag_cls: type[enum.Flag], name: str) -> enum.Flag:
    """Accept a flag value, a member name, or an iterable of member names."""
    if isinstance(value, flag_cls):
        return value
    if isinstance(value, str):
        value = [value]
    if isinstance(value, Iterable):
        result = flag_cls(0)
        for item in value:
            if isinstance(item, flag_cls):
                result |= item
                continue
            member = flag_cls.__members__.get(str(item).upper())
            if member is None:
                choices = ", ".join(flag_cls.__members__)
                raise ConfigurationError(
                    f"{name} entries must be one of: {choices} (got {item!r})"
                )
            result |= member
        return result
    raise ConfigurationError(f"{name} must be a {flag_cls.__name__} (got {value!r})")


@dataclass
class ForestParams:
    tree_count: int = 100
    features_per_node: int | None = None  # None: floor(sqrt(column_count))
    min_observations_in_leaf_node: int = 1
    min_observations_in_split_node: int = 2
    max_tree_depth: int = 0  # 0: unlimited
    min_impurity_decrease_in_split_node: float = 0.0
    impurity_threshold: float = 0.0

    observations_per_tree_fraction: float = 1.0
    bootstrap: bool = True

    split_method: str = "dense"  # one of: dense, hist
    max_bins: int = 256
    min_bin_size: int = 5

    class_count: int | None = None  # None: inferred from labels
    variable_importance_mode: VariableImportanceMode = VariableImportanceMode.NONE
    error_metric_mode: ErrorMetricMode = ErrorMetricMode.NONE
    infer_mode: InferMode = InferMode.CLASS_LABELS
    voting_mode: VotingMode = VotingMode.WEIGHTED

    n_jobs: int = 1
    random_state: int = 777

    def __post_init__(self) -> None:
        self.variable_importance_mode = _coerce_enum(
            self.variable_importance_mode, VariableImportanceMode, "variable_importance_mode"
        )
        self.voting_mode = _coerce_enum(self.voting_mode, VotingMode, "voting_mode")
        self.error_metric_mode = _coerce_flag(
            self.error_metric_mode, ErrorMetricMode, "error_metric_mode"
        )
        self.infer_mode = _coerce_flag(self.infer_mode, InferMode, "infer_mode")

        if self.tree_count <= 0:
            raise ConfigurationError(f"tree_count must be positive (got {self.tree_count})")
        if self.features_per_node is not None and self.features_per_node <= 0:
            raise ConfigurationError(
                f"features_per_node must be positive (got {self.features_per_node})"
            )
        if self.min_observations_in_leaf_node <= 0:
            raise ConfigurationError(
                "min_observations_in_leaf_node must be positive "
                f"(got {self.min_observations_in_leaf_node})"
            )
        if self.min_observations_in_split_node < 2:
            raise ConfigurationError(
                "min_observations_in_split_node must be at least 2 "
                f"(got {self.min_observations_in_split_node})"
            )
        if self.max_tree_depth < 0:
            raise ConfigurationError(
                f"max_tree_depth must be >= 0 (got {self.max_tree_depth})"
            )
        if self.min_impurity_decrease_in_split_node < 0.0:
            raise ConfigurationError("min_impurity_decrease_in_split_node must be >= 0")
        if self.impurity_threshold < 0.0:
            raise ConfigurationError("impurity_threshold must be >= 0")
        if not (0.0 < self.observations_per_tree_fraction <= 1.0):
            raise ConfigurationError(
                "observations_per_tree_fraction must be in (0, 1] "
                f"(got {self.observations_per_tree_fraction})"
            )
        if self.split_method not in {"dense", "hist"}:
            raise ConfigurationError("split_method must be one of: dense, hist")
        if self.max_bins < 2:
            raise ConfigurationError(f"max_bins must be at least 2 (got {self.max_bins})")
        if self.min_bin_size <= 0:
            raise ConfigurationError(f"min_bin_size must be positive (got {self.min_bin_size})")
        if self.class_count is not None and self.class_count <= 0:
            raise ConfigurationError(f"class_count must be positive (got {self.class_count})")
        if not self.infer_mode:
            raise ConfigurationError(
                "infer_mode must request class labels, class probabilities, or both"
            )
        if self.n_jobs == 0:
            raise ConfigurationError("n_jobs must be non-zero")

        if not self.bootstrap:
            if self.error_metric_mode:
                raise ConfigurationError("out-of-bag error metrics require bootstrap=True")
            if self.variable_importance_mode in {
                VariableImportanceMode.MDA_RAW,
                VariableImportanceMode.MDA_SCALED,
            }:
                raise ConfigurationError("MDA variable importance requires bootstrap=True")

    @property
    def computes_oob_error(self) -> bool:
        return bool(self.error_metric_mode & ErrorMetricMode.OUT_OF_BAG_ERROR)

    @property
    def computes_oob_error_per_observation(self) -> bool:
        return bool(self.error_metric_mode & ErrorMetricMode.OUT_OF_BAG_ERROR_PER_OBSERVATION)

    @property
    def computes_mda(self) -> bool:
        return self.variable_importance_mode in {
            VariableImportanceMode.MDA_RAW,
            VariableImportanceMode.MDA_SCALED,
        }

    def resolve_features_per_node(self, column_count: int) -> int:
        if self.features_per_node is None:
            return max(1, int(column_count ** 0.5))
        if self.features_per_node > column_count:
            raise ConfigurationError(
                f"features_per_node={self.features_per_node} exceeds "
                f"column_count={column_count}"
            )
        return self.features_per_node
