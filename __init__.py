"""
Decision Forest

Random forest classification built from bootstrap-resampled decision trees
with per-node feature sampling. Trees are grown with exact (dense) or
histogram split search on Gini impurity, and training can additionally
report out-of-bag error and variable importance.

Trained models are immutable node arenas, so they can be shared freely
between inference threads.
"""
