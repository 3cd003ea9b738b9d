"""
Data structures for trained decision forests.

Trees are stored as flat node arenas addressed by integer index (the root is
node 0), and a model is an ordered, immutable collection of such trees.
"""
from data_structures.tree import (
    DecisionTree,
    ForestModel,
    InternalNode,
    LeafNode,
    TreeNode,
)

__all__ = ["DecisionTree", "ForestModel", "InternalNode", "LeafNode", "TreeNode"]
