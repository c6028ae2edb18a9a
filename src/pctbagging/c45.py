# -*- coding: utf-8 -*-
"""
pctbagging.c45
==============

Plain C4.5 growth and post-pruning on :class:`~pctbagging.tree.DecisionTree`
arenas.

``grow`` develops a node recursively from its training slice, ``collapse``
removes subtrees that do not reduce the training errors of their root, and
``prune`` applies pessimistic error pruning (with optional subtree raising)
using the C4.5 upper confidence bound of the error rate.
"""

from __future__ import annotations

import math

import numpy as np

from .dataset import Dataset
from .split import SplitEvaluator
from .tree import DecisionTree

# confidence levels and their normal deviates, used to interpolate ``cf``
_CONFIDENCE = [0, 0.001, 0.005, 0.01, 0.05, 0.10, 0.20, 0.40, 1.00]
_DEVIATION = [4.0, 3.09, 2.58, 2.33, 1.65, 1.28, 0.84, 0.25, 0.00]

_COLLAPSE_TOLERANCE = 1e-3
_PRUNE_TOLERANCE = 0.1


def _squared_deviate(cf: float) -> float:
    i = 0
    while cf > _CONFIDENCE[i]:
        i += 1
    z = _DEVIATION[i - 1] + (_DEVIATION[i] - _DEVIATION[i - 1]) * (
        cf - _CONFIDENCE[i - 1]) / (_CONFIDENCE[i] - _CONFIDENCE[i - 1])
    return z * z


def estimate_error(total: float, errors: float, cf: float = 0.25) -> float:
    """Extra errors predicted by the C4.5 upper confidence bound.

    Parameters
    ----------
    total : float
        Training weight at the node.
    errors : float
        Training weight misclassified by the node's majority class.
    cf : float, default=0.25
        Confidence factor in (0, 1); smaller values prune more.

    Returns
    -------
    float
        Additional errors to add to ``errors`` for a pessimistic estimate.
    """
    if total == 0:
        return 0.0
    if errors < 1e-6:
        return total * (1 - math.exp(math.log(cf) / total))
    if errors < 0.9999:
        v = total * (1 - math.exp(math.log(cf) / total))
        return v + errors * (estimate_error(total, 1.0, cf) - v)
    if errors + 0.5 >= total:
        return 0.67 * (total - errors)
    coeff = _squared_deviate(cf)
    pr = (errors + 0.5 + coeff / 2 + math.sqrt(coeff * ((errors + 0.5)
          * (1 - (errors + 0.5) / total) + coeff / 4))) / (total + coeff)
    return total * pr - errors


class C45TreeGrower:
    """Recursive C4.5 growth and post-pruning.

    Parameters
    ----------
    evaluator : SplitEvaluator
        Proposes the split of each node.
    cf : float, default=0.25
        Confidence factor of the pessimistic error estimate.
    subtree_raising : bool, default=True
        Consider replacing a node by its largest branch while pruning.

    Subtree raising redistributes the node's training slice through the
    raised branch, so it only happens on nodes that still keep their data
    (see ``keep_data`` in :meth:`grow`).
    """

    def __init__(self, evaluator: SplitEvaluator, *, cf: float = 0.25,
                 subtree_raising: bool = True):
        self.evaluator = evaluator
        self.n_classes = evaluator.n_classes
        self.cf = float(cf)
        self.subtree_raising = bool(subtree_raising)

    # ------------------------------------------------------------------
    # Growth
    # ------------------------------------------------------------------
    def grow(self, tree: DecisionTree, node_id: int, data: Dataset, *,
             keep_data: bool = False):
        """Develop ``node_id`` (already allocated in ``tree``) from ``data``."""
        node = tree[node_id]
        node.initialize(data, self.n_classes, keep_data)
        split = self.evaluator.evaluate(data)
        if split is None:
            node.make_leaf()
            return
        node.is_leaf = False
        node.split = split
        node.children = []
        for part in split.partition(data):
            child = tree.add_node()
            node.children.append(child.node_id)
            self.grow(tree, child.node_id, part, keep_data=keep_data)

    # ------------------------------------------------------------------
    # Collapsing
    # ------------------------------------------------------------------
    def training_errors(self, tree: DecisionTree, node_id: int) -> float:
        node = tree[node_id]
        if node.is_leaf:
            return node.errors
        return sum(self.training_errors(tree, c) for c in node.children)

    def collapse(self, tree: DecisionTree, node_id: int = 0):
        """Turn into leaves the subtrees that do not lower training errors."""
        node = tree[node_id]
        if node.is_leaf:
            return
        if self.training_errors(tree, node_id) >= node.errors - _COLLAPSE_TOLERANCE:
            node.make_leaf()
            return
        for child in node.children:
            self.collapse(tree, child)

    # ------------------------------------------------------------------
    # Pruning
    # ------------------------------------------------------------------
    def _errors_for_distribution(self, dist: np.ndarray) -> float:
        total = float(dist.sum())
        if total <= 0:
            return 0.0
        errors = total - float(dist.max())
        return errors + estimate_error(total, errors, self.cf)

    def estimated_errors(self, tree: DecisionTree, node_id: int) -> float:
        node = tree[node_id]
        if node.is_leaf:
            return self._errors_for_distribution(node.class_distribution)
        return sum(self.estimated_errors(tree, c) for c in node.children)

    def _errors_for_branch(self, tree: DecisionTree, node_id: int, data: Dataset) -> float:
        # estimated errors of the subtree if it received ``data`` instead
        node = tree[node_id]
        if node.is_leaf:
            return self._errors_for_distribution(data.class_distribution(self.n_classes))
        parts = node.split.refit(data).partition(data)
        return sum(self._errors_for_branch(tree, c, part)
                   for c, part in zip(node.children, parts))

    def redistribute(self, tree: DecisionTree, node_id: int, data: Dataset):
        """Refit the subtree at ``node_id`` to a new training slice."""
        node = tree[node_id]
        node.initialize(data, self.n_classes, keep_data=True)
        if node.is_leaf:
            return
        node.split = node.split.refit(data)
        for child, part in zip(node.children, node.split.partition(data)):
            self.redistribute(tree, child, part)

    def prune(self, tree: DecisionTree, node_id: int = 0):
        """Pessimistic pruning of the subtree rooted at ``node_id``.

        A node becomes a leaf when its estimated errors as a leaf do not
        exceed those of its subtree nor those of its largest branch.
        Otherwise, if the largest branch alone is no worse than the whole
        subtree, that branch replaces the node and the node's training slice
        is sent through it before pruning again.
        """
        node = tree[node_id]
        if node.is_leaf:
            return
        for child in node.children:
            self.prune(tree, child)

        largest = node.split.largest_branch
        if self.subtree_raising and node.data is not None:
            errors_largest = self._errors_for_branch(tree, node.children[largest], node.data)
        else:
            errors_largest = math.inf
        errors_leaf = self._errors_for_distribution(node.class_distribution)
        errors_tree = self.estimated_errors(tree, node_id)

        if (errors_leaf <= errors_tree + _PRUNE_TOLERANCE
                and errors_leaf <= errors_largest + _PRUNE_TOLERANCE):
            node.make_leaf()
            return
        if errors_largest <= errors_tree + _PRUNE_TOLERANCE:
            raised = tree[node.children[largest]]
            node.is_leaf = raised.is_leaf
            node.split = raised.split
            node.children = list(raised.children)
            self.redistribute(tree, node_id, node.data)
            self.prune(tree, node_id)
