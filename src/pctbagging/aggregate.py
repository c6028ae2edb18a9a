# -*- coding: utf-8 -*-
"""
pctbagging.aggregate
====================

Combination of the base-tree predictions.
"""

from __future__ import annotations

import numpy as np


def aggregate_distributions(per_tree, numeric_class: bool = False) -> np.ndarray:
    """Combine one prediction per tree.

    Parameters
    ----------
    per_tree : array-like of shape (n_trees, n_classes) or (n_trees,)
        Class-probability vectors, or point predictions when
        ``numeric_class`` is True.
    numeric_class : bool, default=False
        Average point predictions instead of summing votes.

    Returns
    -------
    ndarray
        The summed votes normalized to 1 (the zero vector when no tree
        votes), or the mean prediction for a numeric class.
    """
    per_tree = np.asarray(per_tree, dtype=float)
    if numeric_class:
        return np.atleast_1d(per_tree.mean(axis=0))
    acc = per_tree.sum(axis=0)
    tot = acc.sum()
    if tot == 0:
        return acc
    return acc / tot


class PredictionAggregator:
    """Bagging vote over a list of :class:`~pctbagging.tree.DecisionTree`."""

    def __init__(self, trees: list, n_classes: int):
        self.trees = list(trees)
        self.n_classes = int(n_classes)

    def distribution(self, x) -> np.ndarray:
        if not self.trees:
            return np.zeros(self.n_classes)
        return aggregate_distributions([t.predict_proba(x) for t in self.trees])

    def classify(self, x) -> int:
        """Index of the most probable class; the first index wins ties."""
        return int(np.argmax(self.distribution(x)))
