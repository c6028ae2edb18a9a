# -*- coding: utf-8 -*-
"""
pctbagging.structure
====================

How much of the consolidated structure survives in the final base trees.

For every internal node of the consolidated tree the analyzer counts the
base trees that still test the same attribute (and split point) at the
corresponding position, and reports that count as a percentage.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from .tree import DecisionTree


@dataclass
class StructurePreservationStat:
    """Per-node agreement percentages and their summary statistics.

    Attributes
    ----------
    per_node : dict[int, float]
        Consolidated internal node id -> percentage (0-100) of base trees
        sharing its split.
    mean, minimum, maximum, median, std : float
        Summary over ``per_node``; ``nan`` when it is empty.  ``std`` is the
        sample standard deviation (0 for a single node).
    """

    per_node: dict = field(default_factory=dict)
    mean: float = float("nan")
    minimum: float = float("nan")
    maximum: float = float("nan")
    median: float = float("nan")
    std: float = float("nan")

    @classmethod
    def from_percentages(cls, per_node: dict) -> "StructurePreservationStat":
        if not per_node:
            return cls(per_node={})
        v = np.array(list(per_node.values()), dtype=float)
        std = float(np.std(v, ddof=1)) if v.size > 1 else 0.0
        return cls(per_node=dict(per_node), mean=float(v.mean()),
                   minimum=float(v.min()), maximum=float(v.max()),
                   median=float(np.median(v)), std=std)

    @classmethod
    def preserved(cls, consolidated: DecisionTree) -> "StructurePreservationStat":
        per_node = {n.node_id: 100.0 for n in consolidated.iter_nodes() if not n.is_leaf}
        return cls(per_node=per_node, mean=100.0, minimum=100.0, maximum=100.0,
                   median=100.0, std=0.0)


class StructurePreservationAnalyzer:
    """Compare the consolidated tree with each final base tree.

    The two trees are walked together from the roots.  When both nodes test
    the same split, the consolidated node gets one agreement and the walk
    continues pairwise through the children.  When they differ, the base
    tree is assumed to have raised a subtree, and the walk descends the
    consolidated tree into its heaviest branch while staying on the same
    base node.  This fallback is a heuristic: after several raises it can
    attribute a base node to the wrong consolidated position.

    Parameters
    ----------
    preserve_structure : bool, default=True
        When True the base trees were pruned without touching consolidated
        positions, so every split is preserved by construction and no walk
        is performed.
    """

    def __init__(self, preserve_structure: bool = True):
        self.preserve_structure = bool(preserve_structure)

    def analyze(self, consolidated: DecisionTree, base_trees: list) -> StructurePreservationStat:
        if self.preserve_structure:
            return StructurePreservationStat.preserved(consolidated)
        counts = {n.node_id: 0 for n in consolidated.iter_nodes() if not n.is_leaf}
        for base in base_trees:
            self._walk(consolidated, 0, base, 0, counts)
        n = len(base_trees)
        per_node = {nid: c * 100.0 / n for nid, c in counts.items()} if n else {}
        return StructurePreservationStat.from_percentages(per_node)

    def _walk(self, consolidated, ct_id, base, base_id, counts):
        ct_node = consolidated[ct_id]
        base_node = base[base_id]
        if ct_node.is_leaf or base_node.is_leaf:
            return
        if ct_node.split.same_test(base_node.split):
            counts[ct_id] += 1
            for c, b in zip(ct_node.children, base_node.children):
                self._walk(consolidated, c, base, b, counts)
        else:
            heaviest = ct_node.children[ct_node.split.largest_branch]
            self._walk(consolidated, heaviest, base, base_id, counts)
