# -*- coding: utf-8 -*-
"""
pctbagging.bagging
==================

Independent completion of the base trees once consolidation has stopped.
"""

from __future__ import annotations

import logging

from .c45 import C45TreeGrower
from .tree import DecisionTree

logger = logging.getLogger(__name__)


class BaggingCompleter:
    """Grow and prune each base tree from its own sample.

    Parameters
    ----------
    grower : C45TreeGrower
        Recursive C4.5 growth, collapsing and pruning.
    pruning : bool, default=True
        Apply pessimistic pruning to the base trees.
    collapse : bool, default=True
        Collapse the base trees before pruning.
    preserve_structure : bool, default=True
        Collapse and prune each subtree hanging from the consolidation
        boundary on its own, so consolidated positions are never replaced.
        When False the whole tree is collapsed and pruned from the root.
    """

    def __init__(self, grower: C45TreeGrower, *, pruning: bool = True,
                 collapse: bool = True, preserve_structure: bool = True):
        self.grower = grower
        self.pruning = bool(pruning)
        self.collapse = bool(collapse)
        self.preserve_structure = bool(preserve_structure)

    def complete(self, base_trees: list):
        """Finish every tree in ``base_trees`` in place."""
        keep = self.pruning and self.grower.subtree_raising
        for i, tree in enumerate(base_trees):
            boundary = [n.node_id for n in tree.leaves()
                        if not n.is_empty and n.data is not None]
            for nid in boundary:
                self.grower.grow(tree, nid, tree[nid].data, keep_data=keep)

            if self.preserve_structure:
                for nid in boundary:
                    self._post_process(tree, nid)
            else:
                self._post_process(tree, 0)
            tree.cleanup()
            logger.debug("Base tree %d: %d leaves, %d inner nodes", i,
                         tree.n_leaves(), tree.n_inner_nodes())

    def _post_process(self, tree: DecisionTree, node_id: int):
        if self.collapse:
            self.grower.collapse(tree, node_id)
        if self.pruning:
            self.grower.prune(tree, node_id)
