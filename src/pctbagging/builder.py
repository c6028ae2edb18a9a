# -*- coding: utf-8 -*-
"""
pctbagging.builder
==================

Iterative construction of the partially consolidated tree.

:class:`PartialTreeBuilder` grows the consolidated tree and one skeleton per
sample in lock-step.  Every position popped from the
:class:`~pctbagging.frontier.ExpansionFrontier` is decided once, from the
consolidated slice and the sample slices reaching it, and the decision is
applied to all the trees.  Expansion stops at the consolidation budget; the
base-tree leaves left at that boundary keep their sample slice so that
:class:`~pctbagging.bagging.BaggingCompleter` can grow them on.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from time import perf_counter

from .c45 import C45TreeGrower
from .config import BudgetMode, PCTBConfig
from .dataset import Dataset
from .frontier import (ExpansionFrontier, FrontierEntry, PriorityCriteria,
                       SearchAlgorithm)
from .split import SplitEvaluator, SplitModel
from .tree import DecisionTree

logger = logging.getLogger(__name__)


@dataclass
class TrainingEvent:
    """Progress notification passed to the ``callback`` of a fit.

    ``phase`` is one of ``"whole_ct"``, ``"partial_ct"`` and ``"bagging"``;
    ``elapsed`` is in seconds.
    """

    phase: str
    elapsed: float
    detail: dict = field(default_factory=dict)


@dataclass
class BuildResult:
    consolidated: DecisionTree
    base_trees: list
    budget: int
    whole_count: int | None
    elapsed_whole: float
    elapsed_partial: float


class PartialTreeBuilder:
    """Grow the consolidated tree and the base-tree skeletons.

    Parameters
    ----------
    config : PCTBConfig
        Options of the fit; assumed valid.
    evaluator : SplitEvaluator
        Consolidated and whole-data split selection.
    grower : C45TreeGrower
        Collapsing and pruning of the consolidated tree.
    callback : callable, optional
        Called with a :class:`TrainingEvent` at the end of each phase.
    """

    def __init__(self, config: PCTBConfig, evaluator: SplitEvaluator,
                 grower: C45TreeGrower, callback=None):
        self.config = config
        self.evaluator = evaluator
        self.grower = grower
        self.n_classes = evaluator.n_classes
        self.callback = callback

    def _emit(self, phase: str, elapsed: float, **detail):
        if self.callback is not None:
            self.callback(TrainingEvent(phase, elapsed, detail))

    # ------------------------------------------------------------------
    # Budget
    # ------------------------------------------------------------------
    def resolve_budget(self, data: Dataset, samples: list):
        """Return ``(budget, whole_count, elapsed)``.

        In percentage mode the fully grown consolidated tree is built first
        (collapsed and pruned like the final one) and the budget is the
        rounded percentage of its inner nodes, or of its levels for
        ``LEVEL_BY_LEVEL``.
        """
        cfg = self.config
        if cfg.budget_mode is BudgetMode.VALUE:
            return int(cfg.consolidation), None, 0.0

        t0 = perf_counter()
        whole, _ = self.grow_partial(data, samples, math.inf,
                                     PriorityCriteria.PREORDER,
                                     with_base_trees=False,
                                     keep_ct_data=cfg.prune_ct)
        self._post_process(whole)
        if cfg.priority_criteria.counts_levels:
            count = whole.n_levels()
        else:
            count = whole.n_inner_nodes()
        budget = int(count * cfg.consolidation / 100.0 + 0.5)
        elapsed = perf_counter() - t0
        logger.info("Whole consolidated tree: %d %s, budget %d (%.3fs)", count,
                    "levels" if cfg.priority_criteria.counts_levels else "inner nodes",
                    budget, elapsed)
        self._emit("whole_ct", elapsed, count=count, budget=budget)
        return budget, count, elapsed

    def _budget_exhausted(self, criteria: PriorityCriteria, depth: int,
                          inner_nodes: int, budget) -> bool:
        if criteria.counts_levels:
            return depth >= budget
        return inner_nodes >= budget

    def _post_process(self, tree: DecisionTree):
        if self.config.collapse_ct:
            self.grower.collapse(tree)
        if self.config.prune_ct:
            self.grower.prune(tree)
        tree.cleanup()

    # ------------------------------------------------------------------
    # Ordering keys
    # ------------------------------------------------------------------
    def _score(self, criteria: PriorityCriteria, split: SplitModel, branch: int,
               child_data: Dataset, child_samples: list):
        if not criteria.is_scored:
            return None
        size = float(split.branch_weights[branch])
        if not criteria.uses_gain_ratio:
            return size
        if criteria.uses_samples:
            candidate = self.evaluator.evaluate_consolidated(child_data, child_samples)
        else:
            candidate = self.evaluator.evaluate(child_data)
        if candidate is None:
            return -math.inf
        key = candidate.gain_ratio
        if criteria.scales_by_size:
            key *= size
        return key

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------
    def grow_partial(self, data: Dataset, samples: list, budget,
                     criteria: PriorityCriteria,
                     search: SearchAlgorithm = SearchAlgorithm.BEST_FIRST, *,
                     with_base_trees: bool = True,
                     keep_ct_data: bool = False,
                     keep_base_data: bool = False):
        """Grow the consolidated tree up to ``budget``.

        Returns ``(consolidated, base_trees)``; ``base_trees`` is empty when
        ``with_base_trees`` is False.  All trees allocate their node ids
        together, so a position has the same id in every tree.
        """
        n_classes = self.n_classes
        consolidated = DecisionTree(n_classes)
        bases = [DecisionTree(n_classes) for _ in samples] if with_base_trees else []

        def allocate() -> int:
            node = consolidated.add_node()
            for t in bases:
                t.add_node()
            return node.node_id

        root = allocate()
        pending = {root: (data, samples)}
        frontier = ExpansionFrontier(criteria, search)
        frontier.push(FrontierEntry(root, 0))
        inner_nodes = 0
        order = 0

        while frontier:
            entry = frontier.pop()
            nid = entry.node_id
            node_data, node_samples = pending.pop(nid)

            ct_node = consolidated[nid]
            ct_node.order = order
            order += 1
            ct_node.initialize(node_data, n_classes, keep_ct_data)
            for t, s in zip(bases, node_samples):
                t[nid].order = ct_node.order
                t[nid].initialize(s, n_classes, keep_base_data)

            if self._budget_exhausted(criteria, entry.depth, inner_nodes, budget):
                split = None
            else:
                split = self.evaluator.evaluate_consolidated(node_data, node_samples)

            if split is None:
                ct_node.make_leaf()
                for t, s in zip(bases, node_samples):
                    t[nid].make_leaf()
                    # the completer grows on from here
                    t[nid].data = s
                    if ct_node.is_empty:
                        t[nid].is_empty = True
                continue

            inner_nodes += 1
            logger.debug("Expanded node %d (order %d, depth %d): attribute %d",
                         nid, ct_node.order, entry.depth, split.attribute)
            parts = split.partition(node_data)
            sample_parts = [split.partition(s) for s in node_samples]

            ct_node.is_leaf = False
            ct_node.split = split
            for t, s in zip(bases, node_samples):
                t[nid].is_leaf = False
                t[nid].split = split.refit(s)

            children = []
            for b in range(split.n_branches):
                cid = allocate()
                ct_node.children.append(cid)
                for t in bases:
                    t[nid].children.append(cid)
                child_samples = [sp[b] for sp in sample_parts]
                pending[cid] = (parts[b], child_samples)
                key = self._score(criteria, split, b, parts[b], child_samples)
                children.append(FrontierEntry(cid, entry.depth + 1, key))
            frontier.extend(children)

        return consolidated, bases

    def build(self, data: Dataset, samples: list) -> BuildResult:
        """Resolve the budget, then grow the partial consolidated tree."""
        cfg = self.config
        budget, whole_count, elapsed_whole = self.resolve_budget(data, samples)

        t0 = perf_counter()
        consolidated, bases = self.grow_partial(
            data, samples, budget, cfg.priority_criteria, cfg.search_algorithm,
            keep_ct_data=cfg.prune_ct,
            keep_base_data=(cfg.pruning and cfg.free_pruning
                            and cfg.subtree_raising))
        self._post_process(consolidated)
        elapsed_partial = perf_counter() - t0
        logger.info("Partial consolidated tree: %d inner nodes (budget %d, %.3fs)",
                    consolidated.n_inner_nodes(), budget, elapsed_partial)
        self._emit("partial_ct", elapsed_partial, budget=budget,
                   inner_nodes=consolidated.n_inner_nodes())
        return BuildResult(consolidated, bases, budget, whole_count,
                           elapsed_whole, elapsed_partial)
