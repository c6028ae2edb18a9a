# -*- coding: utf-8 -*-
"""
pctbagging.classifier
=====================

Scikit-learn style estimator for Partially Consolidated Tree-Bagging.

A consolidated C4.5 tree is grown jointly from a vector of resampled
datasets until a consolidation budget is spent; each sample then keeps
growing its own copy of that partial tree, as in bagging.  Predictions are
the normalized sum of the base-tree class distributions.  With a budget of
zero the model is plain bagging of C4.5 trees; with the full budget every
base tree shares the structure of the consolidated tree.
"""

from __future__ import annotations

import logging
from time import perf_counter

import numpy as np
from sklearn.base import BaseEstimator, ClassifierMixin

from .aggregate import PredictionAggregator
from .bagging import BaggingCompleter
from .builder import PartialTreeBuilder, TrainingEvent
from .c45 import C45TreeGrower
from .config import BudgetMode, ConfigurationError, PCTBConfig
from .dataset import build_schema, generate_samples, make_dataset
from .frontier import PriorityCriteria, SearchAlgorithm
from .split import SplitEvaluator
from .structure import StructurePreservationAnalyzer
from .tree import DecisionTree

logger = logging.getLogger(__name__)

_NOT_FITTED = "Estimator not fitted. Call fit(...) first."

_SHOW_BASE_TREES = ("none", "first_ten", "all")

_TREE_MEASURES = ("num_leaves", "num_rules", "num_inner_nodes",
                  "explanation_length", "weighted_explanation_length")
_AGGREGATES = ("avg", "min", "max", "sum", "mdn", "dev")
_CT_MEASURES = ("tree_size", "num_leaves", "num_rules", "num_inner_nodes",
                "num_levels", "explanation_length", "weighted_explanation_length")
_TIME_MEASURES = ("elapsed_time_whole_ct", "elapsed_time_partial_ct",
                  "elapsed_time_bagging")
_STRUCTURE_MEASURES = {
    "avg_perc_structure": "mean",
    "min_perc_structure": "minimum",
    "max_perc_structure": "maximum",
    "mdn_perc_structure": "median",
    "dev_perc_structure": "std",
}

_CRITERIA_LABELS = {
    PriorityCriteria.ORIGINAL: "Original (recursive)",
    PriorityCriteria.LEVEL_BY_LEVEL: "Level by level",
    PriorityCriteria.PREORDER: "Node by node - Preorder",
    PriorityCriteria.SIZE: "Node by node - Size",
    PriorityCriteria.GAIN_RATIO_WHOLE_DATA: "Node by node - Gain ratio (Whole data)",
    PriorityCriteria.GAIN_RATIO_SET_OF_SAMPLES: "Node by node - Gain ratio (Set of samples)",
    PriorityCriteria.GAIN_RATIO_WHOLE_DATA_SIZE:
        "Node by node - Gain ratio (Whole data) weighted * Size",
    PriorityCriteria.GAIN_RATIO_SET_OF_SAMPLES_SIZE:
        "Node by node - Gain ratio (Set of samples) weighted * Size",
}


def tree_measure(tree: DecisionTree, name: str) -> float:
    """Complexity measure of a single tree."""
    if name == "tree_size":
        return float(tree.n_nodes())
    if name in ("num_leaves", "num_rules"):
        return float(tree.n_leaves())
    if name == "num_inner_nodes":
        return float(tree.n_inner_nodes())
    if name == "num_levels":
        return float(tree.n_levels())
    if name == "explanation_length":
        return tree.average_branch_length(weighted=False)
    if name == "weighted_explanation_length":
        return tree.average_branch_length(weighted=True)
    raise ValueError(f"{name} is not a tree measure")


def _aggregate(values, op: str) -> float:
    v = np.asarray(values, dtype=float)
    if op == "avg":
        return float(v.mean())
    if op == "min":
        return float(v.min())
    if op == "max":
        return float(v.max())
    if op == "sum":
        return float(v.sum())
    if op == "mdn":
        return float(np.median(v))
    return float(np.std(v, ddof=1)) if v.size > 1 else 0.0


class PCTBClassifier(ClassifierMixin, BaseEstimator):
    """
    Partially Consolidated Tree-Bagging classifier built on C4.5 trees.

    ``n_samples`` resampled versions of the training set are drawn.  A
    consolidated tree is grown node by node: every split is chosen from
    the evidence of all the samples at once and the same split is copied
    into one base tree per sample.  Once ``consolidation`` internal nodes (or
    levels) have been expanded, the base trees are completed independently
    from their own samples and pruned, and the resulting ensemble votes.

    Parameters
    ----------
    n_samples : int, default=5
        Number of samples, and therefore of base trees.
    bag_size_percent : float, default=100.0
        Size of each sample as a percentage of the training set.
    replacement : bool, default=True
        Draw the samples with replacement (bootstrap).
    stratify : bool, default=False
        Keep the class proportions in every sample.
    consolidation : float, default=20.0
        Consolidation budget: a percentage of the inner nodes (levels for
        ``"level_by_level"``) of the fully grown consolidated tree when
        ``budget_mode="percentage"``, or that number directly when
        ``budget_mode="value"``.
    budget_mode : {"percentage", "value"}, default="percentage"
        How ``consolidation`` is read.
    priority_criteria : str or PriorityCriteria, default="size"
        Expansion order of the consolidated tree: ``"original"``,
        ``"level_by_level"``, ``"preorder"``, ``"size"``,
        ``"gain_ratio_whole_data"``, ``"gain_ratio_set_of_samples"``,
        ``"gain_ratio_whole_data_size"`` or
        ``"gain_ratio_set_of_samples_size"``.
    search_algorithm : {"hill_climbing", "best_first"}, default="hill_climbing"
        Search discipline of the scored criteria; ignored otherwise.
    prune_ct : bool, default=False
        Prune the consolidated tree.
    collapse_ct : bool, default=False
        Collapse the consolidated tree.
    pruning : bool, default=True
        Prune the base trees.
    collapse_tree : bool, default=True
        Collapse the base trees.
    preserve_structure : bool, default=True
        Prune the base trees below the consolidated part only.  When False
        the base trees are pruned freely and the share of consolidated splits
        they keep is measured.
    subtree_raising : bool, default=True
        Allow subtree raising while pruning.
    cf : float, default=0.25
        Confidence factor for pessimistic pruning.  Smaller values prune
        more aggressively.
    min_samples_leaf : int, default=2
        Minimum weight at least two branches must get for a split.
    max_numeric_thresholds : int or None, default=None
        Cap on candidate thresholds per numeric feature.
    random_state : int or None, default=None
        Seed of the resampling.
    feature_names : list[str] or None, default=None
        Names used in reports and exports.  Required when
        ``categorical_features`` are given by name.
    categorical_features : list[int|str] or None, default=None
        Indices or names of categorical input features.  All other features
        are numeric.
    callback : callable or None, default=None
        Receives a :class:`~pctbagging.builder.TrainingEvent` at the end of
        each training phase.
    show_base_trees : {"none", "first_ten", "all"}, default="none"
        Base trees included in :meth:`summary`.
    show_explanation_measures : bool, default=False
        Include the aggregated complexity of the base trees in
        :meth:`summary`.

    Attributes
    ----------
    classes_ : ndarray
        Class labels.
    consolidated_tree_ : DecisionTree
        The partial consolidated tree.
    base_trees_ : list[DecisionTree]
        One completed tree per sample.
    structure_stat_ : StructurePreservationStat
        Agreement of the base trees with the consolidated splits.
    budget_ : int
        Resolved consolidation budget.
    """

    def __init__(
        self,
        *,
        n_samples: int = 5,
        bag_size_percent: float = 100.0,
        replacement: bool = True,
        stratify: bool = False,
        consolidation: float = 20.0,
        budget_mode: str = "percentage",
        priority_criteria: str = "size",
        search_algorithm: str = "hill_climbing",
        prune_ct: bool = False,
        collapse_ct: bool = False,
        pruning: bool = True,
        collapse_tree: bool = True,
        preserve_structure: bool = True,
        subtree_raising: bool = True,
        cf: float = 0.25,
        min_samples_leaf: int = 2,
        max_numeric_thresholds: int | None = None,
        random_state: int | None = None,
        feature_names: list[str] | None = None,
        categorical_features: list[int | str] | None = None,
        callback=None,
        show_base_trees: str = "none",
        show_explanation_measures: bool = False,
    ):
        self.n_samples = n_samples
        self.bag_size_percent = bag_size_percent
        self.replacement = replacement
        self.stratify = stratify
        self.consolidation = consolidation
        self.budget_mode = budget_mode
        self.priority_criteria = priority_criteria
        self.search_algorithm = search_algorithm
        self.prune_ct = prune_ct
        self.collapse_ct = collapse_ct
        self.pruning = pruning
        self.collapse_tree = collapse_tree
        self.preserve_structure = preserve_structure
        self.subtree_raising = subtree_raising
        self.cf = cf
        self.min_samples_leaf = min_samples_leaf
        self.max_numeric_thresholds = max_numeric_thresholds
        self.random_state = random_state
        self.feature_names = feature_names
        self.categorical_features = categorical_features
        self.callback = callback
        self.show_base_trees = show_base_trees
        self.show_explanation_measures = show_explanation_measures

    # ------------------------------------------------------------------
    # Training
    # ------------------------------------------------------------------
    def _make_config(self) -> PCTBConfig:
        return PCTBConfig(
            n_samples=int(self.n_samples),
            bag_size_percent=float(self.bag_size_percent),
            replacement=bool(self.replacement),
            stratify=bool(self.stratify),
            consolidation=float(self.consolidation),
            budget_mode=BudgetMode(self.budget_mode),
            priority_criteria=PriorityCriteria(self.priority_criteria),
            search_algorithm=SearchAlgorithm(self.search_algorithm),
            prune_ct=bool(self.prune_ct),
            collapse_ct=bool(self.collapse_ct),
            pruning=bool(self.pruning),
            collapse_tree=bool(self.collapse_tree),
            preserve_structure=bool(self.preserve_structure),
            subtree_raising=bool(self.subtree_raising),
            cf=float(self.cf),
            min_samples_leaf=int(self.min_samples_leaf),
            max_numeric_thresholds=self.max_numeric_thresholds,
        )

    def fit(self, X, y, sample_weight=None):
        """
        Build the partially consolidated tree and the base trees.

        Parameters
        ----------
        X : array-like of shape (n_samples, n_features)
            Training data.  Missing values may be ``None`` or ``numpy.nan``.
        y : array-like of shape (n_samples,)
            Class labels.
        sample_weight : array-like of shape (n_samples,), optional
            Instance weights.

        Returns
        -------
        self

        Raises
        ------
        ConfigurationError
            If the options cannot be used together.
        """
        config = self._make_config()
        error = config.validate()
        if error is not None:
            raise error
        if self.show_base_trees not in _SHOW_BASE_TREES:
            raise ConfigurationError(
                f"show_base_trees must be one of {_SHOW_BASE_TREES}, "
                f"got {self.show_base_trees!r}", ("show_base_trees",))

        y = np.asarray(y)
        self.schema_ = build_schema(X, y, self.feature_names, self.categorical_features)
        self.classes_ = self.schema_.classes
        self.n_features_ = self.schema_.n_features
        data = make_dataset(self.schema_.encode(X),
                            np.searchsorted(self.classes_, y), sample_weight)
        samples = generate_samples(data, config.n_samples,
                                   bag_size_percent=config.bag_size_percent,
                                   replacement=config.replacement,
                                   stratify=config.stratify,
                                   random_state=self.random_state)

        evaluator = SplitEvaluator(self.schema_,
                                   min_samples_leaf=config.min_samples_leaf,
                                   max_numeric_thresholds=config.max_numeric_thresholds)
        grower = C45TreeGrower(evaluator, cf=config.cf,
                               subtree_raising=config.subtree_raising)
        result = PartialTreeBuilder(config, evaluator, grower, self.callback).build(data, samples)

        t0 = perf_counter()
        BaggingCompleter(grower, pruning=config.pruning,
                         collapse=config.collapse_tree,
                         preserve_structure=config.preserve_structure
                         ).complete(result.base_trees)
        self.elapsed_bagging_ = perf_counter() - t0
        logger.info("Completed %d base trees (%.3fs)", len(result.base_trees),
                    self.elapsed_bagging_)
        if self.callback is not None:
            self.callback(TrainingEvent("bagging", self.elapsed_bagging_,
                                        {"n_trees": len(result.base_trees)}))

        self.config_ = config
        self.consolidated_tree_ = result.consolidated
        self.base_trees_ = result.base_trees
        self.budget_ = result.budget
        self.whole_count_ = result.whole_count
        self.elapsed_whole_ct_ = result.elapsed_whole
        self.elapsed_partial_ct_ = result.elapsed_partial
        self.structure_stat_ = StructurePreservationAnalyzer(
            config.preserve_structure).analyze(self.consolidated_tree_, self.base_trees_)
        self.aggregator_ = PredictionAggregator(self.base_trees_, len(self.classes_))
        return self

    def _check_fitted(self):
        if getattr(self, "base_trees_", None) is None:
            raise ValueError(_NOT_FITTED)

    # ------------------------------------------------------------------
    # Prediction
    # ------------------------------------------------------------------
    def predict_proba(self, X):
        """
        Predict class probabilities for the provided samples.

        Each row is the sum of the base-tree class distributions normalized
        to 1, or all zeros when no base tree gives any vote.

        Parameters
        ----------
        X : array-like of shape (n_samples, n_features)
            Input samples.  Missing values may be represented by ``None`` or
            ``numpy.nan``.

        Returns
        -------
        ndarray of shape (n_samples, n_classes)
        """
        self._check_fitted()
        Xe = self.schema_.encode(X)
        return np.array([self.aggregator_.distribution(x) for x in Xe]).reshape(
            len(Xe), len(self.classes_))

    def predict(self, X):
        """Predict class labels; ties go to the first class in ``classes_``."""
        proba = self.predict_proba(X)
        return self.classes_[np.argmax(proba, axis=1)]

    # ------------------------------------------------------------------
    # Measures
    # ------------------------------------------------------------------
    def measure_names(self) -> list:
        names = list(_CT_MEASURES)
        names += [f"{op}_{m}" for op in _AGGREGATES for m in _TREE_MEASURES]
        names += list(_TIME_MEASURES)
        names += list(_STRUCTURE_MEASURES)
        return names

    def get_measure(self, name: str) -> float:
        """
        Value of a named scalar measure.

        See :meth:`measure_names` for the supported names.

        Raises
        ------
        ValueError
            If the estimator is not fitted or ``name`` is unknown.
        """
        self._check_fitted()
        if name in _CT_MEASURES:
            return tree_measure(self.consolidated_tree_, name)
        op, _, measure = name.partition("_")
        if op in _AGGREGATES and measure in _TREE_MEASURES:
            return _aggregate([tree_measure(t, measure) for t in self.base_trees_], op)
        if name == "elapsed_time_whole_ct":
            return float(self.elapsed_whole_ct_)
        if name == "elapsed_time_partial_ct":
            return float(self.elapsed_partial_ct_)
        if name == "elapsed_time_bagging":
            return float(self.elapsed_bagging_)
        if name in _STRUCTURE_MEASURES:
            return float(getattr(self.structure_stat_, _STRUCTURE_MEASURES[name]))
        raise ValueError(f"{name} not supported (PCTBClassifier)")

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------
    def _tree(self, tree_index):
        self._check_fitted()
        if tree_index is None:
            return self.consolidated_tree_
        return self.base_trees_[tree_index]

    def _tree_text(self, tree: DecisionTree, *, structure=None, show_order=True,
                   feature_names=None, class_names=None) -> str:
        lines = [tree.dump(self.schema_, structure=structure, feature_names=feature_names,
                           class_names=class_names, show_order=show_order),
                 "",
                 f"Number of Leaves  : \t{tree.n_leaves()}",
                 f"Size of the tree : \t{tree.n_nodes()}",
                 f"=> Number of inner nodes : \t{tree.n_inner_nodes()}",
                 f"Average length of branches : \t{tree.average_branch_length():.2f}",
                 "Average length of branches weighted by leaves size : \t"
                 f"{tree.average_branch_length(weighted=True):.2f}"]
        return "\n".join(lines) + "\n"

    def summary(self) -> str:
        """Text report of the fitted model."""
        self._check_fitted()
        cfg = self.config_
        title = "PCTBagging classifier"
        line = "-" * len(title) + "\n"
        crit = cfg.priority_criteria
        out = [title + "\n",
               f"Priority criteria to grow the partial consolidated tree: {_CRITERIA_LABELS[crit]}\n"]
        if crit.is_scored:
            alg = ("Hill Climbing" if cfg.search_algorithm is SearchAlgorithm.HILL_CLIMBING
                   else "Best-first")
            out.append(f" using {alg} as heuristic search algorithm\n")
        if cfg.budget_mode is BudgetMode.PERCENTAGE:
            if crit.counts_levels:
                out.append(f"Consolidation percent (in terms of number of levels of the tree) = "
                           f"{cfg.consolidation:.2f}% => Number of levels to grow: {self.budget_}\n")
            else:
                out.append(f"Consolidation percent = {cfg.consolidation:.2f}% "
                           f"=> Internal nodes to grow: {self.budget_}\n")
        else:
            what = "levels" if crit.counts_levels else "inner nodes"
            out.append(f"Number of {what} of the partial consolidated tree to grow = "
                       f"{self.budget_}\n")
        if cfg.preserve_structure:
            out.append("Preserving the structure of the partially consolidated tree "
                       "in the base trees\n")
        else:
            out.append("Without preserving the structure of the partially consolidated "
                       "tree in the base trees\n")
        out.append(line)

        kind = ("" if cfg.prune_ct else "unpruned ") + ("(collapsed) " if cfg.collapse_ct else "")
        out.append(f"Consolidated {kind}tree\n")
        structure = None if cfg.preserve_structure else self.structure_stat_.per_node
        out.append(self._tree_text(self.consolidated_tree_, structure=structure))

        mode = str(self.show_base_trees)
        if mode != "none":
            n = len(self.base_trees_)
            shown = n if (mode == "all" or n <= 10) else 10
            out.append(line)
            unpruned = "" if cfg.pruning else "unpruned "
            note = "" if shown == n else " (*Only the first ten!)"
            out.append(f"Set of {n} base {unpruned}trees{note}:\n")
            for i in range(shown):
                out.append(line)
                out.append(f"{i}-th base tree:\n")
                out.append(self._tree_text(self.base_trees_[i], show_order=False))

        if self.show_explanation_measures:
            out.append("\n--- Complexity/Explanation aggregated measures  ---\n")
            for m in ("num_leaves", "num_inner_nodes", "explanation_length",
                      "weighted_explanation_length"):
                vals = " ".join(f"{op} = {self.get_measure(f'{op}_{m}'):.2f}"
                                for op in _AGGREGATES)
                out.append(f"{m}: {vals}\n")

        if not cfg.preserve_structure:
            s = self.structure_stat_
            out.append("\n---------------------------------------------------"
                       "\nPercentage of base trees sharing the split of each node"
                       "\nof the partial consolidated tree [Str: dd.dd%]:"
                       f"\n  Mean: {s.mean:.2f}%"
                       f"\n  Minimum: {s.minimum:.2f}%"
                       f"\n  Maximum: {s.maximum:.2f}%"
                       f"\n  Median: {s.median:.2f}%"
                       f"\n  Std.Dev.: {s.std:.2f}%"
                       "\n---------------------------------------------------\n")
        return "".join(out)

    def print_tree(self, tree_index=None, feature_names=None, class_names=None):
        """
        Pretty-print the consolidated tree (or base tree ``tree_index``) to
        ``stdout``.
        """
        tree = self._tree(tree_index)
        print(tree.dump(self.schema_, feature_names=feature_names,
                        class_names=class_names, show_order=tree_index is None))

    def export_rules(self, *, tree_index=None, feature_names=None, class_names=None):
        """
        Export the decision rules of a tree as human-readable strings.

        Each rule has the form ``<antecedent> => <predicted class>``.  The
        consolidated tree is used unless ``tree_index`` selects a base tree.

        Returns
        -------
        list[str]
        """
        tree = self._tree(tree_index)
        return tree.rules(self.schema_, feature_names=feature_names,
                          class_names=class_names)

    def export_graphviz(self, filename: str | None = None, *, tree_index=None,
                        feature_names=None, class_names=None, format: str = "png") -> str:
        """
        Export a tree in Graphviz format.

        Parameters
        ----------
        filename : str or None, default=None
            Basename of the output file.  If None, the DOT source is returned
            and no file is written.
        tree_index : int or None, default=None
            Base tree to export; the consolidated tree when None.
        feature_names, class_names : list[str], optional
            Names overriding those of the training data.
        format : str, default="png"
            Graphviz output format; ``'dot'`` writes the DOT source directly.

        Returns
        -------
        str
            Path to the written file, or the DOT source if filename is None.
        """
        tree = self._tree(tree_index)
        try:
            import graphviz
        except ImportError:
            raise RuntimeError("Graphviz is required for export_graphviz but not installed.")
        dot = graphviz.Digraph(format=format)
        tree.add_graph_nodes(dot, self.schema_, feature_names=feature_names,
                             class_names=class_names)
        if filename is None:
            return dot.source
        if format.lower() == "dot":
            path = f"{filename}.dot"
            dot.save(path)
            return path
        try:
            dot.render(filename, cleanup=True)
            return f"{filename}.{format}"
        except graphviz.ExecutableNotFound:
            fallback_path = f"{filename}.dot"
            dot.save(fallback_path)
            return fallback_path
