# -*- coding: utf-8 -*-
"""
pctbagging.config
=================

Immutable training configuration and its up-front validation.

:class:`PCTBClassifier` keeps its constructor arguments unchanged (so that
``get_params``/``clone`` work) and turns them into a :class:`PCTBConfig` at
fit time.  ``PCTBConfig.validate`` reports the first inconsistent option
combination as a :class:`ConfigurationError` instead of raising, so callers
can inspect a configuration without building anything.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .frontier import PriorityCriteria, SearchAlgorithm


class BudgetMode(str, Enum):
    """How ``consolidation`` is read."""

    VALUE = "value"
    PERCENTAGE = "percentage"


class ConfigurationError(ValueError):
    """Two options that cannot be used together, or an option out of range.

    Attributes
    ----------
    options : tuple[str, ...]
        Names of the offending options.
    """

    def __init__(self, message: str, options=()):
        super().__init__(message)
        self.options = tuple(options)


@dataclass(frozen=True)
class PCTBConfig:
    """Resolved options of one PCTBagging fit."""

    n_samples: int = 5
    bag_size_percent: float = 100.0
    replacement: bool = True
    stratify: bool = False
    consolidation: float = 20.0
    budget_mode: BudgetMode = BudgetMode.PERCENTAGE
    priority_criteria: PriorityCriteria = PriorityCriteria.SIZE
    search_algorithm: SearchAlgorithm = SearchAlgorithm.HILL_CLIMBING
    prune_ct: bool = False
    collapse_ct: bool = False
    pruning: bool = True
    collapse_tree: bool = True
    preserve_structure: bool = True
    subtree_raising: bool = True
    cf: float = 0.25
    min_samples_leaf: int = 2
    max_numeric_thresholds: int | None = None

    def __post_init__(self):
        # enumerated options also accept their string values
        object.__setattr__(self, "budget_mode", BudgetMode(self.budget_mode))
        object.__setattr__(self, "priority_criteria",
                           PriorityCriteria(self.priority_criteria))
        object.__setattr__(self, "search_algorithm",
                           SearchAlgorithm(self.search_algorithm))

    @property
    def free_pruning(self) -> bool:
        return not self.preserve_structure

    def validate(self) -> ConfigurationError | None:
        """Return the first configuration problem found, or ``None``."""
        if self.n_samples < 1:
            return ConfigurationError("n_samples must be at least 1", ("n_samples",))
        if self.bag_size_percent <= 0:
            return ConfigurationError("bag_size_percent must be positive",
                                      ("bag_size_percent",))
        if self.bag_size_percent > 100 and not self.replacement:
            return ConfigurationError(
                "bag_size_percent above 100 requires sampling with replacement",
                ("bag_size_percent", "replacement"))
        if not 0 < self.cf < 1:
            return ConfigurationError("cf must lie in (0, 1)", ("cf",))
        if self.min_samples_leaf < 1:
            return ConfigurationError("min_samples_leaf must be at least 1",
                                      ("min_samples_leaf",))
        if self.max_numeric_thresholds is not None and self.max_numeric_thresholds < 1:
            return ConfigurationError("max_numeric_thresholds must be at least 1",
                                      ("max_numeric_thresholds",))
        if self.budget_mode is BudgetMode.PERCENTAGE:
            if not 0 <= self.consolidation <= 100:
                return ConfigurationError(
                    "consolidation must lie in [0, 100] in percentage mode",
                    ("consolidation", "budget_mode"))
        elif self.consolidation < 0:
            return ConfigurationError("consolidation must not be negative",
                                      ("consolidation",))

        if self.priority_criteria is PriorityCriteria.ORIGINAL:
            if self.search_algorithm is SearchAlgorithm.HILL_CLIMBING:
                return ConfigurationError(
                    "the original criterion does not support hill climbing",
                    ("priority_criteria", "search_algorithm"))
            if self.free_pruning:
                return ConfigurationError(
                    "the original criterion always preserves the consolidated structure",
                    ("priority_criteria", "preserve_structure"))
            if self.budget_mode is BudgetMode.VALUE:
                return ConfigurationError(
                    "the original criterion only supports a percentage budget",
                    ("priority_criteria", "budget_mode"))
            if self.prune_ct != self.pruning:
                return ConfigurationError(
                    "the original criterion prunes the consolidated tree "
                    "exactly when it prunes the base trees",
                    ("prune_ct", "pruning"))
            if self.collapse_ct != self.collapse_tree:
                return ConfigurationError(
                    "the original criterion collapses the consolidated tree "
                    "exactly when it collapses the base trees",
                    ("collapse_ct", "collapse_tree"))
        return None
