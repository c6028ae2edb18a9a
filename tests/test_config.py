import pytest

from pctbagging import BudgetMode, ConfigurationError, PCTBConfig, PriorityCriteria


def test_defaults_are_valid():
    cfg = PCTBConfig()
    assert cfg.validate() is None
    assert cfg.priority_criteria is PriorityCriteria.SIZE
    assert not cfg.free_pruning


def test_string_options_are_coerced():
    cfg = PCTBConfig(budget_mode="value", priority_criteria="preorder",
                     search_algorithm="best_first")
    assert cfg.budget_mode is BudgetMode.VALUE
    assert cfg.priority_criteria is PriorityCriteria.PREORDER


def test_unknown_option_value():
    with pytest.raises(ValueError):
        PCTBConfig(priority_criteria="random")


@pytest.mark.parametrize("kwargs, options", [
    (dict(n_samples=0), ("n_samples",)),
    (dict(bag_size_percent=0), ("bag_size_percent",)),
    (dict(bag_size_percent=150, replacement=False), ("bag_size_percent", "replacement")),
    (dict(cf=1.0), ("cf",)),
    (dict(min_samples_leaf=0), ("min_samples_leaf",)),
    (dict(max_numeric_thresholds=0), ("max_numeric_thresholds",)),
    (dict(consolidation=120), ("consolidation", "budget_mode")),
    (dict(consolidation=-1, budget_mode="value"), ("consolidation",)),
    (dict(priority_criteria="original"), ("priority_criteria", "search_algorithm")),
    (dict(priority_criteria="original", search_algorithm="best_first",
          preserve_structure=False), ("priority_criteria", "preserve_structure")),
    (dict(priority_criteria="original", search_algorithm="best_first",
          budget_mode="value"), ("priority_criteria", "budget_mode")),
    (dict(priority_criteria="original", search_algorithm="best_first"),
     ("prune_ct", "pruning")),
    (dict(priority_criteria="original", search_algorithm="best_first",
          prune_ct=True), ("collapse_ct", "collapse_tree")),
])
def test_invalid_combinations(kwargs, options):
    error = PCTBConfig(**kwargs).validate()
    assert isinstance(error, ConfigurationError)
    assert error.options == options


def test_original_criterion_accepted():
    cfg = PCTBConfig(priority_criteria="original", search_algorithm="best_first",
                     prune_ct=True, collapse_ct=True)
    assert cfg.validate() is None


def test_bag_size_above_hundred_with_replacement():
    assert PCTBConfig(bag_size_percent=150).validate() is None


def test_value_budget_accepts_large_values():
    assert PCTBConfig(budget_mode="value", consolidation=1000).validate() is None
