import numpy as np
import os
import pytest
from sklearn.base import clone
from sklearn.datasets import load_iris

from pctbagging import ConfigurationError, PCTBClassifier


def _tiny_dataset():
    """Return a small classification dataset with a numeric and categorical feature."""
    X = np.array([[1, 'A'], [2, 'A'], [3, 'B'], [4, 'B'],
                  [5, 'A'], [6, 'B'], [7, 'B'], [8, 'A']], dtype=object)
    y = np.array([0, 0, 0, 0, 1, 1, 1, 1])
    return X, y


def _iris():
    return load_iris(return_X_y=True)


def test_classifier_proba_sums_to_one():
    X, y = _tiny_dataset()
    clf = PCTBClassifier(min_samples_leaf=1, feature_names=['num', 'cat'],
                         categorical_features=[1], random_state=0)
    clf.fit(X, y)
    proba = clf.predict_proba(X)
    assert proba.shape == (len(X), 2)
    # probabilities for each row should sum to 1
    assert np.allclose(proba.sum(axis=1), 1.0)


def test_classifier_rule_export():
    X, y = _iris()
    clf = PCTBClassifier(consolidation=100, random_state=0,
                         feature_names=['sl', 'sw', 'pl', 'pw']).fit(X, y)
    rules = clf.export_rules(class_names=['setosa', 'versicolor', 'virginica'])
    # empty leaves give no rule
    assert 0 < len(rules) <= clf.consolidated_tree_.n_leaves()
    # each exported rule should contain implication symbol
    assert all('=>' in r for r in rules)
    base_rules = clf.export_rules(tree_index=1)
    assert len(base_rules) > 0


def test_classifier_graphviz_export():
    pytest.importorskip("graphviz")
    X, y = _iris()
    clf = PCTBClassifier(consolidation=100, n_samples=2, random_state=0).fit(X, y)

    source = clf.export_graphviz()
    assert "digraph" in source
    # export Graphviz in dot format, should not require external graphviz binary
    out_path = clf.export_graphviz('test_tree', tree_index=0, format='dot')
    assert out_path.endswith('.dot')
    assert os.path.exists(out_path)
    os.remove(out_path)


def test_classifier_print_tree(capsys):
    X, y = _iris()
    clf = PCTBClassifier(consolidation=100, n_samples=2, random_state=0).fit(X, y)
    clf.print_tree()
    out = capsys.readouterr().out
    assert out.startswith("[0]")
    clf.print_tree(tree_index=1)
    assert capsys.readouterr().out.strip()


def test_classifier_not_fitted_raises():
    clf = PCTBClassifier()
    with pytest.raises(ValueError):
        clf.predict([[1, 'A']])
    with pytest.raises(ValueError):
        clf.predict_proba([[1, 'A']])
    with pytest.raises(ValueError):
        clf.export_rules()
    with pytest.raises(ValueError):
        clf.summary()
    with pytest.raises(ValueError):
        clf.get_measure("num_leaves")


def test_classifier_invalid_configuration_raises():
    X, y = _tiny_dataset()
    clf = PCTBClassifier(priority_criteria="original", search_algorithm="hill_climbing")
    with pytest.raises(ConfigurationError) as excinfo:
        clf.fit(X, y)
    assert excinfo.value.options == ("priority_criteria", "search_algorithm")
    assert not hasattr(clf, "base_trees_")


def test_classifier_original_criterion():
    X, y = _iris()
    clf = PCTBClassifier(priority_criteria="original", search_algorithm="best_first",
                         prune_ct=True, collapse_ct=True, random_state=0)
    clf.fit(X, y)
    assert clf.score(X, y) > 0.8


def test_classifier_with_missing_values():
    # dataset containing missing values (None)
    X = np.array([[1, 'A'], [2, None], [3, 'B'], [None, 'A'],
                  [5, 'B'], [6, 'B'], [None, None], [8, 'A']], dtype=object)
    y = np.array([0, 0, 1, 1, 0, 1, 1, 0])
    clf = PCTBClassifier(min_samples_leaf=1, feature_names=['num', 'cat'],
                         categorical_features=[1], random_state=3)
    clf.fit(X, y)
    preds = clf.predict(X)
    assert len(preds) == len(y)


def test_get_params_and_clone():
    clf = PCTBClassifier(n_samples=7, priority_criteria="preorder", cf=0.1)
    params = clf.get_params()
    assert params["n_samples"] == 7
    assert params["priority_criteria"] == "preorder"
    cloned = clone(clf)
    assert cloned.get_params() == params


def test_measures():
    X, y = _iris()
    clf = PCTBClassifier(n_samples=4, random_state=0).fit(X, y)
    names = clf.measure_names()
    assert "avg_num_leaves" in names
    assert "dev_weighted_explanation_length" in names
    assert "elapsed_time_bagging" in names
    for name in names:
        assert isinstance(clf.get_measure(name), float)

    leaves = [t.n_leaves() for t in clf.base_trees_]
    assert clf.get_measure("sum_num_leaves") == sum(leaves)
    assert clf.get_measure("max_num_leaves") == max(leaves)
    assert clf.get_measure("num_rules") == clf.get_measure("num_leaves")
    assert clf.get_measure("tree_size") == (clf.get_measure("num_leaves")
                                            + clf.get_measure("num_inner_nodes"))
    with pytest.raises(ValueError):
        clf.get_measure("no_such_measure")


def test_summary_report():
    X, y = _iris()
    clf = PCTBClassifier(n_samples=3, random_state=0, show_base_trees="all",
                         show_explanation_measures=True).fit(X, y)
    text = clf.summary()
    assert "Node by node - Size" in text
    assert "using Hill Climbing as heuristic search algorithm" in text
    assert f"Internal nodes to grow: {clf.budget_}" in text
    assert "Consolidated unpruned tree" in text
    assert "2-th base tree:" in text
    assert "num_leaves: avg =" in text
    assert "Std.Dev." not in text


def test_summary_without_preserving_structure():
    X, y = _iris()
    clf = PCTBClassifier(n_samples=3, consolidation=100, preserve_structure=False,
                         random_state=0).fit(X, y)
    text = clf.summary()
    assert "[Str: " in text
    assert "Without preserving the structure" in text
    assert "Std.Dev." in text


def test_callback_receives_phases():
    X, y = _iris()
    events = []
    PCTBClassifier(n_samples=2, random_state=0, callback=events.append).fit(X, y)
    assert [e.phase for e in events] == ["whole_ct", "partial_ct", "bagging"]
    assert all(e.elapsed >= 0 for e in events)

    events.clear()
    PCTBClassifier(n_samples=2, budget_mode="value", consolidation=2,
                   random_state=0, callback=events.append).fit(X, y)
    assert [e.phase for e in events] == ["partial_ct", "bagging"]
    assert events[0].detail["budget"] == 2


def test_same_seed_same_model():
    X, y = _iris()
    a = PCTBClassifier(n_samples=3, random_state=11).fit(X, y)
    b = PCTBClassifier(n_samples=3, random_state=11).fit(X, y)
    assert np.array_equal(a.predict_proba(X), b.predict_proba(X))
    assert a.summary() == b.summary()


def test_unknown_show_base_trees_raises():
    X, y = _tiny_dataset()
    clf = PCTBClassifier(show_base_trees="first_10", categorical_features=[1])
    with pytest.raises(ConfigurationError) as excinfo:
        clf.fit(X, y)
    assert excinfo.value.options == ("show_base_trees",)
