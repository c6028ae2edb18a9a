import numpy as np
import pytest

from pctbagging.dataset import build_schema, make_dataset
from pctbagging.split import SplitEvaluator, SplitModel, _entropy, _split_info


def _numeric(X, y, w=None):
    X = np.asarray(X, dtype=float)
    schema = build_schema(X, np.array([0, 1]))
    return schema, make_dataset(X, y, w)


def _two_samples():
    X = np.column_stack([np.arange(1, 9), [1, 2] * 4]).astype(float)
    schema, a = _numeric(X, [0, 0, 0, 0, 1, 1, 1, 1])
    _, b = _numeric(X, [0, 0, 0, 0, 0, 1, 1, 1])
    return schema, a, b


def test_entropy_and_split_info():
    assert _entropy(np.array([4.0, 4.0])) == pytest.approx(1.0)
    assert _entropy(np.array([5.0, 0.0])) == 0.0
    assert _entropy(np.array([0.0, 0.0])) == 0.0
    assert _split_info([2.0, 2.0, 0.0]) == pytest.approx(1.0)


def test_evaluate_picks_midpoint_threshold():
    schema, a, _ = _two_samples()
    split = SplitEvaluator(schema).evaluate(a)
    assert split.attribute == 0
    assert not split.nominal
    assert split.threshold == pytest.approx(4.5)
    assert np.allclose(split.distribution, [[4, 0], [0, 4]])


def test_evaluate_consolidated_averages_thresholds():
    schema, a, b = _two_samples()
    evaluator = SplitEvaluator(schema)
    # a proposes 4.5, b proposes 5.5
    split = evaluator.evaluate_consolidated(a, [a, b])
    assert split.attribute == 0
    assert split.threshold == pytest.approx(5.0)
    # fitted on the consolidated data
    assert np.allclose(split.distribution, [[4, 1], [0, 3]])


def test_evaluate_consolidated_is_pure():
    schema, a, b = _two_samples()
    evaluator = SplitEvaluator(schema)
    first = evaluator.evaluate_consolidated(a, [a, b])
    second = evaluator.evaluate_consolidated(a, [a, b])
    assert first.same_test(second)
    assert first.gain_ratio == second.gain_ratio


def test_single_sample_matches_plain_evaluation():
    schema, a, _ = _two_samples()
    evaluator = SplitEvaluator(schema)
    assert evaluator.evaluate_consolidated(a, [a]).same_test(evaluator.evaluate(a))


def test_leaf_when_pure_or_too_small():
    schema, _ = _numeric([[1.0], [2.0], [3.0], [4.0]], [0, 0, 1, 1])
    evaluator = SplitEvaluator(schema)
    pure = make_dataset(np.array([[1.0], [2.0], [3.0], [4.0]]), [1, 1, 1, 1])
    assert evaluator.evaluate(pure) is None
    small = make_dataset(np.array([[1.0], [2.0], [3.0]]), [0, 1, 1])
    assert evaluator.evaluate(small) is None
    assert evaluator.evaluate_consolidated(small, [small, small]) is None


def test_empty_consolidated_slice_is_a_leaf():
    schema, a, b = _two_samples()
    empty = a.take([])
    assert SplitEvaluator(schema).evaluate_consolidated(empty, [a, b]) is None


def test_nominal_split_has_one_branch_per_category():
    X = np.array([["ABC"[i % 3]] for i in range(12)], dtype=object)
    y = np.array([0 if i % 3 == 0 else 1 for i in range(12)])
    schema = build_schema(X, y, categorical_features=[0])
    data = make_dataset(schema.encode(X), y)
    split = SplitEvaluator(schema).evaluate(data)
    assert split.nominal
    assert split.n_branches == 3
    assert np.allclose(split.branch_weights, [4, 4, 4])
    assert split.describe(1, schema) == "f0 = B"


def test_missing_values_are_spread_over_branches():
    schema, data = _numeric([[1.0], [2.0], [np.nan], [8.0]], [0, 0, 1, 1])
    split = SplitModel(0, False, 4.5, 2, 1.0, 1.0, np.zeros((2, 2))).refit(data)
    assert np.allclose(split.distribution, [[2, 2 / 3], [0, 4 / 3]])
    assert np.allclose(split.proportions, [2 / 3, 1 / 3])

    left, right = split.partition(data)
    assert len(left) == 3 and len(right) == 2
    assert np.allclose(left.w, [1, 1, 2 / 3])
    assert np.allclose(right.w, [1 / 3, 1])
    assert left.total_weight + right.total_weight == pytest.approx(data.total_weight)


def test_branch_of_and_labels():
    schema, _ = _numeric([[1.0], [2.0]], [0, 1])
    split = SplitModel(0, False, 1.5, 2, 1.0, 1.0, np.array([[1.0, 0.0], [0.0, 1.0]]))
    assert split.branch_of(1.5) == 0
    assert split.branch_of(1.6) == 1
    assert split.branch_of(np.nan) == -1
    assert split.branch_label(0, schema) == "<= 1.5000"
    assert split.describe(1, schema, ["x"]) == "x > 1.5000"


def test_threshold_cap_limits_candidates():
    rng = np.random.RandomState(0)
    X = rng.uniform(size=(60, 1))
    y = (X[:, 0] > 0.5).astype(int)
    schema, data = _numeric(X, y)
    split = SplitEvaluator(schema, max_numeric_thresholds=5).evaluate(data)
    assert split is not None
    assert split.attribute == 0
