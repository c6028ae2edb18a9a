import numpy as np
import pytest

from pctbagging.c45 import C45TreeGrower, estimate_error
from pctbagging.dataset import build_schema, make_dataset
from pctbagging.split import SplitEvaluator, SplitModel
from pctbagging.tree import DecisionTree


def _grower(**kwargs):
    schema = build_schema(np.zeros((1, 1)), np.array([0, 1]))
    return C45TreeGrower(SplitEvaluator(schema), **kwargs)


def _noisy_stump():
    """Root [6, 4] split into two identical children [3, 2]."""
    tree = DecisionTree(2)
    for _ in range(3):
        tree.add_node()
    root = tree.root
    root.class_distribution = np.array([6.0, 4.0])
    root.is_leaf = False
    root.split = SplitModel(0, False, 0.5, 2, 0.1, 0.1,
                            np.array([[3.0, 2.0], [3.0, 2.0]]))
    root.children = [1, 2]
    tree[1].class_distribution = np.array([3.0, 2.0])
    tree[2].class_distribution = np.array([3.0, 2.0])
    return tree


def _separable():
    X = np.arange(1, 9, dtype=float).reshape(-1, 1)
    return make_dataset(X, [0, 0, 0, 0, 1, 1, 1, 1])


def test_estimate_error_values():
    assert estimate_error(0, 0) == 0.0
    assert estimate_error(1, 0) == pytest.approx(0.75)
    # lower confidence means a more pessimistic estimate
    assert estimate_error(10, 2, 0.1) > estimate_error(10, 2, 0.25)


def test_grow_allocates_children_in_branch_order():
    tree = DecisionTree(2)
    tree.add_node()
    _grower().grow(tree, 0, _separable())
    assert not tree.root.is_leaf
    assert tree.root.children == [1, 2]
    assert tree.root.split.threshold == pytest.approx(4.5)
    assert np.allclose(tree[1].class_distribution, [4, 0])
    assert tree[1].data is None


def test_grow_keeps_data_on_request():
    tree = DecisionTree(2)
    tree.add_node()
    _grower().grow(tree, 0, _separable(), keep_data=True)
    assert all(n.data is not None for n in tree.iter_nodes())


def test_collapse_removes_useless_split():
    tree = _noisy_stump()
    _grower().collapse(tree)
    assert tree.root.is_leaf
    assert tree.root.children == []


def test_prune_removes_useless_split():
    tree = _noisy_stump()
    _grower().prune(tree)
    assert tree.root.is_leaf
    assert tree.n_nodes() == 1


def test_prune_keeps_useful_split():
    tree = DecisionTree(2)
    tree.add_node()
    grower = _grower()
    grower.grow(tree, 0, _separable(), keep_data=True)
    grower.prune(tree)
    assert not tree.root.is_leaf
    assert tree.n_leaves() == 2


def test_estimated_errors_sum_over_leaves():
    tree = _noisy_stump()
    grower = _grower()
    leaf = 2.0 + estimate_error(5.0, 2.0)
    assert grower.estimated_errors(tree, 0) == pytest.approx(2 * leaf)
    assert grower.training_errors(tree, 0) == pytest.approx(4.0)


def test_redistribute_refits_subtree():
    tree = DecisionTree(2)
    tree.add_node()
    grower = _grower()
    data = _separable()
    grower.grow(tree, 0, data)
    half = data.take(np.arange(8), np.full(8, 0.5))
    grower.redistribute(tree, 0, half)
    assert tree.root.weight == pytest.approx(4.0)
    assert np.allclose(tree[2].class_distribution, [0, 2])
    assert tree.root.split.threshold == pytest.approx(4.5)
