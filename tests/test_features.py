import numpy as np
import pytest
from pctbagging import PCTBClassifier


def test_sample_weights():
    # Two identical points, one with weight 2, count like three identical points
    X = np.array([[1, 1], [1, 1], [2, 2]])
    y = np.array([0, 0, 1])
    w = np.array([1, 2, 1])  # Effective counts: Class 0: 3, Class 1: 1

    # without replacement at 100% every sample is the training set itself
    clf = PCTBClassifier(n_samples=2, replacement=False, min_samples_leaf=1,
                         random_state=42)
    clf.fit(X, y, sample_weight=w)

    assert clf.base_trees_[0].root.weight == pytest.approx(4.0)
    assert clf.predict([[1, 1]])[0] == 0
    assert clf.predict([[2, 2]])[0] == 1


def test_sample_weight_length_mismatch():
    X = np.array([[1.0], [2.0], [3.0]])
    y = np.array([0, 1, 1])
    with pytest.raises(ValueError):
        PCTBClassifier().fit(X, y, sample_weight=[1.0, 2.0])


def test_missing_values_propagation():
    # Feature 0 is the split.
    # Value < 5 -> Class 0
    # Value > 5 -> Class 1
    # Missing -> Distributed
    X = np.array([
        [2.0], [3.0], [4.0],  # Class 0
        [6.0], [7.0], [8.0],  # Class 1
        [np.nan]              # Missing
    ])
    y = np.array([0, 0, 0, 1, 1, 1, 0])

    clf = PCTBClassifier(n_samples=3, replacement=False, random_state=42)
    clf.fit(X, y)

    assert clf.predict([[2.0]])[0] == 0
    assert clf.predict([[8.0]])[0] == 1

    # 3 vs 3 known values, so a missing value goes both ways evenly
    probs = clf.predict_proba([[np.nan]])[0]
    assert np.allclose(probs, [0.5, 0.5], atol=0.2)
    assert probs.sum() == pytest.approx(1.0)


def test_categorical_multiway_split():
    X = np.array([["ABC"[i % 3], float(i)] for i in range(30)], dtype=object)
    y = np.array([0 if row[0] == "A" else 1 for row in X])
    clf = PCTBClassifier(n_samples=2, replacement=False,
                         feature_names=['cat', 'num'], categorical_features=['cat'])
    clf.fit(X, y)

    base = clf.base_trees_[0]
    assert base.root.split.nominal
    assert base.root.split.n_branches == 3
    rules = clf.export_rules(tree_index=0)
    assert any(r.startswith("cat = A") for r in rules)
    assert clf.predict([["A", 100.0], ["C", 100.0]]).tolist() == [0, 1]


def test_unseen_category_is_treated_as_missing():
    X = np.array([["ABC"[i % 3], float(i)] for i in range(30)], dtype=object)
    y = np.array([0 if row[0] == "A" else 1 for row in X])
    clf = PCTBClassifier(n_samples=2, replacement=False, categorical_features=[0])
    clf.fit(X, y)
    proba = clf.predict_proba([["D", 3.0]])[0]
    assert proba.sum() == pytest.approx(1.0)
    assert 0.0 < proba[0] < 1.0
