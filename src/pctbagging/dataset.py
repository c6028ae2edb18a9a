# -*- coding: utf-8 -*-
"""
pctbagging.dataset
==================

Encoded, weighted training data and the resampling used to build the vector
of samples.

Raw inputs are array-like ``X`` matrices mixing numeric and categorical
columns, with ``None`` or ``numpy.nan`` for missing values.  A :class:`Schema` records which columns are categorical and the
categories seen during ``fit``; :meth:`Schema.encode` turns any raw matrix into
a float matrix where categorical values are replaced by integer codes and
missing values by ``nan``.  All tree code works on that encoded form.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from sklearn.utils import check_random_state, resample


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------
def _isnan_scalar(v) -> bool:
    return (v is None) or (isinstance(v, float) and np.isnan(v))


def _category_key(v):
    # mixed-type columns (e.g. ints and strings) still need a total order
    return (type(v).__name__, str(v))


# -----------------------------------------------------------------------------
# Schema
# -----------------------------------------------------------------------------
@dataclass
class Schema:
    """Attribute and class description of a training set.

    Attributes
    ----------
    feature_names : list[str]
        One name per input column.
    is_nominal : list[bool]
        ``True`` for categorical columns.
    categories : dict[int, tuple]
        Known categories of each categorical column, in code order.
    classes : ndarray
        Class labels, in the order used by class indices and probabilities.
    """

    feature_names: list
    is_nominal: list
    categories: dict
    classes: np.ndarray

    @property
    def n_features(self) -> int:
        return len(self.feature_names)

    @property
    def n_classes(self) -> int:
        return len(self.classes)

    def n_values(self, j: int) -> int:
        return len(self.categories.get(j, ()))

    def encode(self, X) -> np.ndarray:
        """Return ``X`` as a float matrix (category codes, ``nan`` for missing)."""
        X = np.asarray(X, dtype=object if any(self.is_nominal) else None)
        if X.ndim != 2 or X.shape[1] != self.n_features:
            raise ValueError(f"X must have shape (n_samples, {self.n_features})")
        if not any(self.is_nominal) and X.dtype.kind in "fiub":
            return X.astype(float)
        out = np.empty(X.shape, dtype=float)
        for j in range(self.n_features):
            col = X[:, j]
            if self.is_nominal[j]:
                lookup = {v: code for code, v in enumerate(self.categories[j])}
                out[:, j] = [np.nan if _isnan_scalar(v) else lookup.get(v, np.nan)
                             for v in col]
            else:
                out[:, j] = [np.nan if _isnan_scalar(v) else float(v) for v in col]
        return out

    def value_label(self, j: int, code: int) -> str:
        return str(self.categories[j][code])

    def class_label(self, k: int, class_names=None) -> str:
        if class_names is not None:
            return str(class_names[k])
        return str(self.classes[k])


def build_schema(X, y, feature_names=None, categorical_features=None) -> Schema:
    """Infer a :class:`Schema` from raw training data.

    ``categorical_features`` holds column indices or, when ``feature_names``
    is given, column names.  Every other column is numeric.
    """
    X = np.asarray(X, dtype=object)
    if X.ndim != 2:
        raise ValueError("X must be a 2-dimensional array")
    n_features = X.shape[1]
    if feature_names is not None:
        if len(feature_names) != n_features:
            raise ValueError("feature_names length must match X.shape[1]")
        names = [str(n) for n in feature_names]
    else:
        names = [f"f{i}" for i in range(n_features)]

    cats = set()
    if categorical_features is not None:
        cf = list(categorical_features)
        if len(cf) and isinstance(cf[0], str):
            if feature_names is None:
                raise ValueError("feature_names must be provided when using "
                                 "categorical_features by name")
            name_to_idx = {n: i for i, n in enumerate(names)}
            cf = [name_to_idx[c] for c in cf]
        cats = set(int(i) for i in cf)

    is_nominal = [i in cats for i in range(n_features)]
    categories = {}
    for j in range(n_features):
        if is_nominal[j]:
            known = {v for v in X[:, j] if not _isnan_scalar(v)}
            categories[j] = tuple(sorted(known, key=_category_key))
    return Schema(names, is_nominal, categories, np.unique(np.asarray(y)))


# -----------------------------------------------------------------------------
# Dataset
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class Dataset:
    """Weighted, encoded instances reaching one tree position.

    ``X`` is the encoded float matrix, ``y`` holds class indices and ``w`` the
    instance weights.  Partitions are new objects; a dataset is never changed
    in place.
    """

    X: np.ndarray
    y: np.ndarray
    w: np.ndarray

    def __len__(self) -> int:
        return len(self.y)

    @property
    def total_weight(self) -> float:
        return float(self.w.sum())

    def class_distribution(self, n_classes: int) -> np.ndarray:
        return np.bincount(self.y, weights=self.w, minlength=n_classes).astype(float)

    def is_pure(self, n_classes: int) -> bool:
        return int(np.count_nonzero(self.class_distribution(n_classes) > 0)) <= 1

    def take(self, rows, weights=None) -> "Dataset":
        rows = np.asarray(rows, dtype=int)
        w = self.w[rows] if weights is None else np.asarray(weights, dtype=float)
        return Dataset(self.X[rows], self.y[rows], w)


def make_dataset(X_encoded, y_index, sample_weight=None) -> Dataset:
    y_index = np.asarray(y_index, dtype=int)
    if sample_weight is None:
        w = np.ones(len(y_index), dtype=float)
    else:
        w = np.asarray(sample_weight, dtype=float)
        if len(w) != len(y_index):
            raise ValueError("sample_weight must have the same length as y")
    return Dataset(np.asarray(X_encoded, dtype=float), y_index, w)


# -----------------------------------------------------------------------------
# Resampling
# -----------------------------------------------------------------------------
def generate_samples(data: Dataset, n_samples: int = 5, *,
                     bag_size_percent: float = 100.0,
                     replacement: bool = True,
                     stratify: bool = False,
                     random_state=None) -> list:
    """Draw the vector of samples used for consolidation.

    Parameters
    ----------
    data : Dataset
        Training set.
    n_samples : int, default=5
        Number of samples (and therefore of base trees).
    bag_size_percent : float, default=100.0
        Size of each sample as a percentage of ``len(data)``.
    replacement : bool, default=True
        Draw with replacement (bootstrap) or without.
    stratify : bool, default=False
        Keep the class proportions of ``data`` in every sample.
    random_state : int, RandomState or None
        Seed; the same seed yields the same vector.

    Returns
    -------
    list[Dataset]
        ``n_samples`` datasets, each keeping the original row order.
    """
    rng = check_random_state(random_state)
    n = len(data)
    size = int(n * bag_size_percent / 100.0 + 0.5)
    rows = np.arange(n)
    samples = []
    for _ in range(int(n_samples)):
        if size == 0 or n == 0:
            idx = np.empty(0, dtype=int)
        else:
            idx = resample(rows, replace=replacement, n_samples=size,
                           random_state=rng,
                           stratify=data.y if stratify else None)
        samples.append(data.take(np.sort(idx)))
    return samples
