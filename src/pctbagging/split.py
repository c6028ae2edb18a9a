# -*- coding: utf-8 -*-
"""
pctbagging.split
================

C4.5 split selection.

:class:`SplitEvaluator` proposes the test of a node either from a single
dataset (``evaluate``) or from the consolidated slice plus the vector of
samples reaching the same position (``evaluate_consolidated``).  Both return a
:class:`SplitModel`, or ``None`` when the node should be a leaf.

Splits follow C4.5: numeric attributes are split in two at the midpoint
between adjacent distinct values, categorical attributes get one branch per
known category.  Instances with a missing test value go down every branch
with their weight scaled by the branch proportion.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

import numpy as np

from .dataset import Dataset, Schema


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------
def _entropy(dist_vec: np.ndarray) -> float:
    tot = dist_vec.sum()
    if tot <= 0:
        return 0.0
    p = dist_vec / tot
    p = p[p > 0]
    return float(-np.sum(p * np.log2(p)))


def _split_info(branch_weights) -> float:
    w = np.asarray(branch_weights, dtype=float)
    tot = w.sum()
    if tot <= 0:
        return 0.0
    w = w[w > 0] / tot
    return float(-np.sum(w * np.log2(w)))


def _entropy_rows(D: np.ndarray) -> np.ndarray:
    tot = D.sum(axis=1, keepdims=True)
    with np.errstate(divide="ignore", invalid="ignore"):
        p = np.where(tot > 0, D / tot, 0.0)
        logp = np.where(p > 0, np.log2(p), 0.0)
    return -(p * logp).sum(axis=1)


def _info_gain(parent: np.ndarray, children: np.ndarray) -> float:
    tot = parent.sum()
    if tot <= 0:
        return 0.0
    rest = sum(d.sum() / tot * _entropy(d) for d in children)
    return _entropy(parent) - rest


# average-gain tolerance used by C4.5 when filtering candidates
_GAIN_TOLERANCE = 1e-3


# -----------------------------------------------------------------------------
# Split model
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class SplitModel:
    """The test of an internal node.

    Attributes
    ----------
    attribute : int
        Index of the tested attribute.
    nominal : bool
        ``True`` for a multiway categorical test.
    threshold : float or None
        Split point of numeric tests (``<=`` goes to branch 0).
    n_branches : int
        Number of children.
    gain_ratio : float
        Score that selected the split (used as an ordering key).
    info_gain : float
        Information gain behind ``gain_ratio``.
    distribution : ndarray of shape (n_branches, n_classes)
        Weighted class counts per branch of the data the split was fitted on,
        missing values included fractionally.
    """

    attribute: int
    nominal: bool
    threshold: float | None
    n_branches: int
    gain_ratio: float
    info_gain: float
    distribution: np.ndarray

    # ---------------------------------------------------------------
    @property
    def branch_weights(self) -> np.ndarray:
        return self.distribution.sum(axis=1)

    @property
    def proportions(self) -> np.ndarray:
        bw = self.branch_weights
        tot = bw.sum()
        if tot <= 0:
            return np.full(self.n_branches, 1.0 / self.n_branches)
        return bw / tot

    @property
    def largest_branch(self) -> int:
        return int(np.argmax(self.branch_weights))

    def same_test(self, other: "SplitModel | None") -> bool:
        if other is None:
            return False
        if self.attribute != other.attribute or self.nominal != other.nominal:
            return False
        if self.nominal:
            return True
        return bool(np.isclose(self.threshold, other.threshold))

    # ---------------------------------------------------------------
    def branch_of(self, value) -> int:
        """Branch taken by an encoded value; ``-1`` when it is missing."""
        if np.isnan(value):
            return -1
        if self.nominal:
            code = int(value)
            return code if 0 <= code < self.n_branches else -1
        return 0 if value <= self.threshold else 1

    def _branch_indices(self, col: np.ndarray) -> np.ndarray:
        idx = np.full(col.shape[0], -1, dtype=int)
        known = ~np.isnan(col)
        if self.nominal:
            codes = col[known].astype(int)
            codes[(codes < 0) | (codes >= self.n_branches)] = -1
            idx[known] = codes
        else:
            idx[known] = np.where(col[known] <= self.threshold, 0, 1)
        return idx

    @staticmethod
    def _fit_distribution(idx: np.ndarray, data: Dataset, n_branches: int,
                          n_classes: int) -> np.ndarray:
        known = idx >= 0
        dist = np.zeros((n_branches, n_classes), dtype=float)
        np.add.at(dist, (idx[known], data.y[known]), data.w[known])
        if (~known).any():
            unknown = np.bincount(data.y[~known], weights=data.w[~known],
                                  minlength=n_classes)
            tot = dist.sum()
            props = (dist.sum(axis=1) / tot if tot > 0
                     else np.full(n_branches, 1.0 / n_branches))
            dist += np.outer(props, unknown)
        return dist

    def refit(self, data: Dataset) -> "SplitModel":
        """Same test, with the branch distribution recomputed on ``data``."""
        idx = self._branch_indices(data.X[:, self.attribute])
        dist = self._fit_distribution(idx, data, self.n_branches,
                                      self.distribution.shape[1])
        return replace(self, distribution=dist)

    def partition(self, data: Dataset) -> list:
        """Split ``data`` into one dataset per branch."""
        idx = self._branch_indices(data.X[:, self.attribute])
        miss = idx < 0
        props = self.proportions
        parts = []
        for b in range(self.n_branches):
            sel = idx == b
            if props[b] > 0:
                sel = sel | miss
            rows = np.nonzero(sel)[0]
            w = data.w[rows].copy()
            w[miss[rows]] *= props[b]
            parts.append(data.take(rows, w))
        return parts

    # ---------------------------------------------------------------
    def branch_label(self, branch: int, schema: Schema) -> str:
        if self.nominal:
            return f"= {schema.value_label(self.attribute, branch)}"
        op = "<=" if branch == 0 else ">"
        return f"{op} {self.threshold:.4f}"

    def describe(self, branch: int, schema: Schema, feature_names=None) -> str:
        fn = feature_names if feature_names is not None else schema.feature_names
        return f"{fn[self.attribute]} {self.branch_label(branch, schema)}"


# -----------------------------------------------------------------------------
# Evaluator
# -----------------------------------------------------------------------------
class SplitEvaluator:
    """C4.5 split selection over one dataset or a consolidated sample vector.

    Parameters
    ----------
    schema : Schema
        Attribute description of the training data.
    min_samples_leaf : int, default=2
        Minimum weight two branches must reach for a split to be valid.
    use_mdl_correction : bool, default=True
        Penalize the gain of numeric splits by ``log2(#candidates) / weight``.
    max_numeric_thresholds : int or None, default=None
        Cap on candidate thresholds per numeric attribute (evenly spaced
        over the sorted boundaries).  ``None`` evaluates every boundary.

    Both ``evaluate`` and ``evaluate_consolidated`` are pure, so the builder
    may call them for lookahead before committing to a split.
    """

    def __init__(self, schema: Schema, *, min_samples_leaf: int = 2,
                 use_mdl_correction: bool = True,
                 max_numeric_thresholds: int | None = None):
        self.schema = schema
        self.n_classes = schema.n_classes
        self.min_samples_leaf = float(min_samples_leaf)
        self.use_mdl_correction = bool(use_mdl_correction)
        self.max_numeric_thresholds = max_numeric_thresholds

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def evaluate(self, data: Dataset) -> SplitModel | None:
        """Best C4.5 split of ``data`` alone, or ``None`` for a leaf."""
        if not self._can_split(data):
            return None
        total_w = data.total_weight
        candidates = []
        for j in range(self.schema.n_features):
            col = data.X[:, j]
            if self.schema.is_nominal[j]:
                res = self._nominal_scores(col, data.y, data.w, j, total_w)
                if res is None or not res[2]:
                    continue
                gain, split_info, _ = res
                thr = None
            else:
                res = self._best_numeric(col, data.y, data.w, total_w)
                if res is None:
                    continue
                gain, split_info, thr, _ = res
            if gain > 0:
                candidates.append((j, gain, split_info, thr))
        return self._select(candidates, data)

    def evaluate_consolidated(self, data: Dataset, samples: list) -> SplitModel | None:
        """Consolidated split for a position reached by ``data`` and ``samples``.

        Every sample scores every attribute and the scores are averaged, so
        the whole vector agrees on a single decision.  Numeric attributes
        are tested at the mean of the thresholds the samples propose on
        their own.  The returned split is fitted on ``data``.
        """
        if data.total_weight <= 0:
            return None
        if not any(self._can_split(s) for s in samples):
            return None
        n = len(samples)
        candidates = []
        for j in range(self.schema.n_features):
            gains = np.zeros(n)
            infos = np.zeros(n)
            if self.schema.is_nominal[j]:
                valid = False
                thr = None
                for i, s in enumerate(samples):
                    res = self._nominal_scores(s.X[:, j], s.y, s.w, j, s.total_weight)
                    if res is not None:
                        gains[i], infos[i], enough = res
                        valid = valid or enough
                if not valid:
                    continue
            else:
                proposals = [self._best_numeric(s.X[:, j], s.y, s.w, s.total_weight)
                             for s in samples]
                thresholds = [p[2] for p in proposals if p is not None]
                if not thresholds:
                    continue
                thr = float(np.mean(thresholds))
                for i, (s, p) in enumerate(zip(samples, proposals)):
                    gains[i], infos[i] = self._numeric_scores_at(
                        s.X[:, j], s.y, s.w, thr, s.total_weight)
                    if p is not None and self.use_mdl_correction and s.total_weight > 0:
                        gains[i] -= np.log2(p[3]) / s.total_weight
            gain = float(gains.mean())
            if gain > 0:
                candidates.append((j, gain, float(infos.mean()), thr))
        return self._select(candidates, data)

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------
    def _can_split(self, data: Dataset) -> bool:
        if data.total_weight < 2 * self.min_samples_leaf:
            return False
        return not data.is_pure(self.n_classes)

    def _select(self, candidates: list, data: Dataset) -> SplitModel | None:
        if not candidates:
            return None
        avg_gain = np.mean([c[1] for c in candidates]) - _GAIN_TOLERANCE
        best, best_ratio = None, -1.0
        for j, gain, split_info, thr in candidates:
            if gain < avg_gain:
                continue
            ratio = gain / split_info if split_info > 0 else 0.0
            if ratio > best_ratio:
                best, best_ratio = (j, gain, thr), ratio
        j, gain, thr = best
        nominal = self.schema.is_nominal[j]
        n_branches = self.schema.n_values(j) if nominal else 2
        model = SplitModel(j, nominal, thr, n_branches, float(best_ratio), float(gain),
                           np.zeros((n_branches, self.n_classes)))
        return model.refit(data)

    def _nominal_scores(self, col, y, w, j, total_w):
        """``(gain, split_info, enough_branches)`` of the multiway split, or ``None``."""
        if total_w <= 0:
            return None
        n_values = self.schema.n_values(j)
        if n_values < 2:
            return None
        known = ~np.isnan(col)
        dist = np.zeros((n_values, self.n_classes), dtype=float)
        np.add.at(dist, (col[known].astype(int), y[known]), w[known])
        bw = dist.sum(axis=1)
        enough = np.count_nonzero(bw >= self.min_samples_leaf) >= 2
        known_w = bw.sum()
        if known_w <= 0:
            return None
        gain = (known_w / total_w) * _info_gain(dist.sum(axis=0), dist)
        split_info = _split_info(np.append(bw, total_w - known_w))
        return gain, split_info, bool(enough)

    def _best_numeric(self, col, y, w, total_w):
        """Best threshold of a numeric column.

        Returns ``(gain, split_info, threshold, n_candidates)`` or ``None``.
        The gain already carries the MDL correction.
        """
        if total_w <= 0:
            return None
        known = ~np.isnan(col)
        if not known.any():
            return None
        order = np.argsort(col[known], kind="mergesort")
        v = col[known][order]
        yk = y[known][order]
        wk = w[known][order]

        M = np.zeros((v.shape[0], self.n_classes), dtype=float)
        M[np.arange(v.shape[0]), yk] = wk
        SW = M.cumsum(axis=0)
        total = SW[-1]
        known_w = total.sum()
        if known_w <= 0:
            return None

        bd = np.nonzero(v[:-1] < v[1:])[0]
        if bd.size == 0:
            return None
        left_w = SW[bd].sum(axis=1)
        bd = bd[(left_w >= self.min_samples_leaf) & (known_w - left_w >= self.min_samples_leaf)]
        if bd.size == 0:
            return None
        n_candidates = bd.size
        k = self.max_numeric_thresholds
        if k is not None and bd.size > k:
            bd = bd[np.linspace(0, bd.size - 1, num=int(k), dtype=int)]

        frac_known = known_w / total_w
        left = SW[bd]
        right = total - left
        lw, rw = left.sum(axis=1), right.sum(axis=1)
        rest = (lw * _entropy_rows(left) + rw * _entropy_rows(right)) / known_w
        gains = frac_known * (_entropy(total) - rest)
        k_best = int(np.argmax(gains))
        best_gain, best_i = float(gains[k_best]), bd[k_best]
        if self.use_mdl_correction:
            best_gain -= np.log2(n_candidates) / total_w
        if best_gain <= 0:
            return None
        lw = SW[best_i].sum()
        split_info = _split_info([lw, known_w - lw, total_w - known_w])
        thr = 0.5 * (v[best_i] + v[best_i + 1])
        return float(best_gain), split_info, float(thr), n_candidates

    def _numeric_scores_at(self, col, y, w, threshold, total_w):
        if total_w <= 0:
            return 0.0, 0.0
        known = ~np.isnan(col)
        idx = (col[known] > threshold).astype(int)
        dist = np.zeros((2, self.n_classes), dtype=float)
        np.add.at(dist, (idx, y[known]), w[known])
        bw = dist.sum(axis=1)
        known_w = bw.sum()
        if known_w <= 0:
            return 0.0, 0.0
        gain = (known_w / total_w) * _info_gain(dist.sum(axis=0), dist)
        split_info = _split_info(np.append(bw, total_w - known_w))
        return gain, split_info
