# -*- coding: utf-8 -*-
"""
vfdtpy.split
============

Split evaluation for Hoeffding trees.

A leaf proposes to split on the feature with the highest information gain,
computed from the counts observed at that leaf only.  Whether the proposal is
trusted is decided by the Hoeffding bound: with probability ``1 - delta`` the
true gain difference between the best and the second best feature is within
``eps = sqrt(R**2 * ln(2/delta) / (2n))`` of the observed one, where ``R`` is
the range of the gain (one bit for a binary class).  When the two candidates
are closer than the tie threshold ``tau`` the split is forced, since waiting
longer would not tell them apart.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

import numpy as np

from .stats import NodeStats

logger = logging.getLogger(__name__)

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


def entropy(class_counts) -> float:
    """Base-2 Shannon entropy of a class distribution; 0 for zero mass."""
    return _entropy(np.asarray(class_counts, dtype=float))


def information_gain(stats: NodeStats, feature: int) -> float:
    """
    Information gain of splitting a leaf on ``feature``.

    Parameters
    ----------
    stats : NodeStats
        Counts observed at the leaf.  ``feature`` must be tracked.
    feature : int
        Candidate split feature.

    Returns
    -------
    float
        ``H(class) - sum_v (n_v / n) * H(class | feature = v)``.  Values with
        no observations contribute nothing; a leaf without observations has
        zero gain.
    """
    table = stats.table(feature).astype(float)
    parent = table.sum(axis=0)
    n = parent.sum()
    if n <= 0:
        return 0.0
    after = sum(row.sum() / n * _entropy(row) for row in table if row.sum() > 0)
    return _entropy(parent) - after


def hoeffding_bound(delta: float, n: int, value_range: float = 1.0) -> float:
    """``sqrt(R^2 * ln(2/delta) / (2n))``; infinite before any example."""
    if n <= 0:
        return math.inf
    return math.sqrt(value_range * value_range * math.log(2.0 / delta) / (2.0 * n))


# -----------------------------------------------------------------------------
# Decision
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class SplitCandidates:
    best_feature: int
    best_gain: float
    second_feature: int
    second_gain: float

    @property
    def gap(self) -> float:
        return self.best_gain - self.second_gain


@dataclass(frozen=True)
class SplitDecision:
    feature: int
    candidates: SplitCandidates
    bound: float
    n_examples: int
    reason: str  # "hoeffding" or "tie"


def best_and_second_best(stats: NodeStats, features=None) -> SplitCandidates | None:
    """
    Top two split features by information gain.

    Candidates are scanned in ascending feature order and a later feature only
    displaces an earlier one on a strictly larger gain.  Returns ``None`` when
    fewer than two candidates exist or when no candidate has a positive gain.
    """
    features = sorted(stats.features if features is None else features)
    if len(features) < 2:
        return None
    gains = [(information_gain(stats, f), f) for f in features]
    # stable sort on gain only: ties keep the lower feature index first
    ranked = sorted(gains, key=lambda gf: -gf[0])
    (g1, f1), (g2, f2) = ranked[0], ranked[1]
    if g1 <= 0.0:
        return None
    return SplitCandidates(f1, g1, f2, g2)


def should_split(stats: NodeStats, n_examples: int, *, delta: float, tau: float,
                 nmin: int) -> SplitDecision | None:
    """
    Apply the Hoeffding decision rule to a leaf.

    Returns a :class:`SplitDecision` when the leaf should split now and
    ``None`` when the decision is deferred (too few examples, no usable
    candidates, or a gain gap inside the bound but above ``tau``).
    """
    if n_examples < nmin:
        return None
    cand = best_and_second_best(stats)
    if cand is None:
        return None
    eps = hoeffding_bound(delta, n_examples)
    if cand.gap > eps:
        reason = "hoeffding"
    elif cand.gap < tau:
        reason = "tie"
    else:
        return None
    logger.debug(
        "split on feature %d (%s): gain %.6f vs %.6f (feature %d), eps=%.6f, n=%d",
        cand.best_feature, reason, cand.best_gain, cand.second_gain,
        cand.second_feature, eps, n_examples,
    )
    return SplitDecision(cand.best_feature, cand, eps, int(n_examples), reason)
