# -*- coding: utf-8 -*-
"""
vfdtpy.evaluation
=================

Prequential (test-then-train) learning curves for incremental learners.
"""

from __future__ import annotations

import logging

import pandas as pd

from .tree import VfdtClassifier

logger = logging.getLogger(__name__)


def learning_curve(clf: VfdtClassifier, X, y, *, reporting_period: int = 1000,
                   threshold: float = 0.5, out=None) -> pd.DataFrame:
    """
    Replay ``(X, y)`` through ``clf``, predicting every example before
    learning from it.

    Parameters
    ----------
    clf : VfdtClassifier
        Learner to train; it keeps its current tree and continues from it.
    X : array-like of shape (n_samples, n_features)
    y : array-like of shape (n_samples,)
    reporting_period : int, default=1000
        A checkpoint is recorded every ``reporting_period`` examples and after
        the last one.
    threshold : float, default=0.5
        Probability of class 1 from which the prediction counts as class 1.
    out : str or path-like, optional
        If given, the checkpoints are also written there as CSV.

    Returns
    -------
    pandas.DataFrame
        One row per checkpoint with columns ``n_examples`` (examples
        processed by ``clf``), ``accuracy`` (since the start of this call),
        ``window_accuracy`` (since the previous checkpoint), ``n_nodes`` and
        ``n_leaves``.
    """
    if reporting_period < 1:
        raise ValueError(f"reporting_period must be >= 1, got {reporting_period}")
    X, y = clf.check_examples(X, y)

    rows = []
    correct = window_correct = window_size = 0
    for i, (x_row, y_row) in enumerate(zip(X, y), start=1):
        pred = int(clf.predict_one(x_row) >= threshold)
        hit = int(pred == y_row)
        correct += hit
        window_correct += hit
        window_size += 1
        clf.update(x_row, int(y_row))
        if i % reporting_period == 0 or i == len(y):
            rows.append({
                "n_examples": clf.n_examples_processed_,
                "accuracy": correct / i,
                "window_accuracy": window_correct / window_size,
                "n_nodes": clf.n_nodes_,
                "n_leaves": clf.n_leaves_,
            })
            logger.info("%d examples: accuracy %.4f (window %.4f), %d leaves",
                        clf.n_examples_processed_, correct / i,
                        window_correct / window_size, clf.n_leaves_)
            window_correct = window_size = 0

    curve = pd.DataFrame(rows, columns=["n_examples", "accuracy", "window_accuracy",
                                        "n_nodes", "n_leaves"])
    if out is not None:
        curve.to_csv(out, index=False)
    return curve
