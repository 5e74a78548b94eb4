# -*- coding: utf-8 -*-
"""
vfdtpy.data
===========

Readers for integer-coded datasets.

A dataset file holds one example per line: the feature codes followed by the
class label, separated by ``sep``.  The arity file has a header line and a
second line with the number of values of every feature.
"""

from __future__ import annotations

import numpy as np
import pandas as pd


def read_examples(path, sep: str = ",", header=None) -> tuple[np.ndarray, np.ndarray]:
    """
    Read a dataset of integer-coded examples.

    Parameters
    ----------
    path : str or path-like
        Delimited text file; the last column is the class label.
    sep : str, default=","
        Field separator.
    header : int or None, default=None
        Passed to :func:`pandas.read_csv`; ``None`` means the file has no
        header row.

    Returns
    -------
    X : ndarray of shape (n_samples, n_features), dtype int64
    y : ndarray of shape (n_samples,), dtype int64
    """
    df = pd.read_csv(path, sep=sep, header=header)
    if df.shape[1] < 2:
        raise ValueError(f"{path}: expected feature columns followed by a label column")
    values = df.to_numpy()
    if not np.issubdtype(values.dtype, np.integer):
        raise ValueError(f"{path}: all fields must be integers")
    values = values.astype(np.int64)
    return values[:, :-1], values[:, -1]


def read_n_feature_values(path, sep: str = ",") -> list[int]:
    """Read the per-feature arities: the header line is skipped."""
    df = pd.read_csv(path, sep=sep, header=None, skiprows=1, nrows=1)
    if df.empty:
        raise ValueError(f"{path}: no arity line after the header")
    return [int(v) for v in df.iloc[0].tolist()]
