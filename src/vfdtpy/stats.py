# -*- coding: utf-8 -*-
"""
vfdtpy.stats
============

Sufficient statistics kept at every leaf of a Hoeffding tree.

For each feature that is still eligible for splitting at a node, a
:class:`NodeStats` instance keeps a ``(n_values, 2)`` table of counts: row
``v`` holds how many examples with value ``v`` for that feature were seen with
class 0 and with class 1.  Features already split on by an ancestor are never
tracked, so for every tracked feature the table sums to the number of
examples seen by the node.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator

import numpy as np

from .exceptions import OutOfRangeFeatureValue

N_CLASSES = 2


class NodeStats:
    """Per-node ``(feature, value, class)`` count tables (the *nijk* counts).

    Parameters
    ----------
    n_feature_values : sequence of int
        Arity of every feature of the model, indexed by feature.
    features : iterable of int
        Features to track at this node.

    Attributes
    ----------
    tables : dict
        Mapping ``feature -> ndarray of shape (arity, 2)`` with ``int64``
        counts.
    """

    __slots__ = ("tables",)

    def __init__(self, n_feature_values, features: Iterable[int]):
        self.tables: dict[int, np.ndarray] = {
            int(f): np.zeros((int(n_feature_values[f]), N_CLASSES), dtype=np.int64)
            for f in sorted(set(features))
        }

    # ------------------------------------------------------------------
    # Accumulation
    # ------------------------------------------------------------------
    def add(self, x, y: int) -> None:
        """Count one example ``(x, y)`` under every tracked feature."""
        # Validate everything first so a bad row leaves the tables untouched.
        cells = []
        for f, table in self.tables.items():
            v = x[f]
            if not 0 <= v < table.shape[0]:
                raise OutOfRangeFeatureValue(f, v, table.shape[0])
            cells.append((table, int(v)))
        for table, v in cells:
            table[v, y] += 1

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------
    @property
    def features(self) -> tuple[int, ...]:
        return tuple(self.tables)

    def __len__(self) -> int:
        return len(self.tables)

    def __contains__(self, feature) -> bool:
        return feature in self.tables

    def table(self, feature: int) -> np.ndarray:
        return self.tables[feature]

    def counts_at(self, feature: int, value: int) -> np.ndarray:
        """Class counts for ``feature == value``.

        Values beyond the table (possible for trees decoded with inferred
        arities) have no observations and yield zeros.
        """
        table = self.tables[feature]
        if 0 <= value < table.shape[0]:
            return table[value]
        return np.zeros(N_CLASSES, dtype=np.int64)

    def class_counts(self) -> np.ndarray:
        """Total class counts at the node, or zeros when nothing is tracked."""
        for table in self.tables.values():
            return table.sum(axis=0)
        return np.zeros(N_CLASSES, dtype=np.int64)

    def total(self) -> int:
        return int(self.class_counts().sum())

    def is_consistent(self, n_examples: int) -> bool:
        """Every tracked table sums to ``n_examples``."""
        return all(int(t.sum()) == n_examples for t in self.tables.values())

    def nonzero_entries(self) -> Iterator[tuple[int, int, int, int]]:
        """Yield ``(feature, value, class, count)`` for every non-zero cell."""
        for f, table in self.tables.items():
            for v, c in zip(*np.nonzero(table)):
                yield f, int(v), int(c), int(table[v, c])

    def __eq__(self, other) -> bool:
        if not isinstance(other, NodeStats):
            return NotImplemented
        if self.features != other.features:
            return False
        return all(np.array_equal(self.tables[f], other.tables[f]) for f in self.tables)

    __hash__ = None

    def __repr__(self) -> str:
        return f"NodeStats(features={list(self.features)}, total={self.total()})"
