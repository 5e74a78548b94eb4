# -*- coding: utf-8 -*-
"""
vfdtpy.exceptions
=================

Error conditions raised by the Hoeffding tree and its model codec.

Degenerate statistics (empty partitions, zero-mass predictions) are not
errors; they are resolved by the zero-mass conventions documented in
:mod:`vfdtpy.split` and :class:`vfdtpy.tree.VfdtClassifier`.
"""

from __future__ import annotations


class VfdtError(Exception):
    """Base class for all vfdtpy errors."""


class OutOfRangeFeatureValue(VfdtError, IndexError):
    """An example carries a feature value outside the declared arity.

    Raised while routing an example through the tree or while counting it at
    a leaf.  This is a precondition violation on the caller's data and is
    never retried.
    """

    def __init__(self, feature: int, value, n_values: int):
        self.feature = int(feature)
        self.value = value
        self.n_values = int(n_values)
        super().__init__(
            f"feature {self.feature} has value {value!r}, "
            f"expected an integer in [0, {self.n_values})"
        )


class CorruptModelFile(VfdtError, ValueError):
    """A persisted model is malformed or structurally inconsistent."""

    def __init__(self, message: str, line_no: int | None = None):
        self.line_no = line_no
        if line_no is not None:
            message = f"line {line_no}: {message}"
        super().__init__(message)
