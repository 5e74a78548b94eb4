# -*- coding: utf-8 -*-
"""
vfdtpy.tree
===========

This module implements an incremental Hoeffding tree classifier (VFDT, Domingos
and Hulten) for binary targets and discrete features.  Examples are consumed
one at a time: each one is routed to a leaf, counted there, and every leaf that
has seen at least ``nmin`` examples is checked for a split.  A leaf splits when
the Hoeffding bound says that its best feature beats the runner-up with
confidence ``1 - delta``, or when both are so close (``tau``) that waiting is
pointless.  Nothing is ever pruned or re-learned.

The classifier follows scikit-learn conventions (``partial_fit``, ``fit``,
``predict_proba``, ``predict``, ``score``) and also offers the single-example
entry points :meth:`VfdtClassifier.update` and
:meth:`VfdtClassifier.predict_one`.  Trees can be written to and read from the
text format of :mod:`vfdtpy.codec`, dumped as indented text, exported as rules
or rendered with Graphviz.

Feature values must be integer codes in ``[0, n_feature_values[f])``; class
labels must be 0 or 1.
"""

from __future__ import annotations

import logging

import numpy as np
from sklearn.base import BaseEstimator, ClassifierMixin

from . import codec
from .exceptions import OutOfRangeFeatureValue
from .node import TreeNode
from .split import should_split

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------
def _as_int_array(a, what: str) -> np.ndarray:
    a = np.asarray(a)
    if a.dtype.kind in "iub":
        return a.astype(np.int64)
    try:
        af = a.astype(float)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{what} must contain integer codes") from exc
    if not np.all(np.isfinite(af)) or not np.all(af == np.round(af)):
        raise ValueError(f"{what} must contain integer codes")
    return af.astype(np.int64)


def _positive_rate(evidence, x) -> float:
    """Probability of class 1 for ``x`` from the statistics of one node.

    Every tracked feature contributes its counts at the value ``x`` takes, and
    the positives are divided by the total.  A node without statistics gives
    the uninformative 0.5; values never observed at the node give 0.0.
    """
    stats = evidence.stats
    if len(stats) == 0 or evidence.n_examples == 0:
        return 0.5
    positive, total = 0.0, 0.0
    for f in stats.features:
        counts = stats.counts_at(f, int(x[f]))
        positive += float(counts[1])
        total += float(counts[0] + counts[1])
    if total <= 0:
        return 0.0
    return positive / total


# -----------------------------------------------------------------------------
# Classifier
# -----------------------------------------------------------------------------
class VfdtClassifier(BaseEstimator, ClassifierMixin):
    """
    Incremental decision tree classifier driven by the Hoeffding bound.

    Parameters
    ----------
    n_feature_values : list[int] or None, default=None
        Number of values of each feature: ``n_feature_values[3] = 5`` means
        that feature 3 takes values 0 to 4.  Required for :meth:`partial_fit`
        and :meth:`update`; :meth:`fit` infers it from the data when omitted.
    delta : float, default=1e-7
        One minus the confidence of the Hoeffding bound.  Smaller values
        demand more evidence before splitting.
    tau : float, default=0.05
        Tie threshold.  When the gain gap between the two best features is
        below ``tau`` the leaf splits on the best one anyway.
    nmin : int, default=200
        Minimum number of examples at a leaf before it is evaluated for a
        split.  Larger values reduce the number of gain computations.
    min_prediction_examples : int, default=51
        Evidence gate used by prediction: the walk from the root does not
        enter a child whose subtree has received fewer examples than this,
        and predicts from the current node instead.
    feature_names : list[str] or None, default=None
        Optional names used by :meth:`print_tree`, :meth:`export_rules` and
        :meth:`export_graphviz`.
    verbose : int, default=0
        When positive, the splits made by this estimator are logged at ``INFO``
        on the ``vfdtpy.tree`` logger instead of ``DEBUG``.  Logger levels and
        handlers are left to the application.

    Attributes
    ----------
    root_ : TreeNode
        Root of the tree.
    n_feature_values_ : tuple[int]
        Feature arities the tree was built with.
    n_features_in_ : int
        Number of features.
    classes_ : ndarray of shape (2,)
        Always ``[0, 1]``.
    n_examples_processed_ : int
        Number of training examples consumed so far.

    Notes
    -----
    Split decisions are evaluated on every update for every leaf with at
    least ``nmin`` examples; all leaves selected in one update split together
    using the statistics they had before any of those splits.
    """

    def __init__(
        self,
        n_feature_values: list[int] | None = None,
        *,
        delta: float = 1e-7,
        tau: float = 0.05,
        nmin: int = 200,
        min_prediction_examples: int = 51,
        feature_names: list[str] | None = None,
        verbose: int = 0,
    ):
        self.n_feature_values = n_feature_values
        self.delta = float(delta)
        self.tau = float(tau)
        self.nmin = int(nmin)
        self.min_prediction_examples = int(min_prediction_examples)
        self.feature_names = feature_names
        self.verbose = int(verbose)

    # ------------------------------------------------------------------
    # Parameters and tree lifecycle
    # ------------------------------------------------------------------
    def _validate_params(self):
        if not 0.0 < self.delta < 1.0:
            raise ValueError(f"delta must be in (0, 1), got {self.delta}")
        if self.tau < 0.0:
            raise ValueError(f"tau must be >= 0, got {self.tau}")
        if self.nmin < 1:
            raise ValueError(f"nmin must be >= 1, got {self.nmin}")
        if self.min_prediction_examples < 0:
            raise ValueError(
                f"min_prediction_examples must be >= 0, got {self.min_prediction_examples}")

    @staticmethod
    def _check_arities(n_feature_values) -> tuple[int, ...]:
        arities = tuple(int(a) for a in n_feature_values)
        if any(a < 1 for a in arities):
            raise ValueError(f"every feature needs at least one value, got {list(arities)}")
        return arities

    def _init_tree(self, n_feature_values):
        self._validate_params()
        self.n_feature_values_ = self._check_arities(n_feature_values)
        self.n_features_in_ = len(self.n_feature_values_)
        self.classes_ = np.array([0, 1])
        self.root_ = TreeNode(self.n_feature_values_, range(self.n_features_in_))
        # first there is only one leaf, the root
        self._leaves = [self.root_]
        self.n_examples_processed_ = 0

    def _ensure_tree(self):
        if getattr(self, "root_", None) is not None:
            return
        if self.n_feature_values is None:
            raise ValueError("Estimator not fitted. Call fit(...) first.")
        self._init_tree(self.n_feature_values)

    def _check_X(self, X) -> np.ndarray:
        X = _as_int_array(X, "X")
        if X.ndim != 2:
            raise ValueError(f"X must be 2-dimensional, got shape {X.shape}")
        if X.shape[1] != self.n_features_in_:
            raise ValueError(
                f"X has {X.shape[1]} features, the tree expects {self.n_features_in_}")
        return X

    def _check_y(self, y, n: int) -> np.ndarray:
        y = _as_int_array(y, "y").ravel()
        if len(y) != n:
            raise ValueError(f"X and y have inconsistent lengths {n} and {len(y)}")
        bad = ~np.isin(y, self.classes_)
        if bad.any():
            raise ValueError(f"class labels must be 0 or 1, got {y[bad][0]}")
        return y

    def _check_ranges(self, X: np.ndarray):
        arities = np.asarray(self.n_feature_values_, dtype=np.int64)
        bad = (X < 0) | (X >= arities)
        if bad.any():
            row, f = np.argwhere(bad)[0]
            raise OutOfRangeFeatureValue(f, int(X[row, f]), arities[f])

    def check_examples(self, X, y):
        """
        Validate a batch of training examples against the tree.

        Nothing is learned; a batch that passes can be fed row by row to
        :meth:`predict_one` and :meth:`update` without failing halfway.

        Returns
        -------
        X : ndarray of shape (n_samples, n_features), dtype int64
        y : ndarray of shape (n_samples,), dtype int64

        Raises
        ------
        ValueError
            On a shape mismatch, non-integer codes or labels other than 0/1.
        OutOfRangeFeatureValue
            If a value lies outside its feature's arity.
        """
        self._ensure_tree()
        X = self._check_X(X)
        y = self._check_y(y, X.shape[0])
        self._check_ranges(X)
        return X, y

    # ------------------------------------------------------------------
    # Learning
    # ------------------------------------------------------------------
    def fit(self, X, y):
        """
        Reset the tree and learn from ``(X, y)`` in row order.

        Parameters
        ----------
        X : array-like of shape (n_samples, n_features)
            Integer-coded features.
        y : array-like of shape (n_samples,)
            Class labels in {0, 1}.

        Returns
        -------
        self
        """
        if self.n_feature_values is None:
            X_int = _as_int_array(X, "X")
            if X_int.ndim != 2 or X_int.shape[0] == 0:
                raise ValueError("cannot infer n_feature_values from an empty or non 2-D X")
            arities = (X_int.max(axis=0) + 1).tolist()
            logger.info("inferred n_feature_values=%s from the training data", arities)
        else:
            arities = self.n_feature_values
        self._init_tree(arities)
        return self.partial_fit(X, y)

    def partial_fit(self, X, y, classes=None):
        """
        Learn from ``(X, y)`` in row order, continuing from the current tree.

        Parameters
        ----------
        X : array-like of shape (n_samples, n_features)
            Integer-coded features.
        y : array-like of shape (n_samples,)
            Class labels in {0, 1}.
        classes : array-like, optional
            Accepted for scikit-learn compatibility; must be a subset of
            ``{0, 1}``.

        Returns
        -------
        self
        """
        if classes is not None and not set(np.asarray(classes).tolist()) <= {0, 1}:
            raise ValueError(f"only binary classes {{0, 1}} are supported, got {classes}")
        X, y = self.check_examples(X, y)
        for x_row, y_row in zip(X, y):
            self._update(x_row, int(y_row))
        return self

    def update(self, x, y):
        """
        Learn from a single example.

        Parameters
        ----------
        x : array-like of shape (n_features,)
            Integer-coded feature values.
        y : int
            Class label, 0 or 1.

        Returns
        -------
        list[SplitDecision]
            The splits performed by this update (usually empty).

        Raises
        ------
        OutOfRangeFeatureValue
            If a value of ``x`` lies outside its feature's arity.
        """
        self._ensure_tree()
        X = self._check_X(np.asarray(x).reshape(1, -1))
        y = self._check_y([y], 1)
        self._check_ranges(X)
        return self._update(X[0], int(y[0]))

    def _update(self, x, y):
        leaf = self.root_.route_to_leaf(x)
        leaf.add_example(x, y)
        self.n_examples_processed_ += 1

        # decide for every leaf first, then split, so no decision sees a split
        # made earlier in the same pass
        selected = []
        for leaf in self._leaves:
            if leaf.n_examples < self.nmin:
                continue
            decision = should_split(leaf.stats, leaf.n_examples,
                                    delta=self.delta, tau=self.tau, nmin=self.nmin)
            if decision is not None:
                selected.append((leaf, decision))

        level = logging.INFO if self.verbose > 0 else logging.DEBUG
        for leaf, decision in selected:
            new_leaves = leaf.split(decision.feature, self.n_feature_values_)
            self._leaves.remove(leaf)
            self._leaves.extend(new_leaves)
            logger.log(level, "example %d: split on feature %d (%s), gap %.6f, eps %.6f",
                       self.n_examples_processed_, decision.feature, decision.reason,
                       decision.candidates.gap, decision.bound)
        if selected:
            logger.log(level, "example %d: %d split(s), %d leaves",
                       self.n_examples_processed_, len(selected), len(self._leaves))
        return [decision for _, decision in selected]

    # ------------------------------------------------------------------
    # Prediction
    # ------------------------------------------------------------------
    def _predict_one(self, x) -> float:
        node = self.root_
        while not node.is_leaf:
            child = node.child_for(x)
            # a child reached by too few examples is not trusted; stay here
            if child.n_subtree_examples() < self.min_prediction_examples:
                break
            node = child
        return _positive_rate(node.evidence, x)

    def predict_one(self, x) -> float:
        """
        Probability that the example ``x`` belongs to class 1.

        The example is routed from the root, but the walk stops above any
        child whose subtree has received fewer than ``min_prediction_examples``
        examples; the node where it stops provides the statistics.

        Parameters
        ----------
        x : array-like of shape (n_features,)

        Returns
        -------
        float
            A probability in ``[0, 1]``; exactly 0.5 for a node without
            statistics.
        """
        self._ensure_tree()
        X = self._check_X(np.asarray(x).reshape(1, -1))
        return self._predict_one(X[0])

    def predict_proba(self, X):
        """
        Predict class probabilities for the provided samples.

        Parameters
        ----------
        X : array-like of shape (n_samples, n_features)
            Integer-coded features.

        Returns
        -------
        ndarray of shape (n_samples, 2)
            Columns are the probabilities of class 0 and class 1.

        Raises
        ------
        ValueError
            If the estimator has no tree yet and ``n_feature_values`` is
            unknown.
        """
        self._ensure_tree()
        X = self._check_X(X)
        p = np.array([self._predict_one(x) for x in X], dtype=float)
        return np.column_stack([1.0 - p, p])

    def predict(self, X):
        """Predict class labels; class 1 when its probability is at least 0.5."""
        proba = self.predict_proba(X)
        return self.classes_[(proba[:, 1] >= 0.5).astype(int)]

    # ------------------------------------------------------------------
    # Tree inspection
    # ------------------------------------------------------------------
    @property
    def leaves_(self) -> tuple[TreeNode, ...]:
        """Live leaves, in the order they were created."""
        self._ensure_tree()
        return tuple(self._leaves)

    @property
    def n_nodes_(self) -> int:
        self._ensure_tree()
        return sum(1 for _ in self.root_.iter_nodes())

    @property
    def n_leaves_(self) -> int:
        return len(self.leaves_)

    @property
    def depth_(self) -> int:
        self._ensure_tree()
        return self.root_.depth()

    def get_visualization(self) -> str:
        """Indented text dump of the tree (``feature=value:`` per branch)."""
        self._ensure_tree()
        return self.root_.get_visualization("")

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    def write_model(self, path) -> None:
        """
        Write the current tree to ``path``.

        The file can be read back with :meth:`read_model`; see
        :mod:`vfdtpy.codec` for the format.
        """
        self._ensure_tree()
        codec.dump(self.root_, path)

    def read_model(self, path, n_examples_processed: int = 0):
        """
        Replace the current tree with the one stored at ``path``.

        Parameters
        ----------
        path : str or path-like
            Model file written by :meth:`write_model`.
        n_examples_processed : int, default=0
            Number of examples that were processed to obtain the stored
            model.

        Returns
        -------
        self

        Raises
        ------
        CorruptModelFile
            If the file is malformed; the current tree is left untouched.
        """
        self._validate_params()
        arities = None
        if self.n_feature_values is not None:
            arities = self._check_arities(self.n_feature_values)
        model = codec.load(path, n_feature_values=arities)
        self.n_feature_values_ = model.n_feature_values
        self.n_features_in_ = len(model.n_feature_values)
        self.classes_ = np.array([0, 1])
        self.root_ = model.root
        self._leaves = list(model.root.iter_leaves())
        self.n_examples_processed_ = int(n_examples_processed)
        return self

    # ------------------------------------------------------------------
    # Rule tracing / Graphviz / printing helpers
    # ------------------------------------------------------------------
    def _name(self, f: int, fn=None) -> str:
        fn = fn if fn is not None else self.feature_names
        return fn[f] if (fn is not None and 0 <= f < len(fn)) else f"X[{f}]"

    def export_rules(self, *, feature_names=None) -> list[str]:
        """
        Export one rule per leaf, ``<antecedent> => p=<probability>``.

        The probability is the fraction of class 1 among the examples the
        leaf has seen (0.5 for a leaf that has seen none).
        """
        self._ensure_tree()
        rules: list[str] = []
        self._collect_rules(self.root_, [], rules, feature_names)
        return rules

    def _collect_rules(self, node: TreeNode, parts, rules, fn):
        if node.is_leaf:
            body = " AND ".join(parts) if parts else "<root>"
            counts = node.stats.class_counts()
            p = counts[1] / counts.sum() if counts.sum() > 0 else 0.5
            rules.append(f"{body} => p={p:.4f} (n={node.n_examples})")
            return
        name = self._name(node.split_feature, fn)
        for v, child in enumerate(node.children):
            self._collect_rules(child, parts + [f"{name} == {v}"], rules, fn)

    def print_tree(self, feature_names=None):
        """Pretty-print the tree to ``stdout``, one branch per line."""
        self._ensure_tree()
        self._print_node(self.root_, "", feature_names)

    def _print_node(self, node: TreeNode, indent="", fn=None):
        if node.is_leaf:
            counts = node.stats.class_counts()
            print(f"{indent}Leaf | n={node.n_examples} dist={counts.tolist()}")
            return
        name = self._name(node.split_feature, fn)
        for v, child in enumerate(node.children):
            print(f"{indent}{name}={v}:")
            self._print_node(child, indent + "| ", fn)

    def export_graphviz(self, filename: str | None = None, *, feature_names=None,
                        format: str = "png") -> str:
        """
        Export the tree structure in Graphviz format.

        Parameters
        ----------
        filename : str or None, default=None
            Basename of the output file (the extension is determined by
            ``format``).  If None, the DOT source is returned and nothing is
            written.
        feature_names : list[str], optional
            Custom names for the input features.
        format : str, default="png"
            Graphviz output format.  ``'dot'`` writes the DOT source directly
            and does not call the external ``dot`` command.

        Returns
        -------
        str
            Path to the written file, or the DOT source if filename is None.
        """
        self._ensure_tree()
        try:
            import graphviz
        except ImportError:
            raise RuntimeError("Graphviz is required for export_graphviz but not installed.")
        dot = graphviz.Digraph(format=format)
        self._add_graph_nodes(dot, self.root_, "0", feature_names)

        if filename is None:
            return dot.source

        if format.lower() == "dot":
            path = f"{filename}.dot"
            dot.save(path)
            return path
        try:
            dot.render(filename, cleanup=True)
            return f"{filename}.{format}"
        except graphviz.ExecutableNotFound:
            # no dot binary: keep the source
            fallback_path = f"{filename}.dot"
            dot.save(fallback_path)
            return fallback_path

    def _add_graph_nodes(self, dot, node: TreeNode, name: str, fn):
        if node.is_leaf:
            counts = node.stats.class_counts()
            dot.node(name, f"n={node.n_examples}\n{counts.tolist()}",
                     shape="box", style="filled", color="lightgrey")
            return
        dot.node(name, self._name(node.split_feature, fn),
                 shape="ellipse", style="filled", color="lightblue")
        for v, child in enumerate(node.children):
            child_name = f"{name}_{v}"
            self._add_graph_nodes(dot, child, child_name, fn)
            dot.edge(name, child_name, label=f"= {v}")
