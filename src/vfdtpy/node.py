# -*- coding: utf-8 -*-
"""
vfdtpy.node
===========

Tree nodes of a Hoeffding tree.

A :class:`TreeNode` is a tagged variant: its ``state`` is either a
:class:`Leaf`, which accumulates statistics, or an :class:`Internal` node,
which routes examples to one child per value of its split feature.  The only
transition is ``Leaf -> Internal`` through :meth:`TreeNode.split`; it happens
in place so that the parent keeps pointing at the same node object.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field

from .exceptions import OutOfRangeFeatureValue
from .stats import NodeStats


# -----------------------------------------------------------------------------
# Node states
# -----------------------------------------------------------------------------
@dataclass
class Leaf:
    """Statistics of a leaf: count tables and the number of examples seen."""
    stats: NodeStats
    n_examples: int = 0


@dataclass
class Internal:
    """A split node.

    ``support`` is the leaf state as it stood when the node split.  It is
    frozen: nothing updates it afterwards, and it is only read when
    prediction stops at this node because a child lacks evidence.
    """
    split_feature: int
    children: list = field(default_factory=list)
    support: Leaf | None = None


# -----------------------------------------------------------------------------
# Node
# -----------------------------------------------------------------------------
class TreeNode:
    """One node of a Hoeffding tree.

    Parameters
    ----------
    n_feature_values : sequence of int
        Arity of every feature of the model.
    possible_split_features : iterable of int
        Features not yet used by a split on the path from the root.  They are
        the features tracked by the node statistics while it is a leaf.

    Attributes
    ----------
    possible_split_features : tuple of int
        Sorted eligible features.
    state : Leaf or Internal
        Current variant of the node.
    node_id : int or None
        Identifier assigned by the model codec right before encoding.  It is
        not part of the node identity.
    """

    __slots__ = ("possible_split_features", "state", "node_id")

    def __init__(self, n_feature_values, possible_split_features):
        self.possible_split_features: tuple[int, ...] = tuple(
            sorted(set(int(f) for f in possible_split_features)))
        self.state: Leaf | Internal = Leaf(
            NodeStats(n_feature_values, self.possible_split_features))
        self.node_id: int | None = None

    @classmethod
    def from_state(cls, possible_split_features, state: Leaf | Internal) -> "TreeNode":
        """Build a node around an existing state (used when decoding)."""
        node = cls.__new__(cls)
        node.possible_split_features = tuple(sorted(possible_split_features))
        node.state = state
        node.node_id = None
        return node

    # ------------------------------------------------------------------
    # Variant access
    # ------------------------------------------------------------------
    @property
    def is_leaf(self) -> bool:
        return isinstance(self.state, Leaf)

    def _leaf(self) -> Leaf:
        if not isinstance(self.state, Leaf):
            raise TypeError("internal nodes carry no live statistics")
        return self.state

    def _internal(self) -> Internal:
        if not isinstance(self.state, Internal):
            raise TypeError("leaf nodes have no split")
        return self.state

    @property
    def stats(self) -> NodeStats:
        return self._leaf().stats

    @property
    def n_examples(self) -> int:
        return self._leaf().n_examples

    @property
    def split_feature(self) -> int:
        return self._internal().split_feature

    @property
    def children(self) -> tuple["TreeNode", ...]:
        return tuple(self._internal().children)

    @property
    def evidence(self) -> Leaf:
        """Statistics prediction may use at this node.

        The live statistics of a leaf, or the frozen support of an internal
        node (an empty one when it is unknown).
        """
        state = self.state
        if isinstance(state, Leaf):
            return state
        if state.support is None:
            return Leaf(NodeStats({}, ()), 0)
        return state.support

    def n_subtree_examples(self) -> int:
        """Examples that have reached this node.

        Each example is counted once: in the leaf that holds it, or in the
        support of the internal node that was a leaf when it arrived.
        """
        total = 0
        for node in self.iter_nodes():
            state = node.state
            if isinstance(state, Leaf):
                total += state.n_examples
            elif state.support is not None:
                total += state.support.n_examples
        return total

    # ------------------------------------------------------------------
    # Routing and learning
    # ------------------------------------------------------------------
    def child_for(self, x) -> "TreeNode":
        """Child of this internal node selected by the value of ``x``."""
        state = self._internal()
        v = x[state.split_feature]
        if not 0 <= v < len(state.children):
            raise OutOfRangeFeatureValue(state.split_feature, v, len(state.children))
        return state.children[int(v)]

    def route_to_leaf(self, x) -> "TreeNode":
        """Follow the split features from this node down to a leaf."""
        node = self
        while not node.is_leaf:
            node = node.child_for(x)
        return node

    def add_example(self, x, y: int) -> None:
        """Count ``(x, y)`` at this leaf."""
        leaf = self._leaf()
        if y not in (0, 1):
            raise ValueError(f"class label must be 0 or 1, got {y!r}")
        leaf.stats.add(x, y)
        leaf.n_examples += 1

    def split(self, feature: int, n_feature_values) -> list["TreeNode"]:
        """
        Turn this leaf into an internal node splitting on ``feature``.

        One fresh leaf is created per value of ``feature``; each child may
        still split on the remaining eligible features and starts with empty
        statistics.  The leaf state is kept only as the frozen support of the
        new internal node.

        Parameters
        ----------
        feature : int
            Split feature; must be one of ``possible_split_features``.
        n_feature_values : sequence of int
            Arity of every feature.

        Returns
        -------
        list of TreeNode
            The new leaves, indexed by feature value.
        """
        leaf = self._leaf()
        if feature not in self.possible_split_features:
            raise ValueError(
                f"feature {feature} is not eligible for splitting here; "
                f"eligible: {list(self.possible_split_features)}")
        remaining = [f for f in self.possible_split_features if f != feature]
        children = [TreeNode(n_feature_values, remaining)
                    for _ in range(int(n_feature_values[feature]))]
        self.state = Internal(split_feature=int(feature), children=children, support=leaf)
        return list(children)

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------
    def iter_nodes(self) -> Iterator["TreeNode"]:
        """Pre-order traversal, children in value order."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            if not node.is_leaf:
                stack.extend(reversed(node.state.children))

    def iter_leaves(self) -> Iterator["TreeNode"]:
        """Leaves from left to right."""
        return (n for n in self.iter_nodes() if n.is_leaf)

    def depth(self) -> int:
        if self.is_leaf:
            return 0
        return 1 + max(child.depth() for child in self.state.children)

    def get_visualization(self, indent: str = "") -> str:
        """Indented dump: one ``feature=value:`` line per branch, ``Leaf`` at the ends."""
        if self.is_leaf:
            return indent + "Leaf\n"
        state = self.state
        parts = []
        for v, child in enumerate(state.children):
            parts.append(f"{indent}{state.split_feature}={v}:\n")
            parts.append(child.get_visualization(indent + "| "))
        return "".join(parts)

    def __repr__(self) -> str:
        if self.is_leaf:
            return (f"TreeNode(Leaf, n_examples={self.state.n_examples}, "
                    f"possible_split_features={list(self.possible_split_features)})")
        return (f"TreeNode(Internal, split_feature={self.state.split_feature}, "
                f"n_children={len(self.state.children)})")
