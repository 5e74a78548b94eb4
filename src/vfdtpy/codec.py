# -*- coding: utf-8 -*-
"""
vfdtpy.codec
============

Line-oriented text format for Hoeffding trees.

The first line holds the number of nodes.  Every following line describes one
node, fields separated by single spaces::

    <id> L pf:[<f>,...] n:<count> nijk:[<f>:<v>:<c>:<k>,...]
    <id> D f:<feature> ch:[<id>,...] n:<count> nijk:[<f>:<v>:<c>:<k>,...]

``L`` lines are leaves with their eligible features, example count and
non-zero ``(feature, value, class, count)`` cells.  ``D`` lines are internal
nodes with their split feature, children in value order, and the frozen
support statistics the node had when it split.  ``n:`` on leaves and
``n:``/``nijk:`` on internal nodes are optional when reading.

Leaves are numbered ``0..L-1`` from left to right, internal nodes continue in
post-order, so every node is listed after all of its descendants.  Feature
arities are not stored: they are recovered from the number of children of
split nodes and from the largest value seen in the counts, unless the caller
supplies them.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

import numpy as np

from .exceptions import CorruptModelFile
from .node import Internal, Leaf, TreeNode
from .stats import N_CLASSES, NodeStats

logger = logging.getLogger(__name__)

LEAF_MARKER = "L"
INTERNAL_MARKER = "D"


# -----------------------------------------------------------------------------
# Encoding
# -----------------------------------------------------------------------------
def assign_ids(root: TreeNode) -> list[TreeNode]:
    """Number the nodes of ``root``; return them ordered by their new id."""
    leaves = list(root.iter_leaves())
    for i, leaf in enumerate(leaves):
        leaf.node_id = i
    internals = _internal_postorder(root)
    for j, node in enumerate(internals, start=len(leaves)):
        node.node_id = j
    return leaves + internals


def _internal_postorder(root: TreeNode) -> list[TreeNode]:
    out = []
    stack = [(root, False)]
    while stack:
        node, expanded = stack.pop()
        if node.is_leaf:
            continue
        if expanded:
            out.append(node)
        else:
            stack.append((node, True))
            stack.extend((child, False) for child in reversed(node.state.children))
    return out


def _fmt_list(values) -> str:
    return "[" + ",".join(str(int(v)) for v in values) + "]"


def _fmt_cells(stats: NodeStats) -> str:
    return "[" + ",".join(f"{f}:{v}:{c}:{k}" for f, v, c, k in stats.nonzero_entries()) + "]"


def _encode_node(node: TreeNode) -> str:
    state = node.state
    if isinstance(state, Leaf):
        return (f"{node.node_id} {LEAF_MARKER} pf:{_fmt_list(node.possible_split_features)} "
                f"n:{state.n_examples} nijk:{_fmt_cells(state.stats)}")
    line = (f"{node.node_id} {INTERNAL_MARKER} f:{state.split_feature} "
            f"ch:{_fmt_list(child.node_id for child in state.children)}")
    if state.support is not None:
        line += f" n:{state.support.n_examples} nijk:{_fmt_cells(state.support.stats)}"
    return line


def dumps(root: TreeNode) -> str:
    """Serialize the tree rooted at ``root``."""
    nodes = assign_ids(root)
    lines = [str(len(nodes))]
    lines.extend(_encode_node(node) for node in nodes)
    return "\n".join(lines) + "\n"


def dump(root: TreeNode, path) -> None:
    text = dumps(root)
    with open(path, "w", encoding="utf-8") as fh:
        fh.write(text)
    logger.info("wrote model with %d nodes to %s", sum(1 for _ in root.iter_nodes()),
                os.fspath(path))


# -----------------------------------------------------------------------------
# Decoding
# -----------------------------------------------------------------------------
@dataclass
class _Record:
    node_id: int
    line_no: int
    is_leaf: bool
    possible_split_features: tuple[int, ...] = ()
    split_feature: int | None = None
    children: list[int] = field(default_factory=list)
    n_examples: int | None = None
    cells: list[tuple[int, int, int, int]] = field(default_factory=list)


@dataclass
class DecodedModel:
    """A decoded tree and the feature arities it was rebuilt with."""
    root: TreeNode
    n_feature_values: tuple[int, ...]


def _int(token: str, line_no: int, what: str) -> int:
    # plain ASCII digits only: no sign, no underscores, no other scripts
    if not (token.isascii() and token.isdigit()):
        raise CorruptModelFile(f"bad {what} {token!r}", line_no)
    return int(token)


def _parse_list(text: str, line_no: int, what: str) -> list[str]:
    if not (text.startswith("[") and text.endswith("]")):
        raise CorruptModelFile(f"{what} must be enclosed in [...], got {text!r}", line_no)
    # the writer emits no trailing comma but older files do
    return [t for t in text[1:-1].split(",") if t]


def _parse_cells(text: str, line_no: int) -> list[tuple[int, int, int, int]]:
    cells = []
    for item in _parse_list(text, line_no, "nijk"):
        parts = item.split(":")
        if len(parts) != 4:
            raise CorruptModelFile(f"bad nijk cell {item!r}", line_no)
        f, v, c, k = (_int(p, line_no, "nijk value") for p in parts)
        if c >= N_CLASSES:
            raise CorruptModelFile(f"class {c} in nijk cell {item!r} is not 0 or 1", line_no)
        cells.append((f, v, c, k))
    return cells


def _parse_line(line: str, line_no: int) -> _Record:
    tokens = line.split()
    if len(tokens) < 3:
        raise CorruptModelFile(f"expected '<id> <marker> ...', got {line!r}", line_no)
    node_id = _int(tokens[0], line_no, "node id")
    marker = tokens[1]
    if marker not in (LEAF_MARKER, INTERNAL_MARKER):
        raise CorruptModelFile(f"unknown node marker {marker!r}", line_no)
    fields = {}
    for token in tokens[2:]:
        key, sep, value = token.partition(":")
        if not sep:
            raise CorruptModelFile(f"field {token!r} is not of the form key:value", line_no)
        if key in fields:
            raise CorruptModelFile(f"duplicate field {key!r}", line_no)
        fields[key] = value

    rec = _Record(node_id=node_id, line_no=line_no, is_leaf=marker == LEAF_MARKER)
    if rec.is_leaf:
        required, optional = {"pf", "nijk"}, {"n"}
    else:
        required, optional = {"f", "ch"}, {"n", "nijk"}
    missing = required - fields.keys()
    if missing:
        raise CorruptModelFile(f"missing field(s) {sorted(missing)}", line_no)
    unknown = fields.keys() - required - optional
    if unknown:
        raise CorruptModelFile(f"unknown field(s) {sorted(unknown)}", line_no)

    if rec.is_leaf:
        pf = [_int(t, line_no, "feature") for t in _parse_list(fields["pf"], line_no, "pf")]
        if len(set(pf)) != len(pf):
            raise CorruptModelFile("repeated feature in pf", line_no)
        rec.possible_split_features = tuple(sorted(pf))
    else:
        rec.split_feature = _int(fields["f"], line_no, "split feature")
        rec.children = [_int(t, line_no, "child id")
                        for t in _parse_list(fields["ch"], line_no, "ch")]
        if not rec.children:
            raise CorruptModelFile("internal node without children", line_no)
    if "n" in fields:
        rec.n_examples = _int(fields["n"], line_no, "example count")
    if "nijk" in fields:
        rec.cells = _parse_cells(fields["nijk"], line_no)
    return rec


def _parse_records(text: str) -> list[_Record]:
    lines = text.splitlines()
    while lines and not lines[-1].strip():
        lines.pop()
    if not lines:
        raise CorruptModelFile("empty model file")
    n_nodes = _int(lines[0].strip(), 1, "node count")
    body = lines[1:]
    if len(body) != n_nodes:
        raise CorruptModelFile(f"header announces {n_nodes} nodes but {len(body)} follow")
    return [_parse_line(line, i) for i, line in enumerate(body, start=2)]


def _find_root(records: dict[int, _Record]) -> _Record:
    parent_of = {}
    for rec in records.values():
        if rec.is_leaf:
            continue
        for child in rec.children:
            if child not in records:
                raise CorruptModelFile(f"child {child} of node {rec.node_id} does not exist",
                                       rec.line_no)
            if child in parent_of:
                raise CorruptModelFile(f"node {child} has more than one parent", rec.line_no)
            parent_of[child] = rec.node_id
    roots = [r for r in records.values() if r.node_id not in parent_of]
    if len(roots) != 1:
        raise CorruptModelFile(f"expected exactly one root, found {len(roots)}")
    root = roots[0]
    # every node must hang below the root
    seen, stack = set(), [root.node_id]
    while stack:
        nid = stack.pop()
        seen.add(nid)
        stack.extend(records[nid].children)
    if len(seen) != len(records):
        raise CorruptModelFile("some nodes are not reachable from the root")
    return root


def _infer_arities(records: dict[int, _Record], n_feature_values=None) -> tuple[int, ...]:
    split_arity: dict[int, int] = {}
    max_value: dict[int, int] = {}
    features = set()
    for rec in records.values():
        features.update(rec.possible_split_features)
        if not rec.is_leaf:
            features.add(rec.split_feature)
            prev = split_arity.setdefault(rec.split_feature, len(rec.children))
            if prev != len(rec.children):
                raise CorruptModelFile(
                    f"feature {rec.split_feature} splits into {prev} and "
                    f"{len(rec.children)} children", rec.line_no)
        for f, v, _, _ in rec.cells:
            features.add(f)
            max_value[f] = max(max_value.get(f, 0), v)
    n_features = max(features) + 1 if features else 0

    if n_feature_values is not None:
        arities = tuple(int(a) for a in n_feature_values)
        if len(arities) != n_features:
            raise CorruptModelFile(
                f"model uses {n_features} features, {len(arities)} arities were given")
    else:
        arities = tuple(split_arity.get(f, max_value.get(f, 0) + 1) for f in range(n_features))

    for f, n_children in split_arity.items():
        if arities[f] != n_children:
            raise CorruptModelFile(
                f"feature {f} has arity {arities[f]} but splits into {n_children} children")
    for f, v in max_value.items():
        if v >= arities[f]:
            raise CorruptModelFile(f"value {v} of feature {f} exceeds arity {arities[f]}")
    return arities


def _build_stats(rec: _Record, features, arities) -> Leaf:
    stats = NodeStats(arities, features)
    for f, v, c, k in rec.cells:
        if f not in stats:
            raise CorruptModelFile(f"counts for feature {f}, which is not tracked here",
                                   rec.line_no)
        stats.table(f)[v, c] = k
    if rec.n_examples is None:
        n = stats.total()
    else:
        n = rec.n_examples
    if not stats.is_consistent(n):
        raise CorruptModelFile(f"counts do not add up to the example count {n}", rec.line_no)
    return Leaf(stats, n)


def _build(rec: _Record, records: dict[int, _Record], arities) -> TreeNode:
    if rec.is_leaf:
        return TreeNode.from_state(
            rec.possible_split_features,
            _build_stats(rec, rec.possible_split_features, arities))

    children = [_build(records[cid], records, arities) for cid in rec.children]
    child_pf = {child.possible_split_features for child in children}
    if len(child_pf) != 1:
        raise CorruptModelFile(
            f"children of node {rec.node_id} disagree on eligible features", rec.line_no)
    remaining = child_pf.pop()
    if rec.split_feature in remaining:
        raise CorruptModelFile(
            f"feature {rec.split_feature} is split on twice along one path", rec.line_no)
    pf = tuple(sorted(remaining + (rec.split_feature,)))
    support = None
    if rec.n_examples is not None or rec.cells:
        support = _build_stats(rec, pf, arities)
    state = Internal(split_feature=rec.split_feature, children=children, support=support)
    return TreeNode.from_state(pf, state)


def loads(text: str, n_feature_values=None) -> DecodedModel:
    """
    Rebuild a tree from its text form.

    Parameters
    ----------
    text : str
        Model text as produced by :func:`dumps`.
    n_feature_values : sequence of int, optional
        Known feature arities.  When omitted they are inferred from the file.

    Returns
    -------
    DecodedModel

    Raises
    ------
    CorruptModelFile
        If the text is malformed or describes an inconsistent tree.  No
        partial tree is returned.
    """
    parsed = _parse_records(text)
    records = {}
    for rec in parsed:
        if rec.node_id in records:
            raise CorruptModelFile(f"duplicate node id {rec.node_id}", rec.line_no)
        records[rec.node_id] = rec
    root_rec = _find_root(records)
    arities = _infer_arities(records, n_feature_values)
    root = _build(root_rec, records, arities)
    if set(root.possible_split_features) != set(range(len(arities))):
        raise CorruptModelFile("the root does not cover every feature of the model")
    return DecodedModel(root=root, n_feature_values=arities)


def load(path, n_feature_values=None) -> DecodedModel:
    with open(path, "r", encoding="utf-8") as fh:
        text = fh.read()
    model = loads(text, n_feature_values)
    logger.info("read model with %d nodes from %s", len(list(model.root.iter_nodes())),
                os.fspath(path))
    return model
