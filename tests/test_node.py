import numpy as np
import pytest
from vfdtpy import NodeStats, OutOfRangeFeatureValue, TreeNode


def _grown_leaf():
    """A root leaf over three features (arities 2, 3, 2) with a few examples."""
    node = TreeNode([2, 3, 2], range(3))
    for x, y in [([0, 0, 1], 0), ([0, 2, 1], 1), ([1, 2, 0], 1), ([1, 1, 0], 0)]:
        node.add_example(np.array(x), y)
    return node


def test_stats_track_only_eligible_features():
    stats = NodeStats([2, 3, 2], [2, 0])
    assert stats.features == (0, 2)
    assert 1 not in stats
    stats.add([1, 2, 0], 1)
    assert stats.table(0).tolist() == [[0, 0], [0, 1]]
    assert stats.table(2).tolist() == [[0, 1], [0, 0]]
    assert stats.class_counts().tolist() == [0, 1]


def test_stats_counts_beyond_table_are_zero():
    stats = NodeStats([2], [0])
    stats.add([1], 0)
    assert stats.counts_at(0, 1).tolist() == [1, 0]
    assert stats.counts_at(0, 5).tolist() == [0, 0]
    assert stats.counts_at(0, -1).tolist() == [0, 0]


def test_stats_out_of_range_leaves_tables_untouched():
    stats = NodeStats([2, 2], [0, 1])
    with pytest.raises(OutOfRangeFeatureValue):
        stats.add([1, 2], 0)
    # feature 0 was valid but must not have been counted
    assert stats.total() == 0


def test_leaf_counts_match_example_count():
    node = _grown_leaf()
    assert node.n_examples == 4
    for f in node.stats.features:
        assert node.stats.table(f).sum() == node.n_examples
    assert node.stats.is_consistent(4)


def test_add_example_rejects_bad_label():
    node = TreeNode([2], [0])
    with pytest.raises(ValueError):
        node.add_example([0], 2)
    assert node.n_examples == 0


def test_split_creates_fresh_children():
    node = _grown_leaf()
    children = node.split(1, [2, 3, 2])
    assert len(children) == 3
    assert not node.is_leaf
    assert node.split_feature == 1
    assert node.children == tuple(children)
    for child in children:
        assert child.is_leaf
        assert child.n_examples == 0
        assert child.possible_split_features == (0, 2)
        assert child.stats.total() == 0


def test_split_is_one_way():
    node = _grown_leaf()
    node.split(0, [2, 3, 2])
    # internal nodes expose no live statistics and cannot split again
    with pytest.raises(TypeError):
        node.stats
    with pytest.raises(TypeError):
        node.add_example([0, 0, 0], 1)
    with pytest.raises(TypeError):
        node.split(1, [2, 3, 2])
    # the pre-split counts survive only as frozen support
    assert node.evidence.n_examples == 4


def test_split_on_ineligible_feature_raises():
    node = TreeNode([2, 2], [1])
    with pytest.raises(ValueError):
        node.split(0, [2, 2])


def test_route_to_leaf_follows_split_values():
    root = TreeNode([2, 3], range(2))
    children = root.split(1, [2, 3])
    grandchildren = children[2].split(0, [2, 3])
    assert root.route_to_leaf([0, 1]) is children[1]
    assert root.route_to_leaf([1, 2]) is grandchildren[1]


def test_route_to_leaf_out_of_range():
    root = TreeNode([2, 3], range(2))
    root.split(1, [2, 3])
    with pytest.raises(OutOfRangeFeatureValue) as exc_info:
        root.route_to_leaf([0, 3])
    assert exc_info.value.feature == 1
    # also an IndexError for callers that treat it generically
    with pytest.raises(IndexError):
        root.route_to_leaf([0, -1])


def test_traversal_and_depth():
    root = TreeNode([2, 2], range(2))
    children = root.split(0, [2, 2])
    children[1].split(1, [2, 2])
    assert len(list(root.iter_nodes())) == 5
    assert len(list(root.iter_leaves())) == 3
    assert root.depth() == 2


def test_subtree_examples_include_split_snapshot():
    root = _grown_leaf()
    children = root.split(1, [2, 3, 2])
    children[2].add_example([1, 2, 0], 1)
    children[2].add_example([0, 2, 1], 0)
    grandchildren = children[2].split(0, [2, 3, 2])
    grandchildren[1].add_example([1, 2, 1], 1)
    # 4 before the root split, 2 before the child split, 1 in a leaf
    assert root.n_subtree_examples() == 7
    assert children[2].n_subtree_examples() == 3
    assert children[0].n_subtree_examples() == 0


def test_visualization_format():
    root = TreeNode([2, 2], range(2))
    children = root.split(1, [2, 2])
    children[0].split(0, [2, 2])
    assert root.get_visualization() == (
        "1=0:\n"
        "| 0=0:\n"
        "| | Leaf\n"
        "| 0=1:\n"
        "| | Leaf\n"
        "1=1:\n"
        "| Leaf\n"
    )
