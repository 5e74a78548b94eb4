import itertools

import numpy as np
import pytest
from vfdtpy import CorruptModelFile, TreeNode, VfdtClassifier
from vfdtpy import codec

ARITIES = [2, 3, 2]


def _all_examples(arities):
    return np.array(list(itertools.product(*(range(a) for a in arities))))


def _leaf_tree():
    root = TreeNode(ARITIES, range(3))
    for x, y in [([0, 0, 1], 1), ([1, 2, 1], 0), ([1, 2, 0], 1)]:
        root.add_example(x, y)
    return root


def _one_level_tree():
    root = _leaf_tree()
    children = root.split(1, ARITIES)
    children[0].add_example([1, 0, 0], 1)
    children[2].add_example([0, 2, 1], 0)
    children[2].add_example([0, 2, 0], 0)
    return root


def _two_level_tree():
    root = _one_level_tree()
    grandchildren = root.children[2].split(0, ARITIES)
    for _ in range(3):
        grandchildren[1].add_example([1, 2, 1], 1)
    grandchildren[1].add_example([1, 2, 0], 0)
    return root


def _assert_same_tree(a, b):
    assert a.possible_split_features == b.possible_split_features
    assert a.is_leaf == b.is_leaf
    assert a.evidence.n_examples == b.evidence.n_examples
    assert a.evidence.stats == b.evidence.stats
    if not a.is_leaf:
        assert a.split_feature == b.split_feature
        assert len(a.children) == len(b.children)
        for ca, cb in zip(a.children, b.children):
            _assert_same_tree(ca, cb)


def _predictions(root, path, gate):
    codec.dump(root, path)
    clf = VfdtClassifier(ARITIES, min_prediction_examples=gate).read_model(path)
    return clf.predict_proba(_all_examples(ARITIES))[:, 1]


@pytest.mark.parametrize("build", [_leaf_tree, _one_level_tree, _two_level_tree])
def test_round_trip_rebuilds_same_tree(build):
    root = build()
    decoded = codec.loads(codec.dumps(root), n_feature_values=ARITIES)
    _assert_same_tree(root, decoded.root)
    assert decoded.n_feature_values == tuple(ARITIES)


@pytest.mark.parametrize("build", [_leaf_tree, _one_level_tree, _two_level_tree])
@pytest.mark.parametrize("gate", [0, 1, 3])
def test_round_trip_keeps_predictions(build, gate, tmp_path):
    first = _predictions(build(), tmp_path / "first.model", gate)
    clf = VfdtClassifier(ARITIES, min_prediction_examples=gate).read_model(tmp_path / "first.model")
    clf.write_model(tmp_path / "second.model")
    second = VfdtClassifier(ARITIES, min_prediction_examples=gate).read_model(
        tmp_path / "second.model")
    assert np.array_equal(first, second.predict_proba(_all_examples(ARITIES))[:, 1])
    assert (tmp_path / "first.model").read_text() == (tmp_path / "second.model").read_text()


def test_round_trip_of_learned_tree(tmp_path):
    rng = np.random.default_rng(3)
    X = np.column_stack([rng.integers(0, a, 1500) for a in ARITIES])
    y = (X[:, 0] == 1) & (X[:, 1] != 2)
    clf = VfdtClassifier(ARITIES, delta=0.01, tau=0.05, nmin=10, min_prediction_examples=5)
    clf.fit(X, y.astype(int))
    assert clf.depth_ >= 1
    clf.write_model(tmp_path / "vfdt.model")
    restored = VfdtClassifier(min_prediction_examples=5).read_model(
        tmp_path / "vfdt.model", n_examples_processed=1500)
    assert restored.n_examples_processed_ == 1500
    assert restored.n_leaves_ == clf.n_leaves_
    X_all = _all_examples(ARITIES)
    assert np.array_equal(clf.predict_proba(X_all), restored.predict_proba(X_all))
    # learning continues from the restored tree
    restored.partial_fit(X[:100], y[:100].astype(int))
    assert restored.n_examples_processed_ == 1600


def test_encoding_layout():
    root = TreeNode([2, 2], range(2))
    root.add_example([0, 0], 1)
    root.add_example([0, 1], 0)
    children = root.split(1, [2, 2])
    children[0].add_example([1, 0], 1)
    assert codec.dumps(root) == (
        "3\n"
        "0 L pf:[0] n:1 nijk:[0:1:1:1]\n"
        "1 L pf:[0] n:0 nijk:[]\n"
        "2 D f:1 ch:[0,1] n:2 nijk:[0:0:0:1,0:0:1:1,1:0:1:1,1:1:0:1]\n"
    )


def test_internal_ids_follow_descendants():
    root = _two_level_tree()
    nodes = codec.assign_ids(root)
    assert [n.node_id for n in nodes] == list(range(len(nodes)))
    n_leaves = sum(1 for n in nodes if n.is_leaf)
    assert all(n.is_leaf for n in nodes[:n_leaves])
    for node in root.iter_nodes():
        for desc in node.iter_nodes():
            if desc is not node:
                assert desc.node_id < node.node_id
    assert root.node_id == len(nodes) - 1


def test_arities_are_inferred():
    decoded = codec.loads(codec.dumps(_two_level_tree()))
    # feature 1 is split on (3 children); feature 2 reached value 1; feature 0
    # is split on below the root
    assert decoded.n_feature_values == (2, 3, 2)


def test_legacy_lines_without_counts():
    text = "1\n0 L pf:[0,1,] nijk:[0:0:1:2,1:1:1:2,]\n"
    decoded = codec.loads(text)
    assert decoded.n_feature_values == (1, 2)
    assert decoded.root.n_examples == 2


def test_wrong_arity_vector_is_rejected():
    text = codec.dumps(_one_level_tree())
    with pytest.raises(CorruptModelFile):
        codec.loads(text, n_feature_values=[2, 2, 2])
    with pytest.raises(CorruptModelFile):
        codec.loads(text, n_feature_values=[2, 3])


@pytest.mark.parametrize("text", [
    "",
    "x\n0 L pf:[] nijk:[]\n",
    "2\n0 L pf:[0] nijk:[]\n",
    "1\n0 X pf:[0] nijk:[]\n",
    "1\nzero L pf:[0] nijk:[]\n",
    "1\n0 L pf:[0] nijk:[0:a:1:1]\n",
    "1\n0 L pf:[0] nijk:[0:0:2:1]\n",
    "1\n0 L pf:[0] n:-1 nijk:[]\n",
    "1\n0 L pf:[0] n:+1 nijk:[0:0:1:1]\n",
    "1\n0 L pf:[0] n:1_0 nijk:[0:0:1:10]\n",
    "1\n0 L pf:[0] n:\u0661 nijk:[0:0:1:1]\n",
    "+1\n0 L pf:[0] nijk:[0:0:1:1]\n",
    "1\n0 L pf:[0] nijk:[0:0:1:\uff11]\n",
    "1\n0 L pf:0 nijk:[]\n",
    "1\n0 L nijk:[]\n",
    "1\n0 L pf:[0] n:3 nijk:[0:0:1:2]\n",
    "1\n0 L pf:[0] nijk:[1:0:1:2]\n",
    "3\n0 L pf:[] nijk:[]\n1 L pf:[] nijk:[]\n2 D f:0 ch:[0,7]\n",
    "3\n0 L pf:[] nijk:[]\n0 L pf:[] nijk:[]\n2 D f:0 ch:[0,1]\n",
    "2\n0 D f:0 ch:[1]\n1 D f:0 ch:[0]\n",
    "4\n0 L pf:[] nijk:[]\n1 L pf:[] nijk:[]\n2 D f:0 ch:[0,1]\n3 D f:0 ch:[0,1]\n",
    "3\n0 L pf:[1] nijk:[]\n1 L pf:[] nijk:[]\n2 D f:0 ch:[0,1]\n",
])
def test_corrupt_files_raise(text):
    with pytest.raises(CorruptModelFile):
        codec.loads(text)


def test_corrupt_file_leaves_estimator_untouched(tmp_path):
    path = tmp_path / "broken.model"
    path.write_text("2\n0 L pf:[0] nijk:[]\n")
    clf = VfdtClassifier([2], nmin=100)
    clf.update([1], 1)
    with pytest.raises(CorruptModelFile) as exc_info:
        clf.read_model(path)
    assert isinstance(exc_info.value, ValueError)
    assert clf.root_.n_examples == 1
