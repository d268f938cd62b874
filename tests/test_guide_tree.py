from __future__ import annotations

import math

import numpy as np
import pytest

from mica_core.errors import IllegalState, InvalidArgument, NullInput, OutOfRange
from mica_core.guide_tree import GuideTree, GuideTreeGenerator


def _sample_tree() -> GuideTree:
    tree = GuideTree()
    root = tree.add_node((1, 2, 3, 4))
    tree.add_node((1,), root)
    inner = tree.add_node((2, 3, 4), root)
    tree.add_node((2,), inner)
    tree.add_node((3,), inner)
    tree.add_node((4,), inner)
    return tree


def test_post_order_visits_children_first() -> None:
    tree = _sample_tree()

    assert [node.node_id for node in tree.post_order()] == [1, 3, 4, 5, 2, 0]
    assert [node.node_id for node in tree.post_order(2)] == [3, 4, 5, 2]
    assert [str(node) for node in tree] == ["{1}", "{2}", "{3}", "{4}", "{2,3,4}", "{1,2,3,4}"]
    assert tree.root.node_id == 0
    assert tree.parent(3).node_id == 2
    assert tree.parent(0) is None
    assert [node.node_id for node in tree.children(2)] == [3, 4, 5]


def test_post_order_of_labelled_tree_with_three_root_children() -> None:
    tree = GuideTree()
    root = tree.add_node((2, 3, 5, 6))
    two = tree.add_node((2,), root)
    three = tree.add_node((3,), root)
    four = tree.add_node((5, 6), root)
    five = tree.add_node((5,), four)
    six = tree.add_node((6,), four)
    labels = {root: 1, two: 2, three: 3, four: 4, five: 5, six: 6}

    assert [labels[node.node_id] for node in tree.post_order()] == [2, 3, 5, 6, 4, 1]

    bottom_up = GuideTree()
    leaves = {label: bottom_up.add_node((label,)) for label in (2, 3, 5, 6)}
    inner = bottom_up.add_node((5, 6), children=(leaves[5], leaves[6]))
    top = bottom_up.add_node((2, 3, 5, 6), children=(leaves[2], leaves[3], inner))
    bottom_up_labels = {node_id: label for label, node_id in leaves.items()}
    bottom_up_labels.update({inner: 4, top: 1})

    assert [bottom_up_labels[node.node_id] for node in bottom_up.post_order()] == [2, 3, 5, 6, 4, 1]


def test_bottom_up_construction() -> None:
    tree = GuideTree()
    left = tree.add_node((0,))
    right = tree.add_node((1,))
    root = tree.add_node((0, 1), children=(left, right))

    assert tree.root.node_id == root
    assert tree.node(left).parent == root
    assert tree.to_newick(["a", "b"]) == "(a,b)"
    with pytest.raises(IllegalState):
        tree.add_node((0,), children=(left,))


def test_node_validation() -> None:
    tree = GuideTree()
    with pytest.raises(NullInput):
        tree.add_node(None)  # type: ignore[arg-type]
    with pytest.raises(InvalidArgument):
        tree.add_node(())
    with pytest.raises(OutOfRange):
        tree.add_node((1,), parent=3)
    with pytest.raises(IllegalState):
        tree.root

    tree.add_node((1,))
    tree.add_node((2,))
    with pytest.raises(IllegalState):
        tree.root


def test_generator_merges_closest_clusters_first() -> None:
    matrix = [
        [0.0, 1.0, 4.0],
        [1.0, 0.0, 4.0],
        [4.0, 4.0, 0.0],
    ]
    tree = GuideTreeGenerator().compute(matrix)

    assert len(tree) == 5
    assert tree.to_newick(["a", "b", "c"]) == "((a,b),c)"
    assert tree.root.cluster_ids == frozenset({0, 1, 2})
    assert all(len(node.children) in (0, 2) for node in tree)


def test_generator_uses_average_linkage() -> None:
    matrix = np.array(
        [
            [0.0, 2.0, 3.0, 9.0],
            [2.0, 0.0, 8.0, 9.0],
            [3.0, 8.0, 0.0, 5.5],
            [9.0, 9.0, 5.5, 0.0],
        ]
    )
    tree = GuideTreeGenerator().compute(matrix)

    # {0,1} to {2} averages 5.5 and ties with {2} to {3}; the smaller merged ids win
    assert tree.to_newick() == "(((0,1),2),3)"


def test_generator_breaks_ties_by_cluster_ids() -> None:
    matrix = np.ones((4, 4)) - np.eye(4)

    assert GuideTreeGenerator().compute(matrix).to_newick() == "(((0,1),2),3)"


def test_single_leaf_tree() -> None:
    tree = GuideTreeGenerator().compute([[0.0]])

    assert len(tree) == 1
    assert tree.root.is_leaf
    assert tree.to_newick({0: "only"}) == "only"


@pytest.mark.parametrize(
    "matrix",
    [
        [],
        [[0.0, 1.0]],
        [[0.0, -1.0], [-1.0, 0.0]],
        [[0.0, 1.0], [2.0, 0.0]],
        [[0.0, math.nan], [math.nan, 0.0]],
    ],
)
def test_invalid_distance_matrices(matrix) -> None:
    with pytest.raises(InvalidArgument):
        GuideTreeGenerator().compute(matrix)


def test_missing_distance_matrix() -> None:
    with pytest.raises(NullInput):
        GuideTreeGenerator.validate(None)  # type: ignore[arg-type]
