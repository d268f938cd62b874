"""Guide trees steering the progressive fusion of sub-alignments."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Mapping, Sequence

import numpy as np

from .errors import IllegalState, InvalidArgument, NullInput, OutOfRange

__all__ = ["GuideTreeNode", "GuideTree", "GuideTreeGenerator"]

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class GuideTreeNode:
    """Node of a :class:`GuideTree`.

    ``children`` and ``parent`` hold node ids of the owning tree, never node
    objects, so a node does not keep its parent alive.
    """

    node_id: int
    cluster_ids: frozenset[int]
    children: List[int] = field(default_factory=list)
    parent: int | None = None

    @property
    def is_leaf(self) -> bool:
        return not self.children

    def __str__(self) -> str:
        return "{" + ",".join(str(item) for item in sorted(self.cluster_ids)) + "}"


class GuideTree:
    """Arena of guide tree nodes addressed by consecutive integer ids."""

    def __init__(self) -> None:
        self._nodes: List[GuideTreeNode] = []

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[GuideTreeNode]:
        return iter(self.post_order())

    def node(self, node_id: int) -> GuideTreeNode:
        if not 0 <= node_id < len(self._nodes):
            raise OutOfRange("node_id", node_id, 0, len(self._nodes) - 1)
        return self._nodes[node_id]

    def add_node(
        self,
        cluster_ids: Iterable[int],
        parent: int | None = None,
        *,
        children: Sequence[int] = (),
    ) -> int:
        """Create a node and return its id.

        With ``parent`` the node is appended to the parent's children.  Nodes
        listed in ``children`` have to be parentless and are adopted in the
        given order, which allows building the tree bottom-up.
        """

        if cluster_ids is None:
            raise NullInput("no cluster ids given")
        ids = frozenset(int(item) for item in cluster_ids)
        if not ids:
            raise InvalidArgument("a guide tree node needs at least one cluster id")
        for child in children:
            if self.node(child).parent is not None:
                raise IllegalState(
                    "node already has a parent", context={"node": child}
                )
        node = GuideTreeNode(len(self._nodes), ids)
        if parent is not None:
            self.node(parent).children.append(node.node_id)
            node.parent = parent
        self._nodes.append(node)
        for child in children:
            self._nodes[child].parent = node.node_id
            node.children.append(child)
        return node.node_id

    def children(self, node_id: int) -> List[GuideTreeNode]:
        return [self._nodes[child] for child in self.node(node_id).children]

    def parent(self, node_id: int) -> GuideTreeNode | None:
        parent = self.node(node_id).parent
        return None if parent is None else self._nodes[parent]

    @property
    def root(self) -> GuideTreeNode:
        roots = [node for node in self._nodes if node.parent is None]
        if len(roots) != 1:
            raise IllegalState(
                "guide tree does not have exactly one root",
                context={"roots": len(roots)},
            )
        return roots[0]

    def post_order(self, node_id: int | None = None) -> List[GuideTreeNode]:
        """Nodes of the subtree below ``node_id`` (default: the root), descendants first."""

        start = self.root if node_id is None else self.node(node_id)
        ordered: List[GuideTreeNode] = []
        stack: List[tuple[GuideTreeNode, bool]] = [(start, False)]
        while stack:
            node, expanded = stack.pop()
            if expanded:
                ordered.append(node)
                continue
            stack.append((node, True))
            for child in reversed(node.children):
                stack.append((self._nodes[child], False))
        return ordered

    def to_newick(self, names: Mapping[int, str] | Sequence[str] | None = None) -> str:
        """Render the tree as nested parentheses of leaf names, e.g. ``((a,b),c)``."""

        def label(leaf: GuideTreeNode) -> str:
            ids = sorted(leaf.cluster_ids)
            if names is None:
                return ",".join(str(item) for item in ids)
            return ",".join(str(names[item]) for item in ids)

        rendered: dict[int, str] = {}
        for node in self.post_order():
            if node.is_leaf:
                rendered[node.node_id] = label(node)
            else:
                inner = ",".join(rendered[child] for child in node.children)
                rendered[node.node_id] = f"({inner})"
        return rendered[self.root.node_id]


class GuideTreeGenerator:
    """Average-linkage (UPGMA) agglomerative clustering of a distance matrix.

    The two clusters with the smallest mean pairwise distance are merged until
    one cluster remains.  Ties are resolved by the smallest sorted tuple of
    the merged cluster ids, then by that of the first cluster, which makes the
    result independent of floating point iteration order.
    """

    @staticmethod
    def validate(distance_matrix: Sequence[Sequence[float]] | np.ndarray) -> np.ndarray:
        if distance_matrix is None:
            raise NullInput("no distance matrix given")
        matrix = np.asarray(distance_matrix, dtype=float)
        if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1] or matrix.shape[0] == 0:
            raise InvalidArgument(
                "distance matrix has to be a non-empty square matrix",
                context={"shape": matrix.shape},
            )
        if not np.all(np.isfinite(matrix)):
            raise InvalidArgument("distance matrix contains non-finite entries")
        if np.any(matrix < 0.0):
            raise InvalidArgument("distance matrix contains negative entries")
        if not np.allclose(matrix, matrix.T, rtol=1e-9, atol=1e-12):
            raise InvalidArgument("distance matrix is not symmetric")
        return matrix

    def compute(self, distance_matrix: Sequence[Sequence[float]] | np.ndarray) -> GuideTree:
        matrix = self.validate(distance_matrix)
        tree = GuideTree()
        # active clusters: node id -> sorted member ids
        active: dict[int, tuple[int, ...]] = {}
        for leaf in range(matrix.shape[0]):
            active[tree.add_node((leaf,))] = (leaf,)

        while len(active) > 1:
            best_key: tuple | None = None
            best_pair: tuple[int, int] | None = None
            nodes = sorted(active, key=lambda node_id: active[node_id])
            for position, first in enumerate(nodes):
                for second in nodes[position + 1 :]:
                    members1 = active[first]
                    members2 = active[second]
                    linkage = float(np.mean(matrix[np.ix_(members1, members2)]))
                    key = (linkage, tuple(sorted(members1 + members2)), members1)
                    if best_key is None or key < best_key:
                        best_key, best_pair = key, (first, second)
            first, second = best_pair
            merged = tuple(sorted(active[first] + active[second]))
            node_id = tree.add_node(merged, children=(first, second))
            del active[first]
            del active[second]
            active[node_id] = merged
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug(
                    "Clusters merged",
                    extra={"cluster": list(merged), "linkage": best_key[0]},
                )
        return tree
