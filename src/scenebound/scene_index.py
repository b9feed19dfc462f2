"""
Node index for a scene tree.

Enforcement, port validation, containment and painting all need to look
nodes up by id and to find the boundary that structurally encloses a node.
SceneIndex walks the tree once and keeps a ``nodeId -> Node`` map plus a
networkx DiGraph of parent -> child edges, so those lookups never repeat a
full tree search.

The module also provides the absolute-rectangle helpers shared by the
enforcement walk and the paint pass fallback.
"""

import logging
from typing import Dict, List, Optional

import networkx as nx

from .geometry import Point, Rect
from .models import BoundaryNode, Node, Scene, iter_nodes, node_children, node_extent

logger = logging.getLogger(__name__)


def node_rect(node: Node, origin: Point) -> Rect:
    """Absolute rectangle of ``node`` placed relative to ``origin``."""
    at = node.at
    x = origin.x + (at.x if at is not None else 0)
    y = origin.y + (at.y if at is not None else 0)
    w, h = node_extent(node)
    return Rect(x, y, w, h)


def absolute_rects(
    nodes: List[Node],
    known: Optional[Dict[str, Rect]] = None,
    origin: Point = Point(0, 0),
) -> Dict[str, Rect]:
    """
    Absolute rectangles for every node of a forest.

    Nodes present in ``known`` keep that rectangle; the rest are placed at
    ``at`` plus their parent's origin. Children use their parent's
    rectangle origin, whichever way it was obtained.

    Args:
        nodes: Root nodes.
        known: Rectangles already computed (e.g. by enforcement).
        origin: Origin of the roots.

    Returns:
        Dictionary mapping node ids to rectangles. The first node with a
        given id wins.
    """
    known = known or {}
    rects: Dict[str, Rect] = {}

    def visit(node: Node, parent_origin: Point) -> None:
        rect = known.get(node.id)
        if rect is None:
            rect = node_rect(node, parent_origin)
        rects.setdefault(node.id, rect)
        for child in node_children(node):
            visit(child, rect.origin)

    for root in nodes:
        visit(root, origin)
    return rects


class SceneIndex:
    """
    Id index and containment tree of a scene.

    Every occurrence of a node gets its own graph vertex, keyed by its
    pre-order position, so the subtree under a duplicated id keeps its real
    parents. Id lookups resolve to the first occurrence.

    Attributes:
        graph: DiGraph with one vertex per node occurrence and parent -> child
            edges. Vertices carry ``id`` and ``kind`` attributes.
        order: Unique node ids in pre-order.
        duplicates: Ids that appeared more than once (later copies ignored
            by id lookups).
    """

    def __init__(self, nodes: List[Node]):
        self.graph: nx.DiGraph = nx.DiGraph()
        self.order: List[str] = []
        self.duplicates: List[str] = []
        self._occurrences: List[Node] = []
        self._keys: Dict[str, int] = {}

        for root in nodes:
            self._add(root, None)

    @classmethod
    def from_scene(cls, scene: Scene) -> "SceneIndex":
        return cls(scene.nodes)

    def _add(self, node: Node, parent_key: Optional[int]) -> None:
        key = len(self._occurrences)
        self._occurrences.append(node)
        self.graph.add_node(key, id=node.id, kind=node.kind)
        if parent_key is not None:
            self.graph.add_edge(parent_key, key)

        if node.id in self._keys:
            self.duplicates.append(node.id)
            logger.warning("Duplicate node id %r; keeping the first occurrence", node.id)
        else:
            self._keys[node.id] = key
            self.order.append(node.id)

        for child in node_children(node):
            self._add(child, key)

    def __contains__(self, node_id: str) -> bool:
        return node_id in self._keys

    def __len__(self) -> int:
        return len(self._keys)

    def get(self, node_id: str) -> Optional[Node]:
        key = self._keys.get(node_id)
        return self._occurrences[key] if key is not None else None

    def _parent_key(self, key: int) -> Optional[int]:
        for parent in self.graph.predecessors(key):
            return parent
        return None

    def _ancestor_keys(self, node_id: str) -> List[int]:
        chain: List[int] = []
        key = self._keys.get(node_id)
        if key is None:
            return chain
        current = self._parent_key(key)
        while current is not None:
            chain.append(current)
            current = self._parent_key(current)
        return chain

    def parent_id(self, node_id: str) -> Optional[str]:
        chain = self._ancestor_keys(node_id)
        return self.graph.nodes[chain[0]]["id"] if chain else None

    def ancestors(self, node_id: str) -> List[str]:
        """Ancestor ids of ``node_id``, nearest first."""
        return [self.graph.nodes[key]["id"] for key in self._ancestor_keys(node_id)]

    def enclosing_boundary(self, node_id: str) -> Optional[BoundaryNode]:
        """Nearest boundary ancestor of ``node_id`` (groups are skipped)."""
        for key in self._ancestor_keys(node_id):
            if self.graph.nodes[key]["kind"] == "boundary":
                return self._occurrences[key]
        return None

    def boundary_or_self(self, node_id: str) -> Optional[BoundaryNode]:
        """The node itself when it is a boundary, else its enclosing boundary."""
        node = self.get(node_id)
        if node is not None and node.kind == "boundary":
            return node
        return self.enclosing_boundary(node_id)

    def boundaries(self) -> List[BoundaryNode]:
        """All boundaries in pre-order."""
        return [
            self._occurrences[self._keys[node_id]]
            for node_id in self.order
            if self.graph.nodes[self._keys[node_id]]["kind"] == "boundary"
        ]


def count_nodes(scene: Scene) -> Dict[str, int]:
    """Total node and boundary counts from a full tree walk."""
    total = 0
    boundaries = 0
    for node in iter_nodes(scene.nodes):
        total += 1
        if node.kind == "boundary":
            boundaries += 1
    return {"total": total, "boundaries": boundaries}
