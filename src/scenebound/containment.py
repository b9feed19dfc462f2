"""
Visual containment: clip and mask regions for boundaries.

Enforcement keeps node rectangles inside their boundaries; this module makes
that containment visible in the markup. Every boundary gets one region
descriptor (a clipPath, or a mask when its policy overflow is "mask").

Connectors that cross from one boundary into another must not be clipped
away at the boundary edge. For each such pair of boundaries a "corridor"
region is derived: the bounding rectangle of both boundaries, padded above
and below by the corridor width. Boundaries linked by corridors form
connected components, and each component gets a "composite" region: the
bounding box of its boundaries and corridors. Both are rectangle
approximations, not true polygon unions.
"""

import html
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

import networkx as nx

from .geometry import Number, Rect, bounding_box, format_number
from .models import (
    DEFAULT_BOUNDARY_POLICY,
    BoundaryNode,
    Connector,
    Node,
    Policy,
    PortRef,
    Scene,
)
from .scene_index import SceneIndex, absolute_rects

DEFAULT_CORRIDOR_WIDTH = 20
DEFAULT_BORDER_RADIUS = 8


@dataclass
class ContainmentRegion:
    """
    Clip or mask region descriptor.

    Attributes:
        id: Definition id referenced from markup (e.g. "clip-<boundaryId>").
        rect: Absolute region rectangle.
        border_radius: Corner radius of the region.
        kind: "clip" or "mask".
    """

    id: str
    rect: Rect
    border_radius: Number = 0
    kind: str = "clip"


@dataclass
class ContainmentContext:
    """
    All containment regions of a scene.

    Attributes:
        clip_regions: Boundary clip regions in pre-order.
        mask_regions: Boundary mask regions in pre-order.
        corridors: One corridor per pair of boundaries joined by a connector.
        composites: One composite per connected group of boundaries.
        connector_regions: Connector key -> composite id for cross-boundary
            connectors.
    """

    clip_regions: List[ContainmentRegion] = field(default_factory=list)
    mask_regions: List[ContainmentRegion] = field(default_factory=list)
    corridors: List[ContainmentRegion] = field(default_factory=list)
    composites: List[ContainmentRegion] = field(default_factory=list)
    connector_regions: Dict[str, str] = field(default_factory=dict)

    def region_for(self, region_id: str) -> Optional[ContainmentRegion]:
        for region in self.clip_regions + self.mask_regions + self.corridors + self.composites:
            if region.id == region_id:
                return region
        return None


def clip_id(boundary_id: str) -> str:
    return f"clip-{boundary_id}"


def region_for_boundary(
    boundary: BoundaryNode,
    rect: Optional[Rect] = None,
    border_radius: Number = DEFAULT_BORDER_RADIUS,
    default_policy: Policy = DEFAULT_BOUNDARY_POLICY,
) -> ContainmentRegion:
    """
    Region descriptor for one boundary.

    Args:
        boundary: The boundary node.
        rect: Its absolute rectangle. Defaults to the boundary's own
            ``at``/``size``.
        border_radius: Corner radius of the region.
        default_policy: Policy for boundaries that declare none.
    """
    if rect is None:
        rect = Rect(boundary.at.x, boundary.at.y, boundary.size.width, boundary.size.height)
    policy = boundary.effective_policy(default_policy)
    return ContainmentRegion(
        id=clip_id(boundary.id),
        rect=rect,
        border_radius=border_radius,
        kind="mask" if policy.overflow == "mask" else "clip",
    )


def corridor_region(
    a_id: str,
    a_rect: Rect,
    b_id: str,
    b_rect: Rect,
    corridor_width: Number = DEFAULT_CORRIDOR_WIDTH,
) -> ContainmentRegion:
    """Bounding rectangle of two boundaries, padded vertically by the corridor width."""
    span = bounding_box([a_rect, b_rect])
    return ContainmentRegion(
        id=f"corridor-{a_id}-{b_id}",
        rect=Rect(span.x, span.y - corridor_width / 2, span.w, span.h + corridor_width),
        kind="clip",
    )


def composite_region(
    region_id: str,
    rects: Iterable[Rect],
    corridors: Iterable[ContainmentRegion] = (),
) -> ContainmentRegion:
    """Bounding box of boundary rectangles and corridor regions."""
    all_rects = list(rects) + [corridor.rect for corridor in corridors]
    return ContainmentRegion(id=region_id, rect=bounding_box(all_rects), kind="clip")


def composite_path_data(
    rects: Iterable[Rect],
    corridors: Iterable[ContainmentRegion] = (),
    border_radius: Number = DEFAULT_BORDER_RADIUS,
) -> str:
    """
    SVG path data with one subpath per boundary (rounded) and per corridor.

    Intended for an even-odd ``<path>`` inside a clipPath when a bounding
    box is too coarse. Overlapping subpaths are not merged.
    """
    f = format_number
    r = border_radius
    parts: List[str] = []
    for rect in rects:
        x, y, right, bottom = rect.x, rect.y, rect.right, rect.bottom
        parts.append(
            f"M {f(x + r)} {f(y)} "
            f"L {f(right - r)} {f(y)} "
            f"Q {f(right)} {f(y)} {f(right)} {f(y + r)} "
            f"L {f(right)} {f(bottom - r)} "
            f"Q {f(right)} {f(bottom)} {f(right - r)} {f(bottom)} "
            f"L {f(x + r)} {f(bottom)} "
            f"Q {f(x)} {f(bottom)} {f(x)} {f(bottom - r)} "
            f"L {f(x)} {f(y + r)} "
            f"Q {f(x)} {f(y)} {f(x + r)} {f(y)} Z"
        )
    for corridor in corridors:
        rect = corridor.rect
        parts.append(
            f"M {f(rect.x)} {f(rect.y)} "
            f"L {f(rect.right)} {f(rect.y)} "
            f"L {f(rect.right)} {f(rect.bottom)} "
            f"L {f(rect.x)} {f(rect.bottom)} Z"
        )
    return " ".join(parts)


def needs_containment(
    node: Node, default_policy: Policy = DEFAULT_BOUNDARY_POLICY
) -> bool:
    """Whether the paint pass attaches a clip-path/mask to this node's group."""
    if node.kind != "boundary":
        return False
    policy = node.effective_policy(default_policy)
    return policy.mode == "strict" and policy.overflow in ("clip", "mask", "resize")


def containment_attribute(
    boundary: BoundaryNode, default_policy: Policy = DEFAULT_BOUNDARY_POLICY
) -> str:
    """The clip-path or mask attribute referencing the boundary's region."""
    policy = boundary.effective_policy(default_policy)
    region = html.escape(clip_id(boundary.id), quote=True)
    if policy.overflow == "mask":
        return f'mask="url(#{region})"'
    if policy.overflow in ("clip", "resize"):
        return f'clip-path="url(#{region})"'
    return ""


def _endpoint_node_id(endpoint, ports_by_id: Dict[str, str]) -> Optional[str]:
    if isinstance(endpoint, PortRef):
        return ports_by_id.get(endpoint.port)
    return endpoint


def _connector_boundaries(
    connector: Connector, index: SceneIndex, ports_by_id: Dict[str, str]
) -> Optional[Tuple[BoundaryNode, BoundaryNode]]:
    """Boundaries on both ends of a connector, or None if it does not cross."""
    ends = []
    for endpoint in (connector.source, connector.target):
        node_id = _endpoint_node_id(endpoint, ports_by_id)
        if node_id is None or node_id not in index:
            return None
        boundary = index.boundary_or_self(node_id)
        if boundary is None:
            return None
        ends.append(boundary)
    if ends[0].id == ends[1].id:
        return None
    return ends[0], ends[1]


def collect_containment(
    scene: Scene,
    rects: Optional[Dict[str, Rect]] = None,
    corridor_width: Number = DEFAULT_CORRIDOR_WIDTH,
    border_radius: Number = DEFAULT_BORDER_RADIUS,
    default_policy: Policy = DEFAULT_BOUNDARY_POLICY,
    index: Optional[SceneIndex] = None,
) -> ContainmentContext:
    """
    Derive every containment region of a corrected scene.

    Args:
        scene: Corrected scene (output of enforcement).
        rects: Corrected absolute rectangles. Nodes missing from it are
            placed at ``at`` plus their parent's origin.
        corridor_width: Vertical padding of corridor regions.
        border_radius: Corner radius of boundary regions.
        default_policy: Policy for boundaries that declare none.
        index: Prebuilt index of ``scene``.

    Returns:
        ContainmentContext with clip, mask, corridor and composite regions.
    """
    rects = absolute_rects(scene.nodes, rects)
    index = index or SceneIndex.from_scene(scene)
    context = ContainmentContext()

    boundaries = index.boundaries()
    for boundary in boundaries:
        region = region_for_boundary(
            boundary, rects[boundary.id], border_radius, default_policy
        )
        if region.kind == "mask":
            context.mask_regions.append(region)
        else:
            context.clip_regions.append(region)

    # Boundaries joined by cross-boundary connectors
    links = nx.Graph()
    links.add_nodes_from(boundary.id for boundary in boundaries)
    ports_by_id: Dict[str, str] = {}
    for port in scene.ports:
        ports_by_id.setdefault(port.id, port.node_id)

    crossing: List[Tuple[Connector, BoundaryNode, BoundaryNode]] = []
    for connector in scene.connectors:
        ends = _connector_boundaries(connector, index, ports_by_id)
        if ends is None:
            continue
        a, b = ends
        crossing.append((connector, a, b))
        if links.has_edge(a.id, b.id):
            continue
        corridor = corridor_region(a.id, rects[a.id], b.id, rects[b.id], corridor_width)
        links.add_edge(a.id, b.id, corridor=corridor)
        context.corridors.append(corridor)

    position = {node_id: i for i, node_id in enumerate(index.order)}
    component_of: Dict[str, str] = {}
    for component in nx.connected_components(links):
        if len(component) < 2:
            continue
        members = sorted(component, key=position.__getitem__)
        region_id = f"composite-{members[0]}"
        corridors = [
            data["corridor"] for _, _, data in links.subgraph(members).edges(data=True)
        ]
        corridors.sort(key=lambda c: context.corridors.index(c))
        context.composites.append(
            composite_region(region_id, [rects[m] for m in members], corridors)
        )
        for member in members:
            component_of[member] = region_id

    for connector, a, b in crossing:
        if needs_containment(a, default_policy) or needs_containment(b, default_policy):
            context.connector_regions[connector.key] = component_of[a.id]

    return context


def render_region_def(region: ContainmentRegion) -> str:
    """The ``<clipPath>`` or ``<mask>`` definition of one region."""
    f = format_number
    rect = region.rect
    radius = f(region.border_radius)
    region_id = html.escape(region.id, quote=True)
    geometry = (
        f'x="{f(rect.x)}" y="{f(rect.y)}" width="{f(rect.w)}" height="{f(rect.h)}" '
        f'rx="{radius}" ry="{radius}"'
    )
    if region.kind == "mask":
        return f'<mask id="{region_id}"><rect {geometry} fill="white"/></mask>'
    return f'<clipPath id="{region_id}"><rect {geometry}/></clipPath>'


def render_containment_defs(context: ContainmentContext) -> str:
    """All containment definitions for the ``<defs>`` section."""
    regions = (
        context.clip_regions
        + context.mask_regions
        + context.corridors
        + context.composites
    )
    return "\n".join(render_region_def(region) for region in regions)
