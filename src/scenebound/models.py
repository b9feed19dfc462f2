"""
Data models for scene rendering.

This module contains the dataclasses that describe a scene document: the
node variants of the scene tree, boundary policies, ports, connectors and
animated flows. The models are plain data; enforcement, containment and
painting live in their own modules.

Nodes form a tagged union over ``kind``. Each variant is its own dataclass
(no shared base class) and code dispatches on the ``kind`` string.

Classes:
    Size: Width/height pair.
    SnapConfig: Grid snapping settings of a boundary policy.
    Policy: Containment policy of a boundary.
    GridConfig: Column grid hint of a boundary.
    Transform: Optional translate/scale/rotate of a node.
    SpriteRef: Reference to inline markup or a registered symbol.
    GroupNode, BoundaryNode, SpriteNode, ShapeNode, TextNode, RawContentNode:
        The node variants.
    Port: Named attachment point on a host node.
    PortRef: Connector endpoint that refers to a port.
    Connector: Line between two nodes or ports.
    FlowToken, FlowActivation, Flow: Animated token travelling along connectors.
    SymbolDef, Defs: Reusable definitions emitted into ``<defs>``.
    Scene: The whole document.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from .geometry import Number, Point

POLICY_MODES = ("strict", "loose")
OVERFLOW_MODES = ("clip", "mask", "resize", "error")
PORT_SIDES = ("left", "right", "top", "bottom")
NODE_KINDS = ("group", "boundary", "sprite", "shape", "text", "raw-content")

# Rough text metrics used when a text node has no explicit size
TEXT_CHAR_WIDTH = 8
TEXT_LINE_HEIGHT = 16

# Raw-content sentinel: inject scene.defs.raw_content at this point
USE_DEFS_RAW_CONTENT = "USE_DEFS_RAW_CONTENT"


@dataclass
class Size:
    """Width/height pair."""

    width: Number = 0
    height: Number = 0

    def to_dict(self) -> Dict[str, Number]:
        return {"width": self.width, "height": self.height}


@dataclass
class SnapConfig:
    """
    Grid snapping settings.

    Attributes:
        grid: Grid spacing in px. Values of 1 or less disable snapping.
        origin: Frame the grid is anchored to. Only "local" is supported:
            grid lines run from the enclosing boundary's origin.
    """

    grid: Number = 1
    origin: str = "local"


@dataclass
class Policy:
    """
    Containment policy of a boundary.

    Attributes:
        mode: "strict" corrects violations, "loose" only reports them.
        overflow: How strict violations are handled: "clip" moves the node
            inside, "resize" moves and shrinks it, "mask" and "error" leave
            it alone and rely on the paint pass.
        snap: Optional grid snapping applied to direct children.
        tolerance: Slack in px allowed on every side of the boundary.
    """

    mode: str = "strict"
    overflow: str = "clip"
    snap: Optional[SnapConfig] = None
    tolerance: Number = 0

    def __post_init__(self):
        if self.mode not in POLICY_MODES:
            raise ValueError(
                f"policy mode must be one of {POLICY_MODES}, got {self.mode!r}"
            )
        if self.overflow not in OVERFLOW_MODES:
            raise ValueError(
                f"policy overflow must be one of {OVERFLOW_MODES}, "
                f"got {self.overflow!r}"
            )

    @property
    def corrects(self) -> bool:
        """Whether enforcement rewrites violating rectangles."""
        return self.mode == "strict" and self.overflow in ("clip", "resize")


DEFAULT_BOUNDARY_POLICY = Policy(mode="strict", overflow="clip", tolerance=1)


@dataclass
class GridConfig:
    """
    Column grid hint of a boundary (cols, row height, gutter, padding).

    Carried as document data for layout tools. Enforcement does not read
    it; grid snapping comes from ``Policy.snap``.
    """

    cols: int = 1
    row_h: Number = 0
    gutter: Number = 0
    padding: Number = 0


@dataclass
class Transform:
    """Optional node transform. ``scale`` is a number or an (x, y) pair."""

    translate: Optional[Point] = None
    scale: Union[Number, Tuple[Number, Number], None] = None
    rotate: Number = 0


@dataclass
class SpriteRef:
    """Inline sprite markup or the id of a symbol registered in the defs."""

    inline: Optional[str] = None
    symbol_id: Optional[str] = None
    view_box: Optional[Tuple[Number, Number, Number, Number]] = None


@dataclass
class GroupNode:
    """Unpositioned (or optionally positioned) container of child nodes."""

    id: str
    at: Optional[Point] = None
    size: Optional[Size] = None
    z: Number = 0
    style: Dict[str, Any] = field(default_factory=dict)
    transform: Optional[Transform] = None
    children: List["Node"] = field(default_factory=list)
    kind: str = field(default="group", init=False)


@dataclass
class BoundaryNode:
    """Rectangular container that enforces a policy on its descendants."""

    id: str
    at: Point
    size: Size
    title: Optional[str] = None
    policy: Optional[Policy] = None
    grid: Optional[GridConfig] = None
    z: Number = 0
    style: Dict[str, Any] = field(default_factory=dict)
    transform: Optional[Transform] = None
    children: List["Node"] = field(default_factory=list)
    kind: str = field(default="boundary", init=False)

    def effective_policy(
        self, default: Policy = DEFAULT_BOUNDARY_POLICY
    ) -> Policy:
        return self.policy if self.policy is not None else default


@dataclass
class SpriteNode:
    id: str
    at: Point
    sprite: SpriteRef
    size: Optional[Size] = None
    anchor: str = "tl"
    z: Number = 0
    style: Dict[str, Any] = field(default_factory=dict)
    transform: Optional[Transform] = None
    kind: str = field(default="sprite", init=False)


@dataclass
class ShapeNode:
    id: str
    at: Point
    size: Size
    shape: str = "rect"
    d: Optional[str] = None
    z: Number = 0
    style: Dict[str, Any] = field(default_factory=dict)
    transform: Optional[Transform] = None
    kind: str = field(default="shape", init=False)


@dataclass
class TextNode:
    """Text label. Without a size its extent is estimated from the text."""

    id: str
    at: Point
    text: str
    anchor: str = "tl"
    size: Optional[Size] = None
    z: Number = 0
    style: Dict[str, Any] = field(default_factory=dict)
    transform: Optional[Transform] = None
    kind: str = field(default="text", init=False)


@dataclass
class RawContentNode:
    """Pre-rendered markup placed as-is (or the defs sentinel)."""

    id: str
    content: str
    at: Point = field(default_factory=Point)
    size: Optional[Size] = None
    z: Number = 0
    style: Dict[str, Any] = field(default_factory=dict)
    transform: Optional[Transform] = None
    kind: str = field(default="raw-content", init=False)


Node = Union[GroupNode, BoundaryNode, SpriteNode, ShapeNode, TextNode, RawContentNode]


@dataclass
class Port:
    """
    Named attachment point on a host node.

    Attributes:
        id: Port identifier referenced by connectors.
        node_id: Id of the host node.
        side: Side of the host the port sits on.
        offset: Distance in px from the top (left/right sides) or the left
            (top/bottom sides) of the host.
    """

    id: str
    node_id: str
    side: str
    offset: Number = 0

    def __post_init__(self):
        if self.side not in PORT_SIDES:
            raise ValueError(
                f"port side must be one of {PORT_SIDES}, got {self.side!r}"
            )


@dataclass(frozen=True)
class PortRef:
    """Connector endpoint attached to a port instead of a node."""

    port: str


Endpoint = Union[str, PortRef]


@dataclass
class Connector:
    source: Endpoint
    target: Endpoint
    id: Optional[str] = None
    route: str = "straight"
    marker_end: str = "none"
    dashed: bool = False
    label: Optional[str] = None
    style: Dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> str:
        """Connector id, or ``<source>-<target>`` when none was given."""
        if self.id:
            return self.id
        return f"{endpoint_name(self.source)}-{endpoint_name(self.target)}"


@dataclass
class FlowToken:
    size: Number = 4
    color: str = "#d6bcfa"
    trail_length: Optional[Number] = None
    trail_opacity: Optional[Number] = None


@dataclass
class FlowActivation:
    boundary_ids: List[str] = field(default_factory=list)
    class_name: Optional[str] = None


@dataclass
class Flow:
    """
    Animated token travelling along a chain of connectors.

    Attributes:
        id: Flow identifier.
        path: Connector ids joined by ">" (e.g. "c1>c2>c3").
        token: Appearance of the moving token.
        speed: Travel speed in px per second.
        loop: Repeat the animation indefinitely.
        activate: Boundaries highlighted while the token passes.
    """

    id: str
    path: str
    token: FlowToken = field(default_factory=FlowToken)
    speed: Number = 160
    loop: bool = False
    activate: Optional[FlowActivation] = None

    @property
    def connector_ids(self) -> List[str]:
        return [part.strip() for part in self.path.split(">") if part.strip()]


@dataclass
class SymbolDef:
    id: str
    svg: str


@dataclass
class Defs:
    symbols: List[SymbolDef] = field(default_factory=list)
    filters: List[str] = field(default_factory=list)
    gradients: List[str] = field(default_factory=list)
    raw_content: List[str] = field(default_factory=list)


@dataclass
class Scene:
    """A complete scene document."""

    id: str
    canvas: Size
    nodes: List[Node] = field(default_factory=list)
    bg: Optional[str] = None
    defs: Defs = field(default_factory=Defs)
    ports: List[Port] = field(default_factory=list)
    connectors: List[Connector] = field(default_factory=list)
    flows: List[Flow] = field(default_factory=list)


def endpoint_name(endpoint: Endpoint) -> str:
    return endpoint.port if isinstance(endpoint, PortRef) else endpoint


def node_children(node: Node) -> List[Node]:
    """Children of a container node; leaf kinds have none."""
    if node.kind in ("group", "boundary"):
        return node.children
    return []


def explicit_size(node: Node) -> Optional[Size]:
    """The ``size`` the document declares for a node, if any."""
    return getattr(node, "size", None)


def node_extent(node: Node) -> Tuple[Number, Number]:
    """
    Width and height used for containment math.

    Text nodes without an explicit size get a rough estimate from their
    character count; other nodes without a size are treated as 0x0.
    """
    size = explicit_size(node)
    if size is not None:
        return size.width or 0, size.height or 0
    if node.kind == "text":
        return len(node.text or "") * TEXT_CHAR_WIDTH, TEXT_LINE_HEIGHT
    return 0, 0


def iter_nodes(nodes: List[Node]) -> Iterator[Node]:
    """Yield every node of a forest in pre-order, children in declared order."""
    for node in nodes:
        yield node
        yield from iter_nodes(node_children(node))
