"""
Two-pass scene renderer.

Pass 1 (validate) runs boundary enforcement over the whole scene and
produces a corrected copy, a rectangle side-table and diagnostics. No markup
is emitted in this pass.

Pass 2 (paint) flattens the corrected scene into a z-ordered list of nodes
positioned by the side-table, derives the containment regions and emits SVG
markup: definitions, background, raw content, connectors, nodes and flows.

Broken references (a connector to an unknown node, a flow over an unknown
connector, a port on a missing host) are left out of the markup and logged;
one bad reference never aborts the render.
"""

import html
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .containment import (
    DEFAULT_BORDER_RADIUS,
    DEFAULT_CORRIDOR_WIDTH,
    ContainmentContext,
    collect_containment,
    containment_attribute,
    needs_containment,
    render_containment_defs,
)
from .diagnostics import Diagnostic
from .enforcement import BoundaryEnforcer, EnforcementResult
from .geometry import Number, Point, Rect, format_number
from .models import (
    DEFAULT_BOUNDARY_POLICY,
    USE_DEFS_RAW_CONTENT,
    Connector,
    Endpoint,
    Flow,
    Node,
    Policy,
    Port,
    PortRef,
    Scene,
    node_children,
)
from .ports import port_position
from .scene_index import node_rect
from .tracer import RenderTrace

logger = logging.getLogger(__name__)

ARROW_MARKER = (
    '<marker id="arrowHead" viewBox="0 0 10 10" refX="9" refY="5" '
    'markerWidth="7" markerHeight="7" orient="auto-start-reverse">'
    '<path d="M0 0 L10 5 L0 10Z" fill="#94a3b8"/></marker>'
)

SCENE_CSS = """<style>
  .active-glow rect { stroke: #8b5cf6; }
  .connector { stroke-linecap: round; stroke-linejoin: round; }
  .boundary-title { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', sans-serif; font-weight: 600; }
  .flow-token { animation-fill-mode: forwards; }
  .boundary-contained { overflow: hidden; }
</style>"""

# Rough path length per connector segment used to time flow tokens
FLOW_SEGMENT_LENGTH = 200

DEFAULT_LABEL_COLOR = "#e6edf3"
CONNECTOR_LABEL_COLOR = "#94a3b8"

_CAMEL = re.compile(r"[A-Z]")


def esc(value: Any) -> str:
    return html.escape(str(value), quote=True)


def _css_name(key: str) -> str:
    return _CAMEL.sub(lambda m: "-" + m.group(0).lower(), key).replace("_", "-")


def style_attr(style: Dict[str, Any]) -> str:
    """Inline ``style`` attribute from a style mapping (camelCase keys allowed)."""
    if not style:
        return ""
    parts = []
    for key, value in style.items():
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            value = format_number(value)
        parts.append(f"{_css_name(key)}:{value}")
    return f' style="{esc(";".join(parts))}"'


def transform_attr(node: Node, rect: Rect) -> str:
    """``transform`` attribute placing a node at its absolute position."""
    f = format_number
    transform = node.transform
    tx, ty = rect.x, rect.y
    scale_x = scale_y = 1
    rotate: Number = 0
    if transform is not None:
        if transform.translate is not None:
            tx += transform.translate.x
            ty += transform.translate.y
        if isinstance(transform.scale, tuple):
            scale_x, scale_y = transform.scale
        elif transform.scale is not None:
            scale_x = scale_y = transform.scale
        rotate = transform.rotate or 0

    parts = [f"translate({f(tx)} {f(ty)})"]
    if scale_x != 1 or scale_y != 1:
        parts.append(f"scale({f(scale_x)} {f(scale_y)})")
    if rotate:
        parts.append(f"rotate({f(rotate)})")
    return f' transform="{" ".join(parts)}"'


@dataclass
class PaintedNode:
    """A node with the absolute rectangle it is painted at."""

    node: Node
    rect: Rect

    @property
    def center(self) -> Point:
        return self.rect.center


@dataclass
class RenderResult:
    """Markup plus the pass-1 output it was painted from."""

    markup: str
    enforcement: EnforcementResult

    @property
    def diagnostics(self) -> List[Diagnostic]:
        return self.enforcement.diagnostics


@dataclass
class _PaintState:
    """Lookups shared by the emitters of one paint pass."""

    nodes: Dict[str, PaintedNode]
    ports: Dict[str, Port]
    context: ContainmentContext
    omitted: List[str] = field(default_factory=list)

    def omit(self, what: str) -> str:
        logger.warning("Omitting %s from markup", what)
        self.omitted.append(what)
        return ""


class SceneRenderer:
    """
    Render scenes to SVG with boundary enforcement and visual containment.

    Example:
        >>> renderer = SceneRenderer()
        >>> markup = renderer.render(scene)
        >>> result = renderer.render_with_diagnostics(scene)
        >>> result.enforcement.summary.errors
        0
    """

    def __init__(
        self,
        corridor_width: Number = DEFAULT_CORRIDOR_WIDTH,
        border_radius: Number = DEFAULT_BORDER_RADIUS,
        default_policy: Policy = DEFAULT_BOUNDARY_POLICY,
    ):
        """
        Initialize the scene renderer.

        Args:
            corridor_width: Vertical padding of corridor regions around
                cross-boundary connectors.
            border_radius: Corner radius of boundaries and their clip regions.
            default_policy: Policy for boundaries that declare none.
        """
        if corridor_width < 0:
            raise ValueError("corridor_width must be >= 0")
        if border_radius < 0:
            raise ValueError("border_radius must be >= 0")

        self.corridor_width = corridor_width
        self.border_radius = border_radius
        self.default_policy = default_policy
        self.enforcer = BoundaryEnforcer(default_policy=default_policy)
        self._last_trace: Optional[RenderTrace] = None

    def render(self, scene: Scene, debug: bool = False) -> str:
        """
        Render a scene to SVG markup.

        Args:
            scene: Scene to render. It is not modified.
            debug: Record a RenderTrace, available from get_trace().

        Returns:
            SVG document as a string.
        """
        return self.render_with_diagnostics(scene, debug=debug).markup

    def render_with_diagnostics(self, scene: Scene, debug: bool = False) -> RenderResult:
        """Render a scene and also return the enforcement pass output."""
        trace = RenderTrace(scene_id=scene.id) if debug else None

        # Pass 1: validate and correct
        enforcement = self.enforcer.enforce(scene, trace=trace)
        if trace is not None:
            trace.add_stage(
                "validate",
                {
                    "errors": enforcement.summary.errors,
                    "warnings": enforcement.summary.warnings,
                    "diagnostics": [d.code.value for d in enforcement.diagnostics],
                    "rects": len(enforcement.rects),
                },
            )

        # Pass 2: paint
        markup = self.paint(enforcement, trace=trace)
        self._last_trace = trace
        return RenderResult(markup=markup, enforcement=enforcement)

    def get_trace(self) -> Optional[RenderTrace]:
        """Trace of the last render made with ``debug=True``, else None."""
        return self._last_trace

    def flatten(
        self,
        nodes: List[Node],
        rects: Dict[str, Rect],
        origin: Point = Point(0, 0),
    ) -> List[PaintedNode]:
        """
        Flatten a node forest in pre-order.

        Nodes present in ``rects`` use that rectangle. Others fall back to
        ``at`` plus their parent's origin, which keeps partially processed
        inputs paintable.
        """
        painted: List[PaintedNode] = []
        for node in nodes:
            rect = rects.get(node.id) or node_rect(node, origin)
            painted.append(PaintedNode(node, rect))
            painted.extend(self.flatten(node_children(node), rects, rect.origin))
        return painted

    def paint(
        self, enforcement: EnforcementResult, trace: Optional[RenderTrace] = None
    ) -> str:
        """Pass 2: emit SVG for an enforcement result."""
        scene = enforcement.scene
        context = collect_containment(
            scene,
            enforcement.rects,
            corridor_width=self.corridor_width,
            border_radius=self.border_radius,
            default_policy=self.default_policy,
            index=enforcement.index,
        )
        if trace is not None:
            trace.add_stage(
                "containment",
                {
                    "clip_regions": [r.id for r in context.clip_regions],
                    "mask_regions": [r.id for r in context.mask_regions],
                    "corridors": [r.id for r in context.corridors],
                    "composites": [r.id for r in context.composites],
                },
            )

        # Stable sort keeps pre-order within equal z
        painted = sorted(
            self.flatten(scene.nodes, enforcement.rects), key=lambda p: p.node.z
        )
        lookup: Dict[str, PaintedNode] = {}
        for item in painted:
            lookup.setdefault(item.node.id, item)
        ports: Dict[str, Port] = {}
        for port in scene.ports:
            ports.setdefault(port.id, port)
        state = _PaintState(nodes=lookup, ports=ports, context=context)

        raw_content = ""
        node_markup = []
        for item in painted:
            if item.node.kind == "raw-content" and item.node.content == USE_DEFS_RAW_CONTENT:
                raw_content += "".join(line + "\n" for line in scene.defs.raw_content)
                continue
            node_markup.append(self._emit_node(item, state))

        connectors = [self._emit_connector(c, state) for c in scene.connectors]
        flows = [self._emit_flow(fl, scene.connectors, state) for fl in scene.flows]

        if trace is not None:
            trace.add_stage(
                "paint",
                {
                    "nodes": len(painted),
                    "connectors": len(scene.connectors),
                    "flows": len(scene.flows),
                    "omitted": list(state.omitted),
                },
            )

        return self._document(
            scene,
            context,
            raw_content,
            "".join(connectors),
            "".join(node_markup),
            "".join(flows),
        )

    def _document(
        self,
        scene: Scene,
        context: ContainmentContext,
        raw_content: str,
        connectors: str,
        nodes: str,
        flows: str,
    ) -> str:
        f = format_number
        width, height = f(scene.canvas.width), f(scene.canvas.height)
        defs = "".join(
            list(scene.defs.gradients)
            + list(scene.defs.filters)
            + [f'<symbol id="{esc(s.id)}">{s.svg}</symbol>' for s in scene.defs.symbols]
            + [ARROW_MARKER, render_containment_defs(context)]
        )
        background = (
            f'<rect x="0" y="0" width="100%" height="100%" fill="{esc(scene.bg)}"/>'
            if scene.bg
            else ""
        )
        lines = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            f'<svg width="{width}" height="{height}" viewBox="0 0 {width} {height}" '
            f'xmlns="http://www.w3.org/2000/svg" role="img" aria-label="{esc(scene.id)}">',
            f"<defs>{defs}</defs>",
            SCENE_CSS,
            background,
            raw_content,
            connectors,
            nodes,
            flows,
            "</svg>",
        ]
        return "\n".join(line for line in lines if line)

    def _emit_node(self, item: PaintedNode, state: _PaintState) -> str:
        node, rect = item.node, item.rect
        f = format_number
        node_id = esc(node.id)
        kind = node.kind

        if kind == "group":
            return f'<g id="{node_id}"{transform_attr(node, rect)}{style_attr(node.style)}></g>'

        if kind == "boundary":
            return self._emit_boundary(item)

        if kind == "sprite":
            style = style_attr(node.style)
            transform = transform_attr(node, rect)
            if node.sprite.inline:
                return f'<g id="{node_id}"{transform}{style}>{node.sprite.inline}</g>'
            if node.sprite.symbol_id:
                return (
                    f'<use id="{node_id}"{transform}{style} href="#{esc(node.sprite.symbol_id)}" '
                    f'width="{f(rect.w)}" height="{f(rect.h)}"></use>'
                )
            return state.omit(f"sprite '{node.id}' without inline content or symbol")

        if kind == "shape":
            style = style_attr(node.style)
            if node.shape in ("rect", "roundedRect"):
                rx = self.border_radius if node.shape == "roundedRect" else 0
                return (
                    f'<rect id="{node_id}" x="{f(rect.x)}" y="{f(rect.y)}" '
                    f'width="{f(rect.w)}" height="{f(rect.h)}" rx="{f(rx)}"{style}></rect>'
                )
            if node.shape == "circle":
                return (
                    f'<circle id="{node_id}" cx="{f(rect.x)}" cy="{f(rect.y)}" '
                    f'r="{f(rect.w / 2)}"{style}></circle>'
                )
            if node.shape == "path":
                return (
                    f'<path id="{node_id}" d="{esc(node.d or "")}"'
                    f"{transform_attr(node, rect)}{style}></path>"
                )
            return state.omit(f"shape '{node.id}' with unknown shape {node.shape!r}")

        if kind == "text":
            anchor = ""
            if node.anchor == "center":
                anchor = ' text-anchor="middle" dominant-baseline="middle"'
            # A declared (or resize-corrected) width squeezes the glyphs into it
            fit = ""
            if node.size is not None:
                fit = f' textLength="{f(rect.w)}" lengthAdjust="spacingAndGlyphs"'
            return (
                f'<text id="{node_id}" x="{f(rect.x)}" y="{f(rect.y)}"'
                f"{style_attr(node.style)}{anchor}{fit}>{esc(node.text)}</text>"
            )

        if kind == "raw-content":
            return (
                f'<g id="{node_id}"{transform_attr(node, rect)}'
                f"{style_attr(node.style)}>{node.content}</g>"
            )

        return state.omit(f"node '{node.id}' of unknown kind {kind!r}")

    def _emit_boundary(self, item: PaintedNode) -> str:
        node, rect = item.node, item.rect
        f = format_number
        style = dict(node.style)
        label_color = style.pop("labelColor", DEFAULT_LABEL_COLOR)
        filter_ref = style.pop("filter", None)

        css_class = "boundary"
        containment = ""
        if needs_containment(node, self.default_policy):
            css_class += " boundary-contained"
            containment = f" {containment_attribute(node, self.default_policy)}"

        filter_attr = f' filter="{esc(filter_ref)}"' if filter_ref else ""
        radius = f(self.border_radius)
        title = ""
        if node.title:
            title = (
                f'<text x="{f(rect.x + 12)}" y="{f(rect.y - 8)}" class="boundary-title" '
                f'fill="{esc(label_color)}" font-size="14">{esc(node.title)}</text>'
            )
        return (
            f'<g id="{esc(node.id)}" class="{css_class}"{containment}>'
            f'<rect x="{f(rect.x)}" y="{f(rect.y)}" width="{f(rect.w)}" height="{f(rect.h)}" '
            f'rx="{radius}"{style_attr(style)}{filter_attr}/>'
            f"{title}</g>"
        )

    def _endpoint_point(
        self, endpoint: Endpoint, state: _PaintState
    ) -> Optional[Point]:
        if isinstance(endpoint, PortRef):
            port = state.ports.get(endpoint.port)
            if port is None:
                return None
            host = state.nodes.get(port.node_id)
            if host is None:
                return None
            return port_position(port, host.rect)
        host = state.nodes.get(endpoint)
        return host.center if host is not None else None

    def _connector_path(self, connector: Connector, state: _PaintState) -> Optional[str]:
        start = self._endpoint_point(connector.source, state)
        end = self._endpoint_point(connector.target, state)
        if start is None or end is None:
            return None

        f = format_number
        if connector.route == "orthogonal":
            mid_x = (start.x + end.x) / 2
            return (
                f"M {f(start.x)} {f(start.y)} L {f(mid_x)} {f(start.y)} "
                f"L {f(mid_x)} {f(end.y)} L {f(end.x)} {f(end.y)}"
            )
        if connector.route == "curve":
            mid_x = (start.x + end.x) / 2
            return (
                f"M {f(start.x)} {f(start.y)} C {f(mid_x)} {f(start.y)}, "
                f"{f(mid_x)} {f(end.y)}, {f(end.x)} {f(end.y)}"
            )
        return f"M {f(start.x)} {f(start.y)} L {f(end.x)} {f(end.y)}"

    def _emit_connector(self, connector: Connector, state: _PaintState) -> str:
        path = self._connector_path(connector, state)
        if path is None:
            return state.omit(f"connector '{connector.key}' with unresolved endpoint")

        f = format_number
        dash = ' stroke-dasharray="6 6"' if connector.dashed else ""
        marker = ' marker-end="url(#arrowHead)"' if connector.marker_end == "arrow" else ""
        clip = ""
        region_id = state.context.connector_regions.get(connector.key)
        if region_id is not None:
            clip = f' clip-path="url(#{esc(region_id)})"'

        label = ""
        if connector.label:
            start = self._endpoint_point(connector.source, state)
            end = self._endpoint_point(connector.target, state)
            label = (
                f'<text x="{f((start.x + end.x) / 2)}" y="{f((start.y + end.y) / 2 - 6)}" '
                f'font-size="11" fill="{CONNECTOR_LABEL_COLOR}" text-anchor="middle">'
                f"{esc(connector.label)}</text>"
            )
        return (
            f'<g class="connector" id="{esc(connector.key)}"{clip}>'
            f'<path d="{path}" fill="none"{style_attr(connector.style)}{dash}{marker}/>'
            f"{label}</g>"
        )

    def _emit_flow(
        self, flow: Flow, connectors: List[Connector], state: _PaintState
    ) -> str:
        by_id: Dict[str, Connector] = {}
        for connector in connectors:
            by_id.setdefault(connector.key, connector)

        segments = []
        for connector_id in flow.connector_ids:
            connector = by_id.get(connector_id)
            if connector is None:
                state.omit(f"flow '{flow.id}' segment '{connector_id}'")
                continue
            path = self._connector_path(connector, state)
            if path is None:
                state.omit(f"flow '{flow.id}' segment '{connector_id}'")
                continue
            segments.append(path)

        if not segments:
            return state.omit(f"flow '{flow.id}' without drawable segments")

        f = format_number
        flow_id = esc(flow.id)
        speed = flow.speed if flow.speed and flow.speed > 0 else 160
        duration = f(len(segments) * FLOW_SEGMENT_LENGTH / speed)
        repeat = "indefinite" if flow.loop else "1"

        activation = ""
        if flow.activate is not None and flow.activate.class_name:
            for boundary_id in flow.activate.boundary_ids:
                if boundary_id not in state.nodes:
                    state.omit(f"flow '{flow.id}' activation of '{boundary_id}'")
                    continue
                activation += (
                    f'<set href="#{esc(boundary_id)}" attributeName="class" '
                    f'to="boundary {esc(flow.activate.class_name)}" begin="0s" dur="{duration}s"/>'
                )

        return (
            f'<g class="flow" id="{flow_id}">'
            f'<path d="{" ".join(segments)}" fill="none" stroke="none" id="{flow_id}-path"/>'
            f'<circle r="{f(flow.token.size)}" fill="{esc(flow.token.color)}" class="flow-token">'
            f'<animateMotion dur="{duration}s" repeatCount="{repeat}" rotate="auto">'
            f'<mpath href="#{flow_id}-path"/></animateMotion></circle>'
            f"{activation}</g>"
        )


_default_renderer = SceneRenderer()


def render(scene: Scene) -> str:
    """Render a scene to SVG with the default renderer (pass 1 is discarded)."""
    return _default_renderer.render(scene)


def render_with_diagnostics(scene: Scene) -> RenderResult:
    """Render a scene and expose the enforcement result alongside the markup."""
    return _default_renderer.render_with_diagnostics(scene)
