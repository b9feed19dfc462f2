"""
Boundary enforcement (pass 1 of the two-pass render).

The enforcement engine walks the scene tree depth-first in pre-order,
computes every node's absolute rectangle, checks it against the nearest
enclosing boundary and corrects it according to that boundary's policy:

- strict + clip:   move the node inside the boundary
- strict + resize: move it inside, then shrink it to the boundary edge
- strict + mask/error: report only, the paint pass hides the overflow
- loose:           report only (warning), never move or resize

After the walk, ports are validated against the corrected rectangles and
connectors are checked for endpoints that leak out of their boundary.

The caller's scene is never modified. Enforcement works on a deep copy,
writes corrected ``at``/``size`` values back onto that copy and keeps the
corrected absolute rectangles in a ``nodeId -> Rect`` side-table for the
paint pass.
"""

import copy
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .diagnostics import Diagnostic, DiagnosticCode, Severity, count_severity
from .geometry import Point, Rect, clamp_to, contains, contains_point, snap
from .models import (
    DEFAULT_BOUNDARY_POLICY,
    BoundaryNode,
    Node,
    Policy,
    PortRef,
    Scene,
    Size,
    explicit_size,
    node_children,
)
from .ports import validate_port
from .scene_index import SceneIndex, node_rect
from .tracer import (
    ACTION_CLAMPED,
    ACTION_REPORTED,
    ACTION_RESIZED,
    ACTION_SNAPPED,
    ACTION_UNBOUNDED,
    ACTION_UNCHANGED,
    RenderTrace,
)

logger = logging.getLogger(__name__)


@dataclass
class EnforcementSummary:
    errors: int = 0
    warnings: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {"errors": self.errors, "warnings": self.warnings}


@dataclass
class EnforcementResult:
    """
    Output of pass 1.

    Attributes:
        scene: Corrected deep copy of the input scene.
        diagnostics: Violations in walk order, then ports, then connectors.
        summary: Error and warning counts.
        rects: Corrected absolute rectangle of every node, by id.
        origins: Absolute origin each node's ``at`` is relative to, by id.
        index: Node index of the corrected scene.
    """

    scene: Scene
    diagnostics: List[Diagnostic]
    summary: EnforcementSummary
    rects: Dict[str, Rect]
    origins: Dict[str, Point]
    index: SceneIndex


@dataclass
class _EnforcementContext:
    """Mutable state of a single enforce() call."""

    diagnostics: List[Diagnostic] = field(default_factory=list)
    rects: Dict[str, Rect] = field(default_factory=dict)
    origins: Dict[str, Point] = field(default_factory=dict)
    trace: Optional[RenderTrace] = None

    def store(self, node_id: str, rect: Rect, origin: Point) -> None:
        # First node with a given id owns the side-table entry
        self.rects.setdefault(node_id, rect)
        self.origins.setdefault(node_id, origin)


class BoundaryEnforcer:
    """
    Validates and corrects node positions against boundary policies.

    Attributes:
        default_policy: Policy used for boundaries that declare none.
    """

    def __init__(self, default_policy: Policy = DEFAULT_BOUNDARY_POLICY):
        self.default_policy = default_policy

    def enforce(
        self, scene: Scene, trace: Optional[RenderTrace] = None
    ) -> EnforcementResult:
        """
        Run the validate-and-correct pass over a scene.

        Args:
            scene: Input scene. It is not modified.
            trace: Optional trace that receives one decision per node.

        Returns:
            EnforcementResult with the corrected scene, diagnostics and the
            rectangle side-table.
        """
        corrected = copy.deepcopy(scene)
        ctx = _EnforcementContext(trace=trace)

        for root in corrected.nodes:
            self._walk(root, Point(0, 0), None, None, ctx)

        index = SceneIndex.from_scene(corrected)
        self._validate_ports(corrected, index, ctx)
        self._check_connectors(corrected, index, ctx)

        summary = EnforcementSummary(
            errors=count_severity(ctx.diagnostics, Severity.ERROR),
            warnings=count_severity(ctx.diagnostics, Severity.WARNING),
        )
        logger.debug(
            "Enforced scene %r: %d errors, %d warnings",
            scene.id,
            summary.errors,
            summary.warnings,
        )

        return EnforcementResult(
            scene=corrected,
            diagnostics=ctx.diagnostics,
            summary=summary,
            rects=ctx.rects,
            origins=ctx.origins,
            index=index,
        )

    def _walk(
        self,
        node: Node,
        origin: Point,
        boundary: Optional[BoundaryNode],
        boundary_rect: Optional[Rect],
        ctx: _EnforcementContext,
    ) -> None:
        original = node_rect(node, origin)
        rect = original
        action = ACTION_UNBOUNDED

        self._check_size(node, boundary, ctx)

        if boundary is not None:
            policy = boundary.effective_policy(self.default_policy)
            action = ACTION_UNCHANGED

            # Snapping is a correction, so loose boundaries never snap.
            # The grid is anchored at the boundary origin.
            snap_grid = self._snap_grid(boundary)
            if snap_grid > 1 and policy.mode == "strict":
                rect = rect.moved_to(
                    boundary_rect.x + snap(rect.x - boundary_rect.x, snap_grid),
                    boundary_rect.y + snap(rect.y - boundary_rect.y, snap_grid),
                )
                if rect != original:
                    action = ACTION_SNAPPED

            rect, violated_action = self._apply_policy(
                node, rect, origin, boundary, boundary_rect, policy, ctx
            )
            if violated_action is not None:
                action = violated_action

        if rect != original:
            self._write_back(node, rect, origin, original)

        ctx.store(node.id, rect, origin)
        if ctx.trace is not None:
            ctx.trace.add_decision(
                node.id, boundary.id if boundary else None, original, rect, action
            )

        if node.kind == "boundary":
            child_boundary, child_boundary_rect = node, rect
        else:
            child_boundary, child_boundary_rect = boundary, boundary_rect

        for child in node_children(node):
            self._walk(child, rect.origin, child_boundary, child_boundary_rect, ctx)

    @staticmethod
    def _snap_grid(boundary: BoundaryNode):
        # Only an explicitly declared snap counts, never the default policy
        if boundary.policy is None or boundary.policy.snap is None:
            return 1
        return boundary.policy.snap.grid

    def _apply_policy(
        self,
        node: Node,
        rect: Rect,
        origin: Point,
        boundary: BoundaryNode,
        boundary_rect: Rect,
        policy: Policy,
        ctx: _EnforcementContext,
    ):
        """
        Check one rectangle against its boundary.

        Returns:
            Tuple of the (possibly corrected) rectangle and the trace action,
            or None as the action when the rectangle is inside.
        """
        tolerance = policy.tolerance or 0
        if contains(boundary_rect, rect, tolerance):
            return rect, None

        clamped = clamp_to(boundary_rect, rect)
        strict = policy.mode == "strict"
        ctx.diagnostics.append(
            Diagnostic(
                code=DiagnosticCode.OUT_OF_BOUNDS,
                node_id=node.id,
                boundary_id=boundary.id,
                severity=Severity.ERROR if strict else Severity.WARNING,
                message=f"Node '{node.id}' escapes boundary '{boundary.id}'.",
                actual={"rect": rect.to_dict(), "boundary": boundary_rect.to_dict()},
                suggested_fix={
                    "at": {"x": clamped.x - origin.x, "y": clamped.y - origin.y},
                    "absoluteAt": clamped.origin.to_dict(),
                },
            )
        )

        if not policy.corrects:
            logger.debug(
                "Node %r escapes %r (%s/%s); reported only",
                node.id,
                boundary.id,
                policy.mode,
                policy.overflow,
            )
            return rect, ACTION_REPORTED

        if policy.overflow == "resize":
            width = min(rect.w, boundary_rect.right - clamped.x)
            height = min(rect.h, boundary_rect.bottom - clamped.y)
            logger.debug("Node %r resized into %r", node.id, boundary.id)
            return Rect(clamped.x, clamped.y, width, height), ACTION_RESIZED

        logger.debug("Node %r clamped into %r", node.id, boundary.id)
        return clamped, ACTION_CLAMPED

    @staticmethod
    def _write_back(node: Node, rect: Rect, origin: Point, original: Rect) -> None:
        if (rect.x, rect.y) != (original.x, original.y):
            node.at = Point(rect.x - origin.x, rect.y - origin.y)
        if (rect.w, rect.h) != (original.w, original.h) and hasattr(node, "size"):
            node.size = Size(rect.w, rect.h)

    @staticmethod
    def _check_size(
        node: Node, boundary: Optional[BoundaryNode], ctx: _EnforcementContext
    ) -> None:
        size = explicit_size(node)
        if size is None:
            return
        if (size.width or 0) >= 0 and (size.height or 0) >= 0:
            return
        ctx.diagnostics.append(
            Diagnostic(
                code=DiagnosticCode.NEG_SIZE,
                node_id=node.id,
                boundary_id=boundary.id if boundary else "",
                severity=Severity.WARNING,
                message=f"Node '{node.id}' has a negative size.",
                actual=size.to_dict(),
            )
        )

    def _validate_ports(
        self, scene: Scene, index: SceneIndex, ctx: _EnforcementContext
    ) -> None:
        for port in scene.ports:
            host = index.get(port.node_id)
            if host is None:
                logger.warning(
                    "Port %r references unknown node %r; skipped", port.id, port.node_id
                )
                continue
            boundary = index.enclosing_boundary(host.id)
            if boundary is None:
                continue
            diagnostic = validate_port(
                port,
                ctx.rects[host.id],
                boundary,
                boundary_rect=ctx.rects[boundary.id],
                default_policy=self.default_policy,
                host_origin=ctx.origins[host.id],
            )
            if diagnostic is not None:
                ctx.diagnostics.append(diagnostic)

    def _check_connectors(
        self, scene: Scene, index: SceneIndex, ctx: _EnforcementContext
    ) -> None:
        for connector in scene.connectors:
            reported = set()
            for endpoint in (connector.source, connector.target):
                # Port endpoints are covered by PORT_OUTSIDE
                if isinstance(endpoint, PortRef):
                    continue
                node = index.get(endpoint)
                if node is None:
                    continue
                boundary = index.enclosing_boundary(node.id)
                if boundary is None or boundary.id in reported:
                    continue

                tolerance = boundary.effective_policy(self.default_policy).tolerance or 0
                boundary_rect = ctx.rects[boundary.id]
                anchor = ctx.rects[node.id].center
                if contains_point(boundary_rect, anchor, tolerance):
                    continue

                reported.add(boundary.id)
                ctx.diagnostics.append(
                    Diagnostic(
                        code=DiagnosticCode.CONNECTOR_LEAK,
                        node_id=connector.key,
                        boundary_id=boundary.id,
                        severity=Severity.WARNING,
                        message=(
                            f"Connector '{connector.key}' leaves boundary "
                            f"'{boundary.id}' at node '{node.id}'."
                        ),
                        actual={
                            "endpointId": node.id,
                            "anchor": anchor.to_dict(),
                            "boundaryRect": boundary_rect.to_dict(),
                        },
                    )
                )


def enforce(scene: Scene, default_policy: Policy = DEFAULT_BOUNDARY_POLICY) -> EnforcementResult:
    """Run boundary enforcement with a default-configured BoundaryEnforcer."""
    return BoundaryEnforcer(default_policy=default_policy).enforce(scene)
