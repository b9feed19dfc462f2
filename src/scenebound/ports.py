"""
Port validation.

A port is an attachment point on one side of a host node. Its position is
derived from the host's corrected rectangle, so ports are validated after
the enforcement walk. A port outside its boundary is always an error,
whatever the boundary's mode: ports are never loose.
"""

from typing import Optional

from .diagnostics import Diagnostic, DiagnosticCode, Severity
from .geometry import Point, Rect, contains_point
from .models import DEFAULT_BOUNDARY_POLICY, BoundaryNode, Policy, Port


def port_position(port: Port, host_rect: Rect) -> Point:
    """
    Absolute position of ``port`` on ``host_rect``.

    The offset runs down the left/right sides and along the top/bottom
    sides, measured from the host's top-left corner.
    """
    if port.side == "left":
        return Point(host_rect.x, host_rect.y + port.offset)
    if port.side == "right":
        return Point(host_rect.x + host_rect.w, host_rect.y + port.offset)
    if port.side == "top":
        return Point(host_rect.x + port.offset, host_rect.y)
    return Point(host_rect.x + port.offset, host_rect.y + host_rect.h)


def validate_port(
    port: Port,
    host_rect: Rect,
    boundary: BoundaryNode,
    boundary_rect: Optional[Rect] = None,
    default_policy: Policy = DEFAULT_BOUNDARY_POLICY,
    host_origin: Optional[Point] = None,
) -> Optional[Diagnostic]:
    """
    Check that a port stays inside the boundary enclosing its host.

    Args:
        port: The port to check.
        host_rect: Corrected absolute rectangle of the host node.
        boundary: Boundary that structurally contains the host.
        boundary_rect: Absolute rectangle of the boundary. Defaults to the
            boundary's own ``at``/``size``, which is only absolute for
            top-level boundaries.
        default_policy: Policy for boundaries that declare none; only its
            tolerance matters here.
        host_origin: Origin the host's ``at`` is relative to. Recorded so a
            fix can be expressed in the host's frame.

    Returns:
        A PORT_OUTSIDE diagnostic, or None when the port is inside.
    """
    if boundary_rect is None:
        boundary_rect = Rect(
            boundary.at.x, boundary.at.y, boundary.size.width, boundary.size.height
        )
    tolerance = boundary.effective_policy(default_policy).tolerance or 0
    position = port_position(port, host_rect)

    if contains_point(boundary_rect, position, tolerance):
        return None

    origin = host_origin if host_origin is not None else Point(0, 0)
    return Diagnostic(
        code=DiagnosticCode.PORT_OUTSIDE,
        node_id=port.node_id,
        boundary_id=boundary.id,
        severity=Severity.ERROR,
        message=f"Port '{port.id}' is not on/inside its boundary '{boundary.id}'.",
        actual={
            "portId": port.id,
            "portPos": position.to_dict(),
            "hostRect": host_rect.to_dict(),
            "boundaryRect": boundary_rect.to_dict(),
            "hostOrigin": origin.to_dict(),
        },
    )
