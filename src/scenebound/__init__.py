"""
scenebound - Boundary Enforcement & Visual Containment for SVG scenes

A Python library that renders declarative scenes to SVG while keeping nested
elements inside their declared boundaries.

Example:
    >>> from scenebound import SceneRenderer, parse_scene
    >>> scene = parse_scene({
    ...     "id": "demo",
    ...     "canvas": {"width": 400, "height": 300},
    ...     "nodes": [{
    ...         "kind": "boundary", "id": "lane",
    ...         "at": {"x": 10, "y": 10}, "size": {"width": 200, "height": 100},
    ...         "children": [{
    ...             "kind": "shape", "id": "box",
    ...             "at": {"x": 180, "y": 10}, "size": {"width": 40, "height": 20},
    ...         }],
    ...     }],
    ... })
    >>> result = SceneRenderer().render_with_diagnostics(scene)
    >>> result.enforcement.rects["box"]
    Rect(x=170, y=20, w=40, h=20)

Debug Mode Example:
    >>> renderer = SceneRenderer()
    >>> markup = renderer.render(scene, debug=True)
    >>> print(renderer.get_trace().summary())
"""

from .containment import (
    DEFAULT_BORDER_RADIUS,
    DEFAULT_CORRIDOR_WIDTH,
    ContainmentContext,
    ContainmentRegion,
    collect_containment,
    composite_path_data,
    containment_attribute,
    needs_containment,
    render_containment_defs,
)
from .diagnostics import (
    AutoFixSuggestion,
    Confidence,
    Diagnostic,
    DiagnosticCode,
    DiagnosticReport,
    ReportSummary,
    Severity,
    SuggestionType,
)
from .enforcement import BoundaryEnforcer, EnforcementResult, enforce
from .export import SceneExporter
from .geometry import Point, Rect, bounding_box, clamp_to, contains, snap
from .models import (
    DEFAULT_BOUNDARY_POLICY,
    BoundaryNode,
    Connector,
    Flow,
    GroupNode,
    Policy,
    Port,
    PortRef,
    RawContentNode,
    Scene,
    ShapeNode,
    Size,
    SnapConfig,
    SpriteNode,
    SpriteRef,
    TextNode,
)
from .parser import ParseError, SceneParser, parse_scene, parse_scene_json
from .ports import port_position, validate_port
from .renderer import RenderResult, SceneRenderer, render, render_with_diagnostics
from .reporter import DiagnosticReporter, apply_auto_fixes, format_summary, report
from .scene_index import SceneIndex
from .tracer import PipelineStage, RectDecision, RenderTrace

__version__ = "0.1.0"

__all__ = [
    # Main API
    "SceneRenderer",
    "RenderResult",
    "render",
    "render_with_diagnostics",
    # Parser
    "SceneParser",
    "ParseError",
    "parse_scene",
    "parse_scene_json",
    # Model
    "Scene",
    "GroupNode",
    "BoundaryNode",
    "SpriteNode",
    "SpriteRef",
    "ShapeNode",
    "TextNode",
    "RawContentNode",
    "Policy",
    "SnapConfig",
    "DEFAULT_BOUNDARY_POLICY",
    "Port",
    "PortRef",
    "Connector",
    "Flow",
    "Size",
    # Geometry
    "Point",
    "Rect",
    "snap",
    "clamp_to",
    "contains",
    "bounding_box",
    # Enforcement
    "BoundaryEnforcer",
    "EnforcementResult",
    "enforce",
    "SceneIndex",
    "port_position",
    "validate_port",
    # Containment
    "ContainmentContext",
    "ContainmentRegion",
    "collect_containment",
    "composite_path_data",
    "containment_attribute",
    "needs_containment",
    "render_containment_defs",
    "DEFAULT_CORRIDOR_WIDTH",
    "DEFAULT_BORDER_RADIUS",
    # Diagnostics
    "Diagnostic",
    "DiagnosticCode",
    "Severity",
    "AutoFixSuggestion",
    "SuggestionType",
    "Confidence",
    "DiagnosticReport",
    "ReportSummary",
    "DiagnosticReporter",
    "report",
    "apply_auto_fixes",
    "format_summary",
    # Export
    "SceneExporter",
    # Debug/Tracing
    "RenderTrace",
    "RectDecision",
    "PipelineStage",
]
