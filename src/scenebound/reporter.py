"""
Diagnostic reporting and auto-fixes.

The reporter runs enforcement over a scene and turns the resulting
diagnostics into a DiagnosticReport: counts, the diagnostics themselves and
one auto-fix suggestion per actionable diagnostic.

Suggestions are rated by confidence. ``apply_auto_fixes`` only ever applies
"high" confidence suggestions; medium and low ones are surfaced for a human
or an agent to review.

| Diagnostic     | Suggestion                         | Confidence |
|----------------|------------------------------------|------------|
| OUT_OF_BOUNDS  | MOVE_NODE to suggestedFix.at       | high       |
| PORT_OUTSIDE   | MOVE_NODE host into its boundary   | medium     |
| NEG_SIZE       | RESIZE_NODE to max(10, actual)     | high       |
| CONNECTOR_LEAK | ADD_POLICY strict/clip/0           | medium     |
"""

import copy
import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional

from .diagnostics import (
    AutoFixSuggestion,
    Confidence,
    Diagnostic,
    DiagnosticCode,
    DiagnosticReport,
    ReportSummary,
    SuggestionType,
)
from .enforcement import BoundaryEnforcer
from .geometry import Point, Rect, clamp_to
from .models import Policy, Scene, Size, SnapConfig
from .scene_index import SceneIndex, count_nodes

logger = logging.getLogger(__name__)

# Smallest width/height a RESIZE_NODE suggestion proposes
MIN_FIX_SIZE = 10

# Policy proposed for boundaries that leak connectors
STRICT_CLIP_POLICY = {"mode": "strict", "overflow": "clip", "tolerance": 0}


def _utc_timestamp() -> str:
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _port_adjustment(diagnostic: Diagnostic) -> dict:
    """Host ``at`` that moves the host rectangle fully inside the boundary."""
    actual = diagnostic.actual or {}
    if "hostRect" not in actual or "boundaryRect" not in actual:
        return {"x": 0, "y": 0}
    host_rect = Rect.from_dict(actual["hostRect"])
    boundary_rect = Rect.from_dict(actual["boundaryRect"])
    origin = actual.get("hostOrigin", {"x": 0, "y": 0})
    clamped = clamp_to(boundary_rect, host_rect)
    return {"x": clamped.x - origin["x"], "y": clamped.y - origin["y"]}


def suggest_fix(diagnostic: Diagnostic) -> Optional[AutoFixSuggestion]:
    """
    Derive the auto-fix suggestion for one diagnostic.

    Args:
        diagnostic: The diagnostic to address.

    Returns:
        An AutoFixSuggestion, or None when the diagnostic carries nothing to
        act on (an OUT_OF_BOUNDS without a suggested fix).
    """
    code = diagnostic.code

    if code == DiagnosticCode.OUT_OF_BOUNDS:
        fix = diagnostic.suggested_fix or {}
        if "at" not in fix:
            return None
        return AutoFixSuggestion(
            type=SuggestionType.MOVE_NODE,
            node_id=diagnostic.node_id,
            description=(
                f"Move node '{diagnostic.node_id}' to stay within boundary "
                f"'{diagnostic.boundary_id}'"
            ),
            changes={"at": dict(fix["at"])},
            confidence=Confidence.HIGH,
        )

    if code == DiagnosticCode.PORT_OUTSIDE:
        return AutoFixSuggestion(
            type=SuggestionType.MOVE_NODE,
            node_id=diagnostic.node_id,
            description=(
                f"Adjust node '{diagnostic.node_id}' position so its port stays "
                f"within boundary '{diagnostic.boundary_id}'"
            ),
            changes={"at": _port_adjustment(diagnostic)},
            confidence=Confidence.MEDIUM,
        )

    if code == DiagnosticCode.NEG_SIZE:
        actual = diagnostic.actual or {}
        return AutoFixSuggestion(
            type=SuggestionType.RESIZE_NODE,
            node_id=diagnostic.node_id,
            description=f"Fix negative size for node '{diagnostic.node_id}'",
            changes={
                "size": {
                    "width": max(MIN_FIX_SIZE, actual.get("width") or MIN_FIX_SIZE),
                    "height": max(MIN_FIX_SIZE, actual.get("height") or MIN_FIX_SIZE),
                }
            },
            confidence=Confidence.HIGH,
        )

    if code == DiagnosticCode.CONNECTOR_LEAK:
        return AutoFixSuggestion(
            type=SuggestionType.ADD_POLICY,
            node_id=diagnostic.boundary_id,
            description=(
                f"Add stricter boundary policy to '{diagnostic.boundary_id}' "
                f"to prevent connector leaks"
            ),
            changes={"policy": dict(STRICT_CLIP_POLICY)},
            confidence=Confidence.MEDIUM,
        )

    return None


def generate_suggestions(diagnostics: List[Diagnostic]) -> List[AutoFixSuggestion]:
    """Suggestions for a list of diagnostics, in diagnostic order."""
    suggestions = []
    for diagnostic in diagnostics:
        suggestion = suggest_fix(diagnostic)
        if suggestion is not None:
            suggestions.append(suggestion)
    return suggestions


def _merge_policy(current: Optional[Policy], changes: dict) -> Policy:
    base = current or Policy()
    snap = base.snap
    if "snap" in changes:
        snap_changes = changes["snap"]
        snap = SnapConfig(**snap_changes) if snap_changes is not None else None
    return Policy(
        mode=changes.get("mode", base.mode),
        overflow=changes.get("overflow", base.overflow),
        snap=snap,
        tolerance=changes.get("tolerance", base.tolerance),
    )


def _apply_fix(index: SceneIndex, suggestion: AutoFixSuggestion) -> None:
    node = index.get(suggestion.node_id)
    if node is None:
        logger.warning(
            "Auto-fix for unknown node %r skipped", suggestion.node_id
        )
        return

    changes = suggestion.changes
    if suggestion.type == SuggestionType.MOVE_NODE:
        if "at" in changes:
            node.at = Point(changes["at"]["x"], changes["at"]["y"])
    elif suggestion.type in (SuggestionType.RESIZE_NODE, SuggestionType.ADJUST_BOUNDARY):
        if suggestion.type == SuggestionType.ADJUST_BOUNDARY and node.kind != "boundary":
            return
        if "size" in changes and hasattr(node, "size"):
            current = node.size or Size()
            node.size = Size(
                changes["size"].get("width", current.width),
                changes["size"].get("height", current.height),
            )
    elif suggestion.type == SuggestionType.ADD_POLICY:
        if node.kind == "boundary" and "policy" in changes:
            node.policy = _merge_policy(node.policy, changes["policy"])


def apply_auto_fixes(scene: Scene, suggestions: List[AutoFixSuggestion]) -> Scene:
    """
    Apply the high-confidence suggestions to a copy of ``scene``.

    Medium and low confidence suggestions are never applied. The input
    scene is left untouched.

    Args:
        scene: Scene the suggestions were derived from.
        suggestions: Suggestions, typically from a DiagnosticReport.

    Returns:
        The fixed deep copy.
    """
    fixed = copy.deepcopy(scene)
    index = SceneIndex.from_scene(fixed)
    for suggestion in suggestions:
        if suggestion.confidence == Confidence.HIGH:
            _apply_fix(index, suggestion)
    return fixed


class DiagnosticReporter:
    """
    Builds diagnostic reports for scenes.

    Attributes:
        enforcer: Enforcement engine used to produce diagnostics.
        clock: Callable returning the ISO-8601 timestamp for a report.
    """

    def __init__(
        self,
        enforcer: Optional[BoundaryEnforcer] = None,
        clock: Optional[Callable[[], str]] = None,
    ):
        self.enforcer = enforcer or BoundaryEnforcer()
        self.clock = clock or _utc_timestamp

    def report(self, scene: Scene) -> DiagnosticReport:
        """
        Run enforcement and build the report for ``scene``.

        Returns:
            DiagnosticReport with summary counts, diagnostics and suggestions.
        """
        result = self.enforcer.enforce(scene)
        counts = count_nodes(scene)
        summary = ReportSummary(
            errors=result.summary.errors,
            warnings=result.summary.warnings,
            total_nodes=counts["total"],
            boundaries_processed=counts["boundaries"],
        )
        return DiagnosticReport(
            scene_id=scene.id,
            timestamp=self.clock(),
            summary=summary,
            diagnostics=result.diagnostics,
            suggestions=generate_suggestions(result.diagnostics),
        )


def report(scene: Scene) -> DiagnosticReport:
    """Build a diagnostic report with a default DiagnosticReporter."""
    return DiagnosticReporter().report(scene)


def format_summary(report: DiagnosticReport) -> str:
    """Plain-text console summary of a report."""
    summary = report.summary
    lines = [
        f"Boundary Enforcement Report for '{report.scene_id}'",
        f"Summary: {summary.errors} errors, {summary.warnings} warnings",
        f"Processed: {summary.total_nodes} nodes, "
        f"{summary.boundaries_processed} boundaries",
    ]

    if report.diagnostics:
        lines.append("")
        lines.append("Issues Found:")
        for i, diagnostic in enumerate(report.diagnostics, 1):
            lines.append(
                f"  {i}. [{diagnostic.severity.value.upper()}] {diagnostic.message}"
            )

    if report.suggestions:
        lines.append("")
        lines.append("Auto-fix Suggestions:")
        for i, suggestion in enumerate(report.suggestions, 1):
            lines.append(
                f"  {i}. [{suggestion.confidence.value.upper()}] {suggestion.description}"
            )

    if not report.diagnostics:
        lines.append("")
        lines.append("No boundary violations detected.")

    return "\n".join(lines)
