"""
Debug tracing infrastructure for scenebound.

This module provides data structures for capturing detailed traces of the
two-pass render pipeline. When debug mode is enabled, the renderer records
a snapshot of every pipeline stage and every rectangle decision the
enforcement engine makes.

This is primarily useful for:
1. Debugging containment issues (why did a node end up where it is?)
2. Understanding the pipeline flow (seeing intermediate states)
3. Writing targeted tests (verifying specific enforcement decisions)

Usage:
    >>> renderer = SceneRenderer()
    >>> markup = renderer.render(scene, debug=True)
    >>> trace = renderer.get_trace()
    >>> print(trace.summary())
    >>> trace.dump_to_file("debug_trace.txt")

The trace captures:
- Pipeline stages (validate, containment, paint)
- Every node's original and corrected absolute rectangle, with the action
  that was taken
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .geometry import Rect

# Actions recorded for a node during the enforcement walk
ACTION_UNBOUNDED = "unbounded"  # no enclosing boundary
ACTION_UNCHANGED = "unchanged"
ACTION_SNAPPED = "snapped"
ACTION_REPORTED = "reported"  # violation reported, rectangle kept
ACTION_CLAMPED = "clamped"
ACTION_RESIZED = "resized"

CORRECTING_ACTIONS = (ACTION_SNAPPED, ACTION_CLAMPED, ACTION_RESIZED)


def _fmt_rect(rect: Rect) -> str:
    return f"({rect.x},{rect.y} {rect.w}x{rect.h})"


@dataclass
class RectDecision:
    """
    Record of what enforcement did with one node.

    Attributes:
        node_id: The node that was processed.
        boundary_id: Enclosing boundary, or None at the top level.
        original: Absolute rectangle before snapping and correction.
        corrected: Absolute rectangle stored in the side-table.
        action: One of the ACTION_* constants.
    """

    node_id: str
    boundary_id: Optional[str]
    original: Rect
    corrected: Rect
    action: str

    def __str__(self) -> str:
        where = f"in {self.boundary_id}" if self.boundary_id else "at top level"
        if self.original == self.corrected:
            return f"{self.node_id} {where}: {_fmt_rect(self.original)} [{self.action}]"
        return (
            f"{self.node_id} {where}: {_fmt_rect(self.original)} -> "
            f"{_fmt_rect(self.corrected)} [{self.action}]"
        )


@dataclass
class PipelineStage:
    """
    Snapshot of state at a pipeline stage.

    Attributes:
        name: Name of this pipeline stage
        data: Dictionary of relevant data at this stage
    """

    name: str
    data: Dict[str, Any]

    def __str__(self) -> str:
        lines = [f"=== Stage: {self.name} ==="]
        for key, value in self.data.items():
            # Truncate long values
            str_val = str(value)
            if len(str_val) > 100:
                str_val = str_val[:100] + "..."
            lines.append(f"  {key}: {str_val}")
        return "\n".join(lines)


@dataclass
class RenderTrace:
    """
    Complete trace of a render operation.

    Attributes:
        stages: List of pipeline stages with their data
        decisions: Rectangle decisions in walk order
        scene_id: Id of the traced scene
    """

    stages: List[PipelineStage] = field(default_factory=list)
    decisions: List[RectDecision] = field(default_factory=list)
    scene_id: str = ""

    def add_stage(self, name: str, data: Dict[str, Any]) -> None:
        self.stages.append(PipelineStage(name, data.copy()))

    def add_decision(
        self,
        node_id: str,
        boundary_id: Optional[str],
        original: Rect,
        corrected: Rect,
        action: str,
    ) -> None:
        self.decisions.append(
            RectDecision(node_id, boundary_id, original, corrected, action)
        )

    def get_stage(self, name: str) -> Optional[PipelineStage]:
        """Get a specific pipeline stage by name."""
        for stage in self.stages:
            if stage.name == name:
                return stage
        return None

    def get_decisions_for(self, node_id: str) -> List[RectDecision]:
        return [d for d in self.decisions if d.node_id == node_id]

    def get_decisions_by_action(self, action: str) -> List[RectDecision]:
        return [d for d in self.decisions if d.action == action]

    def get_corrections(self) -> List[RectDecision]:
        """All decisions where enforcement moved or resized a node."""
        return [d for d in self.decisions if d.action in CORRECTING_ACTIONS]

    def summary(self) -> str:
        """
        Generate a human-readable summary of the trace.

        Returns a string with:
        - Scene id
        - Pipeline stages overview
        - Decision statistics
        """
        lines = [
            "=" * 60,
            "RENDER TRACE SUMMARY",
            "=" * 60,
            "",
            f"Scene: {self.scene_id}",
            "",
            f"Pipeline stages: {len(self.stages)}",
        ]

        for stage in self.stages:
            lines.append(f"  - {stage.name}")

        lines.extend(
            [
                "",
                f"Nodes processed: {len(self.decisions)}",
                f"Corrections: {len(self.get_corrections())}",
                "",
            ]
        )

        action_counts: Dict[str, int] = {}
        for d in self.decisions:
            action_counts[d.action] = action_counts.get(d.action, 0) + 1

        lines.append("Decisions by action:")
        for action, count in sorted(action_counts.items(), key=lambda x: (-x[1], x[0])):
            lines.append(f"  {action}: {count}")

        return "\n".join(lines)

    def dump(self) -> str:
        """Summary followed by every stage and every decision."""
        lines = [self.summary(), "", "=" * 60, "DETAILED TRACE", "=" * 60, ""]

        lines.append("PIPELINE STAGES:")
        lines.append("-" * 40)
        for stage in self.stages:
            lines.append(str(stage))
            lines.append("")

        lines.append("RECT DECISIONS:")
        lines.append("-" * 40)
        for d in self.decisions:
            lines.append(str(d))

        return "\n".join(lines)

    def dump_to_file(self, filename: str) -> None:
        """Write the complete trace dump to a file."""
        with open(filename, "w", encoding="utf-8") as f:
            f.write(self.dump())
