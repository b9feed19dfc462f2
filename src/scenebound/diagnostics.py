"""
Diagnostic records produced by boundary enforcement.

Containment problems are never raised as exceptions. The enforcement engine
records each one as a Diagnostic; the reporter derives AutoFixSuggestion
records from them and bundles everything into a DiagnosticReport whose
``to_dict()`` shape is the stable JSON contract consumed by external tools.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class DiagnosticCode(str, Enum):
    OUT_OF_BOUNDS = "OUT_OF_BOUNDS"
    NEG_SIZE = "NEG_SIZE"
    PORT_OUTSIDE = "PORT_OUTSIDE"
    CONNECTOR_LEAK = "CONNECTOR_LEAK"


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class SuggestionType(str, Enum):
    MOVE_NODE = "MOVE_NODE"
    RESIZE_NODE = "RESIZE_NODE"
    ADJUST_BOUNDARY = "ADJUST_BOUNDARY"
    ADD_POLICY = "ADD_POLICY"


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass
class Diagnostic:
    """
    One containment or geometry violation.

    Attributes:
        code: What went wrong.
        node_id: Offending node (or connector id for CONNECTOR_LEAK).
        boundary_id: Boundary the node violates ("" when there is none).
        severity: "error" for strict violations and ports, else "warning".
        message: Human-readable description.
        actual: Measured geometry, JSON-compatible.
        suggested_fix: Proposed correction, JSON-compatible.
    """

    code: DiagnosticCode
    node_id: str
    boundary_id: str
    severity: Severity
    message: str
    actual: Optional[Dict[str, Any]] = None
    suggested_fix: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "code": self.code.value,
            "nodeId": self.node_id,
            "boundaryId": self.boundary_id,
            "severity": self.severity.value,
            "message": self.message,
        }
        if self.actual is not None:
            data["actual"] = self.actual
        if self.suggested_fix is not None:
            data["suggestedFix"] = self.suggested_fix
        return data


@dataclass
class AutoFixSuggestion:
    """A confidence-rated proposed mutation addressing one diagnostic."""

    type: SuggestionType
    node_id: str
    description: str
    changes: Dict[str, Any]
    confidence: Confidence

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "nodeId": self.node_id,
            "description": self.description,
            "changes": self.changes,
            "confidence": self.confidence.value,
        }


@dataclass
class ReportSummary:
    errors: int = 0
    warnings: int = 0
    total_nodes: int = 0
    boundaries_processed: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "errors": self.errors,
            "warnings": self.warnings,
            "totalNodes": self.total_nodes,
            "boundariesProcessed": self.boundaries_processed,
        }


@dataclass
class DiagnosticReport:
    scene_id: str
    timestamp: str
    summary: ReportSummary
    diagnostics: List[Diagnostic] = field(default_factory=list)
    suggestions: List[AutoFixSuggestion] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sceneId": self.scene_id,
            "timestamp": self.timestamp,
            "summary": self.summary.to_dict(),
            "diagnostics": [d.to_dict() for d in self.diagnostics],
            "suggestions": [s.to_dict() for s in self.suggestions],
        }

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)


def count_severity(diagnostics: List[Diagnostic], severity: Severity) -> int:
    return sum(1 for d in diagnostics if d.severity == severity)
