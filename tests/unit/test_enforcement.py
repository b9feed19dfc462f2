"""
Tests for the boundary enforcement engine.

These tests verify the validate-and-correct pass: clamping, resizing,
snapping, loose reporting, negative sizes, ports and connector leaks.
"""

import copy

from scenebound.diagnostics import DiagnosticCode, Severity
from scenebound.enforcement import BoundaryEnforcer, enforce
from scenebound.geometry import Point, Rect
from scenebound.models import (
    BoundaryNode,
    Connector,
    GroupNode,
    Policy,
    Port,
    PortRef,
    Scene,
    ShapeNode,
    Size,
    SnapConfig,
    TextNode,
)
from scenebound.tracer import ACTION_CLAMPED, ACTION_REPORTED, RenderTrace


def lane(policy, *children, at=(0, 0), size=(200, 100), node_id="lane"):
    return BoundaryNode(
        id=node_id, at=Point(*at), size=Size(*size), policy=policy, children=list(children)
    )


def shape(node_id, x, y, w, h):
    return ShapeNode(id=node_id, at=Point(x, y), size=Size(w, h))


def scene_of(*nodes, **kwargs):
    return Scene(id="test", canvas=Size(800, 600), nodes=list(nodes), **kwargs)


class TestClip:
    """strict + clip moves violating nodes inside."""

    def test_clamps_overflowing_child(self, overflow_scene):
        result = enforce(overflow_scene)
        assert len(result.diagnostics) == 1
        diagnostic = result.diagnostics[0]
        assert diagnostic.code == DiagnosticCode.OUT_OF_BOUNDS
        assert diagnostic.severity == Severity.ERROR
        assert diagnostic.node_id == "child"
        assert diagnostic.boundary_id == "lane"
        assert result.rects["child"] == Rect(100, 50, 100, 50)
        assert result.scene.nodes[0].children[0].at == Point(100, 50)

    def test_summary_counts(self, overflow_scene):
        result = enforce(overflow_scene)
        assert result.summary.errors == 1
        assert result.summary.warnings == 0
        assert result.summary.to_dict() == {"errors": 1, "warnings": 0}

    def test_suggested_fix_is_relative(self, strict_clip):
        child = shape("child", 150, 80, 100, 50)
        scene = scene_of(lane(strict_clip, child, at=(50, 50)))
        result = enforce(scene)
        fix = result.diagnostics[0].suggested_fix
        assert fix["at"] == {"x": 100, "y": 50}
        assert fix["absoluteAt"] == {"x": 150, "y": 100}
        assert result.rects["child"] == Rect(150, 100, 100, 50)

    def test_input_is_not_mutated(self, overflow_scene):
        before = copy.deepcopy(overflow_scene)
        enforce(overflow_scene)
        assert overflow_scene == before

    def test_clean_scene_has_no_diagnostics(self, clean_scene):
        result = enforce(clean_scene)
        assert result.diagnostics == []
        assert result.scene == clean_scene

    def test_default_policy_tolerance(self):
        """Boundaries without a policy allow 1px of slack."""
        scene = scene_of(lane(None, shape("edge", 101, 0, 100, 10)))
        assert enforce(scene).diagnostics == []

    def test_nested_through_group(self, nested_scene):
        result = enforce(nested_scene)
        assert result.rects["deep"] == Rect(260, 130, 40, 20)
        group = result.scene.nodes[0].children[0]
        assert group.children[0].at == Point(140, 10)

    def test_descendants_follow_corrected_parent(self, strict_clip):
        inner = lane(
            strict_clip, shape("leaf", 0, 0, 10, 10), at=(180, 0), size=(50, 50), node_id="inner"
        )
        result = enforce(scene_of(lane(strict_clip, inner)))
        assert result.rects["inner"] == Rect(150, 0, 50, 50)
        assert result.rects["leaf"] == Rect(150, 0, 10, 10)


class TestOtherOverflowModes:
    """resize, mask and error overflow modes."""

    def test_resize_shrinks_oversized_child(self):
        policy = Policy(mode="strict", overflow="resize")
        result = enforce(scene_of(lane(policy, shape("wide", 50, 10, 300, 20))))
        assert result.rects["wide"] == Rect(0, 10, 200, 20)
        assert result.scene.nodes[0].children[0].size == Size(200, 20)

    def test_resize_writes_text_width_back(self):
        """A shrunk text node carries its corrected size in the corrected scene."""
        policy = Policy(mode="strict", overflow="resize")
        text = TextNode(id="t", at=Point(0, 0), text="abcdefghij")
        first = enforce(scene_of(lane(policy, text, size=(50, 100))))
        assert first.rects["t"] == Rect(0, 0, 50, 16)
        assert first.scene.nodes[0].children[0].size == Size(50, 16)

        second = enforce(first.scene)
        assert second.diagnostics == []
        assert second.rects["t"] == Rect(0, 0, 50, 16)

    def test_mask_reports_without_moving(self):
        policy = Policy(mode="strict", overflow="mask")
        result = enforce(scene_of(lane(policy, shape("c", 150, 80, 100, 50))))
        assert result.diagnostics[0].severity == Severity.ERROR
        assert result.rects["c"] == Rect(150, 80, 100, 50)

    def test_error_reports_without_moving(self):
        policy = Policy(mode="strict", overflow="error")
        result = enforce(scene_of(lane(policy, shape("c", 150, 80, 100, 50))))
        assert result.summary.errors == 1
        assert result.scene.nodes[0].children[0].at == Point(150, 80)


class TestLoose:
    """Loose boundaries only warn."""

    def test_warning_and_no_mutation(self, loose_scene):
        result = enforce(loose_scene)
        assert len(result.diagnostics) == 1
        assert result.diagnostics[0].severity == Severity.WARNING
        assert result.rects["child"] == Rect(150, 80, 100, 50)
        assert result.scene == loose_scene

    def test_loose_never_snaps(self):
        policy = Policy(mode="loose", snap=SnapConfig(grid=10))
        result = enforce(scene_of(lane(policy, shape("c", 23, 27, 10, 10))))
        assert result.rects["c"] == Rect(23, 27, 10, 10)


class TestSnap:
    """Grid snapping under strict policies."""

    def test_snaps_child_origin(self):
        policy = Policy(snap=SnapConfig(grid=10))
        result = enforce(scene_of(lane(policy, shape("c", 23, 25, 10, 10))))
        assert result.rects["c"] == Rect(20, 30, 10, 10)
        assert result.diagnostics == []

    def test_snapped_positions_are_grid_multiples(self):
        policy = Policy(snap=SnapConfig(grid=8))
        children = [shape(f"c{i}", 3 * i + 1, 5 * i + 2, 4, 4) for i in range(10)]
        result = enforce(scene_of(lane(policy, *children)))
        for child in children:
            rect = result.rects[child.id]
            assert rect.x % 8 == 0
            assert rect.y % 8 == 0

    def test_grid_is_anchored_at_boundary(self):
        policy = Policy(snap=SnapConfig(grid=10))
        on_grid = shape("on", 10, 10, 5, 5)
        off_grid = shape("off", 14, 17, 5, 5)
        result = enforce(scene_of(lane(policy, on_grid, off_grid, at=(3, 3))))
        assert result.rects["on"] == Rect(13, 13, 5, 5)
        assert result.rects["off"] == Rect(13, 23, 5, 5)
        assert result.scene.nodes[0].children[1].at == Point(10, 20)

    def test_default_policy_does_not_snap(self):
        result = enforce(scene_of(lane(None, shape("c", 23, 27, 10, 10))))
        assert result.rects["c"] == Rect(23, 27, 10, 10)


class TestNegativeSize:
    """NEG_SIZE diagnostics."""

    def test_negative_width_warns(self, strict_clip):
        result = enforce(scene_of(lane(strict_clip, shape("neg", 10, 10, -5, 10))))
        codes = [d.code for d in result.diagnostics]
        assert DiagnosticCode.NEG_SIZE in codes
        neg = result.diagnostics[0]
        assert neg.severity == Severity.WARNING
        assert neg.actual == {"width": -5, "height": 10}

    def test_zero_size_is_fine(self, strict_clip):
        result = enforce(scene_of(lane(strict_clip, shape("zero", 10, 10, 0, 0))))
        assert result.diagnostics == []


class TestPortsAndConnectors:
    """Post-walk port validation and connector leak checks."""

    def test_port_outside(self, port_scene):
        result = enforce(port_scene)
        ports = [d for d in result.diagnostics if d.code == DiagnosticCode.PORT_OUTSIDE]
        assert len(ports) == 1
        assert ports[0].severity == Severity.ERROR

    def test_port_uses_corrected_host_rect(self, strict_clip):
        host = shape("host", 190, 10, 20, 20)
        scene = scene_of(
            lane(strict_clip, host),
            ports=[Port(id="p", node_id="host", side="right", offset=5)],
        )
        result = enforce(scene)
        # Host is clamped to x=180, so its right-side port lands on the edge
        assert [d.code for d in result.diagnostics] == [DiagnosticCode.OUT_OF_BOUNDS]

    def test_port_under_duplicated_id_uses_its_own_boundary(self, strict_clip):
        first = shape("x", 10, 10, 20, 20)
        leaf = shape("y", 0, 0, 20, 20)
        duplicate = GroupNode(id="x", at=Point(10, 10), children=[leaf])
        scene = scene_of(
            lane(strict_clip, first, node_id="a"),
            lane(Policy(mode="loose"), duplicate, at=(300, 0), node_id="b"),
            ports=[Port(id="p", node_id="y", side="left", offset=0)],
        )
        result = enforce(scene)
        assert result.rects["y"] == Rect(310, 10, 20, 20)
        assert result.diagnostics == []

    def test_port_on_unknown_host_is_skipped(self):
        scene = scene_of(ports=[Port(id="p", node_id="ghost", side="left")])
        assert enforce(scene).diagnostics == []

    def test_connector_leak(self, loose_policy):
        scene = scene_of(
            lane(loose_policy, shape("out", 300, 10, 20, 20)),
            shape("other", 400, 400, 10, 10),
            connectors=[Connector(source="out", target="other", id="c1")],
        )
        result = enforce(scene)
        leaks = [d for d in result.diagnostics if d.code == DiagnosticCode.CONNECTOR_LEAK]
        assert len(leaks) == 1
        assert leaks[0].node_id == "c1"
        assert leaks[0].boundary_id == "lane"
        assert leaks[0].severity == Severity.WARNING

    def test_port_endpoints_do_not_leak(self, loose_policy):
        scene = scene_of(
            lane(loose_policy, shape("out", 300, 10, 20, 20)),
            shape("free", 400, 400, 10, 10),
            ports=[Port(id="p", node_id="out", side="left")],
            connectors=[Connector(source=PortRef("p"), target="free")],
        )
        codes = [d.code for d in enforce(scene).diagnostics]
        assert DiagnosticCode.CONNECTOR_LEAK not in codes


class TestOrderingAndTrace:
    """Determinism, ordering and trace output."""

    def test_diagnostic_order(self, strict_clip):
        scene = scene_of(
            lane(strict_clip, shape("a", 190, 0, 20, 20), shape("b", -10, 0, 5, 5)),
        )
        result = enforce(scene)
        assert [d.node_id for d in result.diagnostics] == ["a", "b"]

    def test_deterministic(self, overflow_scene):
        first = enforce(overflow_scene)
        second = enforce(overflow_scene)
        assert [d.to_dict() for d in first.diagnostics] == [
            d.to_dict() for d in second.diagnostics
        ]
        assert first.rects == second.rects

    def test_trace_records_decisions(self, overflow_scene):
        trace = RenderTrace(scene_id="overflow")
        BoundaryEnforcer().enforce(overflow_scene, trace=trace)
        assert [d.node_id for d in trace.decisions] == ["lane", "child"]
        assert trace.get_decisions_for("child")[0].action == ACTION_CLAMPED

    def test_trace_reported_for_loose(self, loose_scene):
        trace = RenderTrace()
        BoundaryEnforcer().enforce(loose_scene, trace=trace)
        assert trace.get_decisions_by_action(ACTION_REPORTED)[0].node_id == "child"

    def test_unbounded_nodes_are_stored(self):
        group = GroupNode(id="g", at=Point(5, 5), children=[TextNode(id="t", at=Point(1, 1), text="ab")])
        result = enforce(scene_of(group))
        assert result.rects["t"] == Rect(6, 6, 16, 16)
        assert result.origins["t"] == Point(5, 5)
