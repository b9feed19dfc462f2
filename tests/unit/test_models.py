"""Tests for the scene data models."""

import pytest

from scenebound.geometry import Point
from scenebound.models import (
    DEFAULT_BOUNDARY_POLICY,
    BoundaryNode,
    Connector,
    Flow,
    GroupNode,
    Policy,
    Port,
    PortRef,
    ShapeNode,
    Size,
    TextNode,
    explicit_size,
    iter_nodes,
    node_children,
    node_extent,
)


class TestPolicy:
    """Tests for Policy validation."""

    def test_defaults(self):
        policy = Policy()
        assert policy.mode == "strict"
        assert policy.overflow == "clip"
        assert policy.tolerance == 0
        assert policy.snap is None

    def test_invalid_mode(self):
        with pytest.raises(ValueError, match="mode"):
            Policy(mode="lenient")

    def test_invalid_overflow(self):
        with pytest.raises(ValueError, match="overflow"):
            Policy(overflow="scroll")

    def test_corrects(self):
        assert Policy(mode="strict", overflow="clip").corrects
        assert Policy(mode="strict", overflow="resize").corrects
        assert not Policy(mode="strict", overflow="mask").corrects
        assert not Policy(mode="strict", overflow="error").corrects
        assert not Policy(mode="loose", overflow="clip").corrects

    def test_default_boundary_policy(self):
        assert DEFAULT_BOUNDARY_POLICY.mode == "strict"
        assert DEFAULT_BOUNDARY_POLICY.overflow == "clip"
        assert DEFAULT_BOUNDARY_POLICY.tolerance == 1

    def test_effective_policy(self):
        boundary = BoundaryNode(id="b", at=Point(0, 0), size=Size(10, 10))
        assert boundary.effective_policy() is DEFAULT_BOUNDARY_POLICY
        loose = Policy(mode="loose")
        boundary.policy = loose
        assert boundary.effective_policy() is loose


class TestNodes:
    """Tests for node variants and helpers."""

    def test_kind_tags(self):
        assert GroupNode(id="g").kind == "group"
        assert TextNode(id="t", at=Point(), text="x").kind == "text"

    def test_text_extent_is_estimated(self):
        node = TextNode(id="t", at=Point(), text="hello")
        assert node_extent(node) == (40, 16)

    def test_explicit_extent(self):
        node = ShapeNode(id="s", at=Point(), size=Size(12, 7))
        assert node_extent(node) == (12, 7)

    def test_group_without_size(self):
        assert explicit_size(GroupNode(id="g")) is None
        assert node_extent(GroupNode(id="g")) == (0, 0)

    def test_leaf_has_no_children(self):
        assert node_children(TextNode(id="t", at=Point(), text="x")) == []

    def test_iter_nodes_pre_order(self):
        tree = [
            GroupNode(
                id="root",
                children=[
                    GroupNode(id="a", children=[GroupNode(id="a1")]),
                    GroupNode(id="b"),
                ],
            )
        ]
        assert [n.id for n in iter_nodes(tree)] == ["root", "a", "a1", "b"]


class TestPortsAndConnectors:
    """Tests for ports, connectors and flows."""

    def test_invalid_port_side(self):
        with pytest.raises(ValueError, match="side"):
            Port(id="p", node_id="n", side="middle")

    def test_connector_key_uses_id(self):
        assert Connector(source="a", target="b", id="c1").key == "c1"

    def test_connector_key_from_endpoints(self):
        assert Connector(source="a", target=PortRef("p2")).key == "a-p2"

    def test_flow_connector_ids(self):
        flow = Flow(id="f", path="c1 > c2>c3")
        assert flow.connector_ids == ["c1", "c2", "c3"]
