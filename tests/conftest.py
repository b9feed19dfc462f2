"""Pytest configuration and shared fixtures for scenebound tests."""

import pytest

from scenebound import (
    BoundaryEnforcer,
    BoundaryNode,
    Connector,
    Point,
    Policy,
    Port,
    Scene,
    SceneRenderer,
    ShapeNode,
    Size,
)
from scenebound.models import GroupNode, TextNode


def make_boundary(node_id, x, y, w, h, policy=None, children=None, title=None):
    """Boundary node helper used across tests."""
    return BoundaryNode(
        id=node_id,
        at=Point(x, y),
        size=Size(w, h),
        title=title,
        policy=policy,
        children=children or [],
    )


def make_shape(node_id, x, y, w, h, **kwargs):
    return ShapeNode(id=node_id, at=Point(x, y), size=Size(w, h), **kwargs)


@pytest.fixture
def strict_clip():
    """Strict clip policy without tolerance."""
    return Policy(mode="strict", overflow="clip", tolerance=0)


@pytest.fixture
def loose_policy():
    return Policy(mode="loose", overflow="clip", tolerance=0)


@pytest.fixture
def overflow_scene(strict_clip):
    """Boundary 200x100 at the origin with a child overflowing right and bottom."""
    child = make_shape("child", 150, 80, 100, 50)
    boundary = make_boundary("lane", 0, 0, 200, 100, policy=strict_clip, children=[child])
    return Scene(id="overflow", canvas=Size(400, 300), nodes=[boundary])


@pytest.fixture
def loose_scene(loose_policy):
    """Same geometry as overflow_scene under a loose policy."""
    child = make_shape("child", 150, 80, 100, 50)
    boundary = make_boundary("lane", 0, 0, 200, 100, policy=loose_policy, children=[child])
    return Scene(id="loose", canvas=Size(400, 300), nodes=[boundary])


@pytest.fixture
def clean_scene():
    """Scene where every node already fits its boundary."""
    boundary = make_boundary(
        "lane",
        10,
        10,
        300,
        200,
        title="Lane",
        children=[
            make_shape("a", 10, 10, 50, 30),
            TextNode(id="label", at=Point(10, 60), text="hello"),
        ],
    )
    return Scene(id="clean", canvas=Size(400, 300), nodes=[boundary])


@pytest.fixture
def two_lane_scene(strict_clip):
    """Two boundaries side by side joined by a connector."""
    left = make_boundary(
        "left", 0, 0, 200, 100, policy=strict_clip,
        children=[make_shape("a", 20, 20, 40, 40)],
    )
    right = make_boundary(
        "right", 300, 0, 200, 100, policy=strict_clip,
        children=[make_shape("b", 20, 20, 40, 40)],
    )
    return Scene(
        id="two-lanes",
        canvas=Size(600, 200),
        nodes=[left, right],
        connectors=[Connector(source="a", target="b", id="a-to-b", marker_end="arrow")],
    )


@pytest.fixture
def port_scene():
    """Host wider than its boundary with a port on the right side."""
    host = make_shape("host", 0, 0, 50, 50)
    boundary = make_boundary("narrow", 0, 0, 40, 100, policy=Policy(mode="loose"), children=[host])
    return Scene(
        id="ports",
        canvas=Size(200, 200),
        nodes=[boundary],
        ports=[Port(id="p1", node_id="host", side="right", offset=10)],
    )


@pytest.fixture
def nested_scene(strict_clip):
    """Group inside a boundary, with a shape inside the group."""
    group = GroupNode(id="group", at=Point(20, 20), children=[make_shape("deep", 170, 10, 40, 20)])
    boundary = make_boundary("outer", 100, 100, 200, 100, policy=strict_clip, children=[group])
    return Scene(id="nested", canvas=Size(500, 400), nodes=[boundary])


@pytest.fixture
def enforcer():
    """Default BoundaryEnforcer instance."""
    return BoundaryEnforcer()


@pytest.fixture
def renderer():
    """Default SceneRenderer instance."""
    return SceneRenderer()
