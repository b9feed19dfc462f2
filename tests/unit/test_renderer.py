"""
Tests for the renderer module.

These tests verify the two-pass render: enforcement output flowing into the
paint pass, containment attributes, connectors, flows and reference
handling.
"""

import copy
import logging

import pytest

from scenebound.geometry import Point, Rect
from scenebound.models import (
    USE_DEFS_RAW_CONTENT,
    BoundaryNode,
    Connector,
    Defs,
    Flow,
    FlowActivation,
    GroupNode,
    Policy,
    Port,
    PortRef,
    RawContentNode,
    Scene,
    ShapeNode,
    Size,
    SpriteNode,
    SpriteRef,
    SymbolDef,
    TextNode,
    Transform,
)
from scenebound.renderer import (
    PaintedNode,
    SceneRenderer,
    render,
    render_with_diagnostics,
    style_attr,
    transform_attr,
)


class TestSceneRendererConfig:
    """Constructor validation."""

    def test_defaults(self):
        renderer = SceneRenderer()
        assert renderer.corridor_width == 20
        assert renderer.border_radius == 8

    def test_negative_corridor_width(self):
        with pytest.raises(ValueError, match="corridor_width"):
            SceneRenderer(corridor_width=-1)

    def test_negative_border_radius(self):
        with pytest.raises(ValueError, match="border_radius"):
            SceneRenderer(border_radius=-2)


class TestDocument:
    """Overall document structure."""

    def test_svg_header(self, renderer, clean_scene):
        markup = renderer.render(clean_scene)
        assert markup.startswith('<?xml version="1.0" encoding="UTF-8"?>')
        assert '<svg width="400" height="300" viewBox="0 0 400 300"' in markup
        assert 'aria-label="clean"' in markup
        assert markup.rstrip().endswith("</svg>")

    def test_background(self, renderer, clean_scene):
        clean_scene.bg = "#0b1020"
        markup = renderer.render(clean_scene)
        assert '<rect x="0" y="0" width="100%" height="100%" fill="#0b1020"/>' in markup

    def test_defs_contain_marker_and_clip(self, renderer, clean_scene):
        markup = renderer.render(clean_scene)
        assert '<marker id="arrowHead"' in markup
        assert '<clipPath id="clip-lane">' in markup

    def test_symbols_in_defs(self, renderer, clean_scene):
        clean_scene.defs = Defs(symbols=[SymbolDef(id="db", svg="<circle r='4'/>")])
        markup = renderer.render(clean_scene)
        assert "<symbol id=\"db\"><circle r='4'/></symbol>" in markup

    def test_deterministic(self, renderer, two_lane_scene):
        assert renderer.render(two_lane_scene) == renderer.render(two_lane_scene)

    def test_input_not_mutated(self, renderer, overflow_scene):
        before = copy.deepcopy(overflow_scene)
        renderer.render(overflow_scene)
        assert overflow_scene == before


class TestBoundaries:
    """Boundary painting and containment."""

    def test_contained_boundary(self, renderer, clean_scene):
        markup = renderer.render(clean_scene)
        assert (
            '<g id="lane" class="boundary boundary-contained" clip-path="url(#clip-lane)">'
            in markup
        )
        assert 'class="boundary-title"' in markup
        assert ">Lane</text>" in markup

    def test_mask_boundary(self, renderer, overflow_scene):
        overflow_scene.nodes[0].policy = Policy(overflow="mask")
        markup = renderer.render(overflow_scene)
        assert 'mask="url(#clip-lane)"' in markup
        assert '<mask id="clip-lane">' in markup

    def test_loose_boundary_is_not_contained(self, renderer, loose_scene):
        markup = renderer.render(loose_scene)
        assert '<g id="lane" class="boundary">' in markup
        # Definition is still emitted for every boundary
        assert '<clipPath id="clip-lane">' in markup

    def test_corrected_position_is_painted(self, renderer, overflow_scene):
        markup = renderer.render(overflow_scene)
        assert '<rect id="child" x="100" y="50" width="100" height="50"' in markup

    def test_loose_position_is_kept(self, renderer, loose_scene):
        markup = renderer.render(loose_scene)
        assert '<rect id="child" x="150" y="80" width="100" height="50"' in markup


class TestNodeKinds:
    """Painting of leaf node kinds."""

    def scene(self, *nodes, **kwargs):
        return Scene(id="kinds", canvas=Size(300, 300), nodes=list(nodes), **kwargs)

    def test_text_is_escaped(self, renderer):
        markup = renderer.render(self.scene(TextNode(id="t", at=Point(5, 6), text="a < b & c")))
        assert '<text id="t" x="5" y="6">a &lt; b &amp; c</text>' in markup

    def test_resized_text_is_fitted(self, renderer):
        text = TextNode(id="t", at=Point(0, 0), text="abcdefghij")
        lane = BoundaryNode(
            id="lane", at=Point(0, 0), size=Size(50, 100),
            policy=Policy(overflow="resize"), children=[text],
        )
        markup = renderer.render(self.scene(lane))
        assert '<text id="t" x="0" y="0" textLength="50" lengthAdjust="spacingAndGlyphs">' in markup

    def test_centered_text(self, renderer):
        markup = renderer.render(
            self.scene(TextNode(id="t", at=Point(5, 6), text="x", anchor="center"))
        )
        assert 'text-anchor="middle"' in markup

    def test_circle(self, renderer):
        node = ShapeNode(id="c", at=Point(20, 30), size=Size(10, 10), shape="circle")
        assert '<circle id="c" cx="20" cy="30" r="5"' in renderer.render(self.scene(node))

    def test_path(self, renderer):
        node = ShapeNode(id="p", at=Point(0, 0), size=Size(10, 10), shape="path", d="M0 0 L5 5")
        assert '<path id="p" d="M0 0 L5 5"' in renderer.render(self.scene(node))

    def test_sprite_symbol(self, renderer):
        node = SpriteNode(
            id="icon", at=Point(10, 10), sprite=SpriteRef(symbol_id="db"), size=Size(24, 24)
        )
        markup = renderer.render(self.scene(node))
        assert '<use id="icon" transform="translate(10 10)" href="#db" width="24" height="24">' in markup

    def test_sprite_inline(self, renderer):
        node = SpriteNode(id="icon", at=Point(1, 2), sprite=SpriteRef(inline="<rect/>"))
        assert '<g id="icon" transform="translate(1 2)"><rect/></g>' in renderer.render(self.scene(node))

    def test_raw_content_sentinel(self, renderer):
        scene = self.scene(
            RawContentNode(id="raw", content=USE_DEFS_RAW_CONTENT),
            defs=Defs(raw_content=['<g id="injected"/>']),
        )
        markup = renderer.render(scene)
        assert '<g id="injected"/>' in markup
        assert 'id="raw"' not in markup

    def test_raw_content_node(self, renderer):
        scene = self.scene(RawContentNode(id="raw", content="<line/>", at=Point(3, 4)))
        assert '<g id="raw" transform="translate(3 4)"><line/></g>' in renderer.render(scene)

    def test_z_order(self, renderer):
        top = ShapeNode(id="top", at=Point(0, 0), size=Size(5, 5), z=10)
        bottom = ShapeNode(id="bottom", at=Point(0, 0), size=Size(5, 5), z=-1)
        markup = renderer.render(self.scene(top, bottom))
        assert markup.index('id="bottom"') < markup.index('id="top"')


class TestConnectors:
    """Connector painting."""

    def test_cross_boundary_connector_is_wrapped(self, renderer, two_lane_scene):
        markup = renderer.render(two_lane_scene)
        assert '<g class="connector" id="a-to-b" clip-path="url(#composite-left)">' in markup
        assert '<clipPath id="corridor-left-right">' in markup
        assert 'marker-end="url(#arrowHead)"' in markup

    def test_straight_path_between_centers(self, renderer, two_lane_scene):
        markup = renderer.render(two_lane_scene)
        assert '<path d="M 40 40 L 340 40" fill="none"' in markup

    def test_orthogonal_route(self, renderer, two_lane_scene):
        two_lane_scene.connectors[0].route = "orthogonal"
        markup = renderer.render(two_lane_scene)
        assert "M 40 40 L 190 40 L 190 40 L 340 40" in markup

    def test_dashed_and_label(self, renderer, two_lane_scene):
        two_lane_scene.connectors[0].dashed = True
        two_lane_scene.connectors[0].label = "calls"
        markup = renderer.render(two_lane_scene)
        assert 'stroke-dasharray="6 6"' in markup
        assert ">calls</text>" in markup

    def test_port_endpoint(self, renderer, two_lane_scene):
        two_lane_scene.ports.append(Port(id="pa", node_id="a", side="right", offset=5))
        two_lane_scene.connectors = [Connector(source=PortRef("pa"), target="b")]
        markup = renderer.render(two_lane_scene)
        assert '<path d="M 60 25 L 340 40"' in markup

    def test_unresolved_connector_is_omitted(self, renderer, clean_scene, caplog):
        clean_scene.connectors.append(Connector(source="a", target="ghost", id="broken"))
        with caplog.at_level(logging.WARNING, logger="scenebound.renderer"):
            result = renderer.render_with_diagnostics(clean_scene)
        assert 'id="broken"' not in result.markup
        assert "broken" in caplog.text
        assert result.diagnostics == []


class TestFlows:
    """Flow animation."""

    def test_flow_token(self, renderer, two_lane_scene):
        two_lane_scene.flows.append(Flow(id="f1", path="a-to-b", loop=True))
        markup = renderer.render(two_lane_scene)
        assert '<g class="flow" id="f1">' in markup
        assert 'dur="1.25s" repeatCount="indefinite"' in markup
        assert '<mpath href="#f1-path"/>' in markup

    def test_flow_activation(self, renderer, two_lane_scene):
        two_lane_scene.flows.append(
            Flow(
                id="f1",
                path="a-to-b",
                activate=FlowActivation(boundary_ids=["left"], class_name="active-glow"),
            )
        )
        markup = renderer.render(two_lane_scene)
        assert 'repeatCount="1"' in markup
        assert '<set href="#left" attributeName="class" to="boundary active-glow"' in markup

    def test_flow_with_unknown_connector(self, renderer, two_lane_scene):
        two_lane_scene.flows.append(Flow(id="f1", path="missing"))
        assert 'id="f1"' not in renderer.render(two_lane_scene)


class TestDiagnosticsAndTrace:
    """render_with_diagnostics and debug tracing."""

    def test_render_with_diagnostics(self, overflow_scene):
        result = render_with_diagnostics(overflow_scene)
        assert result.enforcement.summary.errors == 1
        assert result.enforcement.rects["child"] == Rect(100, 50, 100, 50)
        assert result.markup == render(overflow_scene)

    def test_trace_only_in_debug(self, renderer, overflow_scene):
        renderer.render(overflow_scene)
        assert renderer.get_trace() is None
        renderer.render(overflow_scene, debug=True)
        trace = renderer.get_trace()
        assert [s.name for s in trace.stages] == ["validate", "containment", "paint"]
        assert trace.get_stage("validate").data["errors"] == 1
        assert len(trace.get_corrections()) == 1


class TestHelpers:
    """style_attr, transform_attr and flatten."""

    def test_style_attr(self):
        assert style_attr({"strokeWidth": 2, "fill": "none"}) == ' style="stroke-width:2;fill:none"'
        assert style_attr({}) == ""

    def test_transform_attr(self):
        node = ShapeNode(
            id="s", at=Point(0, 0), size=Size(1, 1),
            transform=Transform(translate=Point(5, 5), scale=2, rotate=45),
        )
        assert transform_attr(node, Rect(10, 10, 1, 1)) == (
            ' transform="translate(15 15) scale(2 2) rotate(45)"'
        )

    def test_flatten_fallback(self, renderer):
        group = GroupNode(id="g", at=Point(10, 10), children=[TextNode(id="t", at=Point(1, 1), text="x")])
        painted = renderer.flatten([group], {"g": Rect(50, 50, 0, 0)})
        assert painted == [
            PaintedNode(group, Rect(50, 50, 0, 0)),
            PaintedNode(group.children[0], Rect(51, 51, 8, 16)),
        ]
