"""
Parser module for scene documents.

Handles loading a scene document (a JSON-compatible mapping using the
camelCase keys of the scene format) into the Scene dataclasses.
"""

import json
from typing import Any, Dict, List, Mapping, Optional

from .geometry import Point
from .models import (
    NODE_KINDS,
    USE_DEFS_RAW_CONTENT,
    BoundaryNode,
    Connector,
    Defs,
    Endpoint,
    Flow,
    FlowActivation,
    FlowToken,
    GridConfig,
    GroupNode,
    Node,
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
    SymbolDef,
    TextNode,
    Transform,
)

# Older documents use these names for raw content
KIND_ALIASES = {"raw-svg": "raw-content"}
RAW_CONTENT_SENTINELS = ("USE_DEFS_RAWSVG", USE_DEFS_RAW_CONTENT)


class ParseError(Exception):
    """Raised when a scene document is malformed."""

    pass


def _number(value: Any, where: str):
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ParseError(f"{where}: expected a number, got {value!r}")
    return value


def _mapping(value: Any, where: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise ParseError(f"{where}: expected an object, got {type(value).__name__}")
    return value


def _list(value: Any, where: str) -> List[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ParseError(f"{where}: expected a list, got {type(value).__name__}")
    return value


def _require(data: Mapping[str, Any], key: str, where: str) -> Any:
    if key not in data or data[key] is None:
        raise ParseError(f"{where}: missing required field '{key}'")
    return data[key]


class SceneParser:
    """Parses scene documents into Scene objects."""

    def parse(self, data: Mapping[str, Any]) -> Scene:
        """
        Parse a scene document.

        Args:
            data: Mapping with ``id``, ``canvas`` and ``nodes`` plus optional
                ``bg``, ``defs``, ``ports``, ``connectors`` and ``flows``.

        Returns:
            The parsed Scene.

        Raises:
            ParseError: If the document is malformed.
        """
        data = _mapping(data, "scene")
        scene_id = str(_require(data, "id", "scene"))
        where = f"scene '{scene_id}'"

        return Scene(
            id=scene_id,
            canvas=self._size(_require(data, "canvas", where), f"{where} canvas"),
            nodes=[
                self._node(item, f"{where} nodes[{i}]")
                for i, item in enumerate(_list(data.get("nodes"), f"{where} nodes"))
            ],
            bg=data.get("bg"),
            defs=self._defs(data.get("defs"), f"{where} defs"),
            ports=[
                self._port(item, f"{where} ports[{i}]")
                for i, item in enumerate(_list(data.get("ports"), f"{where} ports"))
            ],
            connectors=[
                self._connector(item, f"{where} connectors[{i}]")
                for i, item in enumerate(
                    _list(data.get("connectors"), f"{where} connectors")
                )
            ],
            flows=[
                self._flow(item, f"{where} flows[{i}]")
                for i, item in enumerate(_list(data.get("flows"), f"{where} flows"))
            ],
        )

    def parse_json(self, text: str) -> Scene:
        """Parse a scene document from a JSON string."""
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ParseError(f"Invalid JSON: {exc}") from exc
        return self.parse(data)

    def _point(self, value: Any, where: str) -> Point:
        value = _mapping(value, where)
        return Point(
            _number(value.get("x", 0), f"{where}.x"),
            _number(value.get("y", 0), f"{where}.y"),
        )

    def _size(self, value: Any, where: str) -> Size:
        value = _mapping(value, where)
        return Size(
            _number(value.get("width", 0), f"{where}.width"),
            _number(value.get("height", 0), f"{where}.height"),
        )

    def _policy(self, value: Any, where: str) -> Optional[Policy]:
        if value is None:
            return None
        value = _mapping(value, where)
        snap = None
        if value.get("snap") is not None:
            snap_data = _mapping(value["snap"], f"{where}.snap")
            snap = SnapConfig(
                grid=_number(snap_data.get("grid", 1), f"{where}.snap.grid"),
                origin=snap_data.get("origin", "local"),
            )
        try:
            return Policy(
                mode=value.get("mode", "strict"),
                overflow=value.get("overflow", "clip"),
                snap=snap,
                tolerance=_number(value.get("tolerance", 0), f"{where}.tolerance"),
            )
        except ValueError as exc:
            raise ParseError(f"{where}: {exc}") from exc

    def _grid(self, value: Any, where: str) -> Optional[GridConfig]:
        if value is None:
            return None
        value = _mapping(value, where)
        return GridConfig(
            cols=int(_number(value.get("cols", 1), f"{where}.cols")),
            row_h=_number(value.get("rowH", 0), f"{where}.rowH"),
            gutter=_number(value.get("gutter", 0), f"{where}.gutter"),
            padding=_number(value.get("padding", 0), f"{where}.padding"),
        )

    def _transform(self, value: Any, where: str) -> Optional[Transform]:
        if value is None:
            return None
        value = _mapping(value, where)
        scale = value.get("scale")
        if isinstance(scale, Mapping):
            scale = (
                _number(scale.get("x", 1), f"{where}.scale.x"),
                _number(scale.get("y", 1), f"{where}.scale.y"),
            )
        elif scale is not None:
            scale = _number(scale, f"{where}.scale")
        translate = value.get("translate")
        return Transform(
            translate=self._point(translate, f"{where}.translate") if translate else None,
            scale=scale,
            rotate=_number(value.get("rotate", 0), f"{where}.rotate"),
        )

    def _sprite(self, value: Any, where: str) -> SpriteRef:
        value = _mapping(value, where)
        view_box = value.get("viewBox")
        if view_box is not None:
            view_box = _mapping(view_box, f"{where}.viewBox")
            view_box = tuple(
                _number(view_box.get(key, 0), f"{where}.viewBox.{key}")
                for key in ("x", "y", "w", "h")
            )
        return SpriteRef(
            inline=value.get("inline"),
            symbol_id=value.get("symbolId"),
            view_box=view_box,
        )

    def _node(self, value: Any, where: str) -> Node:
        value = _mapping(value, where)
        kind = _require(value, "kind", where)
        kind = KIND_ALIASES.get(kind, kind)
        if kind not in NODE_KINDS:
            raise ParseError(f"{where}: unknown node kind {kind!r}")

        node_id = str(_require(value, "id", where))
        where = f"{kind} '{node_id}'"
        common: Dict[str, Any] = {
            "id": node_id,
            "z": _number(value.get("z", 0), f"{where}.z"),
            "style": dict(_mapping(value.get("style") or {}, f"{where}.style")),
            "transform": self._transform(value.get("transform"), f"{where}.transform"),
        }

        if kind == "group":
            return GroupNode(
                at=self._point(value["at"], f"{where}.at") if value.get("at") else None,
                size=self._size(value["size"], f"{where}.size") if value.get("size") else None,
                children=self._children(value, where),
                **common,
            )
        if kind == "boundary":
            return BoundaryNode(
                at=self._point(_require(value, "at", where), f"{where}.at"),
                size=self._size(_require(value, "size", where), f"{where}.size"),
                title=value.get("title"),
                policy=self._policy(value.get("policy"), f"{where}.policy"),
                grid=self._grid(value.get("grid"), f"{where}.grid"),
                children=self._children(value, where),
                **common,
            )
        if kind == "sprite":
            return SpriteNode(
                at=self._point(_require(value, "at", where), f"{where}.at"),
                sprite=self._sprite(_require(value, "sprite", where), f"{where}.sprite"),
                size=self._size(value["size"], f"{where}.size") if value.get("size") else None,
                anchor=value.get("anchor", "tl"),
                **common,
            )
        if kind == "shape":
            return ShapeNode(
                at=self._point(_require(value, "at", where), f"{where}.at"),
                size=self._size(_require(value, "size", where), f"{where}.size"),
                shape=value.get("shape", "rect"),
                d=value.get("d"),
                **common,
            )
        if kind == "text":
            return TextNode(
                at=self._point(_require(value, "at", where), f"{where}.at"),
                text=str(value.get("text", "")),
                anchor=value.get("anchor", "tl"),
                size=self._size(value["size"], f"{where}.size") if value.get("size") else None,
                **common,
            )

        content = value.get("content", value.get("rawSvg"))
        if content is None:
            raise ParseError(f"{where}: missing required field 'content'")
        if content in RAW_CONTENT_SENTINELS:
            content = USE_DEFS_RAW_CONTENT
        return RawContentNode(
            content=content,
            at=self._point(value["at"], f"{where}.at") if value.get("at") else Point(0, 0),
            size=self._size(value["size"], f"{where}.size") if value.get("size") else None,
            **common,
        )

    def _children(self, value: Mapping[str, Any], where: str) -> List[Node]:
        return [
            self._node(child, f"{where} children[{i}]")
            for i, child in enumerate(_list(value.get("children"), f"{where} children"))
        ]

    def _port(self, value: Any, where: str) -> Port:
        value = _mapping(value, where)
        try:
            return Port(
                id=str(_require(value, "id", where)),
                node_id=str(_require(value, "nodeId", where)),
                side=_require(value, "side", where),
                offset=_number(value.get("offset", 0), f"{where}.offset"),
            )
        except ValueError as exc:
            raise ParseError(f"{where}: {exc}") from exc

    def _endpoint(self, value: Any, where: str) -> Endpoint:
        if isinstance(value, str):
            return value
        if isinstance(value, Mapping) and "port" in value:
            return PortRef(str(value["port"]))
        raise ParseError(f"{where}: expected a node id or {{'port': id}}, got {value!r}")

    def _connector(self, value: Any, where: str) -> Connector:
        value = _mapping(value, where)
        return Connector(
            source=self._endpoint(_require(value, "from", where), f"{where}.from"),
            target=self._endpoint(_require(value, "to", where), f"{where}.to"),
            id=value.get("id"),
            route=value.get("route", "straight"),
            marker_end=value.get("markerEnd", "none"),
            dashed=bool(value.get("dashed", False)),
            label=value.get("label"),
            style=dict(_mapping(value.get("style") or {}, f"{where}.style")),
        )

    def _flow(self, value: Any, where: str) -> Flow:
        value = _mapping(value, where)
        token_data = _mapping(value.get("token") or {}, f"{where}.token")
        trail = _mapping(token_data.get("trail") or {}, f"{where}.token.trail")
        token = FlowToken(
            size=_number(token_data.get("size", 4), f"{where}.token.size"),
            color=token_data.get("color", "#d6bcfa"),
            trail_length=trail.get("length"),
            trail_opacity=trail.get("opacity"),
        )
        activate = None
        if value.get("activate") is not None:
            activate_data = _mapping(value["activate"], f"{where}.activate")
            activate = FlowActivation(
                boundary_ids=[str(b) for b in _list(activate_data.get("boundaryIds"), where)],
                class_name=activate_data.get("className"),
            )
        return Flow(
            id=str(_require(value, "id", where)),
            path=str(_require(value, "path", where)),
            token=token,
            speed=_number(value.get("speed", 160), f"{where}.speed"),
            loop=bool(value.get("loop", False)),
            activate=activate,
        )

    def _defs(self, value: Any, where: str) -> Defs:
        if value is None:
            return Defs()
        value = _mapping(value, where)
        symbols = []
        for i, item in enumerate(_list(value.get("symbols"), f"{where}.symbols")):
            item = _mapping(item, f"{where}.symbols[{i}]")
            symbols.append(
                SymbolDef(
                    id=str(_require(item, "id", f"{where}.symbols[{i}]")),
                    svg=str(item.get("svg", "")),
                )
            )
        raw = value.get("rawContent", value.get("rawSvg"))
        return Defs(
            symbols=symbols,
            filters=[str(f) for f in _list(value.get("filters"), f"{where}.filters")],
            gradients=[str(g) for g in _list(value.get("gradients"), f"{where}.gradients")],
            raw_content=[str(r) for r in _list(raw, f"{where}.rawContent")],
        )


def parse_scene(data: Mapping[str, Any]) -> Scene:
    """
    Convenience function to parse a scene document.

    Args:
        data: Scene document mapping.

    Returns:
        The parsed Scene.
    """
    parser = SceneParser()
    return parser.parse(data)


def parse_scene_json(text: str) -> Scene:
    """Convenience function to parse a scene document from JSON text."""
    parser = SceneParser()
    return parser.parse_json(text)
