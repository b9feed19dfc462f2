"""
Rectangle geometry for boundary enforcement.

This module contains the small amount of 2D math the enforcement engine
and the containment renderer need:
- Grid snapping of coordinates
- Clamping a child rectangle into a container
- Containment tests for rectangles and points (with tolerance)
- Bounding boxes of several rectangles

Rectangles use the (x, y, w, h) convention with y growing downwards, the
same convention SVG uses.
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Union

Number = Union[int, float]


@dataclass(frozen=True)
class Point:
    """A 2D point (or a relative offset such as a node's ``at``)."""

    x: Number = 0
    y: Number = 0

    def to_dict(self) -> Dict[str, Number]:
        return {"x": self.x, "y": self.y}


@dataclass(frozen=True)
class Rect:
    """
    Axis-aligned rectangle.

    Attributes:
        x: Left edge.
        y: Top edge.
        w: Width (may be zero or negative for malformed input).
        h: Height (may be zero or negative for malformed input).
    """

    x: Number
    y: Number
    w: Number
    h: Number

    @property
    def right(self) -> Number:
        return self.x + self.w

    @property
    def bottom(self) -> Number:
        return self.y + self.h

    @property
    def origin(self) -> Point:
        return Point(self.x, self.y)

    @property
    def center(self) -> Point:
        return Point(self.x + self.w / 2, self.y + self.h / 2)

    def moved_to(self, x: Number, y: Number) -> "Rect":
        """Return a copy of this rectangle with a new origin."""
        return Rect(x, y, self.w, self.h)

    def to_dict(self) -> Dict[str, Number]:
        return {"x": self.x, "y": self.y, "w": self.w, "h": self.h}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Rect":
        return cls(data["x"], data["y"], data["w"], data["h"])


def snap(v: Number, grid: Number = 1) -> Number:
    """
    Round ``v`` to the nearest multiple of ``grid``.

    Exact halves round away from zero, so ``snap(25, 10) == 30`` and
    ``snap(-25, 10) == -30``. A grid of 1 or less leaves ``v`` untouched.

    Args:
        v: Coordinate to snap.
        grid: Grid spacing.

    Returns:
        The snapped coordinate. Integer inputs produce integer results.
    """
    if grid <= 1:
        return v
    units = math.floor(abs(v) / grid + 0.5)
    snapped = units * grid
    return snapped if v >= 0 else -snapped


def _clamp(value: Number, low: Number, high: Number) -> Number:
    # Same order as max(low, min(value, high)): low wins when high < low.
    return max(low, min(value, high))


def clamp_to(container: Rect, child: Rect) -> Rect:
    """
    Position ``child`` inside ``container`` without changing its size.

    When the child is larger than the container on an axis it is pinned to
    the container's origin on that axis and still overflows the far edge.

    Args:
        container: The enclosing rectangle.
        child: The rectangle to move.

    Returns:
        A rectangle with the child's size and a clamped origin.
    """
    x = _clamp(child.x, container.x, container.x + container.w - child.w)
    y = _clamp(child.y, container.y, container.y + container.h - child.h)
    return Rect(x, y, child.w, child.h)


def contains(container: Rect, child: Rect, tolerance: Number = 0) -> bool:
    """Check that ``child`` lies inside ``container`` grown by ``tolerance``."""
    return (
        child.x >= container.x - tolerance
        and child.y >= container.y - tolerance
        and child.x + child.w <= container.x + container.w + tolerance
        and child.y + child.h <= container.y + container.h + tolerance
    )


def contains_point(container: Rect, point: Point, tolerance: Number = 0) -> bool:
    """Check that ``point`` lies on or inside ``container`` grown by ``tolerance``."""
    return (
        container.x - tolerance <= point.x <= container.right + tolerance
        and container.y - tolerance <= point.y <= container.bottom + tolerance
    )


def format_number(value: Number) -> str:
    """
    Format a coordinate for markup.

    Integral values print without a decimal point; others are rounded to
    three decimals with trailing zeros removed. Output is deterministic for
    a given input.
    """
    value = round(float(value), 3)
    if value.is_integer():
        return str(int(value))
    return f"{value:.3f}".rstrip("0").rstrip(".")


def bounding_box(rects: Iterable[Rect]) -> Rect:
    """
    Compute the smallest rectangle enclosing every rectangle in ``rects``.

    Raises:
        ValueError: If ``rects`` is empty.
    """
    rect_list = list(rects)
    if not rect_list:
        raise ValueError("bounding_box() requires at least one rectangle")

    min_x = min(r.x for r in rect_list)
    min_y = min(r.y for r in rect_list)
    max_x = max(r.right for r in rect_list)
    max_y = max(r.bottom for r in rect_list)
    return Rect(min_x, min_y, max_x - min_x, max_y - min_y)
