# src/vmtb_core/shapes.py
"""
Redaction shape model.

Shapes form a closed set: RectangleShape, EllipseShape, FreehandShape and
EraseStroke. Committed shapes are frozen; only the in-progress shape held
by the canvas is rebuilt during a drag. Erase strokes never enter the
committed sequence - they are consumed by apply_erase().

Hit-testing goes through shape_hit_by() and nowhere else.

NO STREAMLIT IMPORTS ALLOWED IN THIS MODULE.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Iterable, List, NamedTuple, Sequence, Tuple, Union

from .geometry import point_in_ellipse, point_in_rectangle, point_near_segment


class Point(NamedTuple):
    """Raster-space sample."""
    x: float
    y: float


class ShapeType(str, Enum):
    RECTANGLE = "rectangle"
    ELLIPSE = "ellipse"
    FREEHAND = "freehand"
    ERASE = "erase"


def new_shape_id() -> str:
    return f"s-{uuid.uuid4().hex[:8]}"


# ═══════════════════════════════════════════════════════════════════════════════
# SHAPE VARIANTS
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class _BoxShape:
    start: Point
    end: Point
    thickness: int = 2
    id: str = field(default_factory=new_shape_id)

    @property
    def box(self) -> Tuple[float, float, float, float]:
        """(x, y, w, h) with non-negative width and height."""
        x = min(self.start.x, self.end.x)
        y = min(self.start.y, self.end.y)
        w = abs(self.end.x - self.start.x)
        h = abs(self.end.y - self.start.y)
        return x, y, w, h

    def normalized(self):
        """Return a copy whose start is the top-left and end the bottom-right corner."""
        x, y, w, h = self.box
        return replace(self, start=Point(x, y), end=Point(x + w, y + h))


@dataclass(frozen=True)
class RectangleShape(_BoxShape):
    type: ShapeType = field(default=ShapeType.RECTANGLE, init=False)


@dataclass(frozen=True)
class EllipseShape(_BoxShape):
    type: ShapeType = field(default=ShapeType.ELLIPSE, init=False)

    @property
    def center(self) -> Point:
        return Point((self.start.x + self.end.x) / 2, (self.start.y + self.end.y) / 2)

    @property
    def radii(self) -> Tuple[float, float]:
        return abs(self.end.x - self.start.x) / 2, abs(self.end.y - self.start.y) / 2


@dataclass(frozen=True)
class _StrokeShape:
    points: Tuple[Point, ...]
    stroke_size: int = 16
    id: str = field(default_factory=new_shape_id)

    @property
    def start(self) -> Point:
        return self.points[0]

    @property
    def end(self) -> Point:
        return self.points[-1]

    def extended(self, point: Point):
        """Return a copy with one more sample appended (drawing order preserved)."""
        return replace(self, points=self.points + (point,))


@dataclass(frozen=True)
class FreehandShape(_StrokeShape):
    type: ShapeType = field(default=ShapeType.FREEHAND, init=False)


@dataclass(frozen=True)
class EraseStroke(_StrokeShape):
    type: ShapeType = field(default=ShapeType.ERASE, init=False)


RedactionShape = Union[RectangleShape, EllipseShape, FreehandShape, EraseStroke]


# ═══════════════════════════════════════════════════════════════════════════════
# HIT-TESTING / ERASE
# ═══════════════════════════════════════════════════════════════════════════════

def erase_threshold(stroke_size: float, factor: float = 1.5) -> float:
    """Distance within which an erase sample counts as touching a shape."""
    return stroke_size * factor


def shape_hit_by(shape: RedactionShape, point: Point, threshold: float) -> bool:
    """
    Test a single erase sample against a committed shape.

    Rectangles and ellipses are expanded by `threshold` on every side;
    freehand strokes match when the sample is within `threshold` of any
    segment between consecutive samples.
    """
    if isinstance(shape, RectangleShape):
        x, y, w, h = shape.box
        return point_in_rectangle(
            point.x, point.y,
            x - threshold, y - threshold,
            w + threshold * 2, h + threshold * 2,
        )
    if isinstance(shape, EllipseShape):
        cx, cy = shape.center
        rx, ry = shape.radii
        return point_in_ellipse(point.x, point.y, cx, cy, rx + threshold, ry + threshold)
    if isinstance(shape, FreehandShape):
        pts = shape.points
        if len(pts) == 1:
            return point_near_segment(point.x, point.y, pts[0].x, pts[0].y, pts[0].x, pts[0].y, threshold)
        for a, b in zip(pts, pts[1:]):
            if point_near_segment(point.x, point.y, a.x, a.y, b.x, b.y, threshold):
                return True
        return False
    if isinstance(shape, EraseStroke):
        return False
    raise TypeError(f"Unsupported shape type: {type(shape).__name__}")


def apply_erase(
    shapes: Sequence[RedactionShape],
    erase: EraseStroke,
    factor: float = 1.5,
) -> Tuple[List[RedactionShape], List[RedactionShape]]:
    """
    Remove every shape touched by any sample of the erase stroke.

    Deletion is whole-shape. Returns (kept, removed), both in original order.
    """
    threshold = erase_threshold(erase.stroke_size, factor)
    kept: List[RedactionShape] = []
    removed: List[RedactionShape] = []
    for shape in shapes:
        if any(shape_hit_by(shape, pt, threshold) for pt in erase.points):
            removed.append(shape)
        else:
            kept.append(shape)
    return kept, removed


def points_from(pairs: Iterable[Tuple[float, float]]) -> Tuple[Point, ...]:
    return tuple(Point(float(x), float(y)) for x, y in pairs)
