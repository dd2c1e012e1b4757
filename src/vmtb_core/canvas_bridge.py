# src/vmtb_core/canvas_bridge.py
"""
Bridge from drawable-canvas (fabric.js) JSON to the redaction canvas.

The browser widget reports every object drawn so far on each rerun, in
displayed coordinates. Objects are converted to pointer strokes and
replayed into a RedactionCanvas through the normal pointer path, so the
same display → raster mapping and erase rules apply.

Object Mapping:
    rect            → rectangle
    ellipse/circle  → ellipse
    path/line       → freehand stroke (erase stroke while the erase tool is active)

NO STREAMLIT IMPORTS ALLOWED IN THIS MODULE.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .canvas import RedactionCanvas, Tool, Viewport

logger = logging.getLogger(__name__)

DRAWING_MODES = {
    Tool.RECTANGLE: "rect",
    Tool.ELLIPSE: "circle",
    Tool.FREEHAND: "freedraw",
    Tool.ERASE: "freedraw",
}


@dataclass(frozen=True)
class PointerStroke:
    """One pointer-down / move* / up sequence in displayed coordinates."""
    tool: Tool
    points: Tuple[Tuple[float, float], ...]
    stroke_width: Optional[float] = None


def drawing_mode_for(tool: Optional[Tool]) -> str:
    """Widget drawing mode for a tool; "transform" when no tool is active."""
    if tool is None:
        return "transform"
    return DRAWING_MODES[Tool(tool)]


# ═══════════════════════════════════════════════════════════════════════════════
# OBJECT CONVERSION
# ═══════════════════════════════════════════════════════════════════════════════

def _num(obj: Mapping[str, Any], key: str, default: float = 0.0) -> float:
    value = obj.get(key)
    return float(value) if value is not None else default


def _box(obj: Mapping[str, Any], width: float, height: float) -> Tuple[float, float, float, float]:
    """Top-left corner and size, honouring fabric's origin and scale."""
    w = width * _num(obj, "scaleX", 1.0)
    h = height * _num(obj, "scaleY", 1.0)
    left = _num(obj, "left")
    top = _num(obj, "top")
    if obj.get("originX") == "center":
        left -= w / 2
    elif obj.get("originX") == "right":
        left -= w
    if obj.get("originY") == "center":
        top -= h / 2
    elif obj.get("originY") == "bottom":
        top -= h
    return left, top, w, h


def _path_points(path: Sequence[Sequence[Any]]) -> List[Tuple[float, float]]:
    points: List[Tuple[float, float]] = []
    for command in path:
        coords = [float(c) for c in command[1:]]
        for i in range(0, len(coords) - 1, 2):
            points.append((coords[i], coords[i + 1]))
    return points


def object_to_stroke(obj: Mapping[str, Any], active_tool: Optional[Tool] = None) -> Optional[PointerStroke]:
    """Convert one fabric.js object. Unsupported objects return None."""
    kind = obj.get("type")

    if kind == "rect":
        left, top, w, h = _box(obj, _num(obj, "width"), _num(obj, "height"))
        return PointerStroke(Tool.RECTANGLE, ((left, top), (left + w, top + h)))

    if kind in ("ellipse", "circle"):
        if kind == "circle":
            rx = ry = _num(obj, "radius")
        else:
            rx, ry = _num(obj, "rx"), _num(obj, "ry")
        left, top, w, h = _box(obj, 2 * rx, 2 * ry)
        return PointerStroke(Tool.ELLIPSE, ((left, top), (left + w, top + h)))

    if kind in ("path", "line"):
        if kind == "path":
            points = _path_points(obj.get("path") or [])
        else:
            points = [(_num(obj, "x1"), _num(obj, "y1")), (_num(obj, "x2"), _num(obj, "y2"))]
        if not points:
            return None
        tool = Tool.ERASE if active_tool == Tool.ERASE else Tool.FREEHAND
        return PointerStroke(tool, tuple(points), obj.get("strokeWidth"))

    logger.debug("Ignoring canvas object of type %r", kind)
    return None


# ═══════════════════════════════════════════════════════════════════════════════
# REPLAY
# ═══════════════════════════════════════════════════════════════════════════════

def replay_stroke(canvas: RedactionCanvas, stroke: PointerStroke, viewport: Viewport) -> None:
    """Feed one stroke through the canvas pointer handlers, restoring its tool settings."""
    previous_tool = canvas.tool
    previous_radius = canvas.brush_radius
    if canvas.tool != stroke.tool:
        canvas.select_tool(stroke.tool)
    if stroke.stroke_width:
        # widget stroke widths are in displayed pixels
        canvas.brush_radius = max(1, round(stroke.stroke_width * canvas.size[0] / viewport.display_width))
    try:
        (x0, y0), rest = stroke.points[0], stroke.points[1:]
        canvas.pointer_down(x0, y0, viewport)
        for x, y in rest:
            canvas.pointer_move(x, y, viewport)
        canvas.pointer_up()
    finally:
        canvas.brush_radius = previous_radius
        if canvas.tool != previous_tool:
            canvas.select_tool(previous_tool)


class CanvasBridge:
    """
    Idempotent sync of widget JSON into a RedactionCanvas.

    Objects already replayed are counted and skipped on later reruns.
    Call reset() whenever the widget is re-created empty.
    """

    def __init__(self, canvas: RedactionCanvas):
        self.canvas = canvas
        self.consumed = 0

    def reset(self, canvas: Optional[RedactionCanvas] = None) -> None:
        if canvas is not None:
            self.canvas = canvas
        self.consumed = 0

    def sync(
        self,
        json_data: Optional[Mapping[str, Any]],
        viewport: Viewport,
        active_tool: Optional[Tool] = None,
    ) -> int:
        """Replay objects not seen before. Returns how many were replayed."""
        objects: List[Dict[str, Any]] = list((json_data or {}).get("objects") or [])
        if len(objects) < self.consumed:
            # widget-side deletion; nothing to undo in raster space
            self.consumed = len(objects)
            return 0

        replayed = 0
        for obj in objects[self.consumed:]:
            stroke = object_to_stroke(obj, active_tool)
            if stroke is not None:
                replay_stroke(self.canvas, stroke, viewport)
                replayed += 1
        self.consumed = len(objects)
        return replayed
