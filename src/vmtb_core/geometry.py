# src/vmtb_core/geometry.py
"""
Geometry and hit-test helpers used by the erase tool.

All coordinates are raster pixel coordinates unless stated otherwise.

NO STREAMLIT IMPORTS ALLOWED IN THIS MODULE.
"""
from __future__ import annotations

import math
from typing import Tuple


def point_in_rectangle(px: float, py: float, x: float, y: float, w: float, h: float) -> bool:
    """Inclusive point-in-box test for a box with origin (x, y) and size (w, h)."""
    return x <= px <= x + w and y <= py <= y + h


def point_in_ellipse(
    px: float,
    py: float,
    cx: float,
    cy: float,
    rx: float,
    ry: float,
) -> bool:
    """
    Test whether (px, py) lies inside the axis-aligned ellipse centred at (cx, cy).

    A zero radius collapses the ellipse to a segment along the other axis.
    """
    dx = px - cx
    dy = py - cy
    if rx <= 0 and ry <= 0:
        return dx == 0 and dy == 0
    if rx <= 0:
        return dx == 0 and abs(dy) <= ry
    if ry <= 0:
        return dy == 0 and abs(dx) <= rx
    return (dx * dx) / (rx * rx) + (dy * dy) / (ry * ry) <= 1.0


def point_near_segment(
    px: float,
    py: float,
    x1: float,
    y1: float,
    x2: float,
    y2: float,
    threshold: float,
) -> bool:
    """
    Test whether (px, py) is within `threshold` of the segment (x1, y1)-(x2, y2).

    The projection parameter is clamped to [0, 1] so distances are measured
    to the segment, not the infinite line.
    """
    dx = x2 - x1
    dy = y2 - y1
    length_sq = dx * dx + dy * dy
    if length_sq == 0:
        return math.hypot(px - x1, py - y1) <= threshold
    t = ((px - x1) * dx + (py - y1) * dy) / length_sq
    t = max(0.0, min(1.0, t))
    proj_x = x1 + t * dx
    proj_y = y1 + t * dy
    return math.hypot(px - proj_x, py - proj_y) <= threshold


def scale_point(
    x: float,
    y: float,
    display_size: Tuple[float, float],
    raster_size: Tuple[int, int],
) -> Tuple[float, float]:
    """
    Map a pointer position in displayed coordinates to raster pixel coordinates.

    Uses raster / displayed per axis so geometry stays pixel-accurate at
    any zoom level.
    """
    display_w, display_h = display_size
    raster_w, raster_h = raster_size
    if display_w <= 0 or display_h <= 0:
        raise ValueError(f"Display size must be positive, got {display_size}")
    return x * (raster_w / display_w), y * (raster_h / display_h)
