# src/vmtb_core/render.py
"""
Canvas render / composite engine.

Two pure entry points:
- render_preview(): source raster + translucent overlays for interactive editing
- burn_in(): source raster + fully opaque black redactions, returned as a NEW raster

Neither function mutates the raster it is given. Burned-in output is the
input of the next pass, so redactions accumulate across commits.

NO STREAMLIT IMPORTS ALLOWED IN THIS MODULE.
"""
from __future__ import annotations

from typing import Iterable, Optional, Sequence, Tuple, Union

from PIL import Image, ImageDraw

from .config import DEFAULT_REDACTION_CONFIG, RedactionConfig
from .shapes import (
    EllipseShape,
    EraseStroke,
    FreehandShape,
    Point,
    RectangleShape,
    RedactionShape,
)

Color = Union[int, Tuple[int, ...]]


def _alpha(value: float) -> int:
    return max(0, min(255, int(round(value * 255))))


def _int_box(x: float, y: float, w: float, h: float) -> Tuple[int, int, int, int]:
    x0 = int(round(x))
    y0 = int(round(y))
    return x0, y0, int(round(x + w)), int(round(y + h))


def _draw_stroke(
    draw: ImageDraw.ImageDraw,
    points: Sequence[Point],
    width: int,
    color: Color,
) -> None:
    """Polyline with round caps and joins."""
    width = max(1, int(round(width)))
    radius = width / 2
    coords = [(p.x, p.y) for p in points]
    if len(coords) > 1:
        draw.line(coords, fill=color, width=width, joint="curve")
    for x, y in coords:
        draw.ellipse([x - radius, y - radius, x + radius, y + radius], fill=color)


def draw_shape(
    draw: ImageDraw.ImageDraw,
    shape: RedactionShape,
    *,
    fill: Color,
    outline: Optional[Color] = None,
) -> None:
    """
    Paint one shape onto a drawing context.

    Rectangles and ellipses are filled (and outlined at their thickness when
    `outline` is given); freehand strokes use `outline` when given, else
    `fill`. Erase strokes paint nothing. Zero-area boxes paint nothing.
    """
    if isinstance(shape, RectangleShape):
        x, y, w, h = shape.box
        if w <= 0 or h <= 0:
            return
        kwargs = {"fill": fill}
        if outline is not None:
            kwargs.update(outline=outline, width=max(1, shape.thickness))
        draw.rectangle(_int_box(x, y, w, h), **kwargs)
    elif isinstance(shape, EllipseShape):
        x, y, w, h = shape.box
        if w <= 0 or h <= 0:
            return
        kwargs = {"fill": fill}
        if outline is not None:
            kwargs.update(outline=outline, width=max(1, shape.thickness))
        draw.ellipse(_int_box(x, y, w, h), **kwargs)
    elif isinstance(shape, FreehandShape):
        if not shape.points:
            return
        _draw_stroke(draw, shape.points, shape.stroke_size, outline if outline is not None else fill)
    elif isinstance(shape, EraseStroke):
        return
    else:
        raise TypeError(f"Unsupported shape type: {type(shape).__name__}")


def _working_mode(mode: str) -> str:
    return mode if mode in ("RGB", "RGBA", "L") else "RGB"


def _opaque_black(mode: str) -> Color:
    if mode == "L":
        return 0
    if mode == "RGBA":
        return (0, 0, 0, 255)
    return (0, 0, 0)


def render_preview(
    raster: Image.Image,
    shapes: Iterable[RedactionShape],
    current: Optional[RedactionShape] = None,
    config: RedactionConfig = DEFAULT_REDACTION_CONFIG,
) -> Image.Image:
    """
    Compose the editing preview: source + semi-transparent shape overlays.

    The in-progress shape (if any) is drawn last, on top of committed shapes.
    Returns an RGBA image.
    """
    base = raster.convert("RGBA")
    overlay = Image.new("RGBA", base.size, (0, 0, 0, 0))
    draw = ImageDraw.Draw(overlay)
    fill = (0, 0, 0, _alpha(config.preview_fill_alpha))
    stroke = (0, 0, 0, _alpha(config.preview_stroke_alpha))

    pending = list(shapes)
    if current is not None:
        pending.append(current)
    for shape in pending:
        draw_shape(draw, shape, fill=fill, outline=stroke)

    return Image.alpha_composite(base, overlay)


def burn_in(raster: Image.Image, shapes: Iterable[RedactionShape]) -> Image.Image:
    """
    Return a new raster with every shape painted as opaque black.

    The input raster is left untouched.
    """
    mode = _working_mode(raster.mode)
    result = raster.convert(mode) if raster.mode != mode else raster.copy()
    draw = ImageDraw.Draw(result)
    black = _opaque_black(mode)
    for shape in shapes:
        draw_shape(draw, shape, fill=black)
    return result
