# src/vmtb_core/canvas.py
"""
Redaction canvas engine.

Holds one editing session on one raster (an image or a single PDF page):
the committed shape sequence, the in-progress shape, the active tool,
and the current raster that commits burn into.

Pointer input arrives in displayed coordinates and is mapped to raster
pixels via Viewport before any geometry is recorded.

Pointer Flow:
    pointer_down → pointer_move* → pointer_up
        rectangle/ellipse: normalized box appended
        freehand:          sampled stroke appended
        erase:             consumed immediately, intersected shapes removed

NO STREAMLIT IMPORTS ALLOWED IN THIS MODULE.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

from PIL import Image

from .config import DEFAULT_REDACTION_CONFIG, RedactionConfig
from .geometry import scale_point
from .raster import changed_pixel_count, image_to_data_url, raster_sha256
from .render import burn_in, render_preview
from .shapes import (
    EllipseShape,
    EraseStroke,
    FreehandShape,
    Point,
    RectangleShape,
    RedactionShape,
    apply_erase,
)

logger = logging.getLogger(__name__)


class Tool(str, Enum):
    """Drawing tools. At most one is active at a time."""
    RECTANGLE = "rectangle"
    ELLIPSE = "ellipse"
    FREEHAND = "freehand"
    ERASE = "erase"


NOTHING_TO_REDACT = "nothing_to_redact"


@dataclass(frozen=True)
class Viewport:
    """On-screen size of the displayed raster (after zoom)."""
    display_width: float
    display_height: float

    @classmethod
    def identity(cls, raster: Image.Image) -> "Viewport":
        return cls(raster.width, raster.height)

    @classmethod
    def zoomed(cls, raster: Image.Image, zoom: float) -> "Viewport":
        return cls(raster.width * zoom, raster.height * zoom)


@dataclass(frozen=True)
class CommitResult:
    """Outcome of an Anonymize action."""
    committed: bool
    raster: Optional[Image.Image] = None
    data_url: Optional[str] = None
    shapes_burned: int = 0
    pixels_changed: int = 0
    reason: Optional[str] = None


class RedactionCanvas:
    """
    Interactive redaction state for a single raster.

    Args:
        raster: Raster to edit. Pass the prior redacted raster to keep
                redactions cumulative across passes.
        config: Rendering / erase settings.
    """

    def __init__(self, raster: Image.Image, config: RedactionConfig = DEFAULT_REDACTION_CONFIG):
        self.config = config
        self._raster = raster
        self._shapes: List[RedactionShape] = []
        self._current: Optional[RedactionShape] = None
        self._tool: Optional[Tool] = None
        self.brush_radius: int = config.default_brush_radius
        self.thickness: int = config.default_thickness

    # ------------------------------------------------------------------
    # State accessors
    # ------------------------------------------------------------------

    @property
    def raster(self) -> Image.Image:
        return self._raster

    @property
    def size(self) -> Tuple[int, int]:
        return self._raster.size

    @property
    def shapes(self) -> Tuple[RedactionShape, ...]:
        return tuple(self._shapes)

    @property
    def current_shape(self) -> Optional[RedactionShape]:
        return self._current

    @property
    def is_drawing(self) -> bool:
        return self._current is not None

    @property
    def tool(self) -> Optional[Tool]:
        return self._tool

    @property
    def pan_zoom_enabled(self) -> bool:
        """Panning/zooming is only allowed while no drawing tool is selected."""
        return self._tool is None

    # ------------------------------------------------------------------
    # Tool selection
    # ------------------------------------------------------------------

    def select_tool(self, tool: Optional[Tool]) -> Optional[Tool]:
        """
        Select a tool. Selecting the active tool again deselects it.

        Any in-progress shape is discarded. Returns the active tool.
        """
        self._current = None
        self._tool = None if tool is None or tool == self._tool else Tool(tool)
        return self._tool

    def set_brush_size(self, size_name: str) -> None:
        self.brush_radius = self.config.brush_radius(size_name)

    # ------------------------------------------------------------------
    # Pointer handling
    # ------------------------------------------------------------------

    def to_raster(self, x: float, y: float, viewport: Optional[Viewport] = None) -> Point:
        if viewport is None:
            return Point(float(x), float(y))
        rx, ry = scale_point(x, y, (viewport.display_width, viewport.display_height), self.size)
        return Point(rx, ry)

    def pointer_down(self, x: float, y: float, viewport: Optional[Viewport] = None) -> None:
        if self._tool is None:
            return
        p = self.to_raster(x, y, viewport)
        if self._tool == Tool.RECTANGLE:
            self._current = RectangleShape(start=p, end=p, thickness=self.thickness)
        elif self._tool == Tool.ELLIPSE:
            self._current = EllipseShape(start=p, end=p, thickness=self.thickness)
        elif self._tool == Tool.FREEHAND:
            self._current = FreehandShape(points=(p,), stroke_size=self.brush_radius)
        elif self._tool == Tool.ERASE:
            self._current = EraseStroke(points=(p,), stroke_size=self.brush_radius)

    def pointer_move(self, x: float, y: float, viewport: Optional[Viewport] = None) -> None:
        current = self._current
        if current is None:
            return
        p = self.to_raster(x, y, viewport)
        if isinstance(current, (FreehandShape, EraseStroke)):
            self._current = current.extended(p)
        else:
            self._current = type(current)(
                start=current.start, end=p, thickness=current.thickness, id=current.id
            )

    def pointer_up(self, x: Optional[float] = None, y: Optional[float] = None,
                   viewport: Optional[Viewport] = None) -> Optional[RedactionShape]:
        """
        Finish the in-progress shape.

        If coordinates are given they are recorded as a final move first.
        Returns the committed shape, or None for erase strokes / no-op.
        """
        if self._current is None:
            return None
        if x is not None and y is not None:
            self.pointer_move(x, y, viewport)
        current, self._current = self._current, None

        if isinstance(current, EraseStroke):
            self._shapes, removed = apply_erase(
                self._shapes, current, self.config.erase_threshold_factor
            )
            if removed:
                logger.debug("Erase removed %d shape(s); %d remain", len(removed), len(self._shapes))
            return None

        if isinstance(current, (RectangleShape, EllipseShape)):
            current = current.normalized()
        self._shapes.append(current)
        return current

    def cancel(self) -> None:
        """Drop the in-progress shape (pointer left the canvas)."""
        self._current = None

    def add_shape(self, shape: RedactionShape) -> None:
        """Append an already complete shape (raster coordinates)."""
        if isinstance(shape, EraseStroke):
            self._shapes, _ = apply_erase(self._shapes, shape, self.config.erase_threshold_factor)
            return
        if isinstance(shape, (RectangleShape, EllipseShape)):
            shape = shape.normalized()
        self._shapes.append(shape)

    # ------------------------------------------------------------------
    # Undo / clear
    # ------------------------------------------------------------------

    def undo(self) -> Optional[RedactionShape]:
        """Remove the most recently committed shape. Burned-in pixels are not restored."""
        if not self._shapes:
            return None
        return self._shapes.pop()

    def clear(self) -> None:
        self._shapes.clear()
        self._current = None

    # ------------------------------------------------------------------
    # Rendering / commit
    # ------------------------------------------------------------------

    def preview(self) -> Image.Image:
        return render_preview(self._raster, self._shapes, self._current, self.config)

    def commit(self) -> CommitResult:
        """
        Burn every committed shape into the current raster.

        Refuses when there is nothing to redact. On success the burned raster
        becomes the canvas raster and the shape sequence is cleared.
        """
        if not self._shapes:
            return CommitResult(committed=False, reason=NOTHING_TO_REDACT)

        burned = burn_in(self._raster, self._shapes)
        changed = changed_pixel_count(self._raster.convert(burned.mode), burned)
        count = len(self._shapes)

        self._raster = burned
        self._shapes = []
        self._current = None

        logger.info(
            "Redaction committed: %d shape(s), %d pixel(s) changed, sha256=%s",
            count, changed, raster_sha256(burned)[:16],
        )
        return CommitResult(
            committed=True,
            raster=burned,
            data_url=image_to_data_url(burned, self.config.export_format),
            shapes_burned=count,
            pixels_changed=changed,
        )
