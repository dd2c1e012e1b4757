# src/canvas_component.py
"""
Redaction canvas widget for the Streamlit wizard.

Wraps the streamlit-drawable-canvas frontend. The background is sent as a
base64 PNG data URL (the library's own st_image.image_to_url helper is gone
from current Streamlit releases). Objects drawn in the widget are replayed
into the core RedactionCanvas through vmtb_core.canvas_bridge.
"""
import base64
import io
import os
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
import streamlit.components.v1 as components
import streamlit_drawable_canvas
from PIL import Image

from vmtb_core.canvas import RedactionCanvas, Tool, Viewport
from vmtb_core.canvas_bridge import CanvasBridge, drawing_mode_for
from vmtb_core.raster import data_url_to_image

# Reuse the library's frontend build
_build_dir = os.path.join(os.path.dirname(streamlit_drawable_canvas.__file__), "frontend/build")
_component_func = components.declare_component("st_canvas", path=_build_dir)

MAX_DISPLAY_WIDTH = 700
OVERLAY_FILL = "rgba(0, 0, 0, 0.7)"
OVERLAY_STROKE = "rgba(0, 0, 0, 0.9)"


@dataclass
class CanvasResult:
    """Output of the React component."""
    image_data: np.ndarray = None
    json_data: dict = None


def _resize_img(img: Image.Image, new_height: int, new_width: int) -> Image.Image:
    return img.resize((int(new_width), int(new_height)))


def _image_to_data_url(img: Image.Image) -> str:
    """PNG data URL of `img` flattened to RGB (transparency on white)."""
    if img.mode == "RGBA":
        background = Image.new("RGB", img.size, (255, 255, 255))
        background.paste(img, mask=img.split()[3])
        img = background
    elif img.mode != "RGB":
        img = img.convert("RGB")

    buffered = io.BytesIO()
    img.save(buffered, format="PNG", compress_level=6, optimize=False)
    return "data:image/png;base64," + base64.b64encode(buffered.getvalue()).decode()


def display_size(raster: Image.Image, zoom: float = 1.0,
                 max_width: int = MAX_DISPLAY_WIDTH) -> Tuple[int, int]:
    """On-screen size for a raster: fit to `max_width`, then apply zoom."""
    fit = min(1.0, max_width / raster.width)
    return max(1, int(raster.width * fit * zoom)), max(1, int(raster.height * fit * zoom))


def st_canvas(
    fill_color: str = OVERLAY_FILL,
    stroke_width: int = 16,
    stroke_color: str = OVERLAY_STROKE,
    background_color: str = "",
    background_image: Optional[Image.Image] = None,
    update_streamlit: bool = True,
    height: int = 400,
    width: int = 600,
    drawing_mode: str = "rect",
    initial_drawing: Optional[dict] = None,
    display_toolbar: bool = False,
    point_display_radius: int = 3,
    key=None,
) -> CanvasResult:
    """Create a drawing canvas in the Streamlit app."""
    background_image_url = None
    if background_image is not None:
        background_image_url = _image_to_data_url(_resize_img(background_image, height, width))
        background_color = ""

    initial_drawing = {"version": "4.4.0"} if initial_drawing is None else dict(initial_drawing)
    initial_drawing["background"] = background_color

    component_value = _component_func(
        fillColor=fill_color,
        strokeWidth=stroke_width,
        strokeColor=stroke_color,
        backgroundColor=background_color,
        backgroundImageURL=background_image_url,
        realtimeUpdateStreamlit=update_streamlit and (drawing_mode != "polygon"),
        canvasHeight=height,
        canvasWidth=width,
        drawingMode=drawing_mode,
        initialDrawing=initial_drawing,
        displayToolbar=display_toolbar,
        displayRadius=point_display_radius,
        key=key,
        default=None,
    )
    if component_value is None:
        return CanvasResult()

    return CanvasResult(
        np.asarray(data_url_to_image(component_value["data"])),
        component_value["raw"],
    )


def redaction_canvas(
    canvas: RedactionCanvas,
    bridge: CanvasBridge,
    *,
    zoom: float = 1.0,
    key: str,
) -> int:
    """
    Show the canvas preview and replay new widget objects into `canvas`.

    The widget is shown on top of the current preview composite; the
    stroke width follows the active brush in displayed pixels.
    Returns the number of objects replayed on this run.
    """
    width, height = display_size(canvas.raster, zoom)
    viewport = Viewport(width, height)
    tool: Optional[Tool] = canvas.tool
    stroke = max(1, round(canvas.brush_radius * width / canvas.size[0]))
    if tool == Tool.ERASE:
        stroke_color = "rgba(255, 255, 255, 0.5)"
    elif tool in (Tool.RECTANGLE, Tool.ELLIPSE):
        stroke = canvas.thickness
        stroke_color = OVERLAY_STROKE
    else:
        stroke_color = OVERLAY_STROKE

    result = st_canvas(
        fill_color=OVERLAY_FILL,
        stroke_width=stroke,
        stroke_color=stroke_color,
        background_image=canvas.preview(),
        height=height,
        width=width,
        drawing_mode=drawing_mode_for(tool),
        key=key,
    )
    return bridge.sync(result.json_data, viewport, tool)
