"""
Unit tests for src/canvas_component.py

The React component itself is replaced with a fake; these tests cover the
background encoding and the replay of widget objects into the core canvas.
"""
import base64
import io

import numpy as np
import pytest
from PIL import Image

import canvas_component as cc
from vmtb_core.canvas import RedactionCanvas, Tool
from vmtb_core.canvas_bridge import CanvasBridge
from vmtb_core.errors import RasterDecodeError


@pytest.fixture
def rgb_img():
    return Image.new("RGB", (10, 10), color=(10, 20, 30))


def _decode_data_url(data_url: str) -> Image.Image:
    assert data_url.startswith("data:image/png;base64,")
    return Image.open(io.BytesIO(base64.b64decode(data_url.split(",", 1)[1])))


# ============================================================================
# Background encoding
# ============================================================================

def test_image_to_data_url_rgb(rgb_img):
    out = _decode_data_url(cc._image_to_data_url(rgb_img))
    assert out.size == (10, 10)
    assert out.convert("RGB").getpixel((0, 0)) == (10, 20, 30)


def test_image_to_data_url_flattens_rgba_on_white():
    img = Image.new("RGBA", (4, 4), (0, 0, 0, 0))
    out = _decode_data_url(cc._image_to_data_url(img))
    assert out.mode == "RGB"
    assert out.getpixel((0, 0)) == (255, 255, 255)


def test_image_to_data_url_converts_grayscale():
    out = _decode_data_url(cc._image_to_data_url(Image.new("L", (4, 4), 128)))
    assert out.mode == "RGB"


def test_resize_img(rgb_img):
    assert cc._resize_img(rgb_img, new_height=7, new_width=5).size == (5, 7)


def test_display_size_fits_width():
    assert cc.display_size(Image.new("RGB", (1400, 700))) == (700, 350)
    assert cc.display_size(Image.new("RGB", (200, 100)), zoom=2.0) == (400, 200)


# ============================================================================
# st_canvas
# ============================================================================

def test_st_canvas_returns_empty_result_when_component_returns_none(monkeypatch):
    monkeypatch.setattr(cc, "_component_func", lambda *args, **kwargs: None)
    res = cc.st_canvas(height=100, width=200, key="test_none")
    assert res.image_data is None
    assert res.json_data is None


def test_st_canvas_wraps_component_result(monkeypatch, rgb_img):
    payload = {
        "data": cc._image_to_data_url(rgb_img),
        "raw": {"objects": [{"type": "rect", "left": 1, "top": 2, "width": 3, "height": 4}]},
    }
    calls = {}

    def fake_component_func(**kwargs):
        calls.update(kwargs)
        return payload

    monkeypatch.setattr(cc, "_component_func", fake_component_func)
    res = cc.st_canvas(background_image=rgb_img, height=20, width=30, key="test_result")

    assert isinstance(res.image_data, np.ndarray)
    assert res.json_data == payload["raw"]
    assert calls["backgroundImageURL"].startswith("data:image/png;base64,")
    assert calls["backgroundColor"] == ""


def test_st_canvas_rejects_undecodable_image_data(monkeypatch):
    monkeypatch.setattr(
        cc, "_component_func",
        lambda *args, **kwargs: {"data": "data:image/png;base64,AAAA", "raw": {}},
    )
    with pytest.raises(RasterDecodeError):
        cc.st_canvas(height=10, width=10, key="test_bad_data")


# ============================================================================
# redaction_canvas
# ============================================================================

def test_redaction_canvas_replays_objects(monkeypatch):
    raster = Image.new("RGB", (1400, 700), (255, 255, 255))
    canvas = RedactionCanvas(raster)
    canvas.select_tool(Tool.RECTANGLE)
    bridge = CanvasBridge(canvas)
    seen = {}

    def fake_component_func(**kwargs):
        seen.update(kwargs)
        return {
            "data": cc._image_to_data_url(Image.new("RGB", (700, 350))),
            "raw": {"objects": [{"type": "rect", "left": 10, "top": 10, "width": 40, "height": 40}]},
        }

    monkeypatch.setattr(cc, "_component_func", fake_component_func)
    assert cc.redaction_canvas(canvas, bridge, key="k") == 1
    assert seen["drawingMode"] == "rect"
    assert (seen["canvasWidth"], seen["canvasHeight"]) == (700, 350)

    (shape,) = canvas.shapes
    # displayed at half size → raster coordinates doubled
    assert shape.box == (20, 20, 80, 80)

    # same payload on the next rerun replays nothing
    assert cc.redaction_canvas(canvas, bridge, key="k") == 0
