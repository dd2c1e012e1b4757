# tests/test_render.py
"""
Unit tests for vmtb_core.render (preview composite and burn-in).
"""
import numpy as np
import pytest
from PIL import Image, ImageDraw

from vmtb_core.render import burn_in, draw_shape, render_preview
from vmtb_core.shapes import (
    EllipseShape,
    EraseStroke,
    FreehandShape,
    Point,
    RectangleShape,
    points_from,
)


def rect(x0, y0, x1, y1):
    return RectangleShape(start=Point(x0, y0), end=Point(x1, y1))


# ═══════════════════════════════════════════════════════════════════════════════
# BURN-IN
# ═══════════════════════════════════════════════════════════════════════════════

class TestBurnIn:

    def test_rectangle_pixels_black_inclusive(self, white_raster):
        """Rectangle (10,10)-(50,50) on 200x200 white: inside black, outside untouched."""
        out = burn_in(white_raster, [rect(10, 10, 50, 50)])
        arr = np.asarray(out)

        assert arr[10:51, 10:51].max() == 0
        mask = np.ones((200, 200), dtype=bool)
        mask[10:51, 10:51] = False
        assert (arr[mask] == 255).all()

    def test_source_raster_untouched(self, white_raster):
        before = np.asarray(white_raster).copy()
        out = burn_in(white_raster, [rect(0, 0, 100, 100)])
        assert out is not white_raster
        assert (np.asarray(white_raster) == before).all()

    def test_cumulative_passes(self, white_raster):
        first = burn_in(white_raster, [rect(10, 10, 50, 50)])
        second = burn_in(first, [rect(100, 100, 150, 150)])
        arr = np.asarray(second)
        assert arr[30, 30].max() == 0
        assert arr[120, 120].max() == 0
        assert arr[80, 80].min() == 255

    def test_ellipse_filled(self, white_raster):
        out = burn_in(white_raster, [EllipseShape(start=Point(20, 20), end=Point(80, 60))])
        arr = np.asarray(out)
        assert arr[40, 50].max() == 0
        # bounding-box corner is outside the ellipse
        assert arr[21, 21].min() == 255

    def test_freehand_stroked_with_round_caps(self, white_raster):
        stroke = FreehandShape(points=points_from([(50, 100), (150, 100)]), stroke_size=10)
        arr = np.asarray(burn_in(white_raster, [stroke]))
        assert arr[100, 100].max() == 0
        assert arr[103, 100].max() == 0
        # round cap extends past the endpoint
        assert arr[100, 153].max() == 0
        assert arr[120, 100].min() == 255

    def test_erase_strokes_paint_nothing(self, white_raster):
        erase = EraseStroke(points=points_from([(0, 0), (199, 199)]), stroke_size=20)
        arr = np.asarray(burn_in(white_raster, [erase]))
        assert arr.min() == 255

    def test_preserves_grayscale_and_alpha_modes(self):
        gray = Image.new("L", (20, 20), 255)
        assert burn_in(gray, [rect(0, 0, 5, 5)]).mode == "L"
        rgba = Image.new("RGBA", (20, 20), (255, 255, 255, 255))
        out = burn_in(rgba, [rect(0, 0, 5, 5)])
        assert out.mode == "RGBA"
        assert out.getpixel((2, 2)) == (0, 0, 0, 255)

    def test_palette_input_becomes_rgb(self):
        img = Image.new("P", (20, 20))
        assert burn_in(img, [rect(0, 0, 5, 5)]).mode == "RGB"


# ═══════════════════════════════════════════════════════════════════════════════
# PREVIEW
# ═══════════════════════════════════════════════════════════════════════════════

class TestRenderPreview:

    def test_overlay_is_translucent(self, white_raster):
        out = render_preview(white_raster, [rect(10, 10, 50, 50)])
        assert out.mode == "RGBA"
        r, g, b, a = out.getpixel((30, 30))
        # 0.7 black over white
        assert 60 <= r <= 90
        assert a == 255
        assert out.getpixel((100, 100)) == (255, 255, 255, 255)

    def test_current_shape_drawn(self, white_raster):
        out = render_preview(white_raster, [], current=rect(100, 100, 120, 120))
        assert out.getpixel((110, 110))[0] < 255

    def test_source_not_mutated(self, white_raster):
        render_preview(white_raster, [rect(0, 0, 199, 199)])
        assert white_raster.getpixel((50, 50)) == (255, 255, 255)


class TestDrawShape:

    def test_zero_area_box_draws_nothing(self, white_raster):
        img = white_raster.copy()
        draw_shape(ImageDraw.Draw(img), rect(10, 10, 10, 50), fill=(0, 0, 0))
        assert np.asarray(img).min() == 255

    def test_unknown_shape_raises(self, white_raster):
        with pytest.raises(TypeError):
            draw_shape(ImageDraw.Draw(white_raster), "circle", fill=(0, 0, 0))
