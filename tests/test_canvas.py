# tests/test_canvas.py
"""
Unit tests for vmtb_core.canvas.RedactionCanvas.

Covers tool exclusivity, pointer mapping under zoom, erase, undo and commit.
"""
import numpy as np
import pytest

from vmtb_core.canvas import NOTHING_TO_REDACT, RedactionCanvas, Tool, Viewport
from vmtb_core.raster import data_url_to_image
from vmtb_core.shapes import EllipseShape, EraseStroke, FreehandShape, Point, RectangleShape


def drag(canvas, start, end, viewport=None):
    canvas.pointer_down(*start, viewport)
    canvas.pointer_move(*end, viewport)
    return canvas.pointer_up(viewport=viewport)


@pytest.fixture
def canvas(white_raster):
    return RedactionCanvas(white_raster)


# ═══════════════════════════════════════════════════════════════════════════════
# TOOLS
# ═══════════════════════════════════════════════════════════════════════════════

class TestToolSelection:

    def test_no_tool_by_default_allows_pan(self, canvas):
        assert canvas.tool is None
        assert canvas.pan_zoom_enabled

    def test_selecting_a_tool_disables_pan(self, canvas):
        assert canvas.select_tool(Tool.RECTANGLE) == Tool.RECTANGLE
        assert not canvas.pan_zoom_enabled

    def test_at_most_one_tool_active(self, canvas):
        canvas.select_tool(Tool.RECTANGLE)
        canvas.select_tool(Tool.FREEHAND)
        assert canvas.tool == Tool.FREEHAND

    def test_selecting_active_tool_deselects(self, canvas):
        canvas.select_tool(Tool.ERASE)
        assert canvas.select_tool(Tool.ERASE) is None
        assert canvas.pan_zoom_enabled

    def test_switching_tool_discards_current_shape(self, canvas):
        canvas.select_tool(Tool.RECTANGLE)
        canvas.pointer_down(10, 10)
        assert canvas.is_drawing
        canvas.select_tool(Tool.ELLIPSE)
        assert canvas.current_shape is None
        assert canvas.shapes == ()

    def test_pointer_ignored_without_tool(self, canvas):
        canvas.pointer_down(10, 10)
        assert canvas.pointer_up(50, 50) is None
        assert canvas.shapes == ()

    def test_brush_sizes(self, canvas):
        assert canvas.brush_radius == 16
        canvas.set_brush_size("small")
        assert canvas.brush_radius == 8
        with pytest.raises(ValueError):
            canvas.set_brush_size("huge")


# ═══════════════════════════════════════════════════════════════════════════════
# DRAWING
# ═══════════════════════════════════════════════════════════════════════════════

class TestDrawing:

    def test_rectangle_normalized_on_release(self, canvas):
        canvas.select_tool(Tool.RECTANGLE)
        shape = drag(canvas, (50, 50), (10, 10))
        assert isinstance(shape, RectangleShape)
        assert shape.start == Point(10, 10)
        assert shape.end == Point(50, 50)
        assert canvas.shapes == (shape,)

    def test_ellipse_created(self, canvas):
        canvas.select_tool(Tool.ELLIPSE)
        shape = drag(canvas, (10, 10), (30, 20))
        assert isinstance(shape, EllipseShape)

    def test_freehand_keeps_samples_in_order(self, canvas):
        canvas.select_tool(Tool.FREEHAND)
        canvas.pointer_down(0, 0)
        canvas.pointer_move(5, 5)
        canvas.pointer_move(10, 5)
        shape = canvas.pointer_up()
        assert isinstance(shape, FreehandShape)
        assert shape.points == (Point(0, 0), Point(5, 5), Point(10, 5))
        assert shape.stroke_size == 16

    def test_pointer_up_with_final_coordinates(self, canvas):
        canvas.select_tool(Tool.RECTANGLE)
        canvas.pointer_down(10, 10)
        shape = canvas.pointer_up(40, 30)
        assert shape.end == Point(40, 30)

    def test_cancel_drops_current_shape(self, canvas):
        canvas.select_tool(Tool.RECTANGLE)
        canvas.pointer_down(10, 10)
        canvas.cancel()
        assert canvas.pointer_up(20, 20) is None
        assert canvas.shapes == ()

    def test_shapes_view_is_immutable(self, canvas):
        canvas.select_tool(Tool.RECTANGLE)
        drag(canvas, (0, 0), (5, 5))
        assert isinstance(canvas.shapes, tuple)

    def test_erase_removes_intersected_shapes_and_is_not_kept(self, canvas):
        canvas.select_tool(Tool.RECTANGLE)
        first = drag(canvas, (10, 10), (50, 50))
        second = drag(canvas, (100, 100), (150, 150))
        canvas.select_tool(Tool.ERASE)
        canvas.set_brush_size("small")
        assert drag(canvas, (30, 30), (35, 35)) is None
        assert canvas.shapes == (second,)
        assert first not in canvas.shapes

    def test_add_shape_normalizes_and_erase_consumes(self, canvas):
        canvas.add_shape(RectangleShape(start=Point(50, 50), end=Point(10, 10)))
        (rect,) = canvas.shapes
        assert (rect.start, rect.end) == (Point(10, 10), Point(50, 50))
        canvas.add_shape(EraseStroke(points=(Point(30, 30),), stroke_size=4))
        assert canvas.shapes == ()


# ═══════════════════════════════════════════════════════════════════════════════
# VIEWPORT MAPPING
# ═══════════════════════════════════════════════════════════════════════════════

class TestViewportMapping:
    """Commit output is independent of the zoom level the shapes were drawn at."""

    def test_zoom_invariance(self, white_raster):
        plain = RedactionCanvas(white_raster)
        plain.select_tool(Tool.RECTANGLE)
        drag(plain, (10, 10), (50, 50), Viewport.identity(white_raster))

        zoomed = RedactionCanvas(white_raster)
        zoomed.select_tool(Tool.RECTANGLE)
        drag(zoomed, (20, 20), (100, 100), Viewport.zoomed(white_raster, 2.0))

        a = np.asarray(plain.commit().raster)
        b = np.asarray(zoomed.commit().raster)
        assert (a == b).all()

    def test_shrunk_display(self, canvas, white_raster):
        canvas.select_tool(Tool.RECTANGLE)
        shape = drag(canvas, (5, 5), (25, 25), Viewport.zoomed(white_raster, 0.5))
        assert shape.start == Point(10, 10)
        assert shape.end == Point(50, 50)


# ═══════════════════════════════════════════════════════════════════════════════
# UNDO / COMMIT
# ═══════════════════════════════════════════════════════════════════════════════

class TestUndoAndCommit:

    def test_undo_pops_last_shape(self, canvas):
        canvas.select_tool(Tool.RECTANGLE)
        first = drag(canvas, (0, 0), (10, 10))
        second = drag(canvas, (20, 20), (30, 30))
        assert canvas.undo() == second
        assert canvas.shapes == (first,)

    def test_undo_on_empty_is_noop(self, canvas):
        assert canvas.undo() is None

    def test_commit_refuses_without_shapes(self, canvas, white_raster):
        result = canvas.commit()
        assert not result.committed
        assert result.reason == NOTHING_TO_REDACT
        assert canvas.raster is white_raster

    def test_commit_burns_and_clears(self, canvas):
        canvas.select_tool(Tool.RECTANGLE)
        drag(canvas, (10, 10), (50, 50))
        result = canvas.commit()

        assert result.committed
        assert result.shapes_burned == 1
        assert result.pixels_changed == 41 * 41
        assert canvas.shapes == ()
        assert canvas.raster is result.raster
        decoded = data_url_to_image(result.data_url)
        assert decoded.getpixel((30, 30))[:3] == (0, 0, 0)

    def test_commits_are_cumulative(self, canvas):
        canvas.select_tool(Tool.RECTANGLE)
        drag(canvas, (10, 10), (50, 50))
        canvas.commit()
        drag(canvas, (100, 100), (150, 150))
        arr = np.asarray(canvas.commit().raster)
        assert arr[30, 30].max() == 0
        assert arr[120, 120].max() == 0

    def test_undo_after_commit_does_not_restore_pixels(self, canvas):
        canvas.select_tool(Tool.RECTANGLE)
        drag(canvas, (10, 10), (50, 50))
        canvas.commit()
        assert canvas.undo() is None
        assert np.asarray(canvas.raster)[30, 30].max() == 0

    def test_preview_includes_pending_shapes(self, canvas):
        canvas.select_tool(Tool.RECTANGLE)
        drag(canvas, (10, 10), (50, 50))
        assert canvas.preview().getpixel((30, 30))[0] < 255
