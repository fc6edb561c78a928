"""Tests for map canvas viewport fitting and zoom levels."""

from __future__ import annotations

import math

import pytest

from farmmap.gui.components.map_canvas import MapCanvas


def _shown_canvas(qtbot) -> MapCanvas:
    canvas = MapCanvas()
    qtbot.addWidget(canvas)
    canvas.resize(800, 600)
    canvas.show()
    qtbot.waitExposed(canvas)
    return canvas


def test_fit_bounds_keeps_box_inside_view(qtbot) -> None:
    canvas = _shown_canvas(qtbot)

    ok = canvas.fit_bounds(55.0, 25.0, 55.2, 25.1, padding_px=40)

    assert ok is True
    rect = canvas._view_box.viewRect()
    assert rect.left() <= 55.0
    assert rect.right() >= 55.2
    assert rect.top() <= 25.0
    assert rect.bottom() >= 25.1


def test_fit_bounds_rejects_non_finite_box(qtbot) -> None:
    canvas = MapCanvas()
    qtbot.addWidget(canvas)
    before = canvas._view_box.viewRange()

    assert canvas.fit_bounds(0.0, math.nan, 1.0, 1.0) is False
    assert canvas.fit_bounds(0.0, 0.0, math.inf, 1.0) is False
    assert canvas._view_box.viewRange() == before


def test_fit_bounds_on_single_point_zooms_in(qtbot) -> None:
    canvas = _shown_canvas(qtbot)

    assert canvas.fit_bounds(55.0, 25.0, 55.0, 25.0) is True
    assert canvas.get_zoom_level() > 15


def test_center_zoom_round_trip(qtbot) -> None:
    canvas = _shown_canvas(qtbot)

    canvas.set_center_zoom(25.4, 55.5, 12)

    center = canvas._view_box.viewRect().center()
    assert center.x() == pytest.approx(55.5, abs=1e-3)
    assert center.y() == pytest.approx(25.4, abs=1e-3)
    assert canvas.get_zoom_level() == pytest.approx(12, abs=0.3)


def test_zoom_to_layer_uses_layer_bounds(qtbot) -> None:
    canvas = _shown_canvas(qtbot)
    canvas.add_polygon_layer([[1.0, 1.0], [2.0, 1.0], [2.0, 2.0]], "tri")

    assert canvas.zoom_to_layer("tri", padding_px=10) is True
    assert canvas.zoom_to_layer("missing") is False
    center = canvas._view_box.viewRect().center()
    assert center.x() == pytest.approx(1.5, abs=1e-3)
    assert center.y() == pytest.approx(1.5, abs=1e-3)
