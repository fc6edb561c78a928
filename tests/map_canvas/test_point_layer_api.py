"""Tests for MapCanvas point layers as drawn by the cluster and display controllers."""

import numpy as np
import sklearn.cluster

from farmmap.core.ring import Coordinate
from farmmap.gui.components.map_canvas import LayerBounds, MapCanvas
from farmmap.utils.farm_cluster import FarmMarkerClusterer, RadiusClusterAlgorithm
from farmmap.utils.parcel_drawing import PolygonDisplayController


def test_point_layer_sizes_each_point_and_uses_one_rgba_fill(qtbot) -> None:
    """Per-point sizes with a single RGBA fill, as used for cluster bubbles."""
    canvas = MapCanvas()
    qtbot.addWidget(canvas)

    ok = canvas.add_point_layer(
        np.asarray([[55.0, 25.0], [54.0, 24.0]], dtype=float),
        "bubbles",
        size=[26.0, 32.0],
        fill_color=(37, 99, 235, 200),
        border_color="#1E40AF",
        border_width=2,
    )

    assert ok is True
    item = canvas._layers["bubbles"]["item"]
    assert [spot.size() for spot in item.points()] == [26.0, 32.0]
    brush_color = item.opts["brush"].color()
    assert brush_color.name().lower() == "#2563eb"
    assert brush_color.alpha() == 200
    assert item.opts["pen"].color().name().lower() == "#1e40af"
    assert canvas.get_layer_bounds("bubbles") == LayerBounds(54.0, 24.0, 55.0, 25.0)


def test_point_layer_rejects_size_list_of_wrong_length(qtbot) -> None:
    canvas = MapCanvas()
    qtbot.addWidget(canvas)

    ok = canvas.add_point_layer([[1.0, 2.0], [3.0, 4.0]], "bubbles", size=[10.0])

    assert ok is False
    assert "bubbles" not in canvas.get_layer_names()


def test_point_layer_rejects_empty_or_malformed_data(qtbot) -> None:
    canvas = MapCanvas()
    qtbot.addWidget(canvas)

    assert canvas.add_point_layer(np.empty((0, 2)), "empty") is False
    assert canvas.add_point_layer([1.0, 2.0, 3.0], "flat") is False
    assert canvas.get_layer_names() == []


def test_point_layer_replace_flag_and_deduplicated_order(qtbot) -> None:
    canvas = MapCanvas()
    qtbot.addWidget(canvas)
    canvas.add_point_layer([[0.0, 0.0]], "pts")

    assert canvas.add_point_layer([[1.0, 1.0]], "pts", replace=False) is False
    assert canvas.add_point_layer([[1.0, 1.0]], "pts") is True
    assert canvas._layer_order.count("pts") == 1
    assert canvas.get_layer_bounds("pts").left == 1.0


def test_cluster_bubbles_render_on_real_canvas(qtbot) -> None:
    canvas = MapCanvas()
    qtbot.addWidget(canvas)
    positions = [Coordinate(25.400, 55.520), Coordinate(25.401, 55.521), Coordinate(24.0, 54.0)]
    markers = [canvas.create_marker((p.lng, p.lat)) for p in positions]
    clusterer = FarmMarkerClusterer(
        canvas,
        markers,
        positions,
        RadiusClusterAlgorithm(radius=150, max_zoom=16),
        sklearn.cluster,
    )

    clusterer.render(zoom=9)

    bubbles = canvas._layers["farm_cluster_bubbles"]["item"]
    assert len(bubbles.points()) == 1
    assert bubbles.points()[0].size() > 26.0
    assert canvas._layers["farm_cluster_counts"]["labels"] == ["2"]
    assert [marker.is_visible for marker in markers] == [False, False, True]


def test_display_center_marker_renders_on_real_canvas(qtbot) -> None:
    canvas = MapCanvas()
    qtbot.addWidget(canvas)
    display = PolygonDisplayController(canvas)

    payload = display.render({"lat": 25.4, "lng": 55.5}, [])

    assert payload["layer_names"] == ["parcel_display_marker"]
    np.testing.assert_allclose(canvas._layers["parcel_display_marker"]["data"], [[55.5, 25.4]])
    item = canvas._layers["parcel_display_marker"]["item"]
    assert item.opts["brush"].color().alpha() == 230
    assert item.opts["pen"].color().name().lower() == "#b31412"
