"""Tests for farm markers, info popups and clustering on the overview map."""

from __future__ import annotations

import sklearn.cluster
from loguru import logger

from farmmap.utils.farm_cluster import (
    ClusterLibrary,
    FarmClusterController,
    RadiusClusterAlgorithm,
    parse_farm_locations,
)

FAKE_MODULE_NAME = "farmmap_tests_overview_cluster"


class _FakeSignal:
    def __init__(self) -> None:
        self.slots: list[object] = []

    def connect(self, slot) -> None:
        self.slots.append(slot)

    def emit(self) -> None:
        for slot in list(self.slots):
            slot()


class _FakeControl:
    def __init__(self) -> None:
        self.clicked = _FakeSignal()


class _FakeMarker:
    def __init__(self, anchor, title, on_click) -> None:
        self.anchor = anchor
        self.title = title
        self.on_click = on_click
        self.visible = True
        self.removed = False

    def set_visible(self, visible: bool) -> None:
        self.visible = visible

    def click(self) -> None:
        self.on_click()

    def remove(self) -> None:
        self.removed = True


class _FakeInfoOverlay:
    def __init__(self, anchor, title, lines, control_id, control_text) -> None:
        self.title = title
        self.lines = lines
        self.control_id = control_id
        self.control_text = control_text
        self.control = _FakeControl()
        self.is_open = False
        self.removed = False

    def open(self) -> None:
        self.is_open = True

    def close(self) -> bool:
        self.is_open = False
        return True

    def find_control(self, control_id: str):
        if not self.is_open or control_id != self.control_id:
            return None
        return self.control

    def remove(self) -> None:
        self.removed = True


class _FakeClusterMapCanvas:
    """Minimal map-canvas double for the cluster controller."""

    def __init__(self, zoom: float = 9.0) -> None:
        self.zoom = zoom
        self.markers: list[_FakeMarker] = []
        self.overlays: list[_FakeInfoOverlay] = []
        self.layers: dict[str, dict] = {}

    def create_marker(self, anchor, title, on_click, fill_color, border_color, **_kwargs):
        marker = _FakeMarker(anchor, title, on_click)
        self.markers.append(marker)
        return marker

    def create_info_overlay(self, anchor, title, lines, control_id, control_text):
        overlay = _FakeInfoOverlay(anchor, title, lines, control_id, control_text)
        self.overlays.append(overlay)
        return overlay

    def get_zoom_level(self) -> float:
        return self.zoom

    def get_layer_names(self) -> list[str]:
        return list(self.layers)

    def remove_layer(self, layer_name: str) -> bool:
        return self.layers.pop(layer_name, None) is not None

    def add_point_layer(self, data, layer_name: str, **kwargs) -> bool:
        self.layers[layer_name] = {"data": data, **kwargs}
        return True

    def add_text_layer(self, data, labels, layer_name: str, **kwargs) -> bool:
        self.layers[layer_name] = {"data": data, "labels": list(labels), **kwargs}
        return True


class _ManualScheduler:
    def __init__(self) -> None:
        self.calls: list[tuple[int, object]] = []

    def __call__(self, delay_ms, callback) -> None:
        self.calls.append((delay_ms, callback))

    def run_all(self) -> None:
        calls, self.calls = self.calls, []
        for _delay, callback in calls:
            callback()


FARMS = [
    {"id": 1, "farmName": "North", "coordinates": {"lat": 25.400, "lng": 55.520}, "totalArea": 12},
    {"id": 2, "farmName": "Broken", "coordinates": {"lat": "not-a-number", "lng": 55.0}},
    {"id": 3, "farmName": "South", "coordinates": {"lat": 25.401, "lng": 55.521}},
]


def _make_controller(fail_import: bool = False, zoom: float = 9.0):
    canvas = _FakeClusterMapCanvas(zoom=zoom)
    scheduler = _ManualScheduler()
    selected: list[dict] = []

    def importer(name: str):
        if fail_import:
            raise ImportError(name)
        return sklearn.cluster

    library = ClusterLibrary(scheduler=scheduler, importer=importer, module_name=FAKE_MODULE_NAME)
    controller = FarmClusterController(
        canvas,
        on_farm_selected=selected.append,
        algorithm=RadiusClusterAlgorithm(radius=150, max_zoom=16),
        library=library,
        scheduler=scheduler,
        info_delay_ms=50,
    )
    return controller, canvas, scheduler, selected


def test_invalid_farm_is_skipped_and_logged() -> None:
    controller, canvas, _scheduler, _selected = _make_controller()
    messages: list[str] = []
    sink_id = logger.add(lambda message: messages.append(str(message)), level="WARNING")
    try:
        payload = controller.update(FARMS)
    finally:
        logger.remove(sink_id)

    assert payload == {"farm_count": 2, "skipped_count": 1}
    assert [marker.title for marker in canvas.markers] == ["North", "South"]
    assert any("Invalid coordinates for farm: Broken" in message for message in messages)


def test_info_popup_shows_area_and_rounded_coordinates() -> None:
    controller, canvas, _scheduler, _selected = _make_controller()
    controller.update(FARMS)

    north, south = canvas.overlays
    assert north.lines == ["12 acres", "25.4000, 55.5200"]
    assert south.lines[0] == "N/A acres"
    assert north.control_id == "view-farm-1"


def test_view_details_is_wired_after_delay_and_opens_one_popup() -> None:
    controller, canvas, scheduler, selected = _make_controller()
    controller.update(FARMS)
    scheduler.run_all()

    canvas.markers[0].click()
    assert canvas.overlays[0].is_open is True
    assert scheduler.calls[0][0] == 50
    assert canvas.overlays[0].control.clicked.slots == []

    scheduler.run_all()
    canvas.overlays[0].control.clicked.emit()
    assert selected == [FARMS[0]]

    canvas.markers[1].click()
    scheduler.run_all()
    assert canvas.overlays[0].is_open is False
    assert canvas.overlays[1].is_open is True

    canvas.markers[0].click()
    scheduler.run_all()
    assert len(canvas.overlays[0].control.clicked.slots) == 1


def test_markers_cluster_once_library_is_ready() -> None:
    controller, canvas, scheduler, _selected = _make_controller()
    controller.update(FARMS)
    assert controller.clusterer is None

    scheduler.run_all()

    assert controller.clusterer is not None
    assert [marker.visible for marker in canvas.markers] == [False, False]
    assert canvas.layers["farm_cluster_counts"]["labels"] == ["2"]

    controller.set_zoom(18)
    assert [marker.visible for marker in canvas.markers] == [True, True]
    assert "farm_cluster_bubbles" not in canvas.layers


def test_library_failure_leaves_markers_unclustered() -> None:
    controller, canvas, scheduler, _selected = _make_controller(fail_import=True)
    controller.update(FARMS)

    scheduler.run_all()

    assert controller.clusterer is None
    assert len(controller.markers) == 2
    assert all(marker.visible for marker in canvas.markers)


def test_update_replaces_previous_markers() -> None:
    controller, canvas, scheduler, _selected = _make_controller()
    controller.update(FARMS)
    scheduler.run_all()
    old_markers = list(canvas.markers)

    payload = controller.update([])

    assert payload == {"farm_count": 0, "skipped_count": 0}
    assert all(marker.removed for marker in old_markers)
    assert controller.markers == []
    assert canvas.layers == {}


def test_stale_library_callback_after_update_is_ignored() -> None:
    controller, canvas, scheduler, _selected = _make_controller()
    controller.update(FARMS)
    controller.update(FARMS[:1])

    scheduler.run_all()

    assert len(controller.markers) == 1
    assert controller.clusterer is not None
    assert canvas.layers.get("farm_cluster_counts") is None


def test_teardown_removes_everything_and_ignores_late_clicks() -> None:
    controller, canvas, scheduler, selected = _make_controller()
    controller.update(FARMS)
    canvas.markers[0].click()

    controller.teardown()
    scheduler.run_all()

    assert all(marker.removed for marker in canvas.markers)
    assert all(overlay.removed for overlay in canvas.overlays)
    assert canvas.overlays[0].control.clicked.slots == []
    assert selected == []


def test_parse_farm_locations_accepts_string_numbers() -> None:
    locations = parse_farm_locations(
        [{"id": "a", "farmName": "X", "coordinates": {"lat": "25.1", "lng": "55.2"}}]
    )
    assert locations[0].position.lat == 25.1
    assert locations[0].control_id == "view-farm-a"
